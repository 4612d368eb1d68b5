"""Round settlement, seat admission and the player operations around them.

All mutating operations share one critical section (``store.transaction()``),
so a settlement can never interleave with a join, a deposit or an admission.
Nothing here retries: moving money is not idempotent, and a failed operation
must be re-triggered explicitly by its caller.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Protocol

from shared.game.config import DEFAULT_GAME_CONFIG, GameConfig
from shared.game.errors import (
    AlreadyActive,
    InsufficientBalance,
    InvalidDepositAmount,
    InvalidEntryAmount,
    InvariantViolation,
    NoActivePlayers,
    NotEnoughPlayers,
    SpinInProgress,
    SpinNotStarted,
    UserNotFound,
)
from shared.game.prize import calculate_prize, split_prize
from shared.game.selection import (
    RandomSource,
    calculate_win_probabilities,
    select_weighted_winner,
    selection_stats,
)
from shared.game.states import (
    GameStatus,
    LedgerKind,
    UserStatus,
    can_spin,
    status_after_admission,
    status_for_active_count,
)
from shared.models.roulette import ActivePlayer, GameState
from shared.repositories.roulette import GAME_STATE_ID

logger = logging.getLogger(__name__)


class GameStore(Protocol):
    """What the engine needs from storage (see ``shared.game.store``)."""

    def transaction(self) -> AbstractAsyncContextManager[Any]: ...

    def snapshot(self) -> AbstractAsyncContextManager[Any]: ...

    async def round_history(self, limit: int = 20) -> list[Any]: ...


# ============================================
# Results
# ============================================


@dataclass
class AdmittedPlayer:
    """A queued player who was just seated."""

    user_id: int
    name: str | None
    entry_amount: int
    position: int
    pot_credit: int

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "entry_amount": self.entry_amount,
            "position": self.position,
        }


@dataclass
class RoundResult:
    winner_id: int
    winner_name: str | None
    winner_entry_amount: int
    gross_prize: int
    prize: int
    house_commission: int
    pot_at_draw: int
    new_pot: int
    status: GameStatus
    new_player: AdmittedPlayer | None = None
    round_id: int | None = None

    def to_dict(self) -> dict:
        return {
            "winner": {"id": self.winner_id, "name": self.winner_name, "prize": self.prize},
            "new_player": self.new_player.to_dict() if self.new_player else None,
            "new_pot": self.new_pot,
            "house_commission": self.house_commission,
            "pot_at_draw": self.pot_at_draw,
            "round_status": GameStatus.FINISHED.value,
            "status": self.status.value,
        }


@dataclass
class JoinResult:
    new_balance: int
    status: UserStatus
    queue_length: int
    admitted: list[AdmittedPlayer] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "new_balance": self.new_balance,
            "status": self.status.value,
            "queue_length": self.queue_length,
            "admitted": [p.to_dict() for p in self.admitted],
        }


@dataclass
class SpinAccepted:
    accepted: bool
    player_count: int

    def to_dict(self) -> dict:
        return {"accepted": self.accepted, "player_count": self.player_count}


# ============================================
# Engine
# ============================================


class RouletteEngine:
    """Drives the roulette pool: joins, admissions, spins and settlements."""

    def __init__(
        self,
        store: GameStore,
        config: GameConfig = DEFAULT_GAME_CONFIG,
        rng: RandomSource | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.rng = rng

    # ---------------- player operations ----------------

    async def join_queue(self, user_id: int, entry_amount: int) -> JoinResult:
        """Charge the entry fee, enqueue the player and seat whoever fits."""
        if not self.config.is_valid_entry_amount(entry_amount):
            raise InvalidEntryAmount(f"Invalid entry amount: {entry_amount}")

        async with self.store.transaction() as session:
            state = await session.state.get_or_create(for_update=True)
            user = await session.users.get(user_id, for_update=True)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            if user.status != UserStatus.INACTIVE.value:
                raise AlreadyActive()
            if user.balance < entry_amount:
                raise InsufficientBalance(
                    f"Balance {user.balance} is below the entry amount {entry_amount}"
                )

            entry = await session.ledger.append(
                user_id,
                LedgerKind.ENTRY_FEE,
                entry_amount,
                user.balance,
                f"Roulette entry fee: {entry_amount}",
            )
            await session.users.update_balance(
                user_id, entry.balance_after, UserStatus.WAITING.value
            )
            await session.queue.enqueue(user_id, entry_amount)

            admitted: list[AdmittedPlayer] = []
            if state.status != GameStatus.SPINNING.value:
                admitted = await self._fill_seats(session, state)
                await session.state.save(state)

            queue_length = await session.queue.length()
            await session.publish("queue-updated", {"queue_length": queue_length})
            await self._publish_state(session, state)

        seated = any(p.user_id == user_id for p in admitted)
        logger.info(
            f"User {user_id} joined with {entry_amount} "
            f"({'seated' if seated else 'queued'}, queue={queue_length})"
        )
        return JoinResult(
            new_balance=entry.balance_after,
            status=UserStatus.PLAYING if seated else UserStatus.WAITING,
            queue_length=queue_length,
            admitted=admitted,
        )

    async def deposit(self, user_id: int, amount: int) -> int:
        """Credit a deposit and return the new balance."""
        cfg = self.config
        if (
            isinstance(amount, bool)
            or not isinstance(amount, int)
            or not cfg.min_deposit_amount <= amount <= cfg.max_deposit_amount
        ):
            raise InvalidDepositAmount(
                f"Deposits must be between {cfg.min_deposit_amount} and {cfg.max_deposit_amount}"
            )

        async with self.store.transaction() as session:
            user = await session.users.get(user_id, for_update=True)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            entry = await session.ledger.append(
                user_id, LedgerKind.DEPOSIT, amount, user.balance, f"Deposit: {amount}"
            )
            await session.users.update_balance(user_id, entry.balance_after)

        logger.info(f"User {user_id} deposited {amount} (balance={entry.balance_after})")
        return entry.balance_after

    # ---------------- table operations ----------------

    async def admit_from_queue(self) -> list[AdmittedPlayer]:
        """Seat queued players into every free seat (manual trigger)."""
        async with self.store.transaction() as session:
            state = await session.state.get_or_create(for_update=True)
            if state.status == GameStatus.SPINNING.value:
                raise SpinInProgress("Seats cannot change while the wheel is spinning")

            admitted = await self._fill_seats(session, state)
            await session.state.save(state)
            if admitted:
                queue_length = await session.queue.length()
                await session.publish("queue-updated", {"queue_length": queue_length})
                await self._publish_state(session, state)

        return admitted

    async def trigger_spin(self) -> SpinAccepted:
        """Lock the table for a draw. Needs ``min_players_to_spin`` seated players."""
        async with self.store.transaction() as session:
            state = await session.state.get_or_create(for_update=True)
            if state.status == GameStatus.SPINNING.value:
                raise SpinInProgress()

            player_count = await session.players.count()
            if not can_spin(player_count, self.config):
                raise NotEnoughPlayers(
                    f"At least {self.config.min_players_to_spin} players are needed to spin "
                    f"({player_count} seated)"
                )

            state.status = GameStatus.SPINNING.value
            await session.state.save(state)
            await session.publish("spin-started", {"player_count": player_count})
            await self._publish_state(session, state)

        logger.info(f"Spin started with {player_count} players")
        return SpinAccepted(accepted=True, player_count=player_count)

    async def process_round(self) -> RoundResult:
        """Settle one round: draw, pay, record, free the seat, refill it.

        Runs in any status; ``finish_spin`` is the gated entry point.
        """
        async with self.store.transaction() as session:
            state = await session.state.get_or_create(for_update=True)
            result = await self._settle(session, state)
        self._log_settlement(result)
        return result

    async def finish_spin(self) -> RoundResult:
        """Settle the round started by ``trigger_spin``.

        Refused with ``SpinNotStarted`` unless the game is ``SPINNING``, so
        each accepted spin pays out exactly once.
        """
        async with self.store.transaction() as session:
            state = await session.state.get_or_create(for_update=True)
            if state.status != GameStatus.SPINNING.value:
                raise SpinNotStarted(f"Cannot settle while {state.status}")
            result = await self._settle(session, state)
        self._log_settlement(result)
        return result

    async def _settle(self, session: Any, state: GameState) -> RoundResult:
        cfg = self.config
        players = await session.players.list_active()
        if not players:
            raise NoActivePlayers()

        winner = select_weighted_winner(players, cfg, self.rng)
        pot_at_draw = state.pot
        gross_prize = calculate_prize(winner.entry_amount, pot_at_draw, cfg)
        prize, commission = split_prize(gross_prize, cfg)

        user = await session.users.get(winner.user_id, for_update=True)
        if user is None:
            raise UserNotFound(f"Winner {winner.user_id} has no user record")

        entry = await session.ledger.append(
            user.id,
            LedgerKind.PRIZE_WON,
            prize,
            user.balance,
            f"Roulette prize: {prize}",
        )
        await session.users.record_win(user.id, entry.balance_after, prize)
        round_record = await session.rounds.record(
            user.id, winner.entry_amount, prize, commission, pot_at_draw
        )
        if not await session.players.remove(winner.id):
            raise InvariantViolation(f"Seat {winner.id} disappeared during settlement")

        # Commission stays in the pot
        state.pot = max(0, pot_at_draw - prize)

        remaining = [p for p in players if p.id != winner.id]
        new_player: AdmittedPlayer | None = None
        if len(remaining) < cfg.max_active_players:
            new_player = await self._admit_next(
                session, state, {p.position for p in remaining}
            )

        active_count = len(remaining) + (1 if new_player else 0)
        resting = status_for_active_count(active_count, cfg)
        state.status = resting.value
        state.last_winner_id = user.id
        await session.state.save(state)

        result = RoundResult(
            winner_id=user.id,
            winner_name=user.name,
            winner_entry_amount=winner.entry_amount,
            gross_prize=gross_prize,
            prize=prize,
            house_commission=commission,
            pot_at_draw=pot_at_draw,
            new_pot=state.pot,
            status=resting,
            new_player=new_player,
            round_id=round_record.id,
        )
        await session.publish("spin-result", result.to_dict())
        await self._publish_state(session, state)

        return result

    def _log_settlement(self, result: RoundResult) -> None:
        logger.info(
            f"Round settled: winner={result.winner_id} entry={result.winner_entry_amount} "
            f"prize={result.prize} commission={result.house_commission} "
            f"pot {result.pot_at_draw}->{result.new_pot} status={result.status.value}"
        )

    # ---------------- reads ----------------

    async def get_full_state(self) -> dict:
        async with self.store.snapshot() as session:
            return await self._build_state(session)

    async def get_queue(self, limit: int = 10) -> list[dict]:
        async with self.store.snapshot() as session:
            entries = await session.queue.peek(limit)
        return [
            {
                "position": i + 1,
                "user_id": e.user_id,
                "user_name": e.user_name,
                "entry_amount": e.entry_amount,
                "enqueued_at": e.enqueued_at,
            }
            for i, e in enumerate(entries)
        ]

    async def get_odds(self) -> dict:
        async with self.store.snapshot() as session:
            players = await session.players.list_active()
        probabilities = calculate_win_probabilities(players, self.config)
        return {
            "players": [
                {
                    "user_id": p.user_id,
                    "user_name": p.user_name,
                    "entry_amount": p.entry_amount,
                    "probability": probabilities[p.user_id],
                }
                for p in players
            ],
            "stats": selection_stats(players, self.config),
        }

    async def get_balance(self, user_id: int) -> int:
        return (await self.get_user_stats(user_id))["balance"]

    async def get_user_stats(self, user_id: int) -> dict:
        async with self.store.snapshot() as session:
            user = await session.users.get(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return {
            "balance": user.balance,
            "games_played": user.games_played,
            "total_winnings": user.total_winnings,
            "status": user.status,
        }

    async def get_transaction_history(self, user_id: int, limit: int = 50) -> list[dict]:
        async with self.store.snapshot() as session:
            entries = await session.ledger.history(user_id, limit)
        return [
            {
                "id": e.id,
                "kind": e.kind,
                "amount": e.amount,
                "balance_before": e.balance_before,
                "balance_after": e.balance_after,
                "description": e.description,
                "created_at": e.created_at,
            }
            for e in entries
        ]

    async def get_round_history(self, limit: int = 20) -> list[dict]:
        rounds = await self.store.round_history(limit)
        return [
            {
                "id": r.id,
                "winner_id": r.winner_id,
                "winner_name": r.winner_name,
                "winner_entry_amount": r.winner_entry_amount,
                "prize_amount": r.prize_amount,
                "house_commission": r.house_commission,
                "pot_at_time": r.pot_at_time,
                "completed_at": r.completed_at,
            }
            for r in rounds
        ]

    # ---------------- internals ----------------

    async def _fill_seats(self, session: Any, state: GameState) -> list[AdmittedPlayer]:
        """Admit from the queue until the table is full or the queue is empty."""
        players = await session.players.list_active()
        taken = {p.position for p in players}
        count = len(players)

        admitted: list[AdmittedPlayer] = []
        while count < self.config.max_active_players:
            newcomer = await self._admit_next(session, state, taken)
            if newcomer is None:
                break
            admitted.append(newcomer)
            count += 1

        state.status = status_after_admission(
            GameStatus(state.status), count, self.config
        ).value
        return admitted

    async def _admit_next(
        self, session: Any, state: GameState, taken: set[int]
    ) -> AdmittedPlayer | None:
        """Seat the queue head at the lowest free position and credit the pot."""
        entry = await session.queue.dequeue_head()
        if entry is None:
            return None
        if not self.config.is_valid_entry_amount(entry.entry_amount):
            raise InvalidEntryAmount(
                f"Queued entry {entry.id} has invalid amount {entry.entry_amount}"
            )

        user = await session.users.get(entry.user_id, for_update=True)
        if user is None:
            raise UserNotFound(f"Queued user {entry.user_id} not found")

        position = next(i for i in range(self.config.max_active_players) if i not in taken)
        await session.players.add(entry.user_id, entry.entry_amount, position)
        taken.add(position)
        await session.users.set_status(user.id, UserStatus.PLAYING.value)

        credit = self.config.net_amount(entry.entry_amount)
        state.pot += credit

        logger.info(
            f"Admitted user {user.id} at seat {position} "
            f"(entry={entry.entry_amount}, pot +{credit})"
        )
        return AdmittedPlayer(
            user_id=user.id,
            name=user.name,
            entry_amount=entry.entry_amount,
            position=position,
            pot_credit=credit,
        )

    async def _build_state(self, session: Any, state: GameState | None = None) -> dict:
        if state is None:
            state = await session.state.get() or GameState(
                id=GAME_STATE_ID, status=GameStatus.WAITING_FOR_PLAYERS.value, pot=0
            )
        players: list[ActivePlayer] = await session.players.list_active()
        probabilities = calculate_win_probabilities(players, self.config)
        head = await session.queue.peek(1)
        queue_length = await session.queue.length()

        return {
            "game_state": {
                "status": state.status,
                "pot": state.pot,
                "last_winner_id": state.last_winner_id,
                "updated_at": state.updated_at,
            },
            "active_players": [
                {
                    "id": p.id,
                    "user_id": p.user_id,
                    "user_name": p.user_name,
                    "entry_amount": p.entry_amount,
                    "position": p.position,
                    "joined_at": p.joined_at,
                    "win_probability": probabilities[p.user_id],
                }
                for p in players
            ],
            "next_in_queue": (
                {
                    "user_id": head[0].user_id,
                    "user_name": head[0].user_name,
                    "entry_amount": head[0].entry_amount,
                    "enqueued_at": head[0].enqueued_at,
                }
                if head
                else None
            ),
            "queue_length": queue_length,
            "active_players_count": len(players),
            "max_active_players": self.config.max_active_players,
        }

    async def _publish_state(self, session: Any, state: GameState) -> None:
        await session.publish("game-state-update", await self._build_state(session, state))
