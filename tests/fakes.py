"""In-memory stand-in for PostgresGameStore.

Mirrors the repository methods the engine calls. ``transaction()`` serialises
callers with an asyncio lock, snapshots every table on entry and restores the
snapshot if the body raises. Events are only recorded in ``published`` after
a successful exit, like NOTIFY on commit.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

from shared.game.states import GameStatus, LedgerKind, UserStatus
from shared.models.game_queue import GameQueueEntry
from shared.models.roulette import ActivePlayer, GameRound, GameState
from shared.models.user import LedgerEntry, User

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
_CREDIT_KINDS = {LedgerKind.DEPOSIT.value, LedgerKind.PRIZE_WON.value}


class InjectedFailure(RuntimeError):
    pass


class SequenceRandom:
    """Returns the given draws in order, then repeats the last one."""

    def __init__(self, *values: float) -> None:
        self.values = list(values)
        self.calls = 0

    def random(self) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


@dataclass
class Tables:
    users: dict[int, User] = field(default_factory=dict)
    ledger: list[LedgerEntry] = field(default_factory=list)
    state: GameState | None = None
    players: dict[int, ActivePlayer] = field(default_factory=dict)
    queue: list[GameQueueEntry] = field(default_factory=list)
    rounds: list[GameRound] = field(default_factory=list)


class _Repo:
    def __init__(self, store: FakeGameStore) -> None:
        self.store = store

    @property
    def t(self) -> Tables:
        return self.store.tables

    def _check(self, name: str) -> None:
        if self.store.fail_on == name:
            raise InjectedFailure(f"injected failure in {name}")


class FakeUsers(_Repo):
    async def get(self, user_id, *, for_update=False):
        user = self.t.users.get(user_id)
        return replace(user) if user else None

    async def update_balance(self, user_id, balance, status=None):
        self._check("users.update_balance")
        user = self.t.users[user_id]
        user.balance = balance
        if status is not None:
            user.status = status

    async def set_status(self, user_id, status):
        self._check("users.set_status")
        self.t.users[user_id].status = status

    async def record_win(self, user_id, balance, prize):
        self._check("users.record_win")
        user = self.t.users[user_id]
        user.balance = balance
        user.games_played += 1
        user.total_winnings += prize
        user.status = UserStatus.INACTIVE.value


class FakeLedger(_Repo):
    async def append(self, user_id, kind, amount, balance_before, description=None):
        self._check("ledger.append")
        kind_value = LedgerKind(kind).value
        sign = 1 if kind_value in _CREDIT_KINDS else -1
        entry = LedgerEntry(
            id=next(self.store.ids),
            user_id=user_id,
            kind=kind_value,
            amount=amount,
            balance_before=balance_before,
            balance_after=balance_before + sign * amount,
            description=description,
            created_at=self.store.now(),
        )
        self.t.ledger.append(entry)
        return replace(entry)

    async def history(self, user_id, limit=50):
        entries = [e for e in self.t.ledger if e.user_id == user_id]
        return [replace(e) for e in reversed(entries)][:limit]


class FakeQueue(_Repo):
    def _waiting(self):
        waiting = [e for e in self.t.queue if e.removed_at is None]
        return sorted(waiting, key=lambda e: (e.enqueued_at, e.id))

    async def enqueue(self, user_id, entry_amount):
        self._check("queue.enqueue")
        entry = GameQueueEntry(
            id=next(self.store.ids),
            user_id=user_id,
            entry_amount=entry_amount,
            enqueued_at=self.store.now(),
        )
        self.t.queue.append(entry)
        return replace(entry)

    async def dequeue_head(self):
        self._check("queue.dequeue_head")
        waiting = self._waiting()
        if not waiting:
            return None
        head = waiting[0]
        head.removed_at = self.store.now()
        head.removal_reason = "admitted"
        return replace(head)

    async def peek(self, limit=10):
        return [
            replace(e, user_name=self.t.users[e.user_id].name) for e in self._waiting()[:limit]
        ]

    async def length(self):
        return len(self._waiting())


class FakeState(_Repo):
    async def get(self):
        return replace(self.t.state) if self.t.state else None

    async def get_or_create(self, *, for_update=False):
        if self.t.state is None:
            self.t.state = GameState(id=1, status=GameStatus.WAITING_FOR_PLAYERS.value, pot=0)
        return replace(self.t.state)

    async def save(self, state):
        self._check("state.save")
        self.t.state = replace(state, updated_at=self.store.now())


class FakePlayers(_Repo):
    async def list_active(self):
        players = sorted(self.t.players.values(), key=lambda p: p.position)
        return [replace(p, user_name=self._name(p.user_id)) for p in players]

    def _name(self, user_id):
        user = self.t.users.get(user_id)
        return user.name if user else None

    async def count(self):
        return len(self.t.players)

    async def add(self, user_id, entry_amount, position):
        self._check("players.add")
        if any(p.user_id == user_id for p in self.t.players.values()):
            raise InjectedFailure(f"user {user_id} already seated")
        if any(p.position == position for p in self.t.players.values()):
            raise InjectedFailure(f"position {position} already taken")
        player = ActivePlayer(
            id=next(self.store.ids),
            user_id=user_id,
            entry_amount=entry_amount,
            position=position,
            joined_at=self.store.now(),
        )
        self.t.players[player.id] = player
        return replace(player)

    async def remove(self, player_id):
        self._check("players.remove")
        return self.t.players.pop(player_id, None) is not None


class FakeRounds(_Repo):
    async def record(self, winner_id, winner_entry_amount, prize_amount, house_commission, pot_at_time):
        self._check("rounds.record")
        round_ = GameRound(
            id=next(self.store.ids),
            winner_id=winner_id,
            winner_entry_amount=winner_entry_amount,
            prize_amount=prize_amount,
            house_commission=house_commission,
            pot_at_time=pot_at_time,
            completed_at=self.store.now(),
        )
        self.t.rounds.append(round_)
        return replace(round_)

    async def list_recent(self, limit=20):
        return [
            replace(r, winner_name=self.t.users[r.winner_id].name)
            for r in reversed(self.t.rounds)
        ][:limit]


class FakeSession:
    def __init__(self, store: FakeGameStore) -> None:
        self.users = FakeUsers(store)
        self.ledger = FakeLedger(store)
        self.queue = FakeQueue(store)
        self.state = FakeState(store)
        self.players = FakePlayers(store)
        self.rounds = FakeRounds(store)
        self.pending: list[tuple[str, dict]] = []

    async def publish(self, event, data):
        self.pending.append((event, data))


class FakeGameStore:
    def __init__(self) -> None:
        self.tables = Tables()
        self.ids = itertools.count(1)
        self._clock = itertools.count()
        self._lock = asyncio.Lock()
        self.published: list[tuple[str, dict]] = []
        self.fail_on: str | None = None
        self.transactions = 0

    def now(self) -> datetime:
        return _EPOCH + timedelta(microseconds=next(self._clock))

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            saved = copy.deepcopy(self.tables)
            session = FakeSession(self)
            try:
                yield session
            except BaseException:
                self.tables = saved
                raise
            self.transactions += 1
            self.published.extend(session.pending)

    @asynccontextmanager
    async def snapshot(self):
        yield FakeSession(self)

    async def round_history(self, limit=20):
        return await FakeRounds(self).list_recent(limit)

    # ---------------- seeding helpers ----------------

    def add_user(self, name: str, balance: int = 100, status: str = "inactive") -> User:
        user_id = next(self.ids)
        self.tables.users[user_id] = User(id=user_id, name=name, balance=balance, status=status)
        return self.tables.users[user_id]

    def seat(self, user: User, entry_amount: int, position: int | None = None) -> ActivePlayer:
        if position is None:
            taken = {p.position for p in self.tables.players.values()}
            position = next(i for i in itertools.count() if i not in taken)
        player = ActivePlayer(
            id=next(self.ids),
            user_id=user.id,
            entry_amount=entry_amount,
            position=position,
            joined_at=self.now(),
        )
        self.tables.players[player.id] = player
        user.status = UserStatus.PLAYING.value
        return player

    def set_pot(self, pot: int, status: str = GameStatus.WAITING_FOR_PLAYERS.value) -> None:
        self.tables.state = GameState(id=1, status=status, pot=pot)

    def events(self, name: str) -> list[dict]:
        return [data for event, data in self.published if event == name]

    def enqueue(self, user: User, entry_amount: int) -> GameQueueEntry:
        entry = GameQueueEntry(
            id=next(self.ids),
            user_id=user.id,
            entry_amount=entry_amount,
            enqueued_at=self.now(),
        )
        self.tables.queue.append(entry)
        user.status = UserStatus.WAITING.value
        return entry
