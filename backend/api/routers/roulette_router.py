"""Roulette API routes."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from core.dependencies import get_current_user_id, get_roulette_service
from services.game_service import RouletteService
from shared.game.errors import GameError, InvalidInput, StateConflict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/roulette", tags=["roulette"])

_STATUS_BY_CODE = {
    "NO_ACTIVE_PLAYERS": 409,
    "USER_NOT_FOUND": 404,
    "STORE_UNAVAILABLE": 503,
}


def _to_http(e: GameError, action: str) -> HTTPException:
    """Map an engine error to its HTTP status, keeping the stable error code."""
    if isinstance(e, InvalidInput):
        status_code = 400
    elif isinstance(e, StateConflict):
        status_code = 409
    else:
        status_code = _STATUS_BY_CODE.get(e.code, 500)

    if status_code >= 500:
        logger.error(f"{action} failed: {e.code}: {e.message}")
    else:
        logger.warning(f"{action} rejected: {e.code}: {e.message}")
    return HTTPException(status_code=status_code, detail=e.to_dict())


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"code": "INTERNAL_ERROR", "message": f"Failed to {action.lower()}"},
    )


# ============================================
# Response / Request Models
# ============================================


class GameStateInfo(BaseModel):
    status: str
    pot: int
    last_winner_id: int | None = None
    updated_at: datetime | None = None


class ActivePlayerResponse(BaseModel):
    id: int
    user_id: int
    user_name: str | None = None
    entry_amount: int
    position: int
    joined_at: datetime | None = None
    win_probability: float


class QueueHeadResponse(BaseModel):
    user_id: int
    user_name: str | None = None
    entry_amount: int
    enqueued_at: datetime | None = None


class FullStateResponse(BaseModel):
    game_state: GameStateInfo
    active_players: list[ActivePlayerResponse]
    next_in_queue: QueueHeadResponse | None = None
    queue_length: int
    active_players_count: int
    max_active_players: int


class QueueEntryResponse(QueueHeadResponse):
    position: int


class QueueResponse(BaseModel):
    entries: list[QueueEntryResponse]
    count: int


class PlayerOddsResponse(BaseModel):
    user_id: int
    user_name: str | None = None
    entry_amount: int
    probability: float


class SelectionStatsResponse(BaseModel):
    total_players: int
    total_entries: int
    average_probability: float
    min_probability: float
    max_probability: float
    probability_by_entry: dict[int, float]


class OddsResponse(BaseModel):
    players: list[PlayerOddsResponse]
    stats: SelectionStatsResponse


class RoundHistoryEntry(BaseModel):
    id: int
    winner_id: int
    winner_name: str | None = None
    winner_entry_amount: int
    prize_amount: int
    house_commission: int
    pot_at_time: int
    completed_at: datetime | None = None


class RoundHistoryResponse(BaseModel):
    rounds: list[RoundHistoryEntry]


class JoinRequest(BaseModel):
    entry_amount: int


class AdmittedPlayerResponse(BaseModel):
    id: int
    name: str | None = None
    entry_amount: int
    position: int


class JoinResponse(BaseModel):
    new_balance: int
    status: str
    queue_length: int
    admitted: list[AdmittedPlayerResponse]


class SpinResponse(BaseModel):
    accepted: bool
    player_count: int


class WinnerResponse(BaseModel):
    id: int
    name: str | None = None
    prize: int


class RoundResultResponse(BaseModel):
    winner: WinnerResponse
    new_player: AdmittedPlayerResponse | None = None
    new_pot: int
    house_commission: int
    pot_at_draw: int
    round_status: str
    status: str


class AdmitResponse(BaseModel):
    admitted: list[AdmittedPlayerResponse]


class DepositRequest(BaseModel):
    amount: int


class DepositResponse(BaseModel):
    new_balance: int


class BalanceResponse(BaseModel):
    balance: int


class UserStatsResponse(BaseModel):
    balance: int
    games_played: int
    total_winnings: int
    status: str


class TransactionResponse(BaseModel):
    id: int
    kind: str
    amount: int
    balance_before: int
    balance_after: int
    description: str | None = None
    created_at: datetime | None = None


class TransactionHistoryResponse(BaseModel):
    transactions: list[TransactionResponse]


# ============================================
# Table Endpoints
# ============================================


@router.get("/state", response_model=FullStateResponse)
async def get_state(
    service: RouletteService = Depends(get_roulette_service),
) -> FullStateResponse:
    """Full table state: status, pot, seats with odds and the queue head."""
    try:
        return FullStateResponse(**await service.get_state())
    except GameError as e:
        raise _to_http(e, "Get state") from None
    except Exception as e:
        logger.exception(f"Failed to get game state: {e}")
        raise _internal_error("Fetch game state") from None


@router.get("/queue", response_model=QueueResponse)
async def get_queue(
    limit: int = Query(default=10, ge=1, le=100),
    service: RouletteService = Depends(get_roulette_service),
) -> QueueResponse:
    try:
        return QueueResponse(**await service.get_queue(limit))
    except GameError as e:
        raise _to_http(e, "Get queue") from None
    except Exception as e:
        logger.exception(f"Failed to get queue: {e}")
        raise _internal_error("Fetch queue") from None


@router.get("/odds", response_model=OddsResponse)
async def get_odds(
    service: RouletteService = Depends(get_roulette_service),
) -> OddsResponse:
    """Win probability of every seated player."""
    try:
        return OddsResponse(**await service.get_odds())
    except GameError as e:
        raise _to_http(e, "Get odds") from None
    except Exception as e:
        logger.exception(f"Failed to get odds: {e}")
        raise _internal_error("Fetch odds") from None


@router.get("/rounds", response_model=RoundHistoryResponse)
async def get_rounds(
    limit: int = Query(default=20, ge=1, le=100),
    service: RouletteService = Depends(get_roulette_service),
) -> RoundHistoryResponse:
    try:
        return RoundHistoryResponse(**await service.get_rounds(limit))
    except GameError as e:
        raise _to_http(e, "Get rounds") from None
    except Exception as e:
        logger.exception(f"Failed to get round history: {e}")
        raise _internal_error("Fetch round history") from None


@router.post("/join", response_model=JoinResponse)
async def join(
    body: JoinRequest,
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> JoinResponse:
    """Pay the entry fee and take a seat, or wait in the queue."""
    try:
        return JoinResponse(**await service.join(user_id, body.entry_amount))
    except GameError as e:
        raise _to_http(e, f"Join by user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to join user {user_id}: {e}")
        raise _internal_error("Join game") from None


@router.post("/spin", response_model=SpinResponse)
async def trigger_spin(
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> SpinResponse:
    try:
        result = await service.trigger_spin()
        logger.info(f"User {user_id} started a spin")
        return SpinResponse(**result)
    except GameError as e:
        raise _to_http(e, f"Spin by user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to start spin: {e}")
        raise _internal_error("Start spin") from None


@router.post("/spin/finish", response_model=RoundResultResponse)
async def finish_spin(
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> RoundResultResponse:
    """Settle the spin started by POST /spin: pick the winner, pay out and refill the seat."""
    try:
        return RoundResultResponse(**await service.finish_spin())
    except GameError as e:
        raise _to_http(e, f"Finish spin by user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to settle round: {e}")
        raise _internal_error("Settle round") from None


@router.post("/admit", response_model=AdmitResponse)
async def admit(
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> AdmitResponse:
    try:
        return AdmitResponse(**await service.admit())
    except GameError as e:
        raise _to_http(e, f"Admit by user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to admit from queue: {e}")
        raise _internal_error("Admit from queue") from None


# ============================================
# Player Endpoints
# ============================================


@router.get("/me/balance", response_model=BalanceResponse)
async def get_balance(
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> BalanceResponse:
    try:
        return BalanceResponse(**await service.get_balance(user_id))
    except GameError as e:
        raise _to_http(e, f"Balance for user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to get balance: {e}")
        raise _internal_error("Fetch balance") from None


@router.get("/me/stats", response_model=UserStatsResponse)
async def get_stats(
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> UserStatsResponse:
    try:
        return UserStatsResponse(**await service.get_stats(user_id))
    except GameError as e:
        raise _to_http(e, f"Stats for user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to get user stats: {e}")
        raise _internal_error("Fetch stats") from None


@router.get("/me/transactions", response_model=TransactionHistoryResponse)
async def get_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> TransactionHistoryResponse:
    try:
        return TransactionHistoryResponse(**await service.get_transactions(user_id, limit))
    except GameError as e:
        raise _to_http(e, f"Transactions for user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to get transactions: {e}")
        raise _internal_error("Fetch transactions") from None


@router.post("/me/deposit", response_model=DepositResponse)
async def deposit(
    body: DepositRequest,
    user_id: int = Depends(get_current_user_id),
    service: RouletteService = Depends(get_roulette_service),
) -> DepositResponse:
    try:
        return DepositResponse(**await service.deposit(user_id, body.amount))
    except GameError as e:
        raise _to_http(e, f"Deposit by user {user_id}") from None
    except Exception as e:
        logger.exception(f"Failed to deposit: {e}")
        raise _internal_error("Deposit") from None
