"""Typed errors raised by the roulette engine.

Each error carries a stable ``code`` that the API layer forwards to clients and
a human-readable message. Nothing in the engine catches these for control flow;
they propagate to the caller unchanged.
"""

from __future__ import annotations


class GameError(Exception):
    """Base class for every error the engine raises on purpose."""

    code = "GAME_ERROR"
    default_message = "Game operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ============================================
# Validation
# ============================================


class InvalidInput(GameError):
    code = "INVALID_INPUT"
    default_message = "Invalid input"


class InvalidEntryAmount(InvalidInput):
    code = "INVALID_ENTRY_AMOUNT"
    default_message = "Invalid entry amount"


class InvalidPotAmount(InvalidInput):
    code = "INVALID_POT_AMOUNT"
    default_message = "Invalid pot amount"


class InvalidDepositAmount(InvalidInput):
    code = "INVALID_DEPOSIT_AMOUNT"
    default_message = "Invalid deposit amount"


# ============================================
# State conflicts
# ============================================


class StateConflict(GameError):
    code = "STATE_CONFLICT"
    default_message = "Operation not allowed in the current state"


class InsufficientBalance(StateConflict):
    code = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient balance"


class AlreadyActive(StateConflict):
    code = "ALREADY_ACTIVE"
    default_message = "Already in queue or playing"


class NotEnoughPlayers(StateConflict):
    code = "NOT_ENOUGH_PLAYERS"
    default_message = "At least two players are needed to spin"


class SpinInProgress(StateConflict):
    code = "SPIN_IN_PROGRESS"
    default_message = "A spin is already in progress"


class SpinNotStarted(StateConflict):
    code = "SPIN_NOT_STARTED"
    default_message = "No spin is in progress"


# ============================================
# Invariant violations
# ============================================


class InvariantViolation(GameError):
    code = "INVARIANT_VIOLATION"
    default_message = "Game invariant violated"


class NoPlayers(InvariantViolation):
    code = "NO_ACTIVE_PLAYERS"
    default_message = "No players available for selection"


class NoActivePlayers(NoPlayers):
    default_message = "No active players to settle a round"


class UserNotFound(InvariantViolation):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


# ============================================
# Infrastructure
# ============================================


class StoreUnavailable(GameError):
    code = "STORE_UNAVAILABLE"
    default_message = "Game store is unavailable"
