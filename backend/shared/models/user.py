"""Data models for users and the transactions ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """Player account with its balance and game counters."""

    id: int
    name: str | None
    balance: int
    status: str  # 'inactive' | 'waiting' | 'playing'
    games_played: int = 0
    total_winnings: int = 0
    email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class LedgerEntry:
    """Append-only record of one balance change."""

    id: int
    user_id: int
    kind: str  # 'deposit' | 'entry_fee' | 'prize_won' | 'withdrawal'
    amount: int
    balance_before: int
    balance_after: int
    description: str | None = None
    created_at: datetime | None = None
