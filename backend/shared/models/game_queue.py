"""Data model for the game_queue_entries table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class GameQueueEntry:
    """A paid join request waiting for a free seat."""

    id: int
    user_id: int
    entry_amount: int
    enqueued_at: datetime
    removed_at: datetime | None = None
    removal_reason: str | None = None  # 'admitted'
    user_name: str | None = None
