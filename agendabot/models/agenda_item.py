"""Agenda item model representing one entry of a room's ordered agenda."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from .. import config


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored ISO timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class AgendaItem:
    """An item on a room's agenda.

    Positions are 1-based and contiguous within a room. ``start_time`` doubles
    as the "current item" marker: an item is active while it has a start time
    and is not completed. Completion keeps the start time so the actual
    duration can be computed afterwards.
    """

    id: Optional[int] = None
    room_id: str = ""
    position: int = 0
    title: str = ""
    planned_minutes: int = config.DEFAULT_DURATION_MINUTES
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        """True if this is the room's current item."""
        return self.start_time is not None and not self.is_completed

    @property
    def actual_minutes(self) -> int:
        """Minutes from start to completion, rounded up (0 if unknown)."""
        if not self.is_completed or self.start_time is None or self.completed_at is None:
            return 0
        seconds = (self.completed_at - self.start_time).total_seconds()
        if seconds <= 0:
            return 0
        return int(math.ceil(seconds / 60))

    def to_dict(self) -> dict:
        """Convert item to dictionary for database storage."""
        return {
            'id': self.id,
            'room_id': self.room_id,
            'position': self.position,
            'title': self.title,
            'planned_minutes': self.planned_minutes,
            'is_completed': self.is_completed,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AgendaItem':
        """Create item from dictionary."""
        created_at = parse_timestamp(data.get('created_at')) or utc_now()

        return cls(
            id=data.get('id'),
            room_id=str(data.get('room_id', '')),
            position=int(data.get('position', 0)),
            title=data.get('title', ''),
            planned_minutes=int(data.get('planned_minutes') or config.DEFAULT_DURATION_MINUTES),
            is_completed=bool(data.get('is_completed', False)),
            completed_at=parse_timestamp(data.get('completed_at')),
            start_time=parse_timestamp(data.get('start_time')),
            created_at=created_at
        )
