"""RoomSession model tracking whether a call is live in a room."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .agenda_item import parse_timestamp


@dataclass
class RoomSession:
    """The latest call of a room.

    Warnings are only sent while a call is live, i.e. started and not yet
    ended.
    """

    room_id: str = ""
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        return self.started_at is not None and self.ended_at is None

    def to_dict(self) -> dict:
        return {
            'room_id': self.room_id,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'RoomSession':
        return cls(
            room_id=str(data.get('room_id', '')),
            started_at=parse_timestamp(data.get('started_at')),
            ended_at=parse_timestamp(data.get('ended_at'))
        )
