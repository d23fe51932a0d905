"""Time warning tiers and the append-only warning ledger entry."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .agenda_item import parse_timestamp, utc_now


class WarningTier(str, Enum):
    """Ordered warning severities: approaching < overtime < overtime_critical."""

    APPROACHING = "approaching"
    OVERTIME = "overtime"
    OVERTIME_CRITICAL = "overtime_critical"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, WarningTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, WarningTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, WarningTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, WarningTier):
            return NotImplemented
        return self.rank >= other.rank

    def higher_tiers(self) -> List['WarningTier']:
        """Tiers strictly more severe than this one."""
        return [tier for tier in _TIER_ORDER if tier > self]

    @classmethod
    def ordered(cls) -> List['WarningTier']:
        """All tiers from least to most severe."""
        return list(_TIER_ORDER)


_TIER_ORDER = [WarningTier.APPROACHING, WarningTier.OVERTIME, WarningTier.OVERTIME_CRITICAL]


@dataclass
class WarningRecord:
    """A warning that has been delivered for an agenda item.

    At most one record exists per (item, tier); the monitor consults these
    records to stay idempotent across sweeps.
    """

    id: Optional[int] = None
    item_id: int = 0
    room_id: str = ""
    tier: WarningTier = WarningTier.APPROACHING
    elapsed_minutes: float = 0.0
    planned_minutes: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        """Convert record to dictionary for database storage."""
        return {
            'id': self.id,
            'item_id': self.item_id,
            'room_id': self.room_id,
            'tier': self.tier.value,
            'elapsed_minutes': self.elapsed_minutes,
            'planned_minutes': self.planned_minutes,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'WarningRecord':
        """Create record from dictionary."""
        return cls(
            id=data.get('id'),
            item_id=int(data.get('item_id', 0)),
            room_id=str(data.get('room_id', '')),
            tier=WarningTier(data.get('tier', WarningTier.APPROACHING.value)),
            elapsed_minutes=float(data.get('elapsed_minutes', 0.0)),
            planned_minutes=int(data.get('planned_minutes', 0)),
            created_at=parse_timestamp(data.get('created_at')) or utc_now()
        )
