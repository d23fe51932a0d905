"""Per-room configuration document and resolved time monitoring settings.

A room document is sparse: each configuration section is only present when
the room overrides it. A missing section means "inherit the global default",
so resetting a section is just deleting its key.
"""

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .. import config
from .agenda_item import parse_timestamp


@dataclass
class RoomConfig:
    """Sparse, section-keyed override document for one room."""

    room_id: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def get_section(self, section: str) -> Optional[dict]:
        """Return a copy of a section, or None if the room inherits it."""
        value = self.data.get(section)
        return copy.deepcopy(value) if value is not None else None

    def has_section(self, section: str) -> bool:
        return self.data.get(section) is not None

    def set_section(self, section: str, values: dict) -> None:
        self.data[section] = dict(values)

    def remove_section(self, section: str) -> bool:
        """Drop a section. Returns False if it was not overridden."""
        if section not in self.data:
            return False
        del self.data[section]
        return True

    def has_sections(self) -> bool:
        """True if anything besides bookkeeping fields is stored."""
        return any(key not in config.BOOKKEEPING_FIELDS for key in self.data)

    @property
    def configured_by(self) -> Optional[str]:
        return self.data.get('configured_by')

    @property
    def configured_at(self) -> Optional[datetime]:
        return parse_timestamp(self.data.get('configured_at'))

    @property
    def language(self) -> str:
        return self.data.get('language') or config.DEFAULT_LANGUAGE

    def to_json(self) -> str:
        """Serialize the document for storage."""
        return json.dumps(self.data)

    @classmethod
    def from_row(cls, room_id: str, details: Optional[str]) -> 'RoomConfig':
        """Create a document from its stored JSON."""
        data = json.loads(details) if details else {}
        return cls(room_id=room_id, data=data)


@dataclass
class TimeMonitoringConfig:
    """Effective time monitoring settings for a room."""

    enabled: bool = config.DEFAULT_MONITORING_ENABLED
    warning_threshold: float = config.DEFAULT_WARNING_THRESHOLD
    overtime_threshold: float = config.DEFAULT_OVERTIME_THRESHOLD
    check_interval: int = config.FIXED_CHECK_INTERVAL
    source: str = "global"  # "room" or "global"
    configured_by: Optional[str] = None
    configured_at: Optional[datetime] = None

    @property
    def time_reached_threshold(self) -> float:
        """The overtime tier always fires at 100%."""
        return config.FIXED_TIME_REACHED_THRESHOLD

    def to_section(self) -> dict:
        """The values stored in a room's time_monitoring section."""
        return {
            'enabled': self.enabled,
            'warning_threshold': self.warning_threshold,
            'overtime_threshold': self.overtime_threshold,
        }

    def to_dict(self) -> dict:
        data = self.to_section()
        data.update({
            'check_interval': self.check_interval,
            'source': self.source,
            'configured_by': self.configured_by,
            'configured_at': self.configured_at.isoformat() if self.configured_at else None,
        })
        return data
