"""Chat message model representing a message the bot posted into a room."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .. import config
from .agenda_item import parse_timestamp, utc_now

MESSAGE_TYPE_RESPONSE = "response"
MESSAGE_TYPE_WARNING = "warning"
MESSAGE_TYPE_SUMMARY = "summary"
MESSAGE_TYPES = [MESSAGE_TYPE_RESPONSE, MESSAGE_TYPE_WARNING, MESSAGE_TYPE_SUMMARY]


@dataclass
class ChatMessage:
    """Represents an outbound bot message in a room."""

    id: Optional[int] = None
    room_id: str = ""  # Which room this message belongs to
    sender_name: str = config.BOT_ACTOR_ID
    content: str = ""
    timestamp: datetime = field(default_factory=utc_now)
    silent: bool = True  # Silent messages do not notify participants
    message_type: str = MESSAGE_TYPE_RESPONSE

    def to_dict(self) -> dict:
        """Convert message to dictionary for database storage."""
        return {
            'id': self.id,
            'room_id': self.room_id,
            'sender_name': self.sender_name,
            'content': self.content,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'silent': self.silent,
            'message_type': self.message_type
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ChatMessage':
        """Create message from dictionary."""
        timestamp = parse_timestamp(data.get('timestamp')) or utc_now()

        return cls(
            id=data.get('id'),
            room_id=str(data.get('room_id', '')),
            sender_name=data.get('sender_name', config.BOT_ACTOR_ID),
            content=data.get('content', ''),
            timestamp=timestamp,
            silent=bool(data.get('silent', True)),
            message_type=data.get('message_type', MESSAGE_TYPE_RESPONSE)
        )

    @property
    def is_warning(self) -> bool:
        """Check if this is a time monitoring warning."""
        return self.message_type == MESSAGE_TYPE_WARNING
