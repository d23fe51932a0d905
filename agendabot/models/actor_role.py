"""Capabilities of the participant issuing a command."""

from dataclasses import dataclass
from typing import Optional

from .. import config


@dataclass(frozen=True)
class ActorRole:
    """Pre-resolved permissions for a command's author.

    The chat platform decides who may moderate or add items; this core only
    gates operations on the booleans it is handed.
    """

    actor_id: str = "system"
    can_moderate: bool = False
    can_add_items: bool = False

    @classmethod
    def from_participant_type(cls, participant_type: Optional[int], actor_id: str = "") -> 'ActorRole':
        """Map a chat participant type (1-6) to capabilities."""
        if participant_type is None:
            return cls(actor_id=actor_id)
        participant_type = int(participant_type)
        return cls(
            actor_id=actor_id,
            can_moderate=participant_type in config.MODERATOR_PARTICIPANT_TYPES,
            can_add_items=participant_type in config.ADD_ITEM_PARTICIPANT_TYPES,
        )

    @classmethod
    def system(cls) -> 'ActorRole':
        """Role for internal callers (call lifecycle, scheduler)."""
        return cls(actor_id="system", can_moderate=True, can_add_items=True)
