"""Current-item tracker.

A room has at most one current item: the one with a start time that is not
completed. Setting a new current item clears the others in the same
transaction.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..errors import AlreadyCompleted, NoCurrentItem, NotCompleted, NotFound
from ..models import AgendaItem, utc_now
from .database_service import DatabaseService
from .logging_config import get_logger
from .timing_service import time_spent_on_item

logger = get_logger("current_item")


@dataclass
class CompletionOutcome:
    """What happened when an item was completed."""

    completed: AgendaItem
    next_item: Optional[AgendaItem] = None
    minutes_spent: int = 0
    was_current: bool = False


class CurrentItemService:
    """Moves the "current item" marker through a room's agenda."""

    def __init__(self, database: DatabaseService, clock: Callable[[], datetime] = utc_now):
        self._database = database
        self._clock = clock

    def _find(self, room_id: str, position: int) -> AgendaItem:
        item = self._database.get_item_by_position(room_id, position)
        if item is None:
            raise NotFound(f"Agenda item {position} not found", position=position)
        return item

    def get_current(self, room_id: str) -> Optional[AgendaItem]:
        return self._database.get_current_item(room_id)

    def set_current(self, room_id: str, position: int) -> AgendaItem:
        """Start the item at ``position`` and stop any other running item."""
        item = self._find(room_id, position)
        if item.is_completed:
            raise AlreadyCompleted(
                f'Cannot set completed item {position} as current: "{item.title}"',
                position=position
            )
        now = self._clock()
        self._database.set_current_item(room_id, item.id, now)
        item.start_time = now
        logger.info(f"Room {room_id}: current item is now {position} '{item.title}'")
        return item

    def complete(self, room_id: str, position: Optional[int] = None) -> CompletionOutcome:
        """Complete an item (the current one by default).

        Completing the current item advances: the first open item by position
        becomes current, keeping its start time if it is already running.
        Completing any other item leaves the current marker alone and
        ``next_item`` is whatever is still current.
        """
        if position is None:
            item = self._database.get_current_item(room_id)
            if item is None:
                raise NoCurrentItem("No current agenda item is active")
        else:
            item = self._find(room_id, position)
            if item.is_completed:
                raise AlreadyCompleted(
                    f'Agenda item {position} is already completed: "{item.title}"',
                    position=position
                )

        now = self._clock()
        was_current = item.is_active
        minutes_spent = time_spent_on_item(item, now) if was_current else 0
        next_item = self._database.complete_item(room_id, item.id, now, advance=was_current)

        item.is_completed = True
        item.completed_at = now
        logger.info(
            f"Room {room_id}: completed item {item.position} '{item.title}' after {minutes_spent} min, "
            f"next: {next_item.position if next_item else 'none'}"
        )
        return CompletionOutcome(
            completed=item,
            next_item=next_item,
            minutes_spent=minutes_spent,
            was_current=was_current
        )

    def reopen(self, room_id: str, position: int) -> AgendaItem:
        """Mark a completed item open again without making it current."""
        item = self._find(room_id, position)
        if not item.is_completed:
            raise NotCompleted(
                f'Agenda item {position} is already open/incomplete: "{item.title}"',
                position=position
            )
        self._database.reopen_item(item.id)
        item.is_completed = False
        item.completed_at = None
        item.start_time = None
        return item

    def clear_all_active(self, room_id: str) -> int:
        """Stop every running item of the room; nothing is completed."""
        count = self._database.clear_active_items(room_id)
        if count:
            logger.info(f"Room {room_id}: stopped {count} active items")
        return count

    def ensure_current(self, room_id: str) -> Optional[AgendaItem]:
        """Make the first open item current unless one already is."""
        current = self._database.get_current_item(room_id)
        if current is not None:
            return current
        open_items = self._database.get_incomplete_items(room_id)
        if not open_items:
            return None
        return self.set_current(room_id, open_items[0].position)
