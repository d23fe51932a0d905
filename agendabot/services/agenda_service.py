"""Agenda store: ordered per-room agenda items.

Positions are 1-based and contiguous within a room after every operation.
Each position-changing operation is applied by DatabaseService in a single
transaction.
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from ..errors import InvalidArgument, NotFound
from ..models import AgendaItem, utc_now
from .database_service import DatabaseService
from .logging_config import get_logger
from .room_config_service import RoomConfigService

logger = get_logger("agenda")


class AgendaService:
    """Add, order and remove agenda items of a room.

    Failures are raised as AgendaError subclasses; callers decide how to
    present them.

    Usage:
        agenda = AgendaService(database, room_configs)
        agenda.add("room", "Introductions")
        agenda.move("room", 3, 1)
    """

    def __init__(self, database: DatabaseService, room_configs: RoomConfigService,
                 clock: Callable[[], datetime] = utc_now):
        self._database = database
        self._room_configs = room_configs
        self._clock = clock

    # Queries
    def list_items(self, room_id: str) -> List[AgendaItem]:
        return self._database.get_agenda_items(room_id)

    def find_by_position(self, room_id: str, position: int) -> AgendaItem:
        item = self._database.get_item_by_position(room_id, position)
        if item is None:
            raise NotFound(f"Agenda item {position} not found", position=position)
        return item

    def get_current(self, room_id: str) -> Optional[AgendaItem]:
        return self._database.get_current_item(room_id)

    # Adding
    def _validate_entry(self, title: str, planned_minutes: Optional[int],
                        default_duration: int) -> Tuple[str, int]:
        title = (title or '').strip()
        if not title:
            raise InvalidArgument("Agenda item title must not be empty")
        minutes = default_duration if planned_minutes is None else planned_minutes
        if minutes <= 0:
            raise InvalidArgument(f"Duration must be positive, got {minutes}", minutes=minutes)
        return title, minutes

    def add(self, room_id: str, title: str, planned_minutes: Optional[int] = None,
            requested_position: Optional[int] = None) -> AgendaItem:
        """Append an item; an occupied requested position falls back to the end."""
        limits = self._room_configs.get_agenda_limits(room_id)
        title, minutes = self._validate_entry(title, planned_minutes, limits['default_duration'])

        item = self._database.insert_agenda_items(
            room_id, [(title, minutes, requested_position)], self._clock(),
            max_items=limits['max_items']
        )[0]
        logger.info(f"Room {room_id}: added item {item.position} '{title}' ({minutes} min)")
        return item

    def add_bulk(self, room_id: str,
                 entries: Sequence[Tuple[str, Optional[int]]]) -> List[AgendaItem]:
        """Append several ``(title, minutes)`` entries in order."""
        if not entries:
            raise InvalidArgument("No agenda items given")

        limits = self._room_configs.get_agenda_limits(room_id)
        if len(entries) > limits['max_bulk_items']:
            raise InvalidArgument(
                f"Too many items at once ({len(entries)} given, {limits['max_bulk_items']} maximum)",
                max_bulk_items=limits['max_bulk_items']
            )

        rows = []
        for title, minutes in entries:
            title, minutes = self._validate_entry(title, minutes, limits['default_duration'])
            rows.append((title, minutes, None))

        items = self._database.insert_agenda_items(
            room_id, rows, self._clock(), max_items=limits['max_items']
        )
        logger.info(f"Room {room_id}: added {len(items)} items")
        return items

    # Ordering
    def reorder(self, room_id: str, new_positions: Sequence[int]) -> int:
        """Reorder the whole agenda.

        ``new_positions[i]`` is the new position of the item currently at
        position i+1. Returns the number of items that moved.
        """
        items = self.list_items(room_id)
        if not items:
            raise InvalidArgument("No agenda items to reorder")
        if len(new_positions) != len(items):
            raise InvalidArgument(
                f"Invalid number of positions ({len(items)} items vs {len(new_positions)} positions)",
                expected=len(items)
            )
        if sorted(new_positions) != list(range(1, len(items) + 1)):
            raise InvalidArgument(
                f"Invalid positions - must use positions 1-{len(items)} exactly once",
                expected=len(items)
            )

        updates = {
            item.id: new_position
            for item, new_position in zip(items, new_positions)
            if item.position != new_position
        }
        self._database.update_agenda_positions(room_id, updates)
        return len(updates)

    def move(self, room_id: str, from_position: int, to_position: int) -> AgendaItem:
        """Move one item, shifting the items in between by one slot."""
        moving = self.find_by_position(room_id, from_position)
        items = self.list_items(room_id)
        if to_position < 1 or to_position > len(items):
            raise InvalidArgument(
                f"Target position {to_position} is invalid (must be 1-{len(items)})",
                position=to_position
            )
        if from_position == to_position:
            return moving

        updates = {}
        for item in items:
            new_position = item.position
            if item.position == from_position:
                new_position = to_position
            elif from_position < to_position and from_position < item.position <= to_position:
                new_position = item.position - 1
            elif from_position > to_position and to_position <= item.position < from_position:
                new_position = item.position + 1
            if new_position != item.position:
                updates[item.id] = new_position

        self._database.update_agenda_positions(room_id, updates)
        moving.position = to_position
        logger.info(f"Room {room_id}: moved '{moving.title}' from {from_position} to {to_position}")
        return moving

    def swap(self, room_id: str, first: int, second: int) -> Tuple[AgendaItem, AgendaItem]:
        """Exchange the positions of two items."""
        first_item = self.find_by_position(room_id, first)
        second_item = self.find_by_position(room_id, second)
        if first == second:
            return first_item, second_item

        self._database.update_agenda_positions(room_id, {
            first_item.id: second,
            second_item.id: first
        })
        first_item.position, second_item.position = second, first
        return first_item, second_item

    # Removal
    def remove(self, room_id: str, position: int) -> AgendaItem:
        """Delete an item and move every later item up one slot."""
        item = self.find_by_position(room_id, position)
        self._database.delete_item_and_compact(room_id, item.id)
        return item

    def remove_completed(self, room_id: str) -> Tuple[int, int]:
        """Delete completed items and renumber the rest from 1."""
        removed, remaining = self._database.delete_completed_and_renumber(room_id)
        if removed:
            logger.info(f"Room {room_id}: removed {removed} completed items, {remaining} remain")
        return removed, remaining

    def clear(self, room_id: str) -> int:
        return self._database.delete_room_items(room_id)

    # Editing
    def update_duration(self, room_id: str, position: int, minutes: int) -> AgendaItem:
        """Change an item's planned duration and restart its warning ladder."""
        if minutes <= 0:
            raise InvalidArgument(f"Duration must be positive, got {minutes}", minutes=minutes)
        item = self.find_by_position(room_id, position)
        dropped = self._database.update_item_duration(item.id, minutes)
        if dropped:
            logger.debug(f"Room {room_id}: dropped {dropped} warnings of item {position}")
        item.planned_minutes = minutes
        return item

    # Reporting
    def export(self, room_id: str) -> dict:
        """Agenda snapshot with per-item timing for summaries."""
        items = self.list_items(room_id)
        completed = [item for item in items if item.is_completed]
        incomplete = [item for item in items if not item.is_completed]

        completed_with_timing = []
        in_time_count = 0
        overdue_count = 0
        for item in completed:
            actual = item.actual_minutes
            time_diff = actual - item.planned_minutes
            is_overdue = time_diff > 0
            if is_overdue:
                overdue_count += 1
            else:
                in_time_count += 1
            entry = item.to_dict()
            entry.update({
                'actual_duration': actual,
                'time_diff': time_diff,
                'is_overdue': is_overdue
            })
            completed_with_timing.append(entry)

        completed_count = len(completed)
        return {
            'total': len(items),
            'completed': completed_count,
            'incomplete': len(incomplete),
            'items': [item.to_dict() for item in items],
            'completed_items': [item.to_dict() for item in completed],
            'completed_items_with_timing': completed_with_timing,
            'incomplete_items': [item.to_dict() for item in incomplete],
            'timing_stats': {
                'in_time_count': in_time_count,
                'overdue_count': overdue_count,
                'in_time_percentage': round(in_time_count / completed_count * 100) if completed_count else 0,
                'overdue_percentage': round(overdue_count / completed_count * 100) if completed_count else 0,
            }
        }
