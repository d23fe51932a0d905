#!/usr/bin/env python3
"""Test suite for AgendaService - adding, ordering and removing items.

Run with: python -m pytest tests/test_agenda_service.py -v
"""

import unittest

from agendabot.errors import InvalidArgument, NotFound
from agendabot.services.agenda_service import AgendaService
from agendabot.services.current_item_service import CurrentItemService
from agendabot.services.database_service import DatabaseService
from agendabot.services.room_config_service import RoomConfigService
from tests.fixtures import DatabaseTestCase


class AgendaTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.rooms = RoomConfigService(self.db, clock=self.clock)
        self.agenda = AgendaService(self.db, self.rooms, clock=self.clock)

    def add_titles(self, *titles):
        return [self.agenda.add(self.ROOM, title) for title in titles]


class TestAdd(AgendaTestCase):
    """Tests for adding items."""

    def test_three_items_get_contiguous_positions_and_default_duration(self):
        self.add_titles("Intro", "Budget", "Wrap-up")

        items = self.agenda.list_items(self.ROOM)
        self.assertEqual([item.position for item in items], [1, 2, 3])
        self.assertEqual([item.planned_minutes for item in items], [10, 10, 10])
        self.assertTrue(all(item.start_time is None for item in items))

    def test_room_default_duration(self):
        self.rooms.set_agenda_limits(self.ROOM, {'default_duration': 25})
        self.assertEqual(self.agenda.add(self.ROOM, "Long").planned_minutes, 25)

    def test_explicit_duration_and_title_trimmed(self):
        item = self.agenda.add(self.ROOM, "  Budget  ", 30)
        self.assertEqual(item.title, "Budget")
        self.assertEqual(item.planned_minutes, 30)

    def test_occupied_position_falls_back_to_end(self):
        self.add_titles("Intro", "Budget")
        item = self.agenda.add(self.ROOM, "Late", requested_position=1)
        self.assertEqual(item.position, 3)
        self.assertEqual(self.titles(), ["Intro", "Budget", "Late"])

    def test_invalid_entries(self):
        with self.assertRaises(InvalidArgument):
            self.agenda.add(self.ROOM, "   ")
        with self.assertRaises(InvalidArgument):
            self.agenda.add(self.ROOM, "Zero", 0)
        self.assertEqual(self.titles(), [])

    def test_max_items(self):
        self.rooms.set_agenda_limits(self.ROOM, {'max_items': 5})
        self.add_titles("1", "2", "3", "4", "5")
        with self.assertRaises(InvalidArgument):
            self.agenda.add(self.ROOM, "6")
        self.assertEqual(len(self.titles()), 5)

    def test_max_items_shared_between_writers(self):
        self.rooms.set_agenda_limits(self.ROOM, {'max_items': 5})
        other_db = DatabaseService(self.db_path)
        other = AgendaService(other_db, RoomConfigService(other_db, clock=self.clock), clock=self.clock)

        self.add_titles("1", "2", "3")
        other.add_bulk(self.ROOM, [("4", 5), ("5", 5)])

        with self.assertRaises(InvalidArgument) as ctx:
            self.agenda.add(self.ROOM, "6")
        self.assertEqual(ctx.exception.message, "Agenda is full (5 items maximum)")
        self.assertEqual(len(self.titles()), 5)

    def test_bulk_add(self):
        items = self.agenda.add_bulk(self.ROOM, [("Intro", 5), ("Budget", None)])
        self.assertEqual([item.position for item in items], [1, 2])
        self.assertEqual([item.planned_minutes for item in items], [5, 10])

    def test_bulk_limits(self):
        self.rooms.set_agenda_limits(self.ROOM, {'max_bulk_items': 3, 'max_items': 5})
        with self.assertRaises(InvalidArgument):
            self.agenda.add_bulk(self.ROOM, [])
        with self.assertRaises(InvalidArgument):
            self.agenda.add_bulk(self.ROOM, [("a", 1), ("b", 1), ("c", 1), ("d", 1)])

        self.add_titles("1", "2", "3")
        with self.assertRaises(InvalidArgument):
            self.agenda.add_bulk(self.ROOM, [("a", 1), ("b", 1), ("c", 1)])
        self.assertEqual(len(self.titles()), 3)

    def test_bulk_is_all_or_nothing(self):
        with self.assertRaises(InvalidArgument):
            self.agenda.add_bulk(self.ROOM, [("Intro", 5), ("", 5)])
        self.assertEqual(self.titles(), [])


class TestOrdering(AgendaTestCase):
    """Tests for reorder, move and swap."""

    def setUp(self):
        super().setUp()
        self.add_titles("A", "B", "C", "D")

    def test_move_down(self):
        moved = self.agenda.move(self.ROOM, 1, 3)
        self.assertEqual(moved.position, 3)
        self.assertEqual(self.titles(), ["B", "C", "A", "D"])
        self.assertEqual(self.positions(), [1, 2, 3, 4])

    def test_move_up(self):
        self.agenda.move(self.ROOM, 4, 2)
        self.assertEqual(self.titles(), ["A", "D", "B", "C"])

    def test_move_to_same_position(self):
        self.agenda.move(self.ROOM, 2, 2)
        self.assertEqual(self.titles(), ["A", "B", "C", "D"])

    def test_move_invalid(self):
        with self.assertRaises(NotFound):
            self.agenda.move(self.ROOM, 9, 1)
        with self.assertRaises(InvalidArgument):
            self.agenda.move(self.ROOM, 1, 5)

    def test_swap(self):
        first, second = self.agenda.swap(self.ROOM, 1, 4)
        self.assertEqual((first.title, first.position), ("A", 4))
        self.assertEqual((second.title, second.position), ("D", 1))
        self.assertEqual(self.titles(), ["D", "B", "C", "A"])

    def test_swap_with_itself(self):
        self.agenda.swap(self.ROOM, 2, 2)
        self.assertEqual(self.titles(), ["A", "B", "C", "D"])

    def test_swap_missing_item(self):
        with self.assertRaises(NotFound):
            self.agenda.swap(self.ROOM, 1, 7)

    def test_reorder(self):
        moved = self.agenda.reorder(self.ROOM, [4, 3, 2, 1])
        self.assertEqual(moved, 4)
        self.assertEqual(self.titles(), ["D", "C", "B", "A"])

    def test_reorder_counts_only_moved_items(self):
        self.assertEqual(self.agenda.reorder(self.ROOM, [2, 1, 3, 4]), 2)

    def test_reorder_rejects_bad_permutations(self):
        with self.assertRaises(InvalidArgument) as ctx:
            self.agenda.reorder(self.ROOM, [1, 2, 3])
        self.assertIn("4 items vs 3 positions", ctx.exception.message)

        with self.assertRaises(InvalidArgument) as ctx:
            self.agenda.reorder(self.ROOM, [1, 1, 2, 3])
        self.assertIn("positions 1-4 exactly once", ctx.exception.message)
        self.assertEqual(self.titles(), ["A", "B", "C", "D"])

    def test_reorder_empty_agenda(self):
        with self.assertRaises(InvalidArgument):
            self.agenda.reorder("empty-room", [])


class TestRemoval(AgendaTestCase):
    """Tests for remove, cleanup and clear."""

    def setUp(self):
        super().setUp()
        self.add_titles("A", "B", "C")
        self.tracker = CurrentItemService(self.db, clock=self.clock)

    def test_remove_renumbers(self):
        removed = self.agenda.remove(self.ROOM, 2)
        self.assertEqual(removed.title, "B")
        self.assertEqual(self.titles(), ["A", "C"])
        self.assertEqual(self.positions(), [1, 2])

    def test_remove_missing(self):
        with self.assertRaises(NotFound):
            self.agenda.remove(self.ROOM, 4)

    def test_remove_completed(self):
        self.tracker.complete(self.ROOM, 1)
        self.tracker.complete(self.ROOM, 3)

        self.assertEqual(self.agenda.remove_completed(self.ROOM), (2, 1))
        self.assertEqual(self.titles(), ["B"])
        self.assertEqual(self.positions(), [1])

    def test_remove_completed_nothing_to_do(self):
        self.assertEqual(self.agenda.remove_completed(self.ROOM), (0, 3))

    def test_clear(self):
        self.assertEqual(self.agenda.clear(self.ROOM), 3)
        self.assertEqual(self.agenda.list_items(self.ROOM), [])


class TestDurationAndExport(AgendaTestCase):

    def test_update_duration_drops_warnings(self):
        from agendabot.models import WarningRecord, WarningTier

        item = self.agenda.add(self.ROOM, "Budget", 10)
        self.db.insert_warning(WarningRecord(item_id=item.id, room_id=self.ROOM,
                                             tier=WarningTier.APPROACHING, elapsed_minutes=8.5,
                                             planned_minutes=10, created_at=self.clock()))

        updated = self.agenda.update_duration(self.ROOM, 1, 20)

        self.assertEqual(updated.planned_minutes, 20)
        self.assertEqual(self.db.get_warning_tiers(item.id), set())

    def test_update_duration_invalid(self):
        self.agenda.add(self.ROOM, "Budget", 10)
        with self.assertRaises(InvalidArgument):
            self.agenda.update_duration(self.ROOM, 1, 0)
        with self.assertRaises(NotFound):
            self.agenda.update_duration(self.ROOM, 2, 5)

    def test_export(self):
        tracker = CurrentItemService(self.db, clock=self.clock)
        self.agenda.add(self.ROOM, "A", 5)
        self.agenda.add(self.ROOM, "B", 10)
        self.agenda.add(self.ROOM, "C", 10)

        tracker.set_current(self.ROOM, 1)
        self.clock.advance(minutes=7)
        tracker.complete(self.ROOM)
        self.clock.advance(minutes=3)
        tracker.complete(self.ROOM)

        exported = self.agenda.export(self.ROOM)

        self.assertEqual((exported['total'], exported['completed'], exported['incomplete']), (3, 2, 1))
        timing = {entry['title']: entry for entry in exported['completed_items_with_timing']}
        self.assertEqual(timing['A']['actual_duration'], 7)
        self.assertTrue(timing['A']['is_overdue'])
        self.assertEqual(timing['B']['time_diff'], -7)
        self.assertFalse(timing['B']['is_overdue'])
        self.assertEqual(exported['timing_stats'], {
            'in_time_count': 1,
            'overdue_count': 1,
            'in_time_percentage': 50,
            'overdue_percentage': 50,
        })
        self.assertEqual([entry['title'] for entry in exported['incomplete_items']], ["C"])

    def test_export_empty(self):
        exported = self.agenda.export(self.ROOM)
        self.assertEqual(exported['total'], 0)
        self.assertEqual(exported['timing_stats']['in_time_percentage'], 0)


if __name__ == '__main__':
    unittest.main()
