#!/usr/bin/env python3
"""Test suite for AgendaOrchestrator - commands, permissions and call lifecycle.

Run with: python -m pytest tests/test_agenda_orchestrator.py -v
"""

import unittest

from agendabot import config
from agendabot.errors import ErrorKind
from agendabot.models import ActorRole
from agendabot.models.chat_message import MESSAGE_TYPE_SUMMARY
from agendabot.services.agenda_orchestrator import AgendaOrchestrator
from agendabot.services.message_service import MessageService
from tests.fixtures import DatabaseTestCase

MODERATOR = ActorRole.from_participant_type(config.PARTICIPANT_MODERATOR, "mod")
USER = ActorRole.from_participant_type(config.PARTICIPANT_USER, "bob")
GUEST = ActorRole.from_participant_type(config.PARTICIPANT_GUEST, "guest")


class OrchestratorTestCase(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.messages = MessageService(self.db, clock=self.clock)
        self.bot = AgendaOrchestrator(self.db, self.messages, clock=self.clock)

    def posted(self):
        return self.db.get_messages_for_room(self.ROOM)

    def add(self, *entries):
        for title, minutes in entries:
            result = self.bot.add_item(self.ROOM, MODERATOR, title, minutes)
            self.assertTrue(result.success, result.message)


class TestPermissions(OrchestratorTestCase):
    """Tests for capability checks."""

    def test_guest_cannot_add(self):
        result = self.bot.add_item(self.ROOM, GUEST, "Budget")

        self.assertFalse(result.success)
        self.assertEqual(result.error, ErrorKind.PERMISSION_DENIED)
        self.assertTrue(result.message.startswith("🔒 **Permission Denied**"))
        self.assertIn("regular users can add agenda items", result.message)
        self.assertEqual(self.titles(), [])

    def test_regular_user_can_add_but_not_moderate(self):
        self.assertTrue(self.bot.add_item(self.ROOM, USER, "Budget").success)

        result = self.bot.complete_item(self.ROOM, USER, 1)

        self.assertEqual(result.error, ErrorKind.PERMISSION_DENIED)
        self.assertIn("Only room moderators and owners can complete agenda items.", result.message)
        self.assertFalse(self.db.get_item_by_position(self.ROOM, 1).is_completed)

    def test_every_mutation_is_gated(self):
        self.add(("A", 5), ("B", 5))
        denied = [
            self.bot.set_current_item(self.ROOM, USER, 1),
            self.bot.reopen_item(self.ROOM, USER, 1),
            self.bot.reorder_items(self.ROOM, USER, [2, 1]),
            self.bot.move_item(self.ROOM, USER, 1, 2),
            self.bot.swap_items(self.ROOM, USER, 1, 2),
            self.bot.remove_item(self.ROOM, USER, 1),
            self.bot.cleanup(self.ROOM, USER),
            self.bot.clear_agenda(self.ROOM, USER),
            self.bot.update_duration(self.ROOM, USER, 1, 20),
            self.bot.configure_time_monitoring(self.ROOM, USER, enabled=False),
            self.bot.configure_room_section(self.ROOM, USER, config.SECTION_EMOJIS, {'pending': '•'}),
            self.bot.reset_room_config(self.ROOM, USER),
        ]
        self.assertTrue(all(result.error == ErrorKind.PERMISSION_DENIED for result in denied))
        self.assertEqual(self.titles(), ["A", "B"])
        self.assertFalse(self.bot.room_configs.has_room_config(self.ROOM))


class TestCommands(OrchestratorTestCase):
    """Tests for command answers."""

    def test_add_answer_is_posted_silently(self):
        result = self.bot.add_item(self.ROOM, USER, "Budget", 15)

        self.assertEqual(result.message, "📋 Added agenda item 1: Budget (15 min)")
        self.assertEqual(result.data['item']['position'], 1)
        posted = self.posted()
        self.assertEqual([m.content for m in posted], [result.message])
        self.assertTrue(posted[0].silent)

    def test_add_items(self):
        result = self.bot.add_items(self.ROOM, USER, [("Intro", 5), ("Budget", 90)])
        self.assertTrue(result.success)
        self.assertIn("1. Intro (5 min)", result.message)
        self.assertIn("2. Budget (1 h 30 min)", result.message)

    def test_complete_current_advances(self):
        self.add(("Intro", 5), ("Budget", 10))
        self.bot.set_current_item(self.ROOM, MODERATOR, 2)
        self.clock.advance(minutes=8)

        result = self.bot.complete_item(self.ROOM, MODERATOR)

        self.assertTrue(result.success)
        self.assertIn('Completed current agenda item 2: **"Budget"** (8 min/10 min)', result.message)
        self.assertIn("Moving to next item 1:", result.message)
        self.assertEqual(result.data['next_item']['title'], "Intro")

    def test_complete_last_item(self):
        self.add(("Intro", 5))
        self.bot.set_current_item(self.ROOM, MODERATOR, 1)
        result = self.bot.complete_item(self.ROOM, MODERATOR)
        self.assertIn("All agenda items completed!", result.message)
        self.assertIsNone(result.data['next_item'])

    def test_complete_other_item_does_not_advance(self):
        self.add(("Intro", 5), ("Budget", 10), ("Wrap-up", 5))
        self.bot.set_current_item(self.ROOM, MODERATOR, 3)

        result = self.bot.complete_item(self.ROOM, MODERATOR, 1)

        self.assertEqual(result.message, '✅ Marked agenda item 1 as completed: "Intro"')
        self.assertEqual(result.data['next_item']['title'], "Wrap-up")
        self.assertEqual(self.db.get_current_item(self.ROOM).title, "Wrap-up")

    def test_error_icons(self):
        self.add(("Intro", 5))

        no_current = self.bot.complete_item(self.ROOM, MODERATOR)
        self.assertEqual(no_current.error, ErrorKind.NO_CURRENT_ITEM)
        self.assertTrue(no_current.message.startswith("❌ "))

        missing = self.bot.remove_item(self.ROOM, MODERATOR, 7)
        self.assertEqual(missing.error, ErrorKind.NOT_FOUND)
        self.assertTrue(missing.message.startswith("❌ "))

        self.bot.complete_item(self.ROOM, MODERATOR, 1)
        again = self.bot.complete_item(self.ROOM, MODERATOR, 1)
        self.assertEqual(again.error, ErrorKind.ALREADY_COMPLETED)
        self.assertTrue(again.message.startswith("ℹ️ "))

    def test_ordering_answers(self):
        self.add(("A", 5), ("B", 5), ("C", 5))

        self.assertIn('Moved "A" from position 1 to 3', self.bot.move_item(self.ROOM, MODERATOR, 1, 3).message)
        self.assertIn('Swapped "B" (pos 1) ↔ "C" (pos 2)',
                      self.bot.swap_items(self.ROOM, MODERATOR, 1, 2).message)
        self.assertIn("No changes needed", self.bot.reorder_items(self.ROOM, MODERATOR, [1, 2, 3]).message)
        self.assertEqual(self.titles(), ["C", "B", "A"])

    def test_cleanup_answers(self):
        self.add(("A", 5), ("B", 5))
        self.assertIn("No completed items to remove", self.bot.cleanup(self.ROOM, MODERATOR).message)

        self.bot.complete_item(self.ROOM, MODERATOR, 1)
        result = self.bot.cleanup(self.ROOM, MODERATOR)

        self.assertIn("Removed 1 completed items and reordered 1 remaining items", result.message)
        self.assertEqual(self.titles(), ["B"])

    def test_minimal_mode_suppresses_successful_mutations(self):
        self.bot.room_configs.set_response_settings(self.ROOM, {'response_mode': 'minimal'})

        self.assertTrue(self.bot.add_item(self.ROOM, USER, "Budget").success)
        self.assertEqual(self.posted(), [])

        self.bot.add_item(self.ROOM, GUEST, "Nope")
        self.bot.get_status(self.ROOM)
        self.assertEqual(len(self.posted()), 2)

    def test_status(self):
        self.bot.room_configs.set_custom_emojis(self.ROOM, {'pending': '•'})
        self.add(("Intro", 5), ("Budget", 10))
        self.bot.set_current_item(self.ROOM, MODERATOR, 1)
        self.clock.advance(minutes=2)

        result = self.bot.get_status(self.ROOM, post=False)

        self.assertIn("🗣️ **1. Intro** *(2 min/5 min)*", result.message)
        self.assertIn("• 2. Budget *(10 min)*", result.message)
        self.assertIn("Total planned time: 15 min", result.message)
        self.assertEqual(result.data['current_item']['title'], "Intro")

    def test_status_empty(self):
        self.assertIn("No agenda items found.", self.bot.get_status(self.ROOM).message)

    def test_export(self):
        self.add(("Intro", 5))
        result = self.bot.export_agenda(self.ROOM)
        self.assertEqual(result.data['total'], 1)
        self.assertEqual(self.posted(), [])


class TestConfiguration(OrchestratorTestCase):

    def test_configure_time_monitoring(self):
        result = self.bot.configure_time_monitoring(self.ROOM, MODERATOR, warning_threshold=0.7)

        self.assertEqual(result.message, "✅ Updated time monitoring: first warning at 70%")
        self.assertEqual(result.data['config']['overtime_threshold'], 1.2)
        self.assertEqual(result.data['config']['configured_by'], "mod")

    def test_configure_without_values(self):
        result = self.bot.configure_time_monitoring(self.ROOM, MODERATOR)
        self.assertEqual(result.error, ErrorKind.INVALID_ARGUMENT)

    def test_monitoring_status(self):
        self.bot.configure_time_monitoring(self.ROOM, MODERATOR, overtime_threshold=1.5)
        status = self.bot.get_time_monitoring_status(self.ROOM, post=False).message
        self.assertIn("**Overtime Alert**: 150% of planned time", status)
        self.assertIn("**Check Interval**: 5 minutes (fixed)", status)
        self.assertIn("Source: room settings", status)

    def test_configure_section(self):
        result = self.bot.configure_room_section(self.ROOM, MODERATOR, config.SECTION_AGENDA_LIMITS,
                                                 {'max_items': 20})
        self.assertTrue(result.success)
        self.assertEqual(result.data['values']['max_items'], 20)

        unknown = self.bot.configure_room_section(self.ROOM, MODERATOR, "colors", {})
        self.assertEqual(unknown.error, ErrorKind.INVALID_ARGUMENT)

    def test_reset(self):
        nothing = self.bot.reset_room_config(self.ROOM, MODERATOR)
        self.assertIn("Nothing to reset", nothing.message)

        self.bot.configure_time_monitoring(self.ROOM, MODERATOR, enabled=False)
        result = self.bot.reset_room_config(self.ROOM, MODERATOR, config.SECTION_TIME_MONITORING)
        self.assertTrue(result.data['removed'])
        self.assertTrue(self.bot.room_configs.get_time_monitoring_config(self.ROOM).enabled)


class TestCallLifecycle(OrchestratorTestCase):
    """Tests for call start/end handling."""

    def test_call_started_starts_first_item(self):
        self.add(("Intro", 5), ("Budget", 10))
        before = len(self.posted())

        result = self.bot.call_started(self.ROOM)

        self.assertTrue(self.db.is_call_active(self.ROOM))
        self.assertEqual(result.data['current_item']['title'], "Intro")
        self.assertEqual(len(self.posted()), before + 1)
        self.assertIn("Agenda Status", self.posted()[-1].content)

    def test_call_started_without_items(self):
        result = self.bot.call_started(self.ROOM)
        self.assertIsNone(result.data['current_item'])
        self.assertEqual(self.posted(), [])

    def test_call_started_respects_behavior(self):
        self.bot.room_configs.set_auto_behaviors(self.ROOM, {'start_agenda': False})
        self.add(("Intro", 5))
        self.bot.call_started(self.ROOM)
        self.assertIsNone(self.bot.agenda.get_current(self.ROOM))

    def test_call_ended_posts_summary(self):
        self.add(("Intro", 5), ("Budget", 10))
        self.bot.call_started(self.ROOM)
        self.clock.advance(minutes=6)
        self.bot.complete_item(self.ROOM, MODERATOR)

        result = self.bot.call_ended(self.ROOM)

        self.assertFalse(self.db.is_call_active(self.ROOM))
        self.assertEqual(result.data['stopped'], 1)
        self.assertIsNone(self.bot.agenda.get_current(self.ROOM))

        summary = self.posted()[-1]
        self.assertFalse(summary.silent)
        self.assertEqual(summary.message_type, MESSAGE_TYPE_SUMMARY)
        self.assertIn("✅ 1. Intro (6 min/5 min) ⏰", summary.content)
        self.assertIn("📝 2. Budget (10 min)", summary.content)
        self.assertIn("React with 🧹", summary.content)
        self.assertEqual(self.bot.room_configs.get_last_summary_message_id(self.ROOM), summary.id)

    def test_call_ended_with_auto_cleanup(self):
        self.bot.room_configs.set_auto_behaviors(self.ROOM, {'cleanup': True})
        self.add(("Intro", 5), ("Budget", 10))
        self.bot.complete_item(self.ROOM, MODERATOR, 1)

        result = self.bot.call_ended(self.ROOM)

        self.assertNotIn("React with 🧹", result.message)
        self.assertEqual(result.data['removed'], 1)
        self.assertEqual(self.titles(), ["Budget"])

    def test_call_ended_without_summary(self):
        self.bot.room_configs.set_auto_behaviors(self.ROOM, {'summary': False})
        self.add(("Intro", 5))
        self.bot.call_ended(self.ROOM)
        self.assertFalse(any(m.message_type == MESSAGE_TYPE_SUMMARY for m in self.posted()))

    def test_cleanup_reaction_on_summary(self):
        self.add(("Intro", 5), ("Budget", 10))
        self.bot.complete_item(self.ROOM, MODERATOR, 1)
        summary_id = self.bot.call_ended(self.ROOM).data['summary_message_id']

        wrong_emoji = self.bot.handle_reaction(self.ROOM, summary_id, "🎉")
        self.assertEqual(wrong_emoji.error, ErrorKind.INVALID_ARGUMENT)
        wrong_message = self.bot.handle_reaction(self.ROOM, summary_id + 100, "🧹")
        self.assertEqual(wrong_message.error, ErrorKind.NOT_FOUND)

        result = self.bot.handle_reaction(self.ROOM, summary_id, "🧹")

        self.assertTrue(result.success)
        self.assertEqual(result.data['removed'], 1)
        self.assertEqual(self.titles(), ["Budget"])
        self.assertIsNone(self.bot.room_configs.get_last_summary_message_id(self.ROOM))
        self.assertEqual(self.bot.handle_reaction(self.ROOM, summary_id, "👍").error, ErrorKind.NOT_FOUND)


if __name__ == '__main__':
    unittest.main()
