"""Command facade over the agenda services.

Every command checks the actor's capabilities, runs against the store and
answers with a CommandResult carrying user-facing text. Expected failures
(AgendaError) become unsuccessful results and never propagate. Answers are
also posted into the room: silently for command answers, audibly for the
end-of-call summary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .. import config
from ..errors import AgendaError, ErrorKind, InvalidArgument
from ..models import ActorRole, AgendaItem, utc_now
from ..models.chat_message import MESSAGE_TYPE_SUMMARY
from .agenda_service import AgendaService
from .current_item_service import CurrentItemService
from .database_service import DatabaseService
from .localization import Localizer
from .logging_config import get_logger
from .message_service import MessageService
from .permission_service import PermissionService
from .room_config_service import RoomConfigService
from .timing_service import (
    calculate_actual_time_spent,
    format_duration_display,
    generate_timing_summary_string,
    time_spent_on_item,
)

logger = get_logger("orchestrator")

# Reactions on the last summary that trigger cleanup of completed items
CLEANUP_REACTIONS = ["🧹", "👍", "✅"]

_ERROR_ICONS = {
    ErrorKind.NOT_FOUND: "❌ ",
    ErrorKind.INVALID_ARGUMENT: "❌ ",
    ErrorKind.NO_CURRENT_ITEM: "❌ ",
    ErrorKind.ALREADY_COMPLETED: "ℹ️ ",
    ErrorKind.NOT_COMPLETED: "ℹ️ ",
    ErrorKind.PERMISSION_DENIED: "",
}


@dataclass
class CommandResult:
    """Outcome of one command."""

    success: bool
    message: str = ""
    error: Optional[ErrorKind] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'message': self.message,
            'error': self.error.value if self.error else None,
            'data': self.data
        }


class AgendaOrchestrator:
    """Entry point for agenda commands and call lifecycle events.

    Usage:
        bot = AgendaOrchestrator(database, messages)
        result = bot.add_item("room", ActorRole.from_participant_type(3), "Budget", 15)
        if not result.success:
            print(result.error, result.message)
    """

    def __init__(
        self,
        database: DatabaseService,
        messages: MessageService,
        room_configs: Optional[RoomConfigService] = None,
        agenda: Optional[AgendaService] = None,
        tracker: Optional[CurrentItemService] = None,
        permissions: Optional[PermissionService] = None,
        localizer: Optional[Localizer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._database = database
        self._messages = messages
        self._clock = clock
        self._room_configs = room_configs or RoomConfigService(database, self._clock)
        self._agenda = agenda or AgendaService(database, self._room_configs, self._clock)
        self._tracker = tracker or CurrentItemService(database, self._clock)
        self._localizer = localizer or Localizer()
        self._permissions = permissions or PermissionService(self._localizer)

    @property
    def room_configs(self) -> RoomConfigService:
        return self._room_configs

    @property
    def agenda(self) -> AgendaService:
        return self._agenda

    @property
    def tracker(self) -> CurrentItemService:
        return self._tracker

    # Plumbing
    def _t(self, lang: str, text: str, *args) -> str:
        return self._localizer.t(lang, text, *args)

    def _duration(self, minutes: int, lang: str) -> str:
        return format_duration_display(minutes, lang, self._localizer)

    def _run(self, room_id: str, command: str,
             handler: Callable[[str], Tuple[str, Dict[str, Any]]],
             post: bool = True, mutation: bool = True) -> CommandResult:
        """Run ``handler(lang)`` and turn its outcome into a CommandResult."""
        lang = self._room_configs.get_room_language(room_id)
        try:
            message, data = handler(lang)
            result = CommandResult(success=True, message=message, data=data)
        except AgendaError as e:
            logger.info(f"Room {room_id}: {command} failed ({e.kind.value}): {e.message}")
            result = CommandResult(
                success=False,
                message=_ERROR_ICONS.get(e.kind, "") + e.message,
                error=e.kind,
                data=dict(e.details)
            )

        if post and result.message and not (result.success and mutation and self._is_minimal(room_id)):
            self._messages.send(room_id, result.message, silent=True)
        return result

    def _is_minimal(self, room_id: str) -> bool:
        return self._room_configs.get_response_settings(room_id)['response_mode'] == "minimal"

    def _require_moderator(self, actor: ActorRole, action: str, lang: str) -> None:
        self._permissions.require_moderator(actor, self._t(lang, action), lang)

    # Adding items
    def add_item(self, room_id: str, actor: ActorRole, title: str,
                 planned_minutes: Optional[int] = None,
                 position: Optional[int] = None) -> CommandResult:
        """Add one agenda item."""
        def handler(lang):
            self._permissions.require_add_items(actor, lang)
            item = self._agenda.add(room_id, title, planned_minutes, position)
            message = "📋 " + self._t(lang, 'Added agenda item %d: %s (%s)',
                                      item.position, item.title,
                                      self._duration(item.planned_minutes, lang))
            return message, {'item': item.to_dict()}

        return self._run(room_id, "add_item", handler)

    def add_items(self, room_id: str, actor: ActorRole,
                  entries: Sequence[Tuple[str, Optional[int]]]) -> CommandResult:
        """Add several ``(title, minutes)`` items at once."""
        def handler(lang):
            self._permissions.require_add_items(actor, lang)
            items = self._agenda.add_bulk(room_id, entries)
            lines = ["📋 " + self._t(lang, 'Added %d agenda items:', len(items))]
            for item in items:
                lines.append(f"{item.position}. {item.title} ({self._duration(item.planned_minutes, lang)})")
            return "\n".join(lines), {'items': [item.to_dict() for item in items]}

        return self._run(room_id, "add_items", handler)

    # Current item
    def set_current_item(self, room_id: str, actor: ActorRole, position: int) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'set the current agenda item', lang)
            item = self._tracker.set_current(room_id, position)
            message = "🗣️ " + self._t(lang, 'Now discussing item %d: "%s" (%s)',
                                        item.position, item.title,
                                        self._duration(item.planned_minutes, lang))
            return message, {'item': item.to_dict()}

        return self._run(room_id, "set_current_item", handler)

    def complete_item(self, room_id: str, actor: ActorRole,
                      position: Optional[int] = None) -> CommandResult:
        """Complete the current item, or the one at ``position``.

        Only completing the current item moves on to the next one.
        """
        def handler(lang):
            self._require_moderator(actor, 'complete agenda items', lang)
            outcome = self._tracker.complete(room_id, position)
            item = outcome.completed
            next_item = outcome.next_item

            if not outcome.was_current:
                message = "✅ " + self._t(lang, 'Marked agenda item %d as completed: "%s"',
                                          item.position, item.title)
            else:
                message = "#### ✅ " + self._t(
                    lang, 'Completed current agenda item %d: **"%s"** (%s/%s)',
                    item.position, item.title,
                    self._duration(outcome.minutes_spent, lang),
                    self._duration(item.planned_minutes, lang)
                )
                if next_item is not None:
                    message += "\n➡️ " + self._t(lang, 'Moving to next item %d:', next_item.position)
                    message += f'\n#### "{next_item.title}" ({self._duration(next_item.planned_minutes, lang)})'
                else:
                    message += "\n\n#### 🎉 " + self._t(lang, 'All agenda items completed!')

            return message, {
                'completed': item.to_dict(),
                'next_item': next_item.to_dict() if next_item else None,
                'minutes_spent': outcome.minutes_spent
            }

        return self._run(room_id, "complete_item", handler)

    def reopen_item(self, room_id: str, actor: ActorRole, position: int) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'reopen agenda items', lang)
            item = self._tracker.reopen(room_id, position)
            message = "🔄 " + self._t(lang, 'Reopened agenda item %d: "%s"', item.position, item.title)
            return message, {'item': item.to_dict()}

        return self._run(room_id, "reopen_item", handler)

    # Ordering
    def reorder_items(self, room_id: str, actor: ActorRole, new_positions: Sequence[int]) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'reorder agenda items', lang)
            moved = self._agenda.reorder(room_id, new_positions)
            if moved == 0:
                message = "✅ " + self._t(lang, 'No changes needed - agenda is already in the requested order')
            else:
                message = "🔄 " + self._t(lang, 'Reordered agenda items: [%s]',
                                          ", ".join(str(p) for p in new_positions))
            return message, {'moved': moved}

        return self._run(room_id, "reorder_items", handler)

    def move_item(self, room_id: str, actor: ActorRole, from_position: int, to_position: int) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'move agenda items', lang)
            item = self._agenda.move(room_id, from_position, to_position)
            if from_position == to_position:
                message = "✅ " + self._t(lang, 'Item %d is already at position %d', from_position, to_position)
            else:
                message = "🔄 " + self._t(lang, 'Moved "%s" from position %d to %d',
                                          item.title, from_position, to_position)
            return message, {'item': item.to_dict()}

        return self._run(room_id, "move_item", handler)

    def swap_items(self, room_id: str, actor: ActorRole, first: int, second: int) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'swap agenda items', lang)
            first_item, second_item = self._agenda.swap(room_id, first, second)
            if first == second:
                message = "✅ " + self._t(lang, 'Cannot swap item %d with itself', first)
            else:
                message = "🔄 " + self._t(lang, 'Swapped "%s" (pos %d) ↔ "%s" (pos %d)',
                                          first_item.title, first, second_item.title, second)
            return message, {'items': [first_item.to_dict(), second_item.to_dict()]}

        return self._run(room_id, "swap_items", handler)

    # Removal
    def remove_item(self, room_id: str, actor: ActorRole, position: int) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'remove agenda items', lang)
            item = self._agenda.remove(room_id, position)
            message = "🗑️ " + self._t(lang, 'Removed agenda item %d: "%s"', position, item.title)
            return message, {'item': item.to_dict()}

        return self._run(room_id, "remove_item", handler)

    def cleanup(self, room_id: str, actor: ActorRole) -> CommandResult:
        """Remove completed items and renumber the rest."""
        def handler(lang):
            self._require_moderator(actor, 'remove completed agenda items', lang)
            return self._cleanup_message(room_id, lang)

        return self._run(room_id, "cleanup", handler)

    def _cleanup_message(self, room_id: str, lang: str) -> Tuple[str, Dict[str, Any]]:
        removed, remaining = self._agenda.remove_completed(room_id)
        data = {'removed': removed, 'remaining': remaining}
        if removed == 0:
            return "✅ " + self._t(lang, 'No completed items to remove'), data
        if remaining:
            return "🧹 " + self._t(lang, 'Removed %d completed items and reordered %d remaining items',
                                   removed, remaining), data
        return "🧹 " + self._t(lang, 'Removed %d completed items - agenda is now empty', removed), data

    def clear_agenda(self, room_id: str, actor: ActorRole) -> CommandResult:
        def handler(lang):
            self._require_moderator(actor, 'clear the agenda', lang)
            count = self._agenda.clear(room_id)
            return "🗑️ " + self._t(lang, 'Cleared %d agenda items', count), {'removed': count}

        return self._run(room_id, "clear_agenda", handler)

    def update_duration(self, room_id: str, actor: ActorRole, position: int, minutes: int) -> CommandResult:
        """Change an item's plan; its warnings start over."""
        def handler(lang):
            self._require_moderator(actor, 'change agenda item durations', lang)
            item = self._agenda.update_duration(room_id, position, minutes)
            message = "⏱️ " + self._t(lang, 'Planned time of item %d "%s" is now %s',
                                        item.position, item.title, self._duration(minutes, lang))
            return message, {'item': item.to_dict()}

        return self._run(room_id, "update_duration", handler)

    # Views
    def render_status(self, room_id: str, lang: str = config.DEFAULT_LANGUAGE) -> str:
        """Markdown overview of the agenda with timing."""
        items = self._agenda.list_items(room_id)
        current = self._agenda.get_current(room_id)
        emojis = self._room_configs.get_custom_emojis(room_id)
        now = self._clock()

        status = "### 📋 " + self._t(lang, 'Agenda Status') + "\n\n"
        if not items:
            return status + self._t(lang, 'No agenda items found.')

        lines = []
        for item in items:
            planned = self._duration(item.planned_minutes, lang)
            if current is not None and current.id == item.id:
                spent = self._duration(time_spent_on_item(item, now), lang)
                lines.append(f"{emojis['current_item']} **{item.position}. {item.title}** *({spent}/{planned})*")
            elif item.is_completed:
                actual = self._duration(item.actual_minutes, lang)
                lines.append(f"{emojis['completed']} {item.position}. {item.title} *({actual}/{planned})*")
            else:
                lines.append(f"{emojis['pending']} {item.position}. {item.title} *({planned})*")
        status += "\n".join(lines)

        actual = calculate_actual_time_spent(items, current, now)
        timing = generate_timing_summary_string(
            sum(item.planned_minutes for item in items),
            actual['total_actual_minutes'],
            actual['has_actual_time'],
            lang,
            self._localizer
        )
        if timing:
            status += "\n\n" + timing
        return status

    def get_status(self, room_id: str, post: bool = True) -> CommandResult:
        def handler(lang):
            current = self._agenda.get_current(room_id)
            return self.render_status(room_id, lang), {
                'items': [item.to_dict() for item in self._agenda.list_items(room_id)],
                'current_item': current.to_dict() if current else None
            }

        return self._run(room_id, "get_status", handler, post=post, mutation=False)

    def export_agenda(self, room_id: str) -> CommandResult:
        def handler(lang):
            export = self._agenda.export(room_id)
            message = self._t(lang, '%d of %d agenda items completed', export['completed'], export['total'])
            return message, export

        return self._run(room_id, "export_agenda", handler, post=False, mutation=False)

    # Configuration
    def configure_time_monitoring(self, room_id: str, actor: ActorRole,
                                  enabled: Optional[bool] = None,
                                  warning_threshold: Optional[float] = None,
                                  overtime_threshold: Optional[float] = None) -> CommandResult:
        """Override the room's monitoring settings; omitted values are kept."""
        def handler(lang):
            self._require_moderator(actor, 'configure time monitoring settings', lang)
            partial = {
                'enabled': enabled,
                'warning_threshold': warning_threshold,
                'overtime_threshold': overtime_threshold
            }
            if all(value is None for value in partial.values()):
                raise InvalidArgument(self._t(lang, 'No valid configuration changes provided'))

            updated = self._room_configs.set_time_monitoring_config(room_id, partial, actor.actor_id)
            changes = []
            if enabled is not None:
                changes.append(self._t(lang, 'enabled') if updated.enabled else self._t(lang, 'disabled'))
            if warning_threshold is not None:
                changes.append(self._t(lang, 'first warning at %d%%', round(updated.warning_threshold * 100)))
            if overtime_threshold is not None:
                changes.append(self._t(lang, 'overtime warning at %d%%', round(updated.overtime_threshold * 100)))
            message = "✅ " + self._t(lang, 'Updated time monitoring: %s', ", ".join(changes))
            return message, {'config': updated.to_dict()}

        return self._run(room_id, "configure_time_monitoring", handler)

    def get_time_monitoring_status(self, room_id: str, post: bool = True) -> CommandResult:
        def handler(lang):
            current = self._room_configs.get_time_monitoring_config(room_id)
            status = "### ⏰ **" + self._t(lang, 'Time Monitoring Configuration') + ":**\n\n"
            if not current.enabled:
                status += "❌ **" + self._t(lang, 'Disabled') + "** - " + \
                    self._t(lang, 'No time warnings will be sent') + "\n"
            else:
                status += "✅ **" + self._t(lang, 'Enabled') + "** - " + \
                    self._t(lang, 'Active monitoring with the following thresholds') + ":\n\n"
                status += "• **" + self._t(lang, 'First Warning') + "**: " + \
                    self._t(lang, '%.0f%% of planned time', current.warning_threshold * 100) + "\n"
                status += "• **" + self._t(lang, 'Time Limit Warning') + "**: " + \
                    self._t(lang, '%.0f%% of planned time', current.time_reached_threshold * 100) + "\n"
                status += "• **" + self._t(lang, 'Overtime Alert') + "**: " + \
                    self._t(lang, '%.0f%% of planned time', current.overtime_threshold * 100) + "\n"
                status += "• **" + self._t(lang, 'Check Interval') + "**: " + \
                    self._t(lang, '%d minutes (%s)', current.check_interval // 60, self._t(lang, 'fixed')) + "\n"
            source = self._t(lang, 'room settings') if current.source == "room" else self._t(lang, 'global defaults')
            status += "\n" + self._t(lang, 'Source: %s', source)
            return status, {'config': current.to_dict()}

        return self._run(room_id, "get_time_monitoring_status", handler, post=post, mutation=False)

    def configure_room_section(self, room_id: str, actor: ActorRole, section: str,
                               values: Dict[str, Any]) -> CommandResult:
        """Partial update of one of the non-monitoring configuration sections."""
        setters = {
            config.SECTION_RESPONSE: self._room_configs.set_response_settings,
            config.SECTION_AGENDA_LIMITS: self._room_configs.set_agenda_limits,
            config.SECTION_AUTO_BEHAVIORS: self._room_configs.set_auto_behaviors,
            config.SECTION_EMOJIS: self._room_configs.set_custom_emojis,
        }

        def handler(lang):
            self._require_moderator(actor, 'change room settings', lang)
            if section == config.SECTION_TIME_MONITORING:
                updated = self._room_configs.set_time_monitoring_config(
                    room_id, values, actor.actor_id).to_dict()
            elif section in setters:
                updated = setters[section](room_id, values, actor.actor_id)
            else:
                raise InvalidArgument(f"Unknown configuration section: {section}", section=section)
            return "✅ " + self._t(lang, 'Updated %s', section), {'section': section, 'values': updated}

        return self._run(room_id, "configure_room_section", handler)

    def reset_room_config(self, room_id: str, actor: ActorRole,
                          section: Optional[str] = None) -> CommandResult:
        """Return the room (or one section) to the global defaults."""
        def handler(lang):
            self._require_moderator(actor, 'reset room settings', lang)
            removed = self._room_configs.reset(room_id, section)
            if not removed:
                message = "ℹ️ " + self._t(lang, 'Nothing to reset - the room already uses global defaults')
            elif section:
                message = "🔄 " + self._t(lang, 'Reset %s to global defaults', section)
            else:
                message = "🔄 " + self._t(lang, 'Reset all room settings to global defaults')
            return message, {'removed': removed, 'section': section}

        return self._run(room_id, "reset_room_config", handler)

    # Call lifecycle
    def call_started(self, room_id: str) -> CommandResult:
        """A call began: start the agenda and show its status."""
        self._database.start_session(room_id, self._clock())
        logger.info(f"Room {room_id}: call started")

        behaviors = self._room_configs.get_auto_behaviors(room_id)
        if not behaviors['start_agenda'] or not self._agenda.list_items(room_id):
            return CommandResult(success=True, data={'current_item': None})

        current = self._tracker.ensure_current(room_id)
        result = self.get_status(room_id)
        result.data['current_item'] = current.to_dict() if current else None
        return result

    def call_ended(self, room_id: str) -> CommandResult:
        """A call ended: stop the clock and post the summary."""
        self._database.end_session(room_id, self._clock())
        stopped = self._tracker.clear_all_active(room_id)
        logger.info(f"Room {room_id}: call ended, stopped {stopped} active items")

        lang = self._room_configs.get_room_language(room_id)
        behaviors = self._room_configs.get_auto_behaviors(room_id)
        result = CommandResult(success=True, data={'stopped': stopped})

        items = self._agenda.list_items(room_id)
        if behaviors['summary'] and items:
            summary = self.render_summary(room_id, items, lang, offer_cleanup=not behaviors['cleanup'])
            message = self._messages.send(room_id, summary, silent=False, message_type=MESSAGE_TYPE_SUMMARY)
            self._room_configs.set_last_summary_message_id(room_id, message.id)
            result.message = summary
            result.data['summary_message_id'] = message.id

        if behaviors['cleanup']:
            removed, remaining = self._agenda.remove_completed(room_id)
            result.data.update({'removed': removed, 'remaining': remaining})
        return result

    def render_summary(self, room_id: str, items: List[AgendaItem],
                       lang: str = config.DEFAULT_LANGUAGE, offer_cleanup: bool = True) -> str:
        """End-of-call summary: completed and open items plus time spent."""
        emojis = self._room_configs.get_custom_emojis(room_id)
        completed = [item for item in items if item.is_completed]
        incomplete = [item for item in items if not item.is_completed]

        summary = "### 🤖 " + self._t(lang, 'Agenda Summary') + "\n\n"
        if completed:
            summary += "**" + self._t(lang, 'Completed (%d)', len(completed)) + "**\n"
            for item in completed:
                actual = self._duration(item.actual_minutes, lang)
                planned = self._duration(item.planned_minutes, lang)
                marker = emojis['time_warning'] if item.actual_minutes > item.planned_minutes else emojis['on_time']
                summary += f"{emojis['completed']} {item.position}. {item.title} ({actual}/{planned}) {marker}\n"
            summary += "\n"
        if incomplete:
            summary += "**" + self._t(lang, 'Open (%d)', len(incomplete)) + "**\n"
            for item in incomplete:
                summary += f"{emojis['pending']} {item.position}. {item.title} " \
                           f"({self._duration(item.planned_minutes, lang)})\n"
            summary += "\n"

        actual = calculate_actual_time_spent(items, None, self._clock())
        timing = generate_timing_summary_string(
            sum(item.planned_minutes for item in items),
            actual['total_actual_minutes'],
            actual['has_actual_time'],
            lang,
            self._localizer
        )
        if timing:
            summary += timing + "\n"
        if offer_cleanup and completed:
            summary += "\n🧹 " + self._t(lang, 'React with 🧹 to remove the completed items.')
        return summary.rstrip("\n")

    def handle_reaction(self, room_id: str, message_id: int, reaction: str) -> CommandResult:
        """Cleanup reaction on the latest summary removes completed items.

        Reacting is treated as consent, so no capability check applies.
        """
        if reaction not in CLEANUP_REACTIONS:
            return CommandResult(success=False, error=ErrorKind.INVALID_ARGUMENT,
                                 message="Reaction does not trigger cleanup")
        if self._room_configs.get_last_summary_message_id(room_id) != message_id:
            return CommandResult(success=False, error=ErrorKind.NOT_FOUND,
                                 message="Reaction is not on the latest agenda summary")

        def handler(lang):
            message, data = self._cleanup_message(room_id, lang)
            self._room_configs.clear_last_summary_message_id(room_id)
            return message, data

        return self._run(room_id, "handle_reaction", handler)
