from .logging_config import setup_logging, get_logger
from .database_service import DatabaseService
from .localization import Localizer
from .room_config_service import RoomConfigService
from .agenda_service import AgendaService
from .current_item_service import CurrentItemService, CompletionOutcome
from .message_service import MessageService
from .permission_service import PermissionService
from .time_monitor_service import TimeMonitorService, SweepReport, determine_tier
from .heartbeat_service import HeartbeatService
from .agenda_orchestrator import AgendaOrchestrator, CommandResult

__all__ = [
    'setup_logging',
    'get_logger',
    'DatabaseService',
    'Localizer',
    'RoomConfigService',
    'AgendaService',
    'CurrentItemService',
    'CompletionOutcome',
    'MessageService',
    'PermissionService',
    'TimeMonitorService',
    'SweepReport',
    'determine_tier',
    'HeartbeatService',
    'AgendaOrchestrator',
    'CommandResult'
]
