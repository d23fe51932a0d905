from .agenda_item import AgendaItem, utc_now, parse_timestamp
from .warning_record import WarningRecord, WarningTier
from .room_config import RoomConfig, TimeMonitoringConfig
from .actor_role import ActorRole
from .chat_message import ChatMessage
from .room_session import RoomSession

__all__ = [
    'AgendaItem',
    'WarningRecord',
    'WarningTier',
    'RoomConfig',
    'TimeMonitoringConfig',
    'ActorRole',
    'ChatMessage',
    'RoomSession',
    'utc_now',
    'parse_timestamp'
]
