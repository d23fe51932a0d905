"""Room configuration resolver.

Every setting resolves room -> global -> hardcoded. Room overrides live in one
sparse document per room (see RoomConfig); global defaults for time
monitoring live in the settings table.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .. import config
from ..errors import InvalidArgument
from ..models import RoomConfig, TimeMonitoringConfig, parse_timestamp, utc_now
from .database_service import DatabaseService
from .logging_config import get_logger

logger = get_logger("room_config")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class RoomConfigService:
    """Reads and writes per-room overrides with fallback to global defaults.

    Usage:
        rooms = RoomConfigService(database)
        rooms.set_time_monitoring_config("room", {"warning_threshold": 0.7}, "alice")
        rooms.get_time_monitoring_config("room").overtime_threshold  # unchanged
    """

    def __init__(self, database: DatabaseService, clock: Callable[[], datetime] = utc_now):
        self._database = database
        self._clock = clock

    # Time monitoring
    def get_global_time_monitoring_config(self) -> TimeMonitoringConfig:
        """Global defaults from settings, falling back to config.py."""
        enabled = self._database.get_setting(config.SETTING_MONITORING_ENABLED)
        warning = self._database.get_setting(config.SETTING_WARNING_THRESHOLD)
        overtime = self._database.get_setting(config.SETTING_OVERTIME_THRESHOLD)

        return TimeMonitoringConfig(
            enabled=config.DEFAULT_MONITORING_ENABLED if enabled is None else _to_bool(enabled),
            warning_threshold=self._read_float(warning, config.DEFAULT_WARNING_THRESHOLD),
            overtime_threshold=self._read_float(overtime, config.DEFAULT_OVERTIME_THRESHOLD),
            check_interval=config.FIXED_CHECK_INTERVAL,
            source="global"
        )

    @staticmethod
    def _read_float(value: Optional[str], default: float) -> float:
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Ignoring malformed threshold setting '{value}'")
            return default

    def set_global_time_monitoring_config(self, partial: Dict[str, Any]) -> TimeMonitoringConfig:
        """Merge ``partial`` onto the global defaults and store them."""
        merged = self._merge_time_monitoring(self.get_global_time_monitoring_config(), partial)
        self._database.set_setting(config.SETTING_MONITORING_ENABLED, "1" if merged.enabled else "0")
        self._database.set_setting(config.SETTING_WARNING_THRESHOLD, str(merged.warning_threshold))
        self._database.set_setting(config.SETTING_OVERTIME_THRESHOLD, str(merged.overtime_threshold))
        logger.info(f"Global time monitoring updated: {merged.to_section()}")
        return merged

    def get_time_monitoring_config(self, room_id: str) -> TimeMonitoringConfig:
        """Effective time monitoring settings of a room."""
        global_config = self.get_global_time_monitoring_config()
        document = self._database.get_room_config(room_id)
        section = document.get_section(config.SECTION_TIME_MONITORING) if document else None
        if section is None:
            return global_config

        return TimeMonitoringConfig(
            enabled=_to_bool(section.get('enabled', global_config.enabled)),
            warning_threshold=float(section.get('warning_threshold', global_config.warning_threshold)),
            overtime_threshold=float(section.get('overtime_threshold', global_config.overtime_threshold)),
            check_interval=config.FIXED_CHECK_INTERVAL,
            source="room",
            configured_by=document.configured_by,
            configured_at=document.configured_at
        )

    def set_time_monitoring_config(self, room_id: str, partial: Dict[str, Any],
                                   actor_id: str) -> TimeMonitoringConfig:
        """Merge ``partial`` onto the room's effective settings and store them.

        Values are clamped to their legal ranges. Keys missing from
        ``partial`` keep their current effective value.
        """
        global_config = self.get_global_time_monitoring_config()
        now = self._clock()
        result = {}

        def mutate(document: RoomConfig) -> RoomConfig:
            section = document.get_section(config.SECTION_TIME_MONITORING) or {}
            current = TimeMonitoringConfig(
                enabled=_to_bool(section.get('enabled', global_config.enabled)),
                warning_threshold=float(section.get('warning_threshold', global_config.warning_threshold)),
                overtime_threshold=float(section.get('overtime_threshold', global_config.overtime_threshold))
            )
            merged = self._merge_time_monitoring(current, partial)
            document.set_section(config.SECTION_TIME_MONITORING, merged.to_section())
            document.data['configured_by'] = actor_id
            document.data['configured_at'] = now.isoformat()
            result['config'] = merged
            return document

        self._database.update_room_config(room_id, mutate, now)
        merged = result['config']
        merged.source = "room"
        merged.configured_by = actor_id
        merged.configured_at = now
        logger.info(f"Room {room_id}: time monitoring set by {actor_id}: {merged.to_section()}")
        return merged

    @staticmethod
    def _merge_time_monitoring(current: TimeMonitoringConfig,
                               partial: Dict[str, Any]) -> TimeMonitoringConfig:
        merged = TimeMonitoringConfig(
            enabled=current.enabled,
            warning_threshold=current.warning_threshold,
            overtime_threshold=current.overtime_threshold
        )
        try:
            if partial.get('enabled') is not None:
                merged.enabled = _to_bool(partial['enabled'])
            if partial.get('warning_threshold') is not None:
                merged.warning_threshold = float(partial['warning_threshold'])
            if partial.get('overtime_threshold') is not None:
                merged.overtime_threshold = float(partial['overtime_threshold'])
        except (TypeError, ValueError):
            raise InvalidArgument("Thresholds must be numbers", partial=partial)

        merged.warning_threshold = round(_clamp(
            merged.warning_threshold, config.WARNING_THRESHOLD_MIN, config.WARNING_THRESHOLD_MAX), 2)
        merged.overtime_threshold = round(_clamp(
            merged.overtime_threshold, config.OVERTIME_THRESHOLD_MIN, config.OVERTIME_THRESHOLD_MAX), 2)
        return merged

    # Generic sections
    def _get_section(self, room_id: str, section: str, defaults: dict) -> dict:
        document = self._database.get_room_config(room_id)
        stored = document.get_section(section) if document else None
        values = dict(defaults)
        if stored:
            values.update({k: v for k, v in stored.items() if k in defaults})
        values['source'] = "room" if stored is not None else "global"
        return values

    def _set_section(self, room_id: str, section: str, defaults: dict, partial: Dict[str, Any],
                     validate: Callable[[dict], dict], actor_id: Optional[str]) -> dict:
        now = self._clock()
        result = {}

        def mutate(document: RoomConfig) -> RoomConfig:
            current = dict(defaults)
            current.update(document.get_section(section) or {})
            current.update({k: v for k, v in partial.items() if k in defaults and v is not None})
            validated = validate(current)
            document.set_section(section, validated)
            if actor_id:
                document.data['configured_by'] = actor_id
                document.data['configured_at'] = now.isoformat()
            result.update(validated)
            return document

        self._database.update_room_config(room_id, mutate, now)
        logger.info(f"Room {room_id}: {section} updated to {result}")
        result['source'] = "room"
        return result

    def get_response_settings(self, room_id: str) -> dict:
        return self._get_section(room_id, config.SECTION_RESPONSE, config.DEFAULT_RESPONSE_CONFIG)

    def set_response_settings(self, room_id: str, partial: Dict[str, Any],
                              actor_id: Optional[str] = None) -> dict:
        return self._set_section(room_id, config.SECTION_RESPONSE, config.DEFAULT_RESPONSE_CONFIG,
                                 partial, self._validate_response, actor_id)

    @staticmethod
    def _validate_response(values: dict) -> dict:
        mode = values.get('response_mode')
        if mode not in config.RESPONSE_MODES:
            mode = config.DEFAULT_RESPONSE_CONFIG['response_mode']
        return {'response_mode': mode}

    def get_agenda_limits(self, room_id: str) -> dict:
        return self._get_section(room_id, config.SECTION_AGENDA_LIMITS, config.DEFAULT_AGENDA_LIMITS)

    def set_agenda_limits(self, room_id: str, partial: Dict[str, Any],
                          actor_id: Optional[str] = None) -> dict:
        return self._set_section(room_id, config.SECTION_AGENDA_LIMITS, config.DEFAULT_AGENDA_LIMITS,
                                 partial, self._validate_limits, actor_id)

    @staticmethod
    def _validate_limits(values: dict) -> dict:
        validated = {}
        for key, (low, high) in config.AGENDA_LIMIT_RANGES.items():
            try:
                number = int(values.get(key, config.DEFAULT_AGENDA_LIMITS[key]))
            except (TypeError, ValueError):
                number = config.DEFAULT_AGENDA_LIMITS[key]
            validated[key] = int(_clamp(number, low, high))
        return validated

    def get_auto_behaviors(self, room_id: str) -> dict:
        return self._get_section(room_id, config.SECTION_AUTO_BEHAVIORS, config.DEFAULT_AUTO_BEHAVIORS)

    def set_auto_behaviors(self, room_id: str, partial: Dict[str, Any],
                           actor_id: Optional[str] = None) -> dict:
        return self._set_section(room_id, config.SECTION_AUTO_BEHAVIORS, config.DEFAULT_AUTO_BEHAVIORS,
                                 partial, self._validate_behaviors, actor_id)

    @staticmethod
    def _validate_behaviors(values: dict) -> dict:
        return {key: _to_bool(values.get(key, default))
                for key, default in config.DEFAULT_AUTO_BEHAVIORS.items()}

    def get_custom_emojis(self, room_id: str) -> dict:
        return self._get_section(room_id, config.SECTION_EMOJIS, config.DEFAULT_EMOJIS)

    def set_custom_emojis(self, room_id: str, partial: Dict[str, Any],
                          actor_id: Optional[str] = None) -> dict:
        return self._set_section(room_id, config.SECTION_EMOJIS, config.DEFAULT_EMOJIS,
                                 partial, self._validate_emojis, actor_id)

    @staticmethod
    def _validate_emojis(values: dict) -> dict:
        validated = {}
        for key, default in config.DEFAULT_EMOJIS.items():
            emoji = str(values.get(key) or '').strip()
            validated[key] = emoji if emoji and len(emoji) <= config.MAX_EMOJI_LENGTH else default
        return validated

    # Reset
    def reset(self, room_id: str, section: Optional[str] = None) -> bool:
        """Drop a room's overrides, all of them or one section.

        Once no section is left the whole document is deleted, bookkeeping
        fields included. Returns whether anything was removed.
        """
        if section is None:
            deleted = self._database.delete_room_config(room_id)
            if deleted:
                logger.info(f"Room {room_id}: configuration reset to global defaults")
            return deleted

        if section not in config.CONFIG_SECTIONS:
            raise InvalidArgument(f"Unknown configuration section: {section}", section=section)

        result = {'removed': False}

        def mutate(document: RoomConfig) -> Optional[RoomConfig]:
            result['removed'] = document.remove_section(section)
            if result['removed'] and not document.has_sections():
                return None
            return document

        if self._database.get_room_config(room_id) is None:
            return False
        self._database.update_room_config(room_id, mutate, self._clock())
        if result['removed']:
            logger.info(f"Room {room_id}: section {section} reset")
        return result['removed']

    # Bookkeeping fields
    def _set_fields(self, room_id: str, values: Dict[str, Any]) -> None:
        def mutate(document: RoomConfig) -> RoomConfig:
            document.data.update(values)
            return document

        self._database.update_room_config(room_id, mutate, self._clock())

    def set_room_language(self, room_id: str, language: str) -> None:
        self._set_fields(room_id, {
            'language': language,
            'language_updated_at': self._clock().isoformat()
        })

    def get_room_language(self, room_id: str) -> str:
        document = self._database.get_room_config(room_id)
        return document.language if document else config.DEFAULT_LANGUAGE

    def set_last_summary_message_id(self, room_id: str, message_id: int) -> None:
        self._set_fields(room_id, {
            'last_summary_message_id': message_id,
            'last_summary_timestamp': self._clock().isoformat()
        })

    def get_last_summary_message_id(self, room_id: str) -> Optional[int]:
        document = self._database.get_room_config(room_id)
        return document.data.get('last_summary_message_id') if document else None

    def clear_last_summary_message_id(self, room_id: str) -> None:
        """Forget the summary pointer; drops the document if nothing else is stored."""
        def mutate(document: RoomConfig) -> Optional[RoomConfig]:
            document.data.pop('last_summary_message_id', None)
            document.data.pop('last_summary_timestamp', None)
            return document if document.data else None

        if self._database.get_room_config(room_id) is not None:
            self._database.update_room_config(room_id, mutate, self._clock())

    def has_room_config(self, room_id: str) -> bool:
        """True if the room overrides at least one section."""
        document = self._database.get_room_config(room_id)
        return document is not None and document.has_sections()

    def get_metadata(self, room_id: str) -> dict:
        """Who configured the room and which sections it overrides."""
        document = self._database.get_room_config(room_id)
        if document is None:
            return {
                'has_config': False,
                'configured_by': None,
                'configured_at': None,
                'sections': [],
                'language': config.DEFAULT_LANGUAGE
            }
        configured_at = parse_timestamp(document.data.get('configured_at'))
        return {
            'has_config': document.has_sections(),
            'configured_by': document.configured_by,
            'configured_at': configured_at.isoformat() if configured_at else None,
            'sections': [s for s in config.CONFIG_SECTIONS if document.has_section(s)],
            'language': document.language
        }
