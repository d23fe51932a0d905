"""Time monitoring engine.

Each sweep looks at every running agenda item and escalates through three
ordered tiers:

- ``approaching``: elapsed/planned >= the room's warning threshold
- ``overtime``: elapsed/planned >= 1.0 (fixed)
- ``overtime_critical``: elapsed/planned >= the room's overtime threshold

A tier is sent at most once per item and never after a higher tier, so
warnings only move up. The warning ledger in the database is the record of
what was sent; a failed delivery writes nothing and the next sweep retries.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..models import AgendaItem, TimeMonitoringConfig, WarningRecord, WarningTier, utc_now
from .database_service import DatabaseService
from .localization import Localizer
from .logging_config import get_logger
from .room_config_service import RoomConfigService
from .timing_service import calculate_progress_ratio, elapsed_minutes

logger = get_logger("time_monitor")

MessageSink = Callable[[str, str, bool], Any]
LivenessCheck = Callable[[str], bool]


@dataclass
class SweepReport:
    """Counters for one sweep."""

    checked: int = 0
    skipped_inactive: int = 0
    skipped_disabled: int = 0
    failures: int = 0
    warnings: List[Tuple[int, WarningTier]] = field(default_factory=list)

    @property
    def warnings_sent(self) -> int:
        return len(self.warnings)

    def to_dict(self) -> dict:
        return {
            'checked': self.checked,
            'skipped_inactive': self.skipped_inactive,
            'skipped_disabled': self.skipped_disabled,
            'failures': self.failures,
            'warnings_sent': self.warnings_sent,
            'warnings': [{'item_id': item_id, 'tier': tier.value} for item_id, tier in self.warnings]
        }


def determine_tier(ratio: float, config: TimeMonitoringConfig,
                   sent: Set[WarningTier]) -> Optional[WarningTier]:
    """Pick the tier to send for ``ratio``, or None.

    Only the highest tier met is considered. It is sent only if neither it
    nor any higher tier was sent before.
    """
    if ratio >= config.overtime_threshold:
        tier = WarningTier.OVERTIME_CRITICAL
    elif ratio >= config.time_reached_threshold:
        tier = WarningTier.OVERTIME
    elif ratio >= config.warning_threshold:
        tier = WarningTier.APPROACHING
    else:
        return None

    if tier in sent or any(higher in sent for higher in tier.higher_tiers()):
        return None
    return tier


class TimeMonitorService:
    """Sends escalating time warnings for running agenda items.

    Usage:
        monitor = TimeMonitorService(database, room_configs, messages)
        report = monitor.sweep()
    """

    def __init__(
        self,
        database: DatabaseService,
        room_configs: RoomConfigService,
        sink: MessageSink,
        liveness: Optional[LivenessCheck] = None,
        localizer: Optional[Localizer] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """Initialize the monitor.

        Args:
            database: Store holding agenda items and the warning ledger
            room_configs: Resolver for per-room thresholds
            sink: Called as ``sink(room_id, text, silent)`` to deliver a warning
            liveness: Called as ``liveness(room_id)``; warnings only go to
                rooms with a live call. Defaults to the room_sessions table.
            localizer: Translates warning texts
            clock: Source of "now"
        """
        self._database = database
        self._room_configs = room_configs
        self._sink = sink
        self._liveness = liveness or database.is_call_active
        self._localizer = localizer or Localizer()
        self._clock = clock

    def sweep(self) -> SweepReport:
        """Check every running item once. Per-item failures are isolated."""
        report = SweepReport()
        try:
            items = self._database.get_active_items()
        except Exception as e:
            logger.error(f"Sweep could not load active items: {e}", exc_info=True)
            report.failures += 1
            return report

        now = self._clock()
        live_rooms: Dict[str, bool] = {}
        room_configs: Dict[str, TimeMonitoringConfig] = {}

        for item in items:
            try:
                if item.room_id not in live_rooms:
                    live_rooms[item.room_id] = bool(self._liveness(item.room_id))
                if not live_rooms[item.room_id]:
                    report.skipped_inactive += 1
                    continue

                if item.room_id not in room_configs:
                    room_configs[item.room_id] = self._room_configs.get_time_monitoring_config(item.room_id)
                config = room_configs[item.room_id]
                if not config.enabled:
                    report.skipped_disabled += 1
                    continue

                report.checked += 1
                tier = self._check(item, config, now)
                if tier is not None:
                    report.warnings.append((item.id, tier))
            except Exception as e:
                report.failures += 1
                logger.error(f"Time check failed for item {item.id} in room {item.room_id}: {e}",
                             exc_info=True)

        if report.warnings or report.failures:
            logger.info(f"Sweep done: {report.to_dict()}")
        return report

    def check_item(self, item: AgendaItem) -> Optional[WarningTier]:
        """Evaluate a single item against its room's settings. Returns the tier sent."""
        if not item.is_active or item.planned_minutes <= 0:
            return None
        config = self._room_configs.get_time_monitoring_config(item.room_id)
        if not config.enabled:
            return None
        return self._check(item, config, self._clock())

    def _check(self, item: AgendaItem, config: TimeMonitoringConfig,
               now: datetime) -> Optional[WarningTier]:
        elapsed = elapsed_minutes(item.start_time, now)
        ratio = calculate_progress_ratio(elapsed, item.planned_minutes)
        sent = self._database.get_warning_tiers(item.id)

        tier = determine_tier(ratio, config, sent)
        if tier is None:
            return None

        lang = self._room_configs.get_room_language(item.room_id)
        text = self.compose_warning(tier, item, elapsed, config, lang)
        self._sink(item.room_id, text, False)

        record = WarningRecord(
            item_id=item.id,
            room_id=item.room_id,
            tier=tier,
            elapsed_minutes=elapsed,
            planned_minutes=item.planned_minutes,
            created_at=now
        )
        if not self._database.insert_warning(record):
            logger.warning(f"Warning {tier.value} for item {item.id} was already recorded")
        logger.info(f"Room {item.room_id}: sent {tier.value} for '{item.title}' (ratio {ratio:.2f})")
        return tier

    def compose_warning(self, tier: WarningTier, item: AgendaItem, elapsed: float,
                        config: TimeMonitoringConfig, lang: str = "en") -> str:
        """Text of a tier's warning; elapsed minutes are shown rounded up."""
        elapsed_int = int(math.ceil(elapsed))
        planned = item.planned_minutes
        t = self._localizer.t

        if tier == WarningTier.APPROACHING:
            return "⏰ " + t(
                lang, '**Time Check**: "%s" is approaching time limit (%d of %d minutes used)',
                item.title, elapsed_int, planned
            )
        if tier == WarningTier.OVERTIME:
            return "⚠️ " + t(
                lang, '**Time Alert**: "%s" has reached planned time (%d min planned, %d min elapsed)',
                item.title, planned, elapsed_int
            )
        overtime_percent = round((config.overtime_threshold - 1.0) * 100)
        return "🚨 " + t(
            lang,
            '**Overtime Alert**: "%s" has exceeded time limit by %d%% '
            '(%d min over, %d min planned, %d min elapsed)',
            item.title, overtime_percent, elapsed_int - planned, planned, elapsed_int
        )
