"""Timing utilities: duration parsing/formatting and elapsed-time math.

Stateless helpers shared by the agenda, tracker and monitor services. Elapsed
minutes are rounded up for display; the monitor works with fractional
minutes so thresholds are crossed at the right moment.
"""

import math
import re
from datetime import datetime
from typing import Iterable, Optional

from .. import config
from ..models import AgendaItem
from .localization import Localizer

_HOURS_AND_MINUTES = re.compile(r'(\d+)\s*h(?:our)?s?\s*(\d+)\s*m(?:in)?(?:ute)?s?')
_HOURS_ONLY = re.compile(r'(\d+)\s*h(?:our)?s?$')
_MINUTES_ONLY = re.compile(r'(\d+)\s*m(?:in)?(?:ute)?s?$')
_NUMBER_ONLY = re.compile(r'^(\d+)$')


def parse_duration_to_minutes(duration: Optional[str],
                              default: int = config.DEFAULT_DURATION_MINUTES) -> int:
    """Parse a duration such as "(5 min)", "1h", "1h 30min" or "90".

    Empty or unparseable input yields ``default``.
    """
    if duration is None:
        return default
    text = duration.strip('() \t').lower()
    if not text:
        return default

    total = 0
    match = _HOURS_AND_MINUTES.search(text)
    if match:
        total = int(match.group(1)) * 60 + int(match.group(2))
    elif _HOURS_ONLY.search(text):
        total = int(_HOURS_ONLY.search(text).group(1)) * 60
    elif _MINUTES_ONLY.search(text):
        total = int(_MINUTES_ONLY.search(text).group(1))
    elif _NUMBER_ONLY.match(text):
        total = int(text)

    return total if total > 0 else default


def format_duration_display(minutes: int, lang: str = config.DEFAULT_LANGUAGE,
                            localizer: Optional[Localizer] = None) -> str:
    """Format minutes as "x min", "x h" or "x h y min"."""
    l10n = localizer or Localizer()
    if minutes < 60:
        return f"{minutes} {l10n.t(lang, 'min')}"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours} {l10n.t(lang, 'h')}"
    return f"{hours} {l10n.t(lang, 'h %d min', remaining)}"


def elapsed_minutes(start_time: Optional[datetime], now: datetime) -> float:
    """Fractional minutes between ``start_time`` and ``now``."""
    if start_time is None:
        return 0.0
    return (now - start_time).total_seconds() / 60


def time_spent_on_item(item: AgendaItem, now: datetime) -> int:
    """Whole minutes (rounded up) the item has been running."""
    if item.start_time is None:
        return 0
    return int(math.ceil(elapsed_minutes(item.start_time, now)))


def calculate_actual_duration_from_timestamps(start_time: Optional[datetime],
                                              completed_at: Optional[datetime]) -> int:
    """Minutes between start and completion, rounded up; 0 if not computable."""
    if start_time is None or completed_at is None or start_time >= completed_at:
        return 0
    return int(math.ceil((completed_at - start_time).total_seconds() / 60))


def calculate_progress_ratio(elapsed: float, planned_minutes: int) -> float:
    """Elapsed over planned time; 0.0 for a non-positive plan."""
    if planned_minutes <= 0:
        return 0.0
    return elapsed / planned_minutes


def calculate_actual_time_spent(items: Iterable[AgendaItem], current_item: Optional[AgendaItem],
                                now: datetime) -> dict:
    """Sum actual minutes of completed items plus the running current item."""
    total = 0
    has_actual_time = False

    for item in items:
        actual = calculate_actual_duration_from_timestamps(item.start_time, item.completed_at) \
            if item.is_completed else 0
        if actual > 0:
            total += actual
            has_actual_time = True

    if current_item is not None:
        spent = time_spent_on_item(current_item, now)
        if spent > 0:
            total += spent
            has_actual_time = True

    return {'total_actual_minutes': total, 'has_actual_time': has_actual_time}


def generate_timing_summary_string(total_planned_minutes: int, total_actual_minutes: int,
                                   has_actual_time: bool, lang: str = config.DEFAULT_LANGUAGE,
                                   localizer: Optional[Localizer] = None,
                                   multi_line: bool = True) -> str:
    """Planned vs. spent time line(s) for status views and summaries."""
    if total_planned_minutes <= 0:
        return ''

    l10n = localizer or Localizer()
    planned = format_duration_display(total_planned_minutes, lang, l10n)
    separator = "\n" if multi_line else " | "
    summary = f"📅 {l10n.t(lang, 'Total planned time: %s', planned)}"

    if has_actual_time and total_actual_minutes > 0:
        spent = format_duration_display(total_actual_minutes, lang, l10n)
        percentage = round(total_actual_minutes / total_planned_minutes * 100)
        indicator = config.DEFAULT_EMOJIS['on_time'] if percentage <= 100 \
            else config.DEFAULT_EMOJIS['time_warning']
        summary += f"{separator}🕐 {l10n.t(lang, 'Time spent: %s', spent)} ({indicator} {percentage}%)"

    return summary
