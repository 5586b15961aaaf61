# ============================================================================
# src/symptom_trends/temporal/time_range.py
# ============================================================================
"""
Relative time range resolution.

"30d" reaches 30 days back, "1y" one year back, "all" a configured number
of years back. The window always starts at the beginning of its first day
and ends at the end of today.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from ..config.base_config import base_settings
from ..utils.exceptions import TimeRangeError

_RANGE_PATTERN = re.compile(r"^(\d+)([dy])$")


@dataclass(frozen=True)
class DateWindow:
    """Absolute [start, end] window resolved from a time range"""
    start: datetime
    end: datetime

    @property
    def start_date(self) -> str:
        return self.start.date().isoformat()

    @property
    def end_date(self) -> str:
        return self.end.date().isoformat()


def _years_back(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year - years, day=28)


def parse_time_range(
    time_range: str,
    now: Optional[datetime] = None,
    all_time_years: Optional[int] = None,
) -> DateWindow:
    """
    Resolve a relative time range to an absolute window.

    Args:
        time_range: "<N>d", "<N>y" or "all"
        now: Reference instant (defaults to current UTC time)
        all_time_years: Years covered by "all" (defaults to ALL_TIME_YEARS)

    Returns:
        DateWindow in UTC

    Raises:
        TimeRangeError: If the specifier is malformed
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.date()

    spec = (time_range or "").strip().lower()

    if spec == "all":
        amount = all_time_years if all_time_years is not None else base_settings.ALL_TIME_YEARS
        unit = "y"
    else:
        match = _RANGE_PATTERN.match(spec)
        if not match:
            raise TimeRangeError(
                f"Unsupported time range '{time_range}' (expected '<N>d', '<N>y' or 'all')",
                time_range=time_range,
            )
        amount, unit = int(match.group(1)), match.group(2)

    try:
        if unit == "d":
            start_day = today - timedelta(days=amount)
        else:
            start_day = _years_back(today, amount)
    except (OverflowError, ValueError) as e:
        raise TimeRangeError(
            f"Time range '{time_range}' reaches outside the supported calendar: {e}",
            time_range=time_range,
        ) from e

    start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(today, time.max, tzinfo=timezone.utc)
    return DateWindow(start=start, end=end)
