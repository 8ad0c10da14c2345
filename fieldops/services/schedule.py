"""
Reporting cadence rules.
Handles "today" in the configured timezone, overdue warnings and next due dates.
"""
import math
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import pytz

from ..config import settings
from ..schemas.reports import FREQUENCY_DAYS, ReportFrequency


def today_local(timezone_str: Optional[str] = None) -> date:
    """Current calendar date in the configured (or given) timezone."""
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(tz).date()


def frequency_interval_days(frequency: str) -> int:
    """1 for Harian, 7 for anything else (Mingguan)."""
    try:
        return FREQUENCY_DAYS[ReportFrequency(frequency)]
    except ValueError:
        return FREQUENCY_DAYS[ReportFrequency.weekly]


def schedule_drift_warning(
    previous_date: Optional[date],
    new_date: date,
    frequency: str,
) -> Optional[str]:
    """
    Advisory warning when the gap since the previous report exceeds the cadence.

    Args:
        previous_date: Date of the most recent prior report (None on first report)
        new_date: Date of the report being submitted
        frequency: Assignment reporting frequency (Harian|Mingguan)

    Returns:
        Warning text, or None when on schedule or on the first report
    """
    if previous_date is None:
        return None
    interval = frequency_interval_days(frequency)
    diff_days = math.ceil((new_date - previous_date) / timedelta(days=1))
    if diff_days > interval:
        return f"Laporan sebelumnya melewati {diff_days - interval} hari dari jadwal."
    return None


def next_report_deadline(
    frequency: str,
    last_report_date: Optional[date],
    start_date: date,
    today: Optional[date] = None,
) -> Tuple[date, bool]:
    """
    Next expected report date and whether it has already passed.

    The base is the latest report date, or the assignment start date when
    nothing has been reported yet.
    """
    base = last_report_date or start_date
    due_date = base + timedelta(days=frequency_interval_days(frequency))
    today = today or today_local()
    return due_date, today > due_date
