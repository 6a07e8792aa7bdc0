"""
Clock helpers. Everything in the core takes `now` explicitly; these are only
used at the edges to produce it.
"""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from leveling_os.config import get_app_config


def now_local(tz_name: Optional[str] = None) -> datetime:
    """Current wall-clock time in the reference timezone, returned naive."""
    tz = ZoneInfo(tz_name or get_app_config().timezone)
    return datetime.now(tz).replace(tzinfo=None)


def today(tz_name: Optional[str] = None) -> date:
    """Civil date of 'today' in the reference timezone."""
    return now_local(tz_name).date()
