"""
Market Hours - regular session checks against an exchange calendar.

Uses exchange_calendars for sessions, holidays and early closes, and pytz for
the configured market timezone. The clock is injectable so callers (and
tests) can ask about any instant.

Usage:
    hours = MarketHours()
    if not hours.is_open():
        print(hours.describe())
"""

from datetime import date, datetime
from typing import Callable, Optional, Tuple
import logging

import exchange_calendars
import pandas as pd
import pytz

logger = logging.getLogger(__name__)


class MarketHours:
    """Regular-session status for one exchange calendar"""

    def __init__(
        self,
        calendar: str = "XNYS",
        timezone: str = "US/Eastern",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.calendar_name = calendar
        self.tz = pytz.timezone(timezone)
        self._clock = clock or (lambda: datetime.now(pytz.utc))
        self._calendar = None

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], datetime]] = None) -> 'MarketHours':
        return cls(calendar=settings.market_calendar, timezone=settings.market_timezone, clock=clock)

    def _get_calendar(self):
        if self._calendar is None:
            self._calendar = exchange_calendars.get_calendar(self.calendar_name)
        return self._calendar

    def now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            current = self.tz.localize(current)
        return current.astimezone(self.tz)

    def is_trading_day(self, day: Optional[date] = None) -> bool:
        day = day or self.now().date()
        return bool(self._get_calendar().is_session(pd.Timestamp(day)))

    def session_times(self, day: Optional[date] = None) -> Optional[Tuple[datetime, datetime]]:
        """(open, close) in market time, None on non-trading days"""
        day = day or self.now().date()
        if not self.is_trading_day(day):
            return None
        cal = self._get_calendar()
        ts = pd.Timestamp(day)
        session_open = cal.session_open(ts).to_pydatetime().astimezone(self.tz)
        session_close = cal.session_close(ts).to_pydatetime().astimezone(self.tz)
        return session_open, session_close

    def is_open(self, at: Optional[datetime] = None) -> bool:
        """True inside the regular session (open inclusive, close exclusive)"""
        now = self._localize(at) if at is not None else self.now()
        times = self.session_times(now.date())
        if times is None:
            return False
        session_open, session_close = times
        return session_open <= now < session_close

    def is_early_close(self, day: Optional[date] = None) -> bool:
        day = day or self.now().date()
        times = self.session_times(day)
        if times is None:
            return False
        return times[1].strftime('%H:%M') != "16:00"

    def describe(self, at: Optional[datetime] = None) -> str:
        now = self._localize(at) if at is not None else self.now()
        times = self.session_times(now.date())
        if times is None:
            return f"{now.date()} is not a {self.calendar_name} trading day"
        session_open, session_close = times
        state = "open" if session_open <= now < session_close else "closed"
        return (
            f"Market {state} at {now.strftime('%H:%M %Z')} "
            f"(session {session_open.strftime('%H:%M')}-{session_close.strftime('%H:%M')})"
        )

    def _localize(self, at: datetime) -> datetime:
        if at.tzinfo is None:
            at = self.tz.localize(at)
        return at.astimezone(self.tz)
