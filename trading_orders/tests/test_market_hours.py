"""
Tests for MarketHours against the real XNYS calendar.

Uses fixed 2024 instants through an injected clock so results do not depend
on when the suite runs.
"""

import pytest
from datetime import date, datetime

import pytz

from trading_orders.config.settings import Settings
from trading_orders.services.market_hours import MarketHours

EASTERN = pytz.timezone('US/Eastern')


def _at(year, month, day, hour, minute=0) -> datetime:
    return EASTERN.localize(datetime(year, month, day, hour, minute))


@pytest.fixture
def hours():
    return MarketHours(clock=lambda: _at(2024, 3, 13, 11))


class TestTradingDays:

    def test_weekday_session(self, hours):
        assert hours.is_trading_day(date(2024, 3, 13))

    def test_weekend(self, hours):
        assert not hours.is_trading_day(date(2024, 3, 16))

    def test_holiday(self, hours):
        assert not hours.is_trading_day(date(2024, 12, 25))

    def test_defaults_to_clock_date(self, hours):
        assert hours.is_trading_day()


class TestIsOpen:

    def test_mid_session(self, hours):
        assert hours.is_open()

    def test_open_inclusive_close_exclusive(self, hours):
        assert hours.is_open(_at(2024, 3, 13, 9, 30))
        assert not hours.is_open(_at(2024, 3, 13, 9, 29))
        assert not hours.is_open(_at(2024, 3, 13, 16, 0))

    def test_weekend_closed(self, hours):
        assert not hours.is_open(_at(2024, 3, 16, 11))

    def test_utc_instant_converted(self, hours):
        # 15:00 UTC is 11:00 EDT
        assert hours.is_open(datetime(2024, 3, 13, 15, 0, tzinfo=pytz.utc))

    def test_naive_datetime_is_market_time(self, hours):
        assert hours.is_open(datetime(2024, 3, 13, 11, 0))


class TestEarlyClose:

    def test_day_after_thanksgiving(self, hours):
        assert hours.is_early_close(date(2024, 11, 29))
        assert not hours.is_open(_at(2024, 11, 29, 13, 30))
        assert hours.is_open(_at(2024, 11, 29, 12, 30))

    def test_regular_day(self, hours):
        assert not hours.is_early_close(date(2024, 3, 13))

    def test_session_times(self, hours):
        session_open, session_close = hours.session_times(date(2024, 3, 13))
        assert session_open == _at(2024, 3, 13, 9, 30)
        assert session_close == _at(2024, 3, 13, 16, 0)
        assert hours.session_times(date(2024, 3, 16)) is None


class TestDescribe:

    def test_open(self, hours):
        assert hours.describe().startswith('Market open at 11:00')

    def test_non_trading_day(self, hours):
        assert hours.describe(_at(2024, 3, 16, 11)) == '2024-03-16 is not a XNYS trading day'

    def test_after_close(self, hours):
        assert 'Market closed' in hours.describe(_at(2024, 3, 13, 17))


class TestFromSettings:

    def test_uses_configured_calendar(self):
        settings = Settings(market_calendar='XNYS', market_timezone='America/New_York')
        hours = MarketHours.from_settings(settings, clock=lambda: _at(2024, 3, 13, 11))
        assert hours.calendar_name == 'XNYS'
        assert hours.tz.zone == 'America/New_York'
        assert hours.is_open()
