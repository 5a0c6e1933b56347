"""
Test Fixtures — Shared across all unit tests.

Provides:
- Known option contracts (far-dated so they never expire during a run)
- MagicMock transport and an in-memory instrument lookup
- Settings / order rules / market hours wired for deterministic validation
- Helpers building broker response bodies
"""

import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional, Tuple
from unittest.mock import MagicMock

from trading_orders.adapters.base import InstrumentInfo, InstrumentLookupBase, TransportBase
from trading_orders.config.order_rules_loader import load_order_rules
from trading_orders.config.settings import Settings
from trading_orders.core.models.account import Account, TradingStatus
from trading_orders.core.models.options import OptionContract
from trading_orders.core.models.orders import InstrumentType, OptionType
from trading_orders.core.validation.order_validator import OrderValidator
from trading_orders.core.validation.tick_sizes import TickSizeSchedule
from trading_orders.services.market_hours import MarketHours


# =============================================================================
# Known constants for deterministic tests
# =============================================================================

KNOWN_ACCOUNT = '5WX00001'
KNOWN_UNDERLYING = 'AAPL'
KNOWN_EXPIRATION = date(2030, 1, 18)
KNOWN_LATER_EXPIRATION = date(2030, 2, 15)
KNOWN_PAST_EXPIRATION = date(2020, 1, 17)

RULES_FILE = Path(__file__).parent.parent / 'config' / 'order_rules.yaml'

OPTION_TICKS = TickSizeSchedule.from_api([
    {'threshold': '3.00', 'value': '0.01'},
    {'value': '0.05'},
])
EQUITY_TICKS = TickSizeSchedule.from_api([
    {'threshold': '1.00', 'value': '0.0001'},
    {'value': '0.01'},
])


def make_option(strike, option_type='C', expiration=KNOWN_EXPIRATION, underlying=KNOWN_UNDERLYING,
                mark=None) -> OptionContract:
    """Option contract with an OCC symbol generated from its fields."""
    return OptionContract(
        underlying_symbol=underlying,
        strike_price=Decimal(str(strike)),
        expiration_date=expiration,
        option_type=OptionType.parse(option_type),
        mark=Decimal(str(mark)) if mark is not None else None,
    )


def dry_run_body(current='10000.00', change='500.00', new='9500.00', impact='500.00',
                 effect='Debit', warnings=None, errors=None) -> dict:
    """Dry-run response body in the broker's nested shape."""
    body = {
        'order': {
            'account-number': KNOWN_ACCOUNT,
            'status': 'Received',
            'order-type': 'Limit',
            'legs': [],
        },
        'buying-power-effect': {
            'change-in-margin-requirement': change,
            'change-in-margin-requirement-effect': effect,
            'change-in-buying-power': change,
            'change-in-buying-power-effect': effect,
            'current-buying-power': current,
            'current-buying-power-effect': 'Credit',
            'new-buying-power': new,
            'new-buying-power-effect': 'Credit',
            'impact': impact,
            'effect': effect,
            'is-spread': False,
        },
        'warnings': warnings or [],
    }
    if errors:
        body['errors'] = errors
    return body


def live_order_body(order_id='1001', status='Live', cancellable=True, editable=True,
                    quantity=100, remaining=100, symbol=KNOWN_UNDERLYING) -> dict:
    """Single-leg equity order as returned by GET /accounts/{n}/orders/{id}."""
    return {
        'id': order_id,
        'account-number': KNOWN_ACCOUNT,
        'status': status,
        'cancellable': cancellable,
        'editable': editable,
        'order-type': 'Limit',
        'time-in-force': 'Day',
        'price': '150.00',
        'price-effect': 'Debit',
        'underlying-symbol': symbol,
        'legs': [{
            'instrument-type': 'Equity',
            'symbol': symbol,
            'quantity': quantity,
            'remaining-quantity': remaining,
            'action': 'Buy to Open',
            'fills': [],
        }],
    }


class FakeInstrumentLookup(InstrumentLookupBase):
    """In-memory instrument lookup; unknown symbols return None."""

    def __init__(self):
        self.instruments: Dict[Tuple[str, InstrumentType], InstrumentInfo] = {}
        self.calls = []

    def add(self, symbol, instrument_type=InstrumentType.EQUITY, **kwargs) -> InstrumentInfo:
        info = InstrumentInfo(symbol=symbol, instrument_type=instrument_type, **kwargs)
        self.instruments[(symbol, instrument_type)] = info
        return info

    def get_instrument(self, symbol, instrument_type) -> Optional[InstrumentInfo]:
        self.calls.append((symbol, instrument_type))
        return self.instruments.get((symbol, instrument_type))


# =============================================================================
# Collaborator fixtures
# =============================================================================

@pytest.fixture
def transport():
    """Transport mock; every call is recorded."""
    return MagicMock(spec=TransportBase)


@pytest.fixture
def instruments():
    """Lookup knowing AAPL stock and the standard AAPL option strikes."""
    lookup = FakeInstrumentLookup()
    lookup.add(KNOWN_UNDERLYING, InstrumentType.EQUITY, tick_sizes=EQUITY_TICKS)
    lookup.add('VOO', InstrumentType.EQUITY, is_fractional_quantity_eligible=True, tick_sizes=EQUITY_TICKS)
    for strike in (140, 145, 150, 155, 160):
        for option_type in ('C', 'P'):
            lookup.add(
                make_option(strike, option_type).symbol.replace('  ', ' '),
                InstrumentType.EQUITY_OPTION,
                tick_sizes=OPTION_TICKS,
                underlying_symbol=KNOWN_UNDERLYING,
            )
    return lookup


@pytest.fixture
def settings():
    """Settings with defaults pinned (env vars ignored for these fields)."""
    return Settings(
        buying_power_warning_pct=80.0,
        max_order_quantity=999_999,
        max_order_price=1_000_000.0,
        auto_round_prices=False,
        log_file=None,
    )


@pytest.fixture
def rules():
    return load_order_rules(str(RULES_FILE))


@pytest.fixture
def open_market():
    hours = MagicMock(spec=MarketHours)
    hours.is_open.return_value = True
    hours.describe.return_value = "Market open"
    return hours


@pytest.fixture
def closed_market():
    hours = MagicMock(spec=MarketHours)
    hours.is_open.return_value = False
    hours.describe.return_value = "2024-03-16 is not a XNYS trading day"
    return hours


@pytest.fixture
def trading_status():
    return TradingStatus(
        account_number=KNOWN_ACCOUNT,
        options_level='Defined Risk Spreads',
        is_futures_enabled=True,
    )


@pytest.fixture
def account(trading_status):
    return Account(account_number=KNOWN_ACCOUNT, trading_status=trading_status)


@pytest.fixture
def validator(transport, instruments, settings, rules, open_market):
    return OrderValidator(transport, instruments, settings=settings, rules=rules, market_hours=open_market)
