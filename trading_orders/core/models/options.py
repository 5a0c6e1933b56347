"""
Option descriptors consumed by StrategyBuilder.

Any object exposing the OptionDescriptor attributes can be passed to the
builder (SDK models, chain rows, test doubles). OptionContract is the
package's own immutable implementation.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from trading_orders.core.models.orders import InstrumentType, OptionType, to_decimal


@runtime_checkable
class OptionDescriptor(Protocol):
    """Minimal option contract needed to build legs"""
    symbol: str
    underlying_symbol: str
    strike_price: Decimal
    expiration_date: date
    option_type: OptionType

    @property
    def expired(self) -> bool: ...


def build_occ_symbol(underlying: str, expiration: date, option_type: OptionType, strike: Decimal) -> str:
    """
    OCC-style option symbol: root padded to 6, YYMMDD, C/P, strike * 1000 in 8 digits.

    build_occ_symbol('AAPL', date(2024, 1, 19), OptionType.CALL, Decimal('150'))
    -> 'AAPL  240119C00150000'
    """
    strike_part = f"{int(Decimal(strike) * 1000):08d}"
    return f"{underlying.upper():<6}{expiration.strftime('%y%m%d')}{option_type.value}{strike_part}"


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()


@dataclass(frozen=True)
class OptionContract:
    """Immutable option contract"""
    underlying_symbol: str
    strike_price: Decimal
    expiration_date: date
    option_type: OptionType
    symbol: str = ""
    instrument_type: InstrumentType = InstrumentType.EQUITY_OPTION

    # Optional premium (mid/mark) used for net debit/credit derivation
    mark: Optional[Decimal] = None
    active: bool = True
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'strike_price', to_decimal(self.strike_price, "strike_price"))
        object.__setattr__(self, 'option_type', OptionType.parse(self.option_type))
        object.__setattr__(self, 'expiration_date', _parse_date(self.expiration_date))
        if self.mark is not None:
            object.__setattr__(self, 'mark', to_decimal(self.mark, "mark"))
        if not self.symbol:
            object.__setattr__(
                self, 'symbol',
                build_occ_symbol(self.underlying_symbol, self.expiration_date, self.option_type, self.strike_price),
            )

    @property
    def expired(self) -> bool:
        if self.expires_at is not None:
            now = datetime.now(self.expires_at.tzinfo) if self.expires_at.tzinfo else datetime.now()
            return now >= self.expires_at
        return self.expiration_date < date.today()

    @property
    def is_call(self) -> bool:
        return self.option_type == OptionType.CALL

    @property
    def is_put(self) -> bool:
        return self.option_type == OptionType.PUT

    def days_to_expiration(self, as_of: Optional[date] = None) -> int:
        as_of = as_of or date.today()
        return max(0, (self.expiration_date - as_of).days)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'OptionContract':
        """Build from an /instruments/equity-options (or future-options) item"""
        instrument_type = InstrumentType(data.get('instrument-type', InstrumentType.EQUITY_OPTION.value))
        expires_at = data.get('expires-at')
        return cls(
            underlying_symbol=data['underlying-symbol'],
            strike_price=data['strike-price'],
            expiration_date=data['expiration-date'],
            option_type=data['option-type'],
            symbol=data.get('symbol', ''),
            instrument_type=instrument_type,
            mark=data.get('mark'),
            active=data.get('active', True),
            expires_at=datetime.fromisoformat(expires_at.replace('Z', '+00:00')) if expires_at else None,
        )
