"""
Order Domain Model - Immutable order and leg value objects

An Order is an ordered, non-empty tuple of OrderLegs plus order-level
attributes (type, time in force, price, stop trigger). Orders and legs are
frozen: build a new one (with_price / with_legs) instead of mutating.

USAGE:
    leg = OrderLeg(
        action=OrderAction.BUY_TO_OPEN,
        symbol="AAPL",
        quantity=100,
        instrument_type=InstrumentType.EQUITY,
    )
    order = Order(order_type=OrderType.LIMIT, legs=(leg,), price=Decimal("150.25"))
    payload = order.to_api_params()
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import re

from trading_orders.core.errors import OrderValidationError


MIN_QUANTITY = 1
MAX_QUANTITY = 999_999


# ============================================================================
# Enumerations
# ============================================================================

class OrderAction(Enum):
    BUY_TO_OPEN = "Buy to Open"
    SELL_TO_OPEN = "Sell to Open"
    BUY_TO_CLOSE = "Buy to Close"
    SELL_TO_CLOSE = "Sell to Close"

    @property
    def is_buy(self) -> bool:
        return self in (OrderAction.BUY_TO_OPEN, OrderAction.BUY_TO_CLOSE)

    @property
    def is_opening(self) -> bool:
        return self in (OrderAction.BUY_TO_OPEN, OrderAction.SELL_TO_OPEN)

    @property
    def default_position_effect(self) -> 'PositionEffect':
        return PositionEffect.OPENING if self.is_opening else PositionEffect.CLOSING


class InstrumentType(Enum):
    EQUITY = "Equity"
    EQUITY_OPTION = "Equity Option"
    FUTURE = "Future"
    FUTURE_OPTION = "Future Option"

    @property
    def is_option(self) -> bool:
        return self in (InstrumentType.EQUITY_OPTION, InstrumentType.FUTURE_OPTION)

    @property
    def is_future(self) -> bool:
        return self in (InstrumentType.FUTURE, InstrumentType.FUTURE_OPTION)


class PositionEffect(Enum):
    OPENING = "Opening"
    CLOSING = "Closing"
    AUTO = "Auto"          # Broker infers from current position


class OrderType(Enum):
    MARKET = "Market"
    LIMIT = "Limit"
    STOP = "Stop"
    STOP_LIMIT = "Stop Limit"

    @property
    def requires_price(self) -> bool:
        return self in (OrderType.LIMIT, OrderType.STOP_LIMIT)

    @property
    def requires_stop_trigger(self) -> bool:
        return self in (OrderType.STOP, OrderType.STOP_LIMIT)


class TimeInForce(Enum):
    DAY = "Day"
    GTC = "GTC"
    GTD = "GTD"
    IOC = "IOC"


class PriceEffect(Enum):
    DEBIT = "Debit"
    CREDIT = "Credit"


class OptionType(Enum):
    CALL = "C"
    PUT = "P"

    @classmethod
    def parse(cls, value: Any) -> 'OptionType':
        """Accept OptionType, 'C'/'P' or 'call'/'put' (any case)"""
        if isinstance(value, OptionType):
            return value
        text = str(value).strip().upper()
        if text in ("C", "CALL"):
            return cls.CALL
        if text in ("P", "PUT"):
            return cls.PUT
        raise ValueError(f"Unknown option type: {value!r}")


class StrategyType(Enum):
    SINGLE = "single"
    VERTICAL = "vertical_spread"
    STRADDLE = "straddle"
    STRANGLE = "strangle"
    IRON_CONDOR = "iron_condor"
    BUTTERFLY = "butterfly"
    IRON_BUTTERFLY = "iron_butterfly"
    CALENDAR = "calendar_spread"
    DIAGONAL = "diagonal_spread"


def to_decimal(value: Any, field_name: str = "value") -> Optional[Decimal]:
    """Convert API/user input to Decimal (None and '' stay None)"""
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise OrderValidationError(f"{field_name} is not a number: {value!r}") from e


# ============================================================================
# Value Objects (Immutable)
# ============================================================================

@dataclass(frozen=True)
class AdvancedInstructions:
    """Optional order-level flags forwarded to the broker"""
    strict_position_effect_validation: bool = False

    def to_api_params(self) -> Dict[str, Any]:
        return {'strict-position-effect-validation': self.strict_position_effect_validation}


@dataclass(frozen=True)
class OrderLeg:
    """
    Single buy/sell instruction within an order.

    `position_effect` defaults to the one implied by `action`. AUTO is sent
    as-is and left for the broker to resolve.
    """
    action: OrderAction
    symbol: str
    quantity: Union[int, Decimal]
    instrument_type: InstrumentType = InstrumentType.EQUITY
    position_effect: Optional[PositionEffect] = None
    ratio_quantity: int = 1

    # Per-unit premium, when known (drives price effect derivation)
    unit_price: Optional[Decimal] = None
    underlying_symbol: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.action, OrderAction):
            raise OrderValidationError(f"Invalid action: {self.action!r}")
        if not isinstance(self.instrument_type, InstrumentType):
            raise OrderValidationError(f"Invalid instrument type: {self.instrument_type!r}")

        symbol = re.sub(r"\s+", " ", self.symbol or "").strip()
        if not symbol:
            raise OrderValidationError("Leg symbol must not be empty")
        object.__setattr__(self, 'symbol', symbol)

        quantity = self.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, (int, Decimal)):
            quantity = to_decimal(quantity, "quantity")
        if isinstance(quantity, Decimal) and quantity == quantity.to_integral_value():
            quantity = int(quantity)
        if quantity is None or quantity <= 0:
            raise OrderValidationError(f"Quantity for {symbol} must be greater than 0 (got {self.quantity})")
        object.__setattr__(self, 'quantity', quantity)

        if not isinstance(self.ratio_quantity, int) or self.ratio_quantity < 1:
            raise OrderValidationError(f"Ratio quantity for {symbol} must be a positive integer")

        if self.position_effect is None:
            object.__setattr__(self, 'position_effect', self.action.default_position_effect)
        elif not isinstance(self.position_effect, PositionEffect):
            raise OrderValidationError(f"Invalid position effect: {self.position_effect!r}")

        if self.unit_price is not None:
            object.__setattr__(self, 'unit_price', to_decimal(self.unit_price, "unit_price"))

    @property
    def is_buy(self) -> bool:
        return self.action.is_buy

    @property
    def signed_quantity(self) -> Union[int, Decimal]:
        """Positive for buys, negative for sells"""
        return self.quantity if self.is_buy else -self.quantity

    @property
    def contradicts_position_effect(self) -> bool:
        """True when an explicit OPENING/CLOSING disagrees with the action"""
        if self.position_effect == PositionEffect.AUTO:
            return False
        return self.position_effect != self.action.default_position_effect

    def cash_flow(self) -> Optional[Decimal]:
        """Cash to the account for this leg (sells positive), None if unpriced"""
        if self.unit_price is None:
            return None
        amount = self.unit_price * Decimal(self.quantity)
        return -amount if self.is_buy else amount

    def to_api_params(self) -> Dict[str, Any]:
        return {
            'action': self.action.value,
            'symbol': self.symbol,
            'quantity': str(self.quantity) if isinstance(self.quantity, Decimal) else self.quantity,
            'instrument-type': self.instrument_type.value,
            'position-effect': self.position_effect.value,
        }


@dataclass(frozen=True)
class Order:
    """
    Order to be validated and submitted.

    price is always positive; direction is carried by price effect.
    """
    order_type: OrderType
    legs: Tuple[OrderLeg, ...]
    time_in_force: TimeInForce = TimeInForce.DAY
    price: Optional[Decimal] = None
    stop_trigger: Optional[Decimal] = None
    gtc_date: Optional[date] = None
    price_effect: Optional[PriceEffect] = None      # Explicit override
    advanced_instructions: Optional[AdvancedInstructions] = None

    # Strategy metadata (set by StrategyBuilder)
    strategy: Optional[StrategyType] = None
    underlying_symbol: Optional[str] = None

    def __post_init__(self):
        legs = tuple(self.legs or ())
        object.__setattr__(self, 'legs', legs)
        object.__setattr__(self, 'price', to_decimal(self.price, "price"))
        object.__setattr__(self, 'stop_trigger', to_decimal(self.stop_trigger, "stop_trigger"))

        errors = self._structure_errors()
        if errors:
            raise OrderValidationError(errors)

    def _structure_errors(self) -> List[str]:
        errors = []

        if not isinstance(self.order_type, OrderType):
            return [f"Invalid order type: {self.order_type!r}"]
        if not isinstance(self.time_in_force, TimeInForce):
            return [f"Invalid time in force: {self.time_in_force!r}"]

        if not self.legs:
            errors.append("Order must have at least one leg")
        for i, leg in enumerate(self.legs):
            if not isinstance(leg, OrderLeg):
                errors.append(f"Leg {i + 1} is not an OrderLeg")

        if self.order_type.requires_price and self.price is None:
            errors.append(f"{self.order_type.value} orders require a price")
        if not self.order_type.requires_price and self.price is not None:
            errors.append(f"{self.order_type.value} orders must not carry a price")
        if self.price is not None and self.price <= 0:
            errors.append("Price must be greater than 0")

        if self.order_type.requires_stop_trigger and self.stop_trigger is None:
            errors.append(f"{self.order_type.value} orders require a stop trigger")
        if not self.order_type.requires_stop_trigger and self.stop_trigger is not None:
            errors.append(f"{self.order_type.value} orders must not carry a stop trigger")
        if self.stop_trigger is not None and self.stop_trigger <= 0:
            errors.append("Stop trigger must be greater than 0")

        if self.time_in_force == TimeInForce.GTD and self.gtc_date is None:
            errors.append("GTD orders require a gtc_date")
        if self.time_in_force != TimeInForce.GTD and self.gtc_date is not None:
            errors.append("gtc_date is only valid for GTD orders")

        if self.price_effect is not None and not isinstance(self.price_effect, PriceEffect):
            errors.append(f"Invalid price effect: {self.price_effect!r}")

        if errors:
            return errors

        if self.strategy is not None:
            underlyings = {leg.underlying_symbol or self.underlying_symbol for leg in self.legs}
            if len(underlyings) > 1:
                errors.append("All legs of a strategy order must share the same underlying symbol")

        strict = self.advanced_instructions and self.advanced_instructions.strict_position_effect_validation
        if strict:
            for leg in self.legs:
                if leg.contradicts_position_effect:
                    errors.append(
                        f"Position effect {leg.position_effect.value} contradicts action "
                        f"{leg.action.value} for {leg.symbol}"
                    )
        return errors

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def is_market(self) -> bool:
        return self.order_type == OrderType.MARKET

    @property
    def is_limit(self) -> bool:
        return self.order_type == OrderType.LIMIT

    @property
    def total_quantity(self) -> Union[int, Decimal]:
        return sum(leg.quantity for leg in self.legs)

    @property
    def net_cash_flow(self) -> Optional[Decimal]:
        """Sell proceeds minus buy costs, None unless every leg is priced"""
        flows = [leg.cash_flow() for leg in self.legs]
        if not flows or any(f is None for f in flows):
            return None
        return sum(flows, Decimal('0'))

    @property
    def effective_price_effect(self) -> PriceEffect:
        """
        Debit when cash leaves the account, Credit otherwise.

        Explicit override > priced legs > net signed quantity > first leg.
        """
        if self.price_effect is not None:
            return self.price_effect

        net = self.net_cash_flow
        if net is not None:
            return PriceEffect.DEBIT if net < 0 else PriceEffect.CREDIT

        net_quantity = sum(leg.signed_quantity for leg in self.legs)
        if net_quantity > 0:
            return PriceEffect.DEBIT
        if net_quantity < 0:
            return PriceEffect.CREDIT
        return PriceEffect.DEBIT if self.legs[0].is_buy else PriceEffect.CREDIT

    def with_price(self, price: Decimal) -> 'Order':
        return replace(self, price=price)

    def with_legs(self, legs: Iterable[OrderLeg]) -> 'Order':
        return replace(self, legs=tuple(legs))

    def to_api_params(self) -> Dict[str, Any]:
        """Wire payload for POST /accounts/{n}/orders[/dry-run] and PUT replace"""
        params: Dict[str, Any] = {
            'order-type': self.order_type.value,
            'time-in-force': self.time_in_force.value,
            'legs': [leg.to_api_params() for leg in self.legs],
        }
        if self.price is not None:
            params['price'] = format(self.price, 'f')
            params['price-effect'] = self.effective_price_effect.value
        if self.stop_trigger is not None:
            params['stop-trigger'] = format(self.stop_trigger, 'f')
        if self.gtc_date is not None:
            params['gtc-date'] = self.gtc_date.isoformat()
        if self.advanced_instructions is not None:
            params['advanced-instructions'] = self.advanced_instructions.to_api_params()
        return params
