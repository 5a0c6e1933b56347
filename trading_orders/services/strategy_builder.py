"""
Strategy Builder - Builds single-leg and multi-leg option orders.

Each factory takes already-fetched option descriptors (anything exposing
symbol, underlying_symbol, strike_price, expiration_date, option_type and
expired) and returns an immutable Order, or raises:

    InvalidOptionError    descriptor missing, malformed or expired
    InvalidStrategyError  legs violate the strategy's strike/expiration/type rules

Checks run in that order, then actions are assigned and the price effect is
derived. No network access happens here.

USAGE:
    builder = StrategyBuilder()
    order = builder.vertical_spread(long_call_150, short_call_155, 1, price=Decimal("1.00"))
    order.effective_price_effect   # PriceEffect.DEBIT
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence
import logging

from trading_orders.core.errors import InvalidOptionError, InvalidStrategyError, OrderValidationError
from trading_orders.core.models.orders import (
    InstrumentType, OptionType, Order, OrderAction, OrderLeg, OrderType,
    PositionEffect, PriceEffect, StrategyType, TimeInForce,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Strategy Catalog
# ---------------------------------------------------------------------------

STRATEGY_CATALOG: Dict[str, Dict[str, Any]] = {
    StrategyType.SINGLE.value: {
        'display_name': 'Single Option',
        'legs': 1,
        'risk_profile': 'defined',
        'price_effect': 'by action',
    },
    StrategyType.VERTICAL.value: {
        'display_name': 'Vertical Spread',
        'legs': 2,
        'risk_profile': 'defined',
        'price_effect': 'by strikes',
    },
    StrategyType.STRADDLE.value: {
        'display_name': 'Straddle',
        'legs': 2,
        'risk_profile': 'undefined',
        'price_effect': 'by action',
    },
    StrategyType.STRANGLE.value: {
        'display_name': 'Strangle',
        'legs': 2,
        'risk_profile': 'undefined',
        'price_effect': 'by action',
    },
    StrategyType.IRON_CONDOR.value: {
        'display_name': 'Iron Condor',
        'legs': 4,
        'risk_profile': 'defined',
        'price_effect': PriceEffect.CREDIT.value,
    },
    StrategyType.BUTTERFLY.value: {
        'display_name': 'Butterfly',
        'legs': 3,
        'risk_profile': 'defined',
        'price_effect': PriceEffect.DEBIT.value,
    },
    StrategyType.IRON_BUTTERFLY.value: {
        'display_name': 'Iron Butterfly',
        'legs': 4,
        'risk_profile': 'defined',
        'price_effect': PriceEffect.CREDIT.value,
    },
    StrategyType.CALENDAR.value: {
        'display_name': 'Calendar Spread',
        'legs': 2,
        'risk_profile': 'defined',
        'price_effect': PriceEffect.DEBIT.value,
    },
    StrategyType.DIAGONAL.value: {
        'display_name': 'Diagonal Spread',
        'legs': 2,
        'risk_profile': 'defined',
        'price_effect': PriceEffect.DEBIT.value,
    },
}


# ---------------------------------------------------------------------------
# Descriptor normalisation
# ---------------------------------------------------------------------------

_REQUIRED_ATTRS = ('symbol', 'strike_price', 'expiration_date', 'option_type')


@dataclass(frozen=True)
class _Contract:
    symbol: str
    underlying_symbol: str
    strike: Decimal
    expiration: date
    option_type: OptionType
    instrument_type: InstrumentType
    mark: Optional[Decimal]


def _normalize(option: Any) -> _Contract:
    """Validate a descriptor and read it into a _Contract"""
    if option is None:
        raise InvalidOptionError("Option cannot be None")

    missing = [attr for attr in _REQUIRED_ATTRS if not hasattr(option, attr)]
    if missing:
        raise InvalidOptionError(f"Invalid option descriptor {type(option).__name__}: missing {', '.join(missing)}")

    symbol = option.symbol
    if not symbol:
        raise InvalidOptionError("Option symbol must not be empty")

    expired = getattr(option, 'expired', False)
    if callable(expired):
        expired = expired()
    if expired:
        raise InvalidOptionError(f"Option {symbol} is expired")

    try:
        option_type = OptionType.parse(option.option_type)
        strike = Decimal(str(option.strike_price))
    except (ValueError, InvalidOperation) as e:
        raise InvalidOptionError(f"Option {symbol} is malformed: {e}") from e

    expiration = option.expiration_date
    if isinstance(expiration, datetime):
        expiration = expiration.date()
    if not isinstance(expiration, date):
        raise InvalidOptionError(f"Option {symbol} has no valid expiration date")

    underlying = getattr(option, 'underlying_symbol', None) or symbol[:6].strip()

    instrument_type = getattr(option, 'instrument_type', None)
    if not isinstance(instrument_type, InstrumentType) or not instrument_type.is_option:
        instrument_type = InstrumentType.EQUITY_OPTION

    mark = getattr(option, 'mark', None)
    if mark is not None:
        mark = Decimal(str(mark))

    return _Contract(
        symbol=symbol,
        underlying_symbol=underlying,
        strike=strike,
        expiration=expiration,
        option_type=option_type,
        instrument_type=instrument_type,
        mark=mark,
    )


class StrategyBuilder:
    """Pure construction of option orders from option descriptors"""

    # ========================================================================
    # Single-leg orders
    # ========================================================================

    def buy_call(self, option, quantity, price=None, time_in_force=TimeInForce.DAY,
                 position_effect: Optional[PositionEffect] = None) -> Order:
        return self._single(option, OptionType.CALL, OrderAction.BUY_TO_OPEN, quantity, price, time_in_force,
                            position_effect)

    def sell_call(self, option, quantity, price=None, time_in_force=TimeInForce.DAY,
                  position_effect: Optional[PositionEffect] = None) -> Order:
        return self._single(option, OptionType.CALL, OrderAction.SELL_TO_OPEN, quantity, price, time_in_force,
                            position_effect)

    def buy_put(self, option, quantity, price=None, time_in_force=TimeInForce.DAY,
                position_effect: Optional[PositionEffect] = None) -> Order:
        return self._single(option, OptionType.PUT, OrderAction.BUY_TO_OPEN, quantity, price, time_in_force,
                            position_effect)

    def sell_put(self, option, quantity, price=None, time_in_force=TimeInForce.DAY,
                 position_effect: Optional[PositionEffect] = None) -> Order:
        return self._single(option, OptionType.PUT, OrderAction.SELL_TO_OPEN, quantity, price, time_in_force,
                            position_effect)

    def close_position(self, option, quantity: int, price=None, time_in_force=TimeInForce.DAY) -> Order:
        """
        Close an existing position.

        Positive quantity closes a long position (Sell to Close), negative
        closes a short one (Buy to Close).
        """
        contract = _normalize(option)
        if quantity == 0:
            raise OrderValidationError("Quantity to close must not be zero")
        action = OrderAction.SELL_TO_CLOSE if quantity > 0 else OrderAction.BUY_TO_CLOSE
        legs = [self._leg(contract, abs(quantity), action, position_effect=PositionEffect.CLOSING)]
        return self._order(legs, StrategyType.SINGLE, price, time_in_force, self._by_first_action(legs))

    def _single(self, option, expected_type, action, quantity, price, time_in_force, position_effect) -> Order:
        contract = _normalize(option)
        if contract.option_type != expected_type:
            kind = "call" if expected_type == OptionType.CALL else "put"
            raise InvalidStrategyError(f"Option {contract.symbol} is not a {kind}")
        legs = [self._leg(contract, quantity, action, position_effect=position_effect)]
        return self._order(legs, StrategyType.SINGLE, price, time_in_force, self._by_first_action(legs))

    # ========================================================================
    # Two-leg strategies
    # ========================================================================

    def vertical_spread(self, long_option, short_option, quantity, price=None,
                        time_in_force=TimeInForce.DAY) -> Order:
        """Buy long_option, sell short_option: same type and expiration, different strikes"""
        long_c, short_c = _normalize(long_option), _normalize(short_option)

        self._require_same_type([long_c, short_c])
        self._require_same_expiration([long_c, short_c])
        self._require_same_underlying([long_c, short_c])
        if long_c.strike == short_c.strike:
            raise InvalidStrategyError("Vertical spread requires different strike prices")

        legs = [
            self._leg(long_c, quantity, OrderAction.BUY_TO_OPEN),
            self._leg(short_c, quantity, OrderAction.SELL_TO_OPEN),
        ]
        # Debit when the long leg is the more expensive strike
        if long_c.option_type == OptionType.CALL:
            debit = long_c.strike < short_c.strike
        else:
            debit = long_c.strike > short_c.strike
        effect = PriceEffect.DEBIT if debit else PriceEffect.CREDIT
        return self._order(legs, StrategyType.VERTICAL, price, time_in_force, effect)

    def straddle(self, put_option, call_option, quantity, price=None,
                 action: OrderAction = OrderAction.BUY_TO_OPEN, time_in_force=TimeInForce.DAY) -> Order:
        """Put and call at the same strike and expiration, both legs take `action`"""
        put_c, call_c = _normalize(put_option), _normalize(call_option)

        self._require_put_and_call(put_c, call_c, "Straddle")
        self._require_same_expiration([put_c, call_c])
        self._require_same_underlying([put_c, call_c])
        if put_c.strike != call_c.strike:
            raise InvalidStrategyError("Put and call must have same strike price for straddle")

        legs = [self._leg(put_c, quantity, action), self._leg(call_c, quantity, action)]
        return self._order(legs, StrategyType.STRADDLE, price, time_in_force, self._by_first_action(legs))

    def strangle(self, put_option, call_option, quantity, price=None,
                 action: OrderAction = OrderAction.BUY_TO_OPEN, time_in_force=TimeInForce.DAY) -> Order:
        """Put and call at different strikes, same expiration, both legs take `action`"""
        put_c, call_c = _normalize(put_option), _normalize(call_option)

        self._require_put_and_call(put_c, call_c, "Strangle")
        self._require_same_expiration([put_c, call_c])
        self._require_same_underlying([put_c, call_c])
        if put_c.strike == call_c.strike:
            raise InvalidStrategyError("Strangle requires different strike prices (use straddle for same strikes)")

        legs = [self._leg(put_c, quantity, action), self._leg(call_c, quantity, action)]
        return self._order(legs, StrategyType.STRANGLE, price, time_in_force, self._by_first_action(legs))

    def calendar_spread(self, short_option, long_option, quantity, price=None,
                        time_in_force=TimeInForce.DAY) -> Order:
        """Sell the near expiration, buy the far one, same strike"""
        short_c, long_c = _normalize(short_option), _normalize(long_option)

        self._require_same_type([short_c, long_c])
        self._require_same_underlying([short_c, long_c])
        if short_c.strike != long_c.strike:
            raise InvalidStrategyError("Options must have same strike price for calendar spread")
        self._require_short_expires_first(short_c, long_c, "calendar spread")

        legs = [
            self._leg(short_c, quantity, OrderAction.SELL_TO_OPEN),
            self._leg(long_c, quantity, OrderAction.BUY_TO_OPEN),
        ]
        return self._order(legs, StrategyType.CALENDAR, price, time_in_force, PriceEffect.DEBIT)

    def diagonal_spread(self, short_option, long_option, quantity, price=None,
                        time_in_force=TimeInForce.DAY) -> Order:
        """Sell the near expiration, buy the far one, different strikes"""
        short_c, long_c = _normalize(short_option), _normalize(long_option)

        self._require_same_type([short_c, long_c])
        self._require_same_underlying([short_c, long_c])
        if short_c.strike == long_c.strike:
            raise InvalidStrategyError("Options must have different strike prices for diagonal spread")
        self._require_short_expires_first(short_c, long_c, "diagonal spread")

        legs = [
            self._leg(short_c, quantity, OrderAction.SELL_TO_OPEN),
            self._leg(long_c, quantity, OrderAction.BUY_TO_OPEN),
        ]
        return self._order(legs, StrategyType.DIAGONAL, price, time_in_force, PriceEffect.DEBIT)

    # ========================================================================
    # Three- and four-leg strategies
    # ========================================================================

    def butterfly_spread(self, long_low, short_middle, long_high, quantity, price=None,
                         time_in_force=TimeInForce.DAY) -> Order:
        """1-2-1 butterfly: buy the wings, sell twice the body"""
        low, mid, high = _normalize(long_low), _normalize(short_middle), _normalize(long_high)
        contracts = [low, mid, high]

        self._require_same_type(contracts)
        self._require_same_expiration(contracts)
        self._require_same_underlying(contracts)
        if not low.strike < mid.strike:
            raise InvalidStrategyError("Low strike must be lower than middle strike")
        if not mid.strike < high.strike:
            raise InvalidStrategyError("Middle strike must be lower than high strike")
        self._require_equal_wings(mid.strike - low.strike, high.strike - mid.strike)

        legs = [
            self._leg(low, quantity, OrderAction.BUY_TO_OPEN),
            self._leg(mid, quantity * 2, OrderAction.SELL_TO_OPEN, ratio=2),
            self._leg(high, quantity, OrderAction.BUY_TO_OPEN),
        ]
        return self._order(legs, StrategyType.BUTTERFLY, price, time_in_force, PriceEffect.DEBIT)

    def iron_condor(self, put_short, put_long, call_short, call_long, quantity, price=None,
                    time_in_force=TimeInForce.DAY) -> Order:
        """Strikes ordered long put < short put < short call < long call"""
        ps, pl = _normalize(put_short), _normalize(put_long)
        cs, cl = _normalize(call_short), _normalize(call_long)
        contracts = [ps, pl, cs, cl]

        if ps.option_type != OptionType.PUT or pl.option_type != OptionType.PUT:
            raise InvalidStrategyError("Iron condor put legs must be puts")
        if cs.option_type != OptionType.CALL or cl.option_type != OptionType.CALL:
            raise InvalidStrategyError("Iron condor call legs must be calls")
        self._require_same_expiration(contracts)
        self._require_same_underlying(contracts)
        if not pl.strike < ps.strike:
            raise InvalidStrategyError("Long put strike must be lower than short put strike")
        if not ps.strike < cs.strike:
            raise InvalidStrategyError("Short put strike must be lower than short call strike")
        if not cs.strike < cl.strike:
            raise InvalidStrategyError("Long call strike must be higher than short call strike")

        legs = [
            self._leg(ps, quantity, OrderAction.SELL_TO_OPEN),
            self._leg(pl, quantity, OrderAction.BUY_TO_OPEN),
            self._leg(cs, quantity, OrderAction.SELL_TO_OPEN),
            self._leg(cl, quantity, OrderAction.BUY_TO_OPEN),
        ]
        return self._order(legs, StrategyType.IRON_CONDOR, price, time_in_force, PriceEffect.CREDIT)

    def iron_butterfly(self, short_call, long_call, short_put, long_put, quantity, price=None,
                       time_in_force=TimeInForce.DAY) -> Order:
        """Short call and put share the center strike, wings equally wide"""
        sc, lc = _normalize(short_call), _normalize(long_call)
        sp, lp = _normalize(short_put), _normalize(long_put)
        contracts = [sc, lc, sp, lp]

        if sc.option_type != OptionType.CALL or lc.option_type != OptionType.CALL:
            raise InvalidStrategyError("Iron butterfly call legs must be calls")
        if sp.option_type != OptionType.PUT or lp.option_type != OptionType.PUT:
            raise InvalidStrategyError("Iron butterfly put legs must be puts")
        self._require_same_expiration(contracts)
        self._require_same_underlying(contracts)
        if sc.strike != sp.strike:
            raise InvalidStrategyError("Short call and short put must have same strike price (center strike)")
        if not lc.strike > sc.strike:
            raise InvalidStrategyError("Long call strike must be higher than short call strike")
        if not lp.strike < sp.strike:
            raise InvalidStrategyError("Long put strike must be lower than short put strike")
        self._require_equal_wings(sp.strike - lp.strike, lc.strike - sc.strike)

        legs = [
            self._leg(sc, quantity, OrderAction.SELL_TO_OPEN),
            self._leg(lc, quantity, OrderAction.BUY_TO_OPEN),
            self._leg(sp, quantity, OrderAction.SELL_TO_OPEN),
            self._leg(lp, quantity, OrderAction.BUY_TO_OPEN),
        ]
        return self._order(legs, StrategyType.IRON_BUTTERFLY, price, time_in_force, PriceEffect.CREDIT)

    # ========================================================================
    # Rule checks
    # ========================================================================

    @staticmethod
    def _require_same_type(contracts: Sequence[_Contract]) -> None:
        if len({c.option_type for c in contracts}) != 1:
            raise InvalidStrategyError("Options must be same type (all calls or all puts)")

    @staticmethod
    def _require_same_expiration(contracts: Sequence[_Contract]) -> None:
        if len({c.expiration for c in contracts}) != 1:
            raise InvalidStrategyError("All options must have same expiration date")

    @staticmethod
    def _require_same_underlying(contracts: Sequence[_Contract]) -> None:
        if len({c.underlying_symbol for c in contracts}) != 1:
            raise InvalidStrategyError("All options must have same underlying symbol")

    @staticmethod
    def _require_put_and_call(put_c: _Contract, call_c: _Contract, name: str) -> None:
        if put_c.option_type != OptionType.PUT or call_c.option_type != OptionType.CALL:
            raise InvalidStrategyError(f"{name} requires one put and one call")

    @staticmethod
    def _require_short_expires_first(short_c: _Contract, long_c: _Contract, name: str) -> None:
        if short_c.expiration == long_c.expiration:
            raise InvalidStrategyError(f"Expirations must differ for {name}")
        if short_c.expiration > long_c.expiration:
            raise InvalidStrategyError(f"Short leg must expire before long leg for {name}")

    @staticmethod
    def _require_equal_wings(lower: Decimal, upper: Decimal) -> None:
        if lower != upper:
            raise InvalidStrategyError(f"Wing widths must be equal (lower: {lower}, upper: {upper})")

    # ========================================================================
    # Construction
    # ========================================================================

    @staticmethod
    def _leg(contract: _Contract, quantity, action: OrderAction, ratio: int = 1,
             position_effect: Optional[PositionEffect] = None) -> OrderLeg:
        return OrderLeg(
            action=action,
            symbol=contract.symbol,
            quantity=quantity,
            instrument_type=contract.instrument_type,
            position_effect=position_effect,
            ratio_quantity=ratio,
            unit_price=contract.mark,
            underlying_symbol=contract.underlying_symbol,
        )

    @staticmethod
    def _by_first_action(legs: List[OrderLeg]) -> PriceEffect:
        return PriceEffect.DEBIT if legs[0].is_buy else PriceEffect.CREDIT

    @staticmethod
    def _order(legs: List[OrderLeg], strategy: StrategyType, price, time_in_force: TimeInForce,
               structural_effect: PriceEffect) -> Order:
        entry = STRATEGY_CATALOG[strategy.value]
        if len(legs) != entry['legs']:
            raise InvalidStrategyError(
                f"{entry['display_name']} requires {entry['legs']} legs, got {len(legs)}"
            )

        # Marks on every leg let the order derive its own effect from cash flow
        priced = all(leg.unit_price is not None for leg in legs)
        order = Order(
            order_type=OrderType.LIMIT if price is not None else OrderType.MARKET,
            legs=tuple(legs),
            time_in_force=time_in_force,
            price=price,
            price_effect=None if priced else structural_effect,
            strategy=strategy,
            underlying_symbol=legs[0].underlying_symbol,
        )
        logger.debug(
            f"Built {entry['display_name']} on {order.underlying_symbol}: "
            f"{len(legs)} legs, {entry['risk_profile']} risk, {order.effective_price_effect.value}"
        )
        return order
