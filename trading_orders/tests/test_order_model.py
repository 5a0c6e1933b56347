"""
Tests for the Order / OrderLeg value objects.

Validates:
- Leg construction invariants (quantity, symbol, ratio, enums)
- Position effect derivation and strict validation
- Order-type / price / stop trigger / GTD rules
- Price effect derivation order
- Wire payload
"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

from trading_orders.core.errors import OrderValidationError
from trading_orders.core.models.orders import (
    AdvancedInstructions, InstrumentType, Order, OrderAction, OrderLeg, OrderType,
    PositionEffect, PriceEffect, StrategyType, TimeInForce, to_decimal,
)


def _leg(action=OrderAction.BUY_TO_OPEN, symbol='AAPL', quantity=100, **kwargs) -> OrderLeg:
    return OrderLeg(action=action, symbol=symbol, quantity=quantity, **kwargs)


class TestOrderLeg:
    """Leg construction."""

    def test_position_effect_derived_from_action(self):
        assert _leg(OrderAction.BUY_TO_OPEN).position_effect == PositionEffect.OPENING
        assert _leg(OrderAction.SELL_TO_OPEN).position_effect == PositionEffect.OPENING
        assert _leg(OrderAction.BUY_TO_CLOSE).position_effect == PositionEffect.CLOSING
        assert _leg(OrderAction.SELL_TO_CLOSE).position_effect == PositionEffect.CLOSING

    def test_auto_position_effect_is_kept(self):
        leg = _leg(position_effect=PositionEffect.AUTO)
        assert leg.position_effect == PositionEffect.AUTO
        assert not leg.contradicts_position_effect

    @pytest.mark.parametrize('quantity', [0, -1, -100])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(OrderValidationError, match='greater than 0'):
            _leg(quantity=quantity)

    def test_empty_symbol_rejected(self):
        with pytest.raises(OrderValidationError, match='symbol'):
            _leg(symbol='   ')

    def test_symbol_whitespace_collapsed(self):
        leg = _leg(symbol='AAPL  240119C00150000')
        assert leg.symbol == 'AAPL 240119C00150000'

    def test_ratio_quantity_must_be_positive(self):
        with pytest.raises(OrderValidationError, match='Ratio'):
            _leg(ratio_quantity=0)

    def test_action_must_be_enum(self):
        with pytest.raises(OrderValidationError, match='Invalid action'):
            _leg(action='Buy to Open')

    def test_fractional_quantity_kept_as_decimal(self):
        leg = _leg(symbol='VOO', quantity=Decimal('0.5'))
        assert leg.quantity == Decimal('0.5')

    def test_integral_decimal_becomes_int(self):
        leg = _leg(quantity=Decimal('10'))
        assert leg.quantity == 10
        assert isinstance(leg.quantity, int)

    def test_signed_quantity(self):
        assert _leg(OrderAction.BUY_TO_OPEN, quantity=3).signed_quantity == 3
        assert _leg(OrderAction.SELL_TO_CLOSE, quantity=3).signed_quantity == -3

    def test_leg_is_frozen(self):
        leg = _leg()
        with pytest.raises(FrozenInstanceError):
            leg.quantity = 5

    def test_cash_flow(self):
        buy = _leg(OrderAction.BUY_TO_OPEN, quantity=2, unit_price=Decimal('1.50'))
        sell = _leg(OrderAction.SELL_TO_OPEN, quantity=2, unit_price=Decimal('1.50'))
        assert buy.cash_flow() == Decimal('-3.00')
        assert sell.cash_flow() == Decimal('3.00')
        assert _leg().cash_flow() is None

    def test_to_api_params(self):
        leg = _leg(instrument_type=InstrumentType.EQUITY_OPTION, symbol='AAPL 240119C00150000', quantity=1)
        assert leg.to_api_params() == {
            'action': 'Buy to Open',
            'symbol': 'AAPL 240119C00150000',
            'quantity': 1,
            'instrument-type': 'Equity Option',
            'position-effect': 'Opening',
        }


class TestOrderConstruction:
    """Order-level invariants."""

    def test_limit_requires_price(self):
        with pytest.raises(OrderValidationError, match='require a price'):
            Order(order_type=OrderType.LIMIT, legs=(_leg(),))

    def test_market_forbids_price(self):
        with pytest.raises(OrderValidationError, match='must not carry a price'):
            Order(order_type=OrderType.MARKET, legs=(_leg(),), price=Decimal('1.00'))

    def test_stop_requires_trigger(self):
        with pytest.raises(OrderValidationError, match='stop trigger'):
            Order(order_type=OrderType.STOP, legs=(_leg(),))

    def test_stop_limit_requires_both(self):
        with pytest.raises(OrderValidationError) as exc:
            Order(order_type=OrderType.STOP_LIMIT, legs=(_leg(),))
        assert len(exc.value.errors) == 2

    def test_stop_limit_valid(self):
        order = Order(order_type=OrderType.STOP_LIMIT, legs=(_leg(),),
                      price=Decimal('149.50'), stop_trigger=Decimal('150.00'))
        assert order.stop_trigger == Decimal('150.00')

    def test_price_must_be_positive(self):
        with pytest.raises(OrderValidationError, match='greater than 0'):
            Order(order_type=OrderType.LIMIT, legs=(_leg(),), price=Decimal('0'))

    def test_needs_at_least_one_leg(self):
        with pytest.raises(OrderValidationError, match='at least one leg'):
            Order(order_type=OrderType.MARKET, legs=())

    def test_gtd_requires_date(self):
        with pytest.raises(OrderValidationError, match='gtc_date'):
            Order(order_type=OrderType.LIMIT, legs=(_leg(),), price=Decimal('1'), time_in_force=TimeInForce.GTD)

    def test_gtc_date_only_for_gtd(self):
        with pytest.raises(OrderValidationError, match='only valid for GTD'):
            Order(order_type=OrderType.LIMIT, legs=(_leg(),), price=Decimal('1'),
                  time_in_force=TimeInForce.GTC, gtc_date=date(2030, 1, 1))

    def test_price_accepts_strings(self):
        order = Order(order_type=OrderType.LIMIT, legs=(_leg(),), price='150.25')
        assert order.price == Decimal('150.25')

    def test_bad_price_string_rejected(self):
        with pytest.raises(OrderValidationError, match='not a number'):
            Order(order_type=OrderType.LIMIT, legs=(_leg(),), price='abc')

    def test_legs_stored_as_tuple(self):
        order = Order(order_type=OrderType.MARKET, legs=[_leg()])
        assert isinstance(order.legs, tuple)

    def test_strategy_legs_share_underlying(self):
        legs = (
            _leg(symbol='AAPL 240119C00150000', underlying_symbol='AAPL'),
            _leg(OrderAction.SELL_TO_OPEN, symbol='MSFT 240119C00400000', underlying_symbol='MSFT'),
        )
        with pytest.raises(OrderValidationError, match='same underlying'):
            Order(order_type=OrderType.MARKET, legs=legs, strategy=StrategyType.VERTICAL)

    def test_strict_position_effect_rejects_contradiction(self):
        leg = _leg(OrderAction.BUY_TO_OPEN, position_effect=PositionEffect.CLOSING)
        with pytest.raises(OrderValidationError, match='contradicts'):
            Order(order_type=OrderType.MARKET, legs=(leg,),
                  advanced_instructions=AdvancedInstructions(strict_position_effect_validation=True))

    def test_contradiction_allowed_without_strict(self):
        leg = _leg(OrderAction.BUY_TO_OPEN, position_effect=PositionEffect.CLOSING)
        order = Order(order_type=OrderType.MARKET, legs=(leg,))
        assert order.legs[0].position_effect == PositionEffect.CLOSING


class TestPriceEffect:
    """effective_price_effect derivation."""

    def test_explicit_override_wins(self):
        order = Order(order_type=OrderType.LIMIT, legs=(_leg(),), price=Decimal('1'),
                      price_effect=PriceEffect.CREDIT)
        assert order.effective_price_effect == PriceEffect.CREDIT

    def test_priced_legs_net_debit(self):
        legs = (
            _leg(OrderAction.BUY_TO_OPEN, symbol='A', quantity=1, unit_price=Decimal('5.00')),
            _leg(OrderAction.SELL_TO_OPEN, symbol='B', quantity=1, unit_price=Decimal('3.00')),
        )
        order = Order(order_type=OrderType.LIMIT, legs=legs, price=Decimal('2.00'))
        assert order.net_cash_flow == Decimal('-2.00')
        assert order.effective_price_effect == PriceEffect.DEBIT

    def test_priced_legs_net_credit(self):
        legs = (
            _leg(OrderAction.BUY_TO_OPEN, symbol='A', quantity=1, unit_price=Decimal('1.00')),
            _leg(OrderAction.SELL_TO_OPEN, symbol='B', quantity=1, unit_price=Decimal('3.00')),
        )
        order = Order(order_type=OrderType.LIMIT, legs=legs, price=Decimal('2.00'))
        assert order.effective_price_effect == PriceEffect.CREDIT

    def test_unpriced_falls_back_to_signed_quantity(self):
        sell = Order(order_type=OrderType.MARKET, legs=(_leg(OrderAction.SELL_TO_CLOSE),))
        buy = Order(order_type=OrderType.MARKET, legs=(_leg(OrderAction.BUY_TO_OPEN),))
        assert sell.effective_price_effect == PriceEffect.CREDIT
        assert buy.effective_price_effect == PriceEffect.DEBIT

    def test_zero_net_quantity_uses_first_leg(self):
        legs = (
            _leg(OrderAction.SELL_TO_OPEN, symbol='A', quantity=1),
            _leg(OrderAction.BUY_TO_OPEN, symbol='B', quantity=1),
        )
        order = Order(order_type=OrderType.MARKET, legs=legs)
        assert order.effective_price_effect == PriceEffect.CREDIT


class TestOrderHelpers:
    """Copy helpers and wire payload."""

    def test_with_price_returns_new_order(self):
        order = Order(order_type=OrderType.LIMIT, legs=(_leg(),), price=Decimal('1.00'))
        repriced = order.with_price(Decimal('1.05'))
        assert repriced.price == Decimal('1.05')
        assert order.price == Decimal('1.00')

    def test_with_legs(self):
        order = Order(order_type=OrderType.MARKET, legs=(_leg(),))
        updated = order.with_legs([_leg(quantity=50)])
        assert updated.legs[0].quantity == 50
        assert order.legs[0].quantity == 100

    def test_total_quantity(self):
        order = Order(order_type=OrderType.MARKET, legs=(_leg(quantity=2), _leg(symbol='B', quantity=3)))
        assert order.total_quantity == 5

    def test_to_api_params_limit(self):
        order = Order(order_type=OrderType.LIMIT, legs=(_leg(),), price=Decimal('150.25'),
                      time_in_force=TimeInForce.GTC)
        params = order.to_api_params()
        assert params['order-type'] == 'Limit'
        assert params['time-in-force'] == 'GTC'
        assert params['price'] == '150.25'
        assert params['price-effect'] == 'Debit'
        assert len(params['legs']) == 1

    def test_to_api_params_market_has_no_price(self):
        params = Order(order_type=OrderType.MARKET, legs=(_leg(),)).to_api_params()
        assert 'price' not in params
        assert 'price-effect' not in params

    def test_to_api_params_optional_fields(self):
        order = Order(
            order_type=OrderType.STOP_LIMIT, legs=(_leg(),), price=Decimal('10'),
            stop_trigger=Decimal('10.50'), time_in_force=TimeInForce.GTD, gtc_date=date(2030, 6, 30),
            advanced_instructions=AdvancedInstructions(strict_position_effect_validation=True),
        )
        params = order.to_api_params()
        assert params['stop-trigger'] == '10.50'
        assert params['gtc-date'] == '2030-06-30'
        assert params['advanced-instructions'] == {'strict-position-effect-validation': True}


class TestToDecimal:

    def test_none_and_empty(self):
        assert to_decimal(None) is None
        assert to_decimal('') is None

    def test_float_goes_through_str(self):
        assert to_decimal(1.1) == Decimal('1.1')
