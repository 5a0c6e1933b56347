"""
Tests for broker order snapshots.

Validates:
- Status phases and the allowed transition table
- Cancellable / editable only while Live
- Filled / remaining quantity accounting
- OrderResponse parsing for nested, flat and dry-run bodies
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from trading_orders.core.models.live_order import (
    Fill, LiveOrder, LiveOrderLeg, OrderPhase, OrderResponse, OrderStatus,
)
from trading_orders.core.models.orders import OrderAction, OrderType, PriceEffect

from conftest import dry_run_body, live_order_body


class TestOrderStatus:

    @pytest.mark.parametrize('status', ['Received', 'Routed', 'In Flight', 'Contingent'])
    def test_submission_phase(self, status):
        assert OrderStatus(status).phase == OrderPhase.SUBMISSION

    @pytest.mark.parametrize('status', ['Live', 'Cancel Requested', 'Replace Requested'])
    def test_working_phase(self, status):
        assert OrderStatus(status).is_working

    @pytest.mark.parametrize('status', ['Filled', 'Cancelled', 'Rejected', 'Expired', 'Removed'])
    def test_terminal_has_no_transitions(self, status):
        terminal = OrderStatus(status)
        assert terminal.is_terminal
        assert terminal.allowed_transitions() == frozenset()

    def test_only_live_is_cancellable_and_editable(self):
        for status in OrderStatus:
            assert status.is_cancellable == (status == OrderStatus.LIVE)
            assert status.is_editable == (status == OrderStatus.LIVE)

    def test_transitions(self):
        assert OrderStatus.RECEIVED.can_transition_to(OrderStatus.LIVE)
        assert OrderStatus.LIVE.can_transition_to(OrderStatus.CANCEL_REQUESTED)
        assert OrderStatus.LIVE.can_transition_to(OrderStatus.FILLED)
        assert OrderStatus.CANCEL_REQUESTED.can_transition_to(OrderStatus.CANCELLED)
        assert not OrderStatus.FILLED.can_transition_to(OrderStatus.LIVE)
        assert not OrderStatus.RECEIVED.can_transition_to(OrderStatus.CANCEL_REQUESTED)

    def test_parse(self):
        assert OrderStatus.parse('In Flight') == OrderStatus.IN_FLIGHT
        assert OrderStatus.parse(OrderStatus.LIVE) == OrderStatus.LIVE

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match='Unknown order status'):
            OrderStatus.parse('Pending')

    def test_parse_refuses_unknown_member(self):
        with pytest.raises(ValueError):
            OrderStatus.parse('Unknown')
        with pytest.raises(ValueError):
            OrderStatus.parse(OrderStatus.UNKNOWN)

    def test_from_broker_is_lenient(self):
        assert OrderStatus.from_broker('Live') == OrderStatus.LIVE
        assert OrderStatus.from_broker('Partially Removed') == OrderStatus.UNKNOWN
        assert OrderStatus.from_broker(None) == OrderStatus.UNKNOWN

    def test_unknown_has_its_own_phase(self):
        assert OrderStatus.UNKNOWN.phase == OrderPhase.UNKNOWN
        assert OrderStatus.UNKNOWN.allowed_transitions() == frozenset()
        assert not OrderStatus.LIVE.can_transition_to(OrderStatus.UNKNOWN)


class TestLiveOrderLeg:

    def test_filled_from_remaining(self):
        leg = LiveOrderLeg(symbol='AAPL', quantity=100, remaining_quantity=50)
        assert leg.filled_quantity == 50
        assert leg.unfilled_quantity == 50
        assert leg.is_partially_filled

    def test_filled_from_fills_when_remaining_missing(self):
        leg = LiveOrderLeg(symbol='AAPL', quantity=100, fills=(Fill(quantity=30), Fill(quantity=20)))
        assert leg.filled_quantity == 50
        assert leg.unfilled_quantity == 50

    def test_fully_filled(self):
        leg = LiveOrderLeg(symbol='AAPL', quantity=10, remaining_quantity=0)
        assert leg.is_filled
        assert not leg.is_partially_filled

    def test_from_api_with_fills(self):
        leg = LiveOrderLeg.from_api({
            'symbol': 'AAPL',
            'quantity': '10',
            'remaining-quantity': '4',
            'action': 'Sell to Close',
            'fills': [{
                'fill-id': 'f1',
                'quantity': '6',
                'fill-price': '151.10',
                'filled-at': '2024-03-13T15:30:00.000+00:00',
            }],
        })
        assert leg.action == OrderAction.SELL_TO_CLOSE
        assert leg.fills[0].fill_price == Decimal('151.10')
        assert leg.fills[0].filled_at == datetime(2024, 3, 13, 15, 30, tzinfo=timezone.utc)
        assert leg.filled_quantity == 6

    def test_unknown_action_is_none(self):
        leg = LiveOrderLeg.from_api({'symbol': 'AAPL', 'action': 'Exercise'})
        assert leg.action is None


class TestLiveOrder:

    def test_from_api(self):
        order = LiveOrder.from_api(live_order_body(remaining=40))
        assert order.id == '1001'
        assert order.status == OrderStatus.LIVE
        assert order.order_type == OrderType.LIMIT
        assert order.price == Decimal('150.00')
        assert order.price_effect == PriceEffect.DEBIT
        assert order.filled_quantity == 60
        assert order.remaining_quantity == 40
        assert order.is_partially_filled

    def test_numeric_id_becomes_string(self):
        body = live_order_body()
        body['id'] = 1001
        assert LiveOrder.from_api(body).id == '1001'

    def test_cancellable_needs_flag_and_live(self):
        assert LiveOrder.from_api(live_order_body()).is_cancellable
        assert not LiveOrder.from_api(live_order_body(cancellable=False)).is_cancellable
        assert not LiveOrder.from_api(live_order_body(status='Routed')).is_cancellable

    def test_editable_needs_flag_and_live(self):
        assert LiveOrder.from_api(live_order_body()).is_editable
        assert not LiveOrder.from_api(live_order_body(editable=False)).is_editable
        assert not LiveOrder.from_api(live_order_body(status='Replace Requested')).is_editable

    def test_filled(self):
        order = LiveOrder.from_api(live_order_body(status='Filled', remaining=0))
        assert order.is_filled
        assert order.is_terminal
        assert not order.is_working

    def test_timestamps_parsed(self):
        body = live_order_body()
        body['received-at'] = '2024-03-13T14:00:00Z'
        order = LiveOrder.from_api(body)
        assert order.received_at == datetime(2024, 3, 13, 14, 0, tzinfo=timezone.utc)
        assert order.filled_at is None

    def test_find_leg(self):
        order = LiveOrder.from_api(live_order_body())
        assert order.find_leg('AAPL').quantity == 100
        assert order.find_leg('MSFT') is None

    def test_unrecognized_status_kept_as_unknown(self):
        order = LiveOrder.from_api(live_order_body(status='Partially Removed'))
        assert order.status == OrderStatus.UNKNOWN
        assert order.raw_status == 'Partially Removed'
        assert not order.is_cancellable
        assert not order.is_editable
        assert not order.is_terminal

    def test_raw_status_kept_for_known_status(self):
        assert LiveOrder.from_api(live_order_body(status='Routed')).raw_status == 'Routed'


class TestOrderResponse:

    def test_nested_submission(self):
        body = dry_run_body()
        body['order'] = live_order_body(order_id='2002', status='Received')
        response = OrderResponse.from_api(body)
        assert response.order_id == '2002'
        assert response.status == OrderStatus.RECEIVED
        assert response.buying_power_effect.current_buying_power == Decimal('10000.00')
        assert not response.is_dry_run

    def test_flat_order_body(self):
        response = OrderResponse.from_api(live_order_body(order_id='3003'))
        assert response.order_id == '3003'
        assert response.buying_power_effect is None

    def test_dry_run_never_has_order(self):
        body = dry_run_body()
        body['order']['id'] = '9999'
        response = OrderResponse.from_api(body, dry_run=True)
        assert response.is_dry_run
        assert response.order_id is None
        assert response.status is None

    def test_messages_formatted(self):
        body = dry_run_body(
            warnings=[{'code': 'tif_next_valid_session', 'message': 'Order will be routed next session'}, 'plain'],
            errors=[{'domain': 'order', 'reason': 'margin_check_failed'}],
        )
        response = OrderResponse.from_api(body, dry_run=True)
        assert response.warnings == ('tif_next_valid_session: Order will be routed next session', 'plain')
        assert response.errors == ('order: margin_check_failed',)
        assert response.has_errors

    def test_with_warnings_prepends(self):
        response = OrderResponse(warnings=('broker',))
        updated = response.with_warnings(['local'])
        assert updated.warnings == ('local', 'broker')
        assert response.warnings == ('broker',)

    def test_empty_body(self):
        response = OrderResponse.from_api({})
        assert response.order is None
        assert not response.has_errors
