"""
Live Order Snapshots - broker-side order state

LiveOrder is an immutable snapshot of an order as the broker reports it.
It changes only by re-fetching; nothing here mutates remote state.

ORDER STATUS MACHINE:

    Received -> {Routed, In Flight, Contingent} -> Live
    Live -> {Cancel Requested, Replace Requested}
    {submission, working} -> {Filled, Cancelled, Rejected, Expired, Removed}

    Received/Routed/In Flight/Contingent  = SUBMISSION phase
    Live/Cancel Requested/Replace Requested = WORKING phase
    Filled/Cancelled/Rejected/Expired/Removed = TERMINAL (no further transitions)
    anything else from the broker = Unknown (raw string kept, no transitions)
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import logging

from trading_orders.core.models.buying_power import BuyingPowerEffect
from trading_orders.core.models.orders import (
    InstrumentType, OrderAction, OrderType, PositionEffect, PriceEffect, TimeInForce, to_decimal,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Status state machine
# ============================================================================

class OrderPhase(Enum):
    SUBMISSION = "submission"
    WORKING = "working"
    TERMINAL = "terminal"
    UNKNOWN = "unknown"


class OrderStatus(Enum):
    """Broker order status"""
    RECEIVED = "Received"
    ROUTED = "Routed"
    IN_FLIGHT = "In Flight"
    CONTINGENT = "Contingent"
    LIVE = "Live"
    CANCEL_REQUESTED = "Cancel Requested"
    REPLACE_REQUESTED = "Replace Requested"
    FILLED = "Filled"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"
    EXPIRED = "Expired"
    REMOVED = "Removed"
    UNKNOWN = "Unknown"

    @property
    def phase(self) -> OrderPhase:
        return _PHASES[self]

    @property
    def is_submission(self) -> bool:
        return self.phase == OrderPhase.SUBMISSION

    @property
    def is_working(self) -> bool:
        return self.phase == OrderPhase.WORKING

    @property
    def is_terminal(self) -> bool:
        return self.phase == OrderPhase.TERMINAL

    @property
    def is_cancellable(self) -> bool:
        return self == OrderStatus.LIVE

    @property
    def is_editable(self) -> bool:
        return self == OrderStatus.LIVE

    def allowed_transitions(self) -> FrozenSet['OrderStatus']:
        return _TRANSITIONS[self]

    def can_transition_to(self, other: 'OrderStatus') -> bool:
        return other in _TRANSITIONS[self]

    @classmethod
    def parse(cls, value: Any) -> 'OrderStatus':
        """Strict parse for caller-supplied statuses; UNKNOWN is never accepted"""
        if isinstance(value, OrderStatus) and value != OrderStatus.UNKNOWN:
            return value
        try:
            status = cls(value)
        except ValueError:
            status = OrderStatus.UNKNOWN
        if status == OrderStatus.UNKNOWN:
            raise ValueError(f"Unknown order status: {value!r}")
        return status

    @classmethod
    def from_broker(cls, value: Any) -> 'OrderStatus':
        """Lenient parse for broker bodies; unrecognised statuses become UNKNOWN"""
        try:
            return cls.parse(value)
        except ValueError:
            logger.warning(f"Unrecognized order status from broker: {value!r}")
            return OrderStatus.UNKNOWN


_PHASES = {
    OrderStatus.RECEIVED: OrderPhase.SUBMISSION,
    OrderStatus.ROUTED: OrderPhase.SUBMISSION,
    OrderStatus.IN_FLIGHT: OrderPhase.SUBMISSION,
    OrderStatus.CONTINGENT: OrderPhase.SUBMISSION,
    OrderStatus.LIVE: OrderPhase.WORKING,
    OrderStatus.CANCEL_REQUESTED: OrderPhase.WORKING,
    OrderStatus.REPLACE_REQUESTED: OrderPhase.WORKING,
    OrderStatus.FILLED: OrderPhase.TERMINAL,
    OrderStatus.CANCELLED: OrderPhase.TERMINAL,
    OrderStatus.REJECTED: OrderPhase.TERMINAL,
    OrderStatus.EXPIRED: OrderPhase.TERMINAL,
    OrderStatus.REMOVED: OrderPhase.TERMINAL,
    OrderStatus.UNKNOWN: OrderPhase.UNKNOWN,
}

_TERMINAL = frozenset(s for s, p in _PHASES.items() if p == OrderPhase.TERMINAL)

_TRANSITIONS = {
    OrderStatus.RECEIVED: frozenset({
        OrderStatus.ROUTED, OrderStatus.IN_FLIGHT, OrderStatus.CONTINGENT, OrderStatus.LIVE,
    }) | _TERMINAL,
    OrderStatus.ROUTED: frozenset({OrderStatus.IN_FLIGHT, OrderStatus.LIVE}) | _TERMINAL,
    OrderStatus.IN_FLIGHT: frozenset({OrderStatus.LIVE}) | _TERMINAL,
    OrderStatus.CONTINGENT: frozenset({OrderStatus.ROUTED, OrderStatus.LIVE}) | _TERMINAL,
    OrderStatus.LIVE: frozenset({OrderStatus.CANCEL_REQUESTED, OrderStatus.REPLACE_REQUESTED}) | _TERMINAL,
    OrderStatus.CANCEL_REQUESTED: frozenset({OrderStatus.LIVE}) | _TERMINAL,
    OrderStatus.REPLACE_REQUESTED: frozenset({OrderStatus.LIVE}) | _TERMINAL,
    **{s: frozenset() for s in _TERMINAL},
    OrderStatus.UNKNOWN: frozenset(),
}


# ============================================================================
# Parsing helpers
# ============================================================================

def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(Decimal(str(value)))


def _parse_enum(enum_cls, value: Any):
    """Lenient enum parse for descriptive fields; unknown values stay None"""
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug(f"Unrecognized {enum_cls.__name__} value from broker: {value!r}")
        return None


# ============================================================================
# Snapshots
# ============================================================================

@dataclass(frozen=True)
class Fill:
    """Single execution against a leg"""
    fill_id: Optional[str] = None
    quantity: int = 0
    fill_price: Optional[Decimal] = None
    filled_at: Optional[datetime] = None
    destination_venue: Optional[str] = None
    ext_exec_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Fill':
        return cls(
            fill_id=data.get('fill-id'),
            quantity=_parse_int(data.get('quantity')) or 0,
            fill_price=to_decimal(data.get('fill-price'), 'fill-price'),
            filled_at=_parse_time(data.get('filled-at')),
            destination_venue=data.get('destination-venue'),
            ext_exec_id=data.get('ext-exec-id'),
        )


@dataclass(frozen=True)
class LiveOrderLeg:
    symbol: str
    quantity: Optional[int] = None
    remaining_quantity: Optional[int] = None
    action: Optional[OrderAction] = None
    instrument_type: Optional[InstrumentType] = None
    position_effect: Optional[PositionEffect] = None
    ratio_quantity: Optional[int] = None
    fills: Tuple[Fill, ...] = ()

    @property
    def filled_quantity(self) -> int:
        """
        quantity - remaining when the broker reports remaining quantity,
        otherwise the sum of fill quantities.
        """
        if self.quantity is not None and self.remaining_quantity is not None:
            return self.quantity - self.remaining_quantity
        return sum(f.quantity for f in self.fills)

    @property
    def unfilled_quantity(self) -> int:
        if self.remaining_quantity is not None:
            return self.remaining_quantity
        if self.quantity is None:
            return 0
        return max(0, self.quantity - self.filled_quantity)

    @property
    def is_filled(self) -> bool:
        return self.unfilled_quantity == 0

    @property
    def is_partially_filled(self) -> bool:
        return not self.is_filled and self.filled_quantity > 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'LiveOrderLeg':
        return cls(
            symbol=data.get('symbol', ''),
            quantity=_parse_int(data.get('quantity')),
            remaining_quantity=_parse_int(data.get('remaining-quantity')),
            action=_parse_enum(OrderAction, data.get('action')),
            instrument_type=_parse_enum(InstrumentType, data.get('instrument-type')),
            position_effect=_parse_enum(PositionEffect, data.get('position-effect')),
            ratio_quantity=_parse_int(data.get('ratio-quantity')),
            fills=tuple(Fill.from_api(f) for f in data.get('fills') or []),
        )


@dataclass(frozen=True)
class LiveOrder:
    """Immutable broker order snapshot"""
    id: str
    status: OrderStatus
    account_number: Optional[str] = None
    cancellable: bool = False
    editable: bool = False
    edited: bool = False
    order_type: Optional[OrderType] = None
    time_in_force: Optional[TimeInForce] = None
    price: Optional[Decimal] = None
    price_effect: Optional[PriceEffect] = None
    stop_trigger: Optional[Decimal] = None
    gtc_date: Optional[date] = None
    underlying_symbol: Optional[str] = None
    reject_reason: Optional[str] = None
    raw_status: Optional[str] = None
    legs: Tuple[LiveOrderLeg, ...] = ()

    received_at: Optional[datetime] = None
    live_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    terminal_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_cancellable(self) -> bool:
        return self.cancellable and self.status.is_cancellable

    @property
    def is_editable(self) -> bool:
        return self.editable and self.status.is_editable

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_working(self) -> bool:
        return self.status == OrderStatus.LIVE

    @property
    def is_filled(self) -> bool:
        return self.status == OrderStatus.FILLED

    @property
    def remaining_quantity(self) -> int:
        return sum(leg.unfilled_quantity for leg in self.legs)

    @property
    def filled_quantity(self) -> int:
        return sum(leg.filled_quantity for leg in self.legs)

    @property
    def is_partially_filled(self) -> bool:
        return any(leg.is_partially_filled for leg in self.legs)

    def find_leg(self, symbol: str) -> Optional[LiveOrderLeg]:
        for leg in self.legs:
            if leg.symbol == symbol:
                return leg
        return None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'LiveOrder':
        return cls(
            id=str(data['id']),
            status=OrderStatus.from_broker(data.get('status')),
            raw_status=data.get('status'),
            account_number=data.get('account-number'),
            cancellable=bool(data.get('cancellable', False)),
            editable=bool(data.get('editable', False)),
            edited=bool(data.get('edited', False)),
            order_type=_parse_enum(OrderType, data.get('order-type')),
            time_in_force=_parse_enum(TimeInForce, data.get('time-in-force')),
            price=to_decimal(data.get('price'), 'price'),
            price_effect=_parse_enum(PriceEffect, data.get('price-effect')),
            stop_trigger=to_decimal(data.get('stop-trigger'), 'stop-trigger'),
            gtc_date=_parse_date(data.get('gtc-date')),
            underlying_symbol=data.get('underlying-symbol'),
            reject_reason=data.get('reject-reason'),
            legs=tuple(LiveOrderLeg.from_api(leg) for leg in data.get('legs') or []),
            received_at=_parse_time(data.get('received-at')),
            live_at=_parse_time(data.get('live-at')),
            filled_at=_parse_time(data.get('filled-at')),
            cancelled_at=_parse_time(data.get('cancelled-at')),
            terminal_at=_parse_time(data.get('terminal-at')),
            updated_at=_parse_time(data.get('updated-at')),
        )


@dataclass(frozen=True)
class OrderResponse:
    """
    Result of a submission, dry-run or replacement.

    Dry runs carry the buying power effect but never an order id.
    """
    order: Optional[LiveOrder] = None
    buying_power_effect: Optional[BuyingPowerEffect] = None
    fee_calculation: Optional[Dict[str, Any]] = None
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    is_dry_run: bool = False

    @property
    def order_id(self) -> Optional[str]:
        return self.order.id if self.order else None

    @property
    def status(self) -> Optional[OrderStatus]:
        return self.order.status if self.order else None

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def with_warnings(self, warnings: List[str]) -> 'OrderResponse':
        return OrderResponse(
            order=self.order,
            buying_power_effect=self.buying_power_effect,
            fee_calculation=self.fee_calculation,
            warnings=tuple(warnings) + self.warnings,
            errors=self.errors,
            is_dry_run=self.is_dry_run,
        )

    @classmethod
    def from_api(cls, data: Dict[str, Any], dry_run: bool = False) -> 'OrderResponse':
        """
        Accepts both the nested shape ({'order': {...}, 'buying-power-effect': {...}})
        and a flat order body.
        """
        data = data or {}
        order_data = data.get('order') if 'order' in data else data

        order = None
        if not dry_run and order_data and order_data.get('id') is not None:
            order = LiveOrder.from_api(order_data)

        bp_data = data.get('buying-power-effect')
        buying_power_effect = BuyingPowerEffect.from_api(bp_data) if isinstance(bp_data, dict) else None

        return cls(
            order=order,
            buying_power_effect=buying_power_effect,
            fee_calculation=data.get('fee-calculation') or data.get('fee-calculation-details'),
            warnings=tuple(_format_message(w) for w in data.get('warnings') or []),
            errors=tuple(_format_message(e) for e in data.get('errors') or []),
            is_dry_run=dry_run,
        )


def _format_message(item: Any) -> str:
    """API warnings/errors are either strings or {'code','message'|'domain','reason'} dicts"""
    if isinstance(item, dict):
        if item.get('message'):
            return f"{item.get('code', 'error')}: {item['message']}"
        if item.get('reason'):
            return f"{item.get('domain', 'error')}: {item['reason']}"
        return str(item)
    return str(item)
