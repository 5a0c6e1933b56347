"""
Table formatting for order previews in logs.
"""

from decimal import Decimal
from typing import Any, Iterable, List, Optional

from tabulate import tabulate

from trading_orders.core.models.live_order import LiveOrder
from trading_orders.core.models.orders import Order


def format_money(value: Optional[Decimal]) -> str:
    """Format as currency."""
    if value is None:
        return "-"
    return f"${float(value):,.2f}"


def table(data: List[List[Any]], headers: List[str], title: str = None, tablefmt: str = "simple") -> str:
    """Tabulate rows with numbers right-aligned, with an optional title line."""
    rendered = tabulate(data, headers=headers, tablefmt=tablefmt, numalign="right", stralign="left")
    if title:
        return f"{title}\n{rendered}"
    return rendered


def format_order(order: Order) -> str:
    """One row per leg, order-level attributes in the title"""
    title = f"{order.order_type.value} {order.time_in_force.value}"
    if order.strategy is not None:
        title += f" {order.strategy.value}"
    if order.price is not None:
        title += f" @ {order.price} {order.effective_price_effect.value}"
    if order.stop_trigger is not None:
        title += f" stop {order.stop_trigger}"

    rows = [
        [leg.action.value, leg.quantity, leg.symbol, leg.instrument_type.value, leg.position_effect.value]
        for leg in order.legs
    ]
    return table(rows, headers=["Action", "Qty", "Symbol", "Type", "Effect"], title=title)


def format_live_orders(orders: Iterable[LiveOrder]) -> str:
    rows = []
    for o in orders:
        rows.append([
            o.id,
            o.raw_status or o.status.value,
            o.underlying_symbol or "-",
            o.order_type.value if o.order_type else "-",
            format_money(o.price),
            o.filled_quantity,
            o.remaining_quantity,
        ])
    return table(rows, headers=["ID", "Status", "Underlying", "Type", "Price", "Filled", "Remaining"])
