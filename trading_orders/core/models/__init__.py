"""
Domain models: orders, option descriptors, broker snapshots.
"""

from trading_orders.core.models.orders import (
    AdvancedInstructions,
    InstrumentType,
    OptionType,
    Order,
    OrderAction,
    OrderLeg,
    OrderType,
    PositionEffect,
    PriceEffect,
    StrategyType,
    TimeInForce,
)
from trading_orders.core.models.options import OptionContract, OptionDescriptor
from trading_orders.core.models.buying_power import BuyingPowerEffect, BuyingPowerEvaluator
from trading_orders.core.models.live_order import (
    Fill,
    LiveOrder,
    LiveOrderLeg,
    OrderPhase,
    OrderResponse,
    OrderStatus,
)
from trading_orders.core.models.account import Account, TradingStatus

__all__ = [
    "AdvancedInstructions",
    "InstrumentType",
    "OptionType",
    "Order",
    "OrderAction",
    "OrderLeg",
    "OrderType",
    "PositionEffect",
    "PriceEffect",
    "StrategyType",
    "TimeInForce",
    "OptionContract",
    "OptionDescriptor",
    "BuyingPowerEffect",
    "BuyingPowerEvaluator",
    "Fill",
    "LiveOrder",
    "LiveOrderLeg",
    "OrderPhase",
    "OrderResponse",
    "OrderStatus",
    "Account",
    "TradingStatus",
]
