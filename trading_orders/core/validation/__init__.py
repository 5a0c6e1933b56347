"""
Validation module for pre-submission order checks.
"""

from trading_orders.core.validation.tick_sizes import TickSizeEntry, TickSizeSchedule

__all__ = [
    "TickSizeEntry",
    "TickSizeSchedule",
]
