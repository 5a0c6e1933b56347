"""
Tick size schedules.

A schedule is an ordered list of (threshold, increment) entries. An entry's
increment applies to prices strictly below its threshold; the final entry has
no threshold and covers everything above.

    [{'threshold': '3.00', 'value': '0.01'}, {'value': '0.05'}]
        2.37 -> on grid (0.01 increments)
        3.12 -> off grid, nearest valid price 3.10
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Tuple

from trading_orders.core.models.orders import to_decimal


@dataclass(frozen=True)
class TickSizeEntry:
    increment: Decimal
    threshold: Optional[Decimal] = None

    def applies_to(self, price: Decimal) -> bool:
        return self.threshold is None or price < self.threshold


@dataclass(frozen=True)
class TickSizeSchedule:
    entries: Tuple[TickSizeEntry, ...]

    def __post_init__(self):
        entries = tuple(self.entries)
        if not entries:
            raise ValueError("Tick size schedule needs at least one entry")
        for entry in entries:
            if entry.increment <= 0:
                raise ValueError(f"Tick increment must be positive, got {entry.increment}")
        # thresholded entries ascending, open-ended entry last
        entries = tuple(sorted(
            entries,
            key=lambda e: (e.threshold is None, e.threshold if e.threshold is not None else Decimal(0)),
        ))
        object.__setattr__(self, 'entries', entries)

    @classmethod
    def flat(cls, increment) -> 'TickSizeSchedule':
        return cls(entries=(TickSizeEntry(increment=to_decimal(increment, 'increment')),))

    @classmethod
    def from_api(cls, items: Iterable[Dict[str, Any]]) -> Optional['TickSizeSchedule']:
        """Parse an instrument's 'tick-sizes' / 'option-tick-sizes' list; None when empty"""
        entries = [
            TickSizeEntry(
                increment=to_decimal(item['value'], 'tick value'),
                threshold=to_decimal(item.get('threshold'), 'tick threshold'),
            )
            for item in items or []
        ]
        return cls(entries=tuple(entries)) if entries else None

    @classmethod
    def from_config(cls, items: List[Dict[str, Any]]) -> 'TickSizeSchedule':
        """Parse an order_rules.yaml list of {increment, threshold} mappings"""
        return cls(entries=tuple(
            TickSizeEntry(
                increment=to_decimal(item['increment'], 'increment'),
                threshold=to_decimal(item.get('threshold'), 'threshold'),
            )
            for item in items
        ))

    def increment_for(self, price: Decimal) -> Decimal:
        price = to_decimal(price, 'price')
        for entry in self.entries:
            if entry.applies_to(price):
                return entry.increment
        return self.entries[-1].increment

    def round_price(self, price: Decimal) -> Decimal:
        """Nearest valid price, ties rounded up"""
        price = to_decimal(price, 'price')
        increment = self.increment_for(price)
        ticks = (price / increment).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
        return (ticks * increment).quantize(increment)

    def is_on_grid(self, price: Decimal) -> bool:
        price = to_decimal(price, 'price')
        return price % self.increment_for(price) == 0

    def to_dict(self) -> List[Dict[str, Any]]:
        return [
            {'increment': str(e.increment), 'threshold': str(e.threshold) if e.threshold is not None else None}
            for e in self.entries
        ]
