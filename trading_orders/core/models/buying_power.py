"""
Buying Power Effect - broker's computed impact of an order on trading funds

BuyingPowerEffect is the read-only snapshot returned by a dry-run (or real)
submission. BuyingPowerEvaluator turns it into the numbers the validator and
callers act on: usage percentage, threshold checks, debit/credit direction.

USAGE:
    effect = BuyingPowerEffect.from_api(response['buying-power-effect'])
    evaluator = BuyingPowerEvaluator(effect)
    if evaluator.exceeds_threshold(80):
        print(f"Order uses {evaluator.usage_percentage()}% of buying power")
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Union

from trading_orders.core.models.orders import PriceEffect, to_decimal


PERCENT_QUANTUM = Decimal('0.01')


def _signed(data: Dict[str, Any], key: str) -> Optional[Decimal]:
    """
    Read an amount whose sign may be carried in a sibling '<key>-effect' field.

    The API reports magnitudes with a separate Debit/Credit effect; a Debit
    is a reduction of buying power and becomes negative here.
    """
    value = to_decimal(data.get(key), key)
    if value is None:
        return None
    effect = data.get(f"{key}-effect")
    if effect == PriceEffect.DEBIT.value:
        return -abs(value)
    if effect == PriceEffect.CREDIT.value:
        return abs(value)
    return value


@dataclass(frozen=True)
class BuyingPowerEffect:
    """Immutable buying power effect snapshot"""
    change_in_margin_requirement: Optional[Decimal] = None
    change_in_buying_power: Optional[Decimal] = None
    current_buying_power: Optional[Decimal] = None
    new_buying_power: Optional[Decimal] = None
    isolated_order_margin_requirement: Optional[Decimal] = None
    impact: Optional[Decimal] = None
    effect: Optional[PriceEffect] = None
    is_spread: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'BuyingPowerEffect':
        effect = data.get('effect')
        return cls(
            change_in_margin_requirement=_signed(data, 'change-in-margin-requirement'),
            change_in_buying_power=_signed(data, 'change-in-buying-power'),
            current_buying_power=_signed(data, 'current-buying-power'),
            new_buying_power=_signed(data, 'new-buying-power'),
            isolated_order_margin_requirement=to_decimal(
                data.get('isolated-order-margin-requirement'), 'isolated-order-margin-requirement'
            ),
            impact=to_decimal(data.get('impact'), 'impact'),
            effect=PriceEffect(effect) if effect else None,
            is_spread=bool(data.get('is-spread', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        def _f(v):
            return float(v) if v is not None else None

        return {
            'change_in_margin_requirement': _f(self.change_in_margin_requirement),
            'change_in_buying_power': _f(self.change_in_buying_power),
            'current_buying_power': _f(self.current_buying_power),
            'new_buying_power': _f(self.new_buying_power),
            'impact': _f(self.impact),
            'effect': self.effect.value if self.effect else None,
            'is_spread': self.is_spread,
        }


class BuyingPowerEvaluator:
    """Pure interpretation of a BuyingPowerEffect"""

    def __init__(self, effect: BuyingPowerEffect):
        self.effect = effect

    def usage_percentage(self) -> Decimal:
        """
        |impact (or change)| / current buying power * 100, rounded half-up to 0.01.

        0 when current buying power is zero or missing.
        """
        current = self.effect.current_buying_power
        if current is None or current == 0:
            return Decimal('0.00')

        amount = self.effect.impact
        if amount is None:
            amount = self.effect.change_in_buying_power
        if amount is None:
            return Decimal('0.00')

        pct = abs(amount) / abs(current) * 100
        return pct.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)

    def exceeds_threshold(self, threshold_pct: Union[Decimal, float, int, str]) -> bool:
        """Strictly greater than the threshold"""
        return self.usage_percentage() > Decimal(str(threshold_pct))

    def change_amount(self) -> Decimal:
        """Absolute buying power change, falling back to impact"""
        if self.effect.change_in_buying_power is not None:
            return abs(self.effect.change_in_buying_power)
        if self.effect.impact is not None:
            return abs(self.effect.impact)
        return Decimal('0')

    def is_debit(self) -> bool:
        if self.effect.effect is not None:
            return self.effect.effect == PriceEffect.DEBIT
        change = self.effect.change_in_buying_power
        return change is not None and change < 0

    def is_credit(self) -> bool:
        if self.effect.effect is not None:
            return self.effect.effect == PriceEffect.CREDIT
        change = self.effect.change_in_buying_power
        return change is not None and change > 0

    def would_go_negative(self) -> bool:
        new_bp = self.effect.new_buying_power
        return new_bp is not None and new_bp < 0

    def margin_exceeds_buying_power(self) -> bool:
        margin = self.effect.change_in_margin_requirement
        current = self.effect.current_buying_power
        if margin is None or current is None:
            return False
        return abs(margin) > current
