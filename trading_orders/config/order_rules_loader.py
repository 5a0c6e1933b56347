"""
Order Rules Loader - Loads order_rules.yaml into typed dataclasses.

Provides default tick schedules per instrument type, quantity limits and
the market-order warning switch used by OrderValidator and MarketHours.

Usage:
    from trading_orders.config.order_rules_loader import get_order_rules
    rules = get_order_rules()
    schedule = rules.tick_schedule_for(InstrumentType.EQUITY_OPTION)
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from pathlib import Path
import yaml
import logging

from trading_orders.core.models.orders import InstrumentType, MAX_QUANTITY, MIN_QUANTITY
from trading_orders.core.validation.tick_sizes import TickSizeSchedule

logger = logging.getLogger(__name__)


@dataclass
class QuantityLimits:
    min_quantity: int = MIN_QUANTITY
    max_quantity: int = MAX_QUANTITY


@dataclass
class MarketHoursConfig:
    """Market-hours behaviour. The calendar and timezone come from Settings."""
    warn_market_orders_outside_hours: bool = True


@dataclass
class OrderRules:
    """Container for all order validation rules."""
    quantity_limits: QuantityLimits = field(default_factory=QuantityLimits)
    market_hours: MarketHoursConfig = field(default_factory=MarketHoursConfig)
    tick_sizes: Dict[InstrumentType, TickSizeSchedule] = field(default_factory=dict)

    def tick_schedule_for(self, instrument_type: InstrumentType) -> Optional[TickSizeSchedule]:
        """Default schedule for an instrument type, None when not configured."""
        return self.tick_sizes.get(instrument_type)


# Default search paths
_DEFAULT_PATHS = [
    Path('config/order_rules.yaml'),
    Path(__file__).parent / 'order_rules.yaml',
]


def load_order_rules(config_path: str = None) -> OrderRules:
    """
    Load order rules from YAML.

    Args:
        config_path: Explicit path. If None, searches default locations.

    Returns:
        OrderRules with quantity limits, market hours and tick schedules.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Order rules not found: {config_path}")
    else:
        path = _find_config_file()

    logger.info(f"Loading order rules from: {path}")
    with open(path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    rules = _parse_rules(raw)
    logger.info(f"Loaded tick schedules for {len(rules.tick_sizes)} instrument types")
    return rules


def _find_config_file() -> Path:
    """Find config file in default locations."""
    for p in _DEFAULT_PATHS:
        if p.exists():
            return p
    raise FileNotFoundError(
        f"Order rules not found. Tried: {[str(p) for p in _DEFAULT_PATHS]}"
    )


def _parse_rules(raw: dict) -> OrderRules:
    """Parse raw YAML dict into typed OrderRules."""
    q = raw.get('quantity_limits', {})
    quantity_limits = QuantityLimits(
        min_quantity=int(q.get('min_quantity', MIN_QUANTITY)),
        max_quantity=int(q.get('max_quantity', MAX_QUANTITY)),
    )
    if quantity_limits.min_quantity < 1 or quantity_limits.max_quantity < quantity_limits.min_quantity:
        raise ValueError(f"Invalid quantity limits: {quantity_limits}")

    mh = raw.get('market_hours', {})
    market_hours = MarketHoursConfig(
        warn_market_orders_outside_hours=bool(mh.get('warn_market_orders_outside_hours', True)),
    )

    tick_sizes = {}
    for type_name, entries in raw.get('tick_sizes', {}).items():
        tick_sizes[InstrumentType(type_name)] = TickSizeSchedule.from_config(entries)

    return OrderRules(
        quantity_limits=quantity_limits,
        market_hours=market_hours,
        tick_sizes=tick_sizes,
    )


# Singleton
_order_rules: Optional[OrderRules] = None


def get_order_rules() -> OrderRules:
    """Get global order rules (singleton)."""
    global _order_rules
    if _order_rules is None:
        _order_rules = load_order_rules()
    return _order_rules


def reload_order_rules(config_path: str = None) -> OrderRules:
    """Reload order rules (useful for testing)."""
    global _order_rules
    _order_rules = load_order_rules(config_path)
    return _order_rules
