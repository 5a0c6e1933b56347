"""
Instrument lookup against the /instruments endpoints.

Results (including misses) are memoised per (symbol, instrument type) for the
lifetime of the lookup object. Option instruments inherit the tick schedule
published on their underlying as 'option-tick-sizes'.
"""

from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote
import logging

from trading_orders.adapters.base import InstrumentInfo, InstrumentLookupBase, TransportBase
from trading_orders.core.errors import BrokerAPIError
from trading_orders.core.models.orders import InstrumentType
from trading_orders.core.validation.tick_sizes import TickSizeSchedule

logger = logging.getLogger(__name__)


_PATHS = {
    InstrumentType.EQUITY: '/instruments/equities/{}',
    InstrumentType.EQUITY_OPTION: '/instruments/equity-options/{}',
    InstrumentType.FUTURE: '/instruments/futures/{}',
    InstrumentType.FUTURE_OPTION: '/instruments/future-options/{}',
}

# Underlying type whose 'option-tick-sizes' apply to an option type
_UNDERLYING_TYPE = {
    InstrumentType.EQUITY_OPTION: InstrumentType.EQUITY,
    InstrumentType.FUTURE_OPTION: InstrumentType.FUTURE,
}


class ApiInstrumentLookup(InstrumentLookupBase):

    def __init__(self, transport: TransportBase):
        self.transport = transport
        self._cache: Dict[Tuple[str, InstrumentType], Optional[InstrumentInfo]] = {}
        self._raw_cache: Dict[Tuple[str, InstrumentType], Optional[Dict[str, Any]]] = {}

    def get_instrument(self, symbol: str, instrument_type: InstrumentType) -> Optional[InstrumentInfo]:
        key = (symbol, instrument_type)
        if key in self._cache:
            return self._cache[key]

        data = self._fetch(symbol, instrument_type)
        info = self._to_info(symbol, instrument_type, data) if data is not None else None
        self._cache[key] = info
        return info

    def clear(self) -> None:
        self._cache.clear()
        self._raw_cache.clear()

    def _fetch(self, symbol: str, instrument_type: InstrumentType) -> Optional[Dict[str, Any]]:
        key = (symbol, instrument_type)
        if key in self._raw_cache:
            return self._raw_cache[key]

        path = _PATHS[instrument_type].format(quote(symbol, safe=''))
        try:
            data = self.transport.get(path)
        except BrokerAPIError as e:
            if not e.is_not_found:
                raise
            logger.info(f"Instrument not found: {symbol} ({instrument_type.value})")
            data = None

        self._raw_cache[key] = data or None
        return self._raw_cache[key]

    def _to_info(self, symbol: str, instrument_type: InstrumentType, data: Dict[str, Any]) -> InstrumentInfo:
        underlying = data.get('underlying-symbol')
        if instrument_type.is_option:
            ticks = self._option_tick_sizes(underlying, instrument_type)
        else:
            ticks = TickSizeSchedule.from_api(data.get('tick-sizes'))

        return InstrumentInfo(
            symbol=data.get('symbol', symbol),
            instrument_type=instrument_type,
            active=bool(data.get('active', True)),
            is_closing_only=bool(data.get('is-closing-only', False)),
            is_fractional_quantity_eligible=bool(data.get('is-fractional-quantity-eligible', False)),
            tick_sizes=ticks,
            underlying_symbol=underlying,
        )

    def _option_tick_sizes(self, underlying: Optional[str], option_type: InstrumentType) -> Optional[TickSizeSchedule]:
        if not underlying:
            return None
        underlying_data = self._fetch(underlying, _UNDERLYING_TYPE[option_type])
        if underlying_data is None:
            return None
        return TickSizeSchedule.from_api(underlying_data.get('option-tick-sizes'))
