"""
Adapter Base - Abstract interfaces for the broker collaborators.

Provides:
    - TransportBase: authenticated REST calls against the broker
    - InstrumentLookupBase: symbol -> InstrumentInfo resolution
    - InstrumentInfo: what validation needs to know about a tradable instrument

Usage:
    from trading_orders.adapters.base import TransportBase
    transport: TransportBase = TastytradeTransport(session)
    body = transport.get(f"/accounts/{account_number}/orders/live")
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from trading_orders.core.models.orders import InstrumentType
from trading_orders.core.validation.tick_sizes import TickSizeSchedule


class TransportBase(ABC):
    """
    Interface every transport implements.

    Methods return the decoded response body with the 'data' envelope removed
    and raise BrokerAPIError on any non-2xx response, timeout or connection
    failure.
    """

    @abstractmethod
    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ...

    @abstractmethod
    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def put(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def delete(self, path: str) -> Optional[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class InstrumentInfo:
    """Tradability facts about one instrument"""
    symbol: str
    instrument_type: InstrumentType
    active: bool = True
    is_closing_only: bool = False
    is_fractional_quantity_eligible: bool = False
    tick_sizes: Optional[TickSizeSchedule] = None
    underlying_symbol: Optional[str] = None

    @property
    def tradable(self) -> bool:
        return self.active


class InstrumentLookupBase(ABC):
    """Resolves a symbol to an InstrumentInfo, or None when the broker has no such instrument"""

    @abstractmethod
    def get_instrument(self, symbol: str, instrument_type: InstrumentType) -> Optional[InstrumentInfo]:
        ...
