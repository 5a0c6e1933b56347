"""
Account trading permissions.

TradingStatus mirrors /accounts/{n}/trading-status. Only the fields the
order validator needs for permission checks are parsed.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


NO_OPTIONS_PERMISSION = "No Permissions"


@dataclass(frozen=True)
class TradingStatus:
    """Account-level trading permissions and restrictions"""
    account_number: Optional[str] = None
    options_level: str = NO_OPTIONS_PERMISSION
    is_futures_enabled: bool = False
    is_futures_closing_only: bool = False
    is_closing_only: bool = False
    is_frozen: bool = False
    is_closed: bool = False
    is_in_margin_call: bool = False
    is_in_day_trade_equity_maintenance_call: bool = False
    is_pattern_day_trader: bool = False
    is_risk_reducing_only: bool = False
    is_cryptocurrency_closing_only: bool = False

    @property
    def can_trade_options(self) -> bool:
        return bool(self.options_level) and self.options_level != NO_OPTIONS_PERMISSION

    @property
    def can_trade_futures(self) -> bool:
        return self.is_futures_enabled

    @property
    def blocks_all_trading(self) -> bool:
        return self.is_closed or self.is_frozen

    @property
    def blocks_opening_orders(self) -> bool:
        return (self.is_closing_only or self.is_in_margin_call or self.is_risk_reducing_only
                or self.is_in_day_trade_equity_maintenance_call)

    @property
    def restricted(self) -> bool:
        return bool(self.active_restrictions())

    def active_restrictions(self) -> List[str]:
        restrictions = []
        if self.is_closed:
            restrictions.append("account closed")
        if self.is_frozen:
            restrictions.append("account frozen")
        if self.is_closing_only:
            restrictions.append("closing-only")
        if self.is_in_margin_call:
            restrictions.append("margin call")
        if self.is_risk_reducing_only:
            restrictions.append("risk-reducing only")
        if self.is_in_day_trade_equity_maintenance_call:
            restrictions.append("day trade equity maintenance call")
        return restrictions

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TradingStatus':
        return cls(
            account_number=data.get('account-number'),
            options_level=data.get('options-level') or NO_OPTIONS_PERMISSION,
            is_futures_enabled=bool(data.get('is-futures-enabled', False)),
            is_futures_closing_only=bool(data.get('is-futures-closing-only', False)),
            is_closing_only=bool(data.get('is-closing-only', False)),
            is_frozen=bool(data.get('is-frozen', False)),
            is_closed=bool(data.get('is-closed', False)),
            is_in_margin_call=bool(data.get('is-in-margin-call', False)),
            is_in_day_trade_equity_maintenance_call=bool(
                data.get('is-in-day-trade-equity-maintenance-call', False)
            ),
            is_pattern_day_trader=bool(data.get('is-pattern-day-trader', False)),
            is_risk_reducing_only=bool(data.get('is-risk-reducing-only', False)),
            is_cryptocurrency_closing_only=bool(data.get('is-cryptocurrency-closing-only', False)),
        )


@dataclass(frozen=True)
class Account:
    """Account the order is validated against; trading_status fetched lazily when None"""
    account_number: str
    trading_status: Optional[TradingStatus] = None
    nickname: str = ""
