"""
Error taxonomy for order construction, validation and lifecycle.

Construction-time:
    InvalidOptionError, InvalidStrategyError
Pre-submission:
    OrderValidationError, InvalidSymbolError
Transport / post-submission:
    BrokerAPIError and the OrderLifecycleError family
"""

from typing import Any, Dict, List, Optional


class TradingOrdersError(Exception):
    """Base class for every error raised by this package"""


class InvalidOptionError(TradingOrdersError):
    """Option descriptor is missing, malformed or already expired"""


class InvalidStrategyError(TradingOrdersError):
    """Strategy legs violate a structural rule (strikes, expirations, types)"""


class OrderValidationError(TradingOrdersError, ValueError):
    """
    Order failed a pre-submission check.

    Carries every collected message in `errors`; str() joins them.
    """

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidSymbolError(OrderValidationError):
    """Symbol does not resolve to an active, tradable instrument"""

    def __init__(self, symbol: str, reason: str = "unknown or inactive instrument"):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"Invalid symbol '{symbol}': {reason}")


class BrokerAPIError(TradingOrdersError):
    """
    Generic transport error (non-2xx response, timeout, connection failure).

    `code` is the broker's structured error code when it sent one.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.errors = errors or []
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class OrderLifecycleError(BrokerAPIError):
    """Cancel/replace refused because of the order's current state"""

    def __init__(self, message: str, order_id: Optional[str] = None, cause: Optional[BrokerAPIError] = None):
        self.order_id = order_id
        super().__init__(
            message,
            status_code=cause.status_code if cause else None,
            code=cause.code if cause else None,
            errors=cause.errors if cause else None,
        )


class OrderNotCancellableError(OrderLifecycleError):
    pass


class OrderAlreadyFilledError(OrderLifecycleError):
    pass


class OrderNotEditableError(OrderLifecycleError):
    pass


class InsufficientQuantityError(OrderLifecycleError):
    pass
