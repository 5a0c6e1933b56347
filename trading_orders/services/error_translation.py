"""
Lifecycle error translation.

Cancel and replace failures come back from the broker as generic API errors.
translate_lifecycle_error() maps them onto the OrderLifecycleError family:
a structured error code wins when the broker sent one, otherwise the message
text is matched against known phrasings. Message matching is a heuristic;
anything it does not recognise is logged and left for the caller to re-raise
unchanged.
"""

from enum import Enum
from typing import Optional
import logging
import re

from trading_orders.core.errors import (
    BrokerAPIError, InsufficientQuantityError, OrderAlreadyFilledError,
    OrderLifecycleError, OrderNotCancellableError, OrderNotEditableError,
)

logger = logging.getLogger(__name__)


class LifecycleErrorKind(Enum):
    ALREADY_FILLED = "already_filled"
    NOT_CANCELLABLE = "not_cancellable"
    NOT_EDITABLE = "not_editable"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"
    UNKNOWN = "unknown"


_CODES = {
    'order_already_filled': LifecycleErrorKind.ALREADY_FILLED,
    'order_filled': LifecycleErrorKind.ALREADY_FILLED,
    'order_not_cancellable': LifecycleErrorKind.NOT_CANCELLABLE,
    'order_not_cancelable': LifecycleErrorKind.NOT_CANCELLABLE,
    'order_not_editable': LifecycleErrorKind.NOT_EDITABLE,
    'order_not_replaceable': LifecycleErrorKind.NOT_EDITABLE,
    'insufficient_quantity': LifecycleErrorKind.INSUFFICIENT_QUANTITY,
    'quantity_exceeds_remaining': LifecycleErrorKind.INSUFFICIENT_QUANTITY,
}

# Checked in order; "filled" must win over the generic "cannot cancel"
_PATTERNS = [
    (LifecycleErrorKind.ALREADY_FILLED, re.compile(r"already\s+(been\s+)?filled|order\s+(is\s+|was\s+)?filled", re.I)),
    (LifecycleErrorKind.INSUFFICIENT_QUANTITY, re.compile(
        r"insufficient\s+quantity|exceeds?\s+(the\s+)?remaining|greater\s+than\s+(the\s+)?remaining", re.I)),
    (LifecycleErrorKind.NOT_CANCELLABLE, re.compile(r"not\s+cancell?able|cannot\s+(be\s+)?cancell?(ed)?", re.I)),
    (LifecycleErrorKind.NOT_EDITABLE, re.compile(
        r"not\s+(editable|replaceable)|cannot\s+(be\s+)?(edit|replac|modif)", re.I)),
]

_ERROR_CLASSES = {
    LifecycleErrorKind.ALREADY_FILLED: OrderAlreadyFilledError,
    LifecycleErrorKind.NOT_CANCELLABLE: OrderNotCancellableError,
    LifecycleErrorKind.NOT_EDITABLE: OrderNotEditableError,
    LifecycleErrorKind.INSUFFICIENT_QUANTITY: InsufficientQuantityError,
}


def classify_lifecycle_error(error: BrokerAPIError) -> LifecycleErrorKind:
    """Structured code first, then message text"""
    if error.code:
        kind = _CODES.get(error.code.lower())
        if kind is not None:
            return kind

    texts = [error.message] + [
        str(e.get('message') or e.get('reason') or '') if isinstance(e, dict) else str(e)
        for e in error.errors
    ]
    for kind, pattern in _PATTERNS:
        if any(pattern.search(text) for text in texts if text):
            return kind
    return LifecycleErrorKind.UNKNOWN


def translate_lifecycle_error(
    error: BrokerAPIError,
    operation: str,
    order_id: Optional[str] = None,
) -> Optional[OrderLifecycleError]:
    """
    Map a broker error raised by cancel/replace onto a lifecycle error.

    Returns None when the error must propagate unchanged: transport failures
    (no status, 5xx), errors that are already lifecycle errors, and
    messages that match no known pattern (logged at WARNING).
    """
    if isinstance(error, OrderLifecycleError):
        return None
    if error.status_code is None or error.is_server_error:
        logger.debug(f"{operation} order {order_id}: transport error, not translated: {error}")
        return None

    kind = classify_lifecycle_error(error)
    if kind == LifecycleErrorKind.UNKNOWN:
        logger.warning(
            f"Unrecognized {operation} error for order {order_id} "
            f"(status={error.status_code}, code={error.code}): {error.message}"
        )
        return None

    logger.info(f"{operation} order {order_id} refused: {kind.value}")
    return _ERROR_CLASSES[kind](error.message, order_id=order_id, cause=error)
