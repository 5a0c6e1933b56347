"""
Order Lifecycle Manager - submit, cancel, replace and query broker orders.

Local state checks run first against the given LiveOrder snapshot (or a
fresh fetch) so the common refusals never reach the broker:

    cancel   LIVE + cancellable, FILLED -> OrderAlreadyFilledError,
             anything else -> OrderNotCancellableError
    replace  LIVE + editable, anything else (Filled included)
             -> OrderNotEditableError, and no leg may exceed
             the original's remaining quantity (InsufficientQuantityError)

Broker-side refusals are translated by error_translation; transport errors
propagate unchanged and are never retried here.

USAGE:
    manager = OrderLifecycleManager(transport, "5WX00000", validator=validator)
    response = manager.place_order(order)
    manager.cancel(response.order_id)
"""

from dataclasses import replace as dc_replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

from trading_orders.adapters.base import TransportBase
from trading_orders.core.errors import (
    BrokerAPIError, InsufficientQuantityError, OrderAlreadyFilledError,
    OrderNotCancellableError, OrderNotEditableError, TradingOrdersError,
)
from trading_orders.core.models.account import Account
from trading_orders.core.models.live_order import LiveOrder, OrderResponse, OrderStatus
from trading_orders.core.models.orders import Order
from trading_orders.core.validation.order_validator import OrderValidator
from trading_orders.services.error_translation import translate_lifecycle_error
from trading_orders.utils.formatting import format_live_orders, format_order

logger = logging.getLogger(__name__)


StatusFilter = Union[OrderStatus, str, Iterable[Union[OrderStatus, str]], None]


class OrderLifecycleManager:
    """Order operations for one account"""

    def __init__(self, transport: TransportBase, account_number: str, validator: Optional[OrderValidator] = None):
        self.transport = transport
        self.account_number = account_number
        self.validator = validator

    # ========================================================================
    # Paths
    # ========================================================================

    @property
    def orders_path(self) -> str:
        return f"/accounts/{self.account_number}/orders"

    def _order_path(self, order_id: str) -> str:
        return f"{self.orders_path}/{order_id}"

    # ========================================================================
    # Submission
    # ========================================================================

    def submit(self, order: Order, dry_run: bool = False) -> OrderResponse:
        """POST the order (or its dry run). Dry runs never create an order id."""
        path = f"{self.orders_path}/dry-run" if dry_run else self.orders_path
        logger.info(f"{'Dry-run' if dry_run else 'Submitting'} order for {self.account_number}")
        logger.debug(format_order(order))

        body = self.transport.post(path, order.to_api_params())
        response = OrderResponse.from_api(body, dry_run=dry_run)

        if not dry_run:
            if response.order is None:
                raise BrokerAPIError(f"Order submission for {self.account_number} returned no order id")
            logger.info(f"Order {response.order_id} accepted: {response.status.value}")
        return response

    def place_order(
        self,
        order: Order,
        dry_run: bool = False,
        skip_validation: bool = False,
        account: Optional[Account] = None,
    ) -> OrderResponse:
        """
        Validate then submit.

        Validation warnings are attached to the returned response. A dry run
        that was validated reuses the validator's dry-run response instead of
        posting a second time.
        """
        if skip_validation:
            return self.submit(order, dry_run=dry_run)

        if self.validator is None:
            raise TradingOrdersError("place_order needs a validator unless skip_validation=True")

        result = self.validator.validate(order, account or Account(self.account_number))
        if dry_run and result.dry_run_response is not None:
            return dc_replace(result.dry_run_response, warnings=tuple(result.warnings))

        response = self.submit(result.order, dry_run=dry_run)
        return response.with_warnings(result.warnings) if result.warnings else response

    # ========================================================================
    # Cancel / replace
    # ========================================================================

    def cancel(self, order_or_id: Union[LiveOrder, str, int]) -> None:
        """
        Cancel a working order. Returns nothing: re-fetch to observe the
        transition toward Cancelled.
        """
        live = self._resolve(order_or_id)

        if live.status == OrderStatus.FILLED:
            raise OrderAlreadyFilledError(f"Order {live.id} is already filled", order_id=live.id)
        if not live.is_cancellable:
            raise OrderNotCancellableError(
                f"Order {live.id} cannot be cancelled in status {live.status.value}"
                f"{'' if live.cancellable else ' (not cancellable)'}",
                order_id=live.id,
            )

        try:
            self.transport.delete(self._order_path(live.id))
        except BrokerAPIError as e:
            translated = translate_lifecycle_error(e, "cancel", live.id)
            if translated is None:
                raise
            raise translated from e

        logger.info(f"Cancel requested for order {live.id}")

    def replace(self, order_or_id: Union[LiveOrder, str, int], new_order: Order) -> OrderResponse:
        """
        Replace a working order. The broker cancels the original and creates
        a new order; the response carries the new order's id.
        """
        live = self._resolve(order_or_id)

        if not live.is_editable:
            raise OrderNotEditableError(
                f"Order {live.id} cannot be replaced in status {live.status.value}"
                f"{'' if live.editable else ' (not editable)'}",
                order_id=live.id,
            )
        self._check_replacement_quantities(live, new_order)

        try:
            body = self.transport.put(self._order_path(live.id), new_order.to_api_params())
        except BrokerAPIError as e:
            translated = translate_lifecycle_error(e, "replace", live.id)
            if translated is None:
                raise
            raise translated from e

        response = OrderResponse.from_api(body)
        if response.order_id is None or response.order_id == live.id:
            raise BrokerAPIError(f"Replace of order {live.id} did not return a new order id")

        logger.info(f"Order {live.id} replaced by {response.order_id}")
        return response

    @staticmethod
    def _check_replacement_quantities(live: LiveOrder, new_order: Order) -> None:
        for i, leg in enumerate(new_order.legs):
            original = live.find_leg(leg.symbol)
            if original is None and i < len(live.legs):
                original = live.legs[i]
            if original is None:
                raise OrderNotEditableError(
                    f"Replacement leg {leg.symbol} has no counterpart in order {live.id}",
                    order_id=live.id,
                )
            remaining = original.unfilled_quantity
            if leg.quantity > remaining:
                raise InsufficientQuantityError(
                    f"Replacement quantity {leg.quantity} for {leg.symbol} exceeds remaining "
                    f"quantity {remaining} of order {live.id}",
                    order_id=live.id,
                )

    # ========================================================================
    # Queries
    # ========================================================================

    def get_order(self, order_id: Union[str, int]) -> LiveOrder:
        body = self.transport.get(self._order_path(str(order_id)))
        return LiveOrder.from_api(body)

    def get_live_orders(
        self,
        status: StatusFilter = None,
        underlying_symbol: Optional[str] = None,
        from_time: Optional[Union[datetime, date]] = None,
        to_time: Optional[Union[datetime, date]] = None,
    ) -> List[LiveOrder]:
        params = self._filter_params(status, underlying_symbol, from_time, to_time)
        orders = self._parse_items(self.transport.get(f"{self.orders_path}/live", params=params or None))
        if orders:
            logger.debug(f"Live orders for {self.account_number}:\n{format_live_orders(orders)}")
        return orders

    def get_order_history(
        self,
        status: StatusFilter = None,
        underlying_symbol: Optional[str] = None,
        from_time: Optional[Union[datetime, date]] = None,
        to_time: Optional[Union[datetime, date]] = None,
        page_offset: int = 0,
        page_limit: int = 100,
    ) -> List[LiveOrder]:
        params = self._filter_params(status, underlying_symbol, from_time, to_time)
        params['page-offset'] = page_offset
        params['page-limit'] = page_limit
        return self._parse_items(self.transport.get(self.orders_path, params=params))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, order_or_id: Union[LiveOrder, str, int]) -> LiveOrder:
        if isinstance(order_or_id, LiveOrder):
            return order_or_id
        return self.get_order(order_or_id)

    @staticmethod
    def _filter_params(status, underlying_symbol, from_time, to_time) -> Dict[str, Any]:
        params: Dict[str, Any] = {}

        statuses = _parse_status_filter(status)
        if statuses:
            params['status'] = [s.value for s in statuses]
        if underlying_symbol:
            params['underlying-symbol'] = underlying_symbol
        if from_time is not None:
            params['from-time'] = from_time.isoformat()
        if to_time is not None:
            params['to-time'] = to_time.isoformat()
        return params

    @staticmethod
    def _parse_items(body: Any) -> List[LiveOrder]:
        items = body.get('items', []) if isinstance(body, dict) else (body or [])
        return [LiveOrder.from_api(item) for item in items]


def _parse_status_filter(status: StatusFilter) -> List[OrderStatus]:
    """Valid statuses from the filter; invalid ones dropped with a warning"""
    if status is None:
        return []
    if isinstance(status, (OrderStatus, str)):
        status = [status]

    parsed = []
    for value in status:
        try:
            parsed.append(OrderStatus.parse(value))
        except ValueError:
            logger.warning(f"Ignoring invalid order status filter: {value!r}")
    return parsed
