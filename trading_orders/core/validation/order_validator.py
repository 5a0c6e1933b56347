"""
Order Validator - pre-submission checks against the broker.

Runs a fixed pipeline over an Order:

    1. symbols        every leg resolves to an active instrument
    2. quantities     within limits, integral unless fractional-eligible
    3. prices         on the instrument's tick grid, within the price ceiling
    4. permissions    account trading status allows every leg
    5. buying power   dry-run submission, new buying power must stay >= 0
    6. market hours   outside the regular session only warns

validate() raises the first hard failure. dry_run() records hard failures in
the result instead; an unresolvable symbol still stops it before the dry-run
submission is sent.

USAGE:
    validator = OrderValidator(transport, ApiInstrumentLookup(transport))
    result = validator.validate(order, Account("5WX00000"))
    for warning in result.warnings:
        print(warning)
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional, Union
import logging

from trading_orders.adapters.base import InstrumentInfo, InstrumentLookupBase, TransportBase
from trading_orders.config.order_rules_loader import OrderRules, get_order_rules, load_order_rules
from trading_orders.config.settings import Settings, get_settings
from trading_orders.core.errors import BrokerAPIError, InvalidSymbolError, OrderValidationError
from trading_orders.core.models.account import Account, TradingStatus
from trading_orders.core.models.buying_power import BuyingPowerEffect, BuyingPowerEvaluator
from trading_orders.core.models.live_order import OrderResponse
from trading_orders.core.models.orders import Order, OrderLeg
from trading_orders.core.validation.tick_sizes import TickSizeSchedule
from trading_orders.services.market_hours import MarketHours
from trading_orders.utils.formatting import format_order

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of a validation run"""
    order: Order
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    buying_power_effect: Optional[BuyingPowerEffect] = None
    dry_run_response: Optional[OrderResponse] = None

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def summary(self) -> str:
        if self.is_valid and not self.warnings:
            return "Order valid"
        parts = ["Order valid" if self.is_valid else "Order invalid"]
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s)")
        return ", ".join(parts)


class OrderValidator:
    """Pre-submission validation pipeline"""

    def __init__(
        self,
        transport: TransportBase,
        instruments: InstrumentLookupBase,
        settings: Optional[Settings] = None,
        rules: Optional[OrderRules] = None,
        market_hours: Optional[MarketHours] = None,
    ):
        self.transport = transport
        self.instruments = instruments
        self.settings = settings or get_settings()
        if rules is None:
            rules_file = self.settings.order_rules_file
            rules = load_order_rules(str(rules_file)) if rules_file else get_order_rules()
        self.rules = rules
        self.market_hours = market_hours or MarketHours.from_settings(self.settings)

    # ========================================================================
    # Public API
    # ========================================================================

    def validate(self, order: Order, account: Union[Account, str]) -> ValidationResult:
        """Run the full pipeline; raises the first hard failure"""
        return self._run(order, _as_account(account), collect=False)

    def dry_run(self, order: Order, account: Union[Account, str]) -> ValidationResult:
        """Run the full pipeline, recording hard failures in result.errors"""
        return self._run(order, _as_account(account), collect=True)

    # ========================================================================
    # Pipeline
    # ========================================================================

    def _run(self, order: Order, account: Account, collect: bool) -> ValidationResult:
        logger.debug(f"Validating order for {account.account_number}:\n{format_order(order)}")
        result = ValidationResult(order=order)

        try:
            instruments = self._check_symbols(order)
        except InvalidSymbolError as e:
            if not collect:
                raise
            result.errors.extend(e.errors)
            logger.info(f"Validation stopped: {e}")
            return result

        for check in (self._check_quantities, self._check_prices, self._check_permissions):
            try:
                result.order = check(result.order, instruments, account, result.warnings)
            except OrderValidationError as e:
                if not collect:
                    raise
                result.errors.extend(e.errors)

        if result.errors:
            logger.info(f"Skipping dry run, {len(result.errors)} error(s) already found")
        else:
            try:
                self._check_buying_power(result, account)
            except OrderValidationError as e:
                if not collect:
                    raise
                result.errors.extend(e.errors)

        self._check_market_hours(result)

        logger.info(f"Validation for {account.account_number}: {result.summary()}")
        return result

    # ------------------------------------------------------------------
    # 1. Symbols
    # ------------------------------------------------------------------

    def _check_symbols(self, order: Order) -> Dict[str, InstrumentInfo]:
        instruments = {}
        for leg in order.legs:
            try:
                info = self.instruments.get_instrument(leg.symbol, leg.instrument_type)
            except BrokerAPIError as e:
                # only a 4xx says something about the symbol itself
                if e.status_code is None or e.is_server_error:
                    raise
                raise InvalidSymbolError(leg.symbol, f"instrument lookup failed: {e.message}") from e
            if info is None:
                raise InvalidSymbolError(leg.symbol)
            if not info.active:
                raise InvalidSymbolError(leg.symbol, "instrument is not active")
            instruments[leg.symbol] = info
        return instruments

    # ------------------------------------------------------------------
    # 2. Quantities
    # ------------------------------------------------------------------

    def _check_quantities(self, order, instruments, account, warnings) -> Order:
        limits = self.rules.quantity_limits
        max_quantity = min(limits.max_quantity, self.settings.max_order_quantity)
        min_quantity = limits.min_quantity

        errors = []
        for leg in order.legs:
            quantity = leg.quantity
            if isinstance(quantity, Decimal):
                if not instruments[leg.symbol].is_fractional_quantity_eligible:
                    errors.append(f"Quantity for {leg.symbol} must be a whole number (got {quantity})")
                elif not 0 < quantity <= max_quantity:
                    errors.append(f"Quantity for {leg.symbol} must be between 0 and {max_quantity:,} (got {quantity})")
            elif not min_quantity <= quantity <= max_quantity:
                errors.append(
                    f"Quantity for {leg.symbol} must be between {min_quantity:,} and {max_quantity:,} (got {quantity:,})"
                )

        if errors:
            raise OrderValidationError(errors)
        return order

    # ------------------------------------------------------------------
    # 3. Prices
    # ------------------------------------------------------------------

    def _tick_schedule(self, leg: OrderLeg, instruments: Dict[str, InstrumentInfo]) -> Optional[TickSizeSchedule]:
        info = instruments.get(leg.symbol)
        if info is not None and info.tick_sizes is not None:
            return info.tick_sizes
        return self.rules.tick_schedule_for(leg.instrument_type)

    def _check_prices(self, order, instruments, account, warnings) -> Order:
        # Net price of a multi-leg order uses the first leg's schedule
        schedule = self._tick_schedule(order.legs[0], instruments)
        ceiling = Decimal(str(self.settings.max_order_price))

        errors = []
        updates = {}
        for name, value in (('price', order.price), ('stop_trigger', order.stop_trigger)):
            if value is None:
                continue
            label = name.replace('_', ' ')
            if value > ceiling:
                errors.append(f"{label.capitalize()} {value} exceeds the maximum of {ceiling}")
                continue
            if schedule is None or schedule.is_on_grid(value):
                continue

            increment = schedule.increment_for(value)
            nearest = schedule.round_price(value)
            if nearest <= 0:
                errors.append(f"{label.capitalize()} {value} rounds to {nearest} on a {increment} tick grid")
            elif self.settings.auto_round_prices:
                updates[name] = nearest
                warnings.append(f"{label.capitalize()} {value} rounded to {nearest} ({increment} tick)")
            else:
                errors.append(
                    f"{label.capitalize()} {value} is not a multiple of the {increment} tick size; "
                    f"nearest valid {label} is {nearest}"
                )

        if errors:
            raise OrderValidationError(errors)
        if updates:
            logger.info(f"Re-priced order to tick grid: {updates}")
            return replace(order, **updates)
        return order

    # ------------------------------------------------------------------
    # 4. Permissions
    # ------------------------------------------------------------------

    def _trading_status(self, account: Account) -> TradingStatus:
        if account.trading_status is not None:
            return account.trading_status
        data = self.transport.get(f"/accounts/{account.account_number}/trading-status")
        return TradingStatus.from_api(data)

    def _check_permissions(self, order, instruments, account, warnings) -> Order:
        status = self._trading_status(account)

        if status.restricted:
            logger.info(f"Account {account.account_number} restrictions: {', '.join(status.active_restrictions())}")
        if status.blocks_all_trading:
            raise OrderValidationError(
                f"Account {account.account_number} has active restrictions "
                f"({', '.join(status.active_restrictions())}): trading not permitted"
            )

        errors = []
        for leg in order.legs:
            opening = leg.action.is_opening
            if opening and status.blocks_opening_orders:
                errors.append(
                    f"Account has active restrictions ({', '.join(status.active_restrictions())}): "
                    f"cannot open a position in {leg.symbol}"
                )

            if leg.instrument_type.is_option and not status.can_trade_options:
                errors.append(
                    f"Options trading permission required for {leg.symbol} "
                    f"(options level: {status.options_level})"
                )
            if leg.instrument_type.is_future:
                if not status.can_trade_futures:
                    errors.append(f"Futures trading permission required for {leg.symbol}")
                elif opening and status.is_futures_closing_only:
                    errors.append(f"Futures are closing-only: cannot open a position in {leg.symbol}")

            info = instruments.get(leg.symbol)
            if opening and info is not None and info.is_closing_only:
                errors.append(f"{leg.symbol} is closing-only: opening orders are not accepted")

        if errors:
            raise OrderValidationError(errors)
        return order

    # ------------------------------------------------------------------
    # 5. Buying power
    # ------------------------------------------------------------------

    def _check_buying_power(self, result: ValidationResult, account: Account) -> None:
        path = f"/accounts/{account.account_number}/orders/dry-run"
        try:
            body = self.transport.post(path, result.order.to_api_params())
        except BrokerAPIError as e:
            # 4xx on a dry run is the broker rejecting the order, not a transport failure
            if e.status_code is None or not 400 <= e.status_code < 500:
                raise
            details = [err.get('message') or err.get('reason') or str(err) for err in e.errors]
            raise OrderValidationError([f"Dry run rejected: {e.message}"] + details) from e

        response = OrderResponse.from_api(body, dry_run=True)
        result.dry_run_response = response
        result.buying_power_effect = response.buying_power_effect
        result.warnings.extend(response.warnings)

        if response.errors:
            raise OrderValidationError([f"Dry run rejected: {err}" for err in response.errors])

        effect = response.buying_power_effect
        if effect is None:
            logger.warning("Dry run returned no buying power effect")
            return

        evaluator = BuyingPowerEvaluator(effect)
        if evaluator.would_go_negative():
            raise OrderValidationError(
                f"Insufficient buying power: new buying power would be {effect.new_buying_power}"
            )
        if evaluator.margin_exceeds_buying_power():
            raise OrderValidationError(
                f"Insufficient buying power: margin requirement {abs(effect.change_in_margin_requirement)} "
                f"exceeds current buying power {effect.current_buying_power}"
            )

        threshold = self.settings.buying_power_warning_pct
        if evaluator.exceeds_threshold(threshold):
            result.warnings.append(
                f"Order uses {evaluator.usage_percentage()}% of buying power (warning threshold {threshold}%)"
            )

    # ------------------------------------------------------------------
    # 6. Market hours
    # ------------------------------------------------------------------

    def _check_market_hours(self, result: ValidationResult) -> None:
        if self.market_hours.is_open():
            return
        result.warnings.append(f"Outside regular trading hours: {self.market_hours.describe()}")
        if result.order.is_market and self.rules.market_hours.warn_market_orders_outside_hours:
            result.warnings.append("Market order placed outside regular hours will not execute until the next session")


def _as_account(account: Union[Account, str]) -> Account:
    if isinstance(account, Account):
        return account
    return Account(account_number=str(account))
