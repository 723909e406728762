"""
Pre-submission order checks.

Every function here is pure over the snapshots it is given. The executor
runs them in this order: open orders, lot size, notional, position (buy
only), free balance (sell only), so each later check sees the quantity
that will actually be sent.
"""
from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal, localcontext

from binance_cli.exchange.models import AccountInfo, AvgPrice, OpenOrders, Symbol

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class OrderValidationError(ValueError):
    reason = "VALIDATION_FAILED"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnknownSymbol(OrderValidationError):
    reason = "UNKNOWN_SYMBOL"

    def __init__(self, symbol: str):
        super().__init__(f"{symbol} was not found in exchange info")
        self.symbol = symbol


class QuantityBecameNonPositive(OrderValidationError):
    reason = "QUANTITY_NON_POSITIVE"


class BelowMinNotional(OrderValidationError):
    reason = "BELOW_MIN_NOTIONAL"


class TooManyOpenOrders(OrderValidationError):
    reason = "TOO_MANY_OPEN_ORDERS"


class MaxPositionExceeded(OrderValidationError):
    reason = "MAX_POSITION_EXCEEDED"


class InsufficientBalance(OrderValidationError):
    reason = "INSUFFICIENT_BALANCE"


class QuoteOrderQtyNotAllowed(OrderValidationError):
    reason = "QUOTE_ORDER_QTY_NOT_ALLOWED"

    def __init__(self, symbol: str):
        super().__init__(f"{symbol} does not allow quote order quantity market orders")
        self.symbol = symbol


def _digits_needed(value: Decimal, exponent: int) -> int:
    # coefficient length of ``value`` once quantized to ``exponent``, plus headroom
    return max(value.adjusted() - exponent + 3, 1)


def round_down(value: Decimal, places: int) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _digits_needed(value, -places))
        return value.quantize(exp, rounding=ROUND_DOWN)


def _round_down_to_step(value: Decimal, step: Decimal) -> Decimal:
    if step <= 0:
        return value
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _digits_needed(value, step.as_tuple().exponent) + len(step.as_tuple().digits))
        units = (value / step).to_integral_value(rounding=ROUND_DOWN)
        return (units * step).quantize(step)


def adjust_quantity_to_lot_size(symbol: Symbol, quantity: Decimal) -> Decimal:
    """
    Truncate ``quantity`` onto the symbol's step grid, never rounding up.

    The result is clamped to ``max_qty`` and is zero when the input is not
    positive or the truncated value falls below ``min_qty``.
    """
    if quantity <= 0:
        return ZERO
    qty = quantity
    max_qty = symbol.max_qty
    if max_qty is not None and qty > max_qty:
        qty = max_qty
    qty = _round_down_to_step(qty, symbol.step_size)
    if qty < symbol.min_qty or qty <= 0:
        logger.debug("%s: quantity %s below min_qty %s after step rounding", symbol.symbol, quantity, symbol.min_qty)
        return ZERO
    logger.debug("%s: quantity %s adjusted to %s", symbol.symbol, quantity, qty)
    return qty


def min_notional_quantity(avg_price: AvgPrice, symbol: Symbol) -> Decimal | None:
    min_notional = symbol.min_notional
    if min_notional is None or avg_price.price <= 0:
        return None
    return min_notional / avg_price.price


def verify_min_notional(
    avg_price: AvgPrice,
    symbol: Symbol,
    quantity: Decimal,
    quote_value: Decimal | None = None,
) -> None:
    min_notional = symbol.min_notional
    if min_notional is None:
        logger.debug("%s: no min notional", symbol.symbol)
        return
    raw = quote_value if quote_value is not None else avg_price.price * quantity
    notional = round_down(raw, symbol.quote_precision)
    if notional < min_notional:
        message = f"notional {notional} of quantity {quantity} at {avg_price.price} is below min notional {min_notional}"
        needed = min_notional_quantity(avg_price, symbol) if quote_value is None else None
        if needed is not None:
            message += f", need at least {needed.normalize():f}"
        raise BelowMinNotional(message)
    logger.debug("%s: notional %s >= min notional %s", symbol.symbol, notional, min_notional)


def verify_open_orders(open_orders: OpenOrders, symbol: Symbol) -> None:
    max_num_orders = symbol.max_num_orders
    if max_num_orders is None:
        logger.debug("%s: no max number of orders", symbol.symbol)
        return
    current = open_orders.count_for(symbol.symbol)
    if current >= max_num_orders:
        raise TooManyOpenOrders(
            f"{current} open orders for {symbol.symbol}, the maximum is {max_num_orders}"
        )


def verify_max_position(
    account_info: AccountInfo,
    open_orders: OpenOrders,
    symbol: Symbol,
    quantity: Decimal,
) -> None:
    max_position = symbol.max_position
    if max_position is None:
        logger.debug("%s: no max position", symbol.symbol)
        return
    holdings = account_info.owned(symbol.base_asset)
    pending_buys = open_orders.sum_buy_orders(symbol.symbol)
    new_position = holdings + pending_buys + quantity
    if new_position > max_position:
        raise MaxPositionExceeded(
            f"quantity {quantity} + holdings {holdings} + open buys {pending_buys} "
            f"= {new_position} exceeds max position {max_position}"
        )


def verify_quantity_is_greater_than_free(
    account_info: AccountInfo,
    symbol: Symbol,
    quantity: Decimal,
) -> None:
    free = account_info.free(symbol.base_asset)
    if quantity > free:
        raise InsufficientBalance(f"quantity {quantity} exceeds free {symbol.base_asset} balance {free}")
