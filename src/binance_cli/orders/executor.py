from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

from binance_cli.config import Configuration
from binance_cli.exchange.base import TransportError
from binance_cli.exchange.binance_spot import BinanceSpotClient
from binance_cli.exchange.models import ExchangeInfo
from binance_cli.orders.order_log import OrderLog
from binance_cli.orders.order_types import MarketQuantity, MarketQuoteOrderQty, Side, TradeOrderType
from binance_cli.orders.responses import (
    FailureInternal,
    FailureTransport,
    TradeResponse,
    parse_trade_response,
)
from binance_cli.orders.validation import (
    OrderValidationError,
    QuantityBecameNonPositive,
    QuoteOrderQtyNotAllowed,
    UnknownSymbol,
    adjust_quantity_to_lot_size,
    round_down,
    verify_max_position,
    verify_min_notional,
    verify_open_orders,
    verify_quantity_is_greater_than_free,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class OrderExecutor:
    """
    Runs one market order attempt from snapshot to classified response.

    Validation failures come back as ``FailureInternal`` and a network failure
    while submitting comes back as ``FailureTransport``. Failures fetching
    account, open orders or average price propagate to the caller.
    """

    config: Configuration
    client: BinanceSpotClient
    order_log: OrderLog | None = None

    async def market_order(
        self,
        exchange_info: ExchangeInfo,
        symbol_name: str,
        order_type: TradeOrderType,
        side: Side,
    ) -> TradeResponse:
        try:
            response = await self._market_order(exchange_info, symbol_name, order_type, side)
        except OrderValidationError as exc:
            logger.info("%s %s %s rejected: %s", side.value, symbol_name, order_type, exc.message)
            response = FailureInternal(
                test=self.config.test,
                query="",
                reason=exc.reason,
                message=exc.message,
            )
        if self.order_log is not None:
            self.order_log.record(response, symbol=symbol_name.upper(), side=side.value, order=str(order_type))
        return response

    async def _market_order(
        self,
        exchange_info: ExchangeInfo,
        symbol_name: str,
        order_type: TradeOrderType,
        side: Side,
    ) -> TradeResponse:
        symbol = exchange_info.get_symbol(symbol_name)
        if symbol is None:
            raise UnknownSymbol(symbol_name.upper())
        if isinstance(order_type, MarketQuoteOrderQty) and not symbol.quote_order_qty_market_allowed:
            raise QuoteOrderQtyNotAllowed(symbol.symbol)

        account_info, open_orders = await asyncio.gather(
            self.client.get_account_info(),
            self.client.get_open_orders(symbol.symbol),
        )

        verify_open_orders(open_orders, symbol)

        if isinstance(order_type, MarketQuantity):
            qty = adjust_quantity_to_lot_size(symbol, order_type.qty)
            if qty <= 0:
                raise QuantityBecameNonPositive(
                    f"quantity {order_type.qty} became {qty} after lot size adjustment for {symbol.symbol}"
                )
            order_type = MarketQuantity(qty)
        elif order_type.qty <= 0:
            raise QuantityBecameNonPositive(f"quote quantity {order_type.qty} is not positive")

        avg_price = await self.client.get_avg_price(symbol.symbol)

        if isinstance(order_type, MarketQuoteOrderQty):
            verify_min_notional(avg_price, symbol, ZERO, quote_value=order_type.qty)
            base_qty = ZERO
            if avg_price.price > 0:
                base_qty = round_down(order_type.qty / avg_price.price, symbol.base_asset_precision)
        else:
            verify_min_notional(avg_price, symbol, order_type.qty)
            base_qty = order_type.qty

        if side is Side.BUY:
            verify_max_position(account_info, open_orders, symbol, base_qty)
        else:
            verify_quantity_is_greater_than_free(account_info, symbol, base_qty)

        params = [("symbol", symbol.symbol), ("side", side.value), *order_type.order_params()]
        logger.debug("Submitting %s %s %s test=%s", side.value, symbol.symbol, order_type, self.config.test)
        try:
            raw = await self.client.new_order(params, test=self.config.test)
        except TransportError as exc:
            logger.warning("Order submission for %s failed: %s", symbol.symbol, exc)
            return FailureTransport(test=self.config.test, query="", message=str(exc))
        return parse_trade_response(raw, test=self.config.test)
