from __future__ import annotations

from decimal import Decimal
from typing import Any

from binance_cli.exchange.base import RawOrderResponse, TransportError
from binance_cli.exchange.models import AccountInfo, AvgPrice, ExchangeInfo, OpenOrders


def symbol_payload(
    symbol: str,
    base: str,
    quote: str,
    *,
    step: str = "0.001",
    min_qty: str = "0.001",
    max_qty: str = "100000",
    min_notional: str | None = "10",
    quote_precision: int = 2,
    quote_order_qty_allowed: bool = True,
    max_num_orders: int | None = None,
    max_position: str | None = None,
) -> dict[str, Any]:
    filters: list[dict[str, Any]] = [
        {"filterType": "PRICE_FILTER", "minPrice": "0.01", "maxPrice": "100000", "tickSize": "0.01"},
        {"filterType": "LOT_SIZE", "minQty": min_qty, "maxQty": max_qty, "stepSize": step},
        {"filterType": "MARKET_LOT_SIZE", "minQty": "0.00000000", "maxQty": "0.00000000", "stepSize": "0.00000000"},
    ]
    if min_notional is not None:
        filters.append(
            {"filterType": "MIN_NOTIONAL", "minNotional": min_notional, "applyToMarket": True, "avgPriceMins": 5}
        )
    if max_num_orders is not None:
        filters.append({"filterType": "MAX_NUM_ORDERS", "maxNumOrders": max_num_orders})
    if max_position is not None:
        filters.append({"filterType": "MAX_POSITION", "maxPosition": max_position})
    return {
        "symbol": symbol,
        "status": "TRADING",
        "baseAsset": base,
        "baseAssetPrecision": 8,
        "quoteAsset": quote,
        "quotePrecision": quote_precision,
        "quoteAssetPrecision": quote_precision,
        "orderTypes": ["LIMIT", "MARKET"],
        "quoteOrderQtyMarketAllowed": quote_order_qty_allowed,
        "filters": filters,
    }


def exchange_info(*symbols: dict[str, Any]) -> ExchangeInfo:
    return ExchangeInfo.model_validate({"serverTime": 1618000000000, "symbols": list(symbols)})


def account_info(**balances: str | tuple[str, str]) -> AccountInfo:
    items = []
    for asset, amount in balances.items():
        free, locked = amount if isinstance(amount, tuple) else (amount, "0")
        items.append({"asset": asset, "free": free, "locked": locked})
    return AccountInfo.model_validate({"accountType": "SPOT", "canTrade": True, "balances": items})


class FakeClient:
    """Stands in for BinanceSpotClient; records every submitted order."""

    def __init__(
        self,
        *,
        account: AccountInfo | None = None,
        open_orders: list[dict[str, Any]] | None = None,
        avg_prices: dict[str, str] | None = None,
        exchange: ExchangeInfo | None = None,
        order_status: int = 200,
        order_body: str = "{}",
        order_error: Exception | None = None,
    ) -> None:
        self.account = account or account_info()
        self.open_orders = OpenOrders.model_validate({"orders": open_orders or []})
        self.avg_prices = avg_prices or {}
        self.exchange = exchange or exchange_info()
        self.order_status = order_status
        self.order_body = order_body
        self.order_error = order_error
        self.orders: list[tuple[list[tuple[str, Any]], bool]] = []
        self.avg_price_calls: list[str] = []

    async def get_exchange_info(self) -> ExchangeInfo:
        return self.exchange

    async def get_account_info(self) -> AccountInfo:
        return self.account

    async def get_open_orders(self, symbol: str = "") -> OpenOrders:
        return self.open_orders

    async def get_avg_price(self, symbol: str) -> AvgPrice:
        self.avg_price_calls.append(symbol)
        if symbol not in self.avg_prices:
            raise TransportError(f"no price for {symbol}")
        return AvgPrice(mins=5, price=Decimal(self.avg_prices[symbol]))

    async def new_order(self, params, *, test: bool) -> RawOrderResponse:
        self.orders.append((list(params), test))
        if self.order_error is not None:
            raise self.order_error
        return RawOrderResponse(status_code=self.order_status, body=self.order_body, query="symbol=X&signature=<redacted>")
