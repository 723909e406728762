from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union

from binance_cli.exchange.models import Symbol
from binance_cli.orders.validation import QuoteOrderQtyNotAllowed, round_down


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class MarketQuantity:
    """MARKET order sized in the base asset."""

    qty: Decimal

    def order_params(self) -> list[tuple[str, str]]:
        return [("type", "MARKET"), ("quantity", format(self.qty, "f"))]

    def __str__(self) -> str:
        return f"{self.qty}"


@dataclass(frozen=True)
class MarketQuoteOrderQty:
    """MARKET order sized by how much quote asset to spend or receive."""

    qty: Decimal

    def order_params(self) -> list[tuple[str, str]]:
        return [("type", "MARKET"), ("quoteOrderQty", format(self.qty, "f"))]

    def __str__(self) -> str:
        return f"{self.qty} (quote)"


TradeOrderType = Union[MarketQuantity, MarketQuoteOrderQty]


def quote_order_qty(symbol: Symbol, value: Decimal) -> MarketQuoteOrderQty:
    if not symbol.quote_order_qty_market_allowed:
        raise QuoteOrderQtyNotAllowed(symbol.symbol)
    return MarketQuoteOrderQty(round_down(value, symbol.quote_precision))
