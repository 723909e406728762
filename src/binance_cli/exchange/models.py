from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from binance_cli.exchange.base import ExchangeError

if TYPE_CHECKING:
    from binance_cli.exchange.binance_spot import BinanceSpotClient

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class _ExchangeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LotSizeFilter(_ExchangeModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    min_qty: Decimal = Field(default=ZERO, alias="minQty")
    max_qty: Decimal = Field(default=ZERO, alias="maxQty")
    step_size: Decimal = Field(default=ZERO, alias="stepSize")


class MinNotionalFilter(_ExchangeModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    min_notional: Decimal = Field(default=ZERO, alias="minNotional")
    apply_to_market: bool = Field(default=True, alias="applyToMarket")
    avg_price_mins: int = Field(default=0, alias="avgPriceMins")


class NotionalFilter(_ExchangeModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    min_notional: Decimal = Field(default=ZERO, alias="minNotional")
    max_notional: Optional[Decimal] = Field(default=None, alias="maxNotional")
    apply_min_to_market: bool = Field(default=True, alias="applyMinToMarket")
    avg_price_mins: int = Field(default=0, alias="avgPriceMins")


class PriceFilter(_ExchangeModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    min_price: Decimal = Field(default=ZERO, alias="minPrice")
    max_price: Decimal = Field(default=ZERO, alias="maxPrice")
    tick_size: Decimal = Field(default=ZERO, alias="tickSize")


class SymbolFilters(_ExchangeModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    lot_size: Optional[LotSizeFilter] = None
    market_lot_size: Optional[LotSizeFilter] = None
    min_notional: Optional[MinNotionalFilter] = None
    notional: Optional[NotionalFilter] = None
    price_filter: Optional[PriceFilter] = None
    max_num_orders: Optional[int] = None
    max_position: Optional[Decimal] = None
    raw: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    @classmethod
    def from_list(cls, raw_filters: List[Dict[str, Any]]) -> "SymbolFilters":
        mapped: Dict[str, Dict[str, Any]] = {}
        for item in raw_filters:
            if not isinstance(item, dict):
                continue
            filter_type = str(item.get("filterType") or "").strip().upper()
            if filter_type:
                mapped[filter_type] = item

        max_num_orders = mapped.get("MAX_NUM_ORDERS", {}).get("maxNumOrders")
        max_position = mapped.get("MAX_POSITION", {}).get("maxPosition")
        return cls(
            lot_size=mapped.get("LOT_SIZE"),
            market_lot_size=mapped.get("MARKET_LOT_SIZE"),
            min_notional=mapped.get("MIN_NOTIONAL"),
            notional=mapped.get("NOTIONAL"),
            price_filter=mapped.get("PRICE_FILTER"),
            max_num_orders=int(max_num_orders) if max_num_orders is not None else None,
            max_position=Decimal(str(max_position)) if max_position is not None else None,
            raw=mapped,
        )


def _first_positive(*values: Optional[Decimal]) -> Decimal:
    for value in values:
        if value is not None and value > 0:
            return value
    return ZERO


class Symbol(_ExchangeModel):
    """
    Trading rules for one pair, as published by exchangeInfo.

    MARKET orders are bound by MARKET_LOT_SIZE; the exchange publishes zeros
    there for some pairs, in which case each bound falls back to LOT_SIZE.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    symbol: str
    status: str = "TRADING"
    base_asset: str = Field(alias="baseAsset")
    base_asset_precision: int = Field(default=8, alias="baseAssetPrecision")
    quote_asset: str = Field(alias="quoteAsset")
    quote_precision: int = Field(default=8, alias="quotePrecision")
    quote_asset_precision: Optional[int] = Field(default=None, alias="quoteAssetPrecision")
    quote_order_qty_market_allowed: bool = Field(default=False, alias="quoteOrderQtyMarketAllowed")
    order_types: Tuple[str, ...] = Field(default=(), alias="orderTypes")
    filters: SymbolFilters = Field(default_factory=SymbolFilters)

    @field_validator("filters", mode="before")
    @classmethod
    def _parse_filters(cls, value: Any) -> Any:
        if isinstance(value, list):
            return SymbolFilters.from_list(value)
        return value

    def _lot_filters(self) -> Tuple[LotSizeFilter, LotSizeFilter]:
        empty = LotSizeFilter()
        return self.filters.market_lot_size or empty, self.filters.lot_size or empty

    @property
    def step_size(self) -> Decimal:
        market, lot = self._lot_filters()
        return _first_positive(market.step_size, lot.step_size)

    @property
    def min_qty(self) -> Decimal:
        market, lot = self._lot_filters()
        return _first_positive(market.min_qty, lot.min_qty)

    @property
    def max_qty(self) -> Optional[Decimal]:
        market, lot = self._lot_filters()
        value = _first_positive(market.max_qty, lot.max_qty)
        return value if value > 0 else None

    @property
    def min_notional(self) -> Optional[Decimal]:
        if self.filters.min_notional is not None:
            return self.filters.min_notional.min_notional
        if self.filters.notional is not None:
            return self.filters.notional.min_notional
        return None

    @property
    def max_num_orders(self) -> Optional[int]:
        return self.filters.max_num_orders

    @property
    def max_position(self) -> Optional[Decimal]:
        return self.filters.max_position


class ExchangeInfo(_ExchangeModel):
    server_time: int = Field(default=0, alias="serverTime")
    symbols: Tuple[Symbol, ...] = ()
    _by_name: Dict[str, Symbol] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._by_name = {sym.symbol: sym for sym in self.symbols}

    def get_symbol(self, name: str) -> Optional[Symbol]:
        return self._by_name.get(name.strip().upper())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get_symbol(name) is not None

    def __len__(self) -> int:
        return len(self.symbols)


class Balance(_ExchangeModel):
    asset: str
    free: Decimal = ZERO
    locked: Decimal = ZERO
    value_in_usd: Decimal = Field(default=ZERO, exclude=True)

    @property
    def owned(self) -> Decimal:
        return self.free + self.locked


class AccountInfo(_ExchangeModel):
    account_type: str = Field(default="SPOT", alias="accountType")
    can_trade: bool = Field(default=True, alias="canTrade")
    can_withdraw: bool = Field(default=True, alias="canWithdraw")
    can_deposit: bool = Field(default=True, alias="canDeposit")
    update_time: int = Field(default=0, alias="updateTime")
    permissions: Tuple[str, ...] = ()
    balances: Dict[str, Balance] = Field(default_factory=dict)

    @field_validator("balances", mode="before")
    @classmethod
    def _balances_by_asset(cls, value: Any) -> Any:
        if isinstance(value, list):
            return {str(item.get("asset")): item for item in value if isinstance(item, dict)}
        return value

    def get_balance(self, asset: str) -> Optional[Balance]:
        return self.balances.get(asset)

    def free(self, asset: str) -> Decimal:
        balance = self.balances.get(asset)
        return balance.free if balance is not None else ZERO

    def owned(self, asset: str) -> Decimal:
        balance = self.balances.get(asset)
        return balance.owned if balance is not None else ZERO

    def nonzero_balances(self) -> List[Balance]:
        return [b for b in self.balances.values() if b.owned > 0]

    async def update_values_in_usd(
        self,
        client: "BinanceSpotClient",
        exchange_info: Optional[ExchangeInfo] = None,
    ) -> Decimal:
        """Estimate each owned balance in USD using the ASSETUSD average price."""
        total = ZERO
        for balance in self.nonzero_balances():
            if balance.asset == "USD":
                price = Decimal("1")
            else:
                sym = f"{balance.asset}USD"
                price = ZERO
                if exchange_info is None or sym in exchange_info:
                    try:
                        price = (await client.get_avg_price(sym)).price
                    except ExchangeError as exc:
                        logger.info("No USD price for %s: %s", balance.asset, exc)
            balance.value_in_usd = price * balance.owned
            total += balance.value_in_usd
        return total


class Order(_ExchangeModel):
    symbol: str
    order_id: int = Field(alias="orderId")
    client_order_id: str = Field(default="", alias="clientOrderId")
    price: Decimal = ZERO
    orig_qty: Decimal = Field(default=ZERO, alias="origQty")
    executed_qty: Decimal = Field(default=ZERO, alias="executedQty")
    cummulative_quote_qty: Decimal = Field(default=ZERO, alias="cummulativeQuoteQty")
    status: str = "NEW"
    order_type: str = Field(default="LIMIT", alias="type")
    side: str
    time: int = 0
    update_time: int = Field(default=0, alias="updateTime")

    @property
    def remaining_qty(self) -> Decimal:
        return max(self.orig_qty - self.executed_qty, ZERO)


class Orders(_ExchangeModel):
    orders: Tuple[Order, ...] = ()

    def __len__(self) -> int:
        return len(self.orders)


class OpenOrders(Orders):
    def count_for(self, symbol: str) -> int:
        return sum(1 for order in self.orders if order.symbol == symbol)

    def sum_buy_orders(self, symbol: Optional[str] = None) -> Decimal:
        return sum(
            (
                order.remaining_qty
                for order in self.orders
                if order.side.upper() == "BUY" and (symbol is None or order.symbol == symbol)
            ),
            ZERO,
        )


class AvgPrice(_ExchangeModel):
    mins: int = 0
    price: Decimal


class Trade(_ExchangeModel):
    symbol: str
    trade_id: int = Field(alias="id")
    order_id: int = Field(alias="orderId")
    order_list_id: int = Field(default=-1, alias="orderListId")
    price: Decimal = ZERO
    qty: Decimal = ZERO
    quote_qty: Decimal = Field(default=ZERO, alias="quoteQty")
    commission: Decimal = ZERO
    commission_asset: str = Field(default="", alias="commissionAsset")
    time: int = 0
    is_buyer: bool = Field(default=False, alias="isBuyer")
    is_maker: bool = Field(default=False, alias="isMaker")
    is_best_match: bool = Field(default=False, alias="isBestMatch")

    @property
    def side(self) -> str:
        return "BUY" if self.is_buyer else "SELL"


class Trades(_ExchangeModel):
    trades: Tuple[Trade, ...] = ()

    def __len__(self) -> int:
        return len(self.trades)
