"""
Sell down owned balances according to the ``keep`` table.

A keep entry without ``min`` keeps the whole balance, a keep entry with
``min`` keeps that much and sells the rest, and an asset with no keep entry
is sold entirely. Proceeds go to the entry's ``sell_to_asset`` or the
configured default quote asset.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Tuple

from binance_cli.common.console import confirm as confirm_on_stdin
from binance_cli.config import Configuration
from binance_cli.exchange.base import ExchangeError
from binance_cli.exchange.models import AccountInfo, ExchangeInfo
from binance_cli.orders.executor import OrderExecutor
from binance_cli.orders.order_types import MarketQuantity, Side
from binance_cli.orders.responses import TradeResponse

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class SellRec:
    asset: str
    symbol_name: str
    owned_qty: Decimal
    keep_qty: Decimal
    sell_qty: Decimal
    sell_to_asset: str


def plan_auto_sell(
    config: Configuration,
    account_info: AccountInfo,
    exchange_info: ExchangeInfo,
) -> List[SellRec]:
    sell_recs: List[SellRec] = []
    for balance in account_info.nonzero_balances():
        owned_qty = balance.owned
        keeping = config.keep.get(balance.asset)
        if keeping is None:
            keep_qty = ZERO
            sell_to_asset = config.default_quote_asset
        else:
            keep_qty = owned_qty if keeping.min is None else min(keeping.min, owned_qty)
            sell_to_asset = keeping.sell_to_asset or config.default_quote_asset

        sell_qty = min(owned_qty - keep_qty, balance.free)
        if sell_qty <= 0:
            logger.info("Keeping all %s of %s", owned_qty, balance.asset)
            continue
        if balance.asset == sell_to_asset:
            logger.info("Skipping %s: already the sell to asset", balance.asset)
            continue

        symbol_name = f"{balance.asset}{sell_to_asset}"
        if exchange_info.get_symbol(symbol_name) is None:
            logger.info("Skipping %s: %s is not traded", balance.asset, symbol_name)
            continue
        sell_recs.append(
            SellRec(
                asset=balance.asset,
                symbol_name=symbol_name,
                owned_qty=owned_qty,
                keep_qty=keep_qty,
                sell_qty=sell_qty,
                sell_to_asset=sell_to_asset,
            )
        )
    return sell_recs


async def auto_sell(
    config: Configuration,
    executor: OrderExecutor,
    account_info: AccountInfo,
    exchange_info: ExchangeInfo,
    confirm: Callable[[str], bool] = confirm_on_stdin,
    out: Callable[[str], None] = print,
) -> List[Tuple[SellRec, TradeResponse]]:
    sell_recs = plan_auto_sell(config, account_info, exchange_info)
    if not sell_recs:
        out(" ** NOTHING to sell **")
        return []

    for sr in sell_recs:
        out(
            f"SELLING {sr.sell_qty:>18} of {sr.asset:<6} for {sr.sell_to_asset:<6} "
            f"keeping {sr.keep_qty}"
        )

    if not config.test and config.confirmation_required:
        if not confirm("Are you sure? (y/N) "):
            out("Not confirmed, nothing sold")
            return []

    results: List[Tuple[SellRec, TradeResponse]] = []
    for sr in sell_recs:
        try:
            response = await executor.market_order(
                exchange_info, sr.symbol_name, MarketQuantity(sr.sell_qty), Side.SELL
            )
        except ExchangeError as exc:
            logger.warning("Auto-sell of %s aborted: %s", sr.symbol_name, exc)
            out(f"SKIPPING {sr.symbol_name}, {exc}")
            continue
        out(f"{sr.symbol_name}: {response}")
        results.append((sr, response))
    return results
