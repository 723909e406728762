"""
Percentage based buying.

Each ``buy`` entry spends ``percent`` of the free balance of its quote asset
(the entry's own ``quote_asset`` or the configured default) on the target
asset with a quote sized market order. Entries with nothing to spend are
skipped; a symbol that does not exist, or that does not accept quote sized
market orders, fails the whole run before anything is submitted.
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
from binance_cli.orders.order_types import MarketQuoteOrderQty, Side, quote_order_qty
from binance_cli.orders.responses import TradeResponse
from binance_cli.orders.validation import UnknownSymbol

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ProcessRec:
    symbol_name: str
    precision: int
    buy_value: Decimal
    order_type: MarketQuoteOrderQty
    quote_asset: str = ""


def plan_auto_buy(
    config: Configuration,
    account_info: AccountInfo,
    exchange_info: ExchangeInfo,
) -> List[ProcessRec]:
    config.require_buy_table()
    process_recs: List[ProcessRec] = []
    for rec in config.buy.values():
        quote_asset = rec.quote_asset or config.default_quote_asset
        balance = account_info.get_balance(quote_asset)
        if balance is None:
            logger.info("Skipping %s: no %s balance to fund it", rec.name, quote_asset)
            continue

        buy_value = (rec.percent / HUNDRED) * balance.free
        if buy_value <= 0:
            logger.info("Skipping %s: nothing to spend (%s%% of %s %s)", rec.name, rec.percent, balance.free, quote_asset)
            continue
        if rec.name == quote_asset:
            logger.info("Skipping %s: cannot buy an asset with itself", rec.name)
            continue

        symbol_name = f"{rec.name}{quote_asset}"
        symbol = exchange_info.get_symbol(symbol_name)
        if symbol is None:
            raise UnknownSymbol(symbol_name)
        order_type = quote_order_qty(symbol, buy_value)
        if order_type.qty <= 0:
            logger.info(
                "Skipping %s: %s %s rounds to zero at %d decimals",
                symbol.symbol, buy_value, quote_asset, symbol.quote_precision,
            )
            continue
        process_recs.append(
            ProcessRec(
                symbol_name=symbol.symbol,
                precision=symbol.quote_precision,
                buy_value=order_type.qty,
                order_type=order_type,
                quote_asset=quote_asset,
            )
        )
    return process_recs


async def auto_buy(
    config: Configuration,
    executor: OrderExecutor,
    account_info: AccountInfo,
    exchange_info: ExchangeInfo,
    confirm: Callable[[str], bool] = confirm_on_stdin,
    out: Callable[[str], None] = print,
) -> List[Tuple[ProcessRec, TradeResponse]]:
    process_recs = plan_auto_buy(config, account_info, exchange_info)
    if not process_recs:
        out(" ** NOTHING to buy **")
        return []

    for pr in process_recs:
        out(f"BUYING {pr.buy_value:>12} {pr.quote_asset:<6} of {pr.symbol_name}")

    if not config.test and config.confirmation_required:
        if not confirm("Are you sure? (y/N) "):
            out("Not confirmed, nothing bought")
            return []

    results: List[Tuple[ProcessRec, TradeResponse]] = []
    for pr in process_recs:
        try:
            response = await executor.market_order(exchange_info, pr.symbol_name, pr.order_type, Side.BUY)
        except ExchangeError as exc:
            logger.warning("Auto-buy of %s aborted: %s", pr.symbol_name, exc)
            out(f"SKIPPING {pr.symbol_name}, {exc}")
            continue
        out(f"{pr.symbol_name}: {response}")
        results.append((pr, response))
    return results
