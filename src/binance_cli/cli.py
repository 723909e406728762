"""
Command line entrypoint.

Usage:
    export BINANCE_API_KEY=...
    export BINANCE_SECRET_KEY=...
    binance-cli -c config.toml ai
    binance-cli -c config.toml -t buy-market-value BNBUSD 25
    binance-cli -c config.toml auto-buy
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Sequence

from binance_cli.allocation.auto_buy import auto_buy
from binance_cli.allocation.auto_sell import auto_sell
from binance_cli.common.env import init_env
from binance_cli.common.json_safe import json_safe
from binance_cli.common.time_utils import time_ms_to_utc
from binance_cli.config import Configuration, ConfigurationError
from binance_cli.exchange.base import ExchangeError
from binance_cli.exchange.binance_spot import BinanceSpotClient
from binance_cli.exchange.models import Order
from binance_cli.orders.executor import OrderExecutor
from binance_cli.orders.order_log import OrderLog
from binance_cli.orders.order_types import MarketQuantity, MarketQuoteOrderQty, Side, TradeOrderType, quote_order_qty
from binance_cli.orders.responses import FailureInternal
from binance_cli.orders.validation import OrderValidationError, QuoteOrderQtyNotAllowed

logger = logging.getLogger(__name__)


def _decimal_arg(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal number: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="binance-cli", description="Binance spot market order client")
    parser.add_argument("-c", "--config", help="TOML configuration file")
    parser.add_argument("--api-key")
    parser.add_argument("--secret-key")
    parser.add_argument("--default-quote-asset")
    parser.add_argument("--domain", help="API domain, e.g. binance.us or binance.com")
    parser.add_argument("--order-log-path", help="append every order result to this JSON lines file")
    parser.add_argument("-t", "--test", action="store_true", default=None, help="submit to the test order endpoint")
    parser.add_argument("--no-confirm", action="store_true", help="do not ask before auto-buy/auto-sell")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("ai", help="account info with USD values")
    sub.add_parser("ei", help="exchange info summary")
    sei = sub.add_parser("sei", help="symbol exchange info")
    sei.add_argument("symbol")
    sap = sub.add_parser("sap", help="symbol average price")
    sap.add_argument("symbol")
    oo = sub.add_parser("oo", help="open orders")
    oo.add_argument("symbol", nargs="?", default="")
    ao = sub.add_parser("ao", help="all orders for a symbol")
    ao.add_argument("symbol")
    ao.add_argument("--limit", type=int)
    st = sub.add_parser("st", help="my trades for a symbol")
    st.add_argument("symbol")
    st.add_argument("--limit", type=int)
    sub.add_parser("ol", help="display the order log")
    for name, help_text in (
        ("buy-market", "market buy QTY of the base asset"),
        ("sell-market", "market sell QTY of the base asset"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("symbol")
        cmd.add_argument("quantity", type=_decimal_arg)
    for name, help_text in (
        ("buy-market-value", "market buy VALUE worth, in the quote asset"),
        ("sell-market-value", "market sell VALUE worth, in the quote asset"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("symbol")
        cmd.add_argument("value", type=_decimal_arg)
    sub.add_parser("auto-buy", help="buy according to the buy table")
    sub.add_parser("auto-sell", help="sell according to the keep table")
    return parser


def load_config(args: argparse.Namespace) -> Configuration:
    return Configuration.load(
        args.config,
        api_key=args.api_key,
        secret_key=args.secret_key,
        default_quote_asset=args.default_quote_asset,
        domain=args.domain,
        order_log_path=args.order_log_path,
        test=args.test,
        confirmation_required=False if args.no_confirm else None,
    )


async def _account_info(config: Configuration, client: BinanceSpotClient) -> None:
    config.require_keys()
    account_info, exchange_info = await asyncio.gather(client.get_account_info(), client.get_exchange_info())
    total = await account_info.update_values_in_usd(client, exchange_info)
    print(f"account_type: {account_info.account_type} can_trade: {account_info.can_trade}")
    for balance in sorted(account_info.nonzero_balances(), key=lambda b: b.value_in_usd, reverse=True):
        print(
            f"{balance.asset:<6} free: {balance.free:>20} locked: {balance.locked:>20} "
            f"value: ${balance.value_in_usd:>12.2f}"
        )
    print(f"total value: ${total:.2f}")


async def _exchange_info(client: BinanceSpotClient) -> None:
    exchange_info = await client.get_exchange_info()
    print(f"server_time: {time_ms_to_utc(exchange_info.server_time).isoformat()}")
    print(f"symbols: {len(exchange_info)}")
    for symbol in exchange_info.symbols:
        print(f"{symbol.symbol:<12} {symbol.base_asset:<6} {symbol.quote_asset:<6} {symbol.status}")


async def _symbol_exchange_info(client: BinanceSpotClient, symbol_name: str) -> int:
    exchange_info = await client.get_exchange_info()
    symbol = exchange_info.get_symbol(symbol_name)
    if symbol is None:
        print(f"{symbol_name.upper()} was not found in exchange info")
        return 1
    print(json.dumps(json_safe(symbol.model_dump(by_alias=True, exclude={"filters"})), indent=2))
    print(json.dumps(symbol.filters.raw, indent=2))
    return 0


def _order_line(order: Order) -> str:
    return (
        f"{order.symbol:<12} {order.side:<4} {order.order_type:<10} {order.status:<16} "
        f"qty: {order.orig_qty} executed: {order.executed_qty} price: {order.price} order_id: {order.order_id}"
    )


async def _open_orders(config: Configuration, client: BinanceSpotClient, symbol_name: str) -> None:
    config.require_keys()
    open_orders = await client.get_open_orders(symbol_name.upper())
    if not len(open_orders):
        print("No open orders")
    for order in open_orders.orders:
        print(_order_line(order))


async def _all_orders(config: Configuration, client: BinanceSpotClient, symbol_name: str, limit: int | None) -> None:
    config.require_keys()
    orders = await client.get_all_orders(symbol_name.upper(), limit)
    if not len(orders):
        print("No orders")
    for order in orders.orders:
        print(f"{time_ms_to_utc(order.time).isoformat()} {_order_line(order)}")


async def _my_trades(config: Configuration, client: BinanceSpotClient, symbol_name: str, limit: int | None) -> None:
    config.require_keys()
    trades = await client.get_my_trades(symbol_name.upper(), limit)
    if not len(trades):
        print("No trades")
    for trade in trades.trades:
        print(
            f"{time_ms_to_utc(trade.time).isoformat()} {trade.symbol:<12} {trade.side:<4} "
            f"qty: {trade.qty} price: {trade.price} quote_qty: {trade.quote_qty} "
            f"commission: {trade.commission} {trade.commission_asset} order_id: {trade.order_id}"
        )


def _order_log(config: Configuration) -> None:
    if config.order_log_path is None:
        raise ConfigurationError("No order log configured, set order_log_path or --order-log-path")
    entries = OrderLog(config.order_log_path).entries()
    if not entries:
        print(f"Order log {config.order_log_path} is empty")
    for entry in entries:
        line = f"{entry.get('logged_at', '')} {entry.get('symbol', '')} {entry.get('side', '')} {entry.get('order', '')}"
        print(f"{line} {entry.get('state', '')} {entry.get('kind', '')}".strip())


async def _market_order(
    config: Configuration,
    client: BinanceSpotClient,
    symbol_name: str,
    side: Side,
    amount: Decimal,
    *,
    by_value: bool,
) -> None:
    config.require_keys()
    exchange_info = await client.get_exchange_info()
    executor = OrderExecutor(config, client, OrderLog(config.order_log_path))
    order_type: TradeOrderType
    if by_value:
        symbol = exchange_info.get_symbol(symbol_name)
        if symbol is None:
            order_type = MarketQuoteOrderQty(amount)
        else:
            try:
                order_type = quote_order_qty(symbol, amount)
            except QuoteOrderQtyNotAllowed as exc:
                print(FailureInternal(test=config.test, query="", reason=exc.reason, message=exc.message))
                return
    else:
        order_type = MarketQuantity(amount)
    response = await executor.market_order(exchange_info, symbol_name, order_type, side)
    print(f"{symbol_name.upper()}: {response}")


async def _auto(config: Configuration, client: BinanceSpotClient, *, buy: bool) -> None:
    config.require_keys()
    if buy:
        config.require_buy_table()
    account_info, exchange_info = await asyncio.gather(client.get_account_info(), client.get_exchange_info())
    executor = OrderExecutor(config, client, OrderLog(config.order_log_path))
    if buy:
        await auto_buy(config, executor, account_info, exchange_info)
    else:
        await auto_sell(config, executor, account_info, exchange_info)


async def run(args: argparse.Namespace, client: BinanceSpotClient | None = None) -> int:
    try:
        config = load_config(args)
        client = client or BinanceSpotClient(config)
        command = args.command
        if command == "ai":
            await _account_info(config, client)
        elif command == "ei":
            await _exchange_info(client)
        elif command == "sei":
            return await _symbol_exchange_info(client, args.symbol)
        elif command == "sap":
            avg_price = await client.get_avg_price(args.symbol.upper())
            print(f"{args.symbol.upper()}: {avg_price.price} ({avg_price.mins} mins)")
        elif command == "oo":
            await _open_orders(config, client, args.symbol)
        elif command == "ao":
            await _all_orders(config, client, args.symbol, args.limit)
        elif command == "st":
            await _my_trades(config, client, args.symbol, args.limit)
        elif command == "ol":
            _order_log(config)
        elif command in {"buy-market", "sell-market"}:
            side = Side.BUY if command.startswith("buy") else Side.SELL
            await _market_order(config, client, args.symbol, side, args.quantity, by_value=False)
        elif command in {"buy-market-value", "sell-market-value"}:
            side = Side.BUY if command.startswith("buy") else Side.SELL
            await _market_order(config, client, args.symbol, side, args.value, by_value=True)
        elif command in {"auto-buy", "auto-sell"}:
            await _auto(config, client, buy=command == "auto-buy")
        return 0
    except ConfigurationError as exc:
        print(f"configuration error: {exc.reason}", file=sys.stderr)
        return 1
    except OrderValidationError as exc:
        print(f"{exc.reason}: {exc.message}", file=sys.stderr)
        return 1
    except ExchangeError as exc:
        print(f"exchange error: {exc}", file=sys.stderr)
        if exc.is_auth_error:
            print("check BINANCE_API_KEY/BINANCE_SECRET_KEY and the key's IP and trading permissions", file=sys.stderr)
        return 1


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_env()
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
