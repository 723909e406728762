import json
from decimal import Decimal
from urllib.parse import parse_qsl

import httpx
import pytest

from binance_cli.config import Configuration
from binance_cli.exchange.base import ExchangeRejectedError, TransportError
from binance_cli.exchange.binance_spot import BinanceSpotClient
from binance_cli.exchange.signature import sign
from support import symbol_payload


def _config() -> Configuration:
    return Configuration(api_key="api-key", secret_key="secret-key", recv_window_ms=5000)


def _client(handler) -> BinanceSpotClient:
    return BinanceSpotClient(_config(), transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_exchange_info_is_fetched_once_and_parsed() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            200, json={"serverTime": 1618000000000, "symbols": [symbol_payload("BTCUSD", "BTC", "USD")]}
        )

    client = _client(handler)
    first = await client.get_exchange_info()
    second = await client.get_exchange_info()

    assert first is second
    assert len(calls) == 1
    assert calls[0].url == "https://api.binance.us/api/v3/exchangeInfo"
    assert calls[0].headers["X-MBX-APIKEY"] == "api-key"
    assert first.get_symbol("BTCUSD").min_notional == Decimal("10")


@pytest.mark.asyncio
async def test_account_request_is_signed() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["query"] = request.url.query.decode()
        return httpx.Response(200, json={"balances": [{"asset": "USD", "free": "12.5", "locked": "0"}]})

    account = await _client(handler).get_account_info()

    assert account.free("USD") == Decimal("12.5")
    assert seen["path"] == "/api/v3/account"
    unsigned, _, signature = seen["query"].rpartition("&signature=")
    assert unsigned.startswith("recvWindow=5000&timestamp=")
    assert signature == sign("secret-key", unsigned)


@pytest.mark.asyncio
async def test_open_orders_and_avg_price() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v3/openOrders":
            assert dict(parse_qsl(request.url.query.decode()))["symbol"] == "BNBUSD"
            return httpx.Response(
                200,
                json=[{"symbol": "BNBUSD", "orderId": 9, "side": "BUY", "origQty": "1", "executedQty": "0"}],
            )
        assert request.url.query.decode() == "symbol=BNBUSD"
        return httpx.Response(200, json={"mins": 5, "price": "301.25"})

    client = _client(handler)
    open_orders = await client.get_open_orders("BNBUSD")
    avg_price = await client.get_avg_price("BNBUSD")

    assert open_orders.count_for("BNBUSD") == 1
    assert avg_price.price == Decimal("301.25")


@pytest.mark.asyncio
async def test_snapshot_rejection_raises_with_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"code": -2015, "msg": "Invalid API-key, IP, or permissions for action."})

    with pytest.raises(ExchangeRejectedError) as excinfo:
        await _client(handler).get_account_info()

    assert excinfo.value.status_code == 401
    assert excinfo.value.error_code == -2015
    assert excinfo.value.is_auth_error
    assert excinfo.value.retriable is False


@pytest.mark.asyncio
async def test_network_failure_and_non_json_body_are_transport_errors() -> None:
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        await _client(broken).get_avg_price("BNBUSD")

    def html(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(TransportError):
        await _client(html).get_avg_price("BNBUSD")


@pytest.mark.asyncio
async def test_new_order_posts_signed_body_and_never_raises_on_rejection() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = request.content.decode()
        seen["content_type"] = request.headers["Content-Type"]
        return httpx.Response(400, json={"code": -1013, "msg": "Filter failure: NOTIONAL"})

    params = [("symbol", "BNBUSD"), ("side", "BUY"), ("type", "MARKET"), ("quoteOrderQty", "50.00")]
    raw = await _client(handler).new_order(params, test=True)

    assert seen["method"] == "POST"
    assert seen["path"] == "/api/v3/order/test"
    assert seen["content_type"] == "application/x-www-form-urlencoded"
    assert seen["body"].startswith("symbol=BNBUSD&side=BUY&type=MARKET&quoteOrderQty=50.00&recvWindow=5000")
    unsigned, _, signature = seen["body"].rpartition("&signature=")
    assert signature == sign("secret-key", unsigned)
    assert raw.status_code == 400
    assert not raw.ok
    assert json.loads(raw.body)["code"] == -1013
    assert raw.query.endswith("signature=<redacted>")


@pytest.mark.asyncio
async def test_unexpected_snapshot_shape_is_a_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v3/openOrders":
            return httpx.Response(200, json=[{"symbol": "ABCUSD"}])
        return httpx.Response(200, json={"mins": 5})

    client = _client(handler)
    with pytest.raises(TransportError) as excinfo:
        await client.get_open_orders("ABCUSD")
    assert excinfo.value.details == {"path": "/api/v3/openOrders"}
    assert json.loads(excinfo.value.body) == [{"symbol": "ABCUSD"}]

    with pytest.raises(TransportError):
        await client.get_avg_price("ABCUSD")


@pytest.mark.asyncio
async def test_all_orders_and_my_trades_are_signed_per_symbol() -> None:
    queries: dict[str, dict[str, str]] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        queries[request.url.path] = dict(parse_qsl(request.url.query.decode()))
        if request.url.path == "/api/v3/allOrders":
            return httpx.Response(
                200,
                json=[
                    {
                        "symbol": "BNBUSD",
                        "orderId": 3,
                        "side": "SELL",
                        "type": "MARKET",
                        "status": "FILLED",
                        "origQty": "2",
                        "executedQty": "2",
                        "cummulativeQuoteQty": "600.5",
                        "time": 1618000000000,
                    }
                ],
            )
        return httpx.Response(
            200,
            json=[
                {
                    "symbol": "BNBUSD",
                    "id": 11,
                    "orderId": 3,
                    "price": "300.25",
                    "qty": "2",
                    "quoteQty": "600.5",
                    "commission": "0.0015",
                    "commissionAsset": "BNB",
                    "time": 1618000000000,
                    "isBuyer": False,
                    "isMaker": False,
                    "isBestMatch": True,
                }
            ],
        )

    client = _client(handler)
    orders = await client.get_all_orders("BNBUSD", limit=10)
    trades = await client.get_my_trades("BNBUSD")

    assert orders.orders[0].cummulative_quote_qty == Decimal("600.5")
    assert trades.trades[0].trade_id == 11
    assert trades.trades[0].side == "SELL"
    assert queries["/api/v3/allOrders"]["symbol"] == "BNBUSD"
    assert queries["/api/v3/allOrders"]["limit"] == "10"
    assert "limit" not in queries["/api/v3/myTrades"]
    assert "signature" in queries["/api/v3/myTrades"]
