from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from binance_cli.config import Configuration
from binance_cli.exchange.base import (
    ExchangeRejectedError,
    RawOrderResponse,
    TransportError,
)
from binance_cli.exchange.models import AccountInfo, AvgPrice, ExchangeInfo, OpenOrders, Orders, Trades
from binance_cli.exchange.signature import query_string, redact_signature, signed_query

logger = logging.getLogger(__name__)

ORDER_PATH = "/api/v3/order"
TEST_ORDER_PATH = "/api/v3/order/test"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_code(payload: Any) -> int | None:
    if not isinstance(payload, dict):
        return None
    try:
        return int(payload.get("code"))
    except (TypeError, ValueError):
        return None


def _error_message(response: httpx.Response, payload: Any) -> str:
    if isinstance(payload, dict):
        msg = payload.get("msg") or payload.get("message")
        if msg:
            return str(msg)
    return response.text or f"HTTP {response.status_code}"


def _parse(model: Type[ModelT], payload: Any, *, what: str, path: str) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        logger.warning("%s returned an unexpected body: %s", what, exc)
        raise TransportError(
            f"Binance {what} returned an unexpected body: {exc.error_count()} invalid field(s)",
            body=json.dumps(payload, default=str),
            details={"path": path},
        ) from exc


@dataclass
class BinanceSpotClient:
    """
    Thin async client over the spot REST API.

    Snapshot reads raise on failure; order submission returns the raw
    response so the caller can classify it.
    """

    config: Configuration
    transport: httpx.AsyncBaseTransport | None = None
    _exchange_info: ExchangeInfo | None = field(default=None, init=False, repr=False)
    _exchange_info_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def _build_timeout(self) -> httpx.Timeout:
        seconds = self.config.timeout_seconds
        return httpx.Timeout(seconds, connect=seconds, read=seconds)

    def _headers(self) -> dict[str, str]:
        return {"X-MBX-APIKEY": self.config.api_key}

    def _signed(self, params: Iterable[tuple[str, Any]]) -> str:
        return signed_query(
            self.config.secret_key,
            list(params),
            recv_window_ms=self.config.recv_window_ms,
        )

    async def _send(self, method: str, path: str, query: str) -> httpx.Response:
        url = f"{path}?{query}" if query and method == "GET" else path
        content = query.encode("utf-8") if method == "POST" else None
        headers = self._headers()
        if content is not None:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self._build_timeout(),
                transport=self.transport,
            ) as client:
                return await client.request(method, url, content=content, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Binance request failed: {exc.__class__.__name__}: {exc}",
                details={"path": path},
            ) from exc

    async def _get_json(self, path: str, query: str, *, what: str) -> Any:
        response = await self._send("GET", path, query)
        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = None

        if not (200 <= response.status_code < 300):
            message = _error_message(response, payload)
            logger.warning("%s failed: HTTP %s %s", what, response.status_code, message)
            raise ExchangeRejectedError(
                f"Binance {what} failed: HTTP {response.status_code}: {message}",
                status_code=response.status_code,
                error_code=_error_code(payload),
                body=response.text,
                details={"path": path},
            )
        if payload is None:
            raise TransportError(
                f"Binance {what} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
                details={"path": path},
            )
        return payload

    async def get_exchange_info(self) -> ExchangeInfo:
        if self._exchange_info is not None:
            return self._exchange_info
        async with self._exchange_info_lock:
            if self._exchange_info is None:
                payload = await self._get_json("/api/v3/exchangeInfo", "", what="exchangeInfo")
                self._exchange_info = _parse(ExchangeInfo, payload, what="exchangeInfo", path="/api/v3/exchangeInfo")
                logger.debug("exchangeInfo: %d symbols", len(self._exchange_info))
            return self._exchange_info

    async def get_account_info(self) -> AccountInfo:
        payload = await self._get_json("/api/v3/account", self._signed([]), what="account")
        return _parse(AccountInfo, payload, what="account", path="/api/v3/account")

    async def get_open_orders(self, symbol: str = "") -> OpenOrders:
        params = [("symbol", symbol)] if symbol else []
        payload = await self._get_json("/api/v3/openOrders", self._signed(params), what="openOrders")
        return _parse(OpenOrders, {"orders": payload}, what="openOrders", path="/api/v3/openOrders")

    async def get_avg_price(self, symbol: str) -> AvgPrice:
        payload = await self._get_json(
            "/api/v3/avgPrice",
            query_string([("symbol", symbol)]),
            what=f"avgPrice {symbol}",
        )
        return _parse(AvgPrice, payload, what=f"avgPrice {symbol}", path="/api/v3/avgPrice")

    async def get_all_orders(self, symbol: str, limit: int | None = None) -> Orders:
        params: list[tuple[str, Any]] = [("symbol", symbol)]
        if limit is not None:
            params.append(("limit", limit))
        payload = await self._get_json("/api/v3/allOrders", self._signed(params), what=f"allOrders {symbol}")
        return _parse(Orders, {"orders": payload}, what=f"allOrders {symbol}", path="/api/v3/allOrders")

    async def get_my_trades(self, symbol: str, limit: int | None = None) -> Trades:
        params: list[tuple[str, Any]] = [("symbol", symbol)]
        if limit is not None:
            params.append(("limit", limit))
        payload = await self._get_json("/api/v3/myTrades", self._signed(params), what=f"myTrades {symbol}")
        return _parse(Trades, {"trades": payload}, what=f"myTrades {symbol}", path="/api/v3/myTrades")

    async def new_order(self, params: Iterable[tuple[str, Any]], *, test: bool) -> RawOrderResponse:
        path = TEST_ORDER_PATH if test else ORDER_PATH
        query = self._signed(params)
        logger.debug("POST %s %s", path, redact_signature(query))
        response = await self._send("POST", path, query)
        return RawOrderResponse(
            status_code=response.status_code,
            body=response.text,
            query=redact_signature(query),
        )
