"""
Request signing for authenticated (SIGNED) endpoints.

The exchange verifies an HMAC-SHA256 of the exact query bytes it receives,
so parameters are rendered once, in order, and the signature is appended
last without touching what was signed.
"""
from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal
from typing import Any, Iterable

from binance_cli.common.time_utils import now_ms


def _render(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def query_string(params: Iterable[tuple[str, Any]] | dict[str, Any]) -> str:
    items = params.items() if isinstance(params, dict) else params
    return "&".join(f"{key}={_render(value)}" for key, value in items)


def sign(secret_key: str | bytes, canonical_query: str | bytes) -> str:
    key = secret_key.encode("utf-8") if isinstance(secret_key, str) else secret_key
    msg = canonical_query.encode("utf-8") if isinstance(canonical_query, str) else canonical_query
    return hmac.new(key, msg, hashlib.sha256).hexdigest()


def append_signature(query: str, signature: str) -> str:
    if not query:
        return f"signature={signature}"
    return f"{query}&signature={signature}"


def signed_query(
    secret_key: str | bytes,
    params: Iterable[tuple[str, Any]] | dict[str, Any],
    *,
    recv_window_ms: int,
    timestamp_ms: int | None = None,
) -> str:
    items = list(params.items() if isinstance(params, dict) else params)
    items.append(("recvWindow", recv_window_ms))
    items.append(("timestamp", timestamp_ms if timestamp_ms is not None else now_ms()))
    query = query_string(items)
    return append_signature(query, sign(secret_key, query))


def redact_signature(query: str) -> str:
    head, sep, _ = query.rpartition("signature=")
    if not sep:
        return query
    return f"{head}signature=<redacted>"
