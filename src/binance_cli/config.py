from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping


logger = logging.getLogger(__name__)

DEFAULT_QUOTE_ASSET = "USD"
DEFAULT_DOMAIN = "binance.us"
DEFAULT_SCHEME = "https"
DEFAULT_RECV_WINDOW_MS = 5000


class ConfigurationError(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    logger.warning("Unknown boolean value for %s=%r, falling back to %s", name, raw, default)
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Unknown integer value for %s=%r, falling back to %s", name, raw, default)
        return default


def _to_decimal(value: Any, *, what: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ConfigurationError(f"{what} is not a number: {value!r}")


@dataclass(frozen=True)
class BuyRec:
    name: str
    percent: Decimal
    quote_asset: str = ""

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "BuyRec":
        name = str(raw.get("name") or "").strip().upper()
        if not name:
            raise ConfigurationError("buy entry is missing a name")
        if "percent" not in raw:
            raise ConfigurationError(f"buy entry {name} is missing percent")
        percent = _to_decimal(raw["percent"], what=f"buy entry {name} percent")
        if percent < 0 or percent > 100:
            raise ConfigurationError(f"buy entry {name} percent {percent} is not in [0, 100]")
        quote_asset = str(raw.get("quote_asset") or "").strip().upper()
        return cls(name=name, percent=percent, quote_asset=quote_asset)


@dataclass(frozen=True)
class KeepRec:
    name: str
    min: Decimal | None = None
    sell_to_asset: str = ""

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "KeepRec":
        name = str(raw.get("name") or "").strip().upper()
        if not name:
            raise ConfigurationError("keep entry is missing a name")
        minimum = raw.get("min")
        min_value = None if minimum is None else _to_decimal(minimum, what=f"keep entry {name} min")
        if min_value is not None and min_value < 0:
            raise ConfigurationError(f"keep entry {name} min {min_value} is negative")
        sell_to_asset = str(raw.get("sell_to_asset") or "").strip().upper()
        return cls(name=name, min=min_value, sell_to_asset=sell_to_asset)


def _keyed_by_name(raw: Any, rec_cls, *, table: str) -> Mapping[str, Any]:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, list):
        raise ConfigurationError(f"{table} must be a list of tables")
    recs: dict[str, Any] = {}
    for item in raw:
        if not isinstance(item, dict):
            raise ConfigurationError(f"{table} entries must be tables, got {item!r}")
        rec = rec_cls.from_mapping(item)
        recs[rec.name] = rec
    return MappingProxyType(recs)


@dataclass(frozen=True)
class Configuration:
    api_key: str = ""
    secret_key: str = field(default="", repr=False)
    default_quote_asset: str = DEFAULT_QUOTE_ASSET
    test: bool = False
    confirmation_required: bool = True
    scheme: str = DEFAULT_SCHEME
    domain: str = DEFAULT_DOMAIN
    recv_window_ms: int = DEFAULT_RECV_WINDOW_MS
    timeout_seconds: float = 10.0
    order_log_path: Path | None = None
    buy: Mapping[str, BuyRec] = field(default_factory=lambda: MappingProxyType({}))
    keep: Mapping[str, KeepRec] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://api.{self.domain}"

    @classmethod
    def from_toml(cls, path: Path | str) -> "Configuration":
        config_path = Path(path)
        try:
            with config_path.open("rb") as fh:
                raw = tomllib.load(fh)
        except FileNotFoundError:
            raise ConfigurationError(f"config file not found: {config_path}")
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"config file {config_path} is not valid TOML: {exc}")
        return cls.from_mapping(raw)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Configuration":
        order_log_path = raw.get("order_log_path")
        return cls(
            api_key=str(raw.get("API_KEY") or ""),
            secret_key=str(raw.get("SECRET_KEY") or ""),
            default_quote_asset=str(raw.get("default_quote_asset") or DEFAULT_QUOTE_ASSET).upper(),
            test=bool(raw.get("test", False)),
            confirmation_required=bool(raw.get("confirmation_required", True)),
            scheme=str(raw.get("scheme") or DEFAULT_SCHEME),
            domain=str(raw.get("domain") or DEFAULT_DOMAIN),
            recv_window_ms=int(raw.get("recv_window_ms") or DEFAULT_RECV_WINDOW_MS),
            order_log_path=Path(order_log_path) if order_log_path else None,
            buy=_keyed_by_name(raw.get("buy"), BuyRec, table="buy"),
            keep=_keyed_by_name(raw.get("keep"), KeepRec, table="keep"),
        )

    def with_env(self) -> "Configuration":
        changes: dict[str, Any] = {}
        if os.getenv("BINANCE_API_KEY"):
            changes["api_key"] = os.environ["BINANCE_API_KEY"].strip()
        if os.getenv("BINANCE_SECRET_KEY"):
            changes["secret_key"] = os.environ["BINANCE_SECRET_KEY"].strip()
        if os.getenv("BINANCE_DEFAULT_QUOTE_ASSET"):
            changes["default_quote_asset"] = os.environ["BINANCE_DEFAULT_QUOTE_ASSET"].strip().upper()
        if os.getenv("BINANCE_DOMAIN"):
            changes["domain"] = os.environ["BINANCE_DOMAIN"].strip()
        if os.getenv("BINANCE_SCHEME"):
            changes["scheme"] = os.environ["BINANCE_SCHEME"].strip()
        if os.getenv("BINANCE_ORDER_LOG_PATH"):
            changes["order_log_path"] = Path(os.environ["BINANCE_ORDER_LOG_PATH"].strip())
        changes["test"] = _env_flag("BINANCE_TEST", default=self.test)
        changes["confirmation_required"] = _env_flag(
            "BINANCE_CONFIRMATION_REQUIRED", default=self.confirmation_required
        )
        changes["recv_window_ms"] = _env_int("BINANCE_RECV_WINDOW_MS", self.recv_window_ms)
        return replace(self, **changes)

    @classmethod
    def load(cls, path: Path | str | None = None, **overrides: Any) -> "Configuration":
        """
        Build the configuration for one invocation.

        Precedence (lowest first): defaults, TOML file, environment, overrides.
        Overrides whose value is None are ignored so unset command line flags
        do not clobber file or environment values.
        """
        config = cls.from_toml(path) if path is not None else cls()
        config = config.with_env()
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "default_quote_asset" in changes:
            changes["default_quote_asset"] = str(changes["default_quote_asset"]).upper()
        if "order_log_path" in changes:
            changes["order_log_path"] = Path(changes["order_log_path"])
        return replace(config, **changes)

    def require_keys(self) -> None:
        if not self.api_key or not self.secret_key:
            raise ConfigurationError("Missing API_KEY/SECRET_KEY")

    def require_buy_table(self) -> None:
        if not self.buy:
            raise ConfigurationError("No buy table in configuration")
