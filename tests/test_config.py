from decimal import Decimal

import pytest

from binance_cli.config import Configuration, ConfigurationError

CONFIG_TOML = """
API_KEY = "file-key"
SECRET_KEY = "file-secret"
default_quote_asset = "usd"
confirmation_required = true

buy = [
    { name = "BTC", percent = 40 },
    { name = "ETH", percent = "12.5", quote_asset = "btc" },
    { name = "BNB", percent = 10 },
]

keep = [
    { name = "USD" },
    { name = "BNB", min = 500 },
    { name = "ABC", min = 0, sell_to_asset = "BTC" },
]
"""

ENV_NAMES = (
    "BINANCE_API_KEY",
    "BINANCE_SECRET_KEY",
    "BINANCE_DEFAULT_QUOTE_ASSET",
    "BINANCE_DOMAIN",
    "BINANCE_SCHEME",
    "BINANCE_ORDER_LOG_PATH",
    "BINANCE_TEST",
    "BINANCE_CONFIRMATION_REQUIRED",
    "BINANCE_RECV_WINDOW_MS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path, text: str = CONFIG_TOML):
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


def test_from_toml_reads_tables_in_order(tmp_path) -> None:
    config = Configuration.from_toml(_write(tmp_path))
    assert config.api_key == "file-key"
    assert config.default_quote_asset == "USD"
    assert list(config.buy) == ["BTC", "ETH", "BNB"]
    assert config.buy["ETH"].percent == Decimal("12.5")
    assert config.buy["ETH"].quote_asset == "BTC"
    assert config.keep["USD"].min is None
    assert config.keep["BNB"].min == Decimal("500")
    assert config.keep["ABC"].sell_to_asset == "BTC"
    assert config.base_url == "https://api.binance.us"


def test_secret_is_not_in_repr(tmp_path) -> None:
    config = Configuration.from_toml(_write(tmp_path))
    assert "file-secret" not in repr(config)


def test_precedence_file_env_overrides(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BINANCE_API_KEY", "env-key")
    monkeypatch.setenv("BINANCE_TEST", "yes")
    monkeypatch.setenv("BINANCE_DOMAIN", "binance.com")
    monkeypatch.setenv("BINANCE_RECV_WINDOW_MS", "10000")

    config = Configuration.load(_write(tmp_path), api_key=None, default_quote_asset="usdt", test=None)

    assert config.api_key == "env-key"
    assert config.secret_key == "file-secret"
    assert config.test is True
    assert config.default_quote_asset == "USDT"
    assert config.recv_window_ms == 10000
    assert config.base_url == "https://api.binance.com"


def test_unknown_env_flag_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BINANCE_CONFIRMATION_REQUIRED", "maybe")
    monkeypatch.setenv("BINANCE_RECV_WINDOW_MS", "bad")
    config = Configuration.load()
    assert config.confirmation_required is True
    assert config.recv_window_ms == 5000


def test_missing_or_invalid_file_is_a_configuration_error(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        Configuration.from_toml(tmp_path / "missing.toml")
    with pytest.raises(ConfigurationError):
        Configuration.from_toml(_write(tmp_path, "buy = [ {"))


@pytest.mark.parametrize(
    "entry",
    [
        {"name": "BTC", "percent": 101},
        {"name": "BTC", "percent": -1},
        {"name": "BTC", "percent": "lots"},
        {"name": "BTC"},
        {"percent": 10},
    ],
)
def test_bad_buy_entries(entry) -> None:
    with pytest.raises(ConfigurationError):
        Configuration.from_mapping({"buy": [entry]})


def test_require_keys_and_buy_table() -> None:
    with pytest.raises(ConfigurationError):
        Configuration().require_keys()
    with pytest.raises(ConfigurationError):
        Configuration(api_key="k", secret_key="s").require_buy_table()
    Configuration(api_key="k", secret_key="s").require_keys()
