"""Pytest configuration and shared fixtures."""

import logging
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from apcacli.client import BrokerClient
from apcacli.config import ApiConfig

ORDER_ID = uuid.UUID("8b5a4f6c-3f0e-4f5e-9a52-6b1d2c3e4f50")
ASSET_ID = uuid.UUID("b0b6dd9d-8b9b-48a9-ba46-b9d54906e415")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's Alpaca and logging settings out of the tests."""
    for name in (
        "APCA_API_KEY_ID",
        "APCA_API_SECRET_KEY",
        "APCA_API_BASE_URL",
        "APCA_API_DATA_URL",
        "APCA_API_STREAM_URL",
        "APCA_API_DATA_STREAM_URL",
        "APCACLI_DATA_FEED",
        "APCACLI_LOG_LEVEL",
        "APCACLI_LOG_FORMAT",
        "APCACLI",
        "NO_COLOR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo root logger changes made by configure_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def api_config():
    return ApiConfig(key_id="key", secret_key="secret", _env_file=None)


@pytest.fixture
def trading():
    return MagicMock(name="TradingClient")


@pytest.fixture
def data():
    return MagicMock(name="StockHistoricalDataClient")


@pytest.fixture
def broker(api_config, trading, data):
    return BrokerClient(api_config, trading=trading, data=data)


def make_account(**overrides):
    fields = dict(
        id=uuid.UUID("904837e3-3b76-47ec-b432-046db621571b"),
        account_number="PA1234567",
        status="ACTIVE",
        currency="USD",
        buying_power="90000",
        cash="50000",
        equity="87400",
        last_equity="86900",
        portfolio_value="87400",
        long_market_value="37400",
        short_market_value="0",
        initial_margin="0",
        maintenance_margin="0",
        pattern_day_trader=False,
        daytrade_count=0,
        shorting_enabled=True,
        trading_blocked=False,
        transfers_blocked=False,
        account_blocked=False,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_position(**overrides):
    fields = dict(
        asset_id=ASSET_ID,
        symbol="AAPL",
        exchange="NASDAQ",
        side="long",
        qty="100",
        avg_entry_price="150",
        current_price="185",
        lastday_price="183",
        cost_basis="15000",
        market_value="18500",
        unrealized_pl="3500",
        unrealized_plpc="0.2333",
        unrealized_intraday_pl="200",
        unrealized_intraday_plpc="0.0109",
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_order(**overrides):
    fields = dict(
        id=ORDER_ID,
        client_order_id="client-1",
        status="new",
        symbol="AAPL",
        side="sell",
        order_class="simple",
        order_type="stop_limit",
        qty="100",
        notional=None,
        filled_qty="0",
        filled_avg_price=None,
        limit_price="150.15",
        stop_price="151.50",
        time_in_force="gtc",
        extended_hours=False,
        created_at=datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc),
        submitted_at=datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc),
        filled_at=None,
        legs=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_asset(**overrides):
    fields = dict(
        id=ASSET_ID,
        symbol="AAPL",
        name="Apple Inc. Common Stock",
        asset_class="us_equity",
        exchange="NASDAQ",
        status="active",
        tradable=True,
        marginable=True,
        shortable=True,
        easy_to_borrow=True,
        fractionable=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)
