"""Tests for command line argument parsing."""

import argparse
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from apcacli.args import (
    CancelTarget,
    EventType,
    Side,
    TimeFrameArg,
    TimeInForceArg,
    UpdateType,
    parse_amount,
    parse_args,
    parse_cancel_target,
    parse_date,
    parse_order_id,
    parse_quantity,
    parse_symbol,
    parse_symbol_or_id,
    parse_time_in_force,
    parse_timeframe,
)

ORDER_ID = "8b5a4f6c-3f0e-4f5e-9a52-6b1d2c3e4f50"


# ═══════════════════════════════════════════════════════════════════════
# Test: Value parsers
# ═══════════════════════════════════════════════════════════════════════


class TestValueParsers:
    """Tests for the typed option parsers."""

    def test_symbol_upper_cased(self):
        assert parse_symbol("aapl") == "AAPL"
        assert parse_symbol("BRK.B") == "BRK.B"

    @pytest.mark.parametrize("value", ["", "AA PL", "$SPY"])
    def test_symbol_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError, match="failed to parse symbol"):
            parse_symbol(value)

    def test_symbol_or_id(self):
        assert parse_symbol_or_id("msft") == "MSFT"
        assert parse_symbol_or_id(ORDER_ID) == uuid.UUID(ORDER_ID)

    def test_order_id(self):
        assert parse_order_id(ORDER_ID.replace("-", "")) == uuid.UUID(ORDER_ID)
        with pytest.raises(argparse.ArgumentTypeError, match="invalid order id"):
            parse_order_id("not-an-id")

    def test_cancel_target(self):
        assert parse_cancel_target("all").all is True
        target = parse_cancel_target(ORDER_ID)
        assert target == CancelTarget(order_id=uuid.UUID(ORDER_ID))
        assert target.all is False

    def test_time_in_force(self):
        assert parse_time_in_force("today").api_value == "day"
        assert parse_time_in_force("canceled").api_value == "gtc"
        assert parse_time_in_force("market-open").api_value == "opg"
        assert parse_time_in_force("market-close").api_value == "cls"
        with pytest.raises(argparse.ArgumentTypeError, match="invalid time-in-force specifier: forever"):
            parse_time_in_force("forever")

    def test_quantity(self):
        assert parse_quantity("10") == 10
        for value in ("0", "-1", "1.5"):
            with pytest.raises(argparse.ArgumentTypeError):
                parse_quantity(value)

    def test_amount(self):
        assert parse_amount("185.25") == Decimal("185.25")
        for value in ("0", "-3", "abc", "nan", "inf"):
            with pytest.raises(argparse.ArgumentTypeError):
                parse_amount(value)

    def test_date(self):
        assert parse_date("2024-03-01") == date(2024, 3, 1)
        assert parse_date("2024-03-01T14:30:00Z") == datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc)
        with pytest.raises(argparse.ArgumentTypeError, match="invalid date"):
            parse_date("03/01/2024")

    @pytest.mark.parametrize("value, expected", [
        ("1Min", TimeFrameArg(1, "Minute")),
        ("15min", TimeFrameArg(15, "Minute")),
        ("5T", TimeFrameArg(5, "Minute")),
        ("1Hour", TimeFrameArg(1, "Hour")),
        ("Day", TimeFrameArg(1, "Day")),
        ("1W", TimeFrameArg(1, "Week")),
        ("3Month", TimeFrameArg(3, "Month")),
    ])
    def test_timeframe(self, value, expected):
        assert parse_timeframe(value) == expected

    @pytest.mark.parametrize("value", ["60Min", "24Hour", "2Day", "4Month", "1Year", "fast"])
    def test_timeframe_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_timeframe(value)

    def test_timeframe_str(self):
        assert str(TimeFrameArg(15, "Minute")) == "15Min"
        assert str(TimeFrameArg(1, "Day")) == "1Day"


# ═══════════════════════════════════════════════════════════════════════
# Test: Command tree
# ═══════════════════════════════════════════════════════════════════════


class TestCommandTree:
    """Tests for the parsed command structure."""

    def test_account_get(self):
        args = parse_args(["account", "get"])
        assert args.command == "account.get"
        assert args.verbosity == 0

    def test_verbosity(self):
        args = parse_args(["-vvv", "account", "get"])
        assert args.verbosity == 3

    def test_missing_command(self, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_args([])
        assert exc.value.code == 2

    def test_activity(self):
        args = parse_args([
            "account", "activity", "get", "--type", "fill", "--type", "DIV",
            "--after", "2024-01-01", "--direction", "asc",
        ])
        assert args.command == "account.activity.get"
        assert args.types == ["FILL", "DIV"]
        assert args.after == date(2024, 1, 1)
        assert args.until is None
        assert args.direction == "asc"
        assert args.page_size == 100

    def test_config_set_toggles(self):
        args = parse_args(["account", "config", "set", "-e", "-S"])
        assert args.command == "account.config.set"
        assert args.confirm_email is True
        assert args.shorting is False
        assert args.trading_suspended is None

    def test_config_set_conflict(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["account", "config", "set", "--shorting", "--no-shorting"])

    def test_asset_list_class(self):
        args = parse_args(["asset", "list", "--class", "crypto"])
        assert args.command == "asset.list"
        assert args.asset_class == "crypto"

    def test_bars_defaults(self):
        args = parse_args(["bars", "get", "spy"])
        assert args.command == "bars.get"
        assert args.symbol == "SPY"
        assert args.timeframe == TimeFrameArg(1, "Day")
        assert args.start is None and args.end is None and args.limit is None

    @pytest.mark.parametrize("name", ["market", "clock"])
    def test_market_alias(self, name):
        assert parse_args([name]).command == "market"

    def test_order_submit(self):
        args = parse_args([
            "order", "submit", "buy", "aapl", "--quantity", "10",
            "-l", "185.5", "--take-profit-price", "200",
        ])
        assert args.command == "order.submit"
        assert args.side is Side.BUY
        assert args.symbol == "AAPL"
        assert args.quantity == 10
        assert args.value is None
        assert args.limit_price == Decimal("185.5")
        assert args.stop_price is None
        assert args.take_profit_price == Decimal("200")
        assert args.extended_hours is False
        assert args.time_in_force is TimeInForceArg.CANCELED

    def test_order_submit_requires_amount(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["order", "submit", "buy", "AAPL"])

    def test_order_submit_amounts_exclusive(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["order", "submit", "sell", "AAPL", "--quantity", "1", "--value", "100"])

    def test_order_submit_bad_side(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["order", "submit", "hold", "AAPL", "--quantity", "1"])
        assert "not a valid side specification" in capsys.readouterr().err

    def test_order_change(self):
        args = parse_args(["order", "change", ORDER_ID, "-s", "99.5", "-t", "today"])
        assert args.command == "order.change"
        assert args.id == uuid.UUID(ORDER_ID)
        assert args.quantity is None
        assert args.stop_price == Decimal("99.5")
        assert args.time_in_force is TimeInForceArg.TODAY

    def test_order_cancel_all(self):
        args = parse_args(["order", "cancel", "all"])
        assert args.command == "order.cancel"
        assert args.cancel.all

    def test_order_list_closed(self):
        assert parse_args(["order", "list"]).closed is False
        assert parse_args(["order", "list", "-c"]).closed is True

    def test_position_close(self):
        args = parse_args(["position", "close", "msft"])
        assert args.command == "position.close"
        assert args.symbol == "MSFT"

    def test_events(self):
        args = parse_args(["events", "trades", "--json"])
        assert args.command == "events"
        assert args.event is EventType.TRADES
        assert args.json is True

    def test_updates(self):
        args = parse_args(["updates", "quotes", "aapl", "msft"])
        assert args.command == "updates"
        assert args.update is UpdateType.QUOTES
        assert args.symbols == ["AAPL", "MSFT"]
        assert args.json is False

    def test_updates_requires_symbol(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["updates", "bars"])
