"""Command line argument definitions.

Builds the ``argparse`` command tree and the typed value parsers used by
its options. Every leaf command records its dotted name in ``command`` so
the dispatcher can look up the handler.
"""

from __future__ import annotations

import argparse
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from apcacli import __version__

SYMBOL_RE = re.compile(r"^[A-Z0-9][A-Z0-9./\-]*$")

TIMEFRAME_UNITS = {
    "min": "Minute",
    "t": "Minute",
    "hour": "Hour",
    "h": "Hour",
    "day": "Day",
    "d": "Day",
    "week": "Week",
    "w": "Week",
    "month": "Month",
    "m": "Month",
}
TIMEFRAME_RE = re.compile(r"^(\d*)([a-z]+)$")


class Side(str, Enum):
    """The side of an order."""
    BUY = "buy"
    SELL = "sell"


class TimeInForceArg(str, Enum):
    """When/for how long an order is valid, as spelled on the command line."""
    TODAY = "today"
    CANCELED = "canceled"
    MARKET_OPEN = "market-open"
    MARKET_CLOSE = "market-close"

    @property
    def api_value(self) -> str:
        """The corresponding Alpaca ``time_in_force`` value."""
        return {
            TimeInForceArg.TODAY: "day",
            TimeInForceArg.CANCELED: "gtc",
            TimeInForceArg.MARKET_OPEN: "opg",
            TimeInForceArg.MARKET_CLOSE: "cls",
        }[self]


class EventType(str, Enum):
    """Account event streams."""
    ACCOUNT = "account"
    TRADES = "trades"


class UpdateType(str, Enum):
    """Market data streams."""
    TRADES = "trades"
    QUOTES = "quotes"
    BARS = "bars"


@dataclass(frozen=True)
class CancelTarget:
    """Either a single order or all open ones."""
    order_id: Optional[uuid.UUID] = None

    @property
    def all(self) -> bool:
        return self.order_id is None


@dataclass(frozen=True)
class TimeFrameArg:
    """A bar aggregation period such as ``5Min`` or ``1Day``."""
    amount: int
    unit: str

    def __str__(self) -> str:
        unit = "Min" if self.unit == "Minute" else self.unit
        return f"{self.amount}{unit}"


# ── Value parsers ────────────────────────────────────────────────────


def parse_symbol(value: str) -> str:
    sym = value.strip().upper()
    if not sym or not SYMBOL_RE.match(sym):
        raise argparse.ArgumentTypeError(f"failed to parse symbol '{value}'")
    return sym


def parse_symbol_or_id(value: str) -> Union[str, uuid.UUID]:
    """Accept an asset id (UUID) or a symbol."""
    try:
        return uuid.UUID(value)
    except ValueError:
        return parse_symbol(value)


def parse_order_id(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid order id '{value}'") from None


def parse_cancel_target(value: str) -> CancelTarget:
    if value == "all":
        return CancelTarget()
    return CancelTarget(order_id=parse_order_id(value))


def parse_side(value: str) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid side specification (use 'buy' or 'sell')"
        ) from None


def parse_time_in_force(value: str) -> TimeInForceArg:
    try:
        return TimeInForceArg(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid time-in-force specifier: {value}"
        ) from None


def parse_quantity(value: str) -> int:
    try:
        quantity = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid quantity '{value}'") from None
    if quantity <= 0:
        raise argparse.ArgumentTypeError(f"quantity must be positive, got {quantity}")
    return quantity


def parse_amount(value: str) -> Decimal:
    """Parse a positive decimal number (a price or a value)."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid number '{value}'") from None
    if not amount.is_finite() or amount <= 0:
        raise argparse.ArgumentTypeError(f"number must be positive, got '{value}'")
    return amount


def parse_positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"value must be positive, got {number}")
    return number


def parse_date(value: str) -> Union[date, datetime]:
    """Parse ``YYYY-MM-DD`` into a date or a full ISO-8601 timestamp into a datetime."""
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}'") from None


def parse_timeframe(value: str) -> TimeFrameArg:
    match = TIMEFRAME_RE.match(value.strip().lower())
    unit = TIMEFRAME_UNITS.get(match.group(2)) if match else None
    if unit is None:
        raise argparse.ArgumentTypeError(
            f"invalid timeframe '{value}' (e.g. 1Min, 15Min, 1Hour, 1Day, 1Week, 1Month)"
        )
    amount = int(match.group(1) or 1)

    valid = {
        "Minute": 1 <= amount <= 59,
        "Hour": 1 <= amount <= 23,
        "Day": amount == 1,
        "Week": amount == 1,
        "Month": amount in (1, 2, 3, 6, 12),
    }[unit]
    if not valid:
        raise argparse.ArgumentTypeError(f"unsupported timeframe '{value}'")
    return TimeFrameArg(amount=amount, unit=unit)


def parse_activity_type(value: str) -> str:
    code = value.strip().upper()
    if not code.isalpha():
        raise argparse.ArgumentTypeError(f"invalid activity type '{value}'")
    return code


# ── Parser construction ──────────────────────────────────────────────


def _add_amount_options(parser: argparse.ArgumentParser, required: bool) -> None:
    group = parser.add_mutually_exclusive_group(required=required)
    group.add_argument(
        "--quantity", type=parse_quantity, default=None,
        help="The quantity to trade.",
    )
    group.add_argument(
        "--value", type=parse_amount, default=None,
        help="The value to trade.",
    )


def _add_price_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-l", "--limit-price", type=parse_amount, default=None,
        help="Create a limit order (or stop limit order) with the given limit price.",
    )
    parser.add_argument(
        "-s", "--stop-price", type=parse_amount, default=None,
        help="Create a stop order (or stop limit order) with the given stop price.",
    )


def _add_toggle(
    group_parent: argparse.ArgumentParser,
    short: str,
    name: str,
    dest: str,
    enable_help: str,
    disable_help: str,
) -> None:
    group = group_parent.add_mutually_exclusive_group()
    group.add_argument(
        f"-{short}", f"--{name}", dest=dest, action="store_const", const=True,
        default=None, help=enable_help,
    )
    group.add_argument(
        f"-{short.upper()}", f"--no-{name}", dest=dest, action="store_const",
        const=False, help=disable_help,
    )


def _leaf(subparsers, name: str, command: str, help: str, **kwargs) -> argparse.ArgumentParser:
    parser = subparsers.add_parser(name, help=help, description=help, **kwargs)
    parser.set_defaults(command=command)
    return parser


def _group(subparsers, name: str, help: str, **kwargs):
    parser = subparsers.add_parser(name, help=help, description=help, **kwargs)
    children = parser.add_subparsers(metavar="<command>")
    children.required = True
    return children


def _add_account_commands(subparsers) -> None:
    account = _group(subparsers, "account", "Retrieve information about the Alpaca account.")
    _leaf(account, "get", "account.get", "Query and print information about the account.")

    activity = _group(account, "activity", "Retrieve account activity.")
    get = _leaf(activity, "get", "account.activity.get", "Retrieve account activity.")
    get.add_argument(
        "--type", dest="types", type=parse_activity_type, action="append", default=None,
        metavar="TYPE", help="Only show activities of this type (e.g. FILL, DIV); repeatable.",
    )
    get.add_argument("--after", type=parse_date, default=None, help="Only show activities after this date.")
    get.add_argument("--until", type=parse_date, default=None, help="Only show activities until this date.")
    get.add_argument(
        "--direction", choices=["asc", "desc"], default="desc",
        help="Sort order by time (default: desc).",
    )
    get.add_argument(
        "--page-size", type=parse_positive_int, default=100,
        help="Maximum number of activities to retrieve (default: 100).",
    )

    config = _group(account, "config", "Retrieve and modify the account configuration.")
    _leaf(config, "get", "account.config.get", "Retrieve the account configuration.")
    set_ = _leaf(config, "set", "account.config.set", "Modify the account configuration.")
    _add_toggle(set_, "e", "confirm-email", "confirm_email",
                "Enable e-mail trade confirmations.", "Disable e-mail trade confirmations.")
    _add_toggle(set_, "t", "trading-suspended", "trading_suspended",
                "Suspend trading.", "Resume trading.")
    _add_toggle(set_, "s", "shorting", "shorting",
                "Enable shorting.", "Disable shorting.")


def _add_asset_commands(subparsers) -> None:
    asset = _group(subparsers, "asset", "Retrieve information pertaining assets.")
    get = _leaf(asset, "get", "asset.get", "Query information about a specific asset.")
    get.add_argument("symbol", type=parse_symbol_or_id, help="The asset's symbol or ID.")
    list_ = _leaf(asset, "list", "asset.list", "List all active assets.")
    list_.add_argument(
        "--class", dest="asset_class", choices=["us_equity", "crypto"], default="us_equity",
        help="The asset class to list (default: us_equity).",
    )


def _add_bars_commands(subparsers) -> None:
    bars = _group(subparsers, "bars", "Retrieve historical market data bars.")
    get = _leaf(bars, "get", "bars.get", "Retrieve bars for a symbol.")
    get.add_argument("symbol", type=parse_symbol, help="The symbol to retrieve bars for.")
    get.add_argument(
        "--timeframe", type=parse_timeframe, default=TimeFrameArg(1, "Day"),
        help="The aggregation period (default: 1Day).",
    )
    get.add_argument("--start", type=parse_date, default=None, help="The first date to include.")
    get.add_argument("--end", type=parse_date, default=None, help="The last date to include.")
    get.add_argument(
        "--limit", type=parse_positive_int, default=None,
        help="Maximum number of bars to retrieve.",
    )


def _add_order_commands(subparsers) -> None:
    order = _group(subparsers, "order", "Perform various order related functions.")

    submit = _leaf(order, "submit", "order.submit", "Submit an order.")
    submit.add_argument("side", type=parse_side, help="The side of the order ('buy' or 'sell').")
    submit.add_argument("symbol", type=parse_symbol, help="The symbol of the asset involved in the order.")
    _add_amount_options(submit, required=True)
    _add_price_options(submit)
    submit.add_argument(
        "--take-profit-price", type=parse_amount, default=None,
        help="Create a one-triggers-other order with the given take-profit price.",
    )
    submit.add_argument(
        "--extended-hours", action="store_true",
        help="Create an order that is eligible to execute during pre-market/after hours. "
             "Note that only limit orders that are valid for the day are supported.",
    )
    submit.add_argument(
        "-t", "--time-in-force", type=parse_time_in_force, default=TimeInForceArg.CANCELED,
        help="When/for how long the order is valid ('today', 'canceled', "
             "'market-open', or 'market-close'; default: canceled).",
    )

    change = _leaf(order, "change", "order.change", "Change an order.")
    change.add_argument("id", type=parse_order_id, help="The ID of the order to change.")
    _add_amount_options(change, required=False)
    _add_price_options(change)
    change.add_argument(
        "-t", "--time-in-force", type=parse_time_in_force, default=None,
        help="When/for how long the order is valid ('today', 'canceled', "
             "'market-open', or 'market-close').",
    )

    cancel = _leaf(order, "cancel", "order.cancel",
                   "Cancel a single order (by id) or all open ones (via 'all').")
    cancel.add_argument("cancel", type=parse_cancel_target, metavar="{ID,all}",
                        help="The ID of the order to cancel, or 'all'.")

    get = _leaf(order, "get", "order.get", "Retrieve information about a single order.")
    get.add_argument("id", type=parse_order_id, help="The ID of the order to retrieve information about.")

    list_ = _leaf(order, "list", "order.list", "List orders.")
    list_.add_argument("-c", "--closed", action="store_true",
                       help="Show only closed orders instead of open ones.")


def _add_position_commands(subparsers) -> None:
    position = _group(subparsers, "position", "Perform various position related functions.")
    get = _leaf(position, "get", "position.get",
                "Inquire information about the position holding a specific symbol.")
    get.add_argument("symbol", type=parse_symbol, help="The position's symbol.")
    _leaf(position, "list", "position.list", "List all open positions.")
    close = _leaf(position, "close", "position.close", "Liquidate a position for a certain asset.")
    close.add_argument("symbol", type=parse_symbol, help="The position's symbol.")


def _add_stream_commands(subparsers) -> None:
    events = _leaf(subparsers, "events", "events", "Subscribe to account and trade events.")
    events.add_argument(
        "event", type=EventType, choices=list(EventType), metavar="{account,trades}",
        help="The type of event to stream.",
    )
    events.add_argument("-j", "--json", action="store_true", help="Print events in JSON format.")

    updates = _leaf(subparsers, "updates", "updates", "Subscribe to realtime market data.")
    updates.add_argument(
        "update", type=UpdateType, choices=list(UpdateType), metavar="{trades,quotes,bars}",
        help="The type of market data to stream.",
    )
    updates.add_argument("symbols", type=parse_symbol, nargs="+", metavar="SYMBOL",
                         help="The symbols to subscribe to.")
    updates.add_argument("-j", "--json", action="store_true", help="Print updates in JSON format.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apcacli",
        description="A command line client for automated trading with Alpaca.",
    )
    parser.add_argument(
        "-v", "--verbose", dest="verbosity", action="count", default=0,
        help="Increase verbosity (can be supplied multiple times).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(metavar="<command>")
    subparsers.required = True

    _add_account_commands(subparsers)
    _add_asset_commands(subparsers)
    _add_bars_commands(subparsers)
    _add_stream_commands(subparsers)
    _leaf(subparsers, "market", "market", "Retrieve status information about the market.",
          aliases=["clock"])
    _add_order_commands(subparsers)
    _add_position_commands(subparsers)
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
