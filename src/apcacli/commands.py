"""Command handlers.

One handler per leaf command. A handler issues the command's request
through :class:`~apcacli.client.BrokerClient` and returns the text to
print; the stream commands live in :mod:`apcacli.streaming`.
"""

from argparse import Namespace
from typing import Callable
import logging

from apcacli import formatting
from apcacli.client import BrokerClient, to_datetime
from apcacli.errors import InvalidArgumentError
from apcacli.formatting import Style

logger = logging.getLogger(__name__)

Handler = Callable[[BrokerClient, Namespace, Style], str]


# ── Account ──────────────────────────────────────────────────────────


def account_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_account(client.get_account(), style)


def account_activity_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    activities = client.get_activities(
        types=args.types,
        after=args.after,
        until=args.until,
        direction=args.direction,
        page_size=args.page_size,
    )
    return formatting.format_activities(activities, style)


def account_config_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_account_config(client.get_account_config())


def account_config_set(client: BrokerClient, args: Namespace, style: Style) -> str:
    config = client.set_account_config(
        confirm_email=args.confirm_email,
        trading_suspended=args.trading_suspended,
        shorting=args.shorting,
    )
    return formatting.format_account_config(config)


# ── Assets & Market ──────────────────────────────────────────────────


def asset_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_asset(client.get_asset(args.symbol))


def asset_list(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_assets(client.list_assets(args.asset_class))


def bars_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    if args.start is not None and args.end is not None:
        if to_datetime(args.start) > to_datetime(args.end, end_of_day=True):
            raise InvalidArgumentError(f"start {args.start} is after end {args.end}")
    bars = client.get_bars(
        args.symbol,
        args.timeframe,
        start=args.start,
        end=args.end,
        limit=args.limit,
    )
    return formatting.format_bars(bars)


def market(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_clock(client.get_clock())


# ── Orders ───────────────────────────────────────────────────────────


def order_submit(client: BrokerClient, args: Namespace, style: Style) -> str:
    if args.extended_hours and args.limit_price is None:
        raise InvalidArgumentError("extended hours orders must be limit orders")
    order = client.submit_order(
        args.side,
        args.symbol,
        quantity=args.quantity,
        value=args.value,
        limit_price=args.limit_price,
        stop_price=args.stop_price,
        take_profit_price=args.take_profit_price,
        extended_hours=args.extended_hours,
        time_in_force=args.time_in_force,
    )
    return str(order.id)


def order_change(client: BrokerClient, args: Namespace, style: Style) -> str:
    order = client.change_order(
        args.id,
        quantity=args.quantity,
        value=args.value,
        limit_price=args.limit_price,
        stop_price=args.stop_price,
        time_in_force=args.time_in_force,
    )
    return str(order.id)


def order_cancel(client: BrokerClient, args: Namespace, style: Style) -> str:
    if args.cancel.all:
        count = client.cancel_all_orders()
        return f"canceled {count} order{'' if count == 1 else 's'}"
    client.cancel_order(args.cancel.order_id)
    return ""


def order_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_order(client.get_order(args.id))


def order_list(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_orders(client.list_orders(closed=args.closed))


# ── Positions ────────────────────────────────────────────────────────


def position_get(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_position(client.get_position(args.symbol), style)


def position_list(client: BrokerClient, args: Namespace, style: Style) -> str:
    return formatting.format_positions(client.list_positions(), style)


def position_close(client: BrokerClient, args: Namespace, style: Style) -> str:
    order = client.close_position(args.symbol)
    return str(order.id)


HANDLERS: dict[str, Handler] = {
    "account.get": account_get,
    "account.activity.get": account_activity_get,
    "account.config.get": account_config_get,
    "account.config.set": account_config_set,
    "asset.get": asset_get,
    "asset.list": asset_list,
    "bars.get": bars_get,
    "market": market,
    "order.submit": order_submit,
    "order.change": order_change,
    "order.cancel": order_cancel,
    "order.get": order_get,
    "order.list": order_list,
    "position.get": position_get,
    "position.list": position_list,
    "position.close": position_close,
}


def dispatch(client: BrokerClient, args: Namespace, style: Style) -> str:
    """Run the handler registered for ``args.command``."""
    try:
        handler = HANDLERS[args.command]
    except KeyError:
        raise InvalidArgumentError(f"unsupported command '{args.command}'") from None
    logger.debug("Dispatching %s", args.command)
    return handler(client, args, style)
