"""Stop-loss safeguard.

Checks that open positions are protected by an accurate stop-loss order
and prints the ``apcacli`` commands that would create or correct one.
Nothing is submitted; the printed commands are meant to be reviewed and
run by hand.

Usage:
    apcacli-safeguard
    apcacli-safeguard AAPL MSFT --stop-percent 3 --min-value 1000
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence, TextIO

from apcacli.client import BrokerClient
from apcacli.config import ApiConfig
from apcacli.errors import ApcaCliError
from apcacli.formatting import format_quantity, to_decimal
from apcacli.logging_config import LoggingConfig, configure_logging, level_for_verbosity

logger = logging.getLogger("apcacli.safeguard")

# Minimum markups over the average entry price, in basis points.
LIMIT_ORDER_MARKUP = 10
STOP_ORDER_MARKUP = 100

CENTS = Decimal("0.01")


class SafeguardError(ApcaCliError):
    """Raised when a position's stop-loss situation cannot be evaluated."""


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="apcacli-safeguard",
        description="Ensure that positions in Alpaca have accurate stop-loss orders.",
    )
    parser.add_argument(
        "positions", nargs="*", type=str.upper, metavar="SYMBOL",
        help="Symbols of positions to set/change stop orders for (default: all).",
    )
    parser.add_argument(
        "--apcacli", type=str, default=None,
        help="The apcacli command to use in printed commands "
             "(default: $APCACLI or 'apcacli').",
    )
    parser.add_argument(
        "-s", "--stop-percent", type=int, default=None, metavar="PERCENT",
        help="Set the stop price at this many percentage points gained.",
    )
    parser.add_argument(
        "-m", "--min-value", type=int, default=None,
        help="The minimum value of a position required for stop-loss order creation.",
    )
    parser.add_argument(
        "-g", "--min-gain-percent", type=int, default=5,
        help="The minimum gain a position needs to have for it to be considered "
             "for stop-loss order creation (default: 5).",
    )
    parser.add_argument(
        "-v", "--verbose", dest="verbosity", action="count", default=0,
        help="Increase verbosity (can be supplied multiple times).",
    )
    return parser.parse_args(argv)


def _value(field: Any) -> str:
    return str(getattr(field, "value", field))


def opposing_sides(position: Any, order: Any) -> bool:
    """Check if the given order is opposing the given position."""
    sides = (_value(position.side), _value(order.side))
    return sides in (("long", "sell"), ("short", "buy"))


def desired_prices(entry_price: Decimal, stop_percent: Optional[int]) -> tuple[Decimal, Decimal]:
    """Limit and stop prices a stop-loss order for a position should have."""
    limit_factor = Decimal(10_000 + LIMIT_ORDER_MARKUP) / 10_000
    stop_markup = stop_percent * 100 if stop_percent is not None else STOP_ORDER_MARKUP
    stop_factor = Decimal(10_000 + stop_markup) / 10_000

    # TODO: For true penny stocks the limit price may round to the
    #       purchase price.
    limit = (entry_price * limit_factor).quantize(CENTS, rounding=ROUND_HALF_UP)
    stop = (entry_price * stop_factor).quantize(CENTS, rounding=ROUND_HALF_UP)
    return limit, stop


def evaluate_position(
    args: argparse.Namespace,
    position: Any,
    orders: Sequence[Any],
    cli: str,
    out: TextIO,
) -> None:
    """Evaluate the provided position against the given list of orders."""
    entry_price = to_decimal(position.avg_entry_price) or Decimal(0)
    quantity = to_decimal(position.qty) or Decimal(0)
    desired_limit, desired_stop = desired_prices(entry_price, args.stop_percent)

    found = False
    for order in orders:
        if order.symbol != position.symbol or not opposing_sides(position, order):
            continue
        if order.stop_price is None:
            continue

        if found:
            raise SafeguardError("found multiple stop-loss orders")
        if _value(order.time_in_force) != "gtc":
            raise SafeguardError(f"opposing order {order.id} is not valid-until-canceled")
        if order.qty is None:
            raise SafeguardError("notional orders are currently unsupported")
        found = True

        limit = to_decimal(order.limit_price) or Decimal(0)
        stop = to_decimal(order.stop_price) or Decimal(0)
        if to_decimal(order.qty) != quantity or limit < desired_limit or stop < desired_stop:
            if _value(order.side) != "sell":
                raise SafeguardError("only long positions are currently supported")
            out.write(
                f"{position.symbol}:\n{cli} order change {order.id} "
                f"--quantity {format_quantity(quantity)} "
                f"--limit-price {desired_limit} --stop-price {desired_stop}\n"
            )
        else:
            logger.info("order %s is satisfying stop-loss order", order.id)

    if found:
        return

    total_gain = (to_decimal(position.unrealized_plpc) or Decimal(0)) * 100
    if total_gain < args.min_gain_percent:
        logger.info(
            "%s: total gain (%.2f%%) is below %d%%",
            position.symbol, total_gain, args.min_gain_percent,
        )
        return

    if args.min_value is not None:
        total_value = quantity * (to_decimal(position.current_price) or Decimal(0))
        if total_value < args.min_value:
            logger.info(
                "%s: total value (%s) is still less than %d",
                position.symbol, total_value, args.min_value,
            )
            return

    out.write(
        f"{position.symbol}:\n{cli} order submit sell {position.symbol} "
        f"--quantity {format_quantity(quantity)} "
        f"--limit-price {desired_limit} --stop-price {desired_stop}\n"
    )


def evaluate_positions_and_orders(
    args: argparse.Namespace,
    positions: Sequence[Any],
    orders: Sequence[Any],
    out: TextIO,
) -> None:
    cli = args.apcacli or os.environ.get("APCACLI") or "apcacli"
    symbols = set(args.positions) if args.positions else None

    for position in positions:
        if symbols is not None and position.symbol not in symbols:
            continue
        try:
            evaluate_position(args, position, orders, cli, out)
        except SafeguardError as e:
            raise SafeguardError(
                f"failed to evaluate {position.symbol} position", cause=str(e)
            ) from e


def run(argv: Optional[list[str]] = None, out: Optional[TextIO] = None) -> int:
    args = parse_args(argv)
    configure_logging(LoggingConfig(level=level_for_verbosity(args.verbosity)))

    client = BrokerClient(ApiConfig.from_env())
    positions = client.list_positions()
    # Stop orders are legs of bracket orders at times, so look at a flat list.
    orders = client.list_orders(closed=False, nested=False)

    evaluate_positions_and_orders(args, positions, orders, out or sys.stdout)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    try:
        return run(argv)
    except ApcaCliError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        sys.stdout.flush()


if __name__ == "__main__":
    sys.exit(main())
