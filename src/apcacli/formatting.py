"""Output formatting.

Renders SDK response objects as text for the terminal: key/value blocks
for single objects, ``tabulate`` tables for lists, one line per stream
event. Profit and loss figures are color coded when color is enabled.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional, Sequence
import json
import os
import sys

from tabulate import tabulate

NOT_AVAILABLE = "N/A"
TWO_PLACES = Decimal("0.01")


# ═══════════════════════════════════════════════════════════════════════
# Styling
# ═══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Style:
    """ANSI coloring, disabled for pipes and when NO_COLOR is set."""
    color: bool = False

    GREEN = "\033[32m"
    RED = "\033[31m"
    BOLD = "\033[1m"
    RESET = "\033[0m"

    @classmethod
    def for_stream(cls, stream=None) -> "Style":
        stream = stream or sys.stdout
        isatty = getattr(stream, "isatty", None)
        return cls(color=bool(isatty and isatty()) and "NO_COLOR" not in os.environ)

    def paint(self, text: str, code: str) -> str:
        if not self.color:
            return text
        return f"{code}{text}{self.RESET}"

    def gain(self, text: str, value: Optional[Decimal]) -> str:
        """Green for positive values, red for negative ones."""
        if value is None or value == 0:
            return text
        return self.paint(text, self.GREEN if value > 0 else self.RED)


PLAIN = Style()


# ═══════════════════════════════════════════════════════════════════════
# Value Helpers
# ═══════════════════════════════════════════════════════════════════════


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert an SDK numeric field (often a string) to a Decimal."""
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def text(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def format_quantity(value: Any) -> str:
    amount = to_decimal(value)
    if amount is None:
        return NOT_AVAILABLE
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return f"{amount.normalize():f}"


def format_price(value: Any) -> str:
    amount = to_decimal(value)
    if amount is None:
        return NOT_AVAILABLE
    return f"{amount.quantize(TWO_PLACES):f}"


def format_money(value: Any, currency: str = "USD") -> str:
    price = format_price(value)
    if price == NOT_AVAILABLE:
        return price
    return f"{price} {currency}"


def format_gain(
    value: Any,
    fraction: Any = None,
    currency: str = "USD",
    style: Style = PLAIN,
) -> str:
    """Format a profit/loss amount with an optional percentage.

    ``fraction`` is the gain relative to the cost basis, as reported by
    Alpaca (0.05 means 5%).
    """
    amount = to_decimal(value)
    if amount is None:
        return NOT_AVAILABLE
    rendered = f"{amount.quantize(TWO_PLACES):+f} {currency}"
    ratio = to_decimal(fraction)
    if ratio is not None:
        rendered += f" ({(ratio * 100).quantize(TWO_PLACES):+f}%)"
    return style.gain(rendered, amount)


def format_duration(delta: timedelta) -> str:
    minutes = max(int(delta.total_seconds()), 0) // 60
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)


def key_values(title: str, rows: Sequence[tuple[str, str]]) -> str:
    """Render an indented, aligned ``key: value`` block under a title."""
    width = max((len(key) for key, _ in rows), default=0) + 1
    lines = [f"{title}:"]
    for key, value in rows:
        lines.append(f"  {key + ':':<{width}} {value}")
    return "\n".join(lines)


def _table(rows: Iterable[Sequence[str]], headers: Sequence[str]) -> str:
    rows = list(rows)
    if not rows:
        return ""
    return tabulate(rows, headers=headers, tablefmt="simple", disable_numparse=True)


# ═══════════════════════════════════════════════════════════════════════
# Account
# ═══════════════════════════════════════════════════════════════════════


def format_account(account: Any, style: Style = PLAIN) -> str:
    currency = getattr(account, "currency", None) or "USD"
    equity = to_decimal(account.equity)
    last_equity = to_decimal(account.last_equity)
    day_change = None
    day_change_fraction = None
    if equity is not None and last_equity is not None:
        day_change = equity - last_equity
        if last_equity:
            day_change_fraction = day_change / last_equity

    rows = [
        ("id", text(account.id)),
        ("account number", text(getattr(account, "account_number", None))),
        ("status", text(account.status)),
        ("currency", currency),
        ("buying power", format_money(account.buying_power, currency)),
        ("cash", format_money(account.cash, currency)),
        ("equity", format_money(account.equity, currency)),
        ("last equity", format_money(account.last_equity, currency)),
        ("day change", format_gain(day_change, day_change_fraction, currency, style)),
        ("portfolio value", format_money(account.portfolio_value, currency)),
        ("long market value", format_money(account.long_market_value, currency)),
        ("short market value", format_money(account.short_market_value, currency)),
        ("initial margin", format_money(account.initial_margin, currency)),
        ("maintenance margin", format_money(account.maintenance_margin, currency)),
        ("day trader", text(account.pattern_day_trader)),
        ("day trades", text(account.daytrade_count)),
        ("shorting enabled", text(account.shorting_enabled)),
        ("trading blocked", text(account.trading_blocked)),
        ("transfers blocked", text(account.transfers_blocked)),
        ("account blocked", text(account.account_blocked)),
    ]
    return key_values("account", rows)


def format_account_config(config: Any) -> str:
    confirm = getattr(config.trade_confirm_email, "value", config.trade_confirm_email)
    rows = [
        ("e-mail confirmations", text(confirm != "none")),
        ("trading suspended", text(config.suspend_trade)),
        ("shorting", text(not config.no_shorting)),
        ("fractional trading", text(getattr(config, "fractional_trading", None))),
        ("max margin multiplier", text(getattr(config, "max_margin_multiplier", None))),
        ("pattern day trader check", text(getattr(config, "pdt_check", None))),
        ("day trade buying power check", text(getattr(config, "dtbp_check", None))),
    ]
    return key_values("account configuration", rows)


def format_activity(activity: dict, style: Style = PLAIN) -> str:
    kind = activity.get("activity_type", "")
    if kind in ("FILL", "PARTIAL_FILL") or "transaction_time" in activity:
        return "{time}  {kind:<5}  {side} {qty} {symbol} @ {price}".format(
            time=activity.get("transaction_time", NOT_AVAILABLE),
            kind=kind,
            side=activity.get("side", NOT_AVAILABLE),
            qty=format_quantity(activity.get("qty")),
            symbol=activity.get("symbol", NOT_AVAILABLE),
            price=format_price(activity.get("price")),
        )

    parts = [
        str(activity.get("date", NOT_AVAILABLE)),
        f"{kind:<5}",
        format_gain(activity.get("net_amount"), style=style),
    ]
    if activity.get("symbol"):
        parts.append(activity["symbol"])
    if activity.get("description"):
        parts.append(activity["description"])
    return "  ".join(parts)


def format_activities(activities: Sequence[dict], style: Style = PLAIN) -> str:
    return "\n".join(format_activity(a, style) for a in activities)


# ═══════════════════════════════════════════════════════════════════════
# Assets & Market
# ═══════════════════════════════════════════════════════════════════════


def format_asset(asset: Any) -> str:
    rows = [
        ("id", text(asset.id)),
        ("symbol", asset.symbol),
        ("name", text(getattr(asset, "name", None))),
        ("class", text(asset.asset_class)),
        ("exchange", text(asset.exchange)),
        ("status", text(asset.status)),
        ("tradable", text(asset.tradable)),
        ("marginable", text(asset.marginable)),
        ("shortable", text(asset.shortable)),
        ("easy to borrow", text(asset.easy_to_borrow)),
        ("fractionable", text(asset.fractionable)),
    ]
    return key_values("asset", rows)


def format_assets(assets: Sequence[Any]) -> str:
    rows = [
        (
            a.symbol,
            text(a.asset_class),
            text(a.exchange),
            text(getattr(a, "name", None)),
            text(a.tradable),
            text(a.shortable),
            text(a.fractionable),
        )
        for a in assets
    ]
    return _table(rows, ["Symbol", "Class", "Exchange", "Name", "Tradable", "Shortable", "Fractionable"])


def format_bars(bars: Sequence[Any]) -> str:
    rows = [
        (
            text(b.timestamp),
            format_price(b.open),
            format_price(b.high),
            format_price(b.low),
            format_price(b.close),
            format_quantity(b.volume),
            format_price(getattr(b, "vwap", None)),
        )
        for b in bars
    ]
    return _table(rows, ["Time", "Open", "High", "Low", "Close", "Volume", "VWAP"])


def format_clock(clock: Any) -> str:
    now = clock.timestamp
    if clock.is_open:
        transition = ("closes in", clock.next_close - now)
    else:
        transition = ("opens in", clock.next_open - now)
    rows = [
        ("current time", text(now)),
        ("next open", text(clock.next_open)),
        ("next close", text(clock.next_close)),
        (transition[0], format_duration(transition[1])),
    ]
    return key_values(f"market: {'open' if clock.is_open else 'closed'}", rows)


# ═══════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════


def order_amount(order: Any) -> str:
    """Quantity of shares, or the notional value for value based orders."""
    if getattr(order, "qty", None) is not None:
        return format_quantity(order.qty)
    if getattr(order, "notional", None) is not None:
        return f"${format_price(order.notional)}"
    return NOT_AVAILABLE


def format_order(order: Any) -> str:
    rows = [
        ("id", text(order.id)),
        ("client order id", text(order.client_order_id)),
        ("status", text(order.status)),
        ("symbol", text(order.symbol)),
        ("side", text(order.side)),
        ("class", text(getattr(order, "order_class", None))),
        ("type", text(order.order_type)),
        ("amount", order_amount(order)),
        ("filled", format_quantity(order.filled_qty)),
        ("average fill price", format_price(order.filled_avg_price)),
        ("limit price", format_price(order.limit_price)),
        ("stop price", format_price(order.stop_price)),
        ("time in force", text(order.time_in_force)),
        ("extended hours", text(order.extended_hours)),
        ("created at", text(order.created_at)),
        ("submitted at", text(order.submitted_at)),
        ("filled at", text(order.filled_at)),
    ]
    for leg in getattr(order, "legs", None) or []:
        rows.append(("leg", f"{text(leg.id)} ({text(leg.order_type)} {text(leg.status)})"))
    return key_values("order", rows)


def format_orders(orders: Sequence[Any]) -> str:
    earliest = datetime.min.replace(tzinfo=timezone.utc)
    ordered = sorted(orders, key=lambda o: (o.created_at is None, o.created_at or earliest))
    rows = [
        (
            text(o.id),
            text(o.side),
            order_amount(o),
            text(o.symbol),
            text(o.order_type),
            format_price(o.limit_price),
            format_price(o.stop_price),
            text(o.time_in_force),
            text(o.status),
        )
        for o in ordered
    ]
    return _table(rows, ["ID", "Side", "Amount", "Symbol", "Type", "Limit", "Stop", "TIF", "Status"])


# ═══════════════════════════════════════════════════════════════════════
# Positions
# ═══════════════════════════════════════════════════════════════════════


def format_position(position: Any, style: Style = PLAIN) -> str:
    rows = [
        ("symbol", position.symbol),
        ("asset id", text(position.asset_id)),
        ("exchange", text(position.exchange)),
        ("side", text(position.side)),
        ("quantity", format_quantity(position.qty)),
        ("average entry", format_money(position.avg_entry_price)),
        ("current price", format_money(position.current_price)),
        ("last day price", format_money(getattr(position, "lastday_price", None))),
        ("cost basis", format_money(position.cost_basis)),
        ("market value", format_money(position.market_value)),
        ("today p/l", format_gain(position.unrealized_intraday_pl,
                                  position.unrealized_intraday_plpc, style=style)),
        ("total p/l", format_gain(position.unrealized_pl, position.unrealized_plpc, style=style)),
    ]
    return key_values("position", rows)


def _sum(values: Iterable[Any]) -> Optional[Decimal]:
    total = None
    for value in values:
        amount = to_decimal(value)
        if amount is not None:
            total = amount if total is None else total + amount
    return total


def format_positions(positions: Sequence[Any], style: Style = PLAIN) -> str:
    if not positions:
        return ""

    rows = [
        (
            p.symbol,
            format_quantity(p.qty),
            format_price(p.avg_entry_price),
            format_price(p.current_price),
            format_price(p.market_value),
            format_gain(p.unrealized_intraday_pl, p.unrealized_intraday_plpc, style=style),
            format_gain(p.unrealized_pl, p.unrealized_plpc, style=style),
        )
        for p in positions
    ]

    value = _sum(p.market_value for p in positions)
    today = _sum(p.unrealized_intraday_pl for p in positions)
    total = _sum(p.unrealized_pl for p in positions)
    cost = _sum(p.cost_basis for p in positions)
    total_fraction = total / cost if total is not None and cost else None
    rows.append((
        "Total", "", "", "",
        format_price(value),
        format_gain(today, style=style),
        format_gain(total, total_fraction, style=style),
    ))
    return _table(rows, ["Symbol", "Qty", "Avg Entry", "Price", "Value", "Today P/L", "Total P/L"])


# ═══════════════════════════════════════════════════════════════════════
# Stream Events
# ═══════════════════════════════════════════════════════════════════════


def format_json(data: Any) -> str:
    """Serialize a raw stream payload on a single line."""
    return json.dumps(data, default=str, sort_keys=True)


def format_trade_update(update: Any) -> str:
    order = update.order
    line = f"{text(update.timestamp)} {text(update.event)}: {text(order.side)} {order_amount(order)} {order.symbol}"
    if getattr(update, "price", None) is not None and getattr(update, "qty", None) is not None:
        line += f" ({format_quantity(update.qty)} @ {format_price(update.price)})"
    return f"{line} [order {text(order.id)}, {text(order.status)}]"


def format_trade(trade: Any) -> str:
    return f"{text(trade.timestamp)} {trade.symbol} trade {format_quantity(trade.size)} @ {format_price(trade.price)}"


def format_quote(quote: Any) -> str:
    return (
        f"{text(quote.timestamp)} {quote.symbol} quote "
        f"bid {format_quantity(quote.bid_size)} @ {format_price(quote.bid_price)} "
        f"ask {format_quantity(quote.ask_size)} @ {format_price(quote.ask_price)}"
    )


def format_bar_update(bar: Any) -> str:
    return (
        f"{text(bar.timestamp)} {bar.symbol} bar "
        f"o {format_price(bar.open)} h {format_price(bar.high)} "
        f"l {format_price(bar.low)} c {format_price(bar.close)} "
        f"v {format_quantity(bar.volume)}"
    )
