"""Realtime event relay.

Subscribes to one ``alpaca-py`` stream (trade updates on the account, or
market data for a set of symbols) and prints every event in the order
it arrives until the stream ends or the user interrupts. Decoding is left
to the SDK; the first error it logs while streaming stops the relay.
"""

from contextlib import redirect_stdout
from typing import Any, Callable, Optional, TextIO
import asyncio
import logging
import sys

from alpaca.data.enums import DataFeed
from alpaca.data.live import StockDataStream
from alpaca.trading.stream import TradingStream

from apcacli import formatting
from apcacli.args import EventType, UpdateType
from apcacli.config import ApiConfig
from apcacli.errors import ConnectionFailure

logger = logging.getLogger(__name__)

EventFormatter = Callable[[Any], str]

MARKET_DATA_FORMATTERS: dict[UpdateType, EventFormatter] = {
    UpdateType.TRADES: formatting.format_trade,
    UpdateType.QUOTES: formatting.format_quote,
    UpdateType.BARS: formatting.format_bar_update,
}


class EventPrinter:
    """Stream handler writing one line per event.

    In JSON mode the SDK delivers raw payloads, which are dumped as is;
    otherwise the decoded model is rendered by ``formatter``.
    """

    def __init__(
        self,
        formatter: EventFormatter,
        json_output: bool = False,
        out: Optional[TextIO] = None,
    ):
        self._formatter = formatter
        self._json = json_output
        self._out = out or sys.stdout
        self.count = 0

    async def handle(self, event: Any) -> None:
        line = formatting.format_json(event) if self._json else self._formatter(event)
        self._out.write(line + "\n")
        self._out.flush()
        self.count += 1


def create_trading_stream(config: ApiConfig, raw_data: bool) -> TradingStream:
    return TradingStream(
        api_key=config.key_id,
        secret_key=config.secret_key,
        paper=config.paper,
        raw_data=raw_data,
        url_override=config.stream_url,
    )


def create_data_stream(config: ApiConfig, raw_data: bool) -> StockDataStream:
    return StockDataStream(
        api_key=config.key_id,
        secret_key=config.secret_key,
        raw_data=raw_data,
        feed=DataFeed(config.data_feed),
        url_override=config.data_stream_url,
    )


class _StreamErrorMonitor(logging.Handler):
    """Stops a stream at the first error the SDK logs for it.

    The SDK reports connection and authentication failures only through
    its loggers and keeps reconnecting after them.
    """

    def __init__(self, stream: Any):
        super().__init__(level=logging.ERROR)
        self._stream = stream
        self._task: Optional[asyncio.Task] = None
        self.error: Optional[str] = None

    def emit(self, record: logging.LogRecord) -> None:
        if self.error is not None:
            return
        self.error = record.getMessage()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._task = loop.create_task(self._stream.stop_ws())


def _run(stream: Any, printer: EventPrinter, description: str) -> int:
    """Run ``stream`` until it ends.

    Raises:
        ConnectionFailure: If the SDK reported an error while streaming.
    """
    monitor = _StreamErrorMonitor(stream)
    sdk_logger = logging.getLogger("alpaca")
    level = sdk_logger.level
    if sdk_logger.getEffectiveLevel() > logging.ERROR:
        sdk_logger.setLevel(logging.ERROR)
    sdk_logger.addHandler(monitor)
    try:
        # The SDK reports interrupts on stdout, which only carries events
        with redirect_stdout(sys.stderr):
            stream.run()
    finally:
        sdk_logger.removeHandler(monitor)
        sdk_logger.setLevel(level)

    logger.info("Stream ended after %d event(s)", printer.count)
    if monitor.error is not None:
        raise ConnectionFailure(f"failed to stream {description}", cause=monitor.error)
    return 0


def relay_events(
    config: ApiConfig,
    event: EventType,
    json_output: bool = False,
    out: Optional[TextIO] = None,
    stream_factory: Callable[[ApiConfig, bool], Any] = create_trading_stream,
) -> int:
    """Print account trade updates (order fills, cancellations, ...)."""
    if event == EventType.ACCOUNT:
        logger.info("Account events are delivered through the trade update stream")

    printer = EventPrinter(formatting.format_trade_update, json_output, out)
    stream = stream_factory(config, json_output)
    stream.subscribe_trade_updates(printer.handle)
    logger.info("Subscribed to trade updates (paper=%s)", config.paper)
    return _run(stream, printer, "trade updates")


def relay_updates(
    config: ApiConfig,
    update: UpdateType,
    symbols: list[str],
    json_output: bool = False,
    out: Optional[TextIO] = None,
    stream_factory: Callable[[ApiConfig, bool], Any] = create_data_stream,
) -> int:
    """Print realtime trades, quotes, or bars for the given symbols."""
    printer = EventPrinter(MARKET_DATA_FORMATTERS[update], json_output, out)
    stream = stream_factory(config, json_output)
    subscribe = {
        UpdateType.TRADES: stream.subscribe_trades,
        UpdateType.QUOTES: stream.subscribe_quotes,
        UpdateType.BARS: stream.subscribe_bars,
    }[update]
    subscribe(printer.handle, *symbols)
    logger.info("Subscribed to %s for %s (feed=%s)", update.value, ", ".join(symbols), config.data_feed)
    return _run(stream, printer, f"{update.value} for {', '.join(symbols)}")
