"""Alpaca API access.

Thin facade over the ``alpaca-py`` SDK: builds request objects from
parsed command line values, issues exactly one SDK call per operation
(two for read-modify-write operations) and translates SDK failures into
:mod:`apcacli.errors` exceptions.
"""

from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Iterator, Optional, Union
import json
import logging
import uuid

import requests
from alpaca.common.exceptions import APIError
from alpaca.data.enums import DataFeed
from alpaca.data.historical import StockHistoricalDataClient
from alpaca.data.requests import StockBarsRequest
from alpaca.data.timeframe import TimeFrame, TimeFrameUnit
from alpaca.trading.client import TradingClient
from alpaca.trading.enums import (
    AssetClass,
    AssetStatus,
    OrderClass,
    OrderSide,
    QueryOrderStatus,
    TimeInForce,
    TradeConfirmationEmail,
)
from alpaca.trading.requests import (
    GetAssetsRequest,
    GetOrdersRequest,
    LimitOrderRequest,
    MarketOrderRequest,
    ReplaceOrderRequest,
    StopLimitOrderRequest,
    StopOrderRequest,
    TakeProfitRequest,
)

from apcacli.args import Side, TimeFrameArg, TimeInForceArg
from apcacli.config import ApiConfig
from apcacli.errors import ApiError, ConnectionFailure, InvalidArgumentError

logger = logging.getLogger(__name__)

ORDER_LIST_LIMIT = 500
DEFAULT_BARS_LOOKBACK = timedelta(days=30)

DateLike = Union[date, datetime]


def _describe_api_error(error: APIError) -> str:
    """Best effort extraction of the message Alpaca sent along."""
    try:
        message = error.message
    except (ValueError, KeyError, TypeError):
        message = None
    return message or str(error)


def _api_error_code(error: APIError) -> Optional[int]:
    try:
        return error.code
    except (ValueError, KeyError, TypeError):
        return None


@contextmanager
def api_call(action: str) -> Iterator[None]:
    """Run an SDK call, converting its failures into apcacli errors.

    Args:
        action: What was being attempted, phrased to follow "failed to".
    """
    logger.debug("Attempting to %s", action)
    try:
        yield
    except APIError as e:
        raise ApiError(
            f"failed to {action}",
            cause=_describe_api_error(e),
            status_code=e.status_code,
            code=_api_error_code(e),
        ) from e
    except requests.RequestException as e:
        raise ConnectionFailure(f"failed to {action}", cause=str(e)) from e
    except ValueError as e:
        # pydantic validation of request models
        raise InvalidArgumentError(f"failed to {action}", cause=str(e)) from e


def to_datetime(value: Optional[DateLike], end_of_day: bool = False) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    moment = time(23, 59, 59) if end_of_day else time(0, 0)
    return datetime.combine(value, moment, tzinfo=timezone.utc)


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def to_timeframe(timeframe: TimeFrameArg) -> TimeFrame:
    return TimeFrame(timeframe.amount, TimeFrameUnit[timeframe.unit])


class BrokerClient:
    """Alpaca trading and market data operations used by the commands.

    The SDK clients are created lazily so that commands which only need
    one of them do not construct the other. Tests pass in doubles.

    Example:
        client = BrokerClient(ApiConfig.from_env())
        account = client.get_account()
    """

    def __init__(
        self,
        config: ApiConfig,
        trading: Optional[TradingClient] = None,
        data: Optional[StockHistoricalDataClient] = None,
    ):
        self._config = config
        self._trading = trading
        self._data = data

    @property
    def config(self) -> ApiConfig:
        return self._config

    @property
    def trading(self) -> TradingClient:
        if self._trading is None:
            self._trading = TradingClient(
                api_key=self._config.key_id,
                secret_key=self._config.secret_key,
                paper=self._config.paper,
                url_override=self._config.base_url,
            )
        return self._trading

    @property
    def data(self) -> StockHistoricalDataClient:
        if self._data is None:
            self._data = StockHistoricalDataClient(
                api_key=self._config.key_id,
                secret_key=self._config.secret_key,
                url_override=self._config.data_url,
            )
        return self._data

    # ── Account ──────────────────────────────────────────────────────

    def get_account(self) -> Any:
        with api_call("retrieve account information"):
            return self.trading.get_account()

    def get_account_config(self) -> Any:
        with api_call("retrieve account configuration"):
            return self.trading.get_account_configurations()

    def set_account_config(
        self,
        confirm_email: Optional[bool] = None,
        trading_suspended: Optional[bool] = None,
        shorting: Optional[bool] = None,
    ) -> Any:
        """Update the given account configuration settings.

        Settings left as ``None`` keep their current value.
        """
        update: dict[str, Any] = {}
        if confirm_email is not None:
            update["trade_confirm_email"] = (
                TradeConfirmationEmail.ALL if confirm_email else TradeConfirmationEmail.NONE
            )
        if trading_suspended is not None:
            update["suspend_trade"] = trading_suspended
        if shorting is not None:
            update["no_shorting"] = not shorting

        current = self.get_account_config()
        if not update:
            logger.info("No account configuration changes requested")
            return current

        updated = current.model_copy(update=update)
        with api_call("update account configuration"):
            return self.trading.set_account_configurations(updated)

    def get_activities(
        self,
        types: Optional[list[str]] = None,
        after: Optional[DateLike] = None,
        until: Optional[DateLike] = None,
        direction: str = "desc",
        page_size: int = 100,
    ) -> list[dict]:
        """Retrieve account activities as raw dictionaries."""
        params: dict[str, Any] = {"direction": direction, "page_size": page_size}
        if types:
            params["activity_types"] = ",".join(types)
        if after is not None:
            params["after"] = after.isoformat()
        if until is not None:
            params["until"] = until.isoformat()

        with api_call("retrieve account activity"):
            result = self.trading.get("/account/activities", params)
        if isinstance(result, str):
            result = json.loads(result)
        return list(result or [])

    # ── Assets ───────────────────────────────────────────────────────

    def get_asset(self, symbol_or_id: Union[str, uuid.UUID]) -> Any:
        with api_call(f"retrieve asset information for {symbol_or_id}"):
            return self.trading.get_asset(symbol_or_id)

    def list_assets(self, asset_class: str = "us_equity") -> list:
        request = GetAssetsRequest(
            status=AssetStatus.ACTIVE,
            asset_class=AssetClass(asset_class),
        )
        with api_call("retrieve asset list"):
            assets = self.trading.get_all_assets(request)
        return sorted(assets, key=lambda a: a.symbol)

    # ── Market ───────────────────────────────────────────────────────

    def get_clock(self) -> Any:
        with api_call("retrieve market clock"):
            return self.trading.get_clock()

    def get_bars(
        self,
        symbol: str,
        timeframe: TimeFrameArg,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
        limit: Optional[int] = None,
    ) -> list:
        end_dt = to_datetime(end, end_of_day=True)
        start_dt = to_datetime(start)
        if start_dt is None:
            start_dt = (end_dt or datetime.now(timezone.utc)) - DEFAULT_BARS_LOOKBACK

        with api_call(f"retrieve bars for {symbol}"):
            request = StockBarsRequest(
                symbol_or_symbols=symbol,
                timeframe=to_timeframe(timeframe),
                start=start_dt,
                end=end_dt,
                limit=limit,
                feed=DataFeed(self._config.data_feed),
            )
            bars = self.data.get_stock_bars(request)
        return list(bars.data.get(symbol, []))

    # ── Orders ───────────────────────────────────────────────────────

    def submit_order(
        self,
        side: Side,
        symbol: str,
        quantity: Optional[int] = None,
        value: Optional[Decimal] = None,
        limit_price: Optional[Decimal] = None,
        stop_price: Optional[Decimal] = None,
        take_profit_price: Optional[Decimal] = None,
        extended_hours: bool = False,
        time_in_force: TimeInForceArg = TimeInForceArg.CANCELED,
    ) -> Any:
        """Submit a market, limit, stop, or stop limit order.

        Exactly one of ``quantity`` and ``value`` must be given. A take
        profit price turns the order into a one-triggers-other order.
        """
        if (quantity is None) == (value is None):
            raise InvalidArgumentError("exactly one of quantity and value must be provided")

        fields: dict[str, Any] = {
            "symbol": symbol,
            "side": OrderSide(side.value),
            "time_in_force": TimeInForce(time_in_force.api_value),
            "extended_hours": extended_hours,
        }
        if quantity is not None:
            fields["qty"] = quantity
        else:
            fields["notional"] = _to_float(value)
        if take_profit_price is not None:
            fields["order_class"] = OrderClass.OTO
            fields["take_profit"] = TakeProfitRequest(limit_price=_to_float(take_profit_price))

        with api_call(f"submit {side.value} order for {symbol}"):
            if limit_price is not None and stop_price is not None:
                request = StopLimitOrderRequest(
                    limit_price=_to_float(limit_price),
                    stop_price=_to_float(stop_price),
                    **fields,
                )
            elif limit_price is not None:
                request = LimitOrderRequest(limit_price=_to_float(limit_price), **fields)
            elif stop_price is not None:
                request = StopOrderRequest(stop_price=_to_float(stop_price), **fields)
            else:
                request = MarketOrderRequest(**fields)
            order = self.trading.submit_order(request)

        logger.info("Submitted order %s", order.id, extra={"order_id": str(order.id)})
        return order

    def change_order(
        self,
        order_id: uuid.UUID,
        quantity: Optional[int] = None,
        value: Optional[Decimal] = None,
        limit_price: Optional[Decimal] = None,
        stop_price: Optional[Decimal] = None,
        time_in_force: Optional[TimeInForceArg] = None,
    ) -> Any:
        """Replace an open order.

        Alpaca cannot replace an order with a notional amount, so a value is
        converted into a whole number of shares using the new limit price
        or, if none is given, the order's current one.
        """
        if quantity is not None and value is not None:
            raise InvalidArgumentError("quantity and value are mutually exclusive")
        if all(arg is None for arg in (quantity, value, limit_price, stop_price, time_in_force)):
            raise InvalidArgumentError(f"no changes requested for order {order_id}")

        if value is not None:
            price = limit_price
            if price is None:
                current = self.get_order(order_id)
                if current.limit_price is not None:
                    price = Decimal(str(current.limit_price))
            if price is None:
                raise InvalidArgumentError(
                    "a value can only be converted into a quantity with a limit price"
                )
            quantity = int((value / price).to_integral_value(rounding=ROUND_FLOOR))
            if quantity <= 0:
                raise InvalidArgumentError(
                    f"value {value} does not cover a single share at {price}"
                )
            logger.info("Converted value %s at %s to quantity %d", value, price, quantity)

        with api_call(f"change order {order_id}"):
            request = ReplaceOrderRequest(
                qty=quantity,
                limit_price=_to_float(limit_price),
                stop_price=_to_float(stop_price),
                time_in_force=(
                    TimeInForce(time_in_force.api_value) if time_in_force is not None else None
                ),
            )
            return self.trading.replace_order_by_id(order_id, request)

    def cancel_order(self, order_id: uuid.UUID) -> None:
        with api_call(f"cancel order {order_id}"):
            self.trading.cancel_order_by_id(order_id)

    def cancel_all_orders(self) -> int:
        """Cancel all open orders. Returns count of canceled orders."""
        with api_call("cancel all orders"):
            responses = self.trading.cancel_orders()
        return len(responses or [])

    def get_order(self, order_id: uuid.UUID) -> Any:
        with api_call(f"retrieve order {order_id}"):
            return self.trading.get_order_by_id(order_id)

    def list_orders(self, closed: bool = False, nested: bool = True) -> list:
        request = GetOrdersRequest(
            status=QueryOrderStatus.CLOSED if closed else QueryOrderStatus.OPEN,
            limit=ORDER_LIST_LIMIT,
            nested=nested,
        )
        with api_call("retrieve order list"):
            orders = self.trading.get_orders(request)
        return list(orders)

    # ── Positions ────────────────────────────────────────────────────

    def get_position(self, symbol: str) -> Any:
        with api_call(f"retrieve position for {symbol}"):
            return self.trading.get_open_position(symbol)

    def list_positions(self) -> list:
        with api_call("retrieve positions"):
            positions = self.trading.get_all_positions()
        return sorted(positions, key=lambda p: p.symbol)

    def close_position(self, symbol: str) -> Any:
        with api_call(f"close position for {symbol}"):
            return self.trading.close_position(symbol)
