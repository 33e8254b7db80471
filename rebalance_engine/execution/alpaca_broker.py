"""Alpaca brokerage adapter.

Implements BrokerPort for the Alpaca trading API (paper or live).
"""

from alpaca.trading.enums import OrderSide as AlpacaOrderSide
from alpaca.trading.enums import TimeInForce as AlpacaTimeInForce
from alpaca.trading.requests import MarketOrderRequest

from rebalance_engine.execution.base import (
    BrokerPort,
    OrderResult,
    OrderSide,
    OrderType,
    TimeInForce,
    TradeStatus,
)
from rebalance_engine.utils.alpaca_client import AlpacaClient
from rebalance_engine.utils.exceptions import TradeExecutionError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)

# Alpaca statuses that mean "still working"
_PENDING_STATUSES = {
    "new",
    "accepted",
    "pending_new",
    "partially_filled",
    "accepted_for_bidding",
    "pending_cancel",
    "pending_replace",
    "calculated",
}
# Terminal without a full fill; PARTIAL when some shares executed
_CLOSED_STATUSES = {"canceled", "expired", "done_for_day", "replaced", "stopped"}
_FAILED_STATUSES = {"rejected", "suspended"}


class AlpacaBroker(BrokerPort):
    """Alpaca order API.

    Orders are submitted once, never retried. The ``client_order_id`` is
    passed to Alpaca so a submission that timed out after reaching the
    broker is found again instead of duplicated.

    Example:
        >>> client = AlpacaClient.from_env()
        >>> broker = AlpacaBroker(client)
        >>> result = broker.place_order(
        ...     "SPY", OrderSide.SELL, 10, OrderType.MARKET, TimeInForce.DAY,
        ...     client_order_id="exec_abc-0",
        ... )
    """

    def __init__(self, alpaca_client: AlpacaClient):
        """Initialize Alpaca broker.

        Args:
            alpaca_client: AlpacaClient instance for API access
        """
        self.client = alpaca_client
        self.trading_client = alpaca_client.get_trading_client()
        logger.info("AlpacaBroker initialized")

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        order_type: OrderType,
        time_in_force: TimeInForce,
        client_order_id: str,
    ) -> OrderResult:
        if order_type != OrderType.MARKET:
            raise TradeExecutionError(
                f"Unsupported order type for Alpaca: {order_type.value}"
            )

        request = MarketOrderRequest(
            symbol=symbol,
            qty=quantity,
            side=AlpacaOrderSide.BUY if side == OrderSide.BUY else AlpacaOrderSide.SELL,
            time_in_force=(
                AlpacaTimeInForce.GTC
                if time_in_force == TimeInForce.GTC
                else AlpacaTimeInForce.DAY
            ),
            client_order_id=client_order_id,
        )

        try:
            order = self.client.submit_once(self.trading_client.submit_order, request)
        except Exception as e:
            existing = self._find_by_client_id(client_order_id)
            if existing is None:
                error_msg = f"Failed to submit order for {symbol}: {e}"
                logger.error(error_msg)
                raise TradeExecutionError(error_msg) from e
            logger.warning(
                "Submission for %s raised but order %s exists; using it",
                symbol,
                client_order_id,
            )
            order = existing

        return self._to_result(order)

    def get_order(self, order_id: str) -> OrderResult:
        order = self.client.with_retry(self.trading_client.get_order_by_id, order_id)
        return self._to_result(order)

    def _find_by_client_id(self, client_order_id: str):
        try:
            return self.trading_client.get_order_by_client_id(client_order_id)
        except Exception as e:
            logger.debug("No order with client id %s: %s", client_order_id, e)
            return None

    def _to_result(self, alpaca_order) -> OrderResult:
        filled_qty = float(alpaca_order.filled_qty or 0)
        status = self.map_status(alpaca_order.status, filled_qty)
        error = None
        if status == TradeStatus.FAILED:
            error = f"order {self._status_value(alpaca_order.status)} by broker"

        return OrderResult(
            order_id=str(alpaca_order.id),
            status=status,
            filled_qty=filled_qty,
            avg_fill_price=float(alpaca_order.filled_avg_price or 0.0),
            error=error,
        )

    @staticmethod
    def _status_value(alpaca_status) -> str:
        return str(getattr(alpaca_status, "value", alpaca_status)).lower()

    @classmethod
    def map_status(cls, alpaca_status, filled_qty: float = 0.0) -> TradeStatus:
        """Map an Alpaca order status to TradeStatus.

        Args:
            alpaca_status: Alpaca OrderStatus enum or its string value
            filled_qty: Shares filled so far

        Returns:
            TradeStatus (unknown statuses are treated as pending)
        """
        status = cls._status_value(alpaca_status)

        if status == "filled":
            return TradeStatus.FILLED
        if status in _CLOSED_STATUSES:
            return TradeStatus.PARTIAL if filled_qty > 0 else TradeStatus.CANCELLED
        if status in _FAILED_STATUSES:
            return TradeStatus.FAILED
        if status not in _PENDING_STATUSES:
            logger.warning("Unknown Alpaca order status %r, treating as pending", status)
        return TradeStatus.PENDING
