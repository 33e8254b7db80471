"""In-process paper broker.

Fills market orders immediately at the current quote price. Used for
demos, CLI paper runs and tests.
"""

import threading
import uuid
from typing import Dict, Iterable, List, Optional

from rebalance_engine.data.base import MarketDataPort
from rebalance_engine.execution.base import (
    BrokerPort,
    OrderResult,
    OrderSide,
    OrderType,
    TimeInForce,
    TradeStatus,
)
from rebalance_engine.utils.exceptions import TradeExecutionError
from rebalance_engine.utils.logging import get_logger

logger = get_logger(__name__)


class PaperBroker(BrokerPort):
    """Simulated broker.

    Symbols in ``fail_symbols`` are rejected, which is how tests exercise
    partial batch failures. Re-submitting a known ``client_order_id``
    returns the original order.

    Example:
        >>> broker = PaperBroker(market_data, fail_symbols=["BND"])
        >>> broker.place_order("SPY", OrderSide.BUY, 10, OrderType.MARKET,
        ...                    TimeInForce.DAY, client_order_id="exec_1-0").status
        <TradeStatus.FILLED: 'filled'>
    """

    def __init__(
        self,
        market_data: MarketDataPort,
        fail_symbols: Optional[Iterable[str]] = None,
    ):
        self.market_data = market_data
        self.fail_symbols = set(fail_symbols or ())
        self.orders: Dict[str, OrderResult] = {}
        self.calls: List[Dict] = []
        self._by_client_id: Dict[str, str] = {}
        self._lock = threading.Lock()

    def place_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        order_type: OrderType,
        time_in_force: TimeInForce,
        client_order_id: str,
    ) -> OrderResult:
        with self._lock:
            self.calls.append(
                {
                    "symbol": symbol,
                    "side": side,
                    "quantity": quantity,
                    "client_order_id": client_order_id,
                }
            )
            existing = self._by_client_id.get(client_order_id)
            if existing is not None:
                return self.orders[existing]

        if quantity <= 0:
            raise TradeExecutionError(f"Invalid quantity for {symbol}: {quantity}")

        order_id = f"paper_{uuid.uuid4().hex[:12]}"
        if symbol in self.fail_symbols:
            result = OrderResult(
                order_id=order_id,
                status=TradeStatus.FAILED,
                error="rejected by paper broker",
            )
        else:
            price = self.market_data.get_quote(symbol).price
            result = OrderResult(
                order_id=order_id,
                status=TradeStatus.FILLED,
                filled_qty=quantity,
                avg_fill_price=price,
            )

        with self._lock:
            self.orders[order_id] = result
            self._by_client_id[client_order_id] = order_id

        logger.info(
            "Paper order %s: %s %s x%s -> %s",
            order_id,
            side.value,
            symbol,
            quantity,
            result.status.value,
        )
        return result

    def get_order(self, order_id: str) -> OrderResult:
        with self._lock:
            result = self.orders.get(order_id)
        if result is None:
            raise TradeExecutionError(f"Unknown order id: {order_id}")
        return result
