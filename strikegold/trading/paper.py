"""Paper order placement against delayed quotes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

import pytz

from strikegold.data.models import OptionContract, QuoteError
from strikegold.data.quotes import QuoteProvider, normalize_symbol
from strikegold.trading.decision import crosses, execution_price
from strikegold.trading.models import OrderRequest, OrderResult, OrderSide, SavedOrder

if TYPE_CHECKING:
    from strikegold.config import MonitorConfig
    from strikegold.trading.daily_log import DailyLog
    from strikegold.trading.orders import OrderStore

logger = logging.getLogger(__name__)


def round_price(price: float) -> float:
    """Option prices trade in cents."""
    return round(price, 2)


class PaperTradingService:
    """
    Records paper limit orders and tries an immediate fill.

    An order whose limit already crosses the current quote is stored as
    filled; otherwise it is stored as working and left to the monitor.
    A provider failure while pricing stores the order as failed.
    """

    def __init__(
        self,
        store: "OrderStore",
        provider: QuoteProvider,
        config: Optional["MonitorConfig"] = None,
        clock: Optional[Callable[[], datetime]] = None,
        daily_log: Optional["DailyLog"] = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.tolerance = config.strike_tolerance if config else 1e-4
        self.clock = clock or (lambda: datetime.now(pytz.utc))
        self.daily_log = daily_log

    def _contract(self, request: OrderRequest) -> Optional[OptionContract]:
        chain = self.provider.fetch_option_chain(normalize_symbol(request.symbol), request.expiration)
        return chain.find_contract(request.right, request.strike, self.tolerance)

    def place_order(self, request: OrderRequest) -> OrderResult:
        """Validate, price and persist a new paper order."""
        if request.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {request.quantity}")
        if request.limit is None or request.limit <= 0:
            raise ValueError(f"limit must be > 0, got {request.limit}")

        order = SavedOrder(
            id=uuid.uuid4().hex,
            placed_at=self.clock(),
            symbol=normalize_symbol(request.symbol),
            expiration=request.expiration,
            right=request.right,
            strike=request.strike,
            side=request.side,
            quantity=int(request.quantity),
            limit=round_price(request.limit),
            tif=request.tif,
        )

        try:
            contract = self._contract(request)
        except QuoteError as e:
            logger.warning("Placement of %s %s failed: %s", order.side.value, order.symbol, e)
            order.mark_failed(f"{e.kind.value}: {e}")
            return self._record(False, order, f"Order failed: {e}")

        if contract is not None and crosses(
            order.side, order.limit, contract.bid, contract.ask, contract.mid
        ):
            price = round_price(execution_price(
                order.side, order.limit, contract.bid, contract.ask, contract.mid
            ))
            order.mark_filled(price)
            return self._record(True, order, f"Filled at {price:.2f}")

        message = "Order working" if contract is not None else "Order working (no quote yet)"
        return self._record(True, order, message)

    def _record(self, success: bool, order: SavedOrder, message: str) -> OrderResult:
        self.store.append(order)
        if self.daily_log is not None:
            self.daily_log.log_placement(order, message)
            self.daily_log.flush()
        return OrderResult(success=success, order=order, message=message)

    def suggest_limit(self, request: OrderRequest) -> Optional[float]:
        """Limit that would fill now: the ask for a buy, the bid for a sell, else the mid."""
        contract = self._contract(request)
        if contract is None:
            return None
        touch = contract.ask if request.side is OrderSide.BUY else contract.bid
        price = touch if touch is not None else contract.mid
        return round_price(price) if price is not None else None
