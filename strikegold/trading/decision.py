"""Fill / expire / cancel decisions for working orders.

Everything here is pure: the monitor fetches quotes and applies the
result, ``decide`` only looks at one order and one chain snapshot.
"""

from datetime import date, datetime, time as dt_time
from typing import Optional, Union

import pytz

from strikegold.data.models import STRIKE_TOLERANCE, OptionChainData, OptionContract
from strikegold.trading.models import (
    CancelReason,
    Decision,
    DeferReason,
    OrderSide,
    SavedOrder,
    TimeInForce,
)

EXPIRY_CUTOFF = dt_time(16, 0)
MARKET_TZ = pytz.timezone("US/Eastern")


# ── Calendar helpers ────────────────────────────────────────────


def market_day(ts: datetime, tz=MARKET_TZ) -> date:
    """Calendar day of ``ts`` in the market timezone. Naive values are taken as UTC."""
    if ts.tzinfo is None:
        ts = pytz.utc.localize(ts)
    return ts.astimezone(tz).date()


def expires_at(expiration: date, tz=MARKET_TZ, cutoff: dt_time = EXPIRY_CUTOFF) -> datetime:
    """The instant an expiration date stops trading: the date at ``cutoff`` market time."""
    return tz.localize(datetime.combine(expiration, cutoff))


def is_expired(expiration: date, now: datetime, tz=MARKET_TZ,
               cutoff: dt_time = EXPIRY_CUTOFF) -> bool:
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return expires_at(expiration, tz, cutoff) < now


# ── Pricing ─────────────────────────────────────────────────────


def crosses(side: OrderSide, limit: Optional[float], bid: Optional[float],
            ask: Optional[float], mid: Optional[float]) -> bool:
    """Whether the quote reaches the limit.

    Either the touch or the mid is enough (OR, not AND). An order with no
    limit never crosses.
    """
    if limit is None:
        return False
    if side is OrderSide.BUY:
        return (ask is not None and ask <= limit) or (mid is not None and mid <= limit)
    return (bid is not None and bid >= limit) or (mid is not None and mid >= limit)


def execution_price(side: OrderSide, limit: float, bid: Optional[float],
                    ask: Optional[float], mid: Optional[float]) -> float:
    """Price a crossing order fills at, never worse than its limit."""
    if side is OrderSide.BUY:
        if ask is not None:
            return min(ask, limit)
        if mid is not None:
            return min(mid, limit)
        return limit
    if bid is not None:
        return max(bid, limit)
    if mid is not None:
        return max(mid, limit)
    return limit


# ── Decision ────────────────────────────────────────────────────


def decide(
    order: SavedOrder,
    chain_result: Union[OptionChainData, Exception, None],
    now: datetime,
    tz=MARKET_TZ,
    tolerance: float = STRIKE_TOLERANCE,
    expiry_cutoff: dt_time = EXPIRY_CUTOFF,
) -> Decision:
    """Evaluate one working order against one chain snapshot.

    ``chain_result`` is the fetched chain, or the exception the provider
    raised while fetching it. Orders without an expiration are deferred
    and no chain is needed.
    """
    if order.expiration is None:
        return Decision.deferred(DeferReason.MALFORMED_ORDER, "missing expiration")

    if chain_result is None or isinstance(chain_result, Exception):
        return Decision.deferred(DeferReason.PROVIDER_ERROR, str(chain_result or "no chain"))

    contract: Optional[OptionContract] = chain_result.find_contract(
        order.right, order.strike, tolerance
    )
    if contract is None:
        return Decision.deferred(
            DeferReason.CONTRACT_NOT_FOUND,
            f"no {order.right.value} at strike {order.strike:g}",
        )

    bid, ask, mid = contract.bid, contract.ask, contract.mid

    if crosses(order.side, order.limit, bid, ask, mid):
        price = execution_price(order.side, order.limit, bid, ask, mid)
        return Decision.filled(price, f"bid={bid} ask={ask} mid={mid} limit={order.limit}")

    if is_expired(order.expiration, now, tz, expiry_cutoff):
        return Decision.canceled(CancelReason.EXPIRED, f"expired {order.expiration.isoformat()}")

    if order.tif is TimeInForce.DAY and market_day(order.placed_at, tz) != market_day(now, tz):
        return Decision.canceled(
            CancelReason.DAY_ORDER_ENDED,
            f"placed {market_day(order.placed_at, tz).isoformat()}",
        )

    return Decision.still_working()
