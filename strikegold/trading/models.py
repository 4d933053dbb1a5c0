"""Trading layer models - saved orders, statuses, monitor decisions."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from strikegold.data.models import OptionType


class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class TimeInForce(Enum):
    DAY = "day"     # Auto-cancels after the placement day if unfilled
    GTC = "gtc"     # Works until filled or expired


class OrderStatus(Enum):
    WORKING = "working"
    FILLED = "filled"
    CANCELED = "canceled"
    FAILED = "failed"   # Placement failures only; never set by the monitor


class CancelReason(Enum):
    EXPIRED = "expired_unfilled"
    DAY_ORDER_ENDED = "day_order_ended"
    USER = "user_canceled"


class DeferReason(Enum):
    PROVIDER_ERROR = "provider_error"
    CONTRACT_NOT_FOUND = "contract_not_found"
    MALFORMED_ORDER = "malformed_order"


@dataclass
class SavedOrder:
    """
    A paper limit order on a single option contract.

    fill_price and fill_quantity are set if and only if status is FILLED;
    use the mark_* helpers to transition.
    """

    id: str
    placed_at: datetime
    symbol: str
    right: OptionType
    strike: float
    side: OrderSide
    quantity: int
    tif: TimeInForce = TimeInForce.DAY
    expiration: Optional[date] = None
    limit: Optional[float] = None
    status: OrderStatus = OrderStatus.WORKING
    fill_price: Optional[float] = None
    fill_quantity: Optional[int] = None
    note: Optional[str] = None

    @property
    def is_working(self) -> bool:
        return self.status is OrderStatus.WORKING

    @property
    def is_buy(self) -> bool:
        return self.side is OrderSide.BUY

    def mark_filled(self, price: float, quantity: Optional[int] = None):
        self.status = OrderStatus.FILLED
        self.fill_price = price
        self.fill_quantity = self.quantity if quantity is None else quantity

    def mark_canceled(self, note: Optional[str] = None):
        self.status = OrderStatus.CANCELED
        self.fill_price = None
        self.fill_quantity = None
        if note:
            self.note = note

    def mark_failed(self, note: Optional[str] = None):
        self.status = OrderStatus.FAILED
        self.fill_price = None
        self.fill_quantity = None
        if note:
            self.note = note

    def validate(self):
        """Raise ValueError if the record breaks the model invariants."""
        if self.quantity < 1:
            raise ValueError(f"Order {self.id}: quantity must be >= 1, got {self.quantity}")
        filled = self.status is OrderStatus.FILLED
        has_fill = self.fill_price is not None and self.fill_quantity is not None
        partial = (self.fill_price is None) != (self.fill_quantity is None)
        if partial or filled != has_fill:
            raise ValueError(
                f"Order {self.id}: fill_price/fill_quantity must be set iff status is filled "
                f"(status={self.status.value})"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for persistence."""
        return {
            "id": self.id,
            "placed_at": self.placed_at.isoformat(),
            "symbol": self.symbol,
            "expiration": self.expiration.isoformat() if self.expiration else None,
            "right": self.right.value,
            "strike": self.strike,
            "side": self.side.value,
            "quantity": self.quantity,
            "limit": self.limit,
            "tif": self.tif.value,
            "status": self.status.value,
            "fill_price": self.fill_price,
            "fill_quantity": self.fill_quantity,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedOrder":
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            placed_at=datetime.fromisoformat(data["placed_at"]),
            symbol=data["symbol"],
            expiration=(
                date.fromisoformat(data["expiration"]) if data.get("expiration") else None
            ),
            right=OptionType(data["right"]),
            strike=float(data["strike"]),
            side=OrderSide(data["side"]),
            quantity=int(data["quantity"]),
            limit=data.get("limit"),
            tif=TimeInForce(data.get("tif", "day").lower()),
            status=OrderStatus(data.get("status", "working")),
            fill_price=data.get("fill_price"),
            fill_quantity=data.get("fill_quantity"),
            note=data.get("note"),
        )


class DecisionKind(Enum):
    FILLED = "filled"
    CANCELED = "canceled"
    WORKING = "working"     # Evaluated, nothing to do
    DEFERRED = "deferred"   # Could not evaluate this tick; retried next tick


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating one working order against one chain snapshot."""

    kind: DecisionKind
    fill_price: Optional[float] = None
    cancel_reason: Optional[CancelReason] = None
    defer_reason: Optional[DeferReason] = None
    details: str = ""

    @classmethod
    def filled(cls, price: float, details: str = "") -> "Decision":
        return cls(DecisionKind.FILLED, fill_price=price, details=details)

    @classmethod
    def canceled(cls, reason: CancelReason, details: str = "") -> "Decision":
        return cls(DecisionKind.CANCELED, cancel_reason=reason, details=details)

    @classmethod
    def still_working(cls, details: str = "") -> "Decision":
        return cls(DecisionKind.WORKING, details=details)

    @classmethod
    def deferred(cls, reason: DeferReason, details: str = "") -> "Decision":
        return cls(DecisionKind.DEFERRED, defer_reason=reason, details=details)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (DecisionKind.FILLED, DecisionKind.CANCELED)


@dataclass(frozen=True)
class MarketReferences:
    """Bid/ask/mid for one contract, for display next to an order."""

    bid: Optional[float] = None
    ask: Optional[float] = None
    mid: Optional[float] = None


@dataclass
class OrderRequest:
    """A new paper order as entered by the user."""

    symbol: str
    expiration: date
    right: OptionType
    strike: float
    side: OrderSide
    quantity: int
    limit: float
    tif: TimeInForce = TimeInForce.DAY


@dataclass
class OrderResult:
    """Result of an order placement."""

    success: bool
    order: SavedOrder
    message: str

    @property
    def filled(self) -> bool:
        return self.order.status is OrderStatus.FILLED
