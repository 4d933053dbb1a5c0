"""Market data model: option types, contracts, chains and quote errors."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

STRIKE_TOLERANCE = 1e-4


class OptionType(Enum):
    """Right of an option. Shared by legs, contracts and orders."""

    CALL = "call"
    PUT = "put"


def compute_mid(
    bid: Optional[float],
    ask: Optional[float],
    last: Optional[float] = None,
) -> Optional[float]:
    """Mid with fallbacks: avg(bid, ask) when both > 0, else bid, else ask, else last."""
    if bid is not None and ask is not None and bid > 0 and ask > 0:
        return (bid + ask) / 2
    if bid is not None:
        return bid
    if ask is not None:
        return ask
    return last


@dataclass(frozen=True)
class OptionContract:
    """
    A single option contract quote. All prices are optional because
    availability depends on the provider.
    """

    kind: OptionType
    strike: float
    bid: Optional[float] = None
    ask: Optional[float] = None
    last: Optional[float] = None

    @property
    def mid(self) -> Optional[float]:
        return compute_mid(self.bid, self.ask, self.last)


@dataclass
class OptionChainData:
    """Option chain snapshot for one expiration plus the available expirations."""

    expirations: List[date] = field(default_factory=list)
    call_strikes: List[float] = field(default_factory=list)
    put_strikes: List[float] = field(default_factory=list)
    call_contracts: List[OptionContract] = field(default_factory=list)
    put_contracts: List[OptionContract] = field(default_factory=list)

    def contracts_for(self, kind: OptionType) -> List[OptionContract]:
        return self.call_contracts if kind is OptionType.CALL else self.put_contracts

    def find_contract(
        self,
        kind: OptionType,
        strike: float,
        tolerance: float = STRIKE_TOLERANCE,
    ) -> Optional[OptionContract]:
        """First contract of the given right whose strike matches within tolerance."""
        for contract in self.contracts_for(kind):
            if abs(contract.strike - strike) < tolerance:
                return contract
        return None

    @classmethod
    def from_contracts(
        cls,
        contracts: List[OptionContract],
        expirations: Optional[List[date]] = None,
    ) -> "OptionChainData":
        """Build a chain from a mixed list of calls and puts."""
        calls = sorted((c for c in contracts if c.kind is OptionType.CALL), key=lambda c: c.strike)
        puts = sorted((c for c in contracts if c.kind is OptionType.PUT), key=lambda c: c.strike)
        return cls(
            expirations=sorted(expirations or []),
            call_strikes=sorted({c.strike for c in calls}),
            put_strikes=sorted({c.strike for c in puts}),
            call_contracts=calls,
            put_contracts=puts,
        )


class QuoteErrorKind(Enum):
    UNAUTHORIZED = "unauthorized"
    NETWORK = "network"
    NOT_FOUND = "not_found"


class QuoteError(Exception):
    """Raised by quote providers. ``kind`` classifies the failure."""

    def __init__(self, kind: QuoteErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
