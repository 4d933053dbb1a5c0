"""Option legs and the simple strategies built from them."""

from dataclasses import dataclass
from enum import Enum
from typing import List

from strikegold.data.models import OptionType

DEFAULT_MULTIPLIER = 100.0


class LegSide(Enum):
    LONG = "long"
    SHORT = "short"


@dataclass(frozen=True)
class OptionLeg:
    """
    One option position within a strategy. Immutable, compared by value.

    The payoff engine does not validate ranges; use the builders below
    (or clamp yourself) before analysis.
    """

    type: OptionType
    side: LegSide
    strike: float
    premium: float
    contracts: int = 1
    multiplier: float = DEFAULT_MULTIPLIER

    @property
    def sign(self) -> int:
        return 1 if self.side is LegSide.LONG else -1

    @property
    def debit(self) -> float:
        """Signed premium paid (+) or received (-) for this leg."""
        return self.sign * self.premium * self.contracts * self.multiplier

    def intrinsic(self, underlying: float) -> float:
        """Per-share intrinsic value at expiration."""
        if self.type is OptionType.CALL:
            return max(0.0, underlying - self.strike)
        return max(0.0, self.strike - underlying)

    def per_share(self, underlying: float) -> float:
        """Per-share P/L at expiration: intrinsic - premium, sign-flipped for shorts."""
        return self.sign * (self.intrinsic(underlying) - self.premium)

    def profit_loss(self, underlying: float) -> float:
        return self.per_share(underlying) * self.contracts * self.multiplier

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "side": self.side.value,
            "strike": self.strike,
            "premium": self.premium,
            "contracts": self.contracts,
            "multiplier": self.multiplier,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OptionLeg":
        return cls(
            type=OptionType(data["type"]),
            side=LegSide(data["side"]),
            strike=float(data["strike"]),
            premium=float(data["premium"]),
            contracts=int(data.get("contracts", 1)),
            multiplier=float(data.get("multiplier", DEFAULT_MULTIPLIER)),
        )


def make_leg(
    type: OptionType,
    side: LegSide,
    strike: float,
    premium: float,
    contracts: int = 1,
    multiplier: float = DEFAULT_MULTIPLIER,
) -> OptionLeg:
    """Build a leg with inputs clamped to valid ranges."""
    return OptionLeg(
        type=type,
        side=side,
        strike=max(0.0, strike),
        premium=max(0.0, premium),
        contracts=max(1, int(contracts)),
        multiplier=multiplier if multiplier > 0 else DEFAULT_MULTIPLIER,
    )


def single_call(strike, premium, contracts=1, side=LegSide.LONG, multiplier=DEFAULT_MULTIPLIER) -> List[OptionLeg]:
    return [make_leg(OptionType.CALL, side, strike, premium, contracts, multiplier)]


def single_put(strike, premium, contracts=1, side=LegSide.LONG, multiplier=DEFAULT_MULTIPLIER) -> List[OptionLeg]:
    return [make_leg(OptionType.PUT, side, strike, premium, contracts, multiplier)]


def bull_call_spread(
    lower_strike: float,
    lower_premium: float,
    upper_strike: float,
    upper_premium: float,
    contracts: int = 1,
    multiplier: float = DEFAULT_MULTIPLIER,
) -> List[OptionLeg]:
    """Long the lower-strike call, short the upper-strike call."""
    return [
        make_leg(OptionType.CALL, LegSide.LONG, lower_strike, lower_premium, contracts, multiplier),
        make_leg(OptionType.CALL, LegSide.SHORT, upper_strike, upper_premium, contracts, multiplier),
    ]
