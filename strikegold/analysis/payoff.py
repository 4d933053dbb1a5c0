"""Payoff engine: expiration P/L, payoff curves and strategy metrics.

Pure functions over a sequence of ``OptionLeg``. Nothing here validates
leg ranges; callers clamp inputs first (see ``legs.make_leg``).

Metrics are derived numerically from a sampled curve, which generalizes to
any leg combination. The curve is piecewise linear with kinks only at
strikes, so sampling every strike plus the domain bounds makes min/max
exact inside the sampled range. Outside it the values are approximations:
a strategy that is net short calls keeps losing above the upper bound, and
``max_loss`` reports the loss at that bound.
"""

from typing import Iterator, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from strikegold.analysis.legs import LegSide, OptionLeg
from strikegold.data.models import OptionType

METRICS_WIDTH_FACTOR = 0.8
METRICS_STEPS = 200
MIN_CENTER = 0.01


class PayoffPoint(NamedTuple):
    underlying: float
    profit_loss: float


class PayoffMetrics(NamedTuple):
    max_loss: float
    max_gain: Optional[float]   # None means unlimited
    breakeven: Optional[float]


def total_debit(legs: Sequence[OptionLeg]) -> float:
    """Net premium: positive is a debit paid, negative a credit received."""
    return sum(leg.debit for leg in legs)


def payoff(legs: Sequence[OptionLeg], underlying_price: float) -> float:
    """Total P/L at expiration for a given underlying price."""
    return sum(leg.profit_loss(underlying_price) for leg in legs)


def curve_bounds(center: float, width_factor: float) -> tuple:
    center = max(MIN_CENTER, center)
    lower = max(0.0, center * (1 - width_factor))
    upper = center * (1 + width_factor)
    return lower, upper


def payoff_curve(
    legs: Sequence[OptionLeg],
    center: float,
    width_factor: float = 0.6,
    steps: int = 90,
) -> Iterator[PayoffPoint]:
    """Yield ``steps + 1`` evenly spaced samples across
    ``[center * (1 - width_factor), center * (1 + width_factor)]``.

    Both bounds are included; ``steps=0`` yields the lower bound alone. A new
    generator is produced on every call.
    """
    if steps < 0:
        raise ValueError(f"steps must be >= 0, got {steps}")
    lower, upper = curve_bounds(center, width_factor)
    for s in np.linspace(lower, upper, steps + 1):
        s = float(s)
        yield PayoffPoint(s, payoff(legs, s))


def curve_frame(
    legs: Sequence[OptionLeg],
    center: float,
    width_factor: float = 0.6,
    steps: int = 90,
) -> pd.DataFrame:
    """Payoff curve as a DataFrame with ``underlying`` and ``profit_loss`` columns."""
    return pd.DataFrame(
        list(payoff_curve(legs, center, width_factor, steps)),
        columns=["underlying", "profit_loss"],
    )


def net_call_exposure(legs: Sequence[OptionLeg]) -> float:
    """Slope of the payoff as the underlying goes to infinity (dollars per $1)."""
    return sum(
        leg.contracts * leg.multiplier * (1 if leg.side is LegSide.LONG else -1)
        for leg in legs
        if leg.type is OptionType.CALL
    )


def find_breakevens(points: Sequence[PayoffPoint]) -> List[float]:
    """All zero crossings between adjacent samples, linearly interpolated."""
    crossings: List[float] = []
    for (x1, y1), (x2, y2) in zip(points, points[1:]):
        if y1 == 0 and y2 == 0:
            continue
        if (y1 <= 0 <= y2) or (y1 >= 0 >= y2):
            x = x1 if y2 == y1 else x1 + (x2 - x1) * (-y1) / (y2 - y1)
            if not crossings or abs(crossings[-1] - x) > 1e-9:
                crossings.append(x)
    return crossings


def nearest_breakeven(crossings: Sequence[float], center: float) -> Optional[float]:
    """Crossing closest to ``center``; ties resolve to the lower price."""
    if not crossings:
        return None
    return min(crossings, key=lambda x: (abs(x - center), x))


def metrics(
    legs: Sequence[OptionLeg],
    center: float,
    width_factor: float = METRICS_WIDTH_FACTOR,
    steps: int = METRICS_STEPS,
) -> PayoffMetrics:
    """Max loss, max gain (None = unlimited) and breakeven around ``center``."""
    points = list(payoff_curve(legs, center, width_factor, steps))
    lower, upper = points[0].underlying, points[-1].underlying

    # Kinks (strikes) and the zero bound on top of the regular samples.
    extra = {0.0} | {leg.strike for leg in legs if lower <= leg.strike <= upper}
    values = np.array([p.profit_loss for p in points] + [payoff(legs, s) for s in extra])

    max_loss = float(values.min())
    max_gain = None if net_call_exposure(legs) > 0 else float(values.max())
    breakeven = nearest_breakeven(find_breakevens(points), max(MIN_CENTER, center))
    return PayoffMetrics(max_loss, max_gain, breakeven)
