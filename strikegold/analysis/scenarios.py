"""Two-outcome "what-if" scenarios with narrative per-leg breakdowns."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from strikegold.analysis.legs import LegSide, OptionLeg, make_leg
from strikegold.analysis.payoff import payoff
from strikegold.data.models import OptionType
from strikegold.trading.models import OrderSide


def money(value: float) -> str:
    """Currency text, e.g. ``$1,234.50`` / ``-$20.00``."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def number(value: float) -> str:
    """Up to two decimals, trailing zeros dropped: ``180``, ``2.5``."""
    text = f"{value:,.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


@dataclass(frozen=True)
class ScenarioLegBreakdown:
    title: str
    intrinsic: float
    per_share_pl: float
    leg_pl: float
    intrinsic_explanation: str
    per_share_explanation: str
    leg_pl_explanation: str


@dataclass(frozen=True)
class ScenarioResult:
    label: str
    move: str                   # "up" or "down"
    underlying: float
    legs: Tuple[ScenarioLegBreakdown, ...]
    total_pl: float


def leg_breakdown(leg: OptionLeg, underlying: float) -> ScenarioLegBreakdown:
    """Explain one leg's P/L at a given underlying price."""
    intrinsic = leg.intrinsic(underlying)
    raw = intrinsic - leg.premium
    per_share = leg.per_share(underlying)
    leg_pl = leg.profit_loss(underlying)

    side = "Long" if leg.side is LegSide.LONG else "Short"
    kind = "Call" if leg.type is OptionType.CALL else "Put"
    title = f"{side} {kind}  K={number(leg.strike)}  Prem={number(leg.premium)}  ×{leg.contracts}"

    if leg.type is OptionType.CALL:
        intrinsic_expl = (
            f"Intrinsic = max(0, S − K) = max(0, {number(underlying)} − {number(leg.strike)})"
            f" = {number(intrinsic)}"
        )
    else:
        intrinsic_expl = (
            f"Intrinsic = max(0, K − S) = max(0, {number(leg.strike)} − {number(underlying)})"
            f" = {number(intrinsic)}"
        )

    per_share_expl = (
        f"Per-share P/L = Intrinsic − Premium = {number(intrinsic)} − {number(leg.premium)}"
        f" = {number(raw)}"
    )
    if leg.side is LegSide.SHORT:
        per_share_expl = f"Short flips sign: −({number(raw)}) = {number(per_share)}"

    leg_pl_expl = (
        f"Leg P/L = per-share × contracts × multiplier = {number(per_share)} × {leg.contracts}"
        f" × {number(leg.multiplier)} = {money(leg_pl)}"
    )

    return ScenarioLegBreakdown(
        title=title,
        intrinsic=intrinsic,
        per_share_pl=per_share,
        leg_pl=leg_pl,
        intrinsic_explanation=intrinsic_expl,
        per_share_explanation=per_share_expl,
        leg_pl_explanation=leg_pl_expl,
    )


def _label(a: float, b: float) -> str:
    if a > 0 and b <= 0:
        return "Money-making scenario"
    if a <= 0 and b > 0:
        return "Money-losing scenario"
    if a > b:
        return "More profitable scenario"
    if a < b:
        return "Less profitable scenario"
    return "Scenario"


def scenarios(
    legs: Sequence[OptionLeg],
    center_price: float,
    up_pct: float = 0.10,
    down_pct: float = 0.10,
) -> List[ScenarioResult]:
    """Evaluate an up-move and a down-move from ``center_price``.

    Returns two results, the one with strictly higher total P/L first
    (ties keep the up-move first).
    """
    up_price = max(0.0, center_price * (1 + up_pct))
    down_price = max(0.0, center_price * (1 - down_pct))

    evaluated = []
    for move, price in (("up", up_price), ("down", down_price)):
        breakdown = tuple(leg_breakdown(leg, price) for leg in legs)
        evaluated.append((move, price, breakdown, payoff(legs, price)))

    up, down = evaluated
    first, second = (down, up) if down[3] > up[3] else (up, down)
    return [
        ScenarioResult(_label(first[3], second[3]), first[0], first[1], first[2], first[3]),
        ScenarioResult(_label(second[3], first[3]), second[0], second[1], second[2], second[3]),
    ]


def legs_for_order(order, market_mid: Optional[float] = None) -> Optional[List[OptionLeg]]:
    """Single leg describing a saved order, or None if no premium is known.

    Premium comes from the fill price, else the limit, else ``market_mid``.
    """
    premium = order.fill_price
    if premium is None:
        premium = order.limit if order.limit is not None else market_mid
    if premium is None:
        return None
    side = LegSide.LONG if order.side is OrderSide.BUY else LegSide.SHORT
    contracts = order.fill_quantity or order.quantity
    return [make_leg(order.right, side, order.strike, premium, contracts)]
