"""One-call strategy analysis using the configured sampling parameters."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd

from strikegold.analysis.legs import OptionLeg
from strikegold.analysis.payoff import PayoffMetrics, curve_frame, metrics, total_debit
from strikegold.analysis.scenarios import ScenarioResult, scenarios
from strikegold.config import MonitorConfig


@dataclass
class StrategyReport:
    center: float
    total_debit: float
    metrics: PayoffMetrics
    curve: pd.DataFrame
    scenarios: List[ScenarioResult]


def analyze(
    legs: Sequence[OptionLeg],
    center: float,
    config: Optional[MonitorConfig] = None,
) -> StrategyReport:
    """Debit, metrics, chart curve and up/down scenarios around ``center``."""
    config = config or MonitorConfig()
    return StrategyReport(
        center=center,
        total_debit=total_debit(legs),
        metrics=metrics(legs, center, config.metrics_width_factor, config.metrics_steps),
        curve=curve_frame(legs, center, config.curve_width_factor, config.curve_steps),
        scenarios=scenarios(legs, center, config.scenario_up_pct, config.scenario_down_pct),
    )
