"""Unit tests for two-outcome scenarios."""

import pytest

from strikegold.analysis.legs import LegSide, bull_call_spread, make_leg, single_call, single_put
from strikegold.analysis.report import analyze
from strikegold.analysis.scenarios import leg_breakdown, legs_for_order, money, number, scenarios
from strikegold.config import MonitorConfig
from strikegold.data.models import OptionType
from strikegold.trading.models import OrderSide

from tests.conftest import make_order


def _plus_50_minus_20():
    """Legs worth +50 at 110 and -20 at 90."""
    return [
        make_leg(OptionType.CALL, LegSide.LONG, 100, 0.2),
        make_leg(OptionType.CALL, LegSide.SHORT, 100.7, 0.0),
    ]


class TestScenarioOrdering:
    def test_higher_pl_first(self):
        up, down = scenarios(_plus_50_minus_20(), 100)
        assert up.move == "up"
        assert up.total_pl == pytest.approx(50.0)
        assert down.move == "down"
        assert down.total_pl == pytest.approx(-20.0)

    def test_down_first_when_it_pays_more(self):
        first, second = scenarios(single_put(100, 2), 100)
        assert first.move == "down"
        assert first.total_pl > second.total_pl

    def test_tie_keeps_up_first(self):
        legs = single_call(200, 1)
        first, second = scenarios(legs, 100)
        assert first.total_pl == second.total_pl
        assert first.move == "up"

    def test_prices_and_labels(self):
        first, second = scenarios(_plus_50_minus_20(), 100)
        assert first.underlying == pytest.approx(110.0)
        assert second.underlying == pytest.approx(90.0)
        assert first.label == "Money-making scenario"
        assert second.label == "Money-losing scenario"

    def test_both_profitable_labels(self):
        first, second = scenarios(single_put(150, 1), 100, up_pct=0.1, down_pct=0.1)
        assert first.label == "More profitable scenario"
        assert second.label == "Less profitable scenario"

    def test_down_move_clamped_at_zero(self):
        results = scenarios(single_put(100, 5), 100, down_pct=1.5)
        assert min(r.underlying for r in results) == 0.0

    def test_total_is_sum_of_legs(self):
        for result in scenarios(bull_call_spread(100, 5, 110, 2), 105):
            assert result.total_pl == pytest.approx(sum(l.leg_pl for l in result.legs))


class TestLegBreakdown:
    def test_long_call_explanations(self):
        b = leg_breakdown(single_call(100, 4)[0], 110)
        assert b.intrinsic == pytest.approx(10.0)
        assert b.per_share_pl == pytest.approx(6.0)
        assert b.leg_pl == pytest.approx(600.0)
        assert b.title.startswith("Long Call")
        assert "max(0, S − K)" in b.intrinsic_explanation
        assert "$600.00" in b.leg_pl_explanation

    def test_short_put_flips_sign(self):
        b = leg_breakdown(single_put(100, 3, side=LegSide.SHORT)[0], 95)
        assert b.per_share_pl == pytest.approx(-2.0)
        assert "Short flips sign" in b.per_share_explanation

    def test_formatting_helpers(self):
        assert money(-20) == "-$20.00"
        assert money(1234.5) == "$1,234.50"
        assert number(180.0) == "180"
        assert number(2.5) == "2.5"


class TestLegsForOrder:
    def test_filled_order_uses_fill(self):
        order = make_order(limit=1.50)
        order.mark_filled(1.20)
        (leg,) = legs_for_order(order)
        assert leg.premium == 1.20
        assert leg.side is LegSide.LONG
        assert leg.contracts == 2

    def test_working_order_uses_limit(self):
        (leg,) = legs_for_order(make_order(side=OrderSide.SELL, limit=1.5))
        assert leg.premium == 1.5
        assert leg.side is LegSide.SHORT

    def test_falls_back_to_market_mid(self):
        (leg,) = legs_for_order(make_order(limit=None), market_mid=1.1)
        assert leg.premium == 1.1

    def test_none_without_any_premium(self):
        assert legs_for_order(make_order(limit=None)) is None


class TestAnalyze:
    def test_report_uses_config_sampling(self):
        config = MonitorConfig(curve_steps=10, scenario_up_pct=0.2)
        report = analyze(bull_call_spread(100, 5, 110, 2), 105, config)

        assert report.total_debit == pytest.approx(300.0)
        assert report.metrics.max_gain == pytest.approx(700.0)
        assert len(report.curve) == 11
        up = next(r for r in report.scenarios if r.move == "up")
        assert up.underlying == pytest.approx(126.0)
