"""
Tests for the DCF, Buffett IRR and goal contribution calculators.
"""

import pytest

from models.valuation import (
    BuffettRequest,
    DcfProfile,
    DcfRequest,
    DividendScenario,
    GoalRequest,
    Recommendation,
    ValuationRange,
)
from services.valuation import (
    assess_business_quality,
    buffett_scenarios,
    calculate_dcf_scenarios,
    calculate_goal_contribution,
    dividend_growth_for_scenario,
    get_recommendation,
    perform_buffett_calculation,
    run_buffett,
    run_dcf,
    validate_dcf_assumptions,
)


def reference_dcf(fcf, g, r, gt, years):
    pv = sum(fcf * (1 + g) ** y / (1 + r) ** y for y in range(1, years + 1))
    terminal = fcf * (1 + g) ** years * (1 + gt) / (r - gt)
    return pv + terminal / (1 + r) ** years


# ---- DCF ----

def test_dcf_base_case_matches_reference():
    scenarios = calculate_dcf_scenarios(5.0, 5.0, 8.0, 2.5, 10)
    assert scenarios.base_case.intrinsic_value == pytest.approx(reference_dcf(5.0, 0.05, 0.08, 0.025, 10))
    assert len(scenarios.base_case.projections) == 10
    assert scenarios.base_case.projections[0].projected_fcf == pytest.approx(5.25)


def test_dcf_scenario_adjustments():
    scenarios = calculate_dcf_scenarios(5.0, 5.0, 8.0, 2.5, 10)
    assert scenarios.conservative_case.growth_rate == pytest.approx(0.03)
    assert scenarios.conservative_case.discount_rate == pytest.approx(0.09)
    assert scenarios.optimistic_case.growth_rate == pytest.approx(0.07)
    assert scenarios.optimistic_case.discount_rate == pytest.approx(0.075)
    r = scenarios.valuation_range
    assert r.min < r.base < r.max


def test_dcf_scenario_floors():
    scenarios = calculate_dcf_scenarios(2.0, 2.0, 5.2, 2.0, 5)
    assert scenarios.conservative_case.growth_rate == pytest.approx(0.01)
    assert scenarios.optimistic_case.discount_rate == pytest.approx(0.05)


def test_dcf_rejects_non_positive_fcf():
    with pytest.raises(ValueError, match="FCF per share must be a positive number"):
        calculate_dcf_scenarios(0.0, 5.0, 8.0, 2.5)
    with pytest.raises(ValueError):
        calculate_dcf_scenarios(-1.0, 5.0, 8.0, 2.5)


def test_dcf_rejects_discount_not_above_terminal_growth():
    with pytest.raises(ValueError, match="Discount rate must be greater"):
        calculate_dcf_scenarios(5.0, 5.0, 3.0, 3.0)


@pytest.mark.parametrize("base,low,expected", [
    (150.0, 130.0, Recommendation.STRONG_BUY),
    (130.0, 115.0, Recommendation.BUY),
    (95.0, 80.0, Recommendation.HOLD),
    (80.0, 70.0, Recommendation.SELL),
    (70.0, 60.0, Recommendation.STRONG_SELL),
])
def test_recommendation_bands(base, low, expected):
    rec, margin, _ = get_recommendation(100.0, ValuationRange(min=low, base=base, max=base + 20))
    assert rec == expected
    assert margin == pytest.approx((base - 100.0) / 100.0)


def test_assumption_warnings():
    warnings = validate_dcf_assumptions(DcfProfile.MATURE_GIANT, 10.0, 8.0, 4.0)
    assert any("highly optimistic" in w for w in warnings)
    assert any("above 3.5%" in w for w in warnings)

    assert validate_dcf_assumptions(DcfProfile.CUSTOM, 15.0, 8.0, 2.5) == []
    assert any("very conservative" in w for w in validate_dcf_assumptions(DcfProfile.HIGH_GROWTH, 3.0, 8.0, 2.5))
    assert any("infinity" in w for w in validate_dcf_assumptions(DcfProfile.CUSTOM, 5.0, 3.0, 3.0))


def test_run_dcf_uses_profile_growth_when_omitted():
    result = run_dcf(DcfRequest(symbol="KO", current_price=50.0, fcf_per_share=2.0, company_profile=DcfProfile.MATURE_GIANT))
    assert result.scenarios.base_case.growth_rate == pytest.approx(0.03)
    assert result.company_name == "KO Corporation"
    assert result.warnings == []


# ---- Buffett IRR ----

def test_irr_without_growth_or_dividends_is_zero():
    result = perform_buffett_calculation(100.0, 10.0, 0.0, 0.0, 0.0, 10.0)
    assert result.irr == pytest.approx(0.0, abs=1e-6)
    assert result.projected_future_price == pytest.approx(100.0)


def test_irr_matches_closed_form_for_price_doubling():
    result = perform_buffett_calculation(100.0, 10.0, 0.0, 0.0, 0.0, 20.0)
    assert result.irr == pytest.approx(2 ** 0.1 - 1, abs=1e-6)


def test_irr_with_dividends_sums_payouts():
    result = perform_buffett_calculation(100.0, 5.0, 2.0, 7.0, 5.0, 15.0)
    expected_dividends = sum(2.0 * 1.05 ** y for y in range(1, 11))
    assert result.total_dividends == pytest.approx(expected_dividends)
    assert result.projected_future_price == pytest.approx(5.0 * 1.07 ** 10 * 15.0)
    assert result.total_future_value == pytest.approx(result.projected_future_price + expected_dividends)
    assert result.irr > 0


def test_irr_for_non_positive_price():
    result = perform_buffett_calculation(0.0, 5.0, 1.0, 5.0, 5.0, 15.0)
    assert result.irr == -1
    assert result.total_future_value == 0


def test_buffett_scenarios_skip_missing_pe():
    req = BuffettRequest(current_price=100.0, eps=5.0, eps_growth_rate=7.0, max_pe=None)
    scenarios = buffett_scenarios(req)
    assert [s.pe for s in scenarios] == [15.0, 20.0]
    assert scenarios[0].label.startswith("Conservative")


def test_business_quality_bands():
    quality = assess_business_quality(100.0, 5.0, 2.0, 20.0, 4.5)
    assert quality.roe.rating == "Exceptional"
    assert quality.roe.value == "25.0%"
    assert quality.earnings_yield.rating == "Cheap"
    assert quality.payout_ratio.rating == "Safe"
    assert quality.payout_ratio.value == "40%"


def test_business_quality_edge_cases():
    no_dividend = assess_business_quality(100.0, 5.0, 0.0, 50.0, 5.3)
    assert no_dividend.payout_ratio.rating == "N/A"
    assert no_dividend.roe.rating == "Acceptable"
    assert no_dividend.earnings_yield.rating == "Fair"

    assert assess_business_quality(100.0, 3.0, 4.0, 1.0, 6.0).roe.rating == "Verify Data"
    assert assess_business_quality(100.0, 3.0, 4.0, 1.0, 6.0).payout_ratio.rating == "Danger"
    assert assess_business_quality(100.0, 3.0, 1.0, 20.0, 6.0).earnings_yield.rating == "Expensive"
    assert assess_business_quality(100.0, 3.0, 1.0, None, 6.0) is None


def test_run_buffett_uses_profile_growth():
    result = run_buffett(BuffettRequest(symbol="V", current_price=250.0, eps=10.0, book_value_per_share=20.0))
    assert len(result.scenarios) == 3
    expected = perform_buffett_calculation(250.0, 10.0, 0.0, 7.0, 5.0, 15.0)
    assert result.scenarios[0].result.irr == pytest.approx(expected.irr)
    assert result.business_quality is not None


@pytest.mark.parametrize("scenario,eps_growth,expected", [
    (DividendScenario.MATURE_HIGH_PAYOUT, 9.0, 2.0),
    (DividendScenario.STANDARD_PAYOUT, 7.0, 5.5),
    (DividendScenario.STANDARD_PAYOUT, 1.0, 0.0),
    (DividendScenario.LOW_PAYOUT_HIGH_GROWTH, 12.0, 12.0),
])
def test_dividend_growth_for_scenario(scenario, eps_growth, expected):
    assert dividend_growth_for_scenario(scenario, eps_growth) == pytest.approx(expected)


# ---- Goal planner ----

def test_goal_contribution_formula():
    plan = calculate_goal_contribution(
        GoalRequest(financial_goal=10_000, initial_capital=1_000, monthly_return=1.0, timeframe_years=2)
    )
    compound = 1.01 ** 24
    expected = (10_000 - 1_000 * compound) / ((compound - 1) / 0.01)

    assert plan.periods == 24
    assert plan.monthly_contribution == pytest.approx(expected)
    assert plan.total_contributions == pytest.approx(expected * 24)
    assert plan.total_growth == pytest.approx(10_000 - 1_000 - expected * 24)
    assert not plan.goal_reachable_without_contributions


def test_goal_reachable_without_contributions():
    plan = calculate_goal_contribution(
        GoalRequest(financial_goal=1_000, initial_capital=5_000, monthly_return=1.0, timeframe_years=1)
    )
    assert plan.goal_reachable_without_contributions
    assert plan.monthly_contribution == 0
    assert plan.message


def test_goal_request_rejects_non_positive_inputs():
    with pytest.raises(ValueError):
        GoalRequest(financial_goal=0, initial_capital=0, monthly_return=1.0, timeframe_years=1)
    with pytest.raises(ValueError):
        GoalRequest(financial_goal=100, initial_capital=-1, monthly_return=1.0, timeframe_years=1)
