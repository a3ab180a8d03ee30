"""
Valuation calculators: discounted cash flow, Buffett-style 10-year IRR and
a goal-based monthly contribution planner.

All functions are pure. Rates arrive as percentages (5.0 for 5%) the way the
dashboard forms collect them and are converted to fractions internally.
Invalid inputs raise ValueError.
"""
import math
from typing import Optional

import numpy as np

from models.valuation import (
    BuffettProfile,
    BuffettRequest,
    BuffettResult,
    BuffettScenario,
    BusinessQuality,
    DcfProfile,
    DcfRequest,
    DcfResult,
    DcfScenario,
    DcfScenarios,
    DividendScenario,
    GoalPlan,
    GoalRequest,
    IrrProjection,
    QualityMetric,
    Recommendation,
    ValuationRange,
    YearProjection,
)

# DCF company profiles: (label, growth range in %, default growth in %)
DCF_PROFILES = {
    DcfProfile.MATURE_GIANT: ("Mature Giant (Low Growth)", (2.0, 4.0), 3.0),
    DcfProfile.GROWTH_COMPANY: ("Growth Company (Moderate Growth)", (4.0, 7.0), 5.5),
    DcfProfile.HIGH_GROWTH: ("High-Growth Company", (7.0, 12.0), 9.0),
    DcfProfile.CYCLICAL: ("Cyclical Company", (1.0, 6.0), 3.5),
    DcfProfile.CUSTOM: ("Custom", (0.0, 20.0), 5.0),
}

# Suggested EPS growth (%) by Buffett company profile
BUFFETT_PROFILE_GROWTH = {
    BuffettProfile.MATURE_GIANT: 3.0,
    BuffettProfile.QUALITY_COMPOUNDER: 7.0,
    BuffettProfile.GROWTH_COMPANY: 12.5,
    BuffettProfile.HIGH_GROWTH: 18.0,
    BuffettProfile.CYCLICAL: 4.0,
}

# Dividend growth rules: fixed default, or EPS growth plus an adjustment
DIVIDEND_SCENARIOS = {
    DividendScenario.MATURE_HIGH_PAYOUT: {"use_eps_growth": False, "default_growth": 2.0},
    DividendScenario.STANDARD_PAYOUT: {"use_eps_growth": True, "adjustment": -1.5},
    DividendScenario.LOW_PAYOUT_HIGH_GROWTH: {"use_eps_growth": True, "adjustment": 0.0},
}

MAX_TERMINAL_GROWTH = 3.5
IRR_YEARS = 10
IRR_LOW, IRR_HIGH = -0.99, 2.0
IRR_ITERATIONS = 100


# ---------------------------------------------------------------------------
# DCF
# ---------------------------------------------------------------------------

def project_dcf(fcf_per_share: float, growth: float, discount: float,
                terminal_growth: float, years: int) -> DcfScenario:
    """One DCF run. growth/discount/terminal_growth are fractions."""
    t = np.arange(1, years + 1)
    projected = fcf_per_share * np.power(1 + growth, t)
    present = projected / np.power(1 + discount, t)

    terminal_value = projected[-1] * (1 + terminal_growth) / (discount - terminal_growth)
    pv_terminal = terminal_value / (1 + discount) ** years
    pv_cash_flows = float(present.sum())

    return DcfScenario(
        intrinsic_value=pv_cash_flows + float(pv_terminal),
        present_value_of_cash_flows=pv_cash_flows,
        present_value_of_terminal=float(pv_terminal),
        terminal_value=float(terminal_value),
        base_value=fcf_per_share,
        growth_rate=growth,
        discount_rate=discount,
        projections=[
            YearProjection(year=int(y), projected_fcf=float(f), present_value=float(p))
            for y, f, p in zip(t, projected, present)
        ],
    )


def calculate_dcf_scenarios(fcf_per_share: float, growth_rate: float, discount_rate: float,
                            terminal_growth_rate: float, years: int = 10) -> DcfScenarios:
    """
    Base, conservative and optimistic DCF runs.
    Conservative: growth -2pp (floor 1%), discount +1pp.
    Optimistic: growth +2pp, discount -0.5pp (floor 5%).
    """
    values = (fcf_per_share, growth_rate, discount_rate, terminal_growth_rate)
    if any(v is None or math.isnan(v) for v in values):
        raise ValueError("FCF per share, growth, discount and terminal growth rates must be valid numbers.")
    if fcf_per_share <= 0:
        raise ValueError(
            "FCF per share must be a positive number. "
            "Consider using the Buffett analysis for negative FCF companies."
        )
    if years < 1:
        raise ValueError("Projection years must be at least 1.")

    g, r, gt = growth_rate / 100, discount_rate / 100, terminal_growth_rate / 100
    if r <= gt:
        raise ValueError("Discount rate must be greater than terminal growth rate.")

    base = project_dcf(fcf_per_share, g, r, gt, years)
    conservative = project_dcf(fcf_per_share, max(0.01, g - 0.02), r + 0.01, gt, years)
    optimistic = project_dcf(fcf_per_share, g + 0.02, max(0.05, r - 0.005), gt, years)

    return DcfScenarios(
        base_case=base,
        conservative_case=conservative,
        optimistic_case=optimistic,
        valuation_range=ValuationRange(
            min=conservative.intrinsic_value,
            base=base.intrinsic_value,
            max=optimistic.intrinsic_value,
        ),
    )


def get_recommendation(current_price: float, valuation_range: ValuationRange) -> tuple[Recommendation, float, float]:
    """Returns (recommendation, base margin of safety, conservative margin)."""
    if current_price <= 0:
        raise ValueError("Current price must be a positive number.")
    margin = (valuation_range.base - current_price) / current_price
    conservative_margin = (valuation_range.min - current_price) / current_price

    if conservative_margin > 0.25:
        rec = Recommendation.STRONG_BUY
    elif conservative_margin > 0.10:
        rec = Recommendation.BUY
    elif margin > -0.10:
        rec = Recommendation.HOLD
    elif margin > -0.25:
        rec = Recommendation.SELL
    else:
        rec = Recommendation.STRONG_SELL
    return rec, margin, conservative_margin


def validate_dcf_assumptions(profile: DcfProfile, growth_rate: float,
                             discount_rate: float, terminal_growth_rate: float) -> list[str]:
    """Soft warnings about the chosen assumptions; never raises."""
    warnings = []
    label, (low, high), _ = DCF_PROFILES[profile]
    if profile != DcfProfile.CUSTOM and (growth_rate < low or growth_rate > high):
        tone = "highly optimistic" if growth_rate > high else "very conservative"
        warnings.append(
            f"A {growth_rate:g}% growth rate is {tone} for a {label.lower()}. "
            f"Consider a rate between {low:g}-{high:g}%."
        )

    if terminal_growth_rate >= discount_rate:
        warnings.append(
            "Terminal growth rate must be less than the discount rate, "
            "otherwise the terminal value goes to infinity."
        )
    elif terminal_growth_rate > MAX_TERMINAL_GROWTH:
        warnings.append(
            f"Terminal growth rate above {MAX_TERMINAL_GROWTH:g}% is optimistic "
            "for long-term GDP growth expectations."
        )
    return warnings


def run_dcf(req: DcfRequest) -> DcfResult:
    growth = req.growth_rate if req.growth_rate is not None else DCF_PROFILES[req.company_profile][2]
    scenarios = calculate_dcf_scenarios(
        req.fcf_per_share, growth, req.discount_rate,
        req.terminal_growth_rate, req.projection_years,
    )
    rec, margin, conservative_margin = get_recommendation(req.current_price, scenarios.valuation_range)
    return DcfResult(
        symbol=req.symbol,
        company_name=req.company_name or f"{req.symbol} Corporation",
        current_price=req.current_price,
        intrinsic_value=scenarios.base_case.intrinsic_value,
        recommendation=rec,
        margin_of_safety=margin,
        conservative_margin=conservative_margin,
        scenarios=scenarios,
        company_profile=req.company_profile,
        warnings=validate_dcf_assumptions(
            req.company_profile, growth, req.discount_rate, req.terminal_growth_rate
        ),
    )


# ---------------------------------------------------------------------------
# Buffett IRR
# ---------------------------------------------------------------------------

def perform_buffett_calculation(current_price: float, eps: float, dividend: float,
                                eps_growth: float, dividend_growth: float,
                                future_pe: float) -> IrrProjection:
    """
    Buy at current_price, collect growing dividends for 10 years, sell at
    future_pe times year-10 EPS. IRR found by bisection on [-0.99, 2.0].
    """
    if current_price <= 0:
        return IrrProjection(irr=-1.0, total_future_value=0.0, projected_future_price=0.0, total_dividends=0.0)

    years = np.arange(1, IRR_YEARS + 1)
    projected_eps = eps * (1 + eps_growth / 100) ** IRR_YEARS
    future_price = projected_eps * future_pe

    dividends = dividend * np.power(1 + dividend_growth / 100, years)
    cash_flows = dividends.copy()
    cash_flows[-1] += future_price

    low, high = IRR_LOW, IRR_HIGH
    for _ in range(IRR_ITERATIONS):
        mid = (low + high) / 2
        if mid == low or mid == high:
            break
        npv = float(np.sum(cash_flows / np.power(1 + mid, years)))
        if npv > current_price:
            low = mid
        else:
            high = mid

    total_dividends = float(dividends.sum())
    return IrrProjection(
        irr=(low + high) / 2,
        total_future_value=float(future_price) + total_dividends,
        projected_future_price=float(future_price),
        total_dividends=total_dividends,
    )


def buffett_scenarios(req: BuffettRequest) -> list[BuffettScenario]:
    """IRR at the conservative, max and average P/E; missing P/Es are skipped."""
    eps_growth = req.eps_growth_rate
    if eps_growth is None:
        eps_growth = BUFFETT_PROFILE_GROWTH[req.company_profile]
    pes = [
        ("Conservative (10-Yr Min P/E)", req.conservative_pe),
        ("Max P/E (10-Yr High)", req.max_pe),
        ("Average P/E (High+Low)/2", req.avg_pe),
    ]
    return [
        BuffettScenario(
            label=label,
            pe=pe,
            result=perform_buffett_calculation(
                req.current_price, req.eps, req.dividend_annual,
                eps_growth, req.dividend_growth_rate, pe,
            ),
        )
        for label, pe in pes
        if pe is not None
    ]


def _roe_rating(roe: float) -> tuple[str, str]:
    if roe > 100:
        return "Verify Data", "ROE above 100% often indicates an incorrect book value or negative equity."
    if roe >= 20:
        return "Exceptional", "Above 20% shows a wide moat and excellent management."
    if roe >= 15:
        return "Good", "Solid company with competitive advantages."
    if roe >= 10:
        return "Acceptable", "Average company. Not bad, but not exceptional."
    return "Poor", "Not generating good returns on capital."


def _payout_rating(dividend: float, eps: float) -> tuple[str, str, str]:
    if dividend == 0:
        return "0%", "N/A", "No dividend. Company reinvests all earnings."
    if eps <= 0:
        return "N/A", "Danger", "Paying a dividend without positive earnings. Not sustainable."
    payout = dividend / eps * 100
    value = f"{payout:.0f}%"
    if payout > 100:
        return value, "Danger", "Paying more than earned. Not sustainable."
    if payout > 75:
        return value, "At Risk", "May be unsustainable long-term. Common in REITs/MLPs."
    if payout > 60:
        return value, "Caution", "Consuming most profits. Little room for error or growth."
    if payout > 35:
        return value, "Safe", "Dividend likely secure."
    return value, "Very Safe", "Ample room to maintain and grow the dividend."


def assess_business_quality(current_price: float, eps: float, dividend: float,
                            book_value: Optional[float],
                            ten_year_yield: Optional[float] = None) -> Optional[BusinessQuality]:
    """ROE, earnings yield vs the 10-year Treasury, and payout ratio bands."""
    if book_value is None or current_price <= 0:
        return None

    if book_value <= 0:
        roe_value, roe_rating = "N/A", "Verify Data"
        roe_text = "Non-positive book value; check the input or the company's equity."
    else:
        roe = eps / book_value * 100
        roe_value = f"{roe:.1f}%"
        roe_rating, roe_text = _roe_rating(roe)

    earnings_yield = eps / current_price * 100
    if ten_year_yield is None:
        ey_rating, ey_text = "Unrated", "Provide the 10-year Treasury yield to compare."
    elif earnings_yield > ten_year_yield:
        ey_rating = "Cheap"
        ey_text = f"Earnings yield ({earnings_yield:.1f}%) above the 10-yr Treasury ({ten_year_yield:.1f}%)."
    elif abs(earnings_yield - ten_year_yield) <= 0.5:
        ey_rating = "Fair"
        ey_text = f"Earnings yield ({earnings_yield:.1f}%) close to the 10-yr Treasury ({ten_year_yield:.1f}%)."
    else:
        ey_rating = "Expensive"
        ey_text = (
            f"Earnings yield ({earnings_yield:.1f}%) below the 10-yr Treasury ({ten_year_yield:.1f}%). "
            "Not adequately compensated for stock risk."
        )

    payout_value, payout_rating, payout_text = _payout_rating(dividend, eps)

    return BusinessQuality(
        roe=QualityMetric(value=roe_value, rating=roe_rating, assessment=roe_text),
        earnings_yield=QualityMetric(value=f"{earnings_yield:.1f}%", rating=ey_rating, assessment=ey_text),
        payout_ratio=QualityMetric(value=payout_value, rating=payout_rating, assessment=payout_text),
    )


def run_buffett(req: BuffettRequest) -> BuffettResult:
    return BuffettResult(
        symbol=req.symbol,
        company_name=req.company_name or f"{req.symbol} Inc.",
        current_price=req.current_price,
        scenarios=buffett_scenarios(req),
        business_quality=assess_business_quality(
            req.current_price, req.eps, req.dividend_annual,
            req.book_value_per_share, req.ten_year_yield,
        ),
    )


def dividend_growth_for_scenario(scenario: DividendScenario, eps_growth: Optional[float]) -> float:
    rule = DIVIDEND_SCENARIOS[scenario]
    if rule["use_eps_growth"] and eps_growth is not None and not math.isnan(eps_growth):
        return max(0.0, eps_growth + rule["adjustment"])
    return rule.get("default_growth", 2.0)


# ---------------------------------------------------------------------------
# Goal planner
# ---------------------------------------------------------------------------

def calculate_goal_contribution(req: GoalRequest) -> GoalPlan:
    """
    Monthly contribution reaching financial_goal from initial_capital at a
    fixed monthly return: (FV - PV(1+r)^n) / (((1+r)^n - 1) / r).
    """
    r = req.monthly_return / 100
    n = req.timeframe_years * 12
    periods = int(round(n))

    compound = (1 + r) ** n
    denominator = (compound - 1) / r
    if denominator == 0:
        raise ValueError("Cannot calculate with the given inputs; adjust the return rate or timeframe.")

    contribution = (req.financial_goal - req.initial_capital * compound) / denominator
    if contribution <= 0:
        return GoalPlan(
            goal_reachable_without_contributions=True,
            periods=periods,
            message="Goal is reachable with the initial capital and growth rate alone; no monthly contribution needed.",
        )

    total_contributions = contribution * n
    return GoalPlan(
        monthly_contribution=contribution,
        total_contributions=total_contributions,
        total_growth=req.financial_goal - (req.initial_capital + total_contributions),
        periods=periods,
    )
