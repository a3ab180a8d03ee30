from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DcfProfile(str, Enum):
    MATURE_GIANT = "mature_giant"
    GROWTH_COMPANY = "growth_company"
    HIGH_GROWTH = "high_growth"
    CYCLICAL = "cyclical"
    CUSTOM = "custom"


class BuffettProfile(str, Enum):
    MATURE_GIANT = "mature_giant"
    QUALITY_COMPOUNDER = "quality_compounder"
    GROWTH_COMPANY = "growth_company"
    HIGH_GROWTH = "high_growth"
    CYCLICAL = "cyclical"


class DividendScenario(str, Enum):
    MATURE_HIGH_PAYOUT = "mature_high_payout"
    STANDARD_PAYOUT = "standard_payout"
    LOW_PAYOUT_HIGH_GROWTH = "low_payout_high_growth"


class Recommendation(str, Enum):
    STRONG_BUY = "Strong Buy"
    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"
    STRONG_SELL = "Strong Sell"


# ---- DCF ----

class DcfRequest(BaseModel):
    symbol: str = ""
    company_name: Optional[str] = None
    current_price: float = Field(gt=0)
    fcf_per_share: float
    growth_rate: Optional[float] = None  # percent; profile default when omitted
    discount_rate: float = 8.0          # percent
    terminal_growth_rate: float = 2.5   # percent
    projection_years: int = Field(default=10, ge=1, le=50)
    company_profile: DcfProfile = DcfProfile.GROWTH_COMPANY


class YearProjection(BaseModel):
    year: int
    projected_fcf: float
    present_value: float


class DcfScenario(BaseModel):
    intrinsic_value: float
    present_value_of_cash_flows: float
    present_value_of_terminal: float
    terminal_value: float
    base_value: float
    growth_rate: float      # fraction
    discount_rate: float    # fraction
    projections: list[YearProjection]


class ValuationRange(BaseModel):
    min: float
    base: float
    max: float


class DcfScenarios(BaseModel):
    base_case: DcfScenario
    conservative_case: DcfScenario
    optimistic_case: DcfScenario
    valuation_range: ValuationRange


class DcfResult(BaseModel):
    symbol: str
    company_name: str
    current_price: float
    intrinsic_value: float
    recommendation: Recommendation
    margin_of_safety: float
    conservative_margin: float
    scenarios: DcfScenarios
    company_profile: DcfProfile
    warnings: list[str] = []


# ---- Buffett ----

class BuffettRequest(BaseModel):
    symbol: str = ""
    company_name: Optional[str] = None
    current_price: float
    eps: float
    dividend_annual: float = 0.0
    book_value_per_share: Optional[float] = None
    company_profile: BuffettProfile = BuffettProfile.QUALITY_COMPOUNDER
    eps_growth_rate: Optional[float] = None  # percent; profile default when omitted
    dividend_growth_rate: float = 5.0   # percent
    conservative_pe: Optional[float] = 15.0
    max_pe: Optional[float] = 25.0
    avg_pe: Optional[float] = 20.0
    ten_year_yield: Optional[float] = 4.5  # percent


class IrrProjection(BaseModel):
    irr: float
    total_future_value: float
    projected_future_price: float
    total_dividends: float


class BuffettScenario(BaseModel):
    label: str
    pe: float
    result: IrrProjection


class QualityMetric(BaseModel):
    value: str
    rating: str
    assessment: str


class BusinessQuality(BaseModel):
    roe: QualityMetric
    earnings_yield: QualityMetric
    payout_ratio: QualityMetric


class BuffettResult(BaseModel):
    symbol: str
    company_name: str
    current_price: float
    scenarios: list[BuffettScenario]
    business_quality: Optional[BusinessQuality] = None


# ---- Goal planner ----

class GoalRequest(BaseModel):
    financial_goal: float = Field(gt=0)
    initial_capital: float = Field(ge=0)
    monthly_return: float = Field(gt=0)   # percent per month
    timeframe_years: float = Field(gt=0)


class GoalPlan(BaseModel):
    goal_reachable_without_contributions: bool = False
    monthly_contribution: float = 0.0
    total_contributions: float = 0.0
    total_growth: float = 0.0
    periods: int
    message: Optional[str] = None


# ---- Prefilled inputs ----

class DcfInputs(BaseModel):
    symbol: str
    company_name: str
    current_price: Optional[float] = None
    eps: Optional[float] = None
    total_fcf: Optional[float] = None           # millions
    shares_outstanding: Optional[float] = None  # millions
    fcf_per_share: Optional[float] = None
    growth_rate: float = 5.0
    data_source: str


class BuffettInputs(BaseModel):
    symbol: str
    company_name: str
    current_price: Optional[float] = None
    eps: Optional[float] = None
    book_value_per_share: Optional[float] = None
    dividend_annual: Optional[float] = None
    eps_growth_rate: float = 6.0
    dividend_scenario: DividendScenario = DividendScenario.STANDARD_PAYOUT
    dividend_growth_rate: float
    conservative_pe: float = 15.0
    max_pe: float = 25.0
    avg_pe: float = 20.0
    quote_source: str
    growth_source: str
    pe_source: str
