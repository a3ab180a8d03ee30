from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScreeningCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_market_cap: float = 70_000_000.0
    min_yield: float = 0.03  # fraction
    max_pe: float = 25.0
    max_payout_ratio: float = 0.85
    max_debt_to_equity: float = 1.0
    min_roe: float = 0.08

    def fingerprint(self) -> str:
        return self.model_dump_json()


class EssentialMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    price: float
    market_cap: float
    pe_ratio: float
    dividend_yield: float  # fraction, e.g. 0.04
    payout_ratio: Optional[float] = None
    debt_to_equity: Optional[float] = None
    roe: Optional[float] = None
    free_cash_flow: float
    sector: str = "Unknown"
    dividend_history_years: int = 5
    data_age: str = "Fresh"  # "Fresh" | "Estimated" | "<n>h old"
    from_cache: bool = False


class ScreenResult(BaseModel):
    symbol: str
    passed: bool
    reasons: list[str] = []
    data: Optional[EssentialMetrics] = None
    warnings: list[str] = []


class Holding(BaseModel):
    """A selected stock plus the warnings gathered while selecting it."""

    metrics: EssentialMetrics
    warnings: list[str] = []


class PortfolioLine(BaseModel):
    symbol: str
    sector: str
    shares_needed: float
    expected_annual_dividend: float
    portfolio_percentage: float
    investment_needed: float
    dividend_yield: float  # percentage, e.g. 4.0
    pe_ratio: float
    payout_ratio: Optional[float] = None
    debt_to_equity: Optional[float] = None
    data_age: str = "Fresh"
    warnings: list[str] = []


class DataFreshness(BaseModel):
    cached: int = 0
    fresh: int = 0
    estimated: int = 0


class DividendPlan(BaseModel):
    portfolio: list[PortfolioLine]
    total_investment: float
    annual_income: float
    portfolio_yield: float  # percentage
    sector_allocation: dict[str, float]  # sector -> percentage of total investment
    data_freshness: DataFreshness
    warnings: list[str] = []
    criteria: Optional[ScreeningCriteria] = None
    generated_at: Optional[datetime] = None


class PlanProgress(BaseModel):
    step: int
    total: int
    message: str
    percentage: float


class DividendPlanRequest(BaseModel):
    target_monthly_income: Optional[float] = Field(default=None, gt=0)
    target_annual_income: Optional[float] = Field(default=None, gt=0)
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM

    def annual_income(self) -> float:
        if self.target_annual_income is not None:
            return self.target_annual_income
        if self.target_monthly_income is not None:
            return self.target_monthly_income * 12
        raise ValueError("Either target_annual_income or target_monthly_income is required.")
