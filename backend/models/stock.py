from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class Quote(BaseModel):
    symbol: str
    price: float
    daily_change: float = 0.0
    daily_change_percent: float = 0.0
    previous_close: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    timestamp: Optional[datetime] = None


class Profile(BaseModel):
    company_name: Optional[str] = None
    currency: Optional[str] = None
    exchange: Optional[str] = None
    sector: Optional[str] = None
    market_capitalization: Optional[float] = None  # millions, as reported by the provider
    logo_url: Optional[str] = None
    website_url: Optional[str] = None


class Fundamentals(BaseModel):
    eps: Optional[float] = None
    pe_ratio: Optional[float] = None
    book_value: Optional[float] = None
    fcf_per_share: Optional[float] = None
    free_cash_flow: Optional[float] = None


class DataAvailability(BaseModel):
    eps: bool = False
    fcf: bool = False
    dividends: bool = False
    pe_ratio: bool = False
    book_value: bool = False


class CombinedStock(BaseModel):
    symbol: str
    company_name: str
    current_price: float
    daily_change: float = 0.0
    daily_change_percent: float = 0.0
    previous_close: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    currency: str = "USD"
    exchange: str = "NASDAQ"
    sector: str = "Technology"
    market_cap: Optional[float] = None  # absolute dollars
    logo: Optional[str] = None
    website: Optional[str] = None
    fundamentals: Fundamentals = Fundamentals()
    dividend: Optional[float] = None
    data_availability: DataAvailability = DataAvailability()
    data_source: str = "Finnhub"
    last_updated: datetime


class IndexQuote(BaseModel):
    price: float
    change: float
    change_percent: float


class StockSearchResult(BaseModel):
    symbol: str
    company_name: str
    sector: str


class FmpQuote(BaseModel):
    symbol: str
    company_name: str
    current_price: Optional[float] = None
    eps: Optional[float] = None
    book_value: Optional[float] = None
    dividend_annual: Optional[float] = None
    source: str = "FMP"


class CashFlowSnapshot(BaseModel):
    symbol: str
    free_cash_flow: Optional[float] = None
    shares_outstanding: Optional[float] = None
    fcf_per_share: Optional[float] = None


class HistoricalAnalysis(BaseModel):
    symbol: str
    historical_eps_growth: float = 6.0
    conservative_pe_ratio: float = 15.0
    max_pe_ratio: float = 25.0
    growth_calculated: bool = False
    pe_calculated: bool = False
    years_of_eps_data: int = 0
    source: str = "Conservative Defaults (No Historical API Calls)"
    note: str = "Please manually input P/E ratios based on your research"


class ComprehensiveMetrics(BaseModel):
    symbol: str
    price: float = 100.0
    market_cap: float = 1_000_000_000.0
    pe_ratio: float = 20.0
    dividend_yield: float = 0.03  # fraction, e.g. 0.03
    payout_ratio: Optional[float] = None
    debt_to_equity: Optional[float] = None
    roe: Optional[float] = None
    free_cash_flow: float = 1_000_000.0
    sector: str = "Unknown"
    dividend_history_years: int = 5
    fallback_fields: list[str] = []
