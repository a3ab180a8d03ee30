import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Optional

from config import (
    DEFAULT_DIVIDEND_YIELD,
    MAX_SCREENING_CANDIDATES,
    PORTFOLIO_SIZE,
    RELIABLE_DIVIDEND_PAYERS,
)
from core.cache import CacheCategory, TimedCache
from core.errors import PlanGenerationError
from core.rate_limiter import RateLimiter
from models.dividend import (
    DataFreshness,
    DividendPlan,
    EssentialMetrics,
    Holding,
    PlanProgress,
    PortfolioLine,
    RiskTolerance,
    ScreenResult,
    ScreeningCriteria,
)
from services.finnhub_client import FinnhubClient
from services.market_data import is_valid_price, safe_float
from services.universe import get_fallback_universe, sector_for

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PlanProgress], None]

RELAXED_WARNING = "Relaxed criteria applied"
FALLBACK_WARNING = "Added as reliable fallback stock"

# Finnhub's free tier has no cash-flow data; screening assumes a positive FCF
ASSUMED_FREE_CASH_FLOW = 1_000_000.0

RISK_OVERRIDES: dict[RiskTolerance, dict] = {
    RiskTolerance.LOW: {"max_payout_ratio": 0.65, "max_debt_to_equity": 0.8, "min_yield": 0.02},
    RiskTolerance.MEDIUM: {},
    RiskTolerance.HIGH: {"max_payout_ratio": 1.0, "max_debt_to_equity": 2.0, "min_yield": 0.04, "max_pe": 30.0},
}


def get_risk_based_criteria(risk_tolerance: RiskTolerance) -> ScreeningCriteria:
    return ScreeningCriteria(**RISK_OVERRIDES.get(RiskTolerance(risk_tolerance), {}))


def estimated_metrics(symbol: str) -> EssentialMetrics:
    return EssentialMetrics(
        symbol=symbol,
        price=100.0,
        market_cap=1_000_000_000.0,
        pe_ratio=20.0,
        dividend_yield=DEFAULT_DIVIDEND_YIELD,
        free_cash_flow=ASSUMED_FREE_CASH_FLOW,
        sector=sector_for(symbol),
        dividend_history_years=5,
        data_age="Estimated",
        from_cache=False,
    )


def evaluate_metrics(metrics: EssentialMetrics, criteria: ScreeningCriteria) -> ScreenResult:
    """
    Check one stock against the criteria. Every failed check adds a reason;
    the stock passes only with no reasons. Missing optional ratios are warnings.
    """
    reasons = []
    warnings = []

    if metrics.market_cap < criteria.min_market_cap:
        reasons.append("Market cap too low")
    if metrics.dividend_yield < criteria.min_yield:
        reasons.append("Yield too low")
    # P/E of exactly 0 is "not meaningful", not cheap
    if metrics.pe_ratio != 0 and metrics.pe_ratio > criteria.max_pe:
        reasons.append("P/E too high")
    if metrics.payout_ratio is not None and metrics.payout_ratio > criteria.max_payout_ratio:
        reasons.append("Payout ratio too high")
    if metrics.debt_to_equity is not None and metrics.debt_to_equity > criteria.max_debt_to_equity:
        reasons.append("Debt/Equity too high")
    if metrics.roe is not None and metrics.roe < criteria.min_roe:
        reasons.append("ROE too low")
    if metrics.free_cash_flow <= 0:
        reasons.append("Negative free cash flow")

    if metrics.payout_ratio is None:
        warnings.append("Payout ratio unavailable")
    if metrics.debt_to_equity is None:
        warnings.append("Debt/Equity unavailable")
    if metrics.roe is None:
        warnings.append("ROE unavailable")
    if metrics.from_cache:
        warnings.append(f"Data from cache ({metrics.data_age})")

    return ScreenResult(
        symbol=metrics.symbol,
        passed=not reasons,
        reasons=reasons,
        data=metrics,
        warnings=warnings,
    )


def _by_yield(holding: Holding) -> float:
    return holding.metrics.dividend_yield or 0.0


def select_holdings(results: list[ScreenResult], size: int = PORTFOLIO_SIZE) -> list[Holding]:
    """
    Passed stocks by yield (highest first), topped up from the rejected pool
    (also by yield) when fewer than `size` passed. Truncated to `size`.
    """
    selected = sorted(
        (Holding(metrics=r.data, warnings=list(r.warnings)) for r in results if r.passed and r.data),
        key=_by_yield,
        reverse=True,
    )
    if len(selected) < size:
        relaxed = sorted(
            (
                Holding(metrics=r.data, warnings=[*r.warnings, RELAXED_WARNING])
                for r in results
                if r.data is not None and not r.passed
            ),
            key=_by_yield,
            reverse=True,
        )
        selected.extend(relaxed[: size - len(selected)])
    return selected[:size]


def build_dividend_plan(
    holdings: list[Holding],
    target_annual_income: float,
    criteria: Optional[ScreeningCriteria] = None,
    size: int = PORTFOLIO_SIZE,
) -> DividendPlan:
    """Equal-weight income plan: each holding covers the same share of the target dividend."""
    generated_at = datetime.now(timezone.utc)
    if not holdings:
        return DividendPlan(
            portfolio=[],
            total_investment=0.0,
            annual_income=0.0,
            portfolio_yield=0.0,
            sector_allocation={},
            data_freshness=DataFreshness(),
            warnings=["No stocks passed screening. Try adjusting risk tolerance."],
            criteria=criteria,
            generated_at=generated_at,
        )

    weight = 1.0 / len(holdings)
    freshness = DataFreshness()
    lines = []
    total_investment = 0.0

    for h in holdings:
        m = h.metrics
        expected_dividend = target_annual_income * weight
        dividend_per_share = m.price * m.dividend_yield
        shares = expected_dividend / dividend_per_share if dividend_per_share > 0 else 0.0
        investment = shares * m.price
        total_investment += investment

        if m.from_cache:
            freshness.cached += 1
        elif m.data_age == "Estimated":
            freshness.estimated += 1
        else:
            freshness.fresh += 1

        lines.append(
            PortfolioLine(
                symbol=m.symbol,
                sector=sector_for(m.symbol, m.sector),
                shares_needed=shares,
                expected_annual_dividend=expected_dividend,
                portfolio_percentage=weight * 100,
                investment_needed=investment,
                dividend_yield=m.dividend_yield * 100,
                pe_ratio=m.pe_ratio,
                payout_ratio=m.payout_ratio,
                debt_to_equity=m.debt_to_equity,
                data_age=m.data_age,
                warnings=list(h.warnings),
            )
        )

    sector_totals: dict[str, float] = defaultdict(float)
    for line in lines:
        sector_totals[line.sector] += line.investment_needed
    sector_allocation = {
        sector: (amount / total_investment * 100 if total_investment > 0 else 0.0)
        for sector, amount in sector_totals.items()
    }

    warnings = []
    if len(lines) < size:
        warnings.append(f"Limited to {len(lines)} stocks due to screening criteria")

    return DividendPlan(
        portfolio=lines,
        total_investment=total_investment,
        annual_income=target_annual_income,
        portfolio_yield=target_annual_income / total_investment * 100 if total_investment > 0 else 0.0,
        sector_allocation=sector_allocation,
        data_freshness=freshness,
        warnings=warnings,
        criteria=criteria,
        generated_at=generated_at,
    )


class ProgressReporter:
    """Per-run progress state; callback failures are logged, never raised."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.total = 0
        self.step = 0

    def update(self, message: str, step: Optional[int] = None) -> None:
        if step is not None:
            self.step = step
        if self.callback is None:
            return
        percentage = self.step / self.total * 100 if self.total > 0 else 0.0
        try:
            self.callback(PlanProgress(step=self.step, total=self.total, message=message, percentage=percentage))
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")


class DividendScreeningService:
    def __init__(
        self,
        finnhub: FinnhubClient,
        limiter: Optional[RateLimiter] = None,
        cache: Optional[TimedCache] = None,
        portfolio_size: int = PORTFOLIO_SIZE,
        max_candidates: int = MAX_SCREENING_CANDIDATES,
        reliable_payers: Optional[list[str]] = None,
    ):
        self.finnhub = finnhub
        self.limiter = limiter or RateLimiter(name="screening")
        self.cache = cache or TimedCache()
        self.portfolio_size = portfolio_size
        self.max_candidates = max_candidates
        self.reliable_payers = list(reliable_payers or RELIABLE_DIVIDEND_PAYERS)

    # ---- Step 1: pre-screen ----

    async def pre_screen_stocks(
        self,
        criteria: ScreeningCriteria,
        progress: Optional[ProgressReporter] = None,
    ) -> list[str]:
        progress = progress or ProgressReporter()
        key = f"prescreen_{criteria.fingerprint()}"
        cached = self.cache.get_valid(CacheCategory.PRESCREEN, key)
        if cached is not None:
            logger.debug("Using cached pre-screening results")
            return list(cached)

        progress.update("Pre-screening stocks with basic criteria...", 1)
        rows = await self.limiter.submit(
            lambda: self.finnhub.screen(criteria.min_market_cap, criteria.min_yield * 100)
        )
        symbols = _symbols_from_rows(rows or [])
        if not symbols:
            logger.warning("Pre-screening returned nothing, using fallback universe.")
            progress.update("Using fallback stock universe", 2)
            return get_fallback_universe()

        self.cache.put(CacheCategory.PRESCREEN, key, symbols)
        progress.update(f"Found {len(symbols)} candidates from pre-screening", 2)
        return list(symbols)

    # ---- Step 3: detailed screening ----

    async def _fetch_essential(self, symbol: str) -> Optional[EssentialMetrics]:
        metrics_payload, quote_payload = await asyncio.gather(
            self.limiter.submit(lambda: self.finnhub.get_metrics(symbol)),
            self.limiter.submit(lambda: self.finnhub.get_quote(symbol)),
        )
        price = quote_payload.get("c") if isinstance(quote_payload, dict) else None
        if not is_valid_price(price) or price <= 0:
            logger.warning(f"No valid quote data for {symbol}")
            return None

        m = metrics_payload.get("metric") if isinstance(metrics_payload, dict) else None
        m = m if isinstance(m, dict) else {}
        payout = safe_float(m.get("payoutRatioTTM"))
        roe = safe_float(m.get("returnOnEquityTTM"))
        return EssentialMetrics(
            symbol=symbol,
            price=float(price),
            market_cap=(safe_float(m.get("marketCapitalization")) or 1000) * 1_000_000,
            pe_ratio=safe_float(m.get("peBasicExclExtraTTM")) or 20.0,
            dividend_yield=(safe_float(m.get("dividendYieldIndicatedAnnual")) or DEFAULT_DIVIDEND_YIELD * 100) / 100,
            payout_ratio=payout / 100 if payout else None,
            debt_to_equity=safe_float(m.get("debtEquityRatioTTM")) or None,
            roe=roe / 100 if roe else None,
            free_cash_flow=ASSUMED_FREE_CASH_FLOW,
            sector=sector_for(symbol),
            dividend_history_years=5,
            data_age="Fresh",
            from_cache=False,
        )

    async def get_essential_metrics(self, symbol: str) -> EssentialMetrics:
        """
        Screening snapshot for one symbol, cached 24h.
        On failure: the stale cached record if any, else estimated defaults.
        """
        key = f"essential_{symbol}"
        entry = self.cache.get(CacheCategory.FUNDAMENTAL, key)
        if self.cache.is_valid(entry, self.cache.timeouts[CacheCategory.FUNDAMENTAL]):
            return entry.data.model_copy(update={"from_cache": True})

        try:
            fresh = await self._fetch_essential(symbol)
        except Exception as e:
            logger.warning(f"Failed to get essential metrics for {symbol}: {e}")
            fresh = None

        if fresh is not None:
            self.cache.put(CacheCategory.FUNDAMENTAL, key, fresh)
            return fresh

        if entry is not None:
            age_hours = int(self.cache.age_seconds(entry) // 3600)
            return entry.data.model_copy(update={"data_age": f"{age_hours}h old", "from_cache": True})

        return estimated_metrics(symbol)

    async def screen_stock(
        self,
        symbol: str,
        criteria: ScreeningCriteria,
        step: int,
        progress: Optional[ProgressReporter] = None,
    ) -> ScreenResult:
        if progress is not None:
            progress.update(f"Analyzing {symbol}...", step)
        try:
            metrics = await self.get_essential_metrics(symbol)
            return evaluate_metrics(metrics, criteria)
        except Exception as e:
            logger.error(f"Error screening {symbol}: {e}")
            return ScreenResult(
                symbol=symbol,
                passed=False,
                reasons=["Analysis failed"],
                warnings=[f"Failed to analyze: {e}"],
            )

    # ---- Step 4: guarantee a full portfolio ----

    async def _backfill_with_reliable_payers(self, holdings: list[Holding]) -> list[Holding]:
        present = {h.metrics.symbol for h in holdings}
        for symbol in self.reliable_payers:
            if len(holdings) >= self.portfolio_size:
                break
            if symbol in present:
                continue
            metrics = await self.get_essential_metrics(symbol)
            holdings.append(Holding(metrics=metrics, warnings=[FALLBACK_WARNING]))
            present.add(symbol)
        return holdings

    # ---- Orchestration ----

    async def generate_dividend_plan(
        self,
        target_annual_income: float,
        risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DividendPlan:
        progress = ProgressReporter(progress_callback)
        try:
            if target_annual_income <= 0:
                raise ValueError("target annual income must be positive")
            criteria = get_risk_based_criteria(risk_tolerance)

            progress.total = 20
            progress.update("Starting dividend plan generation...", 0)
            candidates = (await self.pre_screen_stocks(criteria, progress))[: self.max_candidates]

            progress.total = 3 + len(candidates)
            progress.update(f"Analyzing {len(candidates)} candidate stocks...", 3)
            results = await asyncio.gather(
                *(self.screen_stock(symbol, criteria, 4 + i, progress) for i, symbol in enumerate(candidates))
            )

            passed_count = sum(1 for r in results if r.passed and r.data)
            if passed_count < self.portfolio_size:
                progress.update(
                    f"Expanding search with relaxed criteria to ensure {self.portfolio_size} stocks...",
                    progress.total - 1,
                )
            holdings = select_holdings(results, self.portfolio_size)
            if len(holdings) < self.portfolio_size:
                holdings = await self._backfill_with_reliable_payers(holdings)
            holdings = holdings[: self.portfolio_size]

            progress.update(f"Building portfolio with {len(holdings)} stocks", progress.total)
            plan = build_dividend_plan(holdings, target_annual_income, criteria, self.portfolio_size)
        except Exception as e:
            logger.error(f"Failed to generate dividend plan: {e}", exc_info=True)
            raise PlanGenerationError(f"Plan generation failed: {e}") from e

        logger.info(
            f"Dividend plan ready: {len(plan.portfolio)} holdings, "
            f"${plan.total_investment:,.0f} for ${target_annual_income:,.0f}/yr"
        )
        return plan


def _symbols_from_rows(rows: list) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        symbol = row.get("symbol") if isinstance(row, dict) else row
        if isinstance(symbol, str) and symbol.strip():
            seen.setdefault(symbol.strip().upper(), None)
    return list(seen)


def create_dividend_service(
    finnhub: FinnhubClient,
    cache: Optional[TimedCache] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DividendScreeningService:
    return DividendScreeningService(
        finnhub=finnhub,
        limiter=RateLimiter(clock=clock, name="screening"),
        cache=cache or TimedCache(clock=clock),
    )
