import logging
import math
import time
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx
import pandas as pd

from config import (
    DIVIDEND_HISTORY_START,
    FEATURED_SYMBOLS,
    FINNHUB_API_KEY,
    FINNHUB_BASE_URL,
    FMP_API_KEY,
    FMP_BASE_URL,
    HTTP_TIMEOUT_SECONDS,
    MARKET_INDEX_SYMBOLS,
    REQUEST_STAGGER_SECONDS,
)
from core.cache import CacheCategory, TimedCache
from core.rate_limiter import RateLimiter
from models.result import DataResult
from models.stock import (
    CashFlowSnapshot,
    CombinedStock,
    ComprehensiveMetrics,
    FmpQuote,
    HistoricalAnalysis,
    IndexQuote,
    Profile,
    Quote,
    StockSearchResult,
)
from services.finnhub_client import FinnhubClient
from services.fmp_client import FmpClient
from services.universe import search_reference_universe

logger = logging.getLogger(__name__)

FEATURED_CACHE_KEY = "featured_stocks"

# Fields of ComprehensiveMetrics that fall back to named defaults
COMPREHENSIVE_FIELDS = (
    "price",
    "market_cap",
    "pe_ratio",
    "dividend_yield",
    "free_cash_flow",
    "sector",
    "dividend_history_years",
)


def safe_float(val) -> Optional[float]:
    try:
        if val is None or isinstance(val, bool) or (isinstance(val, float) and math.isnan(val)):
            return None
        return float(val)
    except (TypeError, ValueError):
        return None


def is_valid_price(val: Any) -> bool:
    """A price must be a real number; zero is valid, missing/non-numeric/NaN is not."""
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return False
    return not math.isnan(val)


def count_dividend_years(payouts: list[dict]) -> int:
    """Number of distinct calendar years with at least one payout."""
    if not payouts:
        return 0
    dates = pd.to_datetime(
        pd.Series([p.get("date") for p in payouts if isinstance(p, dict)], dtype="object"),
        errors="coerce",
    ).dropna()
    return int(dates.dt.year.nunique())


def _parse_timestamp(ts: Any) -> Optional[datetime]:
    """Quote time in epoch seconds; out-of-range or non-numeric values are dropped."""
    if isinstance(ts, bool) or not isinstance(ts, (int, float)) or ts <= 0:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.debug(f"Ignoring out-of-range quote timestamp: {ts}")
        return None


def _parse_quote(symbol: str, payload: dict) -> Quote:
    return Quote(
        symbol=symbol,
        price=float(payload["c"]),
        daily_change=safe_float(payload.get("d")) or 0.0,
        daily_change_percent=safe_float(payload.get("dp")) or 0.0,
        previous_close=safe_float(payload.get("pc")),
        high=safe_float(payload.get("h")),
        low=safe_float(payload.get("l")),
        open=safe_float(payload.get("o")),
        timestamp=_parse_timestamp(payload.get("t")),
    )


def _parse_profile(payload: dict) -> Profile:
    return Profile(
        company_name=payload.get("name") or None,
        currency=payload.get("currency") or None,
        exchange=payload.get("exchange") or None,
        sector=payload.get("finnhubIndustry") or None,
        market_capitalization=safe_float(payload.get("marketCapitalization")),
        logo_url=payload.get("logo") or None,
        website_url=payload.get("weburl") or None,
    )


def combine_stock(symbol: str, quote: Quote, profile: Optional[Profile]) -> CombinedStock:
    """Merge quote and profile; missing profile fields degrade to defaults."""
    profile = profile or Profile()
    market_cap = profile.market_capitalization * 1_000_000 if profile.market_capitalization else None
    return CombinedStock(
        symbol=symbol,
        company_name=profile.company_name or f"{symbol} Inc.",
        current_price=quote.price,
        daily_change=quote.daily_change,
        daily_change_percent=quote.daily_change_percent,
        previous_close=quote.previous_close,
        high=quote.high,
        low=quote.low,
        open=quote.open,
        currency=profile.currency or "USD",
        exchange=profile.exchange or "NASDAQ",
        sector=profile.sector or "Technology",
        market_cap=market_cap,
        logo=profile.logo_url,
        website=profile.website_url,
        data_source="Finnhub",
        last_updated=datetime.now(timezone.utc),
    )


class MarketDataClient:
    """
    Cached access to quotes and fundamentals.

    Finnhub is the primary provider (quotes, profiles, ratios, dividends);
    FMP supplies EPS, book value and cash flow. Every outbound call goes
    through `pacer`, which keeps consecutive provider calls staggered.
    """

    def __init__(
        self,
        finnhub: FinnhubClient,
        fmp: FmpClient,
        cache: Optional[TimedCache] = None,
        pacer: Optional[RateLimiter] = None,
        featured_symbols: Optional[list[str]] = None,
        index_symbols: Optional[list[str]] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.finnhub = finnhub
        self.fmp = fmp
        self.cache = cache or TimedCache()
        self.pacer = pacer or RateLimiter(
            max_calls_per_minute=None,
            min_interval_seconds=REQUEST_STAGGER_SECONDS,
            name="provider-stagger",
        )
        self.featured_symbols = list(featured_symbols or FEATURED_SYMBOLS)
        self.index_symbols = list(index_symbols or MARKET_INDEX_SYMBOLS)
        self._http = http

        self.market_indices_snapshot: dict[str, IndexQuote] = {}
        self.market_indices_updated_at: Optional[datetime] = None

    async def _paced(self, call: Callable[[], Awaitable[Any]]) -> Any:
        return await self.pacer.submit(call)

    # ---- Quote + profile ----

    async def _load_quote(self, symbol: str) -> Optional[Quote]:
        key = f"price_{symbol}"
        cached = self.cache.get_valid(CacheCategory.PRICE, key)
        if cached is not None:
            logger.debug(f"Using cached price for {symbol}")
            return cached

        logger.info(f"Fetching fresh price for {symbol} from Finnhub")
        payload = await self._paced(lambda: self.finnhub.get_quote(symbol))
        if not isinstance(payload, dict) or not is_valid_price(payload.get("c")):
            logger.warning(f"Finnhub price data invalid for {symbol}: no numeric 'c' field.")
            return None
        quote = _parse_quote(symbol, payload)
        self.cache.put(CacheCategory.PRICE, key, quote)
        return quote

    async def _load_profile(self, symbol: str) -> Optional[Profile]:
        key = f"profile_{symbol}"
        cached = self.cache.get_valid(CacheCategory.PROFILE, key)
        if cached is not None:
            logger.debug(f"Using cached profile for {symbol}")
            return cached

        logger.info(f"Fetching fresh profile for {symbol} from Finnhub")
        payload = await self._paced(lambda: self.finnhub.get_profile(symbol))
        if not isinstance(payload, dict):
            logger.warning(f"Finnhub profile unavailable for {symbol}, using defaults.")
            return None
        profile = _parse_profile(payload)
        self.cache.put(CacheCategory.PROFILE, key, profile)
        return profile

    async def get_stock_result(self, symbol: str) -> DataResult[CombinedStock]:
        try:
            quote = await self._load_quote(symbol)
            if quote is None:
                return DataResult.unavailable(f"No valid price available for {symbol}")
            profile = await self._load_profile(symbol)
            stock = combine_stock(symbol, quote, profile)
        except Exception as e:
            logger.warning(f"Finnhub request failed for {symbol}: {e}")
            return DataResult.unavailable(f"Request failed for {symbol}: {e}")

        if profile is None:
            return DataResult.degraded(stock, [f"Profile unavailable for {symbol}; using defaults"])
        return DataResult.ok(stock)

    async def fetch_quote_and_profile(self, symbol: str) -> Optional[CombinedStock]:
        """Combined quote + profile, or None when no valid price is available right now."""
        result = await self.get_stock_result(symbol)
        return result.data

    # ---- Batches ----

    async def get_featured_stocks(self, force_refresh: bool = False) -> list[CombinedStock]:
        if not force_refresh:
            cached = self.cache.get_valid(CacheCategory.FEATURED, FEATURED_CACHE_KEY)
            if cached is not None:
                logger.debug("Using cached featured stocks.")
                return list(cached)

        logger.info(
            "Forcing refresh of featured stocks." if force_refresh
            else "Featured stocks cache expired, fetching fresh data."
        )
        results = []
        for symbol in self.featured_symbols:
            stock = await self.fetch_quote_and_profile(symbol)
            if stock is not None:
                results.append(stock)

        if results:
            self.cache.put(CacheCategory.FEATURED, FEATURED_CACHE_KEY, list(results))
        else:
            logger.warning("No featured stocks could be fetched; cache left untouched.")
        return results

    async def get_market_indices(self) -> dict[str, IndexQuote]:
        results: dict[str, IndexQuote] = {}
        for symbol in self.index_symbols:
            stock = await self.fetch_quote_and_profile(symbol)
            if stock is None:
                logger.warning(f"Skipping index {symbol}: no data.")
                continue
            results[symbol] = IndexQuote(
                price=stock.current_price,
                change=stock.daily_change,
                change_percent=stock.daily_change_percent,
            )
        return results

    async def refresh_market_indices(self) -> dict[str, IndexQuote]:
        indices = await self.get_market_indices()
        if indices:
            self.market_indices_snapshot = indices
            self.market_indices_updated_at = datetime.now(timezone.utc)
        return indices

    def search_stocks(self, query: str) -> list[StockSearchResult]:
        return search_reference_universe(query)

    # ---- Fundamentals ----

    async def get_fmp_quote(self, symbol: str) -> FmpQuote:
        """
        Quote plus EPS/book value/dividend from FMP, falling back to Finnhub for
        price and name only. Raises the original FMP error if both fail.
        """
        try:
            logger.info(f"Attempting FMP quote for {symbol}")
            row = await self.pacer.submit(lambda: self.fmp.get_quote(symbol), swallow_errors=False)
            return FmpQuote(
                symbol=row.get("symbol") or symbol,
                company_name=row.get("name") or f"{symbol} Inc.",
                current_price=safe_float(row.get("price")),
                eps=safe_float(row.get("eps")),
                book_value=safe_float(row.get("bookValue")),
                dividend_annual=safe_float(row.get("dividend")) or 0.0,
                source="FMP",
            )
        except Exception as fmp_error:
            logger.warning(f"FMP quote fetch failed for {symbol}: {fmp_error}. Trying Finnhub fallback.")
            stock = await self.fetch_quote_and_profile(symbol)
            if stock is None:
                logger.error(f"Finnhub fallback also failed for {symbol}.")
                raise
            return FmpQuote(
                symbol=stock.symbol,
                company_name=stock.company_name,
                current_price=stock.current_price,
                source="Finnhub (Limited Data)",
            )

    async def get_cash_flow(self, symbol: str) -> CashFlowSnapshot:
        """Latest annual free cash flow and share count from FMP. Raises on failure."""
        row = await self.pacer.submit(lambda: self.fmp.get_cash_flow(symbol), swallow_errors=False)
        fcf = safe_float(row.get("freeCashFlow"))
        shares = safe_float(row.get("weightedAverageShsOutstanding"))
        return CashFlowSnapshot(
            symbol=symbol,
            free_cash_flow=fcf,
            shares_outstanding=shares,
            fcf_per_share=fcf / shares if fcf is not None and shares else None,
        )

    async def get_historical_analysis_data(self, symbol: str) -> HistoricalAnalysis:
        """
        Conservative P/E and growth defaults, cached for 24h.
        No historical endpoint is called; users refine these by hand.
        """
        key = f"historical_{symbol}"
        cached = self.cache.get_valid(CacheCategory.HISTORICAL, key)
        if cached is not None:
            logger.debug(f"Using cached historical data for {symbol}")
            return cached

        logger.info(f"Providing conservative historical defaults for {symbol}")
        data = HistoricalAnalysis(symbol=symbol)
        self.cache.put(CacheCategory.HISTORICAL, key, data)
        return data

    async def get_comprehensive_metrics(self, symbol: str) -> ComprehensiveMetrics:
        """
        Best-effort ratios for one symbol. Each provider call is guarded on its
        own; anything missing keeps its named default and is listed in
        fallback_fields. Never raises for provider reasons.
        """
        key = f"comprehensive_{symbol}"
        cached = self.cache.get_valid(CacheCategory.COMPREHENSIVE, key)
        if cached is not None:
            logger.debug(f"Using cached comprehensive metrics for {symbol}")
            return cached

        try:
            values: dict[str, Any] = {}

            stock = await self.fetch_quote_and_profile(symbol)
            if stock is not None:
                if stock.current_price:
                    values["price"] = stock.current_price
                if stock.market_cap:
                    values["market_cap"] = stock.market_cap
                if stock.sector:
                    values["sector"] = stock.sector
            else:
                logger.warning(f"No basic data for {symbol}, using fallbacks.")

            metric_payload = await self._paced(lambda: self.finnhub.get_metrics(symbol))
            ratios = metric_payload.get("metric") if isinstance(metric_payload, dict) else None
            if isinstance(ratios, dict):
                values.update(_ratios_from_metrics(ratios))
            else:
                logger.warning(f"Finnhub metrics unavailable for {symbol}")

            payouts = await self._paced(
                lambda: self.finnhub.get_dividends(symbol, DIVIDEND_HISTORY_START, date.today().isoformat())
            )
            years = count_dividend_years(payouts or [])
            if years:
                values["dividend_history_years"] = years

            fallback_fields = [f for f in COMPREHENSIVE_FIELDS if f not in values]
            metrics = ComprehensiveMetrics(symbol=symbol, fallback_fields=fallback_fields, **values)
        except Exception as e:
            logger.warning(f"Failed to get comprehensive metrics for {symbol}: {e}")
            return ComprehensiveMetrics(symbol=symbol, fallback_fields=list(COMPREHENSIVE_FIELDS))

        self.cache.put(CacheCategory.COMPREHENSIVE, key, metrics)
        return metrics

    # ---- Lifecycle ----

    def clear_cache(self) -> None:
        self.cache.clear()

    async def aclose(self) -> None:
        await self.pacer.shutdown()
        if self._http is not None:
            await self._http.aclose()


def _ratios_from_metrics(m: dict) -> dict[str, Any]:
    """Map Finnhub's percent-scaled metric fields onto fractional ratios."""
    out: dict[str, Any] = {}
    pe = safe_float(m.get("peBasicExclExtraTTM"))
    if pe:
        out["pe_ratio"] = pe
    dividend_yield = safe_float(m.get("dividendYieldIndicatedAnnual"))
    if dividend_yield:
        out["dividend_yield"] = dividend_yield / 100
    payout = safe_float(m.get("payoutRatioTTM"))
    out["payout_ratio"] = payout / 100 if payout else None
    out["debt_to_equity"] = safe_float(m.get("debtEquityRatioTTM"))
    roe = safe_float(m.get("returnOnEquityTTM"))
    out["roe"] = roe / 100 if roe else None
    return out


def create_market_data_client(
    http: Optional[httpx.AsyncClient] = None,
    cache: Optional[TimedCache] = None,
    clock: Callable[[], float] = time.monotonic,
) -> MarketDataClient:
    """Build a client wired from config. The client owns (and closes) the HTTP pool."""
    http = http or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)
    return MarketDataClient(
        finnhub=FinnhubClient(http, FINNHUB_API_KEY, FINNHUB_BASE_URL),
        fmp=FmpClient(http, FMP_API_KEY, FMP_BASE_URL),
        cache=cache or TimedCache(clock=clock),
        pacer=RateLimiter(
            max_calls_per_minute=None,
            min_interval_seconds=REQUEST_STAGGER_SECONDS,
            clock=clock,
            name="provider-stagger",
        ),
        http=http,
    )
