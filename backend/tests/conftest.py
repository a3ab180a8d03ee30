"""
Shared test helpers: a controllable clock and a routed httpx.MockTransport
standing in for the Finnhub and FMP HTTP APIs.
"""
import asyncio
from typing import Any, Optional

import httpx
import pytest

from core.cache import TimedCache
from core.rate_limiter import RateLimiter
from services.finnhub_client import FinnhubClient
from services.fmp_client import FmpClient
from services.market_data import MarketDataClient

FINNHUB_URL = "https://finnhub.test/api/v1"
FMP_URL = "https://fmp.test/api/v3"


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += seconds
        await asyncio.sleep(0)


class ProviderStub:
    """
    Routes requests by URL path (and Finnhub's `symbol` query param when given).
    A route body may be a JSON-able value, or an exception to raise.
    """

    def __init__(self):
        self.routes: dict[tuple[str, Optional[str]], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, body: Any = None, status: int = 200, symbol: Optional[str] = None) -> None:
        self.routes[(path, symbol)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        symbol = request.url.params.get("symbol")
        route = self.routes.get((path, symbol)) or self.routes.get((path, None))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        status, body = route
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    def count(self, path: str, symbol: Optional[str] = None) -> int:
        return sum(
            1 for r in self.requests
            if r.url.path == path and (symbol is None or r.url.params.get("symbol") == symbol)
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def finnhub_quote(price, change=1.0, change_pct=0.5) -> dict:
    return {"c": price, "d": change, "dp": change_pct, "pc": 100.0, "h": 101.0, "l": 99.0, "o": 100.0, "t": 0}


def finnhub_profile(name: str, sector: str = "Technology", market_cap_millions: float = 2_500_000.0) -> dict:
    return {
        "name": name,
        "currency": "USD",
        "exchange": "NASDAQ NMS - GLOBAL MARKET",
        "finnhubIndustry": sector,
        "marketCapitalization": market_cap_millions,
        "logo": f"https://logo.test/{name}.png",
        "weburl": "https://example.com",
    }


def build_market_data(stub: ProviderStub, clock: Optional[FakeClock] = None, **kwargs) -> MarketDataClient:
    clock = clock or FakeClock()
    http = httpx.AsyncClient(transport=stub.transport())
    return MarketDataClient(
        finnhub=FinnhubClient(http, "fh-key", FINNHUB_URL),
        fmp=FmpClient(http, "fmp-key", FMP_URL),
        cache=TimedCache(clock=clock),
        pacer=RateLimiter(
            max_calls_per_minute=None,
            min_interval_seconds=0.1,
            call_timeout_seconds=None,
            clock=clock,
            sleep=clock.sleep,
            name="test-pacer",
        ),
        http=http,
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub() -> ProviderStub:
    return ProviderStub()
