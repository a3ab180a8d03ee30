"""
Financial Modeling Prep (FMP) API HTTP client.
Used for fundamentals the Finnhub free tier does not provide (EPS, book value,
free cash flow).
"""

import httpx

from config import FMP_BASE_URL
from core.errors import ProviderError


PROVIDER = "FMP"


class FmpClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str = FMP_BASE_URL):
        self._http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def _get_first(self, path: str, **params) -> dict:
        """Fetch an FMP list endpoint and return its first row."""
        params["apikey"] = self.api_key
        resp = await self._http.get(f"{self.base_url}{path}", params=params)

        if resp.status_code == 403:
            raise ProviderError(PROVIDER, "access forbidden (403) - API key may be invalid or rate limited", 403)
        if resp.status_code == 429:
            raise ProviderError(PROVIDER, "rate limit exceeded (429)", 429)
        if not resp.is_success:
            raise ProviderError(PROVIDER, f"{path} returned {resp.status_code}", resp.status_code)

        data = resp.json()
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ProviderError(PROVIDER, f"no data returned from {path}")
        return data[0]

    async def get_quote(self, symbol: str) -> dict:
        """
        GET /quote/{S}
        Returns {symbol, name, price, eps, bookValue, dividend}.
        """
        return await self._get_first(f"/quote/{symbol}")

    async def get_cash_flow(self, symbol: str) -> dict:
        """
        GET /cash-flow-statement/{S}?period=annual&limit=1
        Returns the latest annual row: {freeCashFlow, weightedAverageShsOutstanding, ...}.
        """
        return await self._get_first(f"/cash-flow-statement/{symbol}", period="annual", limit=1)
