"""
Finnhub API HTTP client.
Thin wrappers over the endpoints the dashboard uses; every call raises
ProviderError on a non-2xx status and lets httpx network errors propagate.
"""
from typing import Any

import httpx

from config import FINNHUB_BASE_URL
from core.errors import ProviderError


PROVIDER = "Finnhub"


class FinnhubClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str = FINNHUB_BASE_URL):
        self._http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def _get(self, path: str, **params) -> Any:
        params["token"] = self.api_key
        resp = await self._http.get(f"{self.base_url}{path}", params=params)
        if not resp.is_success:
            raise ProviderError(PROVIDER, f"{path} returned {resp.status_code}", resp.status_code)
        return resp.json()

    async def get_quote(self, symbol: str) -> dict:
        """
        GET /quote?symbol={S}
        Returns {c: price, d: change, dp: changePercent, pc: prevClose, h, l, o}.
        """
        return await self._get("/quote", symbol=symbol)

    async def get_profile(self, symbol: str) -> dict:
        """
        GET /stock/profile2?symbol={S}
        Returns {name, currency, exchange, finnhubIndustry, marketCapitalization, logo, weburl}.
        """
        return await self._get("/stock/profile2", symbol=symbol)

    async def get_metrics(self, symbol: str) -> dict:
        """
        GET /stock/metric?symbol={S}&metric=all
        Ratio fields under "metric" are percent-scaled (e.g. 3.1 for 3.1%).
        """
        return await self._get("/stock/metric", symbol=symbol, metric="all")

    async def get_dividends(self, symbol: str, start: str, end: str) -> list[dict]:
        """
        GET /stock/dividend?symbol={S}&from={start}&to={end}
        Returns a list of {date, amount} payouts. Dates in YYYY-MM-DD format.
        """
        data = await self._get("/stock/dividend", symbol=symbol, **{"from": start, "to": end})
        return data if isinstance(data, list) else []

    async def screen(self, min_market_cap: float, min_dividend_pct: float) -> list[dict]:
        """
        GET /stock/screener?marketCapMoreThan=...&dividendMoreThan=...
        Returns the "result" list of matching companies.
        """
        data = await self._get(
            "/stock/screener",
            marketCapMoreThan=min_market_cap,
            dividendMoreThan=min_dividend_pct,
        )
        if not isinstance(data, dict):
            raise ProviderError(PROVIDER, "screener returned an unexpected payload")
        return data.get("result") or []
