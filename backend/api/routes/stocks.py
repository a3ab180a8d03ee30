from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_market_data
from models.result import DataResult
from models.stock import (
    CombinedStock,
    ComprehensiveMetrics,
    FmpQuote,
    HistoricalAnalysis,
    StockSearchResult,
)
from services.market_data import MarketDataClient

router = APIRouter(prefix="/api", tags=["stocks"])


@router.get("/stock/{symbol}", response_model=DataResult[CombinedStock])
async def get_stock(symbol: str, market_data: MarketDataClient = Depends(get_market_data)):
    symbol = symbol.upper()
    result = await market_data.get_stock_result(symbol)
    if not result.available:
        detail = result.warnings[0] if result.warnings else f"No data available for '{symbol}'."
        raise HTTPException(status_code=404, detail=detail)
    return result


@router.get("/stock/{symbol}/fundamentals", response_model=FmpQuote)
async def get_fundamentals(symbol: str, market_data: MarketDataClient = Depends(get_market_data)):
    # ProviderError propagates to the 502 handler when both providers fail
    return await market_data.get_fmp_quote(symbol.upper())


@router.get("/stock/{symbol}/historical", response_model=HistoricalAnalysis)
async def get_historical(symbol: str, market_data: MarketDataClient = Depends(get_market_data)):
    return await market_data.get_historical_analysis_data(symbol.upper())


@router.get("/stock/{symbol}/metrics", response_model=ComprehensiveMetrics)
async def get_metrics(symbol: str, market_data: MarketDataClient = Depends(get_market_data)):
    return await market_data.get_comprehensive_metrics(symbol.upper())


@router.get("/stocks/featured", response_model=list[CombinedStock])
async def get_featured(
    force_refresh: bool = False,
    market_data: MarketDataClient = Depends(get_market_data),
):
    return await market_data.get_featured_stocks(force_refresh=force_refresh)


@router.get("/stocks/search", response_model=list[StockSearchResult])
async def search(q: str = Query(default=""), market_data: MarketDataClient = Depends(get_market_data)):
    return market_data.search_stocks(q)


@router.get("/market/indices")
async def get_market_indices(market_data: MarketDataClient = Depends(get_market_data)):
    """Latest scheduler snapshot; fetched live when no snapshot exists yet."""
    if not market_data.market_indices_snapshot:
        await market_data.refresh_market_indices()
    return {
        "indices": {k: v.model_dump() for k, v in market_data.market_indices_snapshot.items()},
        "updated_at": market_data.market_indices_updated_at,
    }


@router.post("/cache/clear")
async def clear_cache(market_data: MarketDataClient = Depends(get_market_data)):
    market_data.clear_cache()
    return {"status": "cleared"}
