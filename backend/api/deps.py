from fastapi import Request

from services.dividend_service import DividendScreeningService
from services.market_data import MarketDataClient


def get_market_data(request: Request) -> MarketDataClient:
    return request.app.state.market_data


def get_dividend_service(request: Request) -> DividendScreeningService:
    return request.app.state.dividend_service
