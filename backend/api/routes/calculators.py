from fastapi import APIRouter, Depends

from api.deps import get_market_data
from models.valuation import (
    BuffettInputs,
    BuffettRequest,
    BuffettResult,
    DcfInputs,
    DcfRequest,
    DcfResult,
    DividendScenario,
    GoalPlan,
    GoalRequest,
)
from services.analysis_inputs import load_buffett_inputs, load_dcf_inputs
from services.market_data import MarketDataClient
from services.valuation import calculate_goal_contribution, run_buffett, run_dcf

router = APIRouter(prefix="/api/calculators", tags=["calculators"])


@router.post("/dcf", response_model=DcfResult)
async def dcf(req: DcfRequest):
    return run_dcf(req)


@router.post("/buffett", response_model=BuffettResult)
async def buffett(req: BuffettRequest):
    return run_buffett(req)


@router.post("/goal", response_model=GoalPlan)
async def goal(req: GoalRequest):
    return calculate_goal_contribution(req)


@router.get("/dcf/{symbol}/inputs", response_model=DcfInputs)
async def dcf_inputs(symbol: str, market_data: MarketDataClient = Depends(get_market_data)):
    return await load_dcf_inputs(market_data, symbol)


@router.get("/buffett/{symbol}/inputs", response_model=BuffettInputs)
async def buffett_inputs(
    symbol: str,
    dividend_scenario: DividendScenario = DividendScenario.STANDARD_PAYOUT,
    market_data: MarketDataClient = Depends(get_market_data),
):
    return await load_buffett_inputs(market_data, symbol, dividend_scenario)
