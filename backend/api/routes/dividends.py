import logging

from fastapi import APIRouter, Depends

from api.deps import get_dividend_service
from models.dividend import DividendPlan, DividendPlanRequest, PlanProgress, RiskTolerance, ScreeningCriteria
from services.dividend_service import DividendScreeningService, get_risk_based_criteria

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dividends", tags=["dividends"])


def _log_progress(progress: PlanProgress) -> None:
    logger.debug(f"Plan progress {progress.percentage:.0f}%: {progress.message}")


@router.get("/criteria/{risk_tolerance}", response_model=ScreeningCriteria)
async def get_criteria(risk_tolerance: RiskTolerance):
    return get_risk_based_criteria(risk_tolerance)


@router.post("/plan", response_model=DividendPlan)
async def create_plan(
    req: DividendPlanRequest,
    service: DividendScreeningService = Depends(get_dividend_service),
):
    return await service.generate_dividend_plan(
        req.annual_income(),
        risk_tolerance=req.risk_tolerance,
        progress_callback=_log_progress,
    )
