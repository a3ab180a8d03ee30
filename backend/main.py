import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the backend directory (ignored by git)
load_dotenv(Path(__file__).parent / ".env")

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes.calculators import router as calculators_router
from api.routes.dividends import router as dividends_router
from api.routes.stocks import router as stocks_router
from core.errors import PlanGenerationError, ProviderError
from core.scheduler import create_scheduler
from services.dividend_service import create_dividend_service
from services.market_data import create_market_data_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up Finance Dashboard API...")

    market_data = create_market_data_client()
    app.state.market_data = market_data
    app.state.dividend_service = create_dividend_service(market_data.finnhub, cache=market_data.cache)

    # Populate the index snapshot right away instead of waiting for the first interval
    app.state.indices_warmup = asyncio.create_task(market_data.refresh_market_indices())

    scheduler = create_scheduler(market_data)
    scheduler.start()
    app.state.scheduler = scheduler

    yield

    logger.info("Shutting down...")
    scheduler.shutdown(wait=False)
    app.state.indices_warmup.cancel()
    await asyncio.gather(app.state.indices_warmup, return_exceptions=True)
    await app.state.dividend_service.limiter.shutdown()
    await market_data.aclose()


app = FastAPI(
    title="Finance Dashboard API",
    description="Quotes, fundamentals, dividend portfolio planning and valuation calculators",
    version="1.0.0",
    lifespan=lifespan,
)

# Allow frontend origins: local dev + deployment
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.warning(f"Provider error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "provider": exc.provider})


@app.exception_handler(httpx.HTTPError)
async def http_error_handler(request: Request, exc: httpx.HTTPError):
    logger.warning(f"Upstream request failed on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": f"Upstream request failed: {exc}"})


@app.exception_handler(PlanGenerationError)
async def plan_error_handler(request: Request, exc: PlanGenerationError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(stocks_router)
app.include_router(dividends_router)
app.include_router(calculators_router)


@app.get("/api/health")
async def health(request: Request):
    market_data = request.app.state.market_data
    dividend_service = request.app.state.dividend_service
    return {
        "status": "ok",
        "cache": market_data.cache.stats(),
        "provider_pacer": market_data.pacer.stats(),
        "screening_limiter": dividend_service.limiter.stats(),
        "market_indices_updated_at": market_data.market_indices_updated_at,
    }
