import logging
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import CACHE_SWEEP_MINUTES, FEATURED_REFRESH_MINUTES, INDICES_REFRESH_MINUTES
from services.market_data import MarketDataClient

logger = logging.getLogger(__name__)


def _single_flight(name: str, job: Callable[[], Awaitable[None]]) -> Callable[[], Awaitable[None]]:
    """Wrap a job so a run that starts while the previous one is still going is skipped."""
    running = False

    async def run() -> None:
        nonlocal running
        if running:
            logger.info(f"{name} already running, skipping.")
            return
        running = True
        try:
            await job()
        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)
        finally:
            running = False

    return run


async def refresh_featured(market_data: MarketDataClient) -> None:
    stocks = await market_data.get_featured_stocks(force_refresh=True)
    logger.info(f"Featured refresh complete. {len(stocks)} stocks cached.")


async def refresh_indices(market_data: MarketDataClient) -> None:
    indices = await market_data.refresh_market_indices()
    logger.info(f"Market indices refresh complete. {len(indices)} indices updated.")


async def sweep_cache(market_data: MarketDataClient) -> None:
    market_data.cache.sweep()


def create_scheduler(
    market_data: MarketDataClient,
    featured_minutes: float = FEATURED_REFRESH_MINUTES,
    indices_minutes: float = INDICES_REFRESH_MINUTES,
    sweep_minutes: float = CACHE_SWEEP_MINUTES,
) -> AsyncIOScheduler:
    """Configure (but do not start) the background refresh jobs."""
    scheduler = AsyncIOScheduler()

    jobs = [
        ("featured_refresh", "Featured watchlist refresh", featured_minutes, refresh_featured),
        ("indices_refresh", "Market indices refresh", indices_minutes, refresh_indices),
        ("cache_sweep", "Expired cache sweep", sweep_minutes, sweep_cache),
    ]
    for job_id, name, minutes, func in jobs:
        scheduler.add_job(
            _single_flight(name, lambda func=func: func(market_data)),
            trigger=IntervalTrigger(minutes=minutes),
            id=job_id,
            name=f"{name} (every {minutes:g} min)",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    logger.info(
        f"Scheduler configured. Featured: every {featured_minutes:g} min. "
        f"Indices: every {indices_minutes:g} min. Cache sweep: every {sweep_minutes:g} min."
    )
    return scheduler
