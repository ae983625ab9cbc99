"""
Wires a production worker run: database session, solver, Playwright browser.
"""

from typing import Optional

from core.config import settings
from core.database import async_session_maker
from crawler.browser import PlaywrightSession
from crawler.orchestrator import StationOrchestrator
from crawler.solvers import build_solver
from crawler.stats import SyncStats
from crawler.store import PlateStore


def browser_session_factory():
    return PlaywrightSession.launch(headless=settings.HEADLESS, proxy_url=settings.PROXY_URL)


def solver_factory():
    return build_solver(settings)


async def run_worker(shard: Optional[str] = None, session_maker=async_session_maker) -> SyncStats:
    """One full (shard=None) or shard-scoped run; the returned stats carry the final status."""
    async with session_maker() as db:
        orchestrator = StationOrchestrator(
            store=PlateStore(db),
            session_factory=browser_session_factory,
            solver_factory=solver_factory,
            shard=shard
        )
        return await orchestrator.run()
