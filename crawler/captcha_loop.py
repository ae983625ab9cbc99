"""
CAPTCHA solve / submit / verify loop for one PlateQuery.

States per outer attempt: SOLVING -> SUBMITTED -> ACCEPTED | REJECTED | TIMED_OUT.

SOLVING takes a rate-limiter token per recognition call and only accepts
4-character [A-Z0-9] answers, refreshing the image between tries. SUBMITTED
races the portal's wrong-code alert against the results page rendering,
under one deadline; whichever signal lands first decides the attempt.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Awaitable, Dict, Optional, Tuple
import logging

from core.exceptions import (
    BrowserClosedError,
    BrowserError,
    NonRetryableError,
    SolverError,
    SolverOverloadedError,
)
from crawler import portal
from crawler.browser import BrowserSession
from crawler.context import QueryContext
from crawler.pacing import Pacer
from crawler.rate_limiter import RateLimiter
from crawler.solvers.base import CaptchaSolver, is_valid_answer
from crawler.stats import SyncStats

logger = logging.getLogger(__name__)


class CaptchaState(str, Enum):
    SOLVING = "SOLVING"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    TIMED_OUT = "TIMED_OUT"


async def first_signal(
    signals: Dict[CaptchaState, Awaitable[Any]],
    timeout: float
) -> Tuple[CaptchaState, Any]:
    """
    Run the awaitables concurrently and return the first one to resolve.

    Awaitables that fail (e.g. their own timeout) are ignored, except for a
    NonRetryableError such as a closed page, which is raised. If none resolves
    before the deadline the result is TIMED_OUT. Losers are cancelled.
    """
    tasks = {asyncio.ensure_future(aw): state for state, aw in signals.items()}
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    pending = set(tasks)

    try:
        while pending:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is None:
                    return tasks[task], task.result()
                if isinstance(error, NonRetryableError):
                    raise error
        return CaptchaState.TIMED_OUT, None
    finally:
        losers = [task for task in tasks if not task.done()]
        for task in losers:
            task.cancel()
        if losers:
            await asyncio.gather(*losers, return_exceptions=True)


class CaptchaRetryLoop:
    """
    Solve and submit the CAPTCHA until the portal accepts it.

    Budgets:
        max_attempts: Outer attempts per PlateQuery (default: 10)
        max_solve_attempts: Recognition tries per outer attempt (default: 5)
    """

    def __init__(
        self,
        solver: CaptchaSolver,
        limiter: RateLimiter,
        pacer: Pacer,
        max_attempts: int = 10,
        max_solve_attempts: int = 5,
        result_wait_timeout_ms: int = 30000,
        overload_cooldown_sec: float = 30.0
    ):
        self.solver = solver
        self.limiter = limiter
        self.pacer = pacer
        self.max_attempts = max_attempts
        self.max_solve_attempts = max_solve_attempts
        self.result_wait_timeout_ms = result_wait_timeout_ms
        self.overload_cooldown_sec = overload_cooldown_sec

    async def refresh_image(self, session: BrowserSession):
        try:
            for selector in portal.CAPTCHA_REFRESH_SELECTORS:
                if await session.click(selector):
                    break
        except BrowserClosedError:
            raise
        except BrowserError as e:
            logger.warning(f"[Warn] Refresh click failed, continuing... ({e.message})")
        await self.pacer.random_sleep(1000, 3000)

    async def solve(self, session: BrowserSession, ctx: QueryContext, stats: SyncStats) -> Optional[str]:
        """SOLVING: up to max_solve_attempts recognitions; returns a valid answer or None."""
        for solve_attempt in range(1, self.max_solve_attempts + 1):
            ctx.solve_attempts += 1

            if solve_attempt > 1 or ctx.attempts > 1:
                logger.info(f"[Captcha Retry {solve_attempt}/{self.max_solve_attempts}] Refreshing image...")
                await self.refresh_image(session)

            await self.limiter.acquire()
            stats.record_captcha_attempt()

            try:
                image = await session.screenshot(portal.CAPTCHA_IMAGE)
                code = await self.solver.solve(image)
            except SolverOverloadedError as e:
                logger.warning(f"[AI] {e.message}. Sleeping {self.overload_cooldown_sec:.0f}s...")
                await self.pacer.sleep_ms(self.overload_cooldown_sec * 1000)
                continue
            except BrowserClosedError:
                raise
            except (SolverError, BrowserError) as e:
                logger.warning(f"[AI] Error: {e.message}")
                continue

            if is_valid_answer(code):
                return code
            logger.info(f"[AI] Invalid length ({len(code) if code else 0}). Retrying...")

        return None

    async def enter_code(self, session: BrowserSession, code: str):
        await self.pacer.random_sleep(100, 300)
        await session.type(portal.CAPTCHA_INPUT, code, self.pacer.keystroke_delay_ms())
        await self.pacer.random_sleep(200, 500)

    async def submit(self, session: BrowserSession, ctx: QueryContext) -> Tuple[CaptchaState, Optional[str]]:
        """SUBMITTED: race the rejection alert against the rendered results."""
        timeout_ms = self.result_wait_timeout_ms

        # The alert listener has to be armed before the form is submitted
        rejection = asyncio.ensure_future(session.wait_for_dialog(timeout_ms))
        await asyncio.sleep(0)

        started = time.monotonic()
        try:
            await session.evaluate(portal.SUBMIT_SCRIPT)
        except BaseException:
            rejection.cancel()
            await asyncio.gather(rejection, return_exceptions=True)
            raise

        state, value = await first_signal(
            {
                CaptchaState.REJECTED: rejection,
                CaptchaState.ACCEPTED: session.wait_for_condition(portal.RESULTS_READY_SCRIPT, timeout_ms),
            },
            timeout=timeout_ms / 1000
        )

        if state is CaptchaState.ACCEPTED:
            ctx.latency_ms = (time.monotonic() - started) * 1000
            return state, None
        if state is CaptchaState.REJECTED:
            logger.info(f"[Fail] Alert: {value}")
            return state, value

        logger.info(f"[Fail] Result timeout after {timeout_ms}ms.")
        return state, None

    async def run(self, session: BrowserSession, ctx: QueryContext, stats: SyncStats) -> bool:
        """
        Drive outer attempts until ACCEPTED or the budget is spent.

        Returns:
            True once the portal accepted a code and rendered results
        """
        while ctx.attempts < self.max_attempts:
            ctx.attempts += 1

            code = await self.solve(session, ctx, stats)
            if code is None:
                logger.error(
                    f"[Fail] Failed to get valid CAPTCHA after {self.max_solve_attempts} tries. "
                    f"Restarting station flow..."
                )
                continue

            await self.enter_code(session, code)
            state, _ = await self.submit(session, ctx)

            if state is CaptchaState.ACCEPTED:
                stats.record_captcha_success()
                return True

            if ctx.attempts < self.max_attempts:
                await self.pacer.random_sleep(5000, 10000)

        return False
