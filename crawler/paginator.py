"""
Multi-page result collection after CAPTCHA acceptance.

Pure data collection: reads page-state markers, scrapes rows and follows
the next-page control. Nothing is persisted here.
"""

import re
from dataclasses import dataclass
from typing import List, Optional
import logging

from pydantic import ValidationError

from core.exceptions import BrowserClosedError, BrowserError, PaginationError
from crawler import portal
from crawler.browser import BrowserSession
from crawler.pacing import Pacer
from schemas.plates import PlateRecord

logger = logging.getLogger(__name__)

ROW_COUNT_PATTERNS = (
    re.compile(r"共\s*(\d+)\s*筆"),
    re.compile(r"總數[:：]\s*(\d+)\s*面"),
)

PAGE_NUMBER_PATTERNS = (
    re.compile(r"(\d+)\s*/\s*(\d+)\s*頁"),
    re.compile(r"第\s*(\d+)\s*頁[，,]\s*共\s*(\d+)\s*頁"),
)


@dataclass
class PageInfo:
    no_data: bool = False
    total_rows: Optional[int] = None
    current_page: int = 1
    total_pages: int = 1
    has_next: bool = False

    @property
    def has_more(self) -> bool:
        return self.current_page < self.total_pages or self.has_next


def parse_page_info(text: str, has_next_control: bool = False) -> PageInfo:
    """
    Read the page-state markers out of the rendered result text.

    The next-page control wins over a page counter claiming a single page.
    """
    text = text or ""
    info = PageInfo(has_next=has_next_control)

    if any(marker in text for marker in portal.NO_DATA_MARKERS):
        info.no_data = True
        info.has_next = False
        return info

    for pattern in ROW_COUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            info.total_rows = int(match.group(1))
            break

    for pattern in PAGE_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match:
            info.current_page = int(match.group(1))
            info.total_pages = int(match.group(2))
            break

    if info.total_pages < info.current_page:
        info.total_pages = info.current_page

    if info.total_pages == 1 and has_next_control:
        info.total_pages = 2

    return info


def parse_rows(raw_rows) -> List[PlateRecord]:
    """Turn scraped {no, price} cells into PlateRecords, dropping unusable rows."""
    records = []
    for row in raw_rows or []:
        try:
            records.append(PlateRecord(plate_no=row.get("no"), price=row.get("price")))
        except ValidationError as e:
            logger.debug(f"Skipping unparseable row {row}: {e.errors()}")
    return records


class ResultPaginator:
    """Collect every result page for the current accepted query."""

    def __init__(self, pacer: Pacer, max_pages: int = 100):
        self.pacer = pacer
        self.max_pages = max_pages

    async def _next_control(self, session: BrowserSession) -> Optional[str]:
        for selector in portal.NEXT_PAGE_SELECTORS:
            if await session.exists(selector):
                return selector
        return None

    async def read_page_info(self, session: BrowserSession) -> PageInfo:
        text = await session.evaluate(portal.PAGE_TEXT_SCRIPT)
        next_control = await self._next_control(session)
        return parse_page_info(text, next_control is not None)

    async def collect(self, session: BrowserSession) -> List[PlateRecord]:
        """
        Scrape rows page by page until no next page remains.

        Returns:
            All collected records in page order (may contain duplicates)

        Raises:
            PaginationError: If the walk broke off before the last page
        """
        collected: List[PlateRecord] = []
        info: Optional[PageInfo] = None

        for page in range(1, self.max_pages + 1):
            info = await self.read_page_info(session)

            if info.no_data:
                logger.info("[Result] No data found.")
                return collected

            rows = parse_rows(await session.evaluate(portal.SCRAPE_ROWS_SCRIPT))
            collected.extend(rows)

            total = f"{info.total_rows} rows" if info.total_rows is not None else "row count unknown"
            logger.info(
                f"[Result] Page {info.current_page}/{info.total_pages}: "
                f"{len(rows)} plates ({total})"
            )

            if not info.has_more:
                return collected

            next_control = await self._next_control(session)
            if next_control is None:
                logger.info("[Result] Page counter ahead of controls, stopping.")
                return collected

            try:
                clicked = await session.click(next_control)
            except BrowserClosedError:
                raise
            except BrowserError as e:
                raise self._broken_walk("Next page click failed", page, info, e)
            if not clicked:
                raise self._broken_walk("Next page control disappeared", page, info)

            await self.pacer.random_sleep(1500, 3000)

        raise self._broken_walk(f"Still more pages after {self.max_pages}", self.max_pages, info)

    @staticmethod
    def _broken_walk(
        reason: str,
        pages_read: int,
        info: Optional[PageInfo],
        cause: Optional[Exception] = None
    ) -> PaginationError:
        logger.warning(f"[Result] {reason} after {pages_read} pages, discarding the partial result.")
        return PaginationError(
            reason,
            context={
                "pages_read": pages_read,
                "total_pages": info.total_pages if info else None
            },
            original_exception=cause
        )
