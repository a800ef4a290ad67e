import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable, List, Optional

from review_scraper.core import config
from review_scraper.schema.acquisition import (
    AcquisitionRequest,
    DateWindow,
    PageExtraction,
    PaginationState,
    Ready,
)
from review_scraper.schema.review_models import ReviewRecord
from review_scraper.service.acquisition import DocumentAcquirer
from review_scraper.utils.parsing_helpers import parse_review_date

logger = logging.getLogger(__name__)

UNBOUNDED_PAGES = -1


class PaginationController:
    """Walks a newest-first listing page by page and keeps the reviews inside the window.

    Stops when the page budget is spent, when ``empty_page_threshold`` pages in a
    row fail or come back empty, when the source says there is no next page, or
    when a page past the second has more reviews before the window than inside it.
    That last rule is a termination heuristic and may over- or under-run by a page.
    """

    def __init__(
        self,
        acquirer: DocumentAcquirer,
        extract: Callable[[str], PageExtraction],
        window: DateWindow,
        empty_page_threshold: int = config.HTTP_EMPTY_PAGE_THRESHOLD,
        max_pages: int = config.DEFAULT_MAX_PAGES,
        inter_page_delay_s: float = config.INTER_PAGE_DELAY_S,
        parse_date: Callable[[Optional[str]], Optional[date]] = parse_review_date,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tag: str = "Pagination",
    ):
        if empty_page_threshold < 1:
            raise ValueError("empty_page_threshold must be at least 1")
        if max_pages != UNBOUNDED_PAGES and max_pages < 1:
            raise ValueError("max_pages must be positive or -1 for unbounded")
        self.acquirer = acquirer
        self.extract = extract
        self.window = window
        self.empty_page_threshold = empty_page_threshold
        self.max_pages = max_pages
        self.inter_page_delay_s = inter_page_delay_s
        self.parse_date = parse_date
        self._sleep = sleep
        self.tag = tag
        self.pages_fetched = 0

    def _within_page_budget(self, page: int) -> bool:
        return self.max_pages == UNBOUNDED_PAGES or page <= self.max_pages

    async def run(self, url_for_page: Callable[[int], str], expected_location: Optional[str] = None) -> List[ReviewRecord]:
        state = PaginationState()
        self.pages_fetched = 0

        while self._within_page_budget(state.page) and state.consecutive_empty < self.empty_page_threshold:
            logger.info("[%s] Scraping page %d...", self.tag, state.page)
            request = AcquisitionRequest(url=url_for_page(state.page), expected_location=expected_location)
            extraction = await self._load_page(request)
            if extraction is None or not extraction.records:
                logger.info("[%s] No reviews found on page %d", self.tag, state.page)
                state.consecutive_empty += 1
                state.page += 1
                continue

            state.consecutive_empty = 0
            in_window, before_window = self._collect(extraction.records, state)
            logger.info("[%s] Page %d: %d reviews in date range, %d older", self.tag, state.page, in_window, before_window)

            if before_window > in_window:
                state.consecutive_out_of_range += 1
            else:
                state.consecutive_out_of_range = 0

            if state.consecutive_out_of_range and state.page > config.EARLY_STOP_AFTER_PAGE:
                logger.info("[%s] Stopping - reached reviews outside date range", self.tag)
                break
            if extraction.has_next_page is False:
                logger.info("[%s] Stopping - no further pages", self.tag)
                break

            state.page += 1
            if self.inter_page_delay_s > 0:
                await self._sleep(self.inter_page_delay_s)

        logger.info("[%s] Pagination complete. Total reviews: %d", self.tag, len(state.items))
        return state.items

    async def _load_page(self, request: AcquisitionRequest) -> Optional[PageExtraction]:
        self.pages_fetched += 1
        result = await self.acquirer.acquire(request)
        if not isinstance(result, Ready):
            logger.warning("[%s] Failed to acquire %s: %s %s", self.tag, request.url, result.reason.value, result.detail)
            return None
        extraction = self.extract(result.content)
        if extraction.records:
            return extraction

        recovered = await self.acquirer.recover(request)
        if isinstance(recovered, Ready):
            logger.info("[%s] Retrying extraction after challenge cleared", self.tag)
            return self.extract(recovered.content)
        return extraction

    def _collect(self, records: List[ReviewRecord], state: PaginationState):
        in_window = 0
        before_window = 0
        for record in records:
            review_date = self.parse_date(record.date)
            if review_date is None:
                continue
            if self.window.contains(review_date):
                state.items.append(record)
                in_window += 1
            elif self.window.is_before(review_date):
                before_window += 1
        return in_window, before_window
