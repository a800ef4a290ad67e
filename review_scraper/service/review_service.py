import asyncio
import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from review_scraper.core import config
from review_scraper.core.errors import ChallengeTimeoutError, ProductNotFoundError, ReviewScraperError
from review_scraper.schema.acquisition import AcquisitionBackend, AcquisitionRequest, DateWindow, FailureReason, Ready
from review_scraper.schema.review_models import ReviewRecord, RunMetadata, ScrapeOutput, SourceKind, SourceResult
from review_scraper.service.acquisition import BrowserAcquirer, DocumentAcquirer, HttpAcquirer
from review_scraper.service.browser_session import BrowserSessionManager
from review_scraper.service.pagination import PaginationController
from review_scraper.service.retry_policy import RetryingFetcher
from review_scraper.service.review_parser import extract_page, find_product_url
from review_scraper.service.sources import SOURCE_PROFILES, SourceProfile
from review_scraper.utils.parsing_helpers import parse_review_date

logger = logging.getLogger(__name__)


def validate_company_name(company: Optional[str]) -> str:
    if not isinstance(company, str) or not company.strip():
        raise ValueError("Company name must be a non-empty string")
    return company.strip()


def _task_tag(kind: SourceKind, company: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", company.lower()).strip("-")
    return f"{kind.label}-{slug[:10] or 'company'}"


class SourceScraper:
    """Discovers a company's product page on one source and paginates its reviews."""

    def __init__(
        self,
        profile: SourceProfile,
        acquirer: DocumentAcquirer,
        inter_page_delay_s: float = config.INTER_PAGE_DELAY_S,
        tag: Optional[str] = None,
    ):
        self.profile = profile
        self.acquirer = acquirer
        self.inter_page_delay_s = inter_page_delay_s
        self.tag = tag or profile.kind.label

    @property
    def kind(self) -> SourceKind:
        return self.profile.kind

    async def find_product_url(self, company: str) -> str:
        company = validate_company_name(company)
        search_url = self.profile.search_url(company)
        logger.info("[%s] Searching %s for: %s", self.tag, self.kind.label, company)
        request = AcquisitionRequest(
            url=search_url,
            expected_location=self.profile.search_expected_location(company),
            challenge_timeout_s=self.profile.search_challenge_timeout_s,
        )
        result = await self.acquirer.acquire(request)
        if not isinstance(result, Ready):
            if result.reason is FailureReason.BLOCKED:
                raise ChallengeTimeoutError(search_url, f"{self.kind.label} search stayed blocked: {result.detail}")
            logger.warning("[%s] Search page failed: %s %s", self.tag, result.reason.value, result.detail)
            raise ProductNotFoundError(self.kind.label, company)

        product_url = find_product_url(self.kind, result.content)
        if not product_url:
            recovered = await self.acquirer.recover(request)
            if isinstance(recovered, Ready):
                product_url = find_product_url(self.kind, recovered.content)
        if not product_url:
            logger.info("[%s] No search results found for %s", self.tag, company)
            raise ProductNotFoundError(self.kind.label, company)
        logger.info("[%s] Found %s URL: %s", self.tag, self.kind.label, product_url)
        return product_url

    async def scrape(self, company: str, window: DateWindow, max_pages: int = config.DEFAULT_MAX_PAGES) -> List[ReviewRecord]:
        logger.info("[%s] Starting %s scraping for %s...", self.tag, self.kind.label, company)
        product_url = await self.find_product_url(company)
        controller = PaginationController(
            self.acquirer,
            extract=lambda html: extract_page(self.kind, html),
            window=window,
            empty_page_threshold=self.profile.empty_page_threshold,
            max_pages=max_pages,
            inter_page_delay_s=self.inter_page_delay_s,
            tag=self.tag,
        )
        reviews = await controller.run(
            lambda page: self.profile.listing_url(product_url, page),
            expected_location=self.profile.listing_expected_location,
        )
        logger.info("[%s] %s scraping complete. Found %d reviews in date range over %d pages.", self.tag, self.kind.label, len(reviews), controller.pages_fetched)
        return reviews

    async def aclose(self) -> None:
        await self.acquirer.aclose()


ScraperFactory = Callable[[SourceKind, str, float], SourceScraper]


def build_source_scraper(kind: SourceKind, company: str, request_delay_s: float = config.DEFAULT_REQUEST_DELAY_S) -> SourceScraper:
    profile = SOURCE_PROFILES[kind]
    tag = _task_tag(kind, company)
    if profile.backend is AcquisitionBackend.HTTP:
        acquirer: DocumentAcquirer = HttpAcquirer(RetryingFetcher(request_delay_s=request_delay_s, tag=tag))
    else:
        acquirer = BrowserAcquirer(BrowserSessionManager(tag=tag), page_hooks=profile.page_hooks(tag), tag=tag)
    return SourceScraper(profile, acquirer, tag=tag)


async def _scrape_one_source(
    kind: SourceKind,
    company: str,
    window: DateWindow,
    request_delay_s: float,
    max_pages: int,
    scraper_factory: ScraperFactory,
) -> List[ReviewRecord]:
    scraper = scraper_factory(kind, company, request_delay_s)
    try:
        return await scraper.scrape(company, window, max_pages)
    finally:
        await scraper.aclose()


def _record_outcome(kind: SourceKind, outcome: Union[List[ReviewRecord], BaseException], reviews: List[ReviewRecord], results: Dict[str, SourceResult]) -> None:
    if isinstance(outcome, ReviewScraperError):
        logger.error("[%s] Scraping failed: %s", kind.label, outcome)
        results[kind.value] = SourceResult(success=False, error=str(outcome))
    elif isinstance(outcome, Exception):
        logger.error("[%s] Unexpected error: %s - %s", kind.label, type(outcome).__name__, outcome, exc_info=outcome)
        results[kind.value] = SourceResult(success=False, error=f"{type(outcome).__name__}: {outcome}")
    elif isinstance(outcome, BaseException):
        raise outcome
    else:
        reviews.extend(outcome)
        results[kind.value] = SourceResult(success=True, count=len(outcome))
        logger.info("[%s] Found %d reviews", kind.label, len(outcome))


def sort_reviews_newest_first(reviews: Sequence[ReviewRecord]) -> List[ReviewRecord]:
    dated = []
    undated = []
    for review in reviews:
        review_date = parse_review_date(review.date)
        if review_date is None:
            undated.append(review)
        else:
            dated.append((review_date, review))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [review for _, review in dated] + undated


async def scrape_reviews_async(
    company: str,
    window: DateWindow,
    sources: Sequence[SourceKind],
    request_delay_s: float = config.DEFAULT_REQUEST_DELAY_S,
    max_pages: int = config.DEFAULT_MAX_PAGES,
    parallel: bool = False,
    scraper_factory: ScraperFactory = build_source_scraper,
) -> ScrapeOutput:
    company = validate_company_name(company)
    overall_start_time = time.perf_counter()
    reviews: List[ReviewRecord] = []
    results: Dict[str, SourceResult] = {}

    if parallel:
        tasks = [
            asyncio.create_task(
                _scrape_one_source(kind, company, window, request_delay_s, max_pages, scraper_factory),
                name=f"scrape_{kind.value}",
            )
            for kind in sources
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for kind, outcome in zip(sources, outcomes):
            _record_outcome(kind, outcome, reviews, results)
    else:
        for kind in sources:
            try:
                outcome = await _scrape_one_source(kind, company, window, request_delay_s, max_pages, scraper_factory)
            except Exception as e:
                outcome = e
            _record_outcome(kind, outcome, reviews, results)

    duration = round(time.perf_counter() - overall_start_time, 2)
    ordered = sort_reviews_newest_first(reviews)
    metadata = RunMetadata(
        company=company,
        sources_requested=list(sources),
        start_date=window.start.isoformat(),
        end_date=window.end.isoformat(),
        total_reviews=len(ordered),
        scraped_at=datetime.now(timezone.utc).isoformat(),
        scraping_duration_seconds=duration,
        scraper_version=config.APP_VERSION,
        scraping_results=results,
    )
    return ScrapeOutput(metadata=metadata, reviews=ordered)


def write_output(output: ScrapeOutput, path: Union[str, Path]) -> Path:
    target = Path(path)
    if target.parent and not target.parent.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(output.model_dump(mode="json"), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Results saved to: %s", target)
    return target
