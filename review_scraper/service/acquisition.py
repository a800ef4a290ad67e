"""Acquisition facade: one interface, two backends chosen per source at construction.

``HttpAcquirer`` - plain GET behind the retry/backoff policy.
``BrowserAcquirer`` - navigates the session's single reused page, waits out
anti-bot challenges and returns the rendered HTML. Every call moves that page,
so callers must not rely on page state surviving an ``acquire``.
"""
import abc
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from review_scraper.core import config
from review_scraper.schema.acquisition import AcquisitionRequest, AcquisitionResult, Failed, FailureReason, Ready
from review_scraper.service.browser_session import BrowserSession, BrowserSessionManager
from review_scraper.service.challenge import ChallengeDetector, PageReadyWaiter, WaitOutcome
from review_scraper.service.retry_policy import RetryingFetcher

logger = logging.getLogger(__name__)

PageHook = Callable[[Any, AcquisitionRequest], Awaitable[None]]

_CLOSED_TARGET_MARKERS = ("has been closed", "Target closed", "Browser closed")


def _is_closed_target(detail: str) -> bool:
    return any(marker in detail for marker in _CLOSED_TARGET_MARKERS)


class DocumentAcquirer(abc.ABC):
    @abc.abstractmethod
    async def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        ...

    async def recover(self, request: AcquisitionRequest) -> Optional[AcquisitionResult]:
        """Second chance for a page that loaded but yielded nothing. ``None`` means no recovery possible."""
        return None

    async def aclose(self) -> None:
        return None


class HttpAcquirer(DocumentAcquirer):
    def __init__(self, fetcher: RetryingFetcher):
        self.fetcher = fetcher

    async def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        return await self.fetcher.fetch(request.url, timeout_s=request.timeout_s)

    async def aclose(self) -> None:
        await self.fetcher.aclose()


class BrowserAcquirer(DocumentAcquirer):
    def __init__(
        self,
        sessions: BrowserSessionManager,
        detector: Optional[ChallengeDetector] = None,
        waiter: Optional[PageReadyWaiter] = None,
        page_hooks: Sequence[PageHook] = (),
        challenge_timeout_s: float = config.CHALLENGE_WAIT_TIMEOUT_S,
        location_timeout_s: float = config.LOCATION_WAIT_TIMEOUT_S,
        settle_s: float = config.POST_NAVIGATION_SETTLE_S,
        content_settle_s: float = config.CONTENT_SETTLE_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        tag: str = "Browser",
    ):
        self.sessions = sessions
        self.detector = detector or ChallengeDetector(tag=tag)
        self.waiter = waiter or PageReadyWaiter(self.detector, tag=tag)
        self.page_hooks = list(page_hooks)
        self.challenge_timeout_s = challenge_timeout_s
        self.location_timeout_s = location_timeout_s
        self.settle_s = settle_s
        self.content_settle_s = content_settle_s
        self._sleep = sleep
        self.tag = tag

    async def acquire(self, request: AcquisitionRequest) -> AcquisitionResult:
        session = await self.sessions.ensure()
        failure = await self._navigate(session.page, request)
        if failure is not None and _is_closed_target(failure.detail):
            logger.warning("[%s] Browser tab or connection was closed. Reconnecting...", self.tag)
            session = await self.sessions.reconnect()
            failure = await self._navigate(session.page, request)
        if failure is not None:
            return failure

        await self._sleep(self.settle_s)

        failure = await self._wait_until_ready(session.page, request)
        if failure is not None:
            return failure
        return await self._capture(session, request)

    async def recover(self, request: AcquisitionRequest) -> Optional[AcquisitionResult]:
        session = self.sessions.session
        if session is None:
            return None
        if not await self.detector.is_blocked(session.page):
            return None
        logger.info("[%s] Challenge detected while scraping! Waiting for resolution...", self.tag)
        outcome = await self.waiter.wait(session.page, request.expected_location, self._challenge_budget(request))
        if outcome is not WaitOutcome.READY:
            logger.warning("[%s] Challenge resolution timeout, moving on.", self.tag)
            return None
        return await self._capture(session, request)

    async def aclose(self) -> None:
        await self.sessions.detach()

    def _challenge_budget(self, request: AcquisitionRequest) -> float:
        return request.challenge_timeout_s if request.challenge_timeout_s is not None else self.challenge_timeout_s

    async def _navigate(self, page: Any, request: AcquisitionRequest) -> Optional[Failed]:
        logger.info("[%s] Navigating to: %s", self.tag, request.url)
        try:
            await page.goto(request.url, wait_until="domcontentloaded", timeout=request.timeout_s * 1000)
        except PlaywrightTimeoutError as e:
            logger.warning("[%s] Navigation timed out: %s", self.tag, e)
            return Failed(FailureReason.TIMEOUT, f"Navigation timed out after {request.timeout_s:.0f}s")
        except PlaywrightError as e:
            logger.warning("[%s] Navigation failed: %s", self.tag, e)
            return Failed(FailureReason.TRANSPORT_ERROR, str(e))
        return None

    async def _wait_until_ready(self, page: Any, request: AcquisitionRequest) -> Optional[Failed]:
        if await self.detector.is_blocked(page):
            budget = self._challenge_budget(request)
            logger.info("[%s] Challenge detected! Waiting for automatic resolution...", self.tag)
            outcome = await self.waiter.wait(page, request.expected_location, budget)
            if outcome is WaitOutcome.TIMED_OUT:
                return Failed(FailureReason.BLOCKED, f"Challenge not resolved within {budget:.0f}s")
        elif request.expected_location and request.expected_location not in page.url:
            logger.info("[%s] Waiting for correct page (expecting: %s)...", self.tag, request.expected_location)
            outcome = await self.waiter.wait(page, request.expected_location, self.location_timeout_s)
            if outcome is WaitOutcome.TIMED_OUT:
                return Failed(FailureReason.TIMEOUT, f"Did not reach a page matching {request.expected_location!r}")
        return None

    async def _capture(self, session: BrowserSession, request: AcquisitionRequest) -> AcquisitionResult:
        page = session.page
        for hook in self.page_hooks:
            try:
                await hook(page, request)
            except PlaywrightError as e:
                logger.debug("[%s] Page hook %s failed: %s", self.tag, getattr(hook, "__name__", hook), e)
        await self._sleep(self.content_settle_s)
        try:
            html = await page.content()
        except PlaywrightError as e:
            logger.error("[%s] Error getting page content: %s", self.tag, e)
            return Failed(FailureReason.TRANSPORT_ERROR, str(e))
        return Ready(content=html, final_url=page.url)
