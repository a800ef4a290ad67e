import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from bs4 import BeautifulSoup

from review_scraper.core import config

logger = logging.getLogger(__name__)


class ChallengeDetector:
    """Spots anti-bot interstitials by widget markers or by their wording."""

    def __init__(
        self,
        selectors: Sequence[str] = config.CHALLENGE_SELECTORS,
        phrases: Sequence[str] = config.CHALLENGE_PHRASES,
        tag: str = "Challenge",
    ):
        self.selectors = tuple(selectors)
        self.phrases = tuple(p.lower() for p in phrases)
        self.tag = tag

    def matches_text(self, text: Optional[str]) -> bool:
        if not text:
            return False
        lowered = text.lower()
        return any(phrase in lowered for phrase in self.phrases)

    async def is_blocked(self, page: Any) -> bool:
        try:
            for selector in self.selectors:
                if await page.query_selector(selector):
                    logger.debug("[%s] Challenge marker present: %s", self.tag, selector)
                    return True
            return self.matches_text(await page.inner_text("body"))
        except Exception as e:
            # A broken detector must not stop acquisition.
            logger.warning("[%s] Error detecting challenge: %s - %s", self.tag, type(e).__name__, e)
            return False

    def inspect_document(self, html: str) -> bool:
        try:
            soup = BeautifulSoup(html, config.DEFAULT_HTML_PARSER)
            if any(soup.select_one(selector) for selector in self.selectors):
                return True
            body = soup.body or soup
            return self.matches_text(body.get_text(" ", strip=True))
        except Exception as e:
            logger.warning("[%s] Error inspecting document: %s - %s", self.tag, type(e).__name__, e)
            return False


class WaitOutcome(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


class PageReadyWaiter:
    """Polls until the challenge clears (and the expected location is reached) or the budget runs out.

    Nothing here solves a challenge; it only observes while the vendor's passive
    checks, or a person at the browser, clear it.
    """

    def __init__(
        self,
        detector: ChallengeDetector,
        poll_interval_s: float = config.PAGE_READY_POLL_INTERVAL_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        tag: str = "Waiter",
    ):
        self.detector = detector
        self.poll_interval_s = poll_interval_s
        self._sleep = sleep
        self._clock = clock
        self.tag = tag

    async def wait(self, page: Any, expected_location: Optional[str] = None, timeout_s: float = config.CHALLENGE_WAIT_TIMEOUT_S) -> WaitOutcome:
        logger.info("[%s] Waiting for page to be ready (budget %.0fs)...", self.tag, timeout_s)
        started = self._clock()
        while True:
            await self._sleep(self.poll_interval_s)
            try:
                current_url = page.url
                blocked = await self.detector.is_blocked(page)
                if not blocked and (expected_location is None or expected_location in current_url):
                    logger.info("[%s] Page ready at %s", self.tag, current_url[:80])
                    return WaitOutcome.READY
                logger.info("[%s] Still waiting... Current URL: %s", self.tag, current_url[:80])
            except Exception as e:
                logger.warning("[%s] Error during wait: %s - %s", self.tag, type(e).__name__, e)

            elapsed = self._clock() - started
            if elapsed >= timeout_s:
                logger.warning("[%s] Wait timeout reached (%.0fs)", self.tag, timeout_s)
                return WaitOutcome.TIMED_OUT
