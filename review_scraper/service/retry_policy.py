import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from review_scraper.core import config
from review_scraper.core.errors import (
    AcquisitionError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    TransientTransportError,
)
from review_scraper.schema.acquisition import AcquisitionResult, Failed, FailureReason, Ready
from review_scraper.service.transport import TransportClient

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class BackoffState:
    """User-agent rotation (kept for the client's lifetime) and the per-call attempt counter."""

    def __init__(self, user_agents: Sequence[str] = config.USER_AGENT_POOL):
        if not user_agents:
            raise ValueError("user_agents must not be empty")
        self._pool = tuple(user_agents)
        self._index = 0
        self.attempt = 0

    @property
    def user_agent(self) -> str:
        return self._pool[self._index]

    def rotate_user_agent(self) -> str:
        self._index = (self._index + 1) % len(self._pool)
        return self.user_agent

    def reset(self) -> None:
        self.attempt = 0


def classify_response(url: str, response: httpx.Response) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 404:
        raise NotFoundError(url, "Page not found (404) - URL may be incorrect", status)
    if status == 429:
        raise RateLimitedError(url, "Rate limited (429)", status)
    if status == 403:
        raise ForbiddenError(url, "Access forbidden (403)", status)
    raise TransientTransportError(url, f"Unexpected HTTP status {status}", status)


class RetryingFetcher:
    def __init__(
        self,
        transport: Optional[TransportClient] = None,
        max_retries: int = config.HTTP_MAX_RETRIES,
        base_delay_s: float = config.RETRY_BASE_DELAY_S,
        forbidden_cooldown_s: float = config.FORBIDDEN_COOLDOWN_S,
        request_delay_s: float = config.DEFAULT_REQUEST_DELAY_S,
        jitter_s: float = config.REQUEST_JITTER_S,
        user_agents: Sequence[str] = config.USER_AGENT_POOL,
        sleep: SleepFn = asyncio.sleep,
        tag: str = "HTTP",
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._transport = transport or TransportClient()
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self.forbidden_cooldown_s = forbidden_cooldown_s
        self.request_delay_s = request_delay_s
        self.jitter_s = jitter_s
        self.state = BackoffState(user_agents)
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.tag = tag

    async def fetch(self, url: str, timeout_s: Optional[float] = None) -> AcquisitionResult:
        # One call at a time per instance: the attempt counter is not shareable.
        async with self._lock:
            return await self._fetch_with_retries(url, timeout_s)

    async def _fetch_with_retries(self, url: str, timeout_s: Optional[float]) -> AcquisitionResult:
        self.state.reset()
        last_error: Optional[AcquisitionError] = None
        for attempt in range(self.max_retries):
            self.state.attempt = attempt
            await self._pace()
            logger.info("[%s] Fetching: %s%s", self.tag, url[:80], "..." if len(url) > 80 else "")
            try:
                response = await self._transport.get(url, self.state.user_agent, timeout_s)
                classify_response(url, response)
                logger.info("[%s] Request successful (%s), content length: %d chars", self.tag, response.status_code, len(response.text))
                return Ready(content=response.text, final_url=str(response.url))
            except NotFoundError as e:
                logger.warning("[%s] %s: %s", self.tag, e, url)
                return Failed(FailureReason.NOT_FOUND, str(e))
            except ForbiddenError as e:
                last_error = e
                new_agent = self.state.rotate_user_agent()
                logger.warning("[%s] Access forbidden. New User-Agent: %s...", self.tag, new_agent[:50])
            except (RateLimitedError, TransientTransportError) as e:
                last_error = e
                logger.warning("[%s] Attempt %d/%d failed: %s", self.tag, attempt + 1, self.max_retries, e)
            except httpx.HTTPError as e:
                last_error = TransientTransportError(url, f"{type(e).__name__}: {e}")
                logger.warning("[%s] Attempt %d/%d failed: %s", self.tag, attempt + 1, self.max_retries, last_error)

            if attempt < self.max_retries - 1:
                delay = self.backoff_delay(last_error, attempt)
                logger.info("[%s] Waiting %.1fs before retry...", self.tag, delay)
                await self._sleep(delay)

        logger.error("[%s] Failed to fetch %s after %d attempts: %s", self.tag, url, self.max_retries, last_error)
        reason = FailureReason.BLOCKED if isinstance(last_error, ForbiddenError) else FailureReason.TRANSPORT_ERROR
        return Failed(reason, str(last_error))

    def backoff_delay(self, error: Optional[AcquisitionError], attempt: int) -> float:
        if isinstance(error, RateLimitedError):
            return (2 ** attempt) * self.base_delay_s
        if isinstance(error, ForbiddenError):
            return self.forbidden_cooldown_s
        return self.base_delay_s * (attempt + 1)

    async def _pace(self) -> None:
        delay = self.request_delay_s
        if self.jitter_s > 0:
            delay += random.uniform(0, self.jitter_s)
        if delay > 0:
            await self._sleep(delay)

    async def aclose(self) -> None:
        await self._transport.aclose()
