import logging
from typing import Dict, Optional

import httpx

from review_scraper.core import config

logger = logging.getLogger(__name__)


class TransportClient:
    """Single GET requests over one pooled ``httpx.AsyncClient``."""

    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        timeout_s: float = config.HTTP_TIMEOUT_S,
        max_redirects: int = config.HTTP_MAX_REDIRECTS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_s = timeout_s
        self._client = client or httpx.AsyncClient(
            headers=dict(headers if headers is not None else config.HTTP_DEFAULT_HEADERS),
            timeout=timeout_s,
            follow_redirects=True,
            max_redirects=max_redirects,
        )

    async def get(self, url: str, user_agent: str, timeout_s: Optional[float] = None) -> httpx.Response:
        """Issue one GET. Any status is returned as-is; network failures raise ``httpx.HTTPError``."""
        response = await self._client.get(
            url,
            headers={"User-Agent": user_agent},
            timeout=timeout_s if timeout_s is not None else self.timeout_s,
        )
        logger.debug("GET %s -> %s (%d chars)", url, response.status_code, len(response.text))
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
