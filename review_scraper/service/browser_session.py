"""Long-lived Chrome session used by every navigation of one source scraper.

Lifecycle: created lazily by ``ensure()``, reused until the source run ends,
rebuilt only through ``reconnect()``. Managers attached to the same Chrome never
share a tab: the first one drives the profile's existing tab, later ones open
their own and close it on ``detach()``. The browser process itself is never
closed here - it keeps its profile (cookies, fingerprint trust) across runs.
On a machine without Chrome, ``ensure()`` raises ``SessionUnavailableError``
and only the HTTP-backed sources are usable.
"""
import asyncio
import logging
import os
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from review_scraper.core import config
from review_scraper.core.errors import SessionUnavailableError

logger = logging.getLogger(__name__)

# CDP endpoint -> manager currently driving that browser's first tab.
_primary_tab_owners: Dict[str, "BrowserSessionManager"] = {}


@dataclass
class BrowserSession:
    browser: Browser
    page: Page


def candidate_browser_paths(platform: Optional[str] = None) -> List[str]:
    platform = platform or sys.platform
    if platform.startswith("linux"):
        platform = "linux"
    candidates: List[str] = []
    if config.CHROME_EXECUTABLE_OVERRIDE:
        candidates.append(config.CHROME_EXECUTABLE_OVERRIDE)
    candidates.extend(config.CHROME_EXECUTABLE_CANDIDATES.get(platform, config.CHROME_EXECUTABLE_CANDIDATES["linux"]))
    return candidates


def find_browser_executable(candidates: Optional[Sequence[str]] = None) -> Optional[str]:
    for path in candidates if candidates is not None else candidate_browser_paths():
        if path and os.path.isfile(path):
            logger.info("Found Chrome at: %s", path)
            return path
    return None


def manual_launch_hint(port: int) -> str:
    return (
        "Could not connect to Chrome. Start it manually with a debug port and re-run:\n"
        f"  Windows:   chrome.exe --remote-debugging-port={port}\n"
        f"  Mac/Linux: google-chrome --remote-debugging-port={port}"
    )


class BrowserSessionManager:
    def __init__(
        self,
        host: str = config.CDP_HOST,
        port: int = config.CDP_PORT,
        profile_dir: Path = config.CHROME_PROFILE_DIR,
        executable: Optional[str] = None,
        connect_timeout_s: float = config.CDP_CONNECT_TIMEOUT_S,
        launch_settle_s: float = config.CHROME_LAUNCH_SETTLE_S,
        attach_poll_timeout_s: float = config.CHROME_ATTACH_POLL_TIMEOUT_S,
        attach_poll_interval_s: float = config.CHROME_ATTACH_POLL_INTERVAL_S,
        tag: str = "Browser",
    ):
        self.host = host
        self.port = port
        self.profile_dir = Path(profile_dir)
        self.executable = executable
        self.connect_timeout_s = connect_timeout_s
        self.launch_settle_s = launch_settle_s
        self.attach_poll_timeout_s = attach_poll_timeout_s
        self.attach_poll_interval_s = attach_poll_interval_s
        self.tag = tag
        self._playwright: Optional[Playwright] = None
        self._session: Optional[BrowserSession] = None
        self._dedicated_tab = False
        self._lock = asyncio.Lock()

    @property
    def cdp_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def session(self) -> Optional[BrowserSession]:
        return self._session

    async def ensure(self) -> BrowserSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = await self._acquire_session()
            return self._session

    async def reconnect(self) -> BrowserSession:
        """Replaces a session whose tab or connection died, e.g. after the tab was closed by hand."""
        logger.warning("[%s] Dropping browser session and reconnecting.", self.tag)
        async with self._lock:
            stale, self._session = self._session, None
            if stale is not None:
                await self._close_dedicated_tab(stale)
                await self._disconnect(stale.browser)
        return await self.ensure()

    async def detach(self) -> None:
        """Stops the Playwright driver. The browser process keeps running."""
        session, self._session = self._session, None
        await self._close_dedicated_tab(session)
        self._release_primary_tab()
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("[%s] Error stopping Playwright driver: %s - %s", self.tag, type(e).__name__, e)
            self._playwright = None

    async def _acquire_session(self) -> BrowserSession:
        session = await self._attach()
        if session is not None:
            return session

        logger.info("[%s] No existing Chrome debug session found. Attempting to launch Chrome...", self.tag)
        executable = self.executable or find_browser_executable()
        if executable is None:
            raise SessionUnavailableError("Could not find a Chrome executable. " + manual_launch_hint(self.port))

        self._launch_browser(executable)
        await asyncio.sleep(self.launch_settle_s)

        deadline = time.monotonic() + self.attach_poll_timeout_s
        while True:
            session = await self._attach()
            if session is not None:
                return session
            if time.monotonic() >= deadline:
                break
            await asyncio.sleep(self.attach_poll_interval_s)
        raise SessionUnavailableError(manual_launch_hint(self.port))

    async def _attach(self) -> Optional[BrowserSession]:
        logger.info("[%s] Attempting to connect to Chrome at %s...", self.tag, self.cdp_url)
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            browser = await self._playwright.chromium.connect_over_cdp(
                self.cdp_url, timeout=self.connect_timeout_s * 1000
            )
        except Exception as e:
            logger.info("[%s] Failed to connect to Chrome: %s - %s", self.tag, type(e).__name__, e)
            return None

        if not browser.contexts:
            logger.info("[%s] Failed to connect to Chrome: no browser contexts found", self.tag)
            await self._disconnect(browser)
            return None
        try:
            page = await self._claim_page(browser.contexts[0])
        except PlaywrightError as e:
            logger.info("[%s] Could not open a tab: %s", self.tag, e)
            self._release_primary_tab()
            await self._disconnect(browser)
            return None
        logger.info("[%s] Connected to Chrome instance on port %d", self.tag, self.port)
        return BrowserSession(browser=browser, page=page)

    async def _claim_page(self, context: BrowserContext) -> Page:
        # The profile's first tab carries the cookies the anti-bot checks trust; only one scraper may drive it.
        owner = _primary_tab_owners.get(self.cdp_url)
        if owner is None or owner is self:
            _primary_tab_owners[self.cdp_url] = self
            self._dedicated_tab = False
            return context.pages[0] if context.pages else await context.new_page()
        logger.info("[%s] First tab is in use by another scraper. Opening a dedicated tab.", self.tag)
        self._dedicated_tab = True
        return await context.new_page()

    def _release_primary_tab(self) -> None:
        if _primary_tab_owners.get(self.cdp_url) is self:
            del _primary_tab_owners[self.cdp_url]

    async def _close_dedicated_tab(self, session: Optional[BrowserSession]) -> None:
        if session is None or not self._dedicated_tab:
            return
        self._dedicated_tab = False
        try:
            await session.page.close()
        except PlaywrightError as e:
            logger.debug("[%s] Error closing tab: %s", self.tag, e)

    async def _disconnect(self, browser: Browser) -> None:
        # For a CDP connection this only drops the connection; the Chrome process stays up.
        try:
            await browser.close()
        except PlaywrightError as e:
            logger.debug("[%s] Error dropping CDP connection: %s", self.tag, e)

    def _launch_browser(self, executable: str) -> Any:
        logger.info("[%s] Launching Chrome with debug port %d (profile: %s)", self.tag, self.port, self.profile_dir)
        self.profile_dir.mkdir(parents=True, exist_ok=True)
        args = [
            executable,
            f"--remote-debugging-port={self.port}",
            *config.CHROME_LAUNCH_ARGS,
            f"--user-data-dir={self.profile_dir}",
        ]
        try:
            return subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise SessionUnavailableError(f"Failed to launch Chrome at {executable}: {e}. " + manual_launch_hint(self.port)) from e
