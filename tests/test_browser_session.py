"""Tests for the browser session bootstrap (attach, launch, re-attach).

The lifecycle tests patch ``_attach`` and ``_launch_browser``. The attach tests
replace ``async_playwright`` with a fake driver whose ``connect_over_cdp``
returns an in-memory Chrome, so no real browser is involved.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from conftest import FakePage
from review_scraper.core.errors import SessionUnavailableError
from review_scraper.service.browser_session import (
    BrowserSession,
    BrowserSessionManager,
    candidate_browser_paths,
    find_browser_executable,
    manual_launch_hint,
)


def _manager(tmp_path, **kwargs) -> BrowserSessionManager:
    kwargs.setdefault("launch_settle_s", 0)
    kwargs.setdefault("attach_poll_timeout_s", 0)
    kwargs.setdefault("attach_poll_interval_s", 0)
    return BrowserSessionManager(profile_dir=tmp_path / "chrome-profile", **kwargs)


def _session() -> BrowserSession:
    browser = MagicMock()
    browser.close = AsyncMock()
    return BrowserSession(browser=browser, page=FakePage())


@pytest.fixture(autouse=True)
def fresh_tab_owners():
    with patch.dict("review_scraper.service.browser_session._primary_tab_owners", clear=True):
        yield


class _FakeContext:
    def __init__(self, pages=()) -> None:
        self.pages = list(pages)
        self.opened = []

    async def new_page(self) -> FakePage:
        page = FakePage()
        self.pages.append(page)
        self.opened.append(page)
        return page


def _fake_chrome(contexts):
    """A CDP connection to one running Chrome; every attach gets a fresh connection object."""
    browser = MagicMock()
    browser.contexts = contexts
    browser.close = AsyncMock()
    return browser


def _patched_driver(connect: AsyncMock):
    driver = MagicMock()
    driver.chromium.connect_over_cdp = connect
    driver.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=driver)
    return patch("review_scraper.service.browser_session.async_playwright", return_value=starter), driver


class TestEnsure:
    async def test_attaches_once_and_reuses(self, tmp_path) -> None:
        manager = _manager(tmp_path)
        session = _session()
        with patch.object(manager, "_attach", AsyncMock(return_value=session)) as attach:
            first = await manager.ensure()
            second = await manager.ensure()

        assert first is session
        assert second is first
        assert attach.await_count == 1
        assert manager.session is session

    async def test_launches_browser_when_nothing_listens(self, tmp_path) -> None:
        manager = _manager(tmp_path, executable="/opt/chrome/chrome", attach_poll_timeout_s=5)
        session = _session()
        with patch.object(manager, "_attach", AsyncMock(side_effect=[None, None, session])) as attach, \
                patch.object(manager, "_launch_browser") as launch:
            result = await manager.ensure()

        assert result is session
        launch.assert_called_once_with("/opt/chrome/chrome")
        assert attach.await_count == 3

    async def test_no_executable_is_fatal(self, tmp_path) -> None:
        manager = _manager(tmp_path)
        with patch.object(manager, "_attach", AsyncMock(return_value=None)), \
                patch("review_scraper.service.browser_session.find_browser_executable", return_value=None):
            with pytest.raises(SessionUnavailableError, match="remote-debugging-port"):
                await manager.ensure()

    async def test_attach_never_succeeds_after_launch(self, tmp_path) -> None:
        manager = _manager(tmp_path, executable="/opt/chrome/chrome")
        with patch.object(manager, "_attach", AsyncMock(return_value=None)) as attach, \
                patch.object(manager, "_launch_browser"):
            with pytest.raises(SessionUnavailableError):
                await manager.ensure()

        assert attach.await_count == 2
        assert manager.session is None

    async def test_reconnect_builds_a_new_session(self, tmp_path) -> None:
        manager = _manager(tmp_path)
        old, new = _session(), _session()
        with patch.object(manager, "_attach", AsyncMock(side_effect=[old, new])):
            await manager.ensure()
            replaced = await manager.reconnect()

        assert replaced is new
        assert manager.session is new
        old.browser.close.assert_awaited_once()

    async def test_detach_without_driver_is_noop(self, tmp_path) -> None:
        manager = _manager(tmp_path)
        with patch.object(manager, "_attach", AsyncMock(return_value=_session())):
            await manager.ensure()
        await manager.detach()
        assert manager.session is None


# ---------------------------------------------------------------------------
# Attaching over CDP
# ---------------------------------------------------------------------------

class TestAttach:
    async def test_reuses_existing_tab(self, tmp_path) -> None:
        tab = FakePage()
        context = _FakeContext([tab])
        connect = AsyncMock(side_effect=lambda *args, **kwargs: _fake_chrome([context]))
        driver_patch, _ = _patched_driver(connect)
        manager = _manager(tmp_path, host="127.0.0.1", port=9333, connect_timeout_s=5)

        with driver_patch:
            session = await manager.ensure()

        assert session.page is tab
        assert context.opened == []
        connect.assert_awaited_once_with("http://127.0.0.1:9333", timeout=5000)

    async def test_opens_tab_when_context_has_none(self, tmp_path) -> None:
        context = _FakeContext()
        driver_patch, _ = _patched_driver(AsyncMock(side_effect=lambda *args, **kwargs: _fake_chrome([context])))

        with driver_patch:
            session = await _manager(tmp_path).ensure()

        assert context.opened == [session.page]

    async def test_concurrent_scrapers_never_share_a_tab(self, tmp_path) -> None:
        tab = FakePage()
        context = _FakeContext([tab])
        driver_patch, _ = _patched_driver(AsyncMock(side_effect=lambda *args, **kwargs: _fake_chrome([context])))
        g2 = _manager(tmp_path, tag="G2-acme")
        capterra = _manager(tmp_path, tag="Capterra-acme")

        with driver_patch:
            g2_session, capterra_session = await asyncio.gather(g2.ensure(), capterra.ensure())

        assert g2_session.page is not capterra_session.page
        assert tab in (g2_session.page, capterra_session.page)
        assert len(context.opened) == 1

    async def test_detach_closes_own_tab_and_frees_first_tab(self, tmp_path) -> None:
        tab = FakePage()
        context = _FakeContext([tab])
        driver_patch, _ = _patched_driver(AsyncMock(side_effect=lambda *args, **kwargs: _fake_chrome([context])))
        g2 = _manager(tmp_path, tag="G2-acme")
        capterra = _manager(tmp_path, tag="Capterra-acme")
        trustpilot = _manager(tmp_path, tag="later")

        with driver_patch:
            assert (await g2.ensure()).page is tab
            own_tab = (await capterra.ensure()).page
            await capterra.detach()
            await g2.detach()
            later = await trustpilot.ensure()

        assert own_tab.closed is True
        assert tab.closed is False
        assert later.page is tab

    async def test_no_contexts_drops_the_connection(self, tmp_path) -> None:
        chrome = _fake_chrome([])
        driver_patch, _ = _patched_driver(AsyncMock(return_value=chrome))
        manager = _manager(tmp_path)

        with driver_patch:
            assert await manager._attach() is None

        chrome.close.assert_awaited_once()

    async def test_failed_new_tab_drops_the_connection(self, tmp_path) -> None:
        context = _FakeContext()
        context.new_page = AsyncMock(side_effect=PlaywrightError("Target page, context or browser has been closed"))
        chrome = _fake_chrome([context])
        driver_patch, _ = _patched_driver(AsyncMock(return_value=chrome))
        first, second = _manager(tmp_path), _manager(tmp_path)

        with driver_patch:
            assert await first._attach() is None
            context.new_page = AsyncMock(return_value=FakePage())
            session = await second._attach()

        chrome.close.assert_awaited_once()
        assert session is not None

    async def test_connect_error_is_no_session(self, tmp_path) -> None:
        connect = AsyncMock(side_effect=PlaywrightError("connect ECONNREFUSED 127.0.0.1:9222"))
        driver_patch, _ = _patched_driver(connect)

        with driver_patch:
            assert await _manager(tmp_path)._attach() is None


class TestLaunch:
    def test_launch_args_and_profile_dir(self, tmp_path) -> None:
        manager = _manager(tmp_path, port=9333)
        with patch("review_scraper.service.browser_session.subprocess.Popen") as popen:
            manager._launch_browser("/opt/chrome/chrome")

        args = popen.call_args.args[0]
        assert args[0] == "/opt/chrome/chrome"
        assert "--remote-debugging-port=9333" in args
        assert "--no-first-run" in args
        assert f"--user-data-dir={tmp_path / 'chrome-profile'}" in args
        assert (tmp_path / "chrome-profile").is_dir()
        assert popen.call_args.kwargs["start_new_session"] is True

    def test_launch_failure_is_session_unavailable(self, tmp_path) -> None:
        manager = _manager(tmp_path)
        with patch("review_scraper.service.browser_session.subprocess.Popen", side_effect=OSError("exec format error")):
            with pytest.raises(SessionUnavailableError, match="exec format error"):
                manager._launch_browser("/opt/chrome/chrome")

    def test_cdp_url(self, tmp_path) -> None:
        assert _manager(tmp_path, host="127.0.0.1", port=9444).cdp_url == "http://127.0.0.1:9444"


class TestExecutableDiscovery:
    def test_finds_first_existing_candidate(self, tmp_path) -> None:
        chrome = tmp_path / "chrome"
        chrome.write_text("")
        assert find_browser_executable([str(tmp_path / "missing"), str(chrome)]) == str(chrome)

    def test_none_when_nothing_installed(self, tmp_path) -> None:
        assert find_browser_executable([str(tmp_path / "missing")]) is None

    def test_platform_lists(self) -> None:
        assert any("Google Chrome.app" in path for path in candidate_browser_paths("darwin"))
        assert "/usr/bin/google-chrome" in candidate_browser_paths("linux2")
        assert any(path.endswith("chrome.exe") for path in candidate_browser_paths("win32"))

    def test_manual_hint_names_the_port(self) -> None:
        assert "--remote-debugging-port=9222" in manual_launch_hint(9222)
