import asyncio
import logging
import random
from typing import Any

from playwright.async_api import Error as PlaywrightError

from review_scraper.core import config

logger = logging.getLogger(__name__)

_IS_DISPLAYED_JS = """
elem => {
    if (!elem || !elem.getClientRects || !elem.getClientRects().length) return false;
    const style = window.getComputedStyle(elem);
    if (style.display === 'none' || style.visibility === 'hidden' || parseFloat(style.opacity) < 0.1) return false;
    return true;
}
"""


async def is_element_displayed_js(element: Any) -> bool:
    if not element:
        return False
    try:
        return bool(await element.evaluate(_IS_DISPLAYED_JS))
    except PlaywrightError:
        return False


async def try_click_element(page: Any, element: Any, tag: str = "Click", always_js_click: bool = False) -> bool:
    if not element:
        return False
    try:
        await element.scroll_into_view_if_needed(timeout=config.BROWSER_INTERACTION_TIMEOUT_S * 1000)
        await asyncio.sleep(0.15)
    except PlaywrightError as e:
        logger.debug("[%s] scrollIntoView failed (%s). Proceeding with click attempt.", tag, type(e).__name__)

    if not always_js_click:
        try:
            await element.click(timeout=config.BROWSER_INTERACTION_TIMEOUT_S * 1000)
            return True
        except PlaywrightError as e:
            logger.debug("[%s] Direct click failed (%s). Falling back to JS click.", tag, type(e).__name__)

    for attempt in range(2):
        try:
            if attempt > 0:
                await page.evaluate("() => { window.scrollBy(0, 1); window.scrollBy(0, -1); }")
                await asyncio.sleep(random.uniform(0.5, 1.0 + attempt * 0.5))
            await element.evaluate("el => el.click()")
            return True
        except PlaywrightError as e:
            logger.debug("[%s] JS click attempt %d failed: %s", tag, attempt + 1, str(e)[:100])
    return False


async def handle_specific_overlay_popup(page: Any, tag: str) -> bool:
    try:
        for button in await page.query_selector_all(config.OVERLAY_POPUP_CLOSE_BUTTON_SELECTOR):
            if await is_element_displayed_js(button) and await try_click_element(page, button, f"{tag}-OverlayPopup", always_js_click=True):
                logger.info("[%s] Closed overlay popup.", tag)
                await asyncio.sleep(0.7)
                return True
    except PlaywrightError as e:
        logger.debug("[%s] Error handling overlay popup: %s - %s", tag, type(e).__name__, e)
    return False


async def expand_read_more_buttons(page: Any, tag: str) -> int:
    """Clicks every "Continue Reading" button after the first (which the site pre-expands)."""
    try:
        buttons = await page.query_selector_all(config.CONTINUE_READING_BUTTON_SELECTOR)
    except PlaywrightError as e:
        logger.debug("[%s] Could not list read-more buttons: %s", tag, e)
        return 0
    expanded = 0
    for button in buttons[1:]:
        try:
            await button.click(timeout=config.BROWSER_INTERACTION_TIMEOUT_S * 1000)
            expanded += 1
            await asyncio.sleep(random.uniform(0.1, 0.2))
        except PlaywrightError:
            continue
    if expanded:
        await asyncio.sleep(0.3)
    logger.debug("[%s] Expanded %d of %d read-more buttons.", tag, expanded, len(buttons))
    return expanded


async def set_sort_to_most_recent(page: Any, tag: str) -> bool:
    """Walks the sort menu; some steps only exist in one of the two layouts, so misses are skipped."""
    clicked_any = False
    for selector in config.SORT_MENU_SELECTORS:
        try:
            await page.click(selector, timeout=config.SORT_CONTROL_TIMEOUT_S * 1000)
            clicked_any = True
        except PlaywrightError:
            logger.debug("[%s] Sort control not present: %s", tag, selector)
        await asyncio.sleep(random.uniform(0.09, 0.12))
    await asyncio.sleep(0.4)
    if clicked_any:
        logger.info("[%s] Sort set to most recent.", tag)
    return clicked_any
