"""
Navigator module: open the gallery and wait for it to render.
"""

import logging
from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

logger = logging.getLogger("photonav")

WAIT_STRATEGY = "domcontentloaded"
NAV_TIMEOUT = 60_000

# The gallery is ready once its first view container is attached.
_VIEW_READY = "c-wiz"


async def navigate_to_library(page: Page, start_url: str) -> None:
    """Open *start_url* unless the page is already there, then wait for a view."""
    if page.url.rstrip("/") != start_url.rstrip("/"):
        logger.info(f"Navigating to: {start_url}")
        await page.goto(start_url, wait_until=WAIT_STRATEGY, timeout=NAV_TIMEOUT)
    try:
        await page.wait_for_selector(_VIEW_READY, state="attached", timeout=NAV_TIMEOUT)
    except PlaywrightTimeout:
        # Shortcuts still work once a view appears later.
        logger.warning("Gallery view did not render in time.")
        return
    logger.info("Gallery loaded.")
