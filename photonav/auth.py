"""
Authentication module: interactive Google sign-in and session persistence.
"""

import os
import logging
from playwright.async_api import Page, BrowserContext

from photonav.utils import get_session_path

logger = logging.getLogger("photonav")

# The gallery is a SPA — never use "networkidle", use "domcontentloaded" instead
WAIT_STRATEGY = "domcontentloaded"
NAV_TIMEOUT = 60_000
SIGN_IN_HOST = "accounts.google.com"
SIGN_IN_WAIT_SECONDS = 300


def _on_sign_in_page(url: str) -> bool:
    lower = url.lower()
    return SIGN_IN_HOST in lower or "/signin" in lower or "/about" in lower


async def is_session_valid(page: Page, start_url: str) -> bool:
    """
    Check whether the saved session still opens the gallery.  Polls the
    URL for a few seconds since the SPA may route through the sign-in
    pages before settling.
    """
    if not os.path.exists(get_session_path()):
        logger.info("No saved session found.")
        return False

    logger.info("Checking if saved session is still valid...")
    try:
        await page.goto(start_url, wait_until=WAIT_STRATEGY, timeout=NAV_TIMEOUT)
        for i in range(10):
            await page.wait_for_timeout(1000)
            logger.debug(f"  Session check {i+1}s: {page.url}")
            if not _on_sign_in_page(page.url):
                logger.info(f"Session is valid — landed on: {page.url}")
                return True
        logger.info(f"Session expired — final URL: {page.url}")
        return False
    except Exception as e:
        logger.warning(f"Session check failed: {e}")
        return False


async def login(page: Page, start_url: str) -> None:
    """
    Let the user sign in by hand in the open browser window and wait
    until the gallery is reached.
    """
    logger.info("Starting login flow...")
    await page.goto(start_url, wait_until=WAIT_STRATEGY, timeout=NAV_TIMEOUT)

    print("\n" + "=" * 60)
    print("  GOOGLE PHOTOS SIGN-IN")
    print("  Sign in in the browser window; this continues on its own.")
    print("=" * 60)

    for i in range(SIGN_IN_WAIT_SECONDS):
        await page.wait_for_timeout(1000)
        if not _on_sign_in_page(page.url):
            logger.info(f"Login successful! Landed on: {page.url}")
            return
        if i and i % 30 == 0:
            logger.info(f"  Still waiting for sign-in ({i}s)...")

    raise RuntimeError(
        f"Login failed — still on the sign-in page after {SIGN_IN_WAIT_SECONDS}s."
    )


async def save_session(context: BrowserContext) -> None:
    """Save browser session (cookies + localStorage) to session.json."""
    session_path = get_session_path()
    await context.storage_state(path=session_path)
    logger.info(f"Session saved to: {session_path}")


async def authenticate(context: BrowserContext, start_url: str) -> Page:
    """
    Full auth flow:
    - Try to restore saved session
    - If expired, wait for an interactive sign-in
    - Save session for future runs
    Returns the signed-in page.
    """
    page = context.pages[0] if context.pages else await context.new_page()
    if await is_session_valid(page, start_url):
        return page

    await login(page, start_url)
    await save_session(context)
    return page
