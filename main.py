"""
Google Photos keyboard navigation — Entry Point

Opens the gallery in a browser window and adds Ctrl-shortcuts that work
while typing in a photo's description field:

    Ctrl+[   previous photo        Ctrl+]   next photo
    Ctrl+'   add to album          Ctrl+,   edit location

Usage:
    python main.py
    python main.py --config path/to/config.yaml
"""

import argparse
import asyncio
import os
import sys

from playwright.async_api import async_playwright

from photonav.auth import authenticate
from photonav.host import HostPage
from photonav.navigator import navigate_to_library
from photonav.serializer import TaskSerializer
from photonav.shortcuts import ShortcutDispatcher, install_shortcuts
from photonav.utils import setup_logging, load_config, get_session_path, capture_diagnostics
from photonav.workflows import WorkflowSettings

# How long to let a running workflow finish on shutdown.
SHUTDOWN_GRACE_SECONDS = 5


async def run(config: dict, logger) -> None:
    session_path = get_session_path()

    async with async_playwright() as p:
        browser = await p.chromium.launch(
            headless=config["headless"],
            slow_mo=config["slow_mo"],
        )
        serializer = TaskSerializer()
        page = None
        try:
            ctx_opts: dict = {}
            if os.path.exists(session_path):
                logger.info("Loading saved session...")
                ctx_opts["storage_state"] = session_path
            context = await browser.new_context(**ctx_opts)

            # Shortcuts go in before the first navigation so the listener
            # is present in every document the gallery loads.
            page = await context.new_page()
            dispatcher = ShortcutDispatcher(
                HostPage(page),
                serializer,
                WorkflowSettings.from_config(config),
                shortcuts=config["shortcuts"],
                diagnostics=config["capture_diagnostics"],
            )
            await install_shortcuts(context, dispatcher)

            page = await authenticate(context, config["start_url"])
            await navigate_to_library(page, config["start_url"])

            logger.info("Ready. Close the browser window or press Ctrl+C to quit.")
            closed = asyncio.Event()
            page.on("close", lambda _: closed.set())
            browser.on("disconnected", lambda _: closed.set())
            await closed.wait()
        except Exception as e:
            logger.error(f"Session error: {e}")
            if page is not None and not page.is_closed():
                await capture_diagnostics(page, "session_error")
            raise
        finally:
            if serializer.pending:
                logger.info(f"Waiting for {serializer.pending} workflow(s) to finish...")
                if not await serializer.join(SHUTDOWN_GRACE_SECONDS):
                    logger.warning("Workflow still waiting on the page — abandoning it.")
            logger.info("Closing browser...")
            try:
                await browser.close()
            except Exception:
                pass


def main():
    # ── Parse arguments ──────────────────────────────────────────────
    parser = argparse.ArgumentParser(
        description="Keyboard shortcuts for Google Photos"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to config.yaml (default: ./config.yaml if present)"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without a browser window (for smoke tests only)"
    )
    args = parser.parse_args()

    # ── Setup ────────────────────────────────────────────────────────
    logger = setup_logging()
    config = load_config(args.config)
    if args.headless:
        config["headless"] = True

    logger.info("Configuration loaded:")
    logger.info(f"  Start URL:        {config['start_url']}")
    logger.info(f"  Headless:         {config['headless']}")
    logger.info(f"  Wait timeout:     {config['wait_timeout'] or 'none'}")
    logger.info(f"  Album refocus:    {config['album_refocus_timeout']}s / "
                f"{config['album_refocus_max_mutations']} changes")

    try:
        asyncio.run(run(config, logger))
    except KeyboardInterrupt:
        logger.info("\nCtrl+C detected. Shutting down...")
    except Exception:
        sys.exit(1)
    logger.info("Goodbye!")


if __name__ == "__main__":
    main()
