"""
Utility functions: config loading, logging setup, and diagnostics.
"""

import os
import re
import logging
import yaml
from datetime import datetime


ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.path.join(ROOT_DIR, "logs")
SCREENSHOT_DIR = os.path.join(LOG_DIR, "screenshots")
HTMLDUMP_DIR = os.path.join(LOG_DIR, "htmldumps")

DEFAULT_START_URL = "https://photos.google.com/"

ACTIONS = ("navigate_left", "navigate_right", "add_to_album", "edit_location")

# Key as reported by KeyboardEvent.key -> action name.
DEFAULT_SHORTCUTS = {
    "[": "navigate_left",
    "]": "navigate_right",
    "'": "add_to_album",
    ",": "edit_location",
}


def setup_logging(log_dir: str = LOG_DIR) -> logging.Logger:
    """Configure and return the project logger."""
    logger = logging.getLogger("photonav")
    logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls
    if logger.handlers:
        return logger

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"run_{timestamp}.log")

    # Console handler
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    ch_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
    ch.setFormatter(ch_fmt)

    # File handler
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(name)s — %(message)s")
    fh.setFormatter(fh_fmt)

    logger.addHandler(ch)
    logger.addHandler(fh)

    logger.info(f"Log file: {log_file}")
    return logger


def _optional_number(config: dict, key: str, *, minimum: float, integer: bool = False) -> None:
    value = config[key]
    if value is None:
        return
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds) or value < minimum:
        kind = "int" if integer else "number"
        raise ValueError(f"{key} must be null or a {kind} >= {minimum}, got: {value!r}")


def load_config(config_path: str = None) -> dict:
    """
    Load config.yaml and apply defaults for every key.

    An explicit *config_path* must exist; the default ./config.yaml is
    optional since every setting has a default.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = os.path.join(ROOT_DIR, "config.yaml")

    config = {}
    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    elif explicit:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if not isinstance(config, dict):
        raise ValueError(f"Config file must hold a mapping: {config_path}")

    # Browser
    config.setdefault("start_url", DEFAULT_START_URL)
    config.setdefault("headless", False)
    slow_mo = config.setdefault("slow_mo", 0)
    if isinstance(slow_mo, bool) or not isinstance(slow_mo, int) or slow_mo < 0:
        raise ValueError(f"slow_mo must be int >= 0, got: {slow_mo!r}")

    # Add-to-album menu handling
    delay = config.setdefault("menu_retry_delay_ms", 100)
    if isinstance(delay, bool) or not isinstance(delay, int) or delay < 1:
        raise ValueError(f"menu_retry_delay_ms must be int >= 1, got: {delay!r}")
    presses = config.setdefault("menu_max_presses", 20)
    if isinstance(presses, bool) or not isinstance(presses, int) or presses < 1:
        raise ValueError(f"menu_max_presses must be int >= 1, got: {presses!r}")
    entries = config.setdefault("min_menu_entries", 3)
    if isinstance(entries, bool) or not isinstance(entries, int) or entries < 1:
        raise ValueError(f"min_menu_entries must be int >= 1, got: {entries!r}")

    # Waiting bounds (null = wait forever)
    config.setdefault("wait_timeout", None)
    _optional_number(config, "wait_timeout", minimum=0.1)
    config.setdefault("album_refocus_timeout", 10.0)
    _optional_number(config, "album_refocus_timeout", minimum=0.1)
    config.setdefault("album_refocus_max_mutations", 100)
    _optional_number(config, "album_refocus_max_mutations", minimum=1, integer=True)

    config.setdefault("capture_diagnostics", True)

    # Shortcut keys: action -> key
    defaults = {action: key for key, action in DEFAULT_SHORTCUTS.items()}
    keys = config.get("shortcuts") or {}
    if not isinstance(keys, dict):
        raise ValueError(f"shortcuts must be a mapping of action to key, got: {keys!r}")
    unknown = set(keys) - set(ACTIONS)
    if unknown:
        raise ValueError(f"Unknown shortcut action(s): {', '.join(sorted(unknown))}")
    merged = {**defaults, **keys}
    for action, key in merged.items():
        if not isinstance(key, str) or len(key) != 1:
            raise ValueError(f"Shortcut for '{action}' must be a single character, got: {key!r}")
    if len(set(merged.values())) != len(merged):
        raise ValueError(f"Shortcut keys must be distinct, got: {merged}")
    config["shortcuts"] = {key: action for action, key in merged.items()}

    return config


def get_session_path() -> str:
    """Return the path to the session storage file."""
    return os.path.join(ROOT_DIR, "session.json")


async def capture_diagnostics(page, label: str = "error") -> str | None:
    """
    Save what can be saved about the page after a failed workflow.

    Chain:
      1. Always log page.url and page.title()
      2. page.screenshot() with a hard 5s timeout
      3. On failure → page.content() → save as .html dump

    Returns the file path of the saved screenshot or HTML dump, or None.
    """
    logger = logging.getLogger("photonav")
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_label = re.sub(r"[^\w\-]", "_", label)[:80]

    try:
        current_url = page.url
    except Exception:
        current_url = "<unavailable>"
    try:
        current_title = await page.title()
    except Exception:
        current_title = "<unavailable>"
    logger.debug(f"[diag] url={current_url}  title={current_title}")

    try:
        os.makedirs(SCREENSHOT_DIR, exist_ok=True)
        filepath = os.path.join(SCREENSHOT_DIR, f"{timestamp}_{safe_label}.png")
        await page.screenshot(path=filepath, full_page=False, timeout=5_000)
        logger.info(f"📸 Screenshot saved: {filepath}")
        return filepath
    except Exception as ss_err:
        logger.debug(f"Screenshot failed ({ss_err}) — falling back to HTML dump")

    try:
        os.makedirs(HTMLDUMP_DIR, exist_ok=True)
        html_filepath = os.path.join(HTMLDUMP_DIR, f"{timestamp}_{safe_label}.html")
        html_content = await page.content()
        with open(html_filepath, "w", encoding="utf-8") as f:
            f.write(html_content)
        logger.info(f"📄 HTML dump saved: {html_filepath}")
        return html_filepath
    except Exception as html_err:
        logger.warning(f"HTML dump also failed: {html_err}")
        return None
