"""
Workflows: the multi-step automations triggered by shortcuts.

Flow shared by all of them:
  1. Take the focused text input; nothing focused means nothing to do.
  2. Walk up to the scope root (parent of the nearest <c-wiz>).  The
     gallery replaces that subtree wholesale when the view changes, so
     all "did it load" checks watch it rather than the input itself.
  3. Act on the page (click / press).
  4. Wait for the page to settle into the expected shape.
  5. Put keyboard focus back into the new view.

A missing control or menu entry is a silent no-op: it usually means the
current screen does not offer the feature.
"""

import asyncio
import logging
from dataclasses import dataclass

from photonav.album_menu import locate_target_menu_item
from photonav.arrows import ControlCandidate, Direction, path_direction
from photonav.change_wait import ChangeTimeout, wait_until
from photonav.host import SCOPE_TAG
from photonav.path_data import PathDataError

logger = logging.getLogger("photonav")


@dataclass
class WorkflowSettings:
    min_menu_entries: int = 3
    menu_retry_delay: float = 0.1
    menu_max_presses: int = 20
    wait_timeout: float | None = None
    album_refocus_timeout: float | None = 10.0
    album_refocus_max_mutations: int | None = 100

    @classmethod
    def from_config(cls, config: dict) -> "WorkflowSettings":
        return cls(
            min_menu_entries=config["min_menu_entries"],
            menu_retry_delay=config["menu_retry_delay_ms"] / 1000,
            menu_max_presses=config["menu_max_presses"],
            wait_timeout=config["wait_timeout"],
            album_refocus_timeout=config["album_refocus_timeout"],
            album_refocus_max_mutations=config["album_refocus_max_mutations"],
        )


# ---------------------------------------------------------------------------
#  Shared steps
# ---------------------------------------------------------------------------

async def find_scope_root(host, control):
    """Parent of the nearest <c-wiz> ancestor of *control*, or None."""
    node = control
    while node is not None:
        if await host.local_name(node) == SCOPE_TAG:
            return await host.parent(node)
        node = await host.parent(node)
    return None


async def _preamble(host):
    """
    Returns (original, scope, stale): the focused input, its scope root,
    and the inputs that must not count as a rebuilt view (the original
    and whichever input is currently first in the scope).
    """
    original = await host.focused_input()
    if original is None:
        logger.debug("No focused input — nothing to do.")
        return None, None, ()
    scope = await find_scope_root(host, original)
    if scope is None:
        logger.debug(f"Focused input has no {SCOPE_TAG} ancestor — nothing to do.")
        return None, None, ()
    front = await host.first_visible_input(scope)
    if front is None or await host.same_element(front, original):
        await host.release(front)
        stale = (original,)
    else:
        stale = (original, front)
    return original, scope, stale


async def _is_stale(host, node, stale) -> bool:
    for old in stale:
        if await host.same_element(node, old):
            return True
    return False


async def wait_for_replacement(host, scope, stale, *, timeout=None, max_mutations=None):
    """
    Wait until the first visible input under *scope* is a new element.

    While the first visible input is still one of *stale* the view has
    not been rebuilt yet, even if other inputs sit beside it.
    """
    async def _replaced():
        current = await host.first_visible_input(scope)
        if current is None:
            return None
        if await _is_stale(host, current, stale):
            await host.release(current)
            return None
        return current

    return await wait_until(host, scope, _replaced, timeout=timeout, max_mutations=max_mutations)


async def locate_arrow_button(host, direction: Direction) -> ControlCandidate | None:
    """
    First icon button, in document order, whose icon is a caret pointing
    in *direction*.  Raises PathDataError if an icon's path is malformed.
    """
    for button in await host.icon_buttons():
        if not button.path_data:
            continue
        candidate = ControlCandidate(button.handle, path_direction(button.path_data))
        if candidate.direction is direction:
            return candidate
    return None


# ---------------------------------------------------------------------------
#  Navigate
# ---------------------------------------------------------------------------

async def navigate(host, direction: Direction, settings: WorkflowSettings = None) -> bool:
    """
    Move to the previous/next photo and keep typing focus.

    Returns True once focus is in the new view, False when there was
    nothing to do.
    """
    settings = settings or WorkflowSettings()
    side = "right" if direction is Direction.RIGHT else "left"

    original, scope, stale = await _preamble(host)
    if original is None:
        return False

    try:
        button = await locate_arrow_button(host, direction)
    except PathDataError as e:
        logger.warning(f"Skipping navigation: unreadable arrow icon ({e})")
        return False
    if button is None:
        logger.info(f"Unable to find {side} arrow button.")
        return False

    logger.debug(f"Clicking {side} arrow")
    await host.click(button.handle)

    replacement = await wait_for_replacement(
        host, scope, stale, timeout=settings.wait_timeout,
    )
    await host.focus(replacement)
    logger.debug(f"Navigated {side}, focus restored")
    return True


# ---------------------------------------------------------------------------
#  Add to album
# ---------------------------------------------------------------------------

async def add_to_album(host, settings: WorkflowSettings = None) -> bool:
    """Open the overflow menu, pick "Add to album", and follow the album dialog."""
    settings = settings or WorkflowSettings()
    timeout = settings.wait_timeout

    original, scope, stale = await _preamble(host)
    if original is None:
        return False

    trigger = await host.more_options_button()
    if trigger is None:
        logger.info("Unable to find the overflow menu button.")
        return False
    await host.click(trigger)

    root = await host.document_root()

    async def _menu_entries():
        menu = await host.open_menu()
        if menu is None:
            return None
        entries = await host.menu_entries(menu)
        if len(entries) < settings.min_menu_entries:
            await host.release(menu, *(entry.handle for entry in entries))
            return None
        return entries

    entries = await wait_until(host, root, _menu_entries, timeout=timeout)
    index = locate_target_menu_item(entries)
    if index is None:
        logger.info("Menu has no entry after download/rotate — cannot add to album.")
        return False
    target = entries[index]
    logger.debug(f"Menu target #{index}: '{target.label}'")

    # No loading indicator: keep pressing until the menu goes away.
    for attempt in range(1, settings.menu_max_presses + 1):
        await host.press(target.handle)
        await asyncio.sleep(settings.menu_retry_delay)
        if not await host.has_open_menu():
            break
        logger.debug(f"  Menu still open after press #{attempt}, retrying...")
    else:
        logger.warning(f"Menu still open after {settings.menu_max_presses} presses — giving up.")
        return False

    dialog = await wait_until(host, root, host.dialog, timeout=timeout)
    listbox = await wait_until(host, dialog, lambda: host.dialog_listbox(dialog), timeout=timeout)
    await host.focus(listbox)
    logger.debug("Album dialog open, list focused")

    await wait_until(host, root, _dialog_closed(host), timeout=timeout)

    try:
        replacement = await wait_for_replacement(
            host, scope, stale,
            timeout=settings.album_refocus_timeout,
            max_mutations=settings.album_refocus_max_mutations,
        )
    except ChangeTimeout:
        # Dismissed without a change: the view is never rebuilt.
        if await host.is_attached(original):
            logger.debug("No replacement input appeared — refocusing the original")
            await host.focus(original)
        else:
            logger.info("No input to refocus after the album dialog closed.")
        return True

    await host.focus(replacement)
    return True


def _dialog_closed(host):
    async def _probe():
        return not await host.has_dialog()
    return _probe


# ---------------------------------------------------------------------------
#  Edit location
# ---------------------------------------------------------------------------

def is_location_edit(press) -> bool:
    """
    A press changes the location unless it confirms the first option as
    it is.  The first option is the current value, unless it carries a
    second line, which marks it as a search result.
    """
    return press.index != 0 or press.has_secondary_text


async def edit_location(host, settings: WorkflowSettings = None) -> bool:
    """Open the location editor and hand focus back once it closes."""
    settings = settings or WorkflowSettings()
    timeout = settings.wait_timeout

    original, scope, stale = await _preamble(host)
    if original is None:
        return False

    button = await host.edit_location_button()
    if button is None:
        logger.info("Unable to find the edit location button.")
        return False
    await host.click(button)

    root = await host.document_root()
    dialog = await wait_until(host, root, host.dialog, timeout=timeout)

    async with host.watch_location_presses(dialog) as watch:
        await wait_until(host, root, _dialog_closed(host), timeout=timeout)

    edited = any(is_location_edit(press) for press in watch.presses)
    logger.debug(f"Location dialog closed ({'edited' if edited else 'unchanged'})")

    if edited:
        current = await wait_for_replacement(host, scope, stale, timeout=timeout)
    elif await host.is_attached(original):
        current = original
    else:
        current = await host.first_visible_input(scope)
    if current is None:
        logger.debug("No input in view after location edit.")
        return True
    await host.focus(current)
    return True
