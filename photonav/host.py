"""
Host page adapter: the primitives workflows use to read and act on the
gallery's live document.

Every selector, role, label and tag name the automation relies on lives
here.  They describe the gallery's current markup, not anything stable,
so keeping them in one place means a markup change only touches this
module.
"""

import itertools
import logging
from dataclasses import dataclass

from playwright.async_api import Page, ElementHandle, Error as PlaywrightError

from photonav.album_menu import MenuEntry
from photonav.change_wait import ChangeSubscription

logger = logging.getLogger("photonav")

# The gallery wraps each view in a <c-wiz>; its parent is what gets
# rebuilt on navigation.
SCOPE_TAG = "c-wiz"

INPUT_SELECTOR = "input, textarea"
MORE_OPTIONS_SELECTOR = '[aria-label="More options"][aria-haspopup]'
MENU_SELECTOR = '[role="menu"]'
MENU_ITEM_SELECTOR = '[role="menuitem"]'
DIALOG_SELECTOR = '[role="dialog"]'
LISTBOX_SELECTOR = '[role="listbox"], [role="list"]'
EDIT_LOCATION_SELECTOR = '[aria-label="Edit location"]'

# Rendered: has an offsetParent, or a box (position: fixed has no offsetParent).
_VISIBLE_JS = "el => !!(el.offsetParent || el.getClientRects().length)"

_FIRST_VISIBLE_JS = """
(root, selector) => [...root.querySelectorAll(selector)]
  .find(el => el.offsetParent || el.getClientRects().length) || null
"""

_FIRST_VISIBLE_IN_DOCUMENT_JS = f"selector => ({_FIRST_VISIBLE_JS})(document, selector)"

_ANY_VISIBLE_JS = """
selector => [...document.querySelectorAll(selector)]
  .some(el => el.offsetParent || el.getClientRects().length)
"""

# Icon buttons: a visible parent with a click jsaction whose only child is
# the <svg>, outside any menubar.
_ICON_BUTTONS_JS = """
() => [...document.querySelectorAll('svg')].map(svg => svg.parentElement).filter(button => {
  if (!button || !button.offsetParent) return false;
  if (!/click:/.test(button.getAttribute('jsaction') || '')) return false;
  if (button.children.length !== 1) return false;
  return !button.closest('[role="menubar"]');
})
"""

_ICON_PATH_JS = """
button => {
  const path = [...button.firstElementChild.children].find(child => child.localName === 'path');
  return path ? path.getAttribute('d') : null;
}
"""

# Text of each menu entry, split into its label and trailing accelerator.
_MENU_TEXT_JS = """
items => items.map(item => {
  const texts = [];
  const walker = document.createTreeWalker(item, NodeFilter.SHOW_TEXT);
  while (walker.nextNode()) {
    const text = walker.currentNode.textContent.trim();
    if (text) texts.push(text);
  }
  let shortcut = '';
  if (texts.length > 1 && /^\\S+\\+\\S+$|^\\S$/.test(texts[texts.length - 1])) {
    shortcut = texts.pop();
  }
  return {label: texts.join(' '), shortcut};
})
"""

_WATCH_PRESSES_JS = """
([dialog, token]) => {
  const presses = [];
  const snapshot = option => {
    const list = option ? option.closest('[role="listbox"]') : dialog.querySelector('[role="listbox"]');
    if (!list) return;
    const options = [...list.querySelectorAll('[role="option"]')];
    let current = option;
    if (!current) {
      const active = document.activeElement;
      const id = active && active.getAttribute('aria-activedescendant');
      current = (id && document.getElementById(id))
        || options.find(o => o.getAttribute('aria-selected') === 'true');
    }
    if (!current || !options.includes(current)) return;
    const lines = current.innerText.split('\\n').map(s => s.trim()).filter(Boolean);
    presses.push({index: options.indexOf(current), secondary: lines.length > 1});
  };
  const onKey = e => { if (e.key === 'Enter') snapshot(null); };
  const onPointer = e => {
    const option = e.target.closest && e.target.closest('[role="option"]');
    if (option) snapshot(option);
  };
  dialog.addEventListener('keydown', onKey, true);
  dialog.addEventListener('mousedown', onPointer, true);
  window.__photonavWatches = window.__photonavWatches || {};
  window.__photonavWatches[token] = {
    presses,
    remove: () => {
      dialog.removeEventListener('keydown', onKey, true);
      dialog.removeEventListener('mousedown', onPointer, true);
    },
  };
}
"""

_UNWATCH_PRESSES_JS = """
token => {
  const watch = window.__photonavWatches && window.__photonavWatches[token];
  if (!watch) return [];
  watch.remove();
  delete window.__photonavWatches[token];
  return watch.presses;
}
"""


@dataclass
class IconButton:
    handle: ElementHandle
    path_data: str | None


@dataclass(frozen=True)
class OptionPress:
    """State of the location list at the moment of a confirming press."""

    index: int
    has_secondary_text: bool


class LocationPressWatch:
    """
    Scoped listeners recording confirming presses inside the location
    dialog.  Listeners are removed when the ``async with`` block exits,
    however it exits.
    """

    _tokens = itertools.count(1)

    def __init__(self, page: Page, dialog: ElementHandle):
        self._page = page
        self._dialog = dialog
        self._token = f"watch-{next(self._tokens)}"
        self.presses: list[OptionPress] = []

    async def __aenter__(self) -> "LocationPressWatch":
        await self._page.evaluate(_WATCH_PRESSES_JS, [self._dialog, self._token])
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            raw = await self._page.evaluate(_UNWATCH_PRESSES_JS, self._token)
        except PlaywrightError as e:
            # The page went away and took its listeners with it.
            logger.debug(f"Location watch teardown skipped: {e}")
            return
        self.presses = [OptionPress(p["index"], bool(p["secondary"])) for p in raw]


async def _element_list(array_handle) -> list[ElementHandle]:
    """Turn a JS array handle into element handles, in array order."""
    properties = await array_handle.get_properties()
    elements = []
    for key in sorted((k for k in properties if k.isdigit()), key=int):
        handle = properties.pop(key)
        element = handle.as_element()
        if element is None:
            await handle.dispose()
        else:
            elements.append(element)
    # "length" and any other own properties.
    for leftover in properties.values():
        await leftover.dispose()
    await array_handle.dispose()
    return elements


async def _dispose(handle) -> None:
    try:
        await handle.dispose()
    except PlaywrightError as e:
        # Gone along with its page or frame.
        logger.debug(f"Handle already released: {e}")


class HostPage:
    """
    Primitives over one gallery page.

    Every element handle handed out is tracked until ``release()`` or
    ``release_all()``.  The gallery never reloads the document, so a
    handle that is not disposed lives as long as the page.
    """

    def __init__(self, page: Page):
        self.page = page
        self._handles: list[ElementHandle] = []

    @property
    def held_handles(self) -> int:
        return len(self._handles)

    def _track(self, element: ElementHandle | None) -> ElementHandle | None:
        if element is not None:
            self._handles.append(element)
        return element

    async def _element(self, handle) -> ElementHandle | None:
        """Element behind a JS handle, tracked; a non-element handle is disposed at once."""
        element = handle.as_element()
        if element is None:
            await handle.dispose()
            return None
        return self._track(element)

    async def release(self, *nodes) -> None:
        """Dispose handles a workflow looked at and dropped."""
        for node in nodes:
            if node is None:
                continue
            if node in self._handles:
                self._handles.remove(node)
            await _dispose(node)

    async def release_all(self) -> None:
        """Dispose every tracked handle.  Only once the workflow holding them has settled."""
        handles, self._handles = self._handles, []
        for handle in handles:
            await _dispose(handle)
        if handles:
            logger.debug(f"Released {len(handles)} element handle(s)")

    # ── Tree reads ───────────────────────────────────────────────────

    async def document_root(self) -> ElementHandle:
        return await self._element(await self.page.evaluate_handle("() => document.documentElement"))

    async def focused_input(self) -> ElementHandle | None:
        handle = await self.page.evaluate_handle(
            "() => document.querySelector('input:focus, textarea:focus')"
        )
        return await self._element(handle)

    async def parent(self, node: ElementHandle) -> ElementHandle | None:
        return await self._element(await node.evaluate_handle("node => node.parentElement"))

    async def local_name(self, node: ElementHandle) -> str:
        return await node.evaluate("node => node.localName")

    async def is_visible(self, node: ElementHandle) -> bool:
        return await node.evaluate(_VISIBLE_JS)

    async def is_attached(self, node: ElementHandle) -> bool:
        return await node.evaluate("node => node.isConnected")

    async def same_element(self, a: ElementHandle, b: ElementHandle) -> bool:
        return await a.evaluate("(a, b) => a === b", b)

    async def first_visible_input(self, root: ElementHandle) -> ElementHandle | None:
        return await self._element(await root.evaluate_handle(_FIRST_VISIBLE_JS, INPUT_SELECTOR))

    async def icon_buttons(self) -> list[IconButton]:
        buttons = await _element_list(await self.page.evaluate_handle(_ICON_BUTTONS_JS))
        for button in buttons:
            self._track(button)
        return [IconButton(b, await b.evaluate(_ICON_PATH_JS)) for b in buttons]

    async def _first_visible(self, selector: str) -> ElementHandle | None:
        return await self._element(await self.page.evaluate_handle(_FIRST_VISIBLE_IN_DOCUMENT_JS, selector))

    async def _any_visible(self, selector: str) -> bool:
        return await self.page.evaluate(_ANY_VISIBLE_JS, selector)

    async def more_options_button(self) -> ElementHandle | None:
        # A hidden copy of the trigger can coexist with the visible one.
        return await self._first_visible(MORE_OPTIONS_SELECTOR)

    async def open_menu(self) -> ElementHandle | None:
        return await self._first_visible(MENU_SELECTOR)

    async def has_open_menu(self) -> bool:
        return await self._any_visible(MENU_SELECTOR)

    async def menu_entries(self, menu: ElementHandle) -> list[MenuEntry]:
        handles = await menu.query_selector_all(MENU_ITEM_SELECTOR)
        for handle in handles:
            self._track(handle)
        texts = await menu.eval_on_selector_all(MENU_ITEM_SELECTOR, _MENU_TEXT_JS)
        return [
            MenuEntry(handle, text["label"], text["shortcut"])
            for handle, text in zip(handles, texts)
        ]

    async def dialog(self) -> ElementHandle | None:
        return await self._first_visible(DIALOG_SELECTOR)

    async def has_dialog(self) -> bool:
        return await self._any_visible(DIALOG_SELECTOR)

    async def dialog_listbox(self, dialog: ElementHandle) -> ElementHandle | None:
        return self._track(await dialog.query_selector(LISTBOX_SELECTOR))

    async def edit_location_button(self) -> ElementHandle | None:
        return await self._first_visible(EDIT_LOCATION_SELECTOR)

    # ── Actions ──────────────────────────────────────────────────────

    async def click(self, node: ElementHandle) -> None:
        """Synthetic activation, like element.click() in the page."""
        await node.evaluate("node => node.click()")

    async def press(self, node: ElementHandle) -> None:
        """Press and release without a click; the gallery's menus act on mouseup."""
        await node.dispatch_event("mousedown")
        await node.dispatch_event("mouseup")

    async def focus(self, node: ElementHandle) -> None:
        await node.focus()

    # ── Observation ──────────────────────────────────────────────────

    async def subscribe(self, node: ElementHandle) -> ChangeSubscription:
        return await ChangeSubscription.start(node)

    def watch_location_presses(self, dialog: ElementHandle) -> LocationPressWatch:
        return LocationPressWatch(self.page, dialog)
