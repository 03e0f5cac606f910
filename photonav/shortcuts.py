"""
Keyboard shortcuts: the in-page keydown listener and the dispatcher that
turns recognised presses into queued workflows.

The listener runs in the page (it has to call preventDefault while the
event is still being dispatched) and forwards matching presses to Python
through an exposed binding.  Python re-checks every forwarded press.
"""

import json
import logging
from dataclasses import dataclass

from photonav.arrows import Direction
from photonav.host import HostPage
from photonav.utils import DEFAULT_SHORTCUTS, capture_diagnostics
from photonav.workflows import add_to_album, edit_location, navigate

logger = logging.getLogger("photonav")

BINDING_NAME = "photonavShortcut"

# keyCode reported while an IME composition is in progress.
IME_KEY_CODE = 229

_KEYDOWN_TEMPLATE = """
(() => {
  const shortcuts = %(shortcuts)s;
  document.addEventListener('keydown', e => {
    if (e.keyCode === %(ime)d || e.isComposing) return;
    const target = e.target;
    if (!target || (target.localName !== 'input' && target.localName !== 'textarea')) return;
    if (e.altKey || !e.ctrlKey || e.metaKey || e.shiftKey) return;
    if (!Object.prototype.hasOwnProperty.call(shortcuts, e.key)) return;
    e.preventDefault();
    window.%(binding)s({
      key: e.key,
      keyCode: e.keyCode,
      isComposing: e.isComposing,
      altKey: e.altKey,
      ctrlKey: e.ctrlKey,
      metaKey: e.metaKey,
      shiftKey: e.shiftKey,
      target: target.localName,
    });
  }, true);
})();
"""


@dataclass(frozen=True)
class KeyPress:
    key: str
    key_code: int = 0
    is_composing: bool = False
    alt: bool = False
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    target: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "KeyPress":
        return cls(
            key=payload.get("key", ""),
            key_code=payload.get("keyCode") or 0,
            is_composing=bool(payload.get("isComposing")),
            alt=bool(payload.get("altKey")),
            ctrl=bool(payload.get("ctrlKey")),
            meta=bool(payload.get("metaKey")),
            shift=bool(payload.get("shiftKey")),
            target=payload.get("target") or "",
        )


def resolve_shortcut(press: KeyPress, shortcuts: dict = None) -> str | None:
    """
    Action bound to *press*, or None.

    Only presses typed into an input/textarea count, never during IME
    composition, and only with Ctrl as the sole modifier.
    """
    shortcuts = DEFAULT_SHORTCUTS if shortcuts is None else shortcuts
    if press.is_composing or press.key_code == IME_KEY_CODE:
        return None
    if press.target not in ("input", "textarea"):
        return None
    if press.alt or not press.ctrl or press.meta or press.shift:
        return None
    return shortcuts.get(press.key)


def keydown_script(shortcuts: dict = None) -> str:
    """Init script installing the page-side listener for *shortcuts*."""
    shortcuts = DEFAULT_SHORTCUTS if shortcuts is None else shortcuts
    return _KEYDOWN_TEMPLATE % {
        "shortcuts": json.dumps(shortcuts),
        "ime": IME_KEY_CODE,
        "binding": BINDING_NAME,
    }


class ShortcutDispatcher:
    """Queue the workflow for each recognised shortcut on the serializer."""

    def __init__(self, host, serializer, settings, *, shortcuts: dict = None, diagnostics: bool = True):
        self.host = host
        self.serializer = serializer
        self.settings = settings
        self.shortcuts = DEFAULT_SHORTCUTS if shortcuts is None else shortcuts
        self.diagnostics = diagnostics

    def _workflow(self, action: str, host):
        if action == "navigate_left":
            return lambda: navigate(host, Direction.LEFT, self.settings)
        if action == "navigate_right":
            return lambda: navigate(host, Direction.RIGHT, self.settings)
        if action == "add_to_album":
            return lambda: add_to_album(host, self.settings)
        if action == "edit_location":
            return lambda: edit_location(host, self.settings)
        raise ValueError(f"Unknown action: {action!r}")

    def dispatch(self, action: str, host=None):
        """Enqueue *action* against *host* (default: the dispatcher's page).  Returns the serializer task."""
        host = host or self.host
        workflow = self._workflow(action, host)

        async def _run():
            try:
                return await workflow()
            except Exception:
                if self.diagnostics:
                    await capture_diagnostics(host.page, action)
                raise
            finally:
                await host.release_all()

        logger.info(f"⌨ {action}")
        return self.serializer.enqueue(_run, name=action)

    def handle_payload(self, payload: dict, host=None):
        """Binding entry point: validate the forwarded press and dispatch it."""
        action = resolve_shortcut(KeyPress.from_payload(payload or {}), self.shortcuts)
        if action is None:
            logger.debug(f"Ignoring key press: {payload}")
            return None
        return self.dispatch(action, host)


async def install_shortcuts(context, dispatcher: ShortcutDispatcher) -> None:
    """
    Expose the binding and register the listener on every page of *context*.

    Call before opening the gallery: init scripts only run on documents
    created afterwards.
    """
    def _on_shortcut(source, payload):
        # Return nothing: the page must not wait for the workflow.
        page = source.get("page")
        host = HostPage(page) if page is not None and page is not dispatcher.host.page else None
        dispatcher.handle_payload(payload, host)

    await context.expose_binding(BINDING_NAME, _on_shortcut)
    await context.add_init_script(keydown_script(dispatcher.shortcuts))
    logger.info(f"Shortcuts installed: {', '.join(f'Ctrl+{k} → {a}' for k, a in dispatcher.shortcuts.items())}")
