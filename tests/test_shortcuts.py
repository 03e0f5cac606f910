import asyncio
import json

import pytest

from photonav import shortcuts
from photonav.serializer import TaskSerializer
from photonav.shortcuts import (
    BINDING_NAME,
    DEFAULT_SHORTCUTS,
    KeyPress,
    ShortcutDispatcher,
    keydown_script,
    resolve_shortcut,
)
from photonav.workflows import WorkflowSettings
from tests.fakes import FakeHost, FakeNode


def _press(key="[", **overrides):
    fields = dict(key=key, key_code=219, ctrl=True, target="textarea")
    fields.update(overrides)
    return KeyPress(**fields)


@pytest.mark.parametrize(
    "key, action",
    [("[", "navigate_left"), ("]", "navigate_right"), ("'", "add_to_album"), (",", "edit_location")],
)
def test_default_bindings(key, action):
    assert resolve_shortcut(_press(key)) == action


@pytest.mark.parametrize(
    "overrides",
    [
        {"ctrl": False},
        {"alt": True},
        {"meta": True},
        {"shift": True},
        {"is_composing": True},
        {"key_code": 229},
        {"target": "div"},
        {"target": ""},
    ],
)
def test_rejected_presses(overrides):
    assert resolve_shortcut(_press(**overrides)) is None


def test_input_target_and_unbound_key():
    assert resolve_shortcut(_press(target="input")) == "navigate_left"
    assert resolve_shortcut(_press(key="x")) is None


def test_custom_bindings():
    assert resolve_shortcut(_press("n"), {"n": "navigate_right"}) == "navigate_right"
    assert resolve_shortcut(_press("]"), {"n": "navigate_right"}) is None


def test_key_press_from_payload():
    press = KeyPress.from_payload({
        "key": "]", "keyCode": 221, "isComposing": False,
        "altKey": False, "ctrlKey": True, "metaKey": False, "shiftKey": False,
        "target": "input",
    })
    assert press == KeyPress(key="]", key_code=221, ctrl=True, target="input")


def test_keydown_script_embeds_bindings():
    script = keydown_script({"n": "navigate_right"})
    assert json.dumps({"n": "navigate_right"}) in script
    assert f"window.{BINDING_NAME}(" in script
    assert "e.preventDefault()" in script
    assert json.dumps(DEFAULT_SHORTCUTS) in keydown_script()


def _dispatcher(host):
    return ShortcutDispatcher(host, TaskSerializer(), WorkflowSettings(wait_timeout=1.0))


def test_dispatch_without_focus_is_a_no_op():
    async def scenario():
        host = FakeHost(FakeNode("body"))
        dispatcher = _dispatcher(host)
        task = dispatcher.handle_payload({"key": "]", "ctrlKey": True, "target": "textarea"})
        return await task

    assert asyncio.run(scenario()) is False


def test_ignored_payload_enqueues_nothing():
    async def scenario():
        dispatcher = _dispatcher(FakeHost(FakeNode("body")))
        task = dispatcher.handle_payload({"key": "]", "target": "textarea"})
        return task, dispatcher.serializer.pending

    assert asyncio.run(scenario()) == (None, 0)


def test_unknown_action_is_rejected():
    dispatcher = _dispatcher(FakeHost(FakeNode("body")))
    with pytest.raises(ValueError):
        dispatcher.dispatch("rotate")


def test_failed_workflow_captures_diagnostics(monkeypatch):
    captured = []

    async def fake_capture(page, label):
        captured.append((page, label))

    monkeypatch.setattr(shortcuts, "capture_diagnostics", fake_capture)

    class BrokenHost(FakeHost):
        async def focused_input(self):
            raise RuntimeError("page gone")

    async def scenario():
        host = BrokenHost(FakeNode("body"))
        dispatcher = _dispatcher(host)
        first = dispatcher.dispatch("add_to_album")
        second = dispatcher.dispatch("edit_location")
        return host, await first, await second

    host, first, second = asyncio.run(scenario())
    assert first is None and second is None
    assert captured == [(host.page, "add_to_album"), (host.page, "edit_location")]


def test_handles_released_after_each_workflow():
    async def scenario():
        host = FakeHost(FakeNode("body"))
        dispatcher = _dispatcher(host)
        await dispatcher.dispatch("navigate_right")
        await dispatcher.dispatch("edit_location")
        return host.release_all_count

    assert asyncio.run(scenario()) == 2
