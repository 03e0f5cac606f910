"""
Checks against a real Chromium page.  Skipped when Playwright's browser
is not installed (``playwright install chromium``).
"""

import asyncio
from types import SimpleNamespace
from urllib.parse import quote

import pytest

pytest.importorskip("playwright.async_api")

from playwright.async_api import Error as PlaywrightError, async_playwright

from photonav.arrows import Direction
from photonav.change_wait import ChangeSubscription, ChangeTimeout, await_change
from photonav.host import HostPage, OptionPress
from photonav.shortcuts import install_shortcuts
from photonav.workflows import WorkflowSettings, navigate

LEFT_ARROW = "M15.41 16.09l-4.58-4.59 4.58-4.59L14 5.5l-6 6 6 6z"
RIGHT_ARROW = "M8.59 16.34l4.58-4.59-4.58-4.59L10 5.75l6 6-6 6z"


def _run(scenario):
    async def _main():
        async with async_playwright() as p:
            try:
                browser = await p.chromium.launch()
            except PlaywrightError as e:
                pytest.skip(f"Chromium not available: {e}")
            try:
                context = await browser.new_context()
                page = await context.new_page()
                return await scenario(context, page)
            finally:
                await browser.close()

    return asyncio.run(_main())


def _icon(button_id, d):
    return (
        f'<div id="{button_id}" role="button" jsaction="click:nav">'
        f'<svg width="24" height="24" viewBox="0 0 24 24"><path d="{d}"></path></svg>'
        f"</div>"
    )


GALLERY_HTML = f"""
<div id="app"><c-wiz><textarea id="first"></textarea></c-wiz></div>
<div role="menubar">{_icon("menubar-next", RIGHT_ARROW)}</div>
{_icon("prev", LEFT_ARROW)}
{_icon("next", RIGHT_ARROW)}
<script>
  document.getElementById('next').addEventListener('click', () => {{
    setTimeout(() => {{
      document.getElementById('app').innerHTML = '<c-wiz><textarea id="second"></textarea></c-wiz>';
    }}, 50);
  }});
  document.getElementById('menubar-next').addEventListener('click', () => {{
    document.body.dataset.wrong = 'clicked';
  }});
</script>
"""


def test_subscription_fires_once_and_needs_renewal():
    async def scenario(context, page):
        await page.set_content('<div id="root"><span></span></div>')
        root = await page.query_selector("#root")

        subscription = await ChangeSubscription.start(root)
        await page.evaluate("""() => {
            const root = document.getElementById('root');
            root.appendChild(document.createElement('b'));
            root.setAttribute('data-x', '1');
            root.firstElementChild.textContent = 'deep';
        }""")
        await subscription.wait(timeout=5)
        await subscription.cancel()

        quiet = await ChangeSubscription.start(root)
        with pytest.raises(ChangeTimeout):
            await quiet.wait(timeout=0.2)
        await quiet.cancel()

        fresh = await ChangeSubscription.start(root)
        await page.evaluate("() => document.querySelector('#root span').setAttribute('title', 't')")
        await fresh.wait(timeout=5)
        await fresh.cancel()

    _run(scenario)


def test_await_change_times_out_without_mutation():
    async def scenario(context, page):
        await page.set_content('<div id="root"></div>')
        root = await page.query_selector("#root")
        with pytest.raises(ChangeTimeout):
            await await_change(root, timeout=0.2)

    _run(scenario)


def test_navigate_right_refocuses_rebuilt_input():
    async def scenario(context, page):
        await page.set_content(GALLERY_HTML)
        await page.focus("#first")
        done = await navigate(HostPage(page), Direction.RIGHT, WorkflowSettings(wait_timeout=5))
        focused = await page.evaluate("() => document.activeElement.id")
        wrong = await page.evaluate("() => document.body.dataset.wrong || ''")
        return done, focused, wrong

    assert _run(scenario) == (True, "second", "")


def test_navigate_ignores_sibling_input_in_unchanged_view():
    async def scenario(context, page):
        await page.set_content(
            '<div><c-wiz><textarea id="caption"></textarea><input id="other"></c-wiz></div>'
            + _icon("next", RIGHT_ARROW)
        )
        await page.focus("#caption")
        with pytest.raises(ChangeTimeout):
            await navigate(HostPage(page), Direction.RIGHT, WorkflowSettings(wait_timeout=0.3))
        return await page.evaluate("() => document.activeElement.id")

    assert _run(scenario) == "caption"


def test_release_all_disposes_tracked_handles():
    async def scenario(context, page):
        await page.set_content(GALLERY_HTML)
        await page.focus("#first")
        host = HostPage(page)
        field = await host.focused_input()
        assert await host.dialog() is None
        assert await host.has_dialog() is False
        await navigate(host, Direction.RIGHT, WorkflowSettings(wait_timeout=5))
        held = host.held_handles
        await host.release_all()
        with pytest.raises(PlaywrightError):
            await field.evaluate("node => node.id")
        return held, host.held_handles

    held, after = _run(scenario)
    assert held > 0
    assert after == 0


def test_icon_buttons_and_scope_primitives():
    async def scenario(context, page):
        await page.set_content(GALLERY_HTML)
        host = HostPage(page)
        buttons = await host.icon_buttons()
        ids = [await b.handle.get_attribute("id") for b in buttons]
        paths = [b.path_data for b in buttons]

        assert await host.focused_input() is None
        await page.focus("#first")
        field = await host.focused_input()
        cwiz = await host.parent(field)
        return ids, paths, await host.local_name(cwiz), await host.same_element(field, field)

    ids, paths, tag, same = _run(scenario)
    assert ids == ["prev", "next"]
    assert paths == [LEFT_ARROW, RIGHT_ARROW]
    assert tag == "c-wiz"
    assert same is True


def test_menu_entries_split_label_and_accelerator():
    async def scenario(context, page):
        await page.set_content("""
            <div role="menu">
              <div role="menuitem"><span>Download</span><span>Shift+D</span></div>
              <div role="menuitem"><span>Download video</span></div>
              <div role="menuitem"><span>Rotate</span><span>Shift+R</span></div>
              <div role="menuitem"><span>Add to album</span></div>
            </div>
        """)
        host = HostPage(page)
        menu = await host.open_menu()
        entries = await host.menu_entries(menu)
        return [(e.label, e.shortcut) for e in entries]

    assert _run(scenario) == [
        ("Download", "Shift+D"),
        ("Download video", ""),
        ("Rotate", "Shift+R"),
        ("Add to album", ""),
    ]


def test_location_watch_records_presses_and_detaches():
    async def scenario(context, page):
        await page.set_content("""
            <div role="dialog" id="dialog">
              <input id="search" aria-activedescendant="opt-0">
              <div role="listbox">
                <div role="option" id="opt-0" aria-selected="true"><div>Home</div></div>
                <div role="option" id="opt-1"><div>Paris</div><div>France</div></div>
              </div>
            </div>
        """)
        host = HostPage(page)
        dialog = await host.dialog()
        async with host.watch_location_presses(dialog) as watch:
            await page.focus("#search")
            await page.keyboard.press("Enter")
            await page.dispatch_event("#opt-1", "mousedown")
        await page.dispatch_event("#opt-0", "mousedown")
        leftover = await page.evaluate("() => Object.keys(window.__photonavWatches || {}).length")
        return watch.presses, leftover

    presses, leftover = _run(scenario)
    assert presses == [OptionPress(0, False), OptionPress(1, True)]
    assert leftover == 0


def test_keydown_listener_forwards_ctrl_shortcuts():
    async def scenario(context, page):
        received = []
        arrived = asyncio.Event()

        def handle_payload(payload, host=None):
            received.append(payload)
            arrived.set()

        recorder = SimpleNamespace(
            shortcuts={"]": "navigate_right"},
            host=SimpleNamespace(page=page),
            handle_payload=handle_payload,
        )
        await install_shortcuts(context, recorder)
        await page.goto("data:text/html," + quote("<textarea id='t'></textarea><div id='d' tabindex='0'></div>"))

        await page.focus("#d")
        await page.keyboard.press("Control+]")
        await page.focus("#t")
        await page.keyboard.press("]")
        await page.keyboard.press("Control+]")
        await asyncio.wait_for(arrived.wait(), 5)
        value = await page.input_value("#t")
        return received, value

    received, value = _run(scenario)
    assert len(received) == 1
    assert received[0]["key"] == "]"
    assert received[0]["target"] == "textarea"
    # The plain "]" was typed; the shortcut press was swallowed.
    assert value == "]"
