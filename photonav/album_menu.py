"""
Locate the "Add to album" entry in the per-photo overflow menu.

The entry has no stable label (it is translated) and its position
depends on the media type, so it is found relative to entries that do
carry a stable keyboard accelerator: it is the first entry after the
download and rotate entries.
"""

from dataclasses import dataclass
from typing import Any

DOWNLOAD_SHORTCUT = "Shift+D"
ROTATE_SHORTCUT = "Shift+R"


@dataclass
class MenuEntry:
    handle: Any
    label: str
    shortcut: str = ""


def _index_of_shortcut(entries, shortcut: str, start: int = 0) -> int:
    for i in range(start, len(entries)):
        if entries[i].shortcut == shortcut:
            return i
    return -1


def locate_target_menu_item(entries) -> int | None:
    """
    Return the index of the "Add to album" entry, or None when the menu
    is too short to contain it.

    Anchors, any of which may be missing:
      - the entry whose accelerator is the download shortcut
      - after it, a second entry whose label contains the download
        entry's label (the video-only download entry)
      - the entry whose accelerator is the rotate shortcut
    The target follows the last anchor; with no anchors it is entry 0.
    """
    download = _index_of_shortcut(entries, DOWNLOAD_SHORTCUT)

    second_download = -1
    if download >= 0:
        download_label = entries[download].label
        for i in range(download + 1, len(entries)):
            if download_label and download_label in entries[i].label:
                second_download = i
                break

    rotate = _index_of_shortcut(entries, ROTATE_SHORTCUT)

    target = max(download, second_download, rotate) + 1
    if target >= len(entries):
        return None
    return target
