"""
Arrow classifier: decide whether an icon's path is a left or right caret.

The gallery's markup is not semantic, so the previous/next buttons are
recognised by the shape of their icon.  A right caret (``>``) has its
middle vertex further right than its top and bottom vertices; a left
caret is the mirror image.  Comparing the mean x of the points in the
vertical middle band against the mean x of the points outside it holds
up as long as the two-segment caret shape is kept, whatever the exact
styling.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from photonav.path_data import path_coordinates


class Direction(Enum):
    LEFT = -1
    NEUTRAL = 0
    RIGHT = 1


@dataclass
class ControlCandidate:
    """An arrow button found on the current frame.  Do not keep it past
    the next navigation: the gallery rebuilds its controls."""

    handle: Any
    direction: Direction


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def classify_coordinates(coordinates) -> Direction:
    """Classify a coordinate sequence as a left caret, right caret or neither."""
    if not coordinates:
        return Direction.NEUTRAL

    y_values = [y for _, y in coordinates]
    y_min, y_max = min(y_values), max(y_values)
    height = y_max - y_min
    mid_low = y_min + 0.25 * height
    mid_high = y_min + 0.75 * height

    mid_x, extreme_x = [], []
    for x, y in coordinates:
        if y < mid_low or y > mid_high:
            extreme_x.append(x)
        else:
            mid_x.append(x)

    # A flat or point-like shape puts everything in one bucket.
    if not mid_x or not extreme_x:
        return Direction.NEUTRAL

    mean_mid, mean_extreme = _mean(mid_x), _mean(extreme_x)
    if mean_mid < mean_extreme:
        return Direction.LEFT
    if mean_mid > mean_extreme:
        return Direction.RIGHT
    return Direction.NEUTRAL


def path_direction(d: str) -> Direction:
    """Classify SVG path data.  Raises PathDataError for malformed input."""
    return classify_coordinates(path_coordinates(d))
