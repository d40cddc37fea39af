"""
Split-view geometry for the before/after frame pair.

The original image is the full-width background. The processed image is
overlaid and clipped so it shows from the divider rightward. The divider is
a percentage of the container width, clamped to [10, 90].
"""

from dataclasses import dataclass
from typing import Tuple

DIVIDER_MIN = 10.0
DIVIDER_MAX = 90.0
DIVIDER_DEFAULT = 50.0


def clamp_divider(position: float) -> float:
    return max(DIVIDER_MIN, min(DIVIDER_MAX, float(position)))


def divider_from_pointer(offset_x: float, container_width: float) -> float:
    """Map a pointer offset inside the container to a clamped divider percentage."""
    if container_width <= 0:
        return DIVIDER_DEFAULT
    return clamp_divider(offset_x / container_width * 100.0)


@dataclass(frozen=True)
class ClipRegion:
    """Polygon (percent coordinates) exposing the processed image."""

    divider: float
    points: Tuple[Tuple[float, float], ...]

    @property
    def css_clip_path(self) -> str:
        return "polygon(" + ", ".join(f"{x:g}% {y:g}%" for x, y in self.points) + ")"


def clip_region(position: float) -> ClipRegion:
    """Clip polygon from the divider to the right edge, full height."""
    x = clamp_divider(position)
    return ClipRegion(
        divider=x,
        points=((x, 0.0), (100.0, 0.0), (100.0, 100.0), (x, 100.0)),
    )
