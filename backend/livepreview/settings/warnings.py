"""
Advisory checks on an encoding configuration.

These never block a render. They only tell the operator that the preview
is likely to show artifacts the final render will also have.
"""

import re

from .models import EncodingConfiguration

# High frame rates at 1080p and above starve below this many Mbps (NVENC especially).
LOW_BITRATE_THRESHOLD_MBPS = 6.0
HIGH_FPS_THRESHOLD = 60
DEFAULT_FPS = 30

_HIGH_RESOLUTION_MARKERS = ("1080", "1440", "2160")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))")


def _leading_int(value: str, default: int) -> int:
    match = _LEADING_INT.match(value or "")
    if not match:
        return default
    parsed = int(match.group(1))
    # A typed "0" fps means "unset" in the settings page.
    return parsed or default


def _leading_float(value: str) -> float:
    match = _LEADING_FLOAT.match(value or "")
    return float(match.group(1)) if match else 0.0


def has_low_bitrate(config: EncodingConfiguration) -> bool:
    """
    Check for a bitrate too low for the configured frame rate and resolution.

    True when fps >= 60, the resolution is 1080/1440/2160 and
    0 < bitrate < 6 Mbps. Unparseable fps counts as 30, unparseable
    or missing bitrate as 0 (no warning).
    """
    fps = _leading_int(config.fps, DEFAULT_FPS)
    bitrate = _leading_float(config.bitrate or "")
    is_high_resolution = any(marker in config.resolution for marker in _HIGH_RESOLUTION_MARKERS)
    return fps >= HIGH_FPS_THRESHOLD and is_high_resolution and 0 < bitrate < LOW_BITRATE_THRESHOLD_MBPS


def low_bitrate_message(config: EncodingConfiguration) -> str:
    return (
        f"Low bitrate ({config.bitrate}M) for {config.fps}fps @ {config.resolution}. "
        f"Recommend >={LOW_BITRATE_THRESHOLD_MBPS:g}M for NVENC to avoid artifacts."
    )
