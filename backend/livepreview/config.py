"""
Runtime configuration for the live preview coordinator.

All values have fixed defaults. Environment variables can override them
(optional, advanced) without any config file:

    LIVEPREVIEW_DEBOUNCE_SECONDS    delay before a settings change renders
    LIVEPREVIEW_SETTLE_SECONDS      wait after a segment is written
    LIVEPREVIEW_SEGMENT_SECONDS     length of a video-mode preview segment
    LIVEPREVIEW_FAILURE_THRESHOLD   playback failures before a segment is dropped
    LIVEPREVIEW_FFMPEG_PATH         explicit ffmpeg binary
    LIVEPREVIEW_FFPROBE_PATH        explicit ffprobe binary
    LIVEPREVIEW_CACHE_DIR           where preview segments are written
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


# Continuous (settings) triggers wait this long before rendering.
DEFAULT_DEBOUNCE_SECONDS = 5.0

# Backend may still hold the segment file briefly after returning its path.
DEFAULT_SETTLE_SECONDS = 0.15

# Video mode always renders a fixed-length segment.
DEFAULT_SEGMENT_SECONDS = 3.0

DEFAULT_FAILURE_THRESHOLD = 3

# Baseline ("original") frames are requested with this CRF and nothing else.
BASELINE_CRF = "23"

DEFAULT_PRESET = "medium"

DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "livepreview_segments"

ENV_PREFIX = "LIVEPREVIEW_"


@dataclass(frozen=True)
class PreviewConfig:
    """Timings, thresholds and binary locations for one preview panel."""

    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    segment_seconds: float = DEFAULT_SEGMENT_SECONDS
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PreviewConfig":
        """
        Build a config from defaults plus LIVEPREVIEW_* overrides.

        Malformed or out-of-range numeric overrides are ignored with a
        warning; the default stays in effect.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _number(name: str, default, cast, minimum):
            raw = env.get(f"{ENV_PREFIX}{name}")
            if raw is None or raw.strip() == "":
                return default
            try:
                value = cast(raw)
            except ValueError:
                value = None
            if value is None or value < minimum:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}{name}={raw!r}, using {default}")
                return default
            return value

        cache_dir = env.get(f"{ENV_PREFIX}CACHE_DIR")

        return cls(
            debounce_seconds=_number("DEBOUNCE_SECONDS", defaults.debounce_seconds, float, 0),
            settle_seconds=_number("SETTLE_SECONDS", defaults.settle_seconds, float, 0),
            segment_seconds=_number("SEGMENT_SECONDS", defaults.segment_seconds, float, 0.1),
            failure_threshold=_number("FAILURE_THRESHOLD", defaults.failure_threshold, int, 1),
            ffmpeg_path=env.get(f"{ENV_PREFIX}FFMPEG_PATH") or None,
            ffprobe_path=env.get(f"{ENV_PREFIX}FFPROBE_PATH") or None,
            cache_dir=Path(cache_dir) if cache_dir else defaults.cache_dir,
        )
