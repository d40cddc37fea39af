"""
Rendered preview artifacts.

A panel retains exactly one artifact, and only one belonging to the active
mode. Switching mode discards the other mode's artifact immediately to
bound memory (a frame pair holds two full-size JPEGs).
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..settings.models import PreviewMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FramePair:
    """Original (baseline) and processed (full configuration) stills."""

    original: bytes
    processed: bytes
    media_type: str = "image/jpeg"

    @property
    def mode(self) -> PreviewMode:
        return PreviewMode.FRAME

    def data_uri(self, processed: bool = True) -> str:
        """Base64 data URI for one side of the pair."""
        data = self.processed if processed else self.original
        return f"data:{self.media_type};base64,{base64.b64encode(data).decode('ascii')}"


@dataclass(frozen=True)
class VideoSegment:
    """A playable preview clip: backend locator and the URL handed to the player."""

    locator: str
    url: str

    @property
    def mode(self) -> PreviewMode:
        return PreviewMode.VIDEO


Artifact = Union[FramePair, VideoSegment]


class ArtifactStore:
    """Single-slot holder for the active mode's artifact."""

    def __init__(self):
        self._current: Optional[Artifact] = None

    @property
    def current(self) -> Optional[Artifact]:
        return self._current

    @property
    def frame_pair(self) -> Optional[FramePair]:
        return self._current if isinstance(self._current, FramePair) else None

    @property
    def video_segment(self) -> Optional[VideoSegment]:
        return self._current if isinstance(self._current, VideoSegment) else None

    def store(self, artifact: Artifact, active_mode: PreviewMode) -> bool:
        """
        Retain an artifact if it belongs to the active mode.

        A render for a mode the panel has since left is not retained.

        Returns:
            True if stored
        """
        if artifact.mode != active_mode:
            logger.info(
                f"[Preview] Dropping {artifact.mode.value} artifact, "
                f"panel is in {active_mode.value} mode"
            )
            return False
        self._current = artifact
        return True

    def discard_mode(self, mode: PreviewMode) -> bool:
        """
        Discard the retained artifact if it belongs to mode.

        Returns:
            True if something was discarded
        """
        if self._current is not None and self._current.mode == mode:
            self._current = None
            return True
        return False

    def clear(self) -> None:
        self._current = None
