"""
Playback failure backoff for rendered video segments.

A freshly written segment can fail to decode a few times while the backend
finishes flushing it. Single glitches are absorbed. After the threshold of
consecutive failures (3 by default) the segment is abandoned.

Abandoning does NOT invalidate the render memo. The file may be fine and
merely slow to finish writing, so an unchanged configuration is not
re-rendered automatically; the operator has to force a refresh.
"""

import logging

logger = logging.getLogger(__name__)


class PlaybackErrorBackoff:
    """Consecutive decode-failure counter for the active segment."""

    def __init__(self, threshold: int = 3):
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {threshold}")
        self.threshold = threshold
        self._failures = 0

    @property
    def failures(self) -> int:
        return self._failures

    def record_failure(self) -> bool:
        """
        Count one decode failure.

        Returns:
            True when the segment should be abandoned (threshold reached).
            The counter resets so a replacement segment starts clean.
        """
        self._failures += 1
        logger.warning(f"[Preview] Video load error #{self._failures}")
        if self._failures >= self.threshold:
            logger.warning("[Preview] Too many video errors, abandoning segment")
            self._failures = 0
            return True
        return False

    def record_success(self) -> None:
        """A frame decoded; the segment is healthy."""
        if self._failures:
            logger.debug(f"[Preview] Video loaded, clearing {self._failures} prior error(s)")
        self._failures = 0

    def reset(self) -> None:
        """Start counting for a new segment."""
        self._failures = 0
