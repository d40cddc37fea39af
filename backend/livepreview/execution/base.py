"""
Rendering backend abstraction.

The backend performs the actual decode/encode work. The panel never talks
to FFmpeg directly; it calls these three operations through the
orchestrator.

Design rules:
- Backends are stateless from the panel's point of view
- Every call runs to completion or error; there is no cancellation
- No timeout is imposed by callers
- Failures are reported by raising BackendError subclasses
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..settings.models import EncodingConfiguration


@dataclass(frozen=True)
class VideoMetadata:
    """Source duration (seconds) and dimensions."""

    duration: float
    width: int
    height: int


class PreviewBackend(ABC):
    """
    Abstract base class for preview rendering backends.

    All backends must implement:
    - get_video_metadata: probe a source once per path
    - get_preview_frame: one encoded still image
    - get_preview_video_segment: a short transcoded clip on disk
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs."""
        pass

    @abstractmethod
    async def get_video_metadata(self, source_path: str) -> VideoMetadata:
        """
        Raises:
            BackendNotFoundError: Source missing
            BackendDecodeError: Source unreadable
        """
        pass

    @abstractmethod
    async def get_preview_frame(
        self,
        source_path: str,
        time_seconds: float,
        config: EncodingConfiguration,
    ) -> bytes:
        """
        Render one frame at time_seconds with config applied.

        Returns:
            JPEG image bytes

        Raises:
            BackendDecodeError, BackendError
        """
        pass

    @abstractmethod
    async def get_preview_video_segment(
        self,
        source_path: str,
        time_seconds: float,
        duration_seconds: float,
        config: EncodingConfiguration,
    ) -> str:
        """
        Render a short segment starting at time_seconds.

        Returns:
            Filesystem path of the rendered segment. May be empty on a
            silent backend failure; callers must treat that as an error.

        Raises:
            BackendError
        """
        pass
