"""
Render orchestration.

Issues the backend calls for one PreviewRequest and owns the memo of the
last successfully executed fingerprint.

Memo rules:
- Updated only after a render fully succeeds
- Never touched on failure, so an unchanged configuration can be retried
- Never updated speculatively before the backend answers

Frame mode makes two sequential calls: a baseline still (the "original")
and the fully-configured still (the "processed"). Both must succeed.

Video mode makes one call for a fixed-length segment. An empty or
whitespace-only locator is a failure even though the backend did not raise.
After a locator arrives the orchestrator waits a short settling delay before
handing it on, because the backend may still be releasing its file handle.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..config import BASELINE_CRF, PreviewConfig
from ..scheduling.fingerprint import PreviewRequest
from ..settings.models import EncodingConfiguration, PreviewMode
from .artifacts import Artifact, FramePair, VideoSegment
from .base import PreviewBackend, VideoMetadata
from .errors import (
    BackendError,
    FrameFetchError,
    MetadataFetchError,
    VideoSegmentError,
)
from .locators import LocatorTranslator, to_file_url

logger = logging.getLogger(__name__)


# Baseline: no codec override, no filters, no scaling, fixed CRF.
BASELINE_CONFIGURATION = EncodingConfiguration(crf=BASELINE_CRF)


class RenderOrchestrator:
    """
    Backend caller and fingerprint memo for one panel.

    Does not enforce single-flight; the panel's ConcurrencyGuard does.
    """

    def __init__(
        self,
        backend: PreviewBackend,
        config: Optional[PreviewConfig] = None,
        translate_locator: LocatorTranslator = to_file_url,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            backend: Rendering backend
            config: Segment length and settle delay
            translate_locator: Locator -> player URL (no query parameters)
            sleep: Awaitable delay, replaceable in tests
        """
        self.backend = backend
        self.config = config or PreviewConfig()
        self._translate_locator = translate_locator
        self._sleep = sleep
        self._last_executed_fingerprint: Optional[str] = None

    @property
    def last_executed_fingerprint(self) -> Optional[str]:
        return self._last_executed_fingerprint

    def is_redundant(self, request: PreviewRequest) -> bool:
        """True if this exact request already rendered successfully."""
        return self._last_executed_fingerprint == request.fingerprint

    async def fetch_metadata(self, source_path: str) -> VideoMetadata:
        """
        Probe a source for duration and dimensions.

        Raises:
            MetadataFetchError: Backend could not read the source
        """
        try:
            metadata = await self.backend.get_video_metadata(source_path)
        except BackendError as e:
            logger.error(f"[Preview] Failed to get video info for {source_path}: {e}")
            raise MetadataFetchError(source_path, str(e)) from e
        logger.info(
            f"[Preview] Metadata for {source_path}: "
            f"{metadata.width}x{metadata.height}, {metadata.duration:.2f}s"
        )
        return metadata

    async def render(self, request: PreviewRequest) -> Artifact:
        """
        Execute one render and, on success, memoize its fingerprint.

        Args:
            request: Snapshot captured when the trigger was evaluated

        Returns:
            FramePair or VideoSegment

        Raises:
            FrameFetchError: Either frame call failed
            VideoSegmentError: Segment call failed or returned no locator
        """
        logger.info(f"[Preview] Starting render with fingerprint: {request.short_key}")

        if request.mode == PreviewMode.FRAME:
            artifact: Artifact = await self._render_frame_pair(request)
        else:
            artifact = await self._render_video_segment(request)

        self._last_executed_fingerprint = request.fingerprint
        logger.info("[Preview] Render complete, saved fingerprint")
        return artifact

    async def _render_frame_pair(self, request: PreviewRequest) -> FramePair:
        try:
            original = await self.backend.get_preview_frame(
                request.source_path, request.time_seconds, BASELINE_CONFIGURATION
            )
        except BackendError as e:
            raise FrameFetchError(str(e), baseline=True) from e

        try:
            processed = await self.backend.get_preview_frame(
                request.source_path, request.time_seconds, request.config
            )
        except BackendError as e:
            raise FrameFetchError(str(e)) from e

        return FramePair(original=original, processed=processed)

    async def _render_video_segment(self, request: PreviewRequest) -> VideoSegment:
        logger.debug(f"[Preview] Segment settings: {request.config.to_backend_dict()}")
        try:
            locator = await self.backend.get_preview_video_segment(
                request.source_path,
                request.time_seconds,
                self.config.segment_seconds,
                request.config,
            )
        except BackendError as e:
            raise VideoSegmentError(str(e)) from e

        if not locator or not locator.strip():
            raise VideoSegmentError("Preview generation failed: empty path")

        await self._sleep(self.config.settle_seconds)

        url = self._translate_locator(locator)
        logger.info(f"[Preview] Setting video URL: {url}")
        return VideoSegment(locator=locator, url=url)
