"""
Pytest configuration for the live preview test suite.

Provides a scripted in-memory backend so scheduling can be tested without
FFmpeg.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from livepreview.config import PreviewConfig
from livepreview.execution.base import PreviewBackend, VideoMetadata
from livepreview.execution.errors import BackendError
from livepreview.execution.orchestrator import BASELINE_CONFIGURATION
from livepreview.settings.models import EncodingConfiguration


SOURCE_PATH = "/media/source.mp4"

H264_CONFIG = EncodingConfiguration(
    codec="h264",
    crf="23",
    fps="30",
    resolution="1920x1080",
    filters=(),
    bitrate="8",
    preset="medium",
)


class FakeBackend(PreviewBackend):
    """
    Scripted backend.

    Records every call as (operation, args...). Failures are injected by
    setting the *_error attributes. Setting `gate` to an asyncio.Event holds
    every render call until the event is set.
    """

    def __init__(self):
        self.calls: List[Tuple] = []
        self.metadata = VideoMetadata(duration=120.0, width=1920, height=1080)
        self.metadata_error: Optional[Exception] = None
        self.baseline_error: Optional[Exception] = None
        self.frame_error: Optional[Exception] = None
        self.segment_error: Optional[Exception] = None
        self.segment_locator = "/tmp/livepreview_segments/segment.mp4"
        self.gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "Fake"

    def calls_of(self, operation: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == operation]

    async def _hold(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

    async def get_video_metadata(self, source_path: str) -> VideoMetadata:
        self.calls.append(("metadata", source_path))
        await asyncio.sleep(0)
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.metadata

    async def get_preview_frame(self, source_path, time_seconds, config) -> bytes:
        self.calls.append(("frame", source_path, time_seconds, config))
        await self._hold()
        if config == BASELINE_CONFIGURATION:
            if self.baseline_error is not None:
                raise self.baseline_error
            return b"original"
        if self.frame_error is not None:
            raise self.frame_error
        return b"processed"

    async def get_preview_video_segment(self, source_path, time_seconds, duration_seconds, config) -> str:
        self.calls.append(("segment", source_path, time_seconds, duration_seconds, config))
        await self._hold()
        if self.segment_error is not None:
            raise self.segment_error
        return self.segment_locator


async def no_sleep(_seconds: float) -> None:
    return None


def fast_config(**overrides) -> PreviewConfig:
    values = dict(debounce_seconds=0.05, settle_seconds=0.0)
    values.update(overrides)
    return PreviewConfig(**values)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def failing_backend():
    backend = FakeBackend()
    backend.frame_error = BackendError("encoder exploded")
    return backend
