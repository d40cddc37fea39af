"""
Preview execution: backend contract, artifacts and render orchestration.

The orchestrator runs backend calls for one captured request and keeps the
memo of the last successful fingerprint. Scheduling decisions live in
livepreview.scheduling and livepreview.panel.
"""

from .errors import (
    BackendError,
    BackendNotFoundError,
    BackendDecodeError,
    PreviewError,
    MetadataFetchError,
    FrameFetchError,
    VideoSegmentError,
    PlaybackDecodeError,
)
from .base import PreviewBackend, VideoMetadata
from .artifacts import Artifact, ArtifactStore, FramePair, VideoSegment
from .orchestrator import RenderOrchestrator, BASELINE_CONFIGURATION
from .locators import LocatorTranslator, to_file_url

__all__ = [
    # Errors
    "BackendError",
    "BackendNotFoundError",
    "BackendDecodeError",
    "PreviewError",
    "MetadataFetchError",
    "FrameFetchError",
    "VideoSegmentError",
    "PlaybackDecodeError",
    # Backend contract
    "PreviewBackend",
    "VideoMetadata",
    # Artifacts
    "Artifact",
    "ArtifactStore",
    "FramePair",
    "VideoSegment",
    # Orchestration
    "RenderOrchestrator",
    "BASELINE_CONFIGURATION",
    "LocatorTranslator",
    "to_file_url",
]
