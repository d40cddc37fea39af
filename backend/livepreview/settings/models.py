"""
Encoding configuration models.

EncodingConfiguration is the single canonical shape the scheduler, the
fingerprint and the backend see. It is immutable: an edit produces a new
instance that replaces the previous one wholesale.

Two external shapes are accepted at the boundary and normalized into it
(see normalizer.py):
- PreviewSettingsPayload: fully-shaped, snake_case, enabled filter names only
- VideoSettingsPayload: settings-page shape, camelCase, filter toggles
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PreviewMode(str, Enum):
    """What the panel renders."""

    FRAME = "frame"  # Before/after still pair
    VIDEO = "video"  # Short transcoded segment


@dataclass(frozen=True)
class EncodingConfiguration:
    """
    Immutable snapshot of every encoding parameter that affects preview output.

    String-encoded numbers (crf, fps, bitrate) are kept as the user typed them;
    interpretation and clamping belong to the backend.
    """

    codec: str = ""
    crf: str = ""
    fps: str = ""
    resolution: str = ""
    filters: Tuple[str, ...] = ()  # Enabled filter names, order preserved
    resampling_enabled: bool = False
    resampling_intensity: float = 0.0
    bitrate: Optional[str] = None  # Mbps, e.g. "2.6"
    preset: Optional[str] = None  # e.g. "slow", "medium", "p7"
    prefer_gpu: bool = False

    def to_backend_dict(self) -> dict:
        """Serialize for a backend call (list instead of tuple for filters)."""
        return {
            "codec": self.codec,
            "crf": self.crf,
            "fps": self.fps,
            "resolution": self.resolution,
            "filters": list(self.filters),
            "resampling_enabled": self.resampling_enabled,
            "resampling_intensity": self.resampling_intensity,
            "bitrate": self.bitrate,
            "preset": self.preset,
            "prefer_gpu": self.prefer_gpu,
        }


# ============================================================================
# Boundary payloads
# ============================================================================

class PreviewSettingsPayload(BaseModel):
    """Fully-shaped preview settings."""

    model_config = ConfigDict(extra="forbid")

    codec: str = ""
    crf: str = ""
    fps: str = ""
    resolution: str = ""
    filters: List[str] = Field(default_factory=list)
    resampling_enabled: bool = False
    resampling_intensity: float = 0.0
    bitrate: Optional[str] = None
    preset: Optional[str] = None
    prefer_gpu: Optional[bool] = None


class FilterToggle(BaseModel):
    """A named filter with its own enable flag."""

    model_config = ConfigDict(extra="forbid")

    name: str
    enabled: bool


class VideoSettingsPayload(BaseModel):
    """Settings-page shape: camelCase names and per-filter enable flags."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    codec: str = ""
    crf: str = ""
    fps: str = ""
    resolution: str = ""
    bitrate: Optional[str] = None
    preset: Optional[str] = None
    filters: List[FilterToggle] = Field(default_factory=list)
    resampling_enabled: Optional[bool] = Field(default=None, alias="resamplingEnabled")
    resampling_intensity: Optional[float] = Field(default=None, alias="resamplingIntensity")
