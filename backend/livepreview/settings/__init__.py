"""
Encoding settings: canonical model, boundary shapes and normalization.
"""

from .models import (
    EncodingConfiguration,
    PreviewMode,
    PreviewSettingsPayload,
    VideoSettingsPayload,
    FilterToggle,
)
from .normalizer import normalize_configuration
from .warnings import has_low_bitrate, low_bitrate_message

__all__ = [
    # Models
    "EncodingConfiguration",
    "PreviewMode",
    "PreviewSettingsPayload",
    "VideoSettingsPayload",
    "FilterToggle",
    # Normalization
    "normalize_configuration",
    # Advisories
    "has_low_bitrate",
    "low_bitrate_message",
]
