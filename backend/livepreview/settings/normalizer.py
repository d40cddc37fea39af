"""
Configuration normalization.

Folds the two external settings shapes into one EncodingConfiguration.
Pure and synchronous. There is no failure mode: anything absent becomes
None or empty, never an invented value. The only default applied is the
encoder preset.
"""

from typing import Optional

from ..config import DEFAULT_PRESET
from .models import EncodingConfiguration, PreviewSettingsPayload, VideoSettingsPayload


def normalize_configuration(
    settings: Optional[PreviewSettingsPayload] = None,
    video_settings: Optional[VideoSettingsPayload] = None,
    prefer_gpu: bool = False,
) -> EncodingConfiguration:
    """
    Produce the canonical configuration from whichever shape was supplied.

    Fully-shaped settings win over the settings-page shape when both are given.

    Args:
        settings: Fully-shaped settings (snake_case, filter names)
        video_settings: Settings-page shape (camelCase, filter toggles)
        prefer_gpu: GPU preference supplied separately by the host

    Returns:
        EncodingConfiguration snapshot
    """
    if settings is not None:
        return EncodingConfiguration(
            codec=settings.codec,
            crf=settings.crf,
            fps=settings.fps,
            resolution=settings.resolution,
            filters=tuple(settings.filters),
            resampling_enabled=settings.resampling_enabled,
            resampling_intensity=settings.resampling_intensity,
            bitrate=settings.bitrate or None,
            preset=settings.preset or DEFAULT_PRESET,
            prefer_gpu=prefer_gpu if settings.prefer_gpu is None else settings.prefer_gpu,
        )

    if video_settings is None:
        return EncodingConfiguration(preset=DEFAULT_PRESET, prefer_gpu=prefer_gpu)

    return EncodingConfiguration(
        codec=video_settings.codec,
        crf=video_settings.crf,
        fps=video_settings.fps,
        resolution=video_settings.resolution,
        filters=tuple(f.name for f in video_settings.filters if f.enabled),
        resampling_enabled=bool(video_settings.resampling_enabled),
        resampling_intensity=video_settings.resampling_intensity or 0.0,
        bitrate=video_settings.bitrate or None,
        preset=video_settings.preset or DEFAULT_PRESET,
        prefer_gpu=prefer_gpu,
    )
