"""
Preview request fingerprints.

A fingerprint is a stable text key over every input that changes what the
backend renders: the encoding configuration, the preview mode, the playback
time and the source path. Transient panel state (loading, error) is never
part of it, otherwise the act of rendering would change its own trigger key.

Serialization is compact JSON with this fixed field order:

    codec, crf, fps, resolution, filters, resampling_enabled,
    resampling_intensity, bitrate, preset, prefer_gpu, mode, time, path

Filter order is significant. Reordering enabled filters without changing
which ones are enabled produces a different key. It is not sorted because
filter order may change the backend's output.

Not a digest: equality is field-for-field equality.
"""

import json
from dataclasses import dataclass

from ..settings.models import EncodingConfiguration, PreviewMode


def fingerprint(
    config: EncodingConfiguration,
    mode: PreviewMode,
    time_seconds: float,
    source_path: str,
) -> str:
    """
    Derive the comparison key for one render request.

    Deterministic: identical arguments always give the identical string.
    Numeric fields are coerced to float so 0 and 0.0 compare equal.
    """
    payload = [
        ("codec", config.codec),
        ("crf", config.crf),
        ("fps", config.fps),
        ("resolution", config.resolution),
        ("filters", list(config.filters)),
        ("resampling_enabled", config.resampling_enabled),
        ("resampling_intensity", float(config.resampling_intensity)),
        ("bitrate", config.bitrate),
        ("preset", config.preset),
        ("prefer_gpu", config.prefer_gpu),
        ("mode", PreviewMode(mode).value),
        ("time", float(time_seconds)),
        ("path", source_path),
    ]
    return json.dumps(dict(payload), separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class PreviewRequest:
    """
    Immutable snapshot of everything one render needs.

    Taken when a trigger is evaluated, never when the deferred action runs,
    so a debounce timer or an in-flight backend task cannot observe edits
    made after it was scheduled.
    """

    source_path: str
    time_seconds: float
    mode: PreviewMode
    config: EncodingConfiguration
    fingerprint: str

    @classmethod
    def capture(
        cls,
        config: EncodingConfiguration,
        mode: PreviewMode,
        time_seconds: float,
        source_path: str,
    ) -> "PreviewRequest":
        mode = PreviewMode(mode)
        return cls(
            source_path=source_path,
            time_seconds=float(time_seconds),
            mode=mode,
            config=config,
            fingerprint=fingerprint(config, mode, time_seconds, source_path),
        )

    @property
    def short_key(self) -> str:
        """Truncated fingerprint for log lines."""
        return self.fingerprint[:80]
