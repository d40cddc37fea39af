"""
FFmpeg-backed preview rendering.

Implements the PreviewBackend contract with ffprobe and ffmpeg subprocesses.
Subprocesses are blocking; each async operation runs its synchronous
counterpart in the default thread pool so the panel's loop stays free.

Strategy:
- Metadata: ffprobe JSON, first video stream + container duration
- Frames: seek, apply filters, optionally round-trip one frame through the
  configured encoder (so CRF/bitrate artifacts are visible), emit JPEG
- Segments: seek, encode a fixed-length clip with the full configuration,
  write it to the cache directory keyed by an md5 of all inputs

Encoding parameters mirror the final render so the preview is honest:
- codec -> encoder (CPU or NVENC)
- CRF clamped to 0-51, bitrate to 0.1-100 Mbps, fps to 1-240
- preset validated for libx264/libx265 only
"""

import asyncio
import hashlib
import json
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from ..config import PreviewConfig
from ..settings.models import EncodingConfiguration
from .base import PreviewBackend, VideoMetadata
from .errors import BackendDecodeError, BackendError, BackendNotFoundError

logger = logging.getLogger(__name__)


PROBE_TIMEOUT_SECONDS = 10

JPEG_QUALITY = 2  # mjpeg -q:v, lower is better

CPU_ENCODERS = {
    "h264": "libx264",
    "h265": "libx265",
    "hevc": "libx265",
    "vp9": "libvpx-vp9",
    "vp8": "libvpx",
    "av1": "libaom-av1",
    "mpeg4": "mpeg4",
    "prores": "prores_ks",
}

GPU_ENCODERS = {
    "h264": "h264_nvenc",
    "h265": "hevc_nvenc",
    "hevc": "hevc_nvenc",
}

X26X_PRESETS = (
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow", "placebo",
)

NAMED_FILTERS = {
    "deinterlace": "yadif",
    "denoise": "hqdn3d=4:3:6:4.5",
    "sharpen": "unsharp=5:5:1.0:5:5:0.0",
}

# Resampling blends neighbouring frames; intensity 0..1 maps to this many frames.
RESAMPLE_MIN_FRAMES = 2
RESAMPLE_MAX_FRAMES = 8

_PASSTHROUGH_RESOLUTIONS = ("", "original", "source")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _find_binary(name: str, override: Optional[str] = None) -> Optional[str]:
    """Find an FFmpeg-suite binary: explicit override, PATH, then common install locations."""
    if override:
        return override if os.path.isfile(override) else None

    found = shutil.which(name)
    if found:
        return found

    common_paths = [
        f"/usr/local/bin/{name}",
        f"/usr/bin/{name}",
        f"/opt/homebrew/bin/{name}",
    ]
    for path in common_paths:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path

    return None


# ============================================================================
# Argument building (pure)
# ============================================================================

def resolve_encoder(config: EncodingConfiguration) -> Optional[str]:
    """
    Map a codec id to an FFmpeg encoder.

    Returns:
        Encoder name, "copy", or None when no codec override is configured

    Raises:
        BackendError: GPU requested for a codec without an NVENC encoder
    """
    codec = config.codec.strip().lower()
    if not codec:
        return None
    if codec == "copy":
        return "copy"
    if config.prefer_gpu:
        encoder = GPU_ENCODERS.get(codec)
        if not encoder:
            raise BackendError(f"GPU mode is not supported for codec {config.codec}")
        return encoder
    return CPU_ENCODERS.get(codec, codec)


def build_video_filters(config: EncodingConfiguration) -> List[str]:
    """
    Build the -vf chain: scale, named filters in configured order, resampling.

    Unknown filter names are skipped with a warning.
    """
    filters: List[str] = []

    resolution = config.resolution.strip().lower()
    if resolution not in _PASSTHROUGH_RESOLUTIONS:
        parts = resolution.split("x")
        if len(parts) == 2 and all(p.strip().isdigit() for p in parts):
            filters.append(f"scale={parts[0].strip()}:{parts[1].strip()}")
        else:
            logger.warning(f"Ignoring unparseable resolution: {config.resolution!r}")

    for name in config.filters:
        expr = NAMED_FILTERS.get(name)
        if expr is None:
            logger.warning(f"Unknown preview filter skipped: {name!r}")
            continue
        filters.append(expr)

    if config.resampling_enabled:
        intensity = _clamp(float(config.resampling_intensity), 0.0, 1.0)
        frames = RESAMPLE_MIN_FRAMES + round(intensity * (RESAMPLE_MAX_FRAMES - RESAMPLE_MIN_FRAMES))
        filters.append(f"tmix=frames={frames}")

    return filters


def build_encode_args(config: EncodingConfiguration) -> List[str]:
    """
    Build encoder arguments (-c:v, -b:v, -crf, -preset, -r).

    Returns an empty list when the configuration has no codec override.

    Raises:
        BackendError: Unsupported GPU codec, or filters combined with copy
    """
    encoder = resolve_encoder(config)
    if encoder is None:
        return []
    if encoder == "copy":
        if config.filters:
            raise BackendError('Video filters not supported with codec "copy"')
        return ["-c:v", "copy"]

    args = ["-c:v", encoder]

    if config.bitrate and config.bitrate != "auto":
        try:
            bitrate = _clamp(float(config.bitrate), 0.1, 100.0)
            args += ["-b:v", f"{bitrate:g}M"]
        except ValueError:
            logger.warning(f"Ignoring invalid bitrate: {config.bitrate!r}")

    if config.crf and config.crf != "auto":
        try:
            crf = int(_clamp(int(float(config.crf)), 0, 51))
            args += ["-crf", str(crf)]
        except ValueError:
            logger.warning(f"Ignoring invalid CRF: {config.crf!r}")

    if config.preset and encoder in ("libx264", "libx265"):
        preset = config.preset if config.preset in X26X_PRESETS else "medium"
        args += ["-preset", preset]

    if config.fps:
        try:
            fps = _clamp(float(config.fps), 1.0, 240.0)
            args += ["-r", f"{fps:g}"]
        except ValueError:
            logger.warning(f"Ignoring invalid fps: {config.fps!r}")

    return args


def segment_cache_key(
    source_path: str,
    time_seconds: float,
    duration_seconds: float,
    config: EncodingConfiguration,
) -> str:
    """Cache key over everything that affects a segment, including source mtime."""
    source = Path(source_path)
    mtime = source.stat().st_mtime if source.exists() else 0
    key_source = json.dumps(
        [source_path, mtime, float(time_seconds), float(duration_seconds), config.to_backend_dict()],
        sort_keys=True,
    )
    return hashlib.md5(key_source.encode()).hexdigest()[:16]


def parse_probe_output(data: dict) -> VideoMetadata:
    """
    Extract duration and dimensions from ffprobe JSON.

    Raises:
        BackendDecodeError: No video stream or no usable duration
    """
    streams = data.get("streams") or []
    if not streams:
        raise BackendDecodeError("No video stream found")
    stream = streams[0]

    duration = None
    for raw in ((data.get("format") or {}).get("duration"), stream.get("duration")):
        if raw in (None, "", "N/A"):
            continue
        try:
            duration = float(raw)
            break
        except (TypeError, ValueError):
            continue
    if duration is None:
        raise BackendDecodeError("Could not determine video duration")

    try:
        width = int(stream.get("width") or 0)
        height = int(stream.get("height") or 0)
    except (TypeError, ValueError) as e:
        raise BackendDecodeError(f"Invalid stream dimensions: {e}") from e

    return VideoMetadata(duration=duration, width=width, height=height)


def _stderr_tail(result: subprocess.CompletedProcess) -> str:
    stderr = result.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode(errors="replace")
    return (stderr or "").strip()[-500:]


# ============================================================================
# Backend
# ============================================================================

class FFmpegPreviewBackend(PreviewBackend):
    """Local FFmpeg rendering backend."""

    def __init__(self, config: Optional[PreviewConfig] = None):
        self.config = config or PreviewConfig()

    @property
    def name(self) -> str:
        return "FFmpeg"

    def _ffmpeg(self) -> str:
        path = _find_binary("ffmpeg", self.config.ffmpeg_path)
        if not path:
            raise BackendError("FFmpeg not found")
        return path

    def _ffprobe(self) -> str:
        path = _find_binary("ffprobe", self.config.ffprobe_path)
        if path:
            return path

        # ffprobe usually sits next to ffmpeg
        ffmpeg_path = _find_binary("ffmpeg", self.config.ffmpeg_path)
        if ffmpeg_path:
            sibling = ffmpeg_path.replace("ffmpeg", "ffprobe")
            if os.path.isfile(sibling):
                return sibling
        raise BackendError("FFprobe not found")

    # ------------------------------------------------------------------
    # Async contract
    # ------------------------------------------------------------------

    async def get_video_metadata(self, source_path: str) -> VideoMetadata:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.get_video_metadata_sync, source_path)

    async def get_preview_frame(
        self,
        source_path: str,
        time_seconds: float,
        config: EncodingConfiguration,
    ) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self.get_preview_frame_sync, source_path, time_seconds, config
        )

    async def get_preview_video_segment(
        self,
        source_path: str,
        time_seconds: float,
        duration_seconds: float,
        config: EncodingConfiguration,
    ) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self.get_preview_video_segment_sync,
            source_path,
            time_seconds,
            duration_seconds,
            config,
        )

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def get_video_metadata_sync(self, source_path: str) -> VideoMetadata:
        """Probe a source with ffprobe."""
        if not Path(source_path).exists():
            raise BackendNotFoundError(source_path)

        cmd = [
            self._ffprobe(),
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height,duration",
            "-show_entries", "format=duration",
            "-of", "json",
            source_path,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=PROBE_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired as e:
            raise BackendDecodeError(f"ffprobe timed out after {PROBE_TIMEOUT_SECONDS}s") from e

        if result.returncode != 0:
            raise BackendDecodeError(f"ffprobe failed: {_stderr_tail(result)}")

        try:
            data = json.loads(result.stdout.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BackendDecodeError(f"Unreadable ffprobe output: {e}") from e

        return parse_probe_output(data)

    def get_preview_frame_sync(
        self,
        source_path: str,
        time_seconds: float,
        config: EncodingConfiguration,
    ) -> bytes:
        """
        Render one JPEG frame.

        With a codec override the frame is encoded with the full encoder
        arguments first and decoded back, so compression is visible.
        """
        if not Path(source_path).exists():
            raise BackendNotFoundError(source_path)

        ffmpeg_path = self._ffmpeg()
        vf = build_video_filters(config)
        encode_args = build_encode_args(config)
        seek = ["-ss", f"{float(time_seconds):.3f}"]

        if not encode_args or encode_args[:2] == ["-c:v", "copy"]:
            cmd = [ffmpeg_path, "-v", "error", *seek, "-i", source_path, "-frames:v", "1"]
            if vf:
                cmd += ["-vf", ",".join(vf)]
            cmd += ["-f", "image2pipe", "-c:v", "mjpeg", "-q:v", str(JPEG_QUALITY), "pipe:1"]
            return self._run_for_image(cmd)

        with tempfile.TemporaryDirectory(prefix="livepreview_frame_") as tmpdir:
            encoded = str(Path(tmpdir) / "frame.mkv")
            # -r would drop the single frame at low rates; keep it for segments only
            frame_args = _strip_option(encode_args, "-r")
            cmd = [ffmpeg_path, "-v", "error", "-y", *seek, "-i", source_path, "-frames:v", "1"]
            if vf:
                cmd += ["-vf", ",".join(vf)]
            cmd += [*frame_args, "-an", encoded]
            result = subprocess.run(cmd, capture_output=True)
            if result.returncode != 0:
                raise BackendError(f"Frame encode failed: {_stderr_tail(result)}")

            decode = [
                ffmpeg_path, "-v", "error", "-i", encoded, "-frames:v", "1",
                "-f", "image2pipe", "-c:v", "mjpeg", "-q:v", str(JPEG_QUALITY), "pipe:1",
            ]
            return self._run_for_image(decode)

    def _run_for_image(self, cmd: List[str]) -> bytes:
        result = subprocess.run(cmd, capture_output=True)
        if result.returncode != 0:
            raise BackendDecodeError(f"Frame extraction failed: {_stderr_tail(result)}")
        if not result.stdout:
            raise BackendDecodeError("Frame extraction produced no image")
        return result.stdout

    def get_preview_video_segment_sync(
        self,
        source_path: str,
        time_seconds: float,
        duration_seconds: float,
        config: EncodingConfiguration,
    ) -> str:
        """Encode a segment into the cache directory and return its path."""
        if not Path(source_path).exists():
            raise BackendNotFoundError(source_path)

        ffmpeg_path = self._ffmpeg()
        vf = build_video_filters(config)
        encode_args = build_encode_args(config) or ["-c:v", CPU_ENCODERS["h264"]]

        cache_dir = Path(self.config.cache_dir)
        cache_dir.mkdir(parents=True, exist_ok=True)
        cache_key = segment_cache_key(source_path, time_seconds, duration_seconds, config)
        output_path = cache_dir / f"{cache_key}.mp4"

        if output_path.exists() and output_path.stat().st_size > 0:
            logger.debug(f"Using cached preview segment: {output_path}")
            return str(output_path)

        cmd = [
            ffmpeg_path, "-v", "error", "-y",
            "-ss", f"{float(time_seconds):.3f}",
            "-i", source_path,
            "-t", f"{float(duration_seconds):.3f}",
        ]
        if vf:
            cmd += ["-vf", ",".join(vf)]
        cmd += [
            *encode_args,
            "-an",
            "-movflags", "+faststart",  # Web playback optimization
            str(output_path),
        ]

        logger.info(f"Generating preview segment for: {source_path} @ {time_seconds:.2f}s")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")
        result = subprocess.run(cmd, capture_output=True)

        if result.returncode != 0:
            output_path.unlink(missing_ok=True)
            raise BackendError(f"Preview segment failed: {_stderr_tail(result)}")

        if not output_path.exists() or output_path.stat().st_size == 0:
            logger.warning(f"FFmpeg reported success but segment is missing: {output_path}")
            return ""

        return str(output_path)


def _strip_option(args: List[str], option: str) -> List[str]:
    """Remove an option and its value from an argument list."""
    stripped: List[str] = []
    skip = False
    for arg in args:
        if skip:
            skip = False
            continue
        if arg == option:
            skip = True
            continue
        stripped.append(arg)
    return stripped


def clear_segment_cache(cache_dir: Path) -> int:
    """Delete cached preview segments. Returns count of files deleted."""
    if not cache_dir.exists():
        return 0

    count = 0
    for f in cache_dir.glob("*.mp4"):
        try:
            f.unlink()
            count += 1
        except OSError as e:
            logger.warning(f"Could not delete cached segment {f}: {e}")
    return count
