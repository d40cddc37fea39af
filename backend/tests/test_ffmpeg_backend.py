"""
Tests for the FFmpeg preview backend.

Argument building is pure and tested directly. Subprocess calls are mocked;
no FFmpeg binary is required.
"""

import subprocess
from unittest import mock

import pytest

from conftest import H264_CONFIG
from livepreview.config import PreviewConfig
from livepreview.execution.errors import BackendDecodeError, BackendError, BackendNotFoundError
from livepreview.execution.ffmpeg import (
    FFmpegPreviewBackend,
    build_encode_args,
    build_video_filters,
    clear_segment_cache,
    parse_probe_output,
    resolve_encoder,
    segment_cache_key,
)
from livepreview.settings.models import EncodingConfiguration


def _completed(returncode=0, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_binary(tmp_path):
    """An existing file standing in for ffmpeg/ffprobe (never executed)."""
    path = tmp_path / "ffmpeg"
    path.write_text("")
    return str(path)


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "source.mp4"
    path.write_bytes(b"\x00" * 16)
    return str(path)


class TestEncoderArguments:

    def test_h264_full_configuration(self):
        assert build_encode_args(H264_CONFIG) == [
            "-c:v", "libx264",
            "-b:v", "8M",
            "-crf", "23",
            "-preset", "medium",
            "-r", "30",
        ]

    def test_no_codec_means_no_encode_args(self):
        assert build_encode_args(EncodingConfiguration(crf="23")) == []

    def test_values_are_clamped(self):
        config = EncodingConfiguration(codec="h265", crf="70", fps="500", bitrate="0.01", preset="warp")
        assert build_encode_args(config) == [
            "-c:v", "libx265",
            "-b:v", "0.1M",
            "-crf", "51",
            "-preset", "medium",
            "-r", "240",
        ]

    def test_preset_only_for_x26x(self):
        config = EncodingConfiguration(codec="vp9", crf="30", preset="slow")
        assert build_encode_args(config) == ["-c:v", "libvpx-vp9", "-crf", "30"]

    def test_gpu_encoder(self):
        config = EncodingConfiguration(codec="h264", prefer_gpu=True)
        assert resolve_encoder(config) == "h264_nvenc"

    def test_gpu_unsupported_codec(self):
        config = EncodingConfiguration(codec="vp9", prefer_gpu=True)
        with pytest.raises(BackendError, match="GPU mode is not supported for codec vp9"):
            build_encode_args(config)

    def test_copy_rejects_filters(self):
        config = EncodingConfiguration(codec="copy", filters=("denoise",))
        with pytest.raises(BackendError, match="copy"):
            build_encode_args(config)

    def test_invalid_numbers_are_skipped(self):
        config = EncodingConfiguration(codec="mpeg4", crf="high", bitrate="lots", fps="auto-ish")
        assert build_encode_args(config) == ["-c:v", "mpeg4"]


class TestVideoFilters:

    def test_scale_and_named_filters_in_order(self):
        config = EncodingConfiguration(resolution="1280x720", filters=("sharpen", "deinterlace"))
        assert build_video_filters(config) == [
            "scale=1280:720",
            "unsharp=5:5:1.0:5:5:0.0",
            "yadif",
        ]

    def test_original_resolution_is_not_scaled(self):
        assert build_video_filters(EncodingConfiguration(resolution="original")) == []

    def test_unknown_filter_skipped(self):
        assert build_video_filters(EncodingConfiguration(filters=("vignette",))) == []

    @pytest.mark.parametrize("intensity,frames", [(0.0, 2), (0.5, 5), (1.0, 8), (3.0, 8)])
    def test_resampling_blend(self, intensity, frames):
        config = EncodingConfiguration(resampling_enabled=True, resampling_intensity=intensity)
        assert build_video_filters(config) == [f"tmix=frames={frames}"]


class TestProbeParsing:

    def test_format_duration_preferred(self):
        metadata = parse_probe_output({
            "streams": [{"width": 1920, "height": 1080, "duration": "9.0"}],
            "format": {"duration": "10.5"},
        })
        assert metadata.duration == 10.5
        assert (metadata.width, metadata.height) == (1920, 1080)

    def test_stream_duration_fallback(self):
        metadata = parse_probe_output({
            "streams": [{"width": 640, "height": 360, "duration": "4.2"}],
            "format": {"duration": "N/A"},
        })
        assert metadata.duration == 4.2

    def test_no_streams(self):
        with pytest.raises(BackendDecodeError, match="No video stream"):
            parse_probe_output({"streams": []})

    def test_no_duration(self):
        with pytest.raises(BackendDecodeError, match="duration"):
            parse_probe_output({"streams": [{"width": 1, "height": 1}], "format": {}})


class TestFFmpegPreviewBackend:

    def test_missing_source(self, tmp_path, fake_binary):
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=fake_binary, ffprobe_path=fake_binary))
        with pytest.raises(BackendNotFoundError, match="Source file not found"):
            backend.get_video_metadata_sync(str(tmp_path / "missing.mov"))

    def test_missing_ffmpeg_binary(self, tmp_path, source_file):
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=str(tmp_path / "nope")))
        with pytest.raises(BackendError, match="FFmpeg not found"):
            backend.get_preview_frame_sync(source_file, 0.0, H264_CONFIG)

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_metadata_from_ffprobe(self, mock_run, source_file, fake_binary):
        mock_run.return_value = _completed(
            stdout=b'{"streams": [{"width": 1920, "height": 1080}], "format": {"duration": "120.0"}}'
        )
        backend = FFmpegPreviewBackend(PreviewConfig(ffprobe_path=fake_binary))

        metadata = backend.get_video_metadata_sync(source_file)

        assert metadata.duration == 120.0
        cmd = mock_run.call_args[0][0]
        assert cmd[0] == fake_binary
        assert cmd[-1] == source_file

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_metadata_timeout(self, mock_run, source_file, fake_binary):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ffprobe", timeout=10)
        backend = FFmpegPreviewBackend(PreviewConfig(ffprobe_path=fake_binary))

        with pytest.raises(BackendDecodeError, match="timed out"):
            backend.get_video_metadata_sync(source_file)

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_baseline_frame_is_single_extraction(self, mock_run, source_file, fake_binary):
        mock_run.return_value = _completed(stdout=b"\xff\xd8jpeg")
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=fake_binary))

        data = backend.get_preview_frame_sync(source_file, 1.5, EncodingConfiguration(crf="23"))

        assert data == b"\xff\xd8jpeg"
        assert mock_run.call_count == 1
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-ss") + 1] == "1.500"
        assert "mjpeg" in cmd

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_encoded_frame_round_trips(self, mock_run, source_file, fake_binary):
        mock_run.side_effect = [_completed(), _completed(stdout=b"\xff\xd8jpeg")]
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=fake_binary))

        data = backend.get_preview_frame_sync(source_file, 0.0, H264_CONFIG)

        assert data == b"\xff\xd8jpeg"
        encode_cmd = mock_run.call_args_list[0][0][0]
        assert "libx264" in encode_cmd
        assert "-r" not in encode_cmd
        assert encode_cmd[encode_cmd.index("-vf") + 1] == "scale=1920:1080"

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_empty_image_is_decode_error(self, mock_run, source_file, fake_binary):
        mock_run.return_value = _completed(stdout=b"")
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=fake_binary))

        with pytest.raises(BackendDecodeError, match="no image"):
            backend.get_preview_frame_sync(source_file, 0.0, EncodingConfiguration())

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_segment_success_without_file_returns_empty(self, mock_run, tmp_path, source_file, fake_binary):
        mock_run.return_value = _completed()
        config = PreviewConfig(ffmpeg_path=fake_binary, cache_dir=tmp_path / "segments")
        backend = FFmpegPreviewBackend(config)

        assert backend.get_preview_video_segment_sync(source_file, 0.0, 3.0, H264_CONFIG) == ""

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_segment_written_to_cache(self, mock_run, tmp_path, source_file, fake_binary):
        cache_dir = tmp_path / "segments"

        def write_output(cmd, capture_output):
            with open(cmd[-1], "wb") as f:
                f.write(b"mp4")
            return _completed()

        mock_run.side_effect = write_output
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=fake_binary, cache_dir=cache_dir))

        locator = backend.get_preview_video_segment_sync(source_file, 2.0, 3.0, H264_CONFIG)

        key = segment_cache_key(source_file, 2.0, 3.0, H264_CONFIG)
        assert locator == str(cache_dir / f"{key}.mp4")
        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("-t") + 1] == "3.000"
        assert "+faststart" in cmd

        # Second request is served from the cache
        assert backend.get_preview_video_segment_sync(source_file, 2.0, 3.0, H264_CONFIG) == locator
        assert mock_run.call_count == 1

        assert clear_segment_cache(cache_dir) == 1

    @mock.patch("livepreview.execution.ffmpeg.subprocess.run")
    def test_segment_failure_raises_with_stderr(self, mock_run, tmp_path, source_file, fake_binary):
        mock_run.return_value = _completed(returncode=1, stderr=b"Unknown encoder")
        backend = FFmpegPreviewBackend(PreviewConfig(ffmpeg_path=fake_binary, cache_dir=tmp_path))

        with pytest.raises(BackendError, match="Unknown encoder"):
            backend.get_preview_video_segment_sync(source_file, 0.0, 3.0, H264_CONFIG)

    def test_cache_key_changes_with_config(self, source_file):
        other = EncodingConfiguration(**{**H264_CONFIG.__dict__, "crf": "28"})
        assert segment_cache_key(source_file, 0.0, 3.0, H264_CONFIG) != segment_cache_key(source_file, 0.0, 3.0, other)
