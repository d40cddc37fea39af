"""
Tests for configuration normalization, fingerprints and advisory warnings.

Validates:
- Both external settings shapes fold into one EncodingConfiguration
- Absent values stay absent; only the preset gets a default
- Fingerprints are deterministic and sensitive to every output-affecting field
- Low bitrate advisory thresholds
"""

import pytest
from pydantic import ValidationError

from conftest import H264_CONFIG, SOURCE_PATH
from livepreview.config import PreviewConfig
from livepreview.scheduling.fingerprint import PreviewRequest, fingerprint
from livepreview.settings.models import (
    EncodingConfiguration,
    PreviewMode,
    PreviewSettingsPayload,
    VideoSettingsPayload,
)
from livepreview.settings.normalizer import normalize_configuration
from livepreview.settings.warnings import has_low_bitrate, low_bitrate_message


class TestNormalizer:

    def test_full_shape_is_taken_verbatim(self):
        settings = PreviewSettingsPayload(
            codec="h265",
            crf="20",
            fps="24",
            resolution="3840x2160",
            filters=["denoise", "sharpen"],
            bitrate="12",
            preset="slow",
            prefer_gpu=True,
        )
        config = normalize_configuration(settings=settings)

        assert config.codec == "h265"
        assert config.filters == ("denoise", "sharpen")
        assert config.preset == "slow"
        assert config.prefer_gpu is True

    def test_full_shape_missing_preset_defaults_to_medium(self):
        settings = PreviewSettingsPayload(codec="h264", crf="23", fps="30", resolution="1920x1080")
        config = normalize_configuration(settings=settings)

        assert config.preset == "medium"
        assert config.bitrate is None

    def test_full_shape_uses_separate_gpu_flag_when_unset(self):
        settings = PreviewSettingsPayload(codec="h264", crf="23", fps="30", resolution="1920x1080")
        assert normalize_configuration(settings=settings, prefer_gpu=True).prefer_gpu is True

    def test_settings_page_shape_keeps_enabled_filters_in_order(self):
        video_settings = VideoSettingsPayload.model_validate({
            "codec": "h264",
            "crf": "18",
            "fps": "60",
            "resolution": "1920x1080",
            "bitrate": "",
            "filters": [
                {"name": "sharpen", "enabled": True},
                {"name": "deinterlace", "enabled": False},
                {"name": "denoise", "enabled": True},
            ],
            "resamplingEnabled": True,
            "resamplingIntensity": 0.5,
        })
        config = normalize_configuration(video_settings=video_settings, prefer_gpu=True)

        assert config.filters == ("sharpen", "denoise")
        assert config.resampling_enabled is True
        assert config.resampling_intensity == 0.5
        assert config.bitrate is None
        assert config.preset == "medium"
        assert config.prefer_gpu is True

    def test_settings_page_shape_defaults_resampling_off(self):
        video_settings = VideoSettingsPayload(codec="h264", crf="23", fps="30", resolution="1920x1080")
        config = normalize_configuration(video_settings=video_settings)

        assert config.resampling_enabled is False
        assert config.resampling_intensity == 0.0

    def test_full_shape_wins_over_settings_page(self):
        settings = PreviewSettingsPayload(codec="prores", crf="0", fps="25", resolution="original")
        video_settings = VideoSettingsPayload(codec="h264", crf="23", fps="30", resolution="1920x1080")

        config = normalize_configuration(settings=settings, video_settings=video_settings)
        assert config.codec == "prores"

    def test_neither_shape_gives_empty_configuration(self):
        config = normalize_configuration()

        assert config.codec == ""
        assert config.crf == ""
        assert config.filters == ()
        assert config.bitrate is None
        assert config.preset == "medium"

    def test_settings_page_with_only_filters_normalizes(self):
        """
        GIVEN: A settings-page payload carrying nothing but filter toggles
        WHEN: It is validated and normalized
        THEN: Missing string fields become empty strings, never an error
        """
        video_settings = VideoSettingsPayload.model_validate({
            "filters": [{"name": "denoise", "enabled": True}],
        })
        config = normalize_configuration(video_settings=video_settings)

        assert config.codec == ""
        assert config.crf == ""
        assert config.fps == ""
        assert config.resolution == ""
        assert config.filters == ("denoise",)
        assert config.preset == "medium"

    def test_partial_full_shape_normalizes(self):
        config = normalize_configuration(settings=PreviewSettingsPayload(crf="23"))
        assert config.crf == "23"
        assert config.codec == ""
        assert config.resolution == ""

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            PreviewSettingsPayload(
                codec="h264", crf="23", fps="30", resolution="1920x1080", quality="max"
            )


class TestFingerprint:

    def test_deterministic(self):
        a = fingerprint(H264_CONFIG, PreviewMode.FRAME, 12.5, SOURCE_PATH)
        b = fingerprint(EncodingConfiguration(**H264_CONFIG.__dict__), "frame", 12.5, SOURCE_PATH)
        assert a == b

    def test_integer_and_float_time_are_equal(self):
        assert (
            fingerprint(H264_CONFIG, PreviewMode.FRAME, 0, SOURCE_PATH)
            == fingerprint(H264_CONFIG, PreviewMode.FRAME, 0.0, SOURCE_PATH)
        )

    def test_field_order_is_fixed(self):
        key = fingerprint(H264_CONFIG, PreviewMode.VIDEO, 1.0, SOURCE_PATH)
        assert key.startswith('{"codec":"h264","crf":"23","fps":"30"')
        assert key.endswith('"mode":"video","time":1.0,"path":"/media/source.mp4"}')

    @pytest.mark.parametrize("change", [
        {"codec": "h265"},
        {"crf": "24"},
        {"resolution": "1280x720"},
        {"bitrate": "9"},
        {"preset": "slow"},
        {"prefer_gpu": True},
        {"resampling_enabled": True},
        {"resampling_intensity": 0.25},
    ])
    def test_every_config_field_changes_the_key(self, change):
        values = dict(H264_CONFIG.__dict__)
        values.update(change)
        changed = EncodingConfiguration(**values)

        assert (
            fingerprint(changed, PreviewMode.FRAME, 0.0, SOURCE_PATH)
            != fingerprint(H264_CONFIG, PreviewMode.FRAME, 0.0, SOURCE_PATH)
        )

    def test_filter_order_is_significant(self):
        a = EncodingConfiguration(filters=("denoise", "sharpen"))
        b = EncodingConfiguration(filters=("sharpen", "denoise"))
        assert fingerprint(a, PreviewMode.FRAME, 0.0, SOURCE_PATH) != fingerprint(b, PreviewMode.FRAME, 0.0, SOURCE_PATH)

    def test_mode_time_and_path_change_the_key(self):
        base = fingerprint(H264_CONFIG, PreviewMode.FRAME, 0.0, SOURCE_PATH)
        assert fingerprint(H264_CONFIG, PreviewMode.VIDEO, 0.0, SOURCE_PATH) != base
        assert fingerprint(H264_CONFIG, PreviewMode.FRAME, 0.5, SOURCE_PATH) != base
        assert fingerprint(H264_CONFIG, PreviewMode.FRAME, 0.0, "/media/other.mov") != base

    def test_capture_snapshots_inputs(self):
        request = PreviewRequest.capture(H264_CONFIG, "video", 3, SOURCE_PATH)

        assert request.mode == PreviewMode.VIDEO
        assert request.time_seconds == 3.0
        assert request.fingerprint == fingerprint(H264_CONFIG, PreviewMode.VIDEO, 3.0, SOURCE_PATH)
        assert len(request.short_key) <= 80


class TestLowBitrateWarning:

    def _config(self, **overrides):
        values = dict(codec="h264", crf="23", fps="60", resolution="1920x1080", bitrate="4")
        values.update(overrides)
        return EncodingConfiguration(**values)

    def test_low_bitrate_at_60fps_1080p(self):
        config = self._config()
        assert has_low_bitrate(config) is True
        assert low_bitrate_message(config).startswith("Low bitrate (4M) for 60fps @ 1920x1080")

    def test_exactly_six_mbps_is_fine(self):
        assert has_low_bitrate(self._config(bitrate="6")) is False

    def test_30fps_is_fine(self):
        assert has_low_bitrate(self._config(fps="30")) is False

    def test_720p_is_fine(self):
        assert has_low_bitrate(self._config(resolution="1280x720")) is False

    def test_uhd_triggers(self):
        assert has_low_bitrate(self._config(resolution="3840x2160", fps="120")) is True

    def test_missing_bitrate_never_warns(self):
        assert has_low_bitrate(self._config(bitrate=None)) is False
        assert has_low_bitrate(self._config(bitrate="")) is False

    def test_unparseable_fps_counts_as_30(self):
        assert has_low_bitrate(self._config(fps="auto")) is False

    def test_leading_numeric_prefix_is_used(self):
        assert has_low_bitrate(self._config(fps="60p", bitrate="2.5M")) is True


class TestConfigFromEnv:

    def test_defaults(self):
        config = PreviewConfig.from_env({})
        assert config.debounce_seconds == 5.0
        assert config.settle_seconds == 0.15
        assert config.segment_seconds == 3.0
        assert config.failure_threshold == 3
        assert config.ffmpeg_path is None

    def test_overrides(self, tmp_path):
        config = PreviewConfig.from_env({
            "LIVEPREVIEW_DEBOUNCE_SECONDS": "1.5",
            "LIVEPREVIEW_FAILURE_THRESHOLD": "5",
            "LIVEPREVIEW_FFMPEG_PATH": "/opt/ffmpeg/bin/ffmpeg",
            "LIVEPREVIEW_CACHE_DIR": str(tmp_path),
        })
        assert config.debounce_seconds == 1.5
        assert config.failure_threshold == 5
        assert config.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
        assert config.cache_dir == tmp_path

    def test_invalid_number_keeps_default(self):
        config = PreviewConfig.from_env({"LIVEPREVIEW_SEGMENT_SECONDS": "three"})
        assert config.segment_seconds == 3.0

    @pytest.mark.parametrize("raw", ["0", "-2"])
    def test_failure_threshold_below_one_keeps_default(self, raw):
        config = PreviewConfig.from_env({"LIVEPREVIEW_FAILURE_THRESHOLD": raw})
        assert config.failure_threshold == 3

    def test_negative_debounce_keeps_default(self):
        config = PreviewConfig.from_env({"LIVEPREVIEW_DEBOUNCE_SECONDS": "-1"})
        assert config.debounce_seconds == 5.0
