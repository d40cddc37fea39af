"""
Preview panel coordinator.

The single actor that owns every scheduling decision for one preview panel:
the generation state, the single-flight guard, the debounce timer, the
retained artifact and the playback backoff. The render memo lives in the
orchestrator, which only this panel drives.

The host calls the input methods whenever one of the panel's inputs
changes. Nothing is recomputed implicitly. The inputs are:
- visibility                         (becoming visible renders at once)
- source path                        (re-fetches metadata, then renders)
- encoding configuration             (continuous: debounced)
- playback time / keyframe           (discrete: renders at once)
- mode                               (discrete: renders at once)
- refresh                            (forced: always renders)

All methods run on one asyncio loop and are synchronous; backend work runs
in tasks. Triggers that arrive while a render is outstanding are evaluated
immediately and, unless forced, dropped if they would start a second
render. Dropped intents are not queued.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from .compositor import DIVIDER_DEFAULT, ClipRegion, clamp_divider, clip_region, divider_from_pointer
from .config import DEFAULT_PRESET, PreviewConfig
from .execution.artifacts import Artifact, ArtifactStore, FramePair, VideoSegment
from .execution.base import PreviewBackend, VideoMetadata
from .execution.errors import MetadataFetchError, PlaybackDecodeError, PreviewError
from .execution.locators import LocatorTranslator, to_file_url
from .execution.orchestrator import RenderOrchestrator
from .playback.backoff import PlaybackErrorBackoff
from .scheduling.debounce import DebounceScheduler
from .scheduling.fingerprint import PreviewRequest
from .scheduling.guard import ConcurrencyGuard
from .scheduling.state import GenerationState, GenerationStatus
from .settings.models import EncodingConfiguration, PreviewMode
from .settings.warnings import has_low_bitrate

logger = logging.getLogger(__name__)

# Keyframe navigation targets as fractions of the source duration.
KEYFRAME_FRACTIONS = (0.0, 0.5, 0.9)


def format_time(seconds: float) -> str:
    """Format seconds as m:ss."""
    total = max(0, int(seconds))
    return f"{total // 60}:{total % 60:02d}"


class PreviewPanel:
    """
    Debounced, fingerprinted, single-flight preview scheduler for one panel.
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
            config: Timings and thresholds (defaults if None)
            translate_locator: Segment locator -> player URL
            sleep: Awaitable delay used for the segment settle wait
        """
        self.config = config or PreviewConfig()
        self.orchestrator = RenderOrchestrator(
            backend, self.config, translate_locator=translate_locator, sleep=sleep
        )
        self.guard = ConcurrencyGuard()
        self.debounce = DebounceScheduler(self.config.debounce_seconds, self._on_debounce_fired)
        self.artifacts = ArtifactStore()
        self.backoff = PlaybackErrorBackoff(self.config.failure_threshold)

        self._state = GenerationState.idle()
        self._visible = False
        self._mode = PreviewMode.FRAME
        self._configuration = EncodingConfiguration(preset=DEFAULT_PRESET)
        self._time_seconds = 0.0
        self._source_path = ""
        self._metadata: Optional[VideoMetadata] = None
        self._divider = DIVIDER_DEFAULT
        self._tasks: Set[asyncio.Task] = set()
        self._deferred_error: Optional[str] = None

    # =========================================================================
    # Outputs
    # =========================================================================

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._state.message if self._state.is_error else None

    @property
    def is_loading(self) -> bool:
        return self._state.status == GenerationStatus.GENERATING

    @property
    def artifact(self) -> Optional[Artifact]:
        return self.artifacts.current

    @property
    def metadata(self) -> Optional[VideoMetadata]:
        return self._metadata

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def mode(self) -> PreviewMode:
        return self._mode

    @property
    def configuration(self) -> EncodingConfiguration:
        return self._configuration

    @property
    def time_seconds(self) -> float:
        return self._time_seconds

    @property
    def source_path(self) -> str:
        return self._source_path

    @property
    def low_bitrate_warning(self) -> bool:
        return has_low_bitrate(self._configuration)

    @property
    def keyframes(self) -> List[float]:
        if self._metadata is None:
            return [0.0 for _ in KEYFRAME_FRACTIONS]
        return [self._metadata.duration * fraction for fraction in KEYFRAME_FRACTIONS]

    @property
    def divider_position(self) -> float:
        return self._divider

    @property
    def clip(self) -> ClipRegion:
        return clip_region(self._divider)

    @property
    def ready(self) -> bool:
        """Visible with a source whose metadata has loaded."""
        return self._visible and bool(self._source_path) and self._metadata is not None

    # =========================================================================
    # Inputs
    # =========================================================================

    def set_visible(self, visible: bool) -> None:
        """Show or hide the panel. Hiding cancels a pending timer; showing renders."""
        visible = bool(visible)
        if visible == self._visible:
            return
        self._visible = visible

        if not visible:
            self._cancel_pending()
            return

        self._trigger_discrete()

    def set_source(self, source_path: Optional[str]) -> None:
        """
        Point the panel at a new source.

        Metadata is fetched again only when the path actually changes.
        Artifacts, playback time and any pending timer belong to the old
        source and are dropped.
        """
        source_path = source_path or ""
        if source_path == self._source_path:
            return

        logger.info(f"[Preview] Source changed: {self._source_path!r} -> {source_path!r}")
        self._source_path = source_path
        self._metadata = None
        self._time_seconds = 0.0
        self.artifacts.clear()
        self.backoff.reset()
        self._deferred_error = None
        self._cancel_pending()
        if self._state.is_error:
            self._transition(GenerationState.idle())

        if not source_path:
            return

        self._spawn(self._load_metadata(source_path))

    def set_configuration(self, configuration: EncodingConfiguration) -> None:
        """Replace the encoding configuration (continuous trigger)."""
        self._configuration = configuration
        self._trigger_continuous()

    def set_mode(self, mode: PreviewMode) -> None:
        """Switch between frame and video mode, discarding the old mode's artifact."""
        mode = PreviewMode(mode)
        if mode == self._mode:
            return

        if self.artifacts.discard_mode(self._mode):
            logger.debug(f"[Preview] Released {self._mode.value} artifact")
        self.backoff.reset()
        self._mode = mode
        self._trigger_discrete()

    def seek(self, time_seconds: float) -> None:
        """Move the playback time (discrete trigger). Clamped to the source duration."""
        time_seconds = max(0.0, float(time_seconds))
        if self._metadata is not None:
            time_seconds = min(time_seconds, self._metadata.duration)
        if time_seconds == self._time_seconds:
            return
        self._time_seconds = time_seconds
        self._trigger_discrete()

    def seek_keyframe(self, index: int) -> None:
        """
        Jump to a keyframe (0%, 50%, 90% of the duration).

        Raises:
            IndexError: No such keyframe
        """
        keyframes = self.keyframes
        if not 0 <= index < len(keyframes):
            raise IndexError(f"Keyframe index out of range: {index}")
        self.seek(keyframes[index])

    def refresh(self) -> bool:
        """
        Render now regardless of memo and of any render in flight.

        Returns:
            True if a render was started (False only without a loaded source)
        """
        if not self._source_path or self._metadata is None:
            return False
        self.debounce.cancel()
        return self._start(self._capture(), force=True)

    def set_divider(self, position: float) -> ClipRegion:
        self._divider = clamp_divider(position)
        return self.clip

    def drag_divider(self, offset_x: float, container_width: float) -> ClipRegion:
        self._divider = divider_from_pointer(offset_x, container_width)
        return self.clip

    def report_playback_error(self) -> bool:
        """
        The player failed to decode the current segment.

        Returns:
            True if the segment was abandoned
        """
        if self.artifacts.video_segment is None:
            return False
        if not self.backoff.record_failure():
            return False

        self.artifacts.discard_mode(PreviewMode.VIDEO)
        error = PlaybackDecodeError(self.backoff.threshold)
        if self.guard.held:
            # The outstanding render replaces the segment and decides the state
            logger.warning(f"[Preview] {error} while a render is in flight")
            return True
        self._set_error(str(error))
        return True

    def report_playback_loaded(self) -> None:
        """The player decoded the current segment."""
        self.backoff.record_success()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def join(self) -> None:
        """Wait until no metadata fetch or render task is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel the pending timer and abandon outstanding tasks."""
        self.debounce.cancel()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def _capture(self) -> PreviewRequest:
        return PreviewRequest.capture(
            self._configuration, self._mode, self._time_seconds, self._source_path
        )

    def _transition(self, new_state: GenerationState) -> None:
        if new_state != self._state:
            logger.debug(f"[Preview] State {self._state.status.value} -> {new_state.status.value}")
        self._state = new_state

    def _set_error(self, message: str) -> None:
        if self.guard.held:
            # Shown once the outstanding render finishes
            self._deferred_error = message
            return
        self._transition(GenerationState.error(message))

    def _cancel_pending(self) -> None:
        if self.debounce.cancel():
            logger.info("[Debounce] Pending timer cancelled")
        if self._state.status == GenerationStatus.SCHEDULED:
            self._transition(GenerationState.idle())

    def _trigger_continuous(self) -> None:
        if not self.ready:
            return

        request = self._capture()
        if self.orchestrator.is_redundant(request):
            # Settings are back to what was last rendered: nothing to do
            self._cancel_pending()
            return

        logger.info(f"[Debounce] Resetting timer due to fingerprint change: {request.short_key}")
        self.debounce.schedule(request)
        if not self.guard.held:
            self._transition(GenerationState.scheduled())

    def _trigger_discrete(self) -> bool:
        if not self.ready:
            return False
        self.debounce.cancel()
        return self._start(self._capture(), force=False)

    def _on_debounce_fired(self, request: PreviewRequest) -> None:
        self._start(request, force=False)

    def _start(self, request: PreviewRequest, force: bool) -> bool:
        """
        Enter GENERATING for a captured request.

        Non-forced attempts are skipped when the fingerprint matches the
        memo and dropped when another render holds the guard.
        """
        if not force and self.orchestrator.is_redundant(request):
            logger.debug(f"[Preview] Skipping - fingerprint unchanged: {request.short_key}")
            if self._state.status == GenerationStatus.SCHEDULED:
                self._transition(GenerationState.idle())
            return False

        if not self.guard.try_acquire(force=force):
            logger.info("[Preview] Already generating, skipping")
            return False

        self._transition(GenerationState.generating())
        self._spawn(self._run(request))
        return True

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, request: PreviewRequest) -> None:
        error: Optional[str] = None
        try:
            artifact = await self.orchestrator.render(request)
        except PreviewError as e:
            logger.error(f"[Preview] Preview generation failed: {e}")
            error = str(e)
        except Exception as e:
            logger.exception(f"[Preview] Unexpected render failure: {e}")
            error = str(e) or e.__class__.__name__
        else:
            self._retain(request, artifact)
        finally:
            self.guard.release()

        self._finish(error)

    def _retain(self, request: PreviewRequest, artifact: Artifact) -> None:
        if request.source_path != self._source_path:
            logger.info("[Preview] Discarding render for a previous source")
            return
        if self.artifacts.store(artifact, self._mode) and isinstance(artifact, VideoSegment):
            self.backoff.reset()

    def _finish(self, error: Optional[str]) -> None:
        if self.guard.held:
            # A forced render is still outstanding; its outcome decides the state
            if error:
                logger.warning(f"[Preview] Render failed while another is in flight: {error}")
            return

        error = error or self._deferred_error
        self._deferred_error = None

        if error:
            self._set_error(error)
        elif self.debounce.pending:
            self._transition(GenerationState.scheduled())
        else:
            self._transition(GenerationState.idle())

    async def _load_metadata(self, source_path: str) -> None:
        try:
            metadata = await self.orchestrator.fetch_metadata(source_path)
        except MetadataFetchError as e:
            self._metadata_failed(source_path, str(e))
            return
        except Exception as e:
            logger.exception(f"[Preview] Unexpected metadata failure for {source_path}: {e}")
            self._metadata_failed(source_path, str(e) or e.__class__.__name__)
            return

        if source_path != self._source_path:
            logger.debug(f"[Preview] Ignoring metadata for previous source {source_path}")
            return

        self._metadata = metadata
        self._time_seconds = 0.0
        self._trigger_discrete()

    def _metadata_failed(self, source_path: str, message: str) -> None:
        if source_path == self._source_path:
            self._set_error(message)

    # =========================================================================
    # Convenience accessors
    # =========================================================================

    @property
    def frame_pair(self) -> Optional[FramePair]:
        return self.artifacts.frame_pair

    @property
    def video_segment(self) -> Optional[VideoSegment]:
        return self.artifacts.video_segment
