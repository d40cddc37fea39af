"""
Preview panel endpoints.

The host UI drives the panel through these inputs and polls /preview/state.
Every input endpoint returns the resulting state so the UI rarely needs a
second round trip. Renders run in the background; a 200 from an input
endpoint never means the render finished.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel, ConfigDict

from ..panel import PreviewPanel, format_time
from ..settings.models import (
    PreviewMode,
    PreviewSettingsPayload,
    VideoSettingsPayload,
)
from ..settings.normalizer import normalize_configuration
from ..settings.warnings import low_bitrate_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preview", tags=["preview"])


# ============================================================================
# Request/Response Models
# ============================================================================

class SourceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_path: Optional[str] = None


class SettingsRequest(BaseModel):
    """Either settings shape, plus the host's GPU preference."""

    model_config = ConfigDict(extra="forbid")

    settings: Optional[PreviewSettingsPayload] = None
    video_settings: Optional[VideoSettingsPayload] = None
    prefer_gpu: bool = False


class ModeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: PreviewMode


class VisibilityRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    visible: bool


class SeekRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    time_seconds: float


class KeyframeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    index: int


class DividerRequest(BaseModel):
    """Absolute position, or a pointer offset within a container width."""

    model_config = ConfigDict(extra="forbid")

    position: Optional[float] = None
    offset_x: Optional[float] = None
    container_width: Optional[float] = None


class MetadataResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration: float
    width: int
    height: int


class ArtifactResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: PreviewMode
    video_url: Optional[str] = None


class ClipResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    divider: float
    clip_path: str


class PanelStateResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str
    error: Optional[str] = None
    is_loading: bool
    visible: bool
    mode: PreviewMode
    source_path: str
    time_seconds: float
    time_display: str
    metadata: Optional[MetadataResponse] = None
    artifact: Optional[ArtifactResponse] = None
    keyframes: List[float]
    low_bitrate_warning: Optional[str] = None
    clip: ClipResponse


def _panel(request: Request) -> PreviewPanel:
    return request.app.state.preview_panel


def _state(panel: PreviewPanel) -> PanelStateResponse:
    metadata = None
    if panel.metadata is not None:
        metadata = MetadataResponse(
            duration=panel.metadata.duration,
            width=panel.metadata.width,
            height=panel.metadata.height,
        )

    artifact = None
    if panel.frame_pair is not None:
        artifact = ArtifactResponse(kind=PreviewMode.FRAME)
    elif panel.video_segment is not None:
        artifact = ArtifactResponse(kind=PreviewMode.VIDEO, video_url=panel.video_segment.url)

    time_display = format_time(panel.time_seconds)
    if panel.metadata is not None:
        time_display = f"{time_display} / {format_time(panel.metadata.duration)}"

    clip = panel.clip
    return PanelStateResponse(
        status=panel.state.status.value,
        error=panel.error,
        is_loading=panel.is_loading,
        visible=panel.visible,
        mode=panel.mode,
        source_path=panel.source_path,
        time_seconds=panel.time_seconds,
        time_display=time_display,
        metadata=metadata,
        artifact=artifact,
        keyframes=panel.keyframes,
        low_bitrate_warning=low_bitrate_message(panel.configuration) if panel.low_bitrate_warning else None,
        clip=ClipResponse(divider=clip.divider, clip_path=clip.css_clip_path),
    )


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/state")
async def get_state(request: Request) -> PanelStateResponse:
    """Current generation state, artifact summary and timeline."""
    return _state(_panel(request))


@router.post("/source")
async def set_source(body: SourceRequest, request: Request) -> PanelStateResponse:
    """Select the source video. Metadata is fetched in the background."""
    panel = _panel(request)
    panel.set_source(body.source_path)
    return _state(panel)


@router.post("/settings")
async def set_settings(body: SettingsRequest, request: Request) -> PanelStateResponse:
    """Replace the encoding configuration. Renders after the debounce delay."""
    panel = _panel(request)
    configuration = normalize_configuration(
        settings=body.settings,
        video_settings=body.video_settings,
        prefer_gpu=body.prefer_gpu,
    )
    panel.set_configuration(configuration)
    return _state(panel)


@router.post("/mode")
async def set_mode(body: ModeRequest, request: Request) -> PanelStateResponse:
    panel = _panel(request)
    panel.set_mode(body.mode)
    return _state(panel)


@router.post("/visibility")
async def set_visibility(body: VisibilityRequest, request: Request) -> PanelStateResponse:
    panel = _panel(request)
    panel.set_visible(body.visible)
    return _state(panel)


@router.post("/seek")
async def seek(body: SeekRequest, request: Request) -> PanelStateResponse:
    """Move the playback time. Renders immediately."""
    panel = _panel(request)
    panel.seek(body.time_seconds)
    return _state(panel)


@router.post("/keyframe")
async def seek_keyframe(body: KeyframeRequest, request: Request) -> PanelStateResponse:
    """Jump to keyframe 0, 1 or 2 (0%, 50%, 90%)."""
    panel = _panel(request)
    try:
        panel.seek_keyframe(body.index)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _state(panel)


@router.post("/refresh")
async def refresh(request: Request) -> PanelStateResponse:
    """Force a render even if nothing changed."""
    panel = _panel(request)
    if not panel.refresh():
        raise HTTPException(status_code=409, detail="No source loaded")
    return _state(panel)


@router.post("/divider")
async def set_divider(body: DividerRequest, request: Request) -> ClipResponse:
    """Move the split-view divider (clamped to 10-90%)."""
    panel = _panel(request)
    if body.position is not None:
        clip = panel.set_divider(body.position)
    elif body.offset_x is not None and body.container_width is not None:
        clip = panel.drag_divider(body.offset_x, body.container_width)
    else:
        raise HTTPException(status_code=400, detail="Provide position or offset_x with container_width")
    return ClipResponse(divider=clip.divider, clip_path=clip.css_clip_path)


@router.post("/playback/error")
async def playback_error(request: Request) -> PanelStateResponse:
    """The player failed to decode the current segment."""
    panel = _panel(request)
    panel.report_playback_error()
    return _state(panel)


@router.post("/playback/loaded")
async def playback_loaded(request: Request) -> PanelStateResponse:
    panel = _panel(request)
    panel.report_playback_loaded()
    return _state(panel)


@router.get("/frame/{side}")
async def get_frame(side: str, request: Request):
    """Return the original or processed JPEG of the current frame pair."""
    if side not in ("original", "processed"):
        raise HTTPException(status_code=404, detail=f"Unknown frame: {side}")

    pair = _panel(request).frame_pair
    if pair is None:
        raise HTTPException(status_code=404, detail="No frame preview available")

    data = pair.processed if side == "processed" else pair.original
    return Response(content=data, media_type=pair.media_type)


@router.get("/video")
async def get_video(request: Request):
    """Stream the current preview segment."""
    segment = _panel(request).video_segment
    if segment is None:
        raise HTTPException(status_code=404, detail="No video preview available")

    path = Path(segment.locator)
    if not path.exists():
        raise HTTPException(status_code=404, detail="Preview not found")

    return FileResponse(path=path, media_type="video/mp4", filename=path.name)
