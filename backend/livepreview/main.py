"""
Live preview service: one preview panel behind an HTTP API.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livepreview.config import PreviewConfig
from livepreview.execution.base import PreviewBackend
from livepreview.execution.ffmpeg import FFmpegPreviewBackend
from livepreview.execution.locators import LocatorTranslator, to_file_url
from livepreview.panel import PreviewPanel
from livepreview.routes import preview


def create_app(
    backend: Optional[PreviewBackend] = None,
    config: Optional[PreviewConfig] = None,
    translate_locator: LocatorTranslator = to_file_url,
) -> FastAPI:
    """
    Build the service.

    Args:
        backend: Rendering backend (FFmpeg if None)
        config: Panel configuration (environment overrides if None)
        translate_locator: Segment locator -> player URL
    """
    config = config or PreviewConfig.from_env()
    backend = backend or FFmpegPreviewBackend(config)
    panel = PreviewPanel(backend, config, translate_locator=translate_locator)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.preview_panel.shutdown()

    app = FastAPI(title="Live Preview", version="0.1.0", lifespan=lifespan)

    # CORS middleware for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],  # Vite dev server
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.preview_panel = panel

    app.include_router(preview.router)

    @app.get("/")
    async def root():
        return {"service": "livepreview", "status": "running", "backend": backend.name}

    return app
