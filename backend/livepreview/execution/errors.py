"""
Preview execution errors.

Two layers:
- BackendError and subclasses are raised BY a PreviewBackend.
- PreviewError and subclasses are what the panel sees. The orchestrator
  wraps backend errors into these, keeping the raw backend message as the
  exception text so it can be shown to the operator verbatim.

None of these are fatal to the process. A failed render leaves the panel in
its ERROR state until the next qualifying trigger.
"""


# ============================================================================
# Backend-side errors
# ============================================================================

class BackendError(Exception):
    """Rendering backend failed to produce a result."""
    pass


class BackendNotFoundError(BackendError):
    """Source media does not exist or cannot be opened."""

    def __init__(self, source_path: str, detail: str = ""):
        self.source_path = source_path
        message = f"Source file not found: {source_path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class BackendDecodeError(BackendError):
    """Source media exists but could not be decoded."""
    pass


# ============================================================================
# Panel-facing taxonomy
# ============================================================================

class PreviewError(Exception):
    """
    Base exception for preview failures.

    The exception text is the message shown in the panel's ERROR state.
    """
    pass


class MetadataFetchError(PreviewError):
    """Source could not be probed for duration and dimensions."""

    def __init__(self, source_path: str, message: str):
        self.source_path = source_path
        super().__init__(message)


class FrameFetchError(PreviewError):
    """
    Baseline or processed frame could not be rendered.

    Either call failing fails the whole frame-pair cycle.
    """

    def __init__(self, message: str, baseline: bool = False):
        self.baseline = baseline
        super().__init__(message)


class VideoSegmentError(PreviewError):
    """
    Video segment could not be rendered.

    Raised for backend errors and for an empty locator returned without error.
    """
    pass


class PlaybackDecodeError(PreviewError):
    """A rendered segment repeatedly failed to decode in the player."""

    def __init__(self, failures: int, message: str = "Failed to load video preview"):
        self.failures = failures
        super().__init__(message)
