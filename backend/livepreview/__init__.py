"""
Live preview: debounced, single-flight encoding previews.

Sits between a user-edited encoding configuration and an expensive
rendering backend. Produces before/after frame pairs or short transcoded
segments without sending redundant or overlapping work to the backend.
"""

from .config import PreviewConfig
from .panel import PreviewPanel

__all__ = ["PreviewConfig", "PreviewPanel"]

__version__ = "0.1.0"
