"""
Player-side handling of rendered segments.
"""

from .backoff import PlaybackErrorBackoff

__all__ = ["PlaybackErrorBackoff"]
