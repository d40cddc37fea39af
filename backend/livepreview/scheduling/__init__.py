"""
Preview scheduling: fingerprints, generation state, single-flight guard
and the debounce timer.

Decides when and whether a render is requested. It does NOT call the
backend (see livepreview.execution).
"""

from .fingerprint import fingerprint, PreviewRequest
from .state import GenerationStatus, GenerationState
from .guard import ConcurrencyGuard
from .debounce import DebounceScheduler

__all__ = [
    # Fingerprints
    "fingerprint",
    "PreviewRequest",
    # State
    "GenerationStatus",
    "GenerationState",
    # Guard and timer
    "ConcurrencyGuard",
    "DebounceScheduler",
]
