"""
Generation state.

Lifecycle: IDLE -> SCHEDULED -> GENERATING -> IDLE | ERROR

ERROR is not terminal. The next qualifying trigger moves it back into
SCHEDULED or GENERATING. Every status is reachable from every other one:
metadata failures and abandoned segments reach ERROR from any status, and
a render finishing while a newer settings change waits on its timer goes
straight back to SCHEDULED.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GenerationStatus(str, Enum):
    """Panel-level render status."""

    IDLE = "idle"  # Nothing pending, nothing in flight
    SCHEDULED = "scheduled"  # Debounce timer armed
    GENERATING = "generating"  # Backend call outstanding
    ERROR = "error"  # Last cycle failed, message recorded


@dataclass(frozen=True)
class GenerationState:
    """One panel's generation state. ERROR carries the raw failure message."""

    status: GenerationStatus = GenerationStatus.IDLE
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "GenerationState":
        return cls(GenerationStatus.IDLE)

    @classmethod
    def scheduled(cls) -> "GenerationState":
        return cls(GenerationStatus.SCHEDULED)

    @classmethod
    def generating(cls) -> "GenerationState":
        return cls(GenerationStatus.GENERATING)

    @classmethod
    def error(cls, message: str) -> "GenerationState":
        return cls(GenerationStatus.ERROR, message)

    @property
    def is_error(self) -> bool:
        return self.status == GenerationStatus.ERROR
