"""
Debounce timer for continuous setting changes.

Holds at most one pending timer. Scheduling a new request replaces the
pending one. Only a pending timer can ever be cancelled: once it has fired
and a render is running, that render runs to completion.

Each timer carries the PreviewRequest captured when it was armed. The fire
callback receives that snapshot, never the panel's live values.
"""

import asyncio
import logging
from typing import Callable, Optional

from .fingerprint import PreviewRequest

logger = logging.getLogger(__name__)


class DebounceScheduler:
    """
    Single-slot delayed trigger on the running asyncio loop.

    Must be used from the loop thread.
    """

    def __init__(
        self,
        delay_seconds: float,
        on_fire: Callable[[PreviewRequest], None],
    ):
        """
        Args:
            delay_seconds: Quiet period before the pending request fires
            on_fire: Called on the loop with the captured request
        """
        self.delay_seconds = delay_seconds
        self._on_fire = on_fire
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[PreviewRequest] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def pending_request(self) -> Optional[PreviewRequest]:
        return self._pending

    def schedule(self, request: PreviewRequest) -> None:
        """Cancel any pending timer, then arm a new one for this request."""
        if self.cancel():
            logger.debug("[Debounce] Cleared previous timer")

        loop = asyncio.get_running_loop()
        self._pending = request
        self._handle = loop.call_later(self.delay_seconds, self._fire)
        logger.info(
            f"[Debounce] Timer armed ({self.delay_seconds:g}s) for {request.short_key}"
        )

    def cancel(self) -> bool:
        """
        Cancel the pending timer, if any.

        Returns:
            True if a timer was pending and is now cancelled
        """
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._pending = None
        return True

    def _fire(self) -> None:
        request = self._pending
        self._handle = None
        self._pending = None
        if request is None:
            return
        logger.info("[Debounce] Timer fired")
        self._on_fire(request)
