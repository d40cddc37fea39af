"""
Single-flight guard for backend renders.

At most one render is outstanding unless the operator forces a refresh.
A non-forced attempt while the guard is held is refused; the caller drops
the attempt (no queue, no retry).

The guard counts holders rather than storing a bare flag. A forced refresh
that overlaps a running render therefore does not clear the guard when it
finishes first, and the original render keeps excluding new attempts until
it completes as well.
"""

import logging

logger = logging.getLogger(__name__)


class ConcurrencyGuard:
    """
    Render-in-progress guard owned by one panel.

    Not thread-safe: all access happens on the panel's event loop.
    """

    def __init__(self):
        self._holders = 0

    @property
    def held(self) -> bool:
        """True while any render is outstanding."""
        return self._holders > 0

    @property
    def holders(self) -> int:
        return self._holders

    def try_acquire(self, force: bool = False) -> bool:
        """
        Attempt to take the guard for a new render.

        Args:
            force: Take the guard even if another render holds it

        Returns:
            True if the caller may start a render
        """
        if self._holders > 0 and not force:
            logger.debug(f"[Scheduler] Guard held by {self._holders} render(s), refusing")
            return False
        self._holders += 1
        return True

    def release(self) -> None:
        """Release one hold. Releasing an idle guard is logged and ignored."""
        if self._holders == 0:
            logger.warning("[Scheduler] Guard released while not held")
            return
        self._holders -= 1
