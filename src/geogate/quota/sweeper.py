"""Background reset of stale quota windows."""

import logging
import threading
from typing import Callable

from geogate.config import QuotaPolicy
from geogate.quota.store import CredentialStore
from geogate.quota.window import expiry_cutoff, now_ms

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Resets windows whose expiry instant has passed.

    Runs independently of request traffic. A sweep that starts while the
    previous one is still running is skipped rather than queued.
    """

    def __init__(
        self,
        store: CredentialStore,
        policy: QuotaPolicy,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._policy = policy
        self._clock = clock
        self._running = threading.Lock()
        self.last_swept: int | None = None

    def sweep(self, now: int | None = None) -> int:
        """
        Reset every stale window once.

        Returns:
            Number of credentials affected (0 when skipped)

        Raises:
            StorageError: If the store cannot be updated
        """
        if not self._running.acquire(blocking=False):
            logger.warning("Previous sweep still running, skipping this tick")
            return 0
        try:
            now = self._clock() if now is None else now
            cutoff = expiry_cutoff(now, self._policy.window_ms)
            affected = self._store.reset_expired(cutoff, now)
            self.last_swept = now
        finally:
            self._running.release()

        if affected:
            logger.info(f"Sweeper reset {affected} expired window(s)")
        return affected

    def run(self) -> None:
        """Scheduled entry point; failures are logged and retried next tick."""
        try:
            self.sweep()
        except Exception as e:
            logger.exception(f"Expiry sweep failed: {e}")
