"""
Admission engine.

Decides admit/reject for a single request against a single credential.
All state changes go through ``CredentialStore.cas_increment_or_reset``,
which serializes callers per key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from geogate.config import QuotaPolicy
from geogate.errors import CredentialNotFoundError, StorageError, UnauthenticatedError
from geogate.quota.store import CredentialStore
from geogate.quota.window import now_ms, reset_at

logger = logging.getLogger(__name__)


class DecisionStatus(str, Enum):
    """Outcome of an admission check."""

    ADMITTED = "admitted"
    REJECTED = "rejected"
    ERROR = "error"


class RejectReason(str, Enum):
    """Why a request was rejected."""

    INVALID_KEY = "invalid_key"
    QUOTA_EXCEEDED = "quota_exceeded"


def ms_to_iso(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Decision:
    """Result of ``AdmissionEngine.admit``."""

    status: DecisionStatus
    """Admitted, rejected, or undecided because of a store failure."""

    limit: int = 0
    """Credential limit (0 when unknown)."""

    remaining: int = 0
    """Requests left in the current window."""

    reset_at: int | None = None
    """Window expiry instant in epoch milliseconds."""

    reason: RejectReason | None = None
    """Set on rejections."""

    error: str | None = None
    """Set when status is ERROR."""

    retry_after: float | None = None
    """Seconds from evaluation until the window resets, set on quota rejections."""

    @property
    def admitted(self) -> bool:
        return self.status is DecisionStatus.ADMITTED


class AdmissionEngine:
    """
    Fixed-window admission control over the credential store.

    Under N concurrent calls for a key with limit L inside one window,
    exactly min(N, L) are admitted.
    """

    def __init__(
        self,
        store: CredentialStore,
        policy: QuotaPolicy,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """
        Initialize the engine.

        Args:
            store: Credential store providing the atomic primitive
            policy: Window duration and default limit
            clock: Source of epoch-millisecond timestamps
        """
        self._store = store
        self._policy = policy
        self._clock = clock

    @property
    def policy(self) -> QuotaPolicy:
        return self._policy

    def admit(self, key: str | None, now: int | None = None) -> Decision:
        """
        Admit or reject one request for ``key``.

        Args:
            key: API key presented by the caller
            now: Evaluation instant (epoch ms), defaults to the clock

        Returns:
            Decision describing the outcome

        Raises:
            UnauthenticatedError: If no key was supplied
        """
        if not key:
            raise UnauthenticatedError()

        now = self._clock() if now is None else now
        window = self._policy.window_ms

        try:
            result = self._store.cas_increment_or_reset(key, now, window)
        except CredentialNotFoundError:
            logger.warning("Rejected request with unknown API key")
            return Decision(status=DecisionStatus.REJECTED, reason=RejectReason.INVALID_KEY)
        except StorageError as e:
            logger.error(f"Admission check failed: {e}")
            return Decision(status=DecisionStatus.ERROR, error=str(e))

        resets = reset_at(result.window_start, window)
        if not result.admitted:
            logger.info(f"Quota exceeded ({result.count}/{result.limit})")
            return Decision(
                status=DecisionStatus.REJECTED,
                limit=result.limit,
                remaining=0,
                reset_at=resets,
                reason=RejectReason.QUOTA_EXCEEDED,
                retry_after=max(0.0, (resets - now) / 1000),
            )

        if result.window_reset:
            logger.debug("Stale window rolled over during admission")
        return Decision(
            status=DecisionStatus.ADMITTED,
            limit=result.limit,
            remaining=max(0, result.limit - result.count),
            reset_at=resets,
        )
