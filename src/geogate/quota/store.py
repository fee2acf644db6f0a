"""
Durable credential store.

Wraps the ``credentials`` table behind domain-level operations and
translates SQLAlchemy failures into the geogate error taxonomy. Every
mutating call commits before it returns.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import asdict, dataclass
from typing import Any, Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from geogate.config import QuotaPolicy
from geogate.db.manager import DatabaseManager
from geogate.db.models import CredentialRecord
from geogate.errors import (
    CredentialNotFoundError,
    DuplicateKeyError,
    DuplicateNameError,
    InvalidValueError,
    StorageError,
)
from geogate.quota.locks import KeyedLock
from geogate.quota.window import is_expired, now_ms

logger = logging.getLogger(__name__)

KEY_BYTES = 16

# Field names accepted by update_field, with the legacy column alias.
UPDATABLE_FIELDS = {"name": "name", "limit": "limit", "rate_limit": "limit"}


@dataclass(frozen=True)
class Credential:
    """Snapshot of one credential row."""

    key: str
    name: str
    limit: int
    count: int
    window_start: int
    created_at: int

    @classmethod
    def from_record(cls, record: CredentialRecord) -> Credential:
        return cls(
            key=record.api_key,
            name=record.name,
            limit=record.rate_limit,
            count=record.count,
            window_start=record.window_start,
            created_at=record.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CasResult:
    """Outcome of one compare-and-swap admission attempt."""

    admitted: bool
    """Whether the counter was incremented for this request."""

    count: int
    """Counter value after the operation."""

    limit: int
    """Credential limit at the time of the operation."""

    window_start: int
    """Start of the window the request was evaluated against."""

    window_reset: bool = False
    """Whether a stale window was rolled over by this call."""


def generate_key() -> str:
    """Generate a fresh random API key (hex encoded)."""
    return secrets.token_hex(KEY_BYTES)


def _coerce_limit(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidValueError("Rate limit must be a positive number")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidValueError("Rate limit must be a positive number") from None
    if not isinstance(value, int) or value < 1:
        raise InvalidValueError("Rate limit must be a positive number")
    return value


def _coerce_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidValueError("Name must be a non-empty string")
    return value.strip()


class CredentialStore:
    """
    Credential persistence with an atomic admission primitive.

    ``cas_increment_or_reset`` serializes callers per key with an in-process
    lock and guards its write with a compare-and-swap on the row it read,
    so updates from other processes or the sweeper are never lost.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        policy: QuotaPolicy | None = None,
        clock: Callable[[], int] = now_ms,
        max_cas_attempts: int = 8,
    ) -> None:
        """
        Initialize the store.

        Args:
            db_manager: Database manager owning the engine
            policy: Quota policy supplying the default limit and window
            clock: Source of epoch-millisecond timestamps
            max_cas_attempts: Conflicting writes tolerated per admission
        """
        self._db = db_manager
        self._policy = policy or QuotaPolicy()
        self._clock = clock
        self._max_cas_attempts = max_cas_attempts
        self._locks = KeyedLock()

    @property
    def policy(self) -> QuotaPolicy:
        return self._policy

    # --- schema ---

    def setup(self) -> None:
        """Create the credential table if missing."""
        try:
            self._db.init_db()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to set up store: {e}") from e

    def reset(self) -> None:
        """Drop every credential and recreate an empty table."""
        try:
            self._db.drop_db()
            self._db.init_db()
            self._db.vacuum()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to reset store: {e}") from e
        logger.warning("Credential store reset")

    # --- reads ---

    def get(self, key: str) -> Credential:
        """
        Fetch a credential.

        Raises:
            CredentialNotFoundError: If no credential has this key
            StorageError: On database failure
        """
        try:
            with self._db.get_session() as session:
                record = session.get(CredentialRecord, key)
                if record is None:
                    raise CredentialNotFoundError(key)
                return Credential.from_record(record)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read credential: {e}") from e

    def list_credentials(self) -> list[Credential]:
        """Return all credentials ordered by creation time."""
        try:
            with self._db.get_session() as session:
                records = session.scalars(
                    select(CredentialRecord).order_by(
                        CredentialRecord.created_at, CredentialRecord.name
                    )
                ).all()
                return [Credential.from_record(r) for r in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list credentials: {e}") from e

    # --- provisioning ---

    def create(
        self,
        key: str,
        name: str,
        limit: int | None = None,
        now: int | None = None,
    ) -> Credential:
        """
        Insert a new credential with an empty window.

        Args:
            key: Freshly generated API key
            name: Unique human-readable label
            limit: Requests per window, defaults to the policy default
            now: Creation instant (epoch ms), defaults to the clock

        Raises:
            DuplicateKeyError: If the key already exists
            DuplicateNameError: If the name is taken
            InvalidValueError: If name or limit is invalid
            StorageError: On database failure
        """
        name = _coerce_name(name)
        limit = _coerce_limit(self._policy.default_limit if limit is None else limit)
        if not key:
            raise InvalidValueError("API key must not be empty")
        now = self._clock() if now is None else now

        try:
            with self._db.get_session() as session:
                if session.get(CredentialRecord, key) is not None:
                    raise DuplicateKeyError(key)
                if self._name_taken(session, name):
                    raise DuplicateNameError(name)
                record = CredentialRecord(
                    api_key=key,
                    name=name,
                    rate_limit=limit,
                    count=0,
                    window_start=now,
                    created_at=now,
                )
                session.add(record)
                session.flush()
                credential = Credential.from_record(record)
        except IntegrityError as e:
            raise self._integrity_error(e, key=key, name=name) from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create credential: {e}") from e

        logger.info(f"Created credential '{name}' (limit={limit})")
        return credential

    def create_with_generated_key(self, name: str, limit: int | None = None) -> Credential:
        """Create a credential under a newly generated key."""
        return self.create(generate_key(), name, limit)

    def update_field(self, key: str, field: str, value: Any) -> Credential:
        """
        Update ``name`` or ``limit`` on an existing credential.

        Usage counters are never touched by this call.

        Raises:
            CredentialNotFoundError: If the key is unknown
            DuplicateNameError: If a rename collides
            InvalidValueError: On unknown field or invalid value
            StorageError: On database failure
        """
        target = UPDATABLE_FIELDS.get(field)
        if target is None:
            raise InvalidValueError(
                f"Invalid field '{field}'. Allowed fields: limit, name"
            )
        new_value = _coerce_limit(value) if target == "limit" else _coerce_name(value)

        try:
            with self._db.get_session() as session:
                record = session.get(CredentialRecord, key)
                if record is None:
                    raise CredentialNotFoundError(key)
                if target == "name":
                    if new_value != record.name and self._name_taken(session, new_value):
                        raise DuplicateNameError(new_value)
                    record.name = new_value
                else:
                    record.rate_limit = new_value
                session.flush()
                credential = Credential.from_record(record)
        except IntegrityError as e:
            raise self._integrity_error(e, key=key, name=str(new_value)) from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update credential: {e}") from e

        logger.info(f"Updated {target} for credential '{credential.name}'")
        return credential

    def delete(self, key: str) -> None:
        """Remove a credential permanently."""
        try:
            with self._db.get_session() as session:
                record = session.get(CredentialRecord, key)
                if record is None:
                    raise CredentialNotFoundError(key)
                session.delete(record)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete credential: {e}") from e
        logger.info("Deleted credential")

    # --- admission ---

    def cas_increment_or_reset(
        self,
        key: str,
        now: int,
        window_duration: int | None = None,
    ) -> CasResult:
        """
        Atomically roll over a stale window, then admit if under the limit.

        The expiry check happens before the limit comparison, so a request
        arriving at a reset boundary is judged against the fresh window.
        A rejection leaves the row untouched.

        Raises:
            CredentialNotFoundError: If the key is unknown
            StorageError: On database failure or persistent write contention
        """
        duration = self._policy.window_ms if window_duration is None else window_duration

        with self._locks.hold(key):
            for attempt in range(1, self._max_cas_attempts + 1):
                try:
                    result = self._try_cas(key, now, duration)
                except SQLAlchemyError as e:
                    raise StorageError(f"Failed to update usage: {e}") from e
                if result is not None:
                    return result
                logger.debug(f"CAS conflict on credential (attempt {attempt})")

        raise StorageError(
            f"Gave up after {self._max_cas_attempts} conflicting concurrent updates"
        )

    def _try_cas(self, key: str, now: int, duration: int) -> CasResult | None:
        """One read-decide-write round; None when the guarded write lost a race."""
        with self._db.get_session() as session:
            row = session.execute(
                select(
                    CredentialRecord.count,
                    CredentialRecord.rate_limit,
                    CredentialRecord.window_start,
                ).where(CredentialRecord.api_key == key)
            ).one_or_none()
            if row is None:
                raise CredentialNotFoundError(key)

            seen_count, limit, seen_start = row
            count, window_start = seen_count, seen_start
            rolled = is_expired(seen_start, now, duration)
            if rolled:
                count, window_start = 0, now

            if count >= limit:
                return CasResult(
                    admitted=False,
                    count=count,
                    limit=limit,
                    window_start=window_start,
                )

            outcome = session.execute(
                update(CredentialRecord)
                .where(
                    CredentialRecord.api_key == key,
                    CredentialRecord.count == seen_count,
                    CredentialRecord.window_start == seen_start,
                )
                .values(count=count + 1, window_start=window_start)
                .execution_options(synchronize_session=False)
            )
            if outcome.rowcount != 1:
                return None

        return CasResult(
            admitted=True,
            count=count + 1,
            limit=limit,
            window_start=window_start,
            window_reset=rolled,
        )

    # --- sweeping ---

    def reset_expired(self, older_than: int, now: int | None = None) -> int:
        """
        Reset every window that started before ``older_than``.

        Affected rows get ``count=0`` and ``window_start=now``; the
        credentials themselves are kept.

        Returns:
            Number of credentials reset
        """
        now = self._clock() if now is None else now
        try:
            with self._db.get_session() as session:
                outcome = session.execute(
                    update(CredentialRecord)
                    .where(CredentialRecord.window_start < older_than)
                    .values(count=0, window_start=now)
                    .execution_options(synchronize_session=False)
                )
                return outcome.rowcount
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to reset expired windows: {e}") from e

    # --- helpers ---

    @staticmethod
    def _name_taken(session: Any, name: str) -> bool:
        return (
            session.scalar(
                select(CredentialRecord.api_key).where(CredentialRecord.name == name)
            )
            is not None
        )

    @staticmethod
    def _integrity_error(exc: IntegrityError, key: str, name: str) -> Exception:
        message = str(exc.orig).lower()
        if "api_key" in message or "primary" in message:
            return DuplicateKeyError(key)
        if "name" in message:
            return DuplicateNameError(name)
        if "check" in message:
            return InvalidValueError(f"Constraint violated: {exc.orig}")
        return StorageError(f"Integrity error: {exc.orig}")
