"""Revocation store - time-bounded denylist of tokens revoked by logout.

Entries are keyed by a digest of the raw token value and expire together
with the token they block, so the store only ever holds tokens that would
otherwise still verify. Re-revoking a token can shrink an entry's expiry
but never extend it.

Two backends share the ``RevocationStore`` protocol:

- ``MemoryRevocationStore``: in-process dict guarded by a lock. Only
  correct for a single server process.
- ``DatabaseRevocationStore``: ``token_revocations`` table, visible to
  every instance that shares the database.
"""

import hashlib
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import case, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plotdesk.models.token_revocation import TokenRevocation
from plotdesk.services.errors import RevocationStoreError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def access_token_key(access_token: str) -> str:
    """Revocation key of an access token."""
    return f"access-{token_digest(access_token)}"


def refresh_token_key(refresh_token: str) -> str:
    """Revocation key of a refresh token."""
    return f"refresh-{token_digest(refresh_token)}"


@dataclass(frozen=True)
class RevocationEntry:
    key: str
    expires_at: int
    account_id: str | None = None
    role: str | None = None

    def ttl(self, now: float) -> int:
        return max(0, int(self.expires_at - now))


class RevocationStore(Protocol):
    async def revoke(
        self,
        key: str,
        expires_at: int,
        *,
        account_id: str | None = None,
        role: str | None = None,
    ) -> None: ...

    async def is_revoked(self, key: str) -> bool: ...

    async def get(self, key: str) -> RevocationEntry | None: ...

    async def purge_expired(self) -> int: ...

    async def close(self) -> None: ...


class MemoryRevocationStore:
    """In-process revocation store for single-instance deployments."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._entries: dict[str, RevocationEntry] = {}
        self._lock = threading.Lock()

    async def revoke(
        self,
        key: str,
        expires_at: int,
        *,
        account_id: str | None = None,
        role: str | None = None,
    ) -> None:
        now = self._clock()
        if expires_at <= now:
            return
        entry = RevocationEntry(key=key, expires_at=expires_at, account_id=account_id, role=role)
        with self._lock:
            existing = self._entries.get(key)
            # Never extend a live entry
            if existing is not None and now < existing.expires_at <= expires_at:
                return
            self._entries[key] = entry

    async def is_revoked(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return False
            return True

    async def get(self, key: str) -> RevocationEntry | None:
        """Return the live entry for ``key``, if any."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() >= entry.expires_at:
                return None
            return entry

    async def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RevocationStoreError(f"Unsupported database for revocations: {dialect_name}")
    return insert


class DatabaseRevocationStore:
    """Revocation store backed by the ``token_revocations`` table.

    Uses its own short-lived sessions so a revocation is committed as soon
    as ``revoke`` returns, independent of the caller's transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = time.time,
    ):
        self._session_factory = session_factory
        self._clock = clock

    async def revoke(
        self,
        key: str,
        expires_at: int,
        *,
        account_id: str | None = None,
        role: str | None = None,
    ) -> None:
        if expires_at <= self._clock():
            return
        try:
            async with self._session_factory() as session:
                insert = _dialect_insert(session.get_bind().dialect.name)
                stmt = insert(TokenRevocation).values(
                    key=key,
                    account_id=account_id,
                    role=role,
                    expires_at=expires_at,
                )
                # Single-statement upsert keeping the earlier expiry
                stmt = stmt.on_conflict_do_update(
                    index_elements=[TokenRevocation.key],
                    set_={
                        "expires_at": case(
                            (
                                stmt.excluded.expires_at < TokenRevocation.expires_at,
                                stmt.excluded.expires_at,
                            ),
                            else_=TokenRevocation.expires_at,
                        )
                    },
                )
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to write token revocation")
            raise RevocationStoreError("Could not revoke token") from e

    async def is_revoked(self, key: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TokenRevocation.key).where(
                        TokenRevocation.key == key,
                        TokenRevocation.expires_at > int(self._clock()),
                    )
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            logger.exception("Failed to read token revocations")
            raise RevocationStoreError() from e

    async def get(self, key: str) -> RevocationEntry | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(TokenRevocation, key)
        except SQLAlchemyError as e:
            logger.exception("Failed to read token revocations")
            raise RevocationStoreError() from e
        if row is None or row.expires_at <= self._clock():
            return None
        return RevocationEntry(
            key=row.key,
            expires_at=row.expires_at,
            account_id=row.account_id,
            role=row.role,
        )

    async def purge_expired(self) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(TokenRevocation).where(TokenRevocation.expires_at <= int(self._clock()))
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.exception("Failed to purge token revocations")
            raise RevocationStoreError("Could not purge revocations") from e

    async def close(self) -> None:
        return None
