"""Cache stores for estimation results."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from tasador_rural.config import settings
from tasador_rural.errors import CacheError
from tasador_rural.models import CacheEntry
from tasador_rural.models.database import ComparablesCacheDB, get_engine, get_session_factory, init_db

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

UPSERT_DIALECTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def default_ttl() -> timedelta:
    return timedelta(seconds=settings.cache_ttl_seconds)


class MemoryCacheStore:
    """In-process cache store. Entries live as long as the process."""

    def __init__(self, clock: Clock = datetime.now):
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self.clock():
            return None
        return entry

    def put(self, key: str, payload: dict, ttl: timedelta | None = None) -> CacheEntry:
        """Insert or replace the entry for key."""
        entry = CacheEntry(
            query_hash=key,
            payload=payload,
            expires_at=self.clock() + (default_ttl() if ttl is None else ttl),
        )
        self._entries[key] = entry
        return entry

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> tuple[int, int]:
        now = self.clock()
        active = sum(1 for entry in self._entries.values() if entry.expires_at > now)
        return active, len(self._entries) - active


class SqlCacheStore:
    """
    Cache store backed by the comparables_cache table.

    Every database failure surfaces as CacheError so callers can fall back
    to a fresh search.
    """

    def __init__(self, engine: Engine | None = None, clock: Clock = datetime.now):
        self.engine = engine or get_engine()
        self.clock = clock
        self.Session = get_session_factory(self.engine)

    def init(self) -> None:
        """Create the cache table if needed."""
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise CacheError(f"Could not create cache table: {e}") from e

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for key, or None if missing or expired."""
        session = self.Session()
        try:
            row = session.execute(
                select(ComparablesCacheDB).where(
                    ComparablesCacheDB.query_hash == key,
                    ComparablesCacheDB.expires_at > self.clock(),
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            return CacheEntry(query_hash=row.query_hash, payload=row.results, expires_at=row.expires_at)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache read failed for {key}: {e}") from e
        finally:
            session.close()

    def put(self, key: str, payload: dict, ttl: timedelta | None = None) -> CacheEntry:
        """Insert or replace the entry for key."""
        now = self.clock()
        expires_at = now + (default_ttl() if ttl is None else ttl)
        session = self.Session()

        try:
            insert = UPSERT_DIALECTS.get(self.engine.dialect.name)
            if insert is not None:
                stmt = insert(ComparablesCacheDB).values(
                    query_hash=key,
                    results=payload,
                    expires_at=expires_at,
                    created_at=now,
                )
                # On conflict, replace the payload and push the expiry forward
                stmt = stmt.on_conflict_do_update(
                    index_elements=["query_hash"],
                    set_={
                        "results": stmt.excluded.results,
                        "expires_at": stmt.excluded.expires_at,
                        "created_at": stmt.excluded.created_at,
                    },
                )
                session.execute(stmt)
            else:
                row = session.execute(
                    select(ComparablesCacheDB).where(ComparablesCacheDB.query_hash == key)
                ).scalar_one_or_none()
                if row is None:
                    row = ComparablesCacheDB(query_hash=key)
                    session.add(row)
                row.results = payload
                row.expires_at = expires_at
                row.created_at = now

            session.commit()

        except SQLAlchemyError as e:
            session.rollback()
            raise CacheError(f"Cache write failed for {key}: {e}") from e
        finally:
            session.close()

        logger.debug("Cached results for %s until %s", key, expires_at)
        return CacheEntry(query_hash=key, payload=payload, expires_at=expires_at)

    def purge_expired(self) -> int:
        """Delete expired entries. Returns how many were removed."""
        session = self.Session()
        try:
            result = session.execute(
                delete(ComparablesCacheDB).where(ComparablesCacheDB.expires_at <= self.clock())
            )
            session.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            session.rollback()
            raise CacheError(f"Cache purge failed: {e}") from e
        finally:
            session.close()

    def stats(self) -> tuple[int, int]:
        """Return (active, expired) entry counts."""
        session = self.Session()
        try:
            now = self.clock()
            total = session.scalar(select(func.count()).select_from(ComparablesCacheDB)) or 0
            active = session.scalar(
                select(func.count()).select_from(ComparablesCacheDB).where(ComparablesCacheDB.expires_at > now)
            ) or 0
            return active, total - active
        except SQLAlchemyError as e:
            raise CacheError(f"Cache stats failed: {e}") from e
        finally:
            session.close()
