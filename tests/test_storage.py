"""
Tests para los cache stores.

Cubre:
- MemoryCacheStore: TTL, upsert, purge, stats
- SqlCacheStore: mismo contrato sobre SQLite, errores → CacheError
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import FakeClock
from tasador_rural.errors import CacheError
from tasador_rural.models.database import get_engine
from tasador_rural.storage import MemoryCacheStore, SqlCacheStore

PAYLOAD = {"total_found": 2, "comparables": [], "from_cache": False}


@pytest.fixture
def sql_store(tmp_path, clock):
    engine = get_engine(f"sqlite:///{tmp_path / 'cache.db'}")
    store = SqlCacheStore(engine=engine, clock=clock)
    store.init()
    return store


@pytest.fixture
def memory_store(clock):
    return MemoryCacheStore(clock=clock)


@pytest.fixture(params=["memory", "sql"])
def store(request, memory_store, sql_store):
    """Ambas implementaciones comparten el mismo contrato."""
    return memory_store if request.param == "memory" else sql_store


# =============================================================================
# TESTS: contrato común
# =============================================================================

class TestCacheContract:
    """Tests del contrato get/put con expiración."""

    def test_miss_when_empty(self, store):
        assert store.get("nada") is None

    def test_put_then_get(self, store):
        store.put("k1", PAYLOAD)
        entry = store.get("k1")
        assert entry is not None
        assert entry.query_hash == "k1"
        assert entry.payload == PAYLOAD

    def test_ttl_one_hour(self, store, clock):
        """Escrito con ttl=1h: hit a los 59 min, miss a los 61 min."""
        store.put("k1", PAYLOAD, ttl=timedelta(hours=1))

        clock.advance(minutes=59)
        assert store.get("k1") is not None

        clock.advance(minutes=2)
        assert store.get("k1") is None

    def test_default_ttl_is_one_hour(self, store, clock):
        entry = store.put("k1", PAYLOAD)
        assert entry.expires_at == clock() + timedelta(hours=1)

    def test_zero_ttl_expires_immediately(self, store, clock):
        """ttl=0 no se confunde con "sin ttl": vence en el acto."""
        entry = store.put("k1", PAYLOAD, ttl=timedelta(0))
        assert entry.expires_at == clock()
        assert store.get("k1") is None

    def test_expired_exactly_at_expiry(self, store, clock):
        """expires_at <= now cuenta como vencido."""
        store.put("k1", PAYLOAD, ttl=timedelta(minutes=10))
        clock.advance(minutes=10)
        assert store.get("k1") is None

    def test_upsert_replaces_payload(self, store):
        store.put("k1", PAYLOAD)
        store.put("k1", {**PAYLOAD, "total_found": 7})
        assert store.get("k1").payload["total_found"] == 7

    def test_expired_entry_superseded(self, store, clock):
        """Una entrada vencida se reemplaza con una nueva expiración."""
        store.put("k1", PAYLOAD, ttl=timedelta(hours=1))
        clock.advance(hours=2)
        assert store.get("k1") is None

        store.put("k1", {**PAYLOAD, "total_found": 3}, ttl=timedelta(hours=1))
        entry = store.get("k1")
        assert entry.payload["total_found"] == 3
        assert entry.expires_at == clock() + timedelta(hours=1)

    def test_keys_are_independent(self, store):
        store.put("k1", PAYLOAD)
        assert store.get("k2") is None

    def test_stats_and_purge(self, store, clock):
        store.put("viejo", PAYLOAD, ttl=timedelta(minutes=5))
        store.put("nuevo", PAYLOAD, ttl=timedelta(hours=1))
        clock.advance(minutes=10)

        assert store.stats() == (1, 1)
        assert store.purge_expired() == 1
        assert store.stats() == (1, 0)
        assert store.get("nuevo") is not None


# =============================================================================
# TESTS: SqlCacheStore
# =============================================================================

class TestSqlCacheStore:
    """Tests específicos del store SQL."""

    def test_persists_across_instances(self, tmp_path):
        """Otra instancia sobre la misma base ve la entrada."""
        clock = FakeClock()
        url = f"sqlite:///{tmp_path / 'shared.db'}"
        writer = SqlCacheStore(engine=get_engine(url), clock=clock)
        writer.init()
        writer.put("k1", PAYLOAD)

        reader = SqlCacheStore(engine=get_engine(url), clock=clock)
        assert reader.get("k1").payload == PAYLOAD

    def test_read_without_table_raises_cache_error(self, tmp_path, clock):
        store = SqlCacheStore(engine=get_engine(f"sqlite:///{tmp_path / 'vacia.db'}"), clock=clock)
        with pytest.raises(CacheError):
            store.get("k1")

    def test_write_without_table_raises_cache_error(self, tmp_path, clock):
        store = SqlCacheStore(engine=get_engine(f"sqlite:///{tmp_path / 'vacia.db'}"), clock=clock)
        with pytest.raises(CacheError):
            store.put("k1", PAYLOAD)

    def test_postgres_scheme_normalized(self):
        """postgres:// se convierte al esquema que acepta SQLAlchemy."""
        with patch("tasador_rural.models.database.create_engine") as mock_create:
            get_engine("postgres://user:pw@host/db")
        mock_create.assert_called_once_with("postgresql://user:pw@host/db", echo=False)
