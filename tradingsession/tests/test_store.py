"""Tests for session persistence."""

import orjson
import pytest

from tradingsession.session import MemorySessionStore, SqliteSessionStore, session_key
from tradingsession.types import Session

OWNER = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
PROXY = "0x" + "ab" * 20


def _session(version: int = 1, **changes) -> Session:
    return Session(owner_address=OWNER, proxy_address=PROXY, schema_version=version).copy(**changes)


class TestSessionKey:
    """Tests for session_key."""

    def test_lowercases_owner(self):
        """Keys are case-insensitive on the owner."""
        assert session_key(OWNER) == f"trading_session_{OWNER.lower()}"


class TestMemorySessionStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        """A saved session loads back with a fresh timestamp."""
        store = MemorySessionStore(schema_version=1)
        await store.save(_session(is_proxy_deployed=True))

        loaded = await store.load(OWNER.lower())
        assert loaded is not None
        assert loaded.is_proxy_deployed is True
        assert loaded.last_checked_at > 0

    @pytest.mark.asyncio
    async def test_load_missing(self):
        """Unknown owners load as None."""
        store = MemorySessionStore()
        assert await store.load(OWNER) is None

    @pytest.mark.asyncio
    async def test_schema_version_mismatch_discards(self):
        """A record from an older schema is dropped on load."""
        old = MemorySessionStore(schema_version=1)
        await old.save(_session(version=1, is_proxy_deployed=True))

        new = MemorySessionStore(schema_version=2)
        new._data = old._data
        assert await new.load(OWNER) is None
        assert session_key(OWNER) not in new._data

    @pytest.mark.asyncio
    async def test_owner_mismatch_discards(self):
        """A record stored under the wrong owner key is dropped."""
        store = MemorySessionStore()
        other = "0x" + "11" * 20
        store._data[session_key(OWNER)] = orjson.dumps(
            _session().copy(owner_address=other).to_dict()
        )
        assert await store.load(OWNER) is None
        assert session_key(OWNER) not in store._data

    @pytest.mark.asyncio
    async def test_unreadable_record_discarded(self):
        """Corrupt JSON is dropped instead of raising."""
        store = MemorySessionStore()
        store._data[session_key(OWNER)] = b"{not json"
        assert await store.load(OWNER) is None

    @pytest.mark.asyncio
    async def test_save_rejects_wrong_version(self):
        """Saving a session from another schema version is an error."""
        store = MemorySessionStore(schema_version=2)
        with pytest.raises(ValueError):
            await store.save(_session(version=1))

    @pytest.mark.asyncio
    async def test_update_reads_latest(self):
        """update() mutates the persisted value, not a stale copy."""
        store = MemorySessionStore()
        await store.save(_session(is_proxy_deployed=True))

        updated = await store.update(OWNER, lambda current: current.copy(has_approvals=True))
        assert updated.is_proxy_deployed is True
        assert updated.has_approvals is True
        assert (await store.load(OWNER)).has_approvals is True

    @pytest.mark.asyncio
    async def test_update_creates_when_absent(self):
        """update() receives None when nothing is stored."""
        store = MemorySessionStore()
        seen = []

        def mutate(current):
            seen.append(current)
            return _session(has_credentials=False)

        await store.update(OWNER, mutate)
        assert seen == [None]
        assert await store.load(OWNER) is not None

    @pytest.mark.asyncio
    async def test_update_cannot_change_owner(self):
        """Owner changes through update() are rejected."""
        store = MemorySessionStore()
        await store.save(_session())
        with pytest.raises(ValueError):
            await store.update(OWNER, lambda current: current.copy(owner_address="0x" + "11" * 20))

    @pytest.mark.asyncio
    async def test_clear_and_clear_all(self):
        """clear() removes one owner; clear_all() removes everything."""
        store = MemorySessionStore()
        await store.save(_session())
        other = _session().copy(owner_address="0x" + "11" * 20)
        await store.save(other)

        await store.clear(OWNER)
        assert await store.load(OWNER) is None
        assert await store.clear_all() == 1


class TestSqliteSessionStore:
    """Tests for the SQLite store."""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        """A session written by one store is read by the next."""
        path = str(tmp_path / "sessions.db")
        store = SqliteSessionStore(path)
        await store.save(_session(is_proxy_deployed=True, has_approvals=True))
        store.close()

        reopened = SqliteSessionStore(path)
        loaded = await reopened.load(OWNER)
        reopened.close()
        assert loaded is not None
        assert loaded.has_approvals is True

    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, tmp_path):
        """Saving twice keeps a single row with the latest value."""
        store = SqliteSessionStore(str(tmp_path / "sessions.db"))
        await store.save(_session())
        await store.save(_session(is_proxy_deployed=True))

        loaded = await store.load(OWNER)
        assert loaded.is_proxy_deployed is True
        assert await store.clear_all() == 1
        store.close()

    @pytest.mark.asyncio
    async def test_schema_bump_resets(self, tmp_path):
        """Bumping the schema version invalidates stored sessions."""
        path = str(tmp_path / "sessions.db")
        store = SqliteSessionStore(path, schema_version=1)
        await store.save(_session(version=1))
        store.close()

        bumped = SqliteSessionStore(path, schema_version=2)
        assert await bumped.load(OWNER) is None
        bumped.close()
