import pytest

from query_scout.exceptions import StorageFailure, ValidationError
from query_scout.memory import LAST_QUERY_KEY, SESSION_CATEGORY, MemoryStore


@pytest.mark.asyncio
async def test_memory_store_creates_db_at_path(tmp_path):
    db_path = tmp_path / "nested" / "memory.db"
    store = MemoryStore(db_path)
    try:
        await store.set("rules", "fiscal_year", "starts in April")
        assert db_path.exists()
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_set_and_get_round_trip(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        await store.set("rules", "active_user", "status = 'active'", notes="from product team")

        entry = await store.get("rules", "active_user")
        assert entry is not None
        assert entry.value == "status = 'active'"
        assert entry.notes == "from product team"
        assert entry.updated_at
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_get_missing_entry_returns_none(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        assert await store.get("rules", "missing") is None
        assert await store.get_value("rules", "missing") is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_repeated_set_keeps_single_entry(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        await store.set("rules", "k", "v", notes="n")
        first = await store.get("rules", "k")
        await store.set("rules", "k", "v", notes="n")
        second = await store.get("rules", "k")

        entries = await store.list_entries("rules")
        assert len(entries) == 1
        assert (second.category, second.key, second.value, second.notes) == (
            first.category,
            first.key,
            first.value,
            first.notes,
        )
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_upsert_replaces_value_and_notes(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        await store.set("rules", "k", "old", notes="old notes")
        await store.set("rules", "k", "new")

        entry = await store.get("rules", "k")
        assert entry.value == "new"
        assert entry.notes is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_values_persist_across_store_instances(tmp_path):
    db_path = tmp_path / "memory.db"
    first = MemoryStore(db_path)
    await first.set("rules", "k", "v")
    await first.close()

    second = MemoryStore(db_path)
    try:
        assert await second.get_value("rules", "k") == "v"
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_reserved_session_category_rejected_for_public_set(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        with pytest.raises(ValidationError):
            await store.set("session", LAST_QUERY_KEY, "DROP TABLE users")
        with pytest.raises(ValidationError):
            await store.set("  Session ", LAST_QUERY_KEY, "DROP TABLE users")

        await store.set_session_value(LAST_QUERY_KEY, "SELECT 1")
        assert await store.get_value(SESSION_CATEGORY, LAST_QUERY_KEY) == "SELECT 1"
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_empty_category_or_key_rejected(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        with pytest.raises(ValidationError):
            await store.set("", "k", "v")
        with pytest.raises(ValidationError):
            await store.get("rules", "   ")
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_unopenable_store_raises_storage_failure(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file", encoding="utf-8")
    store = MemoryStore(blocker / "memory.db")

    with pytest.raises(StorageFailure):
        await store.get("rules", "k")
