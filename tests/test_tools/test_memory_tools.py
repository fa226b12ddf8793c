import pytest

from query_scout.memory import MemoryStore
from query_scout.tools import GetMemoryTool, SetMemoryTool


@pytest.mark.asyncio
async def test_set_then_get_memory_tool(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        stored = await SetMemoryTool(store).execute(category="rules", key="active", value="status='active'")
        assert stored.success is True
        assert stored.data == {"stored": "rules/active"}

        fetched = await GetMemoryTool(store).execute(category="rules", key="active")
        assert fetched.success is True
        assert fetched.data["value"] == "status='active'"
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_get_memory_tool_missing_entry(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        result = await GetMemoryTool(store).execute(category="rules", key="nothing")
        assert result.success is False
        assert "rules/nothing" in result.error
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_set_memory_tool_cannot_write_session_category(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        result = await SetMemoryTool(store).execute(category="session", key="last_query", value="DROP TABLE x")
        assert result.success is False
        assert "reserved" in result.error
        assert await store.get_value("session", "last_query") is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_get_memory_tool_can_read_session_category(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        await store.set_session_value("last_query", "SELECT 1")
        result = await GetMemoryTool(store).execute(category="session", key="last_query")
        assert result.success is True
        assert result.data["value"] == "SELECT 1"
    finally:
        await store.close()
