"""Persistent memory tools."""

from typing import Any

from query_scout.logging import get_logger
from query_scout.memory import MemoryStore
from query_scout.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class GetMemoryTool(Tool):
    """Read a remembered value."""

    name = "get_memory"
    description = (
        "Read a value previously stored in persistent memory. Category 'session' "
        "holds last_query and last_error from earlier runs."
    )
    parameters = {
        "type": "object",
        "properties": {
            "category": {"type": "string", "description": "Memory category"},
            "key": {"type": "string", "description": "Key within the category"},
        },
        "required": ["category", "key"],
    }

    def __init__(self, memory: MemoryStore):
        self.memory = memory

    async def execute(self, category: str, key: str, **kwargs: Any) -> ToolResult:
        try:
            entry = await self.memory.get(category, key)
        except Exception as e:
            log.error("Memory read failed", category=category, key=key, error=str(e))
            return ToolResult(success=False, error=str(e))
        if entry is None:
            return ToolResult(success=False, error=f"No memory stored for {category}/{key}")
        return ToolResult(success=True, data=entry.to_dict())


class SetMemoryTool(Tool):
    """Store a value in persistent memory."""

    name = "set_memory"
    description = (
        "Store or replace a value in persistent memory, e.g. business rules or "
        "schema findings worth keeping for later requests."
    )
    parameters = {
        "type": "object",
        "properties": {
            "category": {"type": "string", "description": "Memory category"},
            "key": {"type": "string", "description": "Key within the category"},
            "value": {"type": "string", "description": "Value to store"},
            "notes": {"type": "string", "description": "Optional notes"},
        },
        "required": ["category", "key", "value"],
    }

    def __init__(self, memory: MemoryStore):
        self.memory = memory

    async def execute(
        self,
        category: str,
        key: str,
        value: str,
        notes: str | None = None,
        **kwargs: Any,
    ) -> ToolResult:
        try:
            entry = await self.memory.set(category, key, value, notes=notes)
        except Exception as e:
            log.error("Memory write failed", category=category, key=key, error=str(e))
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, data={"stored": f"{entry.category}/{entry.key}"})
