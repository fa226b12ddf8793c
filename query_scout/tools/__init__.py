"""Tools package for Query Scout."""

from query_scout.tools.registry import (
    Tool,
    ToolRegistry,
    ToolResult,
)
from query_scout.tools.memory import GetMemoryTool, SetMemoryTool
from query_scout.tools.schema import (
    DescribeRelationTool,
    ListNamespacesTool,
    ListRelationsTool,
)

__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "GetMemoryTool",
    "SetMemoryTool",
    "ListNamespacesTool",
    "ListRelationsTool",
    "DescribeRelationTool",
]
