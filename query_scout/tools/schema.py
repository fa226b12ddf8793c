"""Read-only schema introspection tools."""

from typing import Any

from query_scout.database import SchemaCatalog
from query_scout.logging import get_logger
from query_scout.tools.registry import Tool, ToolResult

log = get_logger(__name__)


class ListNamespacesTool(Tool):
    """List namespaces (schemas) of the target database."""

    name = "list_namespaces"
    description = (
        "List the namespaces (schemas) available in the database, alphabetically. "
        "System namespaces are excluded. Call this first."
    )
    parameters = {"type": "object", "properties": {}}

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog

    async def execute(self, **kwargs: Any) -> ToolResult:
        try:
            namespaces = await self.catalog.list_namespaces()
        except Exception as e:
            log.error("Namespace listing failed", error=str(e))
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, data=namespaces)


class ListRelationsTool(Tool):
    """List tables and views inside a namespace."""

    name = "list_relations"
    description = (
        "List the tables and views in a namespace as fully qualified names "
        "(namespace.relation)."
    )
    parameters = {
        "type": "object",
        "properties": {
            "namespace": {
                "type": "string",
                "description": "Namespace returned by list_namespaces",
            },
        },
        "required": ["namespace"],
    }

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog

    async def execute(self, namespace: str, **kwargs: Any) -> ToolResult:
        try:
            relations = await self.catalog.list_relations(namespace)
        except Exception as e:
            log.error("Relation listing failed", namespace=namespace, error=str(e))
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, data=relations)


class DescribeRelationTool(Tool):
    """Describe the column layout of a relation."""

    name = "describe_relation"
    description = (
        "Describe a relation's columns (name, type, nullable, default) in physical "
        "order and return an equivalent CREATE TABLE statement."
    )
    parameters = {
        "type": "object",
        "properties": {
            "qualified_name": {
                "type": "string",
                "description": "Fully qualified relation name, e.g. main.users",
            },
        },
        "required": ["qualified_name"],
    }

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog

    async def execute(self, qualified_name: str, **kwargs: Any) -> ToolResult:
        try:
            description = await self.catalog.describe_relation(qualified_name)
        except Exception as e:
            log.error("Describe failed", relation=qualified_name, error=str(e))
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, data=description.to_dict())
