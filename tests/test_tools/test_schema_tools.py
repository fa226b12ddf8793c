import pytest

from query_scout.database import ColumnInfo, RelationDescription, SchemaCatalog, build_create_statement
from query_scout.exceptions import NotFoundError, StorageFailure
from query_scout.llm import ToolCall
from query_scout.tools import (
    DescribeRelationTool,
    ListNamespacesTool,
    ListRelationsTool,
    ToolRegistry,
)


class FakeCatalog(SchemaCatalog):
    def __init__(self):
        self.relations = {"public": ["public.users"], "sales": []}
        self.columns = {
            "public.users": [
                ColumnInfo(name="id", type="INTEGER", nullable=False, primary_key=True),
                ColumnInfo(name="status", type="TEXT", nullable=True, default="'new'"),
            ],
        }

    async def list_namespaces(self) -> list[str]:
        return sorted(self.relations)

    async def list_relations(self, namespace: str) -> list[str]:
        if namespace not in self.relations:
            raise NotFoundError("namespace", namespace)
        return self.relations[namespace]

    async def describe_relation(self, qualified_name: str) -> RelationDescription:
        columns = self.columns.get(qualified_name)
        if not columns:
            raise NotFoundError("relation", qualified_name)
        return RelationDescription(qualified_name, columns, build_create_statement(qualified_name, columns))


class BrokenCatalog(SchemaCatalog):
    async def list_namespaces(self) -> list[str]:
        raise StorageFailure("catalog offline")

    async def list_relations(self, namespace: str) -> list[str]:
        raise StorageFailure("catalog offline")

    async def describe_relation(self, qualified_name: str) -> RelationDescription:
        raise StorageFailure("catalog offline")


def _registry(catalog: SchemaCatalog) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(ListNamespacesTool(catalog))
    registry.register(ListRelationsTool(catalog))
    registry.register(DescribeRelationTool(catalog))
    return registry


@pytest.mark.asyncio
async def test_list_namespaces_tool_returns_names():
    result = await ListNamespacesTool(FakeCatalog()).execute()

    assert result.success is True
    assert result.data == ["public", "sales"]


@pytest.mark.asyncio
async def test_list_relations_tool_unknown_namespace_is_data():
    result = await ListRelationsTool(FakeCatalog()).execute(namespace="nope")

    assert result.success is False
    assert "namespace not found" in result.error


@pytest.mark.asyncio
async def test_describe_relation_tool_payload():
    result = await DescribeRelationTool(FakeCatalog()).execute(qualified_name="public.users")

    assert result.success is True
    assert [c["name"] for c in result.data["columns"]] == ["id", "status"]
    assert result.data["columns"][1]["default"] == "'new'"
    assert result.data["create_statement"].startswith("CREATE TABLE public.users")


@pytest.mark.asyncio
async def test_describe_relation_tool_missing_relation():
    result = await DescribeRelationTool(FakeCatalog()).execute(qualified_name="public.ghosts")

    assert result.success is False
    assert "relation not found" in result.error


@pytest.mark.asyncio
async def test_missing_parameter_is_reported_by_dispatcher():
    result = await _registry(FakeCatalog()).dispatch(ToolCall(id="c1", name="list_relations", arguments={}))

    assert result.success is False
    assert "Missing required argument: namespace" in result.error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        ToolCall(id="a", name="list_namespaces", arguments={}),
        ToolCall(id="b", name="list_relations", arguments={"namespace": "public"}),
        ToolCall(id="c", name="describe_relation", arguments={"qualified_name": "public.users"}),
    ],
)
async def test_catalog_failures_stay_inside_tool_results(call):
    result = await _registry(BrokenCatalog()).dispatch(call)

    assert result.success is False
    assert result.error == "catalog offline"
