import pytest

from query_scout.database import QueryResult, StatementExecutor
from query_scout.exceptions import ExecutionFailure, StorageFailure
from query_scout.gatekeeper import (
    DEFAULT_QUARANTINE_WARNING,
    Executed,
    Gatekeeper,
    NoStatementFound,
    Quarantined,
)
from query_scout.memory import MemoryStore
from query_scout.parser import ParsedOutput
from query_scout.safety import RiskLevel


class RecordingExecutor(StatementExecutor):
    def __init__(self, result: QueryResult | None = None, error: Exception | None = None):
        self.result = result or QueryResult(columns=["id"], rows=[[1]], row_count=1)
        self.error = error
        self.statements: list[str] = []

    async def execute(self, statement: str) -> QueryResult:
        self.statements.append(statement)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_read_only_statement_is_executed_once(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    executor = RecordingExecutor()
    try:
        verdict = await Gatekeeper(executor, store).gate(ParsedOutput(statement="SELECT id FROM t"))

        assert isinstance(verdict, Executed)
        assert verdict.columns == ["id"]
        assert verdict.rows == [[1]]
        assert executor.statements == ["SELECT id FROM t"]
        assert await store.get_value("session", "last_query") == "SELECT id FROM t"
    finally:
        await store.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("parsed", "classification"),
    [
        (ParsedOutput(statement="DELETE FROM t"), None),
        (ParsedOutput(statement="SELECT 1", disclaimer="looks harmless but check"), RiskLevel.READ_ONLY),
        (ParsedOutput(statement="UPDATE t SET a = 1"), RiskLevel.MUTATING),
    ],
)
async def test_mutating_or_disclaimed_statements_are_never_executed(tmp_path, parsed, classification):
    store = MemoryStore(tmp_path / "memory.db")
    executor = RecordingExecutor()
    try:
        verdict = await Gatekeeper(executor, store).gate(parsed, classification)

        assert isinstance(verdict, Quarantined)
        assert verdict.statement == parsed.statement
        assert executor.statements == []
        assert await store.get_value("session", "last_query") == parsed.statement
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_quarantine_uses_default_warning_without_disclaimer(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    try:
        verdict = await Gatekeeper(RecordingExecutor(), store).gate(ParsedOutput(statement="DROP TABLE users"))

        assert verdict.disclaimer == DEFAULT_QUARANTINE_WARNING
        rendered = verdict.render()
        assert rendered.startswith("!!!!")
        assert "WARNING" in rendered
        assert rendered.endswith("DROP TABLE users")
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_missing_statement_is_not_an_error(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    executor = RecordingExecutor()
    try:
        verdict = await Gatekeeper(executor, store).gate(ParsedOutput(), source_text="I am not sure")

        assert verdict == NoStatementFound(text="I am not sure")
        assert executor.statements == []
        assert await store.get_value("session", "last_query") is None
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_execution_failure_records_last_error(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    executor = RecordingExecutor(error=ExecutionFailure("SELECT nope FROM t", "no such column: nope"))
    try:
        with pytest.raises(ExecutionFailure) as exc_info:
            await Gatekeeper(executor, store).gate(ParsedOutput(statement="SELECT nope FROM t"))

        assert exc_info.value.statement == "SELECT nope FROM t"
        assert await store.get_value("session", "last_query") == "SELECT nope FROM t"
        assert await store.get_value("session", "last_error") == "no such column: nope"
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_unexpected_executor_error_is_wrapped(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    executor = RecordingExecutor(error=RuntimeError("connection reset"))
    try:
        with pytest.raises(ExecutionFailure) as exc_info:
            await Gatekeeper(executor, store).gate(ParsedOutput(statement="SELECT 1"))

        assert exc_info.value.reason == "connection reset"
        assert await store.get_value("session", "last_error") == "connection reset"
    finally:
        await store.close()


class ErrorLosingStore(MemoryStore):
    async def set_session_value(self, key: str, value: str):
        if key == "last_error" and value:
            raise StorageFailure("disk full")
        return await super().set_session_value(key, value)


@pytest.mark.asyncio
async def test_new_statement_clears_previous_error(tmp_path):
    store = MemoryStore(tmp_path / "memory.db")
    failing = RecordingExecutor(error=ExecutionFailure("SELECT * FROM users", "no such table: users"))
    try:
        with pytest.raises(ExecutionFailure):
            await Gatekeeper(failing, store).gate(ParsedOutput(statement="SELECT * FROM users"))

        await Gatekeeper(RecordingExecutor(), store).gate(ParsedOutput(statement="SELECT 1 AS n"))

        assert await store.get_value("session", "last_query") == "SELECT 1 AS n"
        assert not await store.get_value("session", "last_error")
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_error_store_failure_does_not_mask_execution_failure(tmp_path):
    store = ErrorLosingStore(tmp_path / "memory.db")
    executor = RecordingExecutor(error=ExecutionFailure("SELECT nope FROM t", "no such column: nope"))
    try:
        with pytest.raises(ExecutionFailure) as exc_info:
            await Gatekeeper(executor, store).gate(ParsedOutput(statement="SELECT nope FROM t"))

        assert exc_info.value.reason == "no such column: nope"
        assert await store.get_value("session", "last_query") == "SELECT nope FROM t"
    finally:
        await store.close()
