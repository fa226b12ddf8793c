"""Execute read-only statements; quarantine everything else."""

from dataclasses import dataclass, field
from typing import Any

from query_scout.database import StatementExecutor
from query_scout.exceptions import ExecutionFailure, StorageFailure
from query_scout.logging import get_logger
from query_scout.memory import LAST_ERROR_KEY, LAST_QUERY_KEY, MemoryStore
from query_scout.parser import ParsedOutput
from query_scout.safety import RiskLevel, classify_statement

log = get_logger(__name__)

DEFAULT_QUARANTINE_WARNING = (
    "This statement may modify data or schema. It was NOT executed; review it "
    "and run it manually if intended."
)


@dataclass
class Executed:
    """The statement ran; rows may be empty."""

    statement: str
    columns: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)
    row_count: int = 0
    truncated: bool = False


@dataclass
class Quarantined:
    """The statement was returned for manual review without running."""

    statement: str
    disclaimer: str

    def render(self) -> str:
        """Statement preceded by a visible warning banner."""
        banner = "!" * 72
        return f"{banner}\n!! WARNING: {self.disclaimer}\n{banner}\n\n{self.statement}"


@dataclass
class NoStatementFound:
    """The final answer contained no delimited statement."""

    text: str = ""


ExecutionVerdict = Executed | Quarantined | NoStatementFound


class Gatekeeper:
    """Decides between execution and quarantine for parsed output."""

    def __init__(self, executor: StatementExecutor, memory: MemoryStore):
        self.executor = executor
        self.memory = memory

    async def gate(
        self,
        parsed: ParsedOutput,
        classification: RiskLevel | None = None,
        source_text: str = "",
    ) -> ExecutionVerdict:
        """Route a parsed statement.

        Raises:
            ExecutionFailure if the database rejects a read-only statement
            StorageFailure if session memory cannot be written
        """
        statement = (parsed.statement or "").strip()
        if not statement:
            log.info("No statement found in final answer")
            return NoStatementFound(text=source_text)

        await self.memory.set_session_value(LAST_QUERY_KEY, statement)
        # An error belongs to the statement that produced it.
        await self.memory.set_session_value(LAST_ERROR_KEY, "")

        if classification is None:
            classification = classify_statement(statement)

        if classification == RiskLevel.MUTATING or parsed.disclaimer:
            log.warning(
                "Statement quarantined",
                classification=classification.value,
                has_disclaimer=bool(parsed.disclaimer),
            )
            return Quarantined(statement=statement, disclaimer=parsed.disclaimer or DEFAULT_QUARANTINE_WARNING)

        try:
            result = await self.executor.execute(statement)
        except ExecutionFailure as e:
            await self._record_error(e.reason)
            raise
        except Exception as e:
            await self._record_error(str(e))
            raise ExecutionFailure(statement, str(e)) from e

        log.info("Statement executed", row_count=result.row_count, truncated=result.truncated)
        return Executed(
            statement=statement,
            columns=result.columns,
            rows=result.rows,
            row_count=result.row_count,
            truncated=result.truncated,
        )

    async def _record_error(self, reason: str) -> None:
        """Store the execution error without masking it."""
        try:
            await self.memory.set_session_value(LAST_ERROR_KEY, reason)
        except StorageFailure as e:
            log.warning("Could not record execution error", error=str(e))
