"""Caller-facing operations: generate_query, explain, direct memory access."""

from query_scout.config import Config
from query_scout.database import SchemaCatalog, SqliteDatabase, StatementExecutor
from query_scout.exceptions import ValidationError
from query_scout.gatekeeper import ExecutionVerdict, Gatekeeper
from query_scout.instructions import InstructionLoader
from query_scout.llm import LLMProvider, Message, create_provider
from query_scout.logging import get_logger
from query_scout.memory import LAST_ERROR_KEY, LAST_QUERY_KEY, SESSION_CATEGORY, MemoryEntry, MemoryStore
from query_scout.orchestrator import GenerationObserver, GenerationOrchestrator, GenerationSession
from query_scout.parser import ResponseParser
from query_scout.safety import classify_statement
from query_scout.tools import (
    DescribeRelationTool,
    GetMemoryTool,
    ListNamespacesTool,
    ListRelationsTool,
    SetMemoryTool,
    ToolRegistry,
)

log = get_logger(__name__)


class QueryService:
    """Wires the provider, tools, orchestrator, parser and gatekeeper together."""

    def __init__(
        self,
        config: Config,
        provider: LLMProvider,
        catalog: SchemaCatalog,
        executor: StatementExecutor,
        memory: MemoryStore,
        instructions: InstructionLoader | None = None,
        observers: list[GenerationObserver] | None = None,
        parser: ResponseParser | None = None,
    ):
        self.config = config
        self.provider = provider
        self.catalog = catalog
        self.executor = executor
        self.memory = memory
        self.instructions = instructions or InstructionLoader()
        self.orchestrator = GenerationOrchestrator(provider, observers=observers)
        self.parser = parser or ResponseParser()
        self.gatekeeper = Gatekeeper(executor, memory)

    @classmethod
    def from_config(
        cls,
        config: Config,
        observers: list[GenerationObserver] | None = None,
    ) -> "QueryService":
        """Build the default SQLite-backed service.

        Raises:
            ConfigurationError before any network call when model settings are missing
        """
        provider = create_provider(config.model)
        database = SqliteDatabase.from_config(config.database)
        return cls(
            config=config,
            provider=provider,
            catalog=database,
            executor=database,
            memory=MemoryStore(config.memory.path),
            observers=observers,
        )

    def _schema_tools(self, registry: ToolRegistry) -> None:
        registry.register(ListNamespacesTool(self.catalog))
        registry.register(ListRelationsTool(self.catalog))
        registry.register(DescribeRelationTool(self.catalog))

    def build_generation_registry(self) -> ToolRegistry:
        registry = ToolRegistry(timeout_seconds=self.config.tools.timeout)
        self._schema_tools(registry)
        registry.register(GetMemoryTool(self.memory))
        registry.register(SetMemoryTool(self.memory))
        return registry

    def build_explain_registry(self) -> ToolRegistry:
        registry = ToolRegistry(timeout_seconds=self.config.tools.timeout)
        self._schema_tools(registry)
        registry.register(GetMemoryTool(self.memory))
        return registry

    async def generate_query(self, user_request: str) -> ExecutionVerdict:
        """Turn a request into a statement and run or quarantine it.

        Raises:
            ValidationError for an empty request
            ServiceError / StepBudgetExhaustedError on generation failure
            ExecutionFailure if the database rejects a read-only statement
            StorageFailure if session memory cannot be written
        """
        request = (user_request or "").strip()
        if not request:
            raise ValidationError("Request must not be empty")

        session = GenerationSession(
            system_prompt=self.instructions.load(InstructionLoader.GENERATE_SYSTEM),
            user_prompt=request,
            registry=self.build_generation_registry(),
            max_steps=self.config.generation.max_steps,
        )
        log.info("Generating query", request=request, max_steps=session.max_steps)
        final_text = await self.orchestrator.run(session)

        parsed = self.parser.parse(final_text)
        classification = classify_statement(parsed.statement) if parsed.statement else None
        return await self.gatekeeper.gate(parsed, classification, source_text=final_text)

    async def explain(self, statement_or_error: str = "") -> str:
        """Narrative explanation of a statement or error.

        With no argument, explains the last generated statement (and its
        error, if one was recorded) from session memory.
        """
        subject = (statement_or_error or "").strip()
        if not subject:
            last_query = await self.memory.get_value(SESSION_CATEGORY, LAST_QUERY_KEY)
            if not last_query:
                raise ValidationError("Nothing to explain: no statement given and no previous query stored")
            subject = last_query
            last_error = await self.memory.get_value(SESSION_CATEGORY, LAST_ERROR_KEY)
            if last_error:
                subject = f"{subject}\n\nIt failed with:\n{last_error}"

        session = GenerationSession(
            system_prompt=self.instructions.load(InstructionLoader.EXPLAIN_SYSTEM),
            user_prompt=self.instructions.render(InstructionLoader.EXPLAIN_USER, subject=subject),
            registry=self.build_explain_registry(),
            max_steps=self.config.generation.explain_max_steps,
        )
        return await self.orchestrator.run(session)

    async def greet(self, name: str) -> str:
        """Ask the model for a short greeting; used as a connectivity check."""
        response = await self.provider.complete(
            messages=[
                Message(role="system", content=self.instructions.load(InstructionLoader.GREETING_SYSTEM)),
                Message(role="user", content=self.instructions.render(InstructionLoader.GREETING_USER, name=name)),
            ],
        )
        return response.content.strip()

    async def get_memory(self, category: str, key: str) -> MemoryEntry | None:
        return await self.memory.get(category, key)

    async def set_memory(self, category: str, key: str, value: str, notes: str | None = None) -> MemoryEntry:
        return await self.memory.set(category, key, value, notes=notes)

    async def close(self) -> None:
        await self.provider.close()
        await self.memory.close()
        resources = [self.catalog] if self.executor is self.catalog else [self.catalog, self.executor]
        for resource in resources:
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
