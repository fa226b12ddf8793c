"""Tool registry, dispatcher and base tool class."""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, model_validator

from query_scout.exceptions import ToolExecutionError, ToolNotFoundError
from query_scout.llm import ToolCall
from query_scout.logging import get_logger

log = get_logger(__name__)

UNKNOWN_TOOL_ERROR = "unknown tool"

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


class ToolResult(BaseModel):
    """Result from tool execution."""

    success: bool = True
    data: Any = None
    error: str | None = None
    tool_name: str = ""
    call_id: str = ""

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure failed results always provide an error message."""
        if not self.success and not (self.error or "").strip():
            self.error = "Tool execution failed"
        return self

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready payload returned to the model."""
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}

    def to_content(self) -> str:
        return json.dumps(self.to_payload(), default=str)


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool-specific arguments

        Returns:
            ToolResult with success status and data
        """
        pass

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition for LLM.

        Returns:
            OpenAI function-style definition
        """
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate tool arguments against schema.

        Raises:
            ToolExecutionError if invalid
        """
        properties = self.parameters.get("properties", {})
        for field in self.parameters.get("required", []):
            if arguments.get(field) is None:
                raise ToolExecutionError(self.name, f"Missing required argument: {field}")
        for field, value in arguments.items():
            spec = properties.get(field)
            if spec is None:
                raise ToolExecutionError(self.name, f"Unexpected argument: {field}")
            expected = _JSON_TYPES.get(str(spec.get("type", "")))
            if value is None or expected is None:
                continue
            # bool is an int subclass; keep JSON semantics.
            if isinstance(value, bool) and bool not in expected:
                raise ToolExecutionError(self.name, f"Argument '{field}' must be {spec['type']}")
            if not isinstance(value, expected):
                raise ToolExecutionError(self.name, f"Argument '{field}' must be {spec['type']}")


class ToolRegistry:
    """Binds tool names to handlers for one generation session."""

    def __init__(self, timeout_seconds: float = 30.0):
        self._tools: dict[str, Tool] = {}
        self.timeout_seconds = timeout_seconds

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError if the tool has no name or the name is taken
        """
        if not tool.name:
            raise ValueError("Tool must have a name")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool definitions for LLM."""
        return [tool.get_definition() for tool in self._tools.values()]

    @staticmethod
    def _coerce_arguments(tool_name: str, arguments: Any) -> dict[str, Any]:
        if arguments is None:
            return {}
        if isinstance(arguments, str):
            if not arguments.strip():
                return {}
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as e:
                raise ToolExecutionError(tool_name, f"Arguments are not valid JSON: {e}") from e
        if not isinstance(arguments, dict):
            raise ToolExecutionError(tool_name, "Arguments must be a JSON object")
        return arguments

    async def dispatch(self, call: ToolCall) -> ToolResult:
        """Execute one tool call and normalize the outcome.

        Never raises (apart from cancellation): unknown tools, invalid
        arguments, handler exceptions and timeouts all become failed results.
        """
        try:
            tool = self.get(call.name)
        except ToolNotFoundError:
            log.warning("Unknown tool requested", tool=call.name, call_id=call.id)
            return ToolResult(success=False, error=UNKNOWN_TOOL_ERROR, tool_name=call.name, call_id=call.id)

        try:
            arguments = self._coerce_arguments(tool.name, call.arguments)
            tool.validate_arguments(arguments)
            log.info("Executing tool", tool=tool.name, args=arguments)
            result = await asyncio.wait_for(tool.execute(**arguments), timeout=self.timeout_seconds)
            if not isinstance(result, ToolResult):
                raise ToolExecutionError(tool.name, "Tool returned invalid result payload")
        except asyncio.TimeoutError:
            timeout_label = int(self.timeout_seconds) if float(self.timeout_seconds).is_integer() else self.timeout_seconds
            result = ToolResult(success=False, error=f"Execution timed out after {timeout_label}s")
        except ToolExecutionError as e:
            result = ToolResult(success=False, error=str(e))
        except Exception as e:
            log.error("Tool execution failed", tool=tool.name, error=str(e))
            result = ToolResult(success=False, error=str(e) or type(e).__name__)

        log.info("Tool executed", tool=tool.name, success=result.success)
        return result.model_copy(update={"tool_name": tool.name, "call_id": call.id})
