"""Custom exceptions for Query Scout."""


class QueryScoutError(Exception):
    """Base exception for Query Scout."""

    pass


class ConfigurationError(QueryScoutError):
    """Configuration-related errors."""

    pass


class ValidationError(QueryScoutError):
    """Invalid caller input."""

    pass


class ServiceError(QueryScoutError):
    """Generative service errors (unreachable, malformed, no usable answer)."""

    def __init__(self, message: str, steps_taken: int | None = None):
        super().__init__(message)
        self.steps_taken = steps_taken


class ServiceAPIError(ServiceError):
    """Generative service API errors (rate limit, auth, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StepBudgetExhaustedError(ServiceError):
    """The model kept requesting tools until the step budget ran out."""

    def __init__(self, steps_taken: int, max_steps: int):
        super().__init__(
            f"Step budget exhausted after {steps_taken} of {max_steps} steps",
            steps_taken=steps_taken,
        )
        self.max_steps = max_steps


class ToolError(QueryScoutError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class StorageFailure(QueryScoutError):
    """Memory store or metadata catalog failure."""

    pass


class NotFoundError(QueryScoutError):
    """Requested namespace or relation does not exist."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} not found: {name}")
        self.kind = kind
        self.name = name


class ExecutionFailure(QueryScoutError):
    """The database rejected a statement."""

    def __init__(self, statement: str, message: str):
        super().__init__(f"Statement execution failed: {message}")
        self.statement = statement
        self.reason = message
