"""Bounded tool-calling conversation with the generative service."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from query_scout.exceptions import ServiceError, StepBudgetExhaustedError
from query_scout.llm import LLMProvider, LLMResponse, Message, ToolCall
from query_scout.logging import get_logger
from query_scout.tools.registry import ToolRegistry, ToolResult

log = get_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    COMPLETED = "completed"
    FAILED = "failed"
    STEP_BUDGET_EXHAUSTED = "step_budget_exhausted"


class GenerationEventType(str, Enum):
    STEP_FINISHED = "step_finished"
    TOOL_CALL_STARTED = "tool_call_started"
    TOOL_CALL_FINISHED = "tool_call_finished"


@dataclass
class GenerationEvent:
    """Lifecycle notification for observers."""

    type: GenerationEventType
    step: int
    text: str = ""
    tool_name: str = ""
    arguments: Any = None
    result: dict[str, Any] | None = None


GenerationObserver = Callable[[GenerationEvent], None]


@dataclass
class GenerateStep:
    """One turn of generative output plus the results of its tool calls."""

    index: int
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)


@dataclass
class GenerationSession:
    """State of a single orchestrated conversation."""

    system_prompt: str
    user_prompt: str
    registry: ToolRegistry
    max_steps: int
    steps: list[GenerateStep] = field(default_factory=list)
    state: SessionState = SessionState.IDLE
    usage: dict[str, int] = field(default_factory=lambda: {
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "total_tokens": 0,
    })

    def __post_init__(self) -> None:
        if self.max_steps < 1:
            raise ValueError("max_steps must be a positive integer")

    @property
    def final_text(self) -> str:
        if self.state != SessionState.COMPLETED or not self.steps:
            return ""
        return self.steps[-1].text

    def build_messages(self) -> list[Message]:
        """Conversation so far: prompts, then each step with its paired tool results."""
        messages = [
            Message(role="system", content=self.system_prompt),
            Message(role="user", content=self.user_prompt),
        ]
        for step in self.steps:
            messages.append(Message(role="assistant", content=step.text, tool_calls=list(step.tool_calls)))
            for result in step.tool_results:
                messages.append(Message(
                    role="tool",
                    content=result.to_content(),
                    tool_call_id=result.call_id,
                    tool_name=result.tool_name,
                ))
        return messages


def log_generation_event(event: GenerationEvent) -> None:
    """Observer that writes lifecycle events to the structured log."""
    if event.type == GenerationEventType.STEP_FINISHED:
        log.info("Step finished", step=event.step, text=event.text[:500])
    elif event.type == GenerationEventType.TOOL_CALL_STARTED:
        log.info("Tool call started", step=event.step, tool=event.tool_name, args=event.arguments)
    else:
        log.info(
            "Tool call finished",
            step=event.step,
            tool=event.tool_name,
            success=bool((event.result or {}).get("success")),
        )


class GenerationOrchestrator:
    """Drives the step loop against an LLM provider."""

    def __init__(
        self,
        provider: LLMProvider,
        observers: list[GenerationObserver] | None = None,
    ):
        self.provider = provider
        self.observers: list[GenerationObserver] = list(observers or [])

    def add_observer(self, observer: GenerationObserver) -> None:
        self.observers.append(observer)

    def _emit(self, event: GenerationEvent) -> None:
        for observer in self.observers:
            try:
                observer(event)
            except Exception as e:
                log.warning("Generation observer failed", event_type=event.type.value, error=str(e))

    @staticmethod
    def _accumulate_usage(target: dict[str, int], usage: dict[str, int] | None) -> None:
        if not usage:
            return
        prompt = int(usage.get("prompt_tokens", 0))
        completion = int(usage.get("completion_tokens", 0))
        target["prompt_tokens"] += prompt
        target["completion_tokens"] += completion
        target["total_tokens"] += int(usage.get("total_tokens", prompt + completion))

    async def _request(self, session: GenerationSession) -> LLMResponse:
        session.state = SessionState.REQUESTING
        tool_defs = session.registry.get_definitions()
        try:
            return await self.provider.complete(
                messages=session.build_messages(),
                tools=tool_defs or None,
            )
        except ServiceError as e:
            session.state = SessionState.FAILED
            if e.steps_taken is None:
                e.steps_taken = len(session.steps)
            log.error("Generative service failed", steps_taken=len(session.steps), error=str(e))
            raise
        except Exception as e:
            session.state = SessionState.FAILED
            log.error("Generative service failed", steps_taken=len(session.steps), error=str(e))
            raise ServiceError(f"Generative service call failed: {e}", steps_taken=len(session.steps)) from e

    async def run(self, session: GenerationSession) -> str:
        """Run the conversation until a final answer.

        Returns:
            Final answer text

        Raises:
            ServiceError if the service fails or gives no usable answer
            StepBudgetExhaustedError if every step within the budget asked for tools
        """
        if session.state != SessionState.IDLE:
            raise ValueError(f"Session already ran (state: {session.state.value})")

        while len(session.steps) < session.max_steps:
            response = await self._request(session)
            self._accumulate_usage(session.usage, response.usage)

            step = GenerateStep(
                index=len(session.steps) + 1,
                text=response.content or "",
                tool_calls=list(response.tool_calls),
            )
            session.steps.append(step)
            log.info(
                "Generation step",
                step=step.index,
                max_steps=session.max_steps,
                tool_calls=len(step.tool_calls),
            )

            if not step.tool_calls:
                self._emit(GenerationEvent(GenerationEventType.STEP_FINISHED, step=step.index, text=step.text))
                if not step.text.strip():
                    session.state = SessionState.FAILED
                    raise ServiceError("Generative service returned no usable answer", steps_taken=step.index)
                session.state = SessionState.COMPLETED
                return step.text

            session.state = SessionState.AWAITING_TOOL_RESULTS
            # Sequential on purpose: later calls may depend on earlier side effects.
            for call in step.tool_calls:
                self._emit(GenerationEvent(
                    GenerationEventType.TOOL_CALL_STARTED,
                    step=step.index,
                    tool_name=call.name,
                    arguments=call.arguments,
                ))
                result = await session.registry.dispatch(call)
                step.tool_results.append(result)
                self._emit(GenerationEvent(
                    GenerationEventType.TOOL_CALL_FINISHED,
                    step=step.index,
                    tool_name=call.name,
                    arguments=call.arguments,
                    result=result.to_payload(),
                ))
            self._emit(GenerationEvent(GenerationEventType.STEP_FINISHED, step=step.index, text=step.text))

        session.state = SessionState.STEP_BUDGET_EXHAUSTED
        log.warning("Step budget exhausted", max_steps=session.max_steps)
        raise StepBudgetExhaustedError(len(session.steps), session.max_steps)
