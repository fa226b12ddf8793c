"""Generative service providers: OpenRouter (OpenAI-compatible) and Ollama."""

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from query_scout.config import OPENROUTER_BASE_URL, OPENROUTER_DEFAULT_MODEL, ModelConfig
from query_scout.exceptions import ConfigurationError, ServiceAPIError, ServiceError
from query_scout.logging import get_logger

log = get_logger(__name__)


OLLAMA_NATIVE_BASE_URL = "http://127.0.0.1:11434"


@dataclass
class ToolCall:
    """A tool call from the LLM."""

    id: str
    name: str
    arguments: dict[str, Any] | str


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_call_id: str | None = None
    tool_name: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class LLMResponse:
    """Response from the LLM."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)


@dataclass
class ToolDefinition:
    """Definition of a tool for the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema


def _tool_definition_fields(tool: ToolDefinition | dict[str, Any]) -> tuple[str, str, dict[str, Any]]:
    if isinstance(tool, dict):
        return (
            str(tool.get("name", "")),
            str(tool.get("description", "") or ""),
            tool.get("parameters") or {},
        )
    return tool.name, tool.description or "", tool.parameters or {}


def _convert_tools(tools: list[ToolDefinition | dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert tools to the function-calling wire format."""
    result = []
    for tool in tools:
        name, description, parameters = _tool_definition_fields(tool)
        if name:
            result.append({
                "type": "function",
                "function": {
                    "name": name,
                    "description": description,
                    "parameters": parameters or {"type": "object", "properties": {}},
                },
            })
    return result


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition | dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None


class OpenRouterProvider(LLMProvider):
    """OpenAI-compatible chat completions provider (OpenRouter by default)."""

    def __init__(
        self,
        api_key: str,
        model: str = OPENROUTER_DEFAULT_MODEL,
        base_url: str = OPENROUTER_BASE_URL,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the provider.

        Args:
            api_key: Bearer token for the service
            model: Model identifier (e.g. 'meta-llama/llama-3.2-3b-instruct:free')
            base_url: API base URL, '/chat/completions' is appended
            temperature: Sampling temperature
            max_tokens: Max tokens to generate
            timeout: Request timeout in seconds
            transport: Optional httpx transport override
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @staticmethod
    def _convert_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to OpenAI chat format."""
        result: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == "assistant" and msg.tool_calls:
                result.append({
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": tc.arguments
                                if isinstance(tc.arguments, str)
                                else json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ],
                })
            elif msg.role == "tool":
                result.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id or "",
                    "content": msg.content or "",
                })
            else:
                result.append({"role": msg.role, "content": msg.content or ""})
        return result

    @staticmethod
    def _parse_tool_calls(raw_calls: list[dict[str, Any]]) -> list[ToolCall]:
        tool_calls: list[ToolCall] = []
        for idx, tc in enumerate(raw_calls):
            function = tc.get("function") or {}
            raw_args = function.get("arguments")
            if isinstance(raw_args, str):
                try:
                    arguments: dict[str, Any] | str = json.loads(raw_args) if raw_args.strip() else {}
                except json.JSONDecodeError:
                    # The dispatcher reports undecodable arguments back to the model.
                    arguments = raw_args
            else:
                arguments = raw_args or {}
            tool_calls.append(ToolCall(
                id=str(tc.get("id") or f"call_{idx}"),
                name=str(function.get("name", "")),
                arguments=arguments,
            ))
        return tool_calls

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition | dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion."""
        url = f"{self.base_url}/chat/completions"

        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }
        if tools:
            body["tools"] = _convert_tools(tools)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            log.debug("Calling chat completions", model=self.model, url=url, msg_count=len(messages))
            response = await self.client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ServiceAPIError(f"HTTP error: {e}") from e

        if not response.is_success:
            raise ServiceAPIError(
                f"API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ServiceError(f"Response decode error: {e}") from e

        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ServiceAPIError(f"API error: {message}")

        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise ServiceError(f"Malformed response: missing choices[0].message ({e})") from e

        usage = data.get("usage") or {}
        return LLMResponse(
            content=message.get("content") or "",
            tool_calls=self._parse_tool_calls(message.get("tool_calls") or []),
            model=str(data.get("model") or self.model),
            usage={
                "prompt_tokens": int(usage.get("prompt_tokens", 0)),
                "completion_tokens": int(usage.get("completion_tokens", 0)),
                "total_tokens": int(usage.get("total_tokens", 0)),
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


class OllamaProvider(LLMProvider):
    """Direct Ollama API provider."""

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: str = OLLAMA_NATIVE_BASE_URL,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        api_key: str | None = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @staticmethod
    def _convert_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Convert messages to Ollama format."""
        result: list[dict[str, Any]] = []
        for msg in messages:
            entry: dict[str, Any] = {"role": msg.role, "content": msg.content or ""}
            if msg.role == "assistant" and msg.tool_calls:
                entry["tool_calls"] = [
                    {"function": {"name": tc.name, "arguments": tc.arguments}}
                    for tc in msg.tool_calls
                ]
            if msg.role == "tool" and msg.tool_name:
                entry["tool_name"] = msg.tool_name
            result.append(entry)
        return result

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition | dict[str, Any]] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion."""
        url = f"{self.base_url}/api/chat"

        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "stream": False,
            "options": {
                "temperature": self.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.max_tokens,
            },
        }
        if tools:
            body["tools"] = _convert_tools(tools)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            log.debug("Calling Ollama", model=self.model, url=url, msg_count=len(messages))
            response = await self.client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ServiceAPIError(f"Ollama HTTP error: {e}") from e

        if not response.is_success:
            raise ServiceAPIError(
                f"Ollama API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ServiceError(f"Ollama response decode error: {e}") from e

        message = data.get("message") or {}
        tool_calls = [
            ToolCall(
                id=f"ollama_call_{idx}",
                name=tc.get("function", {}).get("name", ""),
                arguments=tc.get("function", {}).get("arguments", {}),
            )
            for idx, tc in enumerate(message.get("tool_calls") or [])
        ]
        prompt_tokens = int(data.get("prompt_eval_count", 0))
        completion_tokens = int(data.get("eval_count", 0))
        return LLMResponse(
            content=message.get("content", ""),
            tool_calls=tool_calls,
            model=self.model,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_provider(config: ModelConfig) -> LLMProvider:
    """Create an LLM provider from model configuration.

    Fails with ConfigurationError before any network activity when a required
    setting is missing.
    """
    provider = (config.provider or "").strip().lower()
    model = (config.model or "").strip()
    if not model:
        raise ConfigurationError("model.model not set")

    if provider in {"openrouter", "openai"}:
        api_key = config.api_key or os.getenv("OPENROUTER_API_KEY", "")
        if not api_key:
            raise ConfigurationError(
                "model.api_key not set (configure QSCOUT_MODEL__API_KEY or OPENROUTER_API_KEY)"
            )
        return OpenRouterProvider(
            api_key=api_key,
            model=model,
            base_url=config.base_url or OPENROUTER_BASE_URL,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )
    if provider == "ollama":
        base_url = config.base_url
        if not base_url or base_url == OPENROUTER_BASE_URL:
            base_url = OLLAMA_NATIVE_BASE_URL
        return OllamaProvider(
            model=model,
            base_url=base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            api_key=config.api_key or None,
            timeout=config.timeout,
        )
    raise ConfigurationError(f"Provider '{config.provider}' not supported. Use 'openrouter' or 'ollama'.")
