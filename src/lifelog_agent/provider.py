from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Union, runtime_checkable

from lifelog_agent.errors import ModelUnavailable


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    # Set when the raw arguments could not be decoded into a JSON object.
    parse_error: str | None = None


@dataclass(frozen=True)
class FinalAnswer:
    content: Any
    kind: Literal["final"] = "final"


@dataclass(frozen=True)
class ToolCalls:
    calls: tuple[ToolCallRequest, ...]
    text: str = ""
    kind: Literal["tool_calls"] = "tool_calls"

    def __post_init__(self) -> None:
        if not self.calls:
            raise ModelUnavailable("Model requested tool calls but the list was empty")


ModelResponse = Union[FinalAnswer, ToolCalls]


@runtime_checkable
class LLMProvider(Protocol):
    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        """Run one reasoning step.

        ``messages`` is the internal (Anthropic-style) transcript; ``tools`` are
        descriptors ``{name, description, input_schema}``. Raises
        ``ModelUnavailable`` once retries are exhausted or the response cannot
        be parsed into a ``FinalAnswer`` / ``ToolCalls``.
        """
        ...


def create_provider(provider_name: str, api_key: str, *, base_url: str | None = None) -> LLMProvider:
    """Factory: create an LLMProvider by name."""
    name = provider_name.strip().lower()
    if name in ("openai", "deepseek"):
        from lifelog_agent.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, base_url=base_url)
    if name == "anthropic":
        from lifelog_agent.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'openai', 'deepseek', 'anthropic'")
