from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ToolContext:
    """Who a tool call acts for, and which user message triggered it."""

    owner_id: str
    session_id: str
    source_message_id: str | None = None


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    tool_name: str
    output_text: str
    succeeded: bool


@runtime_checkable
class Tool(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def input_schema(self) -> dict[str, Any]: ...

    @property
    def is_mutating(self) -> bool: ...

    async def execute(self, tool_input: dict[str, Any], context: ToolContext) -> str: ...
