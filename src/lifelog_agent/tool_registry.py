from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Callable

from jsonschema import Draft202012Validator

from lifelog_agent.errors import InvalidArguments, UnknownTool
from lifelog_agent.memory.entity_store import JournalStore, LedgerStore
from lifelog_agent.tool import Tool
from lifelog_agent.tools.record_journal_tool import RecordJournalTool
from lifelog_agent.tools.record_transaction_tool import RecordTransactionTool


def _location(path) -> str:
    return ".".join(str(part) for part in path) or "(root)"


def _format_schema_error(error) -> str:
    return f"{_location(error.absolute_path)}: {error.message}"


def _non_finite_numbers(value: Any, path: tuple = ()) -> Iterator[str]:
    if isinstance(value, float):
        if not math.isfinite(value):
            yield f"{_location(path)}: {value} is not a finite number"
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from _non_finite_numbers(item, path + (key,))
    elif isinstance(value, list):
        for index, item in enumerate(value):
            yield from _non_finite_numbers(item, path + (index,))


class ToolRegistry:
    """Name -> tool lookup plus strict, side-effect-free argument validation."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        self._validators: dict[str, Draft202012Validator] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name!r}")
        Draft202012Validator.check_schema(tool.input_schema)
        self._tools[tool.name] = tool
        self._validators[tool.name] = Draft202012Validator(tool.input_schema)

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownTool(name)
        return tool

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[dict]:
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": t.input_schema,
            }
            for t in self._tools.values()
        ]

    def validate(self, name: str, arguments: Any, *, parse_error: str | None = None) -> Tool:
        """Return the tool for ``name`` once ``arguments`` fully match its schema.

        JSON Schema's ``number`` admits NaN and infinities; those are rejected too.
        """
        tool = self.get(name)
        if parse_error is not None:
            raise InvalidArguments(name, [f"(root): arguments were not valid JSON ({parse_error})"])
        if not isinstance(arguments, dict):
            raise InvalidArguments(name, [f"(root): expected an object, got {type(arguments).__name__}"])
        errors = sorted(
            self._validators[name].iter_errors(arguments),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
        problems = [_format_schema_error(e) for e in errors]
        problems.extend(_non_finite_numbers(arguments))
        if problems:
            raise InvalidArguments(name, problems)
        return tool

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


@dataclass(frozen=True)
class ToolGroup:
    enabled: Callable[[dict], bool]
    build: Callable[[dict], list[Tool]]


def _always(_: dict) -> bool:
    return True


def _ledger_tools(ctx: dict) -> list[Tool]:
    return [RecordTransactionTool(ctx["ledger"])]


def _journal_tools(ctx: dict) -> list[Tool]:
    return [RecordJournalTool(ctx["journal"])]


_GROUPS = [
    ToolGroup(enabled=_always, build=_ledger_tools),
    ToolGroup(enabled=_always, build=_journal_tools),
]


def get_all(ledger: LedgerStore, journal: JournalStore) -> list[Tool]:
    ctx = {"ledger": ledger, "journal": journal}

    tools: list[Tool] = []
    for group in _GROUPS:
        if group.enabled(ctx):
            tools.extend(group.build(ctx))
    return tools
