from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

from lifelog_agent.errors import PersistenceError, ToolCallError, TurnAborted
from lifelog_agent.provider import FinalAnswer, LLMProvider, ToolCallRequest, ToolCalls
from lifelog_agent.tool import ToolContext, ToolResult
from lifelog_agent.tool_registry import ToolRegistry


class TurnState(Enum):
    START = "start"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class TurnOutcome:
    reply_text: str
    model_calls: int
    tool_results: list[ToolResult] = field(default_factory=list)
    states: list[TurnState] = field(default_factory=list)


def render_reply(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, sort_keys=True, ensure_ascii=False, default=str)


class TurnEngine:
    """Bounded model <-> tool loop for a single turn.

    The engine holds no per-turn state, so one instance serves every session.
    """

    def __init__(
        self,
        *,
        provider: LLMProvider,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        registry: ToolRegistry,
        max_model_calls: int,
        model_timeout_seconds: float | None,
        max_tool_result_chars: int,
        on_record_tool_call: Callable[..., None] | None = None,
    ) -> None:
        if max_model_calls <= 0:
            raise ValueError("max_model_calls must be positive")
        self._provider = provider
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt
        self._registry = registry
        self._tool_descriptors = registry.descriptors()
        self._max_model_calls = max_model_calls
        self._model_timeout_seconds = model_timeout_seconds
        self._max_tool_result_chars = max_tool_result_chars
        self._on_record_tool_call = on_record_tool_call

    async def run(self, *, messages: list[dict], context: ToolContext) -> TurnOutcome:
        working = list(messages)
        outcome = TurnOutcome(reply_text="", model_calls=0)
        self._transition(outcome, TurnState.START, context)

        while True:
            self._transition(outcome, TurnState.AWAITING_MODEL, context)
            outcome.model_calls += 1
            try:
                response = await self._call_model(working)
            except TimeoutError as ex:
                self._transition(outcome, TurnState.ABORTED, context)
                raise TurnAborted(
                    f"Model call timed out after {self._model_timeout_seconds}s",
                    model_calls=outcome.model_calls,
                ) from ex

            if isinstance(response, FinalAnswer):
                outcome.reply_text = render_reply(response.content)
                self._transition(outcome, TurnState.DONE, context)
                return outcome

            assert isinstance(response, ToolCalls)
            if outcome.model_calls >= self._max_model_calls:
                # No model call is left to read the results, so the calls must not run.
                self._transition(outcome, TurnState.ABORTED, context)
                raise TurnAborted(
                    f"Turn aborted after {outcome.model_calls} model invocations without a final answer; "
                    f"{len(response.calls)} pending tool call(s) not executed",
                    model_calls=outcome.model_calls,
                )
            self._transition(outcome, TurnState.EXECUTING_TOOLS, context)
            working.append({"role": "assistant", "content": self._assistant_blocks(response)})
            results = await self.execute_tools(response.calls, context)
            outcome.tool_results.extend(results)
            working.append({"role": "user", "content": [self._result_block(r) for r in results]})

    async def _call_model(self, working: list[dict]):
        async with asyncio.timeout(self._model_timeout_seconds):
            return await self._provider.complete(
                self._model,
                self._max_tokens,
                self._temperature,
                self._system_prompt,
                working,
                self._tool_descriptors,
            )

    async def execute_tools(self, calls: tuple[ToolCallRequest, ...] | list[ToolCallRequest], context: ToolContext) -> list[ToolResult]:
        # Strictly sequential, in emitted order.
        results: list[ToolResult] = []
        for call in calls:
            results.append(await self._run_one(call, context))
        return results

    async def _run_one(self, call: ToolCallRequest, context: ToolContext) -> ToolResult:
        try:
            tool = self._registry.validate(call.tool_name, call.arguments, parse_error=call.parse_error)
            output = await tool.execute(call.arguments, context)
            result = ToolResult(
                tool_call_id=call.id,
                tool_name=call.tool_name,
                output_text=self._truncate_tool_result(output, call.tool_name),
                succeeded=True,
            )
        except ToolCallError as ex:
            result = ToolResult(tool_call_id=call.id, tool_name=call.tool_name, output_text=str(ex), succeeded=False)
        except PersistenceError:
            logger.error(f"Tool {call.tool_name} failed to persist for session {context.session_id}")
            raise
        except Exception as ex:
            result = ToolResult(
                tool_call_id=call.id,
                tool_name=call.tool_name,
                output_text=f'Error executing tool "{call.tool_name}": {ex}',
                succeeded=False,
            )

        if result.succeeded:
            logger.info(f"Tool {call.tool_name} succeeded (session={context.session_id})")
        else:
            logger.info(f"Tool {call.tool_name} failed (session={context.session_id}): {result.output_text}")

        if self._on_record_tool_call is not None:
            self._on_record_tool_call(
                context.session_id,
                message_id=context.source_message_id,
                tool_name=call.tool_name,
                tool_input=call.arguments,
                result_text=result.output_text,
                is_error=not result.succeeded,
            )
        return result

    def _assistant_blocks(self, response: ToolCalls) -> list[dict]:
        blocks: list[dict] = []
        if response.text:
            blocks.append({"type": "text", "text": response.text})
        for call in response.calls:
            blocks.append({"type": "tool_use", "id": call.id, "name": call.tool_name, "input": call.arguments})
        return blocks

    def _result_block(self, result: ToolResult) -> dict:
        block = {
            "type": "tool_result",
            "tool_use_id": result.tool_call_id,
            "content": result.output_text,
        }
        if not result.succeeded:
            block["is_error"] = True
        return block

    def _transition(self, outcome: TurnOutcome, state: TurnState, context: ToolContext) -> None:
        outcome.states.append(state)
        logger.debug(f"Turn {context.session_id}: {state.value} (model_calls={outcome.model_calls})")

    def _truncate_tool_result(self, result: str, tool_name: str) -> str:
        if self._max_tool_result_chars <= 0 or len(result) <= self._max_tool_result_chars:
            return result

        original_length = len(result)
        truncated = result[: self._max_tool_result_chars]
        message = (
            f"\n\n[OUTPUT TRUNCATED: Showing {self._max_tool_result_chars:,} "
            f"of {original_length:,} characters from {tool_name}]"
        )
        logger.warning(
            f"{tool_name} output truncated from {original_length:,} "
            f"to {self._max_tool_result_chars:,} chars"
        )
        return truncated + message
