import asyncio
import copy
from typing import Any

from lifelog_agent.provider import FinalAnswer, ModelResponse, ToolCallRequest, ToolCalls


def final(text: Any) -> FinalAnswer:
    return FinalAnswer(content=text)


def calls(*specs: tuple[str, dict]) -> ToolCalls:
    return ToolCalls(
        calls=tuple(ToolCallRequest(id=f"call-{i}", tool_name=name, arguments=args) for i, (name, args) in enumerate(specs))
    )


class ScriptedProvider:
    """Returns queued responses in order; an Exception in the queue is raised instead."""

    def __init__(self, responses: list[ModelResponse | Exception], *, delay: float = 0.0):
        self._responses = list(responses)
        self._delay = delay
        self.requests: list[list[dict]] = []

    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        self.requests.append(copy.deepcopy(messages))
        if self._delay:
            await asyncio.sleep(self._delay)
        if not self._responses:
            raise AssertionError("ScriptedProvider ran out of responses")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class LoopingProvider:
    """Never finalizes: every call asks for the same tool again."""

    def __init__(self, tool_name: str, arguments: dict):
        self._tool_name = tool_name
        self._arguments = arguments
        self.call_count = 0

    async def complete(self, model, max_tokens, temperature, system_prompt, messages, tools) -> ModelResponse:
        self.call_count += 1
        return ToolCalls(calls=(ToolCallRequest(id=f"loop-{self.call_count}", tool_name=self._tool_name, arguments=self._arguments),))


class EchoLastToolResultProvider:
    """Requests one tool call, then finalizes with the text of the tool result."""

    def __init__(self, tool_name: str, arguments: dict, *, delay: float = 0.0):
        self._tool_name = tool_name
        self._arguments = arguments
        self._delay = delay

    async def complete(self, model, max_tokens, temperature, system_prompt, messages, tools) -> ModelResponse:
        if self._delay:
            await asyncio.sleep(self._delay)
        last = messages[-1]
        if last["role"] == "user" and isinstance(last["content"], list):
            return FinalAnswer(content=f"Done: {last['content'][0]['content']}")
        return ToolCalls(calls=(ToolCallRequest(id="echo-1", tool_name=self._tool_name, arguments=self._arguments),))
