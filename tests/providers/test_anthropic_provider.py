import asyncio
import unittest
from types import SimpleNamespace

import anthropic
import httpx

from lifelog_agent.errors import ModelUnavailable
from lifelog_agent.provider import FinalAnswer, ToolCalls
from lifelog_agent.providers.anthropic_provider import AnthropicProvider, parse_message


class _FakeMessages:
    def __init__(self, result):
        self._result = result
        self.kwargs: dict | None = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class _FakeClient:
    def __init__(self, result):
        self.messages = _FakeMessages(result)


def _message(*blocks, stop_reason="end_turn"):
    return SimpleNamespace(
        content=list(blocks),
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


class ParseMessageTests(unittest.TestCase):
    def test_text_only(self) -> None:
        response = parse_message(_message(
            SimpleNamespace(type="text", text="Saved "),
            SimpleNamespace(type="text", text="it."),
        ))
        self.assertIsInstance(response, FinalAnswer)
        self.assertEqual("Saved it.", response.content)

    def test_text_and_tool_use(self) -> None:
        response = parse_message(_message(
            SimpleNamespace(type="text", text="Let me record that."),
            SimpleNamespace(type="tool_use", id="t1", name="record_journal", input={"moodScore": 7}),
            stop_reason="tool_use",
        ))
        self.assertIsInstance(response, ToolCalls)
        self.assertEqual("Let me record that.", response.text)
        self.assertEqual("record_journal", response.calls[0].tool_name)
        self.assertEqual({"moodScore": 7}, response.calls[0].arguments)

    def test_empty_content_is_model_unavailable(self) -> None:
        with self.assertRaises(ModelUnavailable):
            parse_message(_message(stop_reason="max_tokens"))


class AnthropicProviderTests(unittest.TestCase):
    def test_complete_passes_system_and_tools(self) -> None:
        client = _FakeClient(_message(SimpleNamespace(type="text", text="Done")))
        provider = AnthropicProvider("key", client=client)
        tools = [{"name": "record_journal", "description": "d", "input_schema": {"type": "object"}}]

        response = asyncio.run(provider.complete("m", 100, 0.5, "sys", [{"role": "user", "content": "hi"}], tools))

        self.assertEqual("Done", response.content)
        self.assertEqual("sys", client.messages.kwargs["system"])
        self.assertEqual(tools, client.messages.kwargs["tools"])

    def test_api_error_becomes_model_unavailable(self) -> None:
        error = anthropic.APIError("bad request", httpx.Request("POST", "https://api.example.test"), body=None)
        provider = AnthropicProvider("key", client=_FakeClient(error))
        with self.assertRaises(ModelUnavailable):
            asyncio.run(provider.complete("m", 10, 0.0, "", [{"role": "user", "content": "x"}], []))


if __name__ == "__main__":
    unittest.main()
