import asyncio
import unittest
from typing import Any

from lifelog_agent.errors import ModelUnavailable, PersistenceError, TurnAborted
from lifelog_agent.provider import ToolCallRequest, ToolCalls
from lifelog_agent.tool import ToolContext
from lifelog_agent.tool_registry import ToolRegistry, get_all
from lifelog_agent.turn_engine import TurnEngine, TurnState, render_reply
from tests.fakes import LoopingProvider, ScriptedProvider, calls, final
from tests.memory.base import MemoryStoreTestCase

_CONTEXT = ToolContext(owner_id="u1", session_id="s1", source_message_id=None)


class _RecordingTool:
    def __init__(self, name: str, log: list[str], *, output: str = "ok", error: Exception | None = None):
        self._name = name
        self._log = log
        self._output = output
        self._error = error

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._name

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"n": {"type": "integer"}}}

    @property
    def is_mutating(self) -> bool:
        return True

    async def execute(self, tool_input: dict[str, Any], context: ToolContext) -> str:
        self._log.append(f"{self._name}:{tool_input.get('n')}")
        if self._error is not None:
            raise self._error
        return self._output


def _engine(provider, registry: ToolRegistry, **overrides) -> TurnEngine:
    kwargs = dict(
        provider=provider,
        model="test-model",
        max_tokens=256,
        temperature=0.0,
        system_prompt="system",
        registry=registry,
        max_model_calls=4,
        model_timeout_seconds=None,
        max_tool_result_chars=1_000,
    )
    kwargs.update(overrides)
    return TurnEngine(**kwargs)


class TurnEngineTests(unittest.TestCase):
    def test_final_answer_without_tools(self) -> None:
        provider = ScriptedProvider([final("hello")])
        outcome = asyncio.run(
            _engine(provider, ToolRegistry()).run(messages=[{"role": "user", "content": "hi"}], context=_CONTEXT)
        )
        self.assertEqual("hello", outcome.reply_text)
        self.assertEqual(1, outcome.model_calls)
        self.assertEqual([TurnState.START, TurnState.AWAITING_MODEL, TurnState.DONE], outcome.states)

    def test_tools_run_sequentially_in_emitted_order(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log), _RecordingTool("b", log)])
        provider = ScriptedProvider([
            calls(("b", {"n": 1}), ("a", {"n": 2}), ("b", {"n": 3})),
            final("done"),
        ])
        outcome = asyncio.run(_engine(provider, registry).run(messages=[], context=_CONTEXT))
        self.assertEqual(["b:1", "a:2", "b:3"], log)
        self.assertEqual(3, len(outcome.tool_results))
        self.assertTrue(all(r.succeeded for r in outcome.tool_results))

    def test_results_are_fed_back_to_the_model(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log, output="tool says hi")])
        provider = ScriptedProvider([calls(("a", {"n": 1})), final("ok")])
        asyncio.run(_engine(provider, registry).run(messages=[{"role": "user", "content": "go"}], context=_CONTEXT))

        second_request = provider.requests[1]
        self.assertEqual("assistant", second_request[1]["role"])
        self.assertEqual("tool_use", second_request[1]["content"][0]["type"])
        result_block = second_request[2]["content"][0]
        self.assertEqual("tool_result", result_block["type"])
        self.assertEqual("call-0", result_block["tool_use_id"])
        self.assertEqual("tool says hi", result_block["content"])
        self.assertNotIn("is_error", result_block)

    def test_unknown_tool_and_invalid_arguments_do_not_abort(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log)])
        provider = ScriptedProvider([
            calls(("missing", {}), ("a", {"n": "not-an-int"})),
            final("recovered"),
        ])
        outcome = asyncio.run(_engine(provider, registry).run(messages=[], context=_CONTEXT))

        self.assertEqual("recovered", outcome.reply_text)
        self.assertEqual([], log)
        self.assertEqual([False, False], [r.succeeded for r in outcome.tool_results])
        self.assertIn("unknown tool", outcome.tool_results[0].output_text)
        self.assertIn("invalid arguments", outcome.tool_results[1].output_text)
        fed_back = provider.requests[1][-1]["content"]
        self.assertTrue(all(block["is_error"] for block in fed_back))

    def test_executor_exception_becomes_failed_result(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log, error=RuntimeError("disk on fire"))])
        provider = ScriptedProvider([calls(("a", {"n": 1})), final("sorry")])
        outcome = asyncio.run(_engine(provider, registry).run(messages=[], context=_CONTEXT))
        self.assertFalse(outcome.tool_results[0].succeeded)
        self.assertIn("disk on fire", outcome.tool_results[0].output_text)

    def test_persistence_error_aborts_the_turn(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log, error=PersistenceError("write failed"))])
        provider = ScriptedProvider([calls(("a", {"n": 1})), final("should not be reached")])
        with self.assertRaises(PersistenceError):
            asyncio.run(_engine(provider, registry).run(messages=[], context=_CONTEXT))
        self.assertEqual(1, len(provider.requests))

    def test_iteration_bound_aborts_after_exactly_n_calls(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log)])
        provider = LoopingProvider("a", {"n": 1})
        with self.assertRaises(TurnAborted) as ctx:
            asyncio.run(_engine(provider, registry, max_model_calls=5).run(messages=[], context=_CONTEXT))
        self.assertEqual(5, provider.call_count)
        self.assertEqual(5, ctx.exception.model_calls)

    def test_tool_calls_from_last_allowed_model_call_are_not_run(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log)])
        provider = ScriptedProvider([calls(("a", {"n": 1})), calls(("a", {"n": 2}))])
        with self.assertRaises(TurnAborted) as ctx:
            asyncio.run(_engine(provider, registry, max_model_calls=2).run(messages=[], context=_CONTEXT))
        self.assertEqual(["a:1"], log)
        self.assertEqual(2, ctx.exception.model_calls)

    def test_model_unavailable_propagates(self) -> None:
        provider = ScriptedProvider([ModelUnavailable("down")])
        with self.assertRaises(ModelUnavailable):
            asyncio.run(_engine(provider, ToolRegistry()).run(messages=[], context=_CONTEXT))

    def test_model_timeout_aborts(self) -> None:
        provider = ScriptedProvider([final("late")], delay=0.5)
        with self.assertRaises(TurnAborted):
            asyncio.run(
                _engine(provider, ToolRegistry(), model_timeout_seconds=0.01).run(messages=[], context=_CONTEXT)
            )

    def test_long_tool_output_is_truncated(self) -> None:
        log: list[str] = []
        registry = ToolRegistry([_RecordingTool("a", log, output="x" * 50)])
        provider = ScriptedProvider([calls(("a", {"n": 1})), final("ok")])
        outcome = asyncio.run(_engine(provider, registry, max_tool_result_chars=10).run(messages=[], context=_CONTEXT))
        self.assertTrue(outcome.tool_results[0].output_text.startswith("x" * 10))
        self.assertIn("OUTPUT TRUNCATED", outcome.tool_results[0].output_text)

    def test_structured_final_content_is_serialized_deterministically(self) -> None:
        self.assertEqual('{"a": 1, "b": [2]}', render_reply({"b": [2], "a": 1}))
        self.assertEqual("plain", render_reply("plain"))

    def test_max_model_calls_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            _engine(ScriptedProvider([]), ToolRegistry(), max_model_calls=0)


class TurnEngineBuiltinToolTests(MemoryStoreTestCase):
    def _run(self, provider, **overrides) -> Any:
        registry = ToolRegistry(get_all(self._ledger, self._journal))
        engine = _engine(provider, registry, on_record_tool_call=self._sessions.record_tool_call, **overrides)
        sid = self._sessions.create_session("u1", "t").id
        context = ToolContext(owner_id="u1", session_id=sid, source_message_id=None)
        return sid, asyncio.run(engine.run(messages=[], context=context))

    def test_invalid_kind_writes_nothing(self) -> None:
        provider = ScriptedProvider([
            calls(("record_transaction", {"amount": 20, "category": "Food", "kind": "GIFT"})),
            final("could not record"),
        ])
        sid, outcome = self._run(provider)
        self.assertEqual(0, self.count_rows("ledger_entries"))
        self.assertFalse(outcome.tool_results[0].succeeded)
        self.assertEqual(1, len(self._sessions.list_tool_calls(sid)))

    def test_mood_out_of_range_then_corrected(self) -> None:
        provider = ScriptedProvider([
            calls(("record_journal", {"content": "great", "moodScore": 11, "tags": []})),
            calls(("record_journal", {"content": "great", "moodScore": 10, "tags": []})),
            final("saved"),
        ])
        _, outcome = self._run(provider)
        self.assertEqual([False, True], [r.succeeded for r in outcome.tool_results])
        self.assertIn("moodScore", outcome.tool_results[0].output_text)
        self.assertEqual(1, self.count_rows("journal_entries"))

    def test_single_call_budget_never_writes(self) -> None:
        provider = ScriptedProvider([
            calls(("record_transaction", {"amount": 20, "category": "Food", "kind": "EXPENSE"})),
        ])
        with self.assertRaises(TurnAborted):
            self._run(provider, max_model_calls=1)
        self.assertEqual(0, self.count_rows("ledger_entries"))

    def test_non_finite_amount_is_a_failed_result(self) -> None:
        provider = ScriptedProvider([
            calls(("record_transaction", {"amount": float("inf"), "category": "Food", "kind": "INCOME"})),
            final("which amount?"),
        ])
        _, outcome = self._run(provider)
        self.assertFalse(outcome.tool_results[0].succeeded)
        self.assertIn("amount", outcome.tool_results[0].output_text)
        self.assertEqual(0, self.count_rows("ledger_entries"))

    def test_undecodable_arguments_are_reported_to_the_model(self) -> None:
        provider = ScriptedProvider([
            ToolCalls(calls=(ToolCallRequest(id="c1", tool_name="record_journal", parse_error="Expecting value"),)),
            final("retrying"),
        ])
        _, outcome = self._run(provider)
        self.assertIn("not valid JSON", outcome.tool_results[0].output_text)
        self.assertNotIn("required property", outcome.tool_results[0].output_text)


if __name__ == "__main__":
    unittest.main()
