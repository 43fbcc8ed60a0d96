import json

import openai
from loguru import logger
from tenacity import retry

from lifelog_agent.errors import ModelUnavailable
from lifelog_agent.provider import FinalAnswer, ModelResponse, ToolCallRequest, ToolCalls
from lifelog_agent.providers.common import default_retry_kwargs

_TRANSIENT_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


def _to_openai_messages(
    system_prompt: str,
    messages: list[dict],
) -> list[dict]:
    """Convert internal (Anthropic-style) messages to OpenAI chat format."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        role = msg["role"]
        content = msg.get("content", "")

        if role == "assistant":
            if isinstance(content, str):
                out.append({"role": "assistant", "content": content})
                continue

            text_parts: list[str] = []
            tool_calls: list[dict] = []
            for block in content:
                if block.get("type") == "text":
                    text_parts.append(block["text"])
                elif block.get("type") == "tool_use":
                    tool_calls.append({
                        "id": block["id"],
                        "type": "function",
                        "function": {
                            "name": block["name"],
                            "arguments": json.dumps(block["input"]),
                        },
                    })

            oai_msg: dict = {"role": "assistant"}
            oai_msg["content"] = "\n".join(text_parts) if text_parts else None
            if tool_calls:
                oai_msg["tool_calls"] = tool_calls
            out.append(oai_msg)

        elif role == "user":
            if isinstance(content, str):
                out.append({"role": "user", "content": content})
                continue

            # May carry tool_result blocks, which become "tool" role messages.
            text_parts_user: list[str] = []
            for block in content:
                if isinstance(block, str):
                    text_parts_user.append(block)
                elif block.get("type") == "text":
                    text_parts_user.append(block["text"])
                elif block.get("type") == "tool_result":
                    out.append({
                        "role": "tool",
                        "tool_call_id": block["tool_use_id"],
                        "content": str(block.get("content", "")),
                    })

            if text_parts_user:
                out.append({"role": "user", "content": "\n".join(text_parts_user)})

        else:
            out.append({"role": role, "content": content if isinstance(content, str) else str(content)})

    return out


def _to_openai_tools(tools: list[dict]) -> list[dict]:
    """Convert internal tool descriptors to OpenAI function-calling format."""
    return [
        {
            "type": "function",
            "function": {
                "name": t["name"],
                "description": t.get("description", ""),
                "parameters": t.get("input_schema", {}),
            },
        }
        for t in tools
    ]


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-finite number {name}")


def _parse_arguments(raw_args: str | None) -> tuple[dict, str | None]:
    """Decode tool-call arguments; on failure return ``{}`` plus the reason."""
    if not raw_args:
        return {}, None
    try:
        parsed = json.loads(raw_args, parse_constant=_reject_constant)
    except ValueError as ex:
        logger.warning(f"Failed to parse tool call arguments: {raw_args[:200]}")
        return {}, str(ex)
    if not isinstance(parsed, dict):
        return {}, f"expected a JSON object, got {type(parsed).__name__}"
    return parsed, None


def parse_chat_completion(response) -> ModelResponse:
    """Map an OpenAI chat completion onto FinalAnswer / ToolCalls."""
    choices = getattr(response, "choices", None)
    if not choices:
        raise ModelUnavailable("Model response contained no choices")
    message = choices[0].message
    if message is None:
        raise ModelUnavailable("Model response contained no message")

    raw_calls = message.tool_calls or []
    if raw_calls:
        calls: list[ToolCallRequest] = []
        for tc in raw_calls:
            function = getattr(tc, "function", None)
            if function is None or not function.name:
                raise ModelUnavailable("Model requested a tool call without a function name")
            arguments, parse_error = _parse_arguments(function.arguments)
            calls.append(
                ToolCallRequest(
                    id=tc.id or f"call_{len(calls)}",
                    tool_name=function.name,
                    arguments=arguments,
                    parse_error=parse_error,
                )
            )
        return ToolCalls(calls=tuple(calls), text=message.content or "")

    if message.content is None:
        raise ModelUnavailable("Model returned neither text nor tool calls")
    return FinalAnswer(content=message.content)


class OpenAIProvider:
    """OpenAI-compatible chat completions; also serves DeepSeek through ``base_url``."""

    def __init__(self, api_key: str, *, base_url: str | None = None, client=None):
        if client is not None:
            self._client = client
        elif base_url:
            self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        else:
            self._client = openai.AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        oai_messages = _to_openai_messages(system_prompt, messages)
        oai_tools = _to_openai_tools(tools)
        try:
            response = await self._create(model, max_tokens, temperature, oai_messages, oai_tools)
        except openai.APIError as ex:
            raise ModelUnavailable(f"{type(ex).__name__}: {ex}") from ex
        return parse_chat_completion(response)

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def _create(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        oai_messages: list[dict],
        oai_tools: list[dict],
    ):
        logger.debug(
            f"API request: model={model}, max_tokens={max_tokens}, "
            f"messages={len(oai_messages)}, tools={len(oai_tools)}"
        )
        kwargs: dict = dict(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=oai_messages,
        )
        if oai_tools:
            kwargs["tools"] = oai_tools
        response = await self._client.chat.completions.create(**kwargs)
        finish_reason = response.choices[0].finish_reason if response.choices else None
        logger.debug(f"API response: finish_reason={finish_reason}")
        return response
