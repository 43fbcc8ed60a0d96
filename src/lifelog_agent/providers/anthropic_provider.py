import anthropic
from loguru import logger
from tenacity import retry

from lifelog_agent.errors import ModelUnavailable
from lifelog_agent.provider import FinalAnswer, ModelResponse, ToolCallRequest, ToolCalls
from lifelog_agent.providers.common import default_retry_kwargs

_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.InternalServerError,
)


def parse_message(response) -> ModelResponse:
    """Map an Anthropic message onto FinalAnswer / ToolCalls."""
    content = getattr(response, "content", None)
    if content is None:
        raise ModelUnavailable("Model response contained no content")

    text_parts: list[str] = []
    calls: list[ToolCallRequest] = []
    for block in content:
        if block.type == "text":
            text_parts.append(block.text)
        elif block.type == "tool_use":
            tool_input = block.input if isinstance(block.input, dict) else {}
            calls.append(ToolCallRequest(id=block.id, tool_name=block.name, arguments=tool_input))

    text = "".join(text_parts)
    if calls:
        return ToolCalls(calls=tuple(calls), text=text)
    if not text_parts:
        raise ModelUnavailable(f"Model returned no text (stop_reason={getattr(response, 'stop_reason', None)})")
    return FinalAnswer(content=text)


class AnthropicProvider:
    def __init__(self, api_key: str, *, client=None):
        self._client = client if client is not None else anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict],
    ) -> ModelResponse:
        try:
            response = await self._create(model, max_tokens, temperature, system_prompt, messages, tools)
        except anthropic.APIError as ex:
            raise ModelUnavailable(f"{type(ex).__name__}: {ex}") from ex
        return parse_message(response)

    @retry(**default_retry_kwargs(_TRANSIENT_ERRORS))
    async def _create(
        self,
        model: str,
        max_tokens: int,
        temperature: float,
        system_prompt: str,
        messages: list[dict],
        tools: list[dict],
    ):
        logger.debug(
            f"API request: model={model}, max_tokens={max_tokens}, "
            f"messages={len(messages)}, tools={len(tools)}"
        )
        response = await self._client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=messages,
            tools=tools,
        )
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                f"API response: stop_reason={response.stop_reason}, "
                f"input_tokens={usage.input_tokens}, output_tokens={usage.output_tokens}"
            )
        return response
