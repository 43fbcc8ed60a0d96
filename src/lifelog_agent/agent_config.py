from dataclasses import dataclass, field

from lifelog_agent.session_guard import QUEUE
from lifelog_agent.title_policy import PrefixTitlePolicy, TitlePolicy

FALLBACK_REPLY = "The assistant could not complete this turn. Please try again."


@dataclass
class AgentConfig:
    model: str = "deepseek-chat"
    max_tokens: int = 1024
    temperature: float = 0.0
    system_prompt: str = ""
    max_model_calls: int = 8
    model_timeout_seconds: float | None = 60.0
    turn_timeout_seconds: float | None = 180.0
    max_tool_result_chars: int = 4_000
    session_guard_policy: str = QUEUE
    session_acquire_timeout_seconds: float | None = None
    fallback_reply: str = FALLBACK_REPLY
    title_policy: TitlePolicy = field(default_factory=PrefixTitlePolicy)
