from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

DEEPSEEK_BASE_URL = "https://api.deepseek.com"
DEEPSEEK_MODELS = ("deepseek-chat", "deepseek-reasoner")


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    base_url: str | None
    model_override: str | None
    temperature_override: float | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    base_url: str | None
    max_model_calls: int
    model_timeout_seconds: float | None
    turn_timeout_seconds: float | None
    max_tool_result_chars: int
    session_guard_policy: str
    session_acquire_timeout_seconds: float | None
    title_max_chars: int
    memory_db_path: str
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    number = float(value)
    return number if number > 0 else None


def parse_app_config(config: dict) -> AppConfig:
    provider_name = str(config.get("Provider", "deepseek")).strip().lower()
    default_model = "claude-sonnet-4-5-20250929" if provider_name == "anthropic" else "deepseek-chat"
    return AppConfig(
        provider_name=provider_name,
        model=config.get("Model", default_model),
        max_tokens=int(config.get("MaxTokens", 1024)),
        temperature=float(config.get("Temperature", 0.0)),
        base_url=str(config.get("BaseUrl", "")).strip() or None,
        max_model_calls=int(config.get("MaxModelCalls", 8)),
        model_timeout_seconds=_optional_float(config.get("ModelTimeoutSeconds", 60)),
        turn_timeout_seconds=_optional_float(config.get("TurnTimeoutSeconds", 180)),
        max_tool_result_chars=int(config.get("MaxToolResultChars", 4_000)),
        session_guard_policy=str(config.get("SessionGuardPolicy", "queue")).strip().lower(),
        session_acquire_timeout_seconds=_optional_float(config.get("SessionAcquireTimeoutSeconds")),
        title_max_chars=int(config.get("TitleMaxChars", 20)),
        memory_db_path=str(config.get("MemoryDbPath", ".lifelog/lifelog.db")),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "anthropic":
        return RuntimeEnv(
            provider_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            provider_env_var="ANTHROPIC_API_KEY",
            base_url=None,
            model_override=None,
            temperature_override=None,
        )

    # DeepSeek key wins over an OpenAI key when both are present.
    deepseek_key = os.environ.get("DEEPSEEK_API_KEY", "")
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    if deepseek_key:
        api_key, env_var = deepseek_key, "DEEPSEEK_API_KEY"
    else:
        api_key, env_var = openai_key, "OPENAI_API_KEY"

    base_url = os.environ.get("OPENAI_BASE_URL") or None
    if base_url is None and provider_name == "deepseek":
        base_url = DEEPSEEK_BASE_URL

    temperature_raw = os.environ.get("OPENAI_TEMPERATURE", "").strip()
    return RuntimeEnv(
        provider_api_key=api_key,
        provider_env_var=env_var,
        base_url=base_url,
        model_override=os.environ.get("OPENAI_MODEL_NAME") or None,
        temperature_override=float(temperature_raw) if temperature_raw else None,
    )


def apply_runtime_overrides(app: AppConfig, env: RuntimeEnv) -> AppConfig:
    """Fold environment overrides into ``app`` and sanity-check the model name."""
    if env.base_url and not app.base_url:
        app.base_url = env.base_url
    if env.model_override:
        app.model = env.model_override
    if env.temperature_override is not None:
        app.temperature = env.temperature_override

    if app.base_url and "deepseek.com" in app.base_url and app.model.lower() not in DEEPSEEK_MODELS:
        logger.warning(f'Model name "{app.model}" is not a valid DeepSeek model, using "deepseek-chat"')
        app.model = "deepseek-chat"
    return app
