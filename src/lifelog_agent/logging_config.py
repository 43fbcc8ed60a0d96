import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_LOG_PATH = ".lifelog/lifelog.log"

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"


def _console_sink(level: str) -> str:
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)
    return f"console (stderr, {level})"


def _file_sink(level: str, path: str = DEFAULT_LOG_PATH, rotation: str = "10 MB", retention: int = 3) -> str:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    logger.add(path, level=level, format=_FILE_FORMAT, rotation=rotation, retention=retention, enqueue=True)
    return f"file ({path}, {level})"


def _json_sink(level: str) -> str:
    logger.add(sys.stdout, level=level, serialize=True)
    return f"json (stdout, {level})"


_SINKS: dict[str, Callable[..., str]] = {
    "console": _console_sink,
    "file": _file_sink,
    "json": _json_sink,
}

# The REPL owns stdout, so only warnings reach the terminal by default.
_DEFAULT_SINKS: list[dict[str, Any]] = [
    {"type": "console", "level": "WARNING"},
    {"type": "file"},
]


def setup_logging(level: str = "INFO", consumers: list[dict[str, Any]] | None = None) -> list[str]:
    """Replace loguru's sinks with the ones listed under ``LogConsumers``.

    Each entry is ``{"type": "console" | "file" | "json", "level": ..., **options}``;
    ``level`` falls back to the global level. Returns one description per sink added.
    """
    logger.remove()

    descriptions: list[str] = []
    for entry in consumers if consumers is not None else _DEFAULT_SINKS:
        sink_type = entry.get("type", "")
        add_sink = _SINKS.get(sink_type)
        if add_sink is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue
        options = {k: v for k, v in entry.items() if k not in ("type", "level")}
        descriptions.append(add_sink(entry.get("level", level), **options))
    return descriptions
