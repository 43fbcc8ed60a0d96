from __future__ import annotations


class LifelogError(Exception):
    """Base class for every error raised by the orchestration core."""


# Surfaced to the caller of Orchestrator.handle_turn.


class ValidationError(LifelogError):
    pass


class AuthorizationError(LifelogError):
    pass


class SessionBusy(LifelogError):
    def __init__(self, session_id: str):
        super().__init__(f"Session is busy: {session_id}")
        self.session_id = session_id


# Tool-call local: fed back to the model, never surfaced to the caller.


class ToolCallError(LifelogError):
    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class UnknownTool(ToolCallError):
    def __init__(self, tool_name: str):
        super().__init__(tool_name, f'Error: unknown tool "{tool_name}"')


class InvalidArguments(ToolCallError):
    def __init__(self, tool_name: str, problems: list[str]):
        detail = "; ".join(problems)
        super().__init__(tool_name, f'Error: invalid arguments for "{tool_name}": {detail}')
        self.problems = problems


# Reasoning loop failures: converted into a fallback reply by the orchestrator.


class ModelUnavailable(LifelogError):
    pass


class PersistenceError(LifelogError):
    pass


class TurnAborted(LifelogError):
    def __init__(self, reason: str, *, model_calls: int):
        super().__init__(reason)
        self.model_calls = model_calls


CALLER_VISIBLE_ERRORS: tuple[type[LifelogError], ...] = (ValidationError, AuthorizationError, SessionBusy)
