from typing import Protocol, runtime_checkable


@runtime_checkable
class TitlePolicy(Protocol):
    def derive_title(self, first_message: str) -> str: ...


class PrefixTitlePolicy:
    """Title a session with the first ``max_chars`` characters of its opening message."""

    def __init__(self, max_chars: int = 20, fallback: str = "New conversation"):
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self._max_chars = max_chars
        self._fallback = fallback

    def derive_title(self, first_message: str) -> str:
        collapsed = " ".join(first_message.split())
        return collapsed[: self._max_chars].rstrip() or self._fallback
