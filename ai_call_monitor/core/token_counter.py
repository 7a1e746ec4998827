"""
Token counting and usage parsing.

Normalizes the ``usage`` object returned by chat-completion style APIs.
"""

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported by a single API response.

    Counts are taken as reported by the provider; nothing is estimated.
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def __post_init__(self):
        """Validate token counts are non-negative."""
        if self.prompt_tokens < 0:
            raise ValueError("prompt_tokens cannot be negative")
        if self.completion_tokens < 0:
            raise ValueError("completion_tokens cannot be negative")

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


def _as_count(value: Any) -> int:
    # bool is an int subclass; a flag is not a token count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)


def parse_usage(payload: Any) -> TokenUsage:
    """Build TokenUsage from a provider ``usage`` object.

    Missing, negative or non-numeric fields count as zero.

    Args:
        payload: The decoded ``usage`` value of a response body

    Returns:
        TokenUsage with coerced counts
    """
    if not isinstance(payload, Mapping):
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=_as_count(payload.get("prompt_tokens")),
        completion_tokens=_as_count(payload.get("completion_tokens")),
    )
