"""
Best-effort metadata extraction from API response bodies.

A body that cannot be parsed, or that lacks the expected fields, yields
no metadata and never an exception. Transport failures are handled by
the interceptor and always reach the caller; structural problems in a
body never do.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .token_counter import TokenUsage, parse_usage

UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class ResponseMetadata:
    """Fields recovered from a structured response body."""
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: Optional[str] = None
    error_message: Optional[str] = None


def is_json_content(content_type: str) -> bool:
    """Return True for ``application/json`` and ``+json`` media types."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _error_message(error: Any) -> Optional[str]:
    if isinstance(error, Mapping):
        message = error.get("message")
        return message if isinstance(message, str) and message else UNKNOWN_ERROR
    if isinstance(error, str):
        return error or None
    return UNKNOWN_ERROR if error else None


def try_extract(body: bytes, content_type: str) -> Optional[ResponseMetadata]:
    """Extract usage, model and error details from a response body.

    Args:
        body: Decoded response content
        content_type: Value of the response Content-Type header

    Returns:
        ResponseMetadata, or None when the body is not JSON or cannot be parsed
    """
    if not is_json_content(content_type):
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None

    if not isinstance(data, Mapping):
        return ResponseMetadata()

    model = data.get("model")
    return ResponseMetadata(
        usage=parse_usage(data.get("usage")),
        model=model if isinstance(model, str) and model else None,
        error_message=_error_message(data.get("error")),
    )
