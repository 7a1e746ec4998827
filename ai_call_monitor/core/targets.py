"""
Call target resolution.

Decides which outbound calls are monitored and which model they address.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

UNKNOWN_MODEL = "unknown"

DEFAULT_API_MARKERS: Tuple[str, ...] = ("/api/", "api.")

# Self, local dev server and collaboration-tool hosts
DEFAULT_DENYLIST: Tuple[str, ...] = ("localhost:3000", "github.com", "gist.github.com")

# Checked in order, first match wins
DEFAULT_MODEL_MARKERS: Tuple[Tuple[str, str], ...] = (
    ("gpt-4", "GPT-4"),
    ("claude", "Claude"),
    ("gemini", "Gemini"),
    ("mistral", "Mistral"),
)


@dataclass(frozen=True)
class CallTarget:
    """URL and method of an outbound call."""
    url: str
    method: str = "GET"


def extract_target(request: Any, options: Optional[Mapping[str, Any]] = None) -> CallTarget:
    """Resolve URL and method from call arguments.

    Accepts either a plain URL (``str`` or ``httpx.URL``) with an optional
    options mapping carrying ``method``, or a request descriptor exposing
    ``url`` and ``method`` attributes such as ``httpx.Request``.

    Args:
        request: URL or request descriptor passed to the call
        options: Optional call options

    Returns:
        CallTarget for the call
    """
    options = options or {}
    url = getattr(request, "url", None)
    if url is None:
        url = request
        method = options.get("method")
    else:
        method = getattr(request, "method", None) or options.get("method")
    return CallTarget(
        url="" if url is None else str(url),
        method=str(method or "GET").upper(),
    )


def should_monitor(
    url: str,
    api_markers: Sequence[str] = DEFAULT_API_MARKERS,
    denylist: Sequence[str] = DEFAULT_DENYLIST,
) -> bool:
    """Check whether a URL addresses a monitored API.

    A denylisted host is never monitored, even when the URL also carries
    an API marker.
    """
    if not url:
        return False
    if any(host in url for host in denylist):
        return False
    return any(marker in url for marker in api_markers)


def extract_model_id(
    url: str,
    model_markers: Sequence[Tuple[str, str]] = DEFAULT_MODEL_MARKERS,
) -> str:
    """Guess the model from the URL by fixed-priority substring match."""
    for marker, model_name in model_markers:
        if marker in url:
            return model_name
    return UNKNOWN_MODEL
