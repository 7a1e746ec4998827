"""
Unit tests for call target resolution and response metadata extraction.
"""

import httpx
import pytest

from ai_call_monitor.core.metadata import (
    UNKNOWN_ERROR,
    ResponseMetadata,
    is_json_content,
    try_extract,
)
from ai_call_monitor.core.targets import (
    CallTarget,
    extract_model_id,
    extract_target,
    should_monitor,
)
from ai_call_monitor.core.token_counter import TokenUsage


class TestExtractTarget:
    """Test URL and method resolution from call arguments."""

    def test_plain_url(self):
        assert extract_target("https://api.openai.com/v1/models") == CallTarget(
            url="https://api.openai.com/v1/models", method="GET"
        )

    def test_plain_url_with_options(self):
        target = extract_target("https://api.openai.com/v1/chat", {"method": "post"})
        assert target.method == "POST"

    def test_httpx_url(self):
        target = extract_target(httpx.URL("https://api.anthropic.com/v1/messages"))
        assert target.url == "https://api.anthropic.com/v1/messages"

    def test_request_descriptor(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        assert extract_target(request) == CallTarget(
            url="https://api.openai.com/v1/chat/completions", method="POST"
        )

    def test_missing_url(self):
        assert extract_target(None).url == ""


class TestShouldMonitor:
    """Test API marker and denylist matching."""

    @pytest.mark.parametrize("url", [
        "https://api.openai.com/v1/chat/completions",
        "https://example.com/api/generate",
        "https://api.example.com/v1/gpt-4/chat",
    ])
    def test_api_urls_monitored(self, url):
        assert should_monitor(url)

    @pytest.mark.parametrize("url", [
        "https://example.com/index.html",
        "https://cdn.example.com/static/app.js",
        "",
    ])
    def test_non_api_urls_skipped(self, url):
        assert not should_monitor(url)

    @pytest.mark.parametrize("url", [
        "http://localhost:3000/api/metrics",
        "https://api.github.com/repos",
        "https://gist.github.com/api/gists",
    ])
    def test_denylist_wins_over_api_marker(self, url):
        assert not should_monitor(url)

    def test_custom_rules(self):
        assert should_monitor("https://llm.internal/v1", api_markers=("/v1",), denylist=())
        assert not should_monitor(
            "https://llm.internal/v1", api_markers=("/v1",), denylist=("llm.internal",)
        )


class TestExtractModelId:
    """Test URL-based model guessing."""

    def test_first_priority_match_wins(self):
        assert extract_model_id("https://api.x.com/gpt-4/claude") == "GPT-4"
        assert extract_model_id("https://api.x.com/claude/gpt-4") == "GPT-4"

    @pytest.mark.parametrize("url,expected", [
        ("https://api.x.com/models/claude-3", "Claude"),
        ("https://api.x.com/v1/gemini-pro:generate", "Gemini"),
        ("https://api.mistral.ai/v1/mistral-large", "Mistral"),
    ])
    def test_known_markers(self, url, expected):
        assert extract_model_id(url) == expected

    def test_unknown(self):
        assert extract_model_id("https://api.example.com/v1/chat") == "unknown"

    def test_custom_markers(self):
        markers = (("llama", "Llama"), ("gpt-4", "OpenAI"))
        assert extract_model_id("https://api.x.com/gpt-4/llama", markers) == "Llama"


class TestTryExtract:
    """Test best-effort body parsing."""

    def test_usage_and_model(self):
        body = b'{"usage":{"prompt_tokens":10,"completion_tokens":5},"model":"GPT-4-Turbo"}'
        assert try_extract(body, "application/json") == ResponseMetadata(
            usage=TokenUsage(10, 5), model="GPT-4-Turbo", error_message=None
        )

    def test_error_object(self):
        body = b'{"error":{"message":"Rate limit exceeded","type":"rate_limit"}}'
        metadata = try_extract(body, "application/json; charset=utf-8")
        assert metadata.error_message == "Rate limit exceeded"
        assert metadata.usage == TokenUsage()

    def test_error_without_message(self):
        assert try_extract(b'{"error":{"code":500}}', "application/json").error_message == UNKNOWN_ERROR
        assert try_extract(b'{"error":"quota exhausted"}', "application/json").error_message == "quota exhausted"
        assert try_extract(b'{"error":null}', "application/json").error_message is None

    def test_non_json_content_type(self):
        assert try_extract(b'{"model":"x"}', "text/plain") is None
        assert try_extract(b'{"model":"x"}', "") is None

    def test_malformed_body(self):
        assert try_extract(b"not json{", "application/json") is None
        assert try_extract(b"", "application/json") is None
        assert try_extract(b"\xff\xfe\xfa", "application/json") is None

    def test_non_object_body(self):
        assert try_extract(b"[1, 2, 3]", "application/json") == ResponseMetadata()

    def test_ignores_non_string_model(self):
        assert try_extract(b'{"model": 42}', "application/json").model is None

    @pytest.mark.parametrize("content_type,expected", [
        ("application/json", True),
        ("Application/JSON; charset=utf-8", True),
        ("application/problem+json", True),
        ("text/event-stream", False),
        ("text/html", False),
    ])
    def test_is_json_content(self, content_type, expected):
        assert is_json_content(content_type) is expected
