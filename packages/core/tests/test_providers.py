"""Tests for model provider implementations.

Shared behaviour (prompts, _call_with_retry, stream assembly) lives in
BaseReviewer and is tested once via a lightweight stub — not duplicated per
provider. Provider-specific tests cover only what differs between
implementations: the client setup, _call_api and _open_stream.
"""

import json
from contextlib import contextmanager
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from reviewlens_core.providers.anthropic import AnthropicReviewer
from reviewlens_core.providers.base import BaseReviewer
from reviewlens_core.providers.ollama import OllamaReviewer
from reviewlens_core.providers.openai import OpenAIReviewer
from reviewlens_core.streaming import ClaudeMetrics, OllamaMetrics, OpenAICompatibleMetrics, StreamInterrupted

REVIEW_TEXT = "### 1. **Bug**\n`app.py:2` crashes on empty input."


def _ndjson(*objects):
    return "".join(json.dumps(o) + "\n" for o in objects).encode()


class _StubReviewer(BaseReviewer):
    """Minimal concrete subclass used to test BaseReviewer shared methods."""

    KIND = "ollama"
    MODEL = "stub-model"

    def __init__(self, chunks=(), fail_after=None):
        self.model = self.MODEL
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.prompts = None

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts = (system_prompt, user_prompt)
        return REVIEW_TEXT

    @contextmanager
    def _open_stream(self, system_prompt: str, user_prompt: str):
        self.prompts = (system_prompt, user_prompt)

        def body():
            for i, chunk in enumerate(self.chunks):
                if self.fail_after is not None and i == self.fail_after:
                    raise httpx.ReadError("connection reset")
                yield chunk

        yield body()


# ---------------------------------------------------------------------------
# Shared behaviour, tested once through the stub
# ---------------------------------------------------------------------------


class TestBaseReviewerPrompts:
    def test_system_prompt_contains_guidelines(self):
        prompt = _StubReviewer()._build_system_prompt("## My Guidelines")
        assert "## My Guidelines" in prompt

    def test_general_profile_adds_no_focus(self):
        assert "Review profile" not in _StubReviewer()._build_system_prompt("g", "general")

    def test_profile_focus(self):
        assert "security" in _StubReviewer()._build_system_prompt("g", "security")

    def test_user_prompt_contains_diff(self):
        prompt = _StubReviewer()._build_user_prompt("+added line")
        assert "+added line" in prompt
        assert "```diff" in prompt

    def test_generate_builds_both_prompts(self):
        reviewer = _StubReviewer()
        assert reviewer.generate("+x = 1", "Be strict") == REVIEW_TEXT
        system, user = reviewer.prompts
        assert "Be strict" in system
        assert "+x = 1" in user


class TestBaseReviewerRetry:
    def test_returns_none_after_max_retries(self):
        class _AlwaysFailReviewer(_StubReviewer):
            def _call_api(self, system_prompt: str, user_prompt: str) -> str:
                raise RuntimeError("network error")

        # Patch time.sleep so the test doesn't actually wait.
        with patch("reviewlens_core.providers.base.time.sleep") as mock_sleep:
            assert _AlwaysFailReviewer().generate("+x", "g") is None
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    def test_retries_on_transient_failure(self):
        call_count = 0

        class _FailOnceThenSucceed(_StubReviewer):
            def _call_api(self, system_prompt: str, user_prompt: str) -> str:
                nonlocal call_count
                call_count += 1
                if call_count == 1:
                    raise RuntimeError("transient")
                return REVIEW_TEXT

        with patch("reviewlens_core.providers.base.time.sleep"):
            assert _FailOnceThenSucceed().generate("+x", "g") == REVIEW_TEXT
        assert call_count == 2


class TestBaseReviewerStream:
    def test_stream_assembles_text(self):
        reviewer = _StubReviewer(chunks=[_ndjson({"response": "Hel"}), _ndjson({"response": "lo", "done": True})])
        seen = []
        result = reviewer.stream("+x", "g", on_chunk=seen.append)
        assert result.text == "Hello"
        assert result.completed
        assert seen == ["Hel", "lo"]
        assert isinstance(result.metrics, OllamaMetrics)

    def test_mid_stream_failure_raises_with_partial_text(self):
        reviewer = _StubReviewer(chunks=[_ndjson({"response": "partial"}), b"never sent"], fail_after=1)
        with pytest.raises(StreamInterrupted) as exc_info:
            reviewer.stream("+x", "g")
        assert exc_info.value.partial_text == "partial"
        assert isinstance(exc_info.value.__cause__, httpx.ReadError)

    def test_failure_opening_stream(self):
        class _Unreachable(_StubReviewer):
            def _open_stream(self, system_prompt, user_prompt):
                raise httpx.ConnectError("connection refused")

        with pytest.raises(StreamInterrupted) as exc_info:
            _Unreachable().stream("+x", "g")
        assert exc_info.value.partial_text == ""
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


# ---------------------------------------------------------------------------
# Provider-specific
# ---------------------------------------------------------------------------


class TestOllamaReviewer:
    def test_defaults(self):
        reviewer = OllamaReviewer()
        assert reviewer.model == OllamaReviewer.MODEL
        assert reviewer.endpoint == "http://localhost:11434/api/generate"

    def test_call_api_posts_non_streaming_request(self, mocker):
        client = mocker.patch("reviewlens_core.providers.ollama.httpx.Client").return_value.__enter__.return_value
        client.post.return_value.json.return_value = {
            "response": "  looks fine  ",
            "done": True,
            "eval_count": 10,
            "eval_duration": 1_000_000_000,
        }

        reviewer = OllamaReviewer(model="llama3", endpoint="http://box:11434/api/generate", temperature=0.2)
        assert reviewer._call_api("sys", "user") == "looks fine"

        url = client.post.call_args.args[0]
        payload = client.post.call_args.kwargs["json"]
        assert url == "http://box:11434/api/generate"
        assert payload["model"] == "llama3"
        assert payload["stream"] is False
        assert payload["system"] == "sys"
        assert payload["options"] == {"temperature": 0.2}
        assert reviewer.last_metrics.tokens_per_second == pytest.approx(10.0)

    def test_stream_reads_response_bytes(self, mocker):
        client = mocker.patch("reviewlens_core.providers.ollama.httpx.Client").return_value.__enter__.return_value
        response = client.stream.return_value.__enter__.return_value
        response.iter_bytes.return_value = iter([_ndjson({"response": "ok", "done": True})])

        result = OllamaReviewer().stream("+x", "g")

        assert result.text == "ok"
        assert client.stream.call_args.args[:1] == ("POST",)
        assert client.stream.call_args.kwargs["json"]["stream"] is True
        response.raise_for_status.assert_called_once()

    def test_http_error_becomes_stream_interrupted(self, mocker):
        client = mocker.patch("reviewlens_core.providers.ollama.httpx.Client").return_value.__enter__.return_value
        response = client.stream.return_value.__enter__.return_value
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "404 model not found", request=MagicMock(), response=MagicMock()
        )

        with pytest.raises(StreamInterrupted):
            OllamaReviewer().stream("+x", "g")


class TestAnthropicReviewer:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError):
                AnthropicReviewer(api_key="key")

    def test_model_is_claude(self):
        assert "claude" in AnthropicReviewer.MODEL

    def test_call_api_collects_text_and_usage(self, mocker):
        from anthropic.types import TextBlock

        mock_cls = mocker.patch("anthropic.Anthropic")
        mock_cls.return_value.messages.create.return_value = SimpleNamespace(
            content=[TextBlock(type="text", text=" review body ")],
            usage=SimpleNamespace(input_tokens=120, output_tokens=30),
        )

        reviewer = AnthropicReviewer(api_key="key")
        assert reviewer._call_api("sys", "user") == "review body"
        kwargs = mock_cls.return_value.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == AnthropicReviewer.MAX_TOKENS
        assert reviewer.last_metrics == ClaudeMetrics(input_tokens=120, output_tokens=30)

    def test_stream_uses_raw_sse_body(self, mocker):
        mock_cls = mocker.patch("anthropic.Anthropic")
        raw = mock_cls.return_value.messages.with_streaming_response.create
        raw.return_value.__enter__.return_value.iter_bytes.return_value = iter(
            [
                b'data: {"type":"content_block_delta","delta":{"type":"text_delta","text":"hi"}}\n',
                b'data: {"type":"message_delta","usage":{"output_tokens":1}}\n',
            ]
        )

        result = AnthropicReviewer(api_key="key").stream("+x", "g")

        assert result.text == "hi"
        assert raw.call_args.kwargs["stream"] is True
        assert result.metrics == ClaudeMetrics(input_tokens=None, output_tokens=1)


class TestOpenAIReviewer:
    def test_raises_import_error_without_sdk(self, mocker):
        mocker.patch("reviewlens_core.providers.openai._OpenAI", None)
        with pytest.raises(ImportError):
            OpenAIReviewer(api_key="key")

    def test_model_is_gpt(self):
        assert "gpt" in OpenAIReviewer.MODEL

    def test_keyless_local_server(self, mocker):
        mock_cls = mocker.patch("reviewlens_core.providers.openai._OpenAI")
        OpenAIReviewer(api_key=None, model="qwen2.5-coder", base_url="http://localhost:1234/v1")
        mock_cls.assert_called_once_with(api_key="not-needed", base_url="http://localhost:1234/v1")

    def test_call_api_records_usage(self, mocker):
        mock_cls = mocker.patch("reviewlens_core.providers.openai._OpenAI")
        mock_cls.return_value.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="text\n"))],
            usage=SimpleNamespace(prompt_tokens=50, completion_tokens=5),
        )

        reviewer = OpenAIReviewer(api_key="key")
        assert reviewer._call_api("sys", "user") == "text"
        assert reviewer.last_metrics == OpenAICompatibleMetrics(prompt_tokens=50, completion_tokens=5)

    def test_stream_requests_usage(self, mocker):
        mock_cls = mocker.patch("reviewlens_core.providers.openai._OpenAI")
        raw = mock_cls.return_value.chat.completions.with_streaming_response.create
        raw.return_value.__enter__.return_value.iter_bytes.return_value = iter(
            [b'data: {"choices":[{"delta":{"content":"ok"}}]}\n\n', b"data: [DONE]\n\n"]
        )

        result = OpenAIReviewer(api_key="key").stream("+x", "g")

        assert result.text == "ok"
        assert raw.call_args.kwargs["stream_options"] == {"include_usage": True}
