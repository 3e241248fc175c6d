from __future__ import annotations

from contextlib import contextmanager

from reviewlens_core.providers.base import BaseReviewer
from reviewlens_core.streaming import ClaudeMetrics


class AnthropicReviewer(BaseReviewer):
    KIND = "anthropic"
    MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None, temperature: float = 0.0):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'reviewlens[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)
        self.model = model or self.MODEL
        self.temperature = temperature

    def _request(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "model": self.model,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": self.temperature,
            "max_tokens": self.MAX_TOKENS,
        }

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(**self._request(system_prompt, user_prompt))
        self.last_metrics = ClaudeMetrics(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

    @contextmanager
    def _open_stream(self, system_prompt: str, user_prompt: str):
        # with_streaming_response hands back the raw SSE body instead of the
        # SDK's parsed event objects, so it goes through our own decoder.
        with self.client.messages.with_streaming_response.create(
            **self._request(system_prompt, user_prompt), stream=True
        ) as response:
            yield response.iter_bytes()
