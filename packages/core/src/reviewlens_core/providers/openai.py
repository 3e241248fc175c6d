from __future__ import annotations

from contextlib import contextmanager

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from reviewlens_core.providers.base import BaseReviewer
from reviewlens_core.streaming import OpenAICompatibleMetrics


class OpenAIReviewer(BaseReviewer):
    """OpenAI, or any OpenAI-compatible server when ``base_url`` is given."""

    KIND = "openai"
    MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.0,
    ):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. "
                "Install it with: pip install 'reviewlens[openai]'"
            )
        # Local servers (LM Studio, vLLM) accept any key; the SDK insists on one.
        self.client = _OpenAI(api_key=api_key or "not-needed", base_url=base_url)
        self.model = model or self.MODEL
        self.temperature = temperature

    def _request(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.MAX_TOKENS,
        }

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(**self._request(system_prompt, user_prompt))
        if response.usage is not None:
            self.last_metrics = OpenAICompatibleMetrics(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )
        return (response.choices[0].message.content or "").strip()

    @contextmanager
    def _open_stream(self, system_prompt: str, user_prompt: str):
        with self.client.chat.completions.with_streaming_response.create(
            **self._request(system_prompt, user_prompt),
            stream=True,
            stream_options={"include_usage": True},
        ) as response:
            yield response.iter_bytes()
