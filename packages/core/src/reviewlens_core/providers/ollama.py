from __future__ import annotations

from contextlib import contextmanager

import httpx

from reviewlens_core.providers.base import BaseReviewer
from reviewlens_core.streaming import OllamaMetrics

_DEFAULT_ENDPOINT = "http://localhost:11434/api/generate"
# Local models can take a while to load before the first token.
_TIMEOUT = httpx.Timeout(300.0, connect=10.0)


class OllamaReviewer(BaseReviewer):
    KIND = "ollama"
    MODEL = "qwen2.5-coder:7b"

    def __init__(self, model: str | None = None, endpoint: str | None = None, temperature: float = 0.0):
        self.model = model or self.MODEL
        self.endpoint = endpoint or _DEFAULT_ENDPOINT
        self.temperature = temperature

    def _payload(self, system_prompt: str, user_prompt: str, stream: bool) -> dict:
        return {
            "model": self.model,
            "system": system_prompt,
            "prompt": user_prompt,
            "stream": stream,
            "options": {"temperature": self.temperature},
        }

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        with httpx.Client(timeout=_TIMEOUT) as client:
            response = client.post(self.endpoint, json=self._payload(system_prompt, user_prompt, stream=False))
            response.raise_for_status()
        data = response.json()
        self.last_metrics = OllamaMetrics.from_payload(data)
        return (data.get("response") or "").strip()

    @contextmanager
    def _open_stream(self, system_prompt: str, user_prompt: str):
        with httpx.Client(timeout=_TIMEOUT) as client:
            payload = self._payload(system_prompt, user_prompt, stream=True)
            with client.stream("POST", self.endpoint, json=payload) as response:
                response.raise_for_status()
                yield response.iter_bytes()
