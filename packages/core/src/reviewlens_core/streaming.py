"""Incremental decoders for streamed provider responses.

Providers deliver a review as a stream of network reads whose boundaries have
nothing to do with the framing inside them: a read may end halfway through a
JSON object, an SSE record, or a multi-byte UTF-8 character. Each decoder
buffers the unterminated tail of the previous read and only acts on complete
lines, so the concatenated text is the same however the bytes were split.

Two framings are supported:

  NDJSON  — one JSON object per line (Ollama ``/api/generate``)
  SSE     — ``data: {...}`` records (Anthropic, OpenAI-compatible servers)

Decoders are pure and synchronous: ``feed`` never performs I/O and never raises
on a malformed frame. Transport errors belong to the caller, which is what
:class:`StreamAssembler` handles.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import asdict, dataclass
from typing import Callable, ClassVar, Iterable, Union

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Provider metrics                                                             #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class _Metrics:
    kind: ClassVar[str] = ""

    def as_dict(self) -> dict:
        """Return only the fields the provider actually reported."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class OllamaMetrics(_Metrics):
    kind: ClassVar[str] = "ollama"

    total_duration: int | None = None  # nanoseconds
    load_duration: int | None = None
    prompt_eval_count: int | None = None
    eval_count: int | None = None
    eval_duration: int | None = None
    tokens_per_second: float | None = None
    total_duration_seconds: float | None = None

    @classmethod
    def from_payload(cls, data: dict) -> OllamaMetrics:
        eval_count = _number(data.get("eval_count"))
        eval_duration = _number(data.get("eval_duration"))
        total_duration = _number(data.get("total_duration"))
        tokens_per_second = None
        if eval_count is not None and eval_duration:
            tokens_per_second = eval_count / (eval_duration / 1e9)
        return cls(
            total_duration=total_duration,
            load_duration=_number(data.get("load_duration")),
            prompt_eval_count=_number(data.get("prompt_eval_count")),
            eval_count=eval_count,
            eval_duration=eval_duration,
            tokens_per_second=tokens_per_second,
            total_duration_seconds=total_duration / 1e9 if total_duration is not None else None,
        )


@dataclass(frozen=True)
class ClaudeMetrics(_Metrics):
    kind: ClassVar[str] = "claude"

    input_tokens: int | None = None
    output_tokens: int | None = None


@dataclass(frozen=True)
class OpenAICompatibleMetrics(_Metrics):
    kind: ClassVar[str] = "openai-compatible"

    prompt_tokens: int | None = None
    completion_tokens: int | None = None


ProviderMetrics = Union[OllamaMetrics, ClaudeMetrics, OpenAICompatibleMetrics]


def _number(value):
    # bool is an int subclass; a stray `true` is not a token count.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


# --------------------------------------------------------------------------- #
# Events                                                                       #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class Done:
    metrics: ProviderMetrics | None = None


StreamEvent = Union[TextDelta, Done]


# --------------------------------------------------------------------------- #
# Decoders                                                                     #
# --------------------------------------------------------------------------- #


class LineDecoder:
    """Shared buffering for line-framed protocols.

    Subclasses implement ``_handle_line`` only. Once a subclass calls
    ``_close()`` the decoder is finished and every later call returns nothing.
    """

    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.closed = False

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        if self.closed:
            return []
        text = self._utf8.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._handle_lines(lines)

    def finish(self) -> list[StreamEvent]:
        """Flush a trailing line that never received its newline."""
        if self.closed:
            return []
        self._buffer += self._utf8.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        return self._handle_lines([tail]) if tail.strip() else []

    def _handle_lines(self, lines: list[str]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in lines:
            if self.closed:
                break
            events.extend(self._handle_line(line.rstrip("\r")))
        return events

    def _close(self) -> None:
        self.closed = True
        self._buffer = ""

    def _handle_line(self, line: str) -> list[StreamEvent]:
        raise NotImplementedError


class NDJSONDecoder(LineDecoder):
    """Ollama-style newline-delimited JSON: ``{"response": "...", "done": false}``."""

    kind = "ollama"

    def _handle_line(self, line: str) -> list[StreamEvent]:
        if not line.strip():
            return []
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed NDJSON line: %.80s", line)
            return []
        if not isinstance(data, dict):
            return []

        events: list[StreamEvent] = []
        text = data.get("response")
        if isinstance(text, str) and text:
            events.append(TextDelta(text))
        if data.get("done") is True:
            events.append(Done(OllamaMetrics.from_payload(data)))
            self._close()
        return events


class SSEDecoder(LineDecoder):
    """Server-sent events carrying JSON payloads.

    Only ``data:`` lines are meaningful; ``event:``, ``id:``, comments and
    keep-alives are ignored. A ``[DONE]`` payload or the end of the body ends
    the stream; subclasses report any metrics still owed via ``_end_of_stream``.
    """

    kind = "sse"

    def finish(self) -> list[StreamEvent]:
        events = super().finish()
        if not self.closed:
            events.extend(self._end_of_stream())
            self._close()
        return events

    def _handle_line(self, line: str) -> list[StreamEvent]:
        if not line.startswith("data:"):
            return []
        payload = line[5:].strip()
        if not payload:
            return []
        if payload == "[DONE]":
            events = self._end_of_stream()
            self._close()
            return events
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed SSE payload: %.80s", payload)
            return []
        if not isinstance(data, dict):
            return []
        events = self._handle_payload(data)
        if any(isinstance(event, Done) for event in events):
            self._close()
        return events

    def _handle_payload(self, data: dict) -> list[StreamEvent]:
        raise NotImplementedError

    def _end_of_stream(self) -> list[StreamEvent]:
        return []


class AnthropicSSEDecoder(SSEDecoder):
    """Anthropic Messages API stream.

    Input tokens arrive in ``message_start``; output tokens in the final
    ``message_delta``, which is also the end of generation.
    """

    kind = "claude"

    def __init__(self):
        super().__init__()
        self._input_tokens: int | None = None

    def _handle_payload(self, data: dict) -> list[StreamEvent]:
        event_type = data.get("type")
        if event_type == "message_start":
            usage = (data.get("message") or {}).get("usage") or {}
            self._input_tokens = _number(usage.get("input_tokens"))
            return []
        if event_type == "content_block_delta":
            delta = data.get("delta") or {}
            text = delta.get("text")
            if delta.get("type") == "text_delta" and isinstance(text, str) and text:
                return [TextDelta(text)]
            return []
        if event_type == "message_delta" and isinstance(data.get("usage"), dict):
            usage = data["usage"]
            input_tokens = _number(usage.get("input_tokens"))
            return [
                Done(
                    ClaudeMetrics(
                        input_tokens=input_tokens if input_tokens is not None else self._input_tokens,
                        output_tokens=_number(usage.get("output_tokens")),
                    )
                )
            ]
        return []


class OpenAISSEDecoder(SSEDecoder):
    """OpenAI chat-completions stream, also spoken by LM Studio, vLLM and friends.

    With ``include_usage`` the usage arrives in a final chunk whose ``choices``
    is empty, and that chunk ends generation. Servers that report running usage
    on every chunk keep streaming, so only the latest usage is kept and it is
    reported on ``[DONE]`` or at the end of the body.
    """

    kind = "openai-compatible"

    def __init__(self):
        super().__init__()
        self._metrics: OpenAICompatibleMetrics | None = None

    def _handle_payload(self, data: dict) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            text = (choices[0].get("delta") or {}).get("content")
            if isinstance(text, str) and text:
                events.append(TextDelta(text))
        usage = data.get("usage")
        if isinstance(usage, dict):
            self._metrics = OpenAICompatibleMetrics(
                prompt_tokens=_number(usage.get("prompt_tokens")),
                completion_tokens=_number(usage.get("completion_tokens")),
            )
            if not choices:
                events.append(Done(self._metrics))
        return events

    def _end_of_stream(self) -> list[StreamEvent]:
        return [Done(self._metrics)] if self._metrics is not None else []


_DECODERS: dict[str, type[LineDecoder]] = {
    "ollama": NDJSONDecoder,
    "anthropic": AnthropicSSEDecoder,
    "claude": AnthropicSSEDecoder,
    "openai": OpenAISSEDecoder,
    "openai-compatible": OpenAISSEDecoder,
}


def decoder_for(provider: str) -> LineDecoder:
    try:
        return _DECODERS[provider]()
    except KeyError:
        raise ValueError(f"No stream decoder for provider {provider!r}.") from None


# --------------------------------------------------------------------------- #
# Assembly                                                                     #
# --------------------------------------------------------------------------- #


class StreamInterrupted(Exception):
    """The transport failed mid-stream.

    ``partial_text`` holds everything decoded before the failure so callers
    can still use it; the original transport error is the ``__cause__``.
    """

    def __init__(self, message: str, partial_text: str = "", metrics: ProviderMetrics | None = None):
        super().__init__(message)
        self.partial_text = partial_text
        self.metrics = metrics


@dataclass(frozen=True)
class StreamResult:
    text: str
    metrics: ProviderMetrics | None = None
    completed: bool = True
    cancelled: bool = False


class StreamAssembler:
    """Accumulate decoded text deltas from one response, in wire order.

    ``on_chunk`` is called with each text delta as soon as it is decoded, which
    is how the CLI renders the review live.
    """

    def __init__(self, decoder: LineDecoder, on_chunk: Callable[[str], None] | None = None):
        self.decoder = decoder
        self.on_chunk = on_chunk
        self.metrics: ProviderMetrics | None = None
        self.cancelled = False
        self._parts: list[str] = []

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def done(self) -> bool:
        return self.decoder.closed

    def cancel(self) -> None:
        """Stop producing events. Text decoded so far stays available."""
        self.cancelled = True

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        if self.cancelled:
            return []
        return self._apply(self.decoder.feed(chunk))

    def finish(self) -> list[StreamEvent]:
        if self.cancelled:
            return []
        return self._apply(self.decoder.finish())

    def assemble(self, chunks: Iterable[bytes | str]) -> StreamResult:
        """Drain ``chunks`` into a :class:`StreamResult`.

        Raises StreamInterrupted if pulling the next chunk fails.
        """
        iterator = iter(chunks)
        while not self.cancelled and not self.decoder.closed:
            try:
                chunk = next(iterator)
            except StopIteration:
                break
            except Exception as e:
                logger.warning("Stream interrupted after %d chars: %s", len(self.text), e)
                raise StreamInterrupted(str(e), partial_text=self.text, metrics=self.metrics) from e
            self.feed(chunk)

        if self.cancelled:
            return StreamResult(text=self.text, metrics=self.metrics, completed=False, cancelled=True)
        self.finish()
        return StreamResult(text=self.text, metrics=self.metrics, completed=True)

    def _apply(self, events: list[StreamEvent]) -> list[StreamEvent]:
        for event in events:
            if isinstance(event, TextDelta):
                self._parts.append(event.text)
                if self.on_chunk is not None:
                    self.on_chunk(event.text)
            elif isinstance(event, Done) and self.metrics is None:
                self.metrics = event.metrics
        return events
