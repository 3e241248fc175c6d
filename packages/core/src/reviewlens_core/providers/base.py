"""Base reviewer implementing the Template Method pattern.

All providers share the same review algorithm:
    generate() → _build_system_prompt() + _build_user_prompt()
               → _call_with_retry() → _call_api()      ← differs per provider
    stream()   → same prompts
               → _open_stream() → raw byte chunks       ← differs per provider
               → StreamAssembler(decoder_for(KIND))

Subclasses implement three things only:
  - __init__: validate and store the client
  - _call_api: make one non-streaming call and return the text response
  - _open_stream: context manager yielding the raw response body chunks

Prompt construction, retries and stream decoding live here so they are
defined once and inherited consistently by every provider.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Callable, Iterable

from reviewlens_core.streaming import ProviderMetrics, StreamAssembler, StreamInterrupted, StreamResult, decoder_for

logger = logging.getLogger(__name__)

# Shared defaults; subclasses may override as class attributes.
_MAX_RETRIES = 3
_MAX_TOKENS = 8192


class BaseReviewer(ABC):
    KIND: str = ""
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS

    model: str
    temperature: float = 0.0
    # Set by providers that report usage on non-streaming calls.
    last_metrics: ProviderMetrics | None = None

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def generate(self, diff: str, guidelines: str, profile: str = "general") -> str | None:
        """Review ``diff`` in one non-streaming call. Returns None if every attempt fails."""
        system = self._build_system_prompt(guidelines, profile)
        user = self._build_user_prompt(diff)
        return self._call_with_retry(system, user)

    def stream(
        self,
        diff: str,
        guidelines: str,
        profile: str = "general",
        on_chunk: Callable[[str], None] | None = None,
        assembler: StreamAssembler | None = None,
    ) -> StreamResult:
        """Review ``diff`` as a live stream.

        Pass an ``assembler`` to keep a handle for cancellation or for reading
        the partial text after a KeyboardInterrupt. A transport failure at any
        point raises StreamInterrupted carrying whatever text arrived.
        """
        system = self._build_system_prompt(guidelines, profile)
        user = self._build_user_prompt(diff)
        if assembler is None:
            assembler = StreamAssembler(decoder_for(self.KIND), on_chunk=on_chunk)

        try:
            with self._open_stream(system, user) as chunks:
                return assembler.assemble(chunks)
        except StreamInterrupted:
            raise
        except Exception as e:
            logger.error("%s stream failed: %s", self.__class__.__name__, e)
            raise StreamInterrupted(str(e), partial_text=assembler.text, metrics=assembler.metrics) from e

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure — _call_with_retry handles retries and logging.
        """

    @abstractmethod
    def _open_stream(self, system_prompt: str, user_prompt: str) -> AbstractContextManager[Iterable[bytes]]:
        """Open a streaming request and yield an iterable of raw body chunks.

        No decoding here: the bytes go straight into the provider's decoder.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str | None:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff."""
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    return None
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)

    def _build_system_prompt(self, guidelines: str, profile: str = "general") -> str:
        """Build the system prompt injected once per review call."""
        focus = "" if profile in ("", "general") else f"\nReview profile: focus especially on {profile} concerns.\n"
        return f"""You are an expert software engineer and a strict, precise code reviewer.
{focus}
{guidelines}

Rules:
- Focus on added lines (starting with '+') for direct problems.
- Also consider implications of removed lines (starting with '-'), e.g. deleted null checks,
  removed error handling, dropped permission guards.
- Refer to files by the path shown in the diff and give the new-file line number.
- Avoid assumptions when context is unclear. Be concise and actionable."""

    def _build_user_prompt(self, diff: str) -> str:
        return f"""Review the following changes.

## Diff
```diff
{diff}
```"""
