"""Core review orchestration: provider text → findings → score → verdict."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rich.console import Console

from reviewlens_core.diff_index import DiffIndex
from reviewlens_core.findings import (
    SEVERITY_ORDER,
    ReviewFinding,
    Severity,
    SeverityTally,
    extract_findings,
    quick_tally,
)
from reviewlens_core.gate import SeverityAssessment, assess
from reviewlens_core.providers.anthropic import AnthropicReviewer
from reviewlens_core.providers.base import BaseReviewer
from reviewlens_core.providers.ollama import OllamaReviewer
from reviewlens_core.providers.openai import OpenAIReviewer
from reviewlens_core.scoring import ScoreResult, compute_score, score_label
from reviewlens_core.streaming import ProviderMetrics, StreamAssembler, StreamInterrupted

console = Console()
logger = logging.getLogger(__name__)

_SEVERITY_COLOR = {"critical": "red", "high": "yellow", "medium": "blue", "low": "cyan", "info": "dim"}
_LABEL_COLOR = {"good": "green", "fair": "yellow", "poor": "red"}


@dataclass(frozen=True)
class ReviewOutcome:
    """Everything derived from one review text.

    ``completed`` is False when the text is partial (stream interrupted or
    cancelled); ``error`` then carries the transport error message, if any.
    """

    review_text: str
    findings: tuple[ReviewFinding, ...]
    tally: SeverityTally
    score: ScoreResult
    assessment: SeverityAssessment
    metrics: ProviderMetrics | None = None
    completed: bool = True
    error: str | None = None
    diff_index: DiffIndex = field(default_factory=DiffIndex, repr=False)


def get_reviewer(config: dict) -> BaseReviewer:
    provider = config["provider"]
    model = config.get("model")
    temperature = config.get("temperature", 0.0)
    if provider == "ollama":
        return OllamaReviewer(model=model, endpoint=config.get("endpoint"), temperature=temperature)
    if provider == "anthropic":
        return AnthropicReviewer(api_key=config["anthropic_api_key"], model=model, temperature=temperature)
    if provider == "openai":
        return OpenAIReviewer(
            api_key=config.get("openai_api_key"),
            model=model,
            base_url=config.get("base_url"),
            temperature=temperature,
        )
    raise ValueError(f"Unknown model provider: {provider!r}. Choose 'ollama', 'anthropic' or 'openai'.")


def analyze_review(
    review_text: str,
    diff: str | DiffIndex | None,
    threshold: Severity = "high",
    metrics: ProviderMetrics | None = None,
    completed: bool = True,
    error: str | None = None,
    quick_score: bool = False,
) -> ReviewOutcome:
    """Derive findings, score and verdict from an already-produced review text.

    The score is computed from the extracted findings, or with ``quick_score``
    from :func:`quick_tally`, a line-level estimator that can disagree with
    them. The verdict always comes from the extracted findings.
    """
    diff_index = diff if isinstance(diff, DiffIndex) else DiffIndex.build(diff)
    findings = tuple(extract_findings(review_text, diff_index))
    tally = quick_tally(review_text) if quick_score else SeverityTally.from_findings(findings)
    return ReviewOutcome(
        review_text=review_text,
        findings=findings,
        tally=tally,
        score=compute_score(tally),
        assessment=assess(list(findings), threshold, review_text),
        metrics=metrics,
        completed=completed,
        error=error,
        diff_index=diff_index,
    )


def run_review(
    reviewer: BaseReviewer,
    diff: str,
    guidelines: str,
    threshold: Severity = "high",
    profile: str = "general",
    stream: bool = True,
    assembler: StreamAssembler | None = None,
    max_diff_chars: int | None = None,
    quick_score: bool = False,
) -> ReviewOutcome:
    """Ask ``reviewer`` to review ``diff`` and analyse whatever text comes back.

    A stream that fails part-way is not fatal: the partial text is analysed
    and the outcome is marked incomplete.
    """
    prompt_diff = diff
    if max_diff_chars and len(diff) > max_diff_chars:
        prompt_diff = diff[:max_diff_chars] + "\n... [diff truncated]"

    if not stream:
        text = reviewer.generate(prompt_diff, guidelines, profile)
        if text is None:
            return analyze_review("", diff, threshold, completed=False, error="provider call failed")
        return analyze_review(text, diff, threshold, metrics=reviewer.last_metrics, quick_score=quick_score)

    try:
        result = reviewer.stream(prompt_diff, guidelines, profile, assembler=assembler)
    except StreamInterrupted as e:
        logger.warning("Review stream interrupted; analysing %d chars of partial output", len(e.partial_text))
        return analyze_review(
            e.partial_text, diff, threshold, metrics=e.metrics, completed=False, error=str(e), quick_score=quick_score
        )
    return analyze_review(
        result.text, diff, threshold, metrics=result.metrics, completed=result.completed, quick_score=quick_score
    )


def print_outcome(outcome: ReviewOutcome) -> None:
    """Print findings, score and verdict to the terminal."""
    if not outcome.completed:
        reason = f": {outcome.error}" if outcome.error else ""
        console.print(f"[yellow]Review incomplete{reason}. Results are based on partial output.[/yellow]")

    if not outcome.findings:
        console.print("[green]No findings.[/green]")
    else:
        console.print(f"\n[bold]{len(outcome.findings)} finding(s)[/bold]\n")
    for finding in outcome.findings:
        color = _SEVERITY_COLOR.get(finding.severity, "white")
        location = ""
        if finding.file:
            location = f"[bold cyan]{finding.file}[/bold cyan]"
            if finding.line is not None:
                location += f"  line [bold]{finding.line}[/bold]"
        console.print(f"[{color}]{finding.severity.upper()}[/{color}]  {location}".rstrip())
        console.print(f"  {finding.message.splitlines()[0]}")
        if finding.suggestion:
            console.print("  [dim]suggestion available[/dim]")
        console.print()

    score = outcome.score
    label = score_label(score.score)
    color = _LABEL_COLOR[label]
    console.print(
        f"[bold]Score:[/bold] [{color}]{score.score}/100[/{color}]  "
        f"(correctness {score.correctness}, security {score.security}, "
        f"maintainability {score.maintainability}, performance {score.performance})"
    )
    counts = outcome.tally.as_dict()
    console.print("  " + "  ".join(f"{s}: {counts[s]}" for s in SEVERITY_ORDER))

    if outcome.metrics is not None:
        metrics = ", ".join(
            f"{k}={v:.1f}" if isinstance(v, float) else f"{k}={v}" for k, v in outcome.metrics.as_dict().items()
        )
        if metrics:
            console.print(f"[dim]{outcome.metrics.kind}: {metrics}[/dim]")

    verdict = outcome.assessment
    if verdict.passed:
        console.print(f"[green]PASS[/green] (threshold: {verdict.threshold})")
    else:
        console.print(
            f"[red]BLOCK[/red] (threshold: {verdict.threshold}): "
            f"{len(verdict.blocking_findings)} blocking finding(s)"
        )
