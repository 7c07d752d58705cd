"""
Side-by-side comparison of several candidate outputs for the same prompt.

The judge gets every output (truncated), a metrics table, and is asked for
three sections: ### ANALYSIS, ### STRENGTHS AND WEAKNESSES, ### VERDICT.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from .base import RunResult
from .client import ChatClient, ChatMessage, collect_text
from .errors import RunCancelled
from .judge import QualityScore, truncate

MAX_COMPARISON_CHARS = 3000
TRUNCATION_MARKER = "\n\n[Content truncated for comparison...]"
VERDICT_PLACEHOLDER = "See analysis above."
VERDICT_UNAVAILABLE = "Unable to generate verdict due to API error."


@dataclass(frozen=True)
class BenchmarkComparison:
    """Comparison data for a single candidate."""
    full_name: str
    is_baseline: bool
    word_count: int
    total_tokens: int
    total_calls: int
    total_latency_ms: int
    quality_score: Optional[QualityScore] = None
    strengths: Optional[tuple] = None
    weaknesses: Optional[tuple] = None

    def to_dict(self) -> dict:
        return {
            "full_name": self.full_name,
            "is_baseline": self.is_baseline,
            "word_count": self.word_count,
            "total_tokens": self.total_tokens,
            "total_calls": self.total_calls,
            "total_latency_ms": self.total_latency_ms,
            "quality": self.quality_score.to_dict() if self.quality_score else None,
            "strengths": list(self.strengths) if self.strengths is not None else None,
            "weaknesses": list(self.weaknesses) if self.weaknesses is not None else None,
        }


@dataclass(frozen=True)
class ComparativeAnalysis:
    """Result of comparing multiple outputs side-by-side."""
    prompt: str
    benchmarks: tuple
    analysis_text: str
    verdict_text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def baseline(self) -> Optional[BenchmarkComparison]:
        return next((b for b in self.benchmarks if b.is_baseline), None)

    def to_dict(self) -> dict:
        return {
            "prompt": self.prompt,
            "timestamp": self.timestamp.isoformat(),
            "benchmarks": [b.to_dict() for b in self.benchmarks],
            "analysis": self.analysis_text,
            "verdict": self.verdict_text,
        }


SYSTEM_PROMPT = """You are an expert content analyst comparing AI-generated outputs from different approaches.
Your role is to provide objective, detailed comparative analysis highlighting the strengths
and weaknesses of each approach. Be specific and cite examples from the content."""

COMPARISON_TEMPLATE = """Compare the following benchmark outputs written about: "<<PROMPT>>"

## Benchmark Outputs

<<CONTENT>>

## Metrics Summary

<<METRICS>>

---

## Your Analysis

Provide a detailed comparative analysis. Format your response exactly as:

### ANALYSIS
[3-5 paragraphs comparing the outputs across dimensions like:
- Content depth and comprehensiveness
- Evidence quality (statistics, examples, citations)
- Balance (pros vs cons coverage)
- Practical actionability
- Writing quality and engagement
Cite specific examples from each output to support your analysis.]

### STRENGTHS AND WEAKNESSES
[For each benchmark, list 2-3 key strengths and 2-3 key weaknesses in this format:]

**[benchmark_name]**
Strengths:
- [strength 1]
- [strength 2]
Weaknesses:
- [weakness 1]
- [weakness 2]

### VERDICT
[2-3 sentences summarizing which approach performed better and why, considering both quality and efficiency (tokens/latency).]"""


def count_words(text: Optional[str]) -> int:
    if not text or not text.strip():
        return 0
    return len(re.findall(r"\b\w+\b", text))


def _normalize_name(name: str) -> str:
    name = re.sub(r"\(\s*baseline\s*\)\s*$", "", name.strip(), flags=re.IGNORECASE)
    return name.strip().strip("*`").strip().lower()


def extract_list_items(text: str) -> list[str]:
    items = []
    for match in re.finditer(r"[-*]\s*(.+?)(?=\n[-*]|\n\n|$)", text, re.DOTALL):
        item = match.group(1).strip()
        if item:
            items.append(item)
    return items


def parse_comparison_response(response: str) -> tuple[str, str, dict]:
    """
    Split a judge response into (analysis, verdict, strengths_weaknesses).

    strengths_weaknesses maps normalized candidate names to
    (strengths, weaknesses) lists. Missing sections fall back to the raw
    response (analysis) or a placeholder (verdict).
    """
    analysis = ""
    verdict = ""
    strengths_weaknesses = {}

    flags = re.DOTALL | re.IGNORECASE

    analysis_match = re.search(r"###\s*ANALYSIS\s*\n(.*?)(?=###\s*STRENGTHS|###\s*VERDICT|$)", response, flags)
    if analysis_match:
        analysis = analysis_match.group(1).strip()

    verdict_match = re.search(r"###\s*VERDICT\s*\n(.*?)(?=###|$)", response, flags)
    if verdict_match:
        verdict = verdict_match.group(1).strip()

    sw_match = re.search(r"###\s*STRENGTHS\s+AND\s+WEAKNESSES\s*\n(.*?)(?=###\s*VERDICT|$)", response, flags)
    if sw_match:
        section = sw_match.group(1)
        for block in re.finditer(
            r"\*\*([^*]+)\*\*\s*\n\s*Strengths:\s*\n(.*?)Weaknesses:\s*\n(.*?)(?=\*\*|$)",
            section,
            flags,
        ):
            name = _normalize_name(block.group(1))
            strengths_weaknesses[name] = (
                extract_list_items(block.group(2)),
                extract_list_items(block.group(3)),
            )

    if not analysis:
        analysis = response
    if not verdict:
        verdict = VERDICT_PLACEHOLDER

    return analysis, verdict, strengths_weaknesses


class ComparativeEvaluator:
    """
    Compares multiple run results using an LLM judge.

    All results are assumed to share one prompt; the first result's prompt
    is used.
    """

    def __init__(self, client: ChatClient, options: Optional[dict] = None):
        self.client = client
        self.options = options

    @staticmethod
    def build_comparisons(results: list[RunResult]) -> list[BenchmarkComparison]:
        return [
            BenchmarkComparison(
                full_name=r.full_name,
                is_baseline=r.is_baseline,
                word_count=count_words(r.content),
                total_tokens=r.metrics.total_tokens,
                total_calls=r.metrics.total_calls,
                total_latency_ms=r.metrics.total_latency_ms,
                quality_score=r.quality_score,
            )
            for r in results
        ]

    @staticmethod
    def build_prompt(prompt: str, results: list[RunResult], comparisons: list[BenchmarkComparison]) -> str:
        content_lines = []
        for result in results:
            baseline = " (BASELINE)" if result.is_baseline else ""
            content_lines.extend([
                f"### {result.full_name}{baseline}",
                "",
                truncate(result.content or "(No content)", MAX_COMPARISON_CHARS, TRUNCATION_MARKER),
                "",
                "---",
                "",
            ])

        metrics_lines = [
            "| Benchmark | Words | Tokens | API Calls | Latency |",
            "|-----------|-------|--------|-----------|---------|",
        ]
        for c in comparisons:
            baseline = " *" if c.is_baseline else ""
            metrics_lines.append(
                f"| {c.full_name}{baseline} | {c.word_count} | {c.total_tokens} | {c.total_calls} | {c.total_latency_ms}ms |"
            )
        metrics_lines.extend(["", "*baseline"])

        # Plain replacement: candidate content may contain braces
        return (
            COMPARISON_TEMPLATE
            .replace("<<PROMPT>>", prompt)
            .replace("<<CONTENT>>", "\n".join(content_lines))
            .replace("<<METRICS>>", "\n".join(metrics_lines))
        )

    def compare(self, results: list[RunResult], cancel=None) -> ComparativeAnalysis:
        results = list(results)
        prompt = results[0].prompt if results else "Unknown"
        comparisons = self.build_comparisons(results)

        if cancel is not None and cancel.is_set():
            raise RunCancelled()

        messages = [
            ChatMessage("system", SYSTEM_PROMPT),
            ChatMessage("user", self.build_prompt(prompt, results, comparisons)),
        ]

        try:
            response_text = collect_text(self.client, messages, self.options)
        except Exception as e:
            return ComparativeAnalysis(
                prompt=prompt,
                benchmarks=tuple(comparisons),
                analysis_text=f"Comparative analysis failed: {e}",
                verdict_text=VERDICT_UNAVAILABLE,
            )

        analysis, verdict, strengths_weaknesses = parse_comparison_response(response_text or "")

        updated = []
        for c in comparisons:
            sw = strengths_weaknesses.get(_normalize_name(c.full_name))
            if sw:
                c = replace(c, strengths=tuple(sw[0]), weaknesses=tuple(sw[1]))
            updated.append(c)

        return ComparativeAnalysis(
            prompt=prompt,
            benchmarks=tuple(updated),
            analysis_text=analysis,
            verdict_text=verdict,
        )
