"""
Report generation for benchmark results.

Every result exporter implements export(results, config, run_path) and
only reads the results it is given.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .base import RunResult
from .comparative import BenchmarkComparison, ComparativeAnalysis
from .config import RunConfig
from .judge import QualityScore
from .log import Logger, default_logger
from .storage import SavedEvaluation

QUALITY_HEADER = "| Benchmark | Compl | Struct | Accur | Engage | Evid | Bal | Action | Depth | **Avg** |"
QUALITY_DIVIDER = "|-----------|:-----:|:------:|:-----:|:------:|:----:|:---:|:------:|:-----:|:-------:|"
QUALITY_LEGEND = (
    "*Compl=Completeness, Struct=Structure, Accur=Accuracy, Engage=Engagement, "
    "Evid=Evidence, Bal=Balance, Action=Actionability*"
)


def signed(value: int) -> str:
    return f"{value:+d}" if value else "0"


def signed_float(value: float) -> str:
    return f"{value:+.1f}" if value else "0"


def percent_change(diff: float, base: float) -> float:
    return diff / base * 100 if base > 0 else 0


def find_baseline(results) -> Optional[RunResult]:
    """First baseline in result order."""
    return next((r for r in results if r.is_baseline), None)


def run_prompt(results) -> str:
    return results[0].prompt if results else "N/A"


def format_quality(score: Optional[QualityScore]) -> str:
    return f"{score.average:.1f}/5" if score else "-"


def quality_row(full_name: str, score: QualityScore) -> str:
    dims = " | ".join(str(v) for v in score.dimensions().values())
    return f"| {full_name} | {dims} | **{score.average:.1f}** |"


def drop_none(value):
    """Recursively drop None values from dicts."""
    if isinstance(value, dict):
        return {k: drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [drop_none(v) for v in value]
    return value


class ConsoleReporter:
    """Print a results summary table."""

    name = "console"

    def __init__(self, stream=None):
        self._stream = stream

    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stdout

    def export(self, results: list[RunResult], config: RunConfig, run_path: Optional[Path] = None):
        out = self.stream
        prompt = run_prompt(results)

        print("\n" + "=" * 85, file=out)
        print("BENCHMARK RESULTS SUMMARY", file=out)
        print("=" * 85, file=out)
        print(f"\nPrompt: {prompt}", file=out)
        print(f"Run ID: {config.effective_run_id(prompt)}\n", file=out)

        print(f"{'Benchmark':<35} {'Status':<8} {'Calls':<6} {'Tokens':<8} {'Latency':<10} {'Quality':<8}", file=out)
        print("-" * 85, file=out)

        for result in results:
            status = "OK" if result.success else "FAIL"
            latency = f"{result.duration_seconds:.1f}s"
            print(
                f"{result.full_name:<35} {status:<8} {result.metrics.total_calls:<6} "
                f"{result.metrics.total_tokens:<8} {latency:<10} {format_quality(result.quality_score):<8}",
                file=out,
            )
        print(file=out)

        with_models = [r for r in results if r.agent_models]
        if with_models:
            print("Agent Models:\n", file=out)
            for result in with_models:
                print(f"  {result.full_name}:", file=out)
                for agent, model in result.agent_models.items():
                    print(f"    {agent:<15} -> {model}", file=out)
            print(file=out)

        baseline = find_baseline(results)
        if baseline is not None and len(results) > 1:
            print("Comparison with baseline:\n", file=out)
            for result in results:
                if result.is_baseline:
                    continue
                token_diff = result.metrics.total_tokens - baseline.metrics.total_tokens
                token_pct = percent_change(token_diff, baseline.metrics.total_tokens)
                latency_diff = result.duration_seconds - baseline.duration_seconds
                latency_pct = percent_change(latency_diff, baseline.duration_seconds)

                print(f"  {result.full_name} vs {baseline.full_name}:", file=out)
                print(f"    Tokens: {signed(token_diff)} ({signed_float(token_pct)}%)", file=out)
                print(f"    Latency: {signed_float(latency_diff)}s ({signed_float(latency_pct)}%)", file=out)
                print(f"    API Calls: {signed(result.metrics.total_calls - baseline.metrics.total_calls)}", file=out)
                if result.quality_score and baseline.quality_score:
                    quality_diff = result.quality_score.average - baseline.quality_score.average
                    print(f"    Quality: {signed_float(quality_diff)}", file=out)
                print(file=out)

        return None


class MarkdownReporter:
    """Write comparison.md into the run directory."""

    name = "markdown"
    filename = "comparison.md"

    def __init__(self, logger: Optional[Logger] = None):
        self.log = logger or default_logger

    def export(self, results: list[RunResult], config: RunConfig, run_path: Path) -> Path:
        output_path = Path(run_path) / self.filename
        output_path.write_text(self.build(results, config), encoding="utf-8")
        self.log.info(f"Markdown report saved to: {output_path}")
        return output_path

    def build(self, results: list[RunResult], config: RunConfig) -> str:
        prompt = run_prompt(results)
        lines = [
            f"# Benchmark Results: {prompt}",
            "",
            f"**Run ID:** {config.effective_run_id(prompt)}",
            f"**Timestamp:** {config.timestamp:%Y-%m-%d %H:%M:%S} UTC",
            "",
            "## Results",
            "",
            "| Benchmark | Status | API Calls | Tokens | Latency | Quality |",
            "|-----------|--------|-----------|--------|---------|---------|",
        ]

        for result in results:
            status = "OK" if result.success else "FAIL"
            baseline = " (baseline)" if result.is_baseline else ""
            lines.append(
                f"| {result.full_name}{baseline} | {status} | {result.metrics.total_calls} | "
                f"{result.metrics.total_tokens} | {result.duration_seconds:.1f}s | {format_quality(result.quality_score)} |"
            )
        lines.append("")

        failed = [r for r in results if not r.success]
        if failed:
            lines.extend(["## Errors", ""])
            for result in failed:
                lines.extend([f"### {result.full_name}", "", f"**Error:** {result.error}", ""])
                if result.error_details:
                    lines.extend(["**Stack Trace:**", "```", result.error_details, "```", ""])

        baseline = find_baseline(results)
        if baseline is not None and len(results) > 1:
            lines.extend(["## Comparison", "", f"Baseline: **{baseline.full_name}**", ""])
            for result in results:
                if result.is_baseline:
                    continue
                token_diff = result.metrics.total_tokens - baseline.metrics.total_tokens
                token_pct = percent_change(token_diff, baseline.metrics.total_tokens)
                latency_diff = result.duration_seconds - baseline.duration_seconds

                lines.extend([
                    f"### {result.full_name}",
                    "",
                    f"- **Tokens:** {signed(token_diff)} ({signed_float(token_pct)}%)",
                    f"- **Latency:** {signed_float(latency_diff)}s",
                    f"- **API Calls:** {signed(result.metrics.total_calls - baseline.metrics.total_calls)}",
                ])
                if result.quality_score and baseline.quality_score:
                    quality_diff = result.quality_score.average - baseline.quality_score.average
                    lines.append(f"- **Quality:** {signed_float(quality_diff)}")
                lines.append("")

        with_models = [r for r in results if r.agent_models]
        if with_models:
            lines.extend(["## Agent Models", ""])
            for result in with_models:
                lines.extend([f"### {result.full_name}", "", "| Agent | Model |", "|-------|-------|"])
                for agent, model in result.agent_models.items():
                    lines.append(f"| {agent} | `{model}` |")
                lines.append("")

        scored = [r for r in results if r.quality_score]
        if scored:
            lines.extend(["## Quality Breakdown", "", QUALITY_HEADER, QUALITY_DIVIDER])
            lines.extend(quality_row(r.full_name, r.quality_score) for r in scored)
            lines.extend(["", QUALITY_LEGEND, ""])

        return "\n".join(lines)


class JSONReporter:
    """Write results.json into the run directory. None values are omitted."""

    name = "json"
    filename = "results.json"

    def __init__(self, logger: Optional[Logger] = None):
        self.log = logger or default_logger

    def build(self, results: list[RunResult], config: RunConfig) -> dict:
        prompt = run_prompt(results)
        results_data = []
        for r in results:
            data = r.to_dict()
            data["metrics"] = {
                k: v for k, v in data["metrics"].items() if k != "total_response_length"
            }
            results_data.append(data)

        return drop_none({
            "run_id": config.effective_run_id(prompt),
            "prompt": prompt,
            "timestamp": config.timestamp.isoformat(),
            "evaluation_enabled": config.evaluate,
            "results": results_data,
        })

    def export(self, results: list[RunResult], config: RunConfig, run_path: Path) -> Path:
        output_path = Path(run_path) / self.filename
        output_path.write_text(json.dumps(self.build(results, config), indent=2), encoding="utf-8")
        self.log.info(f"JSON report saved to: {output_path}")
        return output_path


class AnalysisReporter:
    """Write a comparative analysis to analysis.md."""

    filename = "analysis.md"

    def __init__(self, logger: Optional[Logger] = None):
        self.log = logger or default_logger

    def export(self, analysis: ComparativeAnalysis, run_path: Path) -> Path:
        output_path = Path(run_path) / self.filename
        output_path.write_text(self.build(analysis), encoding="utf-8")
        self.log.info(f"Analysis report saved to: {output_path}")
        return output_path

    @staticmethod
    def _delta_lines(b: BenchmarkComparison, baseline: BenchmarkComparison) -> list[str]:
        word_diff = b.word_count - baseline.word_count
        token_diff = b.total_tokens - baseline.total_tokens
        latency_diff = b.total_latency_ms - baseline.total_latency_ms

        lines = [
            f"**{b.full_name}** vs **{baseline.full_name}**:",
            "",
            f"- Words: {signed(word_diff)} ({signed_float(percent_change(word_diff, baseline.word_count))}%)",
            f"- Tokens: {signed(token_diff)} ({signed_float(percent_change(token_diff, baseline.total_tokens))}%)",
            f"- Latency: {signed(latency_diff)}ms ({signed_float(percent_change(latency_diff, baseline.total_latency_ms))}%)",
            f"- API Calls: {signed(b.total_calls - baseline.total_calls)}",
        ]
        if b.quality_score and baseline.quality_score:
            lines.append(f"- Quality: {signed_float(b.quality_score.average - baseline.quality_score.average)}")
        lines.append("")
        return lines

    def build(self, analysis: ComparativeAnalysis) -> str:
        lines = [
            f"# Benchmark Analysis: {analysis.prompt}",
            "",
            f"**Generated:** {analysis.timestamp:%Y-%m-%d %H:%M:%S} UTC",
            "",
            "## Metrics Comparison",
            "",
            "| Benchmark | Words | Tokens | API Calls | Latency | Avg Quality |",
            "|-----------|------:|-------:|----------:|--------:|------------:|",
        ]

        for b in analysis.benchmarks:
            marker = " *" if b.is_baseline else ""
            lines.append(
                f"| {b.full_name}{marker} | {b.word_count:,} | {b.total_tokens:,} | {b.total_calls} | "
                f"{b.total_latency_ms:,}ms | {format_quality(b.quality_score)} |"
            )
        lines.append("")

        baseline = analysis.baseline
        if baseline is not None:
            lines.extend(["\\* baseline", ""])

        if baseline is not None and len(analysis.benchmarks) > 1:
            lines.extend(["### Comparison vs Baseline", ""])
            for b in analysis.benchmarks:
                if not b.is_baseline:
                    lines.extend(self._delta_lines(b, baseline))

        scored = [b for b in analysis.benchmarks if b.quality_score]
        if scored:
            lines.extend(["## Quality Scores", "", QUALITY_HEADER, QUALITY_DIVIDER])
            lines.extend(quality_row(b.full_name, b.quality_score) for b in scored)
            lines.extend(["", "*Scores: 1=Poor, 5=Excellent*", ""])

        with_sw = [b for b in analysis.benchmarks if b.strengths or b.weaknesses]
        if with_sw:
            lines.extend(["## Strengths & Weaknesses", ""])
            for b in with_sw:
                lines.extend([f"### {b.full_name}", ""])
                if b.strengths:
                    lines.append("**Strengths:**")
                    lines.extend(f"- {s}" for s in b.strengths)
                    lines.append("")
                if b.weaknesses:
                    lines.append("**Weaknesses:**")
                    lines.extend(f"- {w}" for w in b.weaknesses)
                    lines.append("")

        lines.extend([
            "## Comparative Analysis",
            "",
            analysis.analysis_text,
            "",
            "## Verdict",
            "",
            analysis.verdict_text,
            "",
            "---",
            "",
            "*Generated by benchllm comparative evaluator*",
        ])
        return "\n".join(lines)


class EvaluationReporter:
    """Write evaluation.json and evaluation.md for a re-evaluated run."""

    json_filename = "evaluation.json"
    markdown_filename = "evaluation.md"

    def __init__(self, logger: Optional[Logger] = None):
        self.log = logger or default_logger

    def export(self, evaluations: list[SavedEvaluation], prompt: str, model: str, run_path: Path) -> tuple[Path, Path]:
        run_path = Path(run_path)
        json_path = run_path / self.json_filename
        json_path.write_text(json.dumps([e.to_dict() for e in evaluations], indent=2), encoding="utf-8")

        md_path = run_path / self.markdown_filename
        md_path.write_text(self.build(evaluations, prompt, model), encoding="utf-8")

        self.log.info(f"Evaluation saved to: {json_path}")
        self.log.info(f"Markdown report saved to: {md_path}")
        return json_path, md_path

    @staticmethod
    def build(evaluations: list[SavedEvaluation], prompt: str, model: str) -> str:
        lines = [
            f"# Evaluation Results: {prompt}",
            "",
            f"**Evaluation Model:** {model}",
            f"**Timestamp:** {datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC",
            "",
            "## Quality Scores",
            "",
            QUALITY_HEADER,
            QUALITY_DIVIDER,
        ]
        for e in evaluations:
            if e.quality_score:
                lines.append(quality_row(e.full_name, e.quality_score))
            else:
                lines.append(f"| {e.full_name} | - | - | - | - | - | - | - | - | **-** |")
        lines.extend(["", QUALITY_LEGEND, ""])

        with_reasoning = [e for e in evaluations if e.quality_score and e.quality_score.reasoning]
        if with_reasoning:
            lines.extend(["## Evaluation Reasoning", ""])
            for e in with_reasoning:
                lines.extend([f"### {e.full_name}", "", e.quality_score.reasoning, ""])

        lines.extend(["---", "", "*Generated by benchllm evaluator*"])
        return "\n".join(lines)


def print_evaluation_summary(evaluations: list[SavedEvaluation], out=None):
    """Print per-dimension scores for a re-evaluated run."""
    out = out or sys.stdout
    print("\n" + "=" * 68, file=out)
    print("EVALUATION SUMMARY", file=out)
    print("=" * 68 + "\n", file=out)
    print(
        f"{'Benchmark':<35} {'C':<3} {'S':<3} {'A':<3} {'E':<3} {'Ev':<3} {'B':<3} {'Ac':<3} {'D':<3} {'Avg':<5}",
        file=out,
    )
    print("-" * 68, file=out)
    for e in evaluations:
        if e.quality_score:
            scores = " ".join(f"{v:<3}" for v in e.quality_score.dimensions().values())
            print(f"{e.full_name:<35} {scores} {e.quality_score.average:<5.1f}", file=out)
        else:
            print(f"{e.full_name:<35} (evaluation failed)", file=out)
    print(file=out)


REPORTERS = {
    "console": ConsoleReporter,
    "markdown": MarkdownReporter,
    "md": MarkdownReporter,
    "json": JSONReporter,
}


def get_reporters(names, logger: Optional[Logger] = None) -> list:
    """Instantiate reporters by name. Unknown names are logged and skipped."""
    log = logger or default_logger
    reporters = []
    for name in names:
        cls = REPORTERS.get(name.strip().lower())
        if cls is None:
            log.warn(f"Unknown exporter '{name}', skipping")
            continue
        reporters.append(cls() if cls is ConsoleReporter else cls(log))
    return reporters
