"""
Tests for result exporters and the analysis/evaluation reports.
"""

import io
import json
from datetime import datetime, timezone

import pytest

from benchllm.base import RunResult
from benchllm.comparative import BenchmarkComparison, ComparativeAnalysis
from benchllm.config import RunConfig
from benchllm.judge import QualityScore
from benchllm.metrics import AggregatedMetrics, CallMetric
from benchllm.reporters import (
    AnalysisReporter,
    ConsoleReporter,
    EvaluationReporter,
    JSONReporter,
    MarkdownReporter,
    get_reporters,
    print_evaluation_summary,
    signed,
    signed_float,
)
from benchllm.storage import SavedEvaluation


def make_metrics(calls, input_tokens, output_tokens):
    metric = CallMetric(
        client_label="model:test",
        timestamp=datetime.now(timezone.utc),
        latency_ms=100,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        response_length=20,
    )
    return AggregatedMetrics.from_calls([metric] * calls)


@pytest.fixture
def config():
    return RunConfig(run_id="test-run", evaluate=True, timestamp=datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def results():
    return [
        RunResult(
            category="prompt-chaining",
            name="single-agent",
            prompt="Benefits of TDD",
            success=True,
            duration_ms=2000,
            content="Short answer.",
            metrics=make_metrics(1, 100, 100),
            quality_score=QualityScore(3, 3, 3, 3, 3, 3, 3, 3, "Average."),
            is_baseline=True,
        ),
        RunResult(
            category="prompt-chaining",
            name="multi-agent",
            prompt="Benefits of TDD",
            success=True,
            duration_ms=5000,
            content="Long answer.",
            metrics=make_metrics(3, 100, 50),
            quality_score=QualityScore(4, 4, 4, 4, 4, 4, 4, 4, "Better."),
            agent_models={"Researcher": "gemini-2.5-flash", "Writer": "gpt-4.1"},
        ),
        RunResult(
            category="prompt-chaining",
            name="broken",
            prompt="Benefits of TDD",
            success=False,
            duration_ms=10,
            error="provider unreachable",
            error_details="Traceback (most recent call last):\nConnectionError: provider unreachable",
        ),
    ]


class TestFormatting:
    def test_signed(self):
        assert signed(5) == "+5"
        assert signed(-3) == "-3"
        assert signed(0) == "0"

    def test_signed_float(self):
        assert signed_float(1.24) == "+1.2"
        assert signed_float(-0.5) == "-0.5"
        assert signed_float(0.0) == "0"


class TestConsoleReporter:
    """Console summary table."""

    def test_summary_table(self, results, config):
        out = io.StringIO()
        ConsoleReporter(stream=out).export(results, config)
        text = out.getvalue()

        assert "BENCHMARK RESULTS SUMMARY" in text
        assert "Prompt: Benefits of TDD" in text
        assert "Run ID: test-run" in text
        assert "prompt-chaining/multi-agent" in text
        assert "FAIL" in text
        assert "3.0/5" in text
        assert "4.0/5" in text

    def test_agent_models_and_baseline_comparison(self, results, config):
        out = io.StringIO()
        ConsoleReporter(stream=out).export(results, config)
        text = out.getvalue()

        assert "Agent Models:" in text
        assert "-> gpt-4.1" in text
        assert "Comparison with baseline:" in text
        assert "prompt-chaining/multi-agent vs prompt-chaining/single-agent:" in text
        # 450 vs 200 tokens
        assert "Tokens: +250 (+125.0%)" in text
        assert "API Calls: +2" in text
        assert "Quality: +1.0" in text

    def test_no_comparison_without_baseline(self, results, config):
        no_baseline = [r for r in results if not r.is_baseline]
        out = io.StringIO()
        ConsoleReporter(stream=out).export(no_baseline, config)
        assert "Comparison with baseline" not in out.getvalue()

    def test_empty_results(self, config):
        out = io.StringIO()
        ConsoleReporter(stream=out).export([], config)
        assert "Prompt: N/A" in out.getvalue()


class TestMarkdownReporter:
    """comparison.md."""

    def test_sections(self, results, config):
        text = MarkdownReporter().build(results, config)

        assert text.startswith("# Benchmark Results: Benefits of TDD")
        assert "**Run ID:** test-run" in text
        assert "| prompt-chaining/single-agent (baseline) | OK |" in text
        assert "| prompt-chaining/broken | FAIL |" in text
        assert "## Errors" in text
        assert "**Error:** provider unreachable" in text
        assert "ConnectionError: provider unreachable" in text
        assert "## Comparison" in text
        assert "Baseline: **prompt-chaining/single-agent**" in text
        assert "## Agent Models" in text
        assert "| Writer | `gpt-4.1` |" in text
        assert "## Quality Breakdown" in text
        assert "| prompt-chaining/multi-agent | 4 | 4 | 4 | 4 | 4 | 4 | 4 | 4 | **4.0** |" in text

    def test_export_writes_file(self, results, config, tmp_path, quiet_logger):
        path = MarkdownReporter(quiet_logger).export(results, config, tmp_path)
        assert path == tmp_path / "comparison.md"
        assert "## Results" in path.read_text()

    def test_no_errors_section_when_all_succeed(self, results, config):
        text = MarkdownReporter().build(results[:2], config)
        assert "## Errors" not in text


class TestJSONReporter:
    """results.json."""

    def test_none_values_are_omitted(self, results, config):
        data = JSONReporter().build(results, config)

        assert data["run_id"] == "test-run"
        assert data["prompt"] == "Benefits of TDD"
        assert data["evaluation_enabled"] is True
        assert len(data["results"]) == 3

        single, multi, broken = data["results"]
        assert "error" not in single
        assert "agent_models" not in single
        assert multi["agent_models"]["Writer"] == "gpt-4.1"
        assert "quality" not in broken
        assert broken["error"] == "provider unreachable"

    def test_metrics_fields(self, results, config):
        data = JSONReporter().build(results, config)
        metrics = data["results"][1]["metrics"]
        assert metrics["total_calls"] == 3
        assert metrics["total_tokens"] == 450
        assert "total_response_length" not in metrics

    def test_export_writes_valid_json(self, results, config, tmp_path, quiet_logger):
        path = JSONReporter(quiet_logger).export(results, config, tmp_path)
        assert path.name == "results.json"
        assert json.loads(path.read_text())["run_id"] == "test-run"


class TestAnalysisReporter:
    """analysis.md."""

    @pytest.fixture
    def analysis(self):
        return ComparativeAnalysis(
            prompt="Benefits of TDD",
            benchmarks=(
                BenchmarkComparison("cat/base", True, 100, 200, 1, 1000,
                                    quality_score=QualityScore(3, 3, 3, 3, 3, 3, 3, 3)),
                BenchmarkComparison("cat/multi", False, 250, 500, 3, 4000,
                                    quality_score=QualityScore(4, 4, 4, 4, 4, 4, 4, 4),
                                    strengths=("Detailed",), weaknesses=("Slow",)),
            ),
            analysis_text="Multi is deeper.",
            verdict_text="Multi wins on quality.",
        )

    def test_sections(self, analysis):
        text = AnalysisReporter().build(analysis)

        assert text.startswith("# Benchmark Analysis: Benefits of TDD")
        assert "## Metrics Comparison" in text
        assert "| cat/base * | 100 | 200 | 1 | 1,000ms | 3.0/5 |" in text
        assert "\\* baseline" in text
        assert "### Comparison vs Baseline" in text
        assert "- Words: +150 (+150.0%)" in text
        assert "- Latency: +3000ms (+300.0%)" in text
        assert "- Quality: +1.0" in text
        assert "## Quality Scores" in text
        assert "## Strengths & Weaknesses" in text
        assert "- Detailed" in text
        assert "## Comparative Analysis\n\nMulti is deeper." in text
        assert "## Verdict\n\nMulti wins on quality." in text

    def test_export(self, analysis, tmp_path, quiet_logger):
        path = AnalysisReporter(quiet_logger).export(analysis, tmp_path)
        assert path == tmp_path / "analysis.md"


class TestEvaluationReporter:
    """evaluation.json / evaluation.md for re-evaluated runs."""

    @pytest.fixture
    def evaluations(self):
        return [
            SavedEvaluation("cat", "good", QualityScore(5, 4, 4, 4, 4, 4, 4, 4, "Strong piece.")),
            SavedEvaluation("cat", "failed", None),
        ]

    def test_export(self, evaluations, tmp_path, quiet_logger):
        json_path, md_path = EvaluationReporter(quiet_logger).export(
            evaluations, "Benefits of TDD", "gemini-2.5-pro", tmp_path
        )

        data = json.loads(json_path.read_text())
        assert data[0]["benchmark"] == "good"
        assert data[0]["quality"]["completeness"] == 5
        assert data[1]["quality"] is None

        text = md_path.read_text()
        assert "# Evaluation Results: Benefits of TDD" in text
        assert "**Evaluation Model:** gemini-2.5-pro" in text
        assert "| cat/failed | - | - | - | - | - | - | - | - | **-** |" in text
        assert "### cat/good\n\nStrong piece." in text

    def test_summary(self, evaluations):
        out = io.StringIO()
        print_evaluation_summary(evaluations, out=out)
        text = out.getvalue()
        assert "EVALUATION SUMMARY" in text
        assert "cat/failed" in text
        assert "(evaluation failed)" in text


class TestGetReporters:
    def test_known_names(self, quiet_logger):
        reporters = get_reporters(["console", "Markdown", "md", "json"], quiet_logger)
        assert [type(r) for r in reporters] == [ConsoleReporter, MarkdownReporter, MarkdownReporter, JSONReporter]

    def test_unknown_name_is_skipped(self, quiet_logger, log_stream):
        reporters = get_reporters(["csv", "json"], quiet_logger)
        assert [type(r) for r in reporters] == [JSONReporter]
        assert "Unknown exporter 'csv', skipping" in log_stream.getvalue()
