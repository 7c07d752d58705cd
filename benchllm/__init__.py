"""
benchllm
========

A harness for comparing LLM workflow variants (multi-agent pipelines,
tool-use agents, routers) on the same prompt.

## Quick Start

```python
from benchllm import BenchmarkOutput, benchmark, benchmark_group

@benchmark_group("prompt-chaining", prompt="Benefits of test-driven development")
class PromptChainingBenchmarks:
    @benchmark("single-agent", baseline=True)
    def single_agent(self, prompt: str) -> str:
        ...

    @benchmark("multi-agent", description="Researcher -> Writer -> Editor")
    async def multi_agent(self, prompt: str) -> BenchmarkOutput:
        ...
```

    benchllm run --module my_benchmarks --evaluate --judge-model gemini-2.5-flash

## Architecture

- `base.py`: Registration, discovery and result types
- `runner.py`: Sequential execution with fault containment and cancellation
- `metrics.py`: Per-candidate call metrics (collector scope, recording client)
- `judge.py` / `comparative.py`: LLM-as-judge scoring and side-by-side analysis
- `storage.py`: Run directories and artifacts
- `reporters.py`: Console, Markdown and JSON reports
- `host.py` / `cli.py`: Entry points
"""

__version__ = "0.1.0"

from .base import (
    BenchmarkGroup,
    BenchmarkOutput,
    CandidateInfo,
    RunResult,
    benchmark,
    benchmark_group,
    clear_registry,
    discover_all,
    filter_candidates,
    list_groups,
    register_group,
)
from .client import ChatClient, ChatMessage, ChatResponse, ChatUpdate, GeminiChatClient
from .comparative import BenchmarkComparison, ComparativeAnalysis, ComparativeEvaluator
from .config import RunConfig, Settings
from .errors import (
    BenchmarkError,
    CandidateInvocationError,
    ConfigError,
    ConstructionError,
    EmptyContentError,
    RunCancelled,
    SignatureError,
)
from .host import RunOutcome, evaluate_run, list_benchmarks, run_benchmarks
from .judge import AgentTaskJudge, ContentEvaluator, QualityJudge, QualityScore, create_judge
from .metrics import (
    AggregatedMetrics,
    CallEvent,
    CallMetric,
    MetricsCollector,
    MetricsRecordingClient,
    emit_event,
    record_call,
)
from .reporters import ConsoleReporter, JSONReporter, MarkdownReporter, get_reporters
from .runner import BenchmarkRunner
from .storage import RunStore

__all__ = [
    # Registration
    "benchmark",
    "benchmark_group",
    "register_group",
    "list_groups",
    "clear_registry",
    "discover_all",
    "filter_candidates",
    # Core types
    "BenchmarkGroup",
    "BenchmarkOutput",
    "CandidateInfo",
    "RunResult",
    "RunConfig",
    "Settings",
    # Errors
    "BenchmarkError",
    "CandidateInvocationError",
    "ConfigError",
    "ConstructionError",
    "EmptyContentError",
    "RunCancelled",
    "SignatureError",
    # Model calls and metrics
    "ChatClient",
    "ChatMessage",
    "ChatResponse",
    "ChatUpdate",
    "GeminiChatClient",
    "AggregatedMetrics",
    "CallEvent",
    "CallMetric",
    "MetricsCollector",
    "MetricsRecordingClient",
    "emit_event",
    "record_call",
    # Evaluation
    "ContentEvaluator",
    "QualityJudge",
    "AgentTaskJudge",
    "QualityScore",
    "create_judge",
    "ComparativeEvaluator",
    "ComparativeAnalysis",
    "BenchmarkComparison",
    # Running and reporting
    "BenchmarkRunner",
    "RunStore",
    "ConsoleReporter",
    "MarkdownReporter",
    "JSONReporter",
    "get_reporters",
    "RunOutcome",
    "run_benchmarks",
    "evaluate_run",
    "list_benchmarks",
]
