"""
Entry points tying discovery, the runner, storage and reporters together.

The CLI calls these; they can also be called from a project's own script:

    from benchllm import Settings, run_benchmarks
    import my_benchmarks  # registers its groups

    outcome = run_benchmarks(Settings(filter="routing/*"))
"""

import platform
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .base import discover_all, filter_candidates
from .client import ChatClient
from .comparative import ComparativeAnalysis, ComparativeEvaluator
from .config import Settings
from .errors import ConfigError, RunCancelled
from .judge import create_judge
from .log import Logger, default_logger
from .reporters import AnalysisReporter, EvaluationReporter, get_reporters, print_evaluation_summary
from .runner import BenchmarkRunner
from .storage import RunStore, SavedEvaluation


@dataclass
class RunOutcome:
    """What a run produced."""
    run_path: Path
    results: list
    analysis: Optional[ComparativeAnalysis] = None

    @property
    def failed(self) -> list:
        return [r for r in self.results if not r.success]


def collect_environment(provider: str, model: Optional[str]) -> dict:
    """Host and runtime facts recorded in environment.json."""
    return {
        "provider": provider,
        "model": model or "default",
        "runtime": f"{platform.python_implementation()} {platform.python_version()}",
        "platform": platform.platform(),
        "machine_name": platform.node(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def list_benchmarks(modules=(), out=None, logger: Optional[Logger] = None) -> int:
    """Print discovered candidates grouped by category. Returns the count."""
    out = out or sys.stdout
    candidates = discover_all(modules, logger)

    print("Available benchmarks:\n", file=out)
    by_category: dict[str, list] = {}
    for candidate in candidates:
        by_category.setdefault(candidate.category, []).append(candidate)

    for category, group in by_category.items():
        print(f"  {category}/", file=out)
        for c in group:
            baseline = " (baseline)" if c.is_baseline else ""
            desc = f" - {c.description}" if c.description else ""
            print(f"    {c.name}{baseline}{desc}", file=out)

    print(f"\nTotal: {len(candidates)} benchmarks", file=out)
    return len(candidates)


def _save_run(store: RunStore, config, prompt: str, results, environment: dict) -> Path:
    run_path = store.create_run_directory(config, prompt)
    store.save_config(config, prompt, run_path)
    store.save_environment(environment, run_path)
    for result in results:
        store.save_output(result, run_path)
    return run_path


def run_benchmarks(
    settings: Settings,
    judge_client: Optional[ChatClient] = None,
    cancel=None,
    environment: Optional[dict] = None,
    logger: Optional[Logger] = None,
    store: Optional[RunStore] = None,
) -> RunOutcome:
    """
    Discover, filter and run candidates, then persist and report.

    Raises ConfigError when nothing matches the filter or evaluation is
    requested without a judge client. On cancellation the partial results
    are saved before RunCancelled propagates.
    """
    log = logger or default_logger
    store = store or RunStore()
    settings.validate()

    if settings.evaluate and judge_client is None:
        raise ConfigError("Evaluation is enabled but no judge client was provided")

    candidates = filter_candidates(discover_all(settings.modules, log), settings.filter)
    if not candidates:
        raise ConfigError(f"No benchmarks found matching filter: {settings.filter}")

    prompt = candidates[0].prompt
    config = settings.to_run_config()
    environment = environment if environment is not None else collect_environment(
        "gemini" if judge_client is not None else "none", settings.evaluation_model or settings.model
    )

    log.info(f"Prompt: {prompt}")
    log.info(f"Filter: {settings.filter}")
    log.info(f"Benchmarks to run: {len(candidates)}")
    if settings.evaluate:
        log.info(f"Evaluation model: {settings.evaluation_model}")

    judge = create_judge(settings.judge, judge_client) if settings.evaluate else None
    runner = BenchmarkRunner(judge=judge, logger=log, verbose=settings.verbose)

    try:
        results = runner.run(candidates, config, cancel=cancel)
    except RunCancelled as e:
        if e.results:
            run_path = _save_run(store, config, prompt, e.results, environment)
            log.warn(f"Partial results ({len(e.results)}) saved to: {run_path}")
        raise

    run_path = _save_run(store, config, prompt, results, environment)

    for reporter in get_reporters(config.exporters, log):
        reporter.export(results, config, run_path)

    analysis = None
    if settings.evaluate and len(results) > 1:
        log.info("Running comparative analysis...")
        analysis = ComparativeEvaluator(judge_client).compare(results, cancel=cancel)
        AnalysisReporter(log).export(analysis, run_path)

    log.ok(f"Run saved to: {run_path}")
    return RunOutcome(run_path=run_path, results=results, analysis=analysis)


def evaluate_run(
    run_path,
    judge_client: ChatClient,
    model: str,
    judge_kind: str = "quality",
    cancel=None,
    logger: Optional[Logger] = None,
    out=None,
    store: Optional[RunStore] = None,
) -> list[SavedEvaluation]:
    """
    Score every output.md of a previous run.

    A judge that raises records no score for that output. Writes
    evaluation.json and evaluation.md into the run directory.
    """
    log = logger or default_logger
    store = store or RunStore()
    run_path = Path(run_path)

    if not model:
        raise ConfigError("A model is required for evaluation")
    if not run_path.is_dir():
        raise ConfigError(f"Run directory not found: {run_path}")

    try:
        prompt = store.load_run_prompt(run_path)
    except (OSError, ValueError) as e:
        raise ConfigError(str(e)) from e

    log.info(f"Evaluating run: {run_path}")
    log.info(f"Prompt: {prompt}")

    judge = create_judge(judge_kind, judge_client)
    evaluations = []
    for saved in store.iter_saved_outputs(run_path):
        if cancel is not None and cancel.is_set():
            raise RunCancelled(evaluations)

        log.info(f"Evaluating {saved.full_name}...")
        try:
            score = judge.evaluate(prompt, saved.content, cancel=cancel)
            log.ok(f"Quality: {score.average:.1f}/5", candidate=saved.full_name)
        except RunCancelled:
            raise RunCancelled(evaluations) from None
        except Exception as e:
            log.warn(f"Evaluation failed: {e}", candidate=saved.full_name)
            score = None
        evaluations.append(SavedEvaluation(saved.category, saved.name, score))

    EvaluationReporter(log).export(evaluations, prompt, model, run_path)
    print_evaluation_summary(evaluations, out)
    return evaluations
