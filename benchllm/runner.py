"""
Benchmark runner - executes candidates one at a time and records results.
"""

import asyncio
import traceback
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .base import BenchmarkOutput, CandidateInfo, RunResult, candidate_signature
from .config import RunConfig
from .errors import ConstructionError, EmptyContentError, RunCancelled, SignatureError
from .judge import ContentEvaluator
from .log import Logger, categorize_error, default_logger, get_recovery
from .metrics import AggregatedMetrics, MetricsCollector, Timer


def root_cause(exc: BaseException) -> BaseException:
    """Follow __cause__ through wrapper errors (``wrapped = True``) to the original failure."""
    seen = set()
    while getattr(exc, "wrapped", False) and exc.__cause__ is not None and id(exc) not in seen:
        seen.add(id(exc))
        exc = exc.__cause__
    return exc


def error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def format_traceback(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()


def run_coroutine(coro):
    """Drive a candidate's coroutine to completion, even when called from inside a running loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    # asyncio.run() refuses to nest, so give the coroutine its own loop on a worker thread
    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()


def unwrap_output(value, full_name: str) -> tuple[str, Optional[dict]]:
    """Normalize a candidate's return value to (content, agent_models)."""
    if value is None:
        raise EmptyContentError(f"{full_name} returned no content")

    if isinstance(value, str):
        content, agent_models = value, None
    elif isinstance(value, BenchmarkOutput):
        content, agent_models = value.content, value.agent_models
    elif isinstance(value, Mapping) and "content" in value:
        content, agent_models = value["content"], value.get("agent_models")
    else:
        raise SignatureError(
            f"{full_name} returned {type(value).__name__}; expected str or BenchmarkOutput"
        )

    if content is None or (isinstance(content, str) and not content.strip()):
        raise EmptyContentError(f"{full_name} returned empty content")
    if not isinstance(content, str):
        raise SignatureError(f"{full_name} returned non-text content ({type(content).__name__})")

    return content, dict(agent_models) if agent_models else None


class BenchmarkRunner:
    """
    Runs candidates sequentially.

    A failing candidate becomes a failed RunResult and the run moves on.
    Only RunCancelled (carrying the partial results) and BaseExceptions such
    as KeyboardInterrupt escape run(). A candidate's own asyncio.CancelledError
    is a failure like any other unless the caller's cancel event is set.

    Usage:
        runner = BenchmarkRunner(judge=QualityJudge(client))
        results = runner.run(candidates, RunConfig(evaluate=True), cancel=stop_event)
    """

    def __init__(
        self,
        judge: Optional[ContentEvaluator] = None,
        logger: Optional[Logger] = None,
        verbose: bool = False,
    ):
        self.judge = judge
        self.log = logger or default_logger
        self.verbose = verbose

    def run(self, candidates: list[CandidateInfo], config: RunConfig, cancel=None) -> list[RunResult]:
        results: list[RunResult] = []
        total = len(candidates)

        for i, candidate in enumerate(candidates, 1):
            if cancel is not None and cancel.is_set():
                self.log.warn(f"Cancelled after {len(results)}/{total} candidates")
                raise RunCancelled(results)

            self.log.info(f"[{i}/{total}] Running {candidate.full_name}...")
            try:
                result = self.run_candidate(candidate, config, cancel)
            except RunCancelled:
                self.log.warn(f"Cancelled during {candidate.full_name}")
                raise RunCancelled(results) from None

            results.append(result)

        return results

    def run_candidate(self, candidate: CandidateInfo, config: RunConfig, cancel=None) -> RunResult:
        """Run a single candidate. Never raises for candidate failures."""
        collector = MetricsCollector()
        timer = Timer()

        try:
            with timer:
                func = self._resolve(candidate)
                arity = self._arity(candidate, func)

                with collector:
                    value = func(candidate.prompt) if arity else func()
                    if asyncio.iscoroutine(value):
                        value = run_coroutine(value)

                content, agent_models = unwrap_output(value, candidate.full_name)
                quality_score = self._evaluate(candidate, content, config, cancel)

        except RunCancelled:
            raise
        except asyncio.CancelledError as exc:
            # Cancelled inner task; only the caller's event stops the run
            if cancel is not None and cancel.is_set():
                collector.close()
                raise RunCancelled() from exc
            return self._failed(candidate, exc, timer, collector.close())
        except Exception as exc:
            return self._failed(candidate, root_cause(exc), timer, collector.close())

        metrics = collector.close()
        self.log.ok(
            f"{candidate.full_name} completed in {timer.elapsed_ms / 1000:.1f}s",
            candidate=candidate.full_name,
        )
        self.log.trace(
            f"{metrics.total_calls} calls, {metrics.total_tokens} tokens, {metrics.total_latency_ms}ms model latency"
        )
        if quality_score is not None:
            self.log.trace(str(quality_score))

        return RunResult(
            category=candidate.category,
            name=candidate.name,
            prompt=candidate.prompt,
            success=True,
            duration_ms=timer.elapsed_ms,
            metrics=metrics,
            content=content,
            quality_score=quality_score,
            is_baseline=candidate.is_baseline,
            agent_models=agent_models,
        )

    @staticmethod
    def _resolve(candidate: CandidateInfo):
        """Bind the candidate to a fresh instance of its owning class, if it has one."""
        if candidate.owner is None:
            return candidate.func

        try:
            instance = candidate.owner()
        except Exception as e:
            raise ConstructionError(
                f"Could not create {candidate.owner.__name__} for {candidate.full_name}: {error_message(e)}"
            ) from e

        func = candidate.func
        if hasattr(func, "__get__"):
            return func.__get__(instance, candidate.owner)
        return func

    @staticmethod
    def _arity(candidate: CandidateInfo, func) -> int:
        try:
            return candidate_signature(func)
        except (TypeError, ValueError) as e:
            raise SignatureError(f"{candidate.full_name} has an unsupported signature: {e}") from e

    def _evaluate(self, candidate: CandidateInfo, content: str, config: RunConfig, cancel=None):
        if not config.evaluate or self.judge is None:
            return None

        if cancel is not None and cancel.is_set():
            # Keep the finished output; the loop stops before the next candidate
            self.log.warn("Cancelled, recording without a quality score", candidate=candidate.full_name)
            return None

        self.log.trace(f"Evaluating {candidate.full_name}...")
        try:
            return self.judge.evaluate(candidate.prompt, content, cancel=cancel)
        except RunCancelled:
            self.log.warn("Cancelled, recording without a quality score", candidate=candidate.full_name)
            return None
        except Exception as e:
            self.log.warn(
                f"Evaluation failed, recording without a quality score: {error_message(e)}",
                candidate=candidate.full_name,
            )
            return None

    def _failed(
        self,
        candidate: CandidateInfo,
        exc: BaseException,
        timer: Timer,
        metrics: AggregatedMetrics,
    ) -> RunResult:
        error_info = categorize_error(exc)
        self.log.error(
            f"{candidate.full_name} failed: {type(exc).__name__}: {error_message(exc)}",
            candidate=candidate.full_name,
            category=error_info["category"],
            recovery=get_recovery(error_info["type"]) if self.verbose else None,
        )

        return RunResult(
            category=candidate.category,
            name=candidate.name,
            prompt=candidate.prompt,
            success=False,
            duration_ms=timer.elapsed_ms,
            metrics=metrics,
            error=error_message(exc),
            error_details=format_traceback(exc),
            error_type=type(exc).__name__,
            is_baseline=candidate.is_baseline,
        )
