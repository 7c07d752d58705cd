#!/usr/bin/env python3
"""
benchllm CLI

Run registered LLM benchmark candidates and compare them.

Usage:
    benchllm list --module my_benchmarks
    benchllm run --module my_benchmarks --filter "prompt-chaining/*"
    benchllm run --config benchllm.json --evaluate --judge-model gemini-2.5-pro
    benchllm evaluate runs/2026-01-05_101500_benefits-of-tdd --judge-model gemini-2.5-flash

Evaluation requires GEMINI_API_KEY (or GOOGLE_API_KEY).

Exit codes: 0 success, 1 configuration error or a failed candidate,
130 interrupted.
"""

import argparse
import os
import signal
import sys
import threading

from .client import GeminiChatClient
from .config import Settings
from .errors import ConfigError, RunCancelled
from .host import evaluate_run, list_benchmarks, run_benchmarks
from .log import Logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def get_api_key():
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")


def build_judge_client(model: str):
    api_key = get_api_key()
    if not api_key:
        raise ConfigError("GEMINI_API_KEY or GOOGLE_API_KEY is required for evaluation")
    return GeminiChatClient(api_key=api_key, model=model)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="benchllm",
        description="Run and compare LLM benchmark candidates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", type=str, help="Path to a JSON settings file")
    parser.add_argument(
        "--module", "-m",
        action="append",
        help="Module that registers benchmarks (repeatable)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", default=None, help="Show trace output")
    parser.add_argument("--json-log", action="store_true", help="Log as JSON lines on stderr")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List available benchmarks")

    run_parser = subparsers.add_parser("run", help="Run benchmarks")
    run_parser.add_argument("--filter", "-f", type=str, help="Glob over category/name (default: *)")
    run_parser.add_argument("--run-id", type=str, help="Run directory name (default: timestamp + prompt slug)")
    run_parser.add_argument("--artifacts", type=str, help="Artifacts root (default: ./runs)")
    run_parser.add_argument("--evaluate", action="store_true", default=None, help="Score outputs with an LLM judge")
    run_parser.add_argument("--judge-model", type=str, help="Model used by the judge")
    run_parser.add_argument(
        "--judge",
        choices=["quality", "agent-task"],
        help="Judge rubric (default: quality)",
    )
    run_parser.add_argument(
        "--exporter", "-e",
        action="append",
        help="console, markdown or json (repeatable)",
    )

    eval_parser = subparsers.add_parser("evaluate", help="Score the outputs of an existing run")
    eval_parser.add_argument("run_path", type=str, help="Run directory")
    eval_parser.add_argument("--judge-model", type=str, help="Model used by the judge")
    eval_parser.add_argument(
        "--judge",
        choices=["quality", "agent-task"],
        help="Judge rubric (default: quality)",
    )

    return parser


def load_settings(args) -> Settings:
    settings = Settings.load(args.config)
    modules = list(settings.modules) + list(args.module or [])
    return settings.with_overrides(
        modules=modules or None,
        verbose=args.verbose,
        filter=getattr(args, "filter", None),
        run_id=getattr(args, "run_id", None),
        artifacts_path=getattr(args, "artifacts", None),
        evaluate=getattr(args, "evaluate", None),
        evaluation_model=getattr(args, "judge_model", None),
        judge=getattr(args, "judge", None),
        exporters=getattr(args, "exporter", None),
    )


def install_cancel_handler(cancel: threading.Event, logger: Logger):
    """First Ctrl+C stops after the current candidate, the second interrupts immediately."""
    def handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        logger.warn("Stopping after the current benchmark (Ctrl+C again to abort)")
        cancel.set()

    try:
        return signal.signal(signal.SIGINT, handler)
    except ValueError:
        # Not on the main thread
        return None


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = Logger(json_mode=args.json_log, verbose=bool(args.verbose))

    cancel = threading.Event()
    previous_handler = None

    try:
        settings = load_settings(args)
        logger.verbose = settings.verbose

        if args.command == "list":
            list_benchmarks(settings.modules, logger=logger)
            return EXIT_OK

        previous_handler = install_cancel_handler(cancel, logger)

        if args.command == "evaluate":
            model = settings.evaluation_model
            if not model:
                raise ConfigError("--judge-model is required for evaluate")
            settings.validate()
            evaluate_run(
                args.run_path,
                build_judge_client(model),
                model,
                judge_kind=settings.judge,
                cancel=cancel,
                logger=logger,
            )
            return EXIT_OK

        settings.validate()
        judge_client = build_judge_client(settings.evaluation_model) if settings.evaluate else None
        outcome = run_benchmarks(settings, judge_client=judge_client, cancel=cancel, logger=logger)

        if outcome.failed:
            logger.error(f"{len(outcome.failed)} of {len(outcome.results)} benchmarks failed")
            return EXIT_FAILURE
        return EXIT_OK

    except ConfigError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except (RunCancelled, KeyboardInterrupt):
        logger.warn("Interrupted by user")
        return EXIT_INTERRUPTED
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
