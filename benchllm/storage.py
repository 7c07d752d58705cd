"""
Run directories and artifact files.

Layout under the artifacts root:

    <run id>/
        run-config.json
        environment.json
        <category>/<name>/output.md      (only when the candidate produced content)
        <category>/<name>/metrics.json
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from .base import RunResult
from .config import RunConfig, slugify
from .judge import QualityScore

RUN_CONFIG_FILE = "run-config.json"
ENVIRONMENT_FILE = "environment.json"
OUTPUT_FILE = "output.md"
METRICS_FILE = "metrics.json"


def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


@dataclass(frozen=True)
class SavedOutput:
    """An output.md found in a previous run."""
    category: str
    name: str
    content: str
    path: Path

    @property
    def full_name(self) -> str:
        return f"{self.category}/{self.name}"


@dataclass(frozen=True)
class SavedEvaluation:
    """Quality score for one saved output. None when the judge failed."""
    category: str
    name: str
    quality_score: Optional[QualityScore] = None

    @property
    def full_name(self) -> str:
        return f"{self.category}/{self.name}"

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "benchmark": self.name,
            "quality": self.quality_score.to_dict() if self.quality_score else None,
        }


class RunStore:
    """Creates run directories and writes run artifacts."""

    slugify = staticmethod(slugify)

    def create_run_directory(self, config: RunConfig, prompt: str) -> Path:
        run_path = Path(config.artifacts_path) / config.effective_run_id(prompt)
        run_path.mkdir(parents=True, exist_ok=True)
        return run_path

    def save_config(self, config: RunConfig, prompt: str, run_path: Path) -> Path:
        return write_json(Path(run_path) / RUN_CONFIG_FILE, config.to_dict(prompt))

    def save_environment(self, environment: dict, run_path: Path) -> Path:
        return write_json(Path(run_path) / ENVIRONMENT_FILE, dict(environment))

    def save_output(self, result: RunResult, run_path: Path) -> Path:
        """Write output.md (when there is content) and metrics.json. Returns the candidate directory."""
        benchmark_dir = Path(run_path) / result.category / result.name
        benchmark_dir.mkdir(parents=True, exist_ok=True)

        if result.content is not None:
            (benchmark_dir / OUTPUT_FILE).write_text(result.content, encoding="utf-8")

        metrics = result.metrics
        write_json(benchmark_dir / METRICS_FILE, {
            "success": result.success,
            "error": result.error,
            "duration_seconds": round(result.duration_seconds, 3),
            "total_calls": metrics.total_calls,
            "total_input_tokens": metrics.total_input_tokens,
            "total_output_tokens": metrics.total_output_tokens,
            "total_tokens": metrics.total_tokens,
            "total_latency_ms": metrics.total_latency_ms,
            "quality": result.quality_score.to_dict() if result.quality_score else None,
        })
        return benchmark_dir

    def load_run_prompt(self, run_path: Path) -> str:
        """Prompt recorded in a previous run's run-config.json."""
        config_path = Path(run_path) / RUN_CONFIG_FILE
        if not config_path.exists():
            raise FileNotFoundError(f"No {RUN_CONFIG_FILE} in {run_path}")

        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        prompt = data.get("prompt") if isinstance(data, dict) else None
        if not prompt:
            raise ValueError(f"{config_path} does not record a prompt")
        return prompt

    def iter_saved_outputs(self, run_path: Path) -> Iterator[SavedOutput]:
        """Yield every <category>/<name>/output.md in a run, sorted by path."""
        run_path = Path(run_path)
        for output_path in sorted(run_path.glob(f"*/*/{OUTPUT_FILE}")):
            yield SavedOutput(
                category=output_path.parent.parent.name,
                name=output_path.parent.name,
                content=output_path.read_text(encoding="utf-8"),
                path=output_path,
            )
