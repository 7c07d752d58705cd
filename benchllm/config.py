"""
Run configuration and settings.

RunConfig is what one run needs. Settings is the JSON-file/CLI layer that
produces it:

    {
        "model": "gemini-2.5-flash",
        "evaluation_model": "gemini-2.5-pro",
        "judge": "quality",
        "filter": "prompt-chaining/*",
        "artifacts_path": "./runs",
        "evaluate": true,
        "exporters": ["console", "markdown", "json"],
        "modules": ["my_benchmarks.prompt_chaining"]
    }
"""

import json
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import ConfigError
from .judge import JUDGES

DEFAULT_ARTIFACTS_PATH = "./runs"
DEFAULT_EXPORTERS = ("console",)


def slugify(text: str, max_length: int = 30) -> str:
    """
    Lowercase slug: spaces and underscores become hyphens, anything that is
    not a letter, digit or hyphen is dropped. Letters need not be ASCII.
    Truncated, then stripped of edge hyphens.
    """
    slug = (text or "").lower().replace(" ", "-").replace("_", "-")
    slug = "".join(c for c in slug if c.isalnum() or c == "-")
    return slug[:max_length].strip("-")


def generate_run_id(prompt: str, timestamp: Optional[datetime] = None) -> str:
    """{UTC %Y-%m-%d_%H%M%S}_{slug}, or just the timestamp when the slug is empty."""
    timestamp = timestamp or datetime.now(timezone.utc)
    stamp = timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
    slug = slugify(prompt)
    return f"{stamp}_{slug}" if slug else stamp


@dataclass
class RunConfig:
    """Configuration for one benchmark run."""
    filter: Optional[str] = None
    run_id: Optional[str] = None
    artifacts_path: str = DEFAULT_ARTIFACTS_PATH
    evaluate: bool = False
    exporters: list[str] = field(default_factory=lambda: list(DEFAULT_EXPORTERS))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def effective_run_id(self, prompt: str) -> str:
        return self.run_id or generate_run_id(prompt, self.timestamp)

    def to_dict(self, prompt: Optional[str] = None) -> dict:
        return {
            "run_id": self.effective_run_id(prompt or ""),
            "prompt": prompt,
            "filter": self.filter,
            "artifacts_path": self.artifacts_path,
            "evaluate": self.evaluate,
            "exporters": list(self.exporters),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Settings:
    """Settings loaded from a JSON file, overridable from the command line."""
    model: Optional[str] = None
    evaluation_model: Optional[str] = None
    judge: str = "quality"
    filter: str = "*"
    artifacts_path: str = DEFAULT_ARTIFACTS_PATH
    run_id: Optional[str] = None
    evaluate: bool = False
    exporters: list[str] = field(default_factory=lambda: list(DEFAULT_EXPORTERS))
    modules: list[str] = field(default_factory=list)
    verbose: bool = False

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Settings":
        """Load settings from a JSON file. A missing path gives the defaults."""
        if not path:
            return cls()

        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")

        for key in ("exporters", "modules"):
            if key in data and isinstance(data[key], str):
                data[key] = [data[key]]

        return cls(**data)

    def with_overrides(self, **overrides) -> "Settings":
        """Copy with the given values replaced. None means keep the current value."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "Settings":
        if self.evaluate and not self.evaluation_model:
            raise ConfigError("Evaluation is enabled but no evaluation_model is configured")
        if not self.exporters:
            raise ConfigError("At least one exporter is required")
        if self.judge not in JUDGES:
            raise ConfigError(f"Unknown judge '{self.judge}', expected one of: {', '.join(sorted(JUDGES))}")
        return self

    def to_run_config(self) -> RunConfig:
        return RunConfig(
            filter=self.filter,
            run_id=self.run_id,
            artifacts_path=self.artifacts_path,
            evaluate=self.evaluate,
            exporters=list(self.exporters),
        )

    def to_dict(self) -> dict:
        return asdict(self)
