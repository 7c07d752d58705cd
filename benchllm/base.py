"""
Core abstractions: candidate registration, discovery and results.

Candidates are registered explicitly instead of being found by scanning
types. Two ways to register:

    @benchmark_group("prompt-chaining", prompt="Benefits of TDD")
    class PromptChainingBenchmarks:
        @benchmark("multi-agent", description="Researcher -> Writer")
        async def multi_agent(self, prompt: str) -> BenchmarkOutput:
            ...

        @benchmark("single-agent", baseline=True)
        def single_agent(self, prompt: str) -> str:
            ...

    group = register_group("routing", prompt="My order never arrived")
    group.add("classifier", classify_and_route)
    group.add("single-agent", answer_directly, baseline=True)

discover_all() turns the registry into a fresh list of CandidateInfo on
every call.
"""

import importlib
import inspect
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from .judge import QualityScore
from .log import default_logger
from .metrics import AggregatedMetrics


@dataclass(frozen=True)
class BenchmarkSpec:
    """Method-level declaration attached by @benchmark."""
    name: str
    description: Optional[str] = None
    baseline: bool = False


@dataclass(frozen=True)
class CandidateInfo:
    """One runnable candidate, built fresh on every discovery pass."""
    category: str
    name: str
    prompt: str
    func: Callable = field(repr=False, compare=False)
    description: Optional[str] = None
    is_baseline: bool = False
    owner: Optional[type] = field(default=None, repr=False, compare=False)

    @property
    def full_name(self) -> str:
        return f"{self.category}/{self.name}"

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "name": self.name,
            "full_name": self.full_name,
            "prompt": self.prompt,
            "description": self.description,
            "is_baseline": self.is_baseline,
        }


@dataclass(frozen=True)
class BenchmarkOutput:
    """
    Structured candidate output.

    Candidates may return a bare string instead; agent_models maps agent
    names to the model each one used (e.g. {"Researcher": "gpt-4.1"}).
    """
    content: str
    agent_models: Optional[dict] = None

    @classmethod
    def with_models(cls, content: str, agent_models: dict) -> "BenchmarkOutput":
        return cls(content=content, agent_models=dict(agent_models))


@dataclass(frozen=True)
class RunResult:
    """
    Result of running one candidate once.

    Invariants (checked on construction):
    - success=False => content is None and error is non-empty
    - success=True  => content is non-empty
    """
    category: str
    name: str
    prompt: str
    success: bool
    duration_ms: float = 0.0
    metrics: AggregatedMetrics = field(default_factory=AggregatedMetrics.empty)
    content: Optional[str] = None
    error: Optional[str] = None
    error_details: Optional[str] = None
    error_type: Optional[str] = None
    quality_score: Optional[QualityScore] = None
    is_baseline: bool = False
    agent_models: Optional[dict] = None

    def __post_init__(self):
        if self.success:
            if not self.content:
                raise ValueError(f"Successful result for {self.full_name} must have content")
        else:
            if self.content is not None:
                raise ValueError(f"Failed result for {self.full_name} must not carry content")
            if not self.error:
                raise ValueError(f"Failed result for {self.full_name} must have an error message")
        if self.agent_models is not None:
            object.__setattr__(self, "agent_models", dict(self.agent_models))

    @property
    def full_name(self) -> str:
        return f"{self.category}/{self.name}"

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "name": self.name,
            "full_name": self.full_name,
            "prompt": self.prompt,
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type,
            "error_details": self.error_details,
            "is_baseline": self.is_baseline,
            "duration_seconds": round(self.duration_seconds, 3),
            "metrics": self.metrics.to_dict(),
            "quality": self.quality_score.to_dict() if self.quality_score else None,
            "agent_models": self.agent_models,
        }


@dataclass
class BenchmarkEntry:
    """A registered candidate function inside a group."""
    name: str
    func: Callable
    description: Optional[str] = None
    baseline: bool = False


@dataclass
class BenchmarkGroup:
    """
    Group-level declaration: a category, the prompt all its candidates
    receive, and the candidates themselves.

    Class-based groups (owner set) are instantiated fresh per candidate.
    """
    category: str
    prompt: str
    description: Optional[str] = None
    owner: Optional[type] = None
    entries: list[BenchmarkEntry] = field(default_factory=list)

    @property
    def key(self) -> str:
        if self.owner is not None:
            return f"{self.owner.__module__}.{self.owner.__qualname__}"
        return self.category

    def add(
        self,
        name: str,
        func: Callable,
        description: Optional[str] = None,
        baseline: bool = False,
    ) -> "BenchmarkGroup":
        """Register a candidate function. Returns the group for chaining."""
        if not callable(func):
            raise TypeError(f"Candidate {self.category}/{name} must be callable")
        self.entries.append(BenchmarkEntry(name, func, description, baseline))
        return self

    def _declared_methods(self) -> list[BenchmarkEntry]:
        entries = []
        seen = set()
        # Walk the MRO base-first so subclasses can override a declaration
        for klass in reversed(self.owner.__mro__):
            for attr_name, attr in vars(klass).items():
                spec = getattr(attr, "__benchmark__", None)
                if not isinstance(spec, BenchmarkSpec):
                    continue
                if attr_name in seen:
                    entries = [e for e in entries if e.func.__name__ != attr_name]
                seen.add(attr_name)
                entries.append(BenchmarkEntry(spec.name, attr, spec.description, spec.baseline))
        return entries

    def candidates(self) -> list[CandidateInfo]:
        entries = list(self.entries)
        if self.owner is not None:
            entries.extend(self._declared_methods())

        return [
            CandidateInfo(
                category=self.category,
                name=entry.name,
                prompt=self.prompt,
                func=entry.func,
                description=entry.description or self.description,
                is_baseline=entry.baseline,
                owner=self.owner,
            )
            for entry in entries
        ]


# Process-wide candidate registry
_group_registry: dict[str, BenchmarkGroup] = {}


def register_group(
    category: str,
    prompt: str,
    description: Optional[str] = None,
    owner: Optional[type] = None,
) -> BenchmarkGroup:
    """Register (or replace) a group and return it."""
    if not category:
        raise ValueError("A benchmark group needs a category")
    if not prompt:
        raise ValueError(f"Benchmark group '{category}' needs a prompt")

    group = BenchmarkGroup(category=category, prompt=prompt, description=description, owner=owner)
    _group_registry[group.key] = group
    return group


def benchmark_group(category: str, prompt: str, description: Optional[str] = None):
    """Class decorator declaring a group of @benchmark methods."""
    def decorator(cls: type) -> type:
        register_group(category, prompt, description, owner=cls)
        return cls
    return decorator


def benchmark(name: str, description: Optional[str] = None, baseline: bool = False):
    """Method decorator declaring one candidate inside a @benchmark_group class."""
    def decorator(func: Callable) -> Callable:
        func.__benchmark__ = BenchmarkSpec(name=name, description=description, baseline=baseline)
        return func
    return decorator


def list_groups() -> list[BenchmarkGroup]:
    """All registered groups."""
    return list(_group_registry.values())


def clear_registry():
    """Forget every registered group."""
    _group_registry.clear()


def import_modules(modules: Iterable[str], logger=None) -> list[str]:
    """
    Import candidate modules so their groups register themselves.

    Best-effort: a module that fails to import is logged and skipped.
    Returns the names that imported cleanly.
    """
    log = logger or default_logger
    imported = []
    for module_name in modules:
        try:
            importlib.import_module(module_name)
            imported.append(module_name)
        except Exception as e:
            log.warn(f"Skipping module {module_name}: {type(e).__name__}: {e}")
    return imported


def discover_all(modules: Iterable[str] = (), logger=None) -> list[CandidateInfo]:
    """
    Build the candidate catalog from the registry.

    Order follows registration but is not part of the contract. A group
    whose candidates cannot be enumerated is skipped. Duplicate full names
    keep the first registration.
    """
    log = logger or default_logger
    import_modules(modules, log)

    candidates: list[CandidateInfo] = []
    seen: set[str] = set()
    for group in list_groups():
        try:
            group_candidates = group.candidates()
        except Exception as e:
            log.warn(f"Skipping benchmark group {group.key}: {e}")
            continue

        for candidate in group_candidates:
            if candidate.full_name.lower() in seen:
                log.warn(f"Duplicate candidate {candidate.full_name} ignored")
                continue
            seen.add(candidate.full_name.lower())
            candidates.append(candidate)

    return candidates


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a glob (* and ?) into an anchored, case-insensitive regex."""
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$", re.IGNORECASE | re.DOTALL)


def filter_candidates(candidates: Iterable[CandidateInfo], pattern: Optional[str]) -> list[CandidateInfo]:
    """Filter candidates by a glob over full_name ("category/name")."""
    if not pattern or pattern == "*":
        return list(candidates)

    regex = glob_to_regex(pattern)
    return [c for c in candidates if regex.match(c.full_name)]


def candidate_signature(func: Callable) -> int:
    """
    Number of arguments a (bound) candidate takes: 0 or 1.

    Raises TypeError for any other shape; the runner turns that into a
    SignatureError.
    """
    params = list(inspect.signature(func).parameters.values())
    positional = [
        p for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    if len(positional) != len(params):
        raise TypeError("Keyword-only and variadic parameters are not supported")
    if not positional:
        return 0
    if len(positional) == 1:
        annotation: Any = positional[0].annotation
        if annotation in (inspect.Parameter.empty, str, "str"):
            return 1
        raise TypeError(f"Prompt parameter must be a str, got {annotation!r}")
    raise TypeError(f"Expected () or (prompt: str), got {len(positional)} parameters")
