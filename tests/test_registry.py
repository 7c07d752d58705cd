"""
Tests for candidate registration, discovery and filtering (benchllm/base.py).
"""

import sys
import types

import pytest

from benchllm.base import (
    BenchmarkOutput,
    RunResult,
    benchmark,
    benchmark_group,
    candidate_signature,
    discover_all,
    filter_candidates,
    list_groups,
    register_group,
)


def _names(candidates):
    return sorted(c.full_name for c in candidates)


class TestRegistration:
    """Decorator and builder registration."""

    def test_class_group_registers_methods(self):
        @benchmark_group("prompt-chaining", prompt="Benefits of TDD", description="Content pipelines")
        class PromptChaining:
            @benchmark("multi-agent", description="Researcher -> Writer")
            def multi_agent(self, prompt: str) -> str:
                return "multi"

            @benchmark("single-agent", baseline=True)
            def single_agent(self, prompt: str) -> str:
                return "single"

            def helper(self):
                return "not a candidate"

        candidates = discover_all()
        assert _names(candidates) == ["prompt-chaining/multi-agent", "prompt-chaining/single-agent"]

        by_name = {c.name: c for c in candidates}
        assert by_name["single-agent"].is_baseline is True
        assert by_name["multi-agent"].is_baseline is False
        assert by_name["multi-agent"].description == "Researcher -> Writer"
        # Group description fills in when the method has none
        assert by_name["single-agent"].description == "Content pipelines"
        assert all(c.prompt == "Benefits of TDD" for c in candidates)
        assert all(c.owner is PromptChaining for c in candidates)

    def test_function_group_builder(self):
        def classify(prompt: str) -> str:
            return "routed"

        def direct():
            return "direct"

        register_group("routing", prompt="My order never arrived") \
            .add("classifier", classify) \
            .add("single-agent", direct, baseline=True)

        candidates = discover_all()
        assert _names(candidates) == ["routing/classifier", "routing/single-agent"]
        assert all(c.owner is None for c in candidates)

    def test_group_requires_prompt(self):
        with pytest.raises(ValueError):
            register_group("routing", prompt="")

    def test_add_rejects_non_callable(self):
        with pytest.raises(TypeError):
            register_group("routing", prompt="p").add("broken", "not callable")

    def test_subclass_inherits_declarations(self):
        class Base:
            @benchmark("shared")
            def shared(self):
                return "base"

        @benchmark_group("inherit", prompt="p")
        class Child(Base):
            @benchmark("own")
            def own(self):
                return "child"

        assert _names(discover_all()) == ["inherit/own", "inherit/shared"]

    def test_discovery_returns_fresh_objects(self):
        register_group("a", prompt="p").add("x", lambda: "x")
        first = discover_all()
        second = discover_all()
        assert first[0] is not second[0]
        assert first[0] == second[0]

    def test_duplicate_full_names_keep_first(self, quiet_logger, log_stream):
        register_group("dup", prompt="first").add("same", lambda: "1")
        register_group("DUP", prompt="second").add("SAME", lambda: "2")

        candidates = discover_all(logger=quiet_logger)
        assert len(candidates) == 1
        assert candidates[0].prompt == "first"
        assert "Duplicate" in log_stream.getvalue()

    def test_failing_group_is_skipped(self, quiet_logger, log_stream, monkeypatch):
        register_group("good", prompt="p").add("ok", lambda: "ok")
        bad = register_group("bad", prompt="p")

        def explode():
            raise RuntimeError("cannot enumerate")

        monkeypatch.setattr(bad, "candidates", explode)

        assert _names(discover_all(logger=quiet_logger)) == ["good/ok"]
        assert "Skipping benchmark group bad" in log_stream.getvalue()

    def test_modules_are_imported_best_effort(self, quiet_logger, log_stream, monkeypatch):
        module = types.ModuleType("fake_benchmarks_module")

        def body():
            register_group("imported", prompt="p").add("one", lambda: "1")

        module.__dict__["body"] = body
        monkeypatch.setitem(sys.modules, "fake_benchmarks_module", module)
        body()

        candidates = discover_all(["fake_benchmarks_module", "no_such_module_xyz"], logger=quiet_logger)
        assert _names(candidates) == ["imported/one"]
        assert "no_such_module_xyz" in log_stream.getvalue()
        assert len(list_groups()) == 1


class TestFilter:
    """Glob filtering over category/name."""

    @pytest.fixture
    def candidates(self):
        register_group("prompt-chaining", prompt="p") \
            .add("multi-agent", lambda: "a") \
            .add("single-agent", lambda: "b")
        register_group("routing", prompt="q").add("classifier", lambda: "c")
        return discover_all()

    def test_star_and_empty_return_all(self, candidates):
        assert len(filter_candidates(candidates, "*")) == 3
        assert len(filter_candidates(candidates, "")) == 3
        assert len(filter_candidates(candidates, None)) == 3

    def test_category_glob(self, candidates):
        assert _names(filter_candidates(candidates, "prompt-chaining/*")) == [
            "prompt-chaining/multi-agent",
            "prompt-chaining/single-agent",
        ]

    def test_name_glob_across_categories(self, candidates):
        assert _names(filter_candidates(candidates, "*/multi-agent")) == ["prompt-chaining/multi-agent"]

    def test_case_insensitive(self, candidates):
        assert _names(filter_candidates(candidates, "ROUTING/*")) == ["routing/classifier"]

    def test_question_mark_matches_one_character(self, candidates):
        assert _names(filter_candidates(candidates, "routing/classifie?")) == ["routing/classifier"]
        assert filter_candidates(candidates, "routing/classifi?") == []

    def test_whole_name_must_match(self, candidates):
        assert filter_candidates(candidates, "routing") == []

    def test_regex_metacharacters_are_literal(self):
        register_group("a.b", prompt="p").add("x+y", lambda: "1")
        register_group("aXb", prompt="p").add("xxy", lambda: "2")
        candidates = discover_all()

        assert _names(filter_candidates(candidates, "a.b/x+y")) == ["a.b/x+y"]

    def test_no_match_is_empty(self, candidates):
        assert filter_candidates(candidates, "nothing/*") == []


class TestSignature:
    """Accepted candidate shapes."""

    def test_zero_arguments(self):
        assert candidate_signature(lambda: "x") == 0

    def test_unannotated_prompt(self):
        assert candidate_signature(lambda prompt: prompt) == 1

    def test_str_prompt(self):
        def f(prompt: str) -> str:
            return prompt
        assert candidate_signature(f) == 1

    def test_bound_method_ignores_self(self):
        class Owner:
            def run(self, prompt: str):
                return prompt
        assert candidate_signature(Owner().run) == 1

    @pytest.mark.parametrize("func", [
        lambda a, b: a,
        lambda *args: args,
        lambda *, prompt: prompt,
    ])
    def test_unsupported_shapes(self, func):
        with pytest.raises(TypeError):
            candidate_signature(func)

    def test_non_str_annotation(self):
        def f(count: int):
            return str(count)
        with pytest.raises(TypeError):
            candidate_signature(f)


class TestRunResult:
    """RunResult invariants."""

    def test_success_requires_content(self):
        with pytest.raises(ValueError):
            RunResult(category="c", name="n", prompt="p", success=True, content="")

    def test_failure_requires_error_and_no_content(self):
        with pytest.raises(ValueError):
            RunResult(category="c", name="n", prompt="p", success=False)
        with pytest.raises(ValueError):
            RunResult(category="c", name="n", prompt="p", success=False, error="x", content="y")

    def test_full_name_and_duration(self):
        result = RunResult(category="c", name="n", prompt="p", success=True, content="ok", duration_ms=1500)
        assert result.full_name == "c/n"
        assert result.duration_seconds == 1.5

    def test_agent_models_are_copied(self):
        models = {"Writer": "gpt-4.1"}
        result = RunResult(category="c", name="n", prompt="p", success=True, content="ok", agent_models=models)
        models["Writer"] = "changed"
        assert result.agent_models == {"Writer": "gpt-4.1"}

    def test_benchmark_output_with_models(self):
        output = BenchmarkOutput.with_models("text", {"Researcher": "gemini-2.5-flash"})
        assert output.content == "text"
        assert output.agent_models == {"Researcher": "gemini-2.5-flash"}
