"""
Tests for run configuration, settings and run id generation.
"""

import json
from datetime import datetime, timezone

import pytest

from benchllm.config import RunConfig, Settings, generate_run_id, slugify
from benchllm.errors import ConfigError


class TestSlugify:
    """Run directory slugs."""

    def test_basic(self):
        assert slugify("Plan a 7-day trip!!") == "plan-a-7-day-trip"

    def test_only_allowed_characters(self):
        slug = slugify("Ünïcode & Symbols_here (test) #42")
        assert slug == "ünïcode--symbols-here-test-42"
        assert not slug.startswith("-") and not slug.endswith("-")

    def test_truncated_to_thirty(self):
        slug = slugify("a very long prompt that keeps going and going forever")
        assert len(slug) <= 30
        assert not slug.endswith("-")

    def test_idempotent(self):
        once = slugify("Benefits of Test Driven Development")
        assert slugify(once) == once

    def test_keeps_non_ascii_letters(self):
        assert slugify("Café au lait") == "café-au-lait"
        assert slugify("日本語の質問") == "日本語の質問"

    def test_empty(self):
        assert slugify("!!!") == ""
        assert slugify("") == ""


class TestRunId:
    """Effective run ids."""

    def test_generated_from_timestamp_and_prompt(self):
        ts = datetime(2026, 1, 5, 10, 15, 0, tzinfo=timezone.utc)
        assert generate_run_id("Benefits of TDD", ts) == "2026-01-05_101500_benefits-of-tdd"

    def test_empty_slug_has_no_trailing_underscore(self):
        ts = datetime(2026, 1, 5, 10, 15, 0, tzinfo=timezone.utc)
        assert generate_run_id("???", ts) == "2026-01-05_101500"

    def test_explicit_run_id_wins(self):
        assert RunConfig(run_id="my-run").effective_run_id("anything") == "my-run"

    def test_run_config_id_is_stable(self):
        config = RunConfig()
        assert config.effective_run_id("p") == config.effective_run_id("p")

    def test_to_dict(self):
        data = RunConfig(filter="routing/*", evaluate=True).to_dict("My prompt")
        assert data["prompt"] == "My prompt"
        assert data["filter"] == "routing/*"
        assert data["evaluate"] is True
        assert data["exporters"] == ["console"]
        assert data["run_id"].endswith("_my-prompt")


class TestSettings:
    """JSON settings with CLI overrides."""

    def test_defaults_without_file(self):
        settings = Settings.load(None)
        assert settings.filter == "*"
        assert settings.artifacts_path == "./runs"
        assert settings.exporters == ["console"]

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "benchllm.json"
        path.write_text(json.dumps({
            "evaluation_model": "gemini-2.5-pro",
            "filter": "routing/*",
            "evaluate": True,
            "exporters": "json",
            "modules": ["my_benchmarks"],
        }))
        settings = Settings.load(str(path))
        assert settings.evaluation_model == "gemini-2.5-pro"
        assert settings.filter == "routing/*"
        assert settings.exporters == ["json"]
        assert settings.modules == ["my_benchmarks"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            Settings.load(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            Settings.load(str(path))

    def test_unknown_keys(self, tmp_path):
        path = tmp_path / "typo.json"
        path.write_text(json.dumps({"filtr": "*"}))
        with pytest.raises(ConfigError, match="filtr"):
            Settings.load(str(path))

    def test_overrides_skip_none(self):
        settings = Settings(filter="a/*", evaluate=False).with_overrides(filter=None, evaluate=True)
        assert settings.filter == "a/*"
        assert settings.evaluate is True

    def test_evaluate_requires_model(self):
        with pytest.raises(ConfigError):
            Settings(evaluate=True).validate()
        Settings(evaluate=True, evaluation_model="gemini-2.5-flash").validate()

    def test_unknown_judge(self):
        with pytest.raises(ConfigError):
            Settings(judge="vibes").validate()

    def test_to_run_config(self):
        config = Settings(filter="x/*", run_id="r1", exporters=["json"]).to_run_config()
        assert isinstance(config, RunConfig)
        assert config.filter == "x/*"
        assert config.run_id == "r1"
        assert config.exporters == ["json"]
