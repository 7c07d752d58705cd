"""
Tests for the command line entry point.
"""

import json

import pytest

from benchllm.base import register_group
from benchllm.cli import EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK, build_parser, load_settings, main

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)


class TestParser:
    def test_run_options(self):
        args = build_parser().parse_args([
            "-m", "pkg.one", "-m", "pkg.two", "run",
            "--filter", "routing/*", "--run-id", "r1", "-e", "json", "-e", "markdown", "--evaluate",
        ])
        assert args.command == "run"
        assert args.module == ["pkg.one", "pkg.two"]
        assert args.filter == "routing/*"
        assert args.exporter == ["json", "markdown"]
        assert args.evaluate is True

    def test_flags_left_unset_do_not_override_config(self, tmp_path):
        path = tmp_path / "benchllm.json"
        path.write_text(json.dumps({"filter": "routing/*", "exporters": ["json"], "evaluate": True,
                                    "evaluation_model": "gemini-2.5-pro"}))
        args = build_parser().parse_args(["--config", str(path), "run"])

        settings = load_settings(args)
        assert settings.filter == "routing/*"
        assert settings.exporters == ["json"]
        assert settings.evaluate is True

    def test_cli_overrides_config(self, tmp_path):
        path = tmp_path / "benchllm.json"
        path.write_text(json.dumps({"filter": "routing/*", "modules": ["from_file"]}))
        args = build_parser().parse_args(["--config", str(path), "-m", "from_cli", "run", "-f", "chain/*"])

        settings = load_settings(args)
        assert settings.filter == "chain/*"
        assert settings.modules == ["from_file", "from_cli"]

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Exit codes."""

    def test_list(self, capsys):
        register_group("g", prompt="p").add("a", lambda: "a")
        assert main(["list"]) == EXIT_OK
        assert "Total: 1 benchmarks" in capsys.readouterr().out

    def test_run_success(self, tmp_path):
        register_group("g", prompt="p").add("a", lambda: "a")
        code = main(["run", "--artifacts", str(tmp_path), "--run-id", "cli-run", "-e", "json"])
        assert code == EXIT_OK
        assert (tmp_path / "cli-run" / "results.json").exists()

    def test_failed_candidate_exits_one(self, tmp_path):
        def broken():
            raise RuntimeError("down")

        register_group("g", prompt="p").add("broken", broken)
        assert main(["run", "--artifacts", str(tmp_path), "-e", "json"]) == EXIT_FAILURE

    def test_no_match_exits_one(self, tmp_path):
        register_group("g", prompt="p").add("a", lambda: "a")
        assert main(["run", "--artifacts", str(tmp_path), "-f", "nothing/*"]) == EXIT_FAILURE

    def test_evaluate_without_api_key(self, tmp_path):
        register_group("g", prompt="p").add("a", lambda: "a")
        code = main(["run", "--artifacts", str(tmp_path), "--evaluate", "--judge-model", "gemini-2.5-flash"])
        assert code == EXIT_FAILURE

    def test_evaluate_command_requires_model(self, tmp_path):
        assert main(["evaluate", str(tmp_path)]) == EXIT_FAILURE

    def test_missing_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.json"), "list"]) == EXIT_FAILURE

    def test_keyboard_interrupt(self, tmp_path):
        def interrupt():
            raise KeyboardInterrupt

        register_group("g", prompt="p").add("ctrl-c", interrupt)
        assert main(["run", "--artifacts", str(tmp_path), "-e", "json"]) == EXIT_INTERRUPTED

    def test_evaluate_with_unknown_judge_in_config(self, tmp_path, capsys):
        path = tmp_path / "benchllm.json"
        path.write_text(json.dumps({"judge": "bogus"}))
        code = main(["--config", str(path), "evaluate", str(tmp_path), "--judge-model", "gemini-2.5-flash"])
        assert code == EXIT_FAILURE
        assert "Unknown judge 'bogus'" in capsys.readouterr().err
