"""Tests for config.py: .spec-runner.yml parsing and validation."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from ruby_spec_runner.config import (
    DEFAULT_MINITEST_COMMAND,
    DEFAULT_OUTPUT_FILE,
    DEFAULT_RSPEC_COMMAND,
    ExecutionConfig,
    _default_shell,
    _parse_rewrite_rules,
    _resolve_dict,
    _resolve_env_vars,
    load_config,
    validate_config,
)
from ruby_spec_runner.utils.paths import PathRewriteRule
from ruby_spec_runner.utils.shell import ShellDialect

if TYPE_CHECKING:
    import pytest


def _write_config(root: Path, data: dict[str, Any]) -> None:
    """Write .spec-runner.yml with given data."""
    (root / ".spec-runner.yml").write_text(yaml.dump(data), encoding="utf-8")


# ── _resolve_env_vars / _resolve_dict ────────────────────────────


class TestResolveEnvVars:
    def test_resolves_existing_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _resolve_env_vars("${MY_VAR}") == "hello"

    def test_missing_var_returns_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert _resolve_env_vars("${MISSING_VAR}") == ""

    def test_no_vars_unchanged(self) -> None:
        assert _resolve_env_vars("plain text") == "plain text"


class TestResolveDict:
    def test_resolves_nested_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOST_ROOT", "/host")
        result = _resolve_dict(
            {"runner": {"rewrite_test_paths": [{"from": "${HOST_ROOT}", "to": "/app"}]}}
        )
        assert result["runner"]["rewrite_test_paths"][0]["from"] == "/host"

    def test_non_strings_unchanged(self) -> None:
        assert _resolve_dict({"a": 1, "b": True}) == {"a": 1, "b": True}


class TestParseRewriteRules:
    def test_rules(self) -> None:
        rules = _parse_rewrite_rules([{"from": "/host", "to": "/app"}])
        assert rules == (PathRewriteRule("/host", "/app"),)

    def test_malformed_entries_are_skipped(self) -> None:
        rules = _parse_rewrite_rules(["/host", {"to": "/app"}, {"from": "/a"}])
        assert rules == (PathRewriteRule("/a", ""),)

    def test_not_a_list(self) -> None:
        assert _parse_rewrite_rules({"from": "/host"}) == ()


class TestDefaultShell:
    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPEC_RUNNER_SHELL", "fish")
        assert _default_shell() == "fish"

    def test_fish_login_shell(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SPEC_RUNNER_SHELL", raising=False)
        monkeypatch.setattr("ruby_spec_runner.config.os.name", "posix")
        monkeypatch.setenv("SHELL", "/usr/local/bin/fish")
        assert _default_shell() == "fish"

    def test_posix_login_shell(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SPEC_RUNNER_SHELL", raising=False)
        monkeypatch.setattr("ruby_spec_runner.config.os.name", "posix")
        monkeypatch.setenv("SHELL", "/bin/zsh")
        assert _default_shell() == "posix"


# ── load_config ──────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SPEC_RUNNER_DEBUGGER", raising=False)
        config = load_config(tmp_path)

        assert config.project_path == str(tmp_path.resolve())
        assert config.rspec_command == DEFAULT_RSPEC_COMMAND
        assert config.minitest_command == DEFAULT_MINITEST_COMMAND
        assert config.rspec_format == "progress"
        assert config.change_directory_to_workspace_root is True
        assert config.rspec_decorate_editor_with_results is True
        assert config.ruby_debugger == "rdbg"
        assert config.output_file_path == DEFAULT_OUTPUT_FILE
        assert config.save_before_running is True
        assert config.clear_terminal_on_test_run is False
        assert config.rewrite_test_paths == ()

    def test_full_file(self, tmp_path: Path) -> None:
        _write_config(
            tmp_path,
            {
                "project": {"root": "/proj"},
                "rspec": {
                    "command": "bin/rspec",
                    "format": "documentation",
                    "env": {"RAILS_ENV": "test"},
                    "debug_env": {"RUBY_DEBUG_OPEN": "true"},
                    "decorate_editor_with_results": False,
                },
                "minitest": {"command": "bin/rails test", "env": {"PARALLEL_WORKERS": 1}},
                "runner": {
                    "change_directory_to_workspace_root": False,
                    "rewrite_test_paths": [{"from": "/proj", "to": "/app"}],
                    "shell": "fish",
                    "ruby_debugger": "ruby_lsp",
                    "output_file": "/tmp/spec-output.txt",
                    "save_before_running": False,
                    "clear_terminal_on_test_run": True,
                },
            },
        )
        config = load_config(tmp_path)

        assert config.project_path == "/proj"
        assert config.rspec_command == "bin/rspec"
        assert config.rspec_format == "documentation"
        assert config.rspec_env == {"RAILS_ENV": "test"}
        assert config.rspec_debug_env == {"RUBY_DEBUG_OPEN": "true"}
        assert config.rspec_decorate_editor_with_results is False
        assert config.minitest_command == "bin/rails test"
        assert config.minitest_env == {"PARALLEL_WORKERS": "1"}
        assert config.change_directory_to_workspace_root is False
        assert config.rewrite_test_paths == (PathRewriteRule("/proj", "/app"),)
        assert config.dialect is ShellDialect.FISH
        assert config.ruby_debugger == "ruby_lsp"
        assert config.output_file_path == "/tmp/spec-output.txt"
        assert config.save_before_running is False
        assert config.clear_terminal_on_test_run is True

    def test_env_var_resolution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOCKER_ROOT", "/container")
        _write_config(
            tmp_path,
            {"runner": {"rewrite_test_paths": [{"from": str(tmp_path), "to": "${DOCKER_ROOT}"}]}},
        )
        config = load_config(tmp_path)
        assert config.rewrite_test_paths[0].to_path == "/container"

    def test_debugger_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPEC_RUNNER_DEBUGGER", "ruby_lsp")
        assert load_config(tmp_path).ruby_debugger == "ruby_lsp"

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        (tmp_path / ".spec-runner.yml").write_text("- just\n- a list\n", encoding="utf-8")
        assert load_config(tmp_path).rspec_command == DEFAULT_RSPEC_COMMAND

    def test_unknown_shell_falls_back_to_posix(self) -> None:
        assert ExecutionConfig(shell="tcsh").dialect is ShellDialect.POSIX


# ── validate_config ──────────────────────────────────────────────


class TestValidateConfig:
    def test_valid(self) -> None:
        assert validate_config(ExecutionConfig(project_path="/proj")) == []

    def test_missing_root(self) -> None:
        assert "project.root is required" in validate_config(ExecutionConfig())

    def test_empty_commands(self) -> None:
        config = ExecutionConfig(project_path="/p", rspec_command=" ", minitest_command="")
        errors = validate_config(config)
        assert "rspec.command must not be empty" in errors
        assert "minitest.command must not be empty" in errors

    def test_unknown_shell(self) -> None:
        errors = validate_config(ExecutionConfig(project_path="/p", shell="tcsh"))
        assert errors == ["runner.shell must be one of: posix, fish, cmd (got: tcsh)"]

    def test_unknown_debugger(self) -> None:
        errors = validate_config(ExecutionConfig(project_path="/p", ruby_debugger="gdb"))
        assert errors == ["runner.ruby_debugger must be one of: rdbg, ruby_lsp (got: gdb)"]

    def test_empty_rewrite_source(self) -> None:
        config = replace(
            ExecutionConfig(project_path="/p"),
            rewrite_test_paths=(PathRewriteRule("/a", "/b"), PathRewriteRule("", "/c")),
        )
        assert validate_config(config) == ["runner.rewrite_test_paths[1].from must not be empty"]
