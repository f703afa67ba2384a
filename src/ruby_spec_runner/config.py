"""Configuration parsing from ``.spec-runner.yml``."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ruby_spec_runner.runners.base import RubyDebugger
from ruby_spec_runner.utils.paths import PathRewriteRule
from ruby_spec_runner.utils.shell import ShellDialect

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".spec-runner.yml"

DEFAULT_RSPEC_COMMAND = "bundle exec rspec"
DEFAULT_MINITEST_COMMAND = "bundle exec rails t"
DEFAULT_RSPEC_FORMAT = "progress"
DEFAULT_OUTPUT_FILE = str(Path(tempfile.gettempdir()) / "ruby-spec-runner" / "output.txt")

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_SHELL_ENV = "SPEC_RUNNER_SHELL"
_DEBUGGER_ENV = "SPEC_RUNNER_DEBUGGER"


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_value(value: Any) -> Any:
    if isinstance(value, str):
        return _resolve_env_vars(value)
    if isinstance(value, dict):
        return _resolve_dict(value)
    if isinstance(value, list):
        return [_resolve_value(item) for item in value]
    return value


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    return {key: _resolve_value(value) for key, value in data.items()}


def _default_shell() -> str:
    """Guess the dialect of the shell that will receive commands."""
    from_env = os.environ.get(_SHELL_ENV, "").strip()
    if from_env:
        return from_env
    if os.name == "nt":
        return ShellDialect.CMD.value
    if os.environ.get("SHELL", "").endswith("fish"):
        return ShellDialect.FISH.value
    return ShellDialect.POSIX.value


@dataclass(frozen=True)
class ExecutionConfig:
    """Snapshot of every setting that influences command synthesis."""

    project_path: str = ""
    """Workspace root; target of the optional ``cd``."""

    rspec_command: str = DEFAULT_RSPEC_COMMAND
    """Command that launches RSpec."""

    minitest_command: str = DEFAULT_MINITEST_COMMAND
    """Command that launches Minitest."""

    rspec_format: str = DEFAULT_RSPEC_FORMAT
    """RSpec formatter passed as ``-f``."""

    rspec_env: dict[str, str] = field(default_factory=dict)
    """Environment variables prefixed to RSpec runs."""

    rspec_debug_env: dict[str, str] = field(default_factory=dict)
    """Extra environment variables for RSpec debug sessions."""

    minitest_env: dict[str, str] = field(default_factory=dict)
    """Environment variables prefixed to Minitest runs."""

    minitest_debug_env: dict[str, str] = field(default_factory=dict)
    """Extra environment variables for Minitest debug sessions."""

    change_directory_to_workspace_root: bool = True
    """``cd`` into ``project_path`` before running."""

    rewrite_test_paths: tuple[PathRewriteRule, ...] = ()
    """Ordered path substitutions (e.g. host → container)."""

    shell: str = ShellDialect.POSIX.value
    """Dialect of the shell receiving commands: posix, fish or cmd."""

    rspec_decorate_editor_with_results: bool = True
    """Write RSpec's JSON report to the output file."""

    minitest_decorate_editor_with_results: bool = True
    """Write bookkeeping lines and Minitest output to the output file."""

    ruby_debugger: str = RubyDebugger.RDBG.value
    """Debugger protocol for debug descriptors: rdbg or ruby_lsp."""

    output_file_path: str = DEFAULT_OUTPUT_FILE
    """Side file shared with the result presenter."""

    save_before_running: bool = True
    """Save dirty editor buffers before synthesizing a command."""

    clear_terminal_on_test_run: bool = False
    """Clear the terminal before sending a new command."""

    @property
    def dialect(self) -> ShellDialect:
        """Parsed ``shell``; unknown names fall back to POSIX."""
        return ShellDialect.parse(self.shell) or ShellDialect.POSIX


# ── Section parsers ──────────────────────────────────────────────


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def _parse_env(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(val) for key, val in value.items()}


def _parse_rewrite_rules(value: Any) -> tuple[PathRewriteRule, ...]:
    """Parse ``rewrite_test_paths`` as a list of ``{from, to}`` mappings."""
    if not isinstance(value, list):
        return ()

    rules: list[PathRewriteRule] = []
    for item in value:
        if not isinstance(item, dict) or "from" not in item:
            logger.warning("Ignoring malformed rewrite_test_paths entry: %r", item)
            continue
        rules.append(PathRewriteRule(from_path=str(item["from"]), to_path=str(item.get("to", ""))))
    return tuple(rules)


def load_config(root: str | Path) -> ExecutionConfig:
    """Load and parse ``.spec-runner.yml`` from *root*.

    Falls back to defaults and environment variables when the YAML file
    is missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        else:
            logger.warning("%s does not contain a mapping; using defaults", config_file)

    project_raw = _section(raw, "project")
    rspec_raw = _section(raw, "rspec")
    minitest_raw = _section(raw, "minitest")
    runner_raw = _section(raw, "runner")

    return ExecutionConfig(
        project_path=str(project_raw.get("root", root_path)),
        rspec_command=str(rspec_raw.get("command", DEFAULT_RSPEC_COMMAND)),
        minitest_command=str(minitest_raw.get("command", DEFAULT_MINITEST_COMMAND)),
        rspec_format=str(rspec_raw.get("format", DEFAULT_RSPEC_FORMAT)),
        rspec_env=_parse_env(rspec_raw.get("env")),
        rspec_debug_env=_parse_env(rspec_raw.get("debug_env")),
        minitest_env=_parse_env(minitest_raw.get("env")),
        minitest_debug_env=_parse_env(minitest_raw.get("debug_env")),
        change_directory_to_workspace_root=bool(
            runner_raw.get("change_directory_to_workspace_root", True)
        ),
        rewrite_test_paths=_parse_rewrite_rules(runner_raw.get("rewrite_test_paths")),
        shell=str(runner_raw.get("shell", _default_shell())),
        rspec_decorate_editor_with_results=bool(
            rspec_raw.get("decorate_editor_with_results", True)
        ),
        minitest_decorate_editor_with_results=bool(
            minitest_raw.get("decorate_editor_with_results", True)
        ),
        ruby_debugger=str(
            runner_raw.get(
                "ruby_debugger", os.environ.get(_DEBUGGER_ENV, RubyDebugger.RDBG.value)
            )
        ),
        output_file_path=str(runner_raw.get("output_file", DEFAULT_OUTPUT_FILE)),
        save_before_running=bool(runner_raw.get("save_before_running", True)),
        clear_terminal_on_test_run=bool(runner_raw.get("clear_terminal_on_test_run", False)),
    )


def validate_config(config: ExecutionConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.project_path:
        errors.append("project.root is required")

    if not config.rspec_command.strip():
        errors.append("rspec.command must not be empty")

    if not config.minitest_command.strip():
        errors.append("minitest.command must not be empty")

    if not config.rspec_format.strip():
        errors.append("rspec.format must not be empty")

    if ShellDialect.parse(config.shell) is None:
        valid = ", ".join(d.value for d in ShellDialect)
        errors.append(f"runner.shell must be one of: {valid} (got: {config.shell})")

    if RubyDebugger.parse(config.ruby_debugger) is None:
        valid = ", ".join(d.value for d in RubyDebugger)
        errors.append(
            f"runner.ruby_debugger must be one of: {valid} (got: {config.ruby_debugger})"
        )

    if not config.output_file_path:
        errors.append("runner.output_file is required")

    errors.extend(
        f"runner.rewrite_test_paths[{idx}].from must not be empty"
        for idx, rule in enumerate(config.rewrite_test_paths)
        if not rule.from_path
    )

    return errors
