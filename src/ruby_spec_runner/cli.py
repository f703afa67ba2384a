"""ruby-spec-runner CLI: top-level command group."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import re
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

import click
import yaml

from ruby_spec_runner import __version__
from ruby_spec_runner.config import CONFIG_FILE_NAME, ExecutionConfig, load_config, validate_config
from ruby_spec_runner.invocation import (
    DebugLauncher,
    InvocationHandler,
    RunRequest,
    Terminal,
    TerminalManager,
)
from ruby_spec_runner.parsing.regions import get_test_regions
from ruby_spec_runner.reporters.terminal import console, reporter
from ruby_spec_runner.runners.output_contract import read_output_file
from ruby_spec_runner.runners.registry import DEFAULT_FRAMEWORK, get_registry
from ruby_spec_runner.utils.shell import ShellDialect

logger = logging.getLogger(__name__)

# Env keys whose values are masked by ``config show``.
_SENSITIVE_KEY_RE = re.compile(r"(key|token|secret|password|dsn)", re.IGNORECASE)
_MIN_MASKED_VALUE_LENGTH = 8


# ── Collaborators for a plain terminal ───────────────────────────


class _StdoutTerminal(Terminal):
    """Prints commands instead of typing them into an editor terminal."""

    @property
    def is_alive(self) -> bool:
        return True

    def send_text(self, text: str) -> None:
        click.echo(text)


class _StdoutDebugLauncher(DebugLauncher):
    """Prints launch configurations as JSON for the editor to pick up."""

    def start_debugging(self, launch_config: dict[str, Any]) -> None:
        click.echo(json.dumps(launch_config, indent=2))


# ── Helpers ──────────────────────────────────────────────────────


def _load_yml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}

    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(parsed, dict):
        return parsed
    return {}


def _set_nested_config_value(config: dict[str, Any], dotted_key: str, value: Any) -> None:
    key_parts = [part.strip() for part in dotted_key.split(".") if part.strip()]
    if not key_parts:
        raise ValueError("Configuration key must not be empty.")

    cursor: dict[str, Any] = config
    for part in key_parts[:-1]:
        existing = cursor.get(part)
        if isinstance(existing, dict):
            cursor = existing
            continue

        next_node: dict[str, Any] = {}
        cursor[part] = next_node
        cursor = next_node

    cursor[key_parts[-1]] = value


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask env values whose variable names look like credentials."""
    result = copy.deepcopy(config_dict)

    for env_field in ("rspec_env", "rspec_debug_env", "minitest_env", "minitest_debug_env"):
        envs = result.get(env_field)
        if not isinstance(envs, dict):
            continue
        for key, value in envs.items():
            if not _SENSITIVE_KEY_RE.search(key) or not value:
                continue
            if len(value) > _MIN_MASKED_VALUE_LENGTH:
                envs[key] = f"{value[:4]}...{value[-4:]}"
            else:
                envs[key] = "***"

    return result


def _parse_line_set(
    _ctx: click.Context, _param: click.Parameter, value: str | None
) -> tuple[int, ...]:
    if not value:
        return ()
    try:
        return tuple(int(part) for part in value.split(",") if part.strip())
    except ValueError as exc:
        msg = f"expected comma-separated line numbers, got {value!r}"
        raise click.BadParameter(msg) from exc


def _load_runtime_config(path: str, shell: str | None) -> ExecutionConfig:
    try:
        config = load_config(path)
    except (OSError, yaml.YAMLError) as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e

    if shell:
        logger.debug("Overriding shell dialect with %s", shell)
        config = replace(config, shell=shell)
    return config


def _make_handler(config: ExecutionConfig, active_file: str | None = None) -> InvocationHandler:
    return InvocationHandler(
        config,
        terminals=TerminalManager(lambda _name: _StdoutTerminal()),
        debug_launcher=_StdoutDebugLauncher(),
        active_file=lambda: active_file,
    )


def _check_failed_only(file_path: str, options: dict[str, Any]) -> None:
    """Reject options ``--failed-only`` cannot honour (it re-runs a whole RSpec file)."""
    conflicting = [
        f"--{flag}"
        for flag, option in (
            ("line", "line"),
            ("name", "example_name"),
            ("lines", "line_set"),
            ("framework", "framework"),
        )
        if options[option]
    ]
    if conflicting:
        msg = f"--failed-only cannot be combined with {', '.join(conflicting)}"
        raise click.UsageError(msg)

    if get_registry().detect(file_path).name != DEFAULT_FRAMEWORK:
        msg = f"--failed-only only supports RSpec files, got {file_path}"
        raise click.UsageError(msg)


def _target_options(func: Any) -> Any:
    """Attach the addressing options shared by ``command`` and ``debug-config``."""
    options = [
        click.argument("file_path", metavar="FILE", type=click.Path(dir_okay=False)),
        click.option(
            "--line", type=int, default=None, help="Run the test defined at this (1-based) line."
        ),
        click.option("--name", "example_name", help="Name of a describe/context group to run."),
        click.option(
            "--lines",
            "line_set",
            callback=_parse_line_set,
            help="Comma-separated lines of the named group (required with --name).",
        ),
        click.option(
            "--framework",
            type=click.Choice(get_registry().list_frameworks()),
            default=None,
            help="Test framework (default: detected from the file name).",
        ),
        click.option(
            "--shell",
            type=click.Choice([d.value for d in ShellDialect]),
            default=None,
            help="Shell dialect of the receiving terminal (overrides config).",
        ),
        click.option(
            "--path",
            default=".",
            type=click.Path(exists=True, file_okay=False, resolve_path=True),
            help="Project root directory.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


# ── Commands ─────────────────────────────────────────────────────


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="ruby-spec-runner")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """ruby-spec-runner: build the exact command that runs one Ruby test."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("file_path", metavar="FILE", type=click.Path(exists=True, dir_okay=False))
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of a table.")
def regions(file_path: str, *, as_json: bool) -> None:
    """List the test definitions detected in FILE."""
    text = Path(file_path).read_text(encoding="utf-8", errors="replace")
    found = get_test_regions(text)

    if as_json:
        click.echo(json.dumps([asdict(region) for region in found], indent=2))
        return

    reporter.print_regions(file_path, found)


@cli.command()
@_target_options
@click.option("--failed-only", is_flag=True, help="Only re-run examples that failed (RSpec).")
def command(**kwargs: Any) -> None:
    """Print the shell command running FILE (or one test in it)."""
    file_path = os.path.abspath(kwargs["file_path"])
    if kwargs["failed_only"]:
        _check_failed_only(file_path, kwargs)

    config = _load_runtime_config(kwargs["path"], kwargs["shell"])
    handler = _make_handler(config, active_file=file_path)

    if kwargs["failed_only"]:
        result = asyncio.run(handler.run_failed_examples())
    else:
        request = RunRequest(
            file_path=file_path,
            line=kwargs["line"],
            example_name=kwargs["example_name"],
            line_set=kwargs["line_set"],
            framework=kwargs["framework"],
        )
        result = asyncio.run(handler.run(request))

    if result is None:
        raise click.Abort


@cli.command("debug-config")
@_target_options
def debug_config(**kwargs: Any) -> None:
    """Print the debugger launch configuration for FILE as JSON."""
    config = _load_runtime_config(kwargs["path"], kwargs["shell"])
    request = RunRequest(
        file_path=os.path.abspath(kwargs["file_path"]),
        line=kwargs["line"],
        example_name=kwargs["example_name"],
        line_set=kwargs["line_set"],
        framework=kwargs["framework"],
        debugging=True,
    )

    if asyncio.run(_make_handler(config).run(request)) is None:
        raise click.Abort


@cli.command("run-all")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--shell",
    type=click.Choice([d.value for d in ShellDialect]),
    default=None,
    help="Shell dialect of the receiving terminal (overrides config).",
)
def run_all(path: str, shell: str | None) -> None:
    """Print the command running every spec under spec/."""
    config = _load_runtime_config(path, shell)
    if asyncio.run(_make_handler(config).run_all_examples()) is None:
        raise click.Abort


@cli.command("last-run")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def last_run(path: str) -> None:
    """Show what the last decorated run recorded in the output file."""
    config = _load_runtime_config(path, None)
    output_file = Path(config.output_file_path)
    run_output = read_output_file(output_file)

    if run_output is None:
        reporter.print_warning(f"No recorded run found in {output_file}")
        return

    reporter.print_run_output(run_output)


# ── config ───────────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Manage `.spec-runner.yml` configuration values."""


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_set(key: str, value: str, path: str) -> None:
    """Set a configuration key in `.spec-runner.yml` using dotted paths.

    VALUE is parsed as YAML, so `true`, `42` and `{A: b}` keep their types.

    Example:
      ruby-spec-runner config set rspec.command "bin/rspec"
    """
    config_file = Path(path) / CONFIG_FILE_NAME
    config_data = _load_yml(config_file)
    try:
        _set_nested_config_value(config_data, key, yaml.safe_load(value))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="KEY") from e

    config_file.write_text(
        yaml.safe_dump(config_data, sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )
    reporter.print_success(f"Updated {key} in {config_file}")


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
@click.option("--no-mask", is_flag=True, help="Show sensitive env values unmasked.")
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display the resolved configuration."""
    config = _load_runtime_config(path, None)
    config_dict = asdict(config)
    config_dict["rewrite_test_paths"] = [
        {"from": rule["from_path"], "to": rule["to_path"]}
        for rule in config_dict["rewrite_test_paths"]
    ]

    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
        return

    reporter.print_header("Configuration")
    click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.spec-runner.yml`."""
    config = _load_runtime_config(path, None)
    errors = validate_config(config)

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")
    raise click.Abort
