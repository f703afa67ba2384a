"""RSpec command synthesis: shell commands and debugger launch configurations.

Implements ``CommandSynthesizer`` for projects using RSpec.  Commands
take the shape::

    (cd ROOT && ENV=1 bundle exec rspec [--only-failures] -f FORMAT
        [-f j --out OUTPUT] 'FILE[:LINE]' [-e 'GROUP NAME'])

The ``( ... )`` subshell keeps the ``cd`` out of the user's shell.  fish
parses parentheses as command substitution, so fish gets ``cd ROOT; ...``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ruby_spec_runner.runners.base import (
    CommandSynthesizer,
    RdbgLaunchConfig,
    RubyDebugger,
    RubyLspLaunchConfig,
    RunTarget,
)
from ruby_spec_runner.runners.output_contract import rspec_json_report_flags
from ruby_spec_runner.utils.shell import ShellDialect, change_directory, quote, stringify_envs

if TYPE_CHECKING:
    from ruby_spec_runner.config import ExecutionConfig

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

_SPEC_SUFFIX = "_spec.rb"
_SPEC_DIR = "spec/"
_ONLY_FAILURES = "--only-failures"

_RDBG_SESSION_NAME = "SpecRdbgDebugger"
_RUBY_LSP_SESSION_NAME = "SpecRubyLSPDebugger"


# ── Synthesizer ──────────────────────────────────────────────────


class RspecSynthesizer(CommandSynthesizer):
    """RSpec command synthesizer.

    Single examples are addressed as ``file:line``; named groups with
    ``-e`` (RSpec matches the text against each example's full
    description, so every example nested in the group runs).
    """

    @property
    def name(self) -> str:
        return "rspec"

    def detect(self, file_path: str) -> bool:
        normalized = file_path.replace("\\", "/")
        return normalized.endswith(_SPEC_SUFFIX) or f"/{_SPEC_DIR}" in f"/{normalized}"

    def name_filter(self, example_name: str, dialect: ShellDialect) -> str:
        return f"-e {quote(example_name, dialect)}"

    # ── Shell command ────────────────────────────────────────────

    def build_command(self, target: RunTarget, config: ExecutionConfig) -> str:
        """Return the shell command running *target* with RSpec."""
        dialect = config.dialect
        command = " ".join(
            part
            for part in (
                stringify_envs(config.rspec_env, dialect),
                config.rspec_command,
                *self._flags(target, config),
                quote(self.file_argument(target, config), dialect),
                self.example_filter(target, config),
            )
            if part
        )

        if config.change_directory_to_workspace_root:
            command = change_directory(command, config.project_path, dialect, isolate=True)

        logger.debug("Synthesized rspec command: %s", command)
        return command

    def build_all_command(self, config: ExecutionConfig) -> str:
        """Return the command running every spec under ``spec/``."""
        return self.build_command(RunTarget(file_path=_SPEC_DIR), config)

    # ── Debug descriptor ─────────────────────────────────────────

    def build_debug_descriptor(
        self, target: RunTarget, config: ExecutionConfig
    ) -> RdbgLaunchConfig | RubyLspLaunchConfig:
        """Return the launch configuration debugging *target*.

        Raises:
            UnsupportedDebuggerError: The configured debugger is unknown.
        """
        debugger = self.resolve_debugger(config)
        dialect = config.dialect
        file_arg = quote(self.file_argument(target, config), dialect)
        name_filter = self.example_filter(target, config)
        env = {**config.rspec_env, **config.rspec_debug_env}
        cwd = config.project_path if config.change_directory_to_workspace_root else None
        flags = self._flags(target, config)

        if debugger is RubyDebugger.RDBG:
            return RdbgLaunchConfig(
                name=_RDBG_SESSION_NAME,
                command=config.rspec_command,
                script=" ".join(part for part in (file_arg, name_filter) if part),
                env=env,
                args=tuple(flags),
                cwd=cwd,
            )

        program = " ".join(
            part for part in (config.rspec_command, *flags, file_arg, name_filter) if part
        )
        return RubyLspLaunchConfig(name=_RUBY_LSP_SESSION_NAME, program=program, env=env, cwd=cwd)

    # ── Helpers ──────────────────────────────────────────────────

    def _flags(self, target: RunTarget, config: ExecutionConfig) -> list[str]:
        """Return the option flags placed between the command and the file."""
        flags: list[str] = []
        if target.failed_only:
            flags.append(_ONLY_FAILURES)
        flags.append(f"-f {config.rspec_format}")
        if config.rspec_decorate_editor_with_results:
            flags.append(rspec_json_report_flags(config.output_file_path, config.dialect))
        return flags
