"""Minitest command synthesis: shell commands and debugger launch configurations.

Implements ``CommandSynthesizer`` for projects using Minitest (run through
``rails test`` or any runner accepting ``file:line`` and ``-n``).  With
editor decoration enabled the command records what it runs and tees the
test output into the shared output file::

    cd ROOT && echo 'FILE' > OUT && echo '[12]' >> OUT
        && bundle exec rails t 'FILE:12' | tee -a OUT
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
from ruby_spec_runner.runners.output_contract import bookkeeping_commands, capture_output
from ruby_spec_runner.utils.shell import (
    ShellDialect,
    change_directory,
    cmd_join,
    double_quote,
    quote,
    stringify_envs,
)

if TYPE_CHECKING:
    from ruby_spec_runner.config import ExecutionConfig

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

_TEST_SUFFIX = "_test.rb"
_TEST_DIR = "test/"

_RDBG_SESSION_NAME = "MinitestRdbgDebugger"
_RUBY_LSP_SESSION_NAME = "MinitestRubyLSPDebugger"


def name_filter_regex(example_name: str, dialect: ShellDialect = ShellDialect.POSIX) -> str:
    """Return the double-quoted Ruby regex literal ``"/NAME/"`` for *dialect*.

    ``foo "bar"`` becomes ``"/foo \\"bar\\"/"``; characters the shell would
    expand inside double quotes are escaped as well.
    """
    return double_quote(f"/{example_name}/", dialect)


# ── Synthesizer ──────────────────────────────────────────────────


class MinitestSynthesizer(CommandSynthesizer):
    """Minitest command synthesizer.

    Single tests are addressed as ``file:line``; named groups
    (``describe`` blocks) with ``-n "/name/"`` against the bare file.
    """

    @property
    def name(self) -> str:
        return "minitest"

    def detect(self, file_path: str) -> bool:
        normalized = file_path.replace("\\", "/")
        return normalized.endswith(_TEST_SUFFIX) or f"/{_TEST_DIR}" in f"/{normalized}"

    def name_filter(self, example_name: str, dialect: ShellDialect) -> str:
        return f"-n {name_filter_regex(example_name, dialect)}"

    # ── Shell command ────────────────────────────────────────────

    def build_command(self, target: RunTarget, config: ExecutionConfig) -> str:
        """Return the shell command running *target* with Minitest."""
        dialect = config.dialect
        run = " ".join(
            part
            for part in (
                stringify_envs(config.minitest_env, dialect),
                config.minitest_command,
                quote(self.file_argument(target, config), dialect),
                self.example_filter(target, config),
            )
            if part
        )

        if config.minitest_decorate_editor_with_results:
            output_file = config.output_file_path
            run = cmd_join(
                bookkeeping_commands(
                    target.file_path, target.addressed_lines, output_file, dialect
                ),
                f"{run} {capture_output(output_file, dialect)}",
                dialect=dialect,
            )

        if config.change_directory_to_workspace_root:
            run = change_directory(run, config.project_path, dialect)

        logger.debug("Synthesized minitest command: %s", run)
        return run

    # ── Debug descriptor ─────────────────────────────────────────

    def build_debug_descriptor(
        self, target: RunTarget, config: ExecutionConfig
    ) -> RdbgLaunchConfig | RubyLspLaunchConfig:
        """Return the launch configuration debugging *target*.

        Raises:
            UnsupportedDebuggerError: The configured debugger is unknown.
        """
        debugger = self.resolve_debugger(config)
        file_arg = quote(self.file_argument(target, config), config.dialect)
        name_filter = self.example_filter(target, config)
        env = {**config.minitest_env, **config.minitest_debug_env}
        cwd = config.project_path if config.change_directory_to_workspace_root else None

        if debugger is RubyDebugger.RDBG:
            return RdbgLaunchConfig(
                name=_RDBG_SESSION_NAME,
                command=config.minitest_command,
                script=" ".join(part for part in (file_arg, name_filter) if part),
                env=env,
                cwd=cwd,
            )

        program = " ".join(
            part for part in (config.minitest_command, file_arg, name_filter) if part
        )
        return RubyLspLaunchConfig(name=_RUBY_LSP_SESSION_NAME, program=program, env=env, cwd=cwd)
