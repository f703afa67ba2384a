"""Abstract base class, data model and errors for command synthesizers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ruby_spec_runner.parsing.regions import strip_title_quotes
from ruby_spec_runner.utils.paths import remap_path

if TYPE_CHECKING:
    from ruby_spec_runner.config import ExecutionConfig
    from ruby_spec_runner.utils.shell import ShellDialect


# ── Errors ───────────────────────────────────────────────────────


class SpecRunnerError(Exception):
    """Base class for errors reported to the user at the invocation boundary."""


class NoWorkspaceOpenError(SpecRunnerError):
    """No project root could be resolved."""


class NoActiveTargetError(SpecRunnerError):
    """No file was given and no active editor file is available."""


class UnsupportedDebuggerError(SpecRunnerError):
    """The configuration names a debugger protocol that is not implemented."""

    def __init__(self, debugger: str) -> None:
        self.debugger = debugger
        super().__init__(f"Unknown configured debugger option: {debugger}")


class MissingSpecDirectoryError(SpecRunnerError):
    """A suite-wide run was requested but the project has no ``spec/`` directory."""


# ── Run targets ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RunTarget:
    """What the user asked to run."""

    file_path: str
    """Local path of the test file (or directory, for suite-wide runs)."""

    line: int | None = None
    """Line to run with the framework's ``path:line`` addressing."""

    example_name: str | None = None
    """Name of a group (``describe``/``context``) to select by name filter."""

    line_set: tuple[int, ...] = ()
    """Lines covered by the named group, in order."""

    debugging: bool = False
    """Launch under the configured debugger instead of a terminal."""

    failed_only: bool = False
    """Run only the examples that failed last time (RSpec ``--only-failures``)."""

    @property
    def is_named_group(self) -> bool:
        """``True`` when name-filter addressing replaces line addressing."""
        return bool(self.example_name) and bool(self.line_set)

    @property
    def addressed_lines(self) -> list[int] | None:
        """Lines this target restricts the run to, ``None`` meaning all."""
        if self.is_named_group:
            return list(self.line_set)
        if self.line is not None:
            return [self.line]
        return None


# ── Debug descriptors ────────────────────────────────────────────


class RubyDebugger(Enum):
    """Debugger protocols a descriptor can be built for."""

    RDBG = "rdbg"
    RUBY_LSP = "ruby_lsp"

    @classmethod
    def parse(cls, value: str) -> RubyDebugger | None:
        """Return the protocol named *value*, or ``None`` when unknown."""
        for debugger in cls:
            if debugger.value == value:
                return debugger
        return None


@dataclass(frozen=True)
class RdbgLaunchConfig:
    """Launch configuration for the ``rdbg`` (debug gem) adapter."""

    name: str
    command: str
    script: str
    env: dict[str, str] = field(default_factory=dict)
    args: tuple[str, ...] = ()
    cwd: str | None = None
    ask_parameters: bool = False
    use_terminal: bool = True

    debugger = RubyDebugger.RDBG

    def to_launch_config(self) -> dict[str, Any]:
        """Return the JSON-ready mapping the ``rdbg`` launcher consumes."""
        config: dict[str, Any] = {
            "type": self.debugger.value,
            "name": self.name,
            "request": "launch",
            "command": self.command,
            "script": self.script,
            "env": dict(self.env),
            "args": list(self.args),
            "askParameters": self.ask_parameters,
            # Without a terminal rdbg prefixes absolute script paths with "./".
            "useTerminal": self.use_terminal,
        }
        if self.cwd is not None:
            config["cwd"] = self.cwd
        return config


@dataclass(frozen=True)
class RubyLspLaunchConfig:
    """Launch configuration for the Ruby LSP debugger."""

    name: str
    program: str
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    debugger = RubyDebugger.RUBY_LSP

    def to_launch_config(self) -> dict[str, Any]:
        """Return the JSON-ready mapping the Ruby LSP launcher consumes."""
        config: dict[str, Any] = {
            "type": self.debugger.value,
            "name": self.name,
            "request": "launch",
            "program": self.program,
            "env": dict(self.env),
        }
        if self.cwd is not None:
            config["cwd"] = self.cwd
        return config


DebugDescriptor = RdbgLaunchConfig | RubyLspLaunchConfig


# ── Synthesizer ──────────────────────────────────────────────────


class CommandSynthesizer(ABC):
    """Turns a ``RunTarget`` plus configuration into a runnable instruction.

    Implementations are stateless: both operations are pure functions of
    their arguments and never execute anything.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Framework identifier (``'rspec'`` or ``'minitest'``)."""

    @abstractmethod
    def build_command(self, target: RunTarget, config: ExecutionConfig) -> str:
        """Return the shell command running *target*."""

    @abstractmethod
    def build_debug_descriptor(
        self, target: RunTarget, config: ExecutionConfig
    ) -> RdbgLaunchConfig | RubyLspLaunchConfig:
        """Return the debugger launch configuration for *target*.

        Raises:
            UnsupportedDebuggerError: ``config.ruby_debugger`` is not a
                known protocol.
        """

    @abstractmethod
    def detect(self, file_path: str) -> bool:
        """Return ``True`` if *file_path* looks like a test file of this framework."""

    @abstractmethod
    def name_filter(self, example_name: str, dialect: ShellDialect) -> str:
        """Return the option selecting examples by *example_name*."""

    # ── Shared addressing ────────────────────────────────────────

    def file_argument(self, target: RunTarget, config: ExecutionConfig) -> str:
        """Return the remapped file path, suffixed with ``:line`` for single lines.

        Named groups are addressed by name filter, so their file argument
        never carries a line suffix.
        """
        path = remap_path(target.file_path, config.rewrite_test_paths)
        if target.is_named_group or target.line is None:
            return path
        return f"{path}:{target.line}"

    def example_filter(self, target: RunTarget, config: ExecutionConfig) -> str:
        """Return the name filter for named groups, ``""`` otherwise."""
        if not target.is_named_group or target.example_name is None:
            return ""
        return self.name_filter(strip_title_quotes(target.example_name), config.dialect)

    @staticmethod
    def resolve_debugger(config: ExecutionConfig) -> RubyDebugger:
        """Return the configured protocol or raise ``UnsupportedDebuggerError``."""
        debugger = RubyDebugger.parse(config.ruby_debugger)
        if debugger is None:
            raise UnsupportedDebuggerError(config.ruby_debugger)
        return debugger
