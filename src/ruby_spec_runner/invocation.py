"""Invocation handling: resolve a run request, synthesize, dispatch, report.

This is the boundary between the pure synthesis core and its
collaborators.  The editor (or CLI) supplies:

* a ``Terminal`` factory; the handle is reused while alive and recreated
  after it exits,
* a ``DebugLauncher`` consuming launch configurations,
* optionally a ``ResultPresenter`` told which file is pending,
* optionally an async ``save_all`` hook awaited before anything is built,
* optionally an ``active_file`` callback used when a request names no file.

``SpecRunnerError`` subclasses are logged and shown to the user here and
never propagate; anything else does.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.markup import escape

from ruby_spec_runner.reporters.terminal import reporter as default_reporter
from ruby_spec_runner.runners.base import (
    MissingSpecDirectoryError,
    NoActiveTargetError,
    NoWorkspaceOpenError,
    RunTarget,
    SpecRunnerError,
    UnsupportedDebuggerError,
)
from ruby_spec_runner.runners.registry import get_registry
from ruby_spec_runner.runners.rspec_runner import RspecSynthesizer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ruby_spec_runner.config import ExecutionConfig
    from ruby_spec_runner.reporters.terminal import CLIReporter
    from ruby_spec_runner.runners.base import CommandSynthesizer
    from ruby_spec_runner.runners.registry import SynthesizerRegistry

logger = logging.getLogger(__name__)

_SPEC_DIR_NAME = "spec"
_DEFAULT_TERMINAL_NAME = "SpecRunner"

_MESSAGES: dict[type[SpecRunnerError], str] = {
    NoWorkspaceOpenError: "Unable to run {what}. It appears that no workspace is open.",
    NoActiveTargetError: "Unable to run {what}. It appears that no editor is open.",
    MissingSpecDirectoryError: "Unable to run all specs. No spec directory found.",
    UnsupportedDebuggerError: "Unable to debug {what}. {error}",
}


# ── Collaborators ────────────────────────────────────────────────


class Terminal(ABC):
    """A terminal accepting command text (append-only sink)."""

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        """``False`` once the terminal has exited."""

    @abstractmethod
    def send_text(self, text: str) -> None:
        """Send *text* as a command line."""

    def show(self) -> None:
        """Bring the terminal to the foreground."""

    def clear(self) -> None:
        """Clear the terminal's scrollback."""


class DebugLauncher(ABC):
    """Starts a debug session from a launch configuration."""

    @abstractmethod
    def start_debugging(self, launch_config: dict[str, Any]) -> None:
        """Start debugging with *launch_config*; the session is not tracked."""


class ResultPresenter(ABC):
    """Renders results read from the output file."""

    @abstractmethod
    def set_pending(self, file_path: str) -> None:
        """Mark *file_path* as having a run in flight."""


class TerminalManager:
    """Lazily acquires a terminal, recreating it once the previous one exited."""

    def __init__(
        self, factory: Callable[[str], Terminal], name: str = _DEFAULT_TERMINAL_NAME
    ) -> None:
        self._factory = factory
        self._name = name
        self._terminal: Terminal | None = None

    def acquire(self) -> Terminal:
        """Return the live terminal, creating a new one if needed."""
        if self._terminal is None or not self._terminal.is_alive:
            logger.debug("Creating terminal %s", self._name)
            self._terminal = self._factory(self._name)
        return self._terminal


# ── Requests ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class RunRequest:
    """A run request from a keybinding, code lens or command line."""

    file_path: str | None = None
    """Explicit file; ``None`` means the active editor file."""

    line: int | None = None
    example_name: str | None = None
    line_set: tuple[int, ...] = ()
    debugging: bool = False
    framework: str | None = None
    """Framework name; ``None`` picks one from the file path."""


# ── Handler ──────────────────────────────────────────────────────


class InvocationHandler:
    """Turns run requests into terminal commands or debug sessions.

    Every public ``run*`` coroutine returns what was dispatched (the command
    string or the launch configuration) or ``None`` when the request was
    aborted with a user-visible message.
    """

    def __init__(
        self,
        config: ExecutionConfig,
        *,
        terminals: TerminalManager,
        debug_launcher: DebugLauncher,
        presenter: ResultPresenter | None = None,
        save_all: Callable[[], Awaitable[None]] | None = None,
        active_file: Callable[[], str | None] | None = None,
        registry: SynthesizerRegistry | None = None,
        user_reporter: CLIReporter | None = None,
    ) -> None:
        self._config = config
        self._terminals = terminals
        self._debug_launcher = debug_launcher
        self._presenter = presenter
        self._save_all = save_all
        self._active_file = active_file
        self._registry = registry or get_registry()
        self._reporter = user_reporter or default_reporter

    # ── Public operations ────────────────────────────────────────

    async def run(self, request: RunRequest | None = None) -> str | dict[str, Any] | None:
        """Run (or debug) the requested target."""
        request = request or RunRequest()
        await self._save_if_configured()

        what = "spec"
        try:
            target = self._resolve_target(request)
            synthesizer = self._select_synthesizer(request, target.file_path)
            if synthesizer.name != "rspec":
                what = "test"
            return self._dispatch(synthesizer, target)
        except SpecRunnerError as exc:
            self._report(exc, what=what)
            return None

    async def run_failed_examples(self) -> str | None:
        """Re-run the examples of the active file that failed last time (RSpec)."""
        await self._save_if_configured()

        try:
            file_path = self._require_active_file()
            self._require_workspace()
            target = RunTarget(file_path=file_path, failed_only=True)
            command = RspecSynthesizer().build_command(target, self._config)
        except SpecRunnerError as exc:
            self._report(exc, what="spec")
            return None

        self._send(command)
        self._mark_pending(file_path)
        return command

    async def run_all_examples(self) -> str | None:
        """Run every spec under the workspace's ``spec/`` directory."""
        await self._save_if_configured()

        try:
            root = self._require_workspace(always=True)
            spec_dir = Path(root) / _SPEC_DIR_NAME
            if not spec_dir.is_dir():
                msg = f"No spec directory found at {spec_dir}"
                raise MissingSpecDirectoryError(msg)
            command = RspecSynthesizer().build_all_command(self._config)
        except SpecRunnerError as exc:
            self._report(exc, what="all specs")
            return None

        self._send(command)
        return command

    # ── Steps ────────────────────────────────────────────────────

    async def _save_if_configured(self) -> None:
        if not self._config.save_before_running:
            return
        if self._save_all is None:
            logger.debug("save_before_running is set but no save hook was provided")
            return
        await self._save_all()

    def _resolve_target(self, request: RunRequest) -> RunTarget:
        file_path = request.file_path or self._require_active_file()
        self._require_workspace()
        return RunTarget(
            file_path=file_path,
            line=request.line if request.file_path else None,
            example_name=request.example_name if request.file_path else None,
            line_set=tuple(request.line_set) if request.file_path else (),
            debugging=request.debugging,
        )

    def _require_active_file(self) -> str:
        file_path = self._active_file() if self._active_file else None
        if not file_path:
            msg = "No active file to run"
            raise NoActiveTargetError(msg)
        return file_path

    def _require_workspace(self, *, always: bool = False) -> str:
        """Return the project root; it is required when a ``cd`` is emitted."""
        root = self._config.project_path
        needs_root = always or self._config.change_directory_to_workspace_root
        if needs_root and not root:
            msg = "No workspace root configured"
            raise NoWorkspaceOpenError(msg)
        return root

    def _select_synthesizer(self, request: RunRequest, file_path: str) -> CommandSynthesizer:
        if request.framework:
            synthesizer = self._registry.get(request.framework)
            if synthesizer is not None:
                return synthesizer
            logger.warning("Unknown framework %s, detecting from path", request.framework)
        return self._registry.detect(file_path)

    def _dispatch(
        self, synthesizer: CommandSynthesizer, target: RunTarget
    ) -> str | dict[str, Any]:
        if target.debugging:
            descriptor = synthesizer.build_debug_descriptor(target, self._config)
            launch_config = descriptor.to_launch_config()
            self._debug_launcher.start_debugging(launch_config)
            self._mark_pending(target.file_path)
            return launch_config

        command = synthesizer.build_command(target, self._config)
        self._send(command)
        self._mark_pending(target.file_path)
        return command

    def _send(self, command: str) -> None:
        terminal = self._terminals.acquire()
        terminal.show()
        if self._config.clear_terminal_on_test_run:
            terminal.clear()
        terminal.send_text(command)

    def _mark_pending(self, file_path: str) -> None:
        if self._presenter is not None:
            self._presenter.set_pending(file_path)

    def _report(self, exc: SpecRunnerError, *, what: str) -> None:
        template = _MESSAGES.get(type(exc), "Unable to run {what}: {error}")
        message = template.format(what=what, error=exc)
        logger.error("SpecRunner: %s (%s)", message, exc)
        self._reporter.print_error(f"SpecRunner: {escape(message)}")
