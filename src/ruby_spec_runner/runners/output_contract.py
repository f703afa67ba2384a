"""Output file contract shared with the result presenter.

When editor decoration is enabled every run leaves a side file behind:

1. line 1: the path of the file that was run,
2. line 2: a JSON array of the addressed line numbers, or ``ALL``,
3. the rest: the framework's own output, appended by the shell.

RSpec writes its JSON formatter report straight to the file instead
(``-f j --out FILE``).  RSpec truncates ``--out`` targets, so no
bookkeeping lines precede that report.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ruby_spec_runner.utils.shell import (
    ShellDialect,
    cmd_join,
    echo_to_file,
    output_redirect,
    quote,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

ALL_LINES = "ALL"

_BOOKKEEPING_LINES = 2


def format_line_set(lines: Sequence[int] | None) -> str:
    """Render *lines* as a compact JSON array, or ``ALL`` when unrestricted."""
    if lines is None:
        return ALL_LINES
    return json.dumps(list(lines), separators=(",", ":"))


def bookkeeping_commands(
    file_path: str,
    lines: Sequence[int] | None,
    output_file: str,
    dialect: ShellDialect = ShellDialect.POSIX,
) -> str:
    """Return the commands that record what is about to run.

    The first command truncates *output_file*; the second appends.
    """
    return cmd_join(
        echo_to_file(file_path, output_file, dialect),
        echo_to_file(format_line_set(lines), output_file, dialect, append=True),
        dialect=dialect,
    )


def capture_output(output_file: str, dialect: ShellDialect = ShellDialect.POSIX) -> str:
    """Return the suffix appending the run's stdout to *output_file*."""
    return output_redirect(output_file, dialect, append=True)


def rspec_json_report_flags(output_file: str, dialect: ShellDialect = ShellDialect.POSIX) -> str:
    """Return RSpec flags adding a JSON formatter that writes to *output_file*."""
    return f"-f j --out {quote(output_file, dialect)}"


# ── Reading ──────────────────────────────────────────────────────


@dataclass
class RunOutput:
    """Parsed content of an output file with bookkeeping lines."""

    file_path: str
    """File that was run."""

    lines: list[int] | None
    """Addressed lines, ``None`` when the whole file ran."""

    report: str = ""
    """Raw framework output captured after the bookkeeping lines."""


def parse_output(content: str) -> RunOutput | None:
    """Parse the bookkeeping header of *content*.

    Returns ``None`` when the content does not start with the two
    bookkeeping lines (for example an RSpec JSON report).
    """
    parts = content.split("\n", _BOOKKEEPING_LINES)
    if len(parts) < _BOOKKEEPING_LINES:
        return None

    file_path = parts[0].strip()
    line_set_raw = parts[1].strip()
    report = parts[2] if len(parts) > _BOOKKEEPING_LINES else ""

    if not file_path or file_path.startswith("{"):
        return None

    if line_set_raw == ALL_LINES:
        return RunOutput(file_path=file_path, lines=None, report=report)

    try:
        decoded = json.loads(line_set_raw)
    except json.JSONDecodeError:
        logger.debug("Output file line set is not JSON: %r", line_set_raw)
        return None

    if not isinstance(decoded, list) or not all(isinstance(n, int) for n in decoded):
        return None
    return RunOutput(file_path=file_path, lines=decoded, report=report)


def read_output_file(path: Path) -> RunOutput | None:
    """Read and parse the output file at *path*; ``None`` if absent or foreign."""
    if not path.is_file():
        return None
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to read output file %s: %s", path, exc)
        return None
    return parse_output(content)
