"""Shell dialect helpers: quoting, joining, env prefixes and redirection.

Every helper takes the target ``ShellDialect`` explicitly so command
synthesis stays a pure function of its inputs.  Supported dialects:

* ``posix``: sh, bash, zsh.
* ``fish``: the fish shell.  Parentheses are command substitution in
  fish, so no helper ever emits ``( ... )`` grouping for it.
* ``cmd``: Windows ``cmd.exe``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

# Characters that never need quoting in an env value.
_SAFE_ENV_VALUE_RE = re.compile(r"^[\w@%+=:,./-]*$")

# Inside double quotes: backslashes not escaping a quote, characters the
# shell expands, and double quotes not already escaped.
_LONE_BACKSLASH_RE = re.compile(r'\\(?!")')
_POSIX_DQUOTE_SPECIAL_RE = re.compile(r"([$`])")
_FISH_DQUOTE_SPECIAL_RE = re.compile(r"(\$)")
_UNESCAPED_DQUOTE_RE = re.compile(r'(?<!\\)"')

# cmd.exe metacharacters escaped with ``^`` inside an unquoted echo.
_CMD_ECHO_SPECIAL_RE = re.compile(r"([&|<>^])")


class ShellDialect(Enum):
    """Quoting, grouping and joining rules of the shell receiving the command."""

    POSIX = "posix"
    FISH = "fish"
    CMD = "cmd"

    @classmethod
    def parse(cls, value: str) -> ShellDialect | None:
        """Return the dialect named *value* (case-insensitive), or ``None``."""
        normalized = value.strip().lower()
        for dialect in cls:
            if dialect.value == normalized:
                return dialect
        return None

    @property
    def separator(self) -> str:
        """Text placed between two sequential commands."""
        if self is ShellDialect.FISH:
            return "; "
        return " && "


def quote(value: str, dialect: ShellDialect = ShellDialect.POSIX) -> str:
    """Quote *value* as a single shell word.

    Values are always quoted (even when they contain no special
    characters) so the synthesized commands have a predictable shape.
    """
    if dialect is ShellDialect.CMD:
        return '"' + value.replace('"', '""') + '"'
    if dialect is ShellDialect.FISH:
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"
    return "'" + value.replace("'", "'\\''") + "'"


def double_quote(value: str, dialect: ShellDialect = ShellDialect.POSIX) -> str:
    """Wrap *value* in double quotes, escaping what the dialect expands there.

    Double quotes already escaped with a backslash are kept as they are;
    any other ``"`` is backslash-escaped.  POSIX also escapes ``\\``, ``$``
    and backticks, fish escapes ``\\`` and ``$``.  cmd passes ``\\"`` through
    to the program unchanged.
    """
    if dialect is ShellDialect.CMD:
        escaped = value
    else:
        escaped = _LONE_BACKSLASH_RE.sub(r"\\\\", value)
        specials = (
            _POSIX_DQUOTE_SPECIAL_RE if dialect is ShellDialect.POSIX else _FISH_DQUOTE_SPECIAL_RE
        )
        escaped = specials.sub(r"\\\1", escaped)
    escaped = _UNESCAPED_DQUOTE_RE.sub(r'\\"', escaped)
    return f'"{escaped}"'


def cmd_join(*commands: str, dialect: ShellDialect = ShellDialect.POSIX) -> str:
    """Join the non-empty *commands* so they run one after another."""
    return dialect.separator.join(command for command in commands if command)


def stringify_envs(
    envs: Mapping[str, str] | None, dialect: ShellDialect = ShellDialect.POSIX
) -> str:
    """Render *envs* as a prefix placed in front of a command.

    POSIX and fish get ``KEY=VALUE`` assignments; cmd gets ``set`` commands
    chained with ``&&``.  An empty mapping renders as ``""``.
    """
    if not envs:
        return ""

    if dialect is ShellDialect.CMD:
        return " ".join(f'set "{key}={value}" &&' for key, value in envs.items())

    parts: list[str] = []
    for key, value in envs.items():
        rendered = value if _SAFE_ENV_VALUE_RE.match(value) else quote(value, dialect)
        parts.append(f"{key}={rendered}")
    return " ".join(parts)


def output_redirect(
    output_file: str, dialect: ShellDialect = ShellDialect.POSIX, *, append: bool = True
) -> str:
    """Return the suffix that copies a command's stdout into *output_file*.

    ``tee`` keeps the output visible in the terminal.  cmd has no ``tee``,
    so the output is redirected instead.
    """
    if dialect is ShellDialect.CMD:
        return f"{'>>' if append else '>'} {quote(output_file, dialect)}"
    return f"| tee {'-a ' if append else ''}{quote(output_file, dialect)}"


def echo_to_file(
    text: str,
    output_file: str,
    dialect: ShellDialect = ShellDialect.POSIX,
    *,
    append: bool = False,
) -> str:
    """Return a command writing *text* as one line to *output_file*."""
    operator = ">>" if append else ">"
    if dialect is ShellDialect.CMD:
        # cmd's echo prints quotes literally; escape metacharacters instead.
        escaped = _CMD_ECHO_SPECIAL_RE.sub(r"^\1", text)
        return f"echo {escaped}{operator} {quote(output_file, dialect)}"
    return f"echo {quote(text, dialect)} {operator} {quote(output_file, dialect)}"


def change_directory(
    command: str,
    directory: str,
    dialect: ShellDialect = ShellDialect.POSIX,
    *,
    isolate: bool = False,
) -> str:
    """Prefix *command* with a change into *directory*.

    With ``isolate=True`` the directory change must not leak into the
    caller's shell: POSIX wraps the sequence in a ``( ... )`` subshell and
    cmd restores the directory with ``pushd``/``popd``.  fish cannot group
    with parentheses and always emits ``cd DIR; command``.
    """
    quoted = quote(directory, dialect)
    if dialect is ShellDialect.FISH:
        return cmd_join(f"cd {quoted}", command, dialect=dialect)
    if dialect is ShellDialect.CMD:
        if isolate:
            return f"pushd {quoted} && {command} & popd"
        return cmd_join(f"cd /d {quoted}", command, dialect=dialect)
    joined = cmd_join(f"cd {quoted}", command, dialect=dialect)
    return f"({joined})" if isolate else joined
