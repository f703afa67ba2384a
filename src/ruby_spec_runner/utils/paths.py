"""Path rewriting between the editor's filesystem and the test runner's."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathRewriteRule:
    """Substitute ``from_path`` with ``to_path`` (e.g. host dir → container dir)."""

    from_path: str
    to_path: str


def remap_path(path: str, rules: Sequence[PathRewriteRule]) -> str:
    """Rewrite *path* with the first rule whose ``from_path`` occurs in it.

    Only the first occurrence is replaced.  When no rule applies the path
    is returned unchanged.

    Example:
        >>> remap_path("/host/proj/spec/x_spec.rb", [PathRewriteRule("/host/proj", "/app")])
        '/app/spec/x_spec.rb'
    """
    for rule in rules:
        if rule.from_path and rule.from_path in path:
            remapped = path.replace(rule.from_path, rule.to_path, 1)
            logger.debug("Remapped %s -> %s", path, remapped)
            return remapped
    return path
