"""Synthesizer registry: lookup by framework name and by test file path.

Built-in synthesizers are registered eagerly; third-party packages can
contribute more through the ``ruby_spec_runner.synthesizers`` entry point
group.
"""

from __future__ import annotations

import importlib.metadata
import logging

from ruby_spec_runner.runners.base import CommandSynthesizer
from ruby_spec_runner.runners.minitest_runner import MinitestSynthesizer
from ruby_spec_runner.runners.rspec_runner import RspecSynthesizer

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "ruby_spec_runner.synthesizers"

DEFAULT_FRAMEWORK = "rspec"

# Unambiguous file name suffixes, checked before directory heuristics.
_SUFFIXES = {"_spec.rb": "rspec", "_test.rb": "minitest"}


class SynthesizerRegistry:
    """Registry for discovering and selecting command synthesizers."""

    def __init__(self) -> None:
        """Initialize the registry with the built-in synthesizers."""
        self._synthesizers: dict[str, type[CommandSynthesizer]] = {}
        for synthesizer_class in (RspecSynthesizer, MinitestSynthesizer):
            self._register(synthesizer_class)
        self._discover_entry_point_synthesizers()

    def _register(self, synthesizer_class: type[CommandSynthesizer]) -> None:
        name = synthesizer_class().name
        self._synthesizers[name] = synthesizer_class
        logger.debug("Registered synthesizer: %s", name)

    def _discover_entry_point_synthesizers(self) -> None:
        """Register synthesizers exposed via the entry point group."""
        for entry_point in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            try:
                loaded = entry_point.load()
            except (ImportError, AttributeError) as exc:
                logger.warning("Failed to load entry point %s: %s", entry_point.name, exc)
                continue

            if not isinstance(loaded, type) or not issubclass(loaded, CommandSynthesizer):
                logger.warning(
                    "Entry point %s does not refer to a CommandSynthesizer: %s",
                    entry_point.name,
                    loaded,
                )
                continue

            if loaded().name in self._synthesizers:
                logger.warning(
                    "Synthesizer from entry point %s conflicts with an existing one, skipping",
                    entry_point.name,
                )
                continue
            self._register(loaded)

    def get(self, name: str) -> CommandSynthesizer | None:
        """Return a synthesizer instance for framework *name*, or ``None``."""
        synthesizer_class = self._synthesizers.get(name)
        if synthesizer_class is None:
            return None
        return synthesizer_class()

    def list_frameworks(self) -> list[str]:
        """Return the registered framework names, sorted."""
        return sorted(self._synthesizers)

    def detect(self, file_path: str) -> CommandSynthesizer:
        """Pick the synthesizer for *file_path*.

        File name suffixes win over directory heuristics; files matching
        nothing fall back to RSpec.
        """
        for suffix, framework in _SUFFIXES.items():
            if file_path.endswith(suffix) and framework in self._synthesizers:
                return self._synthesizers[framework]()

        for synthesizer_class in self._synthesizers.values():
            synthesizer = synthesizer_class()
            if synthesizer.detect(file_path):
                return synthesizer

        return self._synthesizers[DEFAULT_FRAMEWORK]()


class _RegistrySingleton:
    """Singleton holder for the synthesizer registry."""

    _instance: SynthesizerRegistry | None = None

    @classmethod
    def get(cls) -> SynthesizerRegistry:
        if cls._instance is None:
            cls._instance = SynthesizerRegistry()
        return cls._instance


def get_registry() -> SynthesizerRegistry:
    """Get the global synthesizer registry instance.

    Creates the registry on first call and caches it for subsequent calls.
    """
    return _RegistrySingleton.get()
