"""Command synthesizers for Ruby test frameworks."""

from ruby_spec_runner.runners.base import (
    CommandSynthesizer,
    DebugDescriptor,
    MissingSpecDirectoryError,
    NoActiveTargetError,
    NoWorkspaceOpenError,
    RdbgLaunchConfig,
    RubyDebugger,
    RubyLspLaunchConfig,
    RunTarget,
    SpecRunnerError,
    UnsupportedDebuggerError,
)
from ruby_spec_runner.runners.minitest_runner import MinitestSynthesizer
from ruby_spec_runner.runners.rspec_runner import RspecSynthesizer

__all__ = [
    "CommandSynthesizer",
    "DebugDescriptor",
    "MinitestSynthesizer",
    "MissingSpecDirectoryError",
    "NoActiveTargetError",
    "NoWorkspaceOpenError",
    "RdbgLaunchConfig",
    "RspecSynthesizer",
    "RubyDebugger",
    "RubyLspLaunchConfig",
    "RunTarget",
    "SpecRunnerError",
    "UnsupportedDebuggerError",
]
