"""Collaborator execution module for tetrisbridge.

Public API:
    ExternalExecutor -- Abstract factory for collaborator processes
    ProcessHandle -- Abstract handle over one collaborator's streams
    SubprocessExecutor -- Real OS process backend
    InProcessExecutor -- Python callable backend
"""

from tetrisbridge.executor.base import (
    ExecutorError,
    ExternalExecutor,
    LaunchError,
    ProcessHandle,
    StreamError,
)

__all__ = [
    "ExecutorError",
    "ExternalExecutor",
    "InProcessExecutor",
    "LaunchError",
    "ProcessHandle",
    "StreamError",
    "SubprocessExecutor",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations."""
    if name == "SubprocessExecutor":
        from tetrisbridge.executor.subprocess_backend import SubprocessExecutor
        return SubprocessExecutor
    if name == "InProcessExecutor":
        from tetrisbridge.executor.inprocess import InProcessExecutor
        return InProcessExecutor
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
