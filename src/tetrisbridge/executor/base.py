"""Abstract interface for running the collaborator program.

The bridge never talks to the operating system directly. It asks an
``ExternalExecutor`` for a ``ProcessHandle`` and drives the handle's
three byte streams. This lets the bridge run against a real subprocess
(``SubprocessExecutor``) or an in-process stand-in (``InProcessExecutor``)
without any other code changing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

# Chunk size used when draining output streams
DEFAULT_READ_SIZE = 64 * 1024


class ProcessHandle(ABC):
    """One spawned collaborator plus its standard streams.

    A handle belongs to exactly one bridge run and is never reused.

    Example usage::

        handle = await executor.spawn()
        await handle.write_input(b"rotate-left")
        await handle.close_input()
        chunk = await handle.read_output(4096)
        exit_code = await handle.wait()
    """

    @property
    @abstractmethod
    def pid(self) -> int | None:
        """Process identifier, or None for in-process handles."""
        ...

    @abstractmethod
    async def write_input(self, data: bytes) -> None:
        """Write bytes to the collaborator's standard input.

        Raises:
            StreamError: If the write fails (e.g. broken pipe).
        """
        ...

    @abstractmethod
    async def close_input(self) -> None:
        """Close standard input to signal end-of-input.

        Safe to call more than once.

        Raises:
            StreamError: If flushing or closing the stream fails.
        """
        ...

    @abstractmethod
    async def read_output(self, n: int = DEFAULT_READ_SIZE) -> bytes:
        """Read up to ``n`` bytes of standard output; ``b""`` at end-of-stream.

        Raises:
            StreamError: If the read fails.
        """
        ...

    @abstractmethod
    async def read_error(self, n: int = DEFAULT_READ_SIZE) -> bytes:
        """Read up to ``n`` bytes of standard error; ``b""`` at end-of-stream.

        Raises:
            StreamError: If the read fails.
        """
        ...

    @abstractmethod
    async def wait(self) -> int:
        """Wait for the collaborator to exit and return its exit code."""
        ...

    @abstractmethod
    def kill(self) -> None:
        """Terminate the collaborator immediately. No-op once it has exited."""
        ...


class ExternalExecutor(ABC):
    """Factory for collaborator processes."""

    @abstractmethod
    async def spawn(self) -> ProcessHandle:
        """Start one collaborator with fresh standard streams.

        Raises:
            LaunchError: If the collaborator cannot be started.
        """
        ...

    def describe(self) -> str:
        """Human-readable name of the collaborator, for logs."""
        return type(self).__name__


class ExecutorError(Exception):
    """Base class for collaborator execution failures."""


class LaunchError(ExecutorError):
    """Raised when the collaborator cannot be started."""

    def __init__(self, message: str, executable: str = "") -> None:
        super().__init__(message)
        self.executable = executable


class StreamError(ExecutorError):
    """Raised when reading or writing one of the standard streams fails."""

    def __init__(self, message: str, stage: str = "") -> None:
        super().__init__(message)
        self.stage = stage
