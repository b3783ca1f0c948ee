"""Collaborator executor backed by a real OS process.

Spawns the collaborator with ``asyncio.create_subprocess_exec`` and three
pipes. The executable path is resolved relative to the working directory,
so the default ``./tetris-server`` is found next to the service.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Mapping, Sequence

from tetrisbridge.executor.base import (
    DEFAULT_READ_SIZE,
    ExternalExecutor,
    LaunchError,
    ProcessHandle,
    StreamError,
)

logger = logging.getLogger(__name__)

_USE_PROCESS_GROUPS = hasattr(os, "killpg")


class SubprocessHandle(ProcessHandle):
    """Wraps an ``asyncio.subprocess.Process`` started with three pipes."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._input_closed = False

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def write_input(self, data: bytes) -> None:
        stdin = self._process.stdin
        if stdin is None or self._input_closed:
            raise StreamError("stdin is already closed", stage="stdin")
        try:
            stdin.write(data)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise StreamError(f"Collaborator stopped reading input: {e}", stage="stdin") from e
        except OSError as e:
            raise StreamError(f"Failed to write input: {e}", stage="stdin") from e

    async def close_input(self) -> None:
        stdin = self._process.stdin
        if stdin is None or self._input_closed:
            return
        self._input_closed = True
        try:
            stdin.close()
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise StreamError(f"Collaborator stopped reading input: {e}", stage="stdin") from e
        except OSError as e:
            raise StreamError(f"Failed to close input: {e}", stage="stdin") from e

    async def read_output(self, n: int = DEFAULT_READ_SIZE) -> bytes:
        return await self._read(self._process.stdout, n, "stdout")

    async def read_error(self, n: int = DEFAULT_READ_SIZE) -> bytes:
        return await self._read(self._process.stderr, n, "stderr")

    async def wait(self) -> int:
        return await self._process.wait()

    def kill(self) -> None:
        # The collaborator leads its own process group; its children may
        # outlive it and keep the pipes open, so the whole group goes.
        if _USE_PROCESS_GROUPS:
            try:
                os.killpg(self._process.pid, signal.SIGKILL)
                logger.debug("Killed collaborator group pgid=%d", self._process.pid)
            except (ProcessLookupError, PermissionError):
                pass
            return
        if self._process.returncode is not None:
            return
        try:
            self._process.kill()
            logger.debug("Killed collaborator pid=%d", self._process.pid)
        except ProcessLookupError:
            pass

    @staticmethod
    async def _read(stream: asyncio.StreamReader | None, n: int, stage: str) -> bytes:
        if stream is None:
            return b""
        try:
            return await stream.read(n)
        except OSError as e:
            raise StreamError(f"Failed to read {stage}: {e}", stage=stage) from e


class SubprocessExecutor(ExternalExecutor):
    """Spawns the collaborator program as a child process."""

    def __init__(
        self,
        executable: str = "./tetris-server",
        args: Sequence[str] = (),
        working_dir: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._executable = executable
        self._args = list(args)
        self._working_dir = os.fspath(working_dir) if working_dir is not None else None
        self._env = dict(env) if env is not None else None

    @property
    def executable(self) -> str:
        return self._executable

    def resolved_path(self) -> str:
        """Where the executable is expected to live."""
        base = self._working_dir or os.getcwd()
        if os.sep in self._executable or (os.altsep and os.altsep in self._executable):
            return os.path.normpath(os.path.join(base, self._executable))
        return self._executable

    def is_available(self) -> bool:
        """Check whether the executable exists and can be run."""
        path = self.resolved_path()
        if os.sep not in path:
            import shutil
            return shutil.which(path) is not None
        return os.path.isfile(path) and os.access(path, os.X_OK)

    def describe(self) -> str:
        return " ".join([self._executable, *self._args])

    async def spawn(self) -> SubprocessHandle:
        """Start the collaborator with stdin, stdout and stderr pipes."""
        try:
            process = await asyncio.create_subprocess_exec(
                self._executable,
                *self._args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._working_dir,
                env=self._env,
                start_new_session=_USE_PROCESS_GROUPS,
            )
        except (OSError, ValueError) as e:
            raise LaunchError(
                f"Cannot launch {self._executable}: {e}", executable=self._executable
            ) from e
        logger.debug("Spawned collaborator %s (pid=%d)", self._executable, process.pid)
        return SubprocessHandle(process)
