"""In-process stand-in for the collaborator program.

Runs a Python callable instead of spawning an OS process while keeping
the same stream semantics: output only becomes available after input
has been closed, reads return ``b""`` at end-of-stream, and ``kill()``
stops a collaborator that is still working.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Union

from tetrisbridge.domain.models import CollaboratorReply
from tetrisbridge.executor.base import (
    DEFAULT_READ_SIZE,
    ExternalExecutor,
    LaunchError,
    ProcessHandle,
    StreamError,
)

logger = logging.getLogger(__name__)

# Exit code reported for a killed in-process collaborator (mirrors SIGKILL)
KILLED_EXIT_CODE = -9

CollaboratorHandler = Callable[
    [bytes], Union[CollaboratorReply, Awaitable[CollaboratorReply]]
]


def echo_handler(data: bytes) -> CollaboratorReply:
    """Collaborator that writes its input back unchanged."""
    return CollaboratorReply(stdout=data)


class InProcessHandle(ProcessHandle):
    """Handle whose collaborator is a Python callable."""

    def __init__(
        self,
        handler: CollaboratorHandler,
        chunk_size: int = DEFAULT_READ_SIZE,
        fail_write: bool = False,
    ) -> None:
        self._handler = handler
        self._chunk_size = chunk_size
        self._fail_write = fail_write
        self._input = bytearray()
        self._input_closed = False
        self._task: asyncio.Task[CollaboratorReply] | None = None
        self._done = asyncio.Event()
        self._reply: CollaboratorReply | None = None
        self._killed = False
        self._stdout_pos = 0
        self._stderr_pos = 0

    @property
    def pid(self) -> int | None:
        return None

    @property
    def received(self) -> bytes:
        """Everything written to standard input so far."""
        return bytes(self._input)

    @property
    def input_closed(self) -> bool:
        return self._input_closed

    async def write_input(self, data: bytes) -> None:
        if self._input_closed:
            raise StreamError("stdin is already closed", stage="stdin")
        if self._fail_write:
            raise StreamError("Collaborator stopped reading input", stage="stdin")
        self._input.extend(data)

    async def close_input(self) -> None:
        if self._input_closed:
            return
        self._input_closed = True
        if not self._killed:
            self._task = asyncio.create_task(self._run())

    async def read_output(self, n: int = DEFAULT_READ_SIZE) -> bytes:
        reply = await self._await_reply()
        if reply is None:
            return b""
        chunk = reply.stdout[self._stdout_pos:self._stdout_pos + min(n, self._chunk_size)]
        self._stdout_pos += len(chunk)
        return chunk

    async def read_error(self, n: int = DEFAULT_READ_SIZE) -> bytes:
        reply = await self._await_reply()
        if reply is None:
            return b""
        chunk = reply.stderr[self._stderr_pos:self._stderr_pos + min(n, self._chunk_size)]
        self._stderr_pos += len(chunk)
        return chunk

    async def wait(self) -> int:
        reply = await self._await_reply()
        if reply is None:
            return KILLED_EXIT_CODE
        return reply.exit_code

    def kill(self) -> None:
        if self._done.is_set():
            return
        self._killed = True
        if self._task is not None:
            self._task.cancel()
        self._done.set()

    async def _run(self) -> CollaboratorReply:
        try:
            try:
                result = self._handler(bytes(self._input))
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                # A crashing handler behaves like a crashing program
                logger.warning("In-process collaborator raised: %s", e)
                result = CollaboratorReply(stderr=str(e).encode(), exit_code=1)
            self._reply = result
            return result
        finally:
            self._done.set()

    async def _await_reply(self) -> CollaboratorReply | None:
        await self._done.wait()
        if self._killed:
            return None
        return self._reply


class InProcessExecutor(ExternalExecutor):
    """Executor whose collaborator is a Python callable.

    Args:
        handler: Receives the complete input once it has been closed and
                 returns a ``CollaboratorReply``. May be a coroutine function.
        fail_launch: Make every ``spawn()`` raise ``LaunchError``.
        fail_write: Make every input write raise ``StreamError``.
        chunk_size: Maximum bytes returned by a single read.
        max_handles: How many of the most recent handles to keep in
                     ``handles`` for inspection. None keeps every one.
    """

    def __init__(
        self,
        handler: CollaboratorHandler = echo_handler,
        fail_launch: bool = False,
        fail_write: bool = False,
        chunk_size: int = DEFAULT_READ_SIZE,
        max_handles: int | None = 100,
    ) -> None:
        self._handler = handler
        self._fail_launch = fail_launch
        self._fail_write = fail_write
        self._chunk_size = chunk_size
        self._max_handles = max_handles
        self.handles: list[InProcessHandle] = []

    def describe(self) -> str:
        return getattr(self._handler, "__name__", "in-process collaborator")

    async def spawn(self) -> InProcessHandle:
        if self._fail_launch:
            raise LaunchError("In-process collaborator refused to start", executable=self.describe())
        handle = InProcessHandle(
            self._handler, chunk_size=self._chunk_size, fail_write=self._fail_write
        )
        self.handles.append(handle)
        if self._max_handles is not None and len(self.handles) > self._max_handles:
            del self.handles[:-self._max_handles]
        logger.debug("Spawned in-process collaborator %s", self.describe())
        return handle
