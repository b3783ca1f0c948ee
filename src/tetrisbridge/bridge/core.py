"""Request bridge: one message in, one collaborator run, one result out.

The bridge spawns a collaborator through an ``ExternalExecutor``, feeds
the message to its standard input, drains standard output and standard
error to end-of-stream and waits for it to exit. Feeding and draining run
as concurrent tasks, so a collaborator that fills its output pipe before
consuming all of its input cannot deadlock the bridge.

Collaborator failures never escape as exceptions; they are returned as
one of the ``BridgeResult`` variants.
"""

from __future__ import annotations

import asyncio
import logging
import time

from tetrisbridge.config.settings import CollaboratorConfig
from tetrisbridge.domain.models import (
    BridgeResult,
    IOFailed,
    LaunchFailed,
    OutputTooLarge,
    Success,
    Timeout,
)
from tetrisbridge.executor.base import (
    DEFAULT_READ_SIZE,
    ExternalExecutor,
    LaunchError,
    ProcessHandle,
    StreamError,
)

logger = logging.getLogger(__name__)

# Seconds to wait for a killed collaborator to be reaped
KILL_WAIT_TIMEOUT = 5.0


async def _reap(handle: ProcessHandle) -> None:
    try:
        await asyncio.wait_for(handle.wait(), KILL_WAIT_TIMEOUT)
    except asyncio.TimeoutError:
        logger.error(
            "Killed collaborator pid=%s was not reaped in %ss", handle.pid, KILL_WAIT_TIMEOUT
        )


class _Capture:
    """Mutable per-run state shared by the feed and drain tasks."""

    def __init__(self) -> None:
        self.stdout = bytearray()
        self.stderr = bytearray()
        self.failed_stage: str | None = None
        self.failure: str = ""
        self.overflowed = False

    def fail(self, stage: str, error: Exception) -> None:
        # First failure wins; later ones are usually consequences of it
        if self.failed_stage is None:
            self.failed_stage = stage
            self.failure = str(error)


def encode_payload(payload: str | bytes | None) -> bytes:
    """Turn a request parameter into the bytes written to the collaborator."""
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    return payload.encode("utf-8")


class RequestBridge:
    """Runs one collaborator per message and captures what it prints.

    Args:
        executor: Starts collaborator processes.
        timeout: Seconds to wait for the collaborator before killing it.
                 None waits forever.
        max_output_bytes: Kill the collaborator once standard output grows
                          beyond this many bytes. None means unlimited.
                          Standard error is truncated to the same size
                          but never fails the run.
        read_size: Chunk size for draining output streams.
    """

    def __init__(
        self,
        executor: ExternalExecutor,
        timeout: float | None = None,
        max_output_bytes: int | None = None,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        self._executor = executor
        self._timeout = timeout
        self._max_output_bytes = max_output_bytes
        self._read_size = read_size

    @classmethod
    def from_config(cls, config: CollaboratorConfig) -> RequestBridge:
        """Build a bridge that spawns the configured collaborator program."""
        from tetrisbridge.executor.subprocess_backend import SubprocessExecutor

        executor = SubprocessExecutor(
            executable=config.executable,
            args=config.args,
            working_dir=config.working_dir,
        )
        return cls(
            executor,
            timeout=config.timeout,
            max_output_bytes=config.max_output_bytes,
        )

    @property
    def executor(self) -> ExternalExecutor:
        return self._executor

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def max_output_bytes(self) -> int | None:
        return self._max_output_bytes

    async def run(self, payload: str | bytes | None) -> BridgeResult:
        """Send ``payload`` to a fresh collaborator and collect its output."""
        data = encode_payload(payload)
        started = time.monotonic()

        try:
            handle = await self._executor.spawn()
        except LaunchError as e:
            logger.error("Collaborator launch failed: %s", e)
            return LaunchFailed(reason=str(e), elapsed=time.monotonic() - started)

        capture = _Capture()
        try:
            exit_code = await asyncio.wait_for(
                self._communicate(handle, data, capture), self._timeout
            )
        except asyncio.TimeoutError:
            handle.kill()
            await _reap(handle)
            logger.warning(
                "Collaborator %s timed out after %ss (pid=%s)",
                self._executor.describe(), self._timeout, handle.pid,
            )
            return Timeout(
                timeout=self._timeout,
                stdout=bytes(capture.stdout),
                stderr=bytes(capture.stderr),
                elapsed=time.monotonic() - started,
            )
        except asyncio.CancelledError:
            handle.kill()
            raise

        elapsed = time.monotonic() - started
        stdout = bytes(capture.stdout)
        stderr = bytes(capture.stderr)

        if capture.overflowed:
            logger.warning(
                "Collaborator output exceeded %d bytes, killed (pid=%s)",
                self._max_output_bytes, handle.pid,
            )
            return OutputTooLarge(
                limit=self._max_output_bytes,
                stdout=stdout,
                stderr=stderr,
                elapsed=elapsed,
            )

        if capture.failed_stage is not None:
            logger.error(
                "Collaborator %s failed on %s: %s (exit=%s)",
                self._executor.describe(), capture.failed_stage, capture.failure, exit_code,
            )
            return IOFailed(
                stage=capture.failed_stage,
                reason=capture.failure,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                elapsed=elapsed,
            )

        if exit_code != 0:
            logger.warning(
                "Collaborator exited with %d: %s",
                exit_code, stderr.decode("utf-8", errors="replace").strip()[:200],
            )
        logger.info(
            "Collaborator finished (exit=%d, in=%d bytes, out=%d bytes, %.3fs)",
            exit_code, len(data), len(stdout), elapsed,
        )
        return Success(stdout=stdout, stderr=stderr, exit_code=exit_code, elapsed=elapsed)

    async def _communicate(
        self, handle: ProcessHandle, data: bytes, capture: _Capture
    ) -> int:
        await asyncio.gather(
            self._feed(handle, data, capture),
            self._drain(handle, "stdout", capture),
            self._drain(handle, "stderr", capture),
        )
        return await handle.wait()

    async def _feed(self, handle: ProcessHandle, data: bytes, capture: _Capture) -> None:
        """Write the whole message, then close stdin even if the write failed."""
        try:
            await handle.write_input(data)
        except StreamError as e:
            logger.debug("Input write failed: %s", e)
            capture.fail("stdin", e)
        try:
            await handle.close_input()
        except StreamError as e:
            logger.debug("Closing input failed: %s", e)
            capture.fail("stdin", e)

    async def _drain(self, handle: ProcessHandle, stage: str, capture: _Capture) -> None:
        """Read one output stream to end-of-stream."""
        if stage == "stdout":
            read, buffer = handle.read_output, capture.stdout
        else:
            read, buffer = handle.read_error, capture.stderr
        limit = self._max_output_bytes

        try:
            while True:
                chunk = await read(self._read_size)
                if not chunk:
                    return
                if limit is not None and len(buffer) + len(chunk) > limit:
                    buffer.extend(chunk[:limit - len(buffer)])
                    if stage == "stdout":
                        capture.overflowed = True
                        handle.kill()
                        return
                    # Keep draining stderr so the collaborator never blocks on it
                    continue
                buffer.extend(chunk)
        except StreamError as e:
            capture.fail(stage, e)
            handle.kill()
