"""Tests for the OS process executor."""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from tetrisbridge.executor.base import LaunchError, StreamError
from tetrisbridge.executor.subprocess_backend import SubprocessExecutor, SubprocessHandle

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process semantics")


def _install_script(directory: Path, name: str, body: str) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755)
    return path


class TestSubprocessExecutorInit:
    def test_defaults(self) -> None:
        executor = SubprocessExecutor()
        assert executor.executable == "./tetris-server"
        assert executor.describe() == "./tetris-server"

    def test_resolved_path_relative_to_working_dir(self, tmp_path: Path) -> None:
        executor = SubprocessExecutor(executable="./tetris-server", working_dir=tmp_path)
        assert executor.resolved_path() == str(tmp_path / "tetris-server")

    def test_bare_name_is_left_to_path_lookup(self) -> None:
        assert SubprocessExecutor(executable="cat").resolved_path() == "cat"

    def test_is_available(self, tmp_path: Path) -> None:
        executor = SubprocessExecutor(executable="./tetris-server", working_dir=tmp_path)
        assert not executor.is_available()
        _install_script(tmp_path, "tetris-server", "cat")
        assert executor.is_available()


class TestSubprocessExecutorSpawn:
    @pytest.mark.asyncio
    async def test_relative_executable_runs_in_working_dir(self, tmp_path: Path) -> None:
        _install_script(tmp_path, "tetris-server", "pwd; cat")
        executor = SubprocessExecutor(executable="./tetris-server", working_dir=tmp_path)
        handle = await executor.spawn()
        assert handle.pid is not None
        await handle.write_input(b"hello")
        await handle.close_input()
        out = b""
        while chunk := await handle.read_output(1024):
            out += chunk
        assert await handle.wait() == 0
        lines = out.split(b"\n")
        assert os.path.realpath(lines[0].decode()) == os.path.realpath(str(tmp_path))
        assert lines[1] == b"hello"

    @pytest.mark.asyncio
    async def test_missing_executable_raises_launch_error(self, tmp_path: Path) -> None:
        executor = SubprocessExecutor(executable="./nope", working_dir=tmp_path)
        with pytest.raises(LaunchError, match="Cannot launch") as info:
            await executor.spawn()
        assert info.value.executable == "./nope"

    @pytest.mark.asyncio
    async def test_not_executable_raises_launch_error(self, tmp_path: Path) -> None:
        (tmp_path / "tetris-server").write_text("plain file")
        executor = SubprocessExecutor(executable="./tetris-server", working_dir=tmp_path)
        with pytest.raises(LaunchError):
            await executor.spawn()

    @pytest.mark.asyncio
    async def test_spawn_os_error_is_wrapped(self) -> None:
        with patch(
            "asyncio.create_subprocess_exec", side_effect=PermissionError("denied")
        ):
            with pytest.raises(LaunchError, match="denied"):
                await SubprocessExecutor().spawn()

    @pytest.mark.asyncio
    async def test_stderr_is_separate(self) -> None:
        executor = SubprocessExecutor(
            executable=sys.executable,
            args=["-c", "import sys; sys.stderr.write('err'); sys.stdout.write('out')"],
        )
        handle = await executor.spawn()
        await handle.close_input()
        assert await handle.read_output() == b"out"
        assert await handle.read_output() == b""
        assert await handle.read_error() == b"err"
        assert await handle.wait() == 0


class TestSubprocessHandle:
    @pytest.mark.asyncio
    async def test_write_after_close_raises(self, subprocess_echo: SubprocessExecutor) -> None:
        handle = await subprocess_echo.spawn()
        await handle.close_input()
        with pytest.raises(StreamError, match="already closed") as info:
            await handle.write_input(b"late")
        assert info.value.stage == "stdin"
        await handle.wait()

    @pytest.mark.asyncio
    async def test_close_input_twice(self, subprocess_echo: SubprocessExecutor) -> None:
        handle = await subprocess_echo.spawn()
        await handle.close_input()
        await handle.close_input()
        assert await handle.wait() == 0

    @pytest.mark.asyncio
    async def test_kill_running_process(self) -> None:
        executor = SubprocessExecutor(
            executable=sys.executable, args=["-c", "import time; time.sleep(30)"]
        )
        handle = await executor.spawn()
        handle.kill()
        assert await handle.wait() != 0

    @pytest.mark.asyncio
    async def test_kill_reaches_background_children(self) -> None:
        executor = SubprocessExecutor(
            executable="/bin/sh", args=["-c", "sleep 30 & echo started; wait"]
        )
        handle = await executor.spawn()
        assert await handle.read_output() == b"started\n"
        handle.kill()

        async def drain() -> bytes:
            out = b""
            while True:
                chunk = await handle.read_output()
                if not chunk:
                    return out
                out += chunk

        # stdout only reaches EOF once the background sleep is gone too
        assert await asyncio.wait_for(drain(), 5) == b""
        assert await asyncio.wait_for(handle.wait(), 5) != 0

    @pytest.mark.asyncio
    async def test_kill_after_exit_is_noop(self, subprocess_echo: SubprocessExecutor) -> None:
        handle = await subprocess_echo.spawn()
        await handle.close_input()
        assert await handle.wait() == 0
        handle.kill()
        assert handle.returncode == 0

    @pytest.mark.asyncio
    async def test_read_error_is_wrapped(self, subprocess_echo: SubprocessExecutor) -> None:
        handle = await subprocess_echo.spawn()
        assert isinstance(handle, SubprocessHandle)
        with patch.object(
            handle._process.stdout, "read", side_effect=OSError("bad descriptor")
        ):
            with pytest.raises(StreamError, match="bad descriptor") as info:
                await handle.read_output()
        assert info.value.stage == "stdout"
        handle.kill()
        await handle.wait()
