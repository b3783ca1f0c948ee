"""Shared test fixtures for the tetrisbridge test suite.

Real-process tests use the running Python interpreter as the collaborator
(``python -c <script>``), so they need no external binary.
"""

from __future__ import annotations

import sys
from typing import Callable

import pytest

from tetrisbridge.domain.models import CollaboratorReply
from tetrisbridge.executor.inprocess import InProcessExecutor
from tetrisbridge.executor.subprocess_backend import SubprocessExecutor


# ---------------------------------------------------------------------------
# Collaborator scripts
# ---------------------------------------------------------------------------

ECHO_SCRIPT = "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())"

UPPER_SCRIPT = "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read().upper())"

FAILING_SCRIPT = (
    "import sys; sys.stdin.buffer.read(); "
    "sys.stdout.buffer.write(b'partial answer'); "
    "sys.stderr.write('something broke'); sys.exit(3)"
)

# 1 MiB, far beyond any pipe buffer
BIG_OUTPUT_SIZE = 256 * 4096
BIG_OUTPUT_SCRIPT = (
    "import sys; sys.stdin.buffer.read(); "
    "sys.stdout.buffer.write(bytes(range(256)) * 4096)"
)

# Fills stdout before reading any input
OUTPUT_FIRST_SCRIPT = (
    "import sys; sys.stdout.buffer.write(b'y' * 1000000); sys.stdout.flush(); "
    "data = sys.stdin.buffer.read(); sys.stdout.buffer.write(str(len(data)).encode())"
)

SLEEP_SCRIPT = "import sys, time; sys.stdin.buffer.read(); time.sleep(30)"


COLLABORATOR_SCRIPTS = {
    "echo": ECHO_SCRIPT,
    "upper": UPPER_SCRIPT,
    "failing": FAILING_SCRIPT,
    "big_output": BIG_OUTPUT_SCRIPT,
    "output_first": OUTPUT_FIRST_SCRIPT,
    "sleep": SLEEP_SCRIPT,
}


@pytest.fixture
def python_collaborator() -> Callable[[str], SubprocessExecutor]:
    """Factory for SubprocessExecutors running a named script with this interpreter."""

    def _make(name: str) -> SubprocessExecutor:
        return SubprocessExecutor(
            executable=sys.executable, args=["-c", COLLABORATOR_SCRIPTS[name]]
        )

    return _make


# ---------------------------------------------------------------------------
# In-process collaborators
# ---------------------------------------------------------------------------


def upper_handler(data: bytes) -> CollaboratorReply:
    return CollaboratorReply(stdout=data.upper())


def failing_handler(data: bytes) -> CollaboratorReply:
    return CollaboratorReply(stdout=b"partial answer", stderr=b"something broke", exit_code=3)


@pytest.fixture
def big_output_size() -> int:
    return BIG_OUTPUT_SIZE


@pytest.fixture
def echo_executor() -> InProcessExecutor:
    """An in-process collaborator that echoes its input."""
    return InProcessExecutor()


@pytest.fixture
def upper_executor() -> InProcessExecutor:
    """An in-process collaborator that uppercases its input."""
    return InProcessExecutor(upper_handler)


@pytest.fixture
def failing_executor() -> InProcessExecutor:
    """An in-process collaborator that complains on stderr and exits 3."""
    return InProcessExecutor(failing_handler)


@pytest.fixture
def subprocess_echo() -> SubprocessExecutor:
    """A real child process that echoes its input."""
    return SubprocessExecutor(executable=sys.executable, args=["-c", ECHO_SCRIPT])
