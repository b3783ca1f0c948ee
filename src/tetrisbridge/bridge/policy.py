"""Maps bridge results onto HTTP responses.

``legacy`` mode reproduces the historical endpoint exactly: every request
gets a 200 with whatever the collaborator printed, possibly nothing.
``hardened`` mode reports launch, I/O, timeout and overflow failures with
a server-error status and an empty body.
"""

from __future__ import annotations

import logging
import re

from tetrisbridge.config.settings import ResponseConfig
from tetrisbridge.domain.models import BridgeResponse, BridgeResult, Success

logger = logging.getLogger(__name__)

HEADER_OUTCOME = "X-Bridge-Outcome"
HEADER_EXIT_CODE = "X-Bridge-Exit-Code"
HEADER_STDERR = "X-Bridge-Stderr"

MAX_STDERR_HEADER_CHARS = 512

# Status codes used in hardened mode
HARDENED_STATUS = {
    "launch_failed": 502,
    "io_failed": 502,
    "timeout": 504,
    "output_too_large": 502,
}

_UNSAFE_HEADER_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def stderr_header_value(stderr: bytes) -> str:
    """Squash stderr into a single printable header line."""
    text = stderr.decode("utf-8", errors="replace")
    text = _UNSAFE_HEADER_CHARS.sub(" ", text).strip()
    # Header values are latin-1 on the wire
    text = text.encode("latin-1", errors="replace").decode("latin-1")
    return text[:MAX_STDERR_HEADER_CHARS]


def diagnostic_headers(result: BridgeResult) -> dict[str, str]:
    headers = {HEADER_OUTCOME: result.outcome}
    exit_code = getattr(result, "exit_code", None)
    if exit_code is not None:
        headers[HEADER_EXIT_CODE] = str(exit_code)
    stderr = getattr(result, "stderr", b"")
    if stderr:
        headers[HEADER_STDERR] = stderr_header_value(stderr)
    return headers


def render_response(
    result: BridgeResult, config: ResponseConfig | None = None
) -> BridgeResponse:
    """Decide status, body and headers for a bridge result."""
    if config is None:
        config = ResponseConfig()

    headers = diagnostic_headers(result) if config.expose_diagnostics else {}

    if config.mode == "legacy":
        return BridgeResponse(status_code=200, body=result.output, headers=headers)

    if isinstance(result, Success):
        if result.exit_code != 0 and config.fail_on_nonzero_exit:
            return BridgeResponse(status_code=502, body=b"", headers=headers)
        return BridgeResponse(status_code=200, body=result.stdout, headers=headers)

    status = HARDENED_STATUS[result.outcome]
    logger.debug("Reporting %s as HTTP %d", result.outcome, status)
    return BridgeResponse(status_code=status, body=b"", headers=headers)
