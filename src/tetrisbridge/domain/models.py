"""Core domain models for the tetrisbridge system.

A bridge run never raises for collaborator failures. Instead it returns
one of the result variants below, and the response policy decides how
each variant is presented to the HTTP caller.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Collaborator reply (used by in-process executors)
# ---------------------------------------------------------------------------


class CollaboratorReply(BaseModel):
    """What a collaborator produced for one input message."""

    model_config = ConfigDict(frozen=True)

    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0


# ---------------------------------------------------------------------------
# Bridge results
# ---------------------------------------------------------------------------


class _ResultBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    elapsed: float = Field(default=0.0, ge=0, description="Wall-clock seconds spent")

    @property
    def output(self) -> bytes:
        """Standard-output bytes captured from the collaborator."""
        return getattr(self, "stdout", b"")

    @property
    def ok(self) -> bool:
        return False


class Success(_ResultBase):
    """The collaborator ran to completion. Any exit code counts."""

    outcome: Literal["success"] = "success"
    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return True


class LaunchFailed(_ResultBase):
    """The collaborator could not be started at all."""

    outcome: Literal["launch_failed"] = "launch_failed"
    reason: str = ""


class IOFailed(_ResultBase):
    """Writing the input or draining an output stream failed."""

    outcome: Literal["io_failed"] = "io_failed"
    stage: Literal["stdin", "stdout", "stderr"]
    reason: str = ""
    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int | None = None


class Timeout(_ResultBase):
    """The collaborator was killed after exceeding the time limit."""

    outcome: Literal["timeout"] = "timeout"
    timeout: float
    stdout: bytes = b""
    stderr: bytes = b""


class OutputTooLarge(_ResultBase):
    """The collaborator was killed after exceeding the output cap."""

    outcome: Literal["output_too_large"] = "output_too_large"
    limit: int
    stdout: bytes = b""
    stderr: bytes = b""


BridgeResult = Annotated[
    Union[Success, LaunchFailed, IOFailed, Timeout, OutputTooLarge],
    Field(discriminator="outcome"),
]


# ---------------------------------------------------------------------------
# HTTP presentation
# ---------------------------------------------------------------------------


class BridgeResponse(BaseModel):
    """Status, body and headers to send back for one bridge run."""

    status_code: int = 200
    body: bytes = b""
    headers: dict[str, str] = Field(default_factory=dict)
    media_type: str = "application/octet-stream"
