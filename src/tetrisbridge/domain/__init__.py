"""Domain models for tetrisbridge.

Result variants of a bridge run and the HTTP presentation of a result.
All models use Pydantic v2 for validation.
"""

from tetrisbridge.domain.models import (
    BridgeResponse,
    BridgeResult,
    CollaboratorReply,
    IOFailed,
    LaunchFailed,
    OutputTooLarge,
    Success,
    Timeout,
)

__all__ = [
    "BridgeResponse",
    "BridgeResult",
    "CollaboratorReply",
    "IOFailed",
    "LaunchFailed",
    "OutputTooLarge",
    "Success",
    "Timeout",
]
