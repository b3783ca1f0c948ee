"""Request bridge module for tetrisbridge.

Translates one message into one collaborator run and the run's result
into an HTTP response.
"""

from tetrisbridge.bridge.core import RequestBridge, encode_payload
from tetrisbridge.bridge.policy import render_response

__all__ = ["RequestBridge", "encode_payload", "render_response"]
