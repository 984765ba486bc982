"""
Exceptions raised by chat-rpc-bridge.
"""

from __future__ import annotations

from typing import Any


class RPCError(Exception):
    """Base class for all chat-rpc-bridge errors."""


class RPCTransportError(RPCError):
    """The chat transport failed, or the endpoint is closed."""


class RPCTimeoutError(RPCError):
    """No reply arrived within the armed window."""


class RPCSerializationError(RPCError):
    """A request or response line could not be encoded or decoded."""


class RPCBadRequestError(RPCSerializationError):
    """An inbound request line is invalid (unknown method keyword or bad JSON body)."""

    status = 400


class RPCMalformedResponseError(RPCSerializationError):
    """
    A response line could not be decoded.

    ``status`` holds the parsed status code, or None if the status itself was unreadable.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class RPCProtocolError(RPCError):
    """A one-shot docs/routes reply arrived but does not have the expected shape."""


class RPCMethodError(RPCError):
    """The remote route answered with an error status."""

    def __init__(self, status: int, body: Any):
        error = body.get("error") if isinstance(body, dict) else None
        super().__init__(f"{status}: {error if error is not None else body}")
        self.status = status
        self.body = body
