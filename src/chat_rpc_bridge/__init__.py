"""
chat-rpc-bridge: HTTP-like request/response RPC over a shared chat channel.
"""

__version__ = "0.1.0"

from chat_rpc_bridge.client import RPCClient
from chat_rpc_bridge.data import (
    APIRouteInfo,
    HttpMethod,
    RPCCodec,
    RPCRequest,
    RPCResponse,
)
from chat_rpc_bridge.exceptions import (
    RPCBadRequestError,
    RPCError,
    RPCMalformedResponseError,
    RPCMethodError,
    RPCProtocolError,
    RPCSerializationError,
    RPCTimeoutError,
    RPCTransportError,
)
from chat_rpc_bridge.local import LocalChannel, LocalTransport
from chat_rpc_bridge.router import Route, RouteMatch, Router
from chat_rpc_bridge.server import RPCServer, ServerRequest, ServerResponse
from chat_rpc_bridge.transport import Attachment, ChatMessage, ChatTransport, FileUpload

__all__ = [
    "RPCClient",
    "RPCServer",
    "ServerRequest",
    "ServerResponse",
    "Router",
    "Route",
    "RouteMatch",
    "RPCCodec",
    "RPCRequest",
    "RPCResponse",
    "APIRouteInfo",
    "HttpMethod",
    "ChatTransport",
    "ChatMessage",
    "Attachment",
    "FileUpload",
    "LocalChannel",
    "LocalTransport",
    "RPCError",
    "RPCTimeoutError",
    "RPCSerializationError",
    "RPCBadRequestError",
    "RPCMalformedResponseError",
    "RPCProtocolError",
    "RPCMethodError",
    "RPCTransportError",
]
