"""
RPC server implementation.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar

from chat_rpc_bridge.data import HttpMethod, RPCCodec, RPCResponse, dumps, split_route
from chat_rpc_bridge.exceptions import (
    RPCBadRequestError,
    RPCSerializationError,
    RPCTransportError,
)
from chat_rpc_bridge.router import Handler, Router
from chat_rpc_bridge.transport import ChatMessage, ChatTransport, FileUpload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerRequest:
    message: ChatMessage
    author_id: str
    method: HttpMethod
    path: str
    params: dict[str, str]
    query: dict[str, str]
    body: Any = None


class ServerResponse:
    """
    Reply sink for one inbound request.

    Any number of 1xx updates may be sent; the first response with any other status is
    final and closes the sink.
    """

    class State(str, Enum):
        OPEN = "OPEN"
        FINAL = "FINAL"

    def __init__(self, transport: ChatTransport, message: ChatMessage):
        self.transport = transport
        self.message = message
        self.status_code: int = 200
        self.state: ServerResponse.State = self.State.OPEN

    @property
    def sent_final(self) -> bool:
        return self.state is self.State.FINAL

    def status(self, code: int) -> ServerResponse:
        self.status_code = code
        return self

    async def json(self, data: Any) -> ChatMessage | None:
        """
        Send *data* as a reply with the current status code.

        Returns:
            The reply message, or None if a final response was already sent

        Raises:
            RPCTransportError: If the reply could not be posted
        """
        if self.sent_final:
            logger.warning("A final response has already been sent for this request.")
            return None
        response = RPCResponse(status=self.status_code, body=data)
        if response.is_final:
            # Closed before the first suspension point so interleaved code cannot send twice
            self.state = self.State.FINAL
        try:
            content = RPCCodec.encode_response(response)
        except RPCSerializationError:
            logger.error("Failed to serialize API response", exc_info=True)
            self.state = self.State.FINAL
            self.status_code = 500
            content = f"500 {dumps({'error': 'Failed to serialize response'})}"
        return await self.transport.reply(self.message, content)


class RPCServer:
    """Routes requests addressed to this participant and replies on the same channel."""

    class Status(str, Enum):
        INITIALIZED = "INITIALIZED"
        RUNNING = "RUNNING"
        CLOSED = "CLOSED"

    DOCS_FILENAME: ClassVar[str] = "api-docs.txt"

    def __init__(self, transport: ChatTransport, docs: str = ""):
        """
        Initialize the RPC server.

        Args:
            transport: Chat transport the server listens and replies on
            docs: Documentation text, sent as a file to ``<@id>:api`` or ``<@id>:api docs``
        """
        self.transport: ChatTransport = transport
        self.docs: str = docs.strip()
        self.codec: RPCCodec = RPCCodec(transport.user_id)
        self.router: Router = Router()
        self._status: RPCServer.Status = self.Status.INITIALIZED

    @property
    def status(self) -> Status:
        return self._status

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self, method: HttpMethod | str, path: str, handler: Handler, docs: str | None = None
    ) -> None:
        self.router.register(method, path, handler, docs)

    def route(
        self, method: HttpMethod | str, path: str, docs: str | None = None
    ) -> Callable[[Handler], Handler]:
        """Decorator to register a handler."""

        def decorator(handler: Handler) -> Handler:
            self.register(method, path, handler, docs)
            return handler

        return decorator

    def get(self, path: str, docs: str | None = None) -> Callable[[Handler], Handler]:
        """
        Register a handler for ``GET`` requests of *path*::

            @server.get("/balance/:userId")
            async def balance(req, res):
                await res.status(200).json({"amount": 50000000})
        """
        return self.route(HttpMethod.GET, path, docs)

    def post(self, path: str, docs: str | None = None) -> Callable[[Handler], Handler]:
        """Register a handler for ``POST`` requests; the JSON body is in ``req.body``."""
        return self.route(HttpMethod.POST, path, docs)

    def put(self, path: str, docs: str | None = None) -> Callable[[Handler], Handler]:
        return self.route(HttpMethod.PUT, path, docs)

    def patch(self, path: str, docs: str | None = None) -> Callable[[Handler], Handler]:
        return self.route(HttpMethod.PATCH, path, docs)

    def delete(self, path: str, docs: str | None = None) -> Callable[[Handler], Handler]:
        return self.route(HttpMethod.DELETE, path, docs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start listening. Returns immediately; requests are served on the running loop."""
        if self._status is self.Status.RUNNING:
            return
        if self._status is self.Status.CLOSED:
            raise RPCTransportError("Server is closed")
        self.transport.add_listener(self._handle_message)
        self._status = self.Status.RUNNING
        logger.info(f"Listening on {self.codec.prefix}")

    def close(self) -> None:
        if self._status is self.Status.RUNNING:
            self.transport.remove_listener(self._handle_message)
        self._status = self.Status.CLOSED

    def __enter__(self) -> RPCServer:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        self.close()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _handle_message(self, message: ChatMessage) -> None:
        if message.author_id == self.transport.user_id:
            return
        command = self.codec.parse_command(message.content)
        if command is None:
            return
        logger.debug(f"Received command from {message.author_id} (#{message.id}): {command}")

        try:
            if not command or command == RPCCodec.DOCS_COMMAND:
                await self._send_docs(message)
            elif command == RPCCodec.ROUTES_COMMAND:
                await self._send_routes(message)
            else:
                await self._dispatch(message, command)
        except RPCTransportError:
            logger.error(f"Failed to reply to message #{message.id}", exc_info=True)

    async def _send_docs(self, message: ChatMessage) -> None:
        upload = FileUpload(filename=self.DOCS_FILENAME, data=self.docs.encode("utf-8"))
        await self.transport.reply(message, files=[upload])

    async def _send_routes(self, message: ChatMessage) -> None:
        routes = [info.to_dict() for info in self.router.describe()]
        await ServerResponse(self.transport, message).status(200).json(routes)

    async def _dispatch(self, message: ChatMessage, command: str) -> None:
        try:
            method, route, body_text = self.codec.split_request(command)
        except RPCBadRequestError as e:
            await ServerResponse(self.transport, message).status(e.status).json({"error": str(e)})
            return

        path, query = split_route(route)
        match = self.router.match(method, path)
        if match is None:
            await ServerResponse(self.transport, message).status(404).json(
                {"error": f"Route not found: {method.value} {path}"}
            )
            return

        try:
            body = self.codec.decode_body(body_text)
        except RPCBadRequestError as e:
            await ServerResponse(self.transport, message).status(e.status).json({"error": str(e)})
            return

        request = ServerRequest(
            message=message,
            author_id=message.author_id,
            method=method,
            path=path,
            params=match.params,
            query=query,
            body=body,
        )
        response = ServerResponse(self.transport, message)
        try:
            result = match.route.handler(request, response)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.error(f"Error in handler for {method.value} {route}", exc_info=True)
            if not response.sent_final:
                await response.status(500).json({"error": "Internal Server Error"})
