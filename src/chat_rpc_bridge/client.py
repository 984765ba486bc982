"""
RPC client implementation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, ClassVar

from chat_rpc_bridge._internal.pending import PendingCallTable, UpdateCallback
from chat_rpc_bridge.data import APIRouteInfo, HttpMethod, RPCCodec, RPCRequest, RPCResponse
from chat_rpc_bridge.exceptions import (
    RPCMalformedResponseError,
    RPCProtocolError,
    RPCTimeoutError,
    RPCTransportError,
)
from chat_rpc_bridge.transport import ChatMessage, ChatTransport

logger = logging.getLogger(__name__)


class RPCClient:
    """RPC client for one target server. Construct one per server you talk to."""

    DEFAULT_TIMEOUT: ClassVar[float] = 15.0

    def __init__(
        self,
        transport: ChatTransport,
        target_id: str,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the RPC client.

        Args:
            transport: Chat transport requests are sent on
            target_id: Identity of the server to address
            timeout: Default time in seconds to wait for the first reply to a call
        """
        self.transport: ChatTransport = transport
        self.target_id: str = target_id
        self.timeout: float = timeout
        self.codec: RPCCodec = RPCCodec(target_id)
        self.pending: PendingCallTable = PendingCallTable()
        self._closed = False
        self.transport.add_listener(self._handle_reply)

    async def call(
        self,
        method: HttpMethod | str,
        route: str,
        *,
        body: Any = None,
        on_update: UpdateCallback | None = None,
        timeout: float | None = None,
    ) -> RPCResponse:
        """
        Make an RPC call to the server.

        Args:
            method: HTTP-like method keyword
            route: Path with optional query string, unencoded
            body: JSON-serializable request body
            on_update: Called with every intermediate (1xx) reply
            timeout: Overrides the default wait for the first reply. Once an intermediate
                reply arrives the call waits for its final reply without any limit.

        Returns:
            The final response, whatever its status

        Raises:
            RPCTimeoutError: If no reply arrives within the timeout
            RPCMalformedResponseError: If the final reply cannot be decoded
            RPCTransportError: If the request could not be sent or the client is closed
        """
        self._check_open()
        request = RPCRequest(method=HttpMethod(method.upper()), route=route, body=body)
        content = self.codec.encode_request(request)
        message = await self.transport.send(content)
        logger.debug(f"Sent {request.method.value} {route} as #{message.id}")

        future: asyncio.Future[RPCResponse] = asyncio.get_running_loop().create_future()
        self.pending.register(
            message.id,
            future,
            self.timeout if timeout is None else timeout,
            on_update,
        )
        return await future

    async def get(
        self,
        route: str,
        *,
        on_update: UpdateCallback | None = None,
        timeout: float | None = None,
    ) -> RPCResponse:
        """Make a ``GET`` call, e.g. ``await client.get(f"/balance/{user_id}")``."""
        return await self.call(HttpMethod.GET, route, on_update=on_update, timeout=timeout)

    async def post(self, route: str, **options: Any) -> RPCResponse:
        return await self.call(HttpMethod.POST, route, **options)

    async def put(self, route: str, **options: Any) -> RPCResponse:
        return await self.call(HttpMethod.PUT, route, **options)

    async def patch(self, route: str, **options: Any) -> RPCResponse:
        return await self.call(HttpMethod.PATCH, route, **options)

    async def delete(self, route: str, **options: Any) -> RPCResponse:
        return await self.call(HttpMethod.DELETE, route, **options)

    async def docs(self) -> str:
        """
        Fetch the server's documentation text.

        Raises:
            RPCTimeoutError: If the server did not answer
            RPCProtocolError: If the answer carries no attachment
        """
        reply = await self._one_shot(RPCCodec.DOCS_COMMAND, "docs")
        if not reply.attachments:
            raise RPCProtocolError("Malformed docs response: no attachment found.")
        data = await self.transport.fetch_attachment(reply.attachments[0])
        return data.decode("utf-8", errors="replace")

    async def routes(self) -> list[APIRouteInfo]:
        """
        Fetch the server's route listing, in registration order.

        Raises:
            RPCTimeoutError: If the server did not answer
            RPCProtocolError: If the answer is not a route listing
        """
        reply = await self._one_shot(RPCCodec.ROUTES_COMMAND, "routes")
        try:
            response = self.codec.decode_response(reply.content)
        except RPCMalformedResponseError as e:
            raise RPCProtocolError(f"Malformed routes response: {e}") from e
        if not isinstance(response.body, list):
            raise RPCProtocolError("Malformed routes response: expected a list of routes.")
        try:
            return [APIRouteInfo.from_dict(entry) for entry in response.body]
        except ValueError as e:
            raise RPCProtocolError(f"Malformed routes response: {e}") from e

    async def _one_shot(self, command: str, label: str) -> ChatMessage:
        self._check_open()
        message = await self.transport.send(self.codec.encode_command(command))
        try:
            return await self.transport.wait_for(
                lambda m: m.author_id == self.target_id and m.reference_id == message.id,
                self.timeout,
            )
        except RPCTimeoutError as e:
            raise RPCTimeoutError(
                f"Failed to fetch {label}: no reply within {self.timeout}s."
            ) from e

    async def _handle_reply(self, message: ChatMessage) -> None:
        if message.author_id != self.target_id or message.reference_id is None:
            return
        call_id = message.reference_id
        if call_id not in self.pending:
            return

        try:
            response = self.codec.decode_response(message.content)
        except RPCMalformedResponseError as e:
            if e.status is not None and e.status >= 200:
                self.pending.reject(call_id, e)
            else:
                logger.debug(f"Dropping undecodable intermediate reply #{message.id}: {e}")
            return

        if response.is_intermediate:
            self.pending.update(call_id, response)
        else:
            self.pending.resolve(call_id, response)

    def _check_open(self) -> None:
        if self._closed:
            raise RPCTransportError("Client closed")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.transport.remove_listener(self._handle_reply)
        self.pending.fail_all(RPCTransportError("Client closed"))

    def __enter__(self) -> RPCClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        self.close()
