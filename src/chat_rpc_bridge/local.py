"""
In-process chat channel.

Every connected participant sees every message, in the order it was posted, the same
way members of a real chat channel do. Useful for tests, examples and for wiring a
client and a server living in the same event loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Sequence
from typing import Callable

from chat_rpc_bridge.exceptions import RPCTimeoutError, RPCTransportError
from chat_rpc_bridge.transport import (
    Attachment,
    ChatMessage,
    ChatTransport,
    FileUpload,
    MessageListener,
)

logger = logging.getLogger(__name__)


class LocalChannel:
    """Shared append-only message log."""

    ATTACHMENT_SCHEME = "local"

    def __init__(self, channel_id: str = "local"):
        self.id = channel_id
        self.history: list[ChatMessage] = []
        self._transports: list[LocalTransport] = []
        self._attachments: dict[str, bytes] = {}
        self._ids = itertools.count(1)
        self._tasks: set[asyncio.Task[None]] = set()

    def connect(self, user_id: str) -> LocalTransport:
        transport = LocalTransport(self, user_id)
        self._transports.append(transport)
        return transport

    def disconnect(self, transport: LocalTransport) -> None:
        if transport in self._transports:
            self._transports.remove(transport)

    def post(
        self,
        author_id: str,
        content: str,
        reference_id: str | None = None,
        files: Sequence[FileUpload] = (),
    ) -> ChatMessage:
        message_id = str(next(self._ids))
        attachments = []
        for index, upload in enumerate(files):
            url = f"{self.ATTACHMENT_SCHEME}://{self.id}/{message_id}/{index}/{upload.filename}"
            self._attachments[url] = bytes(upload.data)
            attachments.append(
                Attachment(id=f"{message_id}.{index}", filename=upload.filename, url=url)
            )
        message = ChatMessage(
            id=message_id,
            channel_id=self.id,
            author_id=author_id,
            content=content,
            reference_id=reference_id,
            attachments=tuple(attachments),
        )
        self.history.append(message)
        logger.debug(f"[{self.id}] #{message_id} <{author_id}> {content!r}")
        for transport in list(self._transports):
            transport._deliver(message)
        return message

    def attachment_data(self, url: str) -> bytes:
        try:
            return self._attachments[url]
        except KeyError:
            raise RPCTransportError(f"Unknown attachment: {url}") from None

    def _track(self, task: asyncio.Task[None]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait until every listener task (including ones they trigger) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


class LocalTransport(ChatTransport):
    """One participant connected to a LocalChannel."""

    def __init__(self, channel: LocalChannel, user_id: str):
        self.channel = channel
        self._user_id = user_id
        self._listeners: list[MessageListener] = []
        self._waiters: list[tuple[Callable[[ChatMessage], bool], asyncio.Future[ChatMessage]]] = []
        self._closed = False

    @property
    def user_id(self) -> str:
        return self._user_id

    def add_listener(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _deliver(self, message: ChatMessage) -> None:
        for predicate, future in list(self._waiters):
            if not future.done() and predicate(message):
                future.set_result(message)
        loop = asyncio.get_running_loop()
        for listener in list(self._listeners):
            self.channel._track(loop.create_task(listener(message)))

    def _check_open(self) -> None:
        if self._closed:
            raise RPCTransportError(f"Transport for {self._user_id} is closed")

    async def send(self, content: str, files: Sequence[FileUpload] = ()) -> ChatMessage:
        self._check_open()
        return self.channel.post(self._user_id, content, files=files)

    async def reply(
        self, message: ChatMessage, content: str = "", files: Sequence[FileUpload] = ()
    ) -> ChatMessage:
        self._check_open()
        return self.channel.post(self._user_id, content, reference_id=message.id, files=files)

    async def fetch_attachment(self, attachment: Attachment) -> bytes:
        self._check_open()
        return self.channel.attachment_data(attachment.url)

    async def wait_for(
        self, predicate: Callable[[ChatMessage], bool], timeout: float
    ) -> ChatMessage:
        self._check_open()
        future: asyncio.Future[ChatMessage] = asyncio.get_running_loop().create_future()
        waiter = (predicate, future)
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise RPCTimeoutError(f"No matching message within {timeout}s") from None
        finally:
            self._waiters.remove(waiter)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        self.channel.disconnect(self)
