"""
Transport boundary: one participant's view of a shared chat channel.
"""

from __future__ import annotations

import types
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Awaitable, Callable

MessageListener = Callable[["ChatMessage"], Awaitable[None]]


@dataclass(frozen=True)
class Attachment:
    id: str
    filename: str
    url: str


@dataclass(frozen=True)
class FileUpload:
    filename: str
    data: bytes


@dataclass(frozen=True)
class ChatMessage:
    """
    A message as seen by every participant of the channel.

    ``reference_id`` is the id of the message this one replies to, if any; it is the
    only correlation primitive the protocol relies on.
    """

    id: str
    channel_id: str
    author_id: str
    content: str
    reference_id: str | None = None
    attachments: tuple[Attachment, ...] = ()


class ChatTransport(ABC):
    """
    One participant's view of a shared, ordered, text-only chat channel.

    Listeners are coroutine functions called once per message, in channel order, for
    every message posted to the channel (including our own).
    """

    @property
    @abstractmethod
    def user_id(self) -> str:
        """Identity messages we post are authored by."""
        ...

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    @abstractmethod
    def add_listener(self, listener: MessageListener) -> None: ...

    @abstractmethod
    def remove_listener(self, listener: MessageListener) -> None: ...

    # ------------------------------------------------------------------
    # Send / Receive API
    # ------------------------------------------------------------------

    @abstractmethod
    async def send(self, content: str, files: Sequence[FileUpload] = ()) -> ChatMessage:
        """
        Post a new message to the channel.

        Raises:
            RPCTransportError: If the message could not be posted
        """
        ...

    @abstractmethod
    async def reply(
        self, message: ChatMessage, content: str = "", files: Sequence[FileUpload] = ()
    ) -> ChatMessage:
        """
        Post a message that references *message*.

        Raises:
            RPCTransportError: If the reply could not be posted
        """
        ...

    @abstractmethod
    async def fetch_attachment(self, attachment: Attachment) -> bytes:
        """
        Download an attachment's content.

        Raises:
            RPCTransportError: If the attachment cannot be fetched
        """
        ...

    @abstractmethod
    async def wait_for(
        self, predicate: Callable[[ChatMessage], bool], timeout: float
    ) -> ChatMessage:
        """
        Wait for the next message accepted by *predicate*.

        Raises:
            RPCTimeoutError: If no such message arrives within *timeout* seconds
        """
        ...

    def close(self) -> None:
        """Release the transport; the default implementation holds nothing."""

    # ------------------------------------------------------------------
    # Context Management
    # ------------------------------------------------------------------

    def __enter__(self) -> ChatTransport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()
