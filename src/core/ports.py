"""Ports (interfaces) used by the bridge core.

Ports define the minimal contracts for storage and platform adapters so
that the relays can be reused with different backends and driven by fakes
in tests.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from core.models import CorrespondenceRecord, MediaRef, NativeId, OutboundMessage


class CorrespondenceStorePort(Protocol):
    """Persistent Matrix event <-> Telegram message mapping, keyed by room id."""

    async def append(self, conversation_key: str, record: CorrespondenceRecord) -> None:
        ...

    async def lookup_dest_from_source(
        self, conversation_key: str, source_id: str
    ) -> Optional[Tuple[int, int]]:
        ...

    async def lookup_source_from_dest(
        self, conversation_key: str, chat_id: int, message_id: int
    ) -> Optional[str]:
        ...

    async def records(self, conversation_key: str) -> List[CorrespondenceRecord]:
        ...


class MediaSourcePort(Protocol):
    """Content repository an attachment is downloaded from."""

    async def download(self, media: MediaRef) -> bytes:
        ...


class MediaSinkPort(Protocol):
    """Content repository an attachment is re-uploaded to.

    Returns the destination content handle, or ``None`` when the destination
    uploads the bytes together with the message.
    """

    async def upload(self, payload: bytes, content_type: str, file_name: str) -> Optional[str]:
        ...


class MessengerPort(Protocol):
    """Destination send operation.

    Implementations translate platform failures into ``TransientSendError``,
    ``PayloadTooLargeError`` or ``SendError``.
    """

    async def send(self, destination: NativeId, message: OutboundMessage) -> NativeId:
        ...
