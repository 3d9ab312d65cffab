"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types. Both relays translate platform
events into ``InboundMessage`` and build ``OutboundMessage`` descriptors, so
Matrix and Telegram shapes never leak past the adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union

# Matrix event ids are strings, Telegram message ids are integers.
NativeId = Union[str, int]

FALLBACK_TEXT = "this message cannot be displayed"


class MessageKind(str, Enum):
    """Message kinds understood by both relays."""

    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"


@dataclass(frozen=True)
class Bridge:
    """A configured pairing of one Matrix room and one Telegram chat."""

    source_room_id: str
    dest_chat_id: int


@dataclass(frozen=True)
class CorrespondenceRecord:
    """Persisted fact that a Matrix event and a Telegram message are the same."""

    source_message_id: str
    dest_chat_id: int
    dest_message_id: int

    @property
    def dest_message(self) -> Tuple[int, int]:
        return self.dest_chat_id, self.dest_message_id


@dataclass(frozen=True)
class MediaRef:
    """Source-native reference to an attachment (mxc:// uri or Telegram file_id)."""

    handle: str
    mimetype: Optional[str] = None
    file_name: Optional[str] = None
    size: Optional[int] = None
    is_video: bool = False


@dataclass(frozen=True)
class InboundMessage:
    """Platform-neutral view of an incoming event.

    ``kind`` is ``None`` when the mapper could not classify the event; relays
    reject such messages as unsupported. ``reply_to`` carries the native id
    of the replied-to message for every kind, stickers included.
    """

    conversation_id: NativeId
    message_id: NativeId
    sender_id: str
    sender_name: str
    kind: Optional[MessageKind]
    text: str = ""
    media: Optional[MediaRef] = None
    reply_to: Optional[NativeId] = None


@dataclass(frozen=True)
class TransferredMedia:
    """Attachment bytes moved from the source platform to the destination."""

    display_name: str
    payload: bytes
    content_type: str
    handle: Optional[str] = None


@dataclass(frozen=True)
class OutboundMessage:
    """Descriptor a relay hands to the outbound sender.

    ``text`` is the body of a text message or the caption of a media message.
    """

    kind: MessageKind
    text: str = ""
    payload: bytes = b""
    file_name: Optional[str] = None
    mimetype: Optional[str] = None
    content_uri: Optional[str] = None
    reply_target: Optional[NativeId] = None
    link_preview_enabled: bool = False

    def as_fallback(self) -> "OutboundMessage":
        """Return the placeholder text sent when the original is too large."""

        return replace(
            self,
            kind=MessageKind.TEXT,
            text=FALLBACK_TEXT,
            payload=b"",
            file_name=None,
            mimetype=None,
            content_uri=None,
            link_preview_enabled=False,
        )
