"""Matrix-to-core event mapping adapter.

This keeps matrix-nio details out of the core relays. Mapping works on the
raw event ``source`` so every kind, stickers included, gets its reply
relation read the same way.
"""

from __future__ import annotations

from typing import Optional, Tuple

from core.formatting import matrix_localpart
from core.models import InboundMessage, MediaRef, MessageKind

STICKER_EVENT = "m.sticker"

_MSGTYPE_KINDS = {
    "m.text": MessageKind.TEXT,
    "m.notice": MessageKind.TEXT,
    "m.emote": MessageKind.TEXT,
    "m.image": MessageKind.PHOTO,
    "m.video": MessageKind.VIDEO,
    "m.file": MessageKind.DOCUMENT,
}


def reply_relation(content: dict) -> Optional[str]:
    """Return the event id this content replies to, if any."""

    relates_to = content.get("m.relates_to")
    if not isinstance(relates_to, dict):
        return None
    in_reply_to = relates_to.get("m.in_reply_to")
    if not isinstance(in_reply_to, dict):
        return None
    event_id = in_reply_to.get("event_id")
    return event_id if isinstance(event_id, str) and event_id else None


def strip_reply_fallback(body: str) -> str:
    """Drop the ``> quoted`` preamble clients prepend to reply bodies."""

    if not body.startswith(">"):
        return body
    lines = body.split("\n")
    index = 0
    while index < len(lines) and lines[index].startswith(">"):
        index += 1
    if index < len(lines) and lines[index] == "":
        index += 1
    return "\n".join(lines[index:])


def _media_from_content(content: dict) -> Optional[MediaRef]:
    url = content.get("url")
    if not isinstance(url, str) or not url:
        # Encrypted attachments carry a "file" object instead; not supported.
        return None
    info = content.get("info") if isinstance(content.get("info"), dict) else {}
    mimetype = info.get("mimetype")
    return MediaRef(
        handle=url,
        mimetype=mimetype,
        file_name=content.get("filename") or content.get("body"),
        size=info.get("size"),
        is_video=isinstance(mimetype, str) and mimetype.startswith("video/"),
    )


def _classify(event_type: Optional[str], content: dict) -> Tuple[Optional[MessageKind], Optional[MediaRef]]:
    if event_type == STICKER_EVENT:
        return MessageKind.STICKER, _media_from_content(content)
    kind = _MSGTYPE_KINDS.get(content.get("msgtype"))
    if kind is None or kind is MessageKind.TEXT:
        return kind, None
    return kind, _media_from_content(content)


def build_inbound(room_id: str, event) -> InboundMessage:
    """Build a core InboundMessage from a matrix-nio room event."""

    source = getattr(event, "source", None) or {}
    content = source.get("content") or {}
    kind, media = _classify(source.get("type"), content)
    reply_to = reply_relation(content)

    body = content.get("body")
    text = body if isinstance(body, str) else ""
    if kind is MessageKind.TEXT and reply_to:
        text = strip_reply_fallback(text)

    return InboundMessage(
        conversation_id=room_id,
        message_id=event.event_id,
        sender_id=event.sender,
        sender_name=matrix_localpart(event.sender),
        kind=kind,
        text=text,
        media=media,
        reply_to=reply_to,
    )
