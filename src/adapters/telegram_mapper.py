"""Telegram-to-core message mapping adapter.

This keeps python-telegram-bot details out of the core relays.
"""

from __future__ import annotations

from typing import Optional, Tuple

from telegram import Message

from core.models import InboundMessage, MediaRef, MessageKind


def sender_name_from_message(message: Message) -> Optional[str]:
    """Return the attribution name: channel title for channel posts, else the user's name."""

    sender_chat = getattr(message, "sender_chat", None)
    if sender_chat is not None:
        # Anonymous group admins post as the group itself; there is no name to show.
        if getattr(sender_chat, "type", None) != "channel":
            return None
        return getattr(sender_chat, "title", None) or ""

    user = getattr(message, "from_user", None)
    if user is None:
        return None
    return user.full_name


def _reply_to_from_message(message: Message) -> Optional[int]:
    reply = getattr(message, "reply_to_message", None)
    if reply is None:
        return None
    # In forum topics every message "replies" to the topic's service message.
    if getattr(reply, "forum_topic_created", None):
        return None
    return reply.message_id


def _classify(message: Message) -> Tuple[Optional[MessageKind], Optional[MediaRef]]:
    photo = getattr(message, "photo", None)
    if photo:
        largest = photo[-1]
        return MessageKind.PHOTO, MediaRef(handle=largest.file_id, size=largest.file_size)

    # Animations also populate ``document``, so they are checked first.
    animation = getattr(message, "animation", None)
    if animation is not None:
        return MessageKind.VIDEO, MediaRef(
            handle=animation.file_id,
            mimetype=animation.mime_type or "video/mp4",
            file_name=animation.file_name,
            size=animation.file_size,
            is_video=True,
        )

    sticker = getattr(message, "sticker", None)
    if sticker is not None:
        return MessageKind.STICKER, MediaRef(
            handle=sticker.file_id,
            size=sticker.file_size,
            is_video=bool(sticker.is_video),
        )

    video = getattr(message, "video", None)
    if video is not None:
        return MessageKind.VIDEO, MediaRef(
            handle=video.file_id,
            mimetype=video.mime_type,
            file_name=video.file_name,
            size=video.file_size,
            is_video=True,
        )

    document = getattr(message, "document", None)
    if document is not None:
        return MessageKind.DOCUMENT, MediaRef(
            handle=document.file_id,
            mimetype=document.mime_type,
            file_name=document.file_name,
            size=document.file_size,
        )

    if getattr(message, "text", None):
        return MessageKind.TEXT, None
    return None, None


def build_inbound(message: Message) -> InboundMessage:
    """Build a core InboundMessage from a python-telegram-bot Message."""

    kind, media = _classify(message)
    sender_name = sender_name_from_message(message)
    if sender_name is None:
        kind = None

    user = getattr(message, "from_user", None)
    sender_id = str(user.id) if user is not None else ""
    text = getattr(message, "text", None) or getattr(message, "caption", None) or ""

    return InboundMessage(
        conversation_id=message.chat_id,
        message_id=message.message_id,
        sender_id=sender_id,
        sender_name=sender_name or "",
        kind=kind,
        text=text,
        media=media,
        reply_to=_reply_to_from_message(message),
    )
