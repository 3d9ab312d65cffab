"""Telegram Bot API gateway adapter.

Sends relayed messages through python-telegram-bot and downloads Telegram
attachments for the Matrix side. Bot API errors are translated into the
core send errors so the retry policy stays platform-agnostic.
"""

from __future__ import annotations

import logging
from typing import Optional

from telegram import LinkPreviewOptions, ReplyParameters, Update
from telegram.error import RetryAfter, TelegramError, TimedOut
from telegram.ext import ContextTypes

from adapters.telegram_mapper import build_inbound
from core.errors import BridgeError, PayloadTooLargeError, SendError, TransientSendError
from core.models import MediaRef, MessageKind, NativeId, OutboundMessage
from core.telegram_to_matrix import TelegramToMatrixRelay

LOGGER = logging.getLogger(__name__)

# Bot API wording for 413 responses and oversized text/captions.
_TOO_LARGE_MARKERS = ("too large", "too big", "too long")


def _is_too_large(exc: TelegramError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _TOO_LARGE_MARKERS)


def webhook_url(base_url: str, token: str) -> str:
    """Return the externally advertised webhook URL, derived from the bot token."""

    return f"{base_url.rstrip('/')}/{token}"


class TelegramGateway:
    """Telegram side of the bridge: media source, media sink and messenger."""

    def __init__(self, bot) -> None:
        self._bot = bot

    async def download(self, media: MediaRef) -> bytes:
        telegram_file = await self._bot.get_file(media.handle)
        data = await telegram_file.download_as_bytearray()
        return bytes(data)

    async def upload(self, payload: bytes, content_type: str, file_name: str) -> Optional[str]:
        # The Bot API has no separate content repository; bytes go out with the message.
        return None

    async def send(self, destination: NativeId, message: OutboundMessage) -> NativeId:
        kwargs = {"chat_id": int(destination)}
        if message.reply_target is not None:
            # Replies to messages deleted on Telegram still go through, just unthreaded.
            kwargs["reply_parameters"] = ReplyParameters(
                message_id=int(message.reply_target),
                allow_sending_without_reply=True,
            )

        try:
            sent = await self._dispatch(message, kwargs)
        except TimedOut as exc:
            raise TransientSendError(f"Telegram timed out: {exc}") from exc
        except RetryAfter as exc:
            # Flood control (429).
            raise TransientSendError(f"Telegram flood control: {exc}") from exc
        except TelegramError as exc:
            if _is_too_large(exc):
                raise PayloadTooLargeError(str(exc)) from exc
            raise SendError(f"Bot API error: {exc}") from exc
        return sent.message_id

    async def _dispatch(self, message: OutboundMessage, kwargs: dict):
        kind = message.kind
        if kind is MessageKind.TEXT:
            return await self._bot.send_message(
                text=message.text,
                link_preview_options=LinkPreviewOptions(is_disabled=not message.link_preview_enabled),
                **kwargs,
            )
        if kind is MessageKind.PHOTO:
            return await self._bot.send_photo(
                photo=message.payload, caption=message.text, filename=message.file_name, **kwargs
            )
        if kind is MessageKind.VIDEO:
            return await self._bot.send_video(
                video=message.payload, caption=message.text, filename=message.file_name, **kwargs
            )
        if kind is MessageKind.DOCUMENT:
            return await self._bot.send_document(
                document=message.payload, caption=message.text, filename=message.file_name, **kwargs
            )
        if kind is MessageKind.STICKER:
            return await self._bot.send_sticker(sticker=message.payload, **kwargs)
        raise SendError(f"Unsupported outbound kind: {kind}")


def make_update_handler(relay: TelegramToMatrixRelay):
    """Build the python-telegram-bot callback feeding new messages into the relay.

    Edited messages and other update types are ignored; edits are not bridged.
    """

    async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        message = update.message
        if message is None:
            return
        try:
            await relay.handle(build_inbound(message))
        except BridgeError as exc:
            LOGGER.warning("Telegram message %s not relayed: %s", message.message_id, exc)
        except Exception:
            LOGGER.exception("Error while relaying Telegram message %s", message.message_id)

    return on_message
