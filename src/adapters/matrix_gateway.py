"""Matrix client-server gateway adapter.

Wraps a matrix-nio ``AsyncClient``: content repository download/upload,
``m.room.message`` sends, and the long-poll sync loop feeding the
Matrix -> Telegram relay. nio reports API failures as ``ErrorResponse``
objects and transport failures as exceptions; both are translated into the
core error taxonomy here.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

import aiohttp
from nio import AsyncClient, ErrorResponse, MatrixRoom, RoomMessage, StickerEvent, SyncResponse

from adapters.matrix_mapper import build_inbound
from core.dispatch import TaskSpawner
from core.errors import MediaUnavailableError, PayloadTooLargeError, SendError, TransientSendError
from core.matrix_to_telegram import MatrixToTelegramRelay
from core.models import MediaRef, MessageKind, NativeId, OutboundMessage

LOGGER = logging.getLogger(__name__)

_MSGTYPES = {
    MessageKind.TEXT: "m.text",
    MessageKind.PHOTO: "m.image",
    MessageKind.STICKER: "m.image",
    MessageKind.VIDEO: "m.video",
    MessageKind.DOCUMENT: "m.file",
}

_TRANSIENT_ERRCODES = {"M_LIMIT_EXCEEDED"}
_TRANSIENT_HTTP_STATUSES = {408, 502, 503, 504}


def build_content(message: OutboundMessage) -> dict:
    """Return the ``m.room.message`` content for an outbound message."""

    content: dict = {"msgtype": _MSGTYPES[message.kind], "body": message.text}
    if message.kind is not MessageKind.TEXT:
        if not message.content_uri:
            raise SendError(f"{message.kind.value} message has no uploaded content")
        content["url"] = message.content_uri
        if message.file_name:
            content["filename"] = message.file_name
        info: dict = {}
        if message.mimetype:
            info["mimetype"] = message.mimetype
        if message.payload:
            info["size"] = len(message.payload)
        if info:
            content["info"] = info
    if message.reply_target is not None:
        content["m.relates_to"] = {"m.in_reply_to": {"event_id": str(message.reply_target)}}
    return content


def _send_error(response: ErrorResponse) -> SendError:
    errcode = getattr(response, "status_code", None)
    transport = getattr(response, "transport_response", None)
    http_status = getattr(transport, "status", None)
    detail = f"{errcode}: {response.message}"
    if errcode == "M_TOO_LARGE" or http_status == 413:
        return PayloadTooLargeError(detail)
    if errcode in _TRANSIENT_ERRCODES or http_status in _TRANSIENT_HTTP_STATUSES:
        return TransientSendError(detail)
    return SendError(detail)


class MatrixGateway:
    """Matrix side of the bridge: media source, media sink and messenger."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    @property
    def user_id(self) -> str:
        return self._client.user_id

    async def download(self, media: MediaRef) -> bytes:
        response = await self._client.download(mxc=media.handle)
        if isinstance(response, ErrorResponse):
            raise MediaUnavailableError(f"download of {media.handle} failed: {response.message}")
        return response.body

    async def upload(self, payload: bytes, content_type: str, file_name: str) -> Optional[str]:
        response, _ = await self._client.upload(
            io.BytesIO(payload),
            content_type=content_type,
            filename=file_name,
            filesize=len(payload),
        )
        if isinstance(response, ErrorResponse):
            raise MediaUnavailableError(f"upload of {file_name} failed: {response.message}")
        return response.content_uri

    async def send(self, destination: NativeId, message: OutboundMessage) -> NativeId:
        content = build_content(message)
        try:
            response = await self._client.room_send(
                room_id=str(destination),
                message_type="m.room.message",
                content=content,
            )
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            raise TransientSendError(f"Matrix request failed: {exc!r}") from exc
        if isinstance(response, ErrorResponse):
            raise _send_error(response)
        return response.event_id

    def make_event_callback(self, relay: MatrixToTelegramRelay, spawner: TaskSpawner):
        """Build the nio event callback; each event is relayed in its own task."""

        async def on_event(room: MatrixRoom, event) -> None:
            inbound = build_inbound(room.room_id, event)
            spawner.spawn(relay.handle(inbound), name=f"matrix event {inbound.message_id}")

        return on_event

    async def _initial_sync(self, timeout_ms: int, retry_delay: float) -> None:
        while True:
            try:
                response = await self._client.sync(timeout=timeout_ms, full_state=True)
            except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
                LOGGER.warning("Matrix initial sync failed: %r; retrying in %ss", exc, retry_delay)
            else:
                if isinstance(response, SyncResponse):
                    return
                LOGGER.warning("Matrix initial sync rejected: %s; retrying in %ss", response, retry_delay)
            await asyncio.sleep(retry_delay)

    async def listen(
        self,
        relay: MatrixToTelegramRelay,
        spawner: TaskSpawner,
        timeout_ms: int,
        retry_delay: float = 5.0,
    ) -> None:
        """Long-poll /sync forever, relaying new room messages and stickers.

        An initial full-state sync runs before the callback is registered so
        history from before startup is not replayed.
        """

        await self._initial_sync(timeout_ms, retry_delay)
        self._client.add_event_callback(
            self.make_event_callback(relay, spawner), (RoomMessage, StickerEvent)
        )
        LOGGER.info("Matrix initial sync done, listening as %s", self._client.user_id)
        while True:
            try:
                await self._client.sync_forever(timeout=timeout_ms)
            except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
                LOGGER.warning("Matrix sync failed: %r; retrying in %ss", exc, retry_delay)
                await asyncio.sleep(retry_delay)
