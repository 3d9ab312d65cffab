"""Telegram -> Matrix relay."""

from __future__ import annotations

import logging
from typing import Optional

from core.formatting import format_caption, format_text
from core.media import is_video_type
from core.models import (
    Bridge,
    CorrespondenceRecord,
    InboundMessage,
    MessageKind,
    NativeId,
    OutboundMessage,
)
from core.relay import Relay

LOGGER = logging.getLogger(__name__)


class TelegramToMatrixRelay(Relay):
    """Reproduce Telegram chat messages in the bridged Matrix room.

    Construct with the Telegram gateway as ``source`` and the Matrix gateway
    as ``dest``; the outbound sender must wrap the Matrix gateway.
    """

    direction = "telegram->matrix"

    def _accept(self, inbound: InboundMessage) -> Optional[Bridge]:
        bridge = self._registry.find_by_dest_chat(int(inbound.conversation_id))
        if bridge is None:
            LOGGER.debug("Chat %s is not bridged", inbound.conversation_id)
        return bridge

    async def _resolve_reply(self, bridge: Bridge, reply_to: NativeId) -> Optional[NativeId]:
        return await self._store.lookup_source_from_dest(
            bridge.source_room_id, bridge.dest_chat_id, int(reply_to)
        )

    async def _build(self, inbound: InboundMessage, reply_target: Optional[NativeId]) -> OutboundMessage:
        if inbound.kind is MessageKind.TEXT:
            return OutboundMessage(
                kind=MessageKind.TEXT,
                text=format_text(inbound.sender_name, inbound.text),
                reply_target=reply_target,
            )

        media = await self._transfer(inbound)
        kind = inbound.kind
        if kind is MessageKind.STICKER:
            kind = MessageKind.VIDEO if is_video_type(media.content_type) else MessageKind.PHOTO
        return OutboundMessage(
            kind=kind,
            text=format_caption(inbound.sender_name, inbound.text),
            payload=media.payload,
            file_name=media.display_name,
            mimetype=media.content_type,
            content_uri=media.handle,
            reply_target=reply_target,
        )

    def _destination(self, bridge: Bridge) -> NativeId:
        return bridge.source_room_id

    def _record_for(
        self, bridge: Bridge, inbound: InboundMessage, native_id: NativeId
    ) -> CorrespondenceRecord:
        return CorrespondenceRecord(
            source_message_id=str(native_id),
            dest_chat_id=bridge.dest_chat_id,
            dest_message_id=int(inbound.message_id),
        )
