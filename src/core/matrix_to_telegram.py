"""Matrix -> Telegram relay."""

from __future__ import annotations

import logging
from typing import Optional

from core.bridges import BridgeRegistry
from core.delivery import OutboundSender
from core.formatting import format_caption, format_text
from core.media import MediaTransfer, is_video_type
from core.models import (
    Bridge,
    CorrespondenceRecord,
    InboundMessage,
    MessageKind,
    NativeId,
    OutboundMessage,
)
from core.ports import CorrespondenceStorePort, MediaSinkPort, MediaSourcePort
from core.relay import Relay

LOGGER = logging.getLogger(__name__)


class MatrixToTelegramRelay(Relay):
    """Reproduce Matrix room events in the bridged Telegram chat."""

    direction = "matrix->telegram"

    def __init__(
        self,
        registry: BridgeRegistry,
        store: CorrespondenceStorePort,
        matrix: MediaSourcePort,
        telegram: MediaSinkPort,
        sender: OutboundSender,
        bot_user_id: str,
        media_transfer: Optional[MediaTransfer] = None,
    ) -> None:
        super().__init__(registry, store, matrix, telegram, sender, media_transfer)
        self._bot_user_id = bot_user_id

    def _accept(self, inbound: InboundMessage) -> Optional[Bridge]:
        # Our own messages come back through /sync; relaying them would loop.
        if inbound.sender_id == self._bot_user_id:
            return None
        bridge = self._registry.find_by_source_room(str(inbound.conversation_id))
        if bridge is None:
            LOGGER.debug("Room %s is not bridged", inbound.conversation_id)
        return bridge

    async def _resolve_reply(self, bridge: Bridge, reply_to: NativeId) -> Optional[NativeId]:
        found = await self._store.lookup_dest_from_source(bridge.source_room_id, str(reply_to))
        if found is None:
            return None
        return found[1]

    async def _build(self, inbound: InboundMessage, reply_target: Optional[NativeId]) -> OutboundMessage:
        if inbound.kind is MessageKind.TEXT:
            return OutboundMessage(
                kind=MessageKind.TEXT,
                text=format_text(inbound.sender_name, inbound.text),
                reply_target=reply_target,
                link_preview_enabled=True,
            )

        media = await self._transfer(inbound)
        kind = inbound.kind
        if kind is MessageKind.STICKER:
            # Telegram only takes its own sticker sets, so Matrix stickers go out as media.
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
        return bridge.dest_chat_id

    def _record_for(
        self, bridge: Bridge, inbound: InboundMessage, native_id: NativeId
    ) -> CorrespondenceRecord:
        return CorrespondenceRecord(
            source_message_id=str(inbound.message_id),
            dest_chat_id=bridge.dest_chat_id,
            dest_message_id=int(native_id),
        )
