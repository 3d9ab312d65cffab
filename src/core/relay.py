"""Shared relay pipeline.

Every relay runs the same strict order for one incoming event:
1) Filter: drop echoes of our own messages and conversations with no bridge
2) Classify: refuse kinds the bridge cannot reproduce
3) Resolve the reply target through the correspondence store
4) Transfer media for non-text kinds
5) Send through the retrying outbound sender
6) Record the new correspondence

Steps are sequential within one event; different events run concurrently
in their own tasks.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from core.bridges import BridgeRegistry
from core.delivery import OutboundSender
from core.errors import UnsupportedMessageKindError
from core.media import MediaTransfer
from core.models import (
    Bridge,
    CorrespondenceRecord,
    InboundMessage,
    NativeId,
    OutboundMessage,
    TransferredMedia,
)
from core.ports import CorrespondenceStorePort, MediaSinkPort, MediaSourcePort

LOGGER = logging.getLogger(__name__)


class Relay(ABC):
    """Template for one relay direction; subclasses supply the platform mapping."""

    direction = "relay"

    def __init__(
        self,
        registry: BridgeRegistry,
        store: CorrespondenceStorePort,
        source: MediaSourcePort,
        dest: MediaSinkPort,
        sender: OutboundSender,
        media_transfer: Optional[MediaTransfer] = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._source = source
        self._dest = dest
        self._sender = sender
        self._media = media_transfer or MediaTransfer()

    async def handle(self, inbound: InboundMessage) -> Optional[CorrespondenceRecord]:
        """Relay one event; return the stored record, or ``None`` when dropped."""

        bridge = self._accept(inbound)
        if bridge is None:
            return None

        if inbound.kind is None:
            raise UnsupportedMessageKindError(
                f"{self.direction}: unsupported message {inbound.message_id} in {inbound.conversation_id}"
            )

        reply_target = None
        if inbound.reply_to is not None:
            reply_target = await self._resolve_reply(bridge, inbound.reply_to)
            if reply_target is None:
                LOGGER.debug("%s: no counterpart for reply to %s", self.direction, inbound.reply_to)

        message = await self._build(inbound, reply_target)
        native_id = await self._sender.send(self._destination(bridge), message)

        record = self._record_for(bridge, inbound, native_id)
        await self._store.append(bridge.source_room_id, record)
        LOGGER.info(
            "%s: %s %s -> %s",
            self.direction,
            inbound.kind.value,
            inbound.message_id,
            native_id,
        )
        return record

    async def _transfer(self, inbound: InboundMessage) -> TransferredMedia:
        return await self._media.transfer(inbound.media, inbound.kind, self._source, self._dest)

    @abstractmethod
    def _accept(self, inbound: InboundMessage) -> Optional[Bridge]:
        ...

    @abstractmethod
    async def _resolve_reply(self, bridge: Bridge, reply_to: NativeId) -> Optional[NativeId]:
        ...

    @abstractmethod
    async def _build(self, inbound: InboundMessage, reply_target: Optional[NativeId]) -> OutboundMessage:
        ...

    @abstractmethod
    def _destination(self, bridge: Bridge) -> NativeId:
        ...

    @abstractmethod
    def _record_for(
        self, bridge: Bridge, inbound: InboundMessage, native_id: NativeId
    ) -> CorrespondenceRecord:
        ...
