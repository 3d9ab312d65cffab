from __future__ import annotations

from typing import Optional

import pytest

from core.bridges import BridgeRegistry
from core.delivery import OutboundSender
from core.models import Bridge, InboundMessage, NativeId
from core.relay import Relay


class DummyMessenger:
    async def send(self, destination, message):
        return 1


class HalfRelay(Relay):
    """Implements only the bridge lookup."""

    def _accept(self, inbound: InboundMessage) -> Optional[Bridge]:
        return None

    async def _resolve_reply(self, bridge: Bridge, reply_to: NativeId) -> Optional[NativeId]:
        return None


def test_relay_without_all_hooks_cannot_be_built() -> None:
    with pytest.raises(TypeError):
        HalfRelay(BridgeRegistry([]), None, None, None, OutboundSender(DummyMessenger()))


def test_base_relay_is_abstract() -> None:
    with pytest.raises(TypeError):
        Relay(BridgeRegistry([]), None, None, None, OutboundSender(DummyMessenger()))
