"""Bridge registry (core domain)."""

from __future__ import annotations

from typing import Iterable, List, Optional

from core.errors import ConfigError
from core.models import Bridge


def build_bridges(raw_bridges: Iterable[dict]) -> List[Bridge]:
    """Normalize bridge config rows into immutable ``Bridge`` pairs.

    Disabled rows are skipped; rows missing either side are rejected so a
    typo cannot silently disable a bridge.
    """

    bridges: List[Bridge] = []
    for entry in raw_bridges:
        if not entry.get("enabled", True):
            continue
        room_id = entry.get("source_room_id")
        chat_id = entry.get("dest_chat_id")
        if not room_id or chat_id is None:
            raise ConfigError(f"Bridge entry needs source_room_id and dest_chat_id: {entry!r}")
        try:
            chat_id = int(chat_id)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"dest_chat_id must be an integer: {chat_id!r}") from exc
        bridges.append(Bridge(source_room_id=str(room_id), dest_chat_id=chat_id))
    return bridges


class BridgeRegistry:
    """Read-only lookup table of configured bridges."""

    def __init__(self, bridges: Iterable[Bridge]) -> None:
        self._bridges = tuple(bridges)

    def __iter__(self):
        return iter(self._bridges)

    def __len__(self) -> int:
        return len(self._bridges)

    def find_by_dest_chat(self, chat_id: int) -> Optional[Bridge]:
        for bridge in self._bridges:
            if bridge.dest_chat_id == chat_id:
                return bridge
        return None

    def find_by_source_room(self, room_id: str) -> Optional[Bridge]:
        for bridge in self._bridges:
            if bridge.source_room_id == room_id:
                return bridge
        return None
