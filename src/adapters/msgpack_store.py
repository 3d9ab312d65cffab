"""MessagePack correspondence store adapter.

Implements the core CorrespondenceStorePort with one file per Matrix room.
Each file holds a MessagePack array of ``[event_id, [chat_id, message_id]]``
entries, oldest first, capped at ``capacity`` entries.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote

import msgpack

from core.config import StoreConfig
from core.models import CorrespondenceRecord

LOGGER = logging.getLogger(__name__)

FILE_SUFFIX = ".mpk"


def _encode(records: List[CorrespondenceRecord]) -> bytes:
    rows = [
        [record.source_message_id, [record.dest_chat_id, record.dest_message_id]]
        for record in records
    ]
    return msgpack.packb(rows, use_bin_type=True)


def _decode(data: bytes) -> List[CorrespondenceRecord]:
    rows = msgpack.unpackb(data, raw=False)
    if not isinstance(rows, list):
        raise ValueError(f"expected an array of records, got {type(rows).__name__}")
    records: List[CorrespondenceRecord] = []
    for source_id, (chat_id, message_id) in rows:
        records.append(
            CorrespondenceRecord(
                source_message_id=str(source_id),
                dest_chat_id=int(chat_id),
                dest_message_id=int(message_id),
            )
        )
    return records


class MsgpackCorrespondenceStore:
    """File-per-room store that satisfies the CorrespondenceStorePort contract.

    Every read-modify-write for one room runs under that room's lock, so a
    Matrix->Telegram and a Telegram->Matrix relay on the same bridge cannot
    overwrite each other's records.
    """

    def __init__(self, config: StoreConfig) -> None:
        self._directory = config.directory
        self._capacity = config.capacity
        self._locks: Dict[str, asyncio.Lock] = {}

    def path_for(self, conversation_key: str) -> str:
        """Return the history file of a room; ``/`` is quoted, ``!`` and ``:`` are kept."""

        return os.path.join(self._directory, quote(conversation_key, safe="!:@.-_") + FILE_SUFFIX)

    def _lock(self, conversation_key: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_key] = lock
        return lock

    def _read(self, conversation_key: str) -> List[CorrespondenceRecord]:
        path = self.path_for(conversation_key)
        try:
            with open(path, "rb") as handle:
                data = handle.read()
        except FileNotFoundError:
            return []
        except OSError as exc:
            LOGGER.error("Failed to read %s: %s", path, exc)
            return []

        if not data:
            return []
        try:
            return _decode(data)
        except Exception as exc:
            # Corrupt histories only cost reply threading, never the relay itself.
            LOGGER.debug("Discarding undecodable history %s: %s", path, exc)
            return []

    def _write(self, conversation_key: str, records: List[CorrespondenceRecord]) -> None:
        path = self.path_for(conversation_key)
        temp_path = f"{path}.tmp"
        try:
            os.makedirs(self._directory, exist_ok=True)
            with open(temp_path, "wb") as handle:
                handle.write(_encode(records))
            os.replace(temp_path, path)
        except OSError as exc:
            LOGGER.error("Failed to write %s: %s", path, exc)

    async def append(self, conversation_key: str, record: CorrespondenceRecord) -> None:
        """Append a record, evicting the oldest ones beyond capacity."""

        async with self._lock(conversation_key):
            records = self._read(conversation_key)
            records.append(record)
            if len(records) > self._capacity:
                records = records[-self._capacity :]
            self._write(conversation_key, records)

    async def lookup_dest_from_source(
        self, conversation_key: str, source_id: str
    ) -> Optional[Tuple[int, int]]:
        async with self._lock(conversation_key):
            records = self._read(conversation_key)
        for record in records:
            if record.source_message_id == source_id:
                return record.dest_message
        return None

    async def lookup_source_from_dest(
        self, conversation_key: str, chat_id: int, message_id: int
    ) -> Optional[str]:
        async with self._lock(conversation_key):
            records = self._read(conversation_key)
        for record in records:
            if record.dest_message == (chat_id, message_id):
                return record.source_message_id
        return None

    async def records(self, conversation_key: str) -> List[CorrespondenceRecord]:
        async with self._lock(conversation_key):
            return self._read(conversation_key)
