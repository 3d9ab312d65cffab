from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from core.errors import MediaUnavailableError
from core.media import MediaTransfer, content_type_for, is_video_type
from core.models import MediaRef, MessageKind


class FakeSource:
    def __init__(self, data: bytes = b"bytes", error: Optional[Exception] = None) -> None:
        self._data = data
        self._error = error
        self.downloaded: list[MediaRef] = []

    async def download(self, media: MediaRef) -> bytes:
        self.downloaded.append(media)
        if self._error is not None:
            raise self._error
        return self._data


class FakeSink:
    def __init__(self, handle: Optional[str] = "mxc://hs/new", error: Optional[Exception] = None) -> None:
        self._handle = handle
        self._error = error
        self.uploads: list[tuple[bytes, str, str]] = []

    async def upload(self, payload: bytes, content_type: str, file_name: str) -> Optional[str]:
        self.uploads.append((payload, content_type, file_name))
        if self._error is not None:
            raise self._error
        return self._handle


def test_content_type_defaults_per_kind() -> None:
    assert content_type_for(MessageKind.PHOTO, MediaRef("f")) == "image/jpeg"
    assert content_type_for(MessageKind.VIDEO, MediaRef("f")) == "video/mp4"
    assert content_type_for(MessageKind.DOCUMENT, MediaRef("f")) == "application/octet-stream"
    assert content_type_for(MessageKind.STICKER, MediaRef("f")) == "image/webp"
    assert content_type_for(MessageKind.STICKER, MediaRef("f", is_video=True)) == "video/webm"


def test_declared_mimetype_wins() -> None:
    assert content_type_for(MessageKind.PHOTO, MediaRef("f", mimetype="image/png")) == "image/png"
    assert content_type_for(MessageKind.DOCUMENT, MediaRef("f", mimetype="application/pdf")) == "application/pdf"


def test_is_video_type() -> None:
    assert is_video_type("video/webm")
    assert not is_video_type("image/webp")


def test_transfer_moves_bytes_to_sink() -> None:
    source = FakeSource(b"jpegdata")
    sink = FakeSink()

    result = asyncio.run(
        MediaTransfer().transfer(MediaRef("file-1"), MessageKind.PHOTO, source, sink)
    )

    assert result.payload == b"jpegdata"
    assert result.content_type == "image/jpeg"
    assert result.display_name == "photo.jpg"
    assert result.handle == "mxc://hs/new"
    assert sink.uploads == [(b"jpegdata", "image/jpeg", "photo.jpg")]


def test_transfer_keeps_source_file_name() -> None:
    result = asyncio.run(
        MediaTransfer().transfer(
            MediaRef("mxc://hs/a", mimetype="application/pdf", file_name="report.pdf"),
            MessageKind.DOCUMENT,
            FakeSource(),
            FakeSink(handle=None),
        )
    )

    assert result.display_name == "report.pdf"
    assert result.handle is None


def test_transfer_without_media_fails() -> None:
    with pytest.raises(MediaUnavailableError):
        asyncio.run(MediaTransfer().transfer(None, MessageKind.PHOTO, FakeSource(), FakeSink()))


def test_download_failure_is_media_unavailable() -> None:
    sink = FakeSink()

    with pytest.raises(MediaUnavailableError):
        asyncio.run(
            MediaTransfer().transfer(
                MediaRef("f"), MessageKind.VIDEO, FakeSource(error=RuntimeError("boom")), sink
            )
        )
    assert sink.uploads == []


def test_empty_download_is_media_unavailable() -> None:
    with pytest.raises(MediaUnavailableError):
        asyncio.run(MediaTransfer().transfer(MediaRef("f"), MessageKind.VIDEO, FakeSource(b""), FakeSink()))


def test_upload_failure_is_media_unavailable() -> None:
    with pytest.raises(MediaUnavailableError):
        asyncio.run(
            MediaTransfer().transfer(
                MediaRef("f"), MessageKind.PHOTO, FakeSource(), FakeSink(error=OSError("disk"))
            )
        )
