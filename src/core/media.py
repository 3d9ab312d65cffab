"""Media transfer between the two content repositories (core domain)."""

from __future__ import annotations

import logging
from typing import Optional

from core.errors import MediaUnavailableError
from core.models import MediaRef, MessageKind, TransferredMedia
from core.ports import MediaSinkPort, MediaSourcePort

LOGGER = logging.getLogger(__name__)

IMAGE_JPEG = "image/jpeg"
IMAGE_WEBP = "image/webp"
VIDEO_MP4 = "video/mp4"
VIDEO_WEBM = "video/webm"
OCTET_STREAM = "application/octet-stream"

_DEFAULT_NAMES = {
    IMAGE_JPEG: "photo.jpg",
    IMAGE_WEBP: "sticker.webp",
    VIDEO_MP4: "video.mp4",
    VIDEO_WEBM: "sticker.webm",
}


def content_type_for(kind: MessageKind, media: MediaRef) -> str:
    """Pick a MIME type from the declared message kind.

    A mimetype declared by the source always wins. Undeclared stickers are
    webm when they are video stickers and webp otherwise.
    """

    if media.mimetype:
        return media.mimetype
    if kind is MessageKind.STICKER:
        return VIDEO_WEBM if media.is_video else IMAGE_WEBP
    if kind is MessageKind.PHOTO:
        return IMAGE_JPEG
    if kind is MessageKind.VIDEO:
        return VIDEO_MP4
    return OCTET_STREAM


def is_video_type(content_type: str) -> bool:
    return content_type.split("/", 1)[0] == "video"


def _display_name(media: MediaRef, content_type: str) -> str:
    if media.file_name:
        return media.file_name
    return _DEFAULT_NAMES.get(content_type, "file")


class MediaTransfer:
    """Download an attachment from one platform and re-upload it to the other.

    Every failure is folded into ``MediaUnavailableError`` so the relay can
    abort the whole message instead of sending a caption without its media.
    """

    async def transfer(
        self,
        media: Optional[MediaRef],
        kind: MessageKind,
        source: MediaSourcePort,
        dest: MediaSinkPort,
    ) -> TransferredMedia:
        if media is None or not media.handle:
            raise MediaUnavailableError(f"{kind.value} message has no content reference")

        content_type = content_type_for(kind, media)
        display_name = _display_name(media, content_type)

        try:
            payload = await source.download(media)
        except MediaUnavailableError:
            raise
        except Exception as exc:
            raise MediaUnavailableError(f"download of {media.handle} failed: {exc}") from exc
        if not payload:
            raise MediaUnavailableError(f"download of {media.handle} returned no data")

        try:
            handle = await dest.upload(payload, content_type, display_name)
        except MediaUnavailableError:
            raise
        except Exception as exc:
            raise MediaUnavailableError(f"upload of {display_name} failed: {exc}") from exc

        LOGGER.debug("Transferred %s (%s, %s bytes)", display_name, content_type, len(payload))
        return TransferredMedia(
            display_name=display_name,
            payload=bytes(payload),
            content_type=content_type,
            handle=handle,
        )
