"""Copying Telegram media into the Matrix content repository."""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from tgportal.errors import InvalidLocationError
from tgportal.ports import Intent, TelegramObserver
from tgportal.types import (
    Document,
    FileInfo,
    FileLocation,
    GeoPoint,
    Photo,
    PhotoSize,
    UploadedFile,
)

logger = structlog.get_logger()

GEO_URI_PATTERN = re.compile(r"geo:(-?[0-9]+(?:\.[0-9]+)?),(-?[0-9]+(?:\.[0-9]+)?)")

# Source rotation metadata is not consulted yet.
DEFAULT_ORIENTATION = 0


def largest_photo_size(sizes: Sequence[PhotoSize]) -> PhotoSize:
    """Pick the size with the most pixels; the first one wins ties."""
    if not sizes:
        raise ValueError("Photo has no sizes")
    largest = sizes[0]
    for size in sizes[1:]:
        if size.pixels > largest.pixels:
            largest = size
    return largest


def parse_geo_uri(text: str | None) -> GeoPoint:
    match = GEO_URI_PATTERN.search(text or "")
    if not match:
        raise InvalidLocationError(f"Not a geo URI: {text!r}")
    return GeoPoint(lat=float(match.group(1)), long=float(match.group(2)))


async def copy_telegram_file(
    observer: TelegramObserver,
    intent: Intent,
    location: FileLocation | Document,
    file_id: str | int | None = None,
) -> UploadedFile:
    """Download ``location`` through ``observer`` and upload it with ``intent``."""
    file_id = file_id if file_id is not None else location.id
    file = await observer.get_file(location)
    content_uri = await intent.upload_content(
        file.buffer,
        name=f"{file_id}.{file.extension}",
        mimetype=file.mimetype,
    )
    logger.debug(
        "media.file.copied",
        file_id=str(file_id),
        mimetype=file.mimetype,
        content_uri=content_uri,
    )
    return UploadedFile(
        content_uri=content_uri,
        matrixtype=file.matrixtype,
        info=FileInfo(mimetype=file.mimetype, size=location.size),
    )


async def copy_telegram_photo(
    observer: TelegramObserver,
    intent: Intent,
    photo: Photo,
) -> UploadedFile:
    size = largest_photo_size(photo.sizes)
    uploaded = await copy_telegram_file(observer, intent, size.location, photo.id)
    uploaded.info.w = size.w
    uploaded.info.h = size.h
    uploaded.info.size = size.size
    uploaded.info.orientation = DEFAULT_ORIENTATION
    return uploaded
