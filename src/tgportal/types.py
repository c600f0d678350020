"""Value types exchanged between the portal core and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FileLocation:
    """Telegram file location of a photo size or profile photo."""

    dc_id: int
    volume_id: int
    local_id: int
    secret: int = 0
    size: int | None = None

    @property
    def id(self) -> str:
        return f"{self.volume_id}_{self.local_id}"


@dataclass(frozen=True)
class PhotoSize:
    type: str
    w: int
    h: int
    size: int
    location: FileLocation

    @property
    def pixels(self) -> int:
        return self.w * self.h


@dataclass(frozen=True)
class Photo:
    id: int
    sizes: tuple[PhotoSize, ...]


@dataclass(frozen=True)
class Document:
    id: int
    dc_id: int
    access_hash: int
    size: int
    mime_type: str = "application/octet-stream"


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    long: float


@dataclass(frozen=True)
class PhotoRef:
    """Identity of the photo last applied as a room avatar."""

    dc_id: int
    volume_id: int
    local_id: int

    @classmethod
    def from_location(cls, location: FileLocation) -> PhotoRef:
        return cls(dc_id=location.dc_id, volume_id=location.volume_id, local_id=location.local_id)

    def matches(self, location: FileLocation) -> bool:
        return (
            self.dc_id == location.dc_id
            and self.volume_id == location.volume_id
            and self.local_id == location.local_id
        )

    def to_dict(self) -> dict[str, int]:
        return {"dc_id": self.dc_id, "volume_id": self.volume_id, "local_id": self.local_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PhotoRef | None:
        if not data:
            return None
        return cls(
            dc_id=int(data["dc_id"]),
            volume_id=int(data["volume_id"]),
            local_id=int(data["local_id"]),
        )


@dataclass(frozen=True)
class UserInfo:
    id: int
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    photo: FileLocation | None = None
    access_hash: int | None = None


@dataclass(frozen=True)
class ChatInfo:
    """Chat/channel metadata; ``photo`` is the big profile photo location."""

    id: int
    title: str | None = None
    about: str | None = None
    username: str | None = None
    photo: FileLocation | None = None
    access_hash: int | None = None


@dataclass(frozen=True)
class PeerInfo:
    info: ChatInfo | UserInfo
    users: tuple[UserInfo, ...] = ()


@dataclass(frozen=True)
class TelegramFile:
    """Downloaded Telegram file contents."""

    buffer: bytes
    extension: str
    mimetype: str
    matrixtype: str


@dataclass
class FileInfo:
    mimetype: str
    size: int | None = None
    w: int | None = None
    h: int | None = None
    orientation: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}


@dataclass
class UploadedFile:
    """A file copied from Telegram into the Matrix content repository."""

    content_uri: str
    matrixtype: str
    info: FileInfo
    name: str = ""

    def to_content(self) -> dict[str, Any]:
        return {
            "msgtype": self.matrixtype,
            "body": self.name,
            "url": self.content_uri,
            "info": self.info.to_dict(),
        }


@dataclass(frozen=True)
class RoomCreateResult:
    created: bool
    room_id: str | None


@dataclass
class Dialog:
    """Dialog metadata pushed by the Telegram client on sync."""

    id: int
    access_hash: int | None = None
    title: str | None = None
    username: str | None = None
    photo: FileLocation | None = None
    first_name: str | None = None
    last_name: str | None = None
