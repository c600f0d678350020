"""Interfaces of the collaborators the portal core depends on.

Implementations live outside this package: the Telegram client library
wrapper, the Matrix application service intent API, the user/puppet store
and the markup formatter. The core only relies on the members listed here.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

from tgportal.types import (
    Document,
    FileLocation,
    GeoPoint,
    PeerInfo,
    TelegramFile,
    UploadedFile,
    UserInfo,
)

if TYPE_CHECKING:
    from tgportal.peer import TelegramPeer
    from tgportal.portal import Portal


class TelegramObserver(Protocol):
    """An authenticated Telegram account used to read and send on a peer."""

    user_id: int
    matrix_user_id: str

    async def resolve_access_hash(self, peer: TelegramPeer) -> int | None:
        """Return this account's current access hash for ``peer``, or None if it has no access."""
        ...

    async def get_peer_info(self, peer: TelegramPeer, access_hash: int | None) -> PeerInfo:
        ...

    async def get_file(self, location: FileLocation | Document) -> TelegramFile:
        ...

    async def send_message(
        self,
        peer: TelegramPeer,
        message: str,
        entities: Sequence[Any] | None = None,
    ) -> None:
        ...

    async def send_media(self, peer: TelegramPeer, media: GeoPoint) -> None:
        ...


class Intent(Protocol):
    """Matrix client acting as one user (the bridge bot or a puppet)."""

    user_id: str

    async def create_room(
        self,
        *,
        name: str | None = None,
        topic: str | None = None,
        visibility: str = "private",
        invite: Sequence[str] = (),
        room_alias_name: str | None = None,
        is_direct: bool = False,
    ) -> str:
        """Create a room and return its room ID."""
        ...

    async def invite(self, room_id: str, user_id: str) -> None:
        ...

    async def kick(self, room_id: str, user_id: str, reason: str = "") -> None:
        ...

    async def join(self, room_id: str) -> None:
        ...

    async def leave(self, room_id: str) -> None:
        ...

    async def set_room_name(self, room_id: str, name: str) -> None:
        ...

    async def set_room_avatar(self, room_id: str, content_uri: str) -> None:
        ...

    async def set_room_topic(self, room_id: str, topic: str) -> None:
        ...

    async def send_message(self, room_id: str, content: dict[str, Any]) -> str:
        ...

    async def send_typing(self, room_id: str, typing: bool) -> None:
        ...

    async def upload_content(self, data: bytes, *, name: str, mimetype: str) -> str:
        """Upload binary content and return its ``mxc://`` URI."""
        ...


class TelegramPuppet(Protocol):
    """Matrix-side ghost user representing a Telegram account."""

    id: int
    intent: Intent

    async def update_info(
        self,
        observer: TelegramObserver,
        info: UserInfo,
        *,
        update_avatar: bool = True,
    ) -> bool:
        ...

    async def send_text(self, room_id: str, text: str) -> None:
        ...

    async def send_html(self, room_id: str, html: str) -> None:
        ...

    async def send_file(self, room_id: str, file: UploadedFile) -> None:
        ...

    async def send_location(self, room_id: str, geo: GeoPoint) -> None:
        ...


class MatrixUser(Protocol):
    """A real Matrix user logged into Telegram through the bridge."""

    user_id: str
    telegram_puppet: TelegramObserver

    async def join(self, portal: Portal) -> None:
        ...

    async def leave(self, portal: Portal) -> None:
        ...


class UserDirectory(Protocol):
    async def get_telegram_user(self, telegram_id: int) -> TelegramPuppet:
        ...

    async def get_matrix_user_by_telegram_id(self, telegram_id: int) -> MatrixUser | None:
        ...


class Formatter(Protocol):
    def telegram_to_matrix(self, text: str, entities: Sequence[Any]) -> str:
        """Render Telegram text + entities as Matrix HTML."""
        ...

    def matrix_to_telegram(self, html: str) -> tuple[str, list[Any]]:
        """Convert Matrix HTML into Telegram text + entities."""
        ...


class PortalStore(Protocol):
    async def portal_put(self, entry: dict[str, Any]) -> None:
        ...

    async def portal_get(self, tgid: int, receiver_id: int) -> dict[str, Any] | None:
        ...

    async def portal_get_by_room(self, room_id: str) -> dict[str, Any] | None:
        ...

    async def portal_list(self) -> list[dict[str, Any]]:
        ...
