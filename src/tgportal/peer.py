"""Telegram peer identity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

import structlog

from tgportal.types import ChatInfo, Dialog, PeerInfo

if TYPE_CHECKING:
    from tgportal.ports import TelegramObserver
    from tgportal.portal import Portal

logger = structlog.get_logger()

PeerKind = Literal["user", "chat", "channel"]
PEER_KINDS: tuple[PeerKind, ...] = ("user", "chat", "channel")


@dataclass
class TelegramPeer:
    """Identifies one Telegram conversation.

    User (private chat) peers are only unique per observing account, so
    ``receiver_id`` holds the local account id for them; for chats and
    channels it always equals ``id``. ``(id, receiver_id)`` is unique across
    the bridge.
    """

    kind: PeerKind
    id: int
    receiver_id: int | None = None
    title: str | None = None
    username: str | None = None
    access_hash: int | None = None

    def __post_init__(self) -> None:
        if self.kind not in PEER_KINDS:
            raise ValueError(f"Unrecognized peer type: {self.kind}")
        if self.kind != "user" or self.receiver_id is None:
            self.receiver_id = self.id

    @property
    def key(self) -> tuple[int, int]:
        return (self.id, self.receiver_id)

    @property
    def is_direct(self) -> bool:
        return self.kind == "user"

    def access_hash_for(self, portal: Portal, observer: TelegramObserver) -> int | None:
        if self.kind == "channel":
            return portal.access_hashes.get(observer.user_id)
        return self.access_hash

    async def load_access_hash(self, observer: TelegramObserver, portal: Portal) -> bool:
        """Ask ``observer`` for its access hash and store it.

        Chats need no access hash. Channel hashes go into the portal's
        per-observer cache, user hashes onto the peer itself. On failure
        nothing is stored.
        """
        if self.kind == "chat":
            return True
        access_hash = await observer.resolve_access_hash(self)
        if access_hash is None:
            logger.warning(
                "peer.access_hash.unavailable",
                kind=self.kind,
                tgid=self.id,
                observer=observer.user_id,
            )
            return False
        if self.kind == "channel":
            portal.access_hashes.set(observer.user_id, access_hash)
        else:
            self.access_hash = access_hash
        return True

    async def get_info(self, observer: TelegramObserver, portal: Portal) -> PeerInfo:
        return await observer.get_peer_info(self, self.access_hash_for(portal, observer))

    def update_info(self, dialog: Dialog | ChatInfo) -> bool:
        """Merge title/username from fresh metadata. Returns whether anything changed."""
        changed = False
        if self.kind == "user":
            return changed
        if dialog.title and dialog.title != self.title:
            self.title = dialog.title
            changed = True
        if self.kind == "channel" and dialog.username != self.username:
            self.username = dialog.username
            changed = True
        return changed

    def to_subentry(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "type": self.kind,
            "id": self.id,
            "receiverID": self.receiver_id,
        }
        if self.kind == "user":
            entry["accessHash"] = self.access_hash
        else:
            entry["title"] = self.title
        if self.kind == "channel":
            entry["username"] = self.username
        return entry

    @classmethod
    def from_subentry(cls, entry: dict[str, Any]) -> TelegramPeer:
        return cls(
            kind=entry["type"],
            id=int(entry["id"]),
            receiver_id=entry.get("receiverID"),
            title=entry.get("title"),
            username=entry.get("username"),
            access_hash=entry.get("accessHash"),
        )
