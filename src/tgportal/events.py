"""Inbound event shapes handled by portals."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from tgportal.types import Document, GeoPoint, Photo

if TYPE_CHECKING:
    from tgportal.ports import MatrixUser, TelegramObserver


# ── Service message actions ─────────────────────────────────────


@dataclass(frozen=True)
class ChatCreate:
    users: tuple[int, ...]
    title: str | None = None


@dataclass(frozen=True)
class ChannelCreate:
    title: str | None = None


@dataclass(frozen=True)
class ChatAddUser:
    users: tuple[int, ...]


@dataclass(frozen=True)
class ChatDeleteUser:
    user_id: int


@dataclass(frozen=True)
class ChatEditPhoto:
    photo: Photo


@dataclass(frozen=True)
class ChatEditTitle:
    title: str


@dataclass(frozen=True)
class UnknownAction:
    """Service action the bridge does not translate."""

    tag: str
    payload: dict[str, Any] = field(default_factory=dict)


ServiceAction = Union[
    ChatCreate,
    ChannelCreate,
    ChatAddUser,
    ChatDeleteUser,
    ChatEditPhoto,
    ChatEditTitle,
    UnknownAction,
]


# ── Telegram → Matrix ───────────────────────────────────────────


@dataclass
class TelegramTyping:
    source: TelegramObserver
    sender_id: int


@dataclass
class TelegramMessage:
    source: TelegramObserver
    sender_id: int
    text: str = ""
    entities: list[Any] | None = None
    photo: Photo | None = None
    document: Document | None = None
    geo: GeoPoint | None = None
    caption: str | None = None


@dataclass
class TelegramServiceMessage:
    source: TelegramObserver
    sender_id: int
    action: ServiceAction


TelegramEvent = Union[TelegramTyping, TelegramMessage, TelegramServiceMessage]


# ── Matrix → Telegram ───────────────────────────────────────────


@dataclass
class MatrixMessage:
    """``m.room.message`` event sent by a logged-in Matrix user."""

    sender: MatrixUser
    room_id: str
    content: dict[str, Any]
    event_id: str | None = None

    @property
    def msgtype(self) -> str | None:
        msgtype = self.content.get("msgtype")
        return msgtype if isinstance(msgtype, str) else None
