"""Portal: one Telegram chat bridged to one Matrix room."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from tgportal.access_hash import AccessHashCache
from tgportal.errors import (
    AccessHashError,
    InvalidEntryError,
    InvalidLocationError,
    RoomCreationError,
)
from tgportal.events import (
    ChannelCreate,
    ChatAddUser,
    ChatCreate,
    ChatDeleteUser,
    ChatEditPhoto,
    ChatEditTitle,
    MatrixMessage,
    TelegramMessage,
    TelegramServiceMessage,
    TelegramTyping,
    UnknownAction,
)
from tgportal.media import (
    copy_telegram_file,
    copy_telegram_photo,
    largest_photo_size,
    parse_geo_uri,
)
from tgportal.peer import TelegramPeer
from tgportal.types import (
    ChatInfo,
    Dialog,
    FileLocation,
    PeerInfo,
    PhotoRef,
    RoomCreateResult,
    UserInfo,
)

if TYPE_CHECKING:
    from tgportal.context import BridgeContext
    from tgportal.ports import Intent, MatrixUser, TelegramObserver

logger = structlog.get_logger()

ENTRY_TYPE = "portal"

FILE_MSGTYPES = frozenset({"m.image", "m.audio", "m.video", "m.file"})


class Portal:
    """Bridges one Telegram peer to one Matrix room.

    The room is created lazily by the first event that needs it. Concurrent
    creation attempts share a single in-flight future, so exactly one room is
    ever created per portal.
    """

    def __init__(
        self,
        context: BridgeContext,
        peer: TelegramPeer,
        room_id: str | None = None,
    ) -> None:
        self.context = context
        self.peer = peer
        self.room_id = room_id
        self.photo: PhotoRef | None = None
        self.avatar_url: str | None = None
        self.access_hashes = AccessHashCache()
        self._room_creation: asyncio.Future[str | None] | None = None

    @property
    def id(self) -> int:
        return self.peer.id

    @property
    def receiver_id(self) -> int:
        return self.peer.receiver_id

    @property
    def creation_in_progress(self) -> bool:
        return self._room_creation is not None

    def is_matrix_room_created(self) -> bool:
        return bool(self.room_id)

    def _log(self) -> Any:
        return logger.bind(tgid=self.peer.id, receiver=self.peer.receiver_id, room_id=self.room_id)

    # ── Persistence ─────────────────────────────────────────────

    @classmethod
    def from_entry(cls, context: BridgeContext, entry: dict[str, Any]) -> Portal:
        if entry.get("type") != ENTRY_TYPE:
            raise InvalidEntryError(
                f"Portal can only be created from entry type {ENTRY_TYPE!r}, "
                f"got {entry.get('type')!r}"
            )
        data = entry.get("data") or {}
        portal = cls(
            context,
            TelegramPeer.from_subentry(data["peer"]),
            room_id=entry.get("roomID") or data.get("roomID"),
        )
        portal.photo = PhotoRef.from_dict(data.get("photo"))
        portal.avatar_url = data.get("avatarURL")
        if portal.peer.kind == "channel":
            portal.access_hashes = AccessHashCache(data.get("accessHashes") or ())
        return portal

    def to_entry(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "peer": self.peer.to_subentry(),
            "photo": self.photo.to_dict() if self.photo else None,
            "avatarURL": self.avatar_url,
        }
        if self.peer.kind == "channel":
            data["accessHashes"] = self.access_hashes.to_pairs()
        return {
            "type": ENTRY_TYPE,
            "id": self.id,
            "receiverID": self.receiver_id,
            "roomID": self.room_id,
            "data": data,
        }

    async def save(self) -> None:
        await self.context.portals.save(self)

    # ── Access hashes & metadata ────────────────────────────────

    async def load_access_hash(self, observer: TelegramObserver) -> bool:
        return await self.peer.load_access_hash(observer, self)

    async def update_info(self, observer: TelegramObserver, dialog: Dialog | None = None) -> bool:
        """Refresh portal metadata from a Telegram dialog. Returns whether anything changed.

        Without a dialog the metadata is fetched through ``observer``.
        """
        user_info: UserInfo | None = None
        if dialog is None:
            if not await self.load_access_hash(observer):
                raise AccessHashError("Dialog data not given and access hash unavailable")
            info = (await self.peer.get_info(observer, self)).info
            if isinstance(info, UserInfo):
                user_info = info
            dialog = Dialog(
                id=info.id,
                access_hash=info.access_hash,
                title=getattr(info, "title", None),
                username=info.username,
                photo=info.photo,
            )

        changed = False
        if self.peer.kind == "channel" and dialog.access_hash is not None:
            changed = self.access_hashes.set(observer.user_id, dialog.access_hash) or changed

        if self.peer.kind == "user":
            if user_info is None:
                user_info = UserInfo(
                    id=dialog.id,
                    first_name=dialog.first_name,
                    last_name=dialog.last_name,
                    username=dialog.username,
                    photo=dialog.photo,
                    access_hash=dialog.access_hash,
                )
            puppet = await self.context.directory.get_telegram_user(self.peer.id)
            await puppet.update_info(observer, user_info)
        elif dialog.photo is not None and self.room_id:
            changed = await self.update_avatar(observer, dialog.photo) or changed

        title_before = self.peer.title
        changed = self.peer.update_info(dialog) or changed
        if self.room_id and self.peer.title and self.peer.title != title_before:
            intent = await self.get_main_intent()
            await intent.set_room_name(self.room_id, self.peer.title)

        if changed:
            await self.save()
        return changed

    async def sync_telegram_users(
        self,
        observer: TelegramObserver,
        users: Sequence[UserInfo] | None = None,
    ) -> bool:
        if users is None:
            if not await self.load_access_hash(observer):
                return False
            users = (await self.peer.get_info(observer, self)).users
        for user_info in users:
            puppet = await self.context.directory.get_telegram_user(user_info.id)
            # Member avatars are not synced here, it would likely cause a flood error
            await puppet.update_info(observer, user_info, update_avatar=False)
            await puppet.intent.join(self.room_id)
        return True

    async def update_avatar(self, observer: TelegramObserver, photo: FileLocation | None) -> bool:
        """Copy ``photo`` to the room avatar. Returns False when nothing changed."""
        if photo is None or self.peer.kind == "user":
            return False
        if self.photo and self.avatar_url and self.photo.matches(photo):
            return False

        file = await observer.get_file(photo)
        bot_intent = self.context.bot_intent
        self.avatar_url = await bot_intent.upload_content(
            file.buffer,
            name=f"{photo.volume_id}_{photo.local_id}.{file.extension}",
            mimetype=file.mimetype,
        )
        self.photo = PhotoRef.from_location(photo)

        if self.room_id:
            await bot_intent.set_room_avatar(self.room_id, self.avatar_url)
        self._log().info("portal.avatar.updated", avatar_url=self.avatar_url)
        return True

    # ── Matrix room membership ──────────────────────────────────

    async def get_main_intent(self) -> Intent:
        if self.peer.kind == "user":
            return (await self.context.directory.get_telegram_user(self.peer.id)).intent
        return self.context.bot_intent

    async def invite(self, users: str | Sequence[str]) -> None:
        intent = await self.get_main_intent()
        for user_id in [users] if isinstance(users, str) else users:
            if isinstance(user_id, str):
                await intent.invite(self.room_id, user_id)

    async def kick(self, users: str | Sequence[str], reason: str) -> None:
        intent = await self.get_main_intent()
        for user_id in [users] if isinstance(users, str) else users:
            if isinstance(user_id, str):
                await intent.kick(self.room_id, user_id, reason)

    # ── Room creation ───────────────────────────────────────────

    async def create_matrix_room(
        self,
        observer: TelegramObserver,
        *,
        invite: Sequence[str] = (),
        invite_even_if_not_created: bool = True,
    ) -> RoomCreateResult:
        """Create the Matrix room unless it exists or is already being created.

        Only the caller that actually created the room gets ``created=True``.
        Callers arriving while a creation is in flight wait for it and get the
        resulting room id, which is None if that attempt failed.
        """
        if self.room_id:
            if invite and invite_even_if_not_created:
                await self.invite(invite)
            return RoomCreateResult(created=False, room_id=self.room_id)

        if self._room_creation is not None:
            await asyncio.shield(self._room_creation)
            return RoomCreateResult(created=False, room_id=self.room_id)

        creation: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._room_creation = creation
        try:
            room_id, peer_info = await self._create_matrix_room(observer, invite)
        except BaseException:
            self._room_creation = None
            creation.set_result(None)
            raise

        self.room_id = room_id
        self.context.portals.register_room(self)
        try:
            await self.save()
        finally:
            self._room_creation = None
            creation.set_result(room_id)
        self._log().info("portal.room.created", kind=self.peer.kind)

        if self.peer.kind != "user":
            await self._sync_after_create(observer, peer_info)
        return RoomCreateResult(created=True, room_id=room_id)

    async def _create_matrix_room(
        self,
        observer: TelegramObserver,
        invite: Sequence[str],
    ) -> tuple[str, PeerInfo]:
        if not await self.load_access_hash(observer):
            raise AccessHashError("Failed to load access hash.")

        try:
            peer_info = await self.peer.get_info(observer, self)
            room_id = await self._request_room(observer, peer_info, list(invite))
        except Exception as e:
            raise RoomCreationError(
                f"Creating room for {self.peer.kind} {self.peer.id} failed: {e}"
            ) from e
        return room_id, peer_info

    async def _request_room(
        self,
        observer: TelegramObserver,
        peer_info: PeerInfo,
        invite: list[str],
    ) -> str:
        info = peer_info.info
        if isinstance(info, ChatInfo):
            self.peer.update_info(info)
        settings = self.context.settings

        if self.peer.kind == "chat":
            return await self.context.bot_intent.create_room(
                name=info.title,
                topic=info.about,
                visibility="private",
                invite=invite,
            )
        if self.peer.kind == "channel":
            return await self.context.bot_intent.create_room(
                name=info.title,
                topic=info.about,
                visibility="public" if info.username else "private",
                room_alias_name=settings.format_alias(info.username) if info.username else None,
                invite=invite,
            )
        puppet = await self.context.directory.get_telegram_user(info.id)
        await puppet.update_info(observer, info, update_avatar=True)
        is_self_chat = self.peer.id == self.peer.receiver_id
        return await puppet.intent.create_room(
            name=settings.saved_messages_name if is_self_chat else None,
            topic=settings.private_chat_topic,
            visibility="private",
            invite=invite,
            is_direct=True,
        )

    async def _sync_after_create(self, observer: TelegramObserver, peer_info: PeerInfo) -> None:
        try:
            await self.sync_telegram_users(observer, peer_info.users)
            if peer_info.info.photo is not None:
                await self.update_avatar(observer, peer_info.info.photo)
                await self.save()
        except Exception:
            self._log().exception("portal.room.post_create_sync_failed")

    async def _ensure_room(self, observer: TelegramObserver) -> str | None:
        """Return the room id, creating the room first if needed.

        Creation failures are logged and yield None; the triggering event is dropped.
        """
        if self.room_id:
            return self.room_id
        try:
            result = await self.create_matrix_room(observer, invite=[observer.matrix_user_id])
        except Exception:
            self._log().exception("portal.room.create_failed")
            return None
        return result.room_id

    # ── Telegram → Matrix ───────────────────────────────────────

    async def handle_telegram_typing(self, evt: TelegramTyping) -> None:
        if not self.is_matrix_room_created():
            return
        typer = await self.context.directory.get_telegram_user(evt.sender_id)
        await typer.intent.send_typing(self.room_id, True)

    async def handle_telegram_service_message(self, evt: TelegramServiceMessage) -> None:
        action = evt.action
        if isinstance(action, UnknownAction):
            self._log().warning("portal.service.unhandled", tag=action.tag, payload=action.payload)
            return

        if isinstance(action, (ChatCreate, ChannelCreate)):
            try:
                result = await self.create_matrix_room(
                    evt.source, invite=[evt.source.matrix_user_id]
                )
            except Exception:
                self._log().exception("portal.room.create_failed")
                return
            # Channels don't send an initial member list
            if isinstance(action, ChatCreate) and result.room_id:
                await self._add_telegram_users(action.users)
            return

        if not await self._ensure_room(evt.source):
            return

        if isinstance(action, ChatAddUser):
            await self._add_telegram_users(action.users)
        elif isinstance(action, ChatDeleteUser):
            await self._remove_telegram_user(action.user_id)
        elif isinstance(action, ChatEditPhoto):
            try:
                largest = largest_photo_size(action.photo.sizes)
            except ValueError as e:
                self._log().warning(
                    "portal.service.photo_invalid", photo_id=action.photo.id, error=str(e)
                )
                return
            if await self.update_avatar(evt.source, largest.location):
                await self.save()
        elif isinstance(action, ChatEditTitle):
            self.peer.title = action.title
            await self.save()
            intent = await self.get_main_intent()
            await intent.set_room_name(self.room_id, action.title)
        else:
            raise TypeError(f"Unhandled service action {type(action).__name__}")

    async def _add_telegram_users(self, user_ids: Sequence[int]) -> None:
        directory = self.context.directory
        for user_id in user_ids:
            matrix_user = await directory.get_matrix_user_by_telegram_id(user_id)
            if matrix_user is not None:
                await matrix_user.join(self)
                await self.invite(matrix_user.user_id)
            puppet = await directory.get_telegram_user(user_id)
            await puppet.intent.join(self.room_id)

    async def _remove_telegram_user(self, user_id: int) -> None:
        directory = self.context.directory
        matrix_user = await directory.get_matrix_user_by_telegram_id(user_id)
        if matrix_user is not None:
            await matrix_user.leave(self)
            await self.kick(matrix_user.user_id, "Left Telegram chat")
        puppet = await directory.get_telegram_user(user_id)
        await puppet.intent.leave(self.room_id)

    async def handle_telegram_message(self, evt: TelegramMessage) -> None:
        room_id = await self._ensure_room(evt.source)
        if not room_id:
            return

        sender = await self.context.directory.get_telegram_user(evt.sender_id)
        await sender.intent.send_typing(room_id, False)

        if evt.text:
            if evt.entities:
                html = self.context.formatter.telegram_to_matrix(evt.text, evt.entities)
                await sender.send_html(room_id, html)
            else:
                await sender.send_text(room_id, evt.text)

        settings = self.context.settings
        if evt.photo:
            photo = await copy_telegram_photo(evt.source, sender.intent, evt.photo)
            photo.name = evt.caption or settings.photo_caption
            await sender.send_file(room_id, photo)
        elif evt.document:
            file = await copy_telegram_file(evt.source, sender.intent, evt.document)
            if evt.caption:
                file.name = evt.caption
            elif file.matrixtype == "m.audio":
                file.name = settings.audio_caption
            elif file.matrixtype == "m.video":
                file.name = settings.video_caption
            else:
                file.name = settings.document_caption
            await sender.send_file(room_id, file)
        elif evt.geo:
            await sender.send_location(room_id, evt.geo)

    # ── Matrix → Telegram ───────────────────────────────────────

    async def handle_matrix_event(self, evt: MatrixMessage) -> None:
        sender: MatrixUser = evt.sender
        observer = sender.telegram_puppet
        if not await self.load_access_hash(observer):
            self._log().warning("portal.matrix.access_hash_unavailable", sender=sender.user_id)
            return

        content = evt.content
        msgtype = evt.msgtype
        if msgtype == "m.text":
            if content.get("format") == "org.matrix.custom.html":
                message, entities = self.context.formatter.matrix_to_telegram(
                    content.get("formatted_body", "")
                )
                await observer.send_message(self.peer, message, entities)
            else:
                await observer.send_message(self.peer, content.get("body", ""))
        elif msgtype in FILE_MSGTYPES:
            intent = await self.get_main_intent()
            await intent.send_message(
                self.room_id,
                {"msgtype": "m.notice", "body": self.context.settings.unsupported_file_notice},
            )
        elif msgtype == "m.location":
            try:
                geo = parse_geo_uri(content.get("geo_uri") or content.get("body"))
            except InvalidLocationError as e:
                self._log().warning(
                    "portal.matrix.location_invalid",
                    event_id=evt.event_id,
                    error=str(e),
                )
                return
            await observer.send_media(self.peer, geo)
        else:
            self._log().info("portal.matrix.unhandled", msgtype=msgtype, event_id=evt.event_id)
