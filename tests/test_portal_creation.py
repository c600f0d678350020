from __future__ import annotations

import asyncio

import pytest
from fakes import FakeObserver, make_context

from tgportal.errors import AccessHashError, RoomCreationError
from tgportal.peer import TelegramPeer
from tgportal.portal import Portal
from tgportal.types import ChatInfo, FileLocation, PeerInfo, UserInfo


def _chat_portal(context=None) -> Portal:
    context = context or make_context()
    return Portal(context, TelegramPeer(kind="chat", id=1, title="Test chat"))


@pytest.mark.asyncio
async def test_concurrent_creation_creates_exactly_one_room() -> None:
    portal = _chat_portal()
    bot = portal.context.bot_intent
    bot.create_delay = 0.01
    observer = FakeObserver()

    results = await asyncio.gather(*(portal.create_matrix_room(observer) for _ in range(5)))

    assert len(bot.created_rooms) == 1
    assert {result.room_id for result in results} == {portal.room_id}
    assert sum(1 for result in results if result.created) == 1
    assert portal.creation_in_progress is False


@pytest.mark.asyncio
async def test_failed_creation_clears_guard_and_allows_retry() -> None:
    portal = _chat_portal()
    bot = portal.context.bot_intent
    bot.create_error = RuntimeError("homeserver unavailable")
    observer = FakeObserver()

    with pytest.raises(RoomCreationError, match="homeserver unavailable") as excinfo:
        await portal.create_matrix_room(observer)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert portal.room_id is None
    assert portal.creation_in_progress is False

    bot.create_error = None
    result = await portal.create_matrix_room(observer)

    assert result.created is True
    assert result.room_id == "!room1:example.org"


@pytest.mark.asyncio
async def test_waiters_see_no_room_when_creation_fails() -> None:
    portal = _chat_portal()
    bot = portal.context.bot_intent
    bot.create_delay = 0.01
    bot.create_error = RuntimeError("boom")
    observer = FakeObserver()

    results = await asyncio.gather(
        *(portal.create_matrix_room(observer) for _ in range(3)),
        return_exceptions=True,
    )

    errors = [result for result in results if isinstance(result, Exception)]
    waiters = [result for result in results if not isinstance(result, Exception)]
    assert len(errors) == 1
    assert all(result.created is False and result.room_id is None for result in waiters)
    assert portal.creation_in_progress is False


@pytest.mark.asyncio
async def test_missing_access_hash_aborts_creation() -> None:
    context = make_context()
    portal = Portal(context, TelegramPeer(kind="channel", id=10, title="News"))
    observer = FakeObserver(access_hash=None)

    with pytest.raises(AccessHashError):
        await portal.create_matrix_room(observer)

    assert context.bot_intent.created_rooms == []
    assert observer.info_requests == []
    assert len(portal.access_hashes) == 0
    assert portal.room_id is None
    assert portal.creation_in_progress is False


@pytest.mark.asyncio
async def test_existing_room_only_reinvites() -> None:
    portal = _chat_portal()
    observer = FakeObserver()
    first = await portal.create_matrix_room(observer)

    second = await portal.create_matrix_room(observer, invite=["@bob:example.org"])

    assert second.created is False
    assert second.room_id == first.room_id
    assert len(portal.context.bot_intent.created_rooms) == 1
    assert (first.room_id, "@bob:example.org") in portal.context.bot_intent.invites


@pytest.mark.asyncio
async def test_existing_room_skips_invite_when_disabled() -> None:
    portal = _chat_portal()
    observer = FakeObserver()
    await portal.create_matrix_room(observer)

    await portal.create_matrix_room(
        observer,
        invite=["@bob:example.org"],
        invite_even_if_not_created=False,
    )

    assert portal.context.bot_intent.invites == []


@pytest.mark.asyncio
async def test_chat_room_options_come_from_metadata() -> None:
    portal = _chat_portal()
    observer = FakeObserver(
        peer_info=PeerInfo(info=ChatInfo(id=1, title="Family", about="Weekend plans"))
    )

    await portal.create_matrix_room(observer, invite=["@alice:example.org"])

    options = portal.context.bot_intent.created_rooms[0]
    assert options["name"] == "Family"
    assert options["topic"] == "Weekend plans"
    assert options["visibility"] == "private"
    assert options["invite"] == ["@alice:example.org"]


@pytest.mark.asyncio
async def test_public_channel_gets_alias_and_public_visibility() -> None:
    context = make_context()
    portal = Portal(context, TelegramPeer(kind="channel", id=10))
    observer = FakeObserver(
        peer_info=PeerInfo(info=ChatInfo(id=10, title="News", username="dailynews"))
    )

    await portal.create_matrix_room(observer)

    options = context.bot_intent.created_rooms[0]
    assert options["visibility"] == "public"
    assert options["room_alias_name"] == "telegram_dailynews"
    assert portal.access_hashes.get(observer.user_id) == 555


@pytest.mark.asyncio
async def test_private_channel_has_no_alias() -> None:
    context = make_context()
    portal = Portal(context, TelegramPeer(kind="channel", id=10))
    observer = FakeObserver(peer_info=PeerInfo(info=ChatInfo(id=10, title="Secret")))

    await portal.create_matrix_room(observer)

    options = context.bot_intent.created_rooms[0]
    assert options["visibility"] == "private"
    assert options["room_alias_name"] is None


@pytest.mark.asyncio
async def test_saved_messages_room_is_named_only_for_self_chat() -> None:
    context = make_context()
    observer = FakeObserver(user_id=100, peer_info=PeerInfo(info=UserInfo(id=100)))
    saved = Portal(context, TelegramPeer(kind="user", id=100, receiver_id=100))

    await saved.create_matrix_room(observer)

    puppet = context.directory.puppets[100]
    assert puppet.intent.created_rooms[0]["name"] == "Saved Messages (Telegram)"
    assert puppet.intent.created_rooms[0]["is_direct"] is True
    assert puppet.info_updates[0][1] is True
    assert context.bot_intent.created_rooms == []

    other_observer = FakeObserver(user_id=100, peer_info=PeerInfo(info=UserInfo(id=200)))
    private = Portal(context, TelegramPeer(kind="user", id=200, receiver_id=100))
    await private.create_matrix_room(other_observer)

    other = context.directory.puppets[200]
    assert other.intent.created_rooms[0]["name"] is None
    assert other.intent.created_rooms[0]["topic"] == "Telegram private chat"


@pytest.mark.asyncio
async def test_creation_syncs_members_and_avatar_for_groups() -> None:
    portal = _chat_portal()
    photo = FileLocation(dc_id=2, volume_id=300, local_id=7)
    observer = FakeObserver(
        peer_info=PeerInfo(
            info=ChatInfo(id=1, title="Family", photo=photo),
            users=(UserInfo(id=11), UserInfo(id=12)),
        )
    )

    result = await portal.create_matrix_room(observer)

    directory = portal.context.directory
    assert directory.puppets[11].intent.joins == [result.room_id]
    assert directory.puppets[12].intent.joins == [result.room_id]
    assert directory.puppets[11].info_updates[0][1] is False
    assert portal.context.bot_intent.avatars == [
        (result.room_id, "mxc://example.org/300_7.jpg")
    ]


@pytest.mark.asyncio
async def test_post_creation_sync_failure_keeps_room() -> None:
    context = make_context()
    portal = _chat_portal(context)
    observer = FakeObserver(
        peer_info=PeerInfo(info=ChatInfo(id=1, title="Family"), users=(UserInfo(id=11),))
    )
    puppet = await context.directory.get_telegram_user(11)
    puppet.intent.join_error = RuntimeError("join forbidden")

    result = await portal.create_matrix_room(observer)

    assert result.created is True
    assert portal.room_id == result.room_id
    assert portal.creation_in_progress is False


@pytest.mark.asyncio
async def test_created_room_is_persisted_and_registered() -> None:
    context = make_context()
    portal = _chat_portal(context)

    result = await portal.create_matrix_room(FakeObserver())

    assert await context.portals.get_by_room_id(result.room_id) is portal
    stored = context.portals.store.entries[(1, 1)]
    assert stored["roomID"] == result.room_id


@pytest.mark.asyncio
async def test_metadata_fetch_failure_is_a_room_creation_error() -> None:
    portal = _chat_portal()
    observer = FakeObserver()

    async def unreachable(peer, access_hash):
        raise ConnectionError("telegram unreachable")

    observer.get_peer_info = unreachable

    with pytest.raises(RoomCreationError) as excinfo:
        await portal.create_matrix_room(observer)

    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert portal.context.bot_intent.created_rooms == []
    assert portal.room_id is None
    assert portal.creation_in_progress is False
