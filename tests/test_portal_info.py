from __future__ import annotations

import pytest
from fakes import FakeObserver, make_context

from tgportal.errors import AccessHashError
from tgportal.peer import TelegramPeer
from tgportal.portal import Portal
from tgportal.types import ChatInfo, Dialog, FileLocation, PeerInfo, UserInfo


@pytest.mark.asyncio
async def test_fetched_user_info_reaches_persona_unchanged() -> None:
    context = make_context()
    portal = Portal(context, TelegramPeer(kind="user", id=200, receiver_id=100))
    bob = UserInfo(
        id=200,
        first_name="Bob",
        last_name="Smith",
        username="bob",
        photo=FileLocation(2, 400, 1),
        access_hash=321,
    )

    await portal.update_info(FakeObserver(peer_info=PeerInfo(info=bob)))

    info, _ = context.directory.puppets[200].info_updates[-1]
    assert info == bob


@pytest.mark.asyncio
async def test_dialog_names_are_forwarded_to_persona() -> None:
    context = make_context()
    portal = Portal(context, TelegramPeer(kind="user", id=200, receiver_id=100))

    await portal.update_info(
        FakeObserver(),
        Dialog(id=200, access_hash=321, username="bob", first_name="Bob", last_name="Smith"),
    )

    info, _ = context.directory.puppets[200].info_updates[-1]
    assert (info.first_name, info.last_name) == ("Bob", "Smith")
    assert info.username == "bob"
    assert info.access_hash == 321


@pytest.mark.asyncio
async def test_fetched_chat_info_renames_existing_room() -> None:
    context = make_context()
    portal = Portal(
        context, TelegramPeer(kind="chat", id=1, title="Old"), room_id="!room:example.org"
    )

    changed = await portal.update_info(
        FakeObserver(peer_info=PeerInfo(info=ChatInfo(id=1, title="Family")))
    )

    assert changed is True
    assert portal.peer.title == "Family"
    assert context.bot_intent.names == [("!room:example.org", "Family")]
    assert context.portals.store.entries[(1, 1)]["data"]["peer"]["title"] == "Family"


@pytest.mark.asyncio
async def test_refresh_without_access_hash_fails() -> None:
    portal = Portal(make_context(), TelegramPeer(kind="channel", id=10))

    with pytest.raises(AccessHashError):
        await portal.update_info(FakeObserver(access_hash=None))
