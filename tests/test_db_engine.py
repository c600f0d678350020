from pathlib import Path

import pytest

from tgportal.db.engine import Database


def _entry(tgid: int, receiver_id: int, room_id: str | None) -> dict:
    return {
        "type": "portal",
        "id": tgid,
        "receiverID": receiver_id,
        "roomID": room_id,
        "data": {
            "peer": {"type": "channel", "id": tgid, "receiverID": receiver_id, "title": "News"},
            "photo": {"dc_id": 2, "volume_id": 300, "local_id": 7},
            "avatarURL": "mxc://example.org/300_7.jpg",
            "accessHashes": [[100, 555]],
        },
    }


@pytest.mark.asyncio
async def test_portal_entries_round_trip(tmp_path: Path) -> None:
    db = Database(str(tmp_path))
    await db.initialize()

    await db.portal_put(_entry(10, 10, "!news:example.org"))
    await db.portal_put(_entry(11, 11, None))

    assert await db.portal_get(10, 10) == _entry(10, 10, "!news:example.org")
    assert await db.portal_get_by_room("!news:example.org") == _entry(10, 10, "!news:example.org")
    assert await db.portal_get(12, 12) is None
    assert [entry["id"] for entry in await db.portal_list()] == [10, 11]

    await db.close()


@pytest.mark.asyncio
async def test_portal_put_replaces_existing_entry(tmp_path: Path) -> None:
    db = Database(str(tmp_path), journal_mode="DELETE")
    await db.initialize()

    await db.portal_put(_entry(10, 10, None))
    await db.portal_put(_entry(10, 10, "!news:example.org"))

    entries = await db.portal_list()
    assert len(entries) == 1
    assert entries[0]["roomID"] == "!news:example.org"

    await db.close()


def test_database_rejects_unknown_journal_mode(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unsupported SQLite journal mode"):
        Database(str(tmp_path), journal_mode="MEMORY")
