"""Portal lookup by Telegram peer and by Matrix room."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from tgportal.peer import TelegramPeer
from tgportal.portal import Portal
from tgportal.ports import PortalStore

if TYPE_CHECKING:
    from tgportal.context import BridgeContext

logger = structlog.get_logger()


class PortalRegistry:
    """Keeps exactly one in-memory Portal per ``(id, receiver_id)``."""

    def __init__(self, store: PortalStore) -> None:
        self.store = store
        self.context: BridgeContext | None = None
        self._by_peer: dict[tuple[int, int], Portal] = {}
        self._by_room: dict[str, Portal] = {}

    def bind(self, context: BridgeContext) -> None:
        self.context = context

    def _require_context(self) -> BridgeContext:
        assert self.context, "PortalRegistry not bound to a bridge context"
        return self.context

    def _add(self, portal: Portal) -> Portal:
        existing = self._by_peer.get(portal.peer.key)
        if existing is not None:
            return existing
        self._by_peer[portal.peer.key] = portal
        if portal.room_id:
            self._by_room[portal.room_id] = portal
        return portal

    def _restore(self, entry: dict) -> Portal:
        return self._add(Portal.from_entry(self._require_context(), entry))

    async def get_by_peer(self, peer: TelegramPeer, *, create: bool = True) -> Portal | None:
        """Return the cached or stored portal for ``peer``, creating one if allowed."""
        portal = self._by_peer.get(peer.key)
        if portal is not None:
            return portal

        entry = await self.store.portal_get(peer.id, peer.receiver_id)
        if entry:
            return self._restore(entry)
        if not create:
            return None

        portal = self._add(Portal(self._require_context(), peer))
        logger.info("portal.created", kind=peer.kind, tgid=peer.id, receiver=peer.receiver_id)
        return portal

    async def get_by_room_id(self, room_id: str) -> Portal | None:
        portal = self._by_room.get(room_id)
        if portal is not None:
            return portal

        entry = await self.store.portal_get_by_room(room_id)
        if not entry:
            return None
        return self._restore(entry)

    def register_room(self, portal: Portal) -> None:
        if not portal.room_id:
            raise ValueError("Portal has no room to register")
        self._by_room[portal.room_id] = portal

    async def save(self, portal: Portal) -> None:
        await self.store.portal_put(portal.to_entry())

    async def load_all(self) -> int:
        """Warm the cache with every stored portal. Returns the number loaded."""
        entries = await self.store.portal_list()
        for entry in entries:
            self._restore(entry)
        logger.info("portals.loaded_from_db", count=len(entries))
        return len(entries)

    def __len__(self) -> int:
        return len(self._by_peer)
