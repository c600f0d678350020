"""Unified event gateway for the bridge."""

from __future__ import annotations

import structlog

from tgportal.context import BridgeContext
from tgportal.events import (
    MatrixMessage,
    TelegramEvent,
    TelegramMessage,
    TelegramServiceMessage,
    TelegramTyping,
)
from tgportal.logging import portal_context
from tgportal.peer import TelegramPeer
from tgportal.ports import TelegramObserver
from tgportal.types import Dialog

logger = structlog.get_logger()


class BridgeEventGateway:
    """Single entrypoint for events delivered by the Telegram and Matrix clients.

    Each event is handled inside the log context of its portal.
    """

    def __init__(self, context: BridgeContext) -> None:
        self.context = context

    async def handle_telegram_event(self, peer: TelegramPeer, event: TelegramEvent) -> None:
        """Route one Telegram update to the portal of ``peer``."""
        portal = await self.context.portals.get_by_peer(peer)

        with portal_context(portal):
            if isinstance(event, TelegramTyping):
                await portal.handle_telegram_typing(event)
            elif isinstance(event, TelegramServiceMessage):
                await portal.handle_telegram_service_message(event)
            elif isinstance(event, TelegramMessage):
                await portal.handle_telegram_message(event)
            else:
                logger.warning("gateway.telegram.unhandled", event_type=type(event).__name__)

    async def handle_telegram_dialog(
        self,
        observer: TelegramObserver,
        peer: TelegramPeer,
        dialog: Dialog,
    ) -> bool:
        """Refresh portal metadata from a dialog list entry."""
        portal = await self.context.portals.get_by_peer(peer)
        with portal_context(portal):
            return await portal.update_info(observer, dialog)

    async def handle_matrix_event(self, event: MatrixMessage) -> None:
        portal = await self.context.portals.get_by_room_id(event.room_id)
        if portal is None:
            logger.info(
                "gateway.matrix.unknown_room",
                room_id=event.room_id,
                event_id=event.event_id,
            )
            return
        with portal_context(portal):
            await portal.handle_matrix_event(event)
