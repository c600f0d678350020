"""Bridge core assembly for the host application."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from tgportal.config import TGPortalConfig, get_config
from tgportal.context import BridgeContext
from tgportal.db.engine import Database
from tgportal.gateway import BridgeEventGateway
from tgportal.logging import setup_logging
from tgportal.ports import Formatter, Intent, UserDirectory
from tgportal.registry import PortalRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def bridge_lifespan(
    *,
    bot_intent: Intent,
    directory: UserDirectory,
    formatter: Formatter,
    config: TGPortalConfig | None = None,
    configure_logging: bool = True,
) -> AsyncIterator[BridgeEventGateway]:
    """Open the portal store, restore portals and yield the event gateway.

    The host application feeds Telegram and Matrix events into the yielded
    gateway; the store is closed on exit.
    """
    config = config or get_config()
    if configure_logging:
        setup_logging(level=config.log_level, fmt=config.log_format)

    logger.info("tgportal.starting", data_dir=config.data_dir)

    db = Database(
        config.data_dir,
        journal_mode=config.db_journal_mode,
        busy_timeout_ms=config.db_busy_timeout_ms,
    )
    await db.initialize()

    registry = PortalRegistry(db)
    context = BridgeContext(
        settings=config.bridge,
        bot_intent=bot_intent,
        directory=directory,
        formatter=formatter,
        portals=registry,
    )
    registry.bind(context)
    await registry.load_all()

    logger.info("tgportal.ready", portals=len(registry))
    try:
        yield BridgeEventGateway(context)
    finally:
        logger.info("tgportal.shutting_down")
        await db.close()
        logger.info("tgportal.stopped")
