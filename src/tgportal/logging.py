"""Structured logging for the bridge.

Events handled by a portal carry ``tgid``, ``receiver`` and ``room_id``. The
gateway binds them through ``portal_context`` so every log line emitted while
the portal works on an event, including from collaborators, is tagged.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TextIO

import structlog

if TYPE_CHECKING:
    from tgportal.portal import Portal

PORTAL_CONTEXT_KEYS = ("tgid", "receiver", "room_id")


@contextmanager
def portal_context(portal: Portal) -> Iterator[None]:
    """Bind the portal identity to the log context for the duration of the block."""
    with structlog.contextvars.bound_contextvars(
        tgid=portal.peer.id,
        receiver=portal.peer.receiver_id,
        room_id=portal.room_id,
    ):
        yield


def drop_empty_portal_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Remove portal keys without a value, e.g. ``room_id`` before the room exists."""
    for key in PORTAL_CONTEXT_KEYS:
        if key in event_dict and event_dict[key] is None:
            del event_dict[key]
    return event_dict


def setup_logging(level: str = "INFO", fmt: str = "json", stream: TextIO | None = None) -> None:
    """Configure structlog and the stdlib root logger for the bridge."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        drop_empty_portal_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=stream is None and sys.stdout.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Query-level chatter from the portal store
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
