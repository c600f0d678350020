"""Collaborators shared by every portal of one bridge instance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tgportal.config import BridgeSettings
from tgportal.ports import Formatter, Intent, UserDirectory

if TYPE_CHECKING:
    from tgportal.registry import PortalRegistry


@dataclass
class BridgeContext:
    settings: BridgeSettings
    bot_intent: Intent
    directory: UserDirectory
    formatter: Formatter
    portals: PortalRegistry
