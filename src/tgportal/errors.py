"""Bridge error hierarchy."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for errors raised by the portal core."""


class AccessHashError(BridgeError):
    """No usable access hash for the observing account."""


class RoomCreationError(BridgeError):
    """The Matrix room for a portal could not be created."""


class InvalidEntryError(BridgeError):
    """A persisted entry cannot be turned into a portal."""


class InvalidLocationError(BridgeError):
    """A Matrix location event carries an unparseable geo URI."""
