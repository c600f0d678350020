"""Per-portal access hash cache."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class AccessHashCache:
    """Maps an observer's Telegram user id to the access hash it must present.

    Only channel portals populate this: channel access hashes differ per
    observing account, while user and chat peers are not observer-scoped.
    A newer value always replaces the stored one.
    """

    def __init__(self, pairs: Iterable[tuple[int, int]] | None = None) -> None:
        self._hashes: dict[int, int] = {}
        for observer_id, access_hash in pairs or ():
            self._hashes[int(observer_id)] = int(access_hash)

    def get(self, observer_id: int) -> int | None:
        return self._hashes.get(observer_id)

    def set(self, observer_id: int, access_hash: int) -> bool:
        """Store ``access_hash`` for the observer. Returns whether it changed."""
        if self._hashes.get(observer_id) == access_hash:
            return False
        self._hashes[observer_id] = access_hash
        return True

    def to_pairs(self) -> list[list[int]]:
        return [[observer_id, access_hash] for observer_id, access_hash in self._hashes.items()]

    def __contains__(self, observer_id: object) -> bool:
        return observer_id in self._hashes

    def __iter__(self) -> Iterator[int]:
        return iter(self._hashes)

    def __len__(self) -> int:
        return len(self._hashes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccessHashCache):
            return NotImplemented
        return self._hashes == other._hashes

    def __repr__(self) -> str:
        return f"AccessHashCache({self._hashes!r})"
