"""
External sync: aligns the working set with the latest external collection.

Refreshes are compared by value against the last applied one. While a drag
is active the replacement is suppressed entirely; the most recent offer is
held and re-evaluated once the controller is idle again.
"""
from typing import Callable, Iterable, List, Optional

from .schema import Card, fingerprint
from .working_set import WorkingSet


class ExternalSync:
    """Gated reconciliation between the external collection and a WorkingSet."""

    def __init__(self, working_set: WorkingSet, is_dragging: Callable[[], bool]):
        self.working_set = working_set
        self._is_dragging = is_dragging
        self._synced: List[Card] = []
        self._synced_fp: Optional[str] = None
        self._latest: Optional[List[Card]] = None

    @property
    def synced_snapshot(self) -> List[Card]:
        """The most recent collection accepted from the external source."""
        return list(self._synced)

    @property
    def has_pending(self) -> bool:
        """True if an offered collection has not been applied yet."""
        return self._latest is not None and fingerprint(self._latest) != self._synced_fp

    def offer(self, cards: Iterable[Card]) -> bool:
        """Record a refresh and apply it if allowed. Returns True if applied."""
        self._latest = list(cards)
        return self.reconcile()

    def reconcile(self) -> bool:
        """Apply the latest offered collection if it differs and no drag is active."""
        if self._latest is None:
            return False
        latest_fp = fingerprint(self._latest)
        if latest_fp == self._synced_fp:
            return False
        if self._is_dragging():
            return False
        self.working_set.replace(self._latest)
        self._synced = list(self._latest)
        self._synced_fp = latest_fp
        return True

    def restore(self) -> None:
        """Reset the working set to the last synced snapshot."""
        self.working_set.replace(self._synced)
