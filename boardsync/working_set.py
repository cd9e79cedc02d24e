"""
Working set: the session-local, mutable copy of the card collection.

Position within a column is array order; order across columns is
irrelevant. Moves change a card's column and slot, never its identity.
"""
from typing import Dict, Iterable, List, Optional, Set

from .schema import Card, fingerprint


class WorkingSet:
    """Ordered list of cards with id lookup and the drag move."""

    def __init__(self, cards: Iterable[Card] = ()):
        self._cards: List[Card] = list(cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self):
        return iter(list(self._cards))

    def __repr__(self) -> str:
        return f"WorkingSet({[c.card_id for c in self._cards]!r})"

    # -------------------- queries --------------------
    @property
    def cards(self) -> List[Card]:
        return list(self._cards)

    def find(self, card_id: Optional[str]) -> Optional[Card]:
        if card_id is None:
            return None
        for card in self._cards:
            if card.card_id == card_id:
                return card
        return None

    def index_of(self, card_id: str) -> int:
        for idx, card in enumerate(self._cards):
            if card.card_id == card_id:
                return idx
        return -1

    def ids(self) -> Set[str]:
        return {c.card_id for c in self._cards}

    def in_column(self, column_id: str) -> List[Card]:
        return [c for c in self._cards if c.column == column_id]

    def by_column(self) -> Dict[str, List[str]]:
        """column id → ordered card ids, in first-seen column order."""
        grouped: Dict[str, List[str]] = {}
        for card in self._cards:
            grouped.setdefault(card.column, []).append(card.card_id)
        return grouped

    def snapshot(self) -> List[Card]:
        return list(self._cards)

    def fingerprint(self) -> str:
        return fingerprint(self._cards)

    # -------------------- mutation --------------------
    def replace(self, cards: Iterable[Card]) -> None:
        self._cards = list(cards)

    def move(self, card_id: str, column_id: str, target_id: Optional[str] = None) -> bool:
        """Remove a card from its slot and reinsert it into `column_id`.

        With `target_id` naming a card in the same column this is an array
        move: the dragged card takes the target's index from before the
        removal, so dragging down lands after the target and dragging up
        lands before it. A target in another column receives the card
        immediately before it. Without a target the card goes after the last
        card of `column_id`, or back to its old slot if the column is empty.
        Returns True if the order or column changed.
        """
        old_index = self.index_of(card_id)
        if old_index == -1 or target_id == card_id:
            return False
        before = list(self._cards)
        same_column = before[old_index].column == column_id
        card = self._cards.pop(old_index).with_column(column_id)

        if target_id is not None:
            if same_column:
                new_index = next((i for i, c in enumerate(before) if c.card_id == target_id), -1)
            else:
                new_index = self.index_of(target_id)
            if new_index == -1:
                self._cards = before
                return False
        else:
            tail = [i for i, c in enumerate(self._cards) if c.column == column_id]
            new_index = tail[-1] + 1 if tail else old_index

        self._cards.insert(new_index, card)
        return self._cards != before
