"""
Board card schema and drag state machine vocabulary.

Drag lifecycle:
  Idle → Dragging → Idle

Cards and columns are owned by the external system. The board only ever
holds snapshots of them; identity is by id, everything else is opaque.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Iterable
import json
import re


class BoardError(Exception):
    """Base class for errors that cross the board boundary."""
    pass


class DragPhase(Enum):
    """States of the drag session controller."""
    IDLE = "idle"            # No gesture in progress, external sync allowed
    DRAGGING = "dragging"    # One card is being dragged, external sync gated off


class BoardEventType(Enum):
    """Event types published on the observability stream."""
    START = "start"
    OVER = "over"
    END = "end"
    CANCEL = "cancel"
    SYNC = "sync"
    SYNC_SKIPPED = "sync_skipped"
    COMMIT_STARTED = "commit_started"
    COMMIT_SUCCEEDED = "commit_succeeded"
    COMMIT_FAILED = "commit_failed"
    ROLLBACK = "rollback"

    @classmethod
    def from_str(cls, value: str) -> "BoardEventType":
        return cls[value.upper()]


GESTURE_KINDS = ("start", "over", "end", "cancel")


def column_id_for(label: str) -> str:
    """Stage label → column id ("Site Visit" → "col-site-visit")."""
    return "col-" + re.sub(r"\s+", "-", label.strip().lower())


def stage_for(column_id: str, columns: Iterable["Column"], default: str = "") -> str:
    """Column id → stage label, `default` when the id is unknown."""
    for column in columns:
        if column.column_id == column_id:
            return column.label
    return default


@dataclass(frozen=True)
class Column:
    """A named, ordered bucket of cards. Supplied by the caller."""
    column_id: str
    label: str
    color: str = ""

    @classmethod
    def from_label(cls, label: str, color: str = "") -> "Column":
        return cls(column_id=column_id_for(label), label=label, color=color)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.column_id, "name": self.label, "color": self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        label = data.get("name") or data.get("label") or ""
        column_id = data.get("id") or column_id_for(label)
        return cls(column_id=column_id, label=label, color=data.get("color", ""))


@dataclass(frozen=True)
class Card:
    """A draggable record belonging to exactly one column."""

    card_id: str
    column: str
    label: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def with_column(self, column_id: str) -> "Card":
        if column_id == self.column:
            return self
        return replace(self, column=column_id)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the wire shape: {id, column, name, ...attributes}."""
        data = dict(self.attributes)
        data["id"] = self.card_id
        data["column"] = self.column
        data["name"] = self.label
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        """Inverse of to_dict(). Unknown keys are kept as opaque attributes."""
        attributes = {k: v for k, v in data.items() if k not in ("id", "column", "name")}
        return cls(
            card_id=str(data["id"]),
            column=str(data.get("column", "")),
            label=str(data.get("name", "")),
            attributes=attributes,
        )


def fingerprint(cards: Iterable[Card]) -> str:
    """Canonical by-value form of an ordered card collection."""
    return json.dumps([c.to_dict() for c in cards], sort_keys=True, default=str)


@dataclass(frozen=True)
class GestureEvent:
    """One event from a gesture source (pointer, touch, keyboard, replay)."""
    kind: str                      # "start" | "over" | "end" | "cancel"
    active_id: str
    over_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GestureEvent":
        kind = str(data.get("kind") or data.get("type") or "").lower()
        if kind not in GESTURE_KINDS:
            raise ValueError(f"Invalid gesture kind: {kind!r}")
        over_id = data.get("over_id", data.get("overId"))
        return cls(
            kind=kind,
            active_id=str(data.get("active_id", data.get("activeId", ""))),
            over_id=str(over_id) if over_id is not None else None,
        )


@dataclass
class BoardEvent:
    """One entry on the observability stream."""
    event_type: BoardEventType
    card_id: Optional[str] = None
    card_label: str = ""
    from_column: Optional[str] = None
    to_column: Optional[str] = None
    over_id: Optional[str] = None
    message: str = ""
    error: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type.value,
            "card_id": self.card_id,
            "card_label": self.card_label,
            "from_column": self.from_column,
            "to_column": self.to_column,
            "over_id": self.over_id,
            "message": self.message,
            "error": self.error,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardEvent":
        """Inverse of to_dict(). Missing fields take their defaults."""
        kwargs = {k: data[k] for k in (
            "card_id", "card_label", "from_column", "to_column", "over_id", "message", "error", "timestamp",
        ) if data.get(k) is not None}
        return cls(event_type=BoardEventType.from_str(data["type"]), **kwargs)


def cards_from_dicts(items: Iterable[Dict[str, Any]]) -> List[Card]:
    return [Card.from_dict(item) for item in items]
