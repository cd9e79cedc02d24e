"""
Event bridge: publishes board state transitions to observers.

The drag controller emits BoardEvents (start, over, end, cancel, sync,
commit_*). This module fans them out to subscribers such as the logging sink
and the JSONL journal below.
"""
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .schema import BoardEvent, BoardEventType

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"

EventCallback = Callable[[BoardEvent], None]


def narrate(event_type: BoardEventType, card_label: str, to_label: str = "", from_label: str = "") -> str:
    """Screen-reader style announcement for a gesture event."""
    if event_type == BoardEventType.START:
        return f'Picked up the card "{card_label}" from the "{from_label}" column'
    if event_type == BoardEventType.OVER:
        return f'Dragged the card "{card_label}" over the "{to_label}" column'
    if event_type == BoardEventType.END:
        return f'Dropped the card "{card_label}" into the "{to_label}" column'
    if event_type == BoardEventType.CANCEL:
        return f'Cancelled dragging the card "{card_label}"'
    return ""


class BoardEventBridge:
    """Routes board events to subscribed callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[EventCallback]] = {}  # event type value -> callbacks

    def subscribe(self, event_type: Union[BoardEventType, str], callback: EventCallback) -> None:
        """Register a callback for one event type, or ALL_EVENTS."""
        key = event_type.value if isinstance(event_type, BoardEventType) else event_type
        self.subscribers.setdefault(key, []).append(callback)

    def unsubscribe(self, event_type: Union[BoardEventType, str], callback: EventCallback) -> None:
        key = event_type.value if isinstance(event_type, BoardEventType) else event_type
        callbacks = self.subscribers.get(key, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event: BoardEvent) -> None:
        """Emit an event to its subscribers. Observer failures never propagate."""
        callbacks = self.subscribers.get(event.event_type.value, []) + self.subscribers.get(ALL_EVENTS, [])
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in {event.event_type.value} subscriber: {e}")


# ── Sinks ────────────────────────────────────────────────────────────────────

_LEVELS = {
    BoardEventType.OVER: logging.DEBUG,
    BoardEventType.SYNC_SKIPPED: logging.DEBUG,
    BoardEventType.COMMIT_FAILED: logging.ERROR,
    BoardEventType.ROLLBACK: logging.WARNING,
}


def log_events(bridge: BoardEventBridge, log: Optional[logging.Logger] = None) -> EventCallback:
    """Subscribe a logging sink to every event. Returns the callback."""
    log = log or logging.getLogger("boardsync.events")

    def _log(event: BoardEvent) -> None:
        level = _LEVELS.get(event.event_type, logging.INFO)
        text = event.message or f"{event.event_type.value} {event.card_id or ''}".strip()
        if event.error:
            text = f"{text}: {event.error}"
        log.log(level, text)

    bridge.subscribe(ALL_EVENTS, _log)
    return _log


class EventJournal:
    """
    Appends board events as JSON lines.
    One line per published event.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, event: BoardEvent) -> None:
        entry = {k: v for k, v in event.to_dict().items() if v not in (None, "")}
        try:
            with open(self.path, "a") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Failed to write event journal: {e}")

    def attach(self, bridge: BoardEventBridge) -> "EventJournal":
        bridge.subscribe(ALL_EVENTS, self)
        return self

    def read(self) -> List[dict]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            return [json.loads(line) for line in f if line.strip()]

    def events(self, event_type: Optional[BoardEventType] = None) -> List[BoardEvent]:
        """Journal entries as BoardEvents, optionally of one type only."""
        events = []
        for entry in self.read():
            try:
                event = BoardEvent.from_dict(entry)
            except KeyError as e:
                logger.warning(f"Skipping journal entry with unknown type {e}")
                continue
            if event_type is None or event.event_type == event_type:
                events.append(event)
        return events
