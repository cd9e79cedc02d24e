# Board reconciliation: drag sessions, external sync, and commit/rollback
#
# Components:
#   schema.py      - Data model (Card, Column, BoardEvent, GestureEvent)
#   working_set.py - Session-local optimistic copy of the cards
#   sync.py        - External refresh gating (suppressed while dragging)
#   session.py     - Drag session state machine (Idle / Dragging)
#   commit.py      - Async commit runner with rollback on failure
#   events.py      - Event bridge, narration, logging + JSONL journal sinks
#   store.py       - SQLite persistence adapter
#   client.py      - REST persistence adapter (requests)
#   poller.py      - Periodic refresh loop
#   config.py      - YAML configuration
from .schema import Card, Column, BoardEvent, BoardEventType, DragPhase, GestureEvent
from .working_set import WorkingSet
from .sync import ExternalSync
from .commit import CommitProtocol, CommitOutcome, moved_cards
from .session import DragSessionController
from .events import BoardEventBridge

__version__ = "0.3.0"
