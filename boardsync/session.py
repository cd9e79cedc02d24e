"""
Drag session controller: the Idle/Dragging state machine behind the board.

    Idle ──start──▶ Dragging ──over*──▶ Dragging ──end/cancel──▶ Idle

All transitions run synchronously inside the gesture handlers. Only the
commit is asynchronous: `end()` returns to Idle first, then schedules the
commit task and returns it without awaiting.
"""
import asyncio
from typing import Iterable, List, Optional, Tuple

from .commit import CommitCallback, CommitOutcome, CommitProtocol
from .events import BoardEventBridge, narrate
from .schema import BoardError, BoardEvent, BoardEventType, Card, Column, DragPhase, GestureEvent
from .sync import ExternalSync
from .working_set import WorkingSet


class DragSessionController:
    """
    Owns the three board values: the synced snapshot (via ExternalSync),
    the working copy, and the pending commit.

    Resolution failures (unknown ids, stale references) are silent no-ops so
    fast pointer movement can never raise. Only commit failures are reported,
    as `commit_failed` events and failed CommitOutcomes.
    """

    def __init__(
        self,
        columns: Iterable[Column],
        commit: Optional[CommitCallback] = None,
        bridge: Optional[BoardEventBridge] = None,
        restore_on_cancel: bool = True,
        cards: Iterable[Card] = (),
    ):
        self.columns: List[Column] = list(columns)
        self.bridge = bridge or BoardEventBridge()
        self.restore_on_cancel = restore_on_cancel
        self.working_set = WorkingSet()
        self.sync = ExternalSync(self.working_set, lambda: self.is_dragging)
        self.commits: Optional[CommitProtocol] = None
        if commit is not None:
            self.commits = CommitProtocol(
                commit,
                on_success=self._on_commit_success,
                on_failure=self._on_commit_failure,
            )

        self.phase = DragPhase.IDLE
        self.active_card_id: Optional[str] = None
        self._pre_drag: List[Card] = []
        self._last_over: Optional[str] = None  # last resolved Over target, already applied
        self._rollback_pending = False
        self._commit_task: Optional[asyncio.Task] = None

        cards = list(cards)
        if cards:
            self.refresh(cards)

    # -------------------- queries --------------------
    @property
    def is_dragging(self) -> bool:
        return self.phase == DragPhase.DRAGGING

    @property
    def cards(self) -> List[Card]:
        return self.working_set.cards

    @property
    def synced_snapshot(self) -> List[Card]:
        return self.sync.synced_snapshot

    @property
    def active_card(self) -> Optional[Card]:
        """The card an overlay renderer should project, if any."""
        return self.working_set.find(self.active_card_id)

    @property
    def pending_commit(self) -> Optional[asyncio.Task]:
        if self._commit_task is not None and not self._commit_task.done():
            return self._commit_task
        return None

    def column(self, column_id: Optional[str]) -> Optional[Column]:
        for column in self.columns:
            if column.column_id == column_id:
                return column
        return None

    def column_label(self, column_id: Optional[str]) -> str:
        column = self.column(column_id)
        return column.label if column else (column_id or "")

    def board(self) -> List[Tuple[Column, List[Card]]]:
        """Columns in caller order, each with its cards in working-set order."""
        return [(column, self.working_set.in_column(column.column_id)) for column in self.columns]

    # -------------------- external sync --------------------
    def refresh(self, cards: Iterable[Card]) -> bool:
        """Offer a fresh external collection. Returns True if it was applied."""
        applied = self.sync.offer(cards)
        if applied:
            self._publish(BoardEventType.SYNC, message=f"Synced {len(self.working_set)} cards from external source")
        elif self.is_dragging and self.sync.has_pending:
            self._publish(BoardEventType.SYNC_SKIPPED, message="Skipping sync - drag in progress")
        return applied

    # -------------------- gesture handlers --------------------
    def start(self, card_id: str) -> bool:
        """Idle → Dragging. Unknown ids and a second concurrent start are no-ops."""
        if self.is_dragging:
            return False
        card = self.working_set.find(card_id)
        if card is None:
            return False
        self._pre_drag = self.working_set.snapshot()
        self._last_over = None
        self.active_card_id = card.card_id
        self.phase = DragPhase.DRAGGING
        self._publish(
            BoardEventType.START, card,
            from_column=card.column, to_column=card.column,
            message=narrate(BoardEventType.START, card.label, from_label=self.column_label(card.column)),
        )
        return True

    def over(self, card_id: str, over_id: Optional[str]) -> bool:
        """
        Live reposition while dragging. Returns True if the working set changed.
        Hovering the same target again is a no-op, as in a pointer that stays
        over one card.
        """
        if not self._owns(card_id) or over_id == self._last_over:
            return False
        before = self.working_set.find(card_id)
        target = self._resolve(over_id)
        if before is None or target is None:
            return False
        changed = self._reposition(before, target)
        self._last_over = over_id
        self._publish(
            BoardEventType.OVER, before,
            from_column=before.column, to_column=target[0], over_id=over_id,
            message=narrate(BoardEventType.OVER, before.label, to_label=self.column_label(target[0])),
        )
        return changed

    def end(self, card_id: str, over_id: Optional[str] = None) -> Optional[asyncio.Task]:
        """
        Dragging → Idle. Without a target this is a cancel. Otherwise the final
        move is applied, the session settles, and the commit task (if a commit
        callback was given) is scheduled and returned.

        If an earlier commit failed during this drag, its arrangement is
        discarded first: the synced snapshot comes back and only this card's
        drop is applied on top of it.

        Raises BoardError, leaving the drag active, when a commit callback is
        set but no asyncio loop is running to schedule it.
        """
        if not self._owns(card_id):
            return None
        if over_id is None:
            self.cancel(card_id)
            return None
        if self.commits is not None and not self.commits.can_submit():
            raise BoardError(f"Cannot commit drop of {card_id} outside a running event loop")

        origin = self._origin(card_id)
        reapply = over_id != self._last_over
        if self._rollback_pending:
            self._rollback_pending = False
            self._rollback()
            reapply = True
        card = self.working_set.find(card_id)
        target = self._resolve(over_id)
        if card is not None and target is not None and reapply:
            self._reposition(card, target)
        final = self.working_set.snapshot()
        dropped = self.working_set.find(card_id)

        self._settle()
        if dropped is None:
            return None
        self._publish(
            BoardEventType.END, dropped,
            from_column=origin, to_column=dropped.column, over_id=over_id,
            message=narrate(BoardEventType.END, dropped.label, to_label=self.column_label(dropped.column)),
        )

        if self.commits is None:
            return None
        self._publish(BoardEventType.COMMIT_STARTED, dropped, to_column=dropped.column,
                      message=f"Committing {len(final)} cards")
        self._commit_task = self.commits.submit(final)
        return self._commit_task

    def cancel(self, card_id: Optional[str] = None) -> bool:
        """Abort the active session without committing."""
        if not self.is_dragging or (card_id is not None and card_id != self.active_card_id):
            return False
        card = self.working_set.find(self.active_card_id)
        origin = self._origin(self.active_card_id)
        if self.restore_on_cancel:
            self.working_set.replace(self._pre_drag)
        self._settle()
        self._publish(
            BoardEventType.CANCEL, card,
            from_column=origin,
            message=narrate(BoardEventType.CANCEL, card.label if card else ""),
        )
        return True

    def dispatch(self, gesture: GestureEvent):
        """Route one gesture-source event to its handler."""
        if gesture.kind == "start":
            return self.start(gesture.active_id)
        if gesture.kind == "over":
            return self.over(gesture.active_id, gesture.over_id)
        if gesture.kind == "end":
            return self.end(gesture.active_id, gesture.over_id)
        if gesture.kind == "cancel":
            return self.cancel(gesture.active_id)
        raise ValueError(f"Unknown gesture kind: {gesture.kind}")

    # -------------------- internals --------------------
    def _owns(self, card_id: str) -> bool:
        return self.is_dragging and card_id == self.active_card_id

    def _origin(self, card_id: Optional[str]) -> Optional[str]:
        """Column the card was in when the drag started."""
        for card in self._pre_drag:
            if card.card_id == card_id:
                return card.column
        return None

    def _resolve(self, over_id: Optional[str]) -> Optional[Tuple[str, Optional[str]]]:
        """Target id → (column id, target card id or None). Cards win over columns."""
        if over_id is None:
            return None
        over_card = self.working_set.find(over_id)
        if over_card is not None:
            return over_card.column, over_card.card_id
        if self.column(over_id) is not None:
            return over_id, None
        return None

    def _reposition(self, card: Card, target: Tuple[str, Optional[str]]) -> bool:
        column_id, target_id = target
        if target_id == card.card_id:
            return False
        if target_id is None and column_id == card.column:
            return False
        return self.working_set.move(card.card_id, column_id, target_id)

    def _settle(self) -> None:
        """Return to Idle, then let deferred rollbacks and held refreshes through."""
        self.phase = DragPhase.IDLE
        self.active_card_id = None
        self._pre_drag = []
        self._last_over = None
        if self._rollback_pending:
            self._rollback_pending = False
            self._rollback()
        if self.sync.reconcile():
            self._publish(BoardEventType.SYNC, message=f"Synced {len(self.working_set)} cards from external source")

    def _rollback(self) -> None:
        self.sync.restore()
        self._publish(BoardEventType.ROLLBACK, message="Restored last synced snapshot")

    def _on_commit_success(self, outcome: CommitOutcome) -> None:
        self._publish(BoardEventType.COMMIT_SUCCEEDED, message=f"Committed {len(outcome.cards)} cards")

    def _on_commit_failure(self, outcome: CommitOutcome) -> None:
        self._publish(BoardEventType.COMMIT_FAILED, message="Commit failed", error=outcome.error_message)
        if self.is_dragging:
            self._rollback_pending = True
        else:
            self._rollback()

    def _publish(self, event_type: BoardEventType, card: Optional[Card] = None, **fields) -> None:
        self.bridge.publish(BoardEvent(
            event_type=event_type,
            card_id=card.card_id if card else None,
            card_label=card.label if card else "",
            **fields,
        ))
