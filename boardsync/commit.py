"""
Commit protocol: hands a finished arrangement to the persistence adapter.

The callback may be a plain function or a coroutine function. It runs as an
asyncio task so gesture handling never waits on it. Success needs no local
change (the next external refresh reconciles); failure triggers a rollback
through the `on_failure` hook. No retries happen here.
"""
import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from .schema import BoardError, Card

CommitCallback = Callable[[List[Card]], Union[None, Awaitable[Any]]]


class CommitError(BoardError):
    """Raised by persistence adapters that could not store an arrangement."""
    pass


@dataclass
class CommitOutcome:
    """Result of one commit attempt."""
    ok: bool
    cards: List[Card] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""


def moved_cards(previous: Iterable[Card], final: Iterable[Card]) -> List[Card]:
    """Cards in `final` whose column differs from the same id in `previous`."""
    before = {c.card_id: c.column for c in previous}
    return [c for c in final if c.card_id in before and before[c.card_id] != c.column]


class CommitProtocol:
    """Runs one commit attempt per completed gesture."""

    def __init__(
        self,
        callback: CommitCallback,
        on_success: Optional[Callable[[CommitOutcome], None]] = None,
        on_failure: Optional[Callable[[CommitOutcome], None]] = None,
    ):
        self.callback = callback
        self.on_success = on_success
        self.on_failure = on_failure

    @staticmethod
    def can_submit() -> bool:
        """True when called from inside a running event loop."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def submit(self, cards: Iterable[Card]) -> "asyncio.Task[CommitOutcome]":
        """Schedule a commit on the running loop and return its task."""
        loop = asyncio.get_running_loop()
        return loop.create_task(self.run(list(cards)))

    async def run(self, cards: List[Card]) -> CommitOutcome:
        """Invoke the callback once. Callback errors become a failed outcome."""
        final = list(cards)
        try:
            result = self.callback(list(final))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            outcome = CommitOutcome(ok=False, cards=final, error=e)
            if self.on_failure:
                self.on_failure(outcome)
            return outcome

        outcome = CommitOutcome(ok=True, cards=final)
        if self.on_success:
            self.on_success(outcome)
        return outcome
