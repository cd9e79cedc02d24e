"""
REST persistence adapter for a remote board backend.

    GET   {base}/board                 → [ {id, column, name, ...}, ... ]
    PATCH {base}/cards/{id}/stage      ← {stage, column, reason, updated_by}

Only cards whose column changed since the last known snapshot are sent.
Retries with backoff live here, not in the commit protocol.
"""
import asyncio
import logging
import time
from typing import Iterable, List, Optional

import requests

from .commit import CommitError, moved_cards
from .schema import Card, Column, cards_from_dicts, stage_for

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Moved via Kanban board"


class BoardClient:
    """requests-based client for fetching and committing board state."""

    def __init__(
        self,
        base_url: str,
        columns: Iterable[Column] = (),
        api_key: str = "",
        timeout: float = 10.0,
        max_retries: int = 2,
        updated_by: str = "boardsync",
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.columns = list(columns)
        self.timeout = timeout
        self.max_retries = max_retries
        self.updated_by = updated_by
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers["X-API-Key"] = api_key
        self.baseline: List[Card] = []  # last snapshot fetched or committed

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Send one request, retrying with backoff: 0.5s → 0.75s → … → 3s max."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        interval = 0.5
        max_interval = 3.0
        attempt = 0
        while True:
            try:
                r = self.session.request(method, url, timeout=self.timeout, **kwargs)
                r.raise_for_status()
                return r
            except requests.RequestException as e:
                if attempt >= self.max_retries:
                    raise CommitError(f"{method} {url} failed after {attempt + 1} attempts: {e}") from e
                logger.warning(f"{method} {url} failed ({e}), retrying in {interval:.2f}s")
                time.sleep(interval)
                interval = min(interval * 1.5, max_interval)
                attempt += 1

    # -------------------- blocking API --------------------
    def fetch_cards_sync(self) -> List[Card]:
        r = self._request("GET", "board")
        cards = cards_from_dicts(r.json())
        self.baseline = list(cards)
        return cards

    def commit_sync(self, cards: Iterable[Card]) -> List[Card]:
        """PATCH every moved card. Returns the moved cards."""
        cards = list(cards)
        moved = moved_cards(self.baseline, cards)
        if not moved:
            logger.info("No cards changed column - nothing to commit")
            self.baseline = cards
            return []
        for card in moved:
            body = {
                "stage": stage_for(card.column, self.columns, default=card.column),
                "column": card.column,
                "reason": DEFAULT_REASON,
                "updated_by": self.updated_by,
            }
            self._request("PATCH", f"cards/{card.card_id}/stage", json=body)
        logger.info(f"Stage updates completed for {len(moved)} cards")
        self.baseline = cards
        return moved

    # -------------------- async API --------------------
    async def fetch_cards(self) -> List[Card]:
        return await asyncio.to_thread(self.fetch_cards_sync)

    async def commit(self, cards: List[Card]) -> List[Card]:
        """Commit callback for DragSessionController."""
        return await asyncio.to_thread(self.commit_sync, cards)

    def close(self) -> None:
        self.session.close()
