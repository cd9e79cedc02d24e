"""Tests for the REST board client (HTTP session mocked)."""
import asyncio
from unittest.mock import MagicMock, patch

import pytest
import requests

from boardsync.client import BoardClient
from boardsync.commit import CommitError
from boardsync.schema import Column
from boardsync.session import DragSessionController

BOARD = [
    {"id": "job-1", "column": "col-lead", "name": "JOB-1 - Smith", "stage": "Lead"},
    {"id": "job-2", "column": "col-lead", "name": "JOB-2 - Jones", "stage": "Lead"},
    {"id": "job-3", "column": "col-quoted", "name": "JOB-3 - Patel", "stage": "Quoted"},
]
COLUMNS = [Column.from_label("Lead"), Column.from_label("Quoted")]


def _response(payload=None, status=200):
    r = MagicMock()
    r.json.return_value = payload
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    return r


def _client(session, **kwargs):
    return BoardClient("http://backend.local/api/", columns=COLUMNS, api_key="s3cret",
                       session=session, **kwargs)


def test_fetch_cards_sets_baseline():
    session = MagicMock()
    session.request.return_value = _response(BOARD)
    client = _client(session)

    cards = client.fetch_cards_sync()
    assert [c.card_id for c in cards] == ["job-1", "job-2", "job-3"]
    assert client.baseline == cards
    session.request.assert_called_once_with("GET", "http://backend.local/api/board", timeout=10.0)
    session.headers.__setitem__.assert_called_with("X-API-Key", "s3cret")


def test_commit_patches_only_moved_cards():
    session = MagicMock()
    session.request.return_value = _response(BOARD)
    client = _client(session, updated_by="sam@example.com")
    cards = client.fetch_cards_sync()

    final = [cards[1], cards[0].with_column("col-quoted"), cards[2]]
    session.request.reset_mock()
    session.request.return_value = _response({})
    moved = client.commit_sync(final)

    assert [c.card_id for c in moved] == ["job-1"]
    session.request.assert_called_once_with(
        "PATCH",
        "http://backend.local/api/cards/job-1/stage",
        timeout=10.0,
        json={
            "stage": "Quoted",
            "column": "col-quoted",
            "reason": "Moved via Kanban board",
            "updated_by": "sam@example.com",
        },
    )
    assert client.baseline == final


def test_commit_with_no_column_change_sends_nothing():
    session = MagicMock()
    session.request.return_value = _response(BOARD)
    client = _client(session)
    cards = client.fetch_cards_sync()
    session.request.reset_mock()

    assert client.commit_sync(list(reversed(cards))) == []
    session.request.assert_not_called()


@patch("boardsync.client.time.sleep")
def test_request_retries_with_backoff(sleep):
    session = MagicMock()
    session.request.side_effect = [
        requests.ConnectionError("refused"),
        _response(status=502),
        _response(BOARD),
    ]
    client = _client(session, max_retries=2)

    assert len(client.fetch_cards_sync()) == 3
    assert session.request.call_count == 3
    assert [c.args[0] for c in sleep.call_args_list] == [0.5, 0.75]


@patch("boardsync.client.time.sleep")
def test_request_gives_up_after_retries(sleep):
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("refused")
    client = _client(session, max_retries=1)

    with pytest.raises(CommitError):
        client.fetch_cards_sync()
    assert session.request.call_count == 2


@patch("boardsync.client.time.sleep")
def test_controller_rolls_back_when_backend_rejects(sleep):
    session = MagicMock()
    session.request.return_value = _response(BOARD)
    client = _client(session, max_retries=0)

    async def scenario():
        controller = DragSessionController(COLUMNS, commit=client.commit, cards=await client.fetch_cards())
        session.request.return_value = _response(status=500)
        controller.start("job-1")
        controller.over("job-1", "job-3")
        outcome = await controller.end("job-1", "job-3")
        return controller, outcome

    controller, outcome = asyncio.run(scenario())
    assert not outcome.ok
    assert isinstance(outcome.error, CommitError)
    assert controller.cards == client.baseline
