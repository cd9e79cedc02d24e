"""End-to-end tests for the boardsync CLI against a temporary SQLite store."""
import json
from unittest.mock import AsyncMock, patch

import pytest

from boardsync.cli import main
from boardsync.store import BoardStore

CARDS_YAML = """\
cards:
  - {id: KAN-001, column: col-lead, name: Smith kitchen, quotePrice: 1200}
  - {id: KAN-002, column: col-lead, name: Jones bathroom}
  - {id: KAN-003, column: col-quoted, name: Patel wardrobe}
"""


@pytest.fixture
def board(tmp_path, monkeypatch):
    monkeypatch.delenv("BOARDSYNC_DB", raising=False)
    cards = tmp_path / "cards.yaml"
    cards.write_text(CARDS_YAML)
    db = tmp_path / "board.db"
    base = ["--config", str(tmp_path / "absent.yaml"), "--db", str(db)]
    assert main(base + ["seed", str(cards)]) == 0
    return base, db, tmp_path


def test_seed_and_show(board, capsys):
    base, db, _ = board
    assert len(BoardStore(str(db)).load()) == 3

    capsys.readouterr()
    assert main(base + ["show"]) == 0
    out = capsys.readouterr().out
    assert "Lead (2)" in out
    assert "Quoted (1)" in out
    assert "KAN-003  Patel wardrobe" in out


def test_move_commits_to_store(board):
    base, db, _ = board
    assert main(base + ["move", "KAN-001", "--over", "KAN-003"]) == 0

    store = BoardStore(str(db))
    assert [c.card_id for c in store.list_by_column("col-quoted")] == ["KAN-001", "KAN-003"]
    assert store.history("KAN-001")[0]["to_column"] == "col-quoted"


def test_move_unknown_card_fails(board):
    base, _, _ = board
    assert main(base + ["move", "KAN-404", "--over", "col-lead"]) == 1


def test_replay_gesture_file(board):
    base, db, tmp_path = board
    gestures = tmp_path / "gestures.jsonl"
    lines = [
        {"kind": "start", "active_id": "KAN-002"},
        {"kind": "over", "active_id": "KAN-002", "over_id": "col-quoted"},
        {"kind": "end", "active_id": "KAN-002", "over_id": "col-quoted"},
        {"kind": "start", "active_id": "KAN-001"},
        {"kind": "over", "active_id": "KAN-001", "over_id": "col-complete"},
        {"kind": "end", "active_id": "KAN-001"},
        {"kind": "wiggle", "active_id": "KAN-001"},
    ]
    gestures.write_text("\n".join(json.dumps(line) for line in lines) + "\n")

    assert main(base + ["replay", str(gestures)]) == 0
    store = BoardStore(str(db))
    assert [c.card_id for c in store.list_by_column("col-quoted")] == ["KAN-003", "KAN-002"]
    # The aborted second drag left KAN-001 where it was
    assert store.get("KAN-001").column == "col-lead"


def test_bad_config_exits_with_2(tmp_path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("poll_interval: 0\n")
    assert main(["--config", str(cfg), "show"]) == 2


def test_watch_prints_board_and_polls(board, capsys):
    base, _, _ = board
    capsys.readouterr()
    assert main(base + ["watch", "--ticks", "1", "--interval", "0.01"]) == 0
    out = capsys.readouterr().out
    assert "Lead (2)" in out
    assert "KAN-003  Patel wardrobe" in out


def test_watch_uses_configured_poll_interval(board):
    _, db, tmp_path = board
    cfg = tmp_path / "boardsync.yaml"
    cfg.write_text("poll_interval: 2.5\n")

    with patch("boardsync.cli.BoardPoller") as poller_cls:
        poller_cls.return_value.run = AsyncMock()
        poller_cls.return_value.failures = 0
        assert main(["--config", str(cfg), "--db", str(db), "watch", "--ticks", "3"]) == 0

    assert poller_cls.call_args.kwargs["interval"] == 2.5
    poller_cls.return_value.run.assert_awaited_once_with(max_ticks=3)


def test_journal_lists_recorded_events(board, capsys):
    base, _, tmp_path = board
    journal = ["--journal", str(tmp_path / "events.jsonl")]
    assert main(base + journal + ["move", "KAN-001", "--over", "KAN-003"]) == 0

    capsys.readouterr()
    assert main(base + journal + ["journal", "--type", "end"]) == 0
    out = capsys.readouterr().out
    assert out.count('Dropped the card "Smith kitchen" into the "Quoted" column') == 1
    assert "Picked up" not in out


def test_journal_without_path_fails(board):
    base, _, _ = board
    assert main(base + ["journal"]) == 1
