"""Tests for the event bridge and its sinks."""
import logging

from boardsync.events import ALL_EVENTS, BoardEventBridge, EventJournal, log_events, narrate
from boardsync.schema import BoardEvent, BoardEventType


def test_subscribe_by_type_and_wildcard():
    bridge = BoardEventBridge()
    starts, everything = [], []
    bridge.subscribe(BoardEventType.START, starts.append)
    bridge.subscribe(ALL_EVENTS, everything.append)

    bridge.publish(BoardEvent(BoardEventType.START, card_id="1"))
    bridge.publish(BoardEvent(BoardEventType.OVER, card_id="1"))
    assert [e.event_type for e in starts] == [BoardEventType.START]
    assert len(everything) == 2

    bridge.unsubscribe(BoardEventType.START, starts.append)
    bridge.publish(BoardEvent(BoardEventType.START, card_id="1"))
    assert len(starts) == 1


def test_failing_subscriber_does_not_break_others(caplog):
    bridge = BoardEventBridge()
    seen = []

    def broken(event):
        raise RuntimeError("observer bug")

    bridge.subscribe(ALL_EVENTS, broken)
    bridge.subscribe(ALL_EVENTS, seen.append)
    with caplog.at_level(logging.ERROR):
        bridge.publish(BoardEvent(BoardEventType.END, card_id="1"))
    assert len(seen) == 1
    assert "observer bug" in caplog.text


def test_log_events_levels(caplog):
    bridge = BoardEventBridge()
    log_events(bridge)
    with caplog.at_level(logging.DEBUG, logger="boardsync.events"):
        bridge.publish(BoardEvent(BoardEventType.COMMIT_FAILED, message="Commit failed", error="boom"))
        bridge.publish(BoardEvent(BoardEventType.END, message=narrate(BoardEventType.END, "One", to_label="Beta")))
    records = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "boardsync.events"]
    assert records == [
        (logging.ERROR, "Commit failed: boom"),
        (logging.INFO, 'Dropped the card "One" into the "Beta" column'),
    ]


def test_event_journal_appends_json_lines(tmp_path):
    bridge = BoardEventBridge()
    journal = EventJournal(tmp_path / "nested" / "events.jsonl").attach(bridge)
    bridge.publish(BoardEvent(BoardEventType.START, card_id="1", card_label="One", from_column="A"))
    bridge.publish(BoardEvent(BoardEventType.CANCEL, card_id="1"))

    entries = journal.read()
    assert [e["type"] for e in entries] == ["start", "cancel"]
    assert entries[0]["from_column"] == "A"
    assert "error" not in entries[0]


def test_event_journal_reads_back_events(tmp_path):
    bridge = BoardEventBridge()
    journal = EventJournal(tmp_path / "events.jsonl").attach(bridge)
    bridge.publish(BoardEvent(BoardEventType.START, card_id="1", from_column="A"))
    bridge.publish(BoardEvent(BoardEventType.COMMIT_FAILED, message="Commit failed", error="boom"))
    with open(journal.path, "a") as f:
        f.write('{"type": "teleport", "card_id": "1"}\n')

    events = journal.events()
    assert [e.event_type for e in events] == [BoardEventType.START, BoardEventType.COMMIT_FAILED]
    assert events[0].from_column == "A"
    assert events[0].card_label == ""

    failed = journal.events(BoardEventType.COMMIT_FAILED)
    assert len(failed) == 1
    assert failed[0].error == "boom"


def test_narrate_non_gesture_event_is_empty():
    assert narrate(BoardEventType.SYNC, "One") == ""
    assert narrate(BoardEventType.START, "One", from_label="Alpha") == 'Picked up the card "One" from the "Alpha" column'
