"""Shared test fixtures for boardsync tests."""

import sys
from pathlib import Path

import pytest

# Ensure the package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from boardsync.schema import Card, Column
from boardsync.events import ALL_EVENTS, BoardEventBridge


@pytest.fixture
def columns():
    return [Column("A", "Alpha"), Column("B", "Beta")]


@pytest.fixture
def cards():
    """Columns A=[1, 2], B=[3]."""
    return [
        Card("1", "A", "One"),
        Card("2", "A", "Two"),
        Card("3", "B", "Three"),
    ]


@pytest.fixture
def recorder():
    """A bridge plus the list of events it has published."""
    bridge = BoardEventBridge()
    seen = []
    bridge.subscribe(ALL_EVENTS, seen.append)
    return bridge, seen

