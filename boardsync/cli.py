#!/usr/bin/env python3
"""
boardsync CLI
─────────────
Drive the board controller from a terminal against the local SQLite store,
or against a remote backend when `api_base_url` is configured.

Usage:
    boardsync seed cards.yaml
    boardsync show
    boardsync move KAN-003 --over col-quoted
    boardsync move KAN-003 --via KAN-001 --over KAN-007
    boardsync replay gestures.jsonl
    boardsync watch --interval 5
    boardsync --journal events.jsonl journal --type commit_failed
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .client import BoardClient
from .config import BoardConfig, ConfigError
from .events import BoardEventBridge, EventJournal, log_events
from .poller import BoardPoller
from .schema import BoardError, BoardEventType, Card, GestureEvent, cards_from_dicts
from .session import DragSessionController
from .store import BoardStore

logger = logging.getLogger("boardsync")


def _load_card_file(path: Path) -> List[Card]:
    """Cards from a YAML/JSON file: a list of card dicts or {cards: [...]}."""
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("cards", [])
    return cards_from_dicts(data)


class Backend:
    """Fetch/commit pair over either the SQLite store or the REST client."""

    def __init__(self, cfg: BoardConfig):
        self.cfg = cfg
        self.client: Optional[BoardClient] = None
        self.store: Optional[BoardStore] = None
        if cfg.api_base_url:
            self.client = BoardClient(
                cfg.api_base_url,
                columns=cfg.board_columns(),
                api_key=cfg.api_key,
                timeout=cfg.request_timeout,
                max_retries=cfg.max_retries,
                updated_by=cfg.updated_by,
            )
        else:
            self.store = BoardStore(cfg.db_path)

    async def fetch(self) -> List[Card]:
        if self.client:
            return await self.client.fetch_cards()
        return self.store.load()

    async def commit(self, cards: List[Card]) -> None:
        if self.client:
            await self.client.commit(cards)
        else:
            self.store.commit_arrangement(cards, updated_by=self.cfg.updated_by)


async def _controller(cfg: BoardConfig, backend: Backend) -> DragSessionController:
    bridge = BoardEventBridge()
    log_events(bridge)
    if cfg.journal_path:
        EventJournal(cfg.journal_path).attach(bridge)
    controller = DragSessionController(
        cfg.board_columns(),
        commit=backend.commit,
        bridge=bridge,
        restore_on_cancel=cfg.restore_on_cancel,
    )
    controller.refresh(await backend.fetch())
    return controller


def _print_board(controller: DragSessionController) -> None:
    for column, cards in controller.board():
        print(f"{column.label} ({len(cards)})")
        for card in cards:
            print(f"  {card.card_id}  {card.label}")
    orphans = [c for c in controller.cards if controller.column(c.column) is None]
    if orphans:
        print(f"Unknown column ({len(orphans)})")
        for card in orphans:
            print(f"  {card.card_id}  {card.label}  [{card.column}]")


async def _settle(result) -> bool:
    """Await a commit task if a handler returned one. False on failed commit."""
    if isinstance(result, asyncio.Task):
        outcome = await result
        return outcome.ok
    return True


async def cmd_show(cfg: BoardConfig, args) -> int:
    controller = await _controller(cfg, Backend(cfg))
    _print_board(controller)
    return 0


async def cmd_seed(cfg: BoardConfig, args) -> int:
    if cfg.api_base_url:
        raise ConfigError("seed only works against the local store")
    store = BoardStore(cfg.db_path)
    cards = _load_card_file(Path(args.file))
    for position, card in enumerate(cards):
        store.save(card, position=position)
    print(f"Seeded {len(cards)} cards into {cfg.db_path}")
    return 0


async def cmd_move(cfg: BoardConfig, args) -> int:
    controller = await _controller(cfg, Backend(cfg))
    if not controller.start(args.card):
        print(f"Card {args.card} not found", file=sys.stderr)
        return 1
    for target in args.via or []:
        controller.over(args.card, target)
    controller.over(args.card, args.over)
    ok = await _settle(controller.end(args.card, args.over))
    _print_board(controller)
    return 0 if ok else 1


async def cmd_replay(cfg: BoardConfig, args) -> int:
    controller = await _controller(cfg, Backend(cfg))
    failures = 0
    with open(args.file) as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                gesture = GestureEvent.from_dict(json.loads(line))
            except ValueError as e:
                logger.warning(f"Skipping line {lineno}: {e}")
                continue
            if not await _settle(controller.dispatch(gesture)):
                failures += 1
    _print_board(controller)
    return 0 if failures == 0 else 1


async def cmd_watch(cfg: BoardConfig, args) -> int:
    interval = args.interval if args.interval is not None else cfg.poll_interval
    if interval <= 0:
        raise ConfigError(f"--interval must be positive, got {interval}")
    backend = Backend(cfg)
    controller = await _controller(cfg, backend)
    _print_board(controller)
    controller.bridge.subscribe(BoardEventType.SYNC, lambda event: _print_board(controller))

    poller = BoardPoller(backend.fetch, controller, interval=interval)
    logger.info(f"Watching board every {interval}s")
    await poller.run(max_ticks=args.ticks)
    if poller.failures:
        logger.warning(f"{poller.failures} refetches failed while watching")
    return 0


async def cmd_journal(cfg: BoardConfig, args) -> int:
    if not cfg.journal_path:
        raise ConfigError("No journal_path configured")
    event_type = BoardEventType.from_str(args.type) if args.type else None
    for event in EventJournal(cfg.journal_path).events(event_type):
        detail = event.message or event.card_id or ""
        if event.error:
            detail = f"{detail}: {event.error}"
        print(f"{event.timestamp}  {event.event_type.value:<16} {detail}")
    return 0


COMMANDS = {
    "show": cmd_show,
    "seed": cmd_seed,
    "move": cmd_move,
    "replay": cmd_replay,
    "watch": cmd_watch,
    "journal": cmd_journal,
}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Board reconciliation controller")
    ap.add_argument("--config", default=None, help="Path to boardsync.yaml")
    ap.add_argument("--db", default=None, help="SQLite board database (overrides config)")
    ap.add_argument("--journal", default=None, help="JSONL event journal (overrides config)")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Print columns and their cards")

    seed = sub.add_parser("seed", help="Load cards from a YAML/JSON file into the store")
    seed.add_argument("file")

    move = sub.add_parser("move", help="Drag one card and commit the result")
    move.add_argument("card", help="Card id to drag")
    move.add_argument("--over", required=True, help="Drop target: card id or column id")
    move.add_argument("--via", action="append", help="Intermediate hover target (repeatable)")

    replay = sub.add_parser("replay", help="Feed a JSON-lines file of gesture events")
    replay.add_argument("file")

    watch = sub.add_parser("watch", help="Poll the backend and reprint the board on change")
    watch.add_argument("--interval", type=float, default=None, help="Seconds between polls (default: poll_interval)")
    watch.add_argument("--ticks", type=int, default=None, help="Stop after this many polls")

    journal = sub.add_parser("journal", help="Print the recorded event journal")
    journal.add_argument("--type", choices=[t.value for t in BoardEventType], help="Only events of this type")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = BoardConfig.load(args.config)
        if args.db:
            cfg.db_path = str(Path(args.db).expanduser())
        if args.journal:
            cfg.journal_path = str(Path(args.journal).expanduser())
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, str(cfg.log_level).upper(), logging.INFO),
        format="%(asctime)s [boardsync] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        return asyncio.run(COMMANDS[args.command](cfg, args))
    except BoardError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\nStopping...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
