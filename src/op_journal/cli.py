"""op-journal command line - inspect and repair the operation journal."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import JournalConfig, load_config
from .errors import JournalError
from .models import Entry, EntryState, OperationType
from .store import JournalStore

SEPARATOR = "-" * 40


def _choices(enum_cls) -> list[str]:
    return [m.value for m in enum_cls]


def format_entry(entry: Entry) -> str:
    """Render an entry and its steps as plain text."""
    lines = [
        f"Operation: {entry.operation.value}",
        f"ID: {entry.id}",
        f"Timestamp: {entry.timestamp.isoformat(timespec='seconds')}",
        f"State: {entry.state.value}",
    ]
    if entry.source:
        lines.append(f"Source: {entry.source}")
    if entry.target:
        lines.append(f"Target: {entry.target}")
    if entry.checksum:
        lines.append(f"Checksum: {entry.checksum}")

    if entry.steps:
        lines.append("")
        lines.append("Steps:")
        for s in entry.steps:
            lines.append(f"  - {s.type.value}: {s.status.value}")
            if s.description:
                lines.append(f"    Description: {s.description}")
            if s.error:
                lines.append(f"    Error: {s.error}")
            if s.details:
                lines.append(f"    Details: {s.details}")
            lines.append(f"    Started: {s.start_time.isoformat(timespec='seconds')}")
            if s.end_time is not None:
                lines.append(f"    Ended: {s.end_time.isoformat(timespec='seconds')}")

    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="op-journal",
        description="Inspect the journal of add/remove/link/commit/push operations",
    )
    parser.add_argument(
        "--base-dir",
        "-b",
        type=Path,
        help="Directory holding the journal and its config (default: ~/.dotman)",
    )
    parser.add_argument(
        "--journal-dir",
        "-j",
        type=Path,
        help="Journal root directory (overrides config)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in base dir)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the journal partition directories")

    list_cmd = sub.add_parser("list", help="List entries, newest first")
    list_cmd.add_argument(
        "--state",
        "-s",
        action="append",
        choices=_choices(EntryState),
        help="Filter by state; may be repeated",
    )
    list_cmd.add_argument(
        "--operation",
        "-o",
        action="append",
        choices=_choices(OperationType),
        help="Filter by operation type; may be repeated",
    )
    list_cmd.add_argument("--json", action="store_true", help="Print entries as JSON")

    show_cmd = sub.add_parser("show", help="Show one entry")
    show_cmd.add_argument("entry_id", help="Entry id, e.g. add-1700000000000000000")
    show_cmd.add_argument("--json", action="store_true", help="Print the entry as JSON")

    sub.add_parser("reconcile", help="Remove stale copies left by interrupted moves")

    return parser


def _open_store(args: argparse.Namespace) -> tuple[JournalStore, JournalConfig]:
    config = load_config(args.base_dir, args.config)
    root = args.journal_dir if args.journal_dir is not None else config.get_journal_path()
    return JournalStore(root), config


def _cmd_list(store: JournalStore, args: argparse.Namespace) -> None:
    if args.state:
        entries = []
        for state in dict.fromkeys(args.state):
            entries.extend(store.list_entries(state))
    else:
        entries = store.list_entries()

    if args.operation:
        wanted = set(args.operation)
        entries = [e for e in entries if e.operation.value in wanted]

    entries.sort(key=lambda e: (e.timestamp, e.id), reverse=True)

    if args.json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    if not entries:
        msg = "No journal entries found"
        if args.state:
            msg += f" in states: {', '.join(args.state)}"
        if args.operation:
            msg += f" with operations: {', '.join(args.operation)}"
        print(msg)
        return

    for entry in entries:
        print()
        print(format_entry(entry))
        print(SEPARATOR)


def _cmd_show(store: JournalStore, args: argparse.Namespace) -> None:
    entry = store.get_entry(args.entry_id)
    if args.json:
        print(entry.to_json())
    else:
        print(format_entry(entry))


def _cmd_reconcile(store: JournalStore, args: argparse.Namespace) -> None:
    repaired = store.reconcile()
    if not repaired:
        print("No duplicated entries found")
        return
    print("Repaired entries:")
    for entry_id in repaired:
        print(f"  {entry_id}")


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        store, config = _open_store(args)
    except (JournalError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    level = logging.getLevelName(config.log_level)
    if args.verbose:
        level = logging.DEBUG
    elif not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "init":
            store.initialize()
            print(f"Initialized journal in {store.root}")
            for state in EntryState:
                print(f"  - {state.value}/")
        elif args.command == "list":
            _cmd_list(store, args)
        elif args.command == "show":
            _cmd_show(store, args)
        elif args.command == "reconcile":
            _cmd_reconcile(store, args)
    except JournalError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
