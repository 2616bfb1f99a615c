"""Journal store - durable entries partitioned by state directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .errors import JournalIOError, NotFoundError, SerializationError, StateError
from .fs import FileSystem, OSFileSystem
from .models import (
    Entry,
    EntryState,
    OperationType,
    coerce_operation,
    coerce_state,
    generate_entry_id,
    utc_now,
)

logger = logging.getLogger(__name__)

# Search order for get_entry and the order partitions are listed in.
PARTITIONS = (EntryState.CURRENT, EntryState.COMPLETED, EntryState.FAILED)

ENTRY_SUFFIX = ".json"


class JournalStore:
    """Create, read, update and move entries under a journal root.

    Each entry is one JSON file in the directory named after its state.
    The store holds no state besides the root path and filesystem, so one
    instance can be reused across operations run one after another.
    """

    def __init__(self, root: Union[str, os.PathLike], fs: Optional[FileSystem] = None):
        self.root = Path(root)
        self.fs = fs if fs is not None else OSFileSystem()

    def __repr__(self) -> str:
        return f"JournalStore(root={str(self.root)!r})"

    def partition_path(self, state: EntryState) -> Path:
        return self.root / state.value

    def entry_path(self, entry_id: str, state: EntryState) -> Path:
        return self.partition_path(state) / f"{entry_id}{ENTRY_SUFFIX}"

    # ========== Layout ==========

    def initialize(self) -> None:
        """Create the journal root and its partition directories.

        Raises:
            JournalIOError: If a directory cannot be created.
        """
        try:
            self.fs.makedirs(self.root)
        except OSError as e:
            raise JournalIOError(f"Error creating journal directory {self.root}: {e}") from e

        for state in PARTITIONS:
            try:
                self.fs.makedirs(self.partition_path(state))
            except OSError as e:
                raise JournalIOError(f"Error creating {state.value} directory: {e}") from e

    # ========== Writes ==========

    def create_entry(
        self,
        operation: Union[OperationType, str],
        source: str = "",
        target: str = "",
    ) -> Entry:
        """Create and persist a new entry in the current partition.

        Raises:
            ValueError: If operation is not a known operation type.
            SerializationError: If the entry cannot be encoded.
            JournalIOError: If the entry file cannot be written.
        """
        op = coerce_operation(operation)
        entry = Entry(
            id=generate_entry_id(op),
            timestamp=utc_now(),
            operation=op,
            source=source,
            target=target,
            state=EntryState.CURRENT,
        )
        self._save(entry)
        logger.debug("Created journal entry %s", entry.id)
        return entry

    def update_entry(self, entry: Entry) -> None:
        """Rewrite the entry's file in the partition named by entry.state."""
        self._save(entry)

    def move_entry(self, entry: Entry, new_state: Union[EntryState, str]) -> None:
        """Move an entry from current to a terminal partition.

        The new file is written before the old one is removed, so a crash in
        between leaves a duplicate rather than losing the entry. After an
        error the in-memory ``entry.state`` may not match what is on disk.

        Raises:
            StateError: If the transition is not current -> completed/failed.
            JournalIOError: If the write or the removal fails.
        """
        target = coerce_state(new_state)
        if entry.state is not EntryState.CURRENT or not target.is_terminal:
            raise StateError(
                f"Illegal transition for entry {entry.id}: "
                f"{entry.state.value} -> {target.value}"
            )

        old_path = self.entry_path(entry.id, entry.state)
        entry.state = target

        try:
            self._save(entry)
        except JournalIOError as e:
            raise JournalIOError(f"Error writing entry {entry.id}: {e}") from e

        try:
            self.fs.remove(old_path)
        except OSError as e:
            raise JournalIOError(f"Error removing old entry {old_path}: {e}") from e

        logger.debug("Moved journal entry %s to %s", entry.id, target.value)

    # ========== Reads ==========

    def get_entry(self, entry_id: str) -> Entry:
        """Find an entry by id, searching current, completed, then failed.

        Raises:
            NotFoundError: If no partition holds the id.
        """
        if not _is_plain_id(entry_id):
            raise NotFoundError(f"Entry not found: {entry_id}")
        for state in PARTITIONS:
            path = self.entry_path(entry_id, state)
            if self.fs.exists(path):
                return self._read(path)
        raise NotFoundError(f"Entry not found: {entry_id}")

    def list_entries(self, state: Union[EntryState, str, None] = None) -> list[Entry]:
        """List entries of one partition, or of all partitions when state is empty.

        Listing everything de-duplicates entries left in two partitions by an
        interrupted move, keeping the most terminal copy. A file that cannot
        be read or decoded fails the whole call.

        Raises:
            ValueError: If state is not a known state.
            JournalIOError: If a directory or file cannot be read.
            SerializationError: If an entry file is not a valid entry.
        """
        if state:
            return self._list_partition(coerce_state(state))

        by_id: dict[str, Entry] = {}
        for partition in PARTITIONS:
            for entry in self._list_partition(partition):
                seen = by_id.get(entry.id)
                if seen is not None:
                    logger.warning(
                        "Entry %s found in both %s and %s",
                        entry.id, seen.state.value, entry.state.value,
                    )
                    if seen.state.rank >= entry.state.rank:
                        continue
                by_id[entry.id] = entry
        return sorted(by_id.values(), key=_sort_key)

    # ========== Reconciliation ==========

    def find_duplicates(self) -> dict[str, list[EntryState]]:
        """Ids that have a file in more than one partition, with those partitions."""
        found: dict[str, list[EntryState]] = {}
        for state in PARTITIONS:
            for entry_id in self._partition_ids(state):
                found.setdefault(entry_id, []).append(state)
        return {k: v for k, v in found.items() if len(v) > 1}

    def reconcile(self) -> list[str]:
        """Finish interrupted moves by removing stale copies of duplicated entries.

        The copy in the most terminal partition is kept. Returns the ids
        that were repaired.
        """
        repaired = []
        for entry_id, states in sorted(self.find_duplicates().items()):
            keep = max(states, key=lambda s: s.rank)
            for state in states:
                if state is keep:
                    continue
                path = self.entry_path(entry_id, state)
                try:
                    self.fs.remove(path)
                except OSError as e:
                    raise JournalIOError(f"Error removing stale entry {path}: {e}") from e
                logger.warning(
                    "Removed stale %s copy of entry %s (kept %s)",
                    state.value, entry_id, keep.value,
                )
            repaired.append(entry_id)
        return repaired

    # ========== Helpers ==========

    def _save(self, entry: Entry) -> None:
        data = entry.to_json().encode("utf-8")
        path = self.entry_path(entry.id, entry.state)
        try:
            self.fs.write_file(path, data)
        except OSError as e:
            raise JournalIOError(f"Error writing entry file {path}: {e}") from e

    def _read(self, path: Path) -> Entry:
        try:
            data = self.fs.read_file(path)
        except OSError as e:
            raise JournalIOError(f"Error reading entry file {path}: {e}") from e
        try:
            return Entry.from_json(data)
        except SerializationError as e:
            raise SerializationError(f"Error reading entry {path.name}: {e}") from e

    def _partition_ids(self, state: EntryState) -> list[str]:
        directory = self.partition_path(state)
        if not self.fs.is_dir(directory):
            return []
        try:
            names = self.fs.listdir(directory)
        except OSError as e:
            raise JournalIOError(f"Error reading directory {directory}: {e}") from e
        return [
            name[: -len(ENTRY_SUFFIX)]
            for name in names
            if name.endswith(ENTRY_SUFFIX) and not self.fs.is_dir(directory / name)
        ]

    def _list_partition(self, state: EntryState) -> list[Entry]:
        entries = [
            self._read(self.entry_path(entry_id, state))
            for entry_id in self._partition_ids(state)
        ]
        return sorted(entries, key=_sort_key)


def _is_plain_id(entry_id: str) -> bool:
    """An id must name a file directly inside a partition directory."""
    if not entry_id or entry_id in (".", ".."):
        return False
    separators = {"/", os.sep, os.altsep} - {None}
    return not any(sep in entry_id for sep in separators)


def _sort_key(entry: Entry):
    return (entry.timestamp, entry.id)
