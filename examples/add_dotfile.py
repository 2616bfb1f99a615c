"""Journalled "add" operation - example driver for op-journal.

Moves a dotfile into a repository directory and links it back, recording
every step so an interrupted run can be inspected with ``op-journal list``.

    python examples/add_dotfile.py ~/.vimrc ~/.dotman/data
"""

import hashlib
import shutil
import sys
from pathlib import Path

from op_journal import JournalStore, OperationType, StepType, operation, step
from op_journal.config import load_config


def file_checksum(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def verify_source(ctx, source: Path) -> None:
    with step(ctx, StepType.VERIFY, "Verify source file", str(source)) as s:
        if not source.is_file():
            raise FileNotFoundError(f"{source} is not a regular file")
        ctx.entry.checksum = file_checksum(source)
        s.details = f"sha256 {ctx.entry.checksum}"


def copy_and_verify(ctx, source: Path, target: Path) -> None:
    with step(ctx, StepType.COPY, "Copy file into repository", str(source), str(target)) as s:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        if file_checksum(target) != ctx.entry.checksum:
            raise IOError(f"checksum mismatch after copying to {target}")
        s.details = "checksum verified"


def replace_with_symlink(ctx, source: Path, target: Path) -> None:
    with step(ctx, StepType.SYMLINK, "Replace source with symlink", str(target), str(source)):
        source.unlink()
        source.symlink_to(target)


def main() -> None:
    source = Path(sys.argv[1]).expanduser().absolute()
    data_dir = Path(sys.argv[2]).expanduser()
    target = data_dir / source.name

    store = JournalStore(load_config().get_journal_path())
    store.initialize()

    with operation(store, OperationType.ADD, str(source), str(target)) as ctx:
        verify_source(ctx, source)
        copy_and_verify(ctx, source, target)
        replace_with_symlink(ctx, source, target)

    print(f"Added {source} (journal entry {ctx.entry.id})")


if __name__ == "__main__":
    main()
