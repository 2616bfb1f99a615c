"""Operation journal - durable, file-backed record of multi-step operations."""

from .context import (
    OperationContext,
    add_step,
    begin_operation,
    complete_entry,
    complete_step,
    fail_entry,
    fail_step,
    operation,
    start_step,
    step,
)
from .errors import (
    ConfigError,
    ContextError,
    JournalError,
    JournalIOError,
    NotFoundError,
    SerializationError,
    StateError,
)
from .fs import FileSystem, MemoryFileSystem, OSFileSystem
from .models import Entry, EntryState, OperationType, Step, StepStatus, StepType
from .store import JournalStore

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ContextError",
    "Entry",
    "EntryState",
    "FileSystem",
    "JournalError",
    "JournalIOError",
    "JournalStore",
    "MemoryFileSystem",
    "NotFoundError",
    "OSFileSystem",
    "OperationContext",
    "OperationType",
    "SerializationError",
    "StateError",
    "Step",
    "StepStatus",
    "StepType",
    "add_step",
    "begin_operation",
    "complete_entry",
    "complete_step",
    "fail_entry",
    "fail_step",
    "operation",
    "start_step",
    "step",
]
