"""Data models for journal entries and their steps."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import SerializationError, StateError


class OperationType(Enum):
    """Kind of operation an entry records."""
    ADD = "add"
    REMOVE = "remove"
    LINK = "link"
    COMMIT = "commit"
    PUSH = "push"


class EntryState(Enum):
    """Partition an entry lives in."""
    CURRENT = "current"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not EntryState.CURRENT

    @property
    def rank(self) -> int:
        """Ordering used to pick the most terminal copy of a duplicated entry."""
        return _STATE_RANK[self]


_STATE_RANK = {
    EntryState.CURRENT: 0,
    EntryState.COMPLETED: 1,
    EntryState.FAILED: 2,
}


class StepType(Enum):
    """Kind of work a step performs."""
    VERIFY = "verify"
    COPY = "copy"
    MOVE = "move"
    SYMLINK = "symlink"
    GIT = "git"


class StepStatus(Enum):
    """Lifecycle status of a step."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED)


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format datetime as RFC 3339 with microseconds."""
    return dt.isoformat(timespec='microseconds')


def parse_timestamp(s: str) -> datetime:
    """Parse RFC 3339 timestamp string."""
    # fromisoformat only learned the Z suffix in 3.11
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def generate_entry_id(operation: OperationType) -> str:
    """Generate entry ID in format {operation}-{nanoseconds}.

    Two entries of the same operation created within one clock tick get the
    same id; nothing here guards against that.
    """
    return f"{operation.value}-{time.time_ns()}"


def _coerce(enum_cls: type[Enum], value: Any, what: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Invalid {what} '{value}'. Valid values are: {valid}") from None


def coerce_operation(value: Any) -> OperationType:
    return _coerce(OperationType, value, "operation")


def coerce_state(value: Any) -> EntryState:
    return _coerce(EntryState, value, "state")


def coerce_step_type(value: Any) -> StepType:
    return _coerce(StepType, value, "step type")


def _require(data: dict, key: str) -> Any:
    if key not in data:
        raise SerializationError(f"Missing required field: {key}")
    return data[key]


def _decode_enum(enum_cls: type[Enum], value: Any, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        raise SerializationError(f"Unknown {what}: {value!r}") from e


def _decode_time(value: Any, what: str) -> datetime:
    if not isinstance(value, str):
        raise SerializationError(f"Invalid {what}: {value!r}")
    try:
        parsed = parse_timestamp(value)
    except ValueError as e:
        raise SerializationError(f"Invalid {what}: {value!r}") from e
    if parsed.tzinfo is None:
        raise SerializationError(f"Invalid {what}: {value!r} has no UTC offset")
    return parsed


@dataclass
class Step:
    """A single unit of work within an entry."""
    type: StepType
    status: StepStatus = StepStatus.PENDING
    description: str = ""
    source: str = ""
    target: str = ""
    details: str = ""
    error: str = ""
    start_time: datetime = field(default_factory=utc_now)
    end_time: Optional[datetime] = None

    def start(self) -> None:
        """Move a pending step to running."""
        if self.status is not StepStatus.PENDING:
            raise StateError(f"Cannot start step in status '{self.status.value}'")
        self.status = StepStatus.RUNNING

    def complete(self, details: str = "") -> None:
        """Move a running step to completed."""
        if self.status is not StepStatus.RUNNING:
            raise StateError(f"Cannot complete step in status '{self.status.value}'")
        self.status = StepStatus.COMPLETED
        self.details = details
        self.end_time = utc_now()

    def fail(self, error: str, allow_pending: bool = False) -> None:
        """Move a running step to failed.

        allow_pending also accepts a step that was added but never started.
        """
        allowed = {StepStatus.RUNNING}
        if allow_pending:
            allowed.add(StepStatus.PENDING)
        if self.status not in allowed:
            raise StateError(f"Cannot fail step in status '{self.status.value}'")
        self.status = StepStatus.FAILED
        self.error = error
        self.end_time = utc_now()

    def to_dict(self) -> dict:
        """Convert step to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "type": self.type.value,
            "status": self.status.value,
        }
        for key in ("error", "description", "source", "target", "details"):
            value = getattr(self, key)
            if value:
                data[key] = value
        data["start_time"] = format_timestamp(self.start_time)
        if self.end_time is not None:
            data["end_time"] = format_timestamp(self.end_time)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Step:
        if not isinstance(data, dict):
            raise SerializationError(f"Step must be an object, got {type(data).__name__}")
        end_time = data.get("end_time")
        return cls(
            type=_decode_enum(StepType, _require(data, "type"), "step type"),
            status=_decode_enum(StepStatus, _require(data, "status"), "step status"),
            description=data.get("description", ""),
            source=data.get("source", ""),
            target=data.get("target", ""),
            details=data.get("details", ""),
            error=data.get("error", ""),
            start_time=_decode_time(_require(data, "start_time"), "start_time"),
            end_time=_decode_time(end_time, "end_time") if end_time else None,
        )


@dataclass
class Entry:
    """A durable record of one operation and its steps."""
    id: str
    timestamp: datetime
    operation: OperationType
    source: str = ""
    target: str = ""
    state: EntryState = EntryState.CURRENT
    checksum: str = ""
    steps: list[Step] = field(default_factory=list)

    @property
    def last_step(self) -> Optional[Step]:
        return self.steps[-1] if self.steps else None

    def add_step(
        self,
        step_type: StepType,
        description: str = "",
        source: str = "",
        target: str = "",
    ) -> Step:
        """Append a pending step. Only allowed while the entry is current."""
        if self.state.is_terminal:
            raise StateError(
                f"Cannot add step to entry {self.id} in state '{self.state.value}'"
            )
        step = Step(
            type=coerce_step_type(step_type),
            description=description,
            source=source,
            target=target,
        )
        self.steps.append(step)
        return step

    def to_dict(self) -> dict:
        """Convert entry to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "operation": self.operation.value,
        }
        if self.source:
            data["source"] = self.source
        if self.target:
            data["target"] = self.target
        data["state"] = self.state.value
        if self.checksum:
            data["checksum"] = self.checksum
        data["steps"] = [s.to_dict() for s in self.steps]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Entry:
        if not isinstance(data, dict):
            raise SerializationError(f"Entry must be an object, got {type(data).__name__}")
        steps = data.get("steps") or []
        if not isinstance(steps, list):
            raise SerializationError("Field 'steps' must be a list")
        entry_id = _require(data, "id")
        if not isinstance(entry_id, str) or not entry_id:
            raise SerializationError(f"Invalid entry id: {entry_id!r}")
        return cls(
            id=entry_id,
            timestamp=_decode_time(_require(data, "timestamp"), "timestamp"),
            operation=_decode_enum(OperationType, _require(data, "operation"), "operation"),
            source=data.get("source", ""),
            target=data.get("target", ""),
            state=_decode_enum(EntryState, _require(data, "state"), "state"),
            checksum=data.get("checksum", ""),
            steps=[Step.from_dict(s) for s in steps],
        )

    def to_json(self) -> str:
        try:
            return json.dumps(self.to_dict(), indent=2)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Error encoding entry {self.id}: {e}") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> Entry:
        try:
            data = json.loads(text)
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(f"Error decoding entry: {e}") from e
        return cls.from_dict(data)
