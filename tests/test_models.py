"""Tests for the entry and step data model."""

import json
from datetime import datetime, timezone

import pytest

from op_journal.errors import SerializationError, StateError
from op_journal.models import (
    Entry,
    EntryState,
    OperationType,
    Step,
    StepStatus,
    StepType,
    coerce_operation,
    coerce_state,
    format_timestamp,
    generate_entry_id,
    parse_timestamp,
)


def make_entry(**kwargs):
    defaults = dict(
        id="add-1",
        timestamp=datetime(2025, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc),
        operation=OperationType.ADD,
    )
    defaults.update(kwargs)
    return Entry(**defaults)


class TestEnums:
    """Tests for the closed-set enumerations."""

    def test_terminal_states(self):
        assert not EntryState.CURRENT.is_terminal
        assert EntryState.COMPLETED.is_terminal
        assert EntryState.FAILED.is_terminal

    def test_state_rank_orders_by_terminality(self):
        assert EntryState.CURRENT.rank < EntryState.COMPLETED.rank < EntryState.FAILED.rank

    def test_coerce_accepts_strings(self):
        assert coerce_operation("commit") is OperationType.COMMIT
        assert coerce_state("failed") is EntryState.FAILED

    def test_coerce_rejects_unknown(self):
        with pytest.raises(ValueError, match="Valid values are"):
            coerce_operation("rename")
        with pytest.raises(ValueError):
            coerce_state("archived")


class TestEntryId:
    """Tests for entry id generation."""

    def test_format(self):
        entry_id = generate_entry_id(OperationType.PUSH)
        prefix, _, stamp = entry_id.partition("-")
        assert prefix == "push"
        assert stamp.isdigit()

    def test_timestamp_is_nanoseconds(self):
        entry_id = generate_entry_id(OperationType.ADD)
        # Nanosecond epoch values have at least 19 digits from 2001 on
        assert len(entry_id.split("-")[1]) >= 19


class TestTimestamps:
    """Tests for timestamp formatting."""

    def test_round_trip_keeps_microseconds(self):
        dt = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(dt)) == dt

    def test_parses_z_suffix(self):
        parsed = parse_timestamp("2025-01-02T03:04:05Z")
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestStepTransitions:
    """Tests for the step state machine."""

    def test_new_step_is_pending(self):
        step = Step(type=StepType.VERIFY)
        assert step.status is StepStatus.PENDING
        assert step.end_time is None
        assert step.start_time is not None

    def test_pending_running_completed(self):
        step = Step(type=StepType.COPY)
        step.start()
        assert step.status is StepStatus.RUNNING
        step.complete("ok")
        assert step.status is StepStatus.COMPLETED
        assert step.details == "ok"
        assert step.end_time is not None

    def test_running_to_failed(self):
        step = Step(type=StepType.SYMLINK)
        step.start()
        step.fail("permission denied")
        assert step.status is StepStatus.FAILED
        assert step.error == "permission denied"
        assert step.end_time is not None

    def test_pending_cannot_fail(self):
        step = Step(type=StepType.GIT)
        with pytest.raises(StateError):
            step.fail("never started")
        assert step.status is StepStatus.PENDING

    def test_pending_can_fail_when_allowed(self):
        step = Step(type=StepType.GIT)
        step.fail("never started", allow_pending=True)
        assert step.status is StepStatus.FAILED
        assert step.end_time is not None

    def test_cannot_complete_pending(self):
        step = Step(type=StepType.MOVE)
        with pytest.raises(StateError):
            step.complete()

    def test_cannot_restart(self):
        step = Step(type=StepType.MOVE)
        step.start()
        with pytest.raises(StateError):
            step.start()

    def test_terminal_is_final(self):
        step = Step(type=StepType.MOVE)
        step.start()
        step.complete()
        with pytest.raises(StateError):
            step.fail("late")
        with pytest.raises(StateError):
            step.complete()


class TestEntry:
    """Tests for Entry behaviour."""

    def test_add_step_appends_pending(self):
        entry = make_entry()
        step = entry.add_step(StepType.VERIFY, "Verify source", "a", "b")
        assert entry.steps == [step]
        assert step.status is StepStatus.PENDING
        assert step.source == "a"
        assert step.target == "b"

    def test_add_step_accepts_string_type(self):
        entry = make_entry()
        step = entry.add_step("copy")
        assert step.type is StepType.COPY

    def test_add_step_rejects_unknown_type(self):
        entry = make_entry()
        with pytest.raises(ValueError):
            entry.add_step("chmod")

    @pytest.mark.parametrize("state", [EntryState.COMPLETED, EntryState.FAILED])
    def test_terminal_entry_rejects_steps(self, state):
        entry = make_entry(state=state)
        with pytest.raises(StateError):
            entry.add_step(StepType.VERIFY)
        assert entry.steps == []

    def test_last_step(self):
        entry = make_entry()
        assert entry.last_step is None
        entry.add_step(StepType.VERIFY)
        second = entry.add_step(StepType.COPY)
        assert entry.last_step is second


class TestSerialization:
    """Tests for JSON encoding of entries."""

    def test_schema_keys(self):
        entry = make_entry(source="a/b", target="c/d", checksum="abc")
        step = entry.add_step(StepType.VERIFY, "Verify")
        step.start()
        step.complete("ok")

        data = json.loads(entry.to_json())
        assert set(data) == {
            "id", "timestamp", "operation", "source", "target",
            "state", "checksum", "steps",
        }
        assert data["operation"] == "add"
        assert data["state"] == "current"
        assert data["steps"][0]["type"] == "verify"
        assert data["steps"][0]["status"] == "completed"
        assert data["steps"][0]["details"] == "ok"
        assert "start_time" in data["steps"][0]
        assert "end_time" in data["steps"][0]

    def test_empty_optionals_omitted(self):
        entry = make_entry()
        entry.add_step(StepType.VERIFY)
        data = entry.to_dict()
        assert "source" not in data
        assert "checksum" not in data
        assert data["steps"][0].keys() == {"type", "status", "start_time"}

    def test_empty_steps_serialized_as_list(self):
        assert make_entry().to_dict()["steps"] == []

    def test_round_trip_is_lossless(self):
        entry = make_entry(source="s", target="t", checksum="sha256:00")
        first = entry.add_step(StepType.COPY, "Copy", "s", "t")
        first.start()
        first.complete("copied")
        second = entry.add_step(StepType.GIT, "git add")
        second.start()
        second.fail("exit status 128")

        assert Entry.from_json(entry.to_json()) == entry

    def test_invalid_json(self):
        with pytest.raises(SerializationError):
            Entry.from_json("{not json")

    def test_missing_required_field(self):
        data = make_entry().to_dict()
        del data["operation"]
        with pytest.raises(SerializationError, match="operation"):
            Entry.from_dict(data)

    def test_unknown_operation(self):
        data = make_entry().to_dict()
        data["operation"] = "rename"
        with pytest.raises(SerializationError):
            Entry.from_dict(data)

    def test_unknown_step_status(self):
        entry = make_entry()
        entry.add_step(StepType.VERIFY)
        data = entry.to_dict()
        data["steps"][0]["status"] = "skipped"
        with pytest.raises(SerializationError):
            Entry.from_dict(data)

    def test_bad_timestamp(self):
        data = make_entry().to_dict()
        data["timestamp"] = "yesterday"
        with pytest.raises(SerializationError):
            Entry.from_dict(data)

    def test_timestamp_without_offset(self):
        data = make_entry().to_dict()
        data["timestamp"] = "2025-01-01T00:00:00"
        with pytest.raises(SerializationError, match="no UTC offset"):
            Entry.from_dict(data)

    def test_top_level_must_be_object(self):
        with pytest.raises(SerializationError):
            Entry.from_json("[]")
