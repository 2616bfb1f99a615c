"""Operation context and the step/entry lifecycle helpers built on it.

An operation creates one ``OperationContext`` (store plus its freshly
created entry) and hands it down to whatever helpers record steps::

    with operation(store, OperationType.ADD, "~/.vimrc", ".vimrc") as ctx:
        with step(ctx, StepType.COPY, "Copy file") as s:
            copy(...)
            s.details = "copied 120 bytes"

A context belongs to exactly one operation; never share one between
operations running at the same time or keep it after the entry is retired.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Union

from .errors import ContextError, JournalError, StateError
from .models import Entry, EntryState, OperationType, Step, StepType
from .store import JournalStore

logger = logging.getLogger(__name__)


@dataclass
class OperationContext:
    """Request-scoped handle on the active store and entry."""
    store: JournalStore
    entry: Entry

    @property
    def closed(self) -> bool:
        return self.entry.state.is_terminal

    def _check_open(self) -> None:
        if self.closed:
            raise ContextError(
                f"Entry {self.entry.id} is already {self.entry.state.value}"
            )

    def _check_owns(self, step: Step) -> None:
        if not any(s is step for s in self.entry.steps):
            raise StateError(f"Step does not belong to entry {self.entry.id}")


def begin_operation(
    store: JournalStore,
    operation: Union[OperationType, str],
    source: str = "",
    target: str = "",
) -> OperationContext:
    """Create a new entry and wrap it in a context."""
    entry = store.create_entry(operation, source, target)
    return OperationContext(store=store, entry=entry)


def _error_text(error: Union[BaseException, str]) -> str:
    return error if isinstance(error, str) else str(error)


# ========== Steps ==========

def add_step(
    ctx: OperationContext,
    step_type: Union[StepType, str],
    description: str = "",
    source: str = "",
    target: str = "",
) -> Step:
    """Append a pending step to the context's entry and persist it."""
    ctx._check_open()
    step = ctx.entry.add_step(step_type, description, source, target)
    ctx.store.update_entry(ctx.entry)
    return step


def start_step(ctx: OperationContext, step: Step) -> None:
    """Mark a step as running and persist the entry."""
    ctx._check_open()
    ctx._check_owns(step)
    step.start()
    ctx.store.update_entry(ctx.entry)


def complete_step(ctx: OperationContext, step: Step, details: str = "") -> None:
    """Mark a step as completed and persist the entry."""
    ctx._check_open()
    ctx._check_owns(step)
    step.complete(details)
    ctx.store.update_entry(ctx.entry)


def fail_step(ctx: OperationContext, step: Step, error: Union[BaseException, str]) -> None:
    """Mark a step as failed and persist the entry."""
    ctx._check_open()
    ctx._check_owns(step)
    step.fail(_error_text(error))
    ctx.store.update_entry(ctx.entry)


# ========== Entries ==========

def complete_entry(ctx: OperationContext) -> None:
    """Persist the entry and move it to the completed partition."""
    ctx._check_open()
    ctx.store.update_entry(ctx.entry)
    ctx.store.move_entry(ctx.entry, EntryState.COMPLETED)
    logger.info("Operation %s completed", ctx.entry.id)


def fail_entry(ctx: OperationContext, error: Union[BaseException, str]) -> None:
    """Mark the last step failed and move the entry to the failed partition.

    The failure is attributed to the most recently added step, even one that
    was never started; earlier steps keep their status. A last step that
    already completed or failed keeps its status, and the error text is
    written to it only when it has none yet, so the failed entry still
    records why it failed.

    Raises:
        StateError: If the entry has no steps. The entry stays current.
    """
    ctx._check_open()
    step = ctx.entry.last_step
    if step is None:
        raise StateError("no steps in entry")

    if not step.status.is_terminal:
        step.fail(_error_text(error), allow_pending=True)
    elif not step.error:
        step.error = _error_text(error)

    ctx.store.update_entry(ctx.entry)
    ctx.store.move_entry(ctx.entry, EntryState.FAILED)
    logger.info("Operation %s failed: %s", ctx.entry.id, _error_text(error))


# ========== Context managers ==========

@contextmanager
def operation(
    store: JournalStore,
    operation_type: Union[OperationType, str],
    source: str = "",
    target: str = "",
) -> Generator[OperationContext, None, None]:
    """Run a block as one journalled operation.

    Completes the entry when the block returns. When it raises, the entry is
    failed (if it has steps) and the original exception propagates.
    """
    ctx = begin_operation(store, operation_type, source, target)
    try:
        yield ctx
    except BaseException as e:
        if not ctx.closed:
            if ctx.entry.steps:
                try:
                    fail_entry(ctx, e)
                except JournalError:
                    logger.exception("Could not record failure of operation %s", ctx.entry.id)
            else:
                logger.warning(
                    "Operation %s raised before any step was recorded", ctx.entry.id
                )
        raise
    else:
        if not ctx.closed:
            complete_entry(ctx)


@contextmanager
def step(
    ctx: OperationContext,
    step_type: Union[StepType, str],
    description: str = "",
    source: str = "",
    target: str = "",
) -> Generator[Step, None, None]:
    """Add and start a step, completing it on return or failing it on error.

    Details set on the yielded step before the block ends are kept.
    """
    current = add_step(ctx, step_type, description, source, target)
    start_step(ctx, current)
    try:
        yield current
    except BaseException as e:
        if not current.status.is_terminal and not ctx.closed:
            try:
                fail_step(ctx, current, e)
            except JournalError:
                logger.exception("Could not record failure of step in %s", ctx.entry.id)
        raise
    else:
        if not current.status.is_terminal:
            complete_step(ctx, current, current.details)
