"""Exceptions raised by the operation journal."""

from __future__ import annotations


class JournalError(Exception):
    """Base exception for journal operations."""
    pass


class NotFoundError(JournalError):
    """Raised when an entry id is not present in any partition."""
    pass


class SerializationError(JournalError):
    """Raised when an entry cannot be encoded or decoded."""
    pass


class JournalIOError(JournalError, OSError):
    """Raised when the storage layer fails to create, read, write or remove."""
    pass


class StateError(JournalError):
    """Raised when an operation would violate the entry or step state machine."""
    pass


class ContextError(StateError):
    """Raised when an operation context is used after its entry was retired."""
    pass


class ConfigError(JournalError):
    """Raised when a configuration file cannot be parsed."""
    pass
