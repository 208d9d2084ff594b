"""Exception types raised by Gmail Declutter."""

from __future__ import annotations


class DeclutterError(Exception):
    """Base class for all Gmail Declutter errors."""


class Unauthorized(DeclutterError):
    """The Gmail credential was rejected; the user must re-authenticate."""


class FetchError(DeclutterError):
    """A single message or page could not be retrieved."""

    def __init__(self, message_id: str, reason: str) -> None:
        super().__init__(f"Failed to fetch message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason


class MalformedMessageError(DeclutterError):
    """A fetched message lacks a required header (From, Subject or Date)."""

    def __init__(self, message_id: str, missing: list[str]) -> None:
        super().__init__(f"Message {message_id} is missing {', '.join(missing)}")
        self.message_id = message_id
        self.missing = missing


class TrashOperationError(DeclutterError):
    """A trash or label-modify call failed for one message."""

    def __init__(self, message_id: str, operation: str, reason: str) -> None:
        super().__init__(f"{operation} failed for message {message_id}: {reason}")
        self.message_id = message_id
        self.operation = operation
        self.reason = reason


class SenderExcludedError(DeclutterError):
    """A bulk action targeted a sender the user marked as "don't delete"."""

    def __init__(self, sender: str) -> None:
        super().__init__(f"Sender {sender} is excluded from cleanup")
        self.sender = sender


class StateSchemaError(DeclutterError):
    """The persisted reconciliation state has an unsupported schema."""


class DeletionLogError(DeclutterError):
    """The deletion history file exists but cannot be read as a record list."""
