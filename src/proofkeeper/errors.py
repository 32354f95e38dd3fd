"""Structured error types for proofkeeper."""

from __future__ import annotations


class ProofkeeperError(Exception):
    """Base error for all proofkeeper errors."""


class StorageBackendError(ProofkeeperError):
    """Raised when an object storage operation fails."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage backend error during {operation}: {detail}")


class UnsupportedStorageError(StorageBackendError):
    """Raised when a storage or registrations URI names an unknown backend."""

    def __init__(self, uri: str) -> None:
        self.uri = uri
        super().__init__("open_storage", f"Unsupported storage URI '{uri}'")


class RegistrationUpdateError(ProofkeeperError):
    """Raised when a registration row could not be repointed."""

    def __init__(self, column: str, detail: str) -> None:
        self.column = column
        self.detail = detail
        super().__init__(f"Failed to update registrations.{column}: {detail}")


class MigrationError(ProofkeeperError):
    """Raised when a receipt migration cannot proceed at all."""


class ValidationError(ProofkeeperError, ValueError):
    """Raised when a request or argument fails validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
