# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations


class AuditChainError(Exception):
    """Base class for all audit-chain errors."""

    def __init__(self, message: str, code: str = "AUDIT_CHAIN_ERROR") -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class InvalidEntryError(AuditChainError):
    """
    Raised by the chain writer when a mutation request cannot become an entry.

    Attributes:
        field: Name of the offending request field.
    """

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            f"Invalid audit entry field '{field}': {reason}",
            code="INVALID_ENTRY",
        )
        self.field = field
        self.reason = reason


class MalformedEntryError(AuditChainError):
    """
    Raised by the codec when a stored entry cannot be re-encoded.

    The verifier catches this and marks the entry invalid instead of
    propagating it.
    """

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            f"Audit entry field '{field}' cannot be encoded: {reason}",
            code="MALFORMED_ENTRY",
        )
        self.field = field
        self.reason = reason


class PersistenceError(AuditChainError):
    """
    Raised when the storage backend fails to read the chain tip or persist
    a new entry.

    The domain mutation that triggered the audit write is not rolled back;
    callers decide whether to surface the failure.

    Attributes:
        account_id: Account whose chain was being written.
        operation: ``"lock"``, ``"tip"``, ``"append"`` or ``"read"``.
    """

    def __init__(self, account_id: str, operation: str, cause: BaseException) -> None:
        super().__init__(
            f"Audit storage {operation} failed for account '{account_id}': {cause}",
            code="PERSISTENCE_FAILED",
        )
        self.account_id = account_id
        self.operation = operation


class ExportError(AuditChainError):
    """Raised when a verified chain cannot be rendered into a report."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="EXPORT_FAILED")


class ConfigurationError(AuditChainError):
    """Raised when the library is misconfigured."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")
