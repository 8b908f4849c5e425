# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
ledger-audit-chain — Tamper-evident, per-account audit hash chains for
bookkeeping data.

Public API surface:

    Classes:
        AuditTrail         — Facade: record_mutation(), get_chain(),
                             get_verified_chain(), get_visible_chain(),
                             export_verified_csv(), summarize()
        ChainWriter        — Low-level append (tip lookup, link, hash, persist)
        GracePeriodFilter  — Hides recent bulk imports from the default view
        AuditQuery         — Viewer filters and pagination over verified chains
        MemoryStorage      — Volatile in-memory storage (default)
        FileStorage        — Append-only NDJSON storage, one file per account
        AuditChainConfig   — Grace period, export and concurrency settings

    Functions:
        encode, compute_hash  — Canonical hash input and digest
        verify_chain          — Per-entry verdicts, newest first
        summarize             — Aggregate counts over a verified chain
        export_verified_csv   — CSV integrity report
        export_verified_json  — JSON report with verdicts
        export_verified       — Format-dispatching export helper

    Types:
        AuditEntry, VerifiedEntry, Actor, MutationRequest, AuditFilter,
        ChainSummary, GraceRemaining, AuditStorage
"""

from audit_chain.chain import ChainWriter, link_entry, utc_now
from audit_chain.codec import (
    GENESIS_SENTINEL,
    compute_hash,
    encode,
    format_timestamp,
    parse_timestamp,
)
from audit_chain.config import AuditChainConfig
from audit_chain.errors import (
    AuditChainError,
    ConfigurationError,
    ExportError,
    InvalidEntryError,
    MalformedEntryError,
    PersistenceError,
)
from audit_chain.export_formats import export_verified, export_verified_csv, export_verified_json
from audit_chain.grace import GracePeriodFilter
from audit_chain.query import AuditQuery, QueryPage, apply_filter
from audit_chain.storage.file import FileStorage
from audit_chain.storage.interface import AuditStorage
from audit_chain.storage.memory import MemoryStorage
from audit_chain.trail import AuditTrail
from audit_chain.types import (
    BATCH_ENTITY_ID,
    Actor,
    AuditAction,
    AuditEntry,
    AuditFilter,
    ChainSummary,
    EntityKind,
    EntryOrigin,
    GraceRemaining,
    MutationRequest,
    VerifiedEntry,
)
from audit_chain.verification import summarize, verify_chain

__all__ = [
    # Core classes
    "AuditTrail",
    "ChainWriter",
    "GracePeriodFilter",
    "AuditQuery",
    "QueryPage",
    "AuditChainConfig",
    # Storage
    "MemoryStorage",
    "FileStorage",
    "AuditStorage",
    # Codec
    "GENESIS_SENTINEL",
    "encode",
    "compute_hash",
    "format_timestamp",
    "parse_timestamp",
    # Chain helpers
    "link_entry",
    "utc_now",
    "verify_chain",
    "summarize",
    "apply_filter",
    # Export helpers
    "export_verified",
    "export_verified_csv",
    "export_verified_json",
    # Types
    "AuditEntry",
    "VerifiedEntry",
    "Actor",
    "MutationRequest",
    "AuditFilter",
    "ChainSummary",
    "GraceRemaining",
    "AuditAction",
    "EntityKind",
    "EntryOrigin",
    "BATCH_ENTITY_ID",
    # Errors
    "AuditChainError",
    "InvalidEntryError",
    "MalformedEntryError",
    "PersistenceError",
    "ExportError",
    "ConfigurationError",
]
