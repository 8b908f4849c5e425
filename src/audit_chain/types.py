# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Shared type definitions for the audit-chain package.

All entry models are frozen Pydantic v2 models. Fields cannot be mutated
after construction, which mirrors the append-only guarantee of the chain.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from audit_chain.codec import format_timestamp, parse_timestamp
from audit_chain.errors import MalformedEntryError


class AuditAction(str):
    """Mutation kinds recorded in the chain."""

    CREATE: Literal["create"] = "create"
    UPDATE: Literal["update"] = "update"
    DELETE: Literal["delete"] = "delete"


AUDIT_ACTION_VALUES = frozenset({"create", "update", "delete"})


class EntityKind(str):
    """
    Well-known entity kinds.

    These are convenience constants; any non-empty string is accepted and
    round-trips unchanged.
    """

    TRANSACTION = "transaction"
    GOAL = "goal"
    BUDGET = "budget"
    USER = "user"
    PLAN = "plan"
    FEATURE_FLAGS = "feature_flags"
    SUPPORT_TICKET = "support_ticket"
    TRACKING = "tracking"


class EntryOrigin(str):
    """Structured provenance of an entry. Not part of the hash input."""

    MANUAL = "manual"
    BULK_IMPORT = "bulk_import"
    SYSTEM = "system"


ENTRY_ORIGIN_VALUES = frozenset({"manual", "bulk_import", "system"})

# entity_id used by entries that summarise a batch operation.
BATCH_ENTITY_ID = "batch_import"


def _normalise_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        raise ValueError(
            "numeric epoch timestamps are not accepted; pass an ISO-8601 string or a datetime"
        )
    if isinstance(value, str):
        try:
            parse_timestamp(value)
        except MalformedEntryError as exc:
            raise ValueError(exc.reason) from exc
    return value


IsoTimestamp = Annotated[str, BeforeValidator(_normalise_timestamp)]


class AuditEntry(BaseModel):
    """
    An immutable, hash-chained record of a single mutation.

    ``hash`` is the SHA-256 digest of the canonical encoding of every content
    field plus ``previous_hash``. ``id`` and ``origin`` are not hashed.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    timestamp: IsoTimestamp
    actor_id: str
    actor_name: str
    action: str
    entity_kind: str
    entity_id: str
    detail: str
    hash: str
    previous_hash: str | None = None
    origin: str = EntryOrigin.MANUAL


class VerifiedEntry(AuditEntry):
    """
    An AuditEntry annotated with the verifier's verdict.

    ``issue`` names what failed: ``"hash_mismatch"``, ``"link_mismatch"``,
    ``"malformed"``, or a ``+``-joined combination.
    """

    valid: bool
    hash_valid: bool
    link_valid: bool
    issue: str | None = None


class Actor(BaseModel):
    """Snapshot of the user performing a mutation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str


class MutationRequest(BaseModel):
    """
    Caller-supplied input for one audit entry.

    Hash fields are absent; the chain writer computes them on append.
    """

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(min_length=1)
    timestamp: IsoTimestamp
    actor_id: str = Field(min_length=1)
    actor_name: str
    action: str
    entity_kind: str = Field(min_length=1)
    entity_id: str
    detail: str
    origin: str = EntryOrigin.MANUAL

    @field_validator("action")
    @classmethod
    def _check_action(cls, value: str) -> str:
        if value not in AUDIT_ACTION_VALUES:
            raise ValueError(f"must be one of {sorted(AUDIT_ACTION_VALUES)}")
        return value

    @field_validator("origin")
    @classmethod
    def _check_origin(cls, value: str) -> str:
        if value not in ENTRY_ORIGIN_VALUES:
            raise ValueError(f"must be one of {sorted(ENTRY_ORIGIN_VALUES)}")
        return value


class AuditFilter(BaseModel):
    """
    Viewer-side filter over a verified chain.

    All fields are optional. Omitting a field means no restriction on that
    dimension. ``start`` and ``end`` are inclusive.
    """

    model_config = ConfigDict(frozen=True)

    search: str | None = None
    action: str | None = None
    entity_kind: str | None = None
    actor_id: str | None = None
    integrity: Literal["all", "valid", "invalid"] = "all"
    start: datetime | None = None
    end: datetime | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class ChainSummary(BaseModel):
    """Aggregate view of a verified chain. Never replaces per-row verdicts."""

    model_config = ConfigDict(frozen=True)

    total: int
    tampered: int
    tampered_ids: list[str | None]
    tip_hash: str | None

    @property
    def intact(self) -> bool:
        return self.tampered == 0


class GraceRemaining(BaseModel):
    """Time left before an imported record leaves its grace period."""

    model_config = ConfigDict(frozen=True)

    hours: int
    minutes: int
    expired: bool
