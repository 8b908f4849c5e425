# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Canonical encoding of audit entries for hashing.

The hash input is the plain concatenation, with no delimiter, of::

    timestamp actor_id actor_name action entity_kind entity_id detail previous_hash

A missing ``previous_hash`` (the genesis entry) is rendered as the literal
``null``. Both rules are fixed by the chains already in storage: changing
either one invalidates every stored hash.

The writer and the verifier must go through this module so the two sides
can never drift apart.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from audit_chain.errors import MalformedEntryError

if TYPE_CHECKING:
    from audit_chain.types import AuditEntry, MutationRequest

GENESIS_SENTINEL: str = "null"
HASH_ALGORITHM: str = "sha256"

# Field order of the hash input. previous_hash is appended separately.
CONTENT_FIELDS: tuple[str, ...] = (
    "timestamp",
    "actor_id",
    "actor_name",
    "action",
    "entity_kind",
    "entity_id",
    "detail",
)

_UNSET = object()


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime the way stored entries carry it.

    Output is UTC with millisecond precision and a ``Z`` suffix, e.g.
    ``2026-03-01T14:05:09.120Z``. Naive datetimes are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp into an aware datetime."""
    if not isinstance(value, str):
        raise MalformedEntryError("timestamp", f"expected an ISO-8601 string, got {type(value).__name__}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise MalformedEntryError("timestamp", str(exc)) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _field(entry: AuditEntry | MutationRequest, name: str) -> str:
    value = getattr(entry, name, None)
    if not isinstance(value, str):
        raise MalformedEntryError(name, f"expected a string, got {type(value).__name__}")
    return value


def encode(entry: AuditEntry | MutationRequest, previous_hash: str | None | object = _UNSET) -> bytes:
    """
    Return the canonical hash input of ``entry`` as UTF-8 bytes.

    ``previous_hash`` overrides the entry's own link, which the verifier uses
    to recompute the hash against the expected predecessor. Pass ``None`` for
    the genesis position.

    Raises ``MalformedEntryError`` when any content field is missing or not
    a string.
    """
    parts = [_field(entry, name) for name in CONTENT_FIELDS]

    link = getattr(entry, "previous_hash", None) if previous_hash is _UNSET else previous_hash
    if link is None:
        parts.append(GENESIS_SENTINEL)
    elif isinstance(link, str):
        parts.append(link)
    else:
        raise MalformedEntryError("previous_hash", f"expected a string or None, got {type(link).__name__}")

    return "".join(parts).encode("utf-8")


def digest(payload: bytes) -> str:
    """Lowercase hex SHA-256 of ``payload``."""
    return hashlib.sha256(payload).hexdigest()


def compute_hash(entry: AuditEntry | MutationRequest, previous_hash: str | None | object = _UNSET) -> str:
    """Hash ``entry`` exactly as the chain writer does."""
    return digest(encode(entry, previous_hash))
