# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Abstract base class that every storage backend must implement.

Storage is partitioned by account: each account owns exactly one chain and
no entry ever crosses chains. Implementations must guarantee append-only
semantics: entries written through ``append`` are never altered or deleted
by the storage layer.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from audit_chain.codec import parse_timestamp
from audit_chain.errors import MalformedEntryError
from audit_chain.types import AuditEntry


def new_entry_id() -> str:
    """Return a fresh, never-reused entry id."""
    return uuid.uuid4().hex


def latest(entries: list[AuditEntry]) -> AuditEntry | None:
    """
    Return the entry with the latest timestamp, or ``None`` for an empty list.

    Entries whose timestamp cannot be parsed are ignored. On equal
    timestamps the entry stored last wins.
    """
    tip: AuditEntry | None = None
    tip_time = None
    for entry in entries:
        try:
            moment = parse_timestamp(entry.timestamp)
        except (MalformedEntryError, AttributeError):
            continue
        if tip_time is None or moment >= tip_time:
            tip, tip_time = entry, moment
    return tip


class AuditStorage(ABC):
    """
    Contract for audit entry persistence backends.

    The interface is intentionally minimal: callers interact with
    :class:`~audit_chain.trail.AuditTrail`; storage backends only need to
    satisfy these operations.
    """

    @abstractmethod
    async def append(self, account_id: str, entry: AuditEntry) -> AuditEntry:
        """
        Persist a fully-hashed entry and return it with ``id`` assigned.

        Persistence is all-or-nothing: on failure nothing is stored and the
        exception propagates to the chain writer.
        """
        ...

    @abstractmethod
    async def tip(self, account_id: str) -> AuditEntry | None:
        """Return the entry with the latest timestamp, or ``None``."""
        ...

    @abstractmethod
    async def all(self, account_id: str) -> list[AuditEntry]:
        """
        Return every entry of the account's chain in storage order.

        Storage order is not trusted by the verifier, which re-sorts by
        timestamp.
        """
        ...

    @abstractmethod
    async def count(self, account_id: str) -> int:
        """Return the number of entries in the account's chain."""
        ...

    @abstractmethod
    async def accounts(self) -> list[str]:
        """Return the ids of every account holding at least one entry."""
        ...
