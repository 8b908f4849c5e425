# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Volatile in-memory storage backend.

Entries are held per account in plain lists in insertion order. Suitable for
testing, short-lived processes, and scenarios where persistence is not
required. Data is lost when the process exits.
"""

from __future__ import annotations

from audit_chain.storage.interface import AuditStorage, latest, new_entry_id
from audit_chain.types import AuditEntry


class MemoryStorage(AuditStorage):
    """In-memory, non-persistent AuditStorage implementation."""

    def __init__(self) -> None:
        self._chains: dict[str, list[AuditEntry]] = {}

    async def append(self, account_id: str, entry: AuditEntry) -> AuditEntry:
        stored = entry.model_copy(update={"id": new_entry_id()})
        self._chains.setdefault(account_id, []).append(stored)
        return stored

    async def tip(self, account_id: str) -> AuditEntry | None:
        return latest(self._chains.get(account_id, []))

    async def all(self, account_id: str) -> list[AuditEntry]:
        return list(self._chains.get(account_id, []))

    async def count(self, account_id: str) -> int:
        return len(self._chains.get(account_id, []))

    async def accounts(self) -> list[str]:
        return sorted(self._chains)

    def replace(self, account_id: str, entries: list[AuditEntry]) -> None:
        """
        Overwrite an account's stored entries wholesale.

        Not part of the storage contract. It simulates an attacker with
        direct write access to the backing store, for tamper-detection tests
        and drills.
        """
        self._chains[account_id] = list(entries)
