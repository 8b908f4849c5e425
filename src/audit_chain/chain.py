# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Chain writer: appends one entry to an account's SHA-256 hash chain.

Each entry links to the chain tip (the entry with the latest timestamp) by
carrying the tip's hash as ``previous_hash``. The first entry of a chain has
no predecessor and hashes the literal ``null`` in its place.

The write is read-then-write: load the tip, hash the candidate against it,
persist. Nothing reserves the tip between the two steps, so two writers that
read the same tip both link to it. Sorted by timestamp, the later of those
siblings fails link verification. Set ``serialize_appends`` in
:class:`~audit_chain.config.AuditChainConfig` to hold a per-account lock
across the whole write within one process. Each event loop gets its own
locks, so callers may drive the writer with repeated ``asyncio.run``.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from audit_chain.codec import compute_hash
from audit_chain.errors import AuditChainError, InvalidEntryError, PersistenceError
from audit_chain.storage.interface import AuditStorage
from audit_chain.types import AuditEntry, EntryOrigin, MutationRequest

logger = logging.getLogger("audit_chain.chain")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(tz=timezone.utc)


def build_request(**fields: Any) -> MutationRequest:
    """
    Validate caller input into a ``MutationRequest``.

    Raises ``InvalidEntryError`` naming the first offending field.
    """
    try:
        return MutationRequest.model_validate(fields)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "request"
        raise InvalidEntryError(field, first["msg"]) from exc


def link_entry(request: MutationRequest, previous_hash: str | None) -> AuditEntry:
    """
    Build the hashed, not yet persisted entry for ``request``.

    ``previous_hash`` is the tip's hash, or ``None`` for the genesis entry.
    """
    return AuditEntry(
        timestamp=request.timestamp,
        actor_id=request.actor_id,
        actor_name=request.actor_name,
        action=request.action,
        entity_kind=request.entity_kind,
        entity_id=request.entity_id,
        detail=request.detail,
        previous_hash=previous_hash,
        hash=compute_hash(request, previous_hash),
        origin=request.origin,
    )


class ChainWriter:
    """
    Appends entries to per-account chains held by a storage backend.

    Parameters
    ----------
    storage:
        Backend holding every account's chain.
    clock:
        Source of the acceptance time used when a caller gives none.
    serialize_appends:
        Hold a per-account ``asyncio.Lock`` from tip read to persist.
    """

    def __init__(
        self,
        storage: AuditStorage,
        clock: Clock = utc_now,
        serialize_appends: bool = False,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._serialize = serialize_appends
        # Locks are per event loop and dropped once no append holds them.
        self._locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, weakref.WeakValueDictionary[str, asyncio.Lock]
        ] = weakref.WeakKeyDictionary()

    @property
    def serialize_appends(self) -> bool:
        return self._serialize

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        locks = self._locks.get(loop)
        if locks is None:
            locks = self._locks[loop] = weakref.WeakValueDictionary()
        lock = locks.get(account_id)
        if lock is None:
            lock = locks[account_id] = asyncio.Lock()
        return lock

    async def _acquire(self, account_id: str) -> asyncio.Lock:
        try:
            lock = self._lock_for(account_id)
            await lock.acquire()
        except Exception as exc:
            logger.exception("Failed to acquire append lock", extra={"account_id": account_id})
            raise PersistenceError(account_id, "lock", exc) from exc
        return lock

    async def append(
        self,
        account_id: str,
        actor_id: str,
        actor_name: str,
        action: str,
        entity_kind: str,
        entity_id: str,
        detail: str,
        *,
        origin: str = EntryOrigin.MANUAL,
        timestamp: datetime | str | None = None,
    ) -> AuditEntry:
        """
        Link a new entry to the account's tip and persist it.

        ``timestamp`` is when the mutation was accepted; it defaults to the
        writer's clock.

        Returns
        -------
        AuditEntry
            The persisted entry, ``id`` assigned by storage.

        Raises
        ------
        InvalidEntryError
            Before any I/O, when the request is incomplete or ``action`` is
            not ``create``, ``update`` or ``delete``.
        PersistenceError
            When the append lock cannot be taken, the tip cannot be read,
            or the entry cannot be stored. No entry is stored in that case.
        """
        request = build_request(
            account_id=account_id,
            timestamp=timestamp if timestamp is not None else self._clock(),
            actor_id=actor_id,
            actor_name=actor_name,
            action=action,
            entity_kind=entity_kind,
            entity_id=entity_id,
            detail=detail,
            origin=origin,
        )

        if not self._serialize:
            return await self._append(request)

        lock = await self._acquire(account_id)
        try:
            return await self._append(request)
        finally:
            lock.release()

    async def _append(self, request: MutationRequest) -> AuditEntry:
        account_id = request.account_id
        try:
            tip = await self._storage.tip(account_id)
        except AuditChainError:
            raise
        except Exception as exc:
            logger.exception("Failed to read chain tip", extra={"account_id": account_id})
            raise PersistenceError(account_id, "tip", exc) from exc

        entry = link_entry(request, getattr(tip, "hash", None) if tip is not None else None)

        try:
            stored = await self._storage.append(account_id, entry)
        except AuditChainError:
            raise
        except Exception as exc:
            logger.exception("Failed to persist audit entry", extra={"account_id": account_id})
            raise PersistenceError(account_id, "append", exc) from exc

        logger.debug(
            "Appended %s %s entry",
            stored.action,
            stored.entity_kind,
            extra={"account_id": account_id, "entry_id": stored.id},
        )
        return stored
