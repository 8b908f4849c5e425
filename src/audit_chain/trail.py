# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
AuditTrail: primary entry point for recording and reviewing account history.

AuditTrail coordinates four concerns:

1. Writing: linking each mutation into its account's hash chain.
2. Verification: replaying a chain and annotating every entry.
3. Display: hiding recent bulk imports for the grace period.
4. Export: rendering verified chains into a CSV integrity report.

Usage::

    from audit_chain import Actor, AuditTrail

    trail = AuditTrail()
    await trail.record_mutation(
        "account-1",
        Actor(id="user-1", name="Ana"),
        "create",
        "transaction",
        "txn-42",
        'Created transaction "Rent" for R$ 1500.00.',
    )
    verified = await trail.get_verified_chain("account-1")
"""

from __future__ import annotations

import logging
from datetime import datetime

from audit_chain.chain import ChainWriter, Clock, utc_now
from audit_chain.config import AuditChainConfig
from audit_chain.errors import AuditChainError, PersistenceError
from audit_chain.export_formats import export_verified_csv
from audit_chain.grace import GracePeriodFilter
from audit_chain.storage.interface import AuditStorage
from audit_chain.storage.memory import MemoryStorage
from audit_chain.types import Actor, AuditEntry, ChainSummary, EntryOrigin, VerifiedEntry
from audit_chain.verification import summarize, verify_chain

logger = logging.getLogger("audit_chain.trail")


class AuditTrail:
    """
    Per-account tamper-evident audit trail.

    Parameters
    ----------
    storage:
        Pluggable storage backend. Defaults to in-memory storage when omitted.
    config:
        Grace period, export and concurrency settings.
    clock:
        Source of "now" for acceptance times and the grace period.
    """

    def __init__(
        self,
        storage: AuditStorage | None = None,
        config: AuditChainConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._storage: AuditStorage = storage or MemoryStorage()
        self._config = config or AuditChainConfig()
        self._writer = ChainWriter(
            self._storage,
            clock=clock,
            serialize_appends=self._config.serialize_appends,
        )
        self._grace = GracePeriodFilter(
            grace_period=self._config.grace_period,
            clock=clock,
            markers=self._config.bulk_import_markers,
        )

    @property
    def storage(self) -> AuditStorage:
        return self._storage

    @property
    def config(self) -> AuditChainConfig:
        return self._config

    @property
    def grace(self) -> GracePeriodFilter:
        return self._grace

    async def record_mutation(
        self,
        account_id: str,
        actor: Actor,
        action: str,
        entity_kind: str,
        entity_id: str,
        detail: str,
        *,
        origin: str = EntryOrigin.MANUAL,
        timestamp: datetime | str | None = None,
    ) -> AuditEntry:
        """
        Record a mutation the caller has already committed.

        The entry is linked to the account's chain tip via SHA-256 and
        persisted. A failure here never undoes the caller's mutation.

        Raises
        ------
        InvalidEntryError
            When the request is incomplete or the action is unknown.
        PersistenceError
            When storage is unavailable or rejects the write.
        """
        return await self._writer.append(
            account_id,
            actor.id,
            actor.name,
            action,
            entity_kind,
            entity_id,
            detail,
            origin=origin,
            timestamp=timestamp,
        )

    async def try_record_mutation(
        self,
        account_id: str,
        actor: Actor,
        action: str,
        entity_kind: str,
        entity_id: str,
        detail: str,
        *,
        origin: str = EntryOrigin.MANUAL,
        timestamp: datetime | str | None = None,
    ) -> AuditEntry | None:
        """
        Fire-and-forget variant of :meth:`record_mutation`.

        Logs and returns ``None`` instead of raising, for callers that
        accept a mutation going unlogged over failing the request.
        """
        try:
            return await self.record_mutation(
                account_id,
                actor,
                action,
                entity_kind,
                entity_id,
                detail,
                origin=origin,
                timestamp=timestamp,
            )
        except AuditChainError as exc:
            logger.error(
                "Audit entry not recorded: %s",
                exc.message,
                extra={"account_id": account_id, "error_code": exc.code},
            )
            return None

    async def get_chain(self, account_id: str) -> list[AuditEntry]:
        """Return the account's raw entries in storage order."""
        try:
            return await self._storage.all(account_id)
        except AuditChainError:
            raise
        except Exception as exc:
            raise PersistenceError(account_id, "read", exc) from exc

    async def get_verified_chain(self, account_id: str) -> list[VerifiedEntry]:
        """
        Verify the account's full chain.

        Returns every entry, newest first, each annotated with its verdict.
        The grace period is not applied.
        """
        return verify_chain(await self.get_chain(account_id))

    async def get_visible_chain(self, account_id: str) -> list[VerifiedEntry]:
        """
        Verify the full chain, then hide bulk imports still in their grace
        period.

        Verdicts are computed before filtering, so hidden entries still take
        part in link verification.
        """
        return self._grace.apply(await self.get_verified_chain(account_id))

    async def summarize(self, account_id: str) -> ChainSummary:
        """Verify the account's chain and aggregate the verdicts."""
        return summarize(await self.get_verified_chain(account_id))

    async def export_verified_csv(
        self,
        account_id: str,
        locale: str | None = None,
        timezone_name: str | None = None,
    ) -> bytes:
        """
        Export the account's full verified chain as a UTF-8 CSV report.

        Locale and timezone default to the configured values.

        Raises
        ------
        ExportError
            When the report cannot be rendered. No partial output is returned.
        """
        verified = await self.get_verified_chain(account_id)
        report = export_verified_csv(
            verified,
            locale=locale or self._config.export_locale,
            timezone_name=timezone_name or self._config.export_timezone,
        )
        logger.debug("Exported %d audit entries", len(verified), extra={"account_id": account_id})
        return report.encode("utf-8")

    async def count(self, account_id: str) -> int:
        """Return the number of entries stored for the account."""
        try:
            return await self._storage.count(account_id)
        except AuditChainError:
            raise
        except Exception as exc:
            raise PersistenceError(account_id, "read", exc) from exc
