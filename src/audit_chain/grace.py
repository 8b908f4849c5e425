# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Grace period for bulk-imported transactions.

Entries describing a CSV import of transactions stay out of the default
audit view for a fixed window after the import, so a user can undo a bad
import before it shows up in the official trail. The filter only affects
what is displayed: the entry stays in storage, in the hash chain, and in
every verification.

The same threshold applies to domain records carrying their own
``is_imported`` / ``imported_at`` markers.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol, TypeVar, runtime_checkable

from audit_chain.chain import Clock, utc_now
from audit_chain.codec import parse_timestamp
from audit_chain.config import DEFAULT_BULK_IMPORT_MARKERS, DEFAULT_GRACE_PERIOD_HOURS
from audit_chain.errors import MalformedEntryError
from audit_chain.types import AuditAction, AuditEntry, EntityKind, EntryOrigin, GraceRemaining

DEFAULT_GRACE_PERIOD = timedelta(hours=DEFAULT_GRACE_PERIOD_HOURS)

E = TypeVar("E", bound=AuditEntry)


@runtime_checkable
class ImportedRecord(Protocol):
    """A domain record that may have arrived through a bulk import."""

    is_imported: bool
    imported_at: datetime | str | None


R = TypeVar("R", bound=ImportedRecord)


def _as_datetime(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    return parse_timestamp(value)


class GracePeriodFilter:
    """
    Read-side view rule hiding recent bulk imports.

    Parameters
    ----------
    grace_period:
        Window after the import during which entries are hidden.
    clock:
        Source of "now". Inject a fixed clock to simulate elapsed time.
    markers:
        Detail substrings identifying legacy bulk-import entries that carry
        no ``origin`` tag.
    """

    def __init__(
        self,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        clock: Clock = utc_now,
        markers: Sequence[str] = DEFAULT_BULK_IMPORT_MARKERS,
    ) -> None:
        if grace_period <= timedelta(0):
            raise ValueError("grace_period must be positive")
        self._grace_period = grace_period
        self._clock = clock
        self._markers = tuple(markers)

    @property
    def grace_period(self) -> timedelta:
        return self._grace_period

    def _now(self) -> datetime:
        return _as_datetime(self._clock())

    # ------------------------------------------------------------------
    # Log level
    # ------------------------------------------------------------------

    def is_bulk_import(self, entry: AuditEntry) -> bool:
        """True when the entry's origin tag or detail marks a bulk import."""
        if getattr(entry, "origin", None) == EntryOrigin.BULK_IMPORT:
            return True
        detail = getattr(entry, "detail", None)
        if not isinstance(detail, str):
            return False
        return any(marker in detail for marker in self._markers)

    def is_suppressed(self, entry: AuditEntry) -> bool:
        """
        True when the entry must be hidden from the default view.

        Requires a transaction ``create`` entry from a bulk import whose
        timestamp is less than ``grace_period`` ago. Entries with an
        unparseable timestamp are never hidden.
        """
        if getattr(entry, "entity_kind", None) != EntityKind.TRANSACTION:
            return False
        if getattr(entry, "action", None) != AuditAction.CREATE:
            return False
        if not self.is_bulk_import(entry):
            return False
        try:
            recorded_at = parse_timestamp(getattr(entry, "timestamp", None))
        except MalformedEntryError:
            return False
        return self._now() - recorded_at < self._grace_period

    def apply(self, entries: Iterable[E]) -> list[E]:
        """Return ``entries`` without suppressed ones, order preserved."""
        return [entry for entry in entries if not self.is_suppressed(entry)]

    def suppressed(self, entries: Iterable[E]) -> list[E]:
        """Return only the entries currently hidden by the grace period."""
        return [entry for entry in entries if self.is_suppressed(entry)]

    # ------------------------------------------------------------------
    # Record level
    # ------------------------------------------------------------------

    def _elapsed(self, record: ImportedRecord) -> timedelta | None:
        if not getattr(record, "is_imported", False) or not getattr(record, "imported_at", None):
            return None
        try:
            imported_at = _as_datetime(record.imported_at)
        except MalformedEntryError:
            # Same rule as entries: an unreadable import time never hides a record.
            return None
        return self._now() - imported_at

    def is_in_grace_period(self, record: ImportedRecord) -> bool:
        """True while an imported record is younger than the grace period."""
        elapsed = self._elapsed(record)
        return elapsed is not None and elapsed < self._grace_period

    def filter_records(self, records: Iterable[R]) -> list[R]:
        """Return the records that may appear in the audit view."""
        return [record for record in records if not self.is_in_grace_period(record)]

    def separate_records(self, records: Iterable[R]) -> tuple[list[R], list[R]]:
        """Split records into ``(auditable, in_grace_period)``."""
        auditable: list[R] = []
        pending: list[R] = []
        for record in records:
            (pending if self.is_in_grace_period(record) else auditable).append(record)
        return auditable, pending

    def remaining(self, record: ImportedRecord) -> GraceRemaining:
        """Time left before ``record`` leaves its grace period."""
        elapsed = self._elapsed(record)
        if elapsed is None or elapsed >= self._grace_period:
            return GraceRemaining(hours=0, minutes=0, expired=True)

        remaining_hours = (self._grace_period - elapsed).total_seconds() / 3600
        hours = math.floor(remaining_hours)
        minutes = math.floor((remaining_hours - hours) * 60)
        return GraceRemaining(hours=hours, minutes=minutes, expired=False)
