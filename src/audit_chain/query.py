# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Viewer-side filtering and pagination over verified chains.

Filters narrow what a viewer sees; they never change verdicts, which are
computed over the full chain before any filter runs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from audit_chain.codec import parse_timestamp
from audit_chain.errors import MalformedEntryError
from audit_chain.types import AuditFilter, VerifiedEntry

if TYPE_CHECKING:
    from audit_chain.trail import AuditTrail


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _matches(entry: VerifiedEntry, audit_filter: AuditFilter) -> bool:
    if audit_filter.search:
        detail = getattr(entry, "detail", None)
        if not isinstance(detail, str) or audit_filter.search.lower() not in detail.lower():
            return False

    if audit_filter.action is not None and getattr(entry, "action", None) != audit_filter.action:
        return False

    if audit_filter.entity_kind is not None and getattr(entry, "entity_kind", None) != audit_filter.entity_kind:
        return False

    if audit_filter.actor_id is not None and getattr(entry, "actor_id", None) != audit_filter.actor_id:
        return False

    if audit_filter.integrity == "valid" and not entry.valid:
        return False
    if audit_filter.integrity == "invalid" and entry.valid:
        return False

    if audit_filter.start is not None or audit_filter.end is not None:
        try:
            moment = parse_timestamp(getattr(entry, "timestamp", None))
        except MalformedEntryError:
            return False
        if audit_filter.start is not None and moment < _aware(audit_filter.start):
            return False
        if audit_filter.end is not None and moment > _aware(audit_filter.end):
            return False

    return True


def apply_filter(entries: list[VerifiedEntry], audit_filter: AuditFilter) -> list[VerifiedEntry]:
    """Return entries matching every supplied filter field, order preserved."""
    results = [entry for entry in entries if _matches(entry, audit_filter)]

    offset = audit_filter.offset or 0
    results = results[offset:]

    if audit_filter.limit is not None:
        results = results[: audit_filter.limit]

    return results


@dataclass(frozen=True)
class QueryPage:
    """One page of filtered entries."""

    entries: list[VerifiedEntry]
    page: int
    per_page: int
    total_matching: int
    total_visible: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_matching / self.per_page) if self.per_page else 0


class AuditQuery:
    """
    Read-only query interface over an account's visible chain.

    Entries come from :meth:`AuditTrail.get_visible_chain`, so the grace
    period applies before any filter.

    Parameters
    ----------
    trail:
        The audit trail to query.
    """

    def __init__(self, trail: AuditTrail) -> None:
        self._trail = trail

    async def find(self, account_id: str, audit_filter: AuditFilter) -> list[VerifiedEntry]:
        """
        Return entries matching all supplied filter fields.

        Omitted fields are treated as wildcards.
        """
        return apply_filter(await self._trail.get_visible_chain(account_id), audit_filter)

    async def find_tampered(self, account_id: str) -> list[VerifiedEntry]:
        """Return every visible entry that failed verification."""
        return await self.find(account_id, AuditFilter(integrity="invalid"))

    async def find_by_actor(
        self,
        account_id: str,
        actor_id: str,
        limit: int | None = None,
    ) -> list[VerifiedEntry]:
        """Return entries written by one actor, optionally limited."""
        return await self.find(account_id, AuditFilter(actor_id=actor_id, limit=limit))

    async def page(
        self,
        account_id: str,
        audit_filter: AuditFilter | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> QueryPage:
        """
        Return page ``page`` (1-based) of the filtered view.

        ``limit`` and ``offset`` on ``audit_filter`` are ignored in favour
        of the page arguments.
        """
        if page < 1 or per_page < 1:
            raise ValueError("page and per_page must be positive")

        visible = await self._trail.get_visible_chain(account_id)
        base = (audit_filter or AuditFilter()).model_copy(update={"limit": None, "offset": None})
        matching = apply_filter(visible, base)
        start = (page - 1) * per_page
        return QueryPage(
            entries=matching[start : start + per_page],
            page=page,
            per_page=per_page,
            total_matching=len(matching),
            total_visible=len(visible),
        )
