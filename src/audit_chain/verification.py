# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Chain verification for audit entries.

Verification replays an account's chain in timestamp order and gives every
entry its own verdict:

* **hash-valid** when the stored hash equals the digest of the entry's
  content re-encoded against the expected predecessor hash;
* **link-valid** when the stored ``previous_hash`` equals that expected
  predecessor hash.

After each entry the expected predecessor becomes the entry's *stored*
hash, not the recomputed one. A single altered entry therefore flags only
itself: entries after it still link to the hash it carries. A forged entry
is caught by its own hash check unless every later link is re-forged too.

Verification is read-only, never raises for malformed input, and returns
the newest entry first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from audit_chain.codec import GENESIS_SENTINEL, compute_hash, parse_timestamp
from audit_chain.errors import MalformedEntryError
from audit_chain.types import AuditEntry, ChainSummary, VerifiedEntry

logger = logging.getLogger("audit_chain.verification")

HASH_MISMATCH = "hash_mismatch"
LINK_MISMATCH = "link_mismatch"
MALFORMED = "malformed"


def _sort_key(indexed: tuple[int, AuditEntry]) -> tuple[int, datetime | None, int]:
    index, entry = indexed
    try:
        return (0, parse_timestamp(getattr(entry, "timestamp", None)), index)
    except MalformedEntryError:
        # Unparseable timestamps sort after every dated entry, in input order.
        return (1, None, index)


def chronological(entries: Iterable[AuditEntry]) -> list[AuditEntry]:
    """Return ``entries`` sorted oldest first; ties keep their input order."""
    return [entry for _, entry in sorted(enumerate(entries), key=_sort_key)]


def _annotate(entry: AuditEntry, hash_valid: bool, link_valid: bool, issue: str | None) -> VerifiedEntry:
    fields: dict[str, Any] = {
        name: getattr(entry, name) for name in AuditEntry.model_fields if hasattr(entry, name)
    }
    verdict = {
        "valid": hash_valid and link_valid,
        "hash_valid": hash_valid,
        "link_valid": link_valid,
        "issue": issue,
    }
    try:
        return VerifiedEntry.model_validate({**fields, **verdict})
    except ValidationError:
        return VerifiedEntry.model_construct(**fields, **verdict)


def _link_key(previous_hash: object) -> object:
    # A stored "null" and a missing previous hash both mean genesis.
    return None if previous_hash == GENESIS_SENTINEL else previous_hash


def verify_entry(entry: AuditEntry, expected_previous: str | None) -> VerifiedEntry:
    """Verify one entry against the hash its predecessor carries."""
    link_valid = _link_key(getattr(entry, "previous_hash", None)) == _link_key(expected_previous)
    try:
        hash_valid = compute_hash(entry, expected_previous) == getattr(entry, "hash", None)
    except MalformedEntryError as exc:
        logger.debug("Entry %s cannot be encoded: %s", getattr(entry, "id", None), exc.message)
        return _annotate(entry, False, link_valid, MALFORMED)

    problems = []
    if not hash_valid:
        problems.append(HASH_MISMATCH)
    if not link_valid:
        problems.append(LINK_MISMATCH)
    return _annotate(entry, hash_valid, link_valid, "+".join(problems) or None)


def verify_chain(entries: Iterable[AuditEntry]) -> list[VerifiedEntry]:
    """
    Verify every entry of one account's chain.

    Parameters
    ----------
    entries:
        The account's entries in any order.

    Returns
    -------
    list[VerifiedEntry]
        One verdict per input entry, newest first. An empty chain yields an
        empty list.
    """
    expected_previous: str | None = None
    verified: list[VerifiedEntry] = []

    for entry in chronological(entries):
        result = verify_entry(entry, expected_previous)
        verified.append(result)
        stored_hash = getattr(entry, "hash", None)
        expected_previous = stored_hash if isinstance(stored_hash, str) else None

    verified.reverse()

    tampered = sum(1 for entry in verified if not entry.valid)
    if tampered:
        logger.warning("Chain verification found %d tampered of %d entries", tampered, len(verified))
    else:
        logger.debug("Chain verification passed for %d entries", len(verified))
    return verified


def summarize(verified: list[VerifiedEntry]) -> ChainSummary:
    """
    Aggregate a verified chain (as returned by ``verify_chain``).

    The summary complements the per-row verdicts; callers showing a chain
    should still surface every tampered row individually.
    """
    tampered = [entry for entry in verified if not entry.valid]
    tip = verified[0] if verified else None
    return ChainSummary(
        total=len(verified),
        tampered=len(tampered),
        tampered_ids=[getattr(entry, "id", None) for entry in tampered],
        tip_hash=getattr(tip, "hash", None) if tip is not None else None,
    )
