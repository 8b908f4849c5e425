# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Append-only file storage backend.

Each account's chain lives in its own file, ``<directory>/<account_id>.ndjson``,
one JSON object per line (NDJSON / JSON Lines format). Files are only ever
opened in append mode and never truncated or rewritten; callers relying on
immutability should secure the directory with OS-level permissions.

Reading always parses the entire file from disk so that the in-process view
stays consistent with anything written by concurrent processes.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from audit_chain.errors import InvalidEntryError
from audit_chain.storage.interface import AuditStorage, latest, new_entry_id
from audit_chain.types import AuditEntry

logger = logging.getLogger("audit_chain.storage.file")

_ACCOUNT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-][A-Za-z0-9_.\-]*$")
_SUFFIX = ".ndjson"


def _load_line(stripped: str, path: Path, line_number: int) -> AuditEntry | None:
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        logger.warning(
            "Skipping undecodable audit line %s:%d", path.name, line_number,
            extra={"audit_file": str(path)},
        )
        return None
    if not isinstance(data, dict):
        logger.warning(
            "Skipping non-object audit line %s:%d", path.name, line_number,
            extra={"audit_file": str(path)},
        )
        return None
    try:
        return AuditEntry.model_validate(data)
    except ValidationError as exc:
        # Loaded without validation so the verifier reports it as malformed
        # instead of the entry silently disappearing from the chain.
        logger.warning(
            "Audit line %s:%d failed validation (%d errors); loading unvalidated",
            path.name, line_number, exc.error_count(),
            extra={"audit_file": str(path)},
        )
        known = {key: value for key, value in data.items() if key in AuditEntry.model_fields}
        return AuditEntry.model_construct(**known)


class FileStorage(AuditStorage):
    """
    Persistent, append-only NDJSON storage backend, one file per account.

    Parameters
    ----------
    directory:
        Directory holding the per-account files. Created on first append.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, account_id: str) -> Path:
        """Return the chain file of ``account_id``, rejecting path-like ids."""
        if not _ACCOUNT_ID_PATTERN.match(account_id) or ".." in account_id:
            raise InvalidEntryError("account_id", f"{account_id!r} is not a valid storage key")
        return self._directory / f"{account_id}{_SUFFIX}"

    async def append(self, account_id: str, entry: AuditEntry) -> AuditEntry:
        path = self.path_for(account_id)
        stored = entry.model_copy(update={"id": new_entry_id()})
        line = json.dumps(stored.model_dump(mode="json"), ensure_ascii=False) + "\n"
        await aiofiles.os.makedirs(self._directory, exist_ok=True)
        async with aiofiles.open(path, mode="a", encoding="utf-8") as file_handle:
            await file_handle.write(line)
        return stored

    async def tip(self, account_id: str) -> AuditEntry | None:
        return latest(await self.all(account_id))

    async def all(self, account_id: str) -> list[AuditEntry]:
        path = self.path_for(account_id)
        if not await aiofiles.os.path.exists(path):
            return []

        entries: list[AuditEntry] = []
        line_number = 0
        async with aiofiles.open(path, mode="r", encoding="utf-8") as file_handle:
            async for line in file_handle:
                line_number += 1
                stripped = line.strip()
                if not stripped:
                    continue
                entry = _load_line(stripped, path, line_number)
                if entry is not None:
                    entries.append(entry)
        return entries

    async def count(self, account_id: str) -> int:
        return len(await self.all(account_id))

    async def accounts(self) -> list[str]:
        if not await aiofiles.os.path.isdir(self._directory):
            return []
        names = await aiofiles.os.listdir(self._directory)
        return sorted(name[: -len(_SUFFIX)] for name in names if name.endswith(_SUFFIX))
