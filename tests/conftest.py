# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""Shared fixtures for audit-chain tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from audit_chain.chain import ChainWriter
from audit_chain.config import AuditChainConfig
from audit_chain.storage.memory import MemoryStorage
from audit_chain.trail import AuditTrail
from audit_chain.types import Actor, AuditEntry

ACCOUNT = "acct-001"
NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Controllable clock: returns ``current`` until advanced."""

    def __init__(self, current: datetime = NOW) -> None:
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current = self.current + timedelta(**delta)


def write_chain(writer: ChainWriter, count: int, start: datetime = NOW, account_id: str = ACCOUNT) -> list[AuditEntry]:
    """Append ``count`` consecutive entries one minute apart."""

    async def _write() -> list[AuditEntry]:
        entries = []
        for index in range(count):
            entries.append(
                await writer.append(
                    account_id,
                    "user-owner",
                    "Ana Souza",
                    "create" if index % 3 == 0 else "update",
                    "transaction",
                    f"txn-{index:03d}",
                    f'Created transaction "Item {index}" for R$ {index * 10}.00.',
                    timestamp=start + timedelta(minutes=index),
                )
            )
        return entries

    return asyncio.run(_write())


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def writer(storage: MemoryStorage, clock: FixedClock) -> ChainWriter:
    return ChainWriter(storage, clock=clock)


@pytest.fixture
def trail(storage: MemoryStorage, clock: FixedClock) -> AuditTrail:
    return AuditTrail(storage=storage, config=AuditChainConfig(), clock=clock)


@pytest.fixture
def owner() -> Actor:
    return Actor(id="user-owner", name="Ana Souza")
