# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
"""
Tests for the AuditTrail facade, AuditQuery and AuditChainConfig.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import pytest

from audit_chain.config import AuditChainConfig
from audit_chain.errors import ConfigurationError, InvalidEntryError, PersistenceError
from audit_chain.query import AuditQuery, apply_filter
from audit_chain.storage.memory import MemoryStorage
from audit_chain.trail import AuditTrail
from audit_chain.types import Actor, AuditEntry, AuditFilter

from conftest import ACCOUNT, NOW, FixedClock

MEMBER = Actor(id="user-member", name="Caio Lima")


class BrokenStorage(MemoryStorage):
    async def all(self, account_id: str) -> list[AuditEntry]:
        raise OSError("read failed")

    async def append(self, account_id: str, entry: AuditEntry) -> AuditEntry:
        raise OSError("write failed")

    async def count(self, account_id: str) -> int:
        raise OSError("count failed")


def populate(trail: AuditTrail, owner: Actor) -> list[AuditEntry]:
    """Five entries, two actors, one minute apart."""
    rows = [
        (owner, "create", "transaction", "txn-1", 'Created transaction "Rent" for R$ 1500.00.'),
        (MEMBER, "create", "goal", "goal-1", 'Goal "Trip to Lisbon" was created.'),
        (owner, "update", "budget", "bud-1", 'Budget "Groceries" limit changed to R$ 800.00.'),
        (MEMBER, "delete", "transaction", "txn-1", 'Deleted transaction "Rent".'),
        (owner, "update", "plan", "plan-1", "Plan upgraded to Family."),
    ]

    async def _write() -> list[AuditEntry]:
        entries = []
        for index, (actor, action, kind, entity_id, detail) in enumerate(rows):
            entries.append(
                await trail.record_mutation(
                    ACCOUNT, actor, action, kind, entity_id, detail,
                    timestamp=NOW + timedelta(minutes=index),
                )
            )
        return entries

    return asyncio.run(_write())


# ---------------------------------------------------------------------------
# TestAuditTrail
# ---------------------------------------------------------------------------


class TestAuditTrail:
    def test_record_mutation_snapshots_actor(self, trail: AuditTrail, owner: Actor) -> None:
        entry = asyncio.run(trail.record_mutation(ACCOUNT, owner, "create", "goal", "g-1", "Goal created."))
        assert (entry.actor_id, entry.actor_name) == ("user-owner", "Ana Souza")
        assert entry.timestamp == "2026-03-10T12:00:00.000Z"

    def test_get_chain_returns_storage_order(self, trail: AuditTrail, owner: Actor) -> None:
        entries = populate(trail, owner)
        assert asyncio.run(trail.get_chain(ACCOUNT)) == entries

    def test_verified_chain_is_newest_first_and_valid(self, trail: AuditTrail, owner: Actor) -> None:
        entries = populate(trail, owner)
        verified = asyncio.run(trail.get_verified_chain(ACCOUNT))
        assert [entry.id for entry in verified] == [entry.id for entry in reversed(entries)]
        assert all(entry.valid for entry in verified)

    def test_summarize_reports_tampering(
        self, trail: AuditTrail, storage: MemoryStorage, owner: Actor
    ) -> None:
        entries = populate(trail, owner)
        altered = entries[2].model_copy(update={"detail": 'Budget "Groceries" limit changed to R$ 8000.00.'})
        storage.replace(ACCOUNT, entries[:2] + [altered] + entries[3:])

        summary = asyncio.run(trail.summarize(ACCOUNT))
        assert summary.total == 5
        assert summary.tampered_ids == [altered.id]

    def test_export_is_utf8_csv_of_full_chain(
        self, trail: AuditTrail, owner: Actor, clock: FixedClock
    ) -> None:
        populate(trail, owner)
        asyncio.run(
            trail.record_mutation(
                ACCOUNT, owner, "create", "transaction", "txn-9",
                'Created transaction "Pharmacy" for R$ 45.00 via arquivo CSV.',
                timestamp=NOW + timedelta(minutes=10),
            )
        )
        report = asyncio.run(trail.export_verified_csv(ACCOUNT))
        assert isinstance(report, bytes)
        text = report.decode("utf-8")
        # Grace period does not apply to exports.
        assert len(text.splitlines()) == 7
        assert "Pharmacy" in text
        assert len(asyncio.run(trail.get_visible_chain(ACCOUNT))) == 5

    def test_export_uses_configured_locale(self, storage: MemoryStorage, clock: FixedClock, owner: Actor) -> None:
        config = AuditChainConfig(export_locale="pt-BR", export_timezone="America/Sao_Paulo")
        trail = AuditTrail(storage=storage, config=config, clock=clock)
        asyncio.run(trail.record_mutation(ACCOUNT, owner, "create", "goal", "g-1", "Meta criada."))
        text = asyncio.run(trail.export_verified_csv(ACCOUNT)).decode("utf-8")
        assert '"Verificado","10/03/2026, 09:00:00"' in text

    def test_export_arguments_override_config(self, trail: AuditTrail, owner: Actor) -> None:
        asyncio.run(trail.record_mutation(ACCOUNT, owner, "create", "goal", "g-1", "Goal created."))
        text = asyncio.run(trail.export_verified_csv(ACCOUNT, locale="pt-BR")).decode("utf-8")
        assert text.startswith('"Status de Integridade"')

    def test_count(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        assert asyncio.run(trail.count(ACCOUNT)) == 5
        assert asyncio.run(trail.count("other")) == 0

    def test_invalid_action_propagates(self, trail: AuditTrail, owner: Actor) -> None:
        with pytest.raises(InvalidEntryError):
            asyncio.run(trail.record_mutation(ACCOUNT, owner, "restore", "goal", "g-1", "Restored."))

    def test_try_record_mutation_logs_and_returns_none(
        self, clock: FixedClock, owner: Actor, caplog: pytest.LogCaptureFixture
    ) -> None:
        trail = AuditTrail(storage=BrokenStorage(), clock=clock)
        with caplog.at_level(logging.ERROR, logger="audit_chain.trail"):
            result = asyncio.run(
                trail.try_record_mutation(ACCOUNT, owner, "create", "goal", "g-1", "Goal created.")
            )
        assert result is None
        assert "Audit entry not recorded" in caplog.text

    def test_try_record_mutation_returns_entry_on_success(self, trail: AuditTrail, owner: Actor) -> None:
        entry = asyncio.run(trail.try_record_mutation(ACCOUNT, owner, "create", "goal", "g-1", "Goal created."))
        assert entry is not None
        assert entry.previous_hash is None

    def test_read_failure_raises_persistence_error(self, clock: FixedClock) -> None:
        trail = AuditTrail(storage=BrokenStorage(), clock=clock)
        with pytest.raises(PersistenceError) as excinfo:
            asyncio.run(trail.get_verified_chain(ACCOUNT))
        assert excinfo.value.operation == "read"

    def test_count_failure_raises_persistence_error(self, clock: FixedClock) -> None:
        trail = AuditTrail(storage=BrokenStorage(), clock=clock)
        with pytest.raises(PersistenceError) as excinfo:
            asyncio.run(trail.count(ACCOUNT))
        assert excinfo.value.operation == "read"
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_serialize_appends_reaches_the_writer(self, storage: MemoryStorage, clock: FixedClock) -> None:
        trail = AuditTrail(storage=storage, config=AuditChainConfig(serialize_appends=True), clock=clock)
        assert trail._writer.serialize_appends is True

    def test_serialized_trail_records_from_repeated_event_loops(
        self, storage: MemoryStorage, clock: FixedClock, owner: Actor
    ) -> None:
        trail = AuditTrail(storage=storage, config=AuditChainConfig(serialize_appends=True), clock=clock)

        async def _burst(offset: int) -> list[AuditEntry | None]:
            return await asyncio.gather(
                *(
                    trail.try_record_mutation(
                        ACCOUNT, owner, "create", "goal", f"g-{offset + index}", "Goal created.",
                        timestamp=NOW + timedelta(seconds=offset + index),
                    )
                    for index in range(3)
                )
            )

        results = asyncio.run(_burst(0)) + asyncio.run(_burst(10))
        assert all(entry is not None for entry in results)
        verified = asyncio.run(trail.get_verified_chain(ACCOUNT))
        assert len(verified) == 6
        assert all(entry.valid for entry in verified)


# ---------------------------------------------------------------------------
# TestAuditQuery
# ---------------------------------------------------------------------------


class TestAuditQuery:
    def test_search_is_case_insensitive_on_detail(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        results = asyncio.run(AuditQuery(trail).find(ACCOUNT, AuditFilter(search="RENT")))
        assert [entry.entity_id for entry in results] == ["txn-1", "txn-1"]

    def test_action_and_kind_filters(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        query = AuditQuery(trail)
        updates = asyncio.run(query.find(ACCOUNT, AuditFilter(action="update")))
        assert [entry.entity_kind for entry in updates] == ["plan", "budget"]
        goals = asyncio.run(query.find(ACCOUNT, AuditFilter(entity_kind="goal")))
        assert len(goals) == 1

    def test_find_by_actor(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        results = asyncio.run(AuditQuery(trail).find_by_actor(ACCOUNT, MEMBER.id))
        assert {entry.actor_name for entry in results} == {"Caio Lima"}
        assert len(results) == 2
        limited = asyncio.run(AuditQuery(trail).find_by_actor(ACCOUNT, owner.id, limit=1))
        assert [entry.entity_id for entry in limited] == ["plan-1"]

    def test_find_tampered(self, trail: AuditTrail, storage: MemoryStorage, owner: Actor) -> None:
        entries = populate(trail, owner)
        altered = entries[1].model_copy(update={"actor_name": "Mallory"})
        storage.replace(ACCOUNT, entries[:1] + [altered] + entries[2:])
        tampered = asyncio.run(AuditQuery(trail).find_tampered(ACCOUNT))
        assert [entry.id for entry in tampered] == [altered.id]

    def test_date_range_is_inclusive(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        window = AuditFilter(start=NOW + timedelta(minutes=1), end=NOW + timedelta(minutes=3))
        results = asyncio.run(AuditQuery(trail).find(ACCOUNT, window))
        assert [entry.entity_id for entry in results] == ["txn-1", "bud-1", "goal-1"]

    def test_offset_and_limit(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        verified = asyncio.run(trail.get_verified_chain(ACCOUNT))
        assert apply_filter(verified, AuditFilter(offset=1, limit=2)) == verified[1:3]

    def test_pagination(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        query = AuditQuery(trail)
        first = asyncio.run(query.page(ACCOUNT, page=1, per_page=2))
        last = asyncio.run(query.page(ACCOUNT, page=3, per_page=2))
        assert len(first.entries) == 2
        assert first.total_pages == 3
        assert first.total_matching == first.total_visible == 5
        assert [entry.entity_id for entry in last.entries] == ["txn-1"]

    def test_page_filters_ignore_limit_and_offset(self, trail: AuditTrail, owner: Actor) -> None:
        populate(trail, owner)
        page = asyncio.run(AuditQuery(trail).page(ACCOUNT, AuditFilter(actor_id=owner.id, limit=1, offset=2)))
        assert page.total_matching == 3
        assert len(page.entries) == 3

    def test_invalid_page_is_rejected(self, trail: AuditTrail) -> None:
        with pytest.raises(ValueError):
            asyncio.run(AuditQuery(trail).page(ACCOUNT, page=0))


# ---------------------------------------------------------------------------
# TestAuditChainConfig
# ---------------------------------------------------------------------------


class TestAuditChainConfig:
    def test_defaults(self) -> None:
        config = AuditChainConfig()
        assert config.grace_period == timedelta(hours=24)
        assert config.export_locale == "en"
        assert config.export_timezone == "UTC"
        assert config.serialize_appends is False
        assert "via arquivo CSV" in config.bulk_import_markers

    def test_from_env(self) -> None:
        config = AuditChainConfig.from_env(
            {
                "AUDIT_CHAIN_GRACE_PERIOD_HOURS": "12",
                "AUDIT_CHAIN_BULK_IMPORT_MARKERS": "via arquivo CSV|imported from bank",
                "AUDIT_CHAIN_EXPORT_LOCALE": "pt-BR",
                "AUDIT_CHAIN_EXPORT_TIMEZONE": "America/Sao_Paulo",
                "AUDIT_CHAIN_SERIALIZE_APPENDS": "yes",
            }
        )
        assert config.grace_period == timedelta(hours=12)
        assert config.bulk_import_markers == ("via arquivo CSV", "imported from bank")
        assert config.export_locale == "pt-BR"
        assert config.export_timezone == "America/Sao_Paulo"
        assert config.serialize_appends is True

    def test_from_env_ignores_unrelated_variables(self) -> None:
        assert AuditChainConfig.from_env({"HOME": "/root"}) == AuditChainConfig()

    def test_unknown_timezone_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            AuditChainConfig.from_env({"AUDIT_CHAIN_EXPORT_TIMEZONE": "Nowhere/Special"})
        assert excinfo.value.code == "CONFIGURATION_ERROR"

    def test_non_positive_grace_period_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            AuditChainConfig.build(grace_period_hours=0)

    def test_unsupported_locale_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            AuditChainConfig.build(export_locale="de")

    def test_grace_period_reaches_the_filter(self, storage: MemoryStorage, clock: FixedClock) -> None:
        trail = AuditTrail(storage=storage, config=AuditChainConfig(grace_period_hours=2), clock=clock)
        assert trail.grace.grace_period == timedelta(hours=2)
