# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

import os
from datetime import timedelta
from typing import Annotated, Literal, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator

from audit_chain.errors import ConfigurationError

DEFAULT_GRACE_PERIOD_HOURS: float = 24

# Substrings the import collaborator writes into the detail of bulk-import
# entries. The first one matches chains already in storage.
DEFAULT_BULK_IMPORT_MARKERS: tuple[str, ...] = ("via arquivo CSV", "via CSV file")

ENV_PREFIX = "AUDIT_CHAIN_"


class AuditChainConfig(BaseModel, frozen=True):
    """
    Configuration shared by the writer, the grace-period filter, and the
    exporter.

    Attributes:
        grace_period_hours: How long entries for bulk-imported transactions
            stay hidden from the default view. The same threshold applies to
            record-level ``imported_at`` markers.
        bulk_import_markers: Detail substrings identifying legacy bulk-import
            entries that carry no structured ``origin`` tag.
        export_locale: Label table used by the CSV exporter.
        export_timezone: IANA zone used to display timestamps in exports.
        serialize_appends: When True, appends to one account are serialised
            in-process so concurrent writers cannot produce sibling entries.
            When False, the unsynchronised tip read of the original write
            protocol is kept.

    Example::

        config = AuditChainConfig(
            grace_period_hours=12,
            export_locale="pt-BR",
            export_timezone="America/Sao_Paulo",
        )
        trail = AuditTrail(config=config)
    """

    grace_period_hours: Annotated[float, Field(gt=0)] = DEFAULT_GRACE_PERIOD_HOURS
    bulk_import_markers: tuple[str, ...] = DEFAULT_BULK_IMPORT_MARKERS
    export_locale: Literal["en", "pt-BR"] = "en"
    export_timezone: str = "UTC"
    serialize_appends: bool = False

    @field_validator("export_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @field_validator("bulk_import_markers")
    @classmethod
    def _check_markers(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if any(not marker for marker in value):
            raise ValueError("bulk import markers must be non-empty strings")
        return value

    @property
    def grace_period(self) -> timedelta:
        return timedelta(hours=self.grace_period_hours)

    @classmethod
    def build(cls, **values: object) -> AuditChainConfig:
        """Validate ``values`` and raise ``ConfigurationError`` on failure."""
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid audit-chain configuration: {exc}") from exc

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AuditChainConfig:
        """
        Build a config from ``AUDIT_CHAIN_*`` environment variables.

        Recognised variables: ``AUDIT_CHAIN_GRACE_PERIOD_HOURS``,
        ``AUDIT_CHAIN_BULK_IMPORT_MARKERS`` (``|``-separated),
        ``AUDIT_CHAIN_EXPORT_LOCALE``, ``AUDIT_CHAIN_EXPORT_TIMEZONE`` and
        ``AUDIT_CHAIN_SERIALIZE_APPENDS`` (``1``/``true``/``yes``).
        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        if f"{ENV_PREFIX}GRACE_PERIOD_HOURS" in env:
            values["grace_period_hours"] = env[f"{ENV_PREFIX}GRACE_PERIOD_HOURS"]
        if f"{ENV_PREFIX}BULK_IMPORT_MARKERS" in env:
            values["bulk_import_markers"] = tuple(
                marker for marker in env[f"{ENV_PREFIX}BULK_IMPORT_MARKERS"].split("|") if marker
            )
        if f"{ENV_PREFIX}EXPORT_LOCALE" in env:
            values["export_locale"] = env[f"{ENV_PREFIX}EXPORT_LOCALE"]
        if f"{ENV_PREFIX}EXPORT_TIMEZONE" in env:
            values["export_timezone"] = env[f"{ENV_PREFIX}EXPORT_TIMEZONE"]
        if f"{ENV_PREFIX}SERIALIZE_APPENDS" in env:
            flag = env[f"{ENV_PREFIX}SERIALIZE_APPENDS"].strip().lower()
            values["serialize_appends"] = flag in {"1", "true", "yes", "on"}

        return cls.build(**values)
