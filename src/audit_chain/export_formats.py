# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Export helpers: render verified chains for third parties.

- CSV:  integrity report with a header row, one row per entry, every field
  quoted. Labels and timestamp display follow a fixed locale table, so the
  same chain always produces the same bytes.
- JSON: the verified entries with their verdicts, 2-space indentation.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from audit_chain.codec import parse_timestamp
from audit_chain.errors import ExportError, MalformedEntryError
from audit_chain.types import VerifiedEntry

# ---------------------------------------------------------------------------
# Locale tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExportLocale:
    """Labels and timestamp layout used by the CSV report."""

    headers: tuple[str, ...]
    verified: str
    tampered: str
    actions: dict[str, str]
    genesis: str
    timestamp_format: str


LOCALES: dict[str, ExportLocale] = {
    "en": ExportLocale(
        headers=(
            "Integrity Status",
            "Date and Time",
            "User",
            "Action",
            "Details",
            "Block Hash",
            "Previous Hash",
        ),
        verified="Verified",
        tampered="Tampered",
        actions={"create": "Create", "update": "Update", "delete": "Delete"},
        genesis="Genesis Block",
        timestamp_format="%Y-%m-%d %H:%M:%S",
    ),
    "pt-BR": ExportLocale(
        headers=(
            "Status de Integridade",
            "Data e Hora",
            "Usuário",
            "Ação",
            "Detalhes",
            "Hash do Bloco",
            "Hash Anterior",
        ),
        verified="Verificado",
        tampered="Adulterado",
        actions={"create": "Criação", "update": "Atualização", "delete": "Exclusão"},
        genesis="Bloco Gênesis",
        timestamp_format="%d/%m/%Y, %H:%M:%S",
    ),
}


def get_locale(name: str) -> ExportLocale:
    try:
        return LOCALES[name]
    except KeyError:
        raise ExportError(
            f"Unsupported export locale {name!r}; expected one of {sorted(LOCALES)}"
        ) from None


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ExportError(f"Unknown export timezone {name!r}") from exc


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def _text(entry: VerifiedEntry, name: str) -> str:
    value = getattr(entry, name, None)
    return "" if value is None else str(value)


def _format_timestamp(entry: VerifiedEntry, locale: ExportLocale, zone: ZoneInfo) -> str:
    raw = getattr(entry, "timestamp", None)
    try:
        moment = parse_timestamp(raw)
    except MalformedEntryError:
        return "" if raw is None else str(raw)
    return moment.astimezone(zone).strftime(locale.timestamp_format)


def _entry_to_csv_row(entry: VerifiedEntry, locale: ExportLocale, zone: ZoneInfo) -> list[str]:
    action = _text(entry, "action")
    previous_hash = getattr(entry, "previous_hash", None)
    return [
        locale.verified if getattr(entry, "valid", False) else locale.tampered,
        _format_timestamp(entry, locale, zone),
        _text(entry, "actor_name"),
        locale.actions.get(action, action),
        _text(entry, "detail"),
        _text(entry, "hash"),
        locale.genesis if previous_hash is None else str(previous_hash),
    ]


def export_verified_csv(
    verified: list[VerifiedEntry],
    locale: str = "en",
    timezone_name: str = "UTC",
) -> str:
    """
    Serialise a verified chain to the CSV integrity report.

    Rows keep the order of ``verified`` (newest first, as returned by
    ``verify_chain``). Columns: integrity status, timestamp, actor name,
    action label, detail, full hash, full previous hash or the genesis
    placeholder. Every field is quoted and embedded quotes are doubled.

    Raises
    ------
    ExportError
        When the locale or timezone is unknown, or a row cannot be rendered.
        No partial output is returned.
    """
    table = get_locale(locale)
    zone = _zone(timezone_name)

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(table.headers)
    try:
        for entry in verified:
            writer.writerow(_entry_to_csv_row(entry, table, zone))
    except (csv.Error, ValueError, OverflowError) as exc:
        raise ExportError(f"Failed to render audit report: {exc}") from exc
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def export_verified_json(verified: list[VerifiedEntry]) -> str:
    """Serialise verified entries, verdicts included, to a JSON array."""
    try:
        return json.dumps(
            [entry.model_dump(mode="json") for entry in verified],
            indent=2,
            ensure_ascii=False,
        )
    except (TypeError, ValueError) as exc:
        raise ExportError(f"Failed to render audit report: {exc}") from exc


# ---------------------------------------------------------------------------
# Unified dispatcher
# ---------------------------------------------------------------------------


def export_verified(
    verified: list[VerifiedEntry],
    export_format: str,
    locale: str = "en",
    timezone_name: str = "UTC",
) -> str:
    """
    Route export to the appropriate format handler.

    Parameters
    ----------
    verified:
        Output of ``verify_chain``.
    export_format:
        ``"csv"`` or ``"json"``.

    Raises
    ------
    ExportError
        When an unsupported format string is supplied.
    """
    if export_format == "csv":
        return export_verified_csv(verified, locale=locale, timezone_name=timezone_name)
    if export_format == "json":
        return export_verified_json(verified)
    raise ExportError(f"Unsupported export format: {export_format!r}")


def export_filename(today: date | datetime, export_format: str = "csv") -> str:
    """Download name for a report produced on ``today``."""
    return f"audit_report_{today.strftime('%Y-%m-%d')}.{export_format}"
