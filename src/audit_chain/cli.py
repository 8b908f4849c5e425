# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2026 MuVeraAI Corporation

"""
Command-line access to chains held in a FileStorage directory.

Usage::

    # Per-row verdicts; exits 1 when any entry is tampered
    audit-chain verify --storage ./audit --account acct-1

    # CSV integrity report
    audit-chain export --storage ./audit --account acct-1 --locale pt-BR \\
        --timezone America/Sao_Paulo --output report.csv
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from audit_chain.config import AuditChainConfig
from audit_chain.errors import AuditChainError
from audit_chain.export_formats import LOCALES, export_filename
from audit_chain.storage.file import FileStorage
from audit_chain.trail import AuditTrail
from audit_chain.types import VerifiedEntry


def _short(value: str | None) -> str:
    return "genesis" if value is None else value[:16]


def _render_row(entry: VerifiedEntry) -> str:
    status = "OK      " if entry.valid else "TAMPERED"
    issue = f"  [{entry.issue}]" if entry.issue else ""
    return (
        f"{status} {getattr(entry, 'timestamp', '?')}  {getattr(entry, 'actor_name', '?')}  "
        f"{getattr(entry, 'action', '?')} {getattr(entry, 'entity_kind', '?')}  "
        f"hash={_short(getattr(entry, 'hash', None))} prev={_short(getattr(entry, 'previous_hash', None))}"
        f"{issue}"
    )


async def _verify(trail: AuditTrail, account_id: str, show_valid: bool) -> int:
    verified = await trail.get_verified_chain(account_id)
    for entry in verified:
        if show_valid or not entry.valid:
            print(_render_row(entry))

    tampered = sum(1 for entry in verified if not entry.valid)
    print(f"{len(verified)} entries, {tampered} tampered", file=sys.stderr)
    return 1 if tampered else 0


async def _export(
    trail: AuditTrail,
    account_id: str,
    output: str | None,
    locale: str | None,
    timezone_name: str | None,
) -> int:
    report = await trail.export_verified_csv(account_id, locale=locale, timezone_name=timezone_name)
    if output == "-":
        sys.stdout.write(report.decode("utf-8"))
        return 0
    path = Path(output) if output else Path(export_filename(datetime.now(tz=timezone.utc)))
    path.write_bytes(report)
    print(f"Report written to {path}", file=sys.stderr)
    return 0


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audit-chain",
        description="Verify and export tamper-evident audit chains.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    verify = commands.add_parser("verify", help="Verify one account's chain.")
    verify.add_argument("--storage", required=True, help="FileStorage directory.")
    verify.add_argument("--account", required=True, help="Account id.")
    verify.add_argument(
        "--show-valid",
        action="store_true",
        help="Print valid entries too (tampered entries are always printed).",
    )

    export = commands.add_parser("export", help="Export one account's chain as CSV.")
    export.add_argument("--storage", required=True, help="FileStorage directory.")
    export.add_argument("--account", required=True, help="Account id.")
    export.add_argument(
        "--output",
        default=None,
        help="Destination file, or '-' for stdout (default: audit_report_<date>.csv).",
    )
    export.add_argument("--locale", choices=sorted(LOCALES), default=None)
    export.add_argument("--timezone", default=None, help="IANA zone for displayed timestamps.")
    return parser


def main(argv: list[str] | None = None) -> int:
    arguments = _build_argument_parser().parse_args(argv)
    if arguments.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)

    try:
        trail = AuditTrail(FileStorage(arguments.storage), config=AuditChainConfig.from_env())
        if arguments.command == "verify":
            return asyncio.run(_verify(trail, arguments.account, arguments.show_valid))
        return asyncio.run(
            _export(trail, arguments.account, arguments.output, arguments.locale, arguments.timezone)
        )
    except AuditChainError as exc:
        print(f"Error [{exc.code}]: {exc.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
