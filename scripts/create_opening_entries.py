"""
Opening balance migration for one business.

Reads the business's operational tables, builds the opening-balance
plan and posts it to the journal in a single database transaction.

Usage:
    python scripts/create_opening_entries.py BUSINESS_ID USER_ID
    python scripts/create_opening_entries.py BUSINESS_ID USER_ID --dry-run
    python scripts/create_opening_entries.py BUSINESS_ID USER_ID --output reports/
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import uuid
from pathlib import Path

logger = logging.getLogger("bizzytrack.migration")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create opening balance journal entries for a business.",
    )
    parser.add_argument("business_id", type=uuid.UUID)
    parser.add_argument("user_id")
    parser.add_argument("--currency", default="UGX")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Calculate and print the plan without posting anything.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Directory for the JSON plan/result report.",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def _setup_django() -> None:
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
    import django

    django.setup()


def build_migrator(business_id: uuid.UUID, *, currency: str):
    from core.commands.bus import CommandBus
    from core.commands.dispatcher import CommandDispatcher
    from core.context.business_context import BusinessContext
    from core.events import EventTypeRegistry, build_event
    from engines.accounting.migration import OpeningBalanceMigrator
    from engines.accounting.opening_balances import OpeningBalanceCalculator
    from engines.accounting.persistence import (
        SqlJournalWriter,
        SqlMigrationAuditWriter,
    )
    from engines.accounting.services import AccountingService
    from engines.accounting.sources import SqlOpeningBalanceSource

    context = BusinessContext(business_id=business_id)
    registry = EventTypeRegistry()
    writer = SqlJournalWriter()
    command_bus = CommandBus(
        dispatcher=CommandDispatcher(context=context),
        persist_event=writer,
        context=context,
        event_type_registry=registry,
    )
    service = AccountingService(
        business_context=context,
        command_bus=command_bus,
        event_factory=build_event,
        persist_event=writer,
        event_type_registry=registry,
    )
    calculator = OpeningBalanceCalculator(
        SqlOpeningBalanceSource(currency=currency), currency=currency,
    )
    return OpeningBalanceMigrator(
        calculator, service, audit_writer=SqlMigrationAuditWriter(),
    )


def _write_report(output: Path | None, name: str, data: dict) -> None:
    rendered = json.dumps(data, indent=2, sort_keys=True, default=str)
    if output is None:
        print(rendered)
        return
    output.mkdir(parents=True, exist_ok=True)
    path = output / name
    path.write_text(rendered + "\n", encoding="utf-8")
    logger.info("Report written to %s", path)


def main(argv=None) -> int:
    args = _parse_args(argv)
    level = args.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    os.environ["BIZZYTRACK_LOG_LEVEL"] = level
    _setup_django()
    # settings.LOGGING may already be loaded with another level.
    logging.getLogger("bizzytrack").setLevel(level)

    from engines.accounting.migration import MigrationError

    migrator = build_migrator(args.business_id, currency=args.currency)
    try:
        if args.dry_run:
            plan = migrator.plan(args.business_id)
            _write_report(
                args.output, f"opening-plan-{args.business_id}.json", plan.to_dict(),
            )
            return 0

        result = migrator.run(args.business_id, args.user_id)
    except MigrationError as exc:
        logger.error("Migration failed: %s", exc)
        return 1

    _write_report(
        args.output, f"opening-result-{args.business_id}.json", result.to_dict(),
    )
    if not result.is_balanced:
        logger.error(
            "Posted entries are unbalanced by %d",
            result.verification["difference"],
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
