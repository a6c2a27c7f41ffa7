"""
BizzyTrack Accounting Engine — SQL Journal Writer
==================================================
A ``persist_event`` callable that writes posted journal entries into
the operational ledger tables (journal_entries, journal_entry_lines,
audit_logs) on a Django database connection.

It only handles ``accounting.journal.posted.v1``. Wrap calls in
``transaction.atomic()``; the writer itself never commits.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from django.db import connection as default_connection

from core.events.errors import PersistRejection, PersistRejectionCode, PersistResult
from core.primitives.ledger import Money
from engines.accounting.events import ACCOUNTING_JOURNAL_POSTED_V1

logger = logging.getLogger("bizzytrack.migration")

AUDIT_ACTION = "accounting.migration.journal_entry.created"

ACCOUNT_LOOKUP_SQL = """
    SELECT id FROM chart_of_accounts
    WHERE business_id = %s AND account_code = %s
"""

INSERT_ENTRY_SQL = """
    INSERT INTO journal_entries (
        id, business_id, description, journal_date, reference_number,
        reference_type, reference_id, total_amount, status, created_by,
        migration_batch_id
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""

INSERT_LINE_SQL = """
    INSERT INTO journal_entry_lines (
        id, journal_entry_id, business_id, account_id,
        line_type, amount, description
    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
"""

INSERT_AUDIT_SQL = """
    INSERT INTO audit_logs (
        id, business_id, user_id, action, resource_type, resource_id,
        old_values, new_values, metadata
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
"""


def _reject(code: str, message: str) -> PersistResult:
    return PersistResult(
        accepted=False,
        rejection=PersistRejection(code=code, message=message),
    )


class SqlJournalWriter:
    def __init__(self, connection=None):
        self._connection = connection or default_connection

    def __call__(
        self,
        event_data: dict[str, Any],
        context: Any,
        registry: Any,
        **kwargs: Any,
    ) -> PersistResult:
        event_type = event_data.get("event_type")
        if event_type != ACCOUNTING_JOURNAL_POSTED_V1:
            return _reject(
                PersistRejectionCode.UNSUPPORTED_EVENT_TYPE,
                f"SqlJournalWriter cannot store '{event_type}'.",
            )
        if registry is not None and not registry.is_registered(event_type):
            return _reject(
                PersistRejectionCode.UNREGISTERED_EVENT_TYPE,
                f"Event type '{event_type}' is not registered.",
            )

        business_id = event_data["business_id"]
        if context is not None and context.get_active_business_id() != business_id:
            return _reject(
                PersistRejectionCode.BUSINESS_ID_MISMATCH,
                f"Event business_id ({business_id}) does not match active "
                f"context ({context.get_active_business_id()}).",
            )

        payload = event_data["payload"]
        currency = payload["currency"]

        with self._connection.cursor() as cursor:
            account_ids = {}
            for line in payload["lines"]:
                code = line["account_code"]
                if code in account_ids:
                    continue
                cursor.execute(ACCOUNT_LOOKUP_SQL, [str(business_id), code])
                row = cursor.fetchone()
                if row is None:
                    return _reject(
                        PersistRejectionCode.ACCOUNT_NOT_FOUND,
                        f"Account not found: {code} for business {business_id}",
                    )
                account_ids[code] = row[0]

            journal_entry_id = str(uuid.uuid4())
            reference_number = f"JE-MIG-{payload['entry_id']}"
            total = Money(payload["total_amount"], currency).to_major()
            cursor.execute(INSERT_ENTRY_SQL, [
                journal_entry_id,
                str(business_id),
                payload["memo"],
                payload["posted_at"].date(),
                reference_number,
                "migration",
                str(uuid.uuid4()),
                total,
                "posted",
                event_data["actor_id"],
                payload.get("batch_id"),
            ])

            for line in payload["lines"]:
                cursor.execute(INSERT_LINE_SQL, [
                    str(uuid.uuid4()),
                    journal_entry_id,
                    str(business_id),
                    account_ids[line["account_code"]],
                    line["side"].lower(),
                    Money(line["amount"], currency).to_major(),
                    line.get("description") or "",
                ])

            cursor.execute(INSERT_AUDIT_SQL, [
                str(uuid.uuid4()),
                str(business_id),
                event_data["actor_id"],
                AUDIT_ACTION,
                "journal_entry",
                journal_entry_id,
                "{}",
                json.dumps({
                    "description": payload["memo"],
                    "total_amount": str(total),
                    "reference_number": reference_number,
                }),
                json.dumps({
                    "migration_batch_id": payload.get("batch_id"),
                    "entry_id": payload["entry_id"],
                }),
            ])

        logger.info(
            "Wrote journal entry %s (%s) for business %s",
            reference_number, journal_entry_id, business_id,
        )
        return PersistResult(accepted=True)


INSERT_MIGRATION_AUDIT_SQL = """
    INSERT INTO data_migration_audit (
        id, migration_batch_id, business_id, migration_type,
        description, records_processed, total_amount,
        status, started_at, completed_at, created_by,
        error_details
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""


class SqlMigrationAuditWriter:
    """Writes one data_migration_audit row per migration run."""

    def __init__(self, connection=None):
        self._connection = connection or default_connection

    def __call__(self, audit) -> None:
        error_details = (
            json.dumps(audit.error_details) if audit.error_details else None
        )
        with self._connection.cursor() as cursor:
            cursor.execute(INSERT_MIGRATION_AUDIT_SQL, [
                str(uuid.uuid4()),
                audit.batch_id,
                str(audit.business_id),
                audit.migration_type,
                audit.description,
                audit.records_processed,
                Money(audit.total_amount, audit.currency).to_major(),
                audit.status,
                audit.started_at,
                audit.completed_at,
                audit.user_id,
                error_details,
            ])
        logger.info(
            "Recorded %s migration audit for batch %s",
            audit.status, audit.batch_id,
        )
