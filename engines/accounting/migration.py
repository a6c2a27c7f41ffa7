"""
BizzyTrack Accounting Engine — Opening Balance Migration
=========================================================
Calculates the opening-balance plan for a business and posts its
entries through the AccountingService as one batch inside a single
database transaction.

Every run, successful or not, leaves one migration audit record.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, ContextManager, Optional, Tuple

from django.db import DatabaseError, transaction

from core.audit import AuditLog, create_audit_entry
from core.time import Clock, SystemClock
from engines.accounting.commands import JournalPostRequest
from engines.accounting.opening_balances import (
    OpeningBalanceCalculator,
    OpeningBalancePlan,
)
from engines.accounting.services import AccountingService, JournalBatchError

logger = logging.getLogger("bizzytrack.migration")

MIGRATION_TYPE = "opening_balances"
MIGRATION_DESCRIPTION = "Legacy Data to Accounting Migration"
MIGRATION_AUDIT_ACTION = "accounting.migration.opening_balances"

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class MigrationError(Exception):
    """The migration did not complete. Journal batches roll back as a unit."""


@dataclass(frozen=True)
class MigrationAudit:
    """One row of data_migration_audit. ``total_amount`` is total assets."""

    batch_id: str
    business_id: uuid.UUID
    user_id: str
    status: str
    records_processed: int
    total_amount: int
    currency: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    error_details: Optional[dict] = None
    migration_type: str = MIGRATION_TYPE
    description: str = MIGRATION_DESCRIPTION

    def __post_init__(self):
        if self.status not in (STATUS_COMPLETED, STATUS_FAILED):
            raise ValueError(f"Unknown migration status '{self.status}'.")

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_COMPLETED

    def to_dict(self) -> dict:
        return {
            "migration_batch_id": self.batch_id,
            "business_id": str(self.business_id),
            "migration_type": self.migration_type,
            "description": self.description,
            "records_processed": self.records_processed,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "created_by": self.user_id,
            "error_details": self.error_details,
        }


MigrationAuditWriter = Callable[[MigrationAudit], None]


@dataclass(frozen=True)
class MigrationResult:
    business_id: uuid.UUID
    user_id: str
    batch_id: str
    executed_at: datetime
    plan: OpeningBalancePlan
    created_entries: Tuple[dict, ...]
    verification: dict

    @property
    def is_balanced(self) -> bool:
        return self.verification["is_balanced"]

    def to_dict(self) -> dict:
        return {
            "migration_batch_id": self.batch_id,
            "business_id": str(self.business_id),
            "user_id": self.user_id,
            "executed_at": self.executed_at.isoformat(),
            "created_entries": list(self.created_entries),
            "verification": dict(self.verification),
        }


class OpeningBalanceMigrator:
    """
    Usage:
        migrator = OpeningBalanceMigrator(calculator, accounting_service)
        result = migrator.run(business_id, user_id)

    ``atomic`` defaults to ``django.db.transaction.atomic``.

    ``audit_writer`` stores the migration audit record (see
    ``SqlMigrationAuditWriter``); ``audit_log`` gets a matching
    ``AuditEntry``. Both are written after the batch transaction has
    committed or rolled back.
    """

    def __init__(
        self,
        calculator: OpeningBalanceCalculator,
        accounting_service: AccountingService,
        *,
        atomic: Optional[Callable[[], ContextManager]] = None,
        clock: Optional[Clock] = None,
        audit_writer: Optional[MigrationAuditWriter] = None,
        audit_log: Optional[AuditLog] = None,
    ):
        self._calculator = calculator
        self._service = accounting_service
        self._atomic = atomic or transaction.atomic
        self._clock = clock or SystemClock()
        self._audit_writer = audit_writer
        self._audit_log = audit_log

    def plan(self, business_id: uuid.UUID,
             batch_id: Optional[str] = None) -> OpeningBalancePlan:
        try:
            plan = self._calculator.calculate(business_id, batch_id=batch_id)
        except DatabaseError as exc:
            logger.error(
                "Could not read operational balances for %s: %s",
                business_id, exc,
            )
            raise MigrationError(
                f"Could not read operational balances for business "
                f"{business_id}: {exc}"
            ) from exc

        equation = plan.accounting_equation()
        logger.info(
            "Opening balance plan for %s: %d entr%s, debits=%d credits=%d",
            business_id, len(plan.entries),
            "y" if len(plan.entries) == 1 else "ies",
            equation["total_debits"], equation["total_credits"],
        )
        return plan

    def run(self, business_id: uuid.UUID, user_id: str) -> MigrationResult:
        logger.info("Starting opening balance migration for %s", business_id)
        batch_id = str(uuid.uuid4())
        started_at = self._clock.now_utc()
        plan = None
        try:
            plan = self.plan(business_id, batch_id=batch_id)
            result = self._post(plan, business_id, user_id, started_at)
        except MigrationError as exc:
            self._write_audit(MigrationAudit(
                batch_id=batch_id,
                business_id=business_id,
                user_id=str(user_id),
                status=STATUS_FAILED,
                records_processed=0,
                total_amount=plan.total_assets if plan is not None else 0,
                currency=self._calculator.currency,
                started_at=started_at,
                error_details={
                    "message": str(exc),
                    "type": type(exc.__cause__ or exc).__name__,
                },
            ))
            raise

        self._write_audit(MigrationAudit(
            batch_id=batch_id,
            business_id=business_id,
            user_id=str(user_id),
            status=STATUS_COMPLETED,
            records_processed=result.verification["entry_count"],
            total_amount=plan.total_assets,
            currency=plan.currency,
            started_at=started_at,
            completed_at=self._clock.now_utc(),
        ))
        return result

    def _post(self, plan: OpeningBalancePlan, business_id: uuid.UUID,
              user_id: str, now: datetime) -> MigrationResult:
        if not plan.entries:
            raise MigrationError(
                f"Nothing to migrate for business {business_id}: "
                f"every balance is zero."
            )

        correlation_id = uuid.uuid4()
        commands = [
            JournalPostRequest.from_entry(planned.entry).to_command(
                business_id=business_id,
                actor_type="HUMAN",
                actor_id=str(user_id),
                command_id=uuid.uuid4(),
                correlation_id=correlation_id,
                issued_at=now,
            )
            for planned in plan.entries
        ]

        try:
            self._service.post_batch(commands, atomic=self._atomic)
        except (JournalBatchError, DatabaseError) as exc:
            logger.error("Migration of %s rolled back: %s", business_id, exc)
            raise MigrationError(str(exc)) from exc

        totals = self._service.projection_store.batch_totals(
            business_id, plan.batch_id
        )
        verification = {
            "entry_count": totals["entry_count"],
            "expected_count": len(plan.entries),
            "total_debits": totals["total_debits"],
            "total_credits": totals["total_credits"],
            "is_balanced": totals["is_balanced"],
            "difference": abs(totals["total_debits"] - totals["total_credits"]),
        }
        created = tuple(
            {
                "entry_id": p.entry.entry_id,
                "entry_number": p.entry_number,
                "description": p.entry.memo,
                "total_amount": p.entry.total_debits.amount,
            }
            for p in plan.entries
        )

        logger.info(
            "Migration of %s complete: %d/%d entries, %s",
            business_id, verification["entry_count"],
            verification["expected_count"],
            "BALANCED" if verification["is_balanced"] else "UNBALANCED",
        )
        return MigrationResult(
            business_id=business_id,
            user_id=str(user_id),
            batch_id=plan.batch_id,
            executed_at=now,
            plan=plan,
            created_entries=created,
            verification=verification,
        )

    def _write_audit(self, audit: MigrationAudit) -> None:
        if self._audit_log is not None:
            self._audit_log.record(create_audit_entry(
                actor_id=audit.user_id,
                actor_type="HUMAN",
                action=MIGRATION_AUDIT_ACTION,
                resource_type="data_migration",
                resource_id=audit.batch_id,
                business_id=audit.business_id,
                status="EXECUTED" if audit.succeeded else "ERROR",
                occurred_at=audit.completed_at or self._clock.now_utc(),
                metadata=audit.to_dict(),
            ))
        if self._audit_writer is None:
            return
        try:
            self._audit_writer(audit)
        except DatabaseError as exc:
            if audit.succeeded:
                logger.error(
                    "Batch %s was posted but its audit record failed: %s",
                    audit.batch_id, exc,
                )
                raise MigrationError(
                    f"Batch {audit.batch_id} was posted but its audit "
                    f"record could not be written: {exc}"
                ) from exc
            # The run already failed; keep its error as the one reported.
            logger.exception(
                "Could not write failed-migration audit for batch %s",
                audit.batch_id,
            )
