"""
BizzyTrack — Accounting SQL Adapter Tests
==========================================
SqlOpeningBalanceSource, SqlJournalWriter and SqlMigrationAuditWriter
against the test database.
"""

import json
import uuid
from datetime import datetime, timezone

import pytest
from django.db import DatabaseError, connection, transaction

from core.commands import CommandBus, CommandDispatcher
from core.context import BusinessContext
from core.events import EventTypeRegistry, build_event
from core.time import FixedClock
from engines.accounting.commands import JournalPostRequest
from engines.accounting.events import build_journal_posted_payload
from engines.accounting.migration import MigrationError, OpeningBalanceMigrator
from engines.accounting.opening_balances import OpeningBalanceCalculator
from engines.accounting.persistence import SqlJournalWriter, SqlMigrationAuditWriter
from engines.accounting.services import AccountingService
from engines.accounting.sources import SqlOpeningBalanceSource

pytestmark = pytest.mark.django_db

BIZ = uuid.uuid4()
OTHER = uuid.uuid4()
NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)

SCHEMA = [
    """CREATE TABLE money_wallets (
        id INTEGER PRIMARY KEY, business_id TEXT, current_balance NUMERIC,
        is_active BOOLEAN)""",
    """CREATE TABLE fixed_assets (
        id INTEGER PRIMARY KEY, business_id TEXT, current_value NUMERIC,
        is_active BOOLEAN)""",
    """CREATE TABLE inventory_items (
        id INTEGER PRIMARY KEY, business_id TEXT, cost_price NUMERIC,
        current_stock NUMERIC, is_active BOOLEAN)""",
    """CREATE TABLE invoices (
        id INTEGER PRIMARY KEY, business_id TEXT, balance_due NUMERIC,
        status TEXT)""",
    """CREATE TABLE purchase_orders (
        id INTEGER PRIMARY KEY, business_id TEXT, total_amount NUMERIC,
        status TEXT)""",
    """CREATE TABLE products (
        id INTEGER PRIMARY KEY, business_id TEXT, cost_price NUMERIC)""",
    """CREATE TABLE pos_transactions (
        id INTEGER PRIMARY KEY, business_id TEXT, final_amount NUMERIC,
        status TEXT)""",
    """CREATE TABLE pos_transaction_items (
        id INTEGER PRIMARY KEY, business_id TEXT, pos_transaction_id INTEGER,
        product_id INTEGER, item_type TEXT, quantity NUMERIC,
        total_price NUMERIC)""",
    """CREATE TABLE expenses (
        id INTEGER PRIMARY KEY, business_id TEXT, amount NUMERIC, status TEXT)""",
    """CREATE TABLE chart_of_accounts (
        id TEXT PRIMARY KEY, business_id TEXT, account_code TEXT)""",
    """CREATE TABLE journal_entries (
        id TEXT PRIMARY KEY, business_id TEXT, description TEXT,
        journal_date DATE, reference_number TEXT, reference_type TEXT,
        reference_id TEXT, total_amount NUMERIC, status TEXT,
        created_by TEXT, migration_batch_id TEXT)""",
    """CREATE TABLE journal_entry_lines (
        id TEXT PRIMARY KEY, journal_entry_id TEXT, business_id TEXT,
        account_id TEXT, line_type TEXT, amount NUMERIC, description TEXT)""",
    """CREATE TABLE audit_logs (
        id TEXT PRIMARY KEY, business_id TEXT, user_id TEXT, action TEXT,
        resource_type TEXT, resource_id TEXT, old_values TEXT,
        new_values TEXT, metadata TEXT)""",
    """CREATE TABLE data_migration_audit (
        id TEXT PRIMARY KEY, migration_batch_id TEXT, business_id TEXT,
        migration_type TEXT, description TEXT, records_processed INTEGER,
        total_amount NUMERIC, status TEXT, started_at TIMESTAMP,
        completed_at TIMESTAMP, created_by TEXT, error_details TEXT)""",
]

ACCOUNT_CODES = ("1110", "1200", "1300", "2100", "3100",
                 "4100", "4200", "5100", "5200")


def execute(sql, params=None):
    with connection.cursor() as cursor:
        cursor.execute(sql, params or [])


def fetchall(sql, params=None):
    with connection.cursor() as cursor:
        cursor.execute(sql, params or [])
        return cursor.fetchall()


@pytest.fixture
def schema():
    for statement in SCHEMA:
        execute(statement)


@pytest.fixture
def operational_data(schema):
    biz = str(BIZ)
    execute("INSERT INTO money_wallets VALUES (1, %s, 1500.50, 1), "
            "(2, %s, 250.25, 1), (3, %s, 999, 0)", [biz, biz, biz])
    execute("INSERT INTO money_wallets VALUES (4, %s, 77, 1)", [str(OTHER)])
    execute("INSERT INTO fixed_assets VALUES (1, %s, 10000, 1)", [biz])
    execute("INSERT INTO inventory_items VALUES (1, %s, 2.5, 100, 1), "
            "(2, %s, 10, 3, 0)", [biz, biz])
    execute("INSERT INTO invoices VALUES (1, %s, 400, 'sent'), "
            "(2, %s, 100, 'paid'), (3, %s, 0, 'overdue')", [biz, biz, biz])
    execute("INSERT INTO purchase_orders VALUES (1, %s, 600, 'ordered'), "
            "(2, %s, 50, 'cancelled')", [biz, biz])
    execute("INSERT INTO products VALUES (1, %s, 4)", [biz])
    execute("INSERT INTO pos_transactions VALUES (1, %s, 330, 'completed'), "
            "(2, %s, 80, 'void')", [biz, biz])
    execute("INSERT INTO pos_transaction_items VALUES "
            "(1, %s, 1, 1, 'product', 20, 200), "
            "(2, %s, 1, NULL, 'service', 1, 80), "
            "(3, %s, 1, NULL, 'equipment_hire', 1, 40), "
            "(4, %s, 2, 1, 'product', 5, 80)", [biz, biz, biz, biz])
    execute("INSERT INTO expenses VALUES (1, %s, 120, 'paid'), "
            "(2, %s, 60, 'pending')", [biz, biz])


@pytest.fixture
def chart(schema):
    for code in ACCOUNT_CODES:
        execute("INSERT INTO chart_of_accounts VALUES (%s, %s, %s)",
                [f"acc-{code}", str(BIZ), code])


class TestSqlOpeningBalanceSource:
    def test_aggregates(self, operational_data):
        source = SqlOpeningBalanceSource(currency="UGX")

        cash = source.cash(BIZ)
        assert cash.amount == 175_075
        assert cash.record_count == 2
        assert source.fixed_assets(BIZ).amount == 1_000_000
        assert source.inventory(BIZ).amount == 25_000
        assert source.accounts_receivable(BIZ).amount == 40_000
        assert source.accounts_payable(BIZ).amount == 60_000
        assert source.cogs(BIZ).amount == 8_000
        assert source.expenses(BIZ).amount == 12_000

    def test_revenue_breakdown(self, operational_data):
        revenue = SqlOpeningBalanceSource(currency="UGX").revenue(BIZ)
        assert revenue.product.amount == 20_000
        assert revenue.service.amount == 8_000
        assert revenue.equipment_hire.amount == 4_000
        assert revenue.total_pos.amount == 33_000
        assert revenue.adjustment == 1_000

    def test_empty_business(self, schema):
        source = SqlOpeningBalanceSource(currency="UGX")
        assert source.cash(uuid.uuid4()).amount == 0
        assert source.revenue(uuid.uuid4()).total_pos.amount == 0


class TestSqlJournalWriter:
    def _posted_event(self, entry_id="mig-1", debit="1110"):
        command = JournalPostRequest(
            entry_id=entry_id,
            lines=(
                {"account_code": debit, "side": "DEBIT", "amount": 12_345,
                 "description": "Cash"},
                {"account_code": "3100", "side": "CREDIT", "amount": 12_345,
                 "description": "Capital"},
            ),
            memo="Opening Balance Migration",
            currency="UGX",
            batch_id="batch-1",
        ).to_command(
            business_id=BIZ, actor_type="HUMAN", actor_id="admin-1",
            command_id=uuid.uuid4(), correlation_id=uuid.uuid4(),
            issued_at=NOW,
        )
        return build_event(
            command=command,
            event_type="accounting.journal.posted.v1",
            payload=build_journal_posted_payload(command),
        )

    def _registry(self):
        registry = EventTypeRegistry()
        registry.register("accounting.journal.posted.v1")
        return registry

    def test_writes_entry_lines_and_audit(self, chart):
        result = SqlJournalWriter()(
            self._posted_event(), BusinessContext(business_id=BIZ), self._registry(),
        )
        assert result.accepted

        (entry,) = fetchall(
            "SELECT id, reference_number, total_amount, created_by, "
            "migration_batch_id, reference_type FROM journal_entries"
        )
        assert entry[1] == "JE-MIG-mig-1"
        assert float(entry[2]) == pytest.approx(123.45)
        assert entry[3:] == ("admin-1", "batch-1", "migration")

        lines = fetchall(
            "SELECT account_id, line_type, amount FROM journal_entry_lines "
            "WHERE journal_entry_id = %s ORDER BY line_type DESC", [entry[0]],
        )
        assert [(l[0], l[1]) for l in lines] == [
            ("acc-1110", "debit"), ("acc-3100", "credit"),
        ]

        (audit,) = fetchall("SELECT action, resource_id, metadata FROM audit_logs")
        assert audit[0] == "accounting.migration.journal_entry.created"
        assert audit[1] == entry[0]
        assert json.loads(audit[2])["migration_batch_id"] == "batch-1"

    def test_unknown_account_rejected(self, chart):
        result = SqlJournalWriter()(
            self._posted_event(debit="9999"),
            BusinessContext(business_id=BIZ), self._registry(),
        )
        assert not result.accepted
        assert result.rejection.code == "ACCOUNT_NOT_FOUND"
        assert fetchall("SELECT id FROM journal_entries") == []

    def test_other_event_types_refused(self, chart):
        event = dict(self._posted_event(), event_type="pricing.rule.created.v1")
        result = SqlJournalWriter()(event, None, None)
        assert result.rejection.code == "UNSUPPORTED_EVENT_TYPE"

    def test_foreign_tenant_refused(self, chart):
        result = SqlJournalWriter()(
            self._posted_event(), BusinessContext(business_id=OTHER), self._registry(),
        )
        assert result.rejection.code == "BUSINESS_ID_MISMATCH"


class TestSqlMigration:
    def _migrator(self):
        context = BusinessContext(business_id=BIZ)
        registry = EventTypeRegistry()
        writer = SqlJournalWriter()
        service = AccountingService(
            business_context=context,
            command_bus=CommandBus(CommandDispatcher(context), writer, context, registry),
            event_factory=build_event,
            persist_event=writer,
            event_type_registry=registry,
        )
        calculator = OpeningBalanceCalculator(
            SqlOpeningBalanceSource(currency="UGX"),
            currency="UGX", clock=FixedClock(NOW),
        )
        return OpeningBalanceMigrator(
            calculator, service, atomic=transaction.atomic, clock=FixedClock(NOW),
            audit_writer=SqlMigrationAuditWriter(),
        )

    def test_full_migration(self, operational_data, chart):
        result = self._migrator().run(BIZ, "admin-1")

        assert result.is_balanced
        assert result.verification["entry_count"] == 4
        rows = fetchall(
            "SELECT migration_batch_id FROM journal_entries WHERE business_id = %s",
            [str(BIZ)],
        )
        assert {r[0] for r in rows} == {result.batch_id}
        assert len(rows) == 4

        debit_total, credit_total = fetchall(
            "SELECT "
            "SUM(CASE WHEN line_type = 'debit' THEN amount ELSE 0 END), "
            "SUM(CASE WHEN line_type = 'credit' THEN amount ELSE 0 END) "
            "FROM journal_entry_lines"
        )[0]
        assert float(debit_total) == pytest.approx(float(credit_total))

    def test_missing_account_rolls_back(self, operational_data, schema):
        # only some accounts exist: the expense entry cannot be written
        for code in ("1110", "1200", "1300", "2100", "3100", "4100", "4200", "5100"):
            execute("INSERT INTO chart_of_accounts VALUES (%s, %s, %s)",
                    [f"acc-{code}", str(BIZ), code])

        with pytest.raises(MigrationError, match="not persisted"):
            self._migrator().run(BIZ, "admin-1")

        assert fetchall("SELECT id FROM journal_entries") == []
        assert fetchall("SELECT id FROM audit_logs") == []
        (audit,) = fetchall(
            "SELECT status, records_processed, completed_at, error_details "
            "FROM data_migration_audit"
        )
        assert audit[0] == "failed"
        assert audit[1] == 0
        assert audit[2] is None
        assert "not persisted" in json.loads(audit[3])["message"]

    def test_completed_run_is_audited(self, operational_data, chart):
        result = self._migrator().run(BIZ, "admin-1")

        (audit,) = fetchall(
            "SELECT migration_batch_id, business_id, migration_type, status, "
            "records_processed, total_amount, created_by, error_details "
            "FROM data_migration_audit"
        )
        assert audit[:5] == (
            result.batch_id, str(BIZ), "opening_balances", "completed", 4,
        )
        # cash + fixed assets + stock + receivables
        assert float(audit[5]) == pytest.approx(12_400.75)
        assert audit[6] == "admin-1"
        assert audit[7] is None

    def test_missing_operational_tables_raise_migration_error(self):
        with pytest.raises(MigrationError, match="Could not read") as exc_info:
            self._migrator().run(BIZ, "admin-1")
        assert isinstance(exc_info.value.__cause__, DatabaseError)

    def test_write_failure_rolls_back_and_is_audited(self, operational_data, chart):
        execute("DROP TABLE journal_entry_lines")

        with pytest.raises(MigrationError) as exc_info:
            self._migrator().run(BIZ, "admin-1")

        assert isinstance(exc_info.value.__cause__, DatabaseError)
        assert fetchall("SELECT id FROM journal_entries") == []
        (status,) = fetchall("SELECT status FROM data_migration_audit")
        assert status == ("failed",)
