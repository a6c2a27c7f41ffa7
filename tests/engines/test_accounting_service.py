"""
BizzyTrack — Accounting Engine Tests
=====================================
Journal posting, reversal, chart of accounts, batch posting and the
ledger read model.
"""

import uuid
from datetime import datetime, timezone

import pytest

from core.audit import AuditLog
from core.commands import (
    CommandBus,
    CommandDispatcher,
    CommandRejected,
    RequestValidationError,
    build_command,
)
from core.context import BusinessContext
from core.events import EventTypeRegistry, InMemoryEventStore, build_event
from core.primitives.ledger import (
    AccountRef,
    AccountType,
    DebitCredit,
    JournalEntry,
    JournalLine,
    Money,
)
from engines.accounting.commands import (
    AccountCreateRequest,
    JournalPostRequest,
    JournalReverseRequest,
)
from engines.accounting.policies import (
    balanced_entry_policy,
    positive_amount_policy,
)
from engines.accounting.services import (
    AccountingProjectionStore,
    AccountingService,
    JournalBatchError,
)

BIZ_A = uuid.uuid4()
BIZ_B = uuid.uuid4()
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════
# TEST HELPERS
# ══════════════════════════════════════════════════════════════

def kw(**overrides):
    args = dict(
        business_id=BIZ_A,
        actor_type="HUMAN",
        actor_id="accountant-1",
        command_id=uuid.uuid4(),
        correlation_id=uuid.uuid4(),
        issued_at=NOW,
    )
    args.update(overrides)
    return args


def lines(amount=10_000, debit="1110", credit="3100"):
    return (
        {"account_code": debit, "side": "DEBIT", "amount": amount, "description": ""},
        {"account_code": credit, "side": "CREDIT", "amount": amount, "description": ""},
    )


def post(entry_id="je-1", amount=10_000, batch_id=None, **line_kw):
    return JournalPostRequest(
        entry_id=entry_id,
        lines=lines(amount, **line_kw),
        memo=f"Entry {entry_id}",
        currency="UGX",
        batch_id=batch_id,
    )


class RefusingStore:
    """Delegates to an InMemoryEventStore but refuses one entry id."""

    def __init__(self, store, refuse_entry_id):
        self._store = store
        self._refuse = refuse_entry_id

    def __call__(self, *, event_data, context, registry, **kwargs):
        if event_data["payload"].get("entry_id") == self._refuse:
            return {"accepted": False}
        return self._store.persist(event_data, context, registry, **kwargs)


@pytest.fixture
def stack():
    context = BusinessContext(business_id=BIZ_A)
    registry = EventTypeRegistry()
    store = InMemoryEventStore()
    dispatcher = CommandDispatcher(context)
    bus = CommandBus(dispatcher, store, context, registry)
    audit = AuditLog()
    service = AccountingService(
        business_context=context,
        command_bus=bus,
        event_factory=build_event,
        persist_event=store,
        event_type_registry=registry,
        projection_store=AccountingProjectionStore(),
        audit_log=audit,
    )
    for policy in service.policies:
        dispatcher.register_policy(policy)
    return bus, store, service, audit


def make_service(persist):
    context = BusinessContext(business_id=BIZ_A)
    registry = EventTypeRegistry()
    bus = CommandBus(CommandDispatcher(context), persist, context, registry)
    service = AccountingService(
        business_context=context,
        command_bus=bus,
        event_factory=build_event,
        persist_event=persist,
        event_type_registry=registry,
    )
    return service


# ══════════════════════════════════════════════════════════════
# REQUESTS
# ══════════════════════════════════════════════════════════════

class TestAccountingRequests:
    def test_post_request_validates_balance(self):
        with pytest.raises(RequestValidationError, match="unbalanced"):
            JournalPostRequest(
                entry_id="je-1",
                lines=(
                    {"account_code": "1110", "side": "DEBIT", "amount": 100},
                    {"account_code": "3100", "side": "CREDIT", "amount": 90},
                ),
                memo="x",
                currency="UGX",
            )

    def test_post_request_validates_lines(self):
        with pytest.raises(RequestValidationError) as exc_info:
            JournalPostRequest(
                entry_id="je-1",
                lines=(
                    {"account_code": "", "side": "LEFT", "amount": 0},
                    {"account_code": "3100", "side": "CREDIT", "amount": 5},
                ),
                memo="x",
                currency="UGX",
            )
        fields = {e.field for e in exc_info.value.errors}
        assert {"lines[0].account_code", "lines[0].side", "lines[0].amount"} <= fields

    def test_single_line_rejected(self):
        with pytest.raises(RequestValidationError):
            JournalPostRequest(entry_id="je-1", lines=lines()[:1],
                               memo="x", currency="UGX")

    def test_from_entry(self):
        cash = AccountRef("1110", AccountType.ASSET, "Cash")
        capital = AccountRef("3100", AccountType.EQUITY, "Owner's Capital")
        entry = JournalEntry(
            entry_id="je-9",
            business_id=BIZ_A,
            posted_at=NOW,
            lines=(
                JournalLine(cash, DebitCredit.DEBIT, Money(5_000, "UGX")),
                JournalLine(capital, DebitCredit.CREDIT, Money(5_000, "UGX")),
            ),
            memo="Opening cash",
            currency="UGX",
            batch_id="batch-1",
        )
        cmd = JournalPostRequest.from_entry(entry).to_command(**kw())
        assert cmd.command_type == "accounting.journal.post.request"
        assert cmd.payload["batch_id"] == "batch-1"
        assert cmd.payload["lines"][0] == {
            "account_code": "1110", "side": "DEBIT", "amount": 5_000,
            "description": "",
        }

    def test_reverse_request_needs_distinct_ids(self):
        with pytest.raises(RequestValidationError):
            JournalReverseRequest(original_entry_id="je-1",
                                  reversal_entry_id="je-1", reason="oops")

    def test_account_type_validated(self):
        with pytest.raises(RequestValidationError):
            AccountCreateRequest(account_code="9999", account_type="MAGIC", name="x")


class TestAccountingPolicies:
    def _raw_post(self, raw_lines):
        return build_command(
            "accounting.journal.post.request",
            {"entry_id": "je-raw", "lines": raw_lines, "memo": "x", "currency": "UGX"},
            source_engine="accounting",
            **kw(),
        )

    def test_balanced_entry_policy(self):
        assert balanced_entry_policy(self._raw_post(list(lines()))) is None
        single = balanced_entry_policy(self._raw_post(list(lines())[:1]))
        assert single.code == "INSUFFICIENT_LINES"
        unbalanced = list(lines())
        unbalanced[1] = dict(unbalanced[1], amount=1)
        assert balanced_entry_policy(self._raw_post(unbalanced)).code == "UNBALANCED_ENTRY"

    def test_positive_amount_policy(self):
        zero = [dict(l, amount=0) for l in lines()]
        assert positive_amount_policy(self._raw_post(zero)).code == "NON_POSITIVE_AMOUNT"


# ══════════════════════════════════════════════════════════════
# SERVICE THROUGH THE BUS
# ══════════════════════════════════════════════════════════════

class TestJournalPosting:
    def test_post_updates_balances(self, stack):
        bus, store, service, audit = stack
        result = bus.handle(post().to_command(**kw()))

        assert result.is_accepted
        assert result.execution_result.event_type == "accounting.journal.posted.v1"
        store_ = service.projection_store
        assert store_.get_balance(BIZ_A, "1110")["total_debits"] == 10_000
        assert store_.get_balance(BIZ_A, "3100")["total_credits"] == 10_000
        assert store_.get_entry(BIZ_A, "je-1")["status"] == "POSTED"
        assert len(store.events(BIZ_A, "accounting.journal.posted.v1")) == 1
        assert audit.entries(BIZ_A, resource_type="journal_entry")[0].resource_id == "je-1"

    def test_duplicate_entry_rejected(self, stack):
        bus, store, _, _ = stack
        bus.handle(post().to_command(**kw()))
        result = bus.handle(post().to_command(**kw()))
        assert result.is_rejected
        assert result.outcome.reason.code == "JOURNAL_ENTRY_EXISTS"
        assert len(store.events(BIZ_A, "accounting.journal.post.rejected")) == 1

    def test_trial_balance(self, stack):
        bus, _, service, _ = stack
        bus.handle(post("je-1", 10_000).to_command(**kw()))
        bus.handle(post("je-2", 2_500, debit="5200", credit="1110").to_command(**kw()))

        tb = service.trial_balance()
        assert tb["is_balanced"]
        assert tb["total_debits"] == tb["total_credits"] == 12_500
        assert [a["account_code"] for a in tb["accounts"]] == ["1110", "3100", "5200"]

    def test_tenants_isolated(self, stack):
        bus, _, service, _ = stack
        bus.handle(post().to_command(**kw()))
        assert service.projection_store.trial_balance(BIZ_B)["accounts"] == []
        assert service.projection_store.get_entry(BIZ_B, "je-1") is None


class TestChartOfAccounts:
    def test_known_accounts_enforced_once_chart_exists(self, stack):
        bus, _, service, _ = stack
        # no chart yet: any code is accepted
        assert bus.handle(post("je-0").to_command(**kw())).is_accepted

        for code, account_type, name in (
            ("1110", "ASSET", "Cash"), ("3100", "EQUITY", "Owner's Capital"),
        ):
            bus.handle(AccountCreateRequest(
                account_code=code, account_type=account_type, name=name,
            ).to_command(**kw()))
        assert len(service.projection_store.list_accounts(BIZ_A)) == 2

        assert bus.handle(post("je-1").to_command(**kw())).is_accepted
        result = bus.handle(post("je-2", debit="9999").to_command(**kw()))
        assert result.outcome.reason.code == "ACCOUNT_NOT_FOUND"
        assert "9999" in result.outcome.reason.message

    def test_account_unique(self, stack):
        bus, _, _, _ = stack
        request = AccountCreateRequest(account_code="1110", account_type="ASSET", name="Cash")
        bus.handle(request.to_command(**kw()))
        result = bus.handle(request.to_command(**kw()))
        assert result.outcome.reason.code == "ACCOUNT_EXISTS"


class TestReversal:
    def test_reverse_mirrors_lines(self, stack):
        bus, _, service, _ = stack
        bus.handle(post().to_command(**kw()))
        result = bus.handle(JournalReverseRequest(
            original_entry_id="je-1", reversal_entry_id="je-1-rev", reason="typo",
        ).to_command(**kw()))

        assert result.is_accepted
        projection = service.projection_store
        original = projection.get_entry(BIZ_A, "je-1")
        assert original["status"] == "REVERSED"
        assert original["reversed_by"] == "je-1-rev"
        reversal = projection.get_entry(BIZ_A, "je-1-rev")
        assert reversal["status"] == "REVERSAL"
        assert reversal["lines"][0]["side"] == "CREDIT"

        cash = projection.get_balance(BIZ_A, "1110")
        assert cash["total_debits"] == cash["total_credits"] == 10_000

    def test_reverse_only_once(self, stack):
        bus, _, _, _ = stack
        bus.handle(post().to_command(**kw()))
        bus.handle(JournalReverseRequest(
            original_entry_id="je-1", reversal_entry_id="rev-1", reason="typo",
        ).to_command(**kw()))
        result = bus.handle(JournalReverseRequest(
            original_entry_id="je-1", reversal_entry_id="rev-2", reason="again",
        ).to_command(**kw()))
        assert result.outcome.reason.code == "JOURNAL_ENTRY_ALREADY_REVERSED"

    def test_reverse_unknown_entry(self, stack):
        bus, _, _, _ = stack
        result = bus.handle(JournalReverseRequest(
            original_entry_id="ghost", reversal_entry_id="rev-1", reason="x",
        ).to_command(**kw()))
        assert result.outcome.reason.code == "JOURNAL_ENTRY_NOT_FOUND"

    def test_direct_execution_raises_command_rejected(self, stack):
        _, _, service, _ = stack
        command = JournalReverseRequest(
            original_entry_id="ghost", reversal_entry_id="rev-1", reason="x",
        ).to_command(**kw())
        with pytest.raises(CommandRejected):
            service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# BATCH POSTING
# ══════════════════════════════════════════════════════════════

class TestBatchPosting:
    def test_post_batch(self, stack):
        _, store, service, _ = stack
        commands = [
            post(f"b-{i}", 1_000 * i, batch_id="b").to_command(**kw())
            for i in (1, 2, 3)
        ]
        result = service.post_batch(commands, atomic=store.atomic)

        assert result.batch_id == "b"
        assert result.entry_ids == ("b-1", "b-2", "b-3")
        assert all(r.projection_applied for r in result.results)
        totals = service.batch_totals("b")
        assert totals["entry_count"] == 3
        assert totals["total_debits"] == totals["total_credits"] == 6_000
        assert totals["is_balanced"]

    def test_empty_batch_rejected(self, stack):
        _, _, service, _ = stack
        with pytest.raises(JournalBatchError, match="at least one"):
            service.post_batch([])

    def test_duplicate_in_batch_rejected_before_persisting(self, stack):
        _, store, service, _ = stack
        commands = [post("x").to_command(**kw()), post("x").to_command(**kw())]
        with pytest.raises(JournalBatchError) as exc_info:
            service.post_batch(commands, atomic=store.atomic)
        assert exc_info.value.entry_id == "x"
        assert store.count() == 0

    def test_policy_failure_rejects_whole_batch(self, stack):
        bus, store, service, _ = stack
        bus.handle(post("existing").to_command(**kw()))
        commands = [
            post("new-1").to_command(**kw()),
            post("existing").to_command(**kw()),
        ]
        with pytest.raises(JournalBatchError) as exc_info:
            service.post_batch(commands, atomic=store.atomic)
        assert exc_info.value.reason.code == "JOURNAL_ENTRY_EXISTS"
        assert service.projection_store.get_entry(BIZ_A, "new-1") is None
        assert store.count() == 1

    def test_only_postings_can_be_batched(self, stack):
        _, _, service, _ = stack
        command = AccountCreateRequest(
            account_code="1110", account_type="ASSET", name="Cash",
        ).to_command(**kw())
        with pytest.raises(JournalBatchError, match="Only journal postings"):
            service.post_batch([command])

    def test_persist_refusal_rolls_back_batch(self):
        store = InMemoryEventStore()
        service = make_service(RefusingStore(store, "r-2"))
        commands = [
            post(f"r-{i}", batch_id="r").to_command(**kw()) for i in (1, 2, 3)
        ]
        with pytest.raises(JournalBatchError) as exc_info:
            service.post_batch(commands, atomic=store.atomic)

        assert exc_info.value.entry_id == "r-2"
        assert store.count() == 0
        assert service.projection_store.get_entry(BIZ_A, "r-1") is None
        assert service.batch_totals("r")["entry_count"] == 0
