"""
Tests for core.primitives — ledger, workflow and actor.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.primitives.actor import Actor, ActorType
from core.primitives.ledger import (
    AccountRef,
    AccountType,
    DebitCredit,
    JournalEntry,
    JournalLine,
    Money,
)
from core.primitives.workflow import (
    DEPARTMENT_HANDOFF_WORKFLOW,
    WorkflowDefinition,
)

BIZ = uuid.uuid4()
NOW = datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)

CASH = AccountRef("1110", AccountType.ASSET, "Cash")
CAPITAL = AccountRef("3100", AccountType.EQUITY, "Owner's Capital")
PAYABLES = AccountRef("2100", AccountType.LIABILITY, "Accounts Payable")


def line(account, side, amount, currency="UGX"):
    return JournalLine(account=account, side=side, amount=Money(amount, currency))


def opening_entry(entry_id="je-1", amount=10_000, business_id=BIZ):
    return JournalEntry(
        entry_id=entry_id,
        business_id=business_id,
        posted_at=NOW,
        lines=(
            line(CASH, DebitCredit.DEBIT, amount),
            line(CAPITAL, DebitCredit.CREDIT, amount),
        ),
        memo="Opening balance",
        currency="UGX",
    )


# ══════════════════════════════════════════════════════════════
# MONEY
# ══════════════════════════════════════════════════════════════

class TestMoney:
    def test_arithmetic(self):
        total = Money(150, "UGX") + Money(50, "UGX") - Money(25, "UGX")
        assert total == Money(175, "UGX")
        assert Money(5, "UGX").negate().amount == -5

    def test_int_only(self):
        with pytest.raises(TypeError, match="minor units"):
            Money(10.5, "UGX")
        with pytest.raises(TypeError):
            Money(True, "UGX")

    def test_currency_mismatch(self):
        with pytest.raises(ValueError, match="Currency mismatch"):
            Money(1, "UGX") + Money(1, "KES")

    @pytest.mark.parametrize("major, minor", [
        (Decimal("12.345"), 1235),
        (Decimal("12.344"), 1234),
        ("0.005", 1),
        (None, 0),
        (7, 700),
    ])
    def test_from_major_rounds_half_up(self, major, minor):
        assert Money.from_major(major, "UGX").amount == minor

    def test_to_major(self):
        assert Money(1050, "UGX").to_major() == Decimal("10.50")


# ══════════════════════════════════════════════════════════════
# JOURNAL ENTRIES
# ══════════════════════════════════════════════════════════════

class TestJournalEntry:
    def test_balanced_entry(self):
        entry = opening_entry()
        assert entry.is_balanced
        assert entry.total_debits == entry.total_credits == Money(10_000, "UGX")

    def test_unbalanced_entry_rejected(self):
        with pytest.raises(ValueError, match="unbalanced"):
            JournalEntry(
                entry_id="je-x", business_id=BIZ, posted_at=NOW,
                lines=(
                    line(CASH, DebitCredit.DEBIT, 100),
                    line(CAPITAL, DebitCredit.CREDIT, 90),
                ),
                memo="bad", currency="UGX",
            )

    def test_single_line_rejected(self):
        with pytest.raises(ValueError, match="at least 2 lines"):
            JournalEntry(
                entry_id="je-x", business_id=BIZ, posted_at=NOW,
                lines=(line(CASH, DebitCredit.DEBIT, 100),),
                memo="bad", currency="UGX",
            )

    def test_mixed_currency_rejected(self):
        with pytest.raises(ValueError, match="entry currency"):
            JournalEntry(
                entry_id="je-x", business_id=BIZ, posted_at=NOW,
                lines=(
                    line(CASH, DebitCredit.DEBIT, 100),
                    line(CAPITAL, DebitCredit.CREDIT, 100, currency="KES"),
                ),
                memo="bad", currency="UGX",
            )

    def test_line_amount_positive(self):
        with pytest.raises(ValueError, match="positive"):
            line(CASH, DebitCredit.DEBIT, 0)

    def test_reversed_mirrors_lines(self):
        reversal = opening_entry().reversed("je-1-rev", NOW + timedelta(days=1))
        assert [l.side for l in reversal.lines] == [
            DebitCredit.CREDIT, DebitCredit.DEBIT,
        ]
        assert reversal.reference == "je-1"
        assert reversal.is_balanced

    def test_to_dict(self):
        data = opening_entry().to_dict()
        assert data["lines"][0] == {
            "account_code": "1110", "side": "DEBIT",
            "amount": 10_000, "description": "",
        }
        assert data["total_debits"] == data["total_credits"] == 10_000


# ══════════════════════════════════════════════════════════════
# WORKFLOW
# ══════════════════════════════════════════════════════════════

class TestWorkflow:
    def start(self):
        return DEPARTMENT_HANDOFF_WORKFLOW.start(
            business_id=BIZ, subject_id="h-1", created_at=NOW,
        )

    def test_starts_pending(self):
        instance = self.start()
        assert instance.current_state == "PENDING"
        assert instance.last_transition is None

    def test_transition_records_actor(self):
        actor = Actor.human("user-9")
        accepted = self.start().transition(
            DEPARTMENT_HANDOFF_WORKFLOW, "ACCEPTED", actor, NOW,
        )
        assert accepted.current_state == "ACCEPTED"
        assert accepted.last_transition.actor == actor
        assert accepted.last_transition.from_state == "PENDING"

    def test_instances_are_immutable_snapshots(self):
        pending = self.start()
        pending.transition(
            DEPARTMENT_HANDOFF_WORKFLOW, "REJECTED", Actor.human("u"), NOW,
        )
        assert pending.current_state == "PENDING"

    def test_terminal_states_accept_nothing(self):
        rejected = self.start().transition(
            DEPARTMENT_HANDOFF_WORKFLOW, "REJECTED", Actor.human("u"), NOW,
        )
        assert not rejected.can_transition(DEPARTMENT_HANDOFF_WORKFLOW, "ACCEPTED")
        with pytest.raises(ValueError, match="terminal state"):
            rejected.transition(
                DEPARTMENT_HANDOFF_WORKFLOW, "ACCEPTED", Actor.human("u"), NOW,
            )

    def test_invalid_transition(self):
        with pytest.raises(ValueError, match="Invalid transition"):
            self.start().transition(
                DEPARTMENT_HANDOFF_WORKFLOW, "DONE", Actor.human("u"), NOW,
            )

    def test_definition_mismatch(self):
        other = WorkflowDefinition(
            name="Other", initial_state="A", terminal_states=frozenset({"B"}),
            transitions={"A": frozenset({"B"}), "B": frozenset()},
        )
        with pytest.raises(ValueError, match="does not match"):
            self.start().transition(other, "B", Actor.human("u"), NOW)

    def test_terminal_state_with_exits_rejected(self):
        with pytest.raises(ValueError, match="Terminal state"):
            WorkflowDefinition(
                name="Broken", initial_state="A", terminal_states=frozenset({"B"}),
                transitions={"A": frozenset({"B"}), "B": frozenset({"A"})},
            )

    def test_to_dict(self):
        data = self.start().transition(
            DEPARTMENT_HANDOFF_WORKFLOW, "ACCEPTED", Actor.human("u"), NOW,
        ).to_dict()
        assert data["workflow_name"] == "DepartmentHandoff"
        assert data["transitions"][0]["to_state"] == "ACCEPTED"


class TestActor:
    def test_factories(self):
        assert Actor.system("migration").actor_type == ActorType.SYSTEM
        assert Actor.device("pos-1").actor_type == ActorType.DEVICE
        assert not Actor.ai("advisor").can_commit_state
        assert Actor.human("u").can_commit_state

    def test_round_trip_dict(self):
        actor = Actor.human("u-1", "Jane")
        assert Actor.from_dict(actor.to_dict()) == actor

    def test_actor_id_required(self):
        with pytest.raises(ValueError, match="actor_id"):
            Actor(ActorType.HUMAN, "")
