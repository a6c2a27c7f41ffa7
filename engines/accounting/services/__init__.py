"""
BizzyTrack Accounting Engine — Application Service
===================================================
Chart of accounts, journal posting and reversal, and batch posting of
several entries as one atomic unit.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, List, Optional, Protocol, Tuple

from core.audit import AuditLog, audit_command
from core.commands.base import Command
from core.commands.bus import is_persist_accepted
from core.commands.dispatcher import bind_projection_policy
from core.commands.rejection import CommandRejected, RejectionReason
from engines.accounting.commands import (
    ACCOUNTING_COMMAND_TYPES,
    ACCOUNTING_JOURNAL_POST_REQUEST,
)
from engines.accounting.events import (
    ACCOUNTING_ACCOUNT_CREATED_V1,
    ACCOUNTING_JOURNAL_POSTED_V1,
    ACCOUNTING_JOURNAL_REVERSED_V1,
    build_account_created_payload,
    build_journal_posted_payload,
    build_journal_reversed_payload,
    register_accounting_event_types,
    resolve_accounting_event_type,
)
from engines.accounting.policies import ACCOUNTING_POLICIES

logger = logging.getLogger("bizzytrack.accounting")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class EventFactoryProtocol(Protocol):
    def __call__(
        self, *, command: Command, event_type: str, payload: dict,
    ) -> dict:
        ...


class PersistEventProtocol(Protocol):
    def __call__(
        self, *, event_data: dict, context: Any, registry: Any, **kwargs,
    ) -> Any:
        ...


class JournalBatchError(Exception):
    """A batch could not be posted; nothing from it was applied."""

    def __init__(self, message: str, *, entry_id: Optional[str] = None,
                 reason: Optional[RejectionReason] = None):
        super().__init__(message)
        self.entry_id = entry_id
        self.reason = reason


# ══════════════════════════════════════════════════════════════
# PROJECTION STORE
# ══════════════════════════════════════════════════════════════

class AccountingProjectionStore:
    """
    In-memory ledger read model. Every key starts with business_id so
    one tenant never sees another's accounts, entries or balances.
    """

    def __init__(self):
        self._events: List[dict] = []
        self._accounts: Dict[Tuple[uuid.UUID, str], dict] = {}
        self._entries: Dict[Tuple[uuid.UUID, str], dict] = {}
        self._balances: Dict[Tuple[uuid.UUID, str], Dict[str, int]] = {}
        self._batches: Dict[Tuple[uuid.UUID, str], List[str]] = {}

    def apply(self, event_type: str, payload: dict) -> None:
        self._events.append({"event_type": event_type, "payload": payload})
        business_id = payload["business_id"]

        if event_type == ACCOUNTING_ACCOUNT_CREATED_V1:
            self._accounts[(business_id, payload["account_code"])] = {
                "account_code": payload["account_code"],
                "account_type": payload["account_type"],
                "name": payload["name"],
                "parent_code": payload.get("parent_code"),
            }

        elif event_type == ACCOUNTING_JOURNAL_POSTED_V1:
            self._record_entry(business_id, payload["entry_id"], {
                "entry_id": payload["entry_id"],
                "lines": payload["lines"],
                "memo": payload["memo"],
                "currency": payload["currency"],
                "reference": payload.get("reference"),
                "batch_id": payload.get("batch_id"),
                "total_amount": payload["total_amount"],
                "posted_at": payload["posted_at"],
                "status": "POSTED",
                "reversed_by": None,
            })

        elif event_type == ACCOUNTING_JOURNAL_REVERSED_V1:
            original = self.get_entry(business_id, payload["original_entry_id"])
            if original is not None:
                original["status"] = "REVERSED"
                original["reversed_by"] = payload["reversal_entry_id"]
            self._record_entry(business_id, payload["reversal_entry_id"], {
                "entry_id": payload["reversal_entry_id"],
                "lines": payload["lines"],
                "memo": f"Reversal of {payload['original_entry_id']}: "
                        f"{payload['reason']}",
                "currency": payload["currency"],
                "reference": payload["original_entry_id"],
                "batch_id": None,
                "total_amount": payload["total_amount"],
                "posted_at": payload["reversed_at"],
                "status": "REVERSAL",
                "reversed_by": None,
            })

    def _record_entry(self, business_id: uuid.UUID, entry_id: str, entry: dict) -> None:
        self._entries[(business_id, entry_id)] = entry
        for line in entry["lines"]:
            bal = self._balances.setdefault(
                (business_id, line["account_code"]),
                {"total_debits": 0, "total_credits": 0},
            )
            if line["side"] == "DEBIT":
                bal["total_debits"] += line["amount"]
            else:
                bal["total_credits"] += line["amount"]
        if entry.get("batch_id"):
            self._batches.setdefault(
                (business_id, entry["batch_id"]), []
            ).append(entry_id)

    # ── reads ─────────────────────────────────────────────────

    def has_chart(self, business_id: uuid.UUID) -> bool:
        return any(biz == business_id for biz, _ in self._accounts)

    def get_account(self, business_id: uuid.UUID, account_code: str) -> Optional[dict]:
        return self._accounts.get((business_id, account_code))

    def list_accounts(self, business_id: uuid.UUID) -> List[dict]:
        return [
            self._accounts[key]
            for key in sorted(k for k in self._accounts if k[0] == business_id)
        ]

    def get_entry(self, business_id: uuid.UUID, entry_id: str) -> Optional[dict]:
        return self._entries.get((business_id, entry_id))

    def get_balance(self, business_id: uuid.UUID, account_code: str) -> Optional[dict]:
        bal = self._balances.get((business_id, account_code))
        if bal is None:
            return None
        return {"account_code": account_code, **bal}

    def batch_entries(self, business_id: uuid.UUID, batch_id: str) -> List[dict]:
        return [
            self._entries[(business_id, entry_id)]
            for entry_id in self._batches.get((business_id, batch_id), [])
        ]

    def batch_totals(self, business_id: uuid.UUID, batch_id: str) -> dict:
        entries = self.batch_entries(business_id, batch_id)
        debits = credits = 0
        for entry in entries:
            for line in entry["lines"]:
                if line["side"] == "DEBIT":
                    debits += line["amount"]
                else:
                    credits += line["amount"]
        return {
            "batch_id": batch_id,
            "entry_count": len(entries),
            "total_debits": debits,
            "total_credits": credits,
            "is_balanced": debits == credits,
        }

    def trial_balance(self, business_id: uuid.UUID) -> dict:
        rows = [
            {"account_code": code, **bal}
            for (biz, code), bal in sorted(self._balances.items(), key=lambda kv: kv[0][1])
            if biz == business_id
        ]
        debits = sum(r["total_debits"] for r in rows)
        credits = sum(r["total_credits"] for r in rows)
        return {
            "accounts": rows,
            "total_debits": debits,
            "total_credits": credits,
            "is_balanced": debits == credits,
        }

    @property
    def event_count(self) -> int:
        return len(self._events)

    def truncate(self) -> None:
        self._events.clear()
        self._accounts.clear()
        self._entries.clear()
        self._balances.clear()
        self._batches.clear()


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AccountingExecutionResult:
    event_type: str
    event_data: dict
    persist_result: Any
    projection_applied: bool


@dataclass(frozen=True)
class BatchPostResult:
    batch_id: Optional[str]
    results: Tuple[AccountingExecutionResult, ...]
    entry_ids: Tuple[str, ...]


# ══════════════════════════════════════════════════════════════
# COMMAND HANDLER
# ══════════════════════════════════════════════════════════════

class _AccountingCommandHandler:
    def __init__(self, service: "AccountingService"):
        self._service = service

    def execute(self, command: Command) -> AccountingExecutionResult:
        return self._service._execute_command(command)


# ══════════════════════════════════════════════════════════════
# APPLICATION SERVICE
# ══════════════════════════════════════════════════════════════

class AccountingService:
    """Accounting Engine application service."""

    def __init__(
        self,
        *,
        business_context,
        command_bus,
        event_factory: EventFactoryProtocol,
        persist_event: PersistEventProtocol,
        event_type_registry,
        projection_store: AccountingProjectionStore | None = None,
        audit_log: AuditLog | None = None,
    ):
        self._business_context = business_context
        self._command_bus = command_bus
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._event_type_registry = event_type_registry
        self._projection_store = projection_store or AccountingProjectionStore()
        self._audit_log = audit_log

        register_accounting_event_types(self._event_type_registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        handler = _AccountingCommandHandler(self)
        for command_type in sorted(ACCOUNTING_COMMAND_TYPES):
            self._command_bus.register_handler(command_type, handler)

    @property
    def policies(self) -> list:
        """Dispatcher-ready policies bound to this service's projection."""
        return [
            bind_projection_policy(p, self._projection_store)
            for p in ACCOUNTING_POLICIES
        ]

    def _first_rejection(self, command: Command) -> Optional[RejectionReason]:
        for policy in ACCOUNTING_POLICIES:
            rejection = policy(command, self._projection_store)
            if rejection is not None:
                return rejection
        return None

    def _build_payload(self, command: Command) -> Tuple[str, dict]:
        event_type = resolve_accounting_event_type(command.command_type)
        if event_type is None:
            raise ValueError(
                f"Unsupported accounting command type: {command.command_type}"
            )

        if event_type == ACCOUNTING_ACCOUNT_CREATED_V1:
            return event_type, build_account_created_payload(command)
        if event_type == ACCOUNTING_JOURNAL_POSTED_V1:
            return event_type, build_journal_posted_payload(command)

        original = self._projection_store.get_entry(
            command.business_id, command.payload["original_entry_id"]
        )
        return event_type, build_journal_reversed_payload(command, original)

    def _persist(self, command: Command, event_type: str, payload: dict):
        event_data = self._event_factory(
            command=command,
            event_type=event_type,
            payload=payload,
        )
        persist_result = self._persist_event(
            event_data=event_data,
            context=self._business_context,
            registry=self._event_type_registry,
            scope_requirement=command.scope_requirement,
        )
        return event_data, persist_result

    def _apply(self, command: Command, event_type: str, payload: dict,
               event_data: dict) -> None:
        self._projection_store.apply(event_type=event_type, payload=payload)
        if self._audit_log is not None:
            self._audit_log.record(audit_command(
                command,
                resource_type=(
                    "account" if event_type == ACCOUNTING_ACCOUNT_CREATED_V1
                    else "journal_entry"
                ),
                resource_id=str(
                    payload.get("account_code")
                    or payload.get("reversal_entry_id")
                    or payload.get("entry_id")
                ),
                event_id=event_data.get("event_id"),
                metadata={"total_amount": payload.get("total_amount")},
            ))

    def _execute_command(self, command: Command) -> AccountingExecutionResult:
        rejection = self._first_rejection(command)
        if rejection is not None:
            raise CommandRejected(rejection)

        event_type, payload = self._build_payload(command)
        event_data, persist_result = self._persist(command, event_type, payload)

        applied = False
        if is_persist_accepted(persist_result):
            self._apply(command, event_type, payload, event_data)
            applied = True
            logger.info(
                "Accounting event %s applied for business %s",
                event_type, command.business_id,
            )
        else:
            logger.warning(
                "Accounting event %s not persisted for command %s",
                event_type, command.command_id,
            )

        return AccountingExecutionResult(
            event_type=event_type,
            event_data=event_data,
            persist_result=persist_result,
            projection_applied=applied,
        )

    def post_batch(
        self,
        commands: List[Command],
        *,
        atomic: Callable[[], ContextManager] = nullcontext,
    ) -> BatchPostResult:
        """
        Post several journal entries as one unit.

        Every command is checked against the policies (and against the
        other entries of the batch) before anything is persisted. The
        events are persisted inside ``atomic()``; if one is refused the
        error propagates out of the block so the unit rolls back, and the
        projection is only touched after the block commits.
        """
        if not commands:
            raise JournalBatchError("Batch must contain at least one entry.")

        seen = set()
        for command in commands:
            if command.command_type != ACCOUNTING_JOURNAL_POST_REQUEST:
                raise JournalBatchError(
                    f"Only journal postings can be batched, got "
                    f"'{command.command_type}'."
                )
            entry_id = command.payload["entry_id"]
            if entry_id in seen:
                raise JournalBatchError(
                    f"Journal entry '{entry_id}' appears twice in the batch.",
                    entry_id=entry_id,
                )
            seen.add(entry_id)
            rejection = self._first_rejection(command)
            if rejection is not None:
                raise JournalBatchError(
                    f"Journal entry '{entry_id}' rejected: {rejection.message}",
                    entry_id=entry_id,
                    reason=rejection,
                )

        staged = []
        with atomic():
            for command in commands:
                event_type, payload = self._build_payload(command)
                event_data, persist_result = self._persist(
                    command, event_type, payload
                )
                if not is_persist_accepted(persist_result):
                    raise JournalBatchError(
                        f"Journal entry '{payload['entry_id']}' was not "
                        f"persisted: {persist_result!r}",
                        entry_id=payload["entry_id"],
                    )
                staged.append((command, event_type, payload, event_data, persist_result))

        results = []
        for command, event_type, payload, event_data, persist_result in staged:
            self._apply(command, event_type, payload, event_data)
            results.append(AccountingExecutionResult(
                event_type=event_type,
                event_data=event_data,
                persist_result=persist_result,
                projection_applied=True,
            ))

        batch_id = commands[0].payload.get("batch_id")
        logger.info(
            "Posted batch %s: %d journal entr%s",
            batch_id, len(results), "y" if len(results) == 1 else "ies",
        )
        return BatchPostResult(
            batch_id=batch_id,
            results=tuple(results),
            entry_ids=tuple(s[2]["entry_id"] for s in staged),
        )

    # ── reads ─────────────────────────────────────────────────

    def trial_balance(self) -> dict:
        return self._projection_store.trial_balance(
            self._business_context.business_id
        )

    def batch_totals(self, batch_id: str) -> dict:
        return self._projection_store.batch_totals(
            self._business_context.business_id, batch_id
        )

    @property
    def projection_store(self) -> AccountingProjectionStore:
        return self._projection_store
