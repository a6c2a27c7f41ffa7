"""
BizzyTrack Core Primitives
===========================
Engine-agnostic building blocks: pure Python, immutable, tenant-scoped.

    actor     — who performed an action
    ledger    — money, accounts, journal entries
    workflow  — deterministic state machines (department handoffs)
"""
