"""
BizzyTrack Accounting Engine — SQL Opening Balance Source
==========================================================
OpeningBalanceSource backed by raw aggregate queries on the operational
tables, run on a Django database connection.

The operational tables store major-unit decimals; every aggregate is
converted to integer minor units with half-up rounding.
"""

from __future__ import annotations

import uuid

from django.db import connection as default_connection

from core.primitives.ledger import Money
from engines.accounting.opening_balances import Aggregate, RevenueBreakdown

CASH_SQL = """
    SELECT COALESCE(SUM(current_balance), 0), COUNT(*)
    FROM money_wallets
    WHERE business_id = %s AND is_active = TRUE
"""

FIXED_ASSETS_SQL = """
    SELECT COALESCE(SUM(current_value), 0), COUNT(*)
    FROM fixed_assets
    WHERE business_id = %s AND is_active = TRUE
"""

# Products are not part of the inventory system and stay excluded.
INVENTORY_SQL = """
    SELECT COALESCE(SUM(cost_price * current_stock), 0), COUNT(*)
    FROM inventory_items
    WHERE business_id = %s AND is_active = TRUE
"""

RECEIVABLES_SQL = """
    SELECT COALESCE(SUM(balance_due), 0), COUNT(*)
    FROM invoices
    WHERE business_id = %s
      AND status NOT IN ('paid', 'cancelled')
      AND balance_due > 0
"""

PAYABLES_SQL = """
    SELECT COALESCE(SUM(total_amount), 0), COUNT(*)
    FROM purchase_orders
    WHERE business_id = %s
      AND status NOT IN ('paid', 'cancelled')
      AND total_amount > 0
"""

REVENUE_BY_TYPE_SQL = """
    SELECT pti.item_type, COALESCE(SUM(pti.total_price), 0), COUNT(*)
    FROM pos_transaction_items pti
    JOIN pos_transactions pt ON pti.pos_transaction_id = pt.id
    WHERE pti.business_id = %s AND pt.status = 'completed'
    GROUP BY pti.item_type
"""

POS_TOTAL_SQL = """
    SELECT COALESCE(SUM(final_amount), 0), COUNT(*)
    FROM pos_transactions
    WHERE business_id = %s AND status = 'completed'
"""

COGS_SQL = """
    SELECT COALESCE(SUM(p.cost_price * pti.quantity), 0), COUNT(*)
    FROM pos_transaction_items pti
    JOIN products p ON pti.product_id = p.id
    JOIN pos_transactions pt ON pti.pos_transaction_id = pt.id
    WHERE pti.business_id = %s
      AND pti.item_type = 'product'
      AND pt.status = 'completed'
"""

EXPENSES_SQL = """
    SELECT COALESCE(SUM(amount), 0), COUNT(*)
    FROM expenses
    WHERE business_id = %s AND status = 'paid'
"""


class SqlOpeningBalanceSource:
    def __init__(self, *, currency: str, connection=None):
        self._currency = currency
        self._connection = connection or default_connection

    def _minor(self, value) -> int:
        return Money.from_major(value, self._currency).amount

    def _aggregate(self, sql: str, business_id: uuid.UUID, source: str) -> Aggregate:
        with self._connection.cursor() as cursor:
            cursor.execute(sql, [str(business_id)])
            total, count = cursor.fetchone()
        return Aggregate(self._minor(total), int(count or 0), source)

    def cash(self, business_id):
        return self._aggregate(CASH_SQL, business_id, "money_wallets (active)")

    def fixed_assets(self, business_id):
        return self._aggregate(
            FIXED_ASSETS_SQL, business_id, "fixed_assets.current_value (active)"
        )

    def inventory(self, business_id):
        return self._aggregate(
            INVENTORY_SQL, business_id, "inventory_items cost_price x current_stock"
        )

    def accounts_receivable(self, business_id):
        return self._aggregate(RECEIVABLES_SQL, business_id, "invoices (unpaid)")

    def accounts_payable(self, business_id):
        return self._aggregate(PAYABLES_SQL, business_id, "purchase_orders (unpaid)")

    def revenue(self, business_id):
        by_type = {}
        with self._connection.cursor() as cursor:
            cursor.execute(REVENUE_BY_TYPE_SQL, [str(business_id)])
            for item_type, total, count in cursor.fetchall():
                by_type[item_type] = Aggregate(
                    self._minor(total), int(count or 0),
                    f"pos_transaction_items ({item_type})",
                )

        empty = Aggregate(0)
        return RevenueBreakdown(
            product=by_type.get("product", empty),
            service=by_type.get("service", empty),
            equipment_hire=by_type.get("equipment_hire", empty),
            total_pos=self._aggregate(
                POS_TOTAL_SQL, business_id, "pos_transactions.final_amount (completed)"
            ),
        )

    def cogs(self, business_id):
        return self._aggregate(
            COGS_SQL, business_id, "pos_transaction_items x products.cost_price"
        )

    def expenses(self, business_id):
        return self._aggregate(EXPENSES_SQL, business_id, "expenses (paid)")
