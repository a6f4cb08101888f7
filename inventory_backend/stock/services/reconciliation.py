# stock/services/reconciliation.py

"""
LEDGER RECONCILIATION

Checks the core ledger invariant:

    for every (warehouse, product):  StockItem.quantity == SUM(StockMove.qty_delta)

Read-only. A balance row without moves must be 0; moves without a balance
row are reported too (balance treated as missing).
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db.models import Sum

from stock.models import StockItem, StockMove


@dataclass(frozen=True)
class BalanceMismatch:
    warehouse_id: str
    product_id: str
    balance: int | None
    ledger_sum: int

    @property
    def drift(self) -> int:
        return int(self.balance or 0) - int(self.ledger_sum)


def find_balance_mismatches(*, warehouse=None) -> list[BalanceMismatch]:
    items = StockItem.objects.all()
    moves = StockMove.objects.all()
    if warehouse is not None:
        items = items.filter(warehouse=warehouse)
        moves = moves.filter(warehouse=warehouse)

    sums = {
        (row["warehouse_id"], row["product_id"]): int(row["total"] or 0)
        for row in moves.values("warehouse_id", "product_id").annotate(total=Sum("qty_delta"))
    }
    balances = {
        (wid, pid): int(qty)
        for wid, pid, qty in items.values_list("warehouse_id", "product_id", "quantity")
    }

    mismatches: list[BalanceMismatch] = []
    for key in sorted(set(sums) | set(balances), key=lambda k: (str(k[0]), str(k[1]))):
        balance = balances.get(key)
        ledger_sum = sums.get(key, 0)
        if int(balance or 0) != ledger_sum:
            mismatches.append(
                BalanceMismatch(
                    warehouse_id=str(key[0]),
                    product_id=str(key[1]),
                    balance=balance,
                    ledger_sum=ledger_sum,
                )
            )
    return mismatches
