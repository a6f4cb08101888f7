# purchases/services/receiving_service.py


"""
======================================================
PATH: purchases/services/receiving_service.py
======================================================
PURCHASE RECEIVING SERVICE

Receive goods against a PurchaseOrder atomically.

Canonical flow:
1) Lock order
2) Validate status + lines (every qty_received must fit the line's remainder)
3) Post one IN movement per received line (ref_type=PURCHASE_RECEIPT, ref_id=<order id>)
4) Advance line progress and recompute the order status

Rules:
- Only ORDERED or PARTIALLY_RECEIVED orders can receive goods.
- Lines are {product_id, qty_received}; qty_received must be an integer >= 0
  and zero quantities are skipped.
- A receipt with nothing to receive is an error, not a no-op.
- Over-receiving a line (qty > remaining) is rejected before any stock moves.
- Status becomes RECEIVED once every line is fully received,
  PARTIALLY_RECEIVED otherwise.

Warehouse policy (STORE never takes purchase receipts) is enforced by the
ledger itself; orders are also only created against DEPOT warehouses.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from core.exceptions import Conflict, ValidationError
from core.lookups import get_or_not_found
from core.validation import clean_text, require_non_negative_int
from purchases.models import PurchaseOrder
from stock.models import StockMove
from stock.services.ledger import post_movement

logger = logging.getLogger(__name__)

RECEIVABLE_STATUSES = frozenset(
    {PurchaseOrder.STATUS_ORDERED, PurchaseOrder.STATUS_PARTIALLY_RECEIVED}
)


def _parse_receipt(order: PurchaseOrder, lines) -> list[tuple]:
    """
    Map the requested receipt onto order lines.

    Returns [(order_line, qty)] with zero quantities dropped.
    """
    by_product = {str(line.product_id): line for line in order.lines.select_related("product")}

    planned = []
    seen = set()
    for i, raw in enumerate(lines or []):
        raw = raw if isinstance(raw, dict) else {}
        pid = clean_text(raw.get("product_id"))
        qty = require_non_negative_int(
            raw.get("qty_received"), field_name=f"lines[{i}].qty_received"
        )

        line = by_product.get(pid)
        if line is None:
            raise ValidationError(
                "Product is not on this purchase order",
                details={"field": f"lines[{i}].product_id", "product_id": pid},
            )
        if pid in seen:
            raise ValidationError(
                "Duplicate product in receipt",
                details={"field": f"lines[{i}].product_id", "product_id": pid},
            )
        seen.add(pid)

        if qty == 0:
            continue

        if qty > line.remaining:
            raise ValidationError(
                "Cannot receive more than remaining",
                details={
                    "product_id": pid,
                    "requested": qty,
                    "remaining": line.remaining,
                },
            )
        planned.append((line, qty))

    return planned


@transaction.atomic
def receive_purchase_order(
    order_id,
    *,
    lines,
    note: str | None = None,
    clock=timezone.now,
) -> PurchaseOrder:
    order = get_or_not_found(
        PurchaseOrder.objects.select_related("warehouse"),
        order_id,
        label="Purchase order",
        for_update=True,
    )

    if order.status not in RECEIVABLE_STATUSES:
        raise Conflict(
            f"Purchase order cannot be received in status {order.status}",
            details={"order_id": str(order.id), "status": order.status},
        )

    planned = _parse_receipt(order, lines)
    if not planned:
        raise ValidationError(
            "Nothing to receive", details={"order_id": str(order.id)}
        )

    note = clean_text(note) or f"Purchase receipt {order.number}"

    for line, qty in planned:
        post_movement(
            warehouse=order.warehouse,
            product=line.product,
            kind=StockMove.Kind.IN,
            qty_delta=qty,
            ref_type=StockMove.RefType.PURCHASE_RECEIPT,
            ref_id=order.id,
            note=note,
        )
        line.qty_received = int(line.qty_received) + qty
        line.save(update_fields=["qty_received"])

    fully_received = all(line.remaining == 0 for line in order.lines.all())
    if fully_received:
        order.status = PurchaseOrder.STATUS_RECEIVED
        order.received_at = clock()
    else:
        order.status = PurchaseOrder.STATUS_PARTIALLY_RECEIVED
    order.save()

    logger.info(
        "Purchase order received",
        extra={
            "order_id": str(order.id),
            "number": order.number,
            "status": order.status,
            "received_lines": len(planned),
        },
    )
    return order
