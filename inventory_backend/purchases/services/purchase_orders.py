# purchases/services/purchase_orders.py

"""
PURCHASE ORDER SERVICES

create_purchase_order():  DRAFT order + lines (duplicate products merged)
set_purchase_status():    manual lifecycle changes (no stock effect)
list_purchase_orders():   newest first, optional warehouse / status filters

Receiving goods is NOT a status change here: it goes through
purchases.services.receiving_service.receive_purchase_order().
"""

from __future__ import annotations

import logging

from django.db import transaction

from core.exceptions import Conflict, ValidationError
from core.lookups import get_or_not_found
from core.numbering import DocumentNumber, create_with_unique_number
from core.validation import clean_text, limit_text, require_positive_int, to_int
from purchases.models import PurchaseOrder, PurchaseOrderLine
from stock.models import Warehouse
from stock.services.ledger import get_live_product, get_live_warehouse

logger = logging.getLogger(__name__)

default_purchase_number = DocumentNumber("PO", length=6)

SUPPLIER_REF_MAX_LENGTH = PurchaseOrder._meta.get_field("supplier_ref").max_length
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200

# Manual transitions only; PARTIALLY_RECEIVED / RECEIVED are set by receiving.
ALLOWED_TRANSITIONS = {
    PurchaseOrder.STATUS_DRAFT: {PurchaseOrder.STATUS_ORDERED, PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_ORDERED: {PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_PARTIALLY_RECEIVED: {PurchaseOrder.STATUS_CANCELLED},
    PurchaseOrder.STATUS_RECEIVED: set(),
    PurchaseOrder.STATUS_CANCELLED: set(),
}


def _merge_lines(lines) -> list[tuple]:
    merged: dict = {}
    for i, raw in enumerate(lines):
        raw = raw if isinstance(raw, dict) else {}
        pid = clean_text(raw.get("product_id"))
        if not pid:
            raise ValidationError(
                "product_id is required", details={"field": f"lines[{i}].product_id"}
            )
        qty = require_positive_int(raw.get("qty"), field_name=f"lines[{i}].qty")
        product = get_live_product(pid)

        if product.id in merged:
            prev_product, prev_qty = merged[product.id]
            merged[product.id] = (prev_product, prev_qty + qty)
        else:
            merged[product.id] = (product, qty)
    return list(merged.values())


@transaction.atomic
def create_purchase_order(
    *,
    warehouse_id,
    lines,
    supplier_ref: str | None = None,
    note: str | None = None,
    number_factory=None,
) -> PurchaseOrder:
    warehouse = get_live_warehouse(warehouse_id)
    if warehouse.kind != Warehouse.Kind.DEPOT:
        raise ValidationError(
            "Purchase orders must be received into a DEPOT warehouse",
            details={"warehouse_id": str(warehouse.id), "kind": warehouse.kind},
        )

    if not lines:
        raise ValidationError("lines are required", details={"field": "lines"})

    supplier_ref = limit_text(
        supplier_ref, field_name="supplier_ref", max_length=SUPPLIER_REF_MAX_LENGTH
    )
    resolved = _merge_lines(lines)

    order = create_with_unique_number(
        create=lambda number: PurchaseOrder.objects.create(
            number=number,
            warehouse=warehouse,
            supplier_ref=supplier_ref,
            note=clean_text(note),
        ),
        number_factory=number_factory or default_purchase_number,
        label="purchase order",
    )

    PurchaseOrderLine.objects.bulk_create(
        [
            PurchaseOrderLine(order=order, product=product, qty_ordered=qty, position=position)
            for position, (product, qty) in enumerate(resolved)
        ]
    )

    logger.info(
        "Purchase order created",
        extra={"order_id": str(order.id), "number": order.number, "lines": len(resolved)},
    )
    return order


@transaction.atomic
def set_purchase_status(order_id, *, status: str) -> PurchaseOrder:
    order = get_or_not_found(
        PurchaseOrder.objects.all(), order_id, label="Purchase order", for_update=True
    )

    target = clean_text(status).upper()
    if target not in dict(PurchaseOrder.STATUSES):
        raise ValidationError("Invalid status", details={"field": "status", "status": target})

    if target == order.status:
        return order

    if target not in ALLOWED_TRANSITIONS.get(order.status, set()):
        raise Conflict(
            f"Invalid purchase order transition: {order.status} -> {target}",
            details={"order_id": str(order.id), "status": order.status, "target": target},
        )

    order.status = target
    order.save()

    logger.info(
        "Purchase order status changed",
        extra={"order_id": str(order.id), "status": target},
    )
    return order


def get_purchase_order(order_id) -> PurchaseOrder:
    return get_or_not_found(
        PurchaseOrder.objects.select_related("warehouse").prefetch_related("lines__product"),
        order_id,
        label="Purchase order",
    )


def list_purchase_orders(
    *,
    warehouse_id=None,
    status: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[PurchaseOrder]:
    limit = max(1, min(to_int(limit, field_name="limit"), MAX_LIST_LIMIT))

    qs = PurchaseOrder.objects.select_related("warehouse")

    if clean_text(warehouse_id):
        warehouse = get_live_warehouse(warehouse_id)
        qs = qs.filter(warehouse=warehouse)

    status = clean_text(status).upper()
    if status:
        qs = qs.filter(status=status)

    return list(qs.order_by("-created_at")[:limit])
