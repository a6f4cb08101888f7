# sales/services/sale_posting.py

"""
======================================================
PATH: sales/services/sale_posting.py
======================================================
SALE STOCK EFFECTS

create_sale():  DRAFT sale + lines (no stock effect)
post_sale():    DRAFT -> POSTED, stock leaves the sale warehouse
cancel_sale():  DRAFT -> CANCELLED (no stock effect)

Posting flow:
1) Lock sale, validate transition
2) Dry run: every product's TOTAL requested qty must be on hand
3) One OUT movement per line (ref_type=SALE, ref_id=<sale id>)
4) Mark POSTED + posted_at

Any failure rolls back the whole posting: no partial stock effect.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from core.exceptions import InsufficientStock, ValidationError
from core.lookups import get_or_not_found
from core.numbering import DIGITS, DocumentNumber, create_with_unique_number
from core.validation import clean_text, require_positive_int
from products.models import Product
from sales.models import Sale, SaleLine
from sales.services.sale_lifecycle import validate_transition
from stock.models import StockItem, StockMove, Warehouse
from stock.services.ledger import get_live_warehouse, post_movement

logger = logging.getLogger(__name__)

default_sale_number = DocumentNumber("SA", length=4, alphabet=DIGITS)


def _lock_sale(sale_id) -> Sale:
    return get_or_not_found(
        Sale.objects.select_related("warehouse"),
        sale_id,
        label="Sale",
        for_update=True,
    )


@transaction.atomic
def create_sale(*, warehouse_id, lines, note: str | None = None, number_factory=None) -> Sale:
    warehouse = get_live_warehouse(warehouse_id)
    if warehouse.kind == Warehouse.Kind.TRANSIT:
        raise ValidationError(
            "Sales cannot be made from the TRANSIT warehouse",
            details={"warehouse_id": str(warehouse.id)},
        )

    if not lines:
        raise ValidationError("lines are required", details={"field": "lines"})

    resolved: list[tuple[Product, int]] = []
    for i, raw in enumerate(lines):
        raw = raw if isinstance(raw, dict) else {}
        pid = clean_text(raw.get("product_id"))
        if not pid:
            raise ValidationError(
                "product_id is required", details={"field": f"lines[{i}].product_id"}
            )
        qty = require_positive_int(raw.get("qty"), field_name=f"lines[{i}].qty")
        product = get_or_not_found(Product.objects.all(), pid, label="Product", alive_only=True)
        resolved.append((product, qty))

    sale = create_with_unique_number(
        create=lambda number: Sale.objects.create(
            number=number,
            warehouse=warehouse,
            note=clean_text(note),
        ),
        number_factory=number_factory or default_sale_number,
        label="sale",
    )

    SaleLine.objects.bulk_create(
        [
            SaleLine(sale=sale, product=product, qty=qty, position=position)
            for position, (product, qty) in enumerate(resolved)
        ]
    )

    logger.info(
        "Sale created",
        extra={"sale_id": str(sale.id), "number": sale.number, "lines": len(resolved)},
    )
    return sale


@transaction.atomic
def post_sale(sale_id, *, clock=timezone.now) -> Sale:
    sale = _lock_sale(sale_id)
    validate_transition(sale=sale, target_status=Sale.STATUS_POSTED)

    lines = list(sale.lines.select_related("product"))
    if not lines:
        raise ValidationError("Sale has no lines", details={"sale_id": str(sale.id)})

    # Aggregate per product so repeated lines cannot each pass the check alone.
    wanted: dict = {}
    for line in lines:
        wanted[line.product_id] = wanted.get(line.product_id, 0) + int(line.qty)

    on_hand = dict(
        StockItem.objects.select_for_update()
        .filter(warehouse=sale.warehouse, product_id__in=list(wanted))
        .values_list("product_id", "quantity")
    )
    for product_id, qty in wanted.items():
        available = int(on_hand.get(product_id, 0))
        if available < qty:
            raise InsufficientStock(
                available=available,
                requested=qty,
                product_id=product_id,
                warehouse_id=sale.warehouse_id,
            )

    for line in lines:
        post_movement(
            warehouse=sale.warehouse,
            product=line.product,
            kind=StockMove.Kind.OUT,
            qty_delta=-int(line.qty),
            ref_type=StockMove.RefType.SALE,
            ref_id=sale.id,
            note=sale.note,
        )

    sale.status = Sale.STATUS_POSTED
    sale.posted_at = clock()
    sale.save()

    logger.info(
        "Sale posted",
        extra={
            "sale_id": str(sale.id),
            "number": sale.number,
            "warehouse_id": str(sale.warehouse_id),
            "lines": len(lines),
        },
    )
    return sale


@transaction.atomic
def cancel_sale(sale_id) -> Sale:
    sale = _lock_sale(sale_id)
    validate_transition(sale=sale, target_status=Sale.STATUS_CANCELLED)

    sale.status = Sale.STATUS_CANCELLED
    sale.save()

    logger.info("Sale cancelled", extra={"sale_id": str(sale.id)})
    return sale


@transaction.atomic
def set_sale_status(sale_id, *, status: str, clock=timezone.now) -> Sale:
    """Single entry point for status changes (POSTED moves stock)."""
    status = clean_text(status).upper()
    if status == Sale.STATUS_POSTED:
        return post_sale(sale_id, clock=clock)
    if status == Sale.STATUS_CANCELLED:
        return cancel_sale(sale_id)

    sale = _lock_sale(sale_id)
    validate_transition(sale=sale, target_status=status)
    return sale
