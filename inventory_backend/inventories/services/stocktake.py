# inventories/services/stocktake.py

"""
======================================================
PATH: inventories/services/stocktake.py
======================================================
STOCKTAKE WORKFLOW

Two-phase reconciliation:

1) generate_lines(): snapshot each product's balance as expected_qty.
   The scope (which products) is fixed from then on.
2) post_inventory(): for every counted line, re-read the LIVE balance and
   adjust it to counted_qty with one ADJUST movement (ref_type=INVENTORY).

Because posting recomputes against the live balance, sales/receipts that
happened while people were counting are not overwritten twice: the final
balance is exactly what was counted.

Rules:
- Only DRAFT stocktakes can be generated, edited, posted or cancelled.
- Posting requires a note (audit) and at least one counted, non-skipped line.
- Zero real deltas record no movement.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from core.exceptions import Conflict, NotFound, ValidationError
from core.lookups import get_or_not_found
from core.numbering import DocumentNumber, create_with_unique_number
from core.validation import (
    clean_text,
    limit_text,
    require_non_negative_int,
    require_text,
    to_int,
)
from inventories.models import StockInventory, StockInventoryLine
from products.models import Category, Product
from stock.models import StockItem, StockMove
from stock.services.ledger import get_live_warehouse, set_balance

logger = logging.getLogger(__name__)

UNSET = object()

default_inventory_number = DocumentNumber("INVSTK", length=5)

POST_NOTE_MIN_LENGTH = 3
NOTE_MAX_LENGTH = StockInventory._meta.get_field("note").max_length
POSTED_BY_MAX_LENGTH = StockInventory._meta.get_field("posted_by").max_length
LINE_NOTE_MAX_LENGTH = StockInventoryLine._meta.get_field("note").max_length
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200


# ======================================================
# HELPERS
# ======================================================


def _clean_mode(mode, *, default=StockInventory.Mode.FULL) -> str:
    mode = clean_text(mode).upper() or default
    if mode not in StockInventory.Mode.values:
        raise ValidationError("Invalid mode", details={"field": "mode", "mode": mode})
    return mode


def _resolve_category(category_id) -> Category:
    try:
        return get_or_not_found(
            Category.objects.all(), category_id, label="Category", alive_only=True
        )
    except NotFound:
        raise NotFound("Category not found", details={"category_id": str(category_id)})


def _lock_inventory(inventory_id) -> StockInventory:
    return get_or_not_found(
        StockInventory.objects.select_related("warehouse"),
        inventory_id,
        label="Inventory",
        for_update=True,
    )


def _require_draft(inventory: StockInventory, *, action: str) -> None:
    if not inventory.is_editable:
        raise Conflict(
            f"Inventory is not editable ({action})",
            details={"inventory_id": str(inventory.id), "status": inventory.status},
        )


# ======================================================
# CREATE / GENERATE
# ======================================================


@transaction.atomic
def create_draft(
    *,
    warehouse_id,
    mode: str | None = None,
    category_id=None,
    note: str | None = None,
    number_factory=None,
) -> StockInventory:
    warehouse = get_live_warehouse(warehouse_id)
    mode = _clean_mode(mode)
    note = limit_text(note, field_name="note", max_length=NOTE_MAX_LENGTH)

    if mode == StockInventory.Mode.CATEGORY and not clean_text(category_id):
        raise ValidationError(
            "category_id required for CATEGORY mode",
            details={"field": "category_id"},
        )

    category = _resolve_category(category_id) if clean_text(category_id) else None

    inventory = create_with_unique_number(
        create=lambda number: StockInventory.objects.create(
            number=number,
            status=StockInventory.STATUS_DRAFT,
            mode=mode,
            warehouse=warehouse,
            category=category,
            note=note,
        ),
        number_factory=number_factory or default_inventory_number,
        label="inventory",
    )

    logger.info(
        "Stocktake draft created",
        extra={
            "inventory_id": str(inventory.id),
            "number": inventory.number,
            "warehouse_id": str(warehouse.id),
            "mode": mode,
        },
    )
    return inventory


@transaction.atomic
def generate_lines(inventory_id, *, mode: str | None = None, category_id=None) -> int:
    """
    Create one PENDING line per targeted product with the current balance
    as expected_qty. Returns the number of lines created.
    """
    inventory = _lock_inventory(inventory_id)
    _require_draft(inventory, action="generate lines")

    if inventory.lines.exists():
        raise Conflict(
            "Lines already generated",
            details={"inventory_id": str(inventory.id)},
        )

    mode = _clean_mode(mode, default=inventory.mode)
    category = None
    if mode == StockInventory.Mode.CATEGORY:
        if clean_text(category_id):
            category = _resolve_category(category_id)
        elif inventory.category_id:
            category = inventory.category
        else:
            raise ValidationError(
                "category_id required for CATEGORY mode",
                details={"field": "category_id"},
            )

    products = Product.objects.stockable()
    if category is not None:
        products = products.filter(category=category)
    product_ids = list(products.order_by("name").values_list("id", flat=True))

    expected = dict(
        StockItem.objects.filter(
            warehouse=inventory.warehouse, product_id__in=product_ids
        ).values_list("product_id", "quantity")
    )

    StockInventoryLine.objects.bulk_create(
        [
            StockInventoryLine(
                inventory=inventory,
                product_id=pid,
                expected_qty=int(expected.get(pid, 0)),
                counted_qty=None,
                delta=0,
                status=StockInventoryLine.Status.PENDING,
            )
            for pid in product_ids
        ]
    )

    inventory.mode = mode
    inventory.category = category
    inventory.save()

    logger.info(
        "Stocktake lines generated",
        extra={"inventory_id": str(inventory.id), "count": len(product_ids), "mode": mode},
    )
    return len(product_ids)


# ======================================================
# COUNT
# ======================================================


@transaction.atomic
def update_line(
    inventory_id,
    line_id,
    *,
    counted_qty=UNSET,
    status: str | None = None,
    note=UNSET,
) -> StockInventoryLine:
    """
    Record (or correct) a count.

    counted_qty: int >= 0, None to clear, omitted to keep the current value.
    status: defaults to COUNTED when a count is present, else PENDING.
    """
    inventory = _lock_inventory(inventory_id)
    _require_draft(inventory, action="update line")

    try:
        line = get_or_not_found(
            inventory.lines.all(), line_id, label="Inventory line", for_update=True
        )
    except NotFound:
        raise NotFound(
            "Inventory line not found",
            details={"inventory_id": str(inventory.id), "line_id": str(line_id)},
        )

    if counted_qty is not UNSET:
        line.counted_qty = (
            None
            if counted_qty is None
            else require_non_negative_int(counted_qty, field_name="counted_qty")
        )

    if status:
        status = clean_text(status).upper()
        if status not in StockInventoryLine.Status.values:
            raise ValidationError(
                "Invalid line status", details={"field": "status", "status": status}
            )
        line.status = status
    else:
        line.status = (
            StockInventoryLine.Status.COUNTED
            if line.counted_qty is not None
            else StockInventoryLine.Status.PENDING
        )

    line.delta = (
        0 if line.counted_qty is None else int(line.counted_qty) - int(line.expected_qty)
    )

    if note is not UNSET:
        line.note = limit_text(note, field_name="note", max_length=LINE_NOTE_MAX_LENGTH)

    line.save()
    return line


# ======================================================
# POST / CANCEL
# ======================================================


@transaction.atomic
def post_inventory(
    inventory_id,
    *,
    note: str,
    posted_by: str | None = None,
    clock=timezone.now,
) -> StockInventory:
    inventory = _lock_inventory(inventory_id)
    _require_draft(inventory, action="post")

    note = require_text(
        note,
        field_name="note",
        min_length=POST_NOTE_MIN_LENGTH,
        max_length=NOTE_MAX_LENGTH,
    )
    posted_by = limit_text(posted_by, field_name="posted_by", max_length=POSTED_BY_MAX_LENGTH)

    lines = list(inventory.lines.select_related("product"))
    if not lines:
        raise ValidationError(
            "No lines to post", details={"inventory_id": str(inventory.id)}
        )

    counted = [line for line in lines if line.is_countable]
    if not counted:
        raise ValidationError(
            "Nothing counted",
            details={"inventory_id": str(inventory.id), "reason": "no counted lines"},
        )

    adjusted = 0
    for line in counted:
        result = set_balance(
            warehouse=inventory.warehouse,
            product=line.product,
            target_qty=int(line.counted_qty),
            ref_type=StockMove.RefType.INVENTORY,
            ref_id=inventory.id,
            note=note,
            inventory=inventory,
        )
        if result.move is not None:
            adjusted += 1

    inventory.status = StockInventory.STATUS_POSTED
    inventory.posted_at = clock()
    inventory.posted_by = posted_by
    inventory.note = note
    inventory.save()

    logger.info(
        "Stocktake posted",
        extra={
            "inventory_id": str(inventory.id),
            "number": inventory.number,
            "counted_lines": len(counted),
            "adjusted_lines": adjusted,
        },
    )
    return inventory


@transaction.atomic
def cancel_inventory(inventory_id) -> StockInventory:
    inventory = _lock_inventory(inventory_id)
    _require_draft(inventory, action="cancel")

    inventory.status = StockInventory.STATUS_CANCELLED
    inventory.save()

    logger.info("Stocktake cancelled", extra={"inventory_id": str(inventory.id)})
    return inventory


# ======================================================
# READ
# ======================================================


def get_inventory(inventory_id) -> StockInventory:
    return get_or_not_found(
        StockInventory.objects.select_related("warehouse", "category").prefetch_related(
            "lines__product__category"
        ),
        inventory_id,
        label="Inventory",
    )


def list_inventories(
    *,
    warehouse_id=None,
    status: str | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[StockInventory]:
    limit = max(1, min(to_int(limit, field_name="limit"), MAX_LIST_LIMIT))

    qs = StockInventory.objects.select_related("warehouse", "category")

    if clean_text(warehouse_id):
        warehouse = get_live_warehouse(warehouse_id)
        qs = qs.filter(warehouse=warehouse)

    status = clean_text(status).upper()
    if status:
        qs = qs.filter(status=status)

    return list(qs.order_by("-created_at")[:limit])


def variance_summary(inventory_id) -> dict:
    """Counted / surplus / loss figures for a stocktake (snapshot-based)."""
    inventory = get_inventory(inventory_id)
    lines = [line for line in inventory.lines.all() if line.is_countable]

    surplus = [line for line in lines if line.delta > 0]
    loss = [line for line in lines if line.delta < 0]

    return {
        "inventory_id": str(inventory.id),
        "status": inventory.status,
        "total_lines": len(inventory.lines.all()),
        "counted_lines": len(lines),
        "surplus_lines": len(surplus),
        "surplus_qty": sum(line.delta for line in surplus),
        "loss_lines": len(loss),
        "loss_qty": -sum(line.delta for line in loss),
    }
