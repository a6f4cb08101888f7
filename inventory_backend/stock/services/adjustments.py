# stock/services/adjustments.py

"""
STOCK ADJUSTMENT SERVICES

Business-facing wrappers around the ledger. Each one fixes the movement
kind and ref_type so callers cannot mislabel the audit trail:

- create_return      IN      RETURN            (customer brings goods back)
- create_loss        OUT     LOSS              (breakage / theft, note required)
- create_correction  ADJUST  CORRECTION        (audited fix, note required)
- set_inventory      ADJUST  LEGACY_INVENTORY  (single-product recount)

Prefer the stocktake workflow (inventories app) over set_inventory for
physical counts: it snapshots and recomputes against live balances.
"""

from __future__ import annotations

import logging

from django.db import transaction

from core.exceptions import ValidationError
from core.validation import (
    clean_text,
    require_non_negative_int,
    require_positive_int,
    require_text,
    to_int,
)
from stock.models import StockMove
from stock.services.ledger import (
    MovementResult,
    get_live_product,
    get_live_warehouse,
    record_movement,
    set_balance,
)

logger = logging.getLogger(__name__)

LOSS_TYPES = frozenset({"BREAK", "THEFT"})


@transaction.atomic
def create_return(
    *,
    warehouse_id,
    product_id,
    qty: int,
    reason: str | None = None,
    note: str | None = None,
) -> MovementResult:
    qty = require_positive_int(qty, field_name="qty")

    reason = clean_text(reason)
    note = clean_text(note)
    if not note:
        note = f"Customer return: {reason}" if reason else "Customer return"

    result = record_movement(
        kind=StockMove.Kind.IN,
        warehouse_id=warehouse_id,
        product_id=product_id,
        qty_delta=qty,
        ref_type=StockMove.RefType.RETURN,
        note=note,
    )

    logger.info(
        "Customer return recorded",
        extra={"warehouse_id": str(warehouse_id), "product_id": str(product_id), "qty": qty},
    )
    return result


@transaction.atomic
def create_loss(
    *,
    warehouse_id,
    product_id,
    qty: int,
    note: str,
    loss_type: str | None = None,
) -> MovementResult:
    qty = require_positive_int(qty, field_name="qty")
    note = require_text(note, field_name="note")

    loss_type = clean_text(loss_type).upper()
    if loss_type:
        if loss_type not in LOSS_TYPES:
            raise ValidationError(
                "loss_type must be BREAK or THEFT",
                details={"field": "loss_type", "loss_type": loss_type},
            )
        note = f"{note} (type: {loss_type})"

    result = record_movement(
        kind=StockMove.Kind.OUT,
        warehouse_id=warehouse_id,
        product_id=product_id,
        qty_delta=-qty,
        ref_type=StockMove.RefType.LOSS,
        note=note,
    )

    logger.warning(
        "Stock loss recorded",
        extra={
            "warehouse_id": str(warehouse_id),
            "product_id": str(product_id),
            "qty": qty,
            "loss_type": loss_type or None,
        },
    )
    return result


@transaction.atomic
def create_correction(
    *,
    warehouse_id,
    product_id,
    qty_delta: int,
    note: str,
) -> MovementResult:
    note = require_text(note, field_name="note")

    return record_movement(
        kind=StockMove.Kind.ADJUST,
        warehouse_id=warehouse_id,
        product_id=product_id,
        qty_delta=to_int(qty_delta, field_name="qty_delta"),
        ref_type=StockMove.RefType.CORRECTION,
        note=note,
    )


@transaction.atomic
def set_inventory(
    *,
    warehouse_id,
    product_id,
    counted_qty: int,
    note: str,
) -> MovementResult:
    """
    Legacy single-product recount.

    delta = counted - current. A zero delta records no movement and returns
    the current balance with move=None.
    """
    counted = require_non_negative_int(counted_qty, field_name="counted_qty")
    note = require_text(note, field_name="note")

    warehouse = get_live_warehouse(warehouse_id)
    product = get_live_product(product_id)

    return set_balance(
        warehouse=warehouse,
        product=product,
        target_qty=counted,
        ref_type=StockMove.RefType.LEGACY_INVENTORY,
        note=note,
    )
