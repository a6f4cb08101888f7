# stock/services/ledger.py

"""
======================================================
PATH: stock/services/ledger.py
======================================================
STOCK LEDGER ENGINE

The ONLY writer of StockItem balances.

Every balance change is:
1) validated (kind/sign, warehouse policy, mandatory notes)
2) applied to the locked StockItem row with a guarded update
3) recorded as one immutable StockMove
...all inside the caller's transaction.

Rules:
- Quantities are integer units.
- A balance never goes below zero: the movement is rejected with
  InsufficientStock(available, requested) and nothing is written.
- STORE warehouses never take purchase-type movements.
- CORRECTION movements must explain themselves (note required).

Concurrency:
- The StockItem row is taken with select_for_update() (get-or-create).
- The write itself is `UPDATE ... SET quantity = quantity + d WHERE quantity >= -d`,
  so two concurrent decrements can never jointly overdraw a balance even where
  the database ignores row locks (SQLite).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import InsufficientStock, InvalidMovement, ValidationError
from core.lookups import get_or_not_found
from core.validation import clean_text, limit_text, to_int
from products.models import Product
from stock.models import StockItem, StockMove, Warehouse

logger = logging.getLogger(__name__)

STORE_FORBIDDEN_REF_TYPES = frozenset(
    {
        "PURCHASE",
        "PURCHASE_ORDER",
        "PURCHASE_RECEIPT",
        "RECEIPT",
    }
)

REF_TYPE_MAX_LENGTH = StockMove._meta.get_field("ref_type").max_length
REF_ID_MAX_LENGTH = StockMove._meta.get_field("ref_id").max_length

DEFAULT_LAST_MOVES_LIMIT = 50
MAX_LAST_MOVES_LIMIT = 500


@dataclass(frozen=True)
class MovementResult:
    stock_item: StockItem
    move: StockMove | None

    @property
    def quantity(self) -> int:
        return int(self.stock_item.quantity)


# ======================================================
# LOOKUPS
# ======================================================


def get_live_warehouse(warehouse_id, *, label: str = "Warehouse") -> Warehouse:
    return get_or_not_found(Warehouse.objects.all(), warehouse_id, label=label, alive_only=True)


def get_live_product(product_id) -> Product:
    return get_or_not_found(Product.objects.all(), product_id, label="Product", alive_only=True)


def _parse_uuid(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


# ======================================================
# VALIDATION
# ======================================================


def _validate_kind_and_delta(kind, qty_delta) -> tuple[str, int]:
    kind = clean_text(kind).upper()
    try:
        delta = to_int(qty_delta, field_name="qty_delta")
    except ValidationError as exc:
        raise InvalidMovement(exc.message, details={"field": "qty_delta"}) from exc

    error = StockMove.sign_error(kind, delta)
    if error:
        raise InvalidMovement(error, details={"kind": kind, "qty_delta": delta})
    return kind, delta


def _clean_reference(ref_type, ref_id) -> tuple[str, str]:
    try:
        ref_type = limit_text(ref_type, field_name="ref_type", max_length=REF_TYPE_MAX_LENGTH)
        ref_id = limit_text(ref_id, field_name="ref_id", max_length=REF_ID_MAX_LENGTH)
    except ValidationError as exc:
        raise InvalidMovement(exc.message, details=exc.details) from exc
    return ref_type.upper(), ref_id


def _validate_policy(*, warehouse: Warehouse, ref_type: str, note: str) -> None:
    if warehouse.kind == Warehouse.Kind.STORE and ref_type in STORE_FORBIDDEN_REF_TYPES:
        raise InvalidMovement(
            "Invalid ref_type for STORE warehouse",
            details={
                "field": "ref_type",
                "ref_type": ref_type,
                "warehouse_id": str(warehouse.id),
            },
        )

    if ref_type == StockMove.RefType.CORRECTION and not note:
        raise ValidationError(
            "note is required when ref_type=CORRECTION",
            details={"field": "note"},
        )


# ======================================================
# BALANCE PRIMITIVES (row lock + guarded update)
# ======================================================


def _lock_stock_item(*, warehouse: Warehouse, product: Product) -> StockItem:
    item, _ = StockItem.objects.select_for_update().get_or_create(
        warehouse=warehouse,
        product=product,
        defaults={"quantity": 0},
    )
    return item


def _apply_delta(*, item: StockItem, delta: int) -> StockItem:
    available = int(item.quantity)
    if available + delta < 0:
        raise InsufficientStock(
            available=available,
            requested=abs(delta),
            product_id=item.product_id,
            warehouse_id=item.warehouse_id,
        )

    updated = StockItem.objects.filter(pk=item.pk, quantity__gte=-delta).update(
        quantity=F("quantity") + delta,
        updated_at=timezone.now(),
    )
    item.refresh_from_db(fields=["quantity", "updated_at"])

    if updated != 1:
        raise InsufficientStock(
            available=int(item.quantity),
            requested=abs(delta),
            product_id=item.product_id,
            warehouse_id=item.warehouse_id,
        )
    return item


# ======================================================
# WRITE OPERATIONS
# ======================================================


@transaction.atomic
def post_movement(
    *,
    warehouse: Warehouse,
    product: Product,
    kind: str,
    qty_delta: int,
    ref_type: str | None = None,
    ref_id=None,
    note: str | None = None,
    transfer=None,
    inventory=None,
) -> MovementResult:
    """
    Record one movement against already-resolved entities.

    In-process services (transfers, stocktakes, sales, purchases) call this
    directly; external callers go through record_movement() with ids.
    """
    kind, delta = _validate_kind_and_delta(kind, qty_delta)
    ref_type, ref_id = _clean_reference(ref_type, ref_id)
    note = clean_text(note)

    _validate_policy(warehouse=warehouse, ref_type=ref_type, note=note)

    item = _lock_stock_item(warehouse=warehouse, product=product)
    _apply_delta(item=item, delta=delta)

    move = StockMove.objects.create(
        kind=kind,
        warehouse=warehouse,
        product=product,
        qty_delta=delta,
        ref_type=ref_type,
        ref_id=ref_id,
        note=note,
        transfer=transfer,
        inventory=inventory,
    )

    logger.debug(
        "Stock movement recorded",
        extra={
            "move_id": str(move.id),
            "kind": kind,
            "warehouse_id": str(warehouse.id),
            "product_id": str(product.id),
            "qty_delta": delta,
            "balance": int(item.quantity),
            "ref_type": ref_type,
        },
    )
    return MovementResult(stock_item=item, move=move)


@transaction.atomic
def record_movement(
    *,
    kind: str,
    warehouse_id,
    product_id,
    qty_delta: int,
    ref_type: str | None = None,
    ref_id=None,
    note: str | None = None,
    transfer=None,
    inventory=None,
) -> MovementResult:
    """
    Validate and record one signed movement, updating the balance atomically.

    Raises:
    - InvalidMovement: kind/sign mismatch, non-integer delta, STORE policy,
      ref_type or ref_id longer than its column
    - NotFound: warehouse or product missing or soft-deleted
    - ValidationError: CORRECTION without a note
    - InsufficientStock: the balance would go negative
    """
    # Sign checks come first: they need no lookups.
    _validate_kind_and_delta(kind, qty_delta)

    warehouse = get_live_warehouse(warehouse_id)
    product = get_live_product(product_id)

    return post_movement(
        warehouse=warehouse,
        product=product,
        kind=kind,
        qty_delta=qty_delta,
        ref_type=ref_type,
        ref_id=ref_id,
        note=note,
        transfer=transfer,
        inventory=inventory,
    )


@transaction.atomic
def set_balance(
    *,
    warehouse: Warehouse,
    product: Product,
    target_qty: int,
    ref_type: str,
    ref_id=None,
    note: str | None = None,
    inventory=None,
) -> MovementResult:
    """
    Bring a balance to target_qty with one ADJUST movement.

    The delta is computed from the LOCKED current balance, so activity that
    happened since any earlier snapshot is taken into account.
    A zero delta records nothing (move=None).
    """
    target = to_int(target_qty, field_name="target_qty")
    if target < 0:
        raise ValidationError("target_qty cannot be negative", details={"field": "target_qty"})

    item = _lock_stock_item(warehouse=warehouse, product=product)
    delta = target - int(item.quantity)
    if delta == 0:
        return MovementResult(stock_item=item, move=None)

    return post_movement(
        warehouse=warehouse,
        product=product,
        kind=StockMove.Kind.ADJUST,
        qty_delta=delta,
        ref_type=ref_type,
        ref_id=ref_id,
        note=note,
        inventory=inventory,
    )


# ======================================================
# READ OPERATIONS
# ======================================================


def get_balance(*, warehouse_id, product_id) -> int:
    """Current on-hand quantity; 0 when no balance row exists."""
    wid = _parse_uuid(warehouse_id)
    pid = _parse_uuid(product_id)
    if wid is None or pid is None:
        return 0

    qty = (
        StockItem.objects.filter(warehouse_id=wid, product_id=pid)
        .values_list("quantity", flat=True)
        .first()
    )
    return int(qty or 0)


def get_balances_batch(*, warehouse_id, product_ids) -> list[dict]:
    """
    Balances for many products in one query.

    - ids are trimmed and deduplicated (first occurrence wins the position)
    - absent balances report quantity=0
    - empty input returns []
    """
    ids: list[str] = []
    seen = set()
    for raw in product_ids or []:
        pid = clean_text(raw)
        if pid and pid not in seen:
            seen.add(pid)
            ids.append(pid)

    wid = _parse_uuid(warehouse_id)
    if wid is None or not ids:
        return []

    parsed = {pid: _parse_uuid(pid) for pid in ids}
    rows = StockItem.objects.filter(
        warehouse_id=wid,
        product_id__in=[u for u in parsed.values() if u is not None],
    ).values_list("product_id", "quantity")
    by_uuid = {product_id: int(qty) for product_id, qty in rows}

    return [
        {"product_id": pid, "quantity": by_uuid.get(parsed[pid], 0)}
        for pid in ids
    ]


def list_by_warehouse(*, warehouse_id) -> list[dict]:
    """Every active product with its quantity in the warehouse (0 if none)."""
    warehouse = get_live_warehouse(warehouse_id)

    quantities = dict(
        StockItem.objects.filter(warehouse=warehouse).values_list("product_id", "quantity")
    )
    products = Product.objects.stockable().select_related("category").order_by("name")

    return [
        {"product": p, "quantity": int(quantities.get(p.id, 0))}
        for p in products
    ]


def last_moves(*, warehouse_id, limit: int = DEFAULT_LAST_MOVES_LIMIT) -> list[StockMove]:
    """Most recent movements of a warehouse, newest first."""
    warehouse = get_live_warehouse(warehouse_id)
    limit = max(1, min(to_int(limit, field_name="limit"), MAX_LAST_MOVES_LIMIT))

    return list(
        StockMove.objects.filter(warehouse=warehouse)
        .select_related("product")
        .order_by("-created_at")[:limit]
    )
