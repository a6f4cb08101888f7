# stock/services/transfers.py

"""
======================================================
PATH: stock/services/transfers.py
======================================================
TRANSFER WORKFLOW

Lifecycle:
    DRAFT --ship--> SHIPPED --receive--> PARTIALLY_RECEIVED --receive--> RECEIVED
    DRAFT --cancel--> CANCELLED

Stock moves ONLY at ship/receive, always through the ledger, every move
tagged with the transfer (ref_type=TRANSFER, ref_id=<transfer id>).

Direct transfer (A -> B):
- ship:    OUT at A (all lines, full qty)
- receive: IN at B (received quantities)

Journey (A -> TRANSIT -> B), two transfers sharing journey_id:
- leg 1 ship:    OUT at A + IN at TRANSIT    (goods are "on the road")
- leg 1 receive: bookkeeping only            (stock already sits in TRANSIT)
- leg 2 ship:    availability check at TRANSIT, no movement
- leg 2 receive: OUT at TRANSIT + IN at B    (only what actually arrived)

Guarantees:
- Validation happens before any write; multi-line operations check every
  line first (dry run), so a failure never leaves a partial shipment.
- Every operation is one transaction; the transfer row is locked
  (select_for_update) so concurrent ship/receive calls serialize.
- Linked delivery (if any) gets TRANSFER_* events in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from core.exceptions import (
    ConfigurationError,
    Conflict,
    InsufficientStock,
    NotFound,
    ValidationError,
)
from core.lookups import get_or_not_found
from core.validation import clean_text, require_non_negative_int, require_positive_int, to_int
from deliveries.models import DeliveryEvent
from deliveries.services.events import record_transfer_event
from products.models import Product
from stock.models import StockItem, StockMove, StockTransfer, StockTransferLine, Warehouse
from stock.services.ledger import get_live_warehouse, post_movement

logger = logging.getLogger(__name__)

ENDPOINT_KINDS = frozenset({Warehouse.Kind.DEPOT, Warehouse.Kind.STORE})

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 500


@dataclass(frozen=True)
class TransferLineInput:
    product_id: str
    qty: int
    note: str = ""


@dataclass(frozen=True)
class ReceiveLineInput:
    product_id: str
    qty_received: int


@dataclass(frozen=True)
class Journey:
    journey_id: str
    outbound: StockTransfer
    inbound: StockTransfer


# ======================================================
# INPUT NORMALIZATION
# ======================================================


def _line_value(raw, key: str):
    if isinstance(raw, dict):
        return raw.get(key)
    return getattr(raw, key, None)


def _normalize_transfer_lines(lines) -> list[TransferLineInput]:
    if not lines:
        raise ValidationError("lines are required", details={"field": "lines"})

    normalized: list[TransferLineInput] = []
    seen = set()
    for i, raw in enumerate(lines):
        pid = clean_text(_line_value(raw, "product_id"))
        if not pid:
            raise ValidationError(
                "product_id is required", details={"field": f"lines[{i}].product_id"}
            )

        qty = require_positive_int(_line_value(raw, "qty"), field_name=f"lines[{i}].qty")

        if pid in seen:
            raise ValidationError(
                "Duplicate product_id",
                details={"field": "lines", "product_id": pid},
            )
        seen.add(pid)

        normalized.append(
            TransferLineInput(product_id=pid, qty=qty, note=clean_text(_line_value(raw, "note")))
        )
    return normalized


def _normalize_receive_lines(lines) -> list[ReceiveLineInput]:
    if not lines:
        raise ValidationError("lines are required", details={"field": "lines"})

    normalized: list[ReceiveLineInput] = []
    seen = set()
    for i, raw in enumerate(lines):
        pid = clean_text(_line_value(raw, "product_id"))
        if not pid:
            raise ValidationError(
                "product_id is required", details={"field": f"lines[{i}].product_id"}
            )

        qty = require_non_negative_int(
            _line_value(raw, "qty_received"), field_name=f"lines[{i}].qty_received"
        )

        if pid in seen:
            raise ValidationError(
                "Duplicate product_id",
                details={"field": "lines", "product_id": pid},
            )
        seen.add(pid)

        normalized.append(ReceiveLineInput(product_id=pid, qty_received=qty))
    return normalized


# ======================================================
# LOOKUPS
# ======================================================


def get_transit_warehouse() -> Warehouse:
    """The single system TRANSIT warehouse (ConfigurationError if absent)."""
    transit = (
        Warehouse.objects.filter(kind=Warehouse.Kind.TRANSIT, deleted_at__isnull=True)
        .order_by("created_at")
        .first()
    )
    if transit is None:
        raise ConfigurationError(
            "TRANSIT warehouse not found",
            details={"hint": "run `manage.py seed_transit_warehouse`"},
        )
    return transit


def _resolve_endpoints(from_warehouse_id, to_warehouse_id) -> tuple[Warehouse, Warehouse]:
    if clean_text(from_warehouse_id) == "":
        raise ValidationError("from_warehouse_id is required", details={"field": "from_warehouse_id"})
    if clean_text(to_warehouse_id) == "":
        raise ValidationError("to_warehouse_id is required", details={"field": "to_warehouse_id"})
    if clean_text(from_warehouse_id) == clean_text(to_warehouse_id):
        raise ValidationError(
            "to_warehouse_id must be different from from_warehouse_id",
            details={"field": "to_warehouse_id"},
        )

    source = get_live_warehouse(from_warehouse_id, label="Source warehouse")
    destination = get_live_warehouse(to_warehouse_id, label="Destination warehouse")

    if source.kind not in ENDPOINT_KINDS or destination.kind not in ENDPOINT_KINDS:
        raise ValidationError(
            "Invalid warehouse kind",
            details={"from_kind": source.kind, "to_kind": destination.kind},
        )
    return source, destination


def _resolve_products(product_ids: list[str]) -> dict[str, Product]:
    resolved: dict[str, Product] = {}
    for pid in product_ids:
        try:
            resolved[pid] = get_or_not_found(
                Product.objects.all(), pid, label="Product", alive_only=True
            )
        except NotFound:
            raise NotFound("Product not found", details={"product_id": pid})
    return resolved


def _lock_transfer(transfer_id) -> StockTransfer:
    return get_or_not_found(
        StockTransfer.objects.select_related("from_warehouse", "to_warehouse"),
        transfer_id,
        label="Transfer",
        for_update=True,
    )


def _is_outbound_leg(transfer: StockTransfer) -> bool:
    return transfer.to_warehouse.kind == Warehouse.Kind.TRANSIT


def _is_inbound_leg(transfer: StockTransfer) -> bool:
    return transfer.from_warehouse.kind == Warehouse.Kind.TRANSIT


# ======================================================
# STOCK CHECKS
# ======================================================


def _assert_available(*, warehouse: Warehouse, wanted: list[tuple[Product, int]]) -> None:
    """Dry run: every (product, qty) must be covered before anything moves."""
    rows = StockItem.objects.select_for_update().filter(
        warehouse=warehouse,
        product_id__in=[p.id for p, _ in wanted],
    )
    on_hand = {row.product_id: int(row.quantity) for row in rows}

    for product, qty in wanted:
        available = on_hand.get(product.id, 0)
        if available < qty:
            raise InsufficientStock(
                available=available,
                requested=qty,
                product_id=product.id,
                warehouse_id=warehouse.id,
            )


def _move_note(*, note: str, transfer: StockTransfer, line_note: str = "") -> str:
    return note or transfer.note or line_note


# ======================================================
# CREATE
# ======================================================


def _create_draft(
    *,
    source: Warehouse,
    destination: Warehouse,
    lines: list[TransferLineInput],
    products: dict[str, Product],
    note: str,
    purpose: str | None,
    journey_id: str | None,
) -> StockTransfer:
    transfer = StockTransfer.objects.create(
        from_warehouse=source,
        to_warehouse=destination,
        status=StockTransfer.STATUS_DRAFT,
        note=note,
        purpose=purpose,
        journey_id=journey_id,
    )

    for position, line in enumerate(lines):
        StockTransferLine.objects.create(
            transfer=transfer,
            product=products[line.product_id],
            qty=line.qty,
            note=line.note,
            position=position,
        )
    return transfer


def _clean_purpose(purpose) -> str | None:
    purpose = clean_text(purpose).upper()
    if not purpose:
        return None
    if purpose not in StockTransfer.Purpose.values:
        raise ValidationError(
            "Invalid purpose",
            details={"field": "purpose", "purpose": purpose},
        )
    return purpose


@transaction.atomic
def create_transfer_draft(
    *,
    from_warehouse_id,
    to_warehouse_id,
    lines,
    note: str | None = None,
    purpose: str | None = None,
    journey_id: str | None = None,
) -> StockTransfer:
    """
    Persist a DRAFT transfer between two DEPOT/STORE warehouses.

    No ledger writes happen here.
    """
    normalized = _normalize_transfer_lines(lines)
    source, destination = _resolve_endpoints(from_warehouse_id, to_warehouse_id)
    products = _resolve_products([line.product_id for line in normalized])

    transfer = _create_draft(
        source=source,
        destination=destination,
        lines=normalized,
        products=products,
        note=clean_text(note),
        purpose=_clean_purpose(purpose),
        journey_id=clean_text(journey_id) or None,
    )

    logger.info(
        "Transfer draft created",
        extra={
            "transfer_id": str(transfer.id),
            "from_warehouse_id": str(source.id),
            "to_warehouse_id": str(destination.id),
            "lines": len(normalized),
        },
    )
    return transfer


@transaction.atomic
def create_transfer_journey(
    *,
    from_warehouse_id,
    to_warehouse_id,
    lines,
    note: str | None = None,
    purpose: str | None = StockTransfer.Purpose.INTERNAL_DELIVERY,
    journey_id: str | None = None,
) -> Journey:
    """
    Create the two DRAFT legs of a journey through TRANSIT:
        leg 1 (outbound): source  -> TRANSIT
        leg 2 (inbound):  TRANSIT -> destination
    Both legs carry the same lines, note, purpose and journey_id.
    """
    normalized = _normalize_transfer_lines(lines)
    source, destination = _resolve_endpoints(from_warehouse_id, to_warehouse_id)
    products = _resolve_products([line.product_id for line in normalized])
    transit = get_transit_warehouse()

    journey_id = clean_text(journey_id) or uuid.uuid4().hex
    note = clean_text(note)
    purpose = _clean_purpose(purpose) or StockTransfer.Purpose.INTERNAL_DELIVERY

    outbound = _create_draft(
        source=source,
        destination=transit,
        lines=normalized,
        products=products,
        note=note,
        purpose=purpose,
        journey_id=journey_id,
    )
    inbound = _create_draft(
        source=transit,
        destination=destination,
        lines=normalized,
        products=products,
        note=note,
        purpose=purpose,
        journey_id=journey_id,
    )

    logger.info(
        "Transfer journey created",
        extra={
            "journey_id": journey_id,
            "outbound_id": str(outbound.id),
            "inbound_id": str(inbound.id),
        },
    )
    return Journey(journey_id=journey_id, outbound=outbound, inbound=inbound)


# ======================================================
# SHIP
# ======================================================


@transaction.atomic
def ship_transfer(transfer_id, *, note: str | None = None, clock=timezone.now) -> StockTransfer:
    transfer = _lock_transfer(transfer_id)

    if transfer.status != StockTransfer.STATUS_DRAFT:
        raise Conflict(
            "Transfer is not in DRAFT",
            details={"transfer_id": str(transfer.id), "status": transfer.status},
        )

    lines = list(transfer.lines.select_related("product"))
    if not lines:
        raise ValidationError("Transfer has no lines", details={"transfer_id": str(transfer.id)})

    note = clean_text(note)
    source = transfer.from_warehouse
    destination = transfer.to_warehouse

    _assert_available(
        warehouse=source,
        wanted=[(line.product, int(line.qty)) for line in lines],
    )

    # Leg 2 leaves TRANSIT at receive time, for what actually arrives.
    if not _is_inbound_leg(transfer):
        for line in lines:
            post_movement(
                warehouse=source,
                product=line.product,
                kind=StockMove.Kind.OUT,
                qty_delta=-int(line.qty),
                ref_type=StockMove.RefType.TRANSFER,
                ref_id=transfer.id,
                note=_move_note(note=note, transfer=transfer, line_note=line.note),
                transfer=transfer,
            )

    if _is_outbound_leg(transfer):
        for line in lines:
            post_movement(
                warehouse=destination,
                product=line.product,
                kind=StockMove.Kind.IN,
                qty_delta=int(line.qty),
                ref_type=StockMove.RefType.TRANSFER,
                ref_id=transfer.id,
                note=_move_note(note=note, transfer=transfer, line_note=line.note),
                transfer=transfer,
            )

    transfer.status = StockTransfer.STATUS_SHIPPED
    transfer.shipped_at = clock()
    if note:
        transfer.note = note
    transfer.save()

    record_transfer_event(
        transfer,
        type=DeliveryEvent.TYPE_TRANSFER_SHIPPED,
        message="Shipped",
        meta={
            "transfer_id": str(transfer.id),
            "shipped_at": transfer.shipped_at.isoformat(),
            "from_warehouse_id": str(source.id),
            "to_warehouse_id": str(destination.id),
        },
    )

    logger.info(
        "Transfer shipped",
        extra={
            "transfer_id": str(transfer.id),
            "journey_id": transfer.journey_id,
            "lines": len(lines),
        },
    )
    return transfer


# ======================================================
# RECEIVE
# ======================================================


@transaction.atomic
def receive_transfer(
    transfer_id,
    *,
    lines,
    note: str | None = None,
    clock=timezone.now,
) -> StockTransfer:
    """
    Receive some or all remaining quantities.

    Each input line: {product_id, qty_received}; qty_received may be 0 (the
    line is skipped) but never more than what remains on that line.
    """
    transfer = _lock_transfer(transfer_id)

    if not transfer.is_receivable:
        raise Conflict(
            "Transfer is not in SHIPPED",
            details={"transfer_id": str(transfer.id), "status": transfer.status},
        )

    inputs = _normalize_receive_lines(lines)
    note = clean_text(note)

    by_product = {
        str(line.product_id): line
        for line in transfer.lines.select_for_update().select_related("product")
    }

    accepted: list[tuple[StockTransferLine, int]] = []
    for item in inputs:
        base = by_product.get(item.product_id)
        if base is None:
            raise ValidationError(
                "Product not part of transfer",
                details={"product_id": item.product_id},
            )
        remaining = base.remaining
        if item.qty_received > remaining:
            raise ValidationError(
                "qty_received exceeds remaining",
                details={
                    "product_id": item.product_id,
                    "remaining": remaining,
                    "requested": item.qty_received,
                },
            )
        if item.qty_received > 0:
            accepted.append((base, item.qty_received))

    source = transfer.from_warehouse
    destination = transfer.to_warehouse

    if _is_inbound_leg(transfer) and accepted:
        _assert_available(
            warehouse=source,
            wanted=[(line.product, qty) for line, qty in accepted],
        )
        for line, qty in accepted:
            post_movement(
                warehouse=source,
                product=line.product,
                kind=StockMove.Kind.OUT,
                qty_delta=-qty,
                ref_type=StockMove.RefType.TRANSFER,
                ref_id=transfer.id,
                note=_move_note(note=note, transfer=transfer),
                transfer=transfer,
            )

    for line, qty in accepted:
        # Leg 1 stock was booked into TRANSIT at ship time.
        if not _is_outbound_leg(transfer):
            post_movement(
                warehouse=destination,
                product=line.product,
                kind=StockMove.Kind.IN,
                qty_delta=qty,
                ref_type=StockMove.RefType.TRANSFER,
                ref_id=transfer.id,
                note=_move_note(note=note, transfer=transfer),
                transfer=transfer,
            )

        line.qty_received = int(line.qty_received) + qty
        line.save(update_fields=["qty_received"])

    all_lines = list(by_product.values())
    fully = all(line.remaining == 0 for line in all_lines)

    if fully:
        transfer.status = StockTransfer.STATUS_RECEIVED
        transfer.received_at = clock()
    else:
        transfer.status = StockTransfer.STATUS_PARTIALLY_RECEIVED
    if note:
        transfer.note = note
    transfer.save()

    expected = sum(int(line.qty) for line in all_lines)
    received = sum(int(line.qty_received) for line in all_lines)

    record_transfer_event(
        transfer,
        type=(
            DeliveryEvent.TYPE_TRANSFER_RECEIVED
            if fully
            else DeliveryEvent.TYPE_TRANSFER_PARTIALLY_RECEIVED
        ),
        message="Received" if fully else "Partially received",
        meta={
            "transfer_id": str(transfer.id),
            "status": transfer.status,
            "totals": {
                "expected": expected,
                "received": received,
                "missing": max(0, expected - received),
            },
        },
    )

    logger.info(
        "Transfer received",
        extra={
            "transfer_id": str(transfer.id),
            "journey_id": transfer.journey_id,
            "status": transfer.status,
            "received": received,
            "expected": expected,
        },
    )
    return transfer


# ======================================================
# LEGACY / ADMIN HELPERS
# ======================================================


@transaction.atomic
def transfer_now(
    *,
    from_warehouse_id,
    to_warehouse_id,
    lines,
    note: str | None = None,
    purpose: str | None = None,
    clock=timezone.now,
) -> StockTransfer:
    """Instant transfer: draft, ship and receive everything in one go."""
    draft = create_transfer_draft(
        from_warehouse_id=from_warehouse_id,
        to_warehouse_id=to_warehouse_id,
        lines=lines,
        note=note,
        purpose=purpose,
    )
    shipped = ship_transfer(draft.id, note=note, clock=clock)

    return receive_transfer(
        shipped.id,
        lines=[
            {"product_id": str(line.product_id), "qty_received": int(line.qty)}
            for line in shipped.lines.all()
        ],
        note=note,
        clock=clock,
    )


@transaction.atomic
def cancel_transfer(transfer_id) -> StockTransfer:
    """DRAFT -> CANCELLED. Shipped transfers hold stock and cannot be cancelled."""
    transfer = _lock_transfer(transfer_id)

    if transfer.status != StockTransfer.STATUS_DRAFT:
        raise Conflict(
            "Only DRAFT transfers can be cancelled",
            details={"transfer_id": str(transfer.id), "status": transfer.status},
        )

    transfer.status = StockTransfer.STATUS_CANCELLED
    transfer.save()

    logger.info("Transfer cancelled", extra={"transfer_id": str(transfer.id)})
    return transfer


# ======================================================
# READ
# ======================================================


def get_transfer(transfer_id) -> StockTransfer:
    """Transfer with warehouses, lines (+products) and its delivery, if any."""
    return get_or_not_found(
        StockTransfer.objects.select_related(
            "from_warehouse", "to_warehouse", "delivery"
        ).prefetch_related("lines__product"),
        transfer_id,
        label="Transfer",
    )


def list_transfers(
    *,
    limit: int = DEFAULT_LIST_LIMIT,
    journey_id: str | None = None,
    status: str | None = None,
) -> list[StockTransfer]:
    limit = max(1, min(to_int(limit, field_name="limit"), MAX_LIST_LIMIT))

    qs = StockTransfer.objects.select_related(
        "from_warehouse", "to_warehouse"
    ).prefetch_related("lines__product")

    journey_id = clean_text(journey_id)
    if journey_id:
        qs = qs.filter(journey_id=journey_id)

    status = clean_text(status).upper()
    if status:
        qs = qs.filter(status=status)

    return list(qs.order_by("-created_at")[:limit])
