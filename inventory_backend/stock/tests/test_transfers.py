# stock/tests/test_transfers.py

from datetime import datetime, timezone as dt_timezone

from django.test import TestCase

from core.exceptions import (
    ConfigurationError,
    Conflict,
    InsufficientStock,
    NotFound,
    ValidationError,
)
from deliveries.models import DeliveryEvent
from deliveries.services.deliveries import create_delivery_for_transfer, list_events
from products.models import Product
from stock.models import StockMove, StockTransfer, Warehouse
from stock.services.ledger import get_balance, record_movement
from stock.services.transfers import (
    cancel_transfer,
    create_transfer_draft,
    create_transfer_journey,
    get_transfer,
    list_transfers,
    receive_transfer,
    ship_transfer,
    transfer_now,
)


def fixed_clock():
    return datetime(2026, 3, 1, 9, 0, tzinfo=dt_timezone.utc)


class TransferTestMixin:
    def setUp(self):
        self.depot = Warehouse.objects.create(code="DEP", name="Depot", kind=Warehouse.Kind.DEPOT)
        self.store = Warehouse.objects.create(code="STO", name="Store", kind=Warehouse.Kind.STORE)
        self.transit = Warehouse.objects.create(
            code="TRANSIT", name="Transit", kind=Warehouse.Kind.TRANSIT
        )

        self.p1 = Product.objects.create(sku="P1", name="Widget")
        self.p2 = Product.objects.create(sku="P2", name="Gadget")

        for product, qty in ((self.p1, 10), (self.p2, 4)):
            record_movement(
                kind=StockMove.Kind.IN,
                warehouse_id=self.depot.id,
                product_id=product.id,
                qty_delta=qty,
            )

    def balance(self, warehouse, product):
        return get_balance(warehouse_id=warehouse.id, product_id=product.id)

    def transfer_moves(self, transfer):
        return StockMove.objects.filter(transfer=transfer)


class DirectTransferTests(TransferTestMixin, TestCase):
    """
    Tests for single-hop transfers (A -> B).

    GUARANTEES:
    - Stock only moves at ship / receive
    - Ship is all-or-nothing across lines
    - Partial receipts accumulate up to the shipped qty
    - Illegal state transitions raise Conflict
    """

    def _draft(self, lines=None, **kwargs):
        return create_transfer_draft(
            from_warehouse_id=self.depot.id,
            to_warehouse_id=self.store.id,
            lines=[{"product_id": str(self.p1.id), "qty": 6}] if lines is None else lines,
            **kwargs,
        )

    # --------------------------------------------------
    # CREATE
    # --------------------------------------------------

    def test_draft_has_no_stock_effect(self):
        transfer = self._draft(note="weekly refill", purpose="store_replenish")

        self.assertEqual(transfer.status, StockTransfer.STATUS_DRAFT)
        self.assertEqual(transfer.purpose, StockTransfer.Purpose.STORE_REPLENISH)
        self.assertEqual(transfer.lines.count(), 1)
        self.assertFalse(self.transfer_moves(transfer).exists())
        self.assertEqual(self.balance(self.depot, self.p1), 10)

    def test_draft_validation(self):
        with self.assertRaises(ValidationError):
            self._draft(lines=[])
        with self.assertRaises(ValidationError):
            self._draft(lines=[{"product_id": str(self.p1.id), "qty": 0}])
        with self.assertRaises(ValidationError):
            self._draft(
                lines=[
                    {"product_id": str(self.p1.id), "qty": 1},
                    {"product_id": str(self.p1.id), "qty": 2},
                ]
            )
        with self.assertRaises(ValidationError):
            create_transfer_draft(
                from_warehouse_id=self.depot.id,
                to_warehouse_id=self.depot.id,
                lines=[{"product_id": str(self.p1.id), "qty": 1}],
            )
        with self.assertRaises(ValidationError):
            create_transfer_draft(
                from_warehouse_id=self.depot.id,
                to_warehouse_id=self.transit.id,
                lines=[{"product_id": str(self.p1.id), "qty": 1}],
            )
        with self.assertRaises(NotFound):
            self._draft(lines=[{"product_id": "missing", "qty": 1}])

        self.assertFalse(StockTransfer.objects.exists())

    # --------------------------------------------------
    # SHIP
    # --------------------------------------------------

    def test_ship_moves_stock_out_of_source(self):
        transfer = self._draft()

        shipped = ship_transfer(transfer.id, clock=fixed_clock)

        self.assertEqual(shipped.status, StockTransfer.STATUS_SHIPPED)
        self.assertEqual(shipped.shipped_at, fixed_clock())
        self.assertEqual(self.balance(self.depot, self.p1), 4)
        self.assertEqual(self.balance(self.store, self.p1), 0)

        move = self.transfer_moves(transfer).get()
        self.assertEqual(move.kind, StockMove.Kind.OUT)
        self.assertEqual(move.qty_delta, -6)
        self.assertEqual(move.ref_type, StockMove.RefType.TRANSFER)
        self.assertEqual(move.ref_id, str(transfer.id))

    def test_ship_is_all_or_nothing(self):
        transfer = self._draft(
            lines=[
                {"product_id": str(self.p1.id), "qty": 5},
                {"product_id": str(self.p2.id), "qty": 9},
            ]
        )

        with self.assertRaises(InsufficientStock) as ctx:
            ship_transfer(transfer.id)

        self.assertEqual(ctx.exception.available, 4)
        self.assertEqual(ctx.exception.requested, 9)
        self.assertEqual(self.balance(self.depot, self.p1), 10)
        self.assertEqual(StockTransfer.objects.get(pk=transfer.pk).status, StockTransfer.STATUS_DRAFT)
        self.assertFalse(self.transfer_moves(transfer).exists())

    def test_second_ship_is_a_conflict(self):
        transfer = self._draft()
        ship_transfer(transfer.id)

        with self.assertRaises(Conflict):
            ship_transfer(transfer.id)

        self.assertEqual(self.balance(self.depot, self.p1), 4)
        self.assertEqual(self.transfer_moves(transfer).count(), 1)

    # --------------------------------------------------
    # RECEIVE
    # --------------------------------------------------

    def test_partial_then_full_receipt(self):
        transfer = self._draft()
        ship_transfer(transfer.id)

        partial = receive_transfer(
            transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": 4}]
        )
        self.assertEqual(partial.status, StockTransfer.STATUS_PARTIALLY_RECEIVED)
        self.assertIsNone(partial.received_at)
        self.assertEqual(self.balance(self.store, self.p1), 4)

        done = receive_transfer(
            transfer.id,
            lines=[{"product_id": str(self.p1.id), "qty_received": 2}],
            clock=fixed_clock,
        )
        self.assertEqual(done.status, StockTransfer.STATUS_RECEIVED)
        self.assertEqual(done.received_at, fixed_clock())
        self.assertEqual(self.balance(self.store, self.p1), 6)
        self.assertEqual(get_transfer(transfer.id).lines.get().qty_received, 6)

    def test_receive_validation(self):
        transfer = self._draft()

        with self.assertRaises(Conflict):
            receive_transfer(
                transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": 1}]
            )

        ship_transfer(transfer.id)

        with self.assertRaises(ValidationError):
            receive_transfer(
                transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": 7}]
            )
        with self.assertRaises(ValidationError):
            receive_transfer(
                transfer.id, lines=[{"product_id": str(self.p2.id), "qty_received": 1}]
            )
        with self.assertRaises(ValidationError):
            receive_transfer(
                transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": -1}]
            )

        self.assertEqual(self.balance(self.store, self.p1), 0)

    def test_zero_receipt_marks_partial(self):
        transfer = self._draft()
        ship_transfer(transfer.id)

        result = receive_transfer(
            transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": 0}]
        )

        self.assertEqual(result.status, StockTransfer.STATUS_PARTIALLY_RECEIVED)
        self.assertEqual(self.transfer_moves(transfer).count(), 1)

    # --------------------------------------------------
    # CANCEL / INSTANT
    # --------------------------------------------------

    def test_cancel_only_from_draft(self):
        transfer = self._draft()
        self.assertEqual(cancel_transfer(transfer.id).status, StockTransfer.STATUS_CANCELLED)

        shipped = self._draft()
        ship_transfer(shipped.id)
        with self.assertRaises(Conflict):
            cancel_transfer(shipped.id)

    def test_transfer_now(self):
        transfer = transfer_now(
            from_warehouse_id=self.depot.id,
            to_warehouse_id=self.store.id,
            lines=[{"product_id": str(self.p2.id), "qty": 4}],
        )

        self.assertEqual(transfer.status, StockTransfer.STATUS_RECEIVED)
        self.assertEqual(self.balance(self.depot, self.p2), 0)
        self.assertEqual(self.balance(self.store, self.p2), 4)


class TransferJourneyTests(TransferTestMixin, TestCase):
    """
    Tests for two-leg journeys through TRANSIT.

    GUARANTEES:
    - Leg 1 ship: OUT at source + IN at TRANSIT
    - Leg 2 ship: availability check only
    - Leg 2 receive: OUT at TRANSIT + IN at destination, for what arrived
    - Sum over all three warehouses never changes
    """

    def _journey(self, qty=5):
        return create_transfer_journey(
            from_warehouse_id=self.depot.id,
            to_warehouse_id=self.store.id,
            lines=[{"product_id": str(self.p1.id), "qty": qty}],
        )

    def _total(self):
        return sum(self.balance(w, self.p1) for w in (self.depot, self.transit, self.store))

    def test_journey_legs_share_journey_id(self):
        journey = self._journey()

        self.assertEqual(journey.outbound.journey_id, journey.journey_id)
        self.assertEqual(journey.inbound.journey_id, journey.journey_id)
        self.assertEqual(journey.outbound.to_warehouse, self.transit)
        self.assertEqual(journey.inbound.from_warehouse, self.transit)
        self.assertEqual(journey.outbound.purpose, StockTransfer.Purpose.INTERNAL_DELIVERY)
        self.assertEqual(
            {t.id for t in list_transfers(journey_id=journey.journey_id)},
            {journey.outbound.id, journey.inbound.id},
        )

    def test_full_journey(self):
        journey = self._journey(qty=5)

        ship_transfer(journey.outbound.id)
        self.assertEqual(self.balance(self.depot, self.p1), 5)
        self.assertEqual(self.balance(self.transit, self.p1), 5)

        receive_transfer(
            journey.outbound.id, lines=[{"product_id": str(self.p1.id), "qty_received": 5}]
        )
        # Leg 1 receipt is bookkeeping only.
        self.assertEqual(self.balance(self.transit, self.p1), 5)

        ship_transfer(journey.inbound.id)
        self.assertEqual(self.balance(self.transit, self.p1), 5)
        self.assertFalse(self.transfer_moves(journey.inbound).exists())

        leg2 = receive_transfer(
            journey.inbound.id, lines=[{"product_id": str(self.p1.id), "qty_received": 3}]
        )
        self.assertEqual(leg2.status, StockTransfer.STATUS_PARTIALLY_RECEIVED)
        self.assertEqual(self.balance(self.transit, self.p1), 2)
        self.assertEqual(self.balance(self.store, self.p1), 3)

        leg2 = receive_transfer(
            journey.inbound.id, lines=[{"product_id": str(self.p1.id), "qty_received": 2}]
        )
        self.assertEqual(leg2.status, StockTransfer.STATUS_RECEIVED)
        self.assertEqual(self.balance(self.transit, self.p1), 0)
        self.assertEqual(self.balance(self.store, self.p1), 5)
        self.assertEqual(self._total(), 10)

    def test_leg2_ship_requires_stock_in_transit(self):
        journey = self._journey(qty=5)

        with self.assertRaises(InsufficientStock):
            ship_transfer(journey.inbound.id)

        self.assertEqual(
            StockTransfer.objects.get(pk=journey.inbound.pk).status, StockTransfer.STATUS_DRAFT
        )

    def test_journey_without_transit_warehouse(self):
        self.transit.delete()

        with self.assertRaises(ConfigurationError):
            self._journey()

        self.assertFalse(StockTransfer.objects.exists())


class TransferDeliveryEventTests(TransferTestMixin, TestCase):
    """
    GUARANTEES:
    - A linked delivery receives one event per committed transition
    - Transfers without a delivery emit nothing
    """

    def test_events_follow_transitions(self):
        transfer = create_transfer_draft(
            from_warehouse_id=self.depot.id,
            to_warehouse_id=self.store.id,
            lines=[{"product_id": str(self.p1.id), "qty": 6}],
        )
        delivery = create_delivery_for_transfer(transfer_id=transfer.id)

        ship_transfer(transfer.id)
        receive_transfer(transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": 2}])
        receive_transfer(transfer.id, lines=[{"product_id": str(self.p1.id), "qty_received": 4}])

        events = list_events(delivery.id)
        self.assertEqual(
            [e.type for e in events],
            [
                DeliveryEvent.TYPE_TRANSFER_SHIPPED,
                DeliveryEvent.TYPE_TRANSFER_PARTIALLY_RECEIVED,
                DeliveryEvent.TYPE_TRANSFER_RECEIVED,
            ],
        )
        self.assertEqual([e.message for e in events], ["Shipped", "Partially received", "Received"])
        self.assertEqual(
            events[1].meta["totals"], {"expected": 6, "received": 2, "missing": 4}
        )

    def test_failed_ship_writes_no_event(self):
        transfer = create_transfer_draft(
            from_warehouse_id=self.depot.id,
            to_warehouse_id=self.store.id,
            lines=[{"product_id": str(self.p2.id), "qty": 99}],
        )
        delivery = create_delivery_for_transfer(transfer_id=transfer.id)

        with self.assertRaises(InsufficientStock):
            ship_transfer(transfer.id)

        self.assertEqual(list_events(delivery.id), [])

    def test_no_delivery_no_event(self):
        transfer = create_transfer_draft(
            from_warehouse_id=self.depot.id,
            to_warehouse_id=self.store.id,
            lines=[{"product_id": str(self.p1.id), "qty": 1}],
        )
        ship_transfer(transfer.id)

        self.assertFalse(DeliveryEvent.objects.exists())
        self.assertIsNone(get_transfer(transfer.id).linked_delivery)
