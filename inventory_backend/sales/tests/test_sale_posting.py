# sales/tests/test_sale_posting.py

from datetime import datetime, timezone as dt_timezone

from django.test import TestCase

from core.exceptions import Conflict, InsufficientStock, ValidationError
from products.models import Product
from sales.models import Sale
from sales.services.sale_lifecycle import InvalidSaleTransitionError, can_transition
from sales.services.sale_posting import cancel_sale, create_sale, post_sale, set_sale_status
from stock.models import StockMove, Warehouse
from stock.services.ledger import get_balance, record_movement


def fixed_clock():
    return datetime(2026, 4, 2, 12, 0, tzinfo=dt_timezone.utc)


class SaleStockEffectTests(TestCase):
    """
    Tests for sale posting against the stock ledger.

    GUARANTEES:
    - Draft sales never move stock
    - Posting removes every line from the sale warehouse (ref_type=SALE)
    - Posting is all-or-nothing, checked on per-product totals
    - POSTED / CANCELLED are terminal
    """

    def setUp(self):
        self.store = Warehouse.objects.create(code="STO", name="Store", kind=Warehouse.Kind.STORE)
        self.p1 = Product.objects.create(sku="P1", name="Widget")
        self.p2 = Product.objects.create(sku="P2", name="Gadget")

        for product, qty in ((self.p1, 10), (self.p2, 2)):
            record_movement(
                kind=StockMove.Kind.IN,
                warehouse_id=self.store.id,
                product_id=product.id,
                qty_delta=qty,
                ref_type="RETURN",
            )

    def _balance(self, product):
        return get_balance(warehouse_id=self.store.id, product_id=product.id)

    def _sale(self, lines):
        return create_sale(
            warehouse_id=self.store.id,
            lines=[{"product_id": str(p.id), "qty": q} for p, q in lines],
        )

    # --------------------------------------------------
    # CREATE
    # --------------------------------------------------

    def test_create_sale(self):
        sale = self._sale([(self.p1, 4)])

        self.assertEqual(sale.status, Sale.STATUS_DRAFT)
        self.assertTrue(sale.number.startswith("SA-"))
        self.assertEqual(sale.lines.count(), 1)
        self.assertEqual(self._balance(self.p1), 10)

    def test_create_validation(self):
        transit = Warehouse.objects.create(
            code="TRANSIT", name="Transit", kind=Warehouse.Kind.TRANSIT
        )

        with self.assertRaises(ValidationError):
            self._sale([])
        with self.assertRaises(ValidationError):
            self._sale([(self.p1, 0)])
        with self.assertRaises(ValidationError):
            create_sale(
                warehouse_id=transit.id,
                lines=[{"product_id": str(self.p1.id), "qty": 1}],
            )

        self.assertFalse(Sale.objects.exists())

    # --------------------------------------------------
    # POST
    # --------------------------------------------------

    def test_post_removes_stock(self):
        sale = self._sale([(self.p1, 4), (self.p2, 2)])

        posted = post_sale(sale.id, clock=fixed_clock)

        self.assertEqual(posted.status, Sale.STATUS_POSTED)
        self.assertEqual(posted.posted_at, fixed_clock())
        self.assertEqual(self._balance(self.p1), 6)
        self.assertEqual(self._balance(self.p2), 0)

        moves = StockMove.objects.filter(ref_type=StockMove.RefType.SALE, ref_id=str(sale.id))
        self.assertEqual(sorted(m.qty_delta for m in moves), [-4, -2])
        self.assertTrue(all(m.kind == StockMove.Kind.OUT for m in moves))

    def test_post_is_all_or_nothing(self):
        sale = self._sale([(self.p1, 4), (self.p2, 3)])

        with self.assertRaises(InsufficientStock) as ctx:
            post_sale(sale.id)

        self.assertEqual(ctx.exception.available, 2)
        self.assertEqual(ctx.exception.requested, 3)
        self.assertEqual(self._balance(self.p1), 10)
        self.assertEqual(Sale.objects.get(pk=sale.pk).status, Sale.STATUS_DRAFT)

    def test_repeated_product_lines_are_checked_together(self):
        sale = self._sale([(self.p2, 2), (self.p2, 1)])

        with self.assertRaises(InsufficientStock) as ctx:
            post_sale(sale.id)

        self.assertEqual(ctx.exception.requested, 3)
        self.assertEqual(self._balance(self.p2), 2)
        self.assertFalse(StockMove.objects.filter(ref_type=StockMove.RefType.SALE).exists())

    # --------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------

    def test_terminal_states(self):
        sale = self._sale([(self.p1, 1)])
        post_sale(sale.id)

        with self.assertRaises(InvalidSaleTransitionError):
            post_sale(sale.id)
        with self.assertRaises(Conflict):
            cancel_sale(sale.id)

        self.assertEqual(self._balance(self.p1), 9)

    def test_cancel_then_post(self):
        sale = self._sale([(self.p1, 1)])

        self.assertEqual(set_sale_status(sale.id, status="cancelled").status, Sale.STATUS_CANCELLED)
        with self.assertRaises(Conflict):
            set_sale_status(sale.id, status=Sale.STATUS_POSTED)

        self.assertEqual(self._balance(self.p1), 10)

    def test_transition_table(self):
        self.assertTrue(can_transition(from_status=Sale.STATUS_DRAFT, to_status=Sale.STATUS_POSTED))
        self.assertFalse(can_transition(from_status=Sale.STATUS_POSTED, to_status=Sale.STATUS_DRAFT))
        self.assertFalse(
            can_transition(from_status=Sale.STATUS_CANCELLED, to_status=Sale.STATUS_POSTED)
        )
