# inventories/tests/test_stocktake.py

from datetime import datetime, timezone as dt_timezone

from django.test import TestCase

from core.exceptions import Conflict, NotFound, ValidationError
from inventories.models import StockInventory, StockInventoryLine
from inventories.services.stocktake import (
    cancel_inventory,
    create_draft,
    generate_lines,
    get_inventory,
    list_inventories,
    post_inventory,
    update_line,
    variance_summary,
)
from products.models import Category, Product
from stock.models import StockMove, Warehouse
from stock.services.ledger import get_balance, record_movement


def fixed_clock():
    return datetime(2026, 2, 1, 18, 0, tzinfo=dt_timezone.utc)


class StocktakeWorkflowTests(TestCase):
    """
    Tests for the two-phase stocktake.

    GUARANTEES:
    - Lines snapshot the balance at generation time
    - Posting adjusts the LIVE balance to the count (no double counting)
    - Zero real deltas record no movement
    - Posted / cancelled stocktakes are locked
    - Oversized text is rejected before the ledger is touched
    """

    def setUp(self):
        self.warehouse = Warehouse.objects.create(code="DEP", name="Depot")

        self.drinks = Category.objects.create(name="Drinks")
        self.snacks = Category.objects.create(name="Snacks")

        self.water = Product.objects.create(sku="W-1", name="Water", category=self.drinks)
        self.juice = Product.objects.create(sku="J-1", name="Juice", category=self.drinks)
        self.chips = Product.objects.create(sku="C-1", name="Chips", category=self.snacks)
        Product.objects.create(sku="OLD", name="Retired", is_active=False)

        self._stock(self.water, 10)
        self._stock(self.chips, 3)

    # --------------------------------------------------
    # Helpers
    # --------------------------------------------------

    def _stock(self, product, qty):
        record_movement(
            kind=StockMove.Kind.IN if qty > 0 else StockMove.Kind.OUT,
            warehouse_id=self.warehouse.id,
            product_id=product.id,
            qty_delta=qty,
            ref_type="SALE" if qty < 0 else None,
        )

    def _balance(self, product):
        return get_balance(warehouse_id=self.warehouse.id, product_id=product.id)

    def _line(self, inventory, product):
        return StockInventoryLine.objects.get(inventory=inventory, product=product)

    def _generated(self, **kwargs):
        inventory = create_draft(warehouse_id=self.warehouse.id, **kwargs)
        generate_lines(inventory.id)
        return inventory

    # --------------------------------------------------
    # CREATE / GENERATE
    # --------------------------------------------------

    def test_draft_number_and_defaults(self):
        inventory = create_draft(warehouse_id=self.warehouse.id, note="Q1 count")

        self.assertTrue(inventory.number.startswith("INVSTK-"))
        self.assertEqual(inventory.status, StockInventory.STATUS_DRAFT)
        self.assertEqual(inventory.mode, StockInventory.Mode.FULL)

    def test_category_mode_requires_category(self):
        with self.assertRaises(ValidationError):
            create_draft(warehouse_id=self.warehouse.id, mode="category")
        with self.assertRaises(NotFound):
            create_draft(warehouse_id=self.warehouse.id, mode="CATEGORY", category_id="missing")
        with self.assertRaises(ValidationError):
            create_draft(warehouse_id=self.warehouse.id, mode="RANDOM")

    def test_full_mode_snapshots_active_products(self):
        inventory = create_draft(warehouse_id=self.warehouse.id)

        count = generate_lines(inventory.id)

        self.assertEqual(count, 3)
        self.assertEqual(self._line(inventory, self.water).expected_qty, 10)
        self.assertEqual(self._line(inventory, self.juice).expected_qty, 0)
        line = self._line(inventory, self.chips)
        self.assertEqual(line.status, StockInventoryLine.Status.PENDING)
        self.assertIsNone(line.counted_qty)

    def test_category_mode_limits_scope(self):
        inventory = create_draft(
            warehouse_id=self.warehouse.id, mode="CATEGORY", category_id=self.drinks.id
        )

        self.assertEqual(generate_lines(inventory.id), 2)
        self.assertEqual(
            set(inventory.lines.values_list("product_id", flat=True)),
            {self.water.id, self.juice.id},
        )

    def test_generate_twice_is_a_conflict(self):
        inventory = self._generated()

        with self.assertRaises(Conflict):
            generate_lines(inventory.id)

    # --------------------------------------------------
    # COUNT
    # --------------------------------------------------

    def test_update_line_computes_delta(self):
        inventory = self._generated()
        line = self._line(inventory, self.water)

        line = update_line(inventory.id, line.id, counted_qty=8, note="two crushed")
        self.assertEqual(line.status, StockInventoryLine.Status.COUNTED)
        self.assertEqual(line.delta, -2)
        self.assertEqual(line.note, "two crushed")

        line = update_line(inventory.id, line.id, counted_qty=None)
        self.assertEqual(line.status, StockInventoryLine.Status.PENDING)
        self.assertEqual(line.delta, 0)
        self.assertEqual(line.note, "two crushed")

    def test_update_line_validation(self):
        inventory = self._generated()
        line = self._line(inventory, self.water)

        with self.assertRaises(ValidationError):
            update_line(inventory.id, line.id, counted_qty=-1)
        with self.assertRaises(ValidationError):
            update_line(inventory.id, line.id, counted_qty=1, status="DONE")
        with self.assertRaises(NotFound):
            update_line(inventory.id, self.water.id, counted_qty=1)

    # --------------------------------------------------
    # POST
    # --------------------------------------------------

    def test_post_adjusts_to_count(self):
        inventory = self._generated()
        update_line(inventory.id, self._line(inventory, self.water).id, counted_qty=8)
        update_line(inventory.id, self._line(inventory, self.juice).id, counted_qty=2)

        posted = post_inventory(
            inventory.id, note="Year end", posted_by="auditor", clock=fixed_clock
        )

        self.assertEqual(posted.status, StockInventory.STATUS_POSTED)
        self.assertEqual(posted.posted_at, fixed_clock())
        self.assertEqual(posted.posted_by, "auditor")
        self.assertEqual(self._balance(self.water), 8)
        self.assertEqual(self._balance(self.juice), 2)
        # Uncounted line keeps its balance.
        self.assertEqual(self._balance(self.chips), 3)

        moves = StockMove.objects.filter(inventory=inventory).order_by("qty_delta")
        self.assertEqual([m.qty_delta for m in moves], [-2, 2])
        for move in moves:
            self.assertEqual(move.kind, StockMove.Kind.ADJUST)
            self.assertEqual(move.ref_type, StockMove.RefType.INVENTORY)
            self.assertEqual(move.ref_id, str(inventory.id))

    def test_post_uses_live_balance(self):
        inventory = self._generated()
        self.assertEqual(self._line(inventory, self.water).expected_qty, 10)

        # Sale between generation and posting.
        self._stock(self.water, -3)
        update_line(inventory.id, self._line(inventory, self.water).id, counted_qty=7)

        post_inventory(inventory.id, note="Recount")

        self.assertEqual(self._balance(self.water), 7)
        self.assertFalse(StockMove.objects.filter(inventory=inventory).exists())

    def test_skipped_lines_are_not_posted(self):
        inventory = self._generated()
        line = self._line(inventory, self.water)
        update_line(inventory.id, line.id, counted_qty=0, status="SKIPPED")

        with self.assertRaises(ValidationError) as ctx:
            post_inventory(inventory.id, note="Recount")

        self.assertEqual(ctx.exception.message, "Nothing counted")
        self.assertEqual(self._balance(self.water), 10)

    def test_post_requires_note(self):
        inventory = self._generated()
        update_line(inventory.id, self._line(inventory, self.water).id, counted_qty=1)

        with self.assertRaises(ValidationError):
            post_inventory(inventory.id, note=" ab ")

    def test_oversized_text_fails_before_any_adjustment(self):
        inventory = self._generated()
        update_line(inventory.id, self._line(inventory, self.water).id, counted_qty=4)

        for kwargs in ({"note": "Recount", "posted_by": "a" * 81}, {"note": "n" * 256}):
            with self.subTest(fields=sorted(kwargs)):
                with self.assertRaises(ValidationError):
                    post_inventory(inventory.id, **kwargs)

        self.assertEqual(self._balance(self.water), 10)
        self.assertFalse(StockMove.objects.filter(inventory=inventory).exists())
        self.assertEqual(get_inventory(inventory.id).status, StockInventory.STATUS_DRAFT)

        with self.assertRaises(ValidationError):
            create_draft(warehouse_id=self.warehouse.id, note="n" * 256)
        with self.assertRaises(ValidationError):
            update_line(inventory.id, self._line(inventory, self.water).id, note="n" * 256)
        self.assertEqual(self._line(inventory, self.water).note, "")

    def test_post_without_lines(self):
        inventory = create_draft(warehouse_id=self.warehouse.id)

        with self.assertRaises(ValidationError):
            post_inventory(inventory.id, note="Recount")

    def test_posted_inventory_is_locked(self):
        inventory = self._generated()
        line = self._line(inventory, self.water)
        update_line(inventory.id, line.id, counted_qty=9)
        post_inventory(inventory.id, note="Recount")

        with self.assertRaises(Conflict):
            post_inventory(inventory.id, note="Recount")
        with self.assertRaises(Conflict):
            update_line(inventory.id, line.id, counted_qty=1)
        with self.assertRaises(Conflict):
            cancel_inventory(inventory.id)

        self.assertEqual(self._balance(self.water), 9)
        self.assertEqual(StockMove.objects.filter(inventory=inventory).count(), 1)

    # --------------------------------------------------
    # CANCEL / READ
    # --------------------------------------------------

    def test_cancel_has_no_stock_effect(self):
        inventory = self._generated()
        update_line(inventory.id, self._line(inventory, self.water).id, counted_qty=0)

        cancelled = cancel_inventory(inventory.id)

        self.assertEqual(cancelled.status, StockInventory.STATUS_CANCELLED)
        self.assertEqual(self._balance(self.water), 10)

    def test_variance_summary(self):
        inventory = self._generated()
        update_line(inventory.id, self._line(inventory, self.water).id, counted_qty=7)
        update_line(inventory.id, self._line(inventory, self.juice).id, counted_qty=4)

        summary = variance_summary(inventory.id)

        self.assertEqual(summary["total_lines"], 3)
        self.assertEqual(summary["counted_lines"], 2)
        self.assertEqual(summary["surplus_qty"], 4)
        self.assertEqual(summary["loss_qty"], 3)

    def test_list_and_get(self):
        first = self._generated()
        cancel_inventory(first.id)
        second = create_draft(warehouse_id=self.warehouse.id)

        drafts = list_inventories(warehouse_id=self.warehouse.id, status="draft")
        self.assertEqual([i.id for i in drafts], [second.id])
        self.assertEqual(len(list_inventories(limit=1)), 1)
        self.assertEqual(get_inventory(first.id).lines.count(), 3)
