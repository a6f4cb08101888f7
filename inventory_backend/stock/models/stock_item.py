# stock/models/stock_item.py

import uuid

from django.db import models

from products.models import Product

from .warehouse import Warehouse


class StockItem(models.Model):
    """
    Materialized on-hand balance for one (warehouse, product).

    GUARANTEES:
    - Exactly one row per (warehouse, product) (DB-enforced)
    - quantity >= 0 (DB-enforced)
    - Created lazily on first movement, never deleted
    - Mutated ONLY by stock.services.ledger, always together with a StockMove
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="stock_items"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_items"
    )

    quantity = models.IntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["warehouse", "product"]
        constraints = [
            models.UniqueConstraint(
                fields=["warehouse", "product"],
                name="uniq_stock_item_warehouse_product",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name="stock_item_quantity_nonnegative",
            ),
        ]

    def __str__(self):
        return f"{self.warehouse_id}:{self.product_id} = {self.quantity}"
