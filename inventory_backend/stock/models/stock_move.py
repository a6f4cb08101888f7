# stock/models/stock_move.py

"""
CANONICAL STOCK LEDGER

Immutable ledger entry. Every balance change is explained by exactly one row.

GUARANTEES:
- Append-only (no updates, no deletes)
- Created ONCE, never edited
- Sign validated against kind:
    IN     -> qty_delta > 0
    OUT    -> qty_delta < 0
    ADJUST -> qty_delta != 0
- For every (warehouse, product): StockItem.quantity == SUM(qty_delta)
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from products.models import Product

from .warehouse import Warehouse


class StockMove(models.Model):
    class Kind(models.TextChoices):
        IN = "IN", "Stock In"
        OUT = "OUT", "Stock Out"
        ADJUST = "ADJUST", "Adjustment"

    class RefType:
        """Well-known ref_type values (the column itself is free-form)."""

        SALE = "SALE"
        PURCHASE_RECEIPT = "PURCHASE_RECEIPT"
        TRANSFER = "TRANSFER"
        INVENTORY = "INVENTORY"
        LEGACY_INVENTORY = "LEGACY_INVENTORY"
        RETURN = "RETURN"
        LOSS = "LOSS"
        CORRECTION = "CORRECTION"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    kind = models.CharField(max_length=6, choices=Kind.choices)

    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="stock_moves"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_moves"
    )

    qty_delta = models.IntegerField()

    ref_type = models.CharField(max_length=32, blank=True, default="")
    ref_id = models.CharField(max_length=64, blank=True, default="")

    transfer = models.ForeignKey(
        "stock.StockTransfer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_moves",
    )
    inventory = models.ForeignKey(
        "inventories.StockInventory",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_moves",
    )

    note = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(qty_delta=0),
                name="stock_move_qty_delta_nonzero",
            ),
        ]
        indexes = [
            models.Index(fields=["warehouse", "created_at"]),
            models.Index(fields=["product", "created_at"]),
            models.Index(fields=["ref_type", "ref_id"]),
            models.Index(fields=["transfer"]),
            models.Index(fields=["inventory"]),
        ]

    @classmethod
    def sign_error(cls, kind: str, qty_delta: int) -> str | None:
        """Return a message when (kind, qty_delta) breaks the sign convention."""
        if kind not in cls.Kind.values:
            return f"Unknown movement kind: {kind}"
        if qty_delta == 0:
            return "qty_delta must not be zero"
        if kind == cls.Kind.IN and qty_delta < 0:
            return "IN movement requires a positive qty_delta"
        if kind == cls.Kind.OUT and qty_delta > 0:
            return "OUT movement requires a negative qty_delta"
        return None

    def clean(self):
        error = self.sign_error(self.kind, int(self.qty_delta or 0))
        if error:
            raise ValidationError({"qty_delta": error})

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMove records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("StockMove records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.kind} {self.qty_delta:+d} | {self.ref_type or '-'}"
