# inventories/models.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from products.models import Category, Product
from stock.models import Warehouse


class StockInventory(models.Model):
    """
    Stocktake document header.

    LIFECYCLE:
        DRAFT -> POSTED     (locked; ledger adjusted)
        DRAFT -> CANCELLED  (locked; no ledger effect)

    MODES:
    - FULL:     every active product
    - CATEGORY: active products of one category (category required)
    - FREE:     every active product; the counter decides what to count
    """

    STATUS_DRAFT = "DRAFT"
    STATUS_POSTED = "POSTED"
    STATUS_CANCELLED = "CANCELLED"

    STATUSES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_POSTED, "Posted"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    class Mode(models.TextChoices):
        FULL = "FULL", "Full"
        CATEGORY = "CATEGORY", "Category"
        FREE = "FREE", "Free"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    number = models.CharField(max_length=40, unique=True)
    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_DRAFT)
    mode = models.CharField(max_length=10, choices=Mode.choices, default=Mode.FULL)

    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="stock_inventories"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_inventories",
    )

    note = models.CharField(max_length=255, blank=True, default="")

    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.CharField(max_length=80, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "stocktake"
        indexes = [
            models.Index(fields=["warehouse", "status", "created_at"]),
        ]

    def clean(self):
        if not (self.number or "").strip():
            raise ValidationError({"number": "number is required"})

        if self.mode == self.Mode.CATEGORY and not self.category_id:
            raise ValidationError({"category": "category is required for CATEGORY mode"})

        if self.status == self.STATUS_POSTED and not self.posted_at:
            raise ValidationError(
                {"posted_at": "posted_at is required when status is POSTED"}
            )

    def save(self, *args, **kwargs):
        # number uniqueness is left to the DB (collision retry in core.numbering)
        self.full_clean(validate_unique=False)
        return super().save(*args, **kwargs)

    @property
    def is_editable(self) -> bool:
        return self.status == self.STATUS_DRAFT

    def __str__(self):
        return f"{self.number} [{self.status}]"


class StockInventoryLine(models.Model):
    """
    One product of a stocktake.

    expected_qty: balance snapshot taken when lines were generated
    counted_qty:  physical count (NULL until counted)
    delta:        counted_qty - expected_qty (0 while uncounted)
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COUNTED = "COUNTED", "Counted"
        SKIPPED = "SKIPPED", "Skipped"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    inventory = models.ForeignKey(
        StockInventory, on_delete=models.CASCADE, related_name="lines"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="inventory_lines"
    )

    expected_qty = models.IntegerField(default=0)
    counted_qty = models.PositiveIntegerField(null=True, blank=True)
    delta = models.IntegerField(default=0)

    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING
    )
    note = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["product__name"]
        constraints = [
            models.UniqueConstraint(
                fields=["inventory", "product"],
                name="uniq_inventory_line_product",
            ),
        ]

    @property
    def is_countable(self) -> bool:
        return self.counted_qty is not None and self.status != self.Status.SKIPPED

    def __str__(self):
        return f"{self.product_id}: expected {self.expected_qty}, counted {self.counted_qty}"
