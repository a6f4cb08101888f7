# purchases/models.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F

from products.models import Product
from stock.models import Warehouse


class PurchaseOrder(models.Model):
    """
    Supplier purchase order header (stock-relevant part).

    LIFECYCLE:
        DRAFT -> ORDERED | CANCELLED
        ORDERED -> CANCELLED
        ORDERED / PARTIALLY_RECEIVED -> PARTIALLY_RECEIVED | RECEIVED   (receiving only)
        PARTIALLY_RECEIVED -> CANCELLED                                (close short)
        RECEIVED, CANCELLED -> (locked)

    Receiving is performed by purchases.services.receiving_service:
    - one IN movement per received line (ref_type=PURCHASE_RECEIPT)
    - status recomputed from line progress
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    STATUS_DRAFT = "DRAFT"
    STATUS_ORDERED = "ORDERED"
    STATUS_PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    STATUS_RECEIVED = "RECEIVED"
    STATUS_CANCELLED = "CANCELLED"

    STATUSES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_ORDERED, "Ordered"),
        (STATUS_PARTIALLY_RECEIVED, "Partially received"),
        (STATUS_RECEIVED, "Received"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    number = models.CharField(max_length=40, unique=True)
    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_DRAFT)

    # Supplier master data lives in another service; keep its reference only.
    supplier_ref = models.CharField(max_length=120, blank=True, default="")

    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        related_name="purchase_orders",
    )

    note = models.TextField(blank=True, default="")

    received_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["warehouse", "created_at"]),
        ]

    def clean(self):
        if not (self.number or "").strip():
            raise ValidationError({"number": "number is required"})

        if self.status == self.STATUS_RECEIVED and not self.received_at:
            raise ValidationError(
                {"received_at": "received_at is required when status is RECEIVED"}
            )

    def save(self, *args, **kwargs):
        if self.number is not None:
            self.number = self.number.strip()

        # number uniqueness is left to the DB (collision retry in core.numbering)
        self.full_clean(validate_unique=False)
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} [{self.status}]"


class PurchaseOrderLine(models.Model):
    """
    Purchase order line.

    GUARANTEES:
    - product unique per order (duplicates are merged at creation)
    - 0 <= qty_received <= qty_ordered
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="purchase_order_lines",
    )

    qty_ordered = models.PositiveIntegerField()
    qty_received = models.PositiveIntegerField(default=0)

    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "product"],
                name="uniq_purchase_order_line_product",
            ),
            models.CheckConstraint(
                condition=models.Q(qty_ordered__gt=0),
                name="purchase_line_qty_ordered_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(qty_received__lte=F("qty_ordered")),
                name="purchase_line_received_lte_ordered",
            ),
        ]

    def clean(self):
        if self.qty_ordered is None or int(self.qty_ordered) <= 0:
            raise ValidationError({"qty_ordered": "qty_ordered must be greater than zero"})
        if int(self.qty_received or 0) > int(self.qty_ordered):
            raise ValidationError({"qty_received": "qty_received cannot exceed qty_ordered"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def remaining(self) -> int:
        return int(self.qty_ordered) - int(self.qty_received or 0)

    def __str__(self):
        return f"{self.product_id} x{self.qty_ordered} (received {self.qty_received})"
