# stock/models/transfer.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F

from products.models import Product

from .warehouse import Warehouse


class StockTransfer(models.Model):
    """
    Warehouse-to-warehouse stock transfer.

    LIFECYCLE:
        DRAFT -> SHIPPED -> PARTIALLY_RECEIVED -> RECEIVED
        DRAFT -> CANCELLED

    JOURNEYS:
    - A journey is two transfers sharing journey_id:
        leg 1: source      -> TRANSIT
        leg 2: TRANSIT     -> destination
    - A transfer whose from/to is the TRANSIT warehouse is a journey leg.
    """

    STATUS_DRAFT = "DRAFT"
    STATUS_SHIPPED = "SHIPPED"
    STATUS_PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    STATUS_RECEIVED = "RECEIVED"
    STATUS_CANCELLED = "CANCELLED"

    STATUSES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_PARTIALLY_RECEIVED, "Partially received"),
        (STATUS_RECEIVED, "Received"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    RECEIVABLE_STATUSES = {STATUS_SHIPPED, STATUS_PARTIALLY_RECEIVED}

    class Purpose(models.TextChoices):
        INTERNAL_DELIVERY = "INTERNAL_DELIVERY", "Internal delivery"
        STORE_REPLENISH = "STORE_REPLENISH", "Store replenishment"
        REBALANCE = "REBALANCE", "Rebalance"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    status = models.CharField(max_length=20, choices=STATUSES, default=STATUS_DRAFT)

    from_warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="outgoing_transfers"
    )
    to_warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="incoming_transfers"
    )

    journey_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    purpose = models.CharField(
        max_length=20, choices=Purpose.choices, null=True, blank=True
    )

    note = models.TextField(blank=True, default="")

    shipped_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(from_warehouse=F("to_warehouse")),
                name="stock_transfer_distinct_warehouses",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["from_warehouse", "created_at"]),
            models.Index(fields=["to_warehouse", "created_at"]),
        ]

    def clean(self):
        if (
            self.from_warehouse_id
            and self.to_warehouse_id
            and self.from_warehouse_id == self.to_warehouse_id
        ):
            raise ValidationError("from_warehouse and to_warehouse must differ")

        if self.status in {self.STATUS_SHIPPED, self.STATUS_PARTIALLY_RECEIVED} and not self.shipped_at:
            raise ValidationError(
                {"shipped_at": f"shipped_at is required when status is {self.status}"}
            )

        if self.status == self.STATUS_RECEIVED and not self.received_at:
            raise ValidationError(
                {"received_at": "received_at is required when status is RECEIVED"}
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def is_receivable(self) -> bool:
        return self.status in self.RECEIVABLE_STATUSES

    @property
    def linked_delivery(self):
        # Reverse one-to-one raises RelatedObjectDoesNotExist (an AttributeError) when absent.
        return getattr(self, "delivery", None)

    def __str__(self):
        return f"Transfer {self.id} [{self.status}]"


class StockTransferLine(models.Model):
    """
    One product on a transfer.

    GUARANTEES:
    - product unique within a transfer
    - qty > 0
    - 0 <= qty_received <= qty
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    transfer = models.ForeignKey(
        StockTransfer, on_delete=models.CASCADE, related_name="lines"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="transfer_lines"
    )

    qty = models.PositiveIntegerField()
    qty_received = models.PositiveIntegerField(default=0)

    note = models.TextField(blank=True, default="")

    # Input order, for stable display.
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(
                fields=["transfer", "product"],
                name="uniq_transfer_line_product",
            ),
            models.CheckConstraint(
                condition=models.Q(qty__gt=0),
                name="transfer_line_qty_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(qty_received__lte=F("qty")),
                name="transfer_line_received_lte_qty",
            ),
        ]

    def clean(self):
        if self.qty is None or int(self.qty) <= 0:
            raise ValidationError({"qty": "qty must be greater than zero"})
        if int(self.qty_received or 0) > int(self.qty):
            raise ValidationError({"qty_received": "qty_received cannot exceed qty"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def remaining(self) -> int:
        return int(self.qty) - int(self.qty_received or 0)

    def __str__(self):
        return f"{self.product_id} x{self.qty} (received {self.qty_received})"
