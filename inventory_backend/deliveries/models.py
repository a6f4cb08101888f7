# deliveries/models.py

import uuid

from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class Delivery(models.Model):
    """
    Delivery note header.

    A delivery may be backed by exactly one StockTransfer (and a transfer by at
    most one delivery). Transfer ship/receive append DeliveryEvent rows.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PREPARED = "PREPARED", "Prepared"
        OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY", "Out for delivery"
        PARTIALLY_DELIVERED = "PARTIALLY_DELIVERED", "Partially delivered"
        DELIVERED = "DELIVERED", "Delivered"
        FAILED = "FAILED", "Failed"
        CANCELLED = "CANCELLED", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    number = models.CharField(max_length=40, unique=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT
    )

    transfer = models.OneToOneField(
        "stock.StockTransfer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="delivery",
    )

    note = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "deliveries"

    def clean(self):
        if not (self.number or "").strip():
            raise ValidationError({"number": "number is required"})

    def save(self, *args, **kwargs):
        # number uniqueness is left to the DB (collision retry in core.numbering)
        self.full_clean(validate_unique=False)
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} [{self.status}]"


class DeliveryEvent(models.Model):
    """
    Append-only delivery timeline entry.

    status is a snapshot of the delivery status when the event was written.
    """

    TYPE_TRANSFER_SHIPPED = "TRANSFER_SHIPPED"
    TYPE_TRANSFER_RECEIVED = "TRANSFER_RECEIVED"
    TYPE_TRANSFER_PARTIALLY_RECEIVED = "TRANSFER_PARTIALLY_RECEIVED"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    delivery = models.ForeignKey(
        Delivery, on_delete=models.CASCADE, related_name="events"
    )

    type = models.CharField(max_length=40)
    status = models.CharField(max_length=20, choices=Delivery.Status.choices)
    message = models.CharField(max_length=255, blank=True, default="")
    meta = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["delivery", "created_at"]),
            models.Index(fields=["type"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("DeliveryEvent records are immutable")
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.type} ({self.status})"
