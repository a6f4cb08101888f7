# sales/models/sale.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from stock.models import Warehouse


class Sale(models.Model):
    """
    Sale / customer order header (stock-relevant part).

    GUARANTEES:
    - Stock leaves the warehouse ONLY when the sale is POSTED
      (one OUT movement per line, ref_type=SALE, ref_id=<sale id>)
    - POSTED and CANCELLED are terminal (see sales.services.sale_lifecycle)

    Pricing, invoicing and payments are owned by other services.
    """

    STATUS_DRAFT = "DRAFT"
    STATUS_POSTED = "POSTED"
    STATUS_CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_POSTED, "Posted"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    number = models.CharField(
        max_length=40,
        unique=True,
        help_text="System-generated sale number",
    )

    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT
    )

    warehouse = models.ForeignKey(
        Warehouse, on_delete=models.PROTECT, related_name="sales"
    )

    note = models.TextField(blank=True, default="")

    posted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["warehouse", "created_at"]),
        ]

    def clean(self):
        if self.status == self.STATUS_POSTED and not self.posted_at:
            raise ValidationError(
                {"posted_at": "posted_at is required when status is POSTED"}
            )

    def save(self, *args, **kwargs):
        # number uniqueness is left to the DB (collision retry in core.numbering)
        self.full_clean(validate_unique=False)
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.number} [{self.status}]"
