# products/models/product.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from .category import Category


class ActiveProductQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)

    def stockable(self):
        """Products a stocktake should count: active and not soft-deleted."""
        return self.alive().filter(is_active=True)


class Product(models.Model):
    """
    Represents a stock-keeping unit.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives in stock.StockItem, one row per (warehouse, product)
    - Every change is explained by stock.StockMove rows

    LIFECYCLE:
    - is_active=False hides a product from new stocktakes
    - deleted_at (soft delete) additionally rejects new movements
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="products",
    )

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)

    is_active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ActiveProductQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["sku"]),
            models.Index(fields=["name"]),
            models.Index(fields=["category", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        if not (self.sku or "").strip():
            raise ValidationError({"sku": "sku is required"})
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

    def save(self, *args, **kwargs):
        if self.sku is not None:
            self.sku = self.sku.strip()

        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
