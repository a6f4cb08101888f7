# sales/models/sale_line.py

import uuid

from django.db import models

from products.models import Product

from .sale import Sale


class SaleLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="sale_lines"
    )

    qty = models.PositiveIntegerField()
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(qty__gt=0),
                name="sale_line_qty_positive",
            ),
        ]

    def __str__(self):
        return f"{self.product_id} x{self.qty}"
