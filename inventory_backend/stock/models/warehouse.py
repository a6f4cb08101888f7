# stock/models/warehouse.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class Warehouse(models.Model):
    """
    A physical (or logical) stock location.

    KINDS:
    - DEPOT:   back-office warehouse, receives purchases
    - STORE:   point of sale, never receives purchases directly
    - TRANSIT: the single system location holding goods on the road
               between the two legs of a journey

    GUARANTEES:
    - code is unique
    - at most one TRANSIT warehouse exists (DB-enforced)
    """

    class Kind(models.TextChoices):
        DEPOT = "DEPOT", "Depot"
        STORE = "STORE", "Store"
        TRANSIT = "TRANSIT", "Transit"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=150)
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.DEPOT)

    is_active = models.BooleanField(default=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["kind"],
                condition=models.Q(kind="TRANSIT"),
                name="uniq_transit_warehouse",
            ),
        ]
        indexes = [
            models.Index(fields=["kind"]),
        ]

    def clean(self):
        if not (self.code or "").strip():
            raise ValidationError({"code": "code is required"})
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

    def save(self, *args, **kwargs):
        if self.code is not None:
            self.code = self.code.strip().upper()

        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def is_transit(self) -> bool:
        return self.kind == self.Kind.TRANSIT

    @property
    def is_store(self) -> bool:
        return self.kind == self.Kind.STORE

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __str__(self):
        return f"{self.code} ({self.kind})"
