# stock/management/commands/seed_transit_warehouse.py

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from stock.models import Warehouse


class Command(BaseCommand):
    help = (
        "Create (or restore) the single system TRANSIT warehouse used by transfer journeys. "
        "Never converts an existing DEPOT or STORE."
    )

    @transaction.atomic
    def handle(self, *args, **options):
        code = (getattr(settings, "TRANSIT_WAREHOUSE_CODE", "TRANSIT") or "TRANSIT").strip().upper()

        existing = Warehouse.objects.filter(kind=Warehouse.Kind.TRANSIT).first()
        if existing is not None:
            changed = False
            if existing.deleted_at is not None:
                existing.deleted_at = None
                changed = True
            if not existing.is_active:
                existing.is_active = True
                changed = True
            if changed:
                existing.save()
                self.stdout.write(self.style.WARNING(f"Restored TRANSIT warehouse {existing.code}"))
            else:
                self.stdout.write(f"TRANSIT warehouse already present: {existing.code}")
            return

        taken = Warehouse.objects.filter(code=code).first()
        if taken is not None:
            raise CommandError(
                f"Warehouse {taken.code} ({taken.kind}) already uses the TRANSIT code. "
                "Rename it or set TRANSIT_WAREHOUSE_CODE to a free code, then rerun."
            )

        warehouse = Warehouse.objects.create(code=code, name="Transit", kind=Warehouse.Kind.TRANSIT)

        self.stdout.write(self.style.SUCCESS(f"TRANSIT warehouse ready: {warehouse.code}"))
