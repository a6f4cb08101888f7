# stock/management/commands/verify_stock_ledger.py

from __future__ import annotations

from django.core.management.base import BaseCommand

from stock.models import Warehouse
from stock.services.reconciliation import find_balance_mismatches


class Command(BaseCommand):
    help = "Verify every stock balance equals the sum of its ledger movements."

    def add_arguments(self, parser):
        parser.add_argument(
            "--warehouse",
            dest="warehouse_code",
            help="Only check one warehouse (by code).",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any mismatch is found.",
        )

    def handle(self, *args, **options):
        strict = bool(options.get("strict"))
        code = (options.get("warehouse_code") or "").strip().upper()

        warehouse = None
        if code:
            warehouse = Warehouse.objects.filter(code=code).first()
            if warehouse is None:
                self.stderr.write(self.style.ERROR(f"Unknown warehouse code: {code}"))
                return self._exit(strict)

        self.stdout.write(self.style.MIGRATE_HEADING("Stock ledger verification"))
        self.stdout.write(f"Scope: {warehouse.code if warehouse else 'ALL WAREHOUSES'}")

        mismatches = find_balance_mismatches(warehouse=warehouse)

        if not mismatches:
            self.stdout.write(self.style.SUCCESS("[OK] Every balance matches its ledger"))
            return self._exit(False)

        self.stderr.write(self.style.ERROR(f"[FAIL] Balance/ledger mismatches: {len(mismatches)}"))
        for m in mismatches[:20]:
            self.stderr.write(
                f"  warehouse={m.warehouse_id} product={m.product_id} "
                f"balance={m.balance} ledger={m.ledger_sum} drift={m.drift:+d}"
            )

        return self._exit(strict)

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
