# stock/apps.py

"""
STOCK APP CONFIG

The stock ledger engine:
- Warehouses (DEPOT / STORE / TRANSIT)
- Materialized balances (StockItem)
- Append-only movement ledger (StockMove)
- Warehouse-to-warehouse transfers (StockTransfer + lines)
"""

from django.apps import AppConfig


class StockConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "stock"
    verbose_name = "Stock Ledger"
