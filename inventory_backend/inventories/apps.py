# inventories/apps.py

"""
INVENTORIES APP CONFIG

Physical stocktakes: snapshot expected quantities, record counts, then post
the differences into the stock ledger as ADJUST movements.
"""

from django.apps import AppConfig


class InventoriesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventories"
    verbose_name = "Stocktakes"
