# products/apps.py

"""
PRODUCTS APP CONFIG

Referenced catalog for the stock engine:
- Category (optional grouping, drives CATEGORY stocktakes)
- Product (sku, name, active flag, soft delete)

Products never store stock. Balances live in stock.StockItem.
"""

from django.apps import AppConfig


class ProductsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "products"
    verbose_name = "Products"
