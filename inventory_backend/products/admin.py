# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Catalog admin.

- Products and categories are plain master data.
- Stock levels are NOT edited here: every balance change goes through the
  stock ledger (stock.services.ledger) so it leaves a StockMove behind.
"""

from django.contrib import admin

from products.models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "deleted_at", "created_at")
    search_fields = ("name",)
    ordering = ("name",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "category", "is_active", "deleted_at", "updated_at")
    list_filter = ("is_active", "category")
    search_fields = ("sku", "name")
    ordering = ("name",)
    readonly_fields = ("created_at", "updated_at")
