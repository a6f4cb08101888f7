# stock/admin.py

from django.contrib import admin

from stock.models import StockItem, StockMove, StockTransfer, StockTransferLine, Warehouse


# ======================================================
# WAREHOUSE
# ======================================================


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "kind", "is_active", "deleted_at")
    list_filter = ("kind", "is_active")
    search_fields = ("code", "name")
    ordering = ("code",)


# ======================================================
# BALANCES (READ-ONLY, written by the ledger only)
# ======================================================


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ("warehouse", "product", "quantity", "updated_at")
    list_filter = ("warehouse",)
    search_fields = ("product__sku", "product__name", "warehouse__code")
    readonly_fields = ("warehouse", "product", "quantity", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ======================================================
# MOVEMENTS (STRICTLY IMMUTABLE)
# ======================================================


@admin.register(StockMove)
class StockMoveAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "warehouse",
        "product",
        "kind",
        "qty_delta",
        "ref_type",
        "ref_id",
    )
    list_filter = ("kind", "ref_type", "warehouse")
    search_fields = ("ref_id", "product__sku", "note")
    ordering = ("-created_at",)

    readonly_fields = (
        "kind",
        "warehouse",
        "product",
        "qty_delta",
        "ref_type",
        "ref_id",
        "transfer",
        "inventory",
        "note",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ======================================================
# TRANSFERS (status driven by stock.services.transfers)
# ======================================================


class StockTransferLineInline(admin.TabularInline):
    model = StockTransferLine
    extra = 0
    can_delete = False
    readonly_fields = ("product", "qty", "qty_received", "note", "position")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(StockTransfer)
class StockTransferAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "status",
        "from_warehouse",
        "to_warehouse",
        "purpose",
        "journey_id",
        "created_at",
    )
    list_filter = ("status", "purpose")
    search_fields = ("id", "journey_id", "note")
    ordering = ("-created_at",)
    inlines = [StockTransferLineInline]

    readonly_fields = (
        "status",
        "from_warehouse",
        "to_warehouse",
        "journey_id",
        "purpose",
        "shipped_at",
        "received_at",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
