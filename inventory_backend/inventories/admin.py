# inventories/admin.py

from django.contrib import admin

from inventories.models import StockInventory, StockInventoryLine


class StockInventoryLineInline(admin.TabularInline):
    model = StockInventoryLine
    extra = 0
    can_delete = False
    readonly_fields = ("product", "expected_qty", "counted_qty", "delta", "status", "note")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(StockInventory)
class StockInventoryAdmin(admin.ModelAdmin):
    list_display = ("number", "warehouse", "mode", "status", "posted_at", "posted_by", "created_at")
    list_filter = ("status", "mode", "warehouse")
    search_fields = ("number", "note")
    ordering = ("-created_at",)
    inlines = [StockInventoryLineInline]

    readonly_fields = (
        "number",
        "status",
        "mode",
        "warehouse",
        "category",
        "posted_at",
        "posted_by",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
