# purchases/admin.py

from django.contrib import admin

from purchases.models import PurchaseOrder, PurchaseOrderLine


class PurchaseOrderLineInline(admin.TabularInline):
    model = PurchaseOrderLine
    extra = 0
    can_delete = False
    readonly_fields = ("product", "qty_ordered", "qty_received", "position")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ("number", "supplier_ref", "warehouse", "status", "created_at", "received_at")
    list_filter = ("status", "warehouse")
    search_fields = ("number", "supplier_ref")
    readonly_fields = ("number", "warehouse", "status", "received_at", "created_at", "updated_at")
    inlines = [PurchaseOrderLineInline]

    def has_add_permission(self, request):
        return False
