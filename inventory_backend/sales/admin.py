# sales/admin.py

from django.contrib import admin

from sales.models import Sale, SaleLine


# ======================================================
# SALE ADMIN
# ======================================================


class SaleLineInline(admin.TabularInline):
    model = SaleLine
    extra = 0
    can_delete = False
    readonly_fields = ("product", "qty", "position")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("number", "warehouse", "status", "created_at", "posted_at")
    readonly_fields = ("number", "warehouse", "status", "created_at", "posted_at")
    search_fields = ("number",)
    list_filter = ("status", "created_at")
    inlines = [SaleLineInline]

    def has_add_permission(self, request):
        return False
