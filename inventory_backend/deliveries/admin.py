# deliveries/admin.py

from django.contrib import admin

from deliveries.models import Delivery, DeliveryEvent


class DeliveryEventInline(admin.TabularInline):
    model = DeliveryEvent
    extra = 0
    can_delete = False
    readonly_fields = ("type", "status", "message", "meta", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ("number", "status", "transfer", "created_at")
    list_filter = ("status",)
    search_fields = ("number", "transfer__id", "transfer__journey_id")
    readonly_fields = ("number", "status", "transfer", "created_at", "updated_at")
    inlines = [DeliveryEventInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
