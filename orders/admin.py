from django.contrib import admin
from django.contrib import messages
from . import models
from .checkout import cancel_order


class OrderItemInline(admin.TabularInline):
    model = models.OrderItem
    extra = 0
    readonly_fields = (
        "item_type", "title", "artist", "price", "quantity",
        "platform_fee", "artist_earnings", "ticket_codes",
    )


@admin.register(models.Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number", "user", "status",
        "total_amount", "platform_fee_total", "created_at"
    )
    list_filter = ("status", "created_at")
    search_fields = ("user__email", "payment_id")
    readonly_fields = ("payment_id", "refunded_at", "refund_reason")
    inlines = [OrderItemInline]
    actions = ["mark_shipped", "cancel_orders"]

    @admin.action(description="Mark selected orders as shipped")
    def mark_shipped(self, request, queryset):
        updated = queryset.filter(status=models.Order.STATUS_PAID).update(
            status=models.Order.STATUS_SHIPPED
        )
        messages.success(request, f"Marked {updated} orders as shipped")

    @admin.action(description="Cancel orders and restock items")
    def cancel_orders(self, request, queryset):
        cancelled = 0
        for order in queryset.exclude(status=models.Order.STATUS_CANCELLED):
            cancel_order(order, "Order cancelled by admin")
            cancelled += 1
        messages.success(request, f"Cancelled {cancelled} orders")


@admin.register(models.CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("user", "item_type", "artwork", "event", "quantity", "added_at")
    list_filter = ("item_type",)


@admin.register(models.ProcessedEvent)
class ProcessedEventAdmin(admin.ModelAdmin):
    list_display = ("provider", "event_id", "event_type", "created_at")
    search_fields = ("event_id",)
