from django.contrib import admin

from .models import Order, OrderActivity, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0


class OrderActivityInline(admin.TabularInline):
    model = OrderActivity
    extra = 0
    readonly_fields = ("type", "title", "from_value", "to_value", "channel", "performed_by", "created_at")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "full_name",
        "total_amount",
        "status",
        "payment_status",
        "qpay_invoice_id",
        "ebarimt_id",
        "created_at",
    )
    list_filter = ("status", "payment_status", "qpay_invoice_itemized")
    search_fields = ("id", "full_name", "phone_number", "email", "qpay_invoice_id", "qpay_payment_id")
    ordering = ("-created_at",)
    readonly_fields = ("qpay_token", "qpay_token_expires_at")
    inlines = [OrderItemInline, OrderActivityInline]
