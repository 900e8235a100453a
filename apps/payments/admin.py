from django.contrib import admin

from .models import TaxReceipt


@admin.register(TaxReceipt)
class TaxReceiptAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "ebarimt_id", "status", "receiver_type", "vat_amount", "created_at")
    list_filter = ("status", "receiver_type")
    search_fields = ("order__id", "ebarimt_id", "ebarimt_receipt_id")
    ordering = ("-created_at",)
    readonly_fields = ("raw_response",)
