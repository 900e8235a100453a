from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "price", "tax_type", "classification_code", "is_active")
    list_filter = ("tax_type", "is_active")
    search_fields = ("name", "barcode", "classification_code")
    ordering = ("-id",)
