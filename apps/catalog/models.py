from django.db import models


class Product(models.Model):
    TAX_VAT_ABLE = "VAT_ABLE"
    TAX_VAT_FREE = "VAT_FREE"
    TAX_VAT_ZERO = "VAT_ZERO"

    TAX_TYPE_CHOICES = [
        (TAX_VAT_ABLE, "VAT able"),
        (TAX_VAT_FREE, "VAT free"),
        (TAX_VAT_ZERO, "VAT zero"),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=12, decimal_places=2)
    barcode = models.CharField(max_length=64, blank=True, default="")
    # GS1 classification code required by ebarimt for itemized receipts.
    classification_code = models.CharField(max_length=32, blank=True, default="")
    tax_product_code = models.CharField(max_length=32, blank=True, default="")
    tax_type = models.CharField(max_length=10, choices=TAX_TYPE_CHOICES, default=TAX_VAT_ABLE)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["is_active", "name"], name="product_active_name_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def has_tax_classification(self) -> bool:
        return bool((self.classification_code or "").strip())
