"""
Payments models.

The order row carries the live QPay state; receipts issued for a paid order
are kept here because later gateway look-ups may omit these fields.
"""

from django.db import models


class TaxReceipt(models.Model):
    """ebarimt receipt issued for a paid order (at most one per order)."""

    order = models.OneToOneField("orders.Order", on_delete=models.PROTECT, related_name="tax_receipt")
    ebarimt_id = models.CharField(max_length=128)
    receipt_url = models.CharField(max_length=500, blank=True, default="")
    ebarimt_receipt_id = models.CharField(max_length=128, blank=True, default="")
    qr_data = models.TextField(blank=True, default="")
    lottery = models.CharField(max_length=64, blank=True, default="")
    status = models.CharField(max_length=32, blank=True, default="")
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    city_tax_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    receiver_type = models.CharField(max_length=20, default="CITIZEN")
    receiver = models.CharField(max_length=64, blank=True, default="")
    raw_response = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.order_id} - {self.ebarimt_id}"
