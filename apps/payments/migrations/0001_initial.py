import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="TaxReceipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ebarimt_id", models.CharField(max_length=128)),
                ("receipt_url", models.CharField(blank=True, default="", max_length=500)),
                ("ebarimt_receipt_id", models.CharField(blank=True, default="", max_length=128)),
                ("qr_data", models.TextField(blank=True, default="")),
                ("lottery", models.CharField(blank=True, default="", max_length=64)),
                ("status", models.CharField(blank=True, default="", max_length=32)),
                ("vat_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("city_tax_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("receiver_type", models.CharField(default="CITIZEN", max_length=20)),
                ("receiver", models.CharField(blank=True, default="", max_length=64)),
                ("raw_response", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tax_receipt",
                        to="orders.order",
                    ),
                ),
            ],
        ),
    ]
