from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("barcode", models.CharField(blank=True, default="", max_length=64)),
                ("classification_code", models.CharField(blank=True, default="", max_length=32)),
                ("tax_product_code", models.CharField(blank=True, default="", max_length=32)),
                (
                    "tax_type",
                    models.CharField(
                        choices=[("VAT_ABLE", "VAT able"), ("VAT_FREE", "VAT free"), ("VAT_ZERO", "VAT zero")],
                        default="VAT_ABLE",
                        max_length=10,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["is_active", "name"], name="product_active_name_idx"),
                ],
            },
        ),
    ]
