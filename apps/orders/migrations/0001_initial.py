import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.CharField(editable=False, max_length=9, primary_key=True, serialize=False)),
                ("session_token", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("full_name", models.CharField(blank=True, default="", max_length=255)),
                ("phone_number", models.CharField(blank=True, default="", max_length=32)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("delivery_address", models.JSONField(blank=True, default=dict)),
                ("delivery_time_slot", models.CharField(blank=True, default="", max_length=50)),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PAID", "Paid"),
                            ("PROCESSING", "Processing"),
                            ("SHIPPED", "Shipped"),
                            ("DELIVERED", "Delivered"),
                            ("CANCELLED", "Cancelled"),
                            ("REFUNDED", "Refunded"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PAID", "Paid"),
                            ("CANCELLED", "Cancelled"),
                            ("REFUNDED", "Refunded"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("qpay_invoice_id", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("qpay_qr_text", models.TextField(blank=True, default="")),
                ("qpay_qr_code", models.TextField(blank=True, default="")),
                ("qpay_urls", models.JSONField(blank=True, default=list)),
                ("qpay_expiry_date", models.DateTimeField(blank=True, null=True)),
                ("qpay_invoice_itemized", models.BooleanField(default=False)),
                ("qpay_token", models.TextField(blank=True, default="")),
                ("qpay_token_expires_at", models.DateTimeField(blank=True, null=True)),
                ("qpay_payment_id", models.CharField(blank=True, default="", max_length=64)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("payment_method", models.CharField(blank=True, default="", max_length=30)),
                ("ebarimt_id", models.CharField(blank=True, default="", max_length=128)),
                ("ebarimt_receipt_url", models.CharField(blank=True, default="", max_length=500)),
                (
                    "ebarimt_receiver_type",
                    models.CharField(
                        choices=[("CITIZEN", "Citizen"), ("COMPANY", "Company")],
                        default="CITIZEN",
                        max_length=20,
                    ),
                ),
                ("ebarimt_receiver", models.CharField(blank=True, default="", max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
                    models.Index(fields=["payment_status"], name="order_payment_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_name", models.CharField(max_length=255)),
                ("quantity", models.PositiveIntegerField()),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="catalog.product",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="OrderActivity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("status_change", "Status change"),
                            ("payment_initiated", "Payment initiated"),
                            ("payment_callback", "Payment callback"),
                            ("payment_confirmed", "Payment confirmed"),
                            ("payment_cancelled", "Payment cancelled"),
                            ("payment_refunded", "Payment refunded"),
                            ("receipt_issued", "Receipt issued"),
                            ("receipt_failed", "Receipt failed"),
                        ],
                        max_length=30,
                    ),
                ),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("from_value", models.CharField(blank=True, default="", max_length=50)),
                ("to_value", models.CharField(blank=True, default="", max_length=50)),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("api", "API"),
                            ("callback", "Gateway callback"),
                            ("poll", "Status poll"),
                            ("admin", "Admin"),
                            ("system", "System"),
                        ],
                        default="system",
                        max_length=20,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to="orders.order",
                    ),
                ),
                (
                    "performed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="order_activities",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["order", "created_at"], name="order_activity_order_idx"),
                ],
            },
        ),
    ]
