from django.conf import settings
from django.db import models


class Order(models.Model):
    STATUS_PENDING = "PENDING"
    STATUS_PAID = "PAID"
    STATUS_PROCESSING = "PROCESSING"
    STATUS_SHIPPED = "SHIPPED"
    STATUS_DELIVERED = "DELIVERED"
    STATUS_CANCELLED = "CANCELLED"
    STATUS_REFUNDED = "REFUNDED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAID, "Paid"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    PAYMENT_PENDING = "PENDING"
    PAYMENT_PAID = "PAID"
    PAYMENT_CANCELLED = "CANCELLED"
    PAYMENT_REFUNDED = "REFUNDED"

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_CANCELLED, "Cancelled"),
        (PAYMENT_REFUNDED, "Refunded"),
    ]

    RECEIVER_CITIZEN = "CITIZEN"
    RECEIVER_COMPANY = "COMPANY"

    RECEIVER_TYPE_CHOICES = [
        (RECEIVER_CITIZEN, "Citizen"),
        (RECEIVER_COMPANY, "Company"),
    ]

    # YYMMDDNNN, see OrderIdService.
    id = models.CharField(primary_key=True, max_length=9, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="orders",
    )
    session_token = models.CharField(max_length=64, blank=True, default="", db_index=True)

    full_name = models.CharField(max_length=255, blank=True, default="")
    phone_number = models.CharField(max_length=32, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    delivery_address = models.JSONField(default=dict, blank=True)
    delivery_time_slot = models.CharField(max_length=50, blank=True, default="")

    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING)

    qpay_invoice_id = models.CharField(max_length=64, null=True, blank=True, unique=True)
    qpay_qr_text = models.TextField(blank=True, default="")
    qpay_qr_code = models.TextField(blank=True, default="")
    qpay_urls = models.JSONField(default=list, blank=True)
    qpay_expiry_date = models.DateTimeField(null=True, blank=True)
    qpay_invoice_itemized = models.BooleanField(default=False)
    qpay_token = models.TextField(blank=True, default="")
    qpay_token_expires_at = models.DateTimeField(null=True, blank=True)
    qpay_payment_id = models.CharField(max_length=64, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=30, blank=True, default="")

    ebarimt_id = models.CharField(max_length=128, blank=True, default="")
    ebarimt_receipt_url = models.CharField(max_length=500, blank=True, default="")
    ebarimt_receiver_type = models.CharField(max_length=20, choices=RECEIVER_TYPE_CHOICES, default=RECEIVER_CITIZEN)
    ebarimt_receiver = models.CharField(max_length=64, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["payment_status"], name="order_payment_status_idx"),
        ]

    def __str__(self) -> str:
        return self.id

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PAYMENT_PAID


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey("catalog.Product", null=True, blank=True, on_delete=models.SET_NULL)
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self) -> str:
        return f"{self.order} - {self.product_name} x{self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity


class OrderActivity(models.Model):
    TYPE_STATUS_CHANGE = "status_change"
    TYPE_PAYMENT_INITIATED = "payment_initiated"
    TYPE_PAYMENT_CALLBACK = "payment_callback"
    TYPE_PAYMENT_CONFIRMED = "payment_confirmed"
    TYPE_PAYMENT_CANCELLED = "payment_cancelled"
    TYPE_PAYMENT_REFUNDED = "payment_refunded"
    TYPE_RECEIPT_ISSUED = "receipt_issued"
    TYPE_RECEIPT_FAILED = "receipt_failed"

    TYPE_CHOICES = [
        (TYPE_STATUS_CHANGE, "Status change"),
        (TYPE_PAYMENT_INITIATED, "Payment initiated"),
        (TYPE_PAYMENT_CALLBACK, "Payment callback"),
        (TYPE_PAYMENT_CONFIRMED, "Payment confirmed"),
        (TYPE_PAYMENT_CANCELLED, "Payment cancelled"),
        (TYPE_PAYMENT_REFUNDED, "Payment refunded"),
        (TYPE_RECEIPT_ISSUED, "Receipt issued"),
        (TYPE_RECEIPT_FAILED, "Receipt failed"),
    ]

    CHANNEL_API = "api"
    CHANNEL_CALLBACK = "callback"
    CHANNEL_POLL = "poll"
    CHANNEL_ADMIN = "admin"
    CHANNEL_SYSTEM = "system"

    CHANNEL_CHOICES = [
        (CHANNEL_API, "API"),
        (CHANNEL_CALLBACK, "Gateway callback"),
        (CHANNEL_POLL, "Status poll"),
        (CHANNEL_ADMIN, "Admin"),
        (CHANNEL_SYSTEM, "System"),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="activities")
    type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    from_value = models.CharField(max_length=50, blank=True, default="")
    to_value = models.CharField(max_length=50, blank=True, default="")
    channel = models.CharField(max_length=20, choices=CHANNEL_CHOICES, default=CHANNEL_SYSTEM)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_activities",
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="order_activity_order_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} - {self.type}"
