from django.dispatch import Signal

# Sent with sender=Order and kwargs: order, source.
payment_confirmed = Signal()
payment_cancelled = Signal()
payment_refunded = Signal()
