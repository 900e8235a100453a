from django.urls import path

from apps.payments.interfaces.api.views import (
    CancelPaymentAPI,
    InitiatePaymentAPI,
    PaymentCallbackAPI,
    PaymentStatusAPI,
    RefundPaymentAPI,
)

urlpatterns = [
    path("orders/<str:order_id>/initiate-payment/", InitiatePaymentAPI.as_view(), name="api_payment_initiate"),
    path("orders/<str:order_id>/payment-callback/", PaymentCallbackAPI.as_view(), name="api_payment_callback"),
    path("orders/<str:order_id>/payment-status/", PaymentStatusAPI.as_view(), name="api_payment_status"),
    path("orders/<str:order_id>/cancel-payment/", CancelPaymentAPI.as_view(), name="api_payment_cancel"),
    path("orders/<str:order_id>/refund/", RefundPaymentAPI.as_view(), name="api_payment_refund"),
]
