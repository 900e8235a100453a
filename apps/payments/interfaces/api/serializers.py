from __future__ import annotations

from rest_framework import serializers


class InitiatePaymentSerializer(serializers.Serializer):
    itemized = serializers.BooleanField(required=False, allow_null=True, default=None)


class RefundPaymentSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=["refund", "cancel"], required=False, default="refund")
    note = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
