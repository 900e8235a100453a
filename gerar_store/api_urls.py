"""
API URL aggregation.

Aggregates app API routes under `/api/`.
"""

from django.urls import include, path

urlpatterns = [
    path("", include("apps.payments.interfaces.api.urls")),
]
