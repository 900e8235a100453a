"""
URL configuration for gerar_store project.

API routes live under `/api/`; see `gerar_store.api_urls`.
"""

from django.contrib import admin
from django.urls import include, path

from . import error_views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("gerar_store.api_urls")),
]

handler404 = error_views.handle_404
handler500 = error_views.handle_500
