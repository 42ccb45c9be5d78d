"""
URL configuration for quote_desk.

The quote engine is the only mounted app; everything under ``quoting/`` is
served by ``apps.quoting.urls``.
"""

from django.urls import include, path

urlpatterns = [
    path("quoting/", include("apps.quoting.urls", namespace="quoting")),
]
