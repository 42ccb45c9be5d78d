"""
REST URLs for the quote engine
"""

from django.urls import path

from apps.quoting.views.quote_engine_views import (
    PasteApplyView,
    PastePreviewView,
    QuoteColumnView,
    QuoteRecomputeView,
)

rest_urlpatterns = [
    path(
        "rest/quote/recompute/",
        QuoteRecomputeView.as_view(),
        name="quote_recompute_rest",
    ),
    path(
        "rest/quote/columns/",
        QuoteColumnView.as_view(),
        name="quote_columns_rest",
    ),
    path(
        "rest/quote/paste/preview/",
        PastePreviewView.as_view(),
        name="quote_paste_preview_rest",
    ),
    path(
        "rest/quote/paste/apply/",
        PasteApplyView.as_view(),
        name="quote_paste_apply_rest",
    ),
]
