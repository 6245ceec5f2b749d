# purchases/api/urls.py

from django.urls import path

from purchases.api.views import (
    MyPurchasesView,
    PurchaseCancelView,
    PurchaseDetailView,
    PurchaseListCreateView,
    PurchaseStatsView,
    PurchaseStatusView,
)

urlpatterns = [
    path("", PurchaseListCreateView.as_view(), name="purchase-list"),
    path("mine/", MyPurchasesView.as_view(), name="purchase-mine"),
    path("stats/", PurchaseStatsView.as_view(), name="purchase-stats"),
    path("<uuid:purchase_id>/", PurchaseDetailView.as_view(), name="purchase-detail"),
    path(
        "<uuid:purchase_id>/status/",
        PurchaseStatusView.as_view(),
        name="purchase-status",
    ),
    path(
        "<uuid:purchase_id>/cancel/",
        PurchaseCancelView.as_view(),
        name="purchase-cancel",
    ),
]
