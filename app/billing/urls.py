"""
URL configuration for the billing app.

Routes:
    - GET/POST /subscriptions/ - List / provision subscriptions
    - GET /subscriptions/<id>/ - Subscription details
    - POST /subscriptions/<id>/cancel/ - Cancel subscription
    - POST /webhooks/asaas/ - Asaas webhook endpoint

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.
"""

from django.urls import path

from billing.views import (
    SubscriptionCancelView,
    SubscriptionDetailView,
    SubscriptionListCreateView,
)
from billing.webhooks.views import asaas_webhook

app_name = "billing"

urlpatterns = [
    path("subscriptions/", SubscriptionListCreateView.as_view(), name="subscription-list"),
    path(
        "subscriptions/<uuid:subscription_id>/",
        SubscriptionDetailView.as_view(),
        name="subscription-detail",
    ),
    path(
        "subscriptions/<uuid:subscription_id>/cancel/",
        SubscriptionCancelView.as_view(),
        name="subscription-cancel",
    ),
    # Webhook endpoints
    path("webhooks/asaas/", asaas_webhook, name="asaas_webhook"),
]
