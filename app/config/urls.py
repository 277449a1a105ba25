"""
URL configuration for the billing service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT endpoints (simplejwt)
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/billing/               - Billing endpoints
        subscriptions/             - List / provision subscriptions
        subscriptions/{id}/        - Subscription detail
        subscriptions/{id}/cancel/ - Cancel subscription
        webhooks/asaas/            - Asaas webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Billing
    path("billing/", include("billing.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Billing Admin"
admin.site.site_title = "Billing Admin Portal"
admin.site.index_title = "Subscriptions, payments and gateway events"
