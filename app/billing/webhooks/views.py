"""
Webhook endpoint view for Asaas.

The view:
1. Checks the shared access token (when one is configured)
2. Stores the delivery as a WebhookEvent
3. Reconciles it synchronously
4. Answers 200 once the event is stored, processed or not

Only a storage failure answers 5xx, which makes the gateway re-deliver.
A stored event that failed to reconcile is retried by the periodic
reprocess task instead.

Usage:
    # In urls.py
    from billing.webhooks.views import asaas_webhook

    urlpatterns = [
        path("webhooks/asaas/", asaas_webhook, name="asaas_webhook"),
    ]
"""

from __future__ import annotations

import hmac
import json
import logging

from django.conf import settings
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from billing.webhooks.ingestion import WebhookIngestionService

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def asaas_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive an Asaas webhook.

    Security:
    - When ASAAS_WEBHOOK_TOKEN is set, the 'asaas-access-token' header
      must match it
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        JsonResponse with status:
        - 200: Event stored ({"success": true, "processed": bool})
        - 400: Body is not a JSON object
        - 401: Access token mismatch
        - 500: Event could not be stored
    """
    # Step 1: Check access token
    expected_token = settings.ASAAS_WEBHOOK_TOKEN
    if expected_token:
        received_token = request.headers.get("asaas-access-token", "")
        if not hmac.compare_digest(received_token, expected_token):
            logger.warning("Webhook received with invalid access token")
            return JsonResponse({"success": False, "error": "Invalid access token"}, status=401)

    # Step 2: Parse body
    try:
        payload = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON")
        return JsonResponse({"success": False, "error": "Invalid JSON"}, status=400)

    if not isinstance(payload, dict):
        logger.warning("Webhook body is not a JSON object")
        return JsonResponse({"success": False, "error": "Invalid payload"}, status=400)

    logger.info(
        f"Received Asaas webhook: {payload.get('event')}",
        extra={"event_type": payload.get("event")},
    )

    # Step 3: Store and reconcile
    try:
        result = WebhookIngestionService().ingest(payload)
    except DatabaseError:
        logger.exception(
            "Failed to store webhook event",
            extra={"event_type": payload.get("event")},
        )
        return JsonResponse(
            {"success": False, "error": "Webhook could not be stored"}, status=500
        )

    if not result.processed:
        logger.warning(
            f"Webhook stored but not reconciled: {result.error}",
            extra={"webhook_event_id": str(result.webhook_event.id)},
        )

    return JsonResponse({"success": True, "processed": result.processed})
