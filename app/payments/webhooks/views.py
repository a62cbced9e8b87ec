"""
Webhook endpoint view.

One endpoint receives events from every payment provider. The body is an
envelope naming the provider:

    {
        "provider": "stripe" | "paystack",
        "data": "<raw provider payload>" | {<provider event>},
        "signature": "<provider signature header value>"
    }

The view:
1. Verifies the signature with the provider's adapter
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Queues the event for async processing
4. Returns immediately

Nothing is written before the signature checks out: unauthenticated or
malformed requests get 400 and leave no trace but a log line.
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.exceptions import ValidationError
from payments.adapters import get_gateway
from payments.exceptions import WebhookSignatureError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


def _raw_payload(data) -> bytes:
    """The bytes the provider signed. Objects are re-serialized compactly."""
    if isinstance(data, str):
        return data.encode()
    return json.dumps(data, separators=(",", ":")).encode()


@csrf_exempt
@require_POST
def payment_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue a payment provider webhook.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Malformed envelope, unknown provider or invalid signature
    """
    try:
        envelope = json.loads(request.body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return HttpResponse("Malformed payload", status=400)

    if not isinstance(envelope, dict):
        return HttpResponse("Malformed payload", status=400)

    provider = envelope.get("provider")
    data = envelope.get("data")
    signature = envelope.get("signature")
    if not provider or data is None or not signature:
        logger.warning(
            "Webhook missing required fields",
            extra={"provider": provider},
        )
        return HttpResponse("Missing provider, data or signature", status=400)

    if not isinstance(provider, str) or not isinstance(signature, str):
        logger.warning("Webhook provider or signature is not a string")
        return HttpResponse("Malformed payload", status=400)

    try:
        gateway = get_gateway(provider)
    except ValidationError:
        logger.warning("Webhook for unknown provider", extra={"provider": provider})
        return HttpResponse("Unknown provider", status=400)

    # Step 1: Verify signature
    try:
        event_data = gateway.verify_webhook(_raw_payload(data), signature)
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"provider": provider, "error": e.message},
        )
        return HttpResponse("Invalid signature", status=400)

    event = gateway.parse_event(event_data)
    if not event.event_id or not event.event_type:
        logger.warning("Webhook missing event id or type", extra={"provider": provider})
        return HttpResponse("Invalid event", status=400)

    log_context = {
        "provider": provider,
        "event_id": event.event_id,
        "event_type": event.event_type,
    }
    logger.info(f"Received {provider} webhook: {event.event_type}", extra=log_context)

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        provider=provider,
        event_id=event.event_id,
        defaults={
            "event_type": event.event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    # Step 3: If already processed, return success
    if not created:
        if webhook_event.is_processed:
            logger.info("Webhook already processed, returning success", extra=log_context)
            return HttpResponse("Already processed", status=200)

        logger.info(
            f"Webhook already exists with status: {webhook_event.status}",
            extra=log_context,
        )

    # Step 4: Queue for async processing
    from payments.tasks import process_webhook_event

    try:
        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # The provider retries delivery, and retry_failed_webhooks picks up the row
        logger.error(
            "Failed to queue webhook",
            extra={**log_context, "webhook_event_id": str(webhook_event.id)},
            exc_info=True,
        )
    else:
        logger.info(
            "Webhook queued for processing",
            extra={**log_context, "webhook_event_id": str(webhook_event.id)},
        )

    return HttpResponse("Accepted", status=200)
