"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing stored gateway webhook events
- Retrying failed webhook events
- Periodic cleanup of old/stuck events
- Reconciling pending payments against the gateway

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)

    # Reconcile pending payments (typically via celery-beat)
    from payments.tasks import reconcile_pending_payments
    reconcile_pending_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100
RECONCILE_LOCK_TTL_SECONDS = 300


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": settings.WEBHOOK_MAX_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to the handler for its normalized kind
    5. Marks as processed or failed

    A handler that returns a failed ServiceResult marks the event failed;
    retry_failed_webhooks re-queues it later. Unexpected exceptions are
    re-raised so Celery retries with backoff.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    log_context = {
        "webhook_event_id": str(webhook_event_id),
        "provider": webhook_event.provider,
        "event_id": webhook_event.event_id,
    }

    if webhook_event.is_processed:
        logger.info("WebhookEvent already processed, skipping", extra=log_context)
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    logger.info(
        f"Processing webhook: {webhook_event.event_type}",
        extra={**log_context, "retry_count": webhook_event.retry_count},
    )

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save(update_fields=["status", "error_message", "updated_at"])
        logger.exception(
            "Webhook processing failed with exception",
            extra={**log_context, "error": error_msg},
        )
        # Re-raise to trigger Celery retry
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save(update_fields=["status", "processed_at", "error_message", "updated_at"])
        logger.info("Webhook processed successfully", extra=log_context)
        return {"status": "processed", "webhook_event_id": str(webhook_event_id)}

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    webhook_event.save(update_fields=["status", "error_message", "updated_at"])
    logger.warning(
        f"Webhook handler failed: {error_msg}",
        extra={**log_context, "error": error_msg, "error_code": result.error_code},
    )
    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event_id),
        "error": error_msg,
        "error_code": result.error_code,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Re-queues failed events that are still below WEBHOOK_MAX_RETRIES,
    oldest first, in batches.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "event_id": webhook.event_id,
                "retry_count": webhook.retry_count,
            },
        )

    if queued_count:
        logger.info(
            f"Queued {queued_count} failed webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Webhooks left in PROCESSING by a crashed worker are reset to FAILED
    so retry_failed_webhooks can pick them up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save(update_fields=["status", "error_message", "updated_at"])
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "event_id": webhook.event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Delete processed webhook events older than ``days``.

    Failed events are kept for debugging.
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Reconciliation
# =============================================================================


@shared_task
def reconcile_pending_payments() -> dict:
    """
    Periodic task to settle payments whose webhook never arrived.

    Only one worker reconciles at a time; an overlapping run is skipped.

    Returns:
        Dict with reconciliation counts, or {"status": "skipped"}
    """
    from payments.services import SettlementGateway

    try:
        with DistributedLock(
            "payments:reconcile",
            ttl=RECONCILE_LOCK_TTL_SECONDS,
            blocking=False,
        ):
            summary = SettlementGateway.reconcile_pending_payments()
    except LockAcquisitionError:
        logger.info("Reconciliation already running, skipping")
        return {"status": "skipped"}

    return {
        "status": "completed",
        "checked": summary.checked,
        "settled": summary.settled,
        "still_pending": summary.still_pending,
        "failed": summary.failed,
    }
