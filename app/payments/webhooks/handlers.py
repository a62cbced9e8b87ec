"""
Webhook event handlers.

Stored events are normalized by their provider's adapter and routed by
EventKind, so one handler serves every gateway that reports the same
kind of event.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler(EventKind.CHECKOUT_COMPLETED)
    def handle_checkout_completed(webhook_event, event) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from authentication.services import VerificationService
from core.services import ServiceResult
from payments.adapters import EventKind, SettlementEvent, get_gateway
from payments.models import WebhookEvent
from payments.services import SettlementGateway

logger = logging.getLogger(__name__)

Handler = Callable[[WebhookEvent, SettlementEvent], ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(kind: str) -> Callable[[Handler], Handler]:
    """
    Decorator to register the handler for a normalized event kind.

    Args:
        kind: One of EventKind
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[kind] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Normalize a stored event and run its handler.

    Events with no handler (including every EventKind.IGNORED event) are
    acknowledged with a successful result.
    """
    event = get_gateway(webhook_event.provider).parse_event(webhook_event.payload)
    log_context = {
        "webhook_event_id": str(webhook_event.pk),
        "provider": webhook_event.provider,
        "event_id": webhook_event.event_id,
        "kind": event.kind,
    }

    handler = WEBHOOK_HANDLERS.get(event.kind)
    if handler is None:
        logger.info(
            f"No handler for {webhook_event.event_type}, acknowledging",
            extra=log_context,
        )
        return ServiceResult.success(None)

    logger.info(f"Dispatching {webhook_event.event_type}", extra=log_context)
    return handler(webhook_event, event)


# =============================================================================
# Settlement Handlers
# =============================================================================


@register_handler(EventKind.CHECKOUT_COMPLETED)
def handle_checkout_completed(
    webhook_event: WebhookEvent,
    event: SettlementEvent,
) -> ServiceResult:
    """Checkout finished with funds captured."""
    if not event.booking_id:
        # No booking in the metadata: fall back to the stored reference
        return SettlementGateway.on_payment_intent_succeeded(
            event_id=event.event_id,
            external_reference=event.reference,
            amount_cents=event.amount_cents,
            provider_name=webhook_event.provider,
            payment_method=event.payment_method,
        )

    return SettlementGateway.on_checkout_completed(
        event_id=event.event_id,
        booking_id=event.booking_id,
        external_reference=event.reference,
        amount_cents=event.amount_cents,
        provider_name=webhook_event.provider,
        payment_method=event.payment_method,
        session_id=event.session_id,
    )


@register_handler(EventKind.PAYMENT_SUCCEEDED)
def handle_payment_succeeded(
    webhook_event: WebhookEvent,
    event: SettlementEvent,
) -> ServiceResult:
    return SettlementGateway.on_payment_intent_succeeded(
        event_id=event.event_id,
        external_reference=event.reference,
        booking_id=event.booking_id,
        amount_cents=event.amount_cents,
        provider_name=webhook_event.provider,
        payment_method=event.payment_method,
    )


# =============================================================================
# Identity Verification Handlers
# =============================================================================


@register_handler(EventKind.VERIFICATION_VERIFIED)
def handle_verification_verified(
    webhook_event: WebhookEvent,
    event: SettlementEvent,
) -> ServiceResult:
    return VerificationService.record_result(event.session_id, verified=True)


@register_handler(EventKind.VERIFICATION_REQUIRES_INPUT)
def handle_verification_requires_input(
    webhook_event: WebhookEvent,
    event: SettlementEvent,
) -> ServiceResult:
    return VerificationService.record_result(event.session_id, verified=False)
