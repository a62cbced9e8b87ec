"""
Stripe API adapter.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions: hosted checkout, payment intent lookups,
authorization cancel, refunds, Stripe Identity verification sessions
and webhook signature verification.

Features:
- Bounded timeout on every API call (STRIPE_API_TIMEOUT_SECONDS)
- Stripe exceptions translated to GatewayError subclasses
- Structured logging with timing metrics
- Idempotency keys on every mutating call

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries inside the SDK (default: 0)

Usage:
    from payments.adapters import StripeAdapter

    StripeAdapter.create_refund(
        reference="pi_xxx",
        amount_cents=10800,
        idempotency_key=IdempotencyKeyGenerator.generate("refund", payment.id),
    )
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

import stripe
from django.conf import settings

from payments.adapters.base import (
    CheckoutParams,
    CheckoutSessionResult,
    EventKind,
    PaymentStatusResult,
    RefundResult,
    SettlementEvent,
    VerificationSessionResult,
)
from payments.exceptions import (
    GatewayError,
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    WebhookSignatureError,
)
from payments.state_machines import PaymentProvider

R = TypeVar("R")

CHECKOUT_EVENT_TYPES = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
    }
)


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.
    """

    name = PaymentProvider.STRIPE.value

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure the Stripe client with API key, timeout and retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = settings.STRIPE_MAX_RETRIES
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _call(cls, log_context: dict[str, Any], func: Callable[[], R]) -> R:
        """
        Run one Stripe call with timing logs and error translation.

        Raises:
            GatewayError subclasses for any Stripe SDK error
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        start_time = time.monotonic()
        logger.info("Starting Stripe operation", extra=log_context)
        try:
            result = func()
        except stripe.StripeError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise  # unreachable, _handle_stripe_error always raises

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return result

    # =========================================================================
    # Checkout & Payments
    # =========================================================================

    @classmethod
    def create_checkout_session(cls, params: CheckoutParams) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session for a booking.

        The booking id travels in both the session and the payment intent
        metadata so either webhook can be matched back to the booking.
        """
        metadata = {"booking_id": params.booking_id, **params.metadata}
        log_context = {
            "operation": "create_checkout_session",
            "booking_id": params.booking_id,
            "amount_cents": params.amount_cents,
            "idempotency_key": params.idempotency_key,
        }

        session = cls._call(
            log_context,
            lambda: stripe.checkout.Session.create(
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": params.currency,
                            "unit_amount": params.amount_cents,
                            "product_data": {"name": params.description},
                        },
                        "quantity": 1,
                    }
                ],
                customer_email=params.customer_email or None,
                client_reference_id=params.booking_id,
                success_url=params.success_url,
                cancel_url=params.cancel_url,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                idempotency_key=params.idempotency_key,
            ),
        )
        return CheckoutSessionResult(
            reference=session.id,
            checkout_url=session.url,
            provider=cls.name,
        )

    @classmethod
    def retrieve_payment(cls, reference: str) -> PaymentStatusResult:
        """
        Look up a payment by checkout session id (cs_) or payment intent id (pi_).
        """
        log_context = {"operation": "retrieve_payment", "reference": reference}

        if reference.startswith("cs_"):
            session = cls._call(log_context, lambda: stripe.checkout.Session.retrieve(reference))
            return PaymentStatusResult(
                reference=session.payment_intent or session.id,
                succeeded=session.payment_status == "paid",
                status=session.payment_status,
                amount_cents=session.amount_total,
                payment_method=(session.payment_method_types or [""])[0],
            )

        intent = cls._call(log_context, lambda: stripe.PaymentIntent.retrieve(reference))
        return PaymentStatusResult(
            reference=intent.id,
            succeeded=intent.status == "succeeded",
            status=intent.status,
            amount_cents=intent.amount_received or intent.amount,
            payment_method=(intent.payment_method_types or [""])[0],
        )

    @classmethod
    def cancel_authorization(cls, reference: str, idempotency_key: str) -> None:
        """
        Drop an uncaptured payment.

        Open checkout sessions are expired; payment intents are cancelled.
        """
        log_context = {
            "operation": "cancel_authorization",
            "reference": reference,
            "idempotency_key": idempotency_key,
        }
        if reference.startswith("cs_"):
            cls._call(
                log_context,
                lambda: stripe.checkout.Session.expire(
                    reference, idempotency_key=idempotency_key
                ),
            )
            return

        cls._call(
            log_context,
            lambda: stripe.PaymentIntent.cancel(
                reference,
                cancellation_reason="requested_by_customer",
                idempotency_key=idempotency_key,
            ),
        )

    @classmethod
    def create_refund(
        cls,
        reference: str,
        amount_cents: int,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult:
        """
        Refund a captured payment.

        Args:
            reference: Payment intent id, or a checkout session id that is
                resolved to its payment intent first
            amount_cents: Amount to refund
            idempotency_key: Unique key for idempotent refund
            reason: Free-text reason, stored in refund metadata
        """
        payment_intent_id = reference
        if reference.startswith("cs_"):
            payment_intent_id = cls.retrieve_payment(reference).reference

        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
        }
        refund = cls._call(
            log_context,
            lambda: stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=amount_cents,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
                idempotency_key=idempotency_key,
            ),
        )
        return RefundResult(
            id=refund.id,
            status=refund.status,
            amount_cents=refund.amount,
            reference=payment_intent_id,
        )

    # =========================================================================
    # Identity Verification
    # =========================================================================

    @classmethod
    def create_verification_session(
        cls,
        user_id: str,
        return_url: str,
        idempotency_key: str,
    ) -> VerificationSessionResult:
        """Create a Stripe Identity document verification session."""
        log_context = {
            "operation": "create_verification_session",
            "user_id": user_id,
            "idempotency_key": idempotency_key,
        }
        session = cls._call(
            log_context,
            lambda: stripe.identity.VerificationSession.create(
                type="document",
                metadata={"user_id": user_id},
                return_url=return_url,
                idempotency_key=idempotency_key,
            ),
        )
        return VerificationSessionResult(
            id=session.id,
            status=session.status,
            url=session.url,
            client_secret=session.client_secret,
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def verify_webhook(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify a Stripe webhook signature and parse the event.

        Args:
            payload: Raw webhook payload bytes
            signature: Stripe-Signature header value

        Raises:
            WebhookSignatureError: Missing, invalid or expired signature, or
                a payload that is not valid JSON
        """
        secret = settings.STRIPE_WEBHOOK_SECRET
        if not secret:
            cls.get_logger().error("STRIPE_WEBHOOK_SECRET is not configured")
            raise WebhookSignatureError(
                "Webhook secret is not configured", details={"provider": cls.name}
            )

        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                secret,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid webhook signature",
                details={"provider": cls.name, "error": str(e)},
            )
        except ValueError as e:
            raise WebhookSignatureError(
                "Malformed webhook payload",
                details={"provider": cls.name, "error": str(e)},
            )
        return json.loads(payload)

    @classmethod
    def parse_event(cls, event: dict[str, Any]) -> SettlementEvent:
        """Normalize a verified Stripe event."""
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        metadata = obj.get("metadata") or {}
        base = {"event_id": event.get("id", ""), "event_type": event_type}

        if event_type in CHECKOUT_EVENT_TYPES:
            if obj.get("payment_status") != "paid":
                return SettlementEvent(kind=EventKind.IGNORED, **base)
            return SettlementEvent(
                kind=EventKind.CHECKOUT_COMPLETED,
                booking_id=metadata.get("booking_id") or obj.get("client_reference_id"),
                reference=obj.get("payment_intent") or obj.get("id"),
                amount_cents=obj.get("amount_total"),
                currency=obj.get("currency"),
                payment_method=(obj.get("payment_method_types") or [""])[0],
                session_id=obj.get("id"),
                **base,
            )

        if event_type == "payment_intent.succeeded":
            return SettlementEvent(
                kind=EventKind.PAYMENT_SUCCEEDED,
                booking_id=metadata.get("booking_id"),
                reference=obj.get("id"),
                amount_cents=obj.get("amount_received") or obj.get("amount"),
                currency=obj.get("currency"),
                payment_method=(obj.get("payment_method_types") or [""])[0],
                **base,
            )

        if event_type == "identity.verification_session.verified":
            return SettlementEvent(
                kind=EventKind.VERIFICATION_VERIFIED,
                session_id=obj.get("id"),
                **base,
            )

        if event_type == "identity.verification_session.requires_input":
            return SettlementEvent(
                kind=EventKind.VERIFICATION_REQUIRES_INPUT,
                session_id=obj.get("id"),
                **base,
            )

        return SettlementEvent(kind=EventKind.IGNORED, **base)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: stripe.StripeError,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to gateway exceptions.

        Raises:
            GatewayRequestError: Card declined, invalid request, bad API key
            GatewayRateLimitError: Rate limited
            GatewayTimeoutError: Request timed out
            GatewayUnavailableError: Network failure or Stripe 5xx
            GatewayError: Anything else from the SDK
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}
        common = {"gateway": cls.name, "gateway_code": getattr(error, "code", None)}

        if isinstance(error, stripe.CardError):
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": getattr(error, "decline_code", None)},
            )
            raise GatewayRequestError(str(error.user_message or error), **common)

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise GatewayRequestError(str(error), **common)

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise GatewayRateLimitError("Stripe rate limit exceeded. Please retry.", **common)

        if isinstance(error, stripe.APIConnectionError):
            # The SDK reports timeouts as connection errors
            if "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise GatewayTimeoutError("Stripe did not respond in time. Please retry.", **common)
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise GatewayUnavailableError("Could not connect to Stripe. Please retry.", **common)

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise GatewayRequestError("Stripe authentication failed", **common)

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise GatewayUnavailableError("Stripe service error. Please retry.", **common)

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise GatewayError(f"Unexpected Stripe error: {error}", **common)
