"""
Paystack API adapter.

Paystack serves the African markets listed in PAYSTACK_COUNTRIES. It has
no separate authorization step: a transaction is either abandoned or
captured, so cancelling an uncaptured payment needs no API call.

Configuration (via settings):
- PAYSTACK_SECRET_KEY: Secret key, also used to sign webhooks (HMAC-SHA512)
- PAYSTACK_BASE_URL: API root (default: https://api.paystack.co)
- PAYSTACK_API_TIMEOUT_SECONDS: Request timeout (default: 10)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any

import requests
from django.conf import settings

from payments.adapters.base import (
    CheckoutParams,
    CheckoutSessionResult,
    EventKind,
    PaymentStatusResult,
    RefundResult,
    SettlementEvent,
)
from payments.exceptions import (
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    WebhookSignatureError,
)
from payments.state_machines import PaymentProvider


class PaystackAdapter:
    """
    Adapter for Paystack REST API operations.

    All methods are classmethods - no instance state is maintained.
    """

    name = PaymentProvider.PAYSTACK.value

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # HTTP
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        log_context: dict[str, Any],
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """
        Send one request and return the response's "data" object.

        Raises:
            GatewayTimeoutError: No response within the timeout
            GatewayUnavailableError: Connection failure or 5xx
            GatewayRateLimitError: HTTP 429
            GatewayRequestError: Other non-2xx, or "status": false
        """
        logger = cls.get_logger()
        url = f"{settings.PAYSTACK_BASE_URL.rstrip('/')}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        start_time = time.monotonic()
        logger.info("Starting Paystack operation", extra=log_context)
        try:
            response = requests.request(
                method,
                url,
                json=payload,
                headers=headers,
                timeout=settings.PAYSTACK_API_TIMEOUT_SECONDS,
            )
        except requests.Timeout:
            logger.error("Paystack request timed out", extra=log_context)
            raise GatewayTimeoutError(
                "Paystack did not respond in time. Please retry.", gateway=cls.name
            )
        except requests.RequestException:
            logger.error("Connection error to Paystack", extra=log_context, exc_info=True)
            raise GatewayUnavailableError(
                "Could not connect to Paystack. Please retry.", gateway=cls.name
            )

        duration_ms = (time.monotonic() - start_time) * 1000
        log_context = {
            **log_context,
            "duration_ms": duration_ms,
            "status_code": response.status_code,
        }

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code == 429:
            logger.warning("Rate limited by Paystack", extra=log_context)
            raise GatewayRateLimitError(
                "Paystack rate limit exceeded. Please retry.", gateway=cls.name
            )
        if response.status_code >= 500:
            logger.error("Paystack service error", extra=log_context)
            raise GatewayUnavailableError(
                "Paystack service error. Please retry.", gateway=cls.name
            )
        if not response.ok or not body.get("status"):
            logger.error("Paystack rejected request", extra=log_context)
            raise GatewayRequestError(
                body.get("message") or f"Paystack returned HTTP {response.status_code}",
                gateway=cls.name,
                gateway_code=str(response.status_code),
            )

        logger.info("Paystack operation completed", extra=log_context)
        return body.get("data") or {}

    # =========================================================================
    # Checkout & Payments
    # =========================================================================

    @classmethod
    def create_checkout_session(cls, params: CheckoutParams) -> CheckoutSessionResult:
        """Initialize a transaction and return its hosted payment page."""
        data = cls._request(
            "POST",
            "transaction/initialize",
            {
                "operation": "create_checkout_session",
                "booking_id": params.booking_id,
                "amount_cents": params.amount_cents,
            },
            payload={
                "email": params.customer_email,
                "amount": params.amount_cents,
                "currency": params.currency.upper(),
                "callback_url": params.success_url,
                "metadata": {
                    "booking_id": params.booking_id,
                    "cancel_action": params.cancel_url,
                    **params.metadata,
                },
            },
            idempotency_key=params.idempotency_key,
        )
        return CheckoutSessionResult(
            reference=data["reference"],
            checkout_url=data["authorization_url"],
            provider=cls.name,
        )

    @classmethod
    def retrieve_payment(cls, reference: str) -> PaymentStatusResult:
        data = cls._request(
            "GET",
            f"transaction/verify/{reference}",
            {"operation": "retrieve_payment", "reference": reference},
        )
        return PaymentStatusResult(
            reference=data.get("reference", reference),
            succeeded=data.get("status") == "success",
            status=data.get("status", ""),
            amount_cents=data.get("amount"),
            payment_method=data.get("channel") or "",
        )

    @classmethod
    def cancel_authorization(cls, reference: str, idempotency_key: str) -> None:
        """Nothing to cancel: uncaptured Paystack transactions simply lapse."""
        cls.get_logger().info(
            "Paystack has no authorization to cancel",
            extra={"reference": reference, "idempotency_key": idempotency_key},
        )

    @classmethod
    def create_refund(
        cls,
        reference: str,
        amount_cents: int,
        idempotency_key: str,
        reason: str = "",
    ) -> RefundResult:
        data = cls._request(
            "POST",
            "refund",
            {
                "operation": "create_refund",
                "reference": reference,
                "amount_cents": amount_cents,
                "idempotency_key": idempotency_key,
            },
            payload={
                "transaction": reference,
                "amount": amount_cents,
                "merchant_note": reason[:500],
            },
            idempotency_key=idempotency_key,
        )
        return RefundResult(
            id=str(data.get("id", "")),
            status=data.get("status", ""),
            amount_cents=data.get("amount", amount_cents),
            reference=reference,
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def verify_webhook(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Check the x-paystack-signature HMAC-SHA512 of the raw payload.

        Raises:
            WebhookSignatureError: Missing or mismatched signature, or a
                payload that is not valid JSON
        """
        if not signature or not isinstance(signature, str):
            raise WebhookSignatureError(
                "Missing webhook signature", details={"provider": cls.name}
            )

        secret = settings.PAYSTACK_SECRET_KEY
        if not secret:
            cls.get_logger().error("PAYSTACK_SECRET_KEY is not configured")
            raise WebhookSignatureError(
                "Webhook secret is not configured", details={"provider": cls.name}
            )

        expected = hmac.new(
            secret.encode(),
            payload,
            hashlib.sha512,
        ).hexdigest()
        if not hmac.compare_digest(expected, signature):
            raise WebhookSignatureError(
                "Invalid webhook signature", details={"provider": cls.name}
            )

        try:
            return json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureError(
                "Malformed webhook payload",
                details={"provider": cls.name, "error": str(e)},
            )

    @classmethod
    def parse_event(cls, event: dict[str, Any]) -> SettlementEvent:
        """
        Normalize a verified Paystack event.

        Paystack events carry no id of their own; the event name plus the
        transaction id is unique per delivery target.
        """
        event_type = event.get("event", "")
        data = event.get("data") or {}
        event_id = f"{event_type}:{data.get('id', '')}"

        if event_type != "charge.success":
            return SettlementEvent(kind=EventKind.IGNORED, event_id=event_id, event_type=event_type)

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}
        currency = data.get("currency")
        return SettlementEvent(
            kind=EventKind.CHECKOUT_COMPLETED,
            event_id=event_id,
            event_type=event_type,
            booking_id=metadata.get("booking_id"),
            reference=data.get("reference"),
            amount_cents=data.get("amount"),
            currency=currency.lower() if currency else None,
            payment_method=data.get("channel") or "",
        )
