"""
Inbound gateway webhooks.

Webhooks are verified by the provider's adapter, stored idempotently as
WebhookEvent rows and processed asynchronously via Celery.

Usage:
    # In urls.py
    from payments.webhooks import payment_webhook

    urlpatterns = [
        path("webhooks/payment/", payment_webhook, name="payment-webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import payment_webhook

__all__ = [
    "dispatch_webhook",
    "payment_webhook",
    "register_handler",
]
