"""
Celery tasks for notification delivery.

Tasks:
    send_operator_alert: Email an operator-channel notification to the
        addresses in OPERATOR_ALERT_EMAILS

Usage:
    # Queued automatically by NotificationEmitter.alert_operators()
    send_operator_alert.delay(notification_id)
"""

from __future__ import annotations

import logging
import smtplib

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from notifications.models import Notification, NotificationAudience

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(smtplib.SMTPException, ConnectionError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def send_operator_alert(self, notification_id: int) -> bool:
    """
    Email an operator notification.

    Returns:
        True if sent, False if skipped (missing notification, wrong
        audience, or no recipients configured)
    """
    notification = Notification.objects.filter(
        pk=notification_id,
        audience=NotificationAudience.OPERATORS,
    ).first()
    if notification is None:
        logger.warning(
            "Operator alert skipped: notification not found",
            extra={"notification_id": notification_id},
        )
        return False

    recipients = list(settings.OPERATOR_ALERT_EMAILS)
    if not recipients:
        logger.warning(
            "Operator alert skipped: OPERATOR_ALERT_EMAILS is empty",
            extra={"notification_id": notification_id},
        )
        return False

    lines = [notification.message, ""]
    lines.extend(f"{key}: {value}" for key, value in sorted(notification.payload.items()))

    send_mail(
        subject=f"[{settings.OPERATOR_ALERT_SUBJECT_PREFIX}] {notification.title}",
        message="\n".join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=recipients,
    )
    logger.info(
        "Operator alert sent",
        extra={"notification_id": notification_id, "recipients": len(recipients)},
    )
    return True
