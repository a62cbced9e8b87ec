"""
Notification services.

NotificationEmitter is the fire-and-forget side channel used by the
booking and payment services. Emitting never raises: each write runs in
its own savepoint and database failures are logged and dropped, so a
failed notification can never roll back the transition that caused it.

Operator notifications go to an explicit operator channel (audience
OPERATORS) and additionally trigger an alert email via Celery.

Usage:
    from notifications.services import NotificationEmitter, PendingNotification

    NotificationEmitter.emit(
        recipient_id=booking.provider_id,
        notification_type=NotificationType.BOOKING_REQUESTED,
        message="You have a new booking request.",
        payload={"booking_id": str(booking.id)},
        actor_id=booking.customer_id,
    )

    NotificationEmitter.alert_operators(
        "Booking/payment pair diverged",
        payload={"booking_id": str(booking.id)},
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from notifications.models import Notification, NotificationAudience, NotificationType

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


@dataclass
class PendingNotification:
    """
    A notification collected inside a transaction, emitted after it commits.

    Services build these while they hold the booking/payment lock and
    emit them once the lifecycle write is durable.
    """

    recipient_id: Any
    notification_type: str
    message: str
    title: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    actor_id: Any = None
    idempotency_key: str | None = None
    to_operators: bool = False


class NotificationEmitter(BaseService):
    """
    Best-effort notification writer.

    Rules:
        - A user is never notified about their own action (actor == recipient)
        - idempotency_key dedupes replays (webhook redelivery)
        - Failures are logged, never raised
    """

    @classmethod
    def emit(
        cls,
        recipient_id: Any,
        notification_type: str,
        message: str,
        payload: dict[str, Any] | None = None,
        *,
        title: str = "",
        actor_id: Any = None,
        idempotency_key: str | None = None,
    ) -> Notification | None:
        """
        Write a notification for one user.

        Returns:
            The created Notification, or None if skipped, deduplicated or failed
        """
        if recipient_id is None:
            return None
        if actor_id is not None and str(actor_id) == str(recipient_id):
            cls.get_logger().debug(
                "Skipping self-notification",
                extra={"recipient_id": str(recipient_id), "type": notification_type},
            )
            return None

        return cls._write(
            audience=NotificationAudience.USER,
            recipient_id=recipient_id,
            notification_type=notification_type,
            message=message,
            title=title,
            payload=payload or {},
            actor_id=actor_id,
            idempotency_key=idempotency_key,
        )

    @classmethod
    def alert_operators(
        cls,
        message: str,
        payload: dict[str, Any] | None = None,
        *,
        title: str = "",
        notification_type: str = NotificationType.OPERATOR_ALERT,
        actor_id: Any = None,
        idempotency_key: str | None = None,
    ) -> Notification | None:
        """
        Write a notification to the operator channel and queue the alert email.

        Returns:
            The created Notification, or None if deduplicated or failed
        """
        notification = cls._write(
            audience=NotificationAudience.OPERATORS,
            recipient_id=None,
            notification_type=notification_type,
            message=message,
            title=title or "Operator alert",
            payload=payload or {},
            actor_id=actor_id,
            idempotency_key=idempotency_key,
        )
        if notification is not None:
            notification_id = notification.pk
            transaction.on_commit(lambda: _enqueue_operator_alert(notification_id))
        return notification

    @classmethod
    def emit_many(cls, pending: Iterable[PendingNotification]) -> int:
        """
        Emit a batch collected during a lifecycle operation.

        Returns:
            Number of notifications written
        """
        written = 0
        for item in pending:
            if item.to_operators:
                result = cls.alert_operators(
                    item.message,
                    item.payload,
                    title=item.title,
                    notification_type=item.notification_type,
                    actor_id=item.actor_id,
                    idempotency_key=item.idempotency_key,
                )
            else:
                result = cls.emit(
                    item.recipient_id,
                    item.notification_type,
                    item.message,
                    item.payload,
                    title=item.title,
                    actor_id=item.actor_id,
                    idempotency_key=item.idempotency_key,
                )
            if result is not None:
                written += 1
        return written

    @classmethod
    def _write(
        cls,
        *,
        audience: str,
        recipient_id: Any,
        notification_type: str,
        message: str,
        title: str,
        payload: dict[str, Any],
        actor_id: Any,
        idempotency_key: str | None,
    ) -> Notification | None:
        log_context = {
            "audience": audience,
            "recipient_id": str(recipient_id) if recipient_id else None,
            "type": notification_type,
            "idempotency_key": idempotency_key,
        }
        try:
            with transaction.atomic():
                if (
                    idempotency_key
                    and Notification.objects.filter(idempotency_key=idempotency_key).exists()
                ):
                    cls.get_logger().info("Duplicate notification prevented", extra=log_context)
                    return None

                notification = Notification.objects.create(
                    audience=audience,
                    recipient_id=recipient_id,
                    actor_id=actor_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    payload=payload,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race with a concurrent writer using the same key
            cls.get_logger().info("Duplicate notification prevented", extra=log_context)
            return None
        except DatabaseError:
            cls.get_logger().exception("Failed to write notification", extra=log_context)
            return None

        cls.get_logger().debug("Notification written", extra=log_context)
        return notification


def _enqueue_operator_alert(notification_id: int) -> None:
    from notifications.tasks import send_operator_alert

    try:
        send_operator_alert.delay(notification_id)
    except Exception:
        logger.exception(
            "Failed to queue operator alert",
            extra={"notification_id": notification_id},
        )


class NotificationService(BaseService):
    """Read-state operations for the notification inbox API."""

    @classmethod
    def mark_as_read(cls, notification: Notification, user: User) -> ServiceResult[Notification]:
        """Mark one notification as read. Idempotent."""
        if notification.recipient_id != user.pk:
            return ServiceResult.failure(
                "Not your notification",
                error_code="PERMISSION_DENIED",
            )
        if not notification.is_read:
            notification.mark_read()
            notification.save(update_fields=["is_read", "read_at", "updated_at"])
        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark all of a user's unread notifications as read."""
        count = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True,
            read_at=timezone.now(),
        )
        return ServiceResult.success(count)
