"""
Notifications app for booking lifecycle notifications.

This app provides:
- Notification model for per-user notifications and the operator channel
- NotificationEmitter: best-effort, deduplicated writes used by the
  booking and payment services
- send_operator_alert Celery task that emails operator notifications
- REST API for listing notifications and marking them read

Usage:
    from notifications.services import NotificationEmitter

    NotificationEmitter.emit(
        recipient_id=booking.customer_id,
        notification_type=NotificationType.BOOKING_CONFIRMED,
        message="Your booking was confirmed.",
        actor_id=booking.provider_id,
    )
"""
