"""
Factory Boy factories for notifications.

Usage:
    from notifications.tests.factories import NotificationFactory

    notification = NotificationFactory(recipient=user)
    alert = OperatorNotificationFactory(message="Pair diverged")
"""

import factory

from authentication.tests.factories import UserFactory
from notifications.models import Notification, NotificationAudience, NotificationType


class NotificationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Notification

    audience = NotificationAudience.USER
    recipient = factory.SubFactory(UserFactory)
    notification_type = NotificationType.BOOKING_CONFIRMED
    title = "Booking confirmed"
    message = "Your booking was confirmed."
    payload = factory.LazyFunction(dict)


class OperatorNotificationFactory(NotificationFactory):
    """Operator channel notification: no recipient."""

    audience = NotificationAudience.OPERATORS
    recipient = None
    notification_type = NotificationType.OPERATOR_ALERT
    title = "Operator alert"
    message = "Booking/payment pair diverged"
