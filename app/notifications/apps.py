"""
Django app configuration for notifications.

In-app notifications for booking parties plus the operator channel
used for alerts that need a human.
"""

from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Notifications"
