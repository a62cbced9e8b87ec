"""
Django admin configuration for bookings.

Booking status is FSM-protected, so bookings are read-only here. Staff
change them only through the services (dispute resolution included).
"""

from django.contrib import admin

from bookings.models import Booking, Service


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ["title", "provider", "price_cents", "currency", "is_active", "created_at"]
    list_filter = ["is_active", "currency"]
    search_fields = ["title", "provider__email"]
    raw_id_fields = ["provider"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Read-only view of bookings for support."""

    list_display = [
        "id",
        "service",
        "customer",
        "provider",
        "status",
        "payment_status",
        "version",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "created_at"]
    search_fields = ["id", "customer__email", "provider__email", "service__title"]
    ordering = ["-created_at"]
    raw_id_fields = ["service", "customer", "provider"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
