"""
Shared plumbing for the booking/payment lifecycle services.

LifecycleService adds two things to BaseService:

- apply_transition(): runs a django-fsm transition and turns
  TransitionNotAllowed into InvalidStateTransitionError, before anything
  is written
- fail(): the boundary conversion of a raised domain error into a
  ServiceResult, with ConsistencyError logged at CRITICAL and sent to the
  operator channel
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django_fsm import TransitionNotAllowed

from core.services import BaseService, ServiceResult
from notifications.services import NotificationEmitter
from payments.exceptions import (
    ConsistencyError,
    GatewayError,
    InvalidStateTransitionError,
)

if TYPE_CHECKING:
    from typing import Any

    from django.db import models


class LifecycleService(BaseService):
    """Base class for EscrowLedger, BookingService, DisputeResolver and SettlementGateway."""

    @classmethod
    def apply_transition(
        cls,
        instance: models.Model,
        action: str,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """
        Call a django-fsm transition method on instance.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed
                from the instance's current state
        """
        current_state = instance.status
        try:
            getattr(instance, action)(*args, **kwargs)
        except TransitionNotAllowed:
            model_name = type(instance).__name__
            raise InvalidStateTransitionError(
                f"Cannot {action} {model_name} from '{current_state}' state",
                details={
                    "model": model_name,
                    "pk": str(instance.pk),
                    "current_state": current_state,
                    "action": action,
                },
            )

    @classmethod
    def fail(cls, exc: Exception, context: str) -> ServiceResult:
        """
        Convert a domain error raised inside an operation into a failed result.

        Must be called after the operation's atomic block has exited, so the
        operator alert for a ConsistencyError is not rolled back with it.
        """
        if isinstance(exc, ConsistencyError):
            cls.get_logger().critical(
                f"{context}: {exc}",
                extra={"error_code": exc.error_code, **exc.details},
            )
            NotificationEmitter.alert_operators(
                f"Consistency error during {context}: {exc.message}",
                payload=exc.details,
                title="Booking/payment consistency error",
            )
            return ServiceResult.from_exception(exc)

        if isinstance(exc, GatewayError):
            return cls.handle_exception(exc, context, log_level=logging.ERROR)

        return cls.handle_exception(exc, context)
