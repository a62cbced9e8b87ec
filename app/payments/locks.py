"""
Concurrency control for the booking/payment pair.

The booking and its escrow payment are the unit of mutual exclusion.
Three complementary mechanisms are provided:

1. **Row locks** (lock_booking_pair, lock_payment_pair)
   - select_for_update on the booking first, then the payment
   - Fixed lock order so two writers can never deadlock on a pair
   - Must be called inside transaction.atomic()

2. **Optimistic locking** (save_versioned)
   - Conditional UPDATE ... WHERE version = <read version>
   - Detects a lost race even on databases without row locks
   - Raises StaleRecordError for the losing writer

3. **Distributed Locks** (DistributedLock)
   - Redis-based mutual exclusion across processes/servers
   - Use for: periodic jobs that must not overlap (reconciliation)

Usage:

    with transaction.atomic():
        booking, payment = lock_booking_pair(booking_id)
        booking.confirm()
        save_versioned(booking)

    with DistributedLock("payments:reconcile", ttl=300, blocking=False):
        reconcile()
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING, TypeVar

from django.db import models
from django.db.models import F
from django.utils import timezone

from django_redis import get_redis_connection

from core.exceptions import NotFoundError
from payments.exceptions import LockAcquisitionError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

    from bookings.models import Booking
    from payments.models import EscrowPayment

T = TypeVar("T", bound=models.Model)

# Fields never rewritten by a versioned save.
_IMMUTABLE_FIELDS = frozenset({"version", "created_at", "updated_at"})


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - Automatic TTL prevents deadlocks from crashed processes
        - Token-based ownership prevents release by another process
        - Blocking and non-blocking acquisition modes
        - Context manager support

    Example:
        try:
            with DistributedLock("payments:reconcile", ttl=300, blocking=False):
                reconcile_pending_payments()
        except LockAcquisitionError:
            logger.info("Reconciliation already running")

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)
    """

    # Atomic check-and-delete
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Atomic check-and-extend
    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (non-blocking)
                or the timeout elapsed (blocking)
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.monotonic() + self.timeout
            while time.monotonic() < end_time:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it. Safe to call more than once.

        Returns:
            True if the lock was released, False if we didn't hold it
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, additional_ttl: int | None = None) -> bool:
        """
        Reset the lock TTL if we hold it.

        Call between batches of a long-running job.
        """
        if self._token is None:
            return False

        ttl = additional_ttl or self.ttl
        redis = self._get_redis()
        result = redis.eval(self.EXTEND_SCRIPT, 1, self.key, self._token, ttl)
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


# =============================================================================
# Optimistic Locking
# =============================================================================


def save_versioned(instance: T) -> T:
    """
    Persist a versioned model with a compare-and-set on its version.

    New instances are inserted. Existing ones are written with
    ``UPDATE ... SET version = version + 1 WHERE pk = ? AND version = ?``
    using every concrete non-relation field. FSM fields are written
    directly, bypassing their protected descriptor.

    Args:
        instance: Model instance with a 'version' field

    Returns:
        The instance, with version advanced in memory

    Raises:
        StaleRecordError: If another writer bumped the version first
        NotFoundError: If the row no longer exists
    """
    model_class = type(instance)

    if instance._state.adding:
        instance.save(force_insert=True)
        return instance

    expected_version = instance.version
    now = timezone.now()
    values = {
        field.attname: getattr(instance, field.attname)
        for field in model_class._meta.concrete_fields
        if not field.primary_key
        and not field.is_relation
        and field.name not in _IMMUTABLE_FIELDS
    }

    rows = model_class.objects.filter(pk=instance.pk, version=expected_version).update(
        version=F("version") + 1,
        updated_at=now,
        **values,
    )

    if rows == 0:
        _raise_stale(instance, expected_version)

    instance.version = expected_version + 1
    instance.updated_at = now
    return instance


def ensure_current(*instances: models.Model) -> None:
    """
    Check that versioned instances still match their stored rows.

    Call before an external side effect that save_versioned cannot undo,
    such as a gateway refund.

    Raises:
        StaleRecordError: If another writer bumped a version first
        NotFoundError: If a row no longer exists
    """
    for instance in instances:
        stored = (
            type(instance)
            .objects.filter(pk=instance.pk)
            .values_list("version", flat=True)
            .first()
        )
        if stored != instance.version:
            _raise_stale(instance, instance.version)


def _raise_stale(instance: models.Model, expected_version: int) -> None:
    model_name = type(instance).__name__
    current_version = (
        type(instance)
        .objects.filter(pk=instance.pk)
        .values_list("version", flat=True)
        .first()
    )
    if current_version is None:
        raise NotFoundError(
            f"{model_name} {instance.pk} not found",
            details={"pk": str(instance.pk)},
        )
    raise StaleRecordError(
        f"{model_name} {instance.pk} has been modified "
        f"(expected version {expected_version}, current {current_version})",
        details={
            "model": model_name,
            "pk": str(instance.pk),
            "expected_version": expected_version,
            "current_version": current_version,
        },
    )


# =============================================================================
# Pair Row Locks
# =============================================================================


def lock_booking_pair(
    booking_id: Any,
    expected_version: int | None = None,
) -> tuple[Booking, EscrowPayment | None]:
    """
    Lock a booking and its latest escrow payment for update.

    Lock order is always booking, then payment.

    Args:
        booking_id: Booking primary key
        expected_version: If given, the booking version the caller last saw

    Returns:
        (booking, payment) where payment is None if none exists yet

    Raises:
        NotFoundError: If the booking doesn't exist
        StaleRecordError: If expected_version doesn't match
    """
    from bookings.models import Booking
    from payments.models import EscrowPayment

    booking = Booking.objects.select_for_update().filter(pk=booking_id).first()
    if booking is None:
        raise NotFoundError(
            f"Booking {booking_id} not found",
            details={"booking_id": str(booking_id)},
        )

    if expected_version is not None and booking.version != expected_version:
        raise StaleRecordError(
            f"Booking {booking_id} has been modified "
            f"(expected version {expected_version}, current {booking.version})",
            details={
                "model": "Booking",
                "pk": str(booking_id),
                "expected_version": expected_version,
                "current_version": booking.version,
            },
        )

    payment = (
        EscrowPayment.objects.select_for_update()
        .filter(booking_id=booking.pk)
        .order_by("-created_at")
        .first()
    )
    return booking, payment


def lock_payment_pair(payment_id: Any) -> tuple[Booking, EscrowPayment]:
    """
    Lock an escrow payment together with its booking.

    The booking id is read without a lock, then both rows are locked in
    booking-then-payment order.

    Raises:
        NotFoundError: If the payment doesn't exist
    """
    from payments.models import EscrowPayment

    booking_id = (
        EscrowPayment.objects.filter(pk=payment_id)
        .values_list("booking_id", flat=True)
        .first()
    )
    if booking_id is None:
        raise NotFoundError(
            f"Payment {payment_id} not found",
            details={"payment_id": str(payment_id)},
        )

    booking, _ = lock_booking_pair(booking_id)
    payment = EscrowPayment.objects.select_for_update().get(pk=payment_id)
    return booking, payment


__all__ = [
    "DistributedLock",
    "ensure_current",
    "lock_booking_pair",
    "lock_payment_pair",
    "save_versioned",
]
