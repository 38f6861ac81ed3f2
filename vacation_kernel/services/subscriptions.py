"""
SubscriptionHub -- in-process change notifications for vacation requests.

Responsibility:
    Pushes every committed request snapshot to the observers whose filter
    it matches.  Observers own their subscription handle and cancel it on
    teardown; there is no ambient global listener state.

Architecture position:
    Kernel > Services -- owned by RequestStore, which publishes only after
    its transaction has committed.

Invariants enforced:
    - Observers only ever see committed state.
    - A cancelled subscription receives nothing further; cancelling twice
      is a no-op.
    - One failing callback never prevents delivery to the others and never
      undoes the committed write.
    - Per request, each observer sees strictly increasing versions, even
      when writers on different threads publish out of order.

Failure modes:
    - Callback exceptions are logged (``subscriber_callback_failed``) with
      the traceback attached.
"""

from __future__ import annotations

import threading
from typing import Callable
from uuid import UUID, uuid4

from vacation_kernel.domain.vacation import ALL_REQUESTS, RequestFilter, VacationRequest
from vacation_kernel.logging_config import get_logger

logger = get_logger("services.subscriptions")

RequestCallback = Callable[[VacationRequest], None]


class Subscription:
    """Handle returned by ``subscribe``. Usable as a context manager.

    Snapshots of one request reach the callback in increasing ``version``
    order.  A snapshot older than (or equal to) the last one delivered for
    that request is dropped.  Deliveries to one subscription never run
    concurrently: a publisher that finds another thread already
    delivering hands its snapshot over and returns.
    """

    def __init__(
        self,
        hub: SubscriptionHub,
        request_filter: RequestFilter,
        callback: RequestCallback,
    ):
        self.id: UUID = uuid4()
        self.request_filter = request_filter
        self._callback = callback
        self._hub = hub
        self._active = True
        self._lock = threading.Lock()
        self._pending: dict[UUID, VacationRequest] = {}
        self._delivered: dict[UUID, int] = {}
        self._draining = False

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._hub._remove(self)

    def deliver(self, request: VacationRequest) -> bool:
        """Queue ``request`` for the callback and drain if nobody else is.

        Returns:
            True if the filter matched.
        """
        if not self._active or not self.request_filter.matches(request):
            return False
        with self._lock:
            queued = self._pending.get(request.id)
            if queued is None or queued.version < request.version:
                self._pending[request.id] = request
            if self._draining:
                return True
            self._draining = True
        self._drain()
        return True

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                request_id = next(iter(self._pending))
                request = self._pending.pop(request_id)
                if request.version <= self._delivered.get(request_id, 0):
                    continue
                self._delivered[request_id] = request.version
            if self._active:
                self._invoke(request)

    def _invoke(self, request: VacationRequest) -> None:
        try:
            self._callback(request)
        except Exception:
            logger.error(
                "subscriber_callback_failed",
                exc_info=True,
                extra={
                    "subscription_id": str(self.id),
                    "vacation_request_id": str(request.id),
                    "version": request.version,
                },
            )

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class SubscriptionHub:
    """Registry of live subscriptions. Thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        callback: RequestCallback,
        request_filter: RequestFilter = ALL_REQUESTS,
    ) -> Subscription:
        subscription = Subscription(self, request_filter, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(
            "subscription_added",
            extra={
                "subscription_id": str(subscription.id),
                "employee_filter": request_filter.employee_id,
            },
        )
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        logger.debug(
            "subscription_cancelled",
            extra={"subscription_id": str(subscription.id)},
        )

    def publish(self, request: VacationRequest) -> int:
        """Deliver ``request`` to every matching subscriber.

        Returns:
            Number of subscriptions whose filter matched.
        """
        with self._lock:
            targets = list(self._subscriptions)
        return sum(1 for subscription in targets if subscription.deliver(request))

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
