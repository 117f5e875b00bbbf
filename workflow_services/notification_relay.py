"""
workflow_services.notification_relay -- At-least-once hand-off to the dispatcher.

Responsibility:
    Pass rendered ``NotificationRequest``s to the external
    ``NotificationDispatcher``.  A failed dispatch is logged and parked;
    ``retry_pending()`` tries parked requests again, and a request that
    has failed ``max_attempts`` times is dead-lettered.

Architecture position:
    Services layer.  Called by ``TransitionExecutor`` AFTER the state
    write has committed; nothing here can undo or fail a transition.

Invariants enforced:
    - A dispatcher exception never propagates out of the relay.
    - Each request is attempted at most ``max_attempts`` times.
    - Pending and dead-letter queues keep submission order.
    - Dead letters are held until ``take_dead_letters()`` drains them.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass

from workflow_kernel.domain.collaborators import NotificationDispatcher
from workflow_kernel.domain.execution import NotificationRequest
from workflow_kernel.logging_config import get_logger

logger = get_logger("services.notification_relay")


@dataclass
class _Delivery:
    request: NotificationRequest
    attempts: int = 0
    last_error: str = ""


class NotificationRelay:
    """Dispatch wrapper with parking, retry and dead-lettering."""

    def __init__(self, dispatcher: NotificationDispatcher, max_attempts: int = 3) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._dispatcher = dispatcher
        self._max_attempts = max_attempts
        self._lock = threading.Lock()
        self._pending: list[_Delivery] = []
        self._dead: list[_Delivery] = []

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def pending(self) -> tuple[NotificationRequest, ...]:
        with self._lock:
            return tuple(d.request for d in self._pending)

    @property
    def dead_letters(self) -> tuple[NotificationRequest, ...]:
        with self._lock:
            return tuple(d.request for d in self._dead)

    def take_dead_letters(self) -> tuple[NotificationRequest, ...]:
        """Remove and return every dead-lettered request, oldest first."""
        with self._lock:
            batch, self._dead = self._dead, []
        return tuple(d.request for d in batch)

    def submit(self, requests: Iterable[NotificationRequest]) -> int:
        """Attempt each request once.  Returns the number delivered."""
        delivered = 0
        for request in requests:
            delivery = _Delivery(request)
            if self._attempt(delivery):
                delivered += 1
            else:
                self._park(delivery)
        return delivered

    def retry_pending(self) -> int:
        """Retry every parked request once.  Returns the number delivered."""
        with self._lock:
            batch, self._pending = self._pending, []
        delivered = 0
        for delivery in batch:
            if self._attempt(delivery):
                delivered += 1
            else:
                self._park(delivery)
        return delivered

    def _attempt(self, delivery: _Delivery) -> bool:
        delivery.attempts += 1
        try:
            self._dispatcher.dispatch(delivery.request)
        except Exception as exc:
            delivery.last_error = f"{type(exc).__name__}: {exc}"
            logger.warning(
                "notification_dispatch_failed",
                extra={
                    "recipient_id": delivery.request.recipient_id,
                    "workflow_action": delivery.request.action,
                    "attempt": delivery.attempts,
                    "max_attempts": self._max_attempts,
                    "error": delivery.last_error,
                },
            )
            return False
        logger.debug(
            "notification_dispatched",
            extra={"recipient_id": delivery.request.recipient_id, "attempt": delivery.attempts},
        )
        return True

    def _park(self, delivery: _Delivery) -> None:
        with self._lock:
            if delivery.attempts >= self._max_attempts:
                self._dead.append(delivery)
                dead = True
            else:
                self._pending.append(delivery)
                dead = False
        if dead:
            logger.error(
                "notification_dead_lettered",
                extra={
                    "recipient_id": delivery.request.recipient_id,
                    "workflow_action": delivery.request.action,
                    "attempts": delivery.attempts,
                    "error": delivery.last_error,
                },
            )
