from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Each feed carries no payload beyond optional scoping kwargs (e.g. `election_id`);
# subscribers re-read a fresh snapshot when notified.
elections_changed = Signal()
election_votes_changed = Signal()
polls_changed = Signal()
poll_responses_changed = Signal()
announcements_changed = Signal()
activity_log_changed = Signal()
financial_records_changed = Signal()
documents_changed = Signal()


class Subscription:
    """Handle returned by `subscribe()`.

    Call `unsubscribe()` (or leave the `with` block) to stop delivery. Calling it
    more than once is harmless.
    """

    def __init__(self, *, signal: Signal, dispatch_uid: str) -> None:
        self._signal = signal
        self._dispatch_uid = dispatch_uid
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> bool:
        if not self._active:
            return False
        self._active = False
        return self._signal.disconnect(dispatch_uid=self._dispatch_uid)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.unsubscribe()


def _send(signal: Signal, kwargs: Mapping[str, Any]) -> None:
    for receiver, response in signal.send_robust(sender=None, **kwargs):
        if isinstance(response, Exception):
            logger.error(
                "Live subscriber failed receiver=%r",
                receiver,
                exc_info=(type(response), response, response.__traceback__),
            )


def publish(signal: Signal, **kwargs: Any) -> None:
    """Notify subscribers once the current transaction commits.

    Outside a transaction the notification is sent immediately.
    """

    transaction.on_commit(lambda: _send(signal, kwargs))


def subscribe[T](
    *,
    signal: Signal,
    snapshot: Callable[[], T],
    callback: Callable[[T], None],
    match: Callable[[Mapping[str, Any]], bool] | None = None,
) -> Subscription:
    dispatch_uid = f"live-{uuid.uuid4().hex}"

    def _receiver(sender: object, **kwargs: Any) -> None:
        if match is not None and not match(kwargs):
            return
        callback(snapshot())

    signal.connect(_receiver, weak=False, dispatch_uid=dispatch_uid)
    subscription = Subscription(signal=signal, dispatch_uid=dispatch_uid)
    try:
        callback(snapshot())
    except Exception:
        subscription.unsubscribe()
        raise
    return subscription
