"""Subscription handles — caller-owned cancellation.

A stream never owns the subscriptions it hands out. The caller keeps the
Subscription alive for as long as it wants events; cancelling it (or
dropping the last reference to it) detaches the observer and releases
whatever the stream held on its behalf.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable

logger = logging.getLogger("combinefx.subscription")

_id_counter = itertools.count(1)


class Subscription:
    """One observer's attachment to one stream."""

    __slots__ = ("_id", "_on_cancel", "_cancelled")

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._id = next(_id_counter)
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def id(self) -> int:
        return self._id

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Detach the observer. Safe to call any number of times."""
        if self._cancelled:
            return
        self._cancelled = True
        on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel()

    def store_in(self, bag: SubscriptionBag) -> Subscription:
        """Keep this subscription alive inside bag. Returns self."""
        bag.add(self)
        return self

    def __del__(self) -> None:
        # Dropping the last reference behaves like cancel().
        if not getattr(self, "_cancelled", True):
            self.cancel()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"Subscription(#{self._id}, {state})"


class SubscriptionBag:
    """Holds subscriptions so they stay alive; cancel_all() releases them.

    Usage:
        bag = SubscriptionBag()
        subject.sink(on_value).store_in(bag)
        ...
        bag.cancel_all()
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def add(self, subscription: Subscription) -> None:
        self._subscriptions.append(subscription)

    def cancel_all(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.cancel()
        if subscriptions:
            logger.debug("Cancelled %d subscriptions", len(subscriptions))

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __iter__(self):
        return iter(list(self._subscriptions))
