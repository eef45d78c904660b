"""Subjects — streams whose values are injected by their owner.

PassthroughSubject is stateless: subscribers only see what is sent after
they subscribe. CurrentValueSubject is stateful: it always holds a value and
hands it to each new subscriber immediately.

Both deliver synchronously, in subscription order. After complete() or
fail(), the subject is closed: late subscribers get only the terminal event,
and any further send/complete/fail raises InvalidState.
"""

from __future__ import annotations

import itertools
import logging
from typing import Generic, TypeVar

from combinefx.errors import InvalidState, as_upstream_failure
from combinefx.events import COMPLETED, Completed, Event, Failed, Value
from combinefx.stream import Observer, Stream
from combinefx.subscription import Subscription

logger = logging.getLogger("combinefx.subject")

T = TypeVar("T")


class PassthroughSubject(Stream[T], Generic[T]):
    """Broadcasts values to current subscribers; holds no value."""

    def __init__(self) -> None:
        self._observers: dict[int, Observer] = {}
        self._keys = itertools.count()
        self._terminal: Completed | Failed | None = None

    @property
    def terminated(self) -> bool:
        return self._terminal is not None

    def subscriber_count(self) -> int:
        return len(self._observers)

    def subscribe(self, observer: Observer) -> Subscription:
        if self._terminal is not None:
            observer(self._terminal)
            subscription = Subscription()
            subscription.cancel()
            return subscription

        key = next(self._keys)
        self._observers[key] = observer
        subscription = Subscription(lambda: self._observers.pop(key, None))
        self._on_subscribe(observer)
        return subscription

    def _on_subscribe(self, observer: Observer) -> None:
        pass

    def send(self, value: T) -> None:
        """Deliver Value(value) to every current subscriber."""
        self._check_open("send")
        self._deliver(Value(value))

    def complete(self) -> None:
        self._terminate(COMPLETED)

    def fail(self, error: BaseException) -> None:
        """Terminate with Failed(UpstreamFailed(error)); CombineErrors are sent as-is."""
        self._terminate(Failed(as_upstream_failure(error)))

    def _deliver(self, event: Event) -> None:
        for key, observer in list(self._observers.items()):
            # Skip observers cancelled by an earlier callback in this loop.
            if key in self._observers:
                observer(event)

    def _terminate(self, event: Completed | Failed) -> None:
        self._check_open("complete" if isinstance(event, Completed) else "fail")
        self._terminal = event
        observers = list(self._observers.values())
        self._observers.clear()
        logger.debug("%r terminated with %r, notifying %d subscribers", self, event, len(observers))
        for observer in observers:
            observer(event)

    def _check_open(self, op: str) -> None:
        if self._terminal is not None:
            raise InvalidState(f"{op}() on {type(self).__name__} after {self._terminal!r}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(subscribers={len(self._observers)})"


class CurrentValueSubject(PassthroughSubject[T]):
    """Holds the latest value and replays it to each new subscriber.

    Usage:
        count = CurrentValueSubject(0)
        sub = count.sink(print)   # prints 0
        count.value += 1          # prints 1
    """

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, value: T) -> None:
        self.send(value)

    def send(self, value: T) -> None:
        self._check_open("send")
        self._value = value
        self._deliver(Value(value))

    def _on_subscribe(self, observer: Observer) -> None:
        observer(Value(self._value))

    def __repr__(self) -> str:
        return f"CurrentValueSubject({self._value!r}, subscribers={len(self._observers)})"
