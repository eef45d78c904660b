"""Future and Deferred — bridging callback-style async work into streams.

A Future runs its producer immediately (eagerly), at construction, and
hands it a single-use promise. Whatever the promise is first called with is
cached; every subscriber, early or late, sees that one result exactly once.
The producer never runs again no matter how many subscribers attach.

Deferred restores lazy semantics: it builds the publisher only when
something subscribes.

Usage:
    def download(promise):
        legacy_api.get(url, lambda data, err: promise(Failure(err) if err else Success(data)))

    title = Future(download, dispatcher)
    sub = title.sink(print)

The promise must be called on the dispatcher's thread. Callback APIs that
answer on another thread should hop back through Dispatcher.call_from_thread
or Dispatcher.submit.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable, Generic, TypeVar

from combinefx.dispatcher import Dispatcher, resolve_dispatcher
from combinefx.errors import ProducerError
from combinefx.events import COMPLETED, Failed, Failure, Result, Success, Value
from combinefx.stream import Observer, Relay, Stream
from combinefx.subscription import Subscription

logger = logging.getLogger("combinefx.future")

T = TypeVar("T")

Promise = Callable[[Result], None]


class Future(Stream[T], Generic[T]):
    """Eager, single-shot, memoizing producer."""

    def __init__(self, producer: Callable[[Promise], None], dispatcher: Dispatcher | None = None) -> None:
        self._dispatcher = resolve_dispatcher(dispatcher)
        self._result: Result | None = None
        self._waiting: dict[int, Relay] = {}
        self._keys = itertools.count()
        try:
            producer(self._promise)
        except Exception as exc:
            if self._result is not None:
                # Already settled: the exception has no stream left to go to.
                raise
            logger.debug("Future producer raised %r", exc)
            self._promise(Failure(exc))

    @property
    def settled(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Result | None:
        return self._result

    def _promise(self, result: Result) -> None:
        if not isinstance(result, (Success, Failure)):
            raise TypeError(f"promise expects Success or Failure, got {result!r}")
        if self._result is not None:
            logger.debug("Ignoring %r: %r already settled with %r", result, self, self._result)
            return
        self._result = result
        waiting = list(self._waiting.values())
        self._waiting.clear()
        for relay in waiting:
            self._deliver(relay)

    def _deliver(self, relay: Relay) -> None:
        result = self._result
        if isinstance(result, Success):
            relay.forward(Value(result.value))
            relay.forward(COMPLETED)
        else:
            relay.forward(Failed(ProducerError(result.error)))

    def subscribe(self, observer: Observer) -> Subscription:
        relay = Relay(observer)
        if self._result is not None:
            # Settled: deliver on the next tick, never synchronously.
            self._dispatcher.schedule_now(lambda: self._deliver(relay))
            return Subscription(relay.cancel)

        key = next(self._keys)
        self._waiting[key] = relay

        def _cancel() -> None:
            self._waiting.pop(key, None)
            relay.cancel()

        return Subscription(_cancel)

    def __repr__(self) -> str:
        state = "pending" if self._result is None else repr(self._result)
        return f"Future({state}, waiting={len(self._waiting)})"


class Deferred(Stream[T], Generic[T]):
    """Build the publisher on subscription instead of up front.

    The first subscription calls factory and later ones reuse that publisher,
    so an eager Future inside still runs once. With fresh=True every
    subscription gets its own publisher from factory.
    """

    def __init__(self, factory: Callable[[], Stream[T]], *, fresh: bool = False) -> None:
        self._factory = factory
        self._fresh = fresh
        self._built: Stream[T] | None = None

    def subscribe(self, observer: Observer) -> Subscription:
        if self._fresh:
            return self._factory().subscribe(observer)
        if self._built is None:
            self._built = self._factory()
        return self._built.subscribe(observer)
