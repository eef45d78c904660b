"""Operators — stream stages composed over one or two upstream streams.

Each operator is a Stream holding only its upstream source(s). Subscribing
builds a fresh Relay for that subscriber; the relay owns the upstream
subscription, so when the last downstream Subscription goes away nothing
keeps the chain attached to its source.

Failures pass through every operator unchanged. Only ReplaceError turns a
failure into a value.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, TypeVar

from combinefx.dispatcher import Dispatcher, ScheduledTask, resolve_dispatcher
from combinefx.errors import as_upstream_failure
from combinefx.events import COMPLETED, Event, Failed, Value
from combinefx.stream import Observer, Relay, Stream
from combinefx.subscription import Subscription

logger = logging.getLogger("combinefx.operators")

T = TypeVar("T")
U = TypeVar("U")

_UNSET: Any = object()


class _MapRelay(Relay):
    def __init__(self, downstream: Observer, fn: Callable) -> None:
        super().__init__(downstream)
        self._fn = fn

    def on_event(self, event: Event) -> None:
        if isinstance(event, Value):
            if not self._done:
                self.forward(Value(self._fn(event.value)))
        else:
            self.forward(event)


class Map(Stream[U]):
    """Each upstream Value(v) becomes Value(fn(v))."""

    def __init__(self, upstream: Stream[T], fn: Callable[[T], U]) -> None:
        self._upstream = upstream
        self._fn = fn

    def subscribe(self, observer: Observer) -> Subscription:
        return _MapRelay(observer, self._fn).connect(self._upstream)


class _TryMapRelay(_MapRelay):
    def on_event(self, event: Event) -> None:
        if not isinstance(event, Value):
            self.forward(event)
            return
        if self._done:
            return
        try:
            mapped = self._fn(event.value)
        except Exception as exc:
            logger.debug("try_map failed on %r: %r", event.value, exc)
            self.forward(Failed(as_upstream_failure(exc)))
            return
        self.forward(Value(mapped))


class TryMap(Map[U]):
    """Map whose function may raise; the exception fails the stream."""

    def subscribe(self, observer: Observer) -> Subscription:
        return _TryMapRelay(observer, self._fn).connect(self._upstream)


class _FilterRelay(Relay):
    def __init__(self, downstream: Observer, predicate: Callable) -> None:
        super().__init__(downstream)
        self._predicate = predicate

    def on_event(self, event: Event) -> None:
        if isinstance(event, Value):
            if not self._done and self._predicate(event.value):
                self.forward(event)
        else:
            self.forward(event)


class Filter(Stream[T]):
    """Forward Value(v) only when predicate(v) is true."""

    def __init__(self, upstream: Stream[T], predicate: Callable[[T], bool]) -> None:
        self._upstream = upstream
        self._predicate = predicate

    def subscribe(self, observer: Observer) -> Subscription:
        return _FilterRelay(observer, self._predicate).connect(self._upstream)


class _DebounceRelay(Relay):
    def __init__(self, downstream: Observer, interval: float, dispatcher: Dispatcher) -> None:
        super().__init__(downstream)
        self._interval = interval
        self._dispatcher = dispatcher
        self._pending_value: Any = _UNSET
        self._pending_task: ScheduledTask | None = None

    def on_event(self, event: Event) -> None:
        if self._done:
            return
        if isinstance(event, Value):
            self._cancel_pending()
            self._pending_value = event.value
            self._pending_task = self._dispatcher.schedule_after(self._interval, self._deliver)
        else:
            # Never deliver a stale value after termination.
            self._cancel_pending()
            self.forward(event)

    def _deliver(self) -> None:
        value, self._pending_value = self._pending_value, _UNSET
        self._pending_task = None
        if value is not _UNSET:
            self.forward(Value(value))

    def _cancel_pending(self) -> None:
        task, self._pending_task = self._pending_task, None
        self._pending_value = _UNSET
        if task is not None:
            task.cancel()

    def _teardown(self) -> None:
        self._cancel_pending()


class Debounce(Stream[T]):
    """Deliver a value once interval seconds pass without a newer one."""

    def __init__(self, upstream: Stream[T], interval: float, dispatcher: Dispatcher | None = None) -> None:
        if interval < 0:
            raise ValueError(f"interval must be >= 0, got {interval}")
        self._upstream = upstream
        self._interval = interval
        self._dispatcher = resolve_dispatcher(dispatcher)

    def subscribe(self, observer: Observer) -> Subscription:
        relay = _DebounceRelay(observer, self._interval, self._dispatcher)
        return relay.connect(self._upstream)


class _CombineLatestRelay(Relay):
    def __init__(self, downstream: Observer) -> None:
        super().__init__(downstream)
        self._latest = [_UNSET, _UNSET]
        self._finished = [False, False]
        self._sides: list[Subscription | None] = [None, None]

    def connect_pair(self, first: Stream, second: Stream) -> Subscription:
        for index, source in enumerate((first, second)):
            if self._done:
                break
            side = source.subscribe(partial(self._on_side, index))
            if self._done:
                side.cancel()
            else:
                self._sides[index] = side
        return Subscription(self.cancel)

    def _on_side(self, index: int, event: Event) -> None:
        if self._done:
            return
        if isinstance(event, Value):
            self._latest[index] = event.value
            if all(latest is not _UNSET for latest in self._latest):
                self.forward(Value(tuple(self._latest)))
        elif isinstance(event, Failed):
            # forward() closes the relay, which cancels the other side.
            self.forward(event)
        else:
            self._finished[index] = True
            self._sides[index] = None
            if all(self._finished):
                self.forward(COMPLETED)

    def _teardown(self) -> None:
        sides, self._sides = self._sides, [None, None]
        for side in sides:
            if side is not None:
                side.cancel()


class CombineLatest(Stream[tuple]):
    """Emit (a, b) once both sides have a value, then on every change to either.

    Completes when both sides complete; fails as soon as either side fails.
    """

    def __init__(self, first: Stream, second: Stream) -> None:
        self._first = first
        self._second = second

    def subscribe(self, observer: Observer) -> Subscription:
        return _CombineLatestRelay(observer).connect_pair(self._first, self._second)


class _ReceiveOnRelay(Relay):
    def __init__(self, downstream: Observer, dispatcher: Dispatcher) -> None:
        super().__init__(downstream)
        self._dispatcher = dispatcher

    def on_event(self, event: Event) -> None:
        if self._done:
            return
        # Cancellation is checked when the task runs (forward() is a no-op
        # once the relay is closed), not by removing the task.
        self._dispatcher.schedule_now(partial(self.forward, event))


class ReceiveOn(Stream[T]):
    """Hop every event onto dispatcher's queue."""

    def __init__(self, upstream: Stream[T], dispatcher: Dispatcher | None = None) -> None:
        self._upstream = upstream
        self._dispatcher = resolve_dispatcher(dispatcher)

    def subscribe(self, observer: Observer) -> Subscription:
        return _ReceiveOnRelay(observer, self._dispatcher).connect(self._upstream)


class _ReplaceErrorRelay(Relay):
    def __init__(self, downstream: Observer, default: Any) -> None:
        super().__init__(downstream)
        self._default = default

    def on_event(self, event: Event) -> None:
        if isinstance(event, Failed):
            logger.debug("Replacing %r with default %r", event.error, self._default)
            self.forward(Value(self._default))
            self.forward(COMPLETED)
        else:
            self.forward(event)


class ReplaceError(Stream[T]):
    """A failure becomes Value(default) followed by Completed."""

    def __init__(self, upstream: Stream[T], default: T) -> None:
        self._upstream = upstream
        self._default = default

    def subscribe(self, observer: Observer) -> Subscription:
        return _ReplaceErrorRelay(observer, self._default).connect(self._upstream)


__all__ = [
    "Map",
    "TryMap",
    "Filter",
    "Debounce",
    "CombineLatest",
    "ReceiveOn",
    "ReplaceError",
]
