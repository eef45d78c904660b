"""Push-based event streams with operator chaining.

Every source, subject and operator is a Stream: it has subscribe(observer),
where observer receives Event objects (Value / Completed / Failed), and it
returns a Subscription owned by the caller. Operators return a new Stream
(immutable chain); nothing happens until something subscribes.

Each subscription gets its own Relay chain. A Relay owns its upstream
subscription and forwards to its downstream observer, so cancelling the
outermost Subscription tears the whole chain down, and a relay that has
seen a terminal event never forwards anything again.

Keep the Subscription: dropping it cancels the observation.

    bag = SubscriptionBag()
    text.debounce(0.5, dispatcher).map(len).sink(print).store_in(bag)
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from combinefx.events import Completed, Event, Failed, Value, is_terminal
from combinefx.subscription import Subscription

T = TypeVar("T")
U = TypeVar("U")

Observer = Callable[[Event], None]


class Stream(Generic[T]):
    """A source of Value events terminated by at most one Completed/Failed."""

    def subscribe(self, observer: Observer) -> Subscription:
        raise NotImplementedError

    # ─── Subscribers ─────────────────────────────────────────────────────

    def sink(
        self,
        on_value: Callable[[T], None] | None = None,
        on_completion: Callable[[Completed | Failed], None] | None = None,
    ) -> Subscription:
        """Subscribe with plain callbacks.

        on_value gets each value; on_completion gets the terminal event.
        """

        def _observer(event: Event) -> None:
            if isinstance(event, Value):
                if on_value is not None:
                    on_value(event.value)
            elif on_completion is not None:
                on_completion(event)

        return self.subscribe(_observer)

    def assign(self, obj: Any, attribute: str) -> Subscription:
        """Set obj.<attribute> to every value."""
        return self.sink(lambda value: setattr(obj, attribute, value))

    # ─── Operators ───────────────────────────────────────────────────────

    def map(self, fn: Callable[[T], U]) -> Stream[U]:
        """Transform values through fn."""
        from combinefx.operators import Map

        return Map(self, fn)

    def try_map(self, fn: Callable[[T], U]) -> Stream[U]:
        """Like map, but an exception from fn fails the stream."""
        from combinefx.operators import TryMap

        return TryMap(self, fn)

    def filter(self, predicate: Callable[[T], bool]) -> Stream[T]:
        """Only pass values where predicate returns True."""
        from combinefx.operators import Filter

        return Filter(self, predicate)

    def debounce(self, interval: float, dispatcher=None) -> Stream[T]:
        """Emit a value only after interval seconds without a newer one."""
        from combinefx.operators import Debounce

        return Debounce(self, interval, dispatcher)

    def combine_latest(self, other: Stream[U]) -> Stream[tuple[T, U]]:
        """Pair the latest value of self with the latest value of other."""
        from combinefx.operators import CombineLatest

        return CombineLatest(self, other)

    def receive_on(self, dispatcher=None) -> Stream[T]:
        """Re-deliver every event as a task on dispatcher."""
        from combinefx.operators import ReceiveOn

        return ReceiveOn(self, dispatcher)

    def replace_error(self, default: T) -> Stream[T]:
        """Turn a failure into a final default value followed by completion."""
        from combinefx.operators import ReplaceError

        return ReplaceError(self, default)


class Relay:
    """Per-subscription pipeline node.

    Forwards events to one downstream observer until cancelled or
    terminated, and owns the upstream subscription that feeds it.
    Subclasses override on_event() to transform, and _teardown() to release
    extra resources (timers, secondary upstreams).
    """

    def __init__(self, downstream: Observer) -> None:
        self._downstream: Observer | None = downstream
        self._upstream: Subscription | None = None
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def connect(self, source: Stream) -> Subscription:
        """Subscribe to source and hand back the downstream Subscription."""
        upstream = source.subscribe(self.on_event)
        if self._done:
            # Terminated during synchronous replay.
            upstream.cancel()
        else:
            self._upstream = upstream
        return Subscription(self.cancel)

    def on_event(self, event: Event) -> None:
        self.forward(event)

    def forward(self, event: Event) -> None:
        """Deliver downstream unless cancelled or already terminated."""
        if self._done:
            return
        if is_terminal(event):
            downstream = self._downstream
            self._close()
            downstream(event)
        else:
            self._downstream(event)

    def cancel(self) -> None:
        if self._downstream is None:
            return
        self._close()

    def _close(self) -> None:
        self._done = True
        self._downstream = None
        upstream, self._upstream = self._upstream, None
        if upstream is not None:
            upstream.cancel()
        self._teardown()

    def _teardown(self) -> None:
        pass
