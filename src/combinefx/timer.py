"""timer() — a repeating tick source driven by a Dispatcher.

Each subscription starts its own schedule (autoconnect): the first tick
arrives one interval after subscribing, then one every interval. The tick
value is the dispatcher clock's now(). A timer never completes; cancel the
subscription to stop it.
"""

from __future__ import annotations

from combinefx.dispatcher import Dispatcher, ScheduledTask, resolve_dispatcher
from combinefx.events import Value
from combinefx.stream import Observer, Relay, Stream
from combinefx.subscription import Subscription


class _TimerRelay(Relay):
    def __init__(self, downstream: Observer, interval: float, dispatcher: Dispatcher) -> None:
        super().__init__(downstream)
        self._interval = interval
        self._dispatcher = dispatcher
        self._next: ScheduledTask | None = None

    def start(self) -> Subscription:
        self._next = self._dispatcher.schedule_after(self._interval, self._tick)
        return Subscription(self.cancel)

    def _tick(self) -> None:
        self._next = self._dispatcher.schedule_after(self._interval, self._tick)
        self.forward(Value(self._dispatcher.now()))

    def _teardown(self) -> None:
        task, self._next = self._next, None
        if task is not None:
            task.cancel()


class Timer(Stream[float]):
    def __init__(self, interval: float, dispatcher: Dispatcher | None = None) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._interval = interval
        self._dispatcher = resolve_dispatcher(dispatcher)

    def subscribe(self, observer: Observer) -> Subscription:
        return _TimerRelay(observer, self._interval, self._dispatcher).start()


def timer(interval: float, dispatcher: Dispatcher | None = None) -> Timer:
    """Emit the dispatcher's current time every interval seconds.

    Usage:
        count = CurrentValueSubject(0)
        sub = timer(1.0, dispatcher).sink(lambda _: setattr(count, "value", count.value + 1))
    """
    return Timer(interval, dispatcher)
