"""Dispatcher — cooperative single-threaded task queue.

Models the UI "main" execution context. Everything a stream does after
subscribe time (debounce timers, deferred Future delivery, receive_on hops,
timer ticks) is a task on a Dispatcher. Tasks are synchronous, bounded units
of work; they run one at a time on whichever thread drives the dispatcher.

Ordering:
- schedule_now() tasks run FIFO and are always ready.
- schedule_after() tasks run no earlier than their deadline, in deadline
  order, ties broken by schedule order.

The clock is pluggable. VirtualClock lets tests advance time
deterministically; MonotonicClock is real time.

Thread safety: the only entry points safe to call from another thread are
call_from_thread() and the completion side of submit(). Everything else
belongs to the dispatcher's thread.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import queue
import time
from collections import deque
from threading import Thread
from typing import Callable, TypeVar

from combinefx.events import Failure, Result, Success

logger = logging.getLogger("combinefx.dispatcher")

T = TypeVar("T")

Task = Callable[[], None]


class VirtualClock:
    """Clock that only moves when told to."""

    is_virtual = True

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance_to(self, t: float) -> None:
        if t < self._now:
            raise ValueError(f"cannot move clock backwards ({t} < {self._now})")
        self._now = t

    def __repr__(self) -> str:
        return f"VirtualClock({self._now})"


class MonotonicClock:
    """Real time, from time.monotonic()."""

    is_virtual = False

    def now(self) -> float:
        return time.monotonic()


class ScheduledTask:
    """Handle for a task sitting in a Dispatcher queue."""

    __slots__ = ("_fn", "_dispatcher", "deadline", "_seq", "_cancelled", "_started")

    def __init__(self, fn: Task, dispatcher: Dispatcher, deadline: float | None, seq: int) -> None:
        self._fn = fn
        self._dispatcher = dispatcher
        self.deadline = deadline
        self._seq = seq
        self._cancelled = False
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def started(self) -> bool:
        return self._started

    def cancel(self) -> None:
        """Drop the task; it is skipped when its turn comes. No effect once started."""
        if self._started or self._cancelled:
            return
        self._cancelled = True
        self._dispatcher._cancelled_count += 1

    def __lt__(self, other: ScheduledTask) -> bool:
        return (self.deadline, self._seq) < (other.deadline, other._seq)

    def __repr__(self) -> str:
        if self._started:
            state = "started"
        elif self._cancelled:
            state = "cancelled"
        else:
            state = "pending"
        when = "now" if self.deadline is None else f"at={self.deadline}"
        return f"ScheduledTask(#{self._seq}, {when}, {state})"


class Dispatcher:
    """Single-threaded cooperative run loop."""

    def __init__(self, clock: VirtualClock | MonotonicClock | None = None) -> None:
        self._clock = clock if clock is not None else VirtualClock()
        self._immediate: deque[ScheduledTask] = deque()
        self._timers: list[ScheduledTask] = []
        self._seq = itertools.count()
        # Thread-safe inbox for work marshaled from other threads.
        self._inbox: queue.SimpleQueue[Task] = queue.SimpleQueue()
        self._outstanding = 0
        # Cancelled handles stay queued until popped; counted so pending_count() stays exact.
        self._cancelled_count = 0

    @property
    def clock(self) -> VirtualClock | MonotonicClock:
        return self._clock

    def now(self) -> float:
        return self._clock.now()

    # ─── Scheduling ──────────────────────────────────────────────────────

    def schedule_now(self, task: Task) -> ScheduledTask:
        """Append task to the immediate FIFO queue."""
        handle = ScheduledTask(task, self, None, next(self._seq))
        self._immediate.append(handle)
        return handle

    def schedule_after(self, delay: float, task: Task) -> ScheduledTask:
        """Run task once delay seconds have elapsed on this dispatcher's clock."""
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        handle = ScheduledTask(task, self, self._clock.now() + delay, next(self._seq))
        heapq.heappush(self._timers, handle)
        return handle

    def call_from_thread(self, task: Task) -> None:
        """Queue task from any thread. It runs on the dispatcher's thread."""
        self._inbox.put(task)

    def submit(self, fn: Callable[[], T], on_done: Callable[[Result], None]) -> None:
        """Run fn on a daemon thread; deliver its Result to on_done on this dispatcher.

        run_until_idle() waits for submitted work before returning.
        """
        self._outstanding += 1

        def _work() -> None:
            try:
                result: Result = Success(fn())
            except Exception as exc:
                result = Failure(exc)
            self.call_from_thread(lambda: self._finish_background(on_done, result))

        Thread(target=_work, daemon=True).start()

    def _finish_background(self, on_done: Callable[[Result], None], result: Result) -> None:
        self._outstanding -= 1
        on_done(result)

    # ─── Running ─────────────────────────────────────────────────────────

    def pending_count(self) -> int:
        """Live tasks waiting to run, plus background work not yet delivered."""
        live = len(self._immediate) + len(self._timers) - self._cancelled_count
        return live + self._outstanding

    def run_ready(self, max_tasks: int | None = None) -> int:
        """Run every task that is ready right now. Returns the number run.

        With max_tasks, stop after that many tasks even if more are ready,
        e.g. when a task keeps rescheduling itself with schedule_now().
        """
        self._drain_inbox()
        ran = 0
        while max_tasks is None or ran < max_tasks:
            handle = self._pop_ready()
            if handle is None:
                break
            self._run(handle)
            ran += 1
            self._drain_inbox()
        return ran

    def advance_by(self, seconds: float) -> int:
        return self.advance_to(self._clock.now() + seconds)

    def advance_to(self, t: float) -> int:
        """Virtual clock only: run everything due up to t, leaving the clock at t."""
        clock = self._require_virtual("advance_to")
        ran = self.run_ready()
        while True:
            head = self._next_timer()
            if head is None or head.deadline > t:
                break
            clock.advance_to(max(head.deadline, clock.now()))
            ran += self.run_ready()
        clock.advance_to(t)
        ran += self.run_ready()
        return ran

    def run_until_idle(self, *, max_tasks: int = 100_000, timeout: float | None = None) -> int:
        """Run until both queues are empty and no background work is outstanding.

        On a virtual clock, pending timers fast-forward the clock to their
        deadline. On a real clock, the loop waits for them. A repeating
        source (timer(), or a task that reschedules itself) never lets the
        dispatcher go idle; max_tasks bounds the loop so that mistake fails
        loudly.
        """
        ran = 0
        while True:
            ran += self.run_ready(max_tasks - ran + 1)
            if ran > max_tasks:
                raise RuntimeError(f"dispatcher did not go idle after {max_tasks} tasks")
            head = self._next_timer()
            if head is not None:
                deadline = head.deadline
                if self._clock.is_virtual:
                    self._clock.advance_to(max(deadline, self._clock.now()))
                else:
                    self._wait_inbox(max(0.0, deadline - self._clock.now()))
            elif self._outstanding:
                self._wait_inbox(timeout)
            else:
                break
        logger.debug("Dispatcher idle after %d tasks", ran)
        return ran

    def _pop_ready(self) -> ScheduledTask | None:
        """Next task to run now: immediates first, then the earliest due timer."""
        while self._immediate:
            handle = self._immediate.popleft()
            if not handle._cancelled:
                return handle
            self._cancelled_count -= 1
        head = self._next_timer()
        if head is not None and head.deadline <= self._clock.now():
            return heapq.heappop(self._timers)
        return None

    def _next_timer(self) -> ScheduledTask | None:
        """Earliest live timer, dropping cancelled ones off the heap head."""
        while self._timers and self._timers[0]._cancelled:
            heapq.heappop(self._timers)
            self._cancelled_count -= 1
        return self._timers[0] if self._timers else None

    def _run(self, handle: ScheduledTask) -> None:
        handle._started = True
        handle._fn()

    def _drain_inbox(self) -> None:
        while True:
            try:
                task = self._inbox.get_nowait()
            except queue.Empty:
                return
            self.schedule_now(task)

    def _wait_inbox(self, timeout: float | None) -> None:
        try:
            task = self._inbox.get(timeout=timeout)
        except queue.Empty:
            if self._outstanding and not self._timers:
                raise TimeoutError(f"background work still outstanding after {timeout}s")
            return
        self.schedule_now(task)

    def _require_virtual(self, op: str) -> VirtualClock:
        if not self._clock.is_virtual:
            raise RuntimeError(f"{op}() requires a VirtualClock, not {type(self._clock).__name__}")
        return self._clock

    def __repr__(self) -> str:
        return f"Dispatcher({self._clock!r}, pending={self.pending_count()})"


# ─── Process-wide dispatcher ─────────────────────────────────────────────────
_main: Dispatcher | None = None


def main_dispatcher() -> Dispatcher:
    """The process-wide dispatcher, created on first use with a real clock."""
    global _main
    if _main is None:
        _main = Dispatcher(MonotonicClock())
    return _main


def set_main_dispatcher(dispatcher: Dispatcher | None) -> None:
    """Replace the process-wide dispatcher. None resets it to the default.

    Call once at startup (or in a test fixture):
        combinefx.set_main_dispatcher(Dispatcher(VirtualClock()))
    """
    global _main
    _main = dispatcher


def resolve_dispatcher(dispatcher: Dispatcher | None) -> Dispatcher:
    return dispatcher if dispatcher is not None else main_dispatcher()

