"""Tests for Dispatcher — ordering, timers, cancellation, virtual clock, background work."""

import threading

import pytest

import combinefx.dispatcher as _disp_mod
from combinefx import (
    Dispatcher,
    Failure,
    MonotonicClock,
    Success,
    VirtualClock,
    main_dispatcher,
    set_main_dispatcher,
)


class TestOrdering:
    """Immediate FIFO queue and deadline-ordered timers."""

    def test_immediate_tasks_run_fifo(self):
        d = Dispatcher()
        log = []
        for i in range(3):
            d.schedule_now(lambda i=i: log.append(i))
        assert log == []
        d.run_until_idle()
        assert log == [0, 1, 2]

    def test_timers_run_in_deadline_order(self):
        d = Dispatcher()
        log = []
        d.schedule_after(0.3, lambda: log.append("c"))
        d.schedule_after(0.1, lambda: log.append("a"))
        d.schedule_after(0.2, lambda: log.append("b"))
        d.run_until_idle()
        assert log == ["a", "b", "c"]

    def test_timer_ties_broken_by_schedule_order(self):
        d = Dispatcher()
        log = []
        d.schedule_after(1.0, lambda: log.append(1))
        d.schedule_after(1.0, lambda: log.append(2))
        d.schedule_after(1.0, lambda: log.append(3))
        d.run_until_idle()
        assert log == [1, 2, 3]

    def test_immediate_tasks_before_due_timers(self):
        d = Dispatcher()
        log = []
        d.schedule_after(0, lambda: log.append("timer"))
        d.schedule_now(lambda: log.append("now"))
        d.run_ready()
        assert log == ["now", "timer"]

    def test_tasks_scheduled_by_tasks_run(self):
        d = Dispatcher()
        log = []

        def first():
            log.append("first")
            d.schedule_now(lambda: log.append("second"))

        d.schedule_now(first)
        d.run_until_idle()
        assert log == ["first", "second"]

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            Dispatcher().schedule_after(-0.1, lambda: None)


class TestVirtualClock:
    """advance_by / advance_to / run_until_idle on virtual time."""

    def test_timer_not_ready_before_deadline(self):
        d = Dispatcher(VirtualClock())
        log = []
        d.schedule_after(1.0, lambda: log.append(d.now()))
        d.advance_to(0.9)
        assert log == []
        d.advance_to(1.5)
        assert log == [1.0]
        assert d.now() == 1.5

    def test_advance_by(self):
        d = Dispatcher(VirtualClock(10.0))
        log = []
        d.schedule_after(2.0, lambda: log.append("fired"))
        d.advance_by(1.0)
        assert log == []
        d.advance_by(1.0)
        assert log == ["fired"]

    def test_run_until_idle_fast_forwards(self):
        d = Dispatcher(VirtualClock())
        d.schedule_after(60.0, lambda: None)
        d.run_until_idle()
        assert d.now() == 60.0
        assert d.pending_count() == 0

    def test_clock_cannot_go_backwards(self):
        clock = VirtualClock(5.0)
        with pytest.raises(ValueError):
            clock.advance_to(4.0)

    def test_advance_requires_virtual_clock(self):
        d = Dispatcher(MonotonicClock())
        with pytest.raises(RuntimeError):
            d.advance_by(1.0)

    def test_runaway_loop_fails_loudly(self):
        d = Dispatcher()

        def again():
            d.schedule_after(1.0, again)

        d.schedule_after(1.0, again)
        with pytest.raises(RuntimeError, match="did not go idle"):
            d.run_until_idle(max_tasks=50)

    def test_runaway_immediate_loop_fails_loudly(self):
        d = Dispatcher()
        calls = []

        def again():
            calls.append(1)
            d.schedule_now(again)

        d.schedule_now(again)
        with pytest.raises(RuntimeError, match="did not go idle"):
            d.run_until_idle(max_tasks=50)
        assert len(calls) == 51

    def test_run_ready_stops_at_max_tasks(self):
        d = Dispatcher()
        log = []
        for i in range(5):
            d.schedule_now(lambda i=i: log.append(i))
        assert d.run_ready(max_tasks=3) == 3
        assert log == [0, 1, 2]
        assert d.pending_count() == 2


class TestCancellation:
    """ScheduledTask.cancel()."""

    def test_cancel_before_run_skips_task(self):
        d = Dispatcher()
        log = []
        handle = d.schedule_now(lambda: log.append(1))
        timer = d.schedule_after(1.0, lambda: log.append(2))
        handle.cancel()
        timer.cancel()
        assert d.pending_count() == 0
        d.run_until_idle()
        assert log == []
        assert handle.cancelled

    def test_cancel_idempotent(self):
        d = Dispatcher()
        handle = d.schedule_after(1.0, lambda: None)
        handle.cancel()
        handle.cancel()  # should not raise

    def test_cancel_after_start_has_no_effect(self):
        d = Dispatcher()
        log = []
        handles = {}

        def task():
            handles["self"].cancel()
            log.append("ran to completion")

        handles["self"] = d.schedule_now(task)
        d.run_until_idle()
        assert log == ["ran to completion"]
        assert handles["self"].started
        assert not handles["self"].cancelled

    def test_cancel_one_of_several_timers(self):
        d = Dispatcher()
        log = []
        d.schedule_after(1.0, lambda: log.append("a"))
        b = d.schedule_after(2.0, lambda: log.append("b"))
        d.schedule_after(3.0, lambda: log.append("c"))
        b.cancel()
        d.run_until_idle()
        assert log == ["a", "c"]

    def test_cancelled_timer_does_not_move_clock(self):
        d = Dispatcher(VirtualClock())
        log = []
        late = d.schedule_after(100.0, lambda: log.append("late"))
        d.schedule_after(1.0, lambda: log.append("early"))
        late.cancel()
        d.run_until_idle()
        assert log == ["early"]
        assert d.now() == 1.0

    def test_rescheduling_cancelled_timers_stays_exact(self):
        d = Dispatcher()
        log = []
        handle = None
        for i in range(1000):
            if handle is not None:
                handle.cancel()
            handle = d.schedule_after(0.5, lambda i=i: log.append(i))
            d.advance_by(0.001)
        assert d.pending_count() == 1
        d.run_until_idle()
        assert log == [999]
        assert d.pending_count() == 0


class TestErrors:
    def test_task_exception_propagates(self):
        d = Dispatcher()
        log = []
        d.schedule_now(lambda: 1 / 0)
        d.schedule_now(lambda: log.append("later"))
        with pytest.raises(ZeroDivisionError):
            d.run_until_idle()
        # The queue survives; the next run picks up where it stopped.
        d.run_until_idle()
        assert log == ["later"]


class TestBackground:
    """submit() and call_from_thread()."""

    def test_submit_delivers_result_on_dispatcher(self):
        d = Dispatcher()
        results = []
        caller = threading.get_ident()
        d.submit(lambda: 41 + 1, lambda r: results.append((r, threading.get_ident())))
        assert d.pending_count() == 1
        d.run_until_idle(timeout=5)
        assert results == [(Success(42), caller)]
        assert d.pending_count() == 0

    def test_submit_captures_exception(self):
        d = Dispatcher()
        results = []

        def work():
            raise ConnectionError("offline")

        d.submit(work, results.append)
        d.run_until_idle(timeout=5)
        assert isinstance(results[0], Failure)
        assert isinstance(results[0].error, ConnectionError)

    def test_call_from_thread(self):
        d = Dispatcher()
        log = []
        t = threading.Thread(target=lambda: d.call_from_thread(lambda: log.append("hop")))
        t.start()
        t.join()
        assert log == []
        d.run_ready()
        assert log == ["hop"]


class TestMainDispatcher:
    """Process-wide dispatcher configuration."""

    def test_default_uses_real_clock(self):
        old = _disp_mod._main
        try:
            set_main_dispatcher(None)
            assert isinstance(main_dispatcher().clock, MonotonicClock)
            assert main_dispatcher() is main_dispatcher()
        finally:
            set_main_dispatcher(old)

    def test_set_main_dispatcher(self):
        old = _disp_mod._main
        try:
            d = Dispatcher(VirtualClock())
            set_main_dispatcher(d)
            assert main_dispatcher() is d
        finally:
            set_main_dispatcher(old)
