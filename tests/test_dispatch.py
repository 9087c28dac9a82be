import threading
import time

import pytest

from wifi_telemetry.core.dispatch import Dispatcher, RepeatingTimer

from conftest import wait_for


def test_calls_run_on_the_owner_thread(dispatcher):
    name = dispatcher.call(lambda: threading.current_thread().name)

    assert name == dispatcher.name
    assert not dispatcher.on_owner_thread()


def test_nested_calls_run_inline(dispatcher):
    def outer():
        return dispatcher.call(lambda: dispatcher.on_owner_thread())

    assert dispatcher.call(outer) is True


def test_idle_dispatcher_runs_inline():
    d = Dispatcher()

    assert not d.running
    assert d.call(lambda x: x * 2, 21) == 42


def test_exceptions_reach_the_caller(dispatcher):
    def boom():
        raise ValueError("bad")

    with pytest.raises(ValueError):
        dispatcher.call(boom)
    # the loop survives
    assert dispatcher.call(lambda: 1) == 1


def test_commands_run_in_submission_order(dispatcher):
    seen = []
    futures = [dispatcher.submit(seen.append, i) for i in range(50)]
    for f in futures:
        f.result(timeout=1)

    assert seen == list(range(50))


def test_stop_finishes_queued_work():
    d = Dispatcher()
    d.start()
    gate = threading.Event()
    first = d.submit(gate.wait, 1)
    second = d.submit(lambda: "done")
    gate.set()
    d.stop()

    assert first.result(timeout=1) is True
    assert second.result(timeout=1) == "done"
    assert not d.running


def test_timer_repeats_until_cancelled():
    calls = []
    timer = RepeatingTimer(0.01, calls.append, args=(1,))
    timer.start()
    assert wait_for(lambda: len(calls) >= 3)

    timer.cancel()
    timer.join(timeout=1)

    assert not timer.is_alive()
    assert timer.cancelled


def test_timer_fire_immediately():
    calls = []
    timer = RepeatingTimer(60, calls.append, args=(1,), fire_immediately=True)
    timer.start()
    try:
        assert wait_for(lambda: len(calls) == 1, timeout=1.0)
    finally:
        timer.cancel()


def test_set_interval_reschedules_pending_wait():
    calls = []
    timer = RepeatingTimer(60, calls.append, args=(1,))
    timer.start()
    try:
        time.sleep(0.05)
        assert calls == []
        timer.set_interval(0.01)
        assert wait_for(lambda: len(calls) >= 2, timeout=1.0)
    finally:
        timer.cancel()


def test_cancel_does_not_wait_for_running_callback():
    gate = threading.Event()
    started = threading.Event()

    def slow():
        started.set()
        gate.wait(5)

    timer = RepeatingTimer(0.01, slow, fire_immediately=True)
    timer.start()
    assert started.wait(1)

    begin = time.monotonic()
    timer.cancel()
    assert time.monotonic() - begin < 0.5
    gate.set()
    timer.join(timeout=1)
    assert not timer.is_alive()


def test_failing_callback_keeps_the_timer_alive():
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("flaky")

    timer = RepeatingTimer(0.01, flaky)
    timer.start()
    try:
        assert wait_for(lambda: len(calls) >= 3)
    finally:
        timer.cancel()


def test_submit_during_shutdown_runs_inline():
    d = Dispatcher()
    d.start()
    gate = threading.Event()
    busy = d.submit(gate.wait, 2)
    stopper = threading.Thread(target=d.stop)
    stopper.start()
    try:
        assert wait_for(lambda: not d.accepting)
        # the loop thread is still alive working through the queue
        assert d.running
        assert d.call(lambda: threading.current_thread().name) != d.name
    finally:
        gate.set()
        stopper.join(timeout=3)

    assert busy.result(timeout=1) is True
    assert not d.running
