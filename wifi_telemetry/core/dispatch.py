"""Single-owner command loop and repeating timers.

All mutations of the host registry and the series store happen on the
dispatcher thread. Worker threads (probes, the sampling timer) do their
blocking I/O on their own threads and post closures here.
"""

import logging
import queue
import threading
import time
from concurrent.futures import Future

log = logging.getLogger("wifi_telemetry.dispatch")

_STOP = object()


class Dispatcher:
    """Runs submitted callables one at a time on a dedicated thread."""

    def __init__(self, name="wifi-telemetry-dispatch"):
        self.name = name
        self._queue = queue.Queue()
        self._thread = None
        self._lock = threading.Lock()
        self._accepting = False

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    @property
    def accepting(self):
        """True while submitted work is queued for the loop thread."""
        return self._accepting

    def on_owner_thread(self):
        return threading.current_thread() is self._thread

    def start(self):
        with self._lock:
            if self.running:
                return
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._accepting = True
            self._thread.start()

    def stop(self, timeout=2.0):
        """Drain queued work, then stop the loop thread."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            # Nothing is queued behind _STOP; later submits run inline
            self._accepting = False
            self._queue.put(_STOP)
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        with self._lock:
            if self._thread is thread:
                self._thread = None

    def submit(self, fn, *args, **kwargs):
        """
        Queue fn for the owner thread and return a Future.

        Runs inline when called from the owner thread or when the loop is
        not accepting work, in which case the caller owns the state.
        """
        future = Future()
        if not self.on_owner_thread():
            with self._lock:
                if self._accepting and self.running:
                    self._queue.put((future, fn, args, kwargs))
                    return future
        _run_into(future, fn, args, kwargs)
        return future

    def call(self, fn, *args, **kwargs):
        """Run fn on the owner thread and wait for its result."""
        return self.submit(fn, *args, **kwargs).result()

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            future, fn, args, kwargs = item
            _run_into(future, fn, args, kwargs)


def _run_into(future, fn, args, kwargs):
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = fn(*args, **kwargs)
    except Exception as exc:
        future.set_exception(exc)
    else:
        future.set_result(result)


class RepeatingTimer(threading.Thread):
    """
    Calls func every `interval` seconds until cancelled.

    The next firing is due `interval` seconds after the previous one, with
    the interval re-read on every wake, so set_interval() reschedules the
    pending firing instead of starting a second loop. cancel() returns
    without waiting for a call in progress; callers discard late results.
    """

    def __init__(self, interval, func, args=(), fire_immediately=False, name=None):
        super().__init__(name=name, daemon=True)
        self.interval = interval
        self.func = func
        self.args = args
        self.fire_immediately = fire_immediately
        self._stop_event = threading.Event()
        self._wake = threading.Event()

    @property
    def cancelled(self):
        return self._stop_event.is_set()

    def set_interval(self, interval):
        self.interval = interval
        self._wake.set()

    def cancel(self):
        self._stop_event.set()
        self._wake.set()

    def run(self):
        if self.fire_immediately:
            self._fire()
        last = time.monotonic()
        while not self._stop_event.is_set():
            remaining = last + self.interval - time.monotonic()
            if remaining > 0:
                self._wake.wait(remaining)
                self._wake.clear()
                continue
            last = time.monotonic()
            self._fire()

    def _fire(self):
        if self._stop_event.is_set():
            return
        try:
            self.func(*self.args)
        except Exception:
            log.exception("Timer %s callback failed", self.name)
