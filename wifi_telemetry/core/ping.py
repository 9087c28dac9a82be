"""Background ping scheduling, one independent probe loop per host."""

import dataclasses
import itertools
import logging
import re
import subprocess
from collections import OrderedDict

from .. import config
from .dispatch import Dispatcher, RepeatingTimer
from .events import EventBus, PingResultEvent
from .models import PingResult, now_ms

log = logging.getLogger("wifi_telemetry.ping")

_TIME_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


def parse_ping_latency(output):
    """Round-trip time in ms from `ping -c 1` output, or None."""
    match = _TIME_RE.search(output or "")
    if not match:
        return None
    return max(0.0, float(match.group(1)))


class PingProber:
    """Single ICMP echo via the system `ping`, bounded by a timeout."""

    def __init__(self, timeout=config.PING_TIMEOUT, grace=config.PING_GRACE):
        self.timeout = timeout
        self.grace = grace

    def probe(self, address):
        """Latency in ms, or None on timeout or any failure."""
        try:
            result = subprocess.run(
                ["ping", "-c", "1", "-W", f"{self.timeout:g}", address],
                capture_output=True,
                text=True,
                timeout=self.timeout + self.grace,
            )
        except (subprocess.SubprocessError, OSError) as e:
            log.debug("ping %s failed: %s", address, e)
            return None
        if result.returncode != 0:
            return None
        return parse_ping_latency(result.stdout)


class LatencyScheduler:
    """
    Registry of monitored hosts with one repeating probe per host.

    Registry state lives on the dispatcher thread. Each host's probe runs on
    its own RepeatingTimer thread, so an unresponsive host only delays its
    own next probe. Results are posted back to the dispatcher and dropped if
    the timer that produced them has since been cancelled.

    A disabled host is not probed; its last measurement is kept but the
    reported latency is None until it is enabled again.
    """

    def __init__(self, prober, dispatcher=None, bus=None, interval=config.PING_INTERVAL):
        self.prober = prober
        self.dispatcher = dispatcher or Dispatcher()
        self.bus = bus or EventBus()
        self.interval = interval
        self.running = False
        self._hosts = OrderedDict()
        self._timers = {}  # host id -> (timer, generation)
        self._generations = itertools.count(1)

    # ------------------------------------------------------------------
    # Commands (safe from any thread)
    # ------------------------------------------------------------------

    def start(self):
        self.dispatcher.call(self._start)

    def stop(self):
        self.dispatcher.call(self._stop)

    def add_host(self, host):
        """Register host and start probing it. Returns False if the id exists."""
        return self.dispatcher.call(self._add_host, host)

    def remove_host(self, host_id):
        """Stop probing and forget host_id. Returns False if unknown."""
        return self.dispatcher.call(self._remove_host, host_id)

    def set_host_enabled(self, host_id, enabled):
        return self.dispatcher.call(self._set_host_enabled, host_id, enabled)

    def update_address(self, host_id, address):
        """Point an existing host at a new address, keeping its id."""
        return self.dispatcher.call(self._update_address, host_id, address)

    def hosts(self):
        """Copies of the registered hosts in registration order."""
        return self.dispatcher.call(self._copy_hosts)

    def get_host(self, host_id):
        return self.dispatcher.call(self._copy_host, host_id)

    def reported_latencies(self):
        """host id -> latest latency if enabled, else None."""
        return self.dispatcher.call(
            lambda: {host_id: host.reported_latency for host_id, host in self._hosts.items()}
        )

    # ------------------------------------------------------------------
    # Owner-thread implementations
    # ------------------------------------------------------------------

    def _start(self):
        if self.running:
            return
        self.running = True
        for host in self._hosts.values():
            self._start_timer(host)

    def _stop(self):
        if not self.running:
            return
        self.running = False
        for timer, _ in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def _add_host(self, host):
        if host.id in self._hosts:
            return False
        self._hosts[host.id] = host
        if self.running:
            self._start_timer(host)
        log.info("Added ping host %s (%s)", host.label, host.address)
        return True

    def _remove_host(self, host_id):
        entry = self._timers.pop(host_id, None)
        if entry:
            entry[0].cancel()
        host = self._hosts.pop(host_id, None)
        if host is None:
            log.debug("remove_host: unknown id %s", host_id)
            return False
        log.info("Removed ping host %s (%s)", host.label, host.address)
        return True

    def _set_host_enabled(self, host_id, enabled):
        host = self._hosts.get(host_id)
        if host is None:
            log.debug("set_host_enabled: unknown id %s", host_id)
            return False
        host.enabled = bool(enabled)
        return True

    def _update_address(self, host_id, address):
        host = self._hosts.get(host_id)
        if host is None:
            return False
        if host.address != address:
            log.info("Host %s moved %s -> %s", host.label, host.address, address)
            host.address = address
        return True

    def _copy_hosts(self):
        return [dataclasses.replace(host) for host in self._hosts.values()]

    def _copy_host(self, host_id):
        host = self._hosts.get(host_id)
        return dataclasses.replace(host) if host else None

    def _start_timer(self, host):
        generation = next(self._generations)
        timer = RepeatingTimer(
            self.interval,
            self._probe,
            args=(host.id, generation),
            fire_immediately=True,
            name=f"ping-{host.label}",
        )
        self._timers[host.id] = (timer, generation)
        timer.start()

    def _is_current(self, host_id, generation):
        entry = self._timers.get(host_id)
        return self.running and entry is not None and entry[1] == generation

    def _probe_target(self, host_id, generation):
        if not self._is_current(host_id, generation):
            return None
        host = self._hosts.get(host_id)
        if host is None or not host.enabled:
            return None
        return host.address

    def _apply_result(self, host_id, generation, latency, timestamp):
        if not self._is_current(host_id, generation):
            return
        host = self._hosts.get(host_id)
        if host is None or not host.enabled:
            return
        host.latest = latency
        self.bus.publish(PingResultEvent(PingResult(host_id, latency, timestamp)))

    # ------------------------------------------------------------------
    # Probe worker (timer thread)
    # ------------------------------------------------------------------

    def _probe(self, host_id, generation):
        address = self.dispatcher.call(self._probe_target, host_id, generation)
        if address is None:
            return
        try:
            latency = self.prober.probe(address)
        except Exception:
            log.exception("Prober failed for %s", address)
            latency = None
        self.dispatcher.submit(self._apply_result, host_id, generation, latency, now_ms())
