"""Periodic link sampling into the series store."""

import logging
import threading

from .. import config
from .dispatch import RepeatingTimer
from .events import HostsChangedEvent, LinkInfoEvent, SnapshotEvent
from .models import EMPTY_LINK_INFO, PingHost, now_ms
from .store import SeriesStore

log = logging.getLogger("wifi_telemetry.collector")


class DataCollector:
    """
    Samples link info on a repeating tick and appends aligned rows.

    Each tick reads the metrics source on the timer thread, then appends
    the row and every host's reported latency on the dispatcher thread so
    readers never see a partial row. Every `gateway_check_ticks` ticks the
    default gateway is re-read and the gateway host follows it.
    """

    def __init__(
        self,
        metrics,
        scheduler,
        store=None,
        refresh_interval_ms=config.DEFAULT_REFRESH_INTERVAL_MS,
        gateway_check_ticks=config.GATEWAY_CHECK_TICKS,
        clock=now_ms,
    ):
        self.metrics = metrics
        self.scheduler = scheduler
        self.dispatcher = scheduler.dispatcher
        self.bus = scheduler.bus
        self.store = store if store is not None else SeriesStore()
        self.refresh_interval_ms = refresh_interval_ms
        self.gateway_check_ticks = gateway_check_ticks
        self.clock = clock

        self.interface = None
        self.running = False
        self.gateway_host_id = None
        self.gateway_removed_by_user = False

        self._lifecycle = threading.Lock()
        self._timer = None
        self._generation = 0
        self._tick_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, interface):
        """Start probing and sampling. Returns False if already running."""
        with self._lifecycle:
            if self.running:
                return False
            self.interface = interface
            self.running = True
            self._generation += 1
            generation = self._generation
        self.scheduler.start()

        log.info("Collecting on %s every %d ms", interface, self.refresh_interval_ms)
        # First sample right away, the timer takes over from there
        self._tick(generation)

        with self._lifecycle:
            if self.running and self._generation == generation:
                self._timer = RepeatingTimer(
                    self.refresh_interval_ms / 1000.0,
                    self._tick,
                    args=(generation,),
                    name="collector",
                )
                self._timer.start()
        return True

    def stop(self):
        """Cancel the tick timer and all probes. Returns False if not running."""
        with self._lifecycle:
            if not self.running:
                return False
            self.running = False
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self.scheduler.stop()
        log.info("Collection stopped")
        return True

    def set_refresh_rate(self, ms):
        """Change the tick interval in place; never starts a second loop."""
        ms = max(1, int(ms))
        with self._lifecycle:
            self.refresh_interval_ms = ms
            if self._timer is not None:
                self._timer.set_interval(ms / 1000.0)

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    def add_ping_host(self, address, label=None, is_gateway=False):
        return self.dispatcher.call(self._add_ping_host, address, label, is_gateway)

    def remove_ping_host(self, host_id):
        return self.dispatcher.call(self._remove_ping_host, host_id)

    def set_host_enabled(self, host_id, enabled):
        changed = self.scheduler.set_host_enabled(host_id, enabled)
        if changed:
            self._publish_hosts()
        return changed

    def get_ping_hosts(self):
        return self.scheduler.hosts()

    def _add_ping_host(self, address, label, is_gateway):
        if is_gateway and self.gateway_host_id is not None:
            existing = self.scheduler.get_host(self.gateway_host_id)
            if existing is not None:
                if existing.address != address:
                    self.scheduler.update_address(existing.id, address)
                    self._publish_hosts()
                return self.scheduler.get_host(existing.id)

        host = PingHost(address=address, label=label or address, is_gateway=is_gateway)
        self.store.add_series(host.id)
        self.scheduler.add_host(host)
        if is_gateway:
            self.gateway_host_id = host.id
        self._publish_hosts()
        return self.scheduler.get_host(host.id)

    def _remove_ping_host(self, host_id):
        host = self.scheduler.get_host(host_id)
        if host is None:
            log.debug("remove_ping_host: unknown id %s", host_id)
            return False
        if host.is_gateway:
            self.gateway_host_id = None
            self.gateway_removed_by_user = True
        self.scheduler.remove_host(host_id)
        self.store.remove_series(host_id)
        self._publish_hosts()
        return True

    def _publish_hosts(self):
        self.bus.publish(HostsChangedEvent(self.scheduler.hosts()))

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def get_serialized_data(self):
        return self.dispatcher.call(self.store.snapshot)

    def clear_data(self):
        """Empty every series; registered hosts keep an empty series."""
        self.dispatcher.call(
            lambda: self.store.clear([host.id for host in self.scheduler.hosts()])
        )

    def tick(self):
        """Take one sample now. Returns the published snapshot."""
        return self._tick(None)

    def _tick(self, generation):
        interface = self.interface
        timestamp = self.clock()
        link_info = self._read_link_info(interface)

        self._tick_count += 1
        check_gateway = self._tick_count % self.gateway_check_ticks == 0
        gateway = self._read_gateway() if check_gateway else None

        return self.dispatcher.call(
            self._apply_tick, generation, timestamp, link_info, check_gateway, gateway
        )

    def _read_link_info(self, interface):
        if not interface:
            return EMPTY_LINK_INFO
        try:
            return self.metrics.get_link_info(interface) or EMPTY_LINK_INFO
        except Exception:
            log.warning("Link info read failed for %s", interface, exc_info=True)
            return EMPTY_LINK_INFO

    def _read_gateway(self):
        try:
            return self.metrics.get_default_gateway()
        except Exception:
            log.warning("Gateway lookup failed", exc_info=True)
            return None

    def _apply_tick(self, generation, timestamp, link_info, check_gateway, gateway):
        if generation is not None and generation != self._generation:
            log.debug("Discarding tick from a stopped run")
            return None

        self.store.append_row(timestamp, link_info, self.scheduler.reported_latencies())

        if check_gateway:
            self._reconcile_gateway(gateway)

        snapshot = self.store.snapshot()
        self.bus.publish(SnapshotEvent(snapshot))
        self.bus.publish(LinkInfoEvent(link_info))
        return snapshot

    def _reconcile_gateway(self, gateway):
        current = None
        if self.gateway_host_id is not None:
            current = self.scheduler.get_host(self.gateway_host_id)

        if current is not None and gateway and gateway != current.address:
            # Same host, same series: no gap when DHCP hands out a new gateway
            self.scheduler.update_address(current.id, gateway)
            self._publish_hosts()
        elif current is None and gateway and not self.gateway_removed_by_user:
            self._add_ping_host(gateway, "gateway", True)
