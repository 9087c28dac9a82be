"""Long-lived monitor context: owns the pipeline and accepts commands."""

import logging
import threading

from . import config
from .config import Settings
from .core.collector import DataCollector
from .core.dispatch import Dispatcher, RepeatingTimer
from .core.downsample import downsample
from .core.events import EventBus, ScanCompleteEvent
from .core.net import IwMetricsSource
from .core.ping import LatencyScheduler, PingProber
from .core.scanner import IwScanSource, scan_channels
from .core.storage import ScanArchive
from .core.store import SeriesStore

log = logging.getLogger("wifi_telemetry.app")


class MonitorContext:
    """
    Built once per process. Wires the sources, scheduler, collector, store
    and scan archive together; close() cancels every timer.
    """

    def __init__(self, settings=None, metrics=None, prober=None, scan_source=None,
                 archive=None, bus=None):
        self.settings = settings or Settings()
        self.interface = self.settings.interface
        self.metrics = metrics or IwMetricsSource()
        self.scan_source = scan_source or IwScanSource()
        self.archive = archive or ScanArchive(self.settings.scan_dir)
        self.bus = bus or EventBus()

        self.dispatcher = Dispatcher()
        self.store = SeriesStore(max_points=self.settings.max_points)
        self.scheduler = LatencyScheduler(
            prober or PingProber(timeout=self.settings.ping_timeout),
            dispatcher=self.dispatcher,
            bus=self.bus,
            interval=self.settings.ping_interval,
        )
        self.collector = DataCollector(
            self.metrics,
            self.scheduler,
            store=self.store,
            refresh_interval_ms=self.settings.refresh_interval_ms,
        )

        self.hosts_initialized = False
        self.closed = False
        self._scan_timer = None
        self._scan_thread = None
        self._scan_lock = threading.Lock()

        self.dispatcher.start()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def setup_ping_hosts(self):
        """Set up default ping hosts (gateway and 1.1.1.1)."""
        gateway = self.metrics.get_default_gateway()
        if gateway:
            self.collector.add_ping_host(gateway, label="gateway", is_gateway=True)
        for address, label in config.DEFAULT_PING_HOSTS:
            self.collector.add_ping_host(address, label=label)
        self.hosts_initialized = True

    def start_monitoring(self, interface=None):
        """Start collection on interface. Returns False if nothing started."""
        if self.closed:
            return False
        interface = interface or self.interface
        if not interface:
            log.warning("start_monitoring: no interface selected")
            return False
        self.interface = interface

        if not self.hosts_initialized:
            self.setup_ping_hosts()

        started = self.collector.start(interface)
        if started and self.settings.auto_scan:
            self.start_auto_scan()
        return started

    def stop_monitoring(self):
        self.stop_auto_scan()
        return self.collector.stop()

    @property
    def running(self):
        return self.collector.running

    def set_refresh_interval(self, ms):
        self.settings.refresh_interval_ms = int(ms)
        self.collector.set_refresh_rate(ms)

    def add_host(self, address, label=None):
        address = (address or "").strip()
        if not address:
            return None
        return self.collector.add_ping_host(address, label=label)

    def remove_host(self, host_id):
        return self.collector.remove_ping_host(host_id)

    def set_host_enabled(self, host_id, enabled):
        return self.collector.set_host_enabled(host_id, enabled)

    def hosts(self):
        return self.collector.get_ping_hosts()

    def clear_data(self):
        self.collector.clear_data()

    def snapshot(self):
        return self.collector.get_serialized_data()

    def plot_data(self, plot_width=None, window=None, zoom_range=None, now=None):
        """Downsampled view of the current snapshot for one plot."""
        window_seconds = self.settings.window_seconds
        if window is not None:
            window_seconds = config.TIME_WINDOWS.get(window, window_seconds)
        return downsample(
            self.snapshot(),
            plot_width or self.settings.plot_width,
            window_seconds,
            zoom_range=zoom_range,
            now=now,
        )

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def current_band(self):
        if not self.interface:
            return "2.4"
        try:
            return self.metrics.get_current_band(self.interface) or "2.4"
        except Exception:
            log.debug("Band detection failed", exc_info=True)
            return "2.4"

    def perform_scan(self, band=None, refresh_cache=True):
        """Scan, archive and publish. Returns the ScanResult or None."""
        if not self.interface:
            return None
        with self._scan_lock:
            scan = scan_channels(
                self.scan_source,
                self.interface,
                band=band or self.current_band(),
                refresh_cache=refresh_cache,
            )
            if scan is None:
                log.info("Scan on %s returned no data", self.interface)
                return None
            self.archive.save_scan(scan)
        self.bus.publish(ScanCompleteEvent(scan))
        return scan

    def trigger_scan(self, band=None):
        """Run a scan in the background. Returns False if one is in progress."""
        if self._scan_thread is not None and self._scan_thread.is_alive():
            return False
        self._scan_thread = threading.Thread(
            target=self._background_scan, args=(band,), name="scan", daemon=True
        )
        self._scan_thread.start()
        return True

    def _background_scan(self, band):
        try:
            self.perform_scan(band)
        except Exception:
            # A failed scan must never take the monitor down
            log.exception("Background scan failed")

    def start_auto_scan(self):
        """Scan now, then every settings.scan_interval seconds."""
        if self._scan_timer is not None:
            return
        self.archive.cleanup_old_scans()
        self._scan_timer = RepeatingTimer(
            self.settings.scan_interval, self.trigger_scan, fire_immediately=True, name="auto-scan"
        )
        self._scan_timer.start()

    def stop_auto_scan(self):
        if self._scan_timer is not None:
            self._scan_timer.cancel()
            self._scan_timer = None

    def get_heatmap(self, days=config.HEATMAP_DAYS, band=None):
        return self.archive.get_heatmap_data(days=days, band=band or self.current_band())

    def get_scan_details(self, days=config.HEATMAP_DAYS, band=None):
        return self.archive.get_scan_details(days=days, band=band or self.current_band())

    # ------------------------------------------------------------------

    def close(self):
        """Cancel every timer and stop the dispatcher."""
        if self.closed:
            return
        self.closed = True
        self.stop_monitoring()
        self.dispatcher.stop()
