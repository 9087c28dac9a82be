"""In-memory time-aligned series storage."""

import logging

from .. import config
from .models import MonitorSnapshot

log = logging.getLogger("wifi_telemetry.store")

METRIC_FIELDS = ("signal", "rx_rate", "tx_rate", "bandwidth")


class SeriesStore:
    """
    Append-only link metrics plus one latency series per host.

    Every series always has the same length as `timestamps`; a host added
    mid-run is back-filled with None. Not thread-safe by itself: the
    collector mutates it from the dispatcher thread only.
    """

    def __init__(self, max_points=config.MAX_DATA_POINTS):
        self.max_points = max_points
        self.timestamps = []
        self.signal = []
        self.rx_rate = []
        self.tx_rate = []
        self.bandwidth = []
        self.ping_data = {}

    def __len__(self):
        return len(self.timestamps)

    def append_row(self, timestamp, link_info, host_values=None):
        """
        Append one tick: the link reading and a value for every host series.

        Hosts missing from host_values get None. Timestamps never go
        backwards; an earlier clock reading is clamped to the last one.
        Returns the timestamp actually stored.
        """
        host_values = host_values or {}
        timestamp = int(timestamp)
        if self.timestamps and timestamp < self.timestamps[-1]:
            log.debug("Clock went backwards (%d < %d)", timestamp, self.timestamps[-1])
            timestamp = self.timestamps[-1]

        self.timestamps.append(timestamp)
        for name in METRIC_FIELDS:
            getattr(self, name).append(getattr(link_info, name))
        for host_id, data in self.ping_data.items():
            data.append(host_values.get(host_id))

        self._trim()
        return timestamp

    def add_series(self, host_id):
        """Create a host series aligned to the existing rows."""
        if host_id not in self.ping_data:
            self.ping_data[host_id] = [None] * len(self.timestamps)

    def remove_series(self, host_id):
        self.ping_data.pop(host_id, None)

    def clear(self, host_ids=None):
        """Drop all rows; hosts in host_ids keep an empty series."""
        self.timestamps = []
        self.signal = []
        self.rx_rate = []
        self.tx_rate = []
        self.bandwidth = []
        ids = list(self.ping_data) if host_ids is None else list(host_ids)
        self.ping_data = {host_id: [] for host_id in ids}

    def snapshot(self):
        """Deep copy of every series, safe to hand to another thread."""
        return MonitorSnapshot(
            timestamps=list(self.timestamps),
            signal=list(self.signal),
            rx_rate=list(self.rx_rate),
            tx_rate=list(self.tx_rate),
            bandwidth=list(self.bandwidth),
            ping_data={host_id: list(data) for host_id, data in self.ping_data.items()},
        )

    def _trim(self):
        if not self.max_points or len(self.timestamps) <= self.max_points:
            return
        trim = len(self.timestamps) - self.max_points
        self.timestamps = self.timestamps[trim:]
        for name in METRIC_FIELDS:
            setattr(self, name, getattr(self, name)[trim:])
        for host_id in self.ping_data:
            self.ping_data[host_id] = self.ping_data[host_id][trim:]
