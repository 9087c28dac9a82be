import threading
import time

import pytest

from wifi_telemetry.core.collector import DataCollector
from wifi_telemetry.core.dispatch import Dispatcher
from wifi_telemetry.core.events import EventBus
from wifi_telemetry.core.models import LinkInfo
from wifi_telemetry.core.ping import LatencyScheduler
from wifi_telemetry.core.store import SeriesStore

THREE_NETWORKS = """\
BSS aa:aa:aa:aa:aa:01(on wlan0)
\tfreq: 2437
\tsignal: -60.00 dBm
\tSSID: Alpha
\tDS Parameter set: channel 6
BSS aa:aa:aa:aa:aa:02(on wlan0)
\tfreq: 2412
\tSSID: Bravo
BSS aa:aa:aa:aa:aa:03(on wlan0)
\tfreq: 5180
\tSSID: Charlie
"""


def wait_for(predicate, timeout=2.0, interval=0.01):
    """Poll predicate until it is truthy or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


class FakeMetrics:
    def __init__(self, link=None, gateway=None, band="2.4"):
        self.link = link or LinkInfo(signal=-55.0, rx_rate=300.0, tx_rate=200.0, bandwidth=80.0)
        self.gateway = gateway
        self.band = band
        self.fail = False
        self.gateway_calls = 0

    def get_link_info(self, interface):
        if self.fail:
            raise RuntimeError("iw exploded")
        return self.link

    def get_default_gateway(self):
        self.gateway_calls += 1
        return self.gateway

    def get_current_band(self, interface):
        return self.band

    def get_wireless_interfaces(self):
        return ["wlan0"]

    def get_ssid(self, interface):
        return "HomeNet"


class FakeProber:
    """Returns canned latencies; addresses in `blocks` wait on an Event."""

    def __init__(self, latencies=None, default=10.0):
        self.latencies = dict(latencies or {})
        self.default = default
        self.blocks = {}
        self.calls = []
        self._lock = threading.Lock()

    def probe(self, address):
        with self._lock:
            self.calls.append(address)
        gate = self.blocks.get(address)
        if gate is not None:
            gate.wait(5)
        return self.latencies.get(address, self.default)

    def count(self, address):
        with self._lock:
            return self.calls.count(address)


class FakeClock:
    def __init__(self, start=1_700_000_000_000, step=1000):
        self.now = start
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


class FakeScanSource:
    def __init__(self, text=None):
        self.text = text
        self.refreshed = 0

    def refresh_scan_cache(self, interface=None):
        self.refreshed += 1
        return True

    def get_scan_dump(self, interface):
        return self.text


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def dispatcher():
    d = Dispatcher()
    d.start()
    yield d
    d.stop()


@pytest.fixture
def metrics():
    return FakeMetrics()


@pytest.fixture
def prober():
    return FakeProber()


@pytest.fixture
def scheduler(prober, dispatcher, bus):
    s = LatencyScheduler(prober, dispatcher=dispatcher, bus=bus, interval=0.02)
    yield s
    s.stop()


@pytest.fixture
def collector(metrics, prober, bus):
    """Collector on an idle dispatcher: every command runs inline."""
    s = LatencyScheduler(prober, dispatcher=Dispatcher(), bus=bus, interval=0.02)
    c = DataCollector(metrics, s, store=SeriesStore(), clock=FakeClock())
    c.interface = "wlan0"
    yield c
    c.stop()
    s.stop()
