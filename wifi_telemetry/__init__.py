"""WiFi link quality and latency telemetry."""

__version__ = "0.2.0"
