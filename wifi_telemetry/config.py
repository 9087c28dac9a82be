"""Configuration for wifi-telemetry."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

log = logging.getLogger("wifi_telemetry.config")

# Time window presets (label -> seconds, None = unbounded)
TIME_WINDOWS = {
    "10m": 600,
    "30m": 1800,
    "60m": 3600,
    "4h": 14400,
    "1D": 86400,
    "inf": None,
}

# Defaults
DEFAULT_WINDOW = "10m"
DEFAULT_REFRESH_INTERVAL_MS = 1000
DEFAULT_PLOT_WIDTH = 800

# Ping settings
PING_INTERVAL = 0.3  # seconds between probes of one host
PING_TIMEOUT = 1.0  # seconds, passed to ping -W
PING_GRACE = 0.5  # extra seconds before the subprocess is abandoned

# Source timeouts (seconds)
COMMAND_TIMEOUT = 5
SCAN_DUMP_TIMEOUT = 10
RESCAN_TIMEOUT = 5
RESCAN_SETTLE = 2

# Gateway reconciliation runs every N ticks
GATEWAY_CHECK_TICKS = 5

DEFAULT_PING_HOSTS = [("1.1.1.1", "internet")]

# Scanning
SCAN_INTERVAL = 3600  # 1 hour
HEATMAP_DAYS = 7
SCAN_RETENTION_DAYS = 90
SCAN_STORAGE_PATH = Path.home() / ".config" / "wifi-monitor" / "scans"

# Data buffer settings
MAX_DATA_POINTS = 86400  # 1 day at 1 sample/sec


@dataclass
class Settings:
    """Per-run settings; CLI flags are applied on top of the environment."""

    interface: Optional[str] = None
    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS
    window: str = DEFAULT_WINDOW
    plot_width: int = DEFAULT_PLOT_WIDTH
    ping_interval: float = PING_INTERVAL
    ping_timeout: float = PING_TIMEOUT
    scan_interval: float = SCAN_INTERVAL
    scan_dir: Path = field(default_factory=lambda: SCAN_STORAGE_PATH)
    max_points: int = MAX_DATA_POINTS
    auto_scan: bool = True

    @property
    def window_seconds(self):
        return TIME_WINDOWS.get(self.window, TIME_WINDOWS[DEFAULT_WINDOW])

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from WIFI_TELEMETRY_* environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()

        refresh = env.get("WIFI_TELEMETRY_REFRESH_MS")
        if refresh:
            try:
                settings.refresh_interval_ms = max(100, int(refresh))
            except ValueError:
                log.warning("Ignoring invalid WIFI_TELEMETRY_REFRESH_MS=%r", refresh)

        scan_dir = env.get("WIFI_TELEMETRY_SCAN_DIR")
        if scan_dir:
            settings.scan_dir = Path(scan_dir).expanduser()

        window = env.get("WIFI_TELEMETRY_WINDOW")
        if window in TIME_WINDOWS:
            settings.window = window

        return settings
