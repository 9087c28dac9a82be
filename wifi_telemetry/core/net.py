"""WiFi interface detection and link info parsing."""

import logging
import re
import subprocess

from .. import config
from .models import EMPTY_LINK_INFO, LinkInfo

log = logging.getLogger("wifi_telemetry.net")


def run_command(args, timeout=config.COMMAND_TIMEOUT):
    """Run a command and return its stdout, or None on any failure."""
    try:
        return subprocess.check_output(
            args, text=True, stderr=subprocess.DEVNULL, timeout=timeout
        )
    except (subprocess.SubprocessError, OSError) as e:
        log.debug("%s failed: %s", " ".join(args), e)
        return None


def parse_default_gateway(output):
    """Extract the 'via' address of the default route from `ip route`."""
    for line in output.split("\n"):
        if line.startswith("default"):
            parts = line.split()
            if "via" in parts:
                idx = parts.index("via")
                if idx + 1 < len(parts):
                    return parts[idx + 1]
    return None


def parse_interfaces(output):
    """Interface names from `iw dev`."""
    interfaces = []
    for line in output.split("\n"):
        if "Interface" in line:
            interfaces.append(line.split()[-1])
    return interfaces


def parse_link_info(output):
    """
    Parse `iw dev <iface> link` output.

    Returns:
        LinkInfo: signal dBm, rx/tx rate Mbps, channel width MHz.
                  Any value may be None if not reported.
    """
    signal_match = re.search(r"signal:\s*(-?\d+)", output)
    rx_match = re.search(r"rx bitrate:\s*([\d.]+)\s*MBit/s.*?(\d+)MHz", output)
    tx_match = re.search(r"tx bitrate:\s*([\d.]+)\s*MBit/s.*?(\d+)MHz", output)

    signal = float(signal_match.group(1)) if signal_match else None
    rx_rate = float(rx_match.group(1)) if rx_match else None
    rx_bw = float(rx_match.group(2)) if rx_match else None
    tx_rate = float(tx_match.group(1)) if tx_match else None
    tx_bw = float(tx_match.group(2)) if tx_match else None

    # TX width is only a fallback when RX did not report one
    bandwidth = rx_bw if rx_bw is not None else tx_bw
    return LinkInfo(signal=signal, rx_rate=rx_rate, tx_rate=tx_rate, bandwidth=bandwidth)


def band_for_frequency(freq_mhz):
    """'2.4' or '5' for a frequency in MHz."""
    # 2.4GHz is 2412-2484 MHz, 5GHz is 5180-5825 MHz
    return "2.4" if freq_mhz < 3000 else "5"


class IwMetricsSource:
    """Link metrics read from `iw` and `ip`. Every call is bounded by a timeout."""

    def __init__(self, timeout=config.COMMAND_TIMEOUT):
        self.timeout = timeout

    def _link_output(self, interface):
        if not interface:
            return None
        return run_command(["iw", "dev", interface, "link"], timeout=self.timeout)

    def get_link_info(self, interface):
        output = self._link_output(interface)
        if not output:
            return EMPTY_LINK_INFO
        return parse_link_info(output)

    def get_default_gateway(self):
        output = run_command(["ip", "route"], timeout=self.timeout)
        if not output:
            return None
        return parse_default_gateway(output)

    def get_wireless_interfaces(self):
        output = run_command(["iw", "dev"], timeout=self.timeout)
        if not output:
            return []
        return parse_interfaces(output)

    def is_connected(self, interface):
        output = self._link_output(interface)
        return bool(output) and "Not connected" not in output

    def get_current_frequency(self, interface):
        """Current connection frequency in MHz, None if not connected."""
        output = self._link_output(interface)
        if output:
            freq_match = re.search(r"freq:\s*([\d.]+)", output)
            if freq_match:
                return float(freq_match.group(1))
        return None

    def get_current_band(self, interface):
        freq = self.get_current_frequency(interface)
        if freq is None:
            return None
        return band_for_frequency(freq)

    def get_ssid(self, interface):
        output = self._link_output(interface)
        if output:
            ssid_match = re.search(r"SSID:\s*(.+)", output)
            if ssid_match:
                return ssid_match.group(1).strip()
        return None
