"""WiFi channel scanning and congestion detection."""

import logging
import re
import subprocess
import time

from .. import config
from .models import ChannelInfo, ScanResult
from .net import run_command

log = logging.getLogger("wifi_telemetry.scanner")

# Channel definitions
CHANNELS_2_4GHZ = list(range(1, 15))  # 1-14
CHANNELS_5GHZ = [
    36, 40, 44, 48, 52, 56, 60, 64,
    100, 104, 108, 112, 116, 120, 124, 128, 132, 136, 140, 144,
    149, 153, 157, 161, 165
]

# Frequency to channel mapping for 5GHz (MHz -> channel)
FREQ_TO_CHANNEL_5GHZ = {
    5180: 36, 5200: 40, 5220: 44, 5240: 48,
    5260: 52, 5280: 56, 5300: 60, 5320: 64,
    5500: 100, 5520: 104, 5540: 108, 5560: 112,
    5580: 116, 5600: 120, 5620: 124, 5640: 128,
    5660: 132, 5680: 136, 5700: 140, 5720: 144,
    5745: 149, 5765: 153, 5785: 157, 5805: 161, 5825: 165,
}

# Frequency to channel for 2.4GHz
FREQ_TO_CHANNEL_2_4GHZ = {
    2412: 1, 2417: 2, 2422: 3, 2427: 4, 2432: 5, 2437: 6, 2442: 7,
    2447: 8, 2452: 9, 2457: 10, 2462: 11, 2467: 12, 2472: 13, 2484: 14,
}

BANDS = ("2.4", "5")

_FREQ_RE = re.compile(r"freq:\s*([\d.]+)")
_CHANNEL_RE = re.compile(r"DS Parameter set: channel (\d+)")
_SSID_RE = re.compile(r"SSID:\s*(.*)")


def freq_to_channel(freq_mhz):
    """Convert frequency in MHz to channel number."""
    freq_int = int(freq_mhz)
    if freq_int in FREQ_TO_CHANNEL_5GHZ:
        return FREQ_TO_CHANNEL_5GHZ[freq_int]
    if freq_int in FREQ_TO_CHANNEL_2_4GHZ:
        return FREQ_TO_CHANNEL_2_4GHZ[freq_int]
    return None


def get_channels_for_band(band):
    """Get channel list for a band ('2.4' or '5')."""
    if band == "5":
        return CHANNELS_5GHZ
    return CHANNELS_2_4GHZ


class _Block:
    """Fields of the BSS block being read."""

    __slots__ = ("channel", "freq", "ssid")

    def __init__(self):
        self.channel = None
        self.freq = None
        self.ssid = None

    def resolved_channel(self):
        if self.channel is not None:
            return self.channel
        if self.freq is not None:
            return freq_to_channel(self.freq)
        return None


def parse_scan_dump(text, band="2.4", timestamp=None):
    """
    Parse `iw dev <iface> scan dump` text into per-channel congestion.

    Each block starts with a "BSS " line. The DS Parameter set channel is
    preferred, the frequency is the fallback; blocks resolving to neither,
    or to a channel outside the band, are dropped. Network names are
    deduplicated per channel and the count becomes the number of unique
    names, or the raw block count when every network was hidden.

    Returns:
        ScanResult with an entry for every channel of the band.
    """
    counts = {ch: 0 for ch in get_channels_for_band(band)}
    names = {ch: set() for ch in counts}

    def finalize(block):
        channel = block.resolved_channel()
        if channel is None or channel not in counts:
            return
        counts[channel] += 1
        if block.ssid:
            names[channel].add(block.ssid)

    block = None
    for line in (text or "").split("\n"):
        line = line.strip()

        if line.startswith("BSS "):
            if block is not None:
                finalize(block)
            block = _Block()
            continue

        if block is None:
            continue

        freq_match = _FREQ_RE.match(line)
        if freq_match:
            block.freq = float(freq_match.group(1))
            continue

        channel_match = _CHANNEL_RE.match(line)
        if channel_match:
            block.channel = int(channel_match.group(1))
            continue

        ssid_match = _SSID_RE.match(line)
        if ssid_match:
            ssid = ssid_match.group(1).strip()
            # Hidden networks report an empty or NUL-padded SSID
            if ssid and not ssid.startswith("\\x00"):
                block.ssid = ssid
            continue

    # The last block has no following "BSS " line
    if block is not None:
        finalize(block)

    channels = {
        ch: ChannelInfo(count=len(names[ch]) or counts[ch], networks=sorted(names[ch]))
        for ch in counts
    }
    if timestamp is None:
        timestamp = int(time.time())
    return ScanResult(timestamp=int(timestamp), band=band, channels=channels)


class IwScanSource:
    """Raw scan text from the kernel's cached scan results."""

    def __init__(self, dump_timeout=config.SCAN_DUMP_TIMEOUT,
                 rescan_timeout=config.RESCAN_TIMEOUT, settle=config.RESCAN_SETTLE):
        self.dump_timeout = dump_timeout
        self.rescan_timeout = rescan_timeout
        self.settle = settle

    def refresh_scan_cache(self, interface=None):
        """
        Ask NetworkManager to refresh the WiFi scan cache.
        Best effort; waits a moment for results to populate.
        """
        try:
            subprocess.run(
                ["nmcli", "device", "wifi", "rescan"],
                capture_output=True,
                timeout=self.rescan_timeout,
            )
        except (subprocess.SubprocessError, OSError) as e:
            log.debug("Rescan failed: %s", e)
            return False
        time.sleep(self.settle)
        return True

    def get_scan_dump(self, interface):
        """Uses 'iw dev <iface> scan dump' which doesn't require root."""
        if not interface:
            return None
        return run_command(["iw", "dev", interface, "scan", "dump"], timeout=self.dump_timeout)


def scan_channels(source, interface, band="2.4", refresh_cache=True):
    """
    Read the scan source and parse it for one band.

    Returns:
        ScanResult, or None if the dump could not be read.
    """
    if refresh_cache:
        try:
            source.refresh_scan_cache(interface)
        except Exception:
            log.debug("Scan cache refresh raised", exc_info=True)

    try:
        text = source.get_scan_dump(interface)
    except Exception:
        log.warning("Scan dump failed for %s", interface, exc_info=True)
        return None
    if text is None:
        return None

    return parse_scan_dump(text, band=band)

