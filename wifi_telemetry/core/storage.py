"""Scan data persistence and heatmap data generation."""

import json
import logging
from datetime import date as date_cls
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np

from .. import config
from .models import HeatmapData, ScanResult
from .scanner import get_channels_for_band

log = logging.getLogger("wifi_telemetry.storage")

DATE_FORMAT = "%Y-%m-%d"


def date_range(days, today=None):
    """The last `days` dates as strings, oldest first."""
    today = today or datetime.now().date()
    return [(today - timedelta(days=i)).strftime(DATE_FORMAT) for i in range(days - 1, -1, -1)]


def band_scans(scans, band):
    """Scans for band; legacy scans without a band count as 2.4GHz."""
    matching = [s for s in scans if s.band == band]
    if not matching and band == "2.4":
        matching = [s for s in scans if s.band is None]
    return matching


def select_best_scan(scans, band):
    """
    The same-band scan with the most networks, None if there is none.

    Scan caches are often stale or partial, so the richest scan of the day
    represents it better than the latest one. The first scan wins ties.
    """
    candidates = band_scans(scans, band)
    if not candidates:
        return None
    return max(candidates, key=lambda s: s.total_networks)


def build_heatmap(scans_by_date, dates, band):
    """
    Build the (dates x channels) matrix of network counts.

    Days without a usable scan are NaN rows; channels missing from the
    chosen scan are NaN cells.
    """
    channels = list(get_channels_for_band(band))
    data = np.full((len(dates), len(channels)), np.nan, dtype=np.float32)

    for row_idx, date_str in enumerate(dates):
        best_scan = select_best_scan(scans_by_date.get(date_str, []), band)
        if best_scan is None:
            continue
        for col_idx, ch in enumerate(channels):
            ch_data = best_scan.channels.get(ch)
            if ch_data is not None:
                data[row_idx, col_idx] = ch_data.count

    return HeatmapData(data=data, dates=list(dates), channels=channels, band=band)


class ScanArchive:
    """One JSON file per day holding the list of scans taken that day."""

    def __init__(self, root=config.SCAN_STORAGE_PATH):
        self.root = Path(root)

    def ensure_storage_dir(self):
        self.root.mkdir(parents=True, exist_ok=True)

    def day_file(self, date_str):
        return self.root / f"{date_str}.json"

    def save_scan(self, scan, today=None):
        """
        Save a scan to today's file.
        Appends to existing scans if file exists.
        """
        if scan is None:
            return False

        date_str = (today or datetime.now().date()).strftime(DATE_FORMAT)
        try:
            self.ensure_storage_dir()
        except OSError as e:
            log.warning("Cannot create %s: %s", self.root, e)
            return False

        scans = [s.to_dict() for s in self.load_day_scans(date_str)]
        scans.append(scan.to_dict())

        try:
            with open(self.day_file(date_str), "w") as f:
                json.dump(scans, f, indent=2)
            return True
        except (IOError, TypeError) as e:
            log.warning("Failed to save scan: %s", e)
            return False

    def load_day_scans(self, date):
        """
        Load all scans for a specific date.
        Returns list of ScanResult, or empty list if no data.
        """
        if isinstance(date, (date_cls, datetime)):
            date = date.strftime(DATE_FORMAT)

        filepath = self.day_file(date)
        if not filepath.exists():
            return []

        try:
            with open(filepath, "r") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.warning("Unreadable scan file %s: %s", filepath, e)
            return []

        if not isinstance(raw, list):
            return []
        return [ScanResult.from_dict(item) for item in raw if isinstance(item, dict)]

    def load_scans(self, days=config.HEATMAP_DAYS, today=None):
        """
        Load scans from the last N days.
        Returns dict: {date_str: [scan1, scan2, ...], ...}
        """
        result = {}
        for date_str in date_range(days, today):
            scans = self.load_day_scans(date_str)
            if scans:
                result[date_str] = scans
        return result

    def get_last_scan_time(self, today=None, lookback_days=30):
        """
        Get timestamp of the most recent scan.
        Returns datetime or None if no scans exist.
        """
        for date_str in reversed(date_range(lookback_days, today)):
            scans = self.load_day_scans(date_str)
            if scans:
                latest = max(scans, key=lambda s: s.timestamp)
                return datetime.fromtimestamp(latest.timestamp)
        return None

    def get_heatmap_data(self, days=config.HEATMAP_DAYS, band="2.4", today=None):
        dates = date_range(days, today)
        scans_by_date = {d: self.load_day_scans(d) for d in dates}
        return build_heatmap(scans_by_date, dates, band)

    def get_scan_details(self, days=config.HEATMAP_DAYS, band="2.4", today=None):
        """Network names per channel per day, from the same scans the heatmap uses."""
        details = {}
        for date_str in date_range(days, today):
            best_scan = select_best_scan(self.load_day_scans(date_str), band)
            if best_scan is None:
                continue
            details[date_str] = {ch: list(info.networks) for ch, info in best_scan.channels.items()}
        return details

    def get_scan_dates(self):
        """
        Get list of dates that have scan data.
        Returns list of date strings, newest first.
        """
        if not self.root.exists():
            return []

        dates = []
        for filepath in self.root.glob("*.json"):
            try:
                datetime.strptime(filepath.stem, DATE_FORMAT)
            except ValueError:
                continue
            dates.append(filepath.stem)
        return sorted(dates, reverse=True)

    def cleanup_old_scans(self, keep_days=config.SCAN_RETENTION_DAYS, today=None):
        """Remove scan files older than keep_days. Returns the number removed."""
        if not self.root.exists():
            return 0

        cutoff = (today or datetime.now().date()) - timedelta(days=keep_days)
        removed = 0
        for filepath in self.root.glob("*.json"):
            try:
                day = datetime.strptime(filepath.stem, DATE_FORMAT).date()
                if day < cutoff:
                    filepath.unlink()
                    removed += 1
            except (ValueError, OSError):
                continue
        return removed
