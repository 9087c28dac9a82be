"""Render-stable downsampling of the monitor series for plotting."""

import logging
import math
import time

import numpy as np

from .models import DownsampledSeries

log = logging.getLogger("wifi_telemetry.downsample")

MIN_POINTS = 5
POINTS_PER_PIXEL = 0.5
EMPTY_WINDOW_SECONDS = 600

METRIC_FIELDS = ("signal", "rx_rate", "tx_rate", "bandwidth")


class SeriesLengthError(ValueError):
    """A metric series does not line up with the timestamps."""


def visible_range(timestamps_ms, window_seconds, zoom_range=None, now=None):
    """
    (start, end) in seconds of what the plot shows.

    A zoom selection is used verbatim; a finite window ends at now; an
    unbounded window starts at the first sample.
    """
    if now is None:
        now = time.time()
    if zoom_range is not None:
        return float(zoom_range[0]), float(zoom_range[1])
    if window_seconds is None:
        if len(timestamps_ms) > 0:
            return float(timestamps_ms[0]) / 1000.0, now
        return now - EMPTY_WINDOW_SECONDS, now
    return now - window_seconds, now


def target_points(plot_width, data_span, nominal_span):
    """Point budget for the fraction of the plot the data covers."""
    fraction = data_span / nominal_span if nominal_span > 0 else 1.0
    return max(MIN_POINTS, int(math.floor(plot_width * POINTS_PER_PIXEL * fraction)))


def bucket_count(plot_width):
    return max(MIN_POINTS, int(math.floor(plot_width * POINTS_PER_PIXEL)))


def last_in_bucket(times, bucket_size):
    """
    Index of the last sample in each non-empty time bucket.

    Buckets sit at absolute multiples of bucket_size, so a sliding window
    keeps the same boundaries from one render to the next.
    """
    if len(times) == 0:
        return np.array([], dtype=np.int64)
    buckets = np.floor(times / bucket_size).astype(np.int64)
    # times are sorted, so a bucket ends where the next index differs
    ends = np.flatnonzero(np.diff(buckets) != 0)
    return np.append(ends, len(times) - 1)


def stride_indices(count, target):
    step = int(math.ceil(count / target))
    return np.arange(0, count, max(1, step))


def _pick(values, indices):
    return [values[i] for i in indices]


def downsample(snapshot, plot_width, window_seconds, zoom_range=None, now=None):
    """
    Reduce a MonitorSnapshot to at most about plot_width / 2 points.

    Args:
        snapshot: MonitorSnapshot with ms timestamps
        plot_width: Plot width in pixels
        window_seconds: Configured window, None for unbounded
        zoom_range: Optional (start, end) seconds selected by the user
        now: Current time in seconds (defaults to time.time())

    Returns:
        DownsampledSeries. Bounded windows keep the last row of each
        anchored time bucket, unbounded windows keep every n-th row; the
        final point is dropped whenever rows were reduced. None values are
        carried through untouched.
    """
    if now is None:
        now = time.time()

    timestamps = np.asarray(snapshot.timestamps, dtype=np.float64)
    n = len(timestamps)
    for name in METRIC_FIELDS:
        if len(getattr(snapshot, name)) != n:
            raise SeriesLengthError(
                f"{name} has {len(getattr(snapshot, name))} values for {n} timestamps"
            )

    ping_data = {}
    for host_id, data in snapshot.ping_data.items():
        if len(data) != n:
            log.warning("Skipping ping series %s: %d values for %d timestamps", host_id, len(data), n)
            continue
        ping_data[host_id] = data

    start, end = visible_range(timestamps, window_seconds, zoom_range, now)
    times = timestamps / 1000.0

    # Left-inclusive cutoff at start, right-inclusive at end
    start_idx = int(np.searchsorted(times, start, side="left"))
    stop_idx = int(np.searchsorted(times, end, side="right"))
    visible = times[start_idx:stop_idx]
    rows = np.arange(start_idx, stop_idx)

    def build(indices, downsampled):
        indices = [int(i) for i in indices]
        return DownsampledSeries(
            time=[float(times[i]) for i in indices],
            signal=_pick(snapshot.signal, indices),
            rx_rate=_pick(snapshot.rx_rate, indices),
            tx_rate=_pick(snapshot.tx_rate, indices),
            bandwidth=_pick(snapshot.bandwidth, indices),
            ping_data={host_id: _pick(data, indices) for host_id, data in ping_data.items()},
            visible_range=(start, end),
            start_idx=start_idx if len(indices) else 0,
            downsampled=downsampled,
        )

    if len(visible) == 0:
        return build([], False)

    data_span = float(visible[-1] - visible[0])
    if zoom_range is not None:
        nominal_span = end - start
    elif window_seconds is not None:
        nominal_span = float(window_seconds)
    else:
        nominal_span = data_span

    target = target_points(plot_width, data_span, nominal_span)
    if len(visible) <= target:
        return build(rows, False)

    bucket_size = nominal_span / bucket_count(plot_width)
    if window_seconds is not None and bucket_size > 0:
        picked = rows[last_in_bucket(visible, bucket_size)]
    else:
        picked = rows[stride_indices(len(visible), target)]

    # The newest bucket is still filling; leave it out so the tail stays put
    return build(picked[:-1], True)
