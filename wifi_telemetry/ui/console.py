"""Terminal rendering of snapshots and heatmaps with rich."""

from datetime import datetime

import numpy as np
from rich.align import Align
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

SPARK_CHARS = " ▁▂▃▄▅▆▇█"


def signal_color(dbm):
    """Get color for signal value."""
    if dbm is None:
        return "dim"
    elif dbm >= -50:
        return "green"
    elif dbm >= -60:
        return "yellow"
    elif dbm >= -70:
        return "dark_orange"
    else:
        return "red"


def ping_color(ms):
    """Get color for ping value."""
    if ms is None:
        return "dim"
    elif ms < 20:
        return "green"
    elif ms < 50:
        return "yellow"
    elif ms < 100:
        return "dark_orange"
    else:
        return "red"


def get_congestion_color(count):
    """Get rich color name based on network count."""
    if count is None or np.isnan(count):
        return "dim"
    elif count == 0:
        return "green"
    elif count <= 2:
        return "yellow"
    elif count <= 4:
        return "dark_orange"
    else:
        return "red"


def sparkline(values, width, color_func, fixed_min=None, fixed_max=None):
    """
    One-row sparkline of the newest `width` values.

    Missing values render as a red gap marker so failures stay visible.
    """
    values = list(values)[-width:]
    valid = [v for v in values if v is not None]
    text = Text(" " * (width - len(values)))
    if not valid:
        text.append("─" * len(values), style="dim")
        return text

    lo = min(valid) if fixed_min is None else fixed_min
    hi = max(valid) if fixed_max is None else fixed_max
    span = (hi - lo) or 1.0
    for v in values:
        if v is None:
            text.append("×", style="red")
            continue
        level = int(np.clip((v - lo) / span * (len(SPARK_CHARS) - 1), 1, len(SPARK_CHARS) - 1))
        text.append(SPARK_CHARS[level], style=color_func(v))
    return text


def _fmt(value, unit, precision=0):
    if value is None:
        return Text("--", style="red")
    return Text(f"{value:.{precision}f} {unit}")


def create_header(interface, band, ssid, window_label):
    table = Table.grid(padding=(0, 2))
    for _ in range(4):
        table.add_column(justify="left")
    table.add_row(
        Text("Interface: ", style="dim") + Text(interface or "N/A", style="bold cyan"),
        Text("Band: ", style="dim") + Text(f"{band or '?'}GHz", style="bold yellow"),
        Text("SSID: ", style="dim") + Text(ssid or "N/A", style="bold white"),
        Text("Window: ", style="dim") + Text(window_label, style="bold green"),
    )
    return Panel(table, title="WiFi Telemetry", border_style="blue")


def render_live(series, link_info, hosts, interface=None, band=None, ssid=None,
                window_label="10m", width=60):
    """Live view: latest readings plus sparklines of the downsampled series."""
    table = Table(expand=True, border_style="blue", header_style="bold cyan")
    table.add_column("Metric", no_wrap=True)
    table.add_column("Now", justify="right", no_wrap=True)
    table.add_column("History", no_wrap=True)

    table.add_row(
        "Signal", _fmt(link_info.signal, "dBm"),
        sparkline(series.signal, width, signal_color, fixed_min=-90, fixed_max=-30),
    )
    table.add_row(
        "RX", _fmt(link_info.rx_rate, "Mbps", 1),
        sparkline(series.rx_rate, width, lambda v: "green"),
    )
    table.add_row(
        "TX", _fmt(link_info.tx_rate, "Mbps", 1),
        sparkline(series.tx_rate, width, lambda v: "magenta"),
    )
    table.add_row(
        "Width", _fmt(link_info.bandwidth, "MHz"),
        sparkline(series.bandwidth, width, lambda v: "dark_orange"),
    )
    for host in hosts:
        label = host.label if host.enabled else f"{host.label} (off)"
        table.add_row(
            label[:16], _fmt(host.reported_latency, "ms", 1),
            sparkline(series.ping_data.get(host.id, []), width, ping_color, fixed_min=0, fixed_max=200),
        )

    status = Text(
        f"{len(series)} points{' (downsampled)' if series.downsampled else ''}",
        style="dim",
    )
    return Group(create_header(interface, band, ssid, window_label), table, Align.center(status))


def render_heatmap(heatmap, last_scan_time=None, now=None):
    """Channel congestion table, newest day first."""
    table = Table(show_header=True, header_style="bold cyan", border_style="blue", expand=True)
    table.add_column("", style="dim", no_wrap=True)
    for ch in heatmap.channels:
        table.add_column(str(ch), justify="center", no_wrap=True)

    for row_idx in range(len(heatmap.dates) - 1, -1, -1):
        date_str = heatmap.dates[row_idx]
        try:
            date_label = datetime.strptime(date_str, "%Y-%m-%d").strftime("%m/%d")
        except ValueError:
            date_label = date_str[:6]

        cells = [date_label]
        for count in heatmap.data[row_idx]:
            if np.isnan(count):
                cells.append(Text("░", style="dim"))
            else:
                cells.append(Text(str(int(count)), style=get_congestion_color(count)))
        table.add_row(*cells)

    legend = Text()
    legend.append("Legend: ", style="dim")
    for label, color in (("clear", "green"), ("light", "yellow"),
                         ("moderate", "dark_orange"), ("congested", "red")):
        legend.append("█ ", style=color)
        legend.append(f"{label}  ", style="dim")

    info = Text()
    if last_scan_time:
        ago = ((now or datetime.now()) - last_scan_time).total_seconds()
        if ago < 60:
            info.append(f"Last scan: {int(ago)}s ago", style="dim")
        elif ago < 3600:
            info.append(f"Last scan: {int(ago / 60)}m ago", style="dim")
        else:
            info.append(f"Last scan: {int(ago / 3600)}h ago", style="dim")
    else:
        info.append("No scan data", style="dim red")

    title = f"Channel Heatmap ({heatmap.band}GHz) - Last {len(heatmap.dates)} days"
    return Group(Panel(table, title=title, border_style="blue"), Align.center(legend), Align.center(info))
