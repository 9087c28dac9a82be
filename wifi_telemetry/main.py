"""Entry point for wifi-telemetry."""

import argparse
import logging
import queue
import sys

from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.prompt import Prompt

from . import __version__, config
from .app import MonitorContext
from .config import Settings
from .core.events import LinkInfoEvent
from .core.models import EMPTY_LINK_INFO
from .core.net import run_command
from .core.scanner import BANDS
from .ui.console import render_heatmap, render_live


def build_parser():
    parser = argparse.ArgumentParser(
        prog="wifi-telemetry",
        description="WiFi link quality and latency telemetry",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"wifi-telemetry {__version__}",
    )
    parser.add_argument(
        "-i", "--interface",
        help="WiFi interface to use (auto-detected if not specified)",
    )
    parser.add_argument(
        "-r", "--refresh",
        type=float,
        help="Refresh interval in seconds (default: 1.0)",
    )
    parser.add_argument(
        "-w", "--window",
        choices=list(config.TIME_WINDOWS),
        help="Time window shown in the live view (default: 10m)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=60,
        help="Sparkline width in characters (default: 60)",
    )
    parser.add_argument(
        "--heatmap",
        type=int,
        nargs="?",
        const=config.HEATMAP_DAYS,
        metavar="DAYS",
        help="Print the channel heatmap for the last DAYS days and exit",
    )
    parser.add_argument("--band", choices=BANDS, help="Band for --heatmap/--scan")
    parser.add_argument("--scan", action="store_true", help="Run one channel scan and exit")
    parser.add_argument("--no-auto-scan", action="store_true", help="Disable hourly scans")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    return parser


def setup_logging(verbose=False, log_file=None, console=None):
    handlers = [RichHandler(console=console, show_path=False)]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=handlers,
    )


def settings_from_args(args):
    settings = Settings.from_env()
    if args.interface:
        settings.interface = args.interface
    if args.refresh:
        settings.refresh_interval_ms = max(100, int(args.refresh * 1000))
    if args.window:
        settings.window = args.window
    if args.no_auto_scan:
        settings.auto_scan = False
    return settings


def select_interface(ctx, console):
    """Show interface selection dialog."""
    interfaces = ctx.metrics.get_wireless_interfaces()

    if not interfaces:
        console.print("[red]No wireless interfaces found![/red]")
        console.print("[dim]Make sure you have a WiFi adapter and 'iw' is installed.[/dim]")
        sys.exit(1)

    if len(interfaces) == 1:
        console.print(f"[green]Using interface: {interfaces[0]}[/green]")
        return interfaces[0]

    console.print("[cyan]Available wireless interfaces:[/cyan]")
    for i, iface in enumerate(interfaces):
        console.print(f"  {i + 1}. {iface}")

    choice = Prompt.ask("[cyan]Select interface[/cyan]", default="1")
    try:
        idx = int(choice) - 1
        if 0 <= idx < len(interfaces):
            return interfaces[idx]
    except ValueError:
        pass
    return interfaces[0]


def run_live(ctx, console, width):
    """Redraw on every collector tick until interrupted."""
    events = ctx.bus.channel(LinkInfoEvent)
    link_info = EMPTY_LINK_INFO
    band = ctx.current_band()
    ssid = ctx.metrics.get_ssid(ctx.interface)

    def view():
        return render_live(
            ctx.plot_data(plot_width=width * 2),
            link_info,
            ctx.hosts(),
            interface=ctx.interface,
            band=band,
            ssid=ssid,
            window_label=ctx.settings.window,
            width=width,
        )

    ctx.start_monitoring()
    with Live(view(), console=console, refresh_per_second=4, screen=True) as live:
        while True:
            try:
                event = events.get(timeout=0.5)
            except queue.Empty:
                continue
            link_info = event.link_info
            live.update(view())


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    console = Console()
    setup_logging(args.verbose, args.log_file, console)

    if run_command(["iw", "--version"]) is None:
        console.print("[red]Error: 'iw' command not found![/red]")
        console.print("[dim]Install it with: sudo apt install iw (Debian/Ubuntu)[/dim]")
        console.print("[dim]              or: sudo pacman -S iw (Arch)[/dim]")
        sys.exit(1)

    settings = settings_from_args(args)
    with MonitorContext(settings) as ctx:
        if args.heatmap is not None:
            ctx.interface = ctx.interface or next(iter(ctx.metrics.get_wireless_interfaces()), None)
            heatmap = ctx.get_heatmap(days=args.heatmap, band=args.band)
            console.print(render_heatmap(heatmap, ctx.archive.get_last_scan_time()))
            return

        ctx.interface = ctx.interface or select_interface(ctx, console)

        if args.scan:
            with console.status("Scanning..."):
                scan = ctx.perform_scan(band=args.band)
            if scan is None:
                console.print("[red]Scan failed[/red]")
                sys.exit(1)
            console.print(f"[green]Found {scan.total_networks} networks on {scan.band}GHz[/green]")
            return

        console.print("[dim]Starting monitor... Press Ctrl+C to quit.[/dim]")
        try:
            run_live(ctx, console, args.width)
        except KeyboardInterrupt:
            console.print("\n[dim]Interrupted.[/dim]")

    console.print("[dim]Goodbye![/dim]")


if __name__ == "__main__":
    main()
