"""Telemetry pipeline: sources, scheduler, collector, store, downsampler, scans."""
