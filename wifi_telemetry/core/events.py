"""Outbound event stream to the presentation layer."""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import List

from .models import LinkInfo, MonitorSnapshot, PingHost, PingResult, ScanResult

log = logging.getLogger("wifi_telemetry.events")


@dataclass(frozen=True)
class SnapshotEvent:
    snapshot: MonitorSnapshot


@dataclass(frozen=True)
class LinkInfoEvent:
    link_info: LinkInfo


@dataclass(frozen=True)
class HostsChangedEvent:
    hosts: List[PingHost]


@dataclass(frozen=True)
class PingResultEvent:
    result: PingResult


@dataclass(frozen=True)
class ScanCompleteEvent:
    scan: ScanResult


class EventBus:
    """
    Fan-out of typed events to callbacks and queue channels.

    Callbacks run on the publishing thread; a failing callback is logged
    and does not affect the other subscribers or the publisher.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers = []

    def subscribe(self, callback, *event_types):
        """
        Register callback(event) for the given event types (all when none).

        Returns a function that removes the subscription.
        """
        entry = (callback, tuple(event_types))
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def channel(self, *event_types, maxsize=0):
        """Return a queue.Queue that receives the given event types."""
        q = queue.Queue(maxsize=maxsize)

        def put(event):
            try:
                q.put_nowait(event)
            except queue.Full:
                log.debug("Dropping %s: channel full", type(event).__name__)

        self.subscribe(put, *event_types)
        return q

    def publish(self, event):
        with self._lock:
            subscribers = list(self._subscribers)
        for callback, event_types in subscribers:
            if event_types and not isinstance(event, event_types):
                continue
            try:
                callback(event)
            except Exception:
                log.exception("Subscriber %r failed on %s", callback, type(event).__name__)
