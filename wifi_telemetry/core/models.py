"""Data types shared by the telemetry pipeline."""

import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class LinkInfo:
    signal: Optional[float] = None     # dBm
    rx_rate: Optional[float] = None    # Mbps
    tx_rate: Optional[float] = None    # Mbps
    bandwidth: Optional[float] = None  # MHz

    def to_dict(self):
        return {
            "signal": self.signal,
            "rxRate": self.rx_rate,
            "txRate": self.tx_rate,
            "bandwidth": self.bandwidth,
        }


EMPTY_LINK_INFO = LinkInfo()


def now_ms() -> int:
    return int(time.time() * 1000)


def new_host_id() -> str:
    return f"host-{uuid.uuid4().hex}"


@dataclass
class PingHost:
    address: str
    label: str
    enabled: bool = True
    latest: Optional[float] = None  # ms, None = timeout/failure
    is_gateway: bool = False
    id: str = field(default_factory=new_host_id)

    @property
    def reported_latency(self) -> Optional[float]:
        """Value the aggregator records for this host on a tick."""
        return self.latest if self.enabled else None

    def to_dict(self):
        return {
            "id": self.id,
            "host": self.address,
            "label": self.label,
            "enabled": self.enabled,
            "latest": self.latest,
            "isGateway": self.is_gateway,
        }


@dataclass(frozen=True)
class PingResult:
    host_id: str
    latency: Optional[float]
    timestamp: int  # unix ms


@dataclass
class MonitorSnapshot:
    """Serialized store contents handed across the presentation boundary."""

    timestamps: List[int] = field(default_factory=list)
    signal: List[Optional[float]] = field(default_factory=list)
    rx_rate: List[Optional[float]] = field(default_factory=list)
    tx_rate: List[Optional[float]] = field(default_factory=list)
    bandwidth: List[Optional[float]] = field(default_factory=list)
    ping_data: Dict[str, List[Optional[float]]] = field(default_factory=dict)

    def __len__(self):
        return len(self.timestamps)

    def to_dict(self):
        return {
            "timestamps": list(self.timestamps),
            "signal": list(self.signal),
            "rxRate": list(self.rx_rate),
            "txRate": list(self.tx_rate),
            "bandwidth": list(self.bandwidth),
            "pingData": {k: list(v) for k, v in self.ping_data.items()},
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            timestamps=list(data.get("timestamps", [])),
            signal=list(data.get("signal", [])),
            rx_rate=list(data.get("rxRate", [])),
            tx_rate=list(data.get("txRate", [])),
            bandwidth=list(data.get("bandwidth", [])),
            ping_data={k: list(v) for k, v in data.get("pingData", {}).items()},
        )


@dataclass
class ChannelInfo:
    count: int = 0
    networks: List[str] = field(default_factory=list)


@dataclass
class ScanResult:
    timestamp: int  # unix seconds
    band: Optional[str]  # '2.4' or '5', None for legacy scans
    channels: Dict[int, ChannelInfo] = field(default_factory=dict)

    @property
    def total_networks(self) -> int:
        return sum(info.count for info in self.channels.values())

    def to_dict(self):
        return {
            "timestamp": self.timestamp,
            "band": self.band,
            "channels": {
                str(ch): {"count": info.count, "networks": list(info.networks)}
                for ch, info in self.channels.items()
            },
        }

    @classmethod
    def from_dict(cls, data):
        channels = {}
        for ch, info in (data.get("channels") or {}).items():
            if not isinstance(info, dict):
                continue
            try:
                channel = int(ch)
            except (TypeError, ValueError):
                continue
            channels[channel] = ChannelInfo(
                count=int(info.get("count", 0)),
                networks=list(info.get("networks", [])),
            )
        return cls(
            timestamp=int(data.get("timestamp", 0)),
            band=data.get("band"),
            channels=channels,
        )


@dataclass
class HeatmapData:
    data: np.ndarray  # shape (days, channels), NaN = no data
    dates: List[str]  # oldest first, 'YYYY-MM-DD'
    channels: List[int]
    band: str

    def to_dict(self):
        rows = [[None if np.isnan(v) else float(v) for v in row] for row in self.data]
        return {
            "data": rows,
            "dates": list(self.dates),
            "channels": list(self.channels),
            "band": self.band,
        }


@dataclass
class DownsampledSeries:
    time: List[float]  # seconds
    signal: List[Optional[float]]
    rx_rate: List[Optional[float]]
    tx_rate: List[Optional[float]]
    bandwidth: List[Optional[float]]
    ping_data: Dict[str, List[Optional[float]]]
    visible_range: Tuple[float, float]
    start_idx: int
    downsampled: bool

    def __len__(self):
        return len(self.time)
