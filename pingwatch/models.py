"""Records produced by the probe and speed-test jobs."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class ProbeRecord:
    """One ping attempt against the target.

    ``ttl`` and ``time`` are None when the probe failed, but also when a
    successful probe printed nothing parseable.
    """

    timestamp: int
    datetime: str
    success: bool
    ttl: int | None = None
    time: float | None = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            timestamp=data["timestamp"],
            datetime=data.get("datetime") or "",
            success=data["success"],
            ttl=data.get("ttl"),
            time=data.get("time"),
        )


@dataclass(frozen=True)
class WindowAggregate:
    count: int = 0
    success: int = 0
    fail: int = 0
    avgTTL: float = 0
    avgTime: float = 0
    packetLoss: float = 0

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            count=data["count"],
            success=data["success"],
            fail=data["fail"],
            avgTTL=data["avgTTL"],
            avgTime=data["avgTime"],
            packetLoss=data["packetLoss"],
        )


@dataclass(frozen=True)
class SpeedtestSnapshot:
    ping: float | None
    download: float
    upload: float
    isp: str | None
    server: str | None
    timestamp: str | None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            ping=data.get("ping"),
            download=data["download"],
            upload=data["upload"],
            isp=data.get("isp"),
            server=data.get("server"),
            timestamp=data.get("timestamp"),
        )
