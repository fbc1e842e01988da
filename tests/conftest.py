import pytest

from pingwatch.models import ProbeRecord, SpeedtestSnapshot
from pingwatch.settings_store import get_settings

NOW = 40 * 24 * 60 * 60 * 1000


def probe(timestamp, success=True, ttl=None, time=None):
    return ProbeRecord(timestamp=timestamp, datetime="", success=success, ttl=ttl, time=time)


@pytest.fixture
def settings(tmp_path):
    return get_settings(
        environ={},
        overrides={
            "probe": {"target": "192.0.2.1", "interval_ms": 1000},
            "speedtest": {"enabled": False},
            "api": {"api_key": "secret"},
            "storage": {"data_dir": str(tmp_path / "data")},
        },
    )


@pytest.fixture
def snapshot():
    return SpeedtestSnapshot(
        ping=12.5,
        download=94.2,
        upload=18.7,
        isp="Example ISP",
        server="Example Server",
        timestamp="2024-05-01T10:00:00Z",
    )
