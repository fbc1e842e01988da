import json
from types import SimpleNamespace

import pytest

from pingwatch.probes import speedtest as speedtest_module
from pingwatch.probes.speedtest import SnapshotCache, SpeedtestError, parse_speedtest_json, run_speedtest
from pingwatch.settings_defaults import SPEEDTEST_DEFAULTS
from pingwatch.storage import StateStore

OOKLA_RESULT = {
    "type": "result",
    "timestamp": "2024-05-01T10:00:00Z",
    "ping": {"jitter": 0.5, "latency": 12.5},
    "download": {"bandwidth": 11775000, "bytes": 100000000, "elapsed": 8000},
    "upload": {"bandwidth": 2337500, "bytes": 20000000, "elapsed": 8000},
    "isp": "Example ISP",
    "server": {"id": 1234, "name": "Example Server", "location": "Somewhere"},
}


def test_parse_converts_bandwidth_to_mbps():
    snapshot = parse_speedtest_json(json.dumps(OOKLA_RESULT))

    assert snapshot.download == pytest.approx(94.2)
    assert snapshot.upload == pytest.approx(18.7)
    assert snapshot.ping == 12.5
    assert snapshot.isp == "Example ISP"
    assert snapshot.server == "Example Server"
    assert snapshot.timestamp == "2024-05-01T10:00:00Z"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        json.dumps({"download": {"bandwidth": 1}}),
        json.dumps({"download": {}, "upload": {"bandwidth": 1}}),
    ],
)
def test_parse_rejects_incomplete_output(raw):
    with pytest.raises(SpeedtestError):
        parse_speedtest_json(raw)


def test_run_speedtest_builds_command(monkeypatch):
    calls = []

    def run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return SimpleNamespace(returncode=0, stdout=json.dumps(OOKLA_RESULT))

    monkeypatch.setattr(speedtest_module.subprocess, "run", run)

    snapshot = run_speedtest(SPEEDTEST_DEFAULTS)

    assert calls[0][0] == ["speedtest", "--format=json", "--accept-license", "--accept-gdpr"]
    assert calls[0][1]["timeout"] == SPEEDTEST_DEFAULTS["timeout_seconds"]
    assert snapshot.server == "Example Server"


def test_run_speedtest_raises_on_failure(monkeypatch):
    monkeypatch.setattr(
        speedtest_module.subprocess,
        "run",
        lambda cmd, **kwargs: SimpleNamespace(returncode=2, stdout="Configuration - Could not retrieve"),
    )
    with pytest.raises(SpeedtestError, match="Could not retrieve"):
        run_speedtest(SPEEDTEST_DEFAULTS)


def test_run_speedtest_missing_binary(monkeypatch):
    def run(cmd, **kwargs):
        raise FileNotFoundError("speedtest")

    monkeypatch.setattr(speedtest_module.subprocess, "run", run)
    with pytest.raises(SpeedtestError):
        run_speedtest(SPEEDTEST_DEFAULTS)


def test_cache_is_empty_until_first_success():
    cache = SnapshotCache()
    assert cache.latest is None


def test_cache_refresh_replaces_and_persists(tmp_path, snapshot):
    store = StateStore(tmp_path)
    cache = SnapshotCache(store)

    assert cache.refresh(lambda: snapshot) is True

    assert cache.latest == snapshot
    assert store.load_speedtest() == snapshot


def test_failed_refresh_keeps_stale_snapshot(tmp_path, snapshot, caplog):
    store = StateStore(tmp_path)
    cache = SnapshotCache(store)
    cache.refresh(lambda: snapshot)

    def broken():
        raise SpeedtestError("server unreachable")

    assert cache.refresh(broken) is False
    assert cache.latest == snapshot
    assert store.load_speedtest() == snapshot
    assert "server unreachable" in caplog.text


def test_write_failure_still_updates_memory(snapshot):
    class BrokenStore:
        def save_speedtest(self, snapshot):
            raise OSError("disk full")

    cache = SnapshotCache(BrokenStore())

    assert cache.refresh(lambda: snapshot) is True
    assert cache.latest == snapshot
