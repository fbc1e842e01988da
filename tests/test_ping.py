import subprocess
from datetime import datetime
from types import SimpleNamespace

import pytest

from pingwatch.probes import ping as ping_module
from pingwatch.probes.ping import format_datetime, parse_ping, ping_target

LINUX_REPLY = """PING 192.0.2.1 (192.0.2.1) 56(84) bytes of data.
64 bytes from 192.0.2.1: icmp_seq=1 ttl=117 time=14.8 ms

--- 192.0.2.1 ping statistics ---
1 packets transmitted, 1 received, 0% packet loss, time 0ms
rtt min/avg/max/mdev = 14.846/14.846/14.846/0.000 ms
"""

LINUX_LOSS = """PING 192.0.2.1 (192.0.2.1) 56(84) bytes of data.

--- 192.0.2.1 ping statistics ---
1 packets transmitted, 0 received, 100% packet loss, time 0ms
"""


@pytest.mark.parametrize(
    "output, expected",
    [
        (LINUX_REPLY, (117, 14.8)),
        (LINUX_LOSS, (None, None)),
        ("64 bytes from 10.0.0.1: icmp_seq=1 ttl=64 time=0.045 ms", (64, 0.045)),
        ("64 bytes from 10.0.0.1: icmp_seq=1 ttl=64", (64, None)),
        ("time=7 ms", (None, 7.0)),
        ("", (None, None)),
        (None, (None, None)),
    ],
)
def test_parse_ping(output, expected):
    assert parse_ping(output) == expected


def test_format_datetime_uses_local_time():
    assert format_datetime(1500) == datetime.fromtimestamp(1.5).strftime("%Y-%m-%d %H:%M:%S")


def _fake_run(returncode=0, stdout="", stderr="", exc=None):
    calls = []

    def run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        if exc is not None:
            raise exc
        return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)

    return run, calls


def test_successful_ping_is_parsed(monkeypatch):
    run, calls = _fake_run(stdout=LINUX_REPLY)
    monkeypatch.setattr(ping_module.subprocess, "run", run)

    record = ping_target("192.0.2.1", timeout_seconds=2)

    assert record.success is True
    assert (record.ttl, record.time) == (117, 14.8)
    assert calls[0][0] == ["ping", "-c", "1", "-W", "2", "192.0.2.1"]
    assert calls[0][1]["timeout"] > 2
    assert record.datetime == format_datetime(record.timestamp)


def test_nonzero_exit_is_a_failed_record(monkeypatch):
    run, _ = _fake_run(returncode=1, stdout=LINUX_LOSS)
    monkeypatch.setattr(ping_module.subprocess, "run", run)

    record = ping_target("192.0.2.1")

    assert record.success is False
    assert record.ttl is None
    assert record.time is None


def test_nonzero_exit_drops_parsed_fields(monkeypatch):
    run, _ = _fake_run(returncode=1, stdout=LINUX_REPLY)
    monkeypatch.setattr(ping_module.subprocess, "run", run)

    record = ping_target("192.0.2.1")

    assert record.success is False
    assert (record.ttl, record.time) == (None, None)


def test_success_without_parseable_output_keeps_nulls(monkeypatch):
    run, _ = _fake_run(stdout="reply received")
    monkeypatch.setattr(ping_module.subprocess, "run", run)

    record = ping_target("192.0.2.1")

    assert record.success is True
    assert (record.ttl, record.time) == (None, None)


@pytest.mark.parametrize(
    "exc",
    [
        FileNotFoundError("ping"),
        subprocess.TimeoutExpired(cmd="ping", timeout=6),
    ],
)
def test_launch_errors_are_recorded_not_raised(monkeypatch, exc, caplog):
    run, _ = _fake_run(exc=exc)
    monkeypatch.setattr(ping_module.subprocess, "run", run)

    record = ping_target("192.0.2.1")

    assert record.success is False
    assert "Ping error" in caplog.text
