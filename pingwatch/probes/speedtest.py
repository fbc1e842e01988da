import json
import logging
import shlex
import subprocess
import threading

from ..models import SpeedtestSnapshot

logger = logging.getLogger(__name__)


class SpeedtestError(RuntimeError):
    pass


def _format_speedtest_command(cfg):
    cmd = [cfg.get("command") or "speedtest"]
    args = cfg.get("args") or ""
    if args:
        cmd.extend(shlex.split(args))
    return cmd


def _bandwidth_mbps(section):
    if isinstance(section, dict):
        bandwidth = section.get("bandwidth")
        if isinstance(bandwidth, (int, float)):
            # bytes per second
            return bandwidth * 8 / 1e6
    return None


def parse_speedtest_json(raw_output):
    try:
        data = json.loads(raw_output)
    except json.JSONDecodeError as exc:
        raise SpeedtestError(f"Speedtest returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SpeedtestError("Speedtest JSON is not an object.")

    download = _bandwidth_mbps(data.get("download"))
    upload = _bandwidth_mbps(data.get("upload"))
    if download is None or upload is None:
        raise SpeedtestError("Speedtest JSON missing bandwidth fields.")

    ping = data.get("ping") or {}
    server = data.get("server") or {}
    return SpeedtestSnapshot(
        ping=ping.get("latency") if isinstance(ping, dict) else None,
        download=download,
        upload=upload,
        isp=data.get("isp"),
        server=server.get("name") if isinstance(server, dict) else None,
        timestamp=data.get("timestamp"),
    )


def run_speedtest(cfg):
    cmd = _format_speedtest_command(cfg)
    timeout = int(cfg.get("timeout_seconds", 120))
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise SpeedtestError(f"Speedtest timed out after {timeout}s.") from exc
    except OSError as exc:
        raise SpeedtestError(f"Speedtest command failed to start: {exc}") from exc
    if result.returncode != 0:
        raise SpeedtestError((result.stdout or "").strip() or "Speedtest failed.")
    raw_output = (result.stdout or "").strip()
    if not raw_output:
        raise SpeedtestError("Speedtest returned empty output.")
    return parse_speedtest_json(raw_output)


class SnapshotCache:
    """Latest speed-test result; None until the first run succeeds."""

    def __init__(self, store=None):
        self.store = store
        self._lock = threading.Lock()
        self._latest = None

    @property
    def latest(self):
        return self._latest

    def seed(self, snapshot):
        self._latest = snapshot

    def refresh(self, runner):
        # one refresh at a time; a stale snapshot stays readable meanwhile
        with self._lock:
            try:
                snapshot = runner()
            except SpeedtestError as exc:
                logger.error("Speedtest failed: %s", exc)
                return False
            except Exception:
                logger.exception("Speedtest failed")
                return False
            self._latest = snapshot
            if self.store is not None:
                try:
                    self.store.save_speedtest(snapshot)
                except OSError:
                    logger.exception("Could not write speedtest result")
            logger.info(
                "Speedtest completed: down=%.2f Mbps up=%.2f Mbps server=%s",
                snapshot.download,
                snapshot.upload,
                snapshot.server,
            )
            return True
