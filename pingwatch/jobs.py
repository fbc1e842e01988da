import copy
import logging
import threading
from datetime import datetime, timezone
from functools import partial

from .probes.ping import ping_target
from .probes.speedtest import run_speedtest

logger = logging.getLogger(__name__)


def utc_now_iso():
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


class JobStatus:
    def __init__(self):
        self._lock = threading.Lock()
        self._jobs = {}

    def update(self, job_name, last_run_at=None, last_success_at=None, last_error=None, last_error_at=None):
        with self._lock:
            payload = self._jobs.setdefault(
                job_name,
                {"last_run_at": None, "last_success_at": None, "last_error": None, "last_error_at": None},
            )
            if last_run_at is not None:
                payload["last_run_at"] = last_run_at
            if last_success_at is not None:
                payload["last_success_at"] = last_success_at
            if last_error is not None:
                payload["last_error"] = last_error
            if last_error_at is not None:
                payload["last_error_at"] = last_error_at

    def snapshot(self):
        with self._lock:
            return copy.deepcopy(self._jobs)


class JobsManager:
    def __init__(self, engine, cache, store, settings, pinger=ping_target, speedtest_runner=run_speedtest):
        self.engine = engine
        self.cache = cache
        self.store = store
        self.settings = settings
        self.pinger = pinger
        self.speedtest_runner = speedtest_runner
        self.status = JobStatus()
        self.stop_event = threading.Event()
        self.threads = []

    def start(self):
        self.stop_event.clear()
        self.threads = [threading.Thread(target=self._probe_loop, name="probe", daemon=True)]
        if self.settings["speedtest"].get("enabled"):
            self.threads.append(threading.Thread(target=self._speedtest_loop, name="speedtest", daemon=True))
        for thread in self.threads:
            thread.start()
        logger.info(
            "Jobs started: target=%s interval=%dms speedtest=%s",
            self.settings["probe"]["target"],
            self.settings["probe"]["interval_ms"],
            "on" if self.settings["speedtest"].get("enabled") else "off",
        )

    def stop(self):
        self.stop_event.set()
        for thread in self.threads:
            thread.join(timeout=2)
        logger.info("Jobs stopped")

    def probe_tick(self):
        probe_cfg = self.settings["probe"]
        self.status.update("probe", last_run_at=utc_now_iso())
        try:
            record = self.pinger(probe_cfg["target"], probe_cfg.get("timeout_seconds", 1))
            state = self.engine.record(record)
        except Exception as exc:
            logger.exception("Probe tick failed")
            self.status.update("probe", last_error=str(exc), last_error_at=utc_now_iso())
            return False
        try:
            self.store.save_stats(state)
        except OSError as exc:
            # in-memory state stays authoritative; the next tick rewrites everything
            logger.exception("Could not write ping stats")
            self.status.update("probe", last_error=str(exc), last_error_at=utc_now_iso())
            return False
        self.status.update("probe", last_success_at=utc_now_iso(), last_error="", last_error_at="")
        return True

    def speedtest_tick(self):
        self.status.update("speedtest", last_run_at=utc_now_iso())
        runner = partial(self.speedtest_runner, self.settings["speedtest"])
        if self.cache.refresh(runner):
            self.status.update("speedtest", last_success_at=utc_now_iso(), last_error="", last_error_at="")
            return True
        self.status.update("speedtest", last_error="speedtest failed", last_error_at=utc_now_iso())
        return False

    def _probe_loop(self):
        interval_seconds = max(int(self.settings["probe"]["interval_ms"]), 1) / 1000
        while not self.stop_event.wait(interval_seconds):
            self.probe_tick()

    def _speedtest_loop(self):
        cfg = self.settings["speedtest"]
        interval_seconds = max(int(cfg.get("interval_seconds", 600)), 1)
        if cfg.get("run_on_startup", True) and not self.stop_event.is_set():
            self.speedtest_tick()
        while not self.stop_event.wait(interval_seconds):
            self.speedtest_tick()
