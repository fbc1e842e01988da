import json
import logging
import os
import tempfile
from pathlib import Path

from .models import ProbeRecord, SpeedtestSnapshot, WindowAggregate
from .stats import WINDOWS, failed_records

logger = logging.getLogger(__name__)


class StateCorruptError(RuntimeError):
    def __init__(self, path, reason):
        super().__init__(f"Corrupt state file {path}: {reason}. Fix or remove it and restart.")
        self.path = path
        self.reason = reason


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_record(item):
    if not isinstance(item, dict):
        return "history entry is not an object"
    if not isinstance(item.get("timestamp"), int) or isinstance(item.get("timestamp"), bool):
        return "history entry has no integer timestamp"
    if not isinstance(item.get("success"), bool):
        return "history entry has no boolean success"
    ttl = item.get("ttl")
    if ttl is not None and (not isinstance(ttl, int) or isinstance(ttl, bool)):
        return "history entry ttl is not an integer"
    rtt = item.get("time")
    if rtt is not None and not _is_number(rtt):
        return "history entry time is not a number"
    return None


def _check_aggregate(item):
    if not isinstance(item, dict):
        return "window is not an object"
    for key in ("count", "success", "fail"):
        if not isinstance(item.get(key), int) or isinstance(item.get(key), bool):
            return f"window field {key} is not an integer"
    for key in ("avgTTL", "avgTime", "packetLoss"):
        if not _is_number(item.get(key)):
            return f"window field {key} is not a number"
    return None


class StateStore:
    """JSON files holding the summary, history, failures and speed test.

    Every write replaces the whole file through a temp file and
    ``os.replace``; a reader sees either the old or the new content.
    """

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.results_dir = self.data_dir / "results"
        self.history_dir = self.data_dir / "history"
        self.stats_file = self.results_dir / "ping_stats.json"
        self.speedtest_file = self.results_dir / "speedtest.json"
        self.history_file = self.history_dir / "history.json"
        self.failed_file = self.history_dir / "failed.json"
        for directory in (self.results_dir, self.history_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def _write_json(self, path, payload):
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _read_json(self, path):
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise StateCorruptError(path, f"invalid JSON ({exc})") from exc
        except UnicodeDecodeError as exc:
            raise StateCorruptError(path, "not UTF-8 text") from exc

    def save_stats(self, state):
        summary = {name: state.aggregates[name].to_dict() for name in WINDOWS}
        self._write_json(self.stats_file, summary)
        self._write_json(self.history_file, [record.to_dict() for record in state.records])
        self._write_json(self.failed_file, [record.to_dict() for record in failed_records(state.records)])

    def load_summary(self):
        data = self._read_json(self.stats_file)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise StateCorruptError(self.stats_file, "expected an object of windows")
        aggregates = {}
        for name in WINDOWS:
            if name not in data:
                raise StateCorruptError(self.stats_file, f"missing window {name}")
            problem = _check_aggregate(data[name])
            if problem:
                raise StateCorruptError(self.stats_file, f"{name}: {problem}")
            aggregates[name] = WindowAggregate.from_dict(data[name])
        return aggregates

    def load_history(self):
        data = self._read_json(self.history_file)
        if data is None:
            return None
        if not isinstance(data, list):
            raise StateCorruptError(self.history_file, "expected a list of records")
        records = []
        for index, item in enumerate(data):
            problem = _check_record(item)
            if problem:
                raise StateCorruptError(self.history_file, f"entry {index}: {problem}")
            records.append(ProbeRecord.from_dict(item))
        return records

    def load_stats(self):
        """Return ``(records, aggregates)`` from disk.

        ``aggregates`` is None when no summary exists, telling the engine to
        recompute from the records.
        """
        aggregates = self.load_summary()
        records = self.load_history()
        if aggregates is not None:
            logger.info("Loaded window summary from %s", self.stats_file)
        if records is not None:
            logger.info("Loaded %d history records from %s", len(records), self.history_file)
        return records or [], aggregates

    def save_speedtest(self, snapshot):
        self._write_json(self.speedtest_file, snapshot.to_dict())

    def load_speedtest(self):
        data = self._read_json(self.speedtest_file)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise StateCorruptError(self.speedtest_file, "expected an object")
        for key in ("download", "upload"):
            if not _is_number(data.get(key)):
                raise StateCorruptError(self.speedtest_file, f"{key} is not a number")
        return SpeedtestSnapshot.from_dict(data)
