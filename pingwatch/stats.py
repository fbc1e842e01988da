import logging
import threading
import time as time_module
from dataclasses import dataclass, field
from types import MappingProxyType

from .models import WindowAggregate

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# month window plus one day of slack for tick drift
RETENTION_MS = 31 * DAY_MS

WINDOWS = MappingProxyType(
    {
        "tenMinutes": 10 * MINUTE_MS,
        "hour": HOUR_MS,
        "day": DAY_MS,
        "week": 7 * DAY_MS,
        "month": 30 * DAY_MS,
    }
)


def now_ms():
    return int(time_module.time() * 1000)


class EventLog:
    """Append-only list of probe records in insertion order."""

    def __init__(self, records=None):
        self._records = list(records or [])

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def append(self, record):
        self._records.append(record)

    def prune(self, now):
        cutoff = now - RETENTION_MS
        # insertion order only; timestamps can go backwards with the wall clock
        kept = [record for record in self._records if record.timestamp >= cutoff]
        dropped = len(self._records) - len(kept)
        self._records = kept
        return dropped

    def snapshot(self):
        return tuple(self._records)


def compute_window(records, since):
    count = 0
    success = 0
    ttl_sum = 0
    time_sum = 0.0
    for record in records:
        if record.timestamp < since:
            continue
        count += 1
        if record.success:
            success += 1
        # null fields count as 0 but still add to the divisor
        ttl_sum += record.ttl or 0
        time_sum += record.time or 0
    fail = count - success
    return WindowAggregate(
        count=count,
        success=success,
        fail=fail,
        avgTTL=round(ttl_sum / count, 3) if count else 0,
        avgTime=round(time_sum / count, 3) if count else 0,
        packetLoss=(fail / count) * 100 if count else 0,
    )


def compute_windows(records, now):
    return {name: compute_window(records, now - span) for name, span in WINDOWS.items()}


def with_uptime(aggregate):
    payload = aggregate.to_dict()
    count = aggregate.count
    payload["uptime"] = round(aggregate.success / count * 100, 2) if count else 0
    payload["downtime"] = round(aggregate.fail / count * 100, 2) if count else 0
    return payload


def empty_windows():
    return {name: WindowAggregate() for name in WINDOWS}


@dataclass(frozen=True)
class StatsState:
    records: tuple = ()
    aggregates: MappingProxyType = field(default_factory=lambda: MappingProxyType(empty_windows()))


class StatsEngine:
    """Owns the event log and the five window aggregates.

    A single writer (the probe job) calls ``record``; every call builds a new
    ``StatsState`` and swaps it in, so readers holding ``state`` always see a
    log and aggregates from the same tick.
    """

    def __init__(self, clock=now_ms):
        self._clock = clock
        self._log = EventLog()
        self._write_lock = threading.Lock()
        self._state = StatsState()

    @property
    def state(self):
        return self._state

    def seed(self, records=None, aggregates=None, now=None):
        now = self._clock() if now is None else now
        with self._write_lock:
            self._log = EventLog(records)
            dropped = self._log.prune(now)
            if dropped:
                logger.info("Dropped %d expired records from loaded history", dropped)
            if aggregates is None:
                aggregates = compute_windows(self._log, now)
            self._publish(aggregates)
        logger.info("Stats engine seeded with %d records", len(self._log))
        return self._state

    def record(self, probe, now=None):
        now = self._clock() if now is None else now
        with self._write_lock:
            self._log.append(probe)
            self._log.prune(now)
            self._publish(compute_windows(self._log, now))
        return self._state

    def _publish(self, aggregates):
        self._state = StatsState(
            records=self._log.snapshot(),
            aggregates=MappingProxyType(dict(aggregates)),
        )

    def window(self, name):
        return with_uptime(self._state.aggregates[name])

    def history(self):
        return list(self._state.records)

    def failed(self):
        return failed_records(self._state.records)


def failed_records(records):
    return [record for record in records if not record.success]

