import logging
import re
import subprocess
from datetime import datetime

from ..models import ProbeRecord
from ..stats import now_ms

logger = logging.getLogger(__name__)

RE_TTL = re.compile(r"ttl=(\d+)")
RE_TIME = re.compile(r"time=(\d+(?:\.\d+)?|\.\d+)")

# ping's own -W bounds the reply wait; this covers DNS and process start.
PROCESS_GRACE_SECONDS = 5


def parse_ping(output):
    ttl_match = RE_TTL.search(output or "")
    time_match = RE_TIME.search(output or "")
    return (
        int(ttl_match.group(1)) if ttl_match else None,
        float(time_match.group(1)) if time_match else None,
    )


def format_datetime(timestamp):
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")


def build_record(success, ttl=None, time=None, timestamp=None):
    timestamp = now_ms() if timestamp is None else timestamp
    return ProbeRecord(
        timestamp=timestamp,
        datetime=format_datetime(timestamp),
        success=success,
        ttl=ttl,
        time=time,
    )


def ping_target(target, timeout_seconds=1):
    cmd = ["ping", "-c", "1", "-W", str(timeout_seconds), target]
    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
            timeout=timeout_seconds + PROCESS_GRACE_SECONDS,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Ping error: %s timed out", target)
        return build_record(False)
    except OSError as exc:
        logger.warning("Ping error: could not run ping for %s: %s", target, exc)
        return build_record(False)

    if result.stderr:
        logger.warning("Ping stderr: %s", result.stderr.strip())
    if result.returncode != 0:
        # a failed probe never carries ttl/time
        logger.warning("Ping error: %s exited with code %d", target, result.returncode)
        return build_record(False)
    ttl, rtt = parse_ping(result.stdout)
    return build_record(True, ttl, rtt)
