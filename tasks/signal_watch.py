# tasks/signal_watch.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List

from dateutil import parser as dtparse

from models.bus import Bus, BusStatus

_log = logging.getLogger("simulator")


def mark_stale_live_buses(buses: Iterable[Bus], stale_after_sec: int, now=None) -> List[int]:
    """
    Flag running live buses whose last ESP report is older than
    `stale_after_sec` as Signal Lost. Returns the ids that changed.

    Age is measured from the server's receive time (`last_seen`); a bus that
    has not reported since seeding falls back to its `lastUpdated`.
    """
    if not stale_after_sec or stale_after_sec <= 0:
        return []
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=stale_after_sec)

    changed = []
    for bus in buses:
        if not bus.is_live or bus.status != BusStatus.RUNNING:
            continue
        seen = bus.last_seen
        if seen is None:
            try:
                seen = dtparse.isoparse(bus.last_updated)
            except (TypeError, ValueError):
                _log.warning("[sim] bus=%s has unparseable lastUpdated=%r", bus.id, bus.last_updated)
                continue
        if seen.tzinfo is None:
            seen = seen.replace(tzinfo=timezone.utc)
        if seen < cutoff:
            bus.status = BusStatus.SIGNAL_LOST
            changed.append(bus.id)
            _log.warning("[sim] bus=%s (%s) signal lost; last report %s", bus.id, bus.bus_number, seen.isoformat())
    return changed
