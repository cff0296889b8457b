"""Change fingerprints for a queue's schedule.

A fingerprint is the SHA-256 of the canonical JSON form of a queue's outage
intervals. Intervals are normalized to UTC and sorted before serialization,
so the same set of outages always yields the same digest regardless of feed
order or timestamp offsets.
"""

import hashlib
import json
from datetime import date, timedelta, timezone, tzinfo
from typing import List, Optional

from modules.schedules.models import DayFingerprints, OutageInterval, ScheduleSnapshot
from modules.schedules.parser import parse_queue


def _canonical(intervals: List[OutageInterval]) -> str:
    entries = sorted(
        (
            {
                "start": i.start.astimezone(timezone.utc).isoformat(),
                "end": i.end.astimezone(timezone.utc).isoformat(),
                "possible": i.possible,
            }
            for i in intervals
        ),
        key=lambda e: (e["start"], e["end"], e["possible"]),
    )
    return json.dumps(entries, sort_keys=True, separators=(",", ":"))


def fingerprint_intervals(intervals: List[OutageInterval]) -> str:
    return hashlib.sha256(_canonical(intervals).encode("utf-8")).hexdigest()


def compute_fingerprint(
    snapshot: ScheduleSnapshot,
    queue: str,
    date_filter: Optional[date] = None,
    tz: tzinfo = timezone.utc,
) -> str:
    """Fingerprint the slice of ``snapshot`` relevant to ``queue``.

    Args:
        snapshot: Feed snapshot
        queue: Queue identifier
        date_filter: Only include outages starting on this day (in ``tz``)
        tz: Timezone for naive feed timestamps and the day filter

    Returns:
        Hex digest.
    """
    intervals = parse_queue(snapshot.raw_payload, queue, tz).intervals
    if date_filter is not None:
        intervals = [i for i in intervals if i.starts_on(date_filter, tz)]
    return fingerprint_intervals(intervals)


def has_changed(new: str, stored: Optional[str]) -> bool:
    """True if ``new`` differs from ``stored``; no stored value counts as changed."""
    return stored is None or new != stored


def compute_day_fingerprints(
    snapshot: ScheduleSnapshot,
    queue: str,
    today: date,
    tz: tzinfo = timezone.utc,
) -> DayFingerprints:
    """Fingerprint the today and tomorrow slices of ``queue``."""
    intervals = parse_queue(snapshot.raw_payload, queue, tz).intervals
    tomorrow = today + timedelta(days=1)
    tomorrow_intervals = [i for i in intervals if i.starts_on(tomorrow, tz)]
    return DayFingerprints(
        day=today,
        today=fingerprint_intervals([i for i in intervals if i.starts_on(today, tz)]),
        tomorrow=fingerprint_intervals(tomorrow_intervals),
        tomorrow_empty=not tomorrow_intervals,
    )
