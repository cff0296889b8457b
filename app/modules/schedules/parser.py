"""Extraction of per-queue outage intervals from a feed payload.

The feed keys each queue as ``GPV<queue>``; its value is either a list of
events or an object whose values are events. An event carries ``start`` and
``end`` timestamps and is flagged possible via ``type == "possible"`` or
``possible: true``. Events without both timestamps, or with timestamps that do
not parse, are skipped.
"""

from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from infrastructure.logging import get_module_logger
from modules.schedules.models import (
    EventKind,
    NextEvent,
    OutageInterval,
    QueueSchedule,
)

logger = get_module_logger()


def queue_key(queue: str) -> str:
    return f"GPV{queue}"


def _parse_timestamp(value: Any, tz: tzinfo) -> Optional[datetime]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch seconds, or milliseconds for large values
        seconds = value / 1000 if value > 10**11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _iter_events(queue_data: Any) -> Iterable[Any]:
    if isinstance(queue_data, list):
        return queue_data
    if isinstance(queue_data, dict):
        return queue_data.values()
    return []


def parse_queue(
    payload: Dict[str, Any], queue: str, tz: tzinfo = timezone.utc
) -> QueueSchedule:
    """Extract the outage intervals of ``queue`` from ``payload``.

    Args:
        payload: Decoded feed object
        queue: Queue identifier (e.g. "3.1")
        tz: Timezone applied to naive timestamps

    Returns:
        QueueSchedule with intervals sorted by start. ``has_data`` is False
        when the feed has no entry for the queue.
    """
    queue_data = payload.get(queue_key(queue)) if isinstance(payload, dict) else None
    if not queue_data:
        return QueueSchedule(queue=queue)

    intervals: List[OutageInterval] = []
    skipped = 0
    for event in _iter_events(queue_data):
        if not isinstance(event, dict):
            skipped += 1
            continue
        start = _parse_timestamp(event.get("start"), tz)
        end = _parse_timestamp(event.get("end"), tz)
        if start is None or end is None or end < start:
            skipped += 1
            continue
        intervals.append(
            OutageInterval(
                start=start,
                end=end,
                possible=event.get("type") == "possible" or event.get("possible") is True,
            )
        )

    if skipped:
        logger.debug("schedule_events_skipped", queue=queue, skipped=skipped)

    intervals.sort(key=lambda i: (i.start, i.end, i.possible))
    return QueueSchedule(queue=queue, intervals=intervals, has_data=True)


def _minutes_until(moment: datetime, now: datetime) -> int:
    return max(int((moment - now).total_seconds() // 60), 0)


def find_next_event(
    intervals: List[OutageInterval], now: datetime
) -> Optional[NextEvent]:
    """Return the next planned power change after ``now``.

    Inside an outage the next change is its end (power on); otherwise it is
    the start of the next outage (power off).
    """
    for interval in intervals:
        if interval.contains(now):
            return NextEvent(
                kind=EventKind.POWER_ON,
                at=interval.end,
                minutes=_minutes_until(interval.end, now),
                possible=interval.possible,
            )
        if now < interval.start:
            return NextEvent(
                kind=EventKind.POWER_OFF,
                at=interval.start,
                minutes=_minutes_until(interval.start, now),
                possible=interval.possible,
            )
    return None

