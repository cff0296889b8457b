"""HTML message text for schedule and power notifications."""

from datetime import datetime, timezone, tzinfo
from html import escape
from typing import List, Optional

from modules.presence.models import PowerState, PresenceTransition
from modules.schedules.models import EventKind, NextEvent, QueueSchedule, UpdateKind

REGION_NAMES = {
    "kyiv": "Kyiv",
    "kyiv-region": "Kyiv region",
    "dnipro": "Dnipro",
    "odesa": "Odesa",
}

_UPDATE_HEADERS = {
    UpdateKind.TODAY_UPDATED: "🔄 <b>Today's schedule was updated</b>",
    UpdateKind.TOMORROW_PUBLISHED: "📅 <b>Tomorrow's schedule is out</b>",
    UpdateKind.TOMORROW_UPDATED: "🔄 <b>Tomorrow's schedule was updated</b>",
    UpdateKind.UPDATED: "🔄 <b>Schedule updated</b>",
}


def region_name(region: str) -> str:
    return REGION_NAMES.get(region, region)


def format_duration(seconds: float) -> str:
    """Render a duration as ``"3 h 20 min"`` / ``"45 min"``."""
    minutes = max(int(seconds // 60), 0)
    hours, mins = divmod(minutes, 60)
    if hours:
        return f"{hours} h {mins} min"
    return f"{mins} min"


def _hhmm(moment: datetime, tz: tzinfo) -> str:
    return moment.astimezone(tz).strftime("%H:%M")


def _status_lines(next_event: Optional[NextEvent], tz: tzinfo) -> List[str]:
    if next_event is None:
        return ["🟢 <b>Power is on</b>", "ℹ️ No further outages planned"]
    possible = ["⚠️ Possible outage"] if next_event.possible else []
    if next_event.kind == EventKind.POWER_ON:
        return [
            "🔴 <b>Power is off</b>",
            f"⏰ Back in {format_duration(next_event.minutes * 60)} "
            f"({_hhmm(next_event.at, tz)})",
        ] + possible
    return [
        "🟢 <b>Power is on</b>",
        f"⏰ Next outage in {format_duration(next_event.minutes * 60)} "
        f"({_hhmm(next_event.at, tz)})",
    ] + possible


def format_schedule_message(
    region: str,
    schedule: QueueSchedule,
    next_event: Optional[NextEvent],
    tz: tzinfo = timezone.utc,
    update_kind: Optional[UpdateKind] = None,
) -> str:
    """Build the schedule notification text.

    Args:
        region: Region identifier
        schedule: Parsed queue schedule
        next_event: Next planned power change, if any
        tz: Timezone times are shown in
        update_kind: What changed since the last notification

    Returns:
        HTML text suitable as a photo caption or a plain message.
    """
    lines: List[str] = []
    header = _UPDATE_HEADERS.get(update_kind) if update_kind else None
    if header:
        lines.append(header)
    lines.append("📋 <b>Outage schedule</b>")
    lines.append(f"📍 Region: {escape(region_name(region))}")
    lines.append(f"⚡️ Queue: {escape(schedule.queue)}")
    lines.append("")

    if not schedule.has_data or not schedule.intervals:
        lines.append("ℹ️ No outages in the schedule")
        return "\n".join(lines)

    lines.extend(_status_lines(next_event, tz))
    lines.append("")
    lines.append("<b>Planned outages:</b>")
    for index, interval in enumerate(schedule.intervals, start=1):
        day = interval.start.astimezone(tz).strftime("%d.%m")
        suffix = " (possible)" if interval.possible else ""
        lines.append(
            f"{index}. {day} {_hhmm(interval.start, tz)} - {_hhmm(interval.end, tz)}{suffix}"
        )
    return "\n".join(lines)


def format_power_message(
    event: PresenceTransition,
    next_event: Optional[NextEvent] = None,
    tz: tzinfo = timezone.utc,
) -> str:
    """Build the power on/off notification text."""
    duration = event.previous_duration_seconds
    at = _hhmm(event.changed_at, tz)

    if event.current == PowerState.ON:
        lines = [f"🟢 {at} Power is back"]
        if duration is not None:
            lines.append(f"🕓 It was off for {format_duration(duration)}")
        if next_event is not None and next_event.kind == EventKind.POWER_OFF:
            lines.append(f"🗓 Next planned outage: {_hhmm(next_event.at, tz)}")
        return "\n".join(lines)

    lines = [f"🔴 {at} Power is out"]
    if duration is not None:
        lines.append(f"🕓 It was on for {format_duration(duration)}")
    if next_event is not None and next_event.kind == EventKind.POWER_ON:
        lines.append(f"🗓 Expected back at {_hhmm(next_event.at, tz)}")
    return "\n".join(lines)
