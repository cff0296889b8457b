"""Operator alert dispatcher.

Alerts go through three gates before they are delivered:
- Suppression: the same (type, title) does not fire again within the cooldown
- Global cap: no more than ``max_per_hour`` alerts in the trailing hour
- Escalation: a signature that already fired ``escalation_threshold`` times
  is bumped one level (INFO -> WARN -> CRITICAL)

Delivery goes through an injected async callback. Its failures are logged and
never reach the caller.

Usage:
    alerts = AlertDispatcher(delivery=send_to_operator_chat, clock=clock)

    await alerts.generate(
        AlertType.SYSTEM,
        AlertLevel.WARN,
        "Messages per minute at warning",
        "messages.per_minute is at 82% of its limit",
    )
"""

from collections import deque
from datetime import datetime, timedelta
from html import escape
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

from infrastructure.configuration.features import AlertSettings
from infrastructure.logging import get_module_logger
from infrastructure.resilience import Clock, SystemClock
from modules.alerts.models import Alert, AlertLevel, AlertRecord, AlertType, Signature

logger = get_module_logger()

DeliveryCallback = Callable[[str, Alert], Awaitable[Any]]

_LEVEL_ICONS = {
    AlertLevel.INFO: "ℹ️",
    AlertLevel.WARN: "⚠️",
    AlertLevel.CRITICAL: "🚨",
}

_TYPE_ICONS = {
    AlertType.SYSTEM: "💻",
    AlertType.APPLICATION: "⚙️",
    AlertType.BUSINESS: "📊",
    AlertType.PROBE: "🌐",
    AlertType.CHANNEL: "📺",
}

_LOG_METHODS = {
    AlertLevel.INFO: "info",
    AlertLevel.WARN: "warning",
    AlertLevel.CRITICAL: "error",
}


class AlertDispatcher:
    """Deduplicating, rate-capped alert generator.

    Args:
        delivery: Async callback receiving (formatted_text, alert)
        clock: Time source
        debounce_minutes: Cooldown per (type, title)
        max_per_hour: Global cap over the trailing hour
        escalation_threshold: Prior occurrences before a level is bumped
        error_burst_threshold: Errors from one source that trigger an alert
        error_window_minutes: Window for counting errors per source
        retention_days: How long fired alerts stay in history
        history_size: Maximum number of alerts kept in history
    """

    def __init__(
        self,
        delivery: Optional[DeliveryCallback] = None,
        clock: Optional[Clock] = None,
        debounce_minutes: float = 15,
        max_per_hour: int = 20,
        escalation_threshold: int = 3,
        error_burst_threshold: int = 5,
        error_window_minutes: float = 10,
        retention_days: int = 7,
        history_size: int = 1000,
    ):
        self.delivery = delivery
        self.clock = clock or SystemClock()
        self.cooldown = timedelta(minutes=debounce_minutes)
        self.max_per_hour = max_per_hour
        self.escalation_threshold = escalation_threshold
        self.error_burst_threshold = error_burst_threshold
        self.error_window = timedelta(minutes=error_window_minutes)
        self.retention = timedelta(days=retention_days)

        self._history: Deque[Alert] = deque(maxlen=history_size)
        self._records: Dict[Signature, AlertRecord] = {}
        self._errors: Dict[str, Deque[datetime]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: AlertSettings,
        delivery: Optional[DeliveryCallback] = None,
        clock: Optional[Clock] = None,
    ) -> "AlertDispatcher":
        return cls(
            delivery=delivery,
            clock=clock,
            debounce_minutes=settings.debounce_minutes,
            max_per_hour=settings.max_per_hour,
            escalation_threshold=settings.escalation_threshold,
            error_burst_threshold=settings.error_burst_threshold,
            error_window_minutes=settings.error_window_minutes,
            retention_days=settings.retention_days,
            history_size=settings.history_size,
        )

    def set_delivery(self, delivery: Optional[DeliveryCallback]) -> None:
        self.delivery = delivery

    async def generate(
        self,
        alert_type: AlertType,
        level: AlertLevel,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        action: Optional[str] = None,
    ) -> Optional[Alert]:
        """Fire an alert unless it is suppressed.

        Returns:
            The fired Alert, or None when suppressed by the cooldown or the
            hourly cap.
        """
        now = self.clock.now()
        signature: Signature = (alert_type.value, title)
        record = self._records.get(signature)

        if record is not None and now - record.last_fired_at < self.cooldown:
            logger.debug("alert_suppressed", reason="cooldown", signature=signature)
            return None

        if self._fired_since(now - timedelta(hours=1)) >= self.max_per_hour:
            logger.warning(
                "alert_suppressed",
                reason="hourly_cap",
                signature=signature,
                title=title,
                level=level.value,
            )
            return None

        prior = record.occurrence_count if record else 0
        if prior >= self.escalation_threshold:
            level = level.escalated()

        alert = Alert(
            type=alert_type,
            level=level,
            title=title,
            message=message,
            timestamp=now,
            data=dict(data or {}),
            action=action,
            occurrence_count=prior + 1,
        )

        self._history.append(alert)
        self._records[signature] = AlertRecord(
            signature=signature,
            level=level,
            last_fired_at=now,
            occurrence_count=prior + 1,
        )

        getattr(logger, _LOG_METHODS[level])(
            "alert_fired",
            alert_type=alert_type.value,
            level=level.value,
            title=title,
            alert_message=message,
            occurrence_count=alert.occurrence_count,
            data=alert.data,
        )

        await self._deliver(alert)
        return alert

    async def _deliver(self, alert: Alert) -> None:
        if self.delivery is None:
            return
        try:
            await self.delivery(self.format_alert(alert), alert)
        except Exception as e:
            logger.error(
                "alert_delivery_failed",
                title=alert.title,
                level=alert.level.value,
                error=str(e),
            )

    def _fired_since(self, cutoff: datetime) -> int:
        return sum(1 for alert in self._history if alert.timestamp > cutoff)

    async def record_error(
        self, source: str, error: Union[BaseException, str]
    ) -> Optional[Alert]:
        """Count an error from ``source`` and alert on a burst.

        Returns:
            The fired Alert when the burst threshold is reached, else None.
        """
        now = self.clock.now()
        window = self._errors.setdefault(source, deque())
        window.append(now)
        while window and now - window[0] > self.error_window:
            window.popleft()

        if len(window) < self.error_burst_threshold:
            return None

        count = len(window)
        window.clear()
        minutes = int(self.error_window.total_seconds() // 60)
        return await self.generate(
            AlertType.APPLICATION,
            AlertLevel.WARN,
            f"Repeated errors: {source}",
            f"{count} errors in the last {minutes} min",
            data={"source": source, "last_error": str(error)[:200], "count": count},
            action="Check the logs for this component",
        )

    def sweep(self) -> int:
        """Drop expired history and cooldown entries.

        Returns:
            Number of history entries removed.
        """
        now = self.clock.now()
        cutoff = now - self.retention
        before = len(self._history)
        kept = [alert for alert in self._history if alert.timestamp >= cutoff]
        self._history.clear()
        self._history.extend(kept)

        expired = [
            signature
            for signature, record in self._records.items()
            if now - record.last_fired_at >= self.retention
        ]
        for signature in expired:
            del self._records[signature]

        for source in [s for s, w in self._errors.items() if not w or now - w[-1] > self.error_window]:
            del self._errors[source]

        removed = before - len(self._history)
        logger.info(
            "alert_history_swept",
            removed=removed,
            remaining=len(self._history),
            expired_signatures=len(expired),
        )
        return removed

    def recent(self, count: int = 10, level: Optional[AlertLevel] = None) -> List[Alert]:
        alerts = [a for a in self._history if level is None or a.level == level]
        return alerts[-count:] if count > 0 else []

    def summary(self) -> Dict[str, Any]:
        now = self.clock.now()
        last_day = [a for a in self._history if now - a.timestamp < timedelta(days=1)]
        return {
            "total": len(self._history),
            "last_hour": self._fired_since(now - timedelta(hours=1)),
            "last_day": len(last_day),
            "by_level": {
                level.value: sum(1 for a in last_day if a.level == level)
                for level in AlertLevel
            },
            "recent_critical": [a.title for a in self.recent(5, AlertLevel.CRITICAL)],
        }

    @staticmethod
    def format_alert(alert: Alert) -> str:
        """Render an alert as HTML for the operator chat."""
        lines = [
            f"{_LEVEL_ICONS.get(alert.level, 'ℹ️')} <b>{alert.level.value}</b> "
            f"{_TYPE_ICONS.get(alert.type, '🔔')} <b>{escape(alert.title)}</b>",
            "",
            escape(alert.message),
        ]
        if alert.occurrence_count > 1:
            lines.extend(["", f"🔄 Repeated: {alert.occurrence_count} times"])
        if alert.data:
            lines.extend(["", "<b>Details:</b>"])
            lines.extend(
                f"• {escape(str(key))}: {escape(str(value))}"
                for key, value in alert.data.items()
            )
        if alert.action:
            lines.extend(["", f"💡 <b>Action:</b> {escape(alert.action)}"])
        lines.extend(["", f"⏰ {alert.timestamp.strftime('%Y-%m-%d %H:%M:%S %Z')}".rstrip()])
        return "\n".join(lines)
