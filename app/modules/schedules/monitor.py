"""Schedule change monitoring.

For every region with recipients, fetches the feed once and, per recipient,
runs detect -> admit -> dispatch -> commit:

1. Compute the fingerprint of the recipient's queue. Unchanged: nothing to do.
2. Equal to the last delivered fingerprint: the schedule flipped back to what
   the recipient already saw, so only the observed fingerprint is synced.
3. Otherwise check admission (``messages.per_minute`` and the ``users.*``
   dimensions), build the message with a best-effort image, dispatch, then
   commit the fingerprint together with the report's state updates in one
   write.

When capacity denies every destination before a send, nothing is committed
and the change is picked up on the next cycle. One recipient's failure never
aborts the batch; one region's fetch failure never affects other regions.
"""

from datetime import timezone, tzinfo
from typing import Dict, Optional

from infrastructure.logging import bind_cycle_context, get_module_logger
from infrastructure.notifications import (
    AdmissionGate,
    NotificationDispatcher,
    OpenGate,
    Payload,
)
from infrastructure.operations import FetchFailed
from infrastructure.resilience import Clock, SystemClock
from modules.alerts import AlertDispatcher
from modules.capacity.limits import (
    MESSAGE_QUEUE_SIZE,
    USERS_ACTIONS_PER_MINUTE,
    USERS_CONCURRENT,
    notification_denial,
)
from modules.recipients import RecipientState, RecipientStateStore
from modules.schedules.feed import FeedFetcher
from modules.schedules.fingerprint import (
    compute_day_fingerprints,
    compute_fingerprint,
    has_changed,
)
from modules.schedules.formatter import format_schedule_message, region_name
from modules.schedules.models import DayFingerprints, ScheduleSnapshot, UpdateKind
from modules.schedules.parser import find_next_event, parse_queue

logger = get_module_logger()


class ScheduleMonitor:
    """Detects schedule changes and notifies recipients.

    Args:
        fetcher: Feed fetcher
        store: Recipient state store
        dispatcher: Notification dispatcher
        gate: Capacity admission gate (the governor in production)
        alerts: Optional alert dispatcher receiving error observations
        clock: Time source
        tz: Timezone of the feed
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        store: RecipientStateStore,
        dispatcher: NotificationDispatcher,
        gate: Optional[AdmissionGate] = None,
        alerts: Optional[AlertDispatcher] = None,
        clock: Optional[Clock] = None,
        tz: tzinfo = timezone.utc,
    ):
        self.fetcher = fetcher
        self.store = store
        self.dispatcher = dispatcher
        self.gate = gate or OpenGate()
        self.alerts = alerts
        self.clock = clock or SystemClock()
        self.tz = tz

    async def check_all(self) -> Dict[str, int]:
        """Check every region that has recipients.

        Returns:
            Number of recipients notified per region.
        """
        regions = sorted(
            {r.region for r in self.store.list_all() if r.region and r.queue}
        )
        results = {}
        with bind_cycle_context(trigger="schedule_check"):
            for region in regions:
                results[region] = await self.check_region(region)
            logger.info(
                "schedule_check_completed",
                regions=len(regions),
                notified=sum(results.values()),
            )
        return results

    async def check_region(self, region: str) -> int:
        """Check all recipients of ``region``.

        Returns:
            Number of recipients notified.
        """
        try:
            snapshot = await self.fetcher.fetch(region)
        except FetchFailed as e:
            logger.error(
                "region_check_failed",
                region=region,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._report_error(f"feed:{region}", e)
            return 0

        if snapshot.stale:
            logger.warning("region_checked_with_stale_snapshot", region=region)

        recipients = [r for r in self.store.list_by_region(region) if r.queue]
        notified = 0

        self.gate.record(MESSAGE_QUEUE_SIZE, len(recipients))
        for recipient in recipients:
            try:
                if await self.check_recipient(recipient, snapshot):
                    notified += 1
            except Exception as e:
                logger.error(
                    "recipient_schedule_check_failed",
                    recipient_id=recipient.recipient_id,
                    region=region,
                    queue=recipient.queue,
                    error=str(e),
                    exc_info=True,
                )
                await self._report_error("schedule_monitor", e)
            finally:
                self.gate.release(MESSAGE_QUEUE_SIZE)

        return notified

    async def check_recipient(
        self, recipient: RecipientState, snapshot: ScheduleSnapshot
    ) -> bool:
        """Run one detect -> admit -> dispatch -> commit cycle.

        Returns:
            True if the recipient received the schedule on any destination.
        """
        delivery_recipient = recipient.to_delivery_recipient()
        if not delivery_recipient.has_reachable_destination:
            return False

        schedule = parse_queue(snapshot.raw_payload, recipient.queue, self.tz)
        if not schedule.has_data:
            return False

        fingerprint = compute_fingerprint(snapshot, recipient.queue, tz=self.tz)
        if not has_changed(fingerprint, recipient.schedule_fingerprint):
            return False

        now = self.clock.now()
        day_fingerprints = compute_day_fingerprints(
            snapshot, recipient.queue, now.astimezone(self.tz).date(), self.tz
        )

        if fingerprint == recipient.published_fingerprint:
            self.store.commit(
                recipient.recipient_id,
                schedule_fingerprint=fingerprint,
                day_fingerprints=day_fingerprints,
            )
            logger.info(
                "schedule_fingerprint_synced",
                recipient_id=recipient.recipient_id,
                region=snapshot.region,
            )
            return False

        denied = notification_denial(self.gate, recipient.recipient_id)
        if denied is not None:
            logger.info(
                "schedule_notification_deferred",
                recipient_id=recipient.recipient_id,
                dimension=denied,
            )
            return False

        payload = await self._build_payload(recipient, snapshot, day_fingerprints)
        self.gate.record(USERS_CONCURRENT)
        try:
            report = await self.dispatcher.deliver(delivery_recipient, payload)
        finally:
            self.gate.release(USERS_CONCURRENT)

        if report.deferred:
            logger.info(
                "schedule_notification_deferred",
                recipient_id=recipient.recipient_id,
                reason="all_destinations_throttled",
            )
            return False

        self.gate.record(USERS_ACTIONS_PER_MINUTE, key=recipient.recipient_id)
        changes = dict(report.updates)
        changes["schedule_fingerprint"] = fingerprint
        changes["day_fingerprints"] = day_fingerprints
        if report.any_success:
            changes["published_fingerprint"] = fingerprint
        self.store.commit(recipient.recipient_id, **changes)

        logger.info(
            "schedule_change_processed",
            recipient_id=recipient.recipient_id,
            region=snapshot.region,
            queue=recipient.queue,
            delivered=report.any_success,
            update_kind=payload.variables.get("update"),
        )
        return report.any_success

    async def _build_payload(
        self,
        recipient: RecipientState,
        snapshot: ScheduleSnapshot,
        day_fingerprints: DayFingerprints,
    ) -> Payload:
        schedule = parse_queue(snapshot.raw_payload, recipient.queue, self.tz)
        next_event = find_next_event(schedule.intervals, self.clock.now())
        update_kind = day_fingerprints.classify(recipient.day_fingerprints)

        text = format_schedule_message(
            snapshot.region,
            schedule,
            next_event,
            tz=self.tz,
            update_kind=None if update_kind == UpdateKind.FIRST else update_kind,
        )

        media = None
        try:
            media = await self.fetcher.fetch_image(snapshot.region, recipient.queue)
        except FetchFailed as e:
            logger.warning(
                "schedule_image_unavailable",
                recipient_id=recipient.recipient_id,
                region=snapshot.region,
                queue=recipient.queue,
                error=str(e),
            )

        return Payload(
            kind="schedule",
            text=text,
            media=media,
            replace_previous=True,
            variables={
                "region": region_name(snapshot.region),
                "queue": recipient.queue,
                "update": update_kind.value,
            },
        )

    async def _report_error(self, source: str, error: Exception) -> None:
        if self.alerts is not None:
            await self.alerts.record_error(source, error)
