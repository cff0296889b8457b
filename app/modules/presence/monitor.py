"""Presence monitoring.

Probes every recipient's router, feeds the reading to the debouncer and, on a
confirmed power transition, notifies the recipient. Debounce state is
committed once per recipient and cycle, after any delivery has settled.
"""

import asyncio
from datetime import timezone, tzinfo
from typing import List, Optional

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
    PROBE_CONCURRENT,
    PROBE_PER_MINUTE,
    USERS_ACTIONS_PER_MINUTE,
    USERS_CONCURRENT,
    notification_denial,
)
from modules.presence.debouncer import SignalDebouncer
from modules.presence.models import PresenceTransition
from modules.presence.probe import ReachabilityProbe
from modules.recipients import RecipientState, RecipientStateStore
from modules.schedules.feed import FeedFetcher
from modules.schedules.formatter import format_power_message
from modules.schedules.models import NextEvent
from modules.schedules.parser import find_next_event, parse_queue

logger = get_module_logger()


class PresenceMonitor:
    """Probe -> debounce -> admit -> dispatch -> commit, per recipient.

    Args:
        probe: Reachability probe
        store: Recipient state store
        dispatcher: Notification dispatcher
        debouncer: Signal debouncer with the configured window
        gate: Capacity admission gate
        alerts: Optional alert dispatcher receiving error observations
        clock: Time source
        fetcher: Optional feed fetcher used to mention the next planned
            change in power messages
        tz: Timezone times are shown in
        max_concurrency: Probes in flight at once. Further probes wait for
            a free slot; keep it below the critical share of
            ``probe.concurrent`` (see ``probe_slots``)
    """

    def __init__(
        self,
        probe: ReachabilityProbe,
        store: RecipientStateStore,
        dispatcher: NotificationDispatcher,
        debouncer: Optional[SignalDebouncer] = None,
        gate: Optional[AdmissionGate] = None,
        alerts: Optional[AlertDispatcher] = None,
        clock: Optional[Clock] = None,
        fetcher: Optional[FeedFetcher] = None,
        tz: tzinfo = timezone.utc,
        max_concurrency: int = 50,
    ):
        self.probe = probe
        self.store = store
        self.dispatcher = dispatcher
        self.debouncer = debouncer or SignalDebouncer()
        self.gate = gate or OpenGate()
        self.alerts = alerts
        self.clock = clock or SystemClock()
        self.fetcher = fetcher
        self.tz = tz
        self._semaphore = asyncio.Semaphore(max(max_concurrency, 1))

    async def check_all(self) -> List[PresenceTransition]:
        """Probe every recipient with a probe target once.

        Returns:
            Confirmed transitions that were processed in this cycle.
        """
        recipients = self.store.list_with_probe()
        with bind_cycle_context(trigger="probe_check"):
            results = await asyncio.gather(
                *(self._check_safely(recipient) for recipient in recipients)
            )
            transitions = [event for event in results if event is not None]
            logger.info(
                "probe_check_completed",
                recipients=len(recipients),
                transitions=len(transitions),
            )
        return transitions

    async def _check_safely(
        self, recipient: RecipientState
    ) -> Optional[PresenceTransition]:
        try:
            async with self._semaphore:
                return await self.check_recipient(recipient)
        except Exception as e:
            logger.error(
                "recipient_presence_check_failed",
                recipient_id=recipient.recipient_id,
                error=str(e),
                exc_info=True,
            )
            if self.alerts is not None:
                await self.alerts.record_error("presence_monitor", e)
            return None

    async def check_recipient(
        self, recipient: RecipientState
    ) -> Optional[PresenceTransition]:
        """Probe one recipient and act on a confirmed transition.

        Returns:
            The confirmed transition, if one was processed.
        """
        if not self.gate.admit(PROBE_PER_MINUTE):
            logger.info(
                "probe_deferred",
                recipient_id=recipient.recipient_id,
                dimension=PROBE_PER_MINUTE,
            )
            return None

        self.gate.record(PROBE_PER_MINUTE)
        self.gate.record(PROBE_CONCURRENT)
        try:
            reading = await self.probe.check(recipient.probe_host, recipient.probe_port)
        finally:
            self.gate.release(PROBE_CONCURRENT)

        state, event = self.debouncer.observe(
            recipient.presence, reading, self.clock.now()
        )

        if event is None:
            if state != recipient.presence:
                self.store.commit(recipient.recipient_id, presence=state)
            return None

        logger.info(
            "power_transition_confirmed",
            recipient_id=recipient.recipient_id,
            previous=event.previous.value,
            current=event.current.value,
            changed_at=event.changed_at.isoformat(),
        )

        delivery_recipient = recipient.to_delivery_recipient()
        if not delivery_recipient.has_reachable_destination:
            self.store.commit(recipient.recipient_id, presence=state)
            return event

        denied = notification_denial(self.gate, recipient.recipient_id)
        if denied is not None:
            logger.info(
                "power_notification_deferred",
                recipient_id=recipient.recipient_id,
                dimension=denied,
            )
            return None

        text = format_power_message(
            event, await self._next_event(recipient), tz=self.tz
        )
        self.gate.record(USERS_CONCURRENT)
        try:
            report = await self.dispatcher.deliver(
                delivery_recipient, Payload(kind="power", text=text)
            )
        finally:
            self.gate.release(USERS_CONCURRENT)

        if report.deferred:
            logger.info(
                "power_notification_deferred",
                recipient_id=recipient.recipient_id,
                reason="all_destinations_throttled",
            )
            return None

        self.gate.record(USERS_ACTIONS_PER_MINUTE, key=recipient.recipient_id)
        self.store.commit(recipient.recipient_id, presence=state, **report.updates)
        return event

    async def _next_event(self, recipient: RecipientState) -> Optional[NextEvent]:
        if self.fetcher is None or not recipient.region or not recipient.queue:
            return None
        try:
            snapshot = await self.fetcher.fetch(recipient.region)
        except FetchFailed as e:
            logger.debug(
                "next_event_unavailable",
                recipient_id=recipient.recipient_id,
                error=str(e),
            )
            return None
        schedule = parse_queue(snapshot.raw_payload, recipient.queue, self.tz)
        return find_next_event(schedule.intervals, self.clock.now())
