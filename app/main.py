import asyncio
import signal
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from infrastructure.configuration import Settings
from infrastructure.events import CHANNEL_BLOCKED, Event, EventBus
from infrastructure.logging import get_module_logger
from infrastructure.notifications import NotificationDispatcher, TelegramChannel
from infrastructure.operations import ConfigInvalid
from infrastructure.resilience import RetryConfig, SystemClock
from infrastructure.services import get_settings
from jobs import scheduled_tasks
from modules.alerts import AlertDispatcher, AlertLevel, AlertType
from modules.capacity import CapacityMonitor, build_governor, probe_slots
from modules.presence import SignalDebouncer
from modules.presence.monitor import PresenceMonitor
from modules.presence.probe import ReachabilityProbe
from modules.recipients import InMemoryRecipientStore, load_recipients
from modules.schedules.feed import FeedFetcher
from modules.schedules.monitor import ScheduleMonitor

logger = get_module_logger()

load_dotenv()


def list_configs(settings: Settings):
    """List all configuration settings keys"""
    config_settings = {"settings": []}

    for key, value in settings.model_dump().items():
        if isinstance(value, dict):
            config_settings[key] = list(value.keys())
        else:
            config_settings["settings"].append({key: value})

    logger.info("configuration_initialized", base_settings=config_settings["settings"])
    for key, value in config_settings.items():
        if key != "settings":
            logger.info("configuration_loaded", config_setting=key, keys=value)


def build_store(settings: Settings) -> InMemoryRecipientStore:
    if settings.RECIPIENTS_FILE:
        return load_recipients(settings.RECIPIENTS_FILE)
    logger.warning("recipients_file_not_configured")
    return InMemoryRecipientStore()


async def main(settings: Settings):
    """Wire the pipeline and run the recurring triggers until stopped."""
    logger.info("application_startup")
    list_configs(settings)

    token = settings.telegram.TELEGRAM_BOT_TOKEN
    if not token:
        raise ConfigInvalid("TELEGRAM_BOT_TOKEN is not set")

    clock = SystemClock()
    tz = ZoneInfo(settings.feed.timezone)
    event_bus = EventBus()
    governor = build_governor(settings.capacity, clock)

    channel = TelegramChannel(
        token=token,
        api_url=settings.telegram.TELEGRAM_API_URL,
        timeout_seconds=settings.delivery.timeout_seconds,
    )
    dispatcher = NotificationDispatcher(
        channel=channel,
        retry_config=RetryConfig(
            max_attempts=settings.delivery.max_attempts,
            base_delay_seconds=settings.delivery.base_delay_seconds,
            max_delay_seconds=settings.delivery.max_delay_seconds,
            max_total_delay_seconds=settings.delivery.max_total_delay_seconds,
        ),
        gate=governor,
        clock=clock,
        event_bus=event_bus,
    )

    alerts = AlertDispatcher.from_settings(settings.alerts, clock=clock)
    alert_chat_id = settings.alerts.chat_id
    if alert_chat_id:

        async def send_alert(text, alert):
            result = await channel.send_text(alert_chat_id, text)
            if not result.is_success:
                logger.error(
                    "alert_send_failed", title=alert.title, error=result.message
                )

        alerts.set_delivery(send_alert)

    @event_bus.subscribe(CHANNEL_BLOCKED)
    async def on_channel_blocked(event: Event):
        await alerts.generate(
            AlertType.CHANNEL,
            AlertLevel.INFO,
            "Broadcast channel lost",
            f"Recipient {event.recipient_id} no longer accepts channel posts",
            data=event.metadata,
        )

    store = build_store(settings)
    fetcher = FeedFetcher.from_settings(settings.feed, clock=clock)
    probe = ReachabilityProbe(
        timeout_seconds=settings.presence.probe_timeout_seconds,
        default_port=settings.presence.default_port,
    )

    schedule_monitor = ScheduleMonitor(
        fetcher, store, dispatcher, gate=governor, alerts=alerts, clock=clock, tz=tz
    )
    presence_monitor = PresenceMonitor(
        probe,
        store,
        dispatcher,
        debouncer=SignalDebouncer(settings.presence.debounce_minutes),
        gate=governor,
        alerts=alerts,
        clock=clock,
        fetcher=fetcher,
        tz=tz,
        max_concurrency=probe_slots(settings.capacity),
    )

    tasks = scheduled_tasks.ScheduledTasks()
    capacity_monitor = CapacityMonitor(
        governor,
        alerts,
        store,
        on_slowdown=tasks.apply_slowdown,
        event_bus=event_bus,
    )
    scheduled_tasks.init(
        tasks, settings, schedule_monitor, presence_monitor, capacity_monitor, alerts
    )

    health = await dispatcher.health_check()
    logger.info("delivery_health_checked", channels=health)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await tasks.run_continuously(stop=stop)
    finally:
        await fetcher.aclose()
        await probe.aclose()
        await channel.aclose()
        logger.info("application_shutdown")


if __name__ == "__main__":
    asyncio.run(main(get_settings()))
