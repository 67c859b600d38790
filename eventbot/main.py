import asyncio
import logging
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from eventbot.bot.channel import DiscordChannel
from eventbot.bot.discord_bot import EventBot
from eventbot.config import Settings, load_message_templates, load_settings
from eventbot.health.server import create_app
from eventbot.logging_config import setup_logging
from eventbot.services.notifier import Notifier
from eventbot.services.policy import PolicyConfig
from eventbot.services.scheduler import AnnouncementScheduler
from eventbot.services.sheet_import import SheetsService
from eventbot.storage.event_store import JsonEventStore
from eventbot.utils.http import HttpClient

log = logging.getLogger("main")

async def start_health_server(app: FastAPI, host: str, port: int) -> None:
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    await server.serve()

def make_policy(s: Settings) -> PolicyConfig:
    return PolicyConfig(
        tz_name=s.timezone,
        days_ahead=s.days_ahead,
        advance_cutoff=s.advance_cutoff_time,
        reminder_lead=timedelta(minutes=s.reminder_lead_minutes),
        reminder_tolerance=timedelta(minutes=s.reminder_tolerance_minutes),
        reminder_catchup_grace=timedelta(minutes=s.reminder_catchup_grace_minutes),
    )

async def main() -> None:
    setup_logging()
    s = load_settings()

    store = JsonEventStore(s.events_path, s.images_dir)
    log.info("Loaded %d events from %s", len(store.list()), s.events_path)

    templates = load_message_templates(s.messages_path)
    if templates:
        log.info("Using message templates from %s", s.messages_path)

    http = HttpClient()
    sheets = SheetsService(http, s.google_sheets_id, s.google_sheets_range)
    if not sheets.is_configured:
        log.warning("Google Sheets not configured; !sync is disabled")

    # The bot is the channel transport, so the notifier gets its channel after the bot exists.
    notifier = Notifier(channel=None, timeout_seconds=s.send_timeout_seconds, templates=templates)
    scheduler = AnnouncementScheduler(
        store=store,
        notifier=notifier,
        policy=make_policy(s),
        advance_hour=s.advance_trigger_time.hour,
        advance_minute=s.advance_trigger_time.minute,
        reminder_check_minutes=s.reminder_check_minutes,
        catch_up_enabled=s.catch_up_enabled,
        catch_up_minutes=s.catch_up_minutes,
        cleanup_days=s.cleanup_days,
    )
    bot = EventBot(settings=s, store=store, scheduler=scheduler, sheets=sheets)
    notifier.channel = DiscordChannel(bot, s.announcements_channel_id)

    try:
        await asyncio.gather(
            start_health_server(create_app(store), s.health_host, s.health_port),
            bot.start(s.discord_token),
        )
    finally:
        if scheduler.sched.running:
            scheduler.shutdown()
        await http.aclose()
        if not bot.is_closed():
            await bot.close()

def run() -> None:
    asyncio.run(main())

if __name__ == "__main__":
    run()
