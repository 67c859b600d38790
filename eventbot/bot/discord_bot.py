import logging
import re
import shlex
import time
from datetime import date

import discord
from discord.ext import commands

from eventbot.bot.views import EventSelectView
from eventbot.config import Settings
from eventbot.models import Event, NotificationKind
from eventbot.services.scheduler import AnnouncementScheduler
from eventbot.services.selection import ManualAnnouncementFlow, SelectionOutcome, TimedOut
from eventbot.services.sheet_import import SheetsService, sync_events
from eventbot.storage.event_store import JsonEventStore, StoreError
from eventbot.utils.text import (
    build_event_embed,
    build_events_embed,
    chunk_message,
    fmt_date,
    fmt_value,
    format_dispatch_report,
)
from eventbot.utils.timeutil import local_today, now_local

log = logging.getLogger("bot.discord")

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
EDITABLE = ("title", "description", "date", "time", "location")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

def parse_event_date(raw: str) -> date | None:
    if not _DATE_RE.match(raw.strip()):
        return None
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        return None

def parse_edit_changes(text: str) -> dict[str, str]:
    """
    Parse the edit part of !editevent. Either one `<field> <value>` pair, or
    any number of `field=value` pairs (quote values with spaces:
    location="Main Hall").
    """
    text = text.strip()
    if not text:
        return {}

    if "=" not in text.split(maxsplit=1)[0]:
        name, _, value = text.partition(" ")
        pairs = [(name, value)]
    else:
        pairs = []
        for token in shlex.split(text):
            name, sep, value = token.partition("=")
            if not sep:
                raise ValueError(f"Expected field=value, got `{token}`")
            pairs.append((name, value))

    changes: dict[str, str] = {}
    for name, value in pairs:
        name, value = name.strip().lower(), value.strip()
        if name not in EDITABLE:
            raise ValueError(f"Unknown field `{name}`. Editable: {', '.join(EDITABLE)}")
        if not value:
            raise ValueError(f"Please give a new value for `{name}`.")
        changes[name] = value
    return changes

class EventBot(commands.Bot):
    def __init__(
        self,
        *,
        settings: Settings,
        store: JsonEventStore,
        scheduler: AnnouncementScheduler,
        sheets: SheetsService,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(command_prefix="!", intents=intents)

        self.settings = settings
        self.store = store
        self.scheduler = scheduler
        self.sheets = sheets
        self.manual_flow = ManualAnnouncementFlow(scheduler)
        self._scheduler_started = False

        self.add_check(self._in_command_channel)
        self._register_commands()

    async def _in_command_channel(self, ctx: commands.Context) -> bool:
        if self.settings.command_channel_id is None:
            return True
        return ctx.channel.id == self.settings.command_channel_id

    def _today(self) -> date:
        return local_today(now_local(self.settings.timezone), self.settings.timezone)

    def _register_commands(self) -> None:
        @self.command(name="addevent", help="!addevent <title> <YYYY-MM-DD> <time> <location> <description> (attach an image optionally)")
        async def add_event_cmd(ctx: commands.Context, title: str, date_str: str, time_str: str, location: str, *, description: str) -> None:
            day = parse_event_date(date_str)
            if day is None:
                await ctx.send("❌ Invalid date format! Please use YYYY-MM-DD (e.g. 2024-03-15).")
                return
            if day < self._today():
                await ctx.send("❌ Cannot create events for past dates!")
                return

            image_path = await self._save_attachment(ctx)
            try:
                event = self.store.create(
                    title=title,
                    description=description,
                    date=day,
                    time=time_str,
                    location=location,
                    image_path=image_path,
                    created_by=str(ctx.author.id),
                )
            except StoreError as ex:
                log.error("addevent failed: %s", ex)
                await ctx.send("❌ Could not save the event. Please try again.")
                return

            await ctx.send(embed=build_event_embed(event, title="✅ Event Created Successfully!"))

        @self.command(name="events", help="!events [all] - list upcoming (or all) events")
        async def list_events_cmd(ctx: commands.Context, scope: str = "") -> None:
            today = self._today()
            if scope.lower() == "all":
                events, title = self.store.list(), "📅 All Events"
            else:
                events, title = self.store.upcoming(today), "📅 Upcoming Events"
            await ctx.send(embed=build_events_embed(events, title=title, today=today))

        @self.command(
            name="editevent",
            help='!editevent <id or title> <field> <value>  or  !editevent <id or title> time="7 PM" location=Library ...',
        )
        async def edit_event_cmd(ctx: commands.Context, identifier: str, *, edits: str = "") -> None:
            event = await self._resolve_one(ctx, identifier)
            if event is None:
                return

            try:
                changes: dict = parse_edit_changes(edits)
            except ValueError as ex:
                await ctx.send(f"❌ {ex}")
                return

            if "date" in changes:
                day = parse_event_date(changes["date"])
                if day is None:
                    await ctx.send("❌ Invalid date format! Please use YYYY-MM-DD.")
                    return
                if day < self._today():
                    await ctx.send("❌ Cannot move events into the past!")
                    return
                changes["date"] = day

            new_image = await self._save_attachment(ctx)
            if new_image:
                changes["image_path"] = new_image

            if not changes:
                await ctx.send("Nothing to change. Give a field and value, or attach a new image.")
                return

            try:
                updated = self.store.update(event.id, **changes)
            except StoreError as ex:
                log.error("editevent failed: %s", ex)
                await ctx.send("❌ Could not save the changes. Please try again.")
                return
            if updated is None:
                await ctx.send("❌ That event no longer exists.")
                return

            await ctx.send(embed=build_event_embed(updated, title="✏️ Event Updated"))

        @self.command(name="deleteevent", help="!deleteevent <id or title>")
        async def delete_event_cmd(ctx: commands.Context, *, identifier: str) -> None:
            event = await self._resolve_one(ctx, identifier)
            if event is None:
                return
            try:
                deleted = self.store.delete(event.id)
            except StoreError as ex:
                log.error("deleteevent failed: %s", ex)
                await ctx.send("❌ Could not delete the event. Please try again.")
                return
            if deleted is None:
                await ctx.send("❌ That event no longer exists.")
                return
            await ctx.send(embed=build_event_embed(deleted, title="🗑️ Event Deleted", color=discord.Color.red()))

        @self.command(
            name="announce",
            help="!announce <advance|reminder> [test] - pick events to announce now, or preview the messages here",
        )
        @commands.has_permissions(manage_events=True)
        async def announce_cmd(ctx: commands.Context, kind_name: str = "advance", mode: str = "") -> None:
            try:
                kind = NotificationKind(kind_name.lower())
            except ValueError:
                await ctx.send("❌ Type must be `advance` or `reminder`.")
                return

            today = self._today()

            if mode.lower() == "test":
                previews = self.manual_flow.preview(kind, now_local(self.settings.timezone))
                if not previews:
                    await ctx.send(f"📅 No future events need {kind.value} notifications.")
                    return
                await ctx.send(f"🧪 Test preview of {len(previews)} {kind.value} message(s). Nothing is marked as sent.")
                for _, text, attachment in previews:
                    if attachment is not None:
                        await ctx.send(content=text, file=discord.File(str(attachment)))
                    else:
                        await ctx.send(text)
                return

            async def selector(candidates: list[Event]) -> SelectionOutcome:
                view = EventSelectView(
                    events=candidates,
                    kind=kind,
                    today=today,
                    author_id=ctx.author.id,
                    timeout=self.settings.selection_timeout_seconds,
                )
                label = "reminders" if kind is NotificationKind.REMINDER else "announcements"
                prompt = await ctx.send(
                    f"📢 Found {len(candidates)} event(s) ready for {label}. Select which to send:",
                    view=view,
                )
                outcome = await view.wait_for_outcome()
                if isinstance(outcome, TimedOut):
                    await prompt.edit(content="⏰ Selection timed out. No announcements were sent.", view=None)
                return outcome

            result = await self.manual_flow.run(kind, now_local(self.settings.timezone), selector)
            if result.no_candidates:
                await ctx.send(f"📅 No future events need {kind.value} notifications.")
                return
            if result.report is None:
                return

            for part in chunk_message(format_dispatch_report(result.report, today)):
                await ctx.send(part)

        @self.command(name="sync", help="!sync [preview] - import events from the Google Sheet")
        @commands.has_permissions(manage_events=True)
        async def sync_cmd(ctx: commands.Context, mode: str = "") -> None:
            if not self.sheets.is_configured:
                await ctx.send("❌ Google Sheets integration is not set up (`GOOGLE_SHEETS_ID`).")
                return

            try:
                sheet_events = await self.sheets.get_events()
            except Exception as ex:
                log.exception("sync fetch failed: %s", ex)
                await ctx.send(f"❌ Could not read the sheet: `{type(ex).__name__}`")
                return

            if not sheet_events:
                await ctx.send("📄 No events found in the sheet (or every row failed to parse).")
                return

            if mode.lower() == "preview":
                lines = [f"📊 Preview: {len(sheet_events)} event(s) found"]
                for se in sheet_events[:10]:
                    lines.append(f"• **{se.title}** - {fmt_date(se.date)}, {se.time}, {se.location}")
                if len(sheet_events) > 10:
                    lines.append(f"... and {len(sheet_events) - 10} more")
                for part in chunk_message("\n".join(lines)):
                    await ctx.send(part)
                return

            report = sync_events(self.store, sheet_events, created_by=str(ctx.author.id), today=self._today())
            summary = (
                f"📊 **Sync complete**\n✅ Imported: {report.imported}\n🔄 Updated: {report.updated}\n"
                f"⏭️ Skipped: {report.skipped}\n❌ Errors: {report.errors}\n\n" + "\n".join(report.lines[:20])
            )
            for part in chunk_message(summary):
                await ctx.send(part)

        @self.command(name="botinfo", help="Show bot status")
        async def bot_info_cmd(ctx: commands.Context) -> None:
            today = self._today()
            events = self.store.list()
            upcoming = self.store.upcoming(today)
            s = self.settings
            embed = discord.Embed(title="🤖 Event Bot", color=discord.Color.teal())
            embed.add_field(name="Events", value=f"{len(upcoming)} upcoming / {len(events)} total", inline=True)
            embed.add_field(name="Advance notice", value=f"{s.days_ahead} days ahead at {s.advance_trigger_time:%H:%M}", inline=True)
            embed.add_field(name="Reminder", value=f"{s.reminder_lead_minutes} min before start", inline=True)
            embed.add_field(name="Timezone", value=s.timezone, inline=True)
            embed.add_field(name="Catch-up", value="on" if s.catch_up_enabled else "off", inline=True)
            embed.add_field(name="Sheet sync", value="configured" if self.sheets.is_configured else "not configured", inline=True)
            await ctx.send(embed=embed)

    async def _resolve_one(self, ctx: commands.Context, identifier: str) -> Event | None:
        matches = self.store.find(identifier)
        if not matches:
            await ctx.send("❌ No events found matching that title or ID.")
            return None
        if len(matches) > 1:
            listing = "\n".join(f"• **{e.title}** ({fmt_date(e.date)}) - ID: `{e.id}`" for e in matches)
            for part in chunk_message(f"🔍 Multiple events match \"{identifier}\". Please use the event ID:\n{listing}"):
                await ctx.send(part)
            return None
        return matches[0]

    async def _save_attachment(self, ctx: commands.Context) -> str | None:
        if not ctx.message.attachments:
            return None
        attachment = ctx.message.attachments[0]
        if (attachment.content_type or "").split(";")[0] not in ALLOWED_IMAGE_TYPES:
            await ctx.send("⚠️ Invalid image format (use JPG, PNG, GIF or WebP); continuing without image.")
            return None
        try:
            data = await attachment.read()
            return self.store.save_image(data, f"{int(time.time() * 1000)}_{attachment.filename}")
        except (discord.HTTPException, StoreError) as ex:
            log.error("Error saving image: %s", ex)
            await ctx.send("⚠️ Error saving image; continuing without it.")
            return None

    async def on_ready(self) -> None:
        log.info("Logged in as %s (%d guilds)", self.user, len(self.guilds))
        if not self._scheduler_started:
            self.scheduler.start()
            self._scheduler_started = True

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, (commands.CommandNotFound, commands.CheckFailure)) and not isinstance(
            error, commands.MissingPermissions
        ):
            return
        if isinstance(error, commands.MissingPermissions):
            await self._safe_send(ctx, "❌ You need the Manage Events permission for that.")
            return
        if isinstance(error, (commands.MissingRequiredArgument, commands.BadArgument)):
            usage = ctx.command.help if ctx.command else ""
            await self._safe_send(ctx, f"❌ {error}\nUsage: `{fmt_value(usage, '')}`")
            return

        log.error("Command %s failed: %s", ctx.command, error, exc_info=error)
        await self._safe_send(ctx, "There was an error executing this command!")

    async def _safe_send(self, ctx: commands.Context, text: str) -> None:
        try:
            await ctx.send(text)
        except discord.HTTPException as ex:
            log.error("Failed to send command output: %s", ex)
