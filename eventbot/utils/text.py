from datetime import date
from typing import Iterable

import discord

from eventbot.models import DispatchReport, Event, NotificationKind
from eventbot.utils.timeutil import days_until

DISCORD_MAX_LEN = 2000
EMBED_FIELD_LIMIT = 25

DEFAULT_ADVANCE_TEMPLATE = (
    "📅 **Upcoming Event**\n\n"
    "**{title}** is coming up in {days} day{plural}!\n\n"
    "{description}\n\n"
    "📅 **Date:** {date}\n"
    "🕐 **Time:** {time}\n"
    "📍 **Location:** {location}\n"
    "\nMark your calendars! 📝"
)

DEFAULT_REMINDER_TEMPLATE = (
    "We have our **{title}** today at **{time}** in **{location}**. Hope to see you there!"
)

def fmt_date(d: date) -> str:
    # Monday, March 15, 2027
    return d.strftime("%A, %B %-d, %Y")

def fmt_value(v: str | None, default: str = "TBA") -> str:
    return v if (v is not None and str(v).strip() != "") else default

def clip(s: str, n: int) -> str:
    s = (s or "").strip()
    if len(s) <= n:
        return s
    return s[: max(0, n - 3)] + "..."

def format_announcement(
    e: Event,
    kind: NotificationKind,
    today: date,
    templates: dict[str, str] | None = None,
) -> str:
    templates = templates or {}
    days = days_until(e.date, today)
    fields = {
        "title": e.title,
        "description": e.description,
        "date": fmt_date(e.date),
        "time": fmt_value(e.time),
        "location": fmt_value(e.location),
        "days": days,
        "plural": "" if days == 1 else "s",
    }
    if kind is NotificationKind.ADVANCE:
        template = templates.get("advance", DEFAULT_ADVANCE_TEMPLATE)
    else:
        template = templates.get("reminder", DEFAULT_REMINDER_TEMPLATE)

    text = template.format(**fields)
    if len(text) > DISCORD_MAX_LEN:
        # shorten the description first so the details lines survive
        over = len(text) - DISCORD_MAX_LEN
        fields["description"] = clip(e.description, max(0, len(e.description) - over))
        text = template.format(**fields)
    return clip(text, DISCORD_MAX_LEN)

def describe_candidate(e: Event, kind: NotificationKind, today: date) -> str:
    if kind is NotificationKind.REMINDER:
        when = "Today" if e.date == today else fmt_date(e.date)
        return f"{when} - {fmt_value(e.time)}"
    return f"{days_until(e.date, today)} days - {fmt_date(e.date)}"

def build_events_embed(events: Iterable[Event], *, title: str, today: date) -> discord.Embed:
    events = sorted(events, key=lambda e: e.date)
    embed = discord.Embed(title=title, color=discord.Color.teal())
    if not events:
        embed.description = "No events scheduled."
        return embed

    for e in events[:EMBED_FIELD_LIMIT]:
        flags = []
        if e.announcement_sent:
            flags.append("announced")
        if e.reminder_sent:
            flags.append("reminded")
        status = f" ({', '.join(flags)})" if flags else ""
        past = " [past]" if e.date < today else ""
        value = (
            f"📅 {fmt_date(e.date)}{past}\n"
            f"🕐 {fmt_value(e.time)} | 📍 {fmt_value(e.location)}\n"
            f"ID: `{e.id}`{status}"
        )
        embed.add_field(name=clip(e.title, 250), value=value, inline=False)

    if len(events) > EMBED_FIELD_LIMIT:
        embed.set_footer(text=f"Showing {EMBED_FIELD_LIMIT}/{len(events)} events (Discord embed field limit).")
    return embed

def build_event_embed(e: Event, *, title: str, color: discord.Color | None = None) -> discord.Embed:
    embed = discord.Embed(title=title, description=f"**{e.title}**", color=color or discord.Color.teal())
    embed.add_field(name="📅 Date", value=fmt_date(e.date), inline=True)
    embed.add_field(name="🕐 Time", value=fmt_value(e.time), inline=True)
    embed.add_field(name="📍 Location", value=fmt_value(e.location), inline=True)
    if e.description:
        embed.add_field(name="📝 Description", value=clip(e.description, 1000), inline=False)
    if e.image_path:
        embed.add_field(name="🖼️ Image", value="Image attached", inline=True)
    embed.set_footer(text=f"Event ID: {e.id}")
    return embed

def format_dispatch_report(report: DispatchReport, today: date) -> str:
    lines: list[str] = []
    for d in report.sent:
        lines.append(f"• {d.event.title} ({describe_candidate(d.event, d.kind, today)}): ✅ sent")
    for d in report.failed:
        lines.append(f"• {d.event.title}: ❌ delivery failed, will retry on the next check")
    for d in report.skipped:
        lines.append(f"• {d.event.title}: ⏭️ already sent or removed")
    if not lines:
        return "Nothing was sent."
    return "\n".join(lines)

def chunk_message(text: str, max_len: int = DISCORD_MAX_LEN) -> list[str]:
    """
    Split on line boundaries to stay within the Discord message limit.
    """
    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0

    def flush():
        nonlocal current, current_len
        if current:
            chunks.append("\n".join(current).strip())
            current = []
            current_len = 0

    for line in text.split("\n"):
        add_len = len(line) + 1
        if current_len + add_len > max_len:
            flush()
        current.append(line)
        current_len += add_len

    flush()
    return [c for c in chunks if c]
