import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime

import httpx

from eventbot.storage.event_store import JsonEventStore, StoreError
from eventbot.utils.http import HttpClient

log = logging.getLogger("services.sheet_import")

SHEETS_CSV_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq"
SHEET_SOURCE = "google_sheets"

# "September 22nd, 2025" at the start of a single-line cell
_LEADING_DATE_RE = re.compile(r"^([A-Za-z]+\.? \d{1,2}(?:st|nd|rd|th)?,? \d{4})")
_ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)
_TIME_RANGE_RE = re.compile(
    r"(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)\s*(?:-|–|to)\s*(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)", re.IGNORECASE
)
_SINGLE_TIME_RE = re.compile(r"\b(\d{1,2}(?::\d{2})?\s*(?:am|pm)?)", re.IGNORECASE)
_MERIDIEM_RE = re.compile(r"(am|pm)\s*$", re.IGNORECASE)

_DATE_FORMATS = ("%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%b. %d, %Y", "%m/%d/%Y", "%Y-%m-%d")

@dataclass
class SheetEvent:
    title: str
    description: str
    date: date
    time: str
    location: str
    row_number: int
    speaker: str | None = None

@dataclass
class SyncReport:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    lines: list[str] = field(default_factory=list)

def normalize_time(raw: str | None) -> str | None:
    """
    "7" -> "7:00 PM", "8:30pm" -> "8:30 PM", "10am" -> "10:00 AM".

    Bare hours without am/pm are taken as evening times.
    """
    if not raw:
        return None
    cleaned = raw.strip().lower()
    if not cleaned:
        return None

    if not re.search(r":\d{2}", cleaned):
        cleaned = re.sub(r"(\d+)", r"\1:00", cleaned, count=1)

    if not re.search(r"am|pm", cleaned):
        m = re.match(r"\d+", cleaned)
        if m and 1 <= int(m.group(0)) <= 12:
            cleaned += "pm"

    cleaned = re.sub(r"(\d{1,2}:\d{2})\s*(am|pm)", r"\1 \2", cleaned)
    return re.sub(r"(am|pm)", lambda m: m.group(1).upper(), cleaned)

def _parse_date(text: str) -> date | None:
    cleaned = _ORDINAL_RE.sub(r"\1", text.strip())
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None

def parse_date_time_string(raw: str | None) -> tuple[date | None, str | None]:
    """
    Split a sheet cell such as "September 22nd, 2025\\n7 - 8:30pm" into
    (date, normalized start time). Returns (None, None) when no date parses.
    """
    if not raw or not raw.strip():
        return None, None

    lines = [ln.strip() for ln in raw.strip().splitlines() if ln.strip()]
    if len(lines) >= 2:
        date_str, time_str = lines[0], " ".join(lines[1:])
    else:
        single = lines[0]
        m = _LEADING_DATE_RE.match(single)
        if m:
            date_str = m.group(1)
            time_str = single[m.end():].strip(" ,@-")
        else:
            date_str, time_str = single, ""

    parsed = _parse_date(date_str)
    if parsed is None:
        log.warning("Date parsing error for %r", raw)
        return None, None

    time_value = None
    if time_str:
        m = _TIME_RANGE_RE.search(time_str)
        if m:
            start, end = m.group(1).strip(), m.group(2).strip()
            # "10 - 11:30am": the start takes the end's am/pm
            end_meridiem = _MERIDIEM_RE.search(end)
            if end_meridiem and not _MERIDIEM_RE.search(start):
                start = f"{start}{end_meridiem.group(1)}"
            time_value = normalize_time(start)
        else:
            m = _SINGLE_TIME_RE.search(time_str)
            if m:
                time_value = normalize_time(m.group(1))

    return parsed, time_value

def parse_event_row(row: list[str], row_number: int) -> SheetEvent:
    cells = [(c or "").strip() for c in row] + [""] * 5
    title, speaker, date_time, location, description = cells[:5]

    day, time_value = parse_date_time_string(date_time)
    if day is None:
        raise ValueError(f"Invalid date format in row {row_number}: {date_time!r}")

    text = description or title
    if speaker:
        text = f"Speaker: {speaker}\n\n{text}"

    return SheetEvent(
        title=title,
        description=text,
        date=day,
        time=time_value or "TBA",
        location=location or "TBA",
        row_number=row_number,
        speaker=speaker or None,
    )

def parse_rows(rows: list[list[str]], first_row_number: int = 2) -> list[SheetEvent]:
    events: list[SheetEvent] = []
    for offset, row in enumerate(rows):
        row_number = first_row_number + offset
        # need at least a title and the date/time cell
        if len(row) < 3 or not row[0].strip() or not row[2].strip():
            continue
        try:
            events.append(parse_event_row(row, row_number))
        except ValueError as ex:
            log.warning("Error parsing row %d: %s", row_number, ex)
    log.info("Parsed %d events from %d sheet rows", len(events), len(rows))
    return events

class SheetsService:
    """
    Reads the event sheet through the Google Sheets CSV export. The sheet must
    be shared as "anyone with the link can view".
    """

    def __init__(self, http: HttpClient, sheet_id: str | None, cell_range: str = "A2:E100"):
        self.http = http
        self.sheet_id = sheet_id
        self.cell_range = cell_range

    @property
    def is_configured(self) -> bool:
        return bool(self.sheet_id)

    async def fetch_rows(self) -> list[list[str]]:
        if not self.is_configured:
            raise RuntimeError("Google Sheets is not configured (GOOGLE_SHEETS_ID)")
        text = await self.http.get_text(
            SHEETS_CSV_URL.format(sheet_id=self.sheet_id),
            params={"tqx": "out:csv", "range": self.cell_range},
        )
        return [row for row in csv.reader(io.StringIO(text))]

    async def get_events(self) -> list[SheetEvent]:
        try:
            rows = await self.fetch_rows()
        except httpx.HTTPError as ex:
            log.error("Error fetching events from Google Sheets: %s", ex)
            raise
        first_row = _first_row_number(self.cell_range)
        return parse_rows(rows, first_row_number=first_row)

def _first_row_number(cell_range: str) -> int:
    m = re.match(r"^[A-Za-z]+(\d+)", cell_range)
    return int(m.group(1)) if m else 1

def sync_events(store: JsonEventStore, sheet_events: list[SheetEvent], *, created_by: str | None, today: date) -> SyncReport:
    """
    Import sheet events into the store.

    Existing events match on case-insensitive title plus date. Imported
    events get description/time/location refreshed; manually created ones
    are left alone so hand edits and images survive.
    """
    report = SyncReport()
    for se in sheet_events:
        try:
            if se.date < today:
                report.skipped += 1
                report.lines.append(f"⏭️ Skipped: {se.title} (date already passed)")
                continue

            existing = next(
                (e for e in store.list() if e.title.lower() == se.title.lower() and e.date == se.date),
                None,
            )
            if existing is not None:
                changes = {}
                if existing.source == SHEET_SOURCE:
                    if existing.description != se.description:
                        changes["description"] = se.description
                    if existing.time != se.time:
                        changes["time"] = se.time
                    if existing.location != se.location:
                        changes["location"] = se.location

                if changes:
                    store.update(existing.id, **changes)
                    report.updated += 1
                    report.lines.append(f"🔄 Updated: {se.title}")
                else:
                    report.skipped += 1
                    report.lines.append(f"⏭️ Skipped: {se.title} (already exists)")
                continue

            store.create(
                title=se.title,
                description=se.description,
                date=se.date,
                time=se.time,
                location=se.location,
                created_by=created_by,
                source=SHEET_SOURCE,
                row_number=se.row_number,
            )
            report.imported += 1
            report.lines.append(f"✅ Imported: {se.title}")
        except StoreError as ex:
            report.errors += 1
            report.lines.append(f"❌ Error: {se.title} - {ex}")
            log.error("Error importing event %r: %s", se.title, ex)

    log.info(
        "Sheet sync: imported=%d updated=%d skipped=%d errors=%d",
        report.imported, report.updated, report.skipped, report.errors,
    )
    return report
