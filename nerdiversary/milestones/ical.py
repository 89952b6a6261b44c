"""iCalendar export of upcoming milestones."""

from __future__ import annotations

import datetime
from collections.abc import Iterable

from nerdiversary.notifications.contracts import MilestoneEvent
from nerdiversary.utils.time import ensure_utc, utc_now

PRODID = "-//Nerdiversary//Nerdy Anniversaries//EN"
EVENT_DURATION = datetime.timedelta(hours=1)


def format_ical_datetime(value: datetime.datetime) -> str:
  return ensure_utc(value).strftime("%Y%m%dT%H%M%SZ")


def escape_ical_text(text: str) -> str:
  return text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def _event_lines(event: MilestoneEvent, *, stamp: str) -> list[str]:
  summary = escape_ical_text(f"{event.icon} {event.title}")
  return [
    "BEGIN:VEVENT",
    f"UID:{event.id}@nerdiversary.com",
    f"DTSTAMP:{stamp}",
    f"DTSTART:{format_ical_datetime(event.at)}",
    f"DTEND:{format_ical_datetime(event.at + EVENT_DURATION)}",
    f"SUMMARY:{summary}",
    f"DESCRIPTION:{escape_ical_text(event.description)}",
    f"CATEGORIES:{event.category}",
    "STATUS:CONFIRMED",
    "TRANSP:TRANSPARENT",
    "BEGIN:VALARM",
    "TRIGGER:-P1D",
    "ACTION:DISPLAY",
    f"DESCRIPTION:{escape_ical_text(f'Tomorrow: {event.title}')}",
    "END:VALARM",
    "BEGIN:VALARM",
    "TRIGGER:-PT1H",
    "ACTION:DISPLAY",
    f"DESCRIPTION:{escape_ical_text(f'In 1 hour: {event.title}')}",
    "END:VALARM",
    "END:VEVENT",
  ]


def build_calendar(events: Iterable[MilestoneEvent], *, generated_at: datetime.datetime | None = None) -> str:
  """Render events as a CRLF-delimited VCALENDAR document."""
  stamp = format_ical_datetime(generated_at or utc_now())
  lines = ["BEGIN:VCALENDAR", "VERSION:2.0", f"PRODID:{PRODID}", "CALSCALE:GREGORIAN", "METHOD:PUBLISH", "X-WR-CALNAME:Nerdiversaries", "X-WR-CALDESC:Your nerdy anniversary milestones"]
  for event in events:
    lines.extend(_event_lines(event, stamp=stamp))
  lines.append("END:VCALENDAR")
  return "\r\n".join(lines) + "\r\n"
