from __future__ import annotations

from nerdiversary.milestones.ical import build_calendar, escape_ical_text, format_ical_datetime
from tests.support import milestone, utc


def test_format_ical_datetime_is_utc_basic_format():
  assert format_ical_datetime(utc(2030, 1, 2, 3, 4, 5)) == "20300102T030405Z"


def test_escape_ical_text():
  assert escape_ical_text("a,b;c\\d\ne") == "a\\,b\\;c\\\\d\\ne"


def test_build_calendar_renders_events_with_alarms():
  event = milestone(utc(2030, 1, 1, 12), title="10,000 Days")
  calendar = build_calendar([event], generated_at=utc(2029, 6, 1))

  assert calendar.endswith("\r\n")
  lines = calendar.split("\r\n")[:-1]
  assert lines[0] == "BEGIN:VCALENDAR"
  assert lines[-1] == "END:VCALENDAR"
  assert "UID:days-10000@nerdiversary.com" in lines
  assert "DTSTAMP:20290601T000000Z" in lines
  assert "DTSTART:20300101T120000Z" in lines
  assert "DTEND:20300101T130000Z" in lines
  assert "SUMMARY:📆 10\\,000 Days" in lines
  assert lines.count("BEGIN:VALARM") == 2
  assert "TRIGGER:-P1D" in lines
  assert "TRIGGER:-PT1H" in lines
  assert "DESCRIPTION:Tomorrow: 10\\,000 Days" in lines


def test_build_calendar_without_events_is_still_valid():
  lines = build_calendar([], generated_at=utc(2029, 6, 1)).split("\r\n")
  assert lines[0] == "BEGIN:VCALENDAR"
  assert "END:VCALENDAR" in lines
  assert "BEGIN:VEVENT" not in lines
