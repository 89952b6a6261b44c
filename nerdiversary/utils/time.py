"""Time helpers shared by the stores, scanner and milestone calculator."""

from __future__ import annotations

import datetime
import re
import zoneinfo

BIRTH_FORMAT = "%Y-%m-%dT%H:%M"
DEFAULT_BIRTH_TIME = "00:00"

_BIRTH_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ](\d{2}:\d{2})(?::\d{2})?)?$")


def utc_now() -> datetime.datetime:
  """Return the current instant as an aware UTC datetime."""
  return datetime.datetime.now(datetime.UTC)


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
  """Treat naive datetimes as UTC and convert aware ones to UTC."""
  if value.tzinfo is None:
    return value.replace(tzinfo=datetime.UTC)
  return value.astimezone(datetime.UTC)


def to_storage(value: datetime.datetime) -> datetime.datetime:
  """Normalize an instant for DateTime columns so comparisons stay consistent across dialects."""
  return ensure_utc(value).replace(tzinfo=None)


def normalize_birth_datetime(raw: str) -> str:
  """Validate a birth instant and return it as ``YYYY-MM-DDTHH:MM``.

  A bare date gets the fixed reference time of midnight. Seconds are accepted and dropped.
  """
  match = _BIRTH_RE.fullmatch((raw or "").strip())
  if match is None:
    raise ValueError(f"Birth instant must look like YYYY-MM-DD or YYYY-MM-DDTHH:MM, got {raw!r}")

  date_part, time_part = match.group(1), match.group(2) or DEFAULT_BIRTH_TIME
  # strptime rejects impossible calendar values such as 2023-02-30 or 24:00.
  parsed = datetime.datetime.strptime(f"{date_part}T{time_part}", BIRTH_FORMAT)
  return parsed.strftime(BIRTH_FORMAT)


def birth_instant(birth_datetime: str, timezone_name: str = "UTC") -> datetime.datetime:
  """Interpret a stored wall-clock birth instant in a timezone and return it in UTC."""
  local = datetime.datetime.strptime(normalize_birth_datetime(birth_datetime), BIRTH_FORMAT)
  return local.replace(tzinfo=zoneinfo.ZoneInfo(timezone_name)).astimezone(datetime.UTC)
