"""Calendar feed of upcoming milestones for a single birth date."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from nerdiversary.config import Settings, get_settings
from nerdiversary.milestones.calculator import calculate_milestones
from nerdiversary.milestones.ical import build_calendar
from nerdiversary.utils.time import DEFAULT_BIRTH_TIME, birth_instant, normalize_birth_datetime, utc_now

router = APIRouter()


@router.get("/calendar.ics")
async def get_calendar(
  settings: Annotated[Settings, Depends(get_settings)],
  d: Annotated[str | None, Query(max_length=10)] = None,
  birthday: Annotated[str | None, Query(max_length=10)] = None,
  t: Annotated[str | None, Query(max_length=5)] = None,
  time: Annotated[str | None, Query(max_length=5)] = None,
) -> Response:
  """Subscribeable .ics of every milestone still ahead, up to 120 years after birth."""
  birth_date = d or birthday
  if not birth_date:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing birthday parameter; add ?d=YYYY-MM-DD.")

  try:
    normalized = normalize_birth_datetime(f"{birth_date}T{t or time or DEFAULT_BIRTH_TIME}")
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date format; expected YYYY-MM-DD and HH:MM.") from exc

  birth = birth_instant(normalized, settings.milestone_timezone)
  events = calculate_milestones(birth, timezone_name=settings.milestone_timezone, start=utc_now())
  headers = {"Content-Disposition": 'inline; filename="nerdiversaries.ics"', "Cache-Control": "public, max-age=3600"}
  return Response(content=build_calendar(events), media_type="text/calendar; charset=utf-8", headers=headers)
