"""Render due notifications into the push payload the service worker displays."""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

from nerdiversary.notifications.contracts import PendingNotification, PushPayload


@dataclass(frozen=True)
class PayloadDefaults:
  """Static values shared by every payload of a deployment."""

  app_base_url: str
  icon: str
  badge: str


def lead_time_title(icon: str, lead_minutes: int) -> str:
  """Headline announcing how far away the milestone is; hours and days round half up."""
  if lead_minutes == 0:
    return f"{icon} It's happening NOW!"

  if lead_minutes < 60:
    return f"{icon} {lead_minutes} minutes away!"

  if lead_minutes < 1440:
    hours = (lead_minutes + 30) // 60
    return f"{icon} {hours} hour{'s' if hours > 1 else ''} away!"

  days = (lead_minutes + 720) // 1440
  return f"{icon} {days} day{'s' if days > 1 else ''} away!"


def results_url(app_base_url: str, family_param: str | None) -> str:
  base = f"{app_base_url.rstrip('/')}/results.html"
  if not family_param:
    return base
  return f"{base}?{urllib.parse.urlencode({'family': family_param}, safe='|,')}"


def notification_tag(pending: PendingNotification) -> str:
  return f"nerdiversary-{pending.milestone.id}-{pending.lead_minutes}"


def render_payload(pending: PendingNotification, *, defaults: PayloadDefaults, family_param: str | None = None) -> PushPayload:
  """Build the payload for one due notification."""
  data = {"url": results_url(defaults.app_base_url, family_param)}
  if family_param:
    data["family"] = family_param

  return PushPayload(
    title=lead_time_title(pending.milestone.icon, pending.lead_minutes),
    body=f"{pending.person_name}: {pending.milestone.title}",
    icon=defaults.icon,
    badge=defaults.badge,
    tag=notification_tag(pending),
    data=data,
  )
