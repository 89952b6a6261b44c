"""Client-side handling of delivered pushes, modelled for the browser service worker.

The service worker consumes the payload contract produced by ``templates.render_payload``.
Keeping its rules here lets the server tests pin both sides of that contract: how a raw push
becomes a visible notification, where a click navigates, and how page-scheduled local
notifications are queued.
"""

from __future__ import annotations

import asyncio
import datetime
import json
import logging
import urllib.parse
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from nerdiversary.notifications.contracts import PushPayload
from nerdiversary.notifications.templates import results_url
from nerdiversary.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Nerdiversary"
DEFAULT_ICON = "./assets/icon-192.png"
DEFAULT_BADGE = "./assets/favicon-96x96.png"
DEFAULT_TAG = "nerdiversary-notification"

ACTION_VIEW = "view"
ACTION_DISMISS = "dismiss"

MESSAGE_SKIP_WAITING = "SKIP_WAITING"
MESSAGE_SCHEDULE = "SCHEDULE_NOTIFICATION"


@dataclass(frozen=True)
class NotificationAction:
  action: str
  title: str


@dataclass(frozen=True)
class DisplayNotification:
  """What the browser is asked to show."""

  title: str
  body: str
  icon: str
  badge: str
  tag: str
  data: dict[str, str] = field(default_factory=dict)
  actions: tuple[NotificationAction, ...] = ()
  require_interaction: bool = True
  vibrate: tuple[int, ...] = (200, 100, 200)


@dataclass(frozen=True)
class ClientWindow:
  id: str
  url: str


@dataclass(frozen=True)
class ClickOutcome:
  """Result of a notification click: nothing, focus an existing window, or open a URL."""

  kind: str
  window_id: str | None = None
  url: str | None = None


def _text(value: Any, default: str) -> str:
  if value is None:
    return default
  value = str(value)
  return value if value else default


def parse_push_payload(raw: str | bytes | None) -> PushPayload:
  """Decode a push body; anything that is not a JSON object is shown as plain text."""
  if isinstance(raw, bytes):
    raw = raw.decode("utf-8", errors="replace")

  text = raw or ""
  try:
    decoded = json.loads(text) if text else {}
  except json.JSONDecodeError:
    decoded = None

  if not isinstance(decoded, dict):
    return PushPayload(title=DEFAULT_TITLE, body=text, icon=DEFAULT_ICON, badge=DEFAULT_BADGE, tag=DEFAULT_TAG)

  raw_data = decoded.get("data")
  data = {str(key): str(value) for key, value in raw_data.items()} if isinstance(raw_data, dict) else {}
  return PushPayload(
    title=_text(decoded.get("title"), DEFAULT_TITLE),
    body=_text(decoded.get("body"), ""),
    icon=_text(decoded.get("icon"), DEFAULT_ICON),
    badge=_text(decoded.get("badge"), DEFAULT_BADGE),
    tag=_text(decoded.get("tag"), DEFAULT_TAG),
    data=data,
  )


def build_display_notification(payload: PushPayload) -> DisplayNotification:
  return DisplayNotification(
    title=payload.title,
    body=payload.body,
    icon=payload.icon,
    badge=payload.badge,
    tag=payload.tag,
    data=dict(payload.data),
    actions=(NotificationAction(action=ACTION_VIEW, title="View"), NotificationAction(action=ACTION_DISMISS, title="Dismiss")),
  )


def _is_results_page(url: str) -> bool:
  return urllib.parse.urlsplit(url).path.endswith("/results.html")


def click_target(data: Mapping[str, str], scope_url: str) -> str:
  """Where a click should land: ``data.url``, else the family results page, else the app root."""
  if data.get("url"):
    return urllib.parse.urljoin(scope_url, data["url"])

  if data.get("family"):
    return results_url(scope_url.rstrip("/"), data["family"])

  return scope_url


def resolve_click(action: str | None, data: Mapping[str, str], open_windows: Sequence[ClientWindow], scope_url: str) -> ClickOutcome:
  """Decide how a notification click is handled."""
  if action == ACTION_DISMISS:
    return ClickOutcome(kind="none")

  for window in open_windows:
    if _is_results_page(window.url):
      return ClickOutcome(kind="focus", window_id=window.id, url=window.url)

  return ClickOutcome(kind="open", url=click_target(data, scope_url))


def _parse_timestamp(value: Any) -> datetime.datetime:
  # Pages post epoch milliseconds; ISO strings are accepted too.
  if isinstance(value, bool):
    raise ValueError("timestamp must be epoch milliseconds or an ISO-8601 string")
  if isinstance(value, int | float):
    return datetime.datetime.fromtimestamp(value / 1000, tz=datetime.UTC)
  if isinstance(value, str) and value:
    return ensure_utc(datetime.datetime.fromisoformat(value.replace("Z", "+00:00")))
  raise ValueError("timestamp must be epoch milliseconds or an ISO-8601 string")


class LocalNotificationScheduler:
  """Best-effort in-memory timers for notifications scheduled by an open page.

  Nothing here survives a restart of the worker; the server-side pipeline is the durable path.
  """

  def __init__(self, display: Callable[[DisplayNotification], Any], *, clock: Callable[[], datetime.datetime] = utc_now, on_skip_waiting: Callable[[], Any] | None = None) -> None:
    self._display = display
    self._clock = clock
    self._on_skip_waiting = on_skip_waiting
    self._timers: dict[str, asyncio.TimerHandle] = {}

  @property
  def pending_tags(self) -> list[str]:
    return sorted(self._timers)

  def handle_message(self, message: Mapping[str, Any]) -> bool:
    """Handle a page message; returns False for message types this worker ignores."""
    message_type = message.get("type")
    if message_type == MESSAGE_SKIP_WAITING:
      if self._on_skip_waiting is not None:
        self._on_skip_waiting()
      return True

    if message_type == MESSAGE_SCHEDULE:
      self.schedule(message)
      return True

    logger.debug("Ignoring service worker message type=%s", message_type)
    return False

  def schedule(self, message: Mapping[str, Any]) -> str:
    fire_at = _parse_timestamp(message.get("timestamp"))
    raw_data = message.get("data")
    payload = PushPayload(
      title=_text(message.get("title"), DEFAULT_TITLE),
      body=_text(message.get("body"), ""),
      icon=_text(message.get("icon"), DEFAULT_ICON),
      badge=_text(message.get("badge"), DEFAULT_BADGE),
      tag=_text(message.get("tag"), DEFAULT_TAG),
      data={str(key): str(value) for key, value in raw_data.items()} if isinstance(raw_data, Mapping) else {},
    )
    notification = build_display_notification(payload)

    # A past timestamp fires on the next loop iteration.
    delay = max(0.0, (fire_at - ensure_utc(self._clock())).total_seconds())
    previous = self._timers.pop(notification.tag, None)
    if previous is not None:
      previous.cancel()

    loop = asyncio.get_running_loop()
    self._timers[notification.tag] = loop.call_later(delay, self._fire, notification)
    return notification.tag

  def cancel_all(self) -> int:
    cancelled = len(self._timers)
    for handle in self._timers.values():
      handle.cancel()
    self._timers.clear()
    return cancelled

  def _fire(self, notification: DisplayNotification) -> None:
    self._timers.pop(notification.tag, None)
    try:
      self._display(notification)
    except Exception:  # noqa: BLE001
      logger.error("Local notification display failed tag=%s", notification.tag, exc_info=True)
