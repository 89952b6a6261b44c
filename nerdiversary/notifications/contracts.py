"""Contracts and value types for the milestone notification pipeline."""

from __future__ import annotations

import datetime
import enum
import hashlib
import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from nerdiversary.utils.time import ensure_utc

DEFAULT_LEAD_MINUTES: tuple[int, ...] = (1440, 60, 0)
MAX_LEAD_TIMES = 8
MAX_LEAD_MINUTES = 7 * 24 * 60


class NotificationError(Exception):
  """Base class for all pipeline failures."""


class ValidationError(NotificationError):
  """Raised when input is rejected before it is written to storage."""


class StorageError(NotificationError):
  """Raised when a storage operation fails for reasons other than a rejected claim."""


class NotificationProviderError(NotificationError):
  """Exception raised when the push provider returns a delivery error."""


class PermanentDeliveryError(NotificationProviderError):
  """Exception raised when a push subscription endpoint is expired or invalid."""


class TransientDeliveryError(NotificationProviderError):
  """Exception raised when transient push provider failures exhaust retries."""


@dataclass(frozen=True)
class LeadTimes:
  """Minutes before a milestone at which a notification fires, largest first."""

  minutes: tuple[int, ...] = DEFAULT_LEAD_MINUTES

  def __post_init__(self) -> None:
    object.__setattr__(self, "minutes", _normalize_lead_minutes(self.minutes))

  @classmethod
  def from_json(cls, raw: str | None) -> LeadTimes:
    """Parse the JSON array stored in ``notification_times``."""
    if raw is None or raw.strip() == "":
      return cls()
    try:
      decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
      raise ValidationError(f"Lead times are not valid JSON: {raw!r}") from exc

    if not isinstance(decoded, list):
      raise ValidationError("Lead times must be a JSON array of minutes.")

    return cls(tuple(decoded))

  def to_json(self) -> str:
    return json.dumps(list(self.minutes), separators=(",", ":"))

  @property
  def largest(self) -> int:
    return self.minutes[0]

  def __iter__(self) -> Iterator[int]:
    return iter(self.minutes)

  def __len__(self) -> int:
    return len(self.minutes)


def _normalize_lead_minutes(values: Iterable[Any]) -> tuple[int, ...]:
  normalized: set[int] = set()
  for value in values:
    # bool is an int subclass; JSON true/false must not sneak in as 1/0.
    if isinstance(value, bool) or not isinstance(value, int):
      raise ValidationError(f"Lead time must be an integer number of minutes, got {value!r}")

    if value < 0 or value > MAX_LEAD_MINUTES:
      raise ValidationError(f"Lead time must be between 0 and {MAX_LEAD_MINUTES} minutes, got {value}")

    normalized.add(value)

  if not normalized:
    raise ValidationError("At least one lead time is required.")

  if len(normalized) > MAX_LEAD_TIMES:
    raise ValidationError(f"At most {MAX_LEAD_TIMES} lead times are allowed.")

  return tuple(sorted(normalized, reverse=True))


@dataclass(frozen=True)
class SubscriptionRecord:
  """A stored push subscription and its preferences."""

  id: str
  endpoint: str
  p256dh: str
  auth: str
  lead_times: LeadTimes
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None


@dataclass(frozen=True)
class FamilyMemberRecord:
  """A birthdate owned by a subscription."""

  id: int
  subscription_id: str
  name: str
  birth_datetime: str
  created_at: datetime.datetime | None = None


@dataclass(frozen=True)
class MilestoneEvent:
  """A computed noteworthy instant for one person; recomputed on every scan."""

  id: str
  title: str
  description: str
  icon: str
  category: str
  at: datetime.datetime


class MilestoneSource(Protocol):
  """Computes the milestones of a birth instant that fall inside ``[as_of, as_of + horizon]``."""

  def __call__(self, birth: datetime.datetime, as_of: datetime.datetime, horizon: datetime.timedelta) -> list[MilestoneEvent]: ...


@dataclass(frozen=True)
class DedupKey:
  """Identifies one deliverable notification."""

  subscription_id: str
  person_name: str
  milestone_at: datetime.datetime
  lead_minutes: int

  @property
  def digest(self) -> str:
    """Return a fixed-width string suitable for a unique column."""
    instant = ensure_utc(self.milestone_at).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    material = "\x1f".join((self.subscription_id, self.person_name, instant, str(self.lead_minutes)))
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class PendingNotification:
  """One due (subscription, person, milestone, lead time) match produced by a scan."""

  subscription_id: str
  person_name: str
  milestone: MilestoneEvent
  lead_minutes: int

  @property
  def key(self) -> DedupKey:
    return DedupKey(subscription_id=self.subscription_id, person_name=self.person_name, milestone_at=self.milestone.at, lead_minutes=self.lead_minutes)

  @property
  def fire_at(self) -> datetime.datetime:
    return self.milestone.at - datetime.timedelta(minutes=self.lead_minutes)


@dataclass(frozen=True)
class PushPayload:
  """JSON body delivered to the browser's service worker."""

  title: str
  body: str
  icon: str
  badge: str
  tag: str
  data: dict[str, str] = field(default_factory=dict)

  def to_dict(self) -> dict[str, Any]:
    return {"title": self.title, "body": self.body, "icon": self.icon, "badge": self.badge, "tag": self.tag, "data": dict(self.data)}


@dataclass(frozen=True)
class PushNotification:
  """Represents a push notification addressed to one endpoint."""

  endpoint: str
  p256dh: str
  auth: str
  payload: PushPayload


class DeliveryResult(enum.Enum):
  DELIVERED = "delivered"
  PERMANENTLY_FAILED = "permanently_failed"
  TRANSIENT_FAILURE = "transient_failure"


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  # False for senders that cannot reach a push service at all.
  enabled: bool

  def send(self, notification: PushNotification) -> None:
    """Send a push notification synchronously."""
