"""Push notification delivery implementations."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from http import HTTPStatus

import requests
from pywebpush import WebPushException, webpush

from nerdiversary.notifications.contracts import PermanentDeliveryError, PushNotification, PushSender, TransientDeliveryError

logger = logging.getLogger(__name__)

PERMANENT_STATUSES = frozenset({HTTPStatus.NOT_FOUND, HTTPStatus.GONE})


@dataclass(frozen=True)
class VapidConfig:
  """Configuration required to sign Web Push requests."""

  public_key: str
  private_key: str
  sub: str


class WebPushSender(PushSender):
  """`pywebpush` backed sender with bounded retries and dead-endpoint detection."""

  enabled = True

  def __init__(self, *, vapid_config: VapidConfig, timeout_seconds: float = 10.0, max_attempts: int = 3, backoff_seconds: float = 1.0) -> None:
    self._vapid_config = vapid_config
    self._timeout_seconds = timeout_seconds
    self._max_attempts = max(1, max_attempts)
    self._backoff_seconds = backoff_seconds

  def send(self, notification: PushNotification) -> None:
    """Send one payload; raises PermanentDeliveryError or TransientDeliveryError on failure."""
    subscription_info = {"endpoint": notification.endpoint, "keys": {"p256dh": notification.p256dh, "auth": notification.auth}}
    data = json.dumps(notification.payload.to_dict(), ensure_ascii=False)
    last_reason = "unknown"
    last_exc: Exception | None = None

    for attempt in range(1, self._max_attempts + 1):
      try:
        webpush(subscription_info=subscription_info, data=data, vapid_private_key=self._vapid_config.private_key, vapid_claims={"sub": self._vapid_config.sub}, timeout=self._timeout_seconds)
        return
      except WebPushException as exc:
        status_code = _extract_status_code(exc)
        if status_code in PERMANENT_STATUSES:
          raise PermanentDeliveryError(f"Push subscription is gone (status={status_code})") from exc

        last_reason = f"status={status_code if status_code is not None else 'unknown'}"
        last_exc = exc
      except requests.exceptions.RequestException as exc:
        # Connection resets and timeouts never reached the push service's verdict.
        last_reason = type(exc).__name__
        last_exc = exc

      if attempt < self._max_attempts:
        delay = self._backoff_seconds * (2 ** (attempt - 1))
        logger.warning("Push attempt failed; retrying attempt=%d/%d reason=%s delay=%.1fs", attempt, self._max_attempts, last_reason, delay)
        time.sleep(delay)

    raise TransientDeliveryError(f"Push delivery failed after {self._max_attempts} attempts ({last_reason})") from last_exc


class NullPushSender(PushSender):
  """Push sender used when push notifications are disabled or unconfigured.

  Nothing is ever sent, so every call fails transiently and the caller keeps the item retryable.
  """

  enabled = False

  def send(self, notification: PushNotification) -> None:
    logger.debug("Push notifications disabled; not sending tag=%s", notification.payload.tag)
    raise TransientDeliveryError("Push notifications are disabled")


def _extract_status_code(exc: WebPushException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None
