"""Deliver one payload to one subscription and classify the outcome."""

from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool

from nerdiversary.notifications.contracts import DeliveryResult, PermanentDeliveryError, PushNotification, PushPayload, PushSender, SubscriptionRecord, TransientDeliveryError

logger = logging.getLogger(__name__)


class PushDispatcher:
  """Wrap a blocking PushSender so the event loop never waits on the network."""

  def __init__(self, *, push_sender: PushSender) -> None:
    self._push_sender = push_sender

  @property
  def enabled(self) -> bool:
    return bool(getattr(self._push_sender, "enabled", True))

  async def deliver(self, subscription: SubscriptionRecord, payload: PushPayload) -> DeliveryResult:
    notification = PushNotification(endpoint=subscription.endpoint, p256dh=subscription.p256dh, auth=subscription.auth, payload=payload)
    try:
      await run_in_threadpool(self._push_sender.send, notification)
    except PermanentDeliveryError as exc:
      logger.info("Push endpoint permanently failed subscription_id=%s: %s", subscription.id, exc)
      return DeliveryResult.PERMANENTLY_FAILED
    except TransientDeliveryError as exc:
      logger.warning("Push delivery exhausted retries subscription_id=%s tag=%s: %s", subscription.id, payload.tag, exc)
      return DeliveryResult.TRANSIENT_FAILURE
    except Exception:  # noqa: BLE001
      logger.error("Unexpected push sender failure subscription_id=%s tag=%s", subscription.id, payload.tag, exc_info=True)
      return DeliveryResult.TRANSIENT_FAILURE

    logger.info("Push delivered subscription_id=%s tag=%s", subscription.id, payload.tag)
    return DeliveryResult.DELIVERED
