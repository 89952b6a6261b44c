"""Routes for Web Push subscription lifecycle management."""

from __future__ import annotations

import re
import urllib.parse
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic_core import PydanticCustomError

from nerdiversary.api.deps import get_family_repo, get_subscription_repo
from nerdiversary.config import Settings, get_settings
from nerdiversary.notifications.contracts import LeadTimes, ValidationError
from nerdiversary.notifications.family_member_repo import MAX_MEMBERS_PER_SUBSCRIPTION, FamilyMemberRepository, build_family_param, parse_family_param
from nerdiversary.notifications.subscription_repo import SubscriptionRepository, subscription_id_for

_BASE64_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

router = APIRouter()


def _validate_endpoint(value: str) -> str:
  normalized = value.strip()
  parsed = urllib.parse.urlparse(normalized)
  if parsed.scheme.lower() != "https":
    raise PydanticCustomError("push_endpoint_https", "endpoint must use https.")

  if not parsed.hostname:
    raise PydanticCustomError("push_endpoint_host", "endpoint must include a host.")

  return normalized


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_base64url(cls, value: str) -> str:
    normalized = value.strip()
    if not _BASE64_RE.fullmatch(normalized):
      raise PydanticCustomError("push_key_format", "push keys must be base64url encoded.")
    return normalized


class PushSubscriptionPayload(BaseModel):
  """Standard browser ``PushSubscription.toJSON()`` object."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


class PushSubscribeRequest(BaseModel):
  subscription: PushSubscriptionPayload
  family: str | None = Field(default=None, max_length=8192)
  notification_times: list[StrictInt] | None = Field(default=None, alias="notificationTimes")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class PushSubscribeResponse(BaseModel):
  id: str


class PushEndpointRequest(BaseModel):
  """Payload naming an existing subscription by its endpoint."""

  endpoint: str = Field(min_length=1, max_length=2048)
  model_config = ConfigDict(extra="forbid")

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


class PushPreferencesRequest(PushEndpointRequest):
  notification_times: list[StrictInt] = Field(alias="notificationTimes")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


class FamilyMemberOut(BaseModel):
  id: int
  name: str
  birth_datetime: str = Field(serialization_alias="birthDatetime")


class FamilyResponse(BaseModel):
  family: str
  members: list[FamilyMemberOut]
  notification_times: list[int] = Field(serialization_alias="notificationTimes")


@router.get("/vapid-public-key")
async def get_vapid_public_key(settings: Annotated[Settings, Depends(get_settings)]) -> dict[str, str]:
  """Expose the application server key browsers need to subscribe."""
  if not settings.push_notifications_enabled or not settings.push_vapid_public_key:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications are not configured.")

  return {"publicKey": settings.push_vapid_public_key}


@router.post("/subscribe", status_code=status.HTTP_201_CREATED, response_model=PushSubscribeResponse)
async def subscribe_to_push(
  payload: PushSubscribeRequest,
  subscription_repo: Annotated[SubscriptionRepository, Depends(get_subscription_repo)],
  family_repo: Annotated[FamilyMemberRepository, Depends(get_family_repo)],
) -> PushSubscribeResponse:
  """Register (or refresh) a browser subscription together with the family it follows."""
  lead_times = LeadTimes(tuple(payload.notification_times)) if payload.notification_times is not None else None
  members = parse_family_param(payload.family) if payload.family is not None else None
  # Reject oversized families before the subscription row is written.
  if members is not None and len(members) > MAX_MEMBERS_PER_SUBSCRIPTION:
    raise ValidationError(f"At most {MAX_MEMBERS_PER_SUBSCRIPTION} family members are allowed per subscription.")

  record = await subscription_repo.create(endpoint=payload.subscription.endpoint, p256dh=payload.subscription.keys.p256dh, auth=payload.subscription.keys.auth, lead_times=lead_times)
  if members is not None:
    await family_repo.replace_for(record.id, members)

  return PushSubscribeResponse(id=record.id)


@router.post("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
async def unsubscribe_from_push(payload: PushEndpointRequest, subscription_repo: Annotated[SubscriptionRepository, Depends(get_subscription_repo)]) -> Response:
  """Delete a subscription and its family; unknown endpoints are accepted silently."""
  await subscription_repo.delete_by_endpoint(payload.endpoint)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/preferences", status_code=status.HTTP_204_NO_CONTENT)
async def update_push_preferences(payload: PushPreferencesRequest, subscription_repo: Annotated[SubscriptionRepository, Depends(get_subscription_repo)]) -> Response:
  lead_times = LeadTimes(tuple(payload.notification_times))
  if not await subscription_repo.update_lead_times(subscription_id_for(payload.endpoint), lead_times):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Push subscription not found.")

  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/family", response_model=FamilyResponse, response_model_by_alias=True)
async def get_push_family(
  endpoint: Annotated[str, Query(min_length=1, max_length=2048)],
  subscription_repo: Annotated[SubscriptionRepository, Depends(get_subscription_repo)],
  family_repo: Annotated[FamilyMemberRepository, Depends(get_family_repo)],
) -> FamilyResponse:
  """Return the family a subscription follows, in birth order."""
  subscription = await subscription_repo.get_by_endpoint(endpoint)
  if subscription is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Push subscription not found.")

  members = await family_repo.list_for(subscription.id)
  return FamilyResponse(
    family=build_family_param(members),
    members=[FamilyMemberOut(id=member.id, name=member.name, birth_datetime=member.birth_datetime) for member in members],
    notification_times=list(subscription.lead_times),
  )
