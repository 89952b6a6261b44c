from __future__ import annotations

import logging
import secrets
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, status

from nerdiversary.api.deps import get_pipeline
from nerdiversary.config import Settings, get_settings
from nerdiversary.notifications.pipeline import NotificationPipeline

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


def _authorize(settings: Settings, authorization: str | None, shared_secret: str | None) -> None:
  # Internal task endpoints stay closed until a secret is configured.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")

  shared_secret_valid = secrets.compare_digest((shared_secret or "").encode(), settings.task_secret.encode())
  bearer_valid = secrets.compare_digest((authorization or "").encode(), f"Bearer {settings.task_secret}".encode())
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to /internal/tasks/scan")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


@router.post("/scan", status_code=status.HTTP_200_OK)
async def run_scan_task(
  settings: Annotated[Settings, Depends(get_settings)],
  pipeline: Annotated[NotificationPipeline, Depends(get_pipeline)],
  authorization: str | None = Header(default=None),
  x_nerdiversary_task_secret: str | None = Header(default=None),
) -> dict[str, Any]:
  """Run one scan tick; meant for a scheduler such as cron or Cloud Scheduler.

  The tick runs inline so the caller gets the report; overlapping calls return ``skipped``.
  """
  _authorize(settings, authorization, x_nerdiversary_task_secret)
  report = await pipeline.run_scan()
  return report.to_dict()
