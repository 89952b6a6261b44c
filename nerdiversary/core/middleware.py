import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("nerdiversary.core.middleware")

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _incoming_request_id(scope: Scope) -> str | None:
  for key, value in scope.get("headers", []):
    if key.decode("latin-1").lower() == "x-request-id":
      candidate = value.decode("latin-1").strip()
      return candidate if _REQUEST_ID_RE.fullmatch(candidate) else None
  return None


def _build_request_path(scope: Scope) -> str:
  # Query strings can carry push endpoints and birthdates; log the path only.
  return scope.get("path", "")


class RequestLoggingMiddleware:
  """Tag each request with an ``x-request-id`` and log method, path, status and latency."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = _incoming_request_id(scope) or str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    path = _build_request_path(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, path)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    await self.app(scope, receive, send_wrapper)

    process_time = (time.perf_counter() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)
