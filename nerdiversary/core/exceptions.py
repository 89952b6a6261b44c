import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nerdiversary.notifications.contracts import StorageError, ValidationError

logger = logging.getLogger("uvicorn.error")


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  """Build an error body that never carries internal diagnostics."""
  payload: dict[str, Any] = {"detail": detail}
  # Attach a request id so client reports can be correlated with server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Drop raw inputs (push keys, birthdates) from validation errors."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key not in {"input", "ctx", "url"}}
    scrubbed["loc"] = [str(part) for part in scrubbed.get("loc", ())]
    sanitized.append(scrubbed)
  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch-all for unhandled errors."""
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def domain_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
  """Map store-level validation failures (bad lead times, malformed birthdates) to 422."""
  request_id = _request_id(request)
  logger.warning("Domain validation failed request_id=%s path=%s error=%s", request_id, request.url.path, exc)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(str(exc), request_id=request_id))


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
  request_id = _request_id(request)
  logger.error("Storage failure request_id=%s path=%s", request_id, request.url.path, exc_info=True)
  return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=_error_payload("Storage unavailable", request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Keep 4xx details for clients; hide 5xx details behind a generic message."""
  from nerdiversary.config import get_settings

  settings = get_settings()
  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id), headers=exc.headers)

  if settings.log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=exc.headers)
