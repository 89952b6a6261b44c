from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from nerdiversary.api.routes import calendar, push, tasks
from nerdiversary.config import get_settings
from nerdiversary.core.exceptions import domain_validation_exception_handler, global_exception_handler, http_exception_handler, request_validation_exception_handler, storage_exception_handler
from nerdiversary.core.lifespan import lifespan
from nerdiversary.core.middleware import RequestLoggingMiddleware
from nerdiversary.notifications.contracts import StorageError, ValidationError

settings = get_settings()

app = FastAPI(title="Nerdiversary push service", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=False, allow_methods=["GET", "POST", "PATCH", "OPTIONS"], allow_headers=["content-type"], expose_headers=["content-length", "x-request-id"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(ValidationError, domain_validation_exception_handler)
app.add_exception_handler(StorageError, storage_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(push.router, prefix="/push", tags=["push"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
app.include_router(calendar.router, tags=["calendar"])
