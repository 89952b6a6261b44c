import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from nerdiversary.core.database import dispose_engine
from nerdiversary.core.logging import _initialize_logging
from nerdiversary.core.migrations import upgrade_schema


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and, when asked to, migrate the schema; release pooled connections on shutdown."""
  from nerdiversary.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("nerdiversary.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified. environment=%s push_enabled=%s", settings.environment, settings.push_notifications_enabled)
  except RuntimeError:
    # Keep serving with whatever handlers uvicorn installed.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  if settings.auto_create_schema:
    logger.info("Applying migrations on %s", _redact_dsn(settings.pg_dsn))
    await upgrade_schema()

  try:
    yield
  finally:
    await dispose_engine()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  if parsed.scheme.startswith("sqlite"):
    return raw

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
