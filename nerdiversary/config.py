"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
import zoneinfo
from dataclasses import dataclass
from functools import lru_cache

from nerdiversary.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./nerdiversary.db"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Nerdiversary push service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  app_base_url: str
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  auto_create_schema: bool
  pg_dsn: str
  push_notifications_enabled: bool
  push_vapid_public_key: str | None
  push_vapid_private_key: str | None
  push_vapid_sub: str | None
  push_timeout_seconds: float
  push_max_attempts: int
  push_backoff_seconds: float
  scan_interval_seconds: int
  scan_max_catchup_seconds: int
  scan_lease_seconds: int
  dispatch_concurrency: int
  milestone_timezone: str
  notification_icon: str
  notification_badge: str
  task_secret: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("NERDIVERSARY_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _database_dsn() -> str:
  # Support fallback to DATABASE_URL for hosted Postgres providers.
  return _optional_str(os.getenv("NERDIVERSARY_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")) or DEFAULT_DATABASE_URL


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("NERDIVERSARY_ENV", "development").lower()
  debug = _parse_bool(os.getenv("NERDIVERSARY_DEBUG"))

  log_max_bytes = _positive_int("NERDIVERSARY_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("NERDIVERSARY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("NERDIVERSARY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  push_notifications_enabled = _parse_bool(os.getenv("NERDIVERSARY_PUSH_NOTIFICATIONS_ENABLED"))
  push_vapid_public_key = _optional_str(os.getenv("NERDIVERSARY_PUSH_VAPID_PUBLIC_KEY"))
  push_vapid_private_key = _optional_str(os.getenv("NERDIVERSARY_PUSH_VAPID_PRIVATE_KEY"))
  push_vapid_sub = _optional_str(os.getenv("NERDIVERSARY_PUSH_VAPID_SUB"))

  # Validate push configuration only when push notifications are enabled.
  if push_notifications_enabled:
    if not push_vapid_public_key:
      raise ValueError("NERDIVERSARY_PUSH_VAPID_PUBLIC_KEY must be set when push notifications are enabled.")

    if not push_vapid_private_key:
      raise ValueError("NERDIVERSARY_PUSH_VAPID_PRIVATE_KEY must be set when push notifications are enabled.")

    if not push_vapid_sub:
      raise ValueError("NERDIVERSARY_PUSH_VAPID_SUB must be set when push notifications are enabled.")

    if not (push_vapid_sub.startswith("mailto:") or push_vapid_sub.startswith("https://")):
      raise ValueError("NERDIVERSARY_PUSH_VAPID_SUB must start with 'mailto:' or 'https://'.")

  push_max_attempts = _positive_int("NERDIVERSARY_PUSH_MAX_ATTEMPTS", "3")
  if push_max_attempts > 10:
    raise ValueError("NERDIVERSARY_PUSH_MAX_ATTEMPTS must not exceed 10.")

  # The scan interval doubles as the tolerance window of each tick.
  scan_interval_seconds = _positive_int("NERDIVERSARY_SCAN_INTERVAL_SECONDS", "300")
  scan_max_catchup_seconds = _positive_int("NERDIVERSARY_SCAN_MAX_CATCHUP_SECONDS", "3600")
  if scan_max_catchup_seconds < scan_interval_seconds:
    raise ValueError("NERDIVERSARY_SCAN_MAX_CATCHUP_SECONDS must be at least NERDIVERSARY_SCAN_INTERVAL_SECONDS.")

  milestone_timezone = (os.getenv("NERDIVERSARY_MILESTONE_TIMEZONE") or "UTC").strip()
  try:
    zoneinfo.ZoneInfo(milestone_timezone)
  except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
    raise ValueError(f"NERDIVERSARY_MILESTONE_TIMEZONE is not a known timezone: {milestone_timezone}") from exc

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("NERDIVERSARY_ALLOWED_ORIGINS")),
    app_base_url=(os.getenv("NERDIVERSARY_APP_BASE_URL") or "https://nerdiversary.com").strip().rstrip("/"),
    log_dir=(os.getenv("NERDIVERSARY_LOG_DIR") or "./logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("NERDIVERSARY_LOG_HTTP_4XX")),
    auto_create_schema=_parse_bool(os.getenv("NERDIVERSARY_AUTO_CREATE_SCHEMA")),
    pg_dsn=_database_dsn(),
    push_notifications_enabled=push_notifications_enabled,
    push_vapid_public_key=push_vapid_public_key,
    push_vapid_private_key=push_vapid_private_key,
    push_vapid_sub=push_vapid_sub,
    push_timeout_seconds=_positive_float("NERDIVERSARY_PUSH_TIMEOUT_SECONDS", "10"),
    push_max_attempts=push_max_attempts,
    push_backoff_seconds=_positive_float("NERDIVERSARY_PUSH_BACKOFF_SECONDS", "1.0"),
    scan_interval_seconds=scan_interval_seconds,
    scan_max_catchup_seconds=scan_max_catchup_seconds,
    scan_lease_seconds=_positive_int("NERDIVERSARY_SCAN_LEASE_SECONDS", "600"),
    dispatch_concurrency=_positive_int("NERDIVERSARY_DISPATCH_CONCURRENCY", "8"),
    milestone_timezone=milestone_timezone,
    notification_icon=(os.getenv("NERDIVERSARY_NOTIFICATION_ICON") or "/assets/icon-192.png").strip(),
    notification_badge=(os.getenv("NERDIVERSARY_NOTIFICATION_BADGE") or "/assets/favicon-96x96.png").strip(),
    task_secret=_optional_str(os.getenv("NERDIVERSARY_TASK_SECRET")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so offline scripts don't require unrelated env vars.
  return DatabaseSettings(debug=_parse_bool(os.getenv("NERDIVERSARY_DEBUG")), pg_dsn=_database_dsn())


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
