from __future__ import annotations

import pytest

from nerdiversary.config import DEFAULT_DATABASE_URL, get_database_settings, get_settings
from nerdiversary.core.database import normalize_database_url
from nerdiversary.utils.env import load_env_file, parse_env_line


@pytest.fixture
def clean_env(monkeypatch):
  for name in ("NERDIVERSARY_PG_DSN", "DATABASE_URL", "NERDIVERSARY_PUSH_NOTIFICATIONS_ENABLED", "NERDIVERSARY_ALLOWED_ORIGINS", "NERDIVERSARY_SCAN_INTERVAL_SECONDS", "NERDIVERSARY_SCAN_MAX_CATCHUP_SECONDS", "NERDIVERSARY_MILESTONE_TIMEZONE"):
    monkeypatch.delenv(name, raising=False)
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield monkeypatch
  get_settings.cache_clear()
  get_database_settings.cache_clear()


def test_defaults(clean_env):
  settings = get_settings()
  assert settings.pg_dsn == DEFAULT_DATABASE_URL
  assert settings.scan_interval_seconds == 300
  assert settings.scan_max_catchup_seconds == 3600
  assert settings.dispatch_concurrency == 8
  assert settings.milestone_timezone == "UTC"
  assert settings.push_notifications_enabled is False


def test_database_url_falls_back_to_database_url(clean_env):
  clean_env.setenv("DATABASE_URL", "postgres://user:pw@db/nerd")
  assert get_database_settings().pg_dsn == "postgres://user:pw@db/nerd"
  assert normalize_database_url(get_database_settings().pg_dsn) == "postgresql+asyncpg://user:pw@db/nerd"


def test_push_requires_vapid_keys_when_enabled(clean_env):
  clean_env.setenv("NERDIVERSARY_PUSH_NOTIFICATIONS_ENABLED", "true")
  clean_env.delenv("NERDIVERSARY_PUSH_VAPID_PUBLIC_KEY", raising=False)
  with pytest.raises(ValueError, match="VAPID_PUBLIC_KEY"):
    get_settings()


def test_wildcard_origins_are_rejected(clean_env):
  clean_env.setenv("NERDIVERSARY_ALLOWED_ORIGINS", "https://nerdiversary.com, *")
  with pytest.raises(ValueError):
    get_settings()


def test_catch_up_must_cover_interval(clean_env):
  clean_env.setenv("NERDIVERSARY_SCAN_INTERVAL_SECONDS", "600")
  clean_env.setenv("NERDIVERSARY_SCAN_MAX_CATCHUP_SECONDS", "300")
  with pytest.raises(ValueError):
    get_settings()


def test_unknown_timezone_is_rejected(clean_env):
  clean_env.setenv("NERDIVERSARY_MILESTONE_TIMEZONE", "Mars/Olympus_Mons")
  with pytest.raises(ValueError):
    get_settings()


@pytest.mark.parametrize("raw", ["sqlite:///x.db", "postgresql://h/db"])
def test_normalize_database_url_selects_async_drivers(raw):
  normalized = normalize_database_url(raw)
  assert "+aiosqlite" in normalized or "+asyncpg" in normalized


@pytest.mark.parametrize(
  ("line", "expected"),
  [
    ("KEY=value", ("KEY", "value")),
    ("export KEY=value", ("KEY", "value")),
    ('KEY="quoted # kept"', ("KEY", "quoted # kept")),
    ("KEY=value # comment", ("KEY", "value")),
    ("# comment", None),
    ("", None),
    ("no-separator", None),
  ],
)
def test_parse_env_line(line, expected):
  assert parse_env_line(line) == expected


def test_load_env_file_respects_existing_values(tmp_path, monkeypatch):
  env_file = tmp_path / ".env"
  env_file.write_text("NERDIVERSARY_TEST_A=from-file\nNERDIVERSARY_TEST_B=from-file\n", encoding="utf-8")
  monkeypatch.setenv("NERDIVERSARY_TEST_A", "from-env")
  monkeypatch.setenv("NERDIVERSARY_TEST_B", "placeholder")
  monkeypatch.delenv("NERDIVERSARY_TEST_B")

  applied = load_env_file(env_file)
  assert applied == {"NERDIVERSARY_TEST_B": "from-file"}

  assert load_env_file(env_file, override=True) == {"NERDIVERSARY_TEST_A": "from-file", "NERDIVERSARY_TEST_B": "from-file"}
  assert load_env_file(tmp_path / "missing.env") == {}
