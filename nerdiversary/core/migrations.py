"""Run Alembic migrations against the configured database."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from alembic import command
from alembic.config import Config

from nerdiversary.core.database import get_db_engine, normalize_database_url

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ALEMBIC_INI_PATH = PROJECT_ROOT / "alembic.ini"


def alembic_config(database_url: str | None = None) -> Config:
  """Build the Alembic config; an explicit URL overrides the configured DSN."""
  if not ALEMBIC_INI_PATH.exists():
    raise RuntimeError(f"Missing Alembic config at {ALEMBIC_INI_PATH}.")

  config = Config(str(ALEMBIC_INI_PATH))
  config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
  config.attributes["configure_logger"] = False
  if database_url:
    # ConfigParser treats % as interpolation.
    config.set_main_option("sqlalchemy.url", normalize_database_url(database_url).replace("%", "%%"))
  return config


def _run_upgrade_sync(connection: Connection, config: Config, revision: str) -> None:
  # Hand the open connection to env.py so it does not build a second engine.
  config.attributes["connection"] = connection
  command.upgrade(config, revision)


async def upgrade_schema(db_engine: AsyncEngine | None = None, *, revision: str = "head") -> None:
  """Apply pending migrations inside one transaction."""
  target = db_engine or get_db_engine()
  config = alembic_config()
  logger.info("Running alembic upgrade %s", revision)
  async with target.connect() as connection:
    async with connection.begin():
      await connection.run_sync(_run_upgrade_sync, config, revision)
