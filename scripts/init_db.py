"""Database initialization helper.

Creates the Postgres database when it is missing (local/dev only), then runs
`alembic upgrade head`. SQLite databases are created on first connect.
"""

import argparse
import asyncio
import logging
import os
import re
import sys

from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine

# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

logger = logging.getLogger("scripts.init_db")

_DB_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def _validate_database_name(db_name: str) -> str:
  """Validate a PostgreSQL database name used as an identifier.

  ``CREATE DATABASE`` cannot take a bind parameter, so only plain identifiers are accepted.
  """
  if not db_name:
    raise ValueError("Target database name is empty.")

  if not _DB_NAME_PATTERN.fullmatch(db_name):
    raise ValueError("Target database name contains invalid characters (allowed: A-Z, a-z, 0-9, _).")

  return db_name


async def create_database_if_not_exists(dsn: str) -> None:
  """Create the configured Postgres database if it does not already exist."""
  from nerdiversary.core.database import normalize_database_url

  url = make_url(normalize_database_url(dsn))
  if not url.drivername.startswith("postgresql"):
    return

  target_db = _validate_database_name(url.database or "")
  # CREATE DATABASE must run outside a transaction on the maintenance database.
  engine = create_async_engine(url.set(database="postgres"), isolation_level="AUTOCOMMIT")
  try:
    async with engine.connect() as conn:
      result = await conn.execute(text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": target_db})
      if result.scalar() == 1:
        logger.info("Database '%s' already exists.", target_db)
        return

      logger.info("Database '%s' does not exist. Creating...", target_db)
      await conn.execute(text(f'CREATE DATABASE "{target_db}"'))
  finally:
    await engine.dispose()


async def main(create_database: bool) -> None:
  from nerdiversary.config import get_database_settings
  from nerdiversary.core.database import dispose_engine
  from nerdiversary.core.migrations import upgrade_schema

  settings = get_database_settings()
  if create_database:
    await create_database_if_not_exists(settings.pg_dsn)

  try:
    await upgrade_schema()
    logger.info("Schema is at head.")
  finally:
    await dispose_engine()


if __name__ == "__main__":
  parser = argparse.ArgumentParser(description="Create the Nerdiversary database schema.")
  parser.add_argument("--create-database", action="store_true", help="Create the Postgres database first when it is missing.")
  args = parser.parse_args()

  logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
  if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
  asyncio.run(main(args.create_database))
