import asyncio
import logging
import sys
from logging.config import fileConfig
from os.path import abspath, dirname
from time import perf_counter

from sqlalchemy.engine import Connection

from alembic import context

# Add the project root to the path so we can import 'nerdiversary'
sys.path.insert(0, dirname(dirname(abspath(__file__))))

config = context.config

# Programmatic runs keep the service logging set up by nerdiversary.core.logging.
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
  fileConfig(config.config_file_name, disable_existing_loggers=False)

# Must import models so they are attached to Base.metadata
import nerdiversary.schema  # noqa: E402, F401
from nerdiversary.config import get_database_settings  # noqa: E402
from nerdiversary.core.database import Base, build_engine, normalize_database_url  # noqa: E402

target_metadata = Base.metadata

# Track migration timing so logs include per-revision durations.
_MIGRATION_TIMER = {"current_start": None}

_migration_logger = logging.getLogger("alembic.runtime.migration")


def _database_url() -> str:
  return normalize_database_url(config.get_main_option("sqlalchemy.url") or get_database_settings().pg_dsn)


def _on_version_apply(*, ctx: object, step: object, heads: set[str], run_args: dict[str, object]) -> None:
  """Emit per-revision logs so operators see timing and progress."""
  end_time = perf_counter()
  start_time = _MIGRATION_TIMER.get("current_start")
  revision = getattr(step, "up_revision_id", None) or "unknown"
  if start_time is None:
    _migration_logger.info("Applied migration %s", revision)
  else:
    _migration_logger.info("Applied migration %s in %.3fs", revision, end_time - start_time)

  _MIGRATION_TIMER["current_start"] = perf_counter()


def _build_context_options() -> dict[str, object]:
  # SQLite cannot ALTER most column properties; batch mode recreates the table instead.
  return {"target_metadata": target_metadata, "compare_type": True, "render_as_batch": True, "on_version_apply": _on_version_apply}


def run_migrations_offline() -> None:
  """Emit SQL for the configured URL without connecting."""
  context.configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"}, **_build_context_options())

  with context.begin_transaction():
    context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
  """Run migrations on the provided connection while logging revisions."""
  context.configure(connection=connection, **_build_context_options())
  migration_context = context.get_context()
  current_revision = migration_context.get_current_revision() or "base"
  target_list = migration_context.script.get_heads() if migration_context.script else []
  _migration_logger.info("Starting migration run from %s to %s", current_revision, ", ".join(target_list) or "none")
  _MIGRATION_TIMER["current_start"] = perf_counter()

  with context.begin_transaction():
    context.run_migrations()

  _migration_logger.info("Completed migration run at %s", ", ".join(migration_context.get_current_heads()) or "none")


async def run_async_migrations() -> None:
  """Run migrations with the service's async engine so drivers and pragmas match runtime."""
  connectable = build_engine(_database_url())

  async with connectable.connect() as connection:
    await connection.run_sync(do_run_migrations)
    await connection.commit()

  await connectable.dispose()


def run_migrations_online() -> None:
  connection = config.attributes.get("connection")
  if connection is not None:
    # Called from nerdiversary.core.migrations with an open connection.
    do_run_migrations(connection)
    return

  asyncio.run(run_async_migrations())


if context.is_offline_mode():
  run_migrations_offline()
else:
  run_migrations_online()
