from logging.config import fileConfig
import os
import sys

from sqlalchemy import engine_from_config, make_url
from sqlalchemy import pool
from alembic import context

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from waydown.config import settings  # noqa: E402
from waydown.models import Base  # noqa: E402


# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _synchronous_url(async_url: str) -> str:
    """Alembic runs on a synchronous driver"""
    url = make_url(async_url)
    driver = url.drivername

    if driver in {"postgresql+asyncpg", "postgresql+psycopg_async", "postgresql"}:
        url = url.set(drivername="postgresql+psycopg")
    elif driver == "sqlite+aiosqlite":
        url = url.set(drivername="sqlite+pysqlite")
    elif "+" in driver:
        url = url.set(drivername=driver.split("+")[0])

    return url.render_as_string(hide_password=False)


sync_database_url = _synchronous_url(settings.database_url)


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting"""
    context.configure(
        url=sync_database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = sync_database_url
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
