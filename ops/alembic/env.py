"""Alembic environment for the tax compliance tables.

The database URL comes from ``alembic.ini`` when set there, otherwise from
``DATABASE_URL`` / application settings. SQLite runs in batch mode.
"""
import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.apps.tax_compliance.repository import get_metadata  # noqa: E402
from backend.core.config import settings  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str:
    return (
        config.get_main_option("sqlalchemy.url")
        or os.environ.get("DATABASE_URL")
        or settings.database_url
    )


def _configure(**kwargs) -> None:
    context.configure(target_metadata=get_metadata(), compare_type=True, **kwargs)


def run_offline(url: str) -> None:
    _configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = url
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with engine.connect() as connection:
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline(_database_url())
else:
    run_online(_database_url())
