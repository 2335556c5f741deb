from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from health_procure.db_migrations import to_sqlalchemy_url


config = context.config

if config.config_file_name is not None:
    # Keep the app's JSON logger alive when migrations run inside `flask db`.
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Schema is plain SQL shared with init_db; nothing to autogenerate from.
target_metadata = None


def _database_url() -> str:
    # sqlalchemy.url is set by `flask db`; DATABASE_URL covers bare `alembic` runs.
    configured_url = config.get_main_option("sqlalchemy.url")
    return to_sqlalchemy_url(configured_url or os.environ.get("DATABASE_URL") or "")


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = _database_url()

    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
