"""
Alembic environment for the Codifyr schema.

Migrations cover the two tables the core reads and writes, ``profiles``
and ``verification_uploads``, plus the shared ``verification_status`` enum.
In production these tables live in the identity provider's Postgres
database, so ``DATABASE_URL`` must point there (loaded from ``.env``).

    alembic upgrade head                 # apply
    alembic revision --autogenerate -m   # diff against codifyr.database.models
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

from alembic import context

load_dotenv()

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from codifyr.database.models import Base  # noqa: E402

target_metadata = Base.metadata


def _database_url() -> str:
    """DATABASE_URL wins over any ``sqlalchemy.url`` in alembic.ini."""
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at the provider's Postgres."
        )
    return url


def _configure_kwargs() -> dict:
    # Enum value changes (e.g. a new verification status) must show up in diffs
    return {"target_metadata": target_metadata, "compare_type": True}


def run_migrations_offline() -> None:
    """Emit SQL for the Codifyr tables without a live connection."""
    context.configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations against the live provider database."""
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
