"""
backend/migrations/env.py — Alembic environment for the cartpool schema.

The database URL comes from DATABASE_URL, or TEST_DATABASE_URL when TEST_RUN
is set, after backend/config.py has loaded the .env files.
"""

from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# `backend.*` imports resolve from the repository root.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.config import normalize_database_url  # noqa: E402
from backend.cartpool.extensions import db  # noqa: E402
from backend.cartpool.models import chat_message, item, party, party_member, user  # noqa: E402,F401

_url_variable = "TEST_DATABASE_URL" if os.getenv("TEST_RUN") else "DATABASE_URL"
database_url = normalize_database_url(os.environ[_url_variable])

config = context.config
config.set_main_option("sqlalchemy.url", database_url)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure(**kwargs) -> None:
    context.configure(target_metadata=db.metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _configure(url=database_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure(connection=connection)
