# backend/rackdb/alembic/env.py

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# ---------------------------------------------------------------------------
# PYTHONPATH SETUP
# ---------------------------------------------------------------------------
# __file__  = backend/rackdb/alembic/env.py
# BASE_DIR  = backend/
# ---------------------------------------------------------------------------

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _resolve_url() -> str:
    """
    Prefer the environment (the same variables the app reads); fall back to
    sqlalchemy.url from alembic.ini unless it is the template placeholder.
    """
    url = (os.getenv("DATABASE_WRITE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not url:
        url = (config.get_main_option("sqlalchemy.url") or "").strip()
        if url.startswith("driver://"):
            url = ""
    if not url:
        raise RuntimeError(
            "No database URL found.\n"
            "Set DATABASE_WRITE_URL / DATABASE_URL or sqlalchemy.url in alembic.ini."
        )
    # rackdb.database refuses to import without a URL.
    os.environ.setdefault("DATABASE_URL", url)
    config.set_main_option("sqlalchemy.url", url)
    return url


DATABASE_URL = _resolve_url()

from rackdb.database import Base, write_engine  # noqa: E402
from rackdb.apps.inventory import models as inventory_models  # noqa: F401, E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Render SQL without connecting to the database."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=DATABASE_URL.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations through the application's write engine."""
    with write_engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
