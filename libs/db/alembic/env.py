# ruff: noqa: I001
"""
Alembic environment for the ledger store.

The target URL is ``DATABASE_URL`` (a workspace ``.env`` is honoured, never
overriding the shell) or ``sqlalchemy.url`` from the ini file. Migrations only
look at the ``ledger_*`` tables so the ledger can share a database with other
applications. SQLite targets run in batch mode, since SQLite cannot ALTER
constraints in place.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url
from dotenv import load_dotenv, find_dotenv

import db as _db_pkg


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# find_dotenv(usecwd=True) finds the workspace .env from the repo root and from libs/db.
_dotenv_path = find_dotenv(usecwd=True)
if _dotenv_path:
    load_dotenv(dotenv_path=_dotenv_path, override=False)


def _ledger_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Export it, add it to .env, or set "
            "'sqlalchemy.url' in alembic.ini."
        )
    return url


LEDGER_URL = _ledger_url()
config.set_main_option("sqlalchemy.url", LEDGER_URL)

target_metadata = _db_pkg.metadata
_AS_BATCH = make_url(LEDGER_URL).get_backend_name() == "sqlite"


def _include_name(name: str | None, type_: str, parent_names: object) -> bool:
    if type_ == "table":
        return bool(name) and name.startswith("ledger_")
    return True


def _configure(**kwargs: object) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        include_name=_include_name,
        render_as_batch=_AS_BATCH,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Print the ledger DDL instead of executing it."""
    _configure(url=LEDGER_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply pending ledger migrations over a short-lived connection."""
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = LEDGER_URL
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
