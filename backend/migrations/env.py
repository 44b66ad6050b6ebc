"""Alembic environment for the service center schema.

The database URL comes from DATABASE_URL (same default as create_app) so migrations
and the running app always point at the same database.
"""
from __future__ import annotations
from logging.config import fileConfig
import os, sys

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import service_center.models  # noqa: E402,F401  registers every table on Base.metadata
from service_center.models.authz import Base  # noqa: E402

load_dotenv()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option('sqlalchemy.url', os.getenv('DATABASE_URL', 'sqlite:///dev.db'))
target_metadata = Base.metadata

# batch mode so ALTER TABLE works on SQLite; compare_type catches column type drift
CONFIGURE_OPTS = {'target_metadata': target_metadata, 'render_as_batch': True, 'compare_type': True}


def run_migrations_offline():
    context.configure(url=config.get_main_option('sqlalchemy.url'), literal_binds=True,
                      dialect_opts={'paramstyle': 'named'}, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(config.get_section(config.config_ini_section), prefix='sqlalchemy.', poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **CONFIGURE_OPTS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
