"""
Alembic environment for the registration schema.

Migrations own the live tables on ``Base.metadata`` only. The archive tables
(``payments_archive``, ``class_registrations_archive``, ``events_archive``)
sit on ``ArchiveBase`` and are created by the retention jobs on first use,
so autogenerate must neither create nor drop them.
"""

import logging
from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context

from app.core.config import get_settings
from app.db.models import ArchiveBase, Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

logger = logging.getLogger("alembic.env")

settings = get_settings()
DATABASE_URL = settings.get_database_url()

target_metadata = Base.metadata
ARCHIVE_TABLE_NAMES = frozenset(ArchiveBase.metadata.tables)


def include_object(obj, name, type_, reflected, compare_to):
    """Leave job-managed archive tables (and their indexes) out of autogenerate."""
    if type_ == "table":
        return name not in ARCHIVE_TABLE_NAMES
    table = getattr(obj, "table", None)
    if table is not None and table.name in ARCHIVE_TABLE_NAMES:
        return False
    return True


def _configure_options() -> dict:
    return {
        "target_metadata": target_metadata,
        "include_object": include_object,
        "compare_type": True,
        # SQLite cannot ALTER most constraints in place
        "render_as_batch": DATABASE_URL.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL for ``settings.get_database_url()`` without connecting."""
    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool)
    logger.info(f"Migrating {engine.url.render_as_string(hide_password=True)}")
    with engine.connect() as connection:
        context.configure(connection=connection, **_configure_options())

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
