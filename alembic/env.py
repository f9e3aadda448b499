"""Alembic environment: DATABASE_URL comes from app settings, tables from the DocVault models."""

from logging.config import fileConfig

from alembic import context

from app.core.config import get_settings
from app.core.database import build_engine
from app.models import Base

config = context.config
# alembic.ini carries no logging sections; only apply them when present
if config.config_file_name is not None and config.has_section("formatters"):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return get_settings().DATABASE_URL


def _configure(**kwargs) -> None:
    # SQLite cannot ALTER most constraints in place; batch mode recreates the table instead
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=_database_url().startswith("sqlite"),
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the pending revisions without connecting."""
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = build_engine(_database_url())
    try:
        with engine.connect() as connection:
            _configure(connection=connection)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
