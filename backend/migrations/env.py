import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

from alembic import context

# Корневая директория проекта в sys.path для импорта модулей при запуске из backend/
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.app.core.settings import get_settings


# Синхронный URL для миграций (psycopg2) — без asyncio/asyncpg
def _get_sync_db_url() -> str:
    url = get_settings().db_url
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


SYNC_DB_URL = _get_sync_db_url()

from backend.app.core.base import Base

# Импортируем все модели, чтобы они зарегистрировались в метаданных
from backend.app.models import vendor_settings, opening_hours, slot_demand  # noqa: F401

config = context.config

# ConfigParser трактует % как интерполяцию; экранируем для записи в конфиг
config.set_main_option("sqlalchemy.url", SYNC_DB_URL.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode: emit SQL for the configured URL without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Выполнение миграций с переданным соединением."""
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode using sync engine (psycopg2)."""
    connectable = create_engine(SYNC_DB_URL, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        do_run_migrations(connection)
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
