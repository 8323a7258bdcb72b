"""Alembic migration environment configuration.

Async SQLAlchemy migrations for the stonebridge tables.
The database URL and asyncpg connect args come from stonebridge.settings
(DATABASE_URL in the environment or .env).
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

# Import Base and all models for autogenerate support
from stonebridge.settings import get_settings
from stonebridge.stores.postgres import Base
from stonebridge.models import (  # noqa: F401
    Cart,
    CartItem,
    DepositPlan,
    DepositSession,
    Diamond,
    Payment,
    PaymentSchedule,
    Product,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """DATABASE_URL if set, else the ini's sqlalchemy.url."""
    if os.getenv("DATABASE_URL"):
        return get_settings().async_database_url
    return config.get_main_option("sqlalchemy.url") or get_settings().async_database_url


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting (alembic upgrade --sql)."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with async engine."""
    url = get_url()
    connect_args = get_settings().asyncpg_connect_args if url.startswith("postgresql") else {}

    connectable = create_async_engine(
        url,
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
