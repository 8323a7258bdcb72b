"""Shared fixtures: an in-memory Shopify double and a throwaway SQLite database."""

import pytest

from stonebridge import models  # noqa: F401  (registers tables on Base.metadata)
from stonebridge.stores.postgres import close_db, create_tables, init_db

from tests.fakes import FakeShopifyClient


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
async def db(tmp_path):
    """Fresh SQLite database with all tables; torn down after the test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'stonebridge.db'}")
    await create_tables()
    yield
    await close_db()
