"""
Shared fixtures for the DocStore test suite.
"""

import pytest_asyncio

from docstore_sdk.database import Database
from docstore_sdk.store.memory import InMemoryStore


@pytest_asyncio.fixture
async def memory_store():
    """Connected in-memory store."""
    store = InMemoryStore()
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def db():
    """Connected database backed by an in-memory store."""
    database = Database(InMemoryStore(), "app")
    await database.connect()
    yield database
    await database.close()
