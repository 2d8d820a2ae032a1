"""
Shared pytest fixtures for document store tests.
"""

import os
import tempfile

import pytest
import pytest_asyncio

from docstore.engine.database import Database


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    """Provide a path for the log file."""
    return os.path.join(temp_dir, "people.db")


@pytest_asyncio.fixture
async def db(db_path):
    """Provide an open Database searching `name` and `bio`."""
    async with Database(db_path, full_text_fields=["name", "bio"]) as database:
        yield database


@pytest.fixture
def people():
    """Provide sample entities."""
    return [
        {"_id": 1, "name": "Ann Lee", "age": 31, "city": "Oslo", "bio": "Likes tea and chess"},
        {"_id": 2, "name": "Bob Stone", "age": 45, "city": "Rome", "bio": "Gardener, cat person"},
        {"_id": 3, "name": "Cy Park", "age": 27, "city": "Oslo", "bio": "Plays chess online"},
        {"_id": 4, "name": "Dee Moss", "age": 45, "city": "Lima", "bio": "A cat sat on my keyboard"},
    ]


@pytest_asyncio.fixture
async def populated_db(db, people):
    """Provide a Database holding the sample entities."""
    for person in people:
        await db.insert(person)
    return db
