"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root and src directory to Python path so tests can import properly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from conversation_search.conversation_database.in_memory import (  # noqa: E402
    InMemoryConversationDatabase,
    InMemoryMessageDatabase,
)
from tests.fixtures import EMBEDDING_SIZE, FakeEmbeddings, StepClock  # noqa: E402


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def conversation_db(clock):
    return InMemoryConversationDatabase(clock=clock)


@pytest.fixture
def message_db(clock):
    return InMemoryMessageDatabase(embedding_size=EMBEDDING_SIZE, clock=clock)


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()
