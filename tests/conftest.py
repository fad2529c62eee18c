"""Pytest configuration and shared fixtures.

Provides:
- Marker registration
- Agent/catalog fixtures shared by the mention and service tests
- An opened in-memory KnowledgeService with a switchable acting user
"""

import logging

import pytest
import pytest_asyncio

from knowledge_hub.core.knowledge_service import KnowledgeService
from knowledge_hub.models.catalog import Agent, AgentRegistry, Catalog
from knowledge_hub.storage.document_store import InMemoryDocumentStore

logger = logging.getLogger(__name__)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


class ActingUser:
    """Callable user provider whose identity tests can switch."""

    def __init__(self, user_id: str = "alice"):
        self.user_id = user_id

    def __call__(self) -> str:
        return self.user_id


@pytest.fixture
def acting_user():
    return ActingUser()


@pytest.fixture
def agents():
    return AgentRegistry(
        [
            Agent("permit-assistant", "Permit Assistant", "Guides applicants through permits", "#3B82F6"),
            Agent("budget-analyst", "Budget Analyst", "Reviews departmental budgets", "#10B981"),
            Agent("shop-foreman", "Shop Foreman", "Knows every tool in the shop", "#F59E0B"),
        ]
    )


@pytest.fixture
def catalog():
    return Catalog()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest_asyncio.fixture
async def service(store, agents, catalog, acting_user):
    svc = KnowledgeService(
        store=store,
        agents=agents,
        catalog=catalog,
        user_provider=acting_user,
    )
    await svc.open()
    yield svc
    await svc.close()


@pytest.fixture
def index_buckets():
    """Returns every (map, token) pair of an index whose bucket holds a document id."""

    def buckets(index, document_id):
        maps = {
            "title": index._title_index,
            "tag": index._tag_index,
            "type": index._type_index,
            "content": index._word_index,
        }
        return [
            (name, token)
            for name, token_map in maps.items()
            for token, bucket in token_map.items()
            if document_id in bucket
        ]

    return buckets
