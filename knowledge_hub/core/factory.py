"""Builds a KnowledgeService from configuration."""

import logging
from collections.abc import Callable

from knowledge_hub.core.knowledge_service import KnowledgeService
from knowledge_hub.index.knowledge_index import KnowledgeIndex
from knowledge_hub.lib.config import ConfigLoader
from knowledge_hub.storage.document_store import DocumentStore, InMemoryDocumentStore
from knowledge_hub.storage.sqlite_store import SQLiteDocumentStore

logger = logging.getLogger(__name__)


def build_store(config: ConfigLoader) -> DocumentStore:
    kind = config.get_env("store", "sqlite")
    if kind == "memory":
        return InMemoryDocumentStore()
    if kind == "sqlite":
        return SQLiteDocumentStore(config.get_env("db_path"))
    raise ValueError(f"Unknown KNOWLEDGE_STORE backend: {kind}")


def build_service(
    config: ConfigLoader,
    store: DocumentStore | None = None,
    user_provider: Callable[[], str] | None = None,
) -> KnowledgeService:
    """Construct an unopened service; callers own ``open``/``close``."""
    default_user = config.get_env("user_id", "current-user")
    service = KnowledgeService(
        store=store or build_store(config),
        index=KnowledgeIndex(content_token_limit=config.get("index.content_token_limit", 1000)),
        agents=config.agent_registry(),
        catalog=config.catalog(),
        user_provider=user_provider or (lambda: default_user),
        cache_capacity=config.get("cache.capacity", 10),
        knowledge_slugs=config.knowledge_slugs(),
    )
    logger.debug(f"Built knowledge service with {type(service.store).__name__}")
    return service
