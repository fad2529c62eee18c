"""Knowledge service: document lifecycle, versioning, search and mentions.

Write path for create/update::

    extract references -> persist -> snapshot version -> index -> back-references

A failed snapshot rolls the store back before any projection changes.

The store is authoritative. The index, reference graph and cache are
in-process projections rebuilt by ``open()``. All mutations run under one
write lock so a remove-then-reindex can never interleave with another
mutation of the same document. Write paths read the store, never the cache.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import Any

from knowledge_hub.core.document_cache import DEFAULT_CAPACITY, DocumentCache
from knowledge_hub.core.ingestion import FileIngestor, TextFileIngestor
from knowledge_hub.core.reference_extractor import extract_references
from knowledge_hub.core.reference_graph import ReferenceGraph
from knowledge_hub.index.knowledge_index import KnowledgeIndex
from knowledge_hub.mentions.prefix_dispatch import PrefixDispatchStrategy
from knowledge_hub.mentions.simple_ranker import FlatAggregateStrategy
from knowledge_hub.models.catalog import Agent, AgentRegistry, Catalog, CatalogEntry
from knowledge_hub.models.errors import (
    ConflictError,
    DocumentNotFound,
    PermissionDenied,
    UploadFailed,
    VersionNotFound,
)
from knowledge_hub.models.knowledge import (
    DocumentMetadata,
    DocumentPermissions,
    DocumentReference,
    DocumentVersion,
    KnowledgeContext,
    KnowledgeDocument,
    KnowledgeStats,
    MentionSuggestion,
    PublishingStatus,
    SearchResult,
    utcnow,
)
from knowledge_hub.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_USER = "current-user"
RELATED_LIMIT = 5
MOST_REFERENCED_LIMIT = 5

ResolvedEntity = KnowledgeDocument | Agent | CatalogEntry | None


class KnowledgeService:
    """Orchestrates the document store, index and mention strategies."""

    def __init__(
        self,
        store: DocumentStore,
        index: KnowledgeIndex | None = None,
        agents: AgentRegistry | None = None,
        catalog: Catalog | None = None,
        user_provider: Callable[[], str] | None = None,
        cache_capacity: int = DEFAULT_CAPACITY,
        knowledge_slugs: dict[str, str] | None = None,
        ingestor: FileIngestor | None = None,
    ):
        """Initialize the service.

        Args:
            store: Authoritative document store
            index: Inverted index (a fresh one by default)
            agents: Agent registry for mentions and reference resolution
            catalog: Skill, tool and system catalogs
            user_provider: Returns the acting user id for each call
            cache_capacity: Size of the most-recently-used document cache
            knowledge_slugs: ``@knowledge/<slug>`` to document id mapping
            ingestor: File ingestion layer used by ``upload_file``
        """
        self.store = store
        self.index = index or KnowledgeIndex()
        self.agents = agents or AgentRegistry()
        self.catalog = catalog or Catalog()
        self.user_provider = user_provider or (lambda: DEFAULT_USER)
        self.cache = DocumentCache(cache_capacity)
        self.graph = ReferenceGraph()
        self.knowledge_slugs = dict(knowledge_slugs or {})
        self.ingestor = ingestor or TextFileIngestor()

        self.prefix_strategy = PrefixDispatchStrategy(self, self.agents, self.catalog)
        self.flat_strategy = FlatAggregateStrategy(self, self.agents, self.catalog)

        self._write_lock = asyncio.Lock()
        # Bumped after every store write; a cache fill that straddles one is dropped.
        self._store_writes = 0

    @property
    def current_user(self) -> str:
        return self.user_provider()

    # Lifecycle

    async def open(self) -> None:
        """Open the store and rebuild in-process projections from it."""
        await self.store.open()
        self.index.clear()
        self.graph.clear()
        self.cache.clear()

        documents = await self.store.get_all_documents()
        documents.sort(key=lambda d: d.metadata.created)
        for document in documents:
            self.index.index_document(document)
            self.graph.set_edges(document.id, self._knowledge_targets(document.metadata.references))

        logger.info(f"Knowledge service opened with {len(documents)} documents")

    async def close(self) -> None:
        await self.store.close()
        self.index.clear()
        self.graph.clear()
        self.cache.clear()
        logger.info("Knowledge service closed")

    async def __aenter__(self) -> "KnowledgeService":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Document CRUD

    async def create_document(
        self,
        title: str,
        content: str,
        type: str = "markdown",
        tags: list[str] | None = None,
    ) -> KnowledgeDocument:
        async with self._write_lock:
            return await self._create(title, content, type, tags or [])

    async def _create(
        self,
        title: str,
        content: str,
        doc_type: str,
        tags: list[str],
        size: int | None = None,
        mime_type: str | None = None,
        original_file_name: str | None = None,
    ) -> KnowledgeDocument:
        user = self.current_user
        now = utcnow()
        document_id = str(uuid.uuid4())
        document = KnowledgeDocument(
            id=document_id,
            title=title,
            content=content,
            type=doc_type,
            metadata=DocumentMetadata(
                author=user,
                created=now,
                modified=now,
                tags=list(tags),
                references=extract_references(content),
                referenced_by=[],
                version=1,
                size=size,
                mime_type=mime_type,
            ),
            permissions=DocumentPermissions(
                owner=user,
                public=False,
                shared_with=[],
                can_edit=[user],
                can_view=[user],
            ),
            publishing_status="draft",
            original_file_name=original_file_name,
        )

        await self._save(document)
        try:
            await self._snapshot(document)
        except Exception:
            logger.error(f"Snapshot of new document {document.id} failed, rolling back")
            await self.store.delete_document(document.id)
            self._store_writes += 1
            raise
        self.index.index_document(document)
        self.cache.put(document)
        await self._sync_back_references(document)

        logger.info(
            f"Created document '{title}' with {len(document.metadata.references)} references",
            extra={"document_id": document.id, "user_id": user, "version": 1},
        )
        return document

    async def update_document(
        self,
        document_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
        expected_version: int | None = None,
    ) -> KnowledgeDocument:
        """Apply a partial update and record a new version.

        Args:
            document_id: Document to update
            title: New title, unchanged when None
            content: New content; references are re-extracted only when given
            tags: New tag list, unchanged when None
            expected_version: When set, fail with ConflictError unless the
                stored version matches

        Returns:
            The updated document at version + 1
        """
        async with self._write_lock:
            return await self._update(
                document_id,
                title=title,
                content=content,
                tags=tags,
                expected_version=expected_version,
            )

    async def _update(
        self,
        document_id: str,
        *,
        title: str | None,
        content: str | None,
        tags: list[str] | None,
        expected_version: int | None,
    ) -> KnowledgeDocument:
        document = await self._require_stored(document_id)

        user = self.current_user
        if user not in document.permissions.can_edit:
            logger.warning("Edit denied", extra={"document_id": document_id, "user_id": user})
            raise PermissionDenied(user, document_id, "edit")

        if expected_version is not None and expected_version != document.metadata.version:
            raise ConflictError(document_id, expected_version, document.metadata.version)

        metadata = document.metadata.model_copy(deep=True)
        metadata.modified = utcnow()
        metadata.version = document.metadata.version + 1
        if tags is not None:
            metadata.tags = list(tags)
        if content is not None:
            metadata.references = extract_references(content)

        updated = document.model_copy(
            update={
                "title": document.title if title is None else title,
                "content": document.content if content is None else content,
                "metadata": metadata,
            }
        )

        await self._save(updated)
        try:
            await self._snapshot(updated)
        except Exception:
            logger.error(f"Snapshot of {document_id} v{metadata.version} failed, rolling back")
            await self._save(document)
            raise
        self.index.update_document(updated)
        self.cache.put(updated)
        if content is not None:
            await self._sync_back_references(updated)

        logger.info(
            "Updated document",
            extra={"document_id": document_id, "user_id": user, "version": metadata.version},
        )
        return updated

    async def delete_document(self, document_id: str) -> None:
        async with self._write_lock:
            document = await self._require_stored(document_id)

            user = self.current_user
            if document.permissions.owner != user:
                logger.warning("Delete denied", extra={"document_id": document_id, "user_id": user})
                raise PermissionDenied(user, document_id, "delete")

            await self.store.delete_document(document_id)
            self._store_writes += 1
            self.index.remove_document(document_id)
            self.cache.invalidate(document_id)
            for target in self.graph.remove_source(document_id):
                await self._refresh_referenced_by(target)

            logger.info("Deleted document", extra={"document_id": document_id, "user_id": user})

    async def publish_document(self, document_id: str) -> KnowledgeDocument:
        return await self._set_status(document_id, "published")

    async def unpublish_document(self, document_id: str) -> KnowledgeDocument:
        return await self._set_status(document_id, "draft")

    async def archive_document(self, document_id: str) -> KnowledgeDocument:
        """Move a document to ``archived``. Only the owner may archive."""
        return await self._set_status(document_id, "archived", owner_action="archive")

    async def _set_status(
        self, document_id: str, status: PublishingStatus, owner_action: str | None = None
    ) -> KnowledgeDocument:
        async with self._write_lock:
            document = await self._require_stored(document_id)

            user = self.current_user
            if owner_action and document.permissions.owner != user:
                raise PermissionDenied(user, document_id, owner_action)

            document.publishing_status = status
            document.metadata.modified = utcnow()

            await self._save(document)
            self.index.update_document(document)
            self.cache.put(document)

            logger.info(f"Document {document_id} is now {status}")
            return document

    # Retrieval

    async def get_document(self, document_id: str) -> KnowledgeDocument:
        """Cache-first lookup; raises DocumentNotFound when absent."""
        return await self._require(document_id)

    async def _load(self, document_id: str) -> KnowledgeDocument | None:
        cached = self.cache.get(document_id)
        if cached is not None:
            logger.debug(f"Cache hit for {document_id}")
            return cached

        writes_before = self._store_writes
        document = await self.store.get_document(document_id)
        if document is not None and self._store_writes == writes_before:
            self.cache.put(document)
        return document

    async def _require(self, document_id: str) -> KnowledgeDocument:
        document = await self._load(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def _require_stored(self, document_id: str) -> KnowledgeDocument:
        """Store read for write paths; the cache may lag behind a concurrent read."""
        document = await self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def _save(self, document: KnowledgeDocument) -> None:
        await self.store.save_document(document)
        self._store_writes += 1

    async def get_all_documents(self) -> list[KnowledgeDocument]:
        return await self.store.get_all_documents()

    async def get_documents_by_type(self, doc_type: str) -> list[KnowledgeDocument]:
        return await self._fetch(self.index.search_by_type(doc_type))

    async def get_documents_by_tag(self, tag: str) -> list[KnowledgeDocument]:
        """Case-insensitive tag lookup through the index."""
        return await self._fetch(self.index.search_by_tag(tag))

    async def _fetch(self, document_ids: list[str]) -> list[KnowledgeDocument]:
        documents = []
        for document_id in document_ids:
            document = await self.store.get_document(document_id)
            if document is not None:
                documents.append(document)
        return documents

    async def search_documents(self, query: str) -> list[SearchResult]:
        return self.index.search(query)

    async def get_suggestions(self, prefix: str, limit: int = 10) -> list[str]:
        return self.index.get_suggestions(prefix, limit)

    # Mentions

    async def get_mention_suggestions(self, query: str) -> list[MentionSuggestion]:
        """Category-prefix dispatch; ``query`` keeps its leading ``@``."""
        return await self.prefix_strategy.suggest(query)

    async def get_simple_mention_suggestions(self, query: str) -> list[MentionSuggestion]:
        """Flat aggregate filter; ``query`` has the ``@`` already stripped."""
        return await self.flat_strategy.suggest(query)

    async def resolve_reference(self, reference: DocumentReference) -> ResolvedEntity:
        if reference.type == "knowledge":
            document_id = self.knowledge_slugs.get(reference.entity_id, reference.entity_id)
            return await self._load(document_id)
        if reference.type == "agent":
            return self.agents.get_agent(reference.entity_id)
        if reference.type == "skill":
            return self.catalog.get_skill(reference.entity_id)
        if reference.type == "tool":
            return self.catalog.get_tool(reference.entity_id)
        raise ValueError(f"Unknown reference type: {reference.type}")

    # Versions

    async def _snapshot(self, document: KnowledgeDocument) -> DocumentVersion:
        version = DocumentVersion(
            id=str(uuid.uuid4()),
            document_id=document.id,
            version=document.metadata.version,
            content=document.content,
            metadata=document.metadata.model_copy(deep=True),
            created=utcnow(),
            author=self.current_user,
        )
        await self.store.save_version(version)
        return version

    async def get_version_history(self, document_id: str) -> list[DocumentVersion]:
        return await self.store.get_version_history(document_id)

    async def restore_version(self, document_id: str, version_id: str) -> KnowledgeDocument:
        """Write a snapshot's content and tags forward as a new version.

        The current title is kept and the version counter keeps increasing.
        """
        async with self._write_lock:
            history = await self.store.get_version_history(document_id)
            version = next((v for v in history if v.id == version_id), None)
            if version is None:
                raise VersionNotFound(document_id, version_id)

            document = await self._require_stored(document_id)
            logger.info(f"Restoring {document_id} from version {version.version}")
            return await self._update(
                document_id,
                title=document.title,
                content=version.content,
                tags=list(version.metadata.tags),
                expected_version=None,
            )

    # Back-references

    def _knowledge_targets(self, references: list[DocumentReference]) -> list[str]:
        return [
            self.knowledge_slugs.get(ref.entity_id, ref.entity_id)
            for ref in references
            if ref.type == "knowledge"
        ]

    async def _sync_back_references(self, document: KnowledgeDocument) -> None:
        change = self.graph.set_edges(
            document.id, self._knowledge_targets(document.metadata.references)
        )
        for target in change.added + change.removed:
            await self._refresh_referenced_by(target)

    async def _refresh_referenced_by(self, target_id: str) -> None:
        target = await self.store.get_document(target_id)
        if target is None:
            return
        # Derived field; does not bump the target's version.
        target.metadata.referenced_by = self.graph.referrers(target_id)
        await self._save(target)
        self.index.update_document(target)
        if target_id in self.cache:
            self.cache.put(target)

    # Context and statistics

    async def get_knowledge_context(self, document_id: str | None = None) -> KnowledgeContext:
        current = await self._load(document_id) if document_id else None
        related: dict[str, KnowledgeDocument] = {}

        if current is not None:
            for tag in current.metadata.tags:
                for doc in await self.get_documents_by_tag(tag):
                    if doc.id != current.id and doc.id not in related:
                        related[doc.id] = doc

        return KnowledgeContext(
            current_document=current,
            recent_documents=self.cache.recent_documents(),
            related_documents=list(related.values())[:RELATED_LIMIT],
            active_references=current.metadata.references if current else [],
        )

    async def get_stats(self) -> KnowledgeStats:
        documents = await self.store.get_all_documents()
        by_type: dict[str, int] = {}
        total_size = 0
        for doc in documents:
            by_type[doc.type] = by_type.get(doc.type, 0) + 1
            total_size += doc.metadata.size or 0

        referenced = sorted(
            (d for d in documents if d.metadata.referenced_by),
            key=lambda d: len(d.metadata.referenced_by),
            reverse=True,
        )
        return KnowledgeStats(
            total_documents=len(documents),
            documents_by_type=by_type,
            total_size=total_size,
            most_referenced=[d.id for d in referenced[:MOST_REFERENCED_LIMIT]],
            recently_viewed=self.cache.recent_ids(),
        )

    def index_stats(self) -> dict[str, Any]:
        return self.index.get_stats().model_dump()

    # File upload

    async def upload_file(self, file_name: str, data: bytes, mime_type: str) -> KnowledgeDocument:
        result = await self.ingestor.ingest(file_name, data, mime_type)
        if not result.success:
            logger.warning(f"Upload of {file_name} failed: {result.error}")
            raise UploadFailed(result.error or "Upload failed")

        async with self._write_lock:
            return await self._create(
                file_name,
                result.extracted_content,
                result.doc_type or "txt",
                [],
                size=result.size,
                mime_type=result.mime_type,
                original_file_name=file_name,
            )
