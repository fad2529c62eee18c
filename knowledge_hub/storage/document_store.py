"""Document store interface and an in-process implementation."""

import logging
from abc import ABC, abstractmethod

from knowledge_hub.models.knowledge import DocumentVersion, KnowledgeDocument

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Durable key-value store for documents and their version snapshots.

    The knowledge service relies on nothing beyond these methods. Returned
    objects are copies; mutating them never changes stored state.
    """

    async def open(self) -> None:
        """Acquire backing resources. Default is a no-op."""

    async def close(self) -> None:
        """Release backing resources. Default is a no-op."""

    @abstractmethod
    async def get_document(self, document_id: str) -> KnowledgeDocument | None:
        pass

    @abstractmethod
    async def save_document(self, document: KnowledgeDocument) -> None:
        """Upsert keyed by ``document.id``."""
        pass

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """Delete the document and every version snapshot it owns."""
        pass

    @abstractmethod
    async def get_all_documents(self) -> list[KnowledgeDocument]:
        pass

    @abstractmethod
    async def get_documents_by_type(self, doc_type: str) -> list[KnowledgeDocument]:
        pass

    @abstractmethod
    async def get_documents_by_tag(self, tag: str) -> list[KnowledgeDocument]:
        pass

    @abstractmethod
    async def save_version(self, version: DocumentVersion) -> None:
        pass

    @abstractmethod
    async def get_version_history(self, document_id: str) -> list[DocumentVersion]:
        """Versions of a document, newest first."""
        pass


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store, used for tests and ephemeral sessions."""

    def __init__(self):
        self._documents: dict[str, KnowledgeDocument] = {}
        self._versions: dict[str, list[DocumentVersion]] = {}

    async def get_document(self, document_id: str) -> KnowledgeDocument | None:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    async def save_document(self, document: KnowledgeDocument) -> None:
        self._documents[document.id] = document.model_copy(deep=True)

    async def delete_document(self, document_id: str) -> None:
        self._documents.pop(document_id, None)
        removed = self._versions.pop(document_id, [])
        logger.debug(f"Deleted document {document_id} with {len(removed)} versions")

    async def get_all_documents(self) -> list[KnowledgeDocument]:
        return [d.model_copy(deep=True) for d in self._documents.values()]

    async def get_documents_by_type(self, doc_type: str) -> list[KnowledgeDocument]:
        return [d.model_copy(deep=True) for d in self._documents.values() if d.type == doc_type]

    async def get_documents_by_tag(self, tag: str) -> list[KnowledgeDocument]:
        return [
            d.model_copy(deep=True)
            for d in self._documents.values()
            if tag in d.metadata.tags
        ]

    async def save_version(self, version: DocumentVersion) -> None:
        history = self._versions.setdefault(version.document_id, [])
        history[:] = [v for v in history if v.id != version.id]
        history.append(version.model_copy(deep=True))

    async def get_version_history(self, document_id: str) -> list[DocumentVersion]:
        history = self._versions.get(document_id, [])
        return sorted(
            (v.model_copy(deep=True) for v in history),
            key=lambda v: v.version,
            reverse=True,
        )
