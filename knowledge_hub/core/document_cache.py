"""Bounded most-recently-used document cache."""

import logging
from collections import OrderedDict

from knowledge_hub.models.knowledge import KnowledgeDocument

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10


class DocumentCache:
    """Read-through projection of the store, never authoritative.

    Every successful get or put promotes the entry to most-recently-used;
    the least-recently-used entry is evicted once capacity is exceeded.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[str, KnowledgeDocument] = OrderedDict()

    def get(self, document_id: str) -> KnowledgeDocument | None:
        document = self._entries.get(document_id)
        if document is None:
            return None
        self._entries.move_to_end(document_id)
        return document.model_copy(deep=True)

    def put(self, document: KnowledgeDocument) -> None:
        self._entries[document.id] = document.model_copy(deep=True)
        self._entries.move_to_end(document.id)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted} from document cache")

    def invalidate(self, document_id: str) -> None:
        self._entries.pop(document_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def recent_ids(self) -> list[str]:
        """Cached ids, most recently used first."""
        return list(reversed(self._entries))

    def recent_documents(self) -> list[KnowledgeDocument]:
        return [self._entries[i].model_copy(deep=True) for i in self.recent_ids()]

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
