"""In-memory inverted index over knowledge documents.

Four token maps (title, tag, type, content) map a lower-cased token to the
set of document ids that contain it. The maps are shared mutable state, so
every mutation runs under a single re-entrant lock.

Scoring is OR-semantics over the query tokens::

    score = 10 * title_matches + 5 * tag_matches + 1 * content_matches

Ties keep the order in which documents were first indexed.
"""

import itertools
import logging
import re
import threading
from dataclasses import dataclass, field

from knowledge_hub.models.knowledge import (
    Highlight,
    IndexStats,
    KnowledgeDocument,
    SearchResult,
    Span,
)

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 10
TAG_WEIGHT = 5
CONTENT_WEIGHT = 1

DEFAULT_CONTENT_TOKEN_LIMIT = 1000
SNIPPET_CONTEXT = 100

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def tokenize(text: str) -> list[str]:
    """Lower-case, strip non-alphanumerics, drop tokens of 2 chars or fewer."""
    return [word for word in _NON_ALNUM.sub(" ", text.lower()).split() if len(word) > 2]


def extract_snippet(
    text: str, word: str, context_length: int = SNIPPET_CONTEXT
) -> tuple[str, Span] | None:
    """Return the text around the first occurrence of ``word``.

    The span points at the match inside ``text``. Ellipses mark truncation.
    """
    lowered = text.lower()
    index = lowered.find(word)
    if index == -1:
        return None

    # lower() can change length for a few code points; fall back to the
    # lowered text so offsets stay valid.
    source = text if len(lowered) == len(text) else lowered

    start = max(0, index - context_length)
    end = min(len(source), index + len(word) + context_length)
    snippet = source[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(source):
        snippet = snippet + "..."
    return snippet, Span(start=index, end=index + len(word))


@dataclass
class IndexEntry:
    document: KnowledgeDocument
    sequence: int
    title_tokens: set[str] = field(default_factory=set)
    tags: set[str] = field(default_factory=set)
    content_tokens: set[str] = field(default_factory=set)


class KnowledgeIndex:
    """Multi-field inverted index with weighted OR search."""

    def __init__(self, content_token_limit: int = DEFAULT_CONTENT_TOKEN_LIMIT):
        self.content_token_limit = content_token_limit
        self._entries: dict[str, IndexEntry] = {}
        self._title_index: dict[str, set[str]] = {}
        self._tag_index: dict[str, set[str]] = {}
        self._type_index: dict[str, set[str]] = {}
        self._word_index: dict[str, set[str]] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def index_document(self, document: KnowledgeDocument) -> None:
        """Add a document to every map.

        Re-indexing a known id replaces its previous entry, so buckets never
        hold tokens from an older revision.
        """
        with self._lock:
            previous = self._entries.get(document.id)
            sequence = previous.sequence if previous else next(self._sequence)
            if previous:
                self._remove_entry(document.id)
            self._add_entry(document, sequence)

    def update_document(self, document: KnowledgeDocument) -> None:
        """Full remove followed by a fresh index, never a diff."""
        with self._lock:
            previous = self._entries.get(document.id)
            sequence = previous.sequence if previous else next(self._sequence)
            self._remove_entry(document.id)
            self._add_entry(document, sequence)

    def remove_document(self, document_id: str) -> None:
        with self._lock:
            self._remove_entry(document_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._title_index.clear()
            self._tag_index.clear()
            self._type_index.clear()
            self._word_index.clear()

    def _add_entry(self, document: KnowledgeDocument, sequence: int) -> None:
        entry = IndexEntry(
            document=document.model_copy(deep=True),
            sequence=sequence,
            title_tokens=set(tokenize(document.title)),
            tags={tag.lower() for tag in document.metadata.tags},
            content_tokens=set(tokenize(document.content)[: self.content_token_limit]),
        )
        self._entries[document.id] = entry

        for word in entry.title_tokens:
            self._title_index.setdefault(word, set()).add(document.id)
        for tag in entry.tags:
            self._tag_index.setdefault(tag, set()).add(document.id)
        self._type_index.setdefault(document.type, set()).add(document.id)
        for word in entry.content_tokens:
            self._word_index.setdefault(word, set()).add(document.id)

    def _remove_entry(self, document_id: str) -> None:
        entry = self._entries.pop(document_id, None)
        if entry is None:
            return

        self._discard(self._title_index, entry.title_tokens, document_id)
        self._discard(self._tag_index, entry.tags, document_id)
        self._discard(self._type_index, {entry.document.type}, document_id)
        self._discard(self._word_index, entry.content_tokens, document_id)

    @staticmethod
    def _discard(index: dict[str, set[str]], keys: set[str], document_id: str) -> None:
        for key in keys:
            bucket = index.get(key)
            if bucket is None:
                continue
            bucket.discard(document_id)
            if not bucket:
                del index[key]

    def search(self, query: str) -> list[SearchResult]:
        query_words = list(dict.fromkeys(tokenize(query)))
        if not query_words:
            return []

        with self._lock:
            scores: dict[str, int] = {}
            highlights: dict[str, dict[str, Highlight]] = {}

            def hit(document_id: str, weight: int, highlight: Highlight | None):
                scores[document_id] = scores.get(document_id, 0) + weight
                by_field = highlights.setdefault(document_id, {})
                if highlight and highlight.field not in by_field:
                    by_field[highlight.field] = highlight

            for word in query_words:
                for document_id in self._title_index.get(word, ()):
                    title = self._entries[document_id].document.title
                    hit(document_id, TITLE_WEIGHT, self._highlight("title", title, word))

                for document_id in self._tag_index.get(word, ()):
                    tag = next(
                        t
                        for t in self._entries[document_id].document.metadata.tags
                        if t.lower() == word
                    )
                    hit(
                        document_id,
                        TAG_WEIGHT,
                        Highlight(field="tags", snippet=tag, position=Span(start=0, end=len(tag))),
                    )

                for document_id in self._word_index.get(word, ()):
                    content = self._entries[document_id].document.content
                    hit(document_id, CONTENT_WEIGHT, self._highlight("content", content, word))

            ranked = sorted(
                scores.items(),
                key=lambda item: (-item[1], self._entries[item[0]].sequence),
            )
            results = [
                SearchResult(
                    document=self._entries[document_id].document.model_copy(deep=True),
                    score=score,
                    highlights=list(highlights.get(document_id, {}).values()),
                )
                for document_id, score in ranked
            ]

        logger.debug(f"Search '{query}' matched {len(results)} documents")
        return results

    @staticmethod
    def _highlight(field_name: str, text: str, word: str) -> Highlight | None:
        found = extract_snippet(text, word)
        if found is None:
            return None
        snippet, span = found
        return Highlight(field=field_name, snippet=snippet, position=span)

    def search_by_type(self, doc_type: str) -> list[str]:
        with self._lock:
            return self._ordered(self._type_index.get(doc_type, set()))

    def search_by_tag(self, tag: str) -> list[str]:
        with self._lock:
            return self._ordered(self._tag_index.get(tag.lower(), set()))

    def _ordered(self, ids: set[str]) -> list[str]:
        return sorted(ids, key=lambda document_id: self._entries[document_id].sequence)

    def get_suggestions(self, prefix: str, limit: int = 10) -> list[str]:
        """Complete a word from indexed title words and tags."""
        lower_prefix = prefix.lower()
        with self._lock:
            suggestions = dict.fromkeys(
                word
                for word in itertools.chain(self._title_index, self._tag_index)
                if word.startswith(lower_prefix)
            )
        return list(suggestions)[:limit]

    def get_stats(self) -> IndexStats:
        with self._lock:
            return IndexStats(
                total_documents=len(self._entries),
                total_words=len(self._word_index),
                total_tags=len(self._tag_index),
                types=list(self._type_index),
            )
