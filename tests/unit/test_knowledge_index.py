"""Tests for the inverted knowledge index."""

import pytest

from knowledge_hub.index.knowledge_index import KnowledgeIndex, extract_snippet, tokenize
from knowledge_hub.models.knowledge import (
    DocumentMetadata,
    DocumentPermissions,
    KnowledgeDocument,
)


def make_doc(doc_id, title, content="", tags=None, doc_type="markdown"):
    return KnowledgeDocument(
        id=doc_id,
        title=title,
        content=content,
        type=doc_type,
        metadata=DocumentMetadata(author="alice", tags=tags or []),
        permissions=DocumentPermissions(owner="alice", can_edit=["alice"]),
    )


@pytest.fixture
def index():
    return KnowledgeIndex()


def test_tokenize_drops_short_tokens_and_punctuation():
    assert tokenize("An AI-driven Budget, v2 of FY2024!") == ["driven", "budget", "fy2024"]


def test_tokenize_empty_string():
    assert tokenize("") == []


def test_index_then_remove_leaves_no_buckets(index, index_buckets):
    doc = make_doc("d1", "Zoning Variance Guide", "Setback rules for corner lots", ["zoning", "permits"])
    index.index_document(doc)
    assert index_buckets(index, "d1")

    index.remove_document("d1")

    assert index_buckets(index, "d1") == []
    stats = index.get_stats()
    assert stats.total_documents == 0
    assert stats.total_words == 0
    assert stats.total_tags == 0
    assert stats.types == []


def test_remove_unknown_id_is_noop(index):
    index.remove_document("missing")
    assert index.get_stats().total_documents == 0


def test_update_drops_stale_tokens(index, index_buckets):
    index.index_document(make_doc("d1", "Old Title", "obsolete wording"))
    index.update_document(make_doc("d1", "New Title", "current wording"))

    assert index.search("obsolete") == []
    assert [r.document.id for r in index.search("current")] == ["d1"]
    assert ("title", "old") not in index_buckets(index, "d1")


def test_indexing_twice_does_not_double_count(index):
    doc = make_doc("d1", "Finance Policy", "finance rules", ["finance"])
    index.index_document(doc)
    first = index.search("finance")[0].score

    index.index_document(doc)
    second = index.search("finance")[0].score

    assert first == second == 10 + 5 + 1


def test_repeated_query_token_counts_once(index):
    index.index_document(make_doc("d1", "Finance Policy"))
    assert index.search("finance finance")[0].score == 10


def test_empty_query_returns_nothing(index):
    index.index_document(make_doc("d1", "Anything", "content here"))
    assert index.search("") == []
    assert index.search("a b") == []


def test_weighted_or_scoring(index):
    index.index_document(make_doc("title-hit", "Procurement Handbook"))
    index.index_document(make_doc("tag-hit", "Vendors", tags=["procurement"]))
    index.index_document(make_doc("content-hit", "Misc", "procurement thresholds"))
    index.index_document(make_doc("other", "Unrelated", "nothing relevant"))

    results = index.search("procurement handbook")

    assert [(r.document.id, r.score) for r in results] == [
        ("title-hit", 20),
        ("tag-hit", 5),
        ("content-hit", 1),
    ]


def test_tag_tie_keeps_insertion_order(index):
    index.index_document(make_doc("a", "Policy A", tags=["finance"]))
    index.index_document(make_doc("b", "Policy B", tags=["finance", "hr"]))

    results = index.search("finance")

    assert [(r.document.id, r.score) for r in results] == [("a", 5), ("b", 5)]


def test_tie_order_survives_update(index):
    index.index_document(make_doc("a", "Policy A", tags=["finance"]))
    index.index_document(make_doc("b", "Policy B", tags=["finance"]))
    index.update_document(make_doc("a", "Policy A revised", tags=["finance"]))

    assert [r.document.id for r in index.search("finance")] == ["a", "b"]


def test_search_returns_original_case_document(index):
    index.index_document(make_doc("d1", "Budget Manual", "Annual Budget cycle"))
    result = index.search("budget")[0]
    assert result.document.title == "Budget Manual"


def test_highlights_per_field(index):
    content = "x" * 150 + " retention schedule " + "y" * 150
    index.index_document(make_doc("d1", "Retention Policy", content, ["retention"]))

    highlights = {h.field: h for h in index.search("retention")[0].highlights}

    assert set(highlights) == {"title", "tags", "content"}
    assert highlights["title"].snippet == "Retention Policy"
    assert highlights["tags"].snippet == "retention"
    snippet = highlights["content"].snippet
    assert snippet.startswith("...") and snippet.endswith("...")
    assert "retention schedule" in snippet
    assert highlights["content"].position.start == 151


def test_extract_snippet_without_truncation():
    snippet, span = extract_snippet("short text", "text")
    assert snippet == "short text"
    assert (span.start, span.end) == (6, 10)


def test_extract_snippet_missing_word():
    assert extract_snippet("short text", "absent") is None


def test_content_token_cap():
    index = KnowledgeIndex(content_token_limit=3)
    index.index_document(make_doc("d1", "Capped", "one two three four five alpha beta gamma"))

    assert index.search("three")
    assert index.search("four") == []
    assert index.search("gamma") == []


def test_get_suggestions_from_titles_and_tags(index):
    index.index_document(make_doc("d1", "Budget Manual", tags=["budgeting"]))
    index.index_document(make_doc("d2", "Building Code", tags=["buildings"]))

    assert index.get_suggestions("bud") == ["budget", "budgeting"]
    assert set(index.get_suggestions("BU")) == {"budget", "building", "budgeting", "buildings"}
    assert len(index.get_suggestions("bu", limit=2)) == 2


def test_search_by_type_and_tag(index):
    index.index_document(make_doc("d1", "Sheet", doc_type="excel", tags=["Finance"]))
    index.index_document(make_doc("d2", "Notes", doc_type="markdown", tags=["finance"]))

    assert index.search_by_type("excel") == ["d1"]
    assert index.search_by_tag("FINANCE") == ["d1", "d2"]


def test_stats(index):
    index.index_document(make_doc("d1", "Sheet", "alpha beta", ["x1"], doc_type="excel"))
    index.index_document(make_doc("d2", "Notes", "alpha gamma", ["x1", "x2"]))

    stats = index.get_stats()

    assert stats.total_documents == 2
    assert stats.total_words == 3
    assert stats.total_tags == 2
    assert sorted(stats.types) == ["excel", "markdown"]


def test_long_mutation_sequence_leaves_no_leaks(index, index_buckets):
    for i in range(50):
        index.index_document(make_doc("d1", f"Title {i} round{i}", f"content{i} words", [f"tag{i}"]))
        if i % 3 == 0:
            index.remove_document("d1")
        else:
            index.update_document(make_doc("d1", f"Revised round{i}", f"body{i}", [f"t{i}"]))

    index.remove_document("d1")

    assert index_buckets(index, "d1") == []
    assert index.get_stats().total_words == 0


def test_clear(index):
    index.index_document(make_doc("d1", "Something"))
    index.clear()
    assert index.get_stats().total_documents == 0
    assert index.search("something") == []
