"""Tests for KnowledgeService: lifecycle, versioning, permissions and references."""

import asyncio

import pytest

from knowledge_hub.core.knowledge_service import KnowledgeService
from knowledge_hub.models.errors import (
    ConflictError,
    DocumentNotFound,
    PermissionDenied,
    UploadFailed,
    VersionNotFound,
)
from knowledge_hub.models.knowledge import DocumentReference, Span
from knowledge_hub.storage.document_store import InMemoryDocumentStore


class CountingStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.reads = 0

    async def get_document(self, document_id):
        self.reads += 1
        return await super().get_document(document_id)


class GatedStore(InMemoryDocumentStore):
    """Holds the next read after it has copied the document, until the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.hold_next_read = False

    async def get_document(self, document_id):
        document = await super().get_document(document_id)
        if self.hold_next_read:
            self.hold_next_read = False
            await self.gate.wait()
        return document


class FailingVersionStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.fail_versions = False

    async def save_version(self, version):
        if self.fail_versions:
            raise RuntimeError("version table unavailable")
        await super().save_version(version)


def reference(ref_type, entity_id):
    return DocumentReference(
        id="r1",
        type=ref_type,
        entity_id=entity_id,
        entity_name=entity_id,
        position=Span(start=0, end=1),
    )


@pytest.mark.asyncio
async def test_create_defaults(service):
    doc = await service.create_document("Budget Manual", "See @agent/budget-analyst", tags=["finance"])

    assert doc.metadata.version == 1
    assert doc.publishing_status == "draft"
    assert doc.type == "markdown"
    assert doc.metadata.author == "alice"
    assert doc.permissions.owner == "alice"
    assert doc.permissions.can_edit == ["alice"]
    assert doc.permissions.can_view == ["alice"]
    assert doc.permissions.public is False
    assert doc.metadata.referenced_by == []
    assert [(r.type, r.entity_id) for r in doc.metadata.references] == [("agent", "budget-analyst")]

    history = await service.get_version_history(doc.id)
    assert [v.version for v in history] == [1]
    assert [r.document.id for r in await service.search_documents("budget")] == [doc.id]


@pytest.mark.asyncio
async def test_update_records_previous_version(service):
    doc = await service.create_document("Policy", "original text")

    updated = await service.update_document(doc.id, content="revised text")

    assert updated.metadata.version == 2
    assert updated.metadata.modified >= doc.metadata.modified
    history = await service.get_version_history(doc.id)
    assert [v.version for v in history] == [2, 1]
    assert history[1].content == "original text"
    assert history[0].content == "revised text"


@pytest.mark.asyncio
async def test_update_without_content_keeps_references(service):
    doc = await service.create_document("Policy", "uses @tool/calculator")

    updated = await service.update_document(doc.id, title="Renamed Policy")

    assert updated.title == "Renamed Policy"
    assert updated.content == "uses @tool/calculator"
    assert [r.id for r in updated.metadata.references] == [r.id for r in doc.metadata.references]
    assert await service.search_documents("renamed")


@pytest.mark.asyncio
async def test_update_reindexes_tags(service):
    doc = await service.create_document("Policy", "text", tags=["old-tag"])

    await service.update_document(doc.id, tags=["fresh"])

    assert service.index.search_by_tag("old-tag") == []
    assert service.index.search_by_tag("fresh") == [doc.id]


@pytest.mark.asyncio
async def test_update_missing_document(service):
    with pytest.raises(DocumentNotFound):
        await service.update_document("missing", content="x")


@pytest.mark.asyncio
async def test_update_requires_edit_permission(service, acting_user):
    doc = await service.create_document("Private", "mine")

    acting_user.user_id = "bob"
    with pytest.raises(PermissionDenied):
        await service.update_document(doc.id, content="hijacked")

    acting_user.user_id = "alice"
    assert (await service.get_document(doc.id)).content == "mine"
    assert len(await service.get_version_history(doc.id)) == 1


@pytest.mark.asyncio
async def test_update_with_stale_expected_version(service):
    doc = await service.create_document("Shared", "v1")
    await service.update_document(doc.id, content="v2", expected_version=1)

    with pytest.raises(ConflictError) as exc_info:
        await service.update_document(doc.id, content="stale", expected_version=1)

    assert exc_info.value.actual == 2
    assert (await service.get_document(doc.id)).content == "v2"


@pytest.mark.asyncio
async def test_concurrent_updates_serialize(service):
    doc = await service.create_document("Counter", "start")

    await asyncio.gather(
        *(service.update_document(doc.id, content=f"edit number{i}") for i in range(20))
    )

    final = await service.get_document(doc.id)
    history = await service.get_version_history(doc.id)
    assert final.metadata.version == 21
    assert sorted(v.version for v in history) == list(range(1, 22))
    assert len(service.index.search("edit")) == 1


@pytest.mark.asyncio
async def test_concurrent_compare_and_swap_admits_one_writer(service):
    doc = await service.create_document("Shared", "v1")

    outcomes = await asyncio.gather(
        service.update_document(doc.id, content="left", expected_version=1),
        service.update_document(doc.id, content="right", expected_version=1),
        return_exceptions=True,
    )

    assert sum(isinstance(o, ConflictError) for o in outcomes) == 1
    assert (await service.get_document(doc.id)).metadata.version == 2


@pytest.mark.asyncio
async def test_slow_reader_does_not_resurrect_old_version(agents, catalog):
    store = GatedStore()
    service = KnowledgeService(store, agents=agents, catalog=catalog)
    await service.open()
    doc = await service.create_document("Minutes", "first text")
    service.cache.clear()

    store.hold_next_read = True
    reader = asyncio.create_task(service.get_document(doc.id))
    await asyncio.sleep(0)

    second = await service.update_document(doc.id, content="second text")
    assert second.metadata.version == 2

    store.gate.set()
    assert (await reader).metadata.version == 1
    assert (await service.get_document(doc.id)).content == "second text"

    renamed = await service.update_document(doc.id, title="Renamed")

    assert renamed.metadata.version == 3
    assert renamed.content == "second text"
    assert [v.version for v in await service.get_version_history(doc.id)] == [3, 2, 1]
    await service.close()


@pytest.mark.asyncio
async def test_failed_snapshot_rolls_update_back(agents, catalog):
    store = FailingVersionStore()
    service = KnowledgeService(store, agents=agents, catalog=catalog)
    await service.open()
    doc = await service.create_document("Minutes", "original wording")

    store.fail_versions = True
    with pytest.raises(RuntimeError):
        await service.update_document(doc.id, content="replacement wording")

    current = await service.get_document(doc.id)
    assert current.metadata.version == 1
    assert current.content == "original wording"
    assert (await store.get_document(doc.id)).metadata.version == 1
    assert await service.search_documents("replacement") == []
    assert [r.document.id for r in await service.search_documents("original")] == [doc.id]
    assert len(await service.get_version_history(doc.id)) == 1

    store.fail_versions = False
    retried = await service.update_document(doc.id, content="replacement wording")
    assert retried.metadata.version == 2
    await service.close()


@pytest.mark.asyncio
async def test_failed_snapshot_rolls_create_back(agents, catalog):
    store = FailingVersionStore()
    service = KnowledgeService(store, agents=agents, catalog=catalog)
    await service.open()

    store.fail_versions = True
    with pytest.raises(RuntimeError):
        await service.create_document("Orphan", "never stored")

    assert await service.get_all_documents() == []
    assert await service.search_documents("orphan") == []
    assert len(service.cache) == 0
    await service.close()


@pytest.mark.asyncio
async def test_tag_lookup_ignores_case(service):
    sheet = await service.create_document("Sheet", "", type="excel", tags=["Finance"])
    notes = await service.create_document("Notes", "", tags=["finance", "ops"])

    assert [d.id for d in await service.get_documents_by_tag("FINANCE")] == [sheet.id, notes.id]
    assert [d.id for d in await service.get_documents_by_type("markdown")] == [notes.id]
    assert await service.get_documents_by_type("pdf") == []


@pytest.mark.asyncio
async def test_delete_purges_everything(service, index_buckets):
    doc = await service.create_document("Temporary", "scratch notes")
    await service.update_document(doc.id, content="more scratch notes")

    await service.delete_document(doc.id)

    with pytest.raises(DocumentNotFound):
        await service.get_document(doc.id)
    assert await service.get_version_history(doc.id) == []
    assert await service.search_documents("scratch") == []
    assert index_buckets(service.index, doc.id) == []
    assert doc.id not in service.cache


@pytest.mark.asyncio
async def test_delete_requires_owner(service, acting_user):
    doc = await service.create_document("Keep", "content")

    acting_user.user_id = "bob"
    with pytest.raises(PermissionDenied):
        await service.delete_document(doc.id)


@pytest.mark.asyncio
async def test_delete_missing_document(service):
    with pytest.raises(DocumentNotFound):
        await service.delete_document("missing")


@pytest.mark.asyncio
async def test_publish_and_unpublish_do_not_bump_version(service):
    doc = await service.create_document("Announcement", "text")

    published = await service.publish_document(doc.id)
    assert published.publishing_status == "published"
    assert published.metadata.version == 1

    draft = await service.unpublish_document(doc.id)
    assert draft.publishing_status == "draft"
    assert draft.metadata.version == 1
    assert len(await service.get_version_history(doc.id)) == 1


@pytest.mark.asyncio
async def test_archive_is_owner_only(service, acting_user):
    doc = await service.create_document("Old Guide", "text")

    acting_user.user_id = "bob"
    with pytest.raises(PermissionDenied):
        await service.archive_document(doc.id)

    acting_user.user_id = "alice"
    archived = await service.archive_document(doc.id)
    assert archived.publishing_status == "archived"

    restored = await service.unpublish_document(doc.id)
    assert restored.publishing_status == "draft"


@pytest.mark.asyncio
async def test_restore_writes_forward(service):
    doc = await service.create_document("Handbook", "first draft", tags=["hr"])
    await service.update_document(doc.id, title="Handbook v2", content="second draft", tags=["hr", "ops"])
    v1 = (await service.get_version_history(doc.id))[-1]

    restored = await service.restore_version(doc.id, v1.id)

    assert restored.metadata.version == 3
    assert restored.content == "first draft"
    assert restored.metadata.tags == ["hr"]
    assert restored.title == "Handbook v2"
    assert [v.version for v in await service.get_version_history(doc.id)] == [3, 2, 1]


@pytest.mark.asyncio
async def test_restore_unknown_version(service):
    doc = await service.create_document("Handbook", "text")
    with pytest.raises(VersionNotFound):
        await service.restore_version(doc.id, "no-such-version")


@pytest.mark.asyncio
async def test_get_document_uses_cache(agents, catalog):
    store = CountingStore()
    service = KnowledgeService(store, agents=agents, catalog=catalog, cache_capacity=10)
    await service.open()

    docs = [await service.create_document(f"Doc {i}", "body") for i in range(12)]
    store.reads = 0

    await service.get_document(docs[-1].id)
    assert store.reads == 0

    await service.get_document(docs[0].id)
    assert store.reads == 1

    assert len(service.cache) == 10
    assert service.cache.recent_ids()[0] == docs[0].id
    await service.close()


@pytest.mark.asyncio
async def test_cached_copy_is_isolated(service):
    doc = await service.create_document("Original", "text")

    fetched = await service.get_document(doc.id)
    fetched.title = "mutated locally"

    assert (await service.get_document(doc.id)).title == "Original"


@pytest.mark.asyncio
async def test_search_tie_order(service):
    a = await service.create_document("Policy A", "", tags=["finance"])
    b = await service.create_document("Policy B", "", tags=["finance", "hr"])

    results = await service.search_documents("finance")

    assert [(r.document.id, r.score) for r in results] == [(a.id, 5), (b.id, 5)]


@pytest.mark.asyncio
async def test_back_references_follow_content(service):
    target = await service.create_document("Building Code", "rules")
    source = await service.create_document("Permit Notes", f"See @knowledge/{target.id}")

    assert (await service.get_document(target.id)).metadata.referenced_by == [source.id]
    assert (await service.get_document(target.id)).metadata.version == 1

    await service.update_document(source.id, content="no more links")
    assert (await service.get_document(target.id)).metadata.referenced_by == []

    await service.update_document(source.id, content=f"back again @knowledge/{target.id}")
    await service.delete_document(source.id)
    assert (await service.get_document(target.id)).metadata.referenced_by == []


@pytest.mark.asyncio
async def test_back_references_resolve_slugs(store, agents, catalog):
    service = KnowledgeService(store, agents=agents, catalog=catalog)
    await service.open()
    target = await service.create_document("Residential Building Code", "rules")
    service.knowledge_slugs["residential-building-code"] = target.id

    source = await service.create_document("Notes", "per @knowledge/residential-building-code")

    assert (await service.get_document(target.id)).metadata.referenced_by == [source.id]
    resolved = await service.resolve_reference(source.metadata.references[0])
    assert resolved.id == target.id
    await service.close()


@pytest.mark.asyncio
async def test_references_to_unknown_documents_are_kept(service):
    doc = await service.create_document("Notes", "see @knowledge/does-not-exist")

    assert doc.metadata.references[0].entity_id == "does-not-exist"
    assert await service.resolve_reference(doc.metadata.references[0]) is None


@pytest.mark.asyncio
async def test_resolve_catalog_references(service):
    assert (await service.resolve_reference(reference("agent", "budget-analyst"))).name == "Budget Analyst"
    assert (await service.resolve_reference(reference("skill", "data-analysis"))).name == "Data Analysis"
    assert (await service.resolve_reference(reference("tool", "converter"))).name == "Unit Converter"
    assert await service.resolve_reference(reference("tool", "hammer")) is None


@pytest.mark.asyncio
async def test_open_rebuilds_projections(store, agents, catalog):
    first = KnowledgeService(store, agents=agents, catalog=catalog)
    await first.open()
    target = await first.create_document("Zoning Map", "parcels")
    source = await first.create_document("Survey", f"@knowledge/{target.id}")
    await first.close()

    second = KnowledgeService(store, agents=agents, catalog=catalog)
    await second.open()
    try:
        assert [r.document.id for r in await second.search_documents("zoning")] == [target.id]
        assert second.graph.referrers(target.id) == [source.id]
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_documents_by_type_and_tag(service):
    sheet = await service.create_document("Sheet", "", type="excel", tags=["finance"])
    await service.create_document("Notes", "", tags=["ops"])

    assert [d.id for d in await service.get_documents_by_type("excel")] == [sheet.id]
    assert [d.id for d in await service.get_documents_by_tag("finance")] == [sheet.id]
    assert len(await service.get_all_documents()) == 2


@pytest.mark.asyncio
async def test_knowledge_context(service):
    current = await service.create_document("Budget", "@agent/budget-analyst", tags=["finance"])
    related = await service.create_document("Ledger", "", tags=["finance"])
    await service.create_document("Unrelated", "", tags=["ops"])

    context = await service.get_knowledge_context(current.id)

    assert context.current_document.id == current.id
    assert [d.id for d in context.related_documents] == [related.id]
    assert [r.entity_id for r in context.active_references] == ["budget-analyst"]
    assert len(context.recent_documents) == 3


@pytest.mark.asyncio
async def test_stats(service):
    target = await service.create_document("Code", "", type="pdf")
    await service.create_document("Notes", f"@knowledge/{target.id}")
    await service.create_document("More Notes", f"@knowledge/{target.id}")

    stats = await service.get_stats()

    assert stats.total_documents == 3
    assert stats.documents_by_type == {"pdf": 1, "markdown": 2}
    assert stats.most_referenced == [target.id]
    assert len(stats.recently_viewed) == 3


@pytest.mark.asyncio
async def test_upload_text_file(service):
    doc = await service.upload_file("notes.md", b"# Minutes\nSee @tool/calculator", "text/markdown")

    assert doc.title == "notes.md"
    assert doc.original_file_name == "notes.md"
    assert doc.type == "markdown"
    assert doc.metadata.size == len(b"# Minutes\nSee @tool/calculator")
    assert doc.metadata.mime_type == "text/markdown"
    assert doc.metadata.references[0].entity_id == "calculator"


@pytest.mark.asyncio
async def test_upload_unsupported_file(service):
    with pytest.raises(UploadFailed):
        await service.upload_file("image.png", b"\x89PNG", "image/png")
    with pytest.raises(UploadFailed):
        await service.upload_file("report.pdf", b"%PDF", "application/pdf")
    assert await service.get_all_documents() == []


@pytest.mark.asyncio
async def test_suggestions(service):
    await service.create_document("Budget Manual", "", tags=["budgeting"])
    assert await service.get_suggestions("bud") == ["budget", "budgeting"]
