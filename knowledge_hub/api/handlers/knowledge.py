"""API handlers for knowledge documents, search and mentions."""

import logging
from contextvars import ContextVar

from fastapi import APIRouter, Depends, File, Header, Query, Request, UploadFile, status
from fastapi.responses import Response

from knowledge_hub.api.models.requests import CreateDocumentRequest, UpdateDocumentRequest
from knowledge_hub.core.knowledge_service import KnowledgeService
from knowledge_hub.models.knowledge import (
    DocumentVersion,
    KnowledgeContext,
    KnowledgeDocument,
    KnowledgeStats,
    MentionSuggestion,
    SearchResult,
)

logger = logging.getLogger(__name__)

# Acting user for the current request, read by the service's user provider.
current_user: ContextVar[str | None] = ContextVar("current_user", default=None)


async def bind_user(x_user_id: str | None = Header(None)) -> None:
    current_user.set(x_user_id)


def get_service(request: Request) -> KnowledgeService:
    return request.app.state.service


router = APIRouter(prefix="/v1/knowledge", tags=["knowledge"], dependencies=[Depends(bind_user)])


@router.post("/documents", status_code=status.HTTP_201_CREATED, response_model=KnowledgeDocument)
async def create_document(
    body: CreateDocumentRequest, service: KnowledgeService = Depends(get_service)
):
    return await service.create_document(body.title, body.content, body.type, body.tags)


@router.get("/documents", response_model=list[KnowledgeDocument])
async def list_documents(
    type: str | None = Query(None, description="Filter by document type"),
    tag: str | None = Query(None, description="Filter by tag"),
    service: KnowledgeService = Depends(get_service),
):
    if type:
        documents = await service.get_documents_by_type(type)
    elif tag:
        documents = await service.get_documents_by_tag(tag)
    else:
        documents = await service.get_all_documents()

    if type and tag:
        documents = [d for d in documents if tag in d.metadata.tags]
    return documents


@router.get("/documents/{document_id}", response_model=KnowledgeDocument)
async def get_document(document_id: str, service: KnowledgeService = Depends(get_service)):
    return await service.get_document(document_id)


@router.patch("/documents/{document_id}", response_model=KnowledgeDocument)
async def update_document(
    document_id: str,
    body: UpdateDocumentRequest,
    service: KnowledgeService = Depends(get_service),
):
    return await service.update_document(
        document_id,
        title=body.title,
        content=body.content,
        tags=body.tags,
        expected_version=body.expected_version,
    )


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(document_id: str, service: KnowledgeService = Depends(get_service)):
    await service.delete_document(document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/documents/{document_id}/publish", response_model=KnowledgeDocument)
async def publish_document(document_id: str, service: KnowledgeService = Depends(get_service)):
    return await service.publish_document(document_id)


@router.post("/documents/{document_id}/unpublish", response_model=KnowledgeDocument)
async def unpublish_document(document_id: str, service: KnowledgeService = Depends(get_service)):
    return await service.unpublish_document(document_id)


@router.post("/documents/{document_id}/archive", response_model=KnowledgeDocument)
async def archive_document(document_id: str, service: KnowledgeService = Depends(get_service)):
    return await service.archive_document(document_id)


@router.get("/documents/{document_id}/versions", response_model=list[DocumentVersion])
async def version_history(document_id: str, service: KnowledgeService = Depends(get_service)):
    return await service.get_version_history(document_id)


@router.post(
    "/documents/{document_id}/versions/{version_id}/restore",
    response_model=KnowledgeDocument,
)
async def restore_version(
    document_id: str, version_id: str, service: KnowledgeService = Depends(get_service)
):
    return await service.restore_version(document_id, version_id)


@router.get("/documents/{document_id}/context", response_model=KnowledgeContext)
async def knowledge_context(document_id: str, service: KnowledgeService = Depends(get_service)):
    await service.get_document(document_id)
    return await service.get_knowledge_context(document_id)


@router.get("/search", response_model=list[SearchResult])
async def search_documents(
    q: str = Query("", description="Search query"),
    limit: int = Query(20, ge=1, le=100, description="Max number of results"),
    service: KnowledgeService = Depends(get_service),
):
    results = await service.search_documents(q)
    return results[:limit]


@router.get("/suggestions", response_model=list[str])
async def word_suggestions(
    prefix: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    service: KnowledgeService = Depends(get_service),
):
    return await service.get_suggestions(prefix, limit)


@router.get("/mentions", response_model=list[MentionSuggestion])
async def mention_suggestions(
    q: str = Query("@", description="Mention query including the leading @"),
    service: KnowledgeService = Depends(get_service),
):
    return await service.get_mention_suggestions(q)


@router.get("/mentions/simple", response_model=list[MentionSuggestion])
async def simple_mention_suggestions(
    q: str = Query("", description="Mention query without the leading @"),
    service: KnowledgeService = Depends(get_service),
):
    return await service.get_simple_mention_suggestions(q)


@router.get("/stats", response_model=KnowledgeStats)
async def stats(service: KnowledgeService = Depends(get_service)):
    return await service.get_stats()


@router.post("/upload", status_code=status.HTTP_201_CREATED, response_model=KnowledgeDocument)
async def upload_file(
    file: UploadFile = File(...), service: KnowledgeService = Depends(get_service)
):
    data = await file.read()
    logger.info(f"Received upload {file.filename} ({len(data)} bytes)")
    return await service.upload_file(
        file.filename or "upload", data, file.content_type or "application/octet-stream"
    )
