# knowledge_hub/models/knowledge.py
from datetime import UTC, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

DocumentType = Literal["markdown", "pdf", "excel", "csv", "word", "txt"]
ReferenceType = Literal["knowledge", "agent", "skill", "tool"]
PublishingStatus = Literal["draft", "published", "archived"]

REFERENCE_TYPES: tuple[str, ...] = ("knowledge", "agent", "skill", "tool")


def utcnow() -> datetime:
    return datetime.now(UTC)


class Span(BaseModel):
    start: int
    end: int


class DocumentReference(BaseModel):
    id: str
    type: ReferenceType
    entity_id: str
    entity_name: str  # provisional, equal to entity_id until resolved
    position: Span
    context: str = ""


class DocumentMetadata(BaseModel):
    author: str
    created: datetime = Field(default_factory=utcnow)
    modified: datetime = Field(default_factory=utcnow)
    tags: list[str] = []
    references: list[DocumentReference] = []
    referenced_by: list[str] = []
    version: int = 1
    size: Optional[int] = None
    mime_type: Optional[str] = None


class DocumentPermissions(BaseModel):
    owner: str
    public: bool = False
    shared_with: list[str] = []
    can_edit: list[str] = []
    can_view: list[str] = []


class KnowledgeDocument(BaseModel):
    id: str
    title: str
    content: str
    type: DocumentType = "markdown"
    metadata: DocumentMetadata
    permissions: DocumentPermissions
    publishing_status: PublishingStatus = "draft"
    original_file_name: Optional[str] = None
    embedding: Optional[list[float]] = None  # reserved, never populated


class DocumentVersion(BaseModel):
    id: str
    document_id: str
    version: int
    content: str
    metadata: DocumentMetadata
    created: datetime = Field(default_factory=utcnow)
    author: str
    change_description: Optional[str] = None


class Highlight(BaseModel):
    field: Literal["title", "tags", "content"]
    snippet: str
    position: Span


class SearchResult(BaseModel):
    document: KnowledgeDocument
    score: int
    highlights: list[Highlight] = []


# Mention payloads, one shape per suggestion kind.

class AgentPayload(BaseModel):
    kind: Literal["agent"] = "agent"
    agent_id: str
    name: str
    color: Optional[str] = None


class DocumentPayload(BaseModel):
    kind: Literal["knowledge"] = "knowledge"
    document_id: str
    title: str
    tags: list[str] = []
    publishing_status: PublishingStatus = "draft"


class SkillPayload(BaseModel):
    kind: Literal["skill"] = "skill"
    skill_id: str
    name: str


class ToolPayload(BaseModel):
    kind: Literal["tool"] = "tool"
    tool_id: str
    name: str


class SystemPayload(BaseModel):
    kind: Literal["system"] = "system"
    name: str


MentionPayload = Annotated[
    Union[AgentPayload, DocumentPayload, SkillPayload, ToolPayload, SystemPayload],
    Field(discriminator="kind"),
]


class MentionSuggestion(BaseModel):
    id: str
    type: ReferenceType
    label: str
    description: str = ""
    icon: str = ""
    color: Optional[str] = None
    path: Optional[str] = None
    payload: Optional[MentionPayload] = None


class KnowledgeContext(BaseModel):
    current_document: Optional[KnowledgeDocument] = None
    recent_documents: list[KnowledgeDocument] = []
    related_documents: list[KnowledgeDocument] = []
    active_references: list[DocumentReference] = []


class KnowledgeStats(BaseModel):
    total_documents: int
    documents_by_type: dict[str, int] = {}
    total_size: int = 0
    last_updated: datetime = Field(default_factory=utcnow)
    most_referenced: list[str] = []
    recently_viewed: list[str] = []


class IndexStats(BaseModel):
    total_documents: int
    total_words: int
    total_tags: int
    types: list[str]
