"""Request and response bodies for the knowledge API."""

from typing import Literal

from pydantic import BaseModel, Field

from knowledge_hub.models.knowledge import DocumentType


class CreateDocumentRequest(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = ""
    type: DocumentType = "markdown"
    tags: list[str] = []


class UpdateDocumentRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    title: str | None = Field(None, min_length=1)
    content: str | None = None
    tags: list[str] | None = None
    expected_version: int | None = Field(None, ge=1)


class ServiceStatus(BaseModel):
    name: str
    status: Literal["healthy", "unhealthy", "unknown"]
    message: str = ""


class HealthStatus(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    services: dict[str, ServiceStatus]
    version: str = "0.1.0"
