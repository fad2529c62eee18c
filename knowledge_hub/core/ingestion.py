"""File ingestion boundary.

Format conversion (PDF, Word, Excel) belongs to an external layer; this
module defines the interface it must satisfy and a plain-text ingestor.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "word",
    "application/msword": "word",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "excel",
    "application/vnd.ms-excel": "excel",
    "text/csv": "csv",
    "text/markdown": "markdown",
    "text/plain": "txt",
}


@dataclass
class UploadResult:
    """Outcome of ingesting one file."""

    success: bool
    extracted_content: str = ""
    doc_type: str | None = None
    size: int | None = None
    mime_type: str | None = None
    error: str | None = None


class FileIngestor(ABC):
    @abstractmethod
    async def ingest(self, file_name: str, data: bytes, mime_type: str) -> UploadResult:
        """Convert raw file bytes into markdown-ish text.

        Args:
            file_name: Original file name
            data: File contents
            mime_type: Declared MIME type

        Returns:
            UploadResult; ``success`` is False with ``error`` set on failure
        """
        pass


class TextFileIngestor(FileIngestor):
    """Accepts UTF-8 text formats only."""

    TEXT_TYPES = ("text/plain", "text/markdown", "text/csv")

    async def ingest(self, file_name: str, data: bytes, mime_type: str) -> UploadResult:
        doc_type = SUPPORTED_TYPES.get(mime_type)
        if doc_type is None:
            return UploadResult(success=False, error=f"Unsupported file type: {mime_type}")
        if mime_type not in self.TEXT_TYPES:
            return UploadResult(
                success=False, error=f"No converter installed for {mime_type} ({file_name})"
            )

        try:
            content = data.decode("utf-8")
        except UnicodeDecodeError as e:
            return UploadResult(success=False, error=f"{file_name} is not valid UTF-8: {e}")

        logger.debug(f"Ingested {file_name} ({len(data)} bytes, {doc_type})")
        return UploadResult(
            success=True,
            extracted_content=content,
            doc_type=doc_type,
            size=len(data),
            mime_type=mime_type,
        )
