"""Domain errors raised by the knowledge service."""


class KnowledgeError(Exception):
    """Base class for knowledge-hub errors."""


class DocumentNotFound(KnowledgeError):
    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class VersionNotFound(KnowledgeError):
    def __init__(self, document_id: str, version_id: str):
        super().__init__(f"Version {version_id} not found for document {document_id}")
        self.document_id = document_id
        self.version_id = version_id


class PermissionDenied(KnowledgeError):
    def __init__(self, user_id: str, document_id: str, action: str):
        super().__init__(f"User {user_id} may not {action} document {document_id}")
        self.user_id = user_id
        self.document_id = document_id
        self.action = action


class ConflictError(KnowledgeError):
    """Raised when an update carries a stale expected version."""

    def __init__(self, document_id: str, expected: int, actual: int):
        super().__init__(
            f"Version conflict on {document_id}: expected {expected}, found {actual}"
        )
        self.document_id = document_id
        self.expected = expected
        self.actual = actual


class UploadFailed(KnowledgeError):
    """Propagated from the file-ingestion layer."""
