"""Error envelope models and mapping from domain errors."""

from pydantic import BaseModel

from knowledge_hub.models.errors import (
    ConflictError,
    DocumentNotFound,
    KnowledgeError,
    PermissionDenied,
    UploadFailed,
    VersionNotFound,
)


class ErrorDetail(BaseModel):
    """Error object, shaped after the OpenAI error taxonomy."""

    message: str
    type: str
    param: str | None = None
    code: str | None = None


class ErrorResponse(BaseModel):
    """Error response wrapper."""

    error: ErrorDetail


# ============================================================================
# Error Type Constants
# ============================================================================

ERROR_TYPE_INVALID_REQUEST = "invalid_request_error"
ERROR_TYPE_PERMISSION = "permission_error"
ERROR_TYPE_NOT_FOUND = "not_found_error"
ERROR_TYPE_CONFLICT = "conflict_error"
ERROR_TYPE_UPLOAD = "upload_error"
ERROR_TYPE_SERVER = "server_error"


# ============================================================================
# Error Factory Functions
# ============================================================================


def create_error_response(
    message: str,
    error_type: str = ERROR_TYPE_SERVER,
    param: str | None = None,
    code: str | None = None,
) -> ErrorResponse:
    """Create an error response.

    Args:
        message: Human-readable error message
        error_type: Type of error (see ERROR_TYPE_* constants)
        param: Parameter that caused the error (optional)
        code: Error code (optional)

    Returns:
        ErrorResponse object
    """
    return ErrorResponse(
        error=ErrorDetail(message=message, type=error_type, param=param, code=code)
    )


def not_found_error(message: str, param: str | None = None, code: str | None = None) -> ErrorResponse:
    return create_error_response(message, ERROR_TYPE_NOT_FOUND, param=param, code=code)


def server_error(message: str = "Internal server error") -> ErrorResponse:
    return create_error_response(message, ERROR_TYPE_SERVER, code="internal_error")


def error_for_exception(exc: KnowledgeError) -> tuple[int, ErrorResponse]:
    """Map a domain error to an HTTP status and error body."""
    if isinstance(exc, DocumentNotFound):
        return 404, not_found_error(str(exc), param=exc.document_id, code="document_not_found")
    if isinstance(exc, VersionNotFound):
        return 404, not_found_error(str(exc), param=exc.version_id, code="version_not_found")
    if isinstance(exc, PermissionDenied):
        return 403, create_error_response(
            str(exc), ERROR_TYPE_PERMISSION, param=exc.document_id, code="permission_denied"
        )
    if isinstance(exc, ConflictError):
        return 409, create_error_response(
            str(exc), ERROR_TYPE_CONFLICT, param="expected_version", code="version_conflict"
        )
    if isinstance(exc, UploadFailed):
        return 422, create_error_response(str(exc), ERROR_TYPE_UPLOAD, code="upload_failed")
    return 400, create_error_response(str(exc), ERROR_TYPE_INVALID_REQUEST)
