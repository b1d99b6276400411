"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_SYSTEM_PROFILE_READONLY = "E_SYSTEM_PROFILE_READONLY"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_BOOK_NOT_FOUND = "E_BOOK_NOT_FOUND"
    E_CHAPTER_NOT_FOUND = "E_CHAPTER_NOT_FOUND"
    E_PART_NOT_FOUND = "E_PART_NOT_FOUND"
    E_WIKI_PAGE_NOT_FOUND = "E_WIKI_PAGE_NOT_FOUND"
    E_PROFILE_NOT_FOUND = "E_PROFILE_NOT_FOUND"
    E_REVIEW_NOT_FOUND = "E_REVIEW_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_ORDER = "E_INVALID_ORDER"
    E_CHAPTER_BOOK_MISMATCH = "E_CHAPTER_BOOK_MISMATCH"

    # Conflict errors (409)
    E_CONFLICT = "E_CONFLICT"

    # Server errors (500)
    E_LLM_FAILED = "E_LLM_FAILED"
    E_INTERNAL = "E_INTERNAL"


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_SYSTEM_PROFILE_READONLY: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_BOOK_NOT_FOUND: 404,
    ApiErrorCode.E_CHAPTER_NOT_FOUND: 404,
    ApiErrorCode.E_PART_NOT_FOUND: 404,
    ApiErrorCode.E_WIKI_PAGE_NOT_FOUND: 404,
    ApiErrorCode.E_PROFILE_NOT_FOUND: 404,
    ApiErrorCode.E_REVIEW_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_ORDER: 400,
    ApiErrorCode.E_CHAPTER_BOOK_MISMATCH: 400,
    ApiErrorCode.E_CONFLICT: 409,
    ApiErrorCode.E_LLM_FAILED: 500,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Unique constraint conflict error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_CONFLICT, message: str = "Conflict"):
        super().__init__(code, message)
