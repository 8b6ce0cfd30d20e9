from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class ChatError(Exception):
    """Base class for failures raised by the conversation store.

    ``retryable`` tells the calling layer whether repeating the same request
    unchanged can succeed ("nothing was sent, retry") or whether the input
    itself must change ("your input was invalid, fix it").
    """

    retryable: bool = False
    default_message: str = "Conversation error"

    def __init__(self, message: Optional[str] = None, field_errors: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.field_errors = dict(field_errors or {})
        super().__init__(self.message)


class EmptyMessage(ChatError):
    default_message = "Message must include content, audio or an attachment"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, {"content": "required"})


class InvalidAttachment(ChatError):
    default_message = "Attachment descriptor is invalid"

    def __init__(
        self,
        message: Optional[str] = None,
        index: Optional[int] = None,
        field: str = "url",
        reason: str = "required",
    ):
        key = f"attachments[{index}].{field}" if index is not None else "attachments"
        super().__init__(message, {key: reason})


class ThreadNotFound(ChatError):
    default_message = "Thread not found"

    def __init__(self, thread_id: object = None):
        super().__init__(None, {"thread_id": "not_found"})
        self.thread_id = thread_id


class StorageUnavailable(ChatError):
    retryable = True
    default_message = "Storage temporarily unavailable, please retry"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, {"storage": "unavailable"})


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    headers: Optional[Dict[str, str]] = None,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail, headers=headers)


_STATUS_BY_ERROR = {
    EmptyMessage: status.HTTP_400_BAD_REQUEST,
    InvalidAttachment: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ThreadNotFound: status.HTTP_404_NOT_FOUND,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def chat_error_response(exc: ChatError) -> HTTPException:
    """Map a store-level error to the HTTP error envelope."""
    code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return error_response(exc.message, exc.field_errors, code, headers=headers)
