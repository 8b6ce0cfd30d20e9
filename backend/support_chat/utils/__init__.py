from .errors import (
    ChatError,
    EmptyMessage,
    InvalidAttachment,
    ThreadNotFound,
    StorageUnavailable,
    error_response,
    chat_error_response,
)
