import logging

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import (
    DataError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as SA_TimeoutError,
)

from support_chat.database import storage_guard
from support_chat.utils.errors import (
    EmptyMessage,
    InvalidAttachment,
    StorageUnavailable,
    ThreadNotFound,
    chat_error_response,
    error_response,
)


def test_error_response_logs(caplog):
    caplog.set_level(logging.ERROR, logger="support_chat.utils.errors")
    with pytest.raises(HTTPException):
        raise error_response("Invalid", {"field": "bad"})
    assert any(
        "Invalid" in r.getMessage() and "'field': 'bad'" in r.getMessage()
        for r in caplog.records
    )


@pytest.mark.parametrize(
    "exc, code, field_errors",
    [
        (EmptyMessage(), 400, {"content": "required"}),
        (InvalidAttachment(index=2), 422, {"attachments[2].url": "required"}),
        (ThreadNotFound(5), 404, {"thread_id": "not_found"}),
        (StorageUnavailable(), 503, {"storage": "unavailable"}),
    ],
)
def test_chat_errors_map_to_http(exc, code, field_errors):
    http_exc = chat_error_response(exc)

    assert http_exc.status_code == code
    assert http_exc.detail["field_errors"] == field_errors
    assert http_exc.detail["message"] == exc.message


def test_only_storage_errors_are_retryable():
    assert StorageUnavailable.retryable is True
    assert not EmptyMessage().retryable
    assert not InvalidAttachment().retryable
    assert not ThreadNotFound().retryable
    assert chat_error_response(StorageUnavailable()).headers == {"Retry-After": "1"}
    assert chat_error_response(EmptyMessage()).headers is None


class _RecordingSession:
    def __init__(self):
        self.rolled_back = False

    def rollback(self):
        self.rolled_back = True


@pytest.mark.parametrize(
    "raised",
    [
        OperationalError("SELECT 1", {}, Exception("database is locked")),
        InterfaceError("SELECT 1", {}, Exception("connection already closed")),
        SA_TimeoutError("QueuePool limit reached"),
    ],
)
def test_storage_guard_translates_outages(raised):
    session = _RecordingSession()

    with pytest.raises(StorageUnavailable) as excinfo:
        with storage_guard(session, "lookup"):
            raise raised

    assert session.rolled_back
    assert excinfo.value.__cause__ is raised


def test_storage_guard_passes_integrity_errors_through():
    session = _RecordingSession()

    with pytest.raises(IntegrityError):
        with storage_guard(session, "lookup"):
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    assert not session.rolled_back


def test_storage_guard_leaves_chat_errors_alone():
    with pytest.raises(ThreadNotFound):
        with storage_guard(_RecordingSession(), "lookup"):
            raise ThreadNotFound(1)


def test_storage_guard_does_not_retry_bad_data():
    session = _RecordingSession()
    raised = DataError(
        "INSERT INTO participants", {}, Exception("value too long for type character varying(255)")
    )

    with pytest.raises(DataError):
        with storage_guard(session, "lookup"):
            raise raised

    assert session.rolled_back
