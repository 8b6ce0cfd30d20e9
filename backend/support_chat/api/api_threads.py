from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from .. import crud, models, schemas
from ..core.config import settings
from ..services import maintainer_bootstrap
from ..services.summary_projector import project_thread
from ..utils import (
    ChatError,
    StorageUnavailable,
    ThreadNotFound,
    chat_error_response,
    error_response,
)
from ..utils.redis_cache import cached_unread
from .dependencies import get_caller_identity, get_db, require_caller

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _summary(db: Session, thread: models.ChatThread, viewer_id: str) -> schemas.ThreadSummary:
    return project_thread(
        thread,
        viewer_id,
        crud.crud_thread.counterpart(thread, viewer_id),
        cached_unread(db, thread, viewer_id),
    )


def load_member_thread(db: Session, thread_id: int, participant_id: str) -> models.ChatThread:
    """Fetch a thread the caller belongs to.

    Raises ``ThreadNotFound`` (or ``StorageUnavailable``) for the caller to map,
    and a 403 when the caller is not one of the pair.
    """
    thread = crud.get_thread(db, thread_id)
    if thread is None:
        raise ThreadNotFound(thread_id)
    if not thread.has_participant(participant_id):
        raise error_response(
            "Not authorized to access this thread",
            {},
            status.HTTP_403_FORBIDDEN,
        )
    return thread


@router.get("/chat/maintainer-thread", response_model=schemas.ThreadResponse)
def read_maintainer_thread(
    db: Session = Depends(get_db),
    caller: schemas.CallerIdentity = Depends(require_caller),
):
    """Return (creating on first use) the caller's thread with support."""
    if caller.id == settings.MAINTAINER_ID:
        raise error_response(
            "The maintainer has no support thread",
            {"user_id": "maintainer"},
            status.HTTP_400_BAD_REQUEST,
        )
    try:
        thread = maintainer_bootstrap.get_or_create_maintainer_thread(
            db,
            caller.id,
            user_name=caller.name,
            user_email=caller.email,
            user_avatar=caller.avatar,
        )
        summary = _summary(db, thread, caller.id)
    except ChatError as exc:
        raise chat_error_response(exc)
    return {"success": True, "data": summary}


@router.get("/chat/threads", response_model=schemas.ThreadListResponse)
def read_threads(
    db: Session = Depends(get_db),
    caller: schemas.CallerIdentity = Depends(require_caller),
):
    """Threads of the caller, most recently active first.

    A store that cannot be read yields an empty, ``degraded`` list instead of
    an error.
    """
    try:
        if caller.name:
            crud.ensure_participant(
                db,
                caller.id,
                name=caller.name,
                email=caller.email,
                avatar=caller.avatar,
            )
        threads = crud.list_threads_for(db, caller.id)
        data = [_summary(db, thread, caller.id) for thread in threads]
    except StorageUnavailable:
        logger.warning("Serving empty thread list for %s: storage unavailable", caller.id)
        return {"success": True, "data": [], "degraded": True}
    return {"success": True, "data": data, "degraded": False}


@router.post(
    "/chat/threads",
    response_model=schemas.ThreadResponse,
    status_code=status.HTTP_200_OK,
)
def create_thread(
    thread_in: schemas.ThreadCreate,
    db: Session = Depends(get_db),
    caller: Optional[schemas.CallerIdentity] = Depends(get_caller_identity),
):
    """Return the single thread between the two ids, creating it if needed."""
    initiator_id = thread_in.initiator_id
    counterpart_id = thread_in.counterpart_id
    try:
        if caller is not None and caller.id == initiator_id:
            crud.ensure_participant(
                db,
                initiator_id,
                name=caller.name,
                email=caller.email,
                avatar=caller.avatar,
            )
        else:
            crud.ensure_participant(db, initiator_id)
        if crud.get_participant(db, counterpart_id) is None:
            crud.ensure_participant(
                db,
                counterpart_id,
                name=thread_in.participant_name,
                avatar=thread_in.participant_avatar,
            )
        thread = crud.get_or_create_thread(
            db,
            initiator_id,
            counterpart_id,
            display_name=thread_in.participant_name,
            display_avatar=thread_in.participant_avatar,
        )
        summary = _summary(db, thread, initiator_id)
    except ChatError as exc:
        raise chat_error_response(exc)
    return {"success": True, "data": summary}


@router.put(
    "/chat/threads/{thread_id}/presence",
    response_model=schemas.ThreadResponse,
)
def update_presence(
    thread_id: int,
    presence: schemas.PresenceUpdate,
    db: Session = Depends(get_db),
    caller: schemas.CallerIdentity = Depends(require_caller),
):
    """Apply a presence signal to the thread's online flag."""
    try:
        load_member_thread(db, thread_id, caller.id)
        thread = crud.set_online(db, thread_id, presence.is_online)
        summary = _summary(db, thread, caller.id)
    except ChatError as exc:
        raise chat_error_response(exc)
    return {"success": True, "data": summary}
