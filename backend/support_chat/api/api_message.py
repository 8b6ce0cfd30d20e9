from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from .. import crud, schemas
from ..services.summary_projector import project_message
from ..utils import ChatError, StorageUnavailable, chat_error_response, error_response
from .api_threads import load_member_thread
from .dependencies import get_caller_identity, get_db, require_caller

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.get(
    "/chat/threads/{thread_id}/messages",
    response_model=schemas.MessageListResponse,
)
def read_messages(
    thread_id: int,
    db: Session = Depends(get_db),
    caller: schemas.CallerIdentity = Depends(require_caller),
):
    """Messages of a thread, oldest first, with their attachments."""
    try:
        load_member_thread(db, thread_id, caller.id)
        messages = crud.list_messages(db, thread_id)
    except StorageUnavailable:
        logger.warning("Serving empty message list for thread %s: storage unavailable", thread_id)
        return {"success": True, "data": [], "degraded": True}
    except ChatError as exc:
        raise chat_error_response(exc)
    return {
        "success": True,
        "data": [project_message(m) for m in messages],
        "degraded": False,
    }


@router.post(
    "/chat/threads/{thread_id}/messages",
    response_model=schemas.MessageEnvelope,
)
def create_message(
    thread_id: int,
    message_in: schemas.MessageCreate,
    db: Session = Depends(get_db),
    caller: Optional[schemas.CallerIdentity] = Depends(get_caller_identity),
):
    """Append a message from the caller to the thread."""
    if caller is None and message_in.sender_id and message_in.sender_id.strip():
        caller = schemas.CallerIdentity(
            id=message_in.sender_id,
            name=message_in.sender_name,
            avatar=message_in.sender_avatar,
        )
    if caller is None:
        raise error_response(
            "Sender identity is required",
            {"sender_id": "required"},
            status.HTTP_400_BAD_REQUEST,
        )

    try:
        load_member_thread(db, thread_id, caller.id)
        sender = crud.ensure_participant(
            db,
            caller.id,
            name=caller.name,
            email=caller.email,
            avatar=caller.avatar,
        )
        message = crud.append_message(
            db,
            thread_id,
            sender.id,
            caller.name or sender.name,
            sender_avatar=caller.avatar or sender.avatar,
            body=message_in.content,
            audio_url=message_in.audio_url,
            attachments=message_in.attachments,
        )
    except ChatError as exc:
        raise chat_error_response(exc)
    return {"success": True, "data": project_message(message)}
