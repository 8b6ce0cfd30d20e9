from typing import Any, List, Optional, Sequence
import logging

from sqlalchemy.orm import Session, selectinload

from .. import models
from ..database import storage_guard
from ..utils.errors import EmptyMessage, ThreadNotFound
from ..utils.messages import payload_summary
from . import crud_attachment, crud_thread

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "You"


def append_message(
    db: Session,
    thread_id: int,
    sender_id: str,
    sender_name: Optional[str],
    sender_avatar: Optional[str] = None,
    body: Optional[str] = None,
    audio_url: Optional[str] = None,
    attachments: Optional[Sequence[Any]] = None,
) -> models.ChatMessage:
    """Append one immutable message to a thread.

    The message, its attachments and the thread's last-message projection
    are written in a single transaction: either all of them are visible
    afterwards or none are. Raises ``EmptyMessage`` when the message has no
    body, audio or attachment, ``ThreadNotFound`` for an unknown thread,
    ``InvalidAttachment`` for a malformed descriptor and
    ``StorageUnavailable`` when the store cannot be reached.
    """
    text = body if body and body.strip() else ""
    audio = (audio_url or "").strip() or None
    descriptors = list(attachments or [])
    if not text and not audio and not descriptors:
        raise EmptyMessage()

    with storage_guard(db, "append_message"):
        thread = db.get(models.ChatThread, thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        recipient_id = thread.other_participant_id(sender_id)

        message = models.ChatMessage(
            thread_id=thread_id,
            sender_id=sender_id,
            sender_name=(sender_name or "").strip() or DEFAULT_SENDER_NAME,
            sender_avatar=sender_avatar or None,
            content=text,
            status=models.MessageStatus.SENT,
            audio_url=audio,
            created_at=models.utcnow(),
        )
        try:
            db.add(message)
            db.flush()
            linked = crud_attachment.link_attachments(db, message, descriptors)
            db.flush()
            moved = crud_thread.record_activity(
                db,
                thread_id,
                payload_summary(text, audio, descriptors),
                message.created_at,
                message.id,
            )
            if moved:
                crud_thread.store_unread_snapshot(db, thread_id, recipient_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(message)

    logger.info(
        "Appended message %s to thread %s from %s (attachments=%d)",
        message.id,
        thread_id,
        sender_id,
        len(linked),
    )
    return message


def list_messages(db: Session, thread_id: int) -> List[models.ChatMessage]:
    """Messages of a thread with attachments, oldest first.

    Ordering is by creation time with the insertion id breaking ties, which
    is the thread's total order.
    """
    with storage_guard(db, "list_messages"):
        return (
            db.query(models.ChatMessage)
            .options(selectinload(models.ChatMessage.attachments))
            .filter(models.ChatMessage.thread_id == thread_id)
            .order_by(models.ChatMessage.created_at.asc(), models.ChatMessage.id.asc())
            .all()
        )


def get_message(db: Session, message_id: int) -> Optional[models.ChatMessage]:
    with storage_guard(db, "get_message"):
        return (
            db.query(models.ChatMessage)
            .options(selectinload(models.ChatMessage.attachments))
            .filter(models.ChatMessage.id == message_id)
            .first()
        )


def get_recent_messages(db: Session, limit: int = 20) -> List[models.ChatMessage]:
    """Most recent messages across all threads, newest first."""
    if limit <= 0:
        return []
    with storage_guard(db, "get_recent_messages"):
        return (
            db.query(models.ChatMessage)
            .options(selectinload(models.ChatMessage.thread))
            .order_by(models.ChatMessage.created_at.desc(), models.ChatMessage.id.desc())
            .limit(limit)
            .all()
        )
