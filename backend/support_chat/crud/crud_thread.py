from typing import List, Optional
from datetime import datetime
import logging

from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..core.config import settings
from ..database import storage_guard
from ..utils.errors import ThreadNotFound

logger = logging.getLogger(__name__)


def _lookup(db: Session, low: str, high: str) -> Optional[models.ChatThread]:
    return (
        db.query(models.ChatThread)
        .filter(
            models.ChatThread.participant_a_id == low,
            models.ChatThread.participant_b_id == high,
        )
        .first()
    )


def get_thread(db: Session, thread_id: int) -> Optional[models.ChatThread]:
    with storage_guard(db, "get_thread"):
        return db.get(models.ChatThread, thread_id)


def find_thread(db: Session, a: str, b: str) -> Optional[models.ChatThread]:
    """Return the thread between ``a`` and ``b`` in either order, if any."""
    low, high = models.canonical_pair(a, b)
    with storage_guard(db, "find_thread"):
        return _lookup(db, low, high)


def _refresh_display(
    thread: models.ChatThread,
    display_name: Optional[str],
    display_avatar: Optional[str],
) -> bool:
    changed = False
    if display_name and thread.participant_name != display_name:
        thread.participant_name = display_name
        changed = True
    if display_avatar and thread.participant_avatar != display_avatar:
        thread.participant_avatar = display_avatar
        changed = True
    return changed


def get_or_create_thread(
    db: Session,
    a: str,
    b: str,
    display_name: Optional[str] = None,
    display_avatar: Optional[str] = None,
) -> models.ChatThread:
    """Return the single thread for the pair ``{a, b}``, creating it if needed.

    ``a`` is recorded as the initiator when the thread is created. Display
    fields, when given, refresh the stored snapshot on an existing thread.
    A creator that loses a concurrent insert race (unique constraint on the
    canonical pair) rolls back and returns the winner's row.
    """
    if a == b:
        raise ValueError("A thread needs two distinct participants")
    low, high = models.canonical_pair(a, b)

    with storage_guard(db, "get_or_create_thread"):
        thread = _lookup(db, low, high)
        if thread is None:
            thread = models.ChatThread(
                participant_a_id=low,
                participant_b_id=high,
                initiator_id=a,
                participant_name=display_name or settings.DEFAULT_PARTICIPANT_NAME,
                participant_avatar=display_avatar,
                last_message="",
                message_count=0,
                unread_count=0,
                is_online=False,
            )
            db.add(thread)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                thread = _lookup(db, low, high)
                if thread is None:
                    # Not a pair conflict (e.g. unknown participant id)
                    raise
                logger.info("Lost thread creation race for %s/%s; using thread %s", low, high, thread.id)
            else:
                db.refresh(thread)
                logger.info("Created thread %s between %s and %s", thread.id, low, high)
                return thread

        if _refresh_display(thread, display_name, display_avatar):
            db.commit()
            db.refresh(thread)
        return thread


def list_threads_for(db: Session, participant_id: str) -> List[models.ChatThread]:
    """Threads involving ``participant_id``, most recently active first.

    Both participants are eager-loaded so callers can resolve the other side
    with :func:`counterpart` without further queries.
    """
    with storage_guard(db, "list_threads_for"):
        return (
            db.query(models.ChatThread)
            .options(
                selectinload(models.ChatThread.participant_a),
                selectinload(models.ChatThread.participant_b),
            )
            .filter(
                or_(
                    models.ChatThread.participant_a_id == participant_id,
                    models.ChatThread.participant_b_id == participant_id,
                )
            )
            .order_by(models.ChatThread.updated_at.desc(), models.ChatThread.id.desc())
            .all()
        )


def counterpart(thread: models.ChatThread, viewer_id: str) -> Optional[models.Participant]:
    """Return the participant on the other side of ``thread`` from ``viewer_id``."""
    if viewer_id == thread.participant_a_id:
        return thread.participant_b
    return thread.participant_a


def record_activity(
    db: Session,
    thread_id: int,
    last_message_text: str,
    timestamp: datetime,
    message_id: int,
) -> bool:
    """Move the thread's last-message projection to ``message_id``.

    Runs inside the caller's unit of work (no commit). The projection only
    moves forward in ``(timestamp, message_id)`` order, so concurrent appends
    that commit out of order still leave the latest message in place. The
    message counter is bumped unconditionally. Returns True when the
    projection moved.
    """
    thread = models.ChatThread
    db.execute(
        update(thread)
        .where(thread.id == thread_id)
        .values(message_count=thread.message_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(
        update(thread)
        .where(thread.id == thread_id)
        .where(
            or_(
                thread.last_message_at.is_(None),
                thread.last_message_at < timestamp,
                and_(
                    thread.last_message_at == timestamp,
                    or_(thread.last_message_id.is_(None), thread.last_message_id < message_id),
                ),
            )
        )
        .values(
            last_message=last_message_text,
            last_message_at=timestamp,
            last_message_id=message_id,
            updated_at=timestamp,
        )
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


def _latest_own_message(db: Session, thread_id: int, viewer_id: str):
    return (
        db.query(models.ChatMessage.created_at, models.ChatMessage.id)
        .filter(
            models.ChatMessage.thread_id == thread_id,
            models.ChatMessage.sender_id == viewer_id,
        )
        .order_by(models.ChatMessage.created_at.desc(), models.ChatMessage.id.desc())
        .first()
    )


def _count_unread(db: Session, thread_id: int, viewer_id: str) -> int:
    query = db.query(func.count(models.ChatMessage.id)).filter(
        models.ChatMessage.thread_id == thread_id,
        models.ChatMessage.sender_id != viewer_id,
    )
    last_own = _latest_own_message(db, thread_id, viewer_id)
    if last_own is not None:
        last_ts, last_id = last_own
        query = query.filter(
            or_(
                models.ChatMessage.created_at > last_ts,
                and_(
                    models.ChatMessage.created_at == last_ts,
                    models.ChatMessage.id > last_id,
                ),
            )
        )
    return int(query.scalar() or 0)


def compute_unread(db: Session, thread_id: int, viewer_id: str) -> int:
    """Messages from the other party since ``viewer_id`` last spoke.

    "Since" follows the thread's total order (timestamp, then insertion id).
    When the viewer never sent anything every message from the other party
    counts. Always computed from the messages table.
    """
    with storage_guard(db, "compute_unread"):
        return _count_unread(db, thread_id, viewer_id)


def store_unread_snapshot(db: Session, thread_id: int, viewer_id: str) -> int:
    """Write the recipient's current unread count into the cached column.

    Runs inside the caller's unit of work. The stored value is an
    optimisation for raw data inspection only; reads use compute_unread().
    """
    count = _count_unread(db, thread_id, viewer_id)
    db.execute(
        update(models.ChatThread)
        .where(models.ChatThread.id == thread_id)
        .values(unread_count=count)
        .execution_options(synchronize_session=False)
    )
    return count


def set_online(db: Session, thread_id: int, is_online: bool) -> models.ChatThread:
    """Apply a presence signal to the thread's online flag."""
    with storage_guard(db, "set_online"):
        thread = db.get(models.ChatThread, thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        if thread.is_online != bool(is_online):
            thread.is_online = bool(is_online)
            db.commit()
            db.refresh(thread)
        return thread
