"""Turn stored thread and message rows into the shapes callers render.

Everything here is pure: no queries, no commits. Unread counts are passed in
by the caller (see ``utils.redis_cache.cached_unread``).
"""

from datetime import datetime, timezone
from typing import Any, Optional

from ..core.config import settings
from ..models import (
    AttachmentType,
    ChatMessage,
    ChatThread,
    MessageAttachment,
    Participant,
    ParticipantRole,
    utcnow,
)
from ..schemas import AttachmentResponse, MessageResponse, ThreadSummary

JUST_NOW = "Just now"


def _as_naive_utc(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return _as_naive_utc(parsed)
    return None


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_relative_time(timestamp: Any, now: Optional[datetime] = None) -> str:
    """Render ``timestamp`` as "Just now", "N min ago", "N hours ago", ...

    Accepts datetimes (naive values are UTC) or ISO strings. Anything older
    than a week renders as its calendar date. Missing, malformed and future
    timestamps render as "Just now".
    """
    moment = _as_naive_utc(timestamp)
    if moment is None:
        return JUST_NOW
    current = _as_naive_utc(now) if now is not None else utcnow()
    seconds = (current - moment).total_seconds()
    minutes = int(seconds // 60)
    if minutes < 1:
        return JUST_NOW
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days < 7:
        return _plural(days, "day")
    return moment.date().isoformat()


def normalize_attachment_type(kind: Any) -> str:
    """Fold a stored type tag onto image, document or drawing."""
    if isinstance(kind, AttachmentType):
        kind = kind.value
    tag = str(kind or "").strip().lower()
    if tag in (AttachmentType.IMAGE.value, AttachmentType.DRAWING.value):
        return tag
    return AttachmentType.DOCUMENT.value


def project_attachment(attachment: MessageAttachment) -> AttachmentResponse:
    return AttachmentResponse(
        id=attachment.id,
        name=attachment.name,
        type=normalize_attachment_type(attachment.type),
        url=attachment.url,
        size=attachment.size,
        uploaded_at=attachment.uploaded_at,
    )


def project_message(message: ChatMessage) -> MessageResponse:
    attachments = [project_attachment(a) for a in (message.attachments or [])]
    return MessageResponse(
        id=message.id,
        thread_id=message.thread_id,
        sender_id=message.sender_id,
        sender_name=message.sender_name,
        sender_avatar=message.sender_avatar,
        content=message.content or "",
        timestamp=message.created_at,
        status=message.status,
        audio_url=message.audio_url,
        attachments=attachments or None,
    )


def _is_support(participant: Optional[Participant]) -> bool:
    if participant is None:
        return False
    return participant.role == ParticipantRole.SUPPORT or participant.id == settings.MAINTAINER_ID


def project_thread(
    thread: ChatThread,
    viewer_id: str,
    counterpart: Optional[Participant],
    unread_count: int,
    now: Optional[datetime] = None,
) -> ThreadSummary:
    """Summary of ``thread`` as seen by ``viewer_id``.

    The other side's live name and avatar win over the stored snapshot.
    Threads with the maintainer always show as online.
    """
    other_id = thread.other_participant_id(viewer_id)
    name = (counterpart.name if counterpart is not None else None) or thread.participant_name
    avatar = (counterpart.avatar if counterpart is not None else None) or thread.participant_avatar
    return ThreadSummary(
        id=thread.id,
        participant_id=other_id,
        participant_name=name or settings.DEFAULT_PARTICIPANT_NAME,
        participant_avatar=avatar,
        last_message=thread.last_message or "",
        last_message_time=format_relative_time(thread.last_message_at, now=now),
        last_message_at=thread.last_message_at,
        unread_count=max(0, int(unread_count or 0)),
        is_online=bool(thread.is_online) or _is_support(counterpart) or other_id == settings.MAINTAINER_ID,
    )
