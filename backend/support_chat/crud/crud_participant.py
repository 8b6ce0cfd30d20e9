from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..database import storage_guard
from ..utils.errors import StorageUnavailable

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def placeholder_email(participant_id: str) -> str:
    return f"{participant_id}@{settings.PLACEHOLDER_EMAIL_DOMAIN}"


def get_participant(db: Session, participant_id: str) -> Optional[models.Participant]:
    with storage_guard(db, "get_participant"):
        return db.get(models.Participant, participant_id)


def _apply_refresh(participant: models.Participant, name: Optional[str], avatar: Optional[str]) -> None:
    if name:
        participant.name = name
    if avatar:
        participant.avatar = avatar
    participant.last_active_at = models.utcnow()


def ensure_participant(
    db: Session,
    participant_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    avatar: Optional[str] = None,
    role: models.ParticipantRole = models.ParticipantRole.ORDINARY,
) -> models.Participant:
    """Create the participant on first reference, refresh it afterwards.

    New rows get ``role`` plus placeholders for a missing name or email.
    Existing rows only take the supplied non-empty name/avatar and have their
    last activity bumped; email and role are never rewritten here. Two
    requests racing to create the same id both end up refreshing the single
    row that won the insert.
    """
    if participant_id is None or not str(participant_id).strip():
        raise ValueError("A participant id is required")
    name = _clean(name)
    email = _clean(email)
    avatar = _clean(avatar)

    with storage_guard(db, "ensure_participant"):
        participant = db.get(models.Participant, participant_id)
        if participant is None:
            participant = models.Participant(
                id=participant_id,
                name=name or settings.DEFAULT_PARTICIPANT_NAME,
                email=email or placeholder_email(participant_id),
                avatar=avatar,
                role=role,
                last_active_at=models.utcnow(),
            )
            db.add(participant)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info("Participant %s created concurrently; refreshing instead", participant_id)
                participant = db.get(models.Participant, participant_id)
                if participant is None:
                    raise StorageUnavailable("Participant insert conflicted but no row is visible")
            else:
                db.refresh(participant)
                logger.info("Created participant %s (%s)", participant_id, participant.role.value)
                return participant

        _apply_refresh(participant, name, avatar)
        db.commit()
        db.refresh(participant)
        return participant
