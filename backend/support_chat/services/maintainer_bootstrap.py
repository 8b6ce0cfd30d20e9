from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud import crud_participant, crud_thread
from ..database import get_db_session, storage_guard
from ..models import ChatThread, Participant, ParticipantRole
from ..utils.errors import StorageUnavailable

logger = logging.getLogger(__name__)


def _table_exists(session: Session, table_name: str) -> bool:
    insp = inspect(session.get_bind())
    return table_name in insp.get_table_names()


def ensure_maintainer(db: Session) -> Participant:
    """Make sure the fixed support participant exists exactly once.

    A no-op when the row is already present with the support role, so it is
    safe to call on every request. A pre-existing row with the maintainer id
    but another role is promoted rather than duplicated.
    """
    with storage_guard(db, "ensure_maintainer"):
        maintainer = db.get(Participant, settings.MAINTAINER_ID)
        if maintainer is not None:
            if maintainer.role != ParticipantRole.SUPPORT:
                maintainer.role = ParticipantRole.SUPPORT
                db.commit()
                db.refresh(maintainer)
                logger.info("Promoted participant %s to the support role", maintainer.id)
            return maintainer

    maintainer = crud_participant.ensure_participant(
        db,
        settings.MAINTAINER_ID,
        name=settings.MAINTAINER_NAME,
        email=settings.MAINTAINER_EMAIL,
        avatar=settings.MAINTAINER_AVATAR,
        role=ParticipantRole.SUPPORT,
    )
    if maintainer.role != ParticipantRole.SUPPORT:
        # Lost the insert race to a caller that created the id as ordinary
        return ensure_maintainer(db)
    logger.info("Maintainer %s ready", maintainer.id)
    return maintainer


def get_or_create_maintainer_thread(
    db: Session,
    user_id: str,
    user_name: Optional[str] = None,
    user_email: Optional[str] = None,
    user_avatar: Optional[str] = None,
) -> ChatThread:
    """Return the caller's single support thread, provisioning what is missing.

    Expected on every page load: repeated calls converge on one maintainer
    row and one thread per user.
    """
    if user_id == settings.MAINTAINER_ID:
        raise ValueError("The maintainer has no support thread with itself")
    maintainer = ensure_maintainer(db)
    crud_participant.ensure_participant(
        db,
        user_id,
        name=user_name,
        email=user_email,
        avatar=user_avatar,
    )
    return crud_thread.get_or_create_thread(
        db,
        user_id,
        maintainer.id,
        display_name=maintainer.name,
        display_avatar=maintainer.avatar,
    )


def bootstrap_maintainer() -> Optional[Participant]:
    """Startup hook: create the maintainer ahead of the first request.

    Controlled by ``MAINTAINER_BOOTSTRAP``. A store that is not reachable yet
    is logged and skipped; request-path calls provision lazily anyway.
    """
    if not settings.MAINTAINER_BOOTSTRAP:
        return None
    with get_db_session() as session:
        try:
            with storage_guard(session, "bootstrap_maintainer"):
                ready = _table_exists(session, Participant.__tablename__)
            if not ready:
                logger.warning("Skipping maintainer bootstrap: participants table missing")
                return None
            return ensure_maintainer(session)
        except StorageUnavailable:
            logger.warning("Maintainer bootstrap deferred: storage unavailable")
            return None
