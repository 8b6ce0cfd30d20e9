from concurrent.futures import ThreadPoolExecutor

import pytest

from support_chat import models
from support_chat.core.config import settings
from support_chat.crud import crud_participant
from support_chat.services import maintainer_bootstrap


def test_cold_start_creates_everything(db):
    thread = maintainer_bootstrap.get_or_create_maintainer_thread(db, "u1", "Asha")

    maintainer = db.get(models.Participant, settings.MAINTAINER_ID)
    user = db.get(models.Participant, "u1")
    assert maintainer.role == models.ParticipantRole.SUPPORT
    assert maintainer.name == "KeyVasthu Support"
    assert maintainer.email == "support@keyvasthu.com"
    assert user.name == "Asha"
    assert user.role == models.ParticipantRole.ORDINARY
    assert set(thread.pair) == {"u1", settings.MAINTAINER_ID}
    assert thread.initiator_id == "u1"
    assert thread.participant_name == "KeyVasthu Support"
    assert thread.last_message == ""
    assert thread.unread_count == 0


def test_five_sequential_calls_are_idempotent(db):
    ids = {
        maintainer_bootstrap.get_or_create_maintainer_thread(db, "u1", "Asha").id
        for _ in range(5)
    }

    assert len(ids) == 1
    assert db.query(models.ChatThread).count() == 1
    assert (
        db.query(models.Participant)
        .filter(models.Participant.role == models.ParticipantRole.SUPPORT)
        .count()
        == 1
    )


def test_each_user_gets_own_thread(db):
    first = maintainer_bootstrap.get_or_create_maintainer_thread(db, "u1")
    second = maintainer_bootstrap.get_or_create_maintainer_thread(db, "u2")

    assert first.id != second.id
    assert db.query(models.Participant).count() == 3


def test_ensure_maintainer_is_noop_when_present(db):
    first = maintainer_bootstrap.ensure_maintainer(db)
    seen_at = first.last_active_at

    again = maintainer_bootstrap.ensure_maintainer(db)

    assert again.id == first.id
    assert again.last_active_at == seen_at


def test_ensure_maintainer_promotes_existing_ordinary_row(db):
    crud_participant.ensure_participant(db, settings.MAINTAINER_ID, name="Someone")

    maintainer = maintainer_bootstrap.ensure_maintainer(db)

    assert maintainer.role == models.ParticipantRole.SUPPORT
    assert db.query(models.Participant).count() == 1


def test_maintainer_cannot_open_thread_with_itself(db):
    with pytest.raises(ValueError):
        maintainer_bootstrap.get_or_create_maintainer_thread(db, settings.MAINTAINER_ID)


def test_concurrent_bootstrap_converges(file_session_factory):
    def worker(_: int) -> int:
        session = file_session_factory()
        try:
            return maintainer_bootstrap.get_or_create_maintainer_thread(session, "u1", "Asha").id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=5) as pool:
        ids = list(pool.map(worker, range(5)))

    assert len(set(ids)) == 1
    check = file_session_factory()
    try:
        assert check.query(models.ChatThread).count() == 1
        assert check.query(models.Participant).filter(models.Participant.id == settings.MAINTAINER_ID).count() == 1
        assert check.query(models.Participant).count() == 2
    finally:
        check.close()


def test_startup_bootstrap_respects_flag(monkeypatch):
    monkeypatch.setattr(settings, "MAINTAINER_BOOTSTRAP", False)
    assert maintainer_bootstrap.bootstrap_maintainer() is None
