from datetime import datetime

from support_chat import models
from support_chat.crud import crud_message, crud_participant, crud_thread


def _thread(db, a="u1", b="maintainer-001"):
    crud_participant.ensure_participant(db, a)
    crud_participant.ensure_participant(db, b)
    return crud_thread.get_or_create_thread(db, a, b)


def test_three_messages_since_last_reply(db):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "u1", "Asha", body="question")
    for i in range(3):
        crud_message.append_message(db, thread.id, "maintainer-001", "Support", body=f"answer {i}")

    assert crud_thread.compute_unread(db, thread.id, "u1") == 3

    crud_message.append_message(db, thread.id, "u1", "Asha", body="thanks")

    assert crud_thread.compute_unread(db, thread.id, "u1") == 0
    assert crud_thread.compute_unread(db, thread.id, "maintainer-001") == 1


def test_viewer_who_never_spoke_sees_everything(db):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="Welcome")
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="Anything?")

    assert crud_thread.compute_unread(db, thread.id, "u1") == 2


def test_empty_thread_has_no_unread(db):
    thread = _thread(db)
    assert crud_thread.compute_unread(db, thread.id, "u1") == 0
    assert crud_thread.compute_unread(db, thread.id, "maintainer-001") == 0


def test_unread_is_symmetric_between_ordinary_participants(db):
    thread = _thread(db, "alice", "bob")
    crud_message.append_message(db, thread.id, "alice", "Alice", body="hi")
    crud_message.append_message(db, thread.id, "alice", "Alice", body="there?")

    assert crud_thread.compute_unread(db, thread.id, "bob") == 2
    assert crud_thread.compute_unread(db, thread.id, "alice") == 0


def test_same_timestamp_ties_use_insertion_order(db):
    thread = _thread(db)
    instant = datetime(2024, 3, 3, 10, 0)
    for sender, text in (("maintainer-001", "before"), ("u1", "mine"), ("maintainer-001", "after")):
        db.add(models.ChatMessage(thread_id=thread.id, sender_id=sender, sender_name=sender, content=text, created_at=instant))
        db.flush()
    db.commit()

    assert crud_thread.compute_unread(db, thread.id, "u1") == 1


def test_stored_counter_is_not_trusted(db):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="ping")
    thread.unread_count = 42
    db.commit()

    assert crud_thread.compute_unread(db, thread.id, "u1") == 1


def test_append_refreshes_recipient_snapshot(db):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "u1", "Asha", body="one")
    crud_message.append_message(db, thread.id, "u1", "Asha", body="two")

    db.refresh(thread)
    assert thread.unread_count == 2

    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="reply")

    db.refresh(thread)
    assert thread.unread_count == 1
