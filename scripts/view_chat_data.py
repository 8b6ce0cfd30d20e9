#!/usr/bin/env python3
"""
Print a quick overview of the chat store: participants, threads, recent
messages, totals and per-user activity with the support maintainer.

Usage:
  python scripts/view_chat_data.py
  SQLALCHEMY_DATABASE_URL=postgresql://... python scripts/view_chat_data.py

The database URL is resolved exactly as the API resolves it (environment,
then backend/.env, then the bundled SQLite file).
"""
from __future__ import annotations

import os
import sys

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend")))

from support_chat import models  # noqa: E402
from support_chat.core.config import settings  # noqa: E402
from support_chat.crud import crud_message  # noqa: E402
from support_chat.database import get_db_session  # noqa: E402
from support_chat.utils.errors import StorageUnavailable  # noqa: E402
from support_chat.utils.messages import snippet  # noqa: E402

RULE = "─" * 80


def _when(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def print_participants(db) -> None:
    print("PARTICIPANTS:")
    print(RULE)
    rows = db.query(models.Participant).order_by(models.Participant.created_at.desc()).all()
    for p in rows:
        print(f"  {p.name} ({p.email}) - {p.role.value} - Created: {_when(p.created_at)}")
    print(f"\n  Total: {len(rows)} participants\n")


def print_threads(db) -> None:
    print("CHAT THREADS:")
    print(RULE)
    threads = (
        db.query(models.ChatThread)
        .order_by(models.ChatThread.updated_at.desc(), models.ChatThread.id.desc())
        .all()
    )
    for t in threads:
        a = t.participant_a.name if t.participant_a else t.participant_a_id
        b = t.participant_b.name if t.participant_b else t.participant_b_id
        print(f"  Thread: {t.id}")
        print(f"    With: {t.participant_name}")
        print(f"    Participants: {a} <-> {b}")
        print(f"    Last Message: {t.last_message or '(no messages yet)'}")
        print(f"    Messages: {t.message_count}  Unread (cached): {t.unread_count}")
        print("")
    print(f"  Total: {len(threads)} threads\n")


def print_recent_messages(db, limit: int = 20) -> None:
    print(f"RECENT MESSAGES (Last {limit}):")
    print(RULE)
    for m in crud_message.get_recent_messages(db, limit=limit):
        target = m.thread.participant_name if m.thread else "Unknown"
        print(f"  [{_when(m.created_at)}] {m.sender_name} -> {target}")
        print(f"    \"{snippet(m.content)}\"")
        print("")


def print_statistics(db) -> None:
    print("STATISTICS:")
    print(RULE)
    print(f"  Total Participants: {db.query(models.Participant).count()}")
    print(f"  Total Threads: {db.query(models.ChatThread).count()}")
    print(f"  Total Messages: {db.query(models.ChatMessage).count()}")
    print(f"  Total Attachments: {db.query(models.MessageAttachment).count()}\n")


def print_maintainer_conversations(db) -> None:
    print("CONVERSATIONS WITH MAINTAINER:")
    print(RULE)
    maintainer_id = settings.MAINTAINER_ID
    thread = models.ChatThread
    message = models.ChatMessage
    user_a = aliased(models.Participant)
    user_b = aliased(models.Participant)
    rows = (
        db.query(
            thread.id,
            thread.participant_a_id,
            user_a.name,
            user_b.name,
            func.count(message.id),
            func.max(message.created_at),
        )
        .outerjoin(user_a, thread.participant_a_id == user_a.id)
        .outerjoin(user_b, thread.participant_b_id == user_b.id)
        .outerjoin(message, message.thread_id == thread.id)
        .filter((thread.participant_a_id == maintainer_id) | (thread.participant_b_id == maintainer_id))
        .group_by(thread.id, thread.participant_a_id, user_a.name, user_b.name)
        .order_by(func.max(message.created_at).desc())
        .all()
    )
    for _, a_id, a_name, b_name, count, last_activity in rows:
        user_name = b_name if a_id == maintainer_id else a_name
        print(f"  {user_name}: {count} messages")
        if last_activity:
            print(f"    Last activity: {_when(last_activity)}")
        print("")


def main() -> int:
    print("Connecting to chat database...\n")
    try:
        with get_db_session() as db:
            print_participants(db)
            print_threads(db)
            print_recent_messages(db)
            print_statistics(db)
            print_maintainer_conversations(db)
    except (SQLAlchemyError, StorageUnavailable) as exc:
        print(f"Error: {exc}")
        return 1
    print("Done!\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
