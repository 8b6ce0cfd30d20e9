import redis

from support_chat.crud import crud_message, crud_participant, crud_thread
from support_chat.utils import redis_cache
from support_chat.utils.redis_cache import get_redis_client as real_get_redis_client


def _thread(db):
    crud_participant.ensure_participant(db, "u1")
    crud_participant.ensure_participant(db, "maintainer-001")
    return crud_thread.get_or_create_thread(db, "u1", "maintainer-001")


def test_cached_value_is_reused_for_same_message_set(db, fake_redis, monkeypatch):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="hello")
    db.refresh(thread)

    assert redis_cache.cached_unread(db, thread, "u1") == 1
    assert fake_redis.get(f"unread:{thread.id}:u1:{thread.message_count}") is not None

    def boom(*args, **kwargs):
        raise AssertionError("should have been served from cache")

    monkeypatch.setattr(crud_thread, "compute_unread", boom)
    assert redis_cache.cached_unread(db, thread, "u1") == 1


def test_append_makes_old_entries_unreachable(db):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="one")
    db.refresh(thread)
    assert redis_cache.cached_unread(db, thread, "u1") == 1

    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="two")
    db.refresh(thread)

    assert redis_cache.cached_unread(db, thread, "u1") == 2


def test_redis_errors_fall_back_to_computation(db, monkeypatch):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="one")
    db.refresh(thread)

    class BrokenRedis:
        def get(self, key):
            raise redis.exceptions.ConnectionError("down")

        def setex(self, key, expire, value):
            raise redis.exceptions.ConnectionError("down")

    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: BrokenRedis())

    assert redis_cache.cached_unread(db, thread, "u1") == 1


def test_garbage_entry_is_recomputed(db, fake_redis):
    thread = _thread(db)
    crud_message.append_message(db, thread.id, "maintainer-001", "Support", body="one")
    db.refresh(thread)
    fake_redis.set(f"unread:{thread.id}:u1:{thread.message_count}", "not-a-number")

    assert redis_cache.cached_unread(db, thread, "u1") == 1


def test_disabled_redis_uses_null_client(monkeypatch):
    monkeypatch.setattr(redis_cache, "_redis_client", None)
    monkeypatch.setattr(redis_cache.settings, "REDIS_URL", "disabled")

    client = real_get_redis_client()

    assert isinstance(client, redis_cache._NullRedis)
    assert client.get("anything") is None
    assert client.setex("anything", 10, "1") is None


class DummyRedis:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_close_redis_client(monkeypatch):
    dummy = DummyRedis()
    monkeypatch.setattr(redis_cache, "_redis_client", dummy)
    redis_cache.close_redis_client()
    assert dummy.closed
    assert redis_cache._redis_client is None
