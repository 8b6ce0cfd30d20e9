import logging
import os
from typing import Optional

import redis
from sqlalchemy.orm import Session

from support_chat.core.config import settings
from support_chat.crud import crud_thread

_redis_client: Optional[redis.Redis] = None

UNREAD_KEY_PREFIX = "unread"


class _NullRedis:
    """No-op Redis client used when Redis is disabled or unavailable.

    Methods mirror the minimal surface used here so callers can proceed
    without try/except around get_redis_client().
    """

    def get(self, key: str):
        return None

    def setex(self, key: str, expire: int, value: str):
        return None

    def close(self):
        return None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = (getattr(settings, "REDIS_URL", "") or "").strip()
        # Allow disabling via empty/none/disabled/false
        if not url or url.lower() in {"none", "disabled", "false", "0"}:
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        try:
            # Short socket timeouts: a slow Redis must not stall thread listings.
            try:
                conn_to = float(os.getenv("REDIS_CONNECT_TIMEOUT", "0.5"))
            except ValueError:
                conn_to = 0.5
            try:
                read_to = float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5"))
            except ValueError:
                read_to = 0.5
            _redis_client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=conn_to,
                socket_timeout=read_to,
            )
        except (redis.exceptions.RedisError, ValueError) as exc:
            logging.warning("Redis client disabled: %s", exc)
            _redis_client = _NullRedis()  # type: ignore[assignment]
    return _redis_client


def _unread_key(thread_id: int, viewer_id: str, version: int) -> str:
    return f"{UNREAD_KEY_PREFIX}:{thread_id}:{viewer_id}:{version}"


def cached_unread(db: Session, thread, viewer_id: str) -> int:
    """Unread count for ``viewer_id`` in ``thread``, memoised in Redis.

    The key carries the thread's ``message_count``, which every append bumps,
    so a cached value is only ever reused for the exact message set it was
    computed from. Redis errors and unreadable entries fall back to
    :func:`crud_thread.compute_unread`.
    """
    client = get_redis_client()
    key = _unread_key(thread.id, viewer_id, thread.message_count or 0)
    try:
        cached = client.get(key)
    except redis.exceptions.RedisError as exc:
        logging.warning("Redis unavailable: %s", exc)
        cached = None
    if cached is not None:
        try:
            return int(cached)
        except (TypeError, ValueError):
            logging.warning("Could not decode unread cache for key %s", key)

    count = crud_thread.compute_unread(db, thread.id, viewer_id)
    try:
        client.setex(key, settings.UNREAD_CACHE_TTL, str(count))
    except redis.exceptions.RedisError as exc:
        logging.warning("Could not cache unread count: %s", exc)
    return count


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logging.warning("Error closing Redis client: %s", exc)
        finally:
            _redis_client = None
