"""
Redis connection management.

Provides Redis connections for:
- Celery broker/backend (configured separately in the worker)
- Per-profile full-sync locks
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from redis import Redis as SyncRedis
from redis.exceptions import LockError

from vista.core.config import settings

logger = logging.getLogger(__name__)

_sync_redis_client: Optional[SyncRedis] = None


class SyncAlreadyRunningError(Exception):
    """Raised when another full sync already holds the profile's lock."""
    pass


def get_redis_client() -> SyncRedis:
    """
    Get synchronous Redis client for locks held by Celery tasks.

    Returns:
        Synchronous Redis client instance
    """
    global _sync_redis_client

    if _sync_redis_client is None:
        logger.info("Initializing sync Redis client")
        _sync_redis_client = SyncRedis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True
        )

        try:
            _sync_redis_client.ping()
            logger.info("Sync Redis connection successful")
        except Exception as e:
            logger.error(f"Sync Redis connection failed: {e}")
            _sync_redis_client = None
            raise

    return _sync_redis_client


def close_redis() -> None:
    """Close the Redis client. Called during worker shutdown."""
    global _sync_redis_client

    if _sync_redis_client:
        logger.info("Closing Redis connection")
        _sync_redis_client.close()
        _sync_redis_client = None


# ========================================
# Per-profile Sync Lock
# ========================================

def sync_lock_key(profile_id: int) -> str:
    return f"vista:sync-lock:{profile_id}"


@contextmanager
def profile_sync_lock(profile_id: int, client: Optional[SyncRedis] = None) -> Iterator[None]:
    """
    Hold the full-sync lock for one profile.

    At most one full sync runs per profile; syncs for different profiles
    proceed in parallel. The lock expires after SYNC_LOCK_TIMEOUT_SECONDS so
    a crashed worker cannot wedge a profile forever.

    Raises:
        SyncAlreadyRunningError: If the lock is not acquired within
            SYNC_LOCK_BLOCKING_TIMEOUT_SECONDS
    """
    redis_client = client or get_redis_client()
    lock = redis_client.lock(
        sync_lock_key(profile_id),
        timeout=settings.SYNC_LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.SYNC_LOCK_BLOCKING_TIMEOUT_SECONDS,
    )

    if not lock.acquire():
        raise SyncAlreadyRunningError(f"A sync is already running for profile {profile_id}")

    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            # Expired while we were running; another worker may own it now
            logger.warning(f"Sync lock for profile {profile_id} expired before release")
