import logging
from contextlib import contextmanager

import redis

from felicity.core.config import LOCK_BLOCKING_TIMEOUT, LOCK_TIMEOUT, get_redis_url
from felicity.services.errors import LockUnavailableError

logger = logging.getLogger(__name__)


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)


def event_pool_lock_name(event_id: int, pool: str) -> str:
    return f"capacity_lock:{event_id}:{pool}"


def registration_lock_name(registration_id: int) -> str:
    return f"registration_lock:{registration_id}"


def purchase_lock_name(event_id: int, participant_id: int) -> str:
    return f"purchase_lock:{event_id}:{participant_id}"


@contextmanager
def hold_lock(name: str, redis_client=None):
    """
    Hold a Redis lock for the duration of the block.
    Only one process can run a block guarded by the same name at a time.
    """
    client = redis_client if redis_client is not None else get_redis_client()
    lock = client.lock(name, timeout=LOCK_TIMEOUT, blocking_timeout=LOCK_BLOCKING_TIMEOUT)

    try:
        acquired = lock.acquire(blocking=True, blocking_timeout=LOCK_BLOCKING_TIMEOUT)
    except redis.exceptions.LockError:  # type: ignore
        raise LockUnavailableError(name)
    if not acquired:
        raise LockUnavailableError(name)

    try:
        yield lock
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:  # type: ignore
            # Lock expired while held; the database guards still hold.
            logger.warning("Lock %s expired before release", name)
