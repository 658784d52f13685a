"""Database utility functions."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, InterfaceError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Attempts per row when inserts keep conflicting
MAX_INSERT_ATTEMPTS = 3

# Substrings of driver messages that indicate a retryable condition
TRANSIENT_ERRORS = (
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "timeout",
    "too many clients",
    "database is locked",
)


def is_transient(error: Exception) -> bool:
    """Check whether a storage error is worth retrying."""
    error_str = str(error).lower()
    return any(msg in error_str for msg in TRANSIENT_ERRORS)


async def retry_on_lock(
    coro_func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 0.1,
) -> T:
    """Retry a database operation on transient errors with exponential backoff.

    Used around a whole unit of work on a fresh session each call: a locked
    SQLite file or a dropped PostgreSQL connection gets a few more attempts
    before the report is failed. Each call must roll back its own failed
    transaction and start a new one.

    Args:
        coro_func: Async function to call (should be a callable that returns a coroutine)
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles with each retry)

    Returns:
        The result of the coroutine function

    Raises:
        OperationalError: If all retries fail or error is not transient
    """
    last_exception = None
    for attempt in range(max_retries):
        try:
            return await coro_func()
        except (OperationalError, InterfaceError) as e:
            if not is_transient(e):
                raise
            last_exception = e
            delay = base_delay * (2 ** attempt)
            logger.warning(f"Database transient error, retrying in {delay}s (attempt {attempt + 1}/{max_retries})")
            await asyncio.sleep(delay)
    raise last_exception


async def insert_or_fetch(
    session: AsyncSession,
    insert: Callable[[], Awaitable[T]],
    fetch: Callable[[], Awaitable[Optional[T]]],
    max_attempts: int = MAX_INSERT_ATTEMPTS,
) -> T:
    """Insert a row inside a SAVEPOINT, or return the row another writer created.

    On a uniqueness conflict only the savepoint is rolled back. ``fetch`` then
    looks for the competing row; if there is none the conflict was on the
    generated id, and ``insert`` (which must draw a fresh id per call) runs again.

    Raises:
        IntegrityError: If every attempt conflicts and nothing can be fetched.
    """
    last_error = None
    for _ in range(max_attempts):
        try:
            async with session.begin_nested():
                return await insert()
        except IntegrityError as e:
            last_error = e
            found = await fetch()
            if found is not None:
                return found
    raise last_error
