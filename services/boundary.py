"""
services/boundary.py
--------------------
Helpers shared by the services at the edge where work is handed to storage:

    - ``returns_result``: turns a coroutine that raises GatewayError into one
      that returns a Result, so public operations never raise them.
    - ``call_storage``: awaits a repository call and wraps any backend
      exception into an OperationalError with the operation name attached.
      It does not log; ``returns_result`` logs each failure once.
    - input checks that raise InvalidArgumentError.
"""

from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

from errors import GatewayError, InvalidArgumentError, OperationalError
from models.result import Result
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def returns_result(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[Result[T]]]:
    """
    Decorator converting raised GatewayErrors into ``Result.failure``.

    Usage:
        @returns_result
        async def list_rows(self, table, ...):
            ...
    """
    @wraps(func)
    async def wrapper(*args, **kwargs) -> Result[T]:
        try:
            return Result.success(await func(*args, **kwargs))
        except GatewayError as e:
            if e.is_client_fault:
                logger.warning(f"{func.__name__} rejected ({e.kind.value}): {e.message}")
            else:
                # the traceback includes the storage exception chained as __cause__
                logger.error(f"{func.__name__} failed ({e.kind.value}): {e.message}", exc_info=e)
            return Result.failure(e)

    return wrapper


async def call_storage(operation: str, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
    """
    Await a repository call, wrapping backend failures.

    Args:
        operation: Human-readable name of what was attempted (goes into
            the error message and its ``operation`` field).
        fn: The repository coroutine function.
        *args: Positional arguments for ``fn``.

    Raises:
        OperationalError: Any non-gateway exception raised by ``fn``.
    """
    try:
        return await fn(*args)
    except GatewayError:
        raise
    except Exception as e:
        raise OperationalError(f"{operation} failed: {e}", operation=operation) from e


def require_text(value: Any, field: str) -> str:
    """Return ``value`` trimmed, or raise if it is missing or blank."""
    if value is None:
        raise InvalidArgumentError(f"{field} must not be empty", field=field)
    text = value if isinstance(value, str) else str(value)
    if not text.strip():
        raise InvalidArgumentError(f"{field} must not be empty", field=field)
    return text.strip()


def normalize_schema(schema: Optional[str]) -> Optional[str]:
    """Blank schema means "use the backend default"."""
    if schema is None or not str(schema).strip():
        return None
    return str(schema).strip()


def normalize_limit(limit: Any) -> Optional[int]:
    """Positive limits pass through; None, zero and negatives mean "backend default"."""
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidArgumentError(f"limit must be an integer, got {limit!r}", field="limit")
    return limit if limit > 0 else None
