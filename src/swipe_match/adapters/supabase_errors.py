"""Translation of Supabase client failures into store error kinds."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import httpx
from postgrest.exceptions import APIError

from swipe_match.errors import CorruptRecordError, StoreUnavailableError

UNIQUE_VIOLATION = "23505"

_TRANSIENT_CODES = {
    "08000",
    "08001",
    "08003",
    "08006",
    "53300",
    "57P01",
    "PGRST000",
    "PGRST001",
    "PGRST002",
    "PGRST003",
}


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Raise StoreUnavailableError for connection-level failures."""
    try:
        yield
    except httpx.TransportError as exc:
        raise StoreUnavailableError(
            f"{operation} failed: {exc}", details={"operation": operation}
        ) from exc
    except APIError as exc:
        if exc.code in _TRANSIENT_CODES:
            raise StoreUnavailableError(
                f"{operation} failed: {exc.message}",
                details={"operation": operation, "code": exc.code},
            ) from exc
        raise


def parse_timestamp(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise CorruptRecordError(f"Invalid timestamp {value!r}")
    return datetime.fromisoformat(value)
