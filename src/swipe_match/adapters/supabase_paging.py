"""Paged reads over PostgREST, which caps each response at its max-rows limit."""

from collections.abc import Callable
from typing import Any

from swipe_match.adapters.supabase_errors import store_errors

PAGE_SIZE = 1000


def fetch_all_rows(
    build_query: Callable[[], Any],
    operation: str,
    page_size: int = PAGE_SIZE,
) -> list[dict[str, Any]]:
    """Read every row of a query, one ``range`` window at a time.

    ``build_query`` must return a fresh, stably ordered builder on each call.
    Paging stops on the first empty page, so a server cap smaller than
    ``page_size`` still yields every row.
    """
    rows: list[dict[str, Any]] = []
    while True:
        start = len(rows)
        with store_errors(operation):
            response = build_query().range(start, start + page_size - 1).execute()
        page = response.data or []
        if not page:
            return rows
        rows.extend(page)
