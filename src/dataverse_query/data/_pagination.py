# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Exhaustive retrieval across ``@odata.nextLink`` pages.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from ..core._error_codes import QUERY_CANCELLED, QUERY_PAGE_LIMIT
from ..core.errors import QueryCancelledError, ValidationError
from ..core.results import QueryPage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, bool], None]


class CancellationToken:
    """
    Cooperative stop signal checked between pages.

    ``cancel()`` may be called from another thread (for example a UI thread)
    while :func:`fetch_all_pages` runs; the page in flight completes and the
    loop stops before requesting the next one.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


def fetch_all_pages(
    execute: Callable[[str], QueryPage],
    query: str,
    on_progress: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    max_pages: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Execute ``query`` and follow continuation links until the last page.

    :param execute: Callable issuing one request, e.g. ``_ODataClient.execute_query``.
    :type execute: ~typing.Callable[[str], ~dataverse_query.core.results.QueryPage]
    :param query: Compiled query string for the first page. Continuation links
        are passed to ``execute`` verbatim; they are already fully qualified and encoded.
    :type query: str
    :param on_progress: Called after every page with ``(accumulated_count, is_last_page)``.
        ``is_last_page`` is True exactly once, on the final call.
    :type on_progress: ~typing.Callable[[int, bool], None] or None
    :param cancel_token: Checked before each request.
    :type cancel_token: CancellationToken or None
    :param max_pages: Page ceiling; None for no ceiling.
    :type max_pages: int or None

    :return: Concatenation of every page's records, in page order.
    :rtype: list[dict]

    :raises ~dataverse_query.core.errors.QueryCancelledError: If the token fires or the ceiling is
        reached before the last page. The records fetched so far are on the exception.
    :raises ~dataverse_query.core.errors.QueryExecutionError: If any page request fails.
    """
    if max_pages is not None and max_pages < 1:
        raise ValidationError("max_pages must be a positive integer")

    records: List[Dict[str, Any]] = []
    pages = 0
    next_query: Optional[str] = query
    while next_query:
        if cancel_token is not None and cancel_token.is_cancelled:
            raise QueryCancelledError(
                f"Retrieval cancelled after {pages} page(s)",
                subcode=QUERY_CANCELLED,
                records=records,
                pages=pages,
            )
        if max_pages is not None and pages >= max_pages:
            raise QueryCancelledError(
                f"Page limit of {max_pages} reached before the last page",
                subcode=QUERY_PAGE_LIMIT,
                records=records,
                pages=pages,
            )
        page = execute(next_query)
        pages += 1
        records.extend(page.records)
        next_query = page.next_link
        logger.debug("Fetched page %d (%d records, %d total)", pages, len(page.records), len(records))
        if on_progress is not None:
            on_progress(len(records), not next_query)
    return records


__all__ = ["CancellationToken", "fetch_all_pages"]
