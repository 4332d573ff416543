# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Query compilation and execution operations namespace."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from ..core.results import QueryPage
from ..data._compiler import compile_query
from ..data._pagination import CancellationToken, ProgressCallback, fetch_all_pages
from ..models.filters import FilterGroup
from ..models.query_graph import QueryGraph, SelectedColumn

if TYPE_CHECKING:
    from ..client import QueryClient


class QueryOperations:
    """
    Query operations: compile a query graph and retrieve its records.

    Accessed via ``client.query``.

    Example::

        query = client.query.compile(result.query_graph, result.columns, result.filter_tree)
        token = CancellationToken()
        records = client.query.fetch_all(
            query,
            on_progress=lambda count, last: print(f"{count} records{' (done)' if last else ''}"),
            cancel_token=token,
        )
    """

    def __init__(self, client: "QueryClient") -> None:
        """
        Initialize QueryOperations.

        :param client: Parent QueryClient instance.
        :type client: QueryClient
        """
        self._client = client

    def compile(
        self,
        graph: QueryGraph,
        columns: Sequence[SelectedColumn],
        filter_tree: Optional[FilterGroup] = None,
    ) -> str:
        """
        Compile a query graph into ``<entitySetName>?$select=...[&$expand=...][&$filter=...]``.

        Incomplete filter conditions are omitted. No request is made.
        """
        return compile_query(graph, columns, filter_tree)

    def execute(self, query: str) -> QueryPage:
        """
        Execute a compiled query or continuation link and return one page.

        :param query: Compiled query string or ``@odata.nextLink`` URL.
        :type query: str
        :rtype: ~dataverse_query.core.results.QueryPage

        :raises ~dataverse_query.core.errors.QueryExecutionError: On a non-2xx response.
        """
        return self._client._get_odata().execute_query(query)

    def fetch_all(
        self,
        query: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        max_pages: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Retrieve every page of a compiled query.

        :param query: Compiled query string.
        :type query: str
        :param on_progress: Called with ``(accumulated_count, is_last_page)`` after each page.
        :type on_progress: ~typing.Callable[[int, bool], None] or None
        :param cancel_token: Stop signal checked between pages.
        :type cancel_token: ~dataverse_query.data._pagination.CancellationToken or None
        :param max_pages: Page ceiling; defaults to ``QueryConfig.max_pages``.
        :type max_pages: int or None
        :return: All records in page order.
        :rtype: list[dict]

        :raises ~dataverse_query.core.errors.QueryCancelledError: If cancelled or the ceiling is reached.
        """
        if max_pages is None:
            max_pages = self._client._config.max_pages
        return fetch_all_pages(
            self._client._get_odata().execute_query,
            query,
            on_progress=on_progress,
            cancel_token=cancel_token,
            max_pages=max_pages,
        )
