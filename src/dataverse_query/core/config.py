# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class QueryConfig:
    """
    Configuration settings for metadata lookups and query execution.

    :param language_code: LCID (Locale ID) used to pick localized display labels. Default is 1033 (English - United States).
    :type language_code: int
    :param api_version: Web API version segment used to build ``<org>/api/data/<version>``.
    :type api_version: str
    :param http_retries: Maximum number of attempts for network errors. ``None`` means a single attempt.
    :type http_retries: int or None
    :param http_backoff: Base delay in seconds for exponential backoff between attempts (default: 0.5).
    :type http_backoff: float or None
    :param http_timeout: Request timeout in seconds (default: method-dependent).
    :type http_timeout: float or None
    :param page_size: Records per page, sent as the ``Prefer: odata.maxpagesize`` hint.
    :type page_size: int or None
    :param max_pages: Default page ceiling for exhaustive retrieval. ``None`` means unbounded.
    :type max_pages: int or None
    :param include_annotations: Request formatted-value annotations with query results.
    :type include_annotations: bool
    """

    language_code: int = 1033
    api_version: str = "v9.2"

    # HTTP configuration
    http_retries: Optional[int] = None
    http_backoff: Optional[float] = None
    http_timeout: Optional[float] = None

    # Paging
    page_size: Optional[int] = None
    max_pages: Optional[int] = None
    include_annotations: bool = True

    @classmethod
    def from_env(cls) -> "QueryConfig":
        """
        Create a configuration instance with default settings.

        :return: Configuration instance with default values.
        :rtype: ~dataverse_query.core.config.QueryConfig
        """
        # Environment-free defaults
        return cls(
            language_code=1033,
            api_version="v9.2",
            http_retries=None,  # Single attempt in _HttpClient
            http_backoff=None,  # Will default to 0.5 in _HttpClient
            http_timeout=None,  # Will use method-dependent defaults in _HttpClient
            page_size=None,
            max_pages=None,
            include_annotations=True,
        )
