# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Transport for metadata lookups and query execution.

Every Web API call goes through :class:`~dataverse_query.core._http._HttpClient`.
A call is made once: a non-2xx response is handed back to the caller as-is,
and a network failure propagates unless retries were configured explicitly.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)


class _HttpClient:
    """
    Single-attempt HTTP transport with default timeouts.

    Status codes are never inspected here; turning a failed response into a
    :class:`~dataverse_query.core.errors.QueryExecutionError` is up to the caller,
    which surfaces it without retrying. ``retries`` only covers connection-level
    ``requests`` exceptions and is off unless set.

    :param retries: Attempts allowed for a connection-level failure. None or 1 means one attempt.
    :type retries: :class:`int` | None
    :param backoff: First delay in seconds between attempts, doubled each time. Default 0.5.
    :type backoff: :class:`float` | None
    :param timeout: Timeout in seconds for every request. None picks 30s for reads and 120s for POST/DELETE.
    :type timeout: :class:`float` | None
    :param session: Session owned by the caller, reused for connection pooling and never closed here.
    :type session: :class:`requests.Session` | None
    """

    def __init__(
        self,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.max_attempts = max(1, retries) if retries is not None else 1
        self.base_delay = backoff if backoff is not None else 0.5
        self.default_timeout: Optional[float] = timeout
        self._session = session

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """
        Send one request and return the response, whatever its status.

        :param method: HTTP method.
        :type method: :class:`str`
        :param url: Absolute URL, either built from the API root or an ``@odata.nextLink``.
        :type url: :class:`str`
        :param kwargs: Passed through to ``request()``: headers, params, an explicit timeout.
        :return: The response. Non-2xx statuses are not raised.
        :rtype: :class:`requests.Response`
        :raises requests.exceptions.RequestException: When the connection fails on the last allowed attempt.
        """
        if "timeout" not in kwargs:
            if self.default_timeout is not None:
                kwargs["timeout"] = self.default_timeout
            else:
                kwargs["timeout"] = 120 if (method or "").lower() in ("post", "delete") else 30

        send = self._session.request if self._session is not None else requests.request
        for attempt in range(self.max_attempts):
            try:
                return send(method, url, **kwargs)
            except requests.exceptions.RequestException:
                if attempt == self.max_attempts - 1:
                    raise
                delay = self.base_delay * (2**attempt)
                logger.debug("Connection failed for %s %s, attempt %d of %d; waiting %.2fs", method.upper(), url, attempt + 1, self.max_attempts, delay)
                time.sleep(delay)
        raise RuntimeError("Unexpected end of retry loop")

    def close(self) -> None:
        """
        Release the session reference. Safe to call multiple times.

        The session itself belongs to whoever created it and is left open.
        """
        self._session = None
