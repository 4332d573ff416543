# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import List, Optional

import requests

from azure.core.credentials import TokenCredential

from .core._auth import _AuthManager
from .core.config import QueryConfig
from .data._metadata import MetadataCache, MetadataResolver
from .data._odata import _ODataClient
from .models.metadata import (
    AttributeDescriptor,
    EntityDescriptor,
    OptionSetValue,
    RelationshipDescriptor,
    RelationshipType,
)
from .operations.query import QueryOperations
from .operations.views import ViewOperations


class _ClientMetadataSource:
    """Metadata source that defers to the client's lazily created OData client."""

    def __init__(self, client: "QueryClient") -> None:
        self._client = client

    def get_entity(self, logical_name: str) -> Optional[EntityDescriptor]:
        return self._client._get_odata().get_entity(logical_name)

    def list_entities(self) -> List[EntityDescriptor]:
        return self._client._get_odata().list_entities()

    def get_attributes(self, logical_name: str) -> List[AttributeDescriptor]:
        return self._client._get_odata().get_attributes(logical_name)

    def get_relationships(self, logical_name: str, relationship_type: RelationshipType) -> List[RelationshipDescriptor]:
        return self._client._get_odata().get_relationships(logical_name, relationship_type)

    def get_many_to_many_relationships(self, logical_name: str) -> List[RelationshipDescriptor]:
        return self._client._get_odata().get_many_to_many_relationships(logical_name)

    def get_option_set_values(self, entity_logical_name: str, attribute_logical_name: str) -> List[OptionSetValue]:
        return self._client._get_odata().get_option_set_values(entity_logical_name, attribute_logical_name)


class QueryClient:
    """
    High-level client for building, importing and running Dataverse queries.

    The client wires a :class:`~dataverse_query.data._metadata.MetadataResolver`
    to the Web API and exposes three namespaces:

    - ``client.metadata``: cached entity, attribute and relationship lookups
    - ``client.views``: saved view listing and FetchXML import
    - ``client.query``: query compilation, single-page execution and exhaustive retrieval

    **Context Manager Support (Recommended)**::

        with QueryClient(base_url, credential) as client:
            view = client.views.list("contact")[0]
            result = client.views.import_view(view)
            query = client.query.compile(result.query_graph, result.columns, result.filter_tree)
            records = client.query.fetch_all(query)

    :param base_url: Your Dataverse environment URL, for example
        ``"https://org.crm.dynamics.com"``. Trailing slash is automatically removed.
    :type base_url: :class:`str`
    :param credential: Azure Identity credential for authentication. When omitted,
        requests are sent through ``session`` as-is, so it must already carry authentication.
    :type credential: ~azure.core.credentials.TokenCredential or None
    :param config: Optional configuration for language, timeouts, paging and retries.
        If not provided, defaults are loaded from :meth:`~dataverse_query.core.config.QueryConfig.from_env`.
    :type config: ~dataverse_query.core.config.QueryConfig or None
    :param session: Pre-configured :class:`requests.Session`. Not closed by the client.
    :type session: requests.Session or None
    :param cache: Metadata cache to use. Pass the same instance to several clients
        of one environment to share fetched metadata.
    :type cache: ~dataverse_query.data._metadata.MetadataCache or None

    :raises ValueError: If ``base_url`` is missing or empty after trimming.

    .. note::
        The client lazily initializes its internal OData client on first use,
        allowing lightweight construction without immediate network calls.
    """

    def __init__(
        self,
        base_url: str,
        credential: Optional[TokenCredential] = None,
        config: Optional[QueryConfig] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[MetadataCache] = None,
    ) -> None:
        self.auth = _AuthManager(credential) if credential is not None else None
        self._base_url = (base_url or "").strip().rstrip("/")
        if not self._base_url:
            raise ValueError("base_url is required.")
        self._config = config or QueryConfig.from_env()
        self._odata: Optional[_ODataClient] = None
        self._session: Optional[requests.Session] = session
        self._owns_session: bool = False

        self.metadata = MetadataResolver(_ClientMetadataSource(self), cache=cache)
        self.views = ViewOperations(self)
        self.query = QueryOperations(self)

    def __enter__(self) -> "QueryClient":
        """
        Enter the context manager.

        Creates an HTTP session for connection pooling unless one was supplied.

        :return: The client instance.
        :rtype: QueryClient
        """
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """
        Release the HTTP session created by the client and the internal OData client.

        Safe to call multiple times. The metadata cache is kept.
        """
        if self._odata is not None:
            self._odata.close()
            self._odata = None
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None
            self._owns_session = False

    def _get_odata(self) -> _ODataClient:
        """
        Get or create the internal OData client instance.

        :return: The lazily-initialized low-level client used to perform HTTP requests.
        :rtype: ~dataverse_query.data._odata._ODataClient
        """
        if self._odata is None:
            self._odata = _ODataClient(
                self.auth,
                self._base_url,
                self._config,
                session=self._session,
            )
        return self._odata


__all__ = ["QueryClient"]
