# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Saved view operations namespace."""

from __future__ import annotations

from typing import List, Optional, Union, TYPE_CHECKING

from ..data._view_parser import ViewImporter
from ..models.metadata import EntityDescriptor
from ..models.view import ImportResult, ViewDefinition

if TYPE_CHECKING:
    from ..client import QueryClient


class ViewOperations:
    """
    Saved view discovery and import.

    Accessed via ``client.views``.

    Example::

        views = client.views.list("contact")
        active = next(v for v in views if v.name == "Active Contacts")
        result = client.views.import_view(active)
        query = client.query.compile(result.query_graph, result.columns, result.filter_tree)
    """

    def __init__(self, client: "QueryClient") -> None:
        """
        Initialize ViewOperations.

        :param client: Parent QueryClient instance.
        :type client: QueryClient
        """
        self._client = client

    def list(self, entity: str) -> List[ViewDefinition]:
        """
        List system and personal views of an entity, sorted by name.

        :param entity: Entity logical name, e.g. ``"contact"``.
        :type entity: str
        :return: System views (``querytype eq 0``) and personal views.
        :rtype: list[~dataverse_query.models.view.ViewDefinition]
        """
        return self._client._get_odata().get_views(entity)

    def import_fetchxml(
        self,
        fetch_xml: str,
        entity: Union[EntityDescriptor, str, None] = None,
    ) -> ImportResult:
        """
        Rebuild an editable query from FetchXML.

        :param fetch_xml: FetchXML document.
        :type fetch_xml: str
        :param entity: Root entity descriptor or logical name; defaults to the document's root entity.
        :type entity: ~dataverse_query.models.metadata.EntityDescriptor or str or None
        :return: Query graph, columns, filter tree and import diagnostics.
        :rtype: ~dataverse_query.models.view.ImportResult

        :raises ~dataverse_query.core.errors.ViewImportError: If the document is malformed.
        """
        return ViewImporter(self._client.metadata).import_fetchxml(fetch_xml, entity)

    def import_view(self, view: ViewDefinition, entity: Optional[Union[EntityDescriptor, str]] = None) -> ImportResult:
        """Import a view returned by :meth:`list`."""
        return self.import_fetchxml(view.fetch_xml, entity)
