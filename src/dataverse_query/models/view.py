# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Saved views and the result of importing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .filters import FilterGroup
from .query_graph import QueryGraph, SelectedColumn

# Diagnostic kinds
DIAG_RELATIONSHIP_UNRESOLVED = "relationship_unresolved"
DIAG_ATTRIBUTE_NOT_FOUND = "attribute_not_found"
DIAG_ALIAS_COLLISION = "alias_collision"
DIAG_ENTITY_NOT_FOUND = "entity_not_found"
DIAG_UNSUPPORTED_OPERATOR = "unsupported_operator"


@dataclass(frozen=True)
class ViewDefinition:
    """
    A system view (``savedquery``) or personal view (``userquery``).

    :param id: View GUID.
    :type id: str
    :param name: View name.
    :type name: str
    :param fetch_xml: FetchXML query definition.
    :type fetch_xml: str
    :param query_type: ``querytype`` code (0 = main application view).
    :type query_type: int or None
    :param is_user_query: True for personal views.
    :type is_user_query: bool
    """

    id: str
    name: str
    fetch_xml: str
    query_type: Optional[int] = None
    is_user_query: bool = False

    @classmethod
    def from_api_response(cls, data: Dict[str, Any], is_user_query: bool) -> "ViewDefinition":
        id_key = "userqueryid" if is_user_query else "savedqueryid"
        return cls(
            id=data.get(id_key) or "",
            name=data.get("name") or "",
            fetch_xml=data.get("fetchxml") or "",
            query_type=data.get("querytype"),
            is_user_query=is_user_query,
        )


@dataclass(frozen=True)
class ImportDiagnostic:
    """
    A part of a view that was dropped during import.

    :param kind: One of the ``DIAG_*`` constants.
    :type kind: str
    :param message: Human readable explanation.
    :type message: str
    :param entity_alias: Alias of the node being processed when the part was dropped.
    :type entity_alias: str or None
    :param details: Extra context (entity and attribute names, join hints).
    :type details: dict
    """

    kind: str
    message: str
    entity_alias: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImportResult:
    """Query graph, columns and filter tree rebuilt from a view, plus what had to be dropped."""

    query_graph: QueryGraph
    columns: List[SelectedColumn]
    filter_tree: FilterGroup
    diagnostics: List[ImportDiagnostic] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.diagnostics)


__all__ = [
    "ViewDefinition",
    "ImportDiagnostic",
    "ImportResult",
    "DIAG_RELATIONSHIP_UNRESOLVED",
    "DIAG_ATTRIBUTE_NOT_FOUND",
    "DIAG_ALIAS_COLLISION",
    "DIAG_ENTITY_NOT_FOUND",
    "DIAG_UNSUPPORTED_OPERATOR",
]
