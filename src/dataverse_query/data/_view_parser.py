# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Import a saved view's FetchXML into a query graph, selected columns and filter tree.

Import is tolerant of schema drift: attributes and conditions that no longer
exist, joins whose relationship cannot be matched, and alias collisions are
skipped and reported as :class:`~dataverse_query.models.view.ImportDiagnostic`
entries rather than failing the whole import. Only a document that is not
well-formed, or that has no ``<fetch><entity>`` root, raises.
"""

from __future__ import annotations

import logging
import uuid
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Union

from ..core._error_codes import VIEW_IMPORT_MALFORMED_XML, VIEW_IMPORT_ROOT_MISSING
from ..core.errors import ViewImportError
from ..models.filters import LOGICAL_AND, LOGICAL_OR, ROOT_FILTER_ID, FilterCondition, FilterGroup, FilterNode
from ..models.metadata import LOOKUP_ATTRIBUTE_TYPES, AttributeDescriptor, EntityDescriptor
from ..models.operators import DEFAULT_OPERATOR, NUMERIC_TYPES, OPTION_TYPES, get_operator, map_fetchxml_operator
from ..models.query_graph import QueryGraph, QueryNode, SelectedColumn
from ..models.view import (
    DIAG_ALIAS_COLLISION,
    DIAG_ATTRIBUTE_NOT_FOUND,
    DIAG_ENTITY_NOT_FOUND,
    DIAG_RELATIONSHIP_UNRESOLVED,
    DIAG_UNSUPPORTED_OPERATOR,
    ImportDiagnostic,
    ImportResult,
)
from ._metadata import MetadataResolver

logger = logging.getLogger(__name__)

_WILDCARD_OPERATORS = ("contains", "not contains")
_GUID_TYPES = LOOKUP_ATTRIBUTE_TYPES | {"uniqueidentifier"}


def _to_number(raw: str) -> Union[int, float, str]:
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return raw
    if number != number:  # NaN
        return raw
    return number


def _to_guid(raw: str) -> Union[uuid.UUID, str]:
    try:
        return uuid.UUID(raw.strip().strip("{}"))
    except ValueError:
        return raw


def parse_condition_value(raw: Optional[str], operator: str, attribute: Optional[AttributeDescriptor] = None) -> Any:
    """
    Coerce a FetchXML ``value`` attribute to a Python literal.

    - ``%`` wildcards are stripped for ``contains`` / ``not contains``.
    - Operators taking an integer count (``last-x-days`` and friends) get a
      number regardless of the attribute type.
    - Numeric and option set attributes get a number, Boolean attributes get
      ``True`` for ``"1"`` / ``"true"``.
    - Lookup, Customer, Owner and Uniqueidentifier attributes get a
      :class:`uuid.UUID` when the value is a GUID, braces allowed.
    - Anything else stays a string.
    """
    if raw is None:
        return None
    if operator in _WILDCARD_OPERATORS:
        return raw.replace("%", "")
    op = get_operator(operator)
    if op is not None and op.integer_value:
        return _to_number(raw)
    if attribute is None:
        return raw
    attribute_type = attribute.attribute_type
    if (attribute_type or "").lower() in _GUID_TYPES:
        return _to_guid(raw)
    if attribute_type in NUMERIC_TYPES or attribute_type in OPTION_TYPES:
        return _to_number(raw)
    if attribute_type == "Boolean":
        return raw == "1" or raw.lower() == "true"
    return raw


class _ImportSession:
    """Mutable state for one import; discarded when the import returns."""

    def __init__(self, resolver: MetadataResolver, root: EntityDescriptor) -> None:
        self.resolver = resolver
        self.graph = QueryGraph.for_entity(root)
        self.columns: List[SelectedColumn] = []
        self.filters: List[FilterNode] = []
        self.diagnostics: List[ImportDiagnostic] = []

    def diagnose(self, kind: str, message: str, alias: Optional[str] = None, **details: Any) -> None:
        logger.warning(message)
        self.diagnostics.append(ImportDiagnostic(kind, message, alias, details))

    def push_column(self, column: SelectedColumn) -> None:
        if all(c.key != column.key for c in self.columns):
            self.columns.append(column)

    # ---------------------------------------------------------------- nodes
    def process_node(self, element: ET.Element, node: QueryNode) -> None:
        """Columns, filters and joins for one ``<entity>`` or ``<link-entity>`` element."""
        entity = node.entity
        attributes = self.resolver.attribute_map(entity.logical_name)
        selected_before = sum(1 for c in self.columns if c.entity_alias == node.alias)

        for attr_el in element.findall("attribute"):
            name = attr_el.get("name")
            if not name:
                continue
            attr = attributes.get(name.lower())
            if attr is None:
                self.diagnose(
                    DIAG_ATTRIBUTE_NOT_FOUND,
                    f"Attribute '{name}' not found on '{entity.logical_name}'; column skipped",
                    node.alias,
                    entity=entity.logical_name,
                    attribute=name,
                )
                continue
            self.push_column(SelectedColumn.from_attribute(node.alias, attr, attr_el.get("alias")))

        for filter_el in element.findall("filter"):
            group = self.parse_filter(filter_el, node, attributes)
            if group is not None:
                self.filters.append(group)

        has_columns = sum(1 for c in self.columns if c.entity_alias == node.alias) > selected_before
        if not has_columns and entity.primary_name_attribute:
            name_attr = attributes.get(entity.primary_name_attribute.lower())
            if name_attr is not None:
                self.push_column(SelectedColumn.from_attribute(node.alias, name_attr))

        if entity.primary_id_attribute:
            id_attr = attributes.get(entity.primary_id_attribute.lower())
            if id_attr is not None:
                self.push_column(SelectedColumn.from_attribute(node.alias, id_attr))
            else:
                self.push_column(
                    SelectedColumn(node.alias, entity.primary_id_attribute, entity.primary_id_attribute)
                )

        for link_el in element.findall("link-entity"):
            self.process_link(link_el, node)

    def process_link(self, element: ET.Element, parent: QueryNode) -> None:
        child_name = element.get("name")
        if not child_name:
            return
        alias = element.get("alias") or child_name
        from_attr = element.get("from")
        to_attr = element.get("to")

        if self.graph.has_alias(alias):
            self.diagnose(
                DIAG_ALIAS_COLLISION,
                f"Alias '{alias}' is already used in this query; link-entity '{child_name}' skipped",
                alias,
                entity=child_name,
                parent_alias=parent.alias,
            )
            return

        nav = self.resolver.resolve_navigation(parent.entity.logical_name, child_name, from_attr, to_attr)
        if nav is None:
            self.diagnose(
                DIAG_RELATIONSHIP_UNRESOLVED,
                f"Unable to resolve relationship for link-entity '{alias}' "
                f"({parent.entity.logical_name} -> {child_name}); skipped",
                alias,
                parent_entity=parent.entity.logical_name,
                entity=child_name,
                from_attribute=from_attr,
                to_attribute=to_attr,
            )
            return

        child_entity = self.resolver.find_entity(child_name)
        if child_entity is None:
            self.diagnose(
                DIAG_ENTITY_NOT_FOUND,
                f"Entity '{child_name}' not found; link-entity '{alias}' skipped",
                alias,
                entity=child_name,
            )
            return

        node = QueryNode(
            alias=alias,
            entity=child_entity,
            parent_alias=parent.alias,
            relationship_schema_name=nav.relationship.schema_name,
            relationship_type=nav.relationship.relationship_type,
            navigation_property=nav.navigation_property,
        )
        self.graph = self.graph.with_join(node)
        self.process_node(element, node)

    # -------------------------------------------------------------- filters
    def parse_filter(
        self, element: ET.Element, node: QueryNode, attributes: Dict[str, AttributeDescriptor]
    ) -> Optional[FilterGroup]:
        """Translate a ``<filter>`` element; returns None when nothing in it survives."""
        logical = LOGICAL_OR if (element.get("type") or "").lower() == LOGICAL_OR else LOGICAL_AND
        children: List[FilterNode] = []
        for child in element:
            if child.tag == "filter":
                sub = self.parse_filter(child, node, attributes)
                if sub is not None:
                    children.append(sub)
            elif child.tag == "condition":
                condition = self.parse_condition(child, node, attributes)
                if condition is not None:
                    children.append(condition)
        if not children:
            return None
        return FilterGroup(logical, tuple(children))

    def parse_condition(
        self, element: ET.Element, node: QueryNode, attributes: Dict[str, AttributeDescriptor]
    ) -> Optional[FilterCondition]:
        attr_name = element.get("attribute")
        fetch_op = element.get("operator")
        if not attr_name or not fetch_op:
            return None
        attr = attributes.get(attr_name.lower())
        if attr is None:
            self.diagnose(
                DIAG_ATTRIBUTE_NOT_FOUND,
                f"Condition attribute '{attr_name}' not found on '{node.entity.logical_name}'; condition skipped",
                node.alias,
                entity=node.entity.logical_name,
                attribute=attr_name,
            )
            return None
        operator = map_fetchxml_operator(fetch_op)
        if operator is None:
            self.diagnose(
                DIAG_UNSUPPORTED_OPERATOR,
                f"FetchXML operator '{fetch_op}' on '{attr_name}' is not supported; using '{DEFAULT_OPERATOR}'",
                node.alias,
                attribute=attr_name,
                operator=fetch_op,
            )
            operator = DEFAULT_OPERATOR
        return FilterCondition(
            entity_alias=node.alias,
            attribute_name=attr.wire_name(),
            operator=operator,
            value=parse_condition_value(element.get("value"), operator, attr),
        )


class ViewImporter:
    """
    Rebuild an editable query from FetchXML.

    :param resolver: Metadata resolver used for attribute lookups and join resolution.
    :type resolver: ~dataverse_query.data._metadata.MetadataResolver

    Example::

        importer = ViewImporter(resolver)
        result = importer.import_fetchxml(view.fetch_xml, "contact")
        for diag in result.diagnostics:
            print(diag.kind, diag.message)
    """

    def __init__(self, resolver: MetadataResolver) -> None:
        self._resolver = resolver

    @staticmethod
    def _parse_document(fetch_xml: str) -> ET.Element:
        if not fetch_xml or not fetch_xml.strip():
            raise ViewImportError("FetchXML document is empty", subcode=VIEW_IMPORT_MALFORMED_XML)
        try:
            root = ET.fromstring(fetch_xml)
        except ET.ParseError as exc:
            raise ViewImportError(
                f"FetchXML is not well-formed: {exc}",
                subcode=VIEW_IMPORT_MALFORMED_XML,
            ) from exc
        entity_el = root.find("entity") if root.tag == "fetch" else None
        if entity_el is None:
            raise ViewImportError(
                "Invalid FetchXML: no root entity node found",
                subcode=VIEW_IMPORT_ROOT_MISSING,
            )
        return entity_el

    def import_fetchxml(
        self,
        fetch_xml: str,
        entity: Union[EntityDescriptor, str, None] = None,
    ) -> ImportResult:
        """
        Import a FetchXML document.

        :param fetch_xml: The view's FetchXML.
        :type fetch_xml: str
        :param entity: Root entity descriptor or logical name. Defaults to the
            ``name`` of the document's ``<entity>`` element.
        :type entity: ~dataverse_query.models.metadata.EntityDescriptor or str or None

        :return: Query graph, columns, filter tree (root group id ``"root"``) and diagnostics.
        :rtype: ~dataverse_query.models.view.ImportResult

        :raises ~dataverse_query.core.errors.ViewImportError: If the document is malformed or has no root entity.
        :raises ~dataverse_query.core.errors.MetadataNotFoundError: If the root entity does not exist.
        """
        entity_el = self._parse_document(fetch_xml)
        if isinstance(entity, EntityDescriptor):
            root_entity = entity
        else:
            name = entity or entity_el.get("name")
            if not name:
                raise ViewImportError(
                    "Invalid FetchXML: root entity has no name",
                    subcode=VIEW_IMPORT_ROOT_MISSING,
                )
            root_entity = self._resolver.get_entity(name)

        session = _ImportSession(self._resolver, root_entity)
        session.process_node(entity_el, session.graph.root)
        logger.debug(
            "Imported view on '%s': %d columns, %d joins, %d diagnostics",
            root_entity.logical_name,
            len(session.columns),
            len(session.graph.joins),
            len(session.diagnostics),
        )
        return ImportResult(
            query_graph=session.graph,
            columns=session.columns,
            filter_tree=FilterGroup(LOGICAL_AND, tuple(session.filters), id=ROOT_FILTER_ID),
            diagnostics=session.diagnostics,
        )


__all__ = ["ViewImporter", "parse_condition_value"]
