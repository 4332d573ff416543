# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Query graph model.

The query graph is a tree of :class:`QueryNode` values rooted at alias
``"main"``. Every joined node points at its parent by alias and carries the
navigation property used to reach it in ``$expand``. Aliases are unique
case-insensitively. Like the filter tree, the graph is immutable: edits return
a new graph.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Iterator, List, Optional, Tuple

from ..core._error_codes import VALIDATION_ALIAS_CONFLICT, VALIDATION_ROOT_NODE, VALIDATION_UNKNOWN_NODE
from ..core.errors import ValidationError
from .metadata import AttributeDescriptor, EntityDescriptor, RelationshipType

MAIN_ALIAS = "main"


@dataclass(frozen=True)
class QueryNode:
    """
    One entity in the query graph.

    :param alias: Unique alias; ``"main"`` for the root.
    :type alias: str
    :param entity: Entity descriptor.
    :type entity: ~dataverse_query.models.metadata.EntityDescriptor
    :param parent_alias: Alias of the parent node; None for the root.
    :type parent_alias: str or None
    :param relationship_schema_name: Schema name of the relationship used to join.
    :type relationship_schema_name: str or None
    :param relationship_type: Shape of that relationship seen from the parent.
    :type relationship_type: ~dataverse_query.models.metadata.RelationshipType or None
    :param navigation_property: Navigation property expanded from the parent.
    :type navigation_property: str or None
    """

    alias: str
    entity: EntityDescriptor
    parent_alias: Optional[str] = None
    relationship_schema_name: Optional[str] = None
    relationship_type: Optional[RelationshipType] = None
    navigation_property: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_alias is None

    @property
    def is_collection(self) -> bool:
        """True when expanding this node yields an array of records."""
        return self.relationship_type in (RelationshipType.ONE_TO_MANY, RelationshipType.MANY_TO_MANY)


@dataclass(frozen=True)
class SelectedColumn:
    """
    A column requested from one node of the query graph.

    ``wire_attribute_name`` is the exact ``$select`` field, already adjusted
    for lookup, customer and owner attributes.
    """

    entity_alias: str
    wire_attribute_name: str
    display_name: str
    logical_name: Optional[str] = None
    attribute_type: Optional[str] = None

    @classmethod
    def from_attribute(
        cls, entity_alias: str, attribute: AttributeDescriptor, display_name: Optional[str] = None
    ) -> "SelectedColumn":
        return cls(
            entity_alias=entity_alias,
            wire_attribute_name=attribute.wire_name(),
            display_name=display_name or attribute.display_name,
            logical_name=attribute.logical_name,
            attribute_type=attribute.attribute_type,
        )

    @property
    def key(self) -> Tuple[str, str]:
        return (self.entity_alias.lower(), self.wire_attribute_name.lower())


@dataclass(frozen=True)
class QueryGraph:
    """
    Root entity plus the forest of joined entities.

    Example::

        graph = QueryGraph.for_entity(contact)
        graph = graph.with_join(QueryNode(
            alias="acc",
            entity=account,
            parent_alias="main",
            relationship_schema_name="contact_customer_accounts",
            relationship_type=RelationshipType.MANY_TO_ONE,
            navigation_property="parentcustomerid_account",
        ))
        graph.attribute_path("acc", "name")  # 'parentcustomerid_account/name'
    """

    root: QueryNode
    joins: Tuple[QueryNode, ...] = ()

    @classmethod
    def for_entity(cls, entity: EntityDescriptor) -> "QueryGraph":
        return cls(root=QueryNode(alias=MAIN_ALIAS, entity=entity))

    @property
    def nodes(self) -> Tuple[QueryNode, ...]:
        return (self.root,) + self.joins

    def __iter__(self) -> Iterator[QueryNode]:
        return iter(self.nodes)

    def node(self, alias: Optional[str]) -> Optional[QueryNode]:
        """Look up a node by alias (case-insensitive)."""
        if not alias:
            return None
        key = alias.lower()
        for n in self.nodes:
            if n.alias.lower() == key:
                return n
        return None

    def has_alias(self, alias: str) -> bool:
        return self.node(alias) is not None

    def children(self, alias: str) -> List[QueryNode]:
        key = alias.lower()
        return [j for j in self.joins if (j.parent_alias or "").lower() == key]

    def descendants(self, alias: str) -> List[QueryNode]:
        out: List[QueryNode] = []
        for child in self.children(alias):
            out.append(child)
            out.extend(self.descendants(child.alias))
        return out

    def navigation_path(self, alias: str) -> Optional[List[str]]:
        """
        Navigation properties from the root down to ``alias``.

        :return: Empty list for the root, or None when the alias (or one of its ancestors) is missing.
        """
        path: List[str] = []
        current = self.node(alias)
        seen = set()
        while current is not None and not current.is_root:
            if current.alias.lower() in seen:
                return None
            seen.add(current.alias.lower())
            path.insert(0, current.navigation_property or "")
            current = self.node(current.parent_alias)
        if current is None:
            return None
        return path

    def attribute_path(self, alias: str, attribute: str) -> Optional[str]:
        """Return ``nav1/nav2/attribute`` for an attribute of node ``alias``, or None if unreachable."""
        path = self.navigation_path(alias)
        if path is None:
            return None
        return "/".join(path + [attribute])

    # --------------------------------------------------------------- edits
    def with_join(self, node: QueryNode) -> "QueryGraph":
        """
        Return a new graph with ``node`` joined under ``node.parent_alias``.

        :raises ~dataverse_query.core.errors.ValidationError: If the alias is taken or the parent is unknown.
        """
        if node.is_root:
            raise ValidationError("Joined nodes require a parent alias", subcode=VALIDATION_ROOT_NODE)
        if self.has_alias(node.alias):
            raise ValidationError(f"Alias '{node.alias}' is already used in this query", subcode=VALIDATION_ALIAS_CONFLICT)
        if not self.has_alias(node.parent_alias):
            raise ValidationError(f"Parent alias '{node.parent_alias}' not found", subcode=VALIDATION_UNKNOWN_NODE)
        return replace(self, joins=self.joins + (node,))

    def with_node(self, alias: str, updater: Callable[[QueryNode], QueryNode]) -> "QueryGraph":
        """Return a new graph where the node ``alias`` is replaced by ``updater(node)``."""
        target = self.node(alias)
        if target is None:
            raise ValidationError(f"Query node '{alias}' not found", subcode=VALIDATION_UNKNOWN_NODE)
        if target.is_root:
            return replace(self, root=updater(target))
        return replace(self, joins=tuple(updater(j) if j is target else j for j in self.joins))

    def without_node(self, alias: str) -> "QueryGraph":
        """Return a new graph without node ``alias`` and its descendants. The root cannot be removed."""
        target = self.node(alias)
        if target is None:
            raise ValidationError(f"Query node '{alias}' not found", subcode=VALIDATION_UNKNOWN_NODE)
        if target.is_root:
            raise ValidationError("The root query node cannot be removed", subcode=VALIDATION_ROOT_NODE)
        doomed = {target.alias.lower()} | {d.alias.lower() for d in self.descendants(target.alias)}
        return replace(self, joins=tuple(j for j in self.joins if j.alias.lower() not in doomed))


__all__ = ["MAIN_ALIAS", "QueryNode", "SelectedColumn", "QueryGraph"]
