# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Filter tree model.

A filter tree is an immutable value: :class:`FilterGroup` nodes combine
:class:`FilterCondition` leaves (or nested groups) with ``and``/``or``. Every
edit returns a new root built by locating a node by id and rebuilding the path
to it, so two trees can be compared with ``==`` and earlier roots stay valid
for undo.

Example::

    tree = new_filter_tree()
    tree = tree.add_condition(tree.id)
    cond_id = tree.children[0].id
    tree = tree.set_condition_attribute(cond_id, "main", "name")
    tree = tree.with_node(cond_id, lambda c: replace(c, operator="contains", value="Contoso"))
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Optional, Tuple, Union

from ..core._error_codes import (
    VALIDATION_ROOT_NODE,
    VALIDATION_UNKNOWN_NODE,
    VALIDATION_UNKNOWN_OPERATOR,
)
from ..core.errors import ValidationError
from .operators import DEFAULT_OPERATOR, OPERATORS
from .query_graph import MAIN_ALIAS

LOGICAL_AND = "and"
LOGICAL_OR = "or"
ROOT_FILTER_ID = "root"


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class FilterCondition:
    """
    A single predicate on one attribute of one query graph node.

    :param entity_alias: Alias of the :class:`~dataverse_query.models.query_graph.QueryNode` the attribute belongs to.
    :type entity_alias: str
    :param attribute_name: Field name as filtered on the wire: the logical name, or
        ``_<name>_value`` for lookup, customer and owner attributes. Empty while the
        condition is being edited.
    :type attribute_name: str
    :param operator: Operator key from :data:`~dataverse_query.models.operators.OPERATORS`.
    :type operator: str
    :param value: Literal value, already coerced to the attribute's type.
    :param value2: Second literal, reserved for two-value operators.
    :param id: Node id used by tree edits. Not part of equality.
    :type id: str
    """

    entity_alias: str = MAIN_ALIAS
    attribute_name: str = ""
    operator: str = DEFAULT_OPERATOR
    value: Any = None
    value2: Any = None
    id: str = field(default_factory=_new_id, compare=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.attribute_name) and bool(self.operator)


@dataclass(frozen=True)
class FilterGroup:
    """
    A boolean group of filter nodes.

    A group with no children contributes nothing to a compiled query.
    """

    logical_operator: str = LOGICAL_AND
    children: Tuple["FilterNode", ...] = ()
    id: str = field(default_factory=_new_id, compare=False)

    def __post_init__(self) -> None:
        if self.logical_operator not in (LOGICAL_AND, LOGICAL_OR):
            raise ValidationError(f"logical_operator must be 'and' or 'or', got {self.logical_operator!r}")
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    @property
    def is_empty(self) -> bool:
        return not self.children

    # ------------------------------------------------------------- lookups
    def find(self, node_id: str) -> Optional["FilterNode"]:
        """Return the node with ``node_id`` (this group included), or None."""
        if self.id == node_id:
            return self
        for child in self.children:
            if child.id == node_id:
                return child
            if isinstance(child, FilterGroup):
                found = child.find(node_id)
                if found is not None:
                    return found
        return None

    def iter_conditions(self) -> Iterator[FilterCondition]:
        """Yield every condition in the tree, depth first."""
        for child in self.children:
            if isinstance(child, FilterGroup):
                yield from child.iter_conditions()
            else:
                yield child

    # --------------------------------------------------------------- edits
    def with_node(self, node_id: str, updater: Callable[["FilterNode"], "FilterNode"]) -> "FilterGroup":
        """
        Return a new tree where the node ``node_id`` is replaced by ``updater(node)``.

        The root stays a group: an updater applied to the root must return a
        :class:`FilterGroup`.

        :raises ~dataverse_query.core.errors.ValidationError: If no node has ``node_id``,
            or if the root would be replaced by a condition.
        """
        if node_id == self.id:
            root = updater(self)
            if not isinstance(root, FilterGroup):
                raise ValidationError("The root filter node must be a group", subcode=VALIDATION_ROOT_NODE)
            return root
        if self.find(node_id) is None:
            raise ValidationError(f"Filter node '{node_id}' not found", subcode=VALIDATION_UNKNOWN_NODE)
        return self._rebuild(node_id, updater)

    def _rebuild(self, node_id: str, updater: Callable[["FilterNode"], "FilterNode"]) -> "FilterGroup":
        if self.id == node_id:
            return updater(self)
        children = []
        for child in self.children:
            if child.id == node_id:
                children.append(updater(child))
            elif isinstance(child, FilterGroup):
                children.append(child._rebuild(node_id, updater))
            else:
                children.append(child)
        return replace(self, children=tuple(children))

    def without_node(self, node_id: str) -> "FilterGroup":
        """
        Return a new tree with the node ``node_id`` (and its subtree) removed.

        :raises ~dataverse_query.core.errors.ValidationError: If ``node_id`` is the root or unknown.
        """
        if node_id == self.id:
            raise ValidationError("The root filter group cannot be removed", subcode=VALIDATION_ROOT_NODE)
        if self.find(node_id) is None:
            raise ValidationError(f"Filter node '{node_id}' not found", subcode=VALIDATION_UNKNOWN_NODE)
        return self._prune(node_id)

    def _prune(self, node_id: str) -> "FilterGroup":
        children = []
        for child in self.children:
            if child.id == node_id:
                continue
            children.append(child._prune(node_id) if isinstance(child, FilterGroup) else child)
        return replace(self, children=tuple(children))

    def _append_to(self, parent_id: str, node: "FilterNode") -> "FilterGroup":
        parent = self.find(parent_id)
        if not isinstance(parent, FilterGroup):
            raise ValidationError(f"Filter group '{parent_id}' not found", subcode=VALIDATION_UNKNOWN_NODE)
        return self._rebuild(parent_id, lambda g: replace(g, children=g.children + (node,)))

    def add_condition(self, parent_id: str, condition: Optional[FilterCondition] = None) -> "FilterGroup":
        """Append ``condition`` (default: a blank ``eq`` condition on ``main``) to group ``parent_id``."""
        return self._append_to(parent_id, condition or FilterCondition())

    def add_group(self, parent_id: str, logical_operator: str = LOGICAL_AND) -> "FilterGroup":
        """Append a nested group holding one blank condition to group ``parent_id``."""
        return self._append_to(parent_id, FilterGroup(logical_operator, (FilterCondition(),)))

    def set_logical_operator(self, group_id: str, logical_operator: str) -> "FilterGroup":
        def _update(node: FilterNode) -> FilterNode:
            if not isinstance(node, FilterGroup):
                raise ValidationError(f"Filter node '{group_id}' is not a group", subcode=VALIDATION_UNKNOWN_NODE)
            return replace(node, logical_operator=logical_operator)

        return self.with_node(group_id, _update)

    def set_condition_attribute(self, condition_id: str, entity_alias: str, attribute_name: str) -> "FilterGroup":
        """
        Point a condition at another attribute.

        The operator is reset to ``eq`` and the values are cleared, since an
        operator legal for the previous attribute type may be illegal for the new one.
        """

        def _update(node: FilterNode) -> FilterNode:
            if not isinstance(node, FilterCondition):
                raise ValidationError(f"Filter node '{condition_id}' is not a condition", subcode=VALIDATION_UNKNOWN_NODE)
            return replace(
                node,
                entity_alias=entity_alias,
                attribute_name=attribute_name,
                operator=DEFAULT_OPERATOR,
                value=None,
                value2=None,
            )

        return self.with_node(condition_id, _update)

    def set_condition_operator(self, condition_id: str, operator: str, value: Any = None) -> "FilterGroup":
        if operator not in OPERATORS:
            raise ValidationError(f"Unknown filter operator '{operator}'", subcode=VALIDATION_UNKNOWN_OPERATOR)

        def _update(node: FilterNode) -> FilterNode:
            if not isinstance(node, FilterCondition):
                raise ValidationError(f"Filter node '{condition_id}' is not a condition", subcode=VALIDATION_UNKNOWN_NODE)
            return replace(node, operator=operator, value=value)

        return self.with_node(condition_id, _update)


FilterNode = Union[FilterCondition, FilterGroup]


def new_filter_tree(logical_operator: str = LOGICAL_AND) -> FilterGroup:
    """Return an empty root group."""
    return FilterGroup(logical_operator, (), id=ROOT_FILTER_ID)


__all__ = [
    "FilterCondition",
    "FilterGroup",
    "FilterNode",
    "LOGICAL_AND",
    "LOGICAL_OR",
    "ROOT_FILTER_ID",
    "new_filter_tree",
]
