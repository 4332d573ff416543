# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Compile a query graph, selected columns and filter tree into a Web API query string.

The output has the shape::

    <entitySetName>?$select=...[&$expand=...][&$filter=...]

``$select`` and ``$expand`` keep literal commas; the ``$filter`` value is
percent-encoded as a whole. Comparisons on ``_<name>_value`` lookup fields
render GUID values unquoted. Compilation is a pure function of its inputs and
never raises on an incomplete filter tree: conditions without an attribute or
operator, with an operator outside the table, with a missing value, or on an
alias that is no longer in the graph are left out.
"""

from __future__ import annotations

import datetime as _dt
import decimal
import logging
import uuid
from typing import Any, Iterable, List, Optional, Sequence
from urllib.parse import quote

from ..models.filters import FilterCondition, FilterGroup, FilterNode
from ..models.operators import (
    KIND_COMPARISON,
    KIND_NULL_CHECK,
    KIND_QUERY_FUNCTION,
    KIND_STRING_FUNCTION,
    QUERY_FUNCTION_NAMESPACE,
    get_operator,
)
from ..models.query_graph import QueryGraph, SelectedColumn

logger = logging.getLogger(__name__)

# Characters left unescaped in the $filter value, matching encodeURIComponent
_FILTER_SAFE = "-_.!~*'()"


def format_literal(value: Any) -> str:
    """
    Format a value for OData query syntax.

    Strings are single-quoted with embedded quotes doubled; numbers and
    booleans are unquoted; dates and GUIDs are written bare.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, decimal.Decimal)):
        return str(value)
    if isinstance(value, (_dt.datetime, _dt.date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        f = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return int(f) if f.is_integer() else None


def _is_lookup_field(attribute_name: str) -> bool:
    return attribute_name.startswith("_") and attribute_name.endswith("_value")


def _lookup_literal(value: Any) -> Any:
    """GUID strings compared against a ``_<name>_value`` field become bare GUIDs."""
    if not isinstance(value, str):
        return value
    try:
        return uuid.UUID(value.strip().strip("{}"))
    except ValueError:
        return value


def _dedupe(names: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for n in names:
        key = n.lower()
        if key not in seen:
            seen.add(key)
            out.append(n)
    return out


def select_fields(graph: QueryGraph, columns: Sequence[SelectedColumn], alias: str) -> List[str]:
    """Wire field names selected for node ``alias``, always ending with its primary id."""
    node = graph.node(alias)
    key = alias.lower()
    fields = [c.wire_attribute_name for c in columns if c.entity_alias.lower() == key and c.wire_attribute_name]
    if node is not None and node.entity.primary_id_attribute:
        fields.append(node.entity.primary_id_attribute)
    return _dedupe(fields)


def build_expand(graph: QueryGraph, columns: Sequence[SelectedColumn], parent_alias: str) -> str:
    """
    Comma-joined expansion clauses for the children of ``parent_alias``.

    Each child renders as ``nav($select=...;$expand=...)``; an empty
    sub-clause is left out, and the parentheses go when both are empty.
    """
    clauses = []
    for child in graph.children(parent_alias):
        if not child.navigation_property:
            continue
        options = []
        fields = select_fields(graph, columns, child.alias)
        if fields:
            options.append(f"$select={','.join(fields)}")
        nested = build_expand(graph, columns, child.alias)
        if nested:
            options.append(f"$expand={nested}")
        suffix = f"({';'.join(options)})" if options else ""
        clauses.append(f"{child.navigation_property}{suffix}")
    return ",".join(clauses)


def compile_condition(condition: FilterCondition, graph: Optional[QueryGraph] = None) -> str:
    """Render one condition, or return an empty string when it cannot be rendered."""
    if not condition.is_complete:
        return ""
    op = get_operator(condition.operator)
    if op is None:
        return ""
    if graph is not None:
        path = graph.attribute_path(condition.entity_alias, condition.attribute_name)
        if path is None:
            logger.debug("Dropping condition on unknown alias '%s'", condition.entity_alias)
            return ""
    else:
        path = condition.attribute_name
    value = condition.value

    if op.kind == KIND_NULL_CHECK:
        return f"{path} {op.wire_name} null"

    if op.kind == KIND_COMPARISON:
        if value is None:
            return ""
        if _is_lookup_field(condition.attribute_name):
            value = _lookup_literal(value)
        return f"{path} {op.wire_name} {format_literal(value)}"

    if op.kind == KIND_STRING_FUNCTION:
        if value is None:
            return ""
        expr = f"{op.wire_name}({path}, {format_literal(str(value))})"
        return f"not {expr}" if op.negate else expr

    if op.kind == KIND_QUERY_FUNCTION:
        args = f"PropertyName='{path}'"
        if op.needs_value:
            if op.integer_value:
                n = _as_int(value)
                if n is None:
                    return ""
                args += f",PropertyValue={n}"
            else:
                if value is None or value == "":
                    return ""
                text = value.isoformat() if isinstance(value, (_dt.datetime, _dt.date)) else str(value)
                args += ",PropertyValue='{}'".format(text.replace("'", "''"))
        return f"{QUERY_FUNCTION_NAMESPACE}.{op.wire_name}({args})"

    return ""


def compile_filter(node: Optional[FilterNode], graph: Optional[QueryGraph] = None) -> str:
    """
    Render a filter tree (unencoded).

    Groups render as ``(a op b ...)``; a group with one renderable child
    renders as that child; an empty group renders as an empty string.
    """
    if node is None:
        return ""
    if isinstance(node, FilterCondition):
        return compile_condition(node, graph)
    parts = [p for p in (compile_filter(child, graph) for child in node.children) if p]
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]
    return "(" + f" {node.logical_operator} ".join(parts) + ")"


def encode_filter(filter_expression: str) -> str:
    return quote(filter_expression, safe=_FILTER_SAFE)


def compile_query(
    graph: QueryGraph,
    columns: Sequence[SelectedColumn],
    filter_tree: Optional[FilterGroup] = None,
) -> str:
    """
    Compile the full query string for the root entity set.

    :param graph: Query graph; its root supplies the entity set name.
    :type graph: ~dataverse_query.models.query_graph.QueryGraph
    :param columns: Selected columns across all nodes.
    :type columns: list[~dataverse_query.models.query_graph.SelectedColumn]
    :param filter_tree: Root filter group, or None for no filter.
    :type filter_tree: ~dataverse_query.models.filters.FilterGroup or None
    :return: ``<entitySetName>?$select=...[&$expand=...][&$filter=...]``.
    :rtype: str

    Example::

        compile_query(graph, columns, tree)
        # 'contacts?$select=fullname,contactid&$expand=parentcustomerid($select=name,accountid)&$filter=statecode%20eq%200'
    """
    root = graph.root
    query = f"{root.entity.entity_set_name}?$select={','.join(select_fields(graph, columns, root.alias))}"
    expand = build_expand(graph, columns, root.alias)
    if expand:
        query += f"&$expand={expand}"
    filter_expression = compile_filter(filter_tree, graph)
    if filter_expression:
        query += f"&$filter={encode_filter(filter_expression)}"
    return query


__all__ = [
    "format_literal",
    "select_fields",
    "build_expand",
    "compile_condition",
    "compile_filter",
    "encode_filter",
    "compile_query",
]
