# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Filter operator table.

Each :class:`FilterOperator` row records the user-facing label, how many
values the operator takes, which attribute types may use it, and how it maps
onto a Web API query function. The compiler and the FetchXML importer both
read from :data:`OPERATORS`; an operator that is not in the table cannot be
compiled.

See: https://learn.microsoft.com/en-us/power-apps/developer/data-platform/webapi/reference/queryfunctions
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

QUERY_FUNCTION_NAMESPACE = "Microsoft.Dynamics.CRM"

# Attribute type categories
ALL_TYPES = "all"
STRING_TYPES: FrozenSet[str] = frozenset({"String", "Memo"})
NUMERIC_TYPES: FrozenSet[str] = frozenset({"Integer", "BigInt", "Money", "Decimal", "Double"})
DATE_TYPES: FrozenSet[str] = frozenset({"DateTime"})
OPTION_TYPES: FrozenSet[str] = frozenset({"Picklist", "State", "Status"})

# Operator kinds, used by the compiler to pick a rendering
KIND_COMPARISON = "comparison"  # <path> <op> <value>
KIND_NULL_CHECK = "null_check"  # <path> eq|ne null
KIND_STRING_FUNCTION = "string_function"  # <func>(<path>, <value>)
KIND_QUERY_FUNCTION = "query_function"  # Microsoft.Dynamics.CRM.<Func>(PropertyName='<path>'[,PropertyValue=..])


@dataclass(frozen=True)
class FilterOperator:
    """
    One row of the operator table.

    :param name: Operator key stored on filter conditions, e.g. ``"last-x-days"``.
    :type name: str
    :param label: User-facing label.
    :type label: str
    :param arity: Number of values the operator takes (0 or 1).
    :type arity: int
    :param types: Attribute types allowed to use the operator, or ``{"all"}``.
    :type types: frozenset[str]
    :param kind: Rendering kind (one of the ``KIND_*`` constants).
    :type kind: str
    :param wire_name: OData operator/function name (``"eq"``, ``"contains"``, ``"LastXDays"``...).
    :type wire_name: str
    :param integer_value: The single value is an integer count (``"last X days"`` family).
    :type integer_value: bool
    :param negate: Wrap the rendering in ``not``.
    :type negate: bool
    """

    name: str
    label: str
    arity: int
    types: FrozenSet[str]
    kind: str
    wire_name: str
    integer_value: bool = False
    negate: bool = False

    @property
    def needs_value(self) -> bool:
        return self.arity > 0

    def allows(self, attribute_type: Optional[str]) -> bool:
        if ALL_TYPES in self.types:
            return True
        return bool(attribute_type) and attribute_type in self.types


def _cmp(name: str, label: str, types: FrozenSet[str]) -> FilterOperator:
    return FilterOperator(name, label, 1, types, KIND_COMPARISON, name)


def _str(name: str, label: str, func: str, negate: bool = False) -> FilterOperator:
    return FilterOperator(name, label, 1, STRING_TYPES, KIND_STRING_FUNCTION, func, negate=negate)


def _date(name: str, label: str, func: str) -> FilterOperator:
    return FilterOperator(name, label, 0, DATE_TYPES, KIND_QUERY_FUNCTION, func)


def _date_x(name: str, label: str, func: str) -> FilterOperator:
    return FilterOperator(name, label, 1, DATE_TYPES, KIND_QUERY_FUNCTION, func, integer_value=True)


def _date_on(name: str, label: str, func: str) -> FilterOperator:
    return FilterOperator(name, label, 1, DATE_TYPES, KIND_QUERY_FUNCTION, func)


_ALL = frozenset({ALL_TYPES})
_ORDERED = NUMERIC_TYPES | DATE_TYPES

_OPERATOR_ROWS: List[FilterOperator] = [
    # Basic
    _cmp("eq", "Equals", _ALL),
    _cmp("ne", "Does Not Equal", _ALL),
    FilterOperator("null", "Does Not Contain Data", 0, _ALL, KIND_NULL_CHECK, "eq"),
    FilterOperator("not null", "Contains Data", 0, _ALL, KIND_NULL_CHECK, "ne"),
    # String
    _str("contains", "Contains", "contains"),
    _str("not contains", "Does Not Contain", "contains", negate=True),
    _str("startswith", "Begins With", "startswith"),
    _str("endswith", "Ends With", "endswith"),
    # Numeric and date comparison
    _cmp("gt", "Greater Than", _ORDERED),
    _cmp("ge", "Greater Than or Equal To", _ORDERED),
    _cmp("lt", "Less Than", _ORDERED),
    _cmp("le", "Less Than or Equal To", _ORDERED),
    # Date
    _date_on("on", "On", "On"),
    _date_on("on-or-after", "On or After", "OnOrAfter"),
    _date_on("on-or-before", "On or Before", "OnOrBefore"),
    # Relative date: days
    _date("today", "Today", "Today"),
    _date("yesterday", "Yesterday", "Yesterday"),
    _date("tomorrow", "Tomorrow", "Tomorrow"),
    _date_x("last-x-days", "Last X Days", "LastXDays"),
    _date_x("next-x-days", "Next X Days", "NextXDays"),
    _date_x("older-than-x-days", "Older Than X Days", "OlderThanXDays"),
    # Relative date: weeks
    _date("this-week", "This Week", "ThisWeek"),
    _date("last-week", "Last Week", "LastWeek"),
    _date("next-week", "Next Week", "NextWeek"),
    _date_x("last-x-weeks", "Last X Weeks", "LastXWeeks"),
    _date_x("next-x-weeks", "Next X Weeks", "NextXWeeks"),
    _date_x("older-than-x-weeks", "Older Than X Weeks", "OlderThanXWeeks"),
    # Relative date: months
    _date("this-month", "This Month", "ThisMonth"),
    _date("last-month", "Last Month", "LastMonth"),
    _date("next-month", "Next Month", "NextMonth"),
    _date_x("last-x-months", "Last X Months", "LastXMonths"),
    _date_x("next-x-months", "Next X Months", "NextXMonths"),
    _date_x("older-than-x-months", "Older Than X Months", "OlderThanXMonths"),
    # Relative date: years
    _date("this-year", "This Year", "ThisYear"),
    _date("last-year", "Last Year", "LastYear"),
    _date("next-year", "Next Year", "NextYear"),
    _date_x("last-x-years", "Last X Years", "LastXYears"),
    _date_x("next-x-years", "Next X Years", "NextXYears"),
    _date_x("older-than-x-years", "Older Than X Years", "OlderThanXYears"),
    # Fiscal
    _date("this-fiscal-year", "This Fiscal Year", "ThisFiscalYear"),
    _date("this-fiscal-period", "This Fiscal Period", "ThisFiscalPeriod"),
    _date("last-fiscal-year", "Last Fiscal Year", "LastFiscalYear"),
    _date("last-fiscal-period", "Last Fiscal Period", "LastFiscalPeriod"),
    _date("next-fiscal-year", "Next Fiscal Year", "NextFiscalYear"),
    _date("next-fiscal-period", "Next Fiscal Period", "NextFiscalPeriod"),
    _date_x("last-x-fiscal-years", "Last X Fiscal Years", "LastXFiscalYears"),
    _date_x("next-x-fiscal-years", "Next X Fiscal Years", "NextXFiscalYears"),
    _date_x("last-x-fiscal-periods", "Last X Fiscal Periods", "LastXFiscalPeriods"),
    _date_x("next-x-fiscal-periods", "Next X Fiscal Periods", "NextXFiscalPeriods"),
]

OPERATORS: Dict[str, FilterOperator] = {op.name: op for op in _OPERATOR_ROWS}

DEFAULT_OPERATOR = "eq"

# FetchXML operator -> table operator. Relative-date names are shared verbatim.
_FETCHXML_ALIASES: Dict[str, str] = {
    "neq": "ne",
    "like": "contains",
    "not-like": "not contains",
    "begins-with": "startswith",
    "ends-with": "endswith",
    "not-null": "not null",
    "olderthan-x-days": "older-than-x-days",
    "olderthan-x-weeks": "older-than-x-weeks",
    "olderthan-x-months": "older-than-x-months",
    "olderthan-x-years": "older-than-x-years",
}


def get_operator(name: Optional[str]) -> Optional[FilterOperator]:
    """Return the table row for ``name``, or None when the operator is unknown."""
    if not name:
        return None
    return OPERATORS.get(name)


def map_fetchxml_operator(fetch_operator: str) -> Optional[str]:
    """
    Translate a FetchXML ``operator`` attribute into a table operator name.

    :return: The operator name, or None when FetchXML uses an operator the table does not cover.
    :rtype: str or None
    """
    op = (fetch_operator or "").strip().lower()
    op = _FETCHXML_ALIASES.get(op, op)
    return op if op in OPERATORS else None


def operators_for_type(attribute_type: Optional[str]) -> List[FilterOperator]:
    """
    List the operators legal for an attribute type, in table order.

    String and Memo share the string operators; every numeric type shares the
    numeric comparisons.
    """
    return [op for op in _OPERATOR_ROWS if op.allows(attribute_type)]


def is_operator_allowed(operator: str, attribute_type: Optional[str]) -> bool:
    op = get_operator(operator)
    return op is not None and op in operators_for_type(attribute_type)


__all__ = [
    "FilterOperator",
    "OPERATORS",
    "DEFAULT_OPERATOR",
    "QUERY_FUNCTION_NAMESPACE",
    "STRING_TYPES",
    "NUMERIC_TYPES",
    "DATE_TYPES",
    "OPTION_TYPES",
    "get_operator",
    "map_fetchxml_operator",
    "operators_for_type",
    "is_operator_allowed",
]
