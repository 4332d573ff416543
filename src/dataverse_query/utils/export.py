# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Flatten query results for export.

Records returned by a compiled query are nested: joined columns live under
their navigation properties, and one-to-many joins are arrays. The helpers
here walk that shape using the query graph and produce flat rows keyed by the
columns' display names, then serialize them to a :class:`pandas.DataFrame`,
delimited text or SpreadsheetML.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, List, Optional, Sequence
from xml.sax.saxutils import escape

import pandas as pd

from ..models.query_graph import MAIN_ALIAS, QueryGraph, SelectedColumn
from ._pandas import rows_to_dataframe, strip_odata_keys

FORMATTED_VALUE_SUFFIX = "@OData.Community.Display.V1.FormattedValue"
LOOKUP_LOGICAL_NAME_SUFFIX = "@Microsoft.Dynamics.CRM.lookuplogicalname"

_PHONE_HINTS = ("phone", "telephone", "mobile", "fax")
_MAX_NUMERIC_DIGITS = 11


def _resolve_target(record: Dict[str, Any], column: SelectedColumn, graph: Optional[QueryGraph]) -> Any:
    if column.entity_alias.lower() == MAIN_ALIAS or graph is None:
        return record
    path = graph.navigation_path(column.entity_alias)
    if path is None:
        return None
    target: Any = record
    for prop in path:
        if isinstance(target, dict) and target.get(prop):
            target = target[prop]
        else:
            return None
    return target


def _lookup_key(column: SelectedColumn) -> Optional[str]:
    if not column.logical_name:
        return None
    key = f"_{column.logical_name}_value"
    return None if key == column.wire_attribute_name else key


def _raw_value(source: Any, column: SelectedColumn) -> Any:
    if not isinstance(source, dict):
        return None
    value = source.get(column.wire_attribute_name)
    if value is None:
        key = _lookup_key(column)
        if key:
            value = source.get(key)
    return value


def _formatted_value(source: Any, column: SelectedColumn) -> Any:
    if not isinstance(source, dict):
        return None
    key = column.wire_attribute_name + FORMATTED_VALUE_SUFFIX
    if key in source:
        return source[key]
    lookup = _lookup_key(column)
    if lookup and lookup + FORMATTED_VALUE_SUFFIX in source:
        return source[lookup + FORMATTED_VALUE_SUFFIX]
    return None


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def export_value(record: Dict[str, Any], column: SelectedColumn, graph: Optional[QueryGraph] = None) -> str:
    """
    Display value of one column in one record.

    Prefers the ``FormattedValue`` annotation, then the raw value, then the
    ``_<logical>_value`` lookup key. Values reached through a one-to-many join
    are joined with ``"; "``. Missing values export as an empty string.

    :param record: A record from a query page.
    :type record: dict
    :param column: The column to extract.
    :type column: ~dataverse_query.models.query_graph.SelectedColumn
    :param graph: Query graph the record was compiled from. Needed for joined columns.
    :type graph: ~dataverse_query.models.query_graph.QueryGraph or None
    :rtype: str
    """
    target = _resolve_target(record, column, graph)
    if target is None:
        return ""
    if isinstance(target, list):
        values = []
        for item in target:
            formatted = _formatted_value(item, column)
            value = formatted if formatted is not None else _raw_value(item, column)
            if value is not None:
                values.append(_to_text(value))
        return "; ".join(values)
    formatted = _formatted_value(target, column)
    if formatted is not None:
        return _to_text(formatted)
    return _to_text(_raw_value(target, column))


def export_values(
    records: Sequence[Dict[str, Any]],
    columns: Sequence[SelectedColumn],
    graph: Optional[QueryGraph] = None,
) -> Iterator[List[str]]:
    """Yield one list of display values per record, in column order."""
    for record in records:
        yield [export_value(record, col, graph) for col in columns]


def column_headers(columns: Sequence[SelectedColumn]) -> List[str]:
    """
    Display names of ``columns``, made unique.

    A repeated display name gets its entity alias appended, e.g. a joined
    ``Full Name`` becomes ``Full Name (own)``; a number is added if that still clashes.
    """
    headers: List[str] = []
    seen = set()
    for col in columns:
        header = col.display_name
        if header.lower() in seen:
            header = f"{col.display_name} ({col.entity_alias})"
            n = 2
            while header.lower() in seen:
                header = f"{col.display_name} ({col.entity_alias}) {n}"
                n += 1
        seen.add(header.lower())
        headers.append(header)
    return headers


def export_rows(
    records: Sequence[Dict[str, Any]],
    columns: Sequence[SelectedColumn],
    graph: Optional[QueryGraph] = None,
) -> Iterator[Dict[str, str]]:
    """Yield one flat dict per record keyed by :func:`column_headers`, in column order."""
    headers = column_headers(columns)
    for values in export_values(records, columns, graph):
        yield dict(zip(headers, values))


def to_dataframe(
    records: Sequence[Dict[str, Any]],
    columns: Optional[Sequence[SelectedColumn]] = None,
    graph: Optional[QueryGraph] = None,
) -> pd.DataFrame:
    """
    Build a DataFrame from query records.

    With ``columns``, the frame holds the exported display values with one
    column per selected column, labelled by display name and filled by
    position, so repeated display names keep their own values. Without, it
    holds the raw records with OData annotation keys removed.
    """
    if columns is None:
        return rows_to_dataframe(strip_odata_keys(r) for r in records)
    return rows_to_dataframe(export_values(records, columns, graph), [c.display_name for c in columns])


def to_csv(
    records: Sequence[Dict[str, Any]],
    columns: Sequence[SelectedColumn],
    graph: Optional[QueryGraph] = None,
) -> str:
    """Delimited text with a display-name header row and CRLF line endings."""
    frame = to_dataframe(records, columns, graph)
    return frame.to_csv(index=False, lineterminator="\r\n")


def _is_phone_column(name: str) -> bool:
    lower = name.lower()
    return any(hint in lower for hint in _PHONE_HINTS)


def is_numeric_cell(value: str, column_name: str) -> bool:
    """
    True when a spreadsheet cell should be typed ``Number``.

    Values with spaces, ``-`` or ``+``, values with more than eleven digits,
    and values in phone-like columns stay text so that spreadsheet software
    does not reformat them in scientific notation.
    """
    if not value or " " in value or "-" in value or "+" in value:
        return False
    try:
        float(value)
    except ValueError:
        return False
    if value.lower() in ("nan", "inf", "infinity"):
        return False
    if sum(ch.isdigit() for ch in value) > _MAX_NUMERIC_DIGITS:
        return False
    return not _is_phone_column(column_name)


def _xml(text: str) -> str:
    return escape(text, {'"': "&quot;", "'": "&apos;"})


def _record_link(base_url: str, logical_name: str, record_id: Any) -> str:
    return f"{base_url.rstrip('/')}/main.aspx?etn={logical_name}&id={record_id}&pagetype=entityrecord"


def _hyperlink(
    record: Dict[str, Any], column: SelectedColumn, graph: Optional[QueryGraph], base_url: Optional[str]
) -> Optional[str]:
    if not base_url:
        return None
    target = _resolve_target(record, column, graph)
    if not isinstance(target, dict):
        return None
    attr = column.wire_attribute_name
    node = graph.node(column.entity_alias) if graph is not None else None
    if node is not None and attr == node.entity.primary_id_attribute and target.get(attr):
        return _record_link(base_url, node.entity.logical_name, target[attr])
    if attr.startswith("_") and attr.endswith("_value") and target.get(attr):
        logical_name = target.get(attr + LOOKUP_LOGICAL_NAME_SUFFIX)
        if logical_name:
            return _record_link(base_url, logical_name, target[attr])
    return None


_WORKBOOK_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<?mso-application progid="Excel.Sheet"?>
<Workbook xmlns="urn:schemas-microsoft-com:office:spreadsheet"
  xmlns:o="urn:schemas-microsoft-com:office:office"
  xmlns:x="urn:schemas-microsoft-com:office:excel"
  xmlns:ss="urn:schemas-microsoft-com:office:spreadsheet">
  <Styles>
    <Style ss:ID="Default" ss:Name="Normal">
      <Alignment ss:Vertical="Bottom"/>
      <Font ss:FontName="Calibri" ss:Size="11" ss:Color="#000000"/>
    </Style>
    <Style ss:ID="Header">
      <Alignment ss:Horizontal="Center" ss:Vertical="Bottom"/>
      <Font ss:FontName="Calibri" ss:Size="11" ss:Bold="1" ss:Color="#FFFFFF"/>
      <Interior ss:Color="#0078D4" ss:Pattern="Solid"/>
    </Style>
  </Styles>
"""


def to_spreadsheet_xml(
    records: Sequence[Dict[str, Any]],
    columns: Sequence[SelectedColumn],
    graph: Optional[QueryGraph] = None,
    sheet_name: str = "Query Results",
    base_url: Optional[str] = None,
) -> str:
    """
    Render records as a SpreadsheetML 2003 workbook.

    :param records: Query records.
    :type records: list[dict]
    :param columns: Columns to export, in order.
    :type columns: list[~dataverse_query.models.query_graph.SelectedColumn]
    :param graph: Query graph the records were compiled from.
    :type graph: ~dataverse_query.models.query_graph.QueryGraph or None
    :param sheet_name: Worksheet name.
    :type sheet_name: str
    :param base_url: Environment URL. When given, primary-id and lookup cells link to the record form.
    :type base_url: str or None
    :rtype: str
    """
    lines: List[str] = [_WORKBOOK_HEADER.rstrip("\n")]
    lines.append(f'  <Worksheet ss:Name="{_xml(sheet_name)}">')
    lines.append('    <Table ss:DefaultRowHeight="15">')
    for _ in columns:
        lines.append('      <Column ss:AutoFitWidth="1" ss:Width="120"/>')
    lines.append("      <Row>")
    for col in columns:
        lines.append(f'        <Cell ss:StyleID="Header"><Data ss:Type="String">{_xml(col.display_name)}</Data></Cell>')
    lines.append("      </Row>")
    for record in records:
        lines.append("      <Row>")
        for col in columns:
            value = export_value(record, col, graph)
            data_type = "Number" if is_numeric_cell(value, col.display_name) else "String"
            link = _hyperlink(record, col, graph, base_url)
            href = f' ss:HRef="{_xml(link)}"' if link else ""
            lines.append(f'        <Cell{href}><Data ss:Type="{data_type}">{_xml(value)}</Data></Cell>')
        lines.append("      </Row>")
    lines.append("    </Table>")
    lines.append("  </Worksheet>")
    lines.append("</Workbook>")
    return "\n".join(lines)


__all__ = [
    "export_value",
    "export_values",
    "export_rows",
    "column_headers",
    "to_dataframe",
    "to_csv",
    "to_spreadsheet_xml",
    "is_numeric_cell",
]
